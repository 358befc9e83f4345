# /*
# Copyright 2026 The Grove Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Fatal error types raised by pipeline phases.

Soft failures (a failing suite, an unexpected migration signal) are never
raised; they travel as result values and are combined into the verdict.
"""

from __future__ import annotations


class E2EError(RuntimeError):
    """Raised when a phase cannot continue; aborts the remaining pipeline."""


class ToolInstallError(E2EError):
    """A pinned tool could not be installed."""


class ImagePublishError(E2EError):
    """The driver image could not be built, pushed or authenticated."""


class ClusterError(E2EError):
    """A kops create, replace, update or delete call failed."""


class DeployError(E2EError):
    """The driver Helm release could not be installed or upgraded."""


class TestRunnerError(E2EError):
    """The conformance runner could not be started."""

    __test__ = False


class VerificationError(E2EError):
    """The migration check could not gather its inputs."""


class PhaseTimeoutError(E2EError):
    """A bounded wait expired (cluster validation, tunnel readiness)."""
