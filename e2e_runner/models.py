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

"""Run-scoped domain values shared by the pipeline phases."""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from pathlib import Path

from e2e_runner.constants import CLUSTER_NAME_TEMPLATE, WORKDIR_TEMPLATE


def new_run_id() -> str:
    """Generate a run identifier with negligible collision probability."""
    return uuid.uuid4().hex[:10]


def cluster_name_for(run_id: str) -> str:
    """Derive the kops cluster name owned by a run."""
    return CLUSTER_NAME_TEMPLATE.format(run_id=run_id)


def working_dir_for(base_dir: Path, run_id: str) -> Path:
    """Derive the local working directory owned by a run."""
    return base_dir / WORKDIR_TEMPLATE.format(run_id=run_id)


@dataclass(frozen=True)
class RunContext:
    """Identifiers and locations scoped to a single invocation.

    Attributes:
        run_id: Unique token for this invocation.
        cluster_name: kops cluster name derived from ``run_id``.
        region: AWS region the cluster and registry live in.
        zones: Ordered availability zones for the cluster.
        instance_type: EC2 instance type for worker nodes.
        image_tag: Tag of the driver image under test.
        working_directory: Local directory holding keys, kubeconfig and artifacts.
    """

    run_id: str
    cluster_name: str
    region: str
    zones: tuple[str, ...]
    instance_type: str
    image_tag: str
    working_directory: Path

    @classmethod
    def create(
        cls,
        run_id: str,
        region: str,
        zones: tuple[str, ...],
        instance_type: str,
        base_dir: Path,
        image_tag: str | None = None,
    ) -> RunContext:
        return cls(
            run_id=run_id,
            cluster_name=cluster_name_for(run_id),
            region=region,
            zones=tuple(zones),
            instance_type=instance_type,
            image_tag=image_tag or run_id,
            working_directory=working_dir_for(base_dir, run_id),
        )

    @property
    def first_zone(self) -> str:
        return self.zones[0]


class ClusterState(str, enum.Enum):
    """Observed state of a cluster, as seen by the cluster manager."""

    ABSENT = "absent"
    PRESENT_OUTDATED = "present-outdated"
    PRESENT_CURRENT = "present-current"
    HEALTHY = "healthy"


@dataclass(frozen=True)
class ClusterSpec:
    """Desired shape of the test cluster."""

    zones: tuple[str, ...]
    node_count: int
    node_size: str
    kubernetes_version: str
    ssh_public_key: Path


@dataclass(frozen=True)
class ClusterDescriptor:
    """A named cluster, its desired spec and the last observed state."""

    name: str
    desired_spec: ClusterSpec
    observed_state: ClusterState = ClusterState.ABSENT


@dataclass(frozen=True)
class DeploymentRecord:
    """The driver release written by the last install-or-upgrade."""

    package_name: str
    namespace: str
    option_set: dict[str, str]
    image_ref: str


@dataclass(frozen=True)
class TestOutcome:
    """Result of one conformance suite run."""

    __test__ = False

    focus_filter: str
    skip_filter: str
    parallelism: int
    passed: bool
    artifact_path: Path


@dataclass(frozen=True)
class MigrationSignal:
    """Which provisioning paths the controller manager reports as used."""

    csi_path_invoked: bool
    legacy_path_invoked: bool

    @property
    def passed(self) -> bool:
        return self.csi_path_invoked and not self.legacy_path_invoked


@dataclass
class CleanupReport:
    """Cleanup steps attempted and the subset that failed."""

    attempted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def final_verdict(outcome: TestOutcome | None, signal: MigrationSignal | None) -> bool:
    """Combine the soft results of a run into a single pass/fail verdict.

    Args:
        outcome: Conformance suite result, or None if the run aborted before it.
        signal: Migration signal, or None when the migration check is disabled.

    Returns:
        True only if the suite passed and, when checked, the CSI path was used
        and the legacy path was not.
    """
    if outcome is None:
        return False
    if signal is None:
        return outcome.passed
    return outcome.passed and signal.csi_path_invoked and not signal.legacy_path_invoked
