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

from __future__ import annotations

import os
from pathlib import Path

import pytest

from e2e_runner.config import resolve_config
from e2e_runner.models import ClusterDescriptor, ClusterSpec, TestOutcome


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("E2E_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def make_config(tmp_path):
    def _make(**overrides):
        overrides.setdefault("test_id", "run0001")
        overrides.setdefault("base_dir", tmp_path)
        return resolve_config(**overrides)
    return _make


def make_descriptor(name: str = "test-cluster-run0001.k8s.local") -> ClusterDescriptor:
    return ClusterDescriptor(
        name=name,
        desired_spec=ClusterSpec(
            zones=("us-west-2a", "us-west-2b"),
            node_count=3,
            node_size="c5.large",
            kubernetes_version="1.28.9",
            ssh_public_key=Path("id_rsa.pub"),
        ),
    )


def make_outcome(passed: bool, artifact_path: Path = Path("artifacts")) -> TestOutcome:
    return TestOutcome(
        focus_filter=r"\[ebs-csi-e2e\]",
        skip_filter=r"\[Disruptive\]",
        parallelism=4,
        passed=passed,
        artifact_path=artifact_path,
    )
