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

import pytest
from pydantic import ValidationError

from e2e_runner.config import MigrationConfig, resolve_config


def test_defaults(tmp_path, make_config):
    cfg = make_config()

    assert cfg.context.run_id == "run0001"
    assert cfg.context.cluster_name == "test-cluster-run0001.k8s.local"
    assert cfg.context.working_directory == tmp_path / "csi-test-artifacts-run0001"
    assert cfg.context.region == "us-west-2"
    assert cfg.context.zones == ("us-west-2a", "us-west-2b", "us-west-2c")
    assert cfg.context.image_tag == "run0001"
    assert cfg.suite.ginkgo_nodes == 4
    assert cfg.flags.check_migration is False
    assert cfg.flags.clean is True
    assert cfg.kubeconfig.parent == cfg.context.working_directory
    assert cfg.artifacts == cfg.context.working_directory / "artifacts"


def test_generated_run_id_when_none_given():
    first = resolve_config()
    second = resolve_config()

    assert first.context.run_id != second.context.run_id


def test_environment_overrides_defaults(monkeypatch, make_config):
    monkeypatch.setenv("E2E_REGION", "eu-west-1")
    monkeypatch.setenv("E2E_ZONES", "eu-west-1a")
    monkeypatch.setenv("E2E_GINKGO_NODES", "8")
    monkeypatch.setenv("E2E_IMAGE_TAG", "v1.30.0")

    cfg = make_config()

    assert cfg.context.region == "eu-west-1"
    assert cfg.context.zones == ("eu-west-1a",)
    assert cfg.suite.ginkgo_nodes == 8
    assert cfg.context.image_tag == "v1.30.0"


def test_cli_overrides_environment(monkeypatch, make_config):
    monkeypatch.setenv("E2E_REGION", "eu-west-1")
    monkeypatch.setenv("E2E_GINKGO_FOCUS", "env-focus")

    cfg = make_config(region="ap-south-1", ginkgo_focus="cli-focus", node_count=5, check_migration=True, clean=False)

    assert cfg.context.region == "ap-south-1"
    assert cfg.suite.ginkgo_focus == "cli-focus"
    assert cfg.cluster.node_count == 5
    assert cfg.flags.check_migration is True
    assert cfg.flags.clean is False


def test_migration_settings_use_their_own_prefix(monkeypatch):
    monkeypatch.setenv("E2E_MIGRATION_TIMEOUT", "5")
    monkeypatch.setenv("E2E_MIGRATION_METRICS_PORT", "10257")

    cfg = MigrationConfig()

    assert cfg.timeout == 5.0
    assert cfg.metrics_port == 10257
    assert cfg.csi_plugin == "ebs.csi.aws.com"
    assert cfg.legacy_plugin == "kubernetes.io/aws-ebs"


def test_run_flags_come_from_environment(monkeypatch, make_config):
    monkeypatch.setenv("E2E_CHECK_MIGRATION", "true")
    monkeypatch.setenv("E2E_CLEAN", "false")

    cfg = make_config()

    assert cfg.flags.check_migration is True
    assert cfg.flags.clean is False


def test_cli_run_flags_override_environment(monkeypatch, make_config):
    monkeypatch.setenv("E2E_CHECK_MIGRATION", "true")
    monkeypatch.setenv("E2E_CLEAN", "false")

    cfg = make_config(check_migration=False, clean=True)

    assert cfg.flags.check_migration is False
    assert cfg.flags.clean is True


@pytest.mark.parametrize(
    "overrides",
    [
        {"test_id": "Foo_Bar"},
        {"zones": ""},
        {"zones": "us-west-2a,,us-west-2b"},
        {"node_count": 0},
        {"ginkgo_nodes": 0},
    ],
)
def test_invalid_overrides_are_rejected(make_config, overrides):
    with pytest.raises(ValidationError):
        make_config(**overrides)
