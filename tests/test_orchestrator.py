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

from dataclasses import replace
from pathlib import Path

import sh

from conftest import make_outcome
from e2e_runner import orchestrator
from e2e_runner.errors import ClusterError, ImagePublishError
from e2e_runner.models import CleanupReport, ClusterState, DeploymentRecord, MigrationSignal
from e2e_runner.orchestrator import Pipeline, RunState, run


class Recorder:
    """Fake phases that record the order they were called in."""

    def __init__(self, test_passed=True, signal=MigrationSignal(True, False), fail_at=None, error=None):
        self.test_passed = test_passed
        self.signal = signal
        self.fail_at = fail_at
        self.error = error or ClusterError("kops create failed")
        self.calls = []
        self.cleanup_states = []

    def _enter(self, phase):
        self.calls.append(phase)
        if phase == self.fail_at:
            raise self.error

    def pipeline(self, cleanup_error=None):
        def prepare_tools(cfg):
            self._enter("tools")
            return {"kops": Path("kops"), "helm": Path("helm"), "ginkgo": Path("ginkgo")}

        def publish_image(cfg):
            self._enter("image")
            return "repo/driver"

        def reconcile_cluster(cfg, tools, descriptor):
            self._enter("cluster")
            return replace(descriptor, observed_state=ClusterState.HEALTHY)

        def deploy_driver(cfg, tools, image_name):
            self._enter("deploy")
            return DeploymentRecord("aws-ebs-csi-driver", "kube-system", {}, f"{image_name}:t")

        def run_tests(cfg, tools):
            self._enter("tests")
            return make_outcome(self.test_passed)

        def verify_migration(cfg):
            self._enter("migration")
            return self.signal

        def cleanup(cfg, state):
            self.calls.append("cleanup")
            self.cleanup_states.append(state)
            if cleanup_error is not None:
                raise cleanup_error
            return CleanupReport()

        return Pipeline(
            prepare_tools=prepare_tools,
            publish_image=publish_image,
            reconcile_cluster=reconcile_cluster,
            deploy_driver=deploy_driver,
            run_tests=run_tests,
            verify_migration=verify_migration,
            cleanup=cleanup,
        )


def test_successful_run_executes_phases_in_order(make_config):
    recorder = Recorder()

    assert run(make_config(check_migration=True), recorder.pipeline()) == 0
    assert recorder.calls == ["tools", "image", "cluster", "deploy", "tests", "migration", "cleanup"]


def test_migration_check_disabled_skips_verifier(make_config):
    recorder = Recorder(signal=MigrationSignal(False, True))

    assert run(make_config(check_migration=False), recorder.pipeline()) == 0
    assert "migration" not in recorder.calls


def test_legacy_path_fails_run(make_config):
    recorder = Recorder(signal=MigrationSignal(True, True))

    assert run(make_config(check_migration=True), recorder.pipeline()) == 1
    assert recorder.calls.count("cleanup") == 1


def test_failing_suite_still_verifies_and_cleans(make_config):
    recorder = Recorder(test_passed=False)

    assert run(make_config(check_migration=True), recorder.pipeline()) == 1
    assert recorder.calls[-2:] == ["migration", "cleanup"]


def test_cluster_failure_aborts_but_cleans_up_once(make_config):
    recorder = Recorder(fail_at="cluster")

    assert run(make_config(check_migration=True), recorder.pipeline()) == 1
    assert recorder.calls == ["tools", "image", "cluster", "cleanup"]

    (state,) = recorder.cleanup_states
    assert state.cluster is not None
    assert state.cluster.name == "test-cluster-run0001.k8s.local"
    assert state.deployment is None
    assert isinstance(state.error, ClusterError)


def test_no_cleanup_when_disabled(make_config):
    recorder = Recorder(fail_at="image", error=ImagePublishError("push denied"))

    assert run(make_config(clean=False), recorder.pipeline()) == 1
    assert "cleanup" not in recorder.calls


def test_cleanup_failure_does_not_change_exit_code(make_config):
    recorder = Recorder()

    assert run(make_config(), recorder.pipeline(cleanup_error=RuntimeError("s3 unreachable"))) == 0
    assert recorder.calls.count("cleanup") == 1


def test_unexpected_error_fails_run_after_cleanup(make_config):
    recorder = Recorder(fail_at="deploy", error=ValueError("bad chart values"))

    assert run(make_config(), recorder.pipeline()) == 1
    assert recorder.calls == ["tools", "image", "cluster", "deploy", "cleanup"]
    (state,) = recorder.cleanup_states
    assert isinstance(state.error, ValueError)


def test_raw_command_failure_in_cluster_phase_fails_run(make_config, capsys):
    recorder = Recorder(fail_at="cluster", error=sh.ErrorReturnCode_1("ssh-keygen", b"", b"permission denied"))

    assert run(make_config(check_migration=True), recorder.pipeline()) == 1
    assert recorder.calls == ["tools", "image", "cluster", "cleanup"]
    assert "FAIL" in capsys.readouterr().err


def test_run_creates_working_directory(make_config):
    cfg = make_config(clean=False)

    run(cfg, Recorder().pipeline())

    assert cfg.context.working_directory.is_dir()


def test_default_cleanup_without_tools_removes_working_directory(make_config):
    cfg = make_config()
    cfg.context.working_directory.mkdir(parents=True)

    report = orchestrator._cleanup(cfg, RunState())

    assert report.ok
    assert not cfg.context.working_directory.exists()


def test_planned_cluster_uses_run_settings(make_config):
    cfg = make_config(zones="us-west-2a,us-west-2c", node_count=2)

    descriptor = orchestrator.planned_cluster(cfg)

    assert descriptor.name == cfg.context.cluster_name
    assert descriptor.observed_state is ClusterState.ABSENT
    assert descriptor.desired_spec.zones == ("us-west-2a", "us-west-2c")
    assert descriptor.desired_spec.node_count == 2
    assert descriptor.desired_spec.ssh_public_key == cfg.context.working_directory / "id_rsa.pub"
