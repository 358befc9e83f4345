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

from conftest import make_descriptor
from e2e_runner.cleanup import cleanup
from e2e_runner.errors import ClusterError
from e2e_runner.models import DeploymentRecord

RECORD = DeploymentRecord(
    package_name="aws-ebs-csi-driver",
    namespace="kube-system",
    option_set={"image.tag": "run0001"},
    image_ref="repo:run0001",
)


class FakeHelm:
    def __init__(self, error=None):
        self.error = error
        self.uninstalled = []

    def uninstall(self, release, namespace):
        self.uninstalled.append((release, namespace))
        if self.error is not None:
            raise self.error


class FakeKops:
    def __init__(self, error=None):
        self.error = error
        self.deleted = []

    def delete(self, name):
        self.deleted.append(name)
        if self.error is not None:
            raise self.error


def make_workdir(tmp_path):
    workdir = tmp_path / "csi-test-artifacts-run0001"
    (workdir / "artifacts").mkdir(parents=True)
    (workdir / "artifacts" / "ginkgo.log").write_text("log")
    return workdir


def test_cleanup_runs_every_step(tmp_path):
    workdir = make_workdir(tmp_path)
    helm, kops = FakeHelm(), FakeKops()

    report = cleanup(RECORD, make_descriptor(), workdir, helm, kops)

    assert report.ok
    assert len(report.attempted) == 3
    assert helm.uninstalled == [("aws-ebs-csi-driver", "kube-system")]
    assert kops.deleted == ["test-cluster-run0001.k8s.local"]
    assert not workdir.exists()


def test_cleanup_continues_after_failing_step(tmp_path):
    workdir = make_workdir(tmp_path)
    helm = FakeHelm(error=RuntimeError("release not found"))
    kops = FakeKops(error=ClusterError("state store unreachable"))

    report = cleanup(RECORD, make_descriptor(), workdir, helm, kops)

    assert not report.ok
    assert len(report.failed) == 2
    assert kops.deleted == ["test-cluster-run0001.k8s.local"]
    assert not workdir.exists()


def test_cleanup_skips_steps_without_inputs(tmp_path):
    workdir = make_workdir(tmp_path)
    helm, kops = FakeHelm(), FakeKops()

    report = cleanup(None, make_descriptor(), workdir, helm, kops)

    assert helm.uninstalled == []
    assert kops.deleted == ["test-cluster-run0001.k8s.local"]
    assert len(report.attempted) == 2


def test_cleanup_without_tools_only_removes_workdir(tmp_path):
    workdir = make_workdir(tmp_path)

    report = cleanup(RECORD, make_descriptor(), workdir, None, None)

    assert report.attempted == [f"remove {workdir}"]
    assert not workdir.exists()


def test_cleanup_tolerates_missing_workdir(tmp_path):
    report = cleanup(None, None, tmp_path / "never-created", None, None)

    assert report.ok
