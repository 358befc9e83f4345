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
import sh

from e2e_runner.deploy import deploy, driver_options, install_snapshot_crds, snapshot_crd_urls
from e2e_runner.errors import DeployError


class FakeHelm:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def upgrade_install(self, release, namespace, chart, options, values_files=()):
        self.calls.append((release, namespace, chart, dict(options), list(values_files)))
        if self.error is not None:
            raise self.error


class FakeKubectl:
    def __init__(self, ok=True):
        self.ok = ok
        self.calls = []

    def run(self, args, timeout=30):
        self.calls.append(args)
        return self.ok, "", "" if self.ok else "forbidden"


def test_driver_options_profile():
    options = driver_options("123.dkr.ecr.us-west-2.amazonaws.com/aws-ebs-csi-driver", "run0001")

    assert options == {
        "enableVolumeScheduling": "true",
        "enableVolumeResizing": "true",
        "enableVolumeSnapshot": "true",
        "image.repository": "123.dkr.ecr.us-west-2.amazonaws.com/aws-ebs-csi-driver",
        "image.tag": "run0001",
    }


def test_deploy_installs_or_upgrades_release():
    helm = FakeHelm()
    options = driver_options("repo/driver", "abc")

    record = deploy(helm, "aws-ebs-csi-driver", "kube-system", "charts/aws-ebs-csi-driver", options)

    assert helm.calls == [("aws-ebs-csi-driver", "kube-system", "charts/aws-ebs-csi-driver", options, [])]
    assert record.image_ref == "repo/driver:abc"
    assert record.option_set == options


def test_deploy_wraps_helm_failure():
    helm = FakeHelm(error=sh.ErrorReturnCode_1("helm upgrade", b"", b"chart not found"))

    with pytest.raises(DeployError):
        deploy(helm, "aws-ebs-csi-driver", "kube-system", "charts/missing", driver_options("r", "t"))


def test_snapshot_crd_urls_are_pinned():
    urls = snapshot_crd_urls()

    assert len(urls) == 3
    assert all("/external-snapshotter/v6.3.3/client/config/crd/" in url for url in urls)


def test_install_snapshot_crds_applies_each_manifest():
    kubectl = FakeKubectl()

    install_snapshot_crds(kubectl, ["https://a/x.yaml", "https://a/y.yaml"])

    assert kubectl.calls == [["apply", "-f", "https://a/x.yaml"], ["apply", "-f", "https://a/y.yaml"]]


def test_install_snapshot_crds_failure_is_fatal():
    with pytest.raises(DeployError, match="forbidden"):
        install_snapshot_crds(FakeKubectl(ok=False), ["https://a/x.yaml"])
