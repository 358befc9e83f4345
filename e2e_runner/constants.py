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

"""Constants, pinned dependency loading, and dep_value helper."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

# -- Resolved paths --
PACKAGE_DIR = Path(__file__).resolve().parent
OVERLAYS_DIR = PACKAGE_DIR / "overlays"


def load_dependencies() -> dict:
    """Load pinned tool versions and manifests from dependencies.yaml.

    Returns:
        Parsed YAML content as a nested dictionary.
    """
    deps_file = PACKAGE_DIR / "dependencies.yaml"
    with open(deps_file) as f:
        return yaml.safe_load(f)


DEPENDENCIES = load_dependencies()


def dep_value(*keys: str, default: Any = None) -> Any:
    """Safely traverse the DEPENDENCIES dict by key path.

    Args:
        *keys: Sequence of dictionary keys to traverse.
        default: Value to return if any key is missing.

    Returns:
        The value at the nested key path, or *default* if not found.
    """
    node = DEPENDENCIES
    for key in keys:
        if not isinstance(node, dict):
            return default
        node = node.get(key)
        if node is None:
            return default
    return node


# -- Run-scoped naming --
CLUSTER_NAME_TEMPLATE = "test-cluster-{run_id}.k8s.local"
WORKDIR_TEMPLATE = "csi-test-artifacts-{run_id}"

# -- Tool release locations --
KOPS_RELEASE_URL = "https://github.com/kubernetes/kops/releases/download/v{version}/kops-{os}-{arch}"
HELM_RELEASE_URL = "https://get.helm.sh/helm-v{version}-{os}-{arch}.tar.gz"
SNAPSHOTTER_RAW_URL = "https://raw.githubusercontent.com/kubernetes-csi/external-snapshotter/{version}/{path}"
DOWNLOAD_TIMEOUT_SECONDS = 60
DOWNLOAD_CHUNK_SIZE = 8192

# -- Cluster --
DEFAULT_REGION = "us-west-2"
DEFAULT_ZONES = "us-west-2a,us-west-2b,us-west-2c"
DEFAULT_NODE_COUNT = 3
DEFAULT_INSTANCE_TYPE = "c5.large"
DEFAULT_KOPS_STATE_STORE = "s3://k8s-kops-csi-e2e"
DEFAULT_VALIDATE_TIMEOUT_SECONDS = 600
DEFAULT_VALIDATE_POLL_INTERVAL_SECONDS = 15
SSH_KEY_FILE = "id_rsa"
SSH_KEY_USER = "admin"
FEATURE_GATES_OVERLAY = OVERLAYS_DIR / "feature-gates.yaml"
ADDITIONAL_POLICIES_OVERLAY = OVERLAYS_DIR / "additional-policies.yaml"
KOPS_KIND_CLUSTER = "Cluster"

# -- Driver --
DEFAULT_DRIVER_NAME = "aws-ebs-csi-driver"
DEFAULT_DRIVER_NAMESPACE = "kube-system"
DEFAULT_CHART_PATH = "charts/aws-ebs-csi-driver"
DRIVER_READY_SELECTOR = "app.kubernetes.io/name=aws-ebs-csi-driver"
DRIVER_READY_TIMEOUT = "5m"
ECR_REGISTRY_TEMPLATE = "{account}.dkr.ecr.{region}.amazonaws.com"
ECR_USERNAME = "AWS"

# -- Helm option keys --
HELM_KEY_VOLUME_SCHEDULING = "enableVolumeScheduling"
HELM_KEY_VOLUME_RESIZING = "enableVolumeResizing"
HELM_KEY_VOLUME_SNAPSHOT = "enableVolumeSnapshot"
HELM_KEY_IMAGE_REPOSITORY = "image.repository"
HELM_KEY_IMAGE_TAG = "image.tag"

# -- Conformance suite --
DEFAULT_GINKGO_FOCUS = r"\[ebs-csi-e2e\]"
DEFAULT_GINKGO_SKIP = r"\[Disruptive\]"
DEFAULT_GINKGO_NODES = 4
DEFAULT_TEST_PATH = "./tests/e2e/..."
GINKGO_LOG_FILE = "ginkgo.log"

# -- Migration check --
NS_KUBE_SYSTEM = "kube-system"
CONTROLLER_MANAGER_POD_PREFIX = "kube-controller-manager-"
DEFAULT_MASTER_SELECTOR = "kubernetes.io/role=master"
DEFAULT_METRICS_PORT = 10252
DEFAULT_TUNNEL_POLL_INTERVAL_SECONDS = 1.0
DEFAULT_TUNNEL_TIMEOUT_SECONDS = 60.0
HEALTH_PATH = "/healthz"
METRICS_PATH = "/metrics"
HEALTH_OK_BODY = "ok"
HTTP_REQUEST_TIMEOUT_SECONDS = 5
TUNNEL_TERMINATE_GRACE_SECONDS = 5
PROVISION_METRIC = "storage_operation_duration_seconds_bucket"
PROVISION_OPERATION = "provision"
DEFAULT_CSI_PLUGIN = "ebs.csi.aws.com"
DEFAULT_LEGACY_PLUGIN = "kubernetes.io/aws-ebs"
