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

"""kops cluster lifecycle: reconcile, validate, and delete."""

from __future__ import annotations

import os
from collections.abc import Sequence
from dataclasses import replace
from pathlib import Path

import sh
import yaml
from rich.panel import Panel
from tenacity import RetryError, retry, retry_if_result, stop_after_delay, wait_fixed

from e2e_runner import console, logger
from e2e_runner.constants import (
    ADDITIONAL_POLICIES_OVERLAY,
    FEATURE_GATES_OVERLAY,
    KOPS_KIND_CLUSTER,
    SSH_KEY_USER,
)
from e2e_runner.errors import ClusterError, PhaseTimeoutError
from e2e_runner.models import ClusterDescriptor, ClusterState
from e2e_runner.utils import deep_merge, load_yaml_file


# ============================================================================
# kops collaborator
# ============================================================================

class Kops:
    """kops invocations bound to one binary, state store and kubeconfig.

    Attributes:
        binary: Path to the kops binary.
        state_store: kops state store URL.
        kubeconfig: Kubeconfig file kops exports to and validates against.
        manifest_dir: Directory rendered cluster manifests are written to.
    """

    def __init__(self, binary: Path, state_store: str, kubeconfig: Path, manifest_dir: Path) -> None:
        self.binary = binary
        self.state_store = state_store
        self.kubeconfig = kubeconfig
        self.manifest_dir = manifest_dir

    def _kops(self, *args: str) -> str:
        cmd = sh.Command(str(self.binary))
        env = {**os.environ, "KUBECONFIG": str(self.kubeconfig)}
        return str(cmd(*args, "--state", self.state_store, _env=env))

    def _write_manifest(self, name: str, docs: Sequence[dict]) -> Path:
        self.manifest_dir.mkdir(parents=True, exist_ok=True)
        path = self.manifest_dir / f"{name}.yaml"
        path.write_text(yaml.safe_dump_all(list(docs), default_flow_style=False))
        return path

    def get(self, name: str) -> dict | None:
        """Return the live Cluster spec, or None if the cluster does not exist."""
        try:
            output = self._kops("get", "cluster", "--name", name, "-o", "yaml")
        except sh.ErrorReturnCode:
            return None
        return yaml.safe_load(output) or None

    def create(self, descriptor: ClusterDescriptor, overlays: Sequence[dict]) -> None:
        """Create and apply a cluster from its full desired spec.

        Raises:
            ClusterError: If any kops step fails.
        """
        spec = descriptor.desired_spec
        try:
            rendered = self._kops(
                "create", "cluster",
                "--name", descriptor.name,
                "--zones", ",".join(spec.zones),
                "--node-count", str(spec.node_count),
                "--node-size", spec.node_size,
                "--kubernetes-version", spec.kubernetes_version,
                "--ssh-public-key", str(spec.ssh_public_key),
                "--dry-run", "-o", "yaml",
            )
            docs = apply_overlays(list(yaml.safe_load_all(rendered)), overlays)
            manifest = self._write_manifest(descriptor.name, docs)
            self._kops("create", "-f", str(manifest))
            self._kops(
                "create", "sshpublickey", SSH_KEY_USER,
                "--name", descriptor.name,
                "-i", str(spec.ssh_public_key),
            )
            self._kops("update", "cluster", "--name", descriptor.name, "--yes", "--admin")
        except sh.ErrorReturnCode as err:
            raise ClusterError(f"kops create of {descriptor.name} failed: {err}") from err

    def replace(self, name: str, docs: Sequence[dict]) -> None:
        """Replace the stored cluster spec with ``docs``.

        Raises:
            ClusterError: If kops rejects the manifest.
        """
        manifest = self._write_manifest(name, docs)
        try:
            self._kops("replace", "-f", str(manifest))
        except sh.ErrorReturnCode as err:
            raise ClusterError(f"kops replace of {name} failed: {err}") from err

    def update(self, name: str) -> None:
        """Apply the stored cluster spec to the live cluster.

        Raises:
            ClusterError: If kops fails to apply the change.
        """
        try:
            self._kops("update", "cluster", "--name", name, "--yes", "--admin")
        except sh.ErrorReturnCode as err:
            raise ClusterError(f"kops update of {name} failed: {err}") from err

    def validate(self, name: str) -> bool:
        """Run a single validation pass; True if the cluster is healthy."""
        try:
            self._kops("validate", "cluster", "--name", name)
            return True
        except sh.ErrorReturnCode as err:
            logger.info("Cluster %s not valid yet: %s", name, err.stdout.decode(errors="replace")[-200:])
            return False

    def export_kubeconfig(self, name: str) -> None:
        """Write admin credentials for the cluster to ``self.kubeconfig``.

        Raises:
            ClusterError: If the export fails.
        """
        try:
            self._kops("export", "kubeconfig", "--name", name, "--admin", "--kubeconfig", str(self.kubeconfig))
        except sh.ErrorReturnCode as err:
            raise ClusterError(f"kops export kubeconfig for {name} failed: {err}") from err

    def delete(self, name: str) -> None:
        """Delete the cluster and its cloud resources.

        Raises:
            ClusterError: If the deletion fails.
        """
        try:
            self._kops("delete", "cluster", "--name", name, "--yes")
        except sh.ErrorReturnCode as err:
            raise ClusterError(f"kops delete of {name} failed: {err}") from err


# ============================================================================
# Overlays
# ============================================================================

def load_overlays(paths: Sequence[Path] = (FEATURE_GATES_OVERLAY, ADDITIONAL_POLICIES_OVERLAY)) -> list[dict]:
    """Load the fixed cluster spec overlays (feature gates, IAM policies)."""
    return [load_yaml_file(path) for path in paths]


def apply_overlays(docs: Sequence[dict], overlays: Sequence[dict]) -> list[dict]:
    """Merge every overlay into the Cluster documents of a kops manifest.

    Args:
        docs: kops manifest documents (Cluster and InstanceGroups).
        overlays: Partial Cluster documents to merge in order.

    Returns:
        New list of documents with the Cluster documents merged.
    """
    merged: list[dict] = []
    for doc in docs:
        if not doc:
            continue
        if doc.get("kind", KOPS_KIND_CLUSTER) == KOPS_KIND_CLUSTER:
            for overlay in overlays:
                doc = deep_merge(doc, overlay)
        merged.append(doc)
    return merged


# ============================================================================
# Reconciliation
# ============================================================================

def ensure_ssh_key(path: Path) -> Path:
    """Generate an ssh key pair at ``path`` if missing and return the public key."""
    public_key = Path(f"{path}.pub")
    if path.exists() and public_key.exists():
        return public_key
    path.parent.mkdir(parents=True, exist_ok=True)
    console.print(f"[yellow]\u2139\ufe0f  Generating ssh key {path}[/yellow]")
    try:
        sh.Command("ssh-keygen")("-q", "-t", "rsa", "-N", "", "-f", str(path))
    except (sh.ErrorReturnCode, sh.CommandNotFound) as err:
        raise ClusterError(f"ssh-keygen for {path} failed: {err}") from err
    return public_key


def reconcile(kops: Kops, descriptor: ClusterDescriptor, overlays: Sequence[dict]) -> ClusterDescriptor:
    """Bring the named cluster to the desired spec.

    An absent cluster is created from the full desired spec. An existing one
    has its live spec fetched, the overlays merged in, and is replaced and
    updated.

    Args:
        kops: kops collaborator.
        descriptor: Cluster name and desired spec.
        overlays: Fixed spec overlays merged on every reconcile.

    Returns:
        The descriptor with ``observed_state`` set to ``present-current``.

    Raises:
        ClusterError: If any kops call fails.
    """
    live = kops.get(descriptor.name)
    if live is None:
        console.print(f"[yellow]\u2139\ufe0f  Creating cluster {descriptor.name}...[/yellow]")
        kops.create(descriptor, overlays)
    else:
        descriptor = replace(descriptor, observed_state=ClusterState.PRESENT_OUTDATED)
        console.print(f"[yellow]\u2139\ufe0f  Updating existing cluster {descriptor.name}...[/yellow]")
        kops.replace(descriptor.name, apply_overlays([live], overlays))
        kops.update(descriptor.name)
    return replace(descriptor, observed_state=ClusterState.PRESENT_CURRENT)


def wait_until_healthy(kops: Kops, name: str, timeout: float, poll_interval: float) -> bool:
    """Poll cluster validation until it passes or ``timeout`` seconds elapse.

    Args:
        kops: kops collaborator.
        name: Cluster name.
        timeout: Maximum seconds to keep polling.
        poll_interval: Seconds between validation attempts.

    Returns:
        True if the cluster validated within the timeout.
    """
    console.print(f"[yellow]\u2139\ufe0f  Waiting up to {timeout}s for cluster {name} to validate...[/yellow]")

    @retry(
        stop=stop_after_delay(timeout),
        wait=wait_fixed(poll_interval),
        retry=retry_if_result(lambda ok: not ok),
    )
    def _poll() -> bool:
        return kops.validate(name)

    try:
        return _poll()
    except RetryError:
        return False


def ensure_cluster(
    kops: Kops,
    descriptor: ClusterDescriptor,
    overlays: Sequence[dict],
    timeout: float,
    poll_interval: float,
) -> ClusterDescriptor:
    """Reconcile the cluster and block until it is healthy.

    Raises:
        ClusterError: If reconciliation fails.
        PhaseTimeoutError: If the cluster does not validate within ``timeout``.
    """
    console.print(Panel.fit(f"Reconciling cluster {descriptor.name}", style="bold blue"))
    descriptor = reconcile(kops, descriptor, overlays)
    kops.export_kubeconfig(descriptor.name)
    if not wait_until_healthy(kops, descriptor.name, timeout, poll_interval):
        raise PhaseTimeoutError(f"Cluster {descriptor.name} did not validate within {timeout}s")
    console.print(f"[green]\u2705 Cluster {descriptor.name} is healthy[/green]")
    return replace(descriptor, observed_state=ClusterState.HEALTHY)
