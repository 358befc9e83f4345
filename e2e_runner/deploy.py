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

"""CSI driver Helm release install/upgrade and readiness."""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from pathlib import Path

import sh
from rich.panel import Panel

from e2e_runner import console
from e2e_runner.constants import (
    DRIVER_READY_SELECTOR,
    DRIVER_READY_TIMEOUT,
    HELM_KEY_IMAGE_REPOSITORY,
    HELM_KEY_IMAGE_TAG,
    HELM_KEY_VOLUME_RESIZING,
    HELM_KEY_VOLUME_SCHEDULING,
    HELM_KEY_VOLUME_SNAPSHOT,
    SNAPSHOTTER_RAW_URL,
    dep_value,
)
from e2e_runner.errors import DeployError
from e2e_runner.models import DeploymentRecord
from e2e_runner.utils import Kubectl


class Helm:
    """helm invocations bound to one binary and kubeconfig."""

    def __init__(self, binary: Path, kubeconfig: Path | None = None) -> None:
        self.binary = binary
        self.kubeconfig = kubeconfig

    def _helm(self, *args: str) -> str:
        env = dict(os.environ)
        if self.kubeconfig is not None:
            env["KUBECONFIG"] = str(self.kubeconfig)
        return str(sh.Command(str(self.binary))(*args, _env=env))

    def upgrade_install(
        self,
        release: str,
        namespace: str,
        chart: str,
        options: Mapping[str, str],
        values_files: Sequence[Path] = (),
    ) -> None:
        set_args = [item for key, value in options.items() for item in ("--set", f"{key}={value}")]
        values_args = [item for path in values_files for item in ("-f", str(path))]
        self._helm(
            "upgrade", "--install", release, chart,
            "--namespace", namespace,
            *values_args,
            *set_args,
        )

    def uninstall(self, release: str, namespace: str) -> None:
        self._helm("uninstall", release, "--namespace", namespace)


def driver_options(image_repository: str, image_tag: str) -> dict[str, str]:
    """Build the fixed Helm option profile for the driver under test.

    Args:
        image_repository: Repository of the published driver image.
        image_tag: Tag of the published driver image.

    Returns:
        Mapping of Helm value key to value.
    """
    return {
        HELM_KEY_VOLUME_SCHEDULING: "true",
        HELM_KEY_VOLUME_RESIZING: "true",
        HELM_KEY_VOLUME_SNAPSHOT: "true",
        HELM_KEY_IMAGE_REPOSITORY: image_repository,
        HELM_KEY_IMAGE_TAG: image_tag,
    }


def snapshot_crd_urls() -> list[str]:
    """Return the pinned external-snapshotter CRD manifest URLs."""
    version = dep_value("external_snapshotter", "version", default="")
    return [
        SNAPSHOTTER_RAW_URL.format(version=version, path=path)
        for path in dep_value("external_snapshotter", "crds", default=[])
    ]


def install_snapshot_crds(kubectl: Kubectl, urls: Sequence[str]) -> None:
    """Apply the VolumeSnapshot CRDs snapshot support depends on.

    Raises:
        DeployError: If any CRD fails to apply.
    """
    console.print("[yellow]\u2139\ufe0f  Installing VolumeSnapshot CRDs...[/yellow]")
    for url in urls:
        ok, _, stderr = kubectl.run(["apply", "-f", url], timeout=60)
        if not ok:
            raise DeployError(f"Failed to apply {url}: {stderr[:200]}")


def deploy(
    helm: Helm,
    package_name: str,
    namespace: str,
    chart_source: str,
    option_set: Mapping[str, str],
    values_files: Sequence[Path] = (),
) -> DeploymentRecord:
    """Install or upgrade the driver release.

    Args:
        helm: helm collaborator.
        package_name: Helm release name.
        namespace: Namespace to install into.
        chart_source: Chart path or reference.
        option_set: ``--set`` values.
        values_files: Extra values files, applied before ``option_set``.

    Returns:
        Record of what was deployed.

    Raises:
        DeployError: If helm fails.
    """
    console.print(Panel.fit(f"Deploying {package_name}", style="bold blue"))
    try:
        helm.upgrade_install(package_name, namespace, chart_source, option_set, values_files)
    except sh.ErrorReturnCode as err:
        raise DeployError(f"helm upgrade --install {package_name} failed: {err}") from err

    image_ref = f"{option_set.get(HELM_KEY_IMAGE_REPOSITORY, '')}:{option_set.get(HELM_KEY_IMAGE_TAG, '')}"
    console.print(f"[green]\u2705 {package_name} deployed with {image_ref}[/green]")
    return DeploymentRecord(
        package_name=package_name,
        namespace=namespace,
        option_set=dict(option_set),
        image_ref=image_ref,
    )


def wait_for_driver_ready(
    kubectl: Kubectl,
    namespace: str,
    selector: str = DRIVER_READY_SELECTOR,
    timeout: str = DRIVER_READY_TIMEOUT,
) -> None:
    """Wait for the driver pods to report Ready.

    Raises:
        DeployError: If the pods are not ready within ``timeout``.
    """
    console.print("[yellow]\u2139\ufe0f  Waiting for driver pods to be ready...[/yellow]")
    ok, _, stderr = kubectl.run(
        ["wait", "--for=condition=Ready", "pods", "-l", selector, "-n", namespace, f"--timeout={timeout}"],
        timeout=660,
    )
    if not ok:
        raise DeployError(f"Driver pods not ready after {timeout}: {stderr[:200]}")
    console.print("[green]\u2705 Driver pods are ready[/green]")
