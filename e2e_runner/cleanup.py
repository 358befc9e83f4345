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

"""Best-effort teardown of the release, the cluster and the working directory."""

from __future__ import annotations

import shutil
from collections.abc import Callable
from pathlib import Path

from rich.panel import Panel

from e2e_runner import console, logger
from e2e_runner.cluster import Kops
from e2e_runner.deploy import Helm
from e2e_runner.models import CleanupReport, ClusterDescriptor, DeploymentRecord


def _attempt(report: CleanupReport, step: str, action: Callable[[], None]) -> None:
    """Run one cleanup step, recording instead of raising any failure."""
    report.attempted.append(step)
    try:
        action()
        console.print(f"[green]  \u2713 {step}[/green]")
    except Exception as err:
        report.failed.append(step)
        logger.warning("Cleanup step '%s' failed: %s", step, err)
        console.print(f"[yellow]\u26a0\ufe0f  {step} failed: {err}[/yellow]")


def _remove_tree(path: Path) -> None:
    if path.exists():
        shutil.rmtree(path)


def cleanup(
    record: DeploymentRecord | None,
    descriptor: ClusterDescriptor | None,
    working_directory: Path,
    helm: Helm | None,
    kops: Kops | None,
) -> CleanupReport:
    """Tear down everything a run created.

    Each step is attempted even if an earlier one failed. Steps whose inputs
    were never produced (e.g. the release was never deployed) are skipped.

    Args:
        record: Deployed release, or None if deployment never happened.
        descriptor: Cluster to delete, or None if it was never reconciled.
        working_directory: Run-local directory to remove.
        helm: helm collaborator, or None if tools were never prepared.
        kops: kops collaborator, or None if tools were never prepared.

    Returns:
        Report of attempted and failed steps.
    """
    console.print(Panel.fit("Cleaning up", style="bold blue"))
    report = CleanupReport()

    if record is not None and helm is not None:
        _attempt(report, f"uninstall {record.package_name}",
                 lambda: helm.uninstall(record.package_name, record.namespace))
    if descriptor is not None and kops is not None:
        _attempt(report, f"delete cluster {descriptor.name}", lambda: kops.delete(descriptor.name))
    _attempt(report, f"remove {working_directory}", lambda: _remove_tree(working_directory))

    if report.failed:
        console.print(f"[yellow]\u26a0\ufe0f  {len(report.failed)} cleanup step(s) failed[/yellow]")
    return report
