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

"""Standalone migration verification against an existing cluster."""

from __future__ import annotations

from pathlib import Path

import typer

from e2e_runner.config import MigrationConfig
from e2e_runner.migration import verify
from e2e_runner.utils import Kubectl


def verify_migration(
    kubeconfig: Path | None = typer.Option(
        None, "--kubeconfig", help="Kubeconfig of the cluster (default: kubectl's own resolution)"),
    node_selector: str | None = typer.Option(
        None, "--node-selector", help="Control-plane node label selector"),
    metrics_port: int | None = typer.Option(
        None, "--metrics-port", help="kube-controller-manager metrics port"),
    timeout: float | None = typer.Option(
        None, "--timeout", help="Seconds to wait for the metrics tunnel"),
) -> None:
    """Check that volume provisioning went through CSI rather than the in-tree plugin."""
    overrides = {
        key: value
        for key, value in {
            "node_selector": node_selector,
            "metrics_port": metrics_port,
            "timeout": timeout,
        }.items()
        if value is not None
    }
    migration_cfg = MigrationConfig(**overrides)

    signal = verify(
        Kubectl(kubeconfig),
        node_selector=migration_cfg.node_selector,
        metrics_port=migration_cfg.metrics_port,
        poll_interval=migration_cfg.poll_interval,
        timeout=migration_cfg.timeout,
        csi_plugin=migration_cfg.csi_plugin,
        legacy_plugin=migration_cfg.legacy_plugin,
    )
    if not signal.passed:
        raise typer.Exit(1)
