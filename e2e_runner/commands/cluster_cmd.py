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

"""Cluster subcommands (up, validate, down) for one run's kops cluster."""

from __future__ import annotations

import shutil

import typer

from e2e_runner import console
from e2e_runner.cluster import Kops, ensure_cluster, ensure_ssh_key, load_overlays
from e2e_runner.config import E2EConfig, resolve_config
from e2e_runner.orchestrator import new_kops, planned_cluster
from e2e_runner.tools import ensure_tool

app = typer.Typer(help="Manage the kops cluster of a run.")

TEST_ID_OPTION = typer.Option(..., "--test-id", help="Run identifier the cluster belongs to")


def _kops_for(cfg: E2EConfig) -> Kops:
    cfg.context.working_directory.mkdir(parents=True, exist_ok=True)
    return new_kops(cfg, ensure_tool("kops", cfg.cluster.kops_version, cfg.bin_dir))


@app.command()
def up(
    test_id: str = TEST_ID_OPTION,
    region: str | None = typer.Option(None, "--region", help="AWS region"),
    zones: str | None = typer.Option(None, "--zones", help="Comma separated availability zones"),
    nodes: int | None = typer.Option(None, "--nodes", help="Worker node count"),
) -> None:
    """Create or update the cluster and wait until it validates."""
    cfg = resolve_config(test_id=test_id, region=region, zones=zones, node_count=nodes)
    kops = _kops_for(cfg)
    ensure_ssh_key(cfg.ssh_key_path)
    ensure_cluster(
        kops,
        planned_cluster(cfg),
        load_overlays(),
        timeout=cfg.cluster.validate_timeout,
        poll_interval=cfg.cluster.validate_poll_interval,
    )
    console.print(f"[green]\u2705 Kubeconfig: {cfg.kubeconfig}[/green]")


@app.command()
def validate(test_id: str = TEST_ID_OPTION) -> None:
    """Validate the cluster once; exit 1 if it is not healthy."""
    cfg = resolve_config(test_id=test_id)
    if not _kops_for(cfg).validate(cfg.context.cluster_name):
        console.print(f"[red]\u274c {cfg.context.cluster_name} is not healthy[/red]")
        raise typer.Exit(1)
    console.print(f"[green]\u2705 {cfg.context.cluster_name} is healthy[/green]")


@app.command()
def down(test_id: str = TEST_ID_OPTION) -> None:
    """Delete the cluster and remove the run working directory."""
    cfg = resolve_config(test_id=test_id)
    _kops_for(cfg).delete(cfg.context.cluster_name)
    if cfg.context.working_directory.exists():
        shutil.rmtree(cfg.context.working_directory)
    console.print(f"[green]\u2705 {cfg.context.cluster_name} deleted[/green]")
