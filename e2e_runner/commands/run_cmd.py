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

"""The full e2e pipeline subcommand."""

from __future__ import annotations

from pathlib import Path

import typer

from e2e_runner import orchestrator
from e2e_runner.config import display_config, resolve_config


def run(
    check_migration: bool | None = typer.Option(
        None, "--check-migration/--no-check-migration",
        help="Verify in-tree to CSI migration after the suite (overrides E2E_CHECK_MIGRATION, default off)"),
    clean: bool | None = typer.Option(
        None, "--clean/--no-clean",
        help="Tear down the release, cluster and workdir at the end (overrides E2E_CLEAN, default on)"),
    test_id: str | None = typer.Option(
        None, "--test-id", help="Run identifier (overrides E2E_TEST_ID, default generated)"),
    region: str | None = typer.Option(
        None, "--region", help="AWS region (overrides E2E_REGION)"),
    zones: str | None = typer.Option(
        None, "--zones", help="Comma separated availability zones (overrides E2E_ZONES)"),
    nodes: int | None = typer.Option(
        None, "--nodes", help="Worker node count (overrides E2E_NODE_COUNT)"),
    image_tag: str | None = typer.Option(
        None, "--image-tag", help="Driver image tag (overrides E2E_IMAGE_TAG)"),
    focus: str | None = typer.Option(
        None, "--focus", help="Ginkgo focus regex (overrides E2E_GINKGO_FOCUS)"),
    skip: str | None = typer.Option(
        None, "--skip", help="Ginkgo skip regex (overrides E2E_GINKGO_SKIP)"),
    ginkgo_nodes: int | None = typer.Option(
        None, "--ginkgo-nodes", help="Parallel ginkgo nodes (overrides E2E_GINKGO_NODES)"),
    base_dir: Path | None = typer.Option(
        None, "--base-dir", help="Parent of the run working directory (overrides E2E_BASE_DIR)"),
) -> None:
    """Provision a cluster, deploy the driver, run the suite and tear down."""
    cfg = resolve_config(
        check_migration=check_migration,
        clean=clean,
        test_id=test_id,
        region=region,
        zones=zones,
        node_count=nodes,
        image_tag=image_tag,
        ginkgo_focus=focus,
        ginkgo_skip=skip,
        ginkgo_nodes=ginkgo_nodes,
        base_dir=base_dir,
    )
    display_config(cfg)
    raise typer.Exit(orchestrator.run(cfg))
