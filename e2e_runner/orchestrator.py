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

"""Orchestration functions that compose the phases into one e2e run."""

from __future__ import annotations

import shlex
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

import docker
from rich.panel import Panel

from e2e_runner import console, logger
from e2e_runner.cleanup import cleanup
from e2e_runner.cluster import Kops, ensure_cluster, ensure_ssh_key, load_overlays
from e2e_runner.config import E2EConfig
from e2e_runner.deploy import (
    Helm,
    deploy,
    driver_options,
    install_snapshot_crds,
    snapshot_crd_urls,
    wait_for_driver_ready,
)
from e2e_runner.errors import E2EError, ImagePublishError, ToolInstallError
from e2e_runner.image import EcrRegistry, ensure_image, resolve_image_name
from e2e_runner.migration import verify
from e2e_runner.models import (
    CleanupReport,
    ClusterDescriptor,
    ClusterSpec,
    DeploymentRecord,
    MigrationSignal,
    TestOutcome,
    final_verdict,
)
from e2e_runner.testrunner import run_suite
from e2e_runner.tools import ensure_tools
from e2e_runner.utils import Kubectl, require_command

EXIT_SUCCESS = 0
EXIT_FAILURE = 1

REQUIRED_COMMANDS = ("aws", "docker", "kubectl", "ssh-keygen")


# ============================================================================
# Run state and pipeline
# ============================================================================

@dataclass
class RunState:
    """Values produced by the phases of one run, in the order they ran."""

    tools: dict[str, Path] = field(default_factory=dict)
    image_name: str | None = None
    cluster: ClusterDescriptor | None = None
    deployment: DeploymentRecord | None = None
    outcome: TestOutcome | None = None
    signal: MigrationSignal | None = None
    error: Exception | None = None
    cleanup_report: CleanupReport | None = None


@dataclass(frozen=True)
class Pipeline:
    """The phase implementations a run is composed of."""

    prepare_tools: Callable[[E2EConfig], dict[str, Path]]
    publish_image: Callable[[E2EConfig], str]
    reconcile_cluster: Callable[[E2EConfig, dict[str, Path], ClusterDescriptor], ClusterDescriptor]
    deploy_driver: Callable[[E2EConfig, dict[str, Path], str], DeploymentRecord]
    run_tests: Callable[[E2EConfig, dict[str, Path]], TestOutcome]
    verify_migration: Callable[[E2EConfig], MigrationSignal]
    cleanup: Callable[[E2EConfig, RunState], CleanupReport]


# ============================================================================
# Default phase implementations
# ============================================================================

def _prepare_tools(cfg: E2EConfig) -> dict[str, Path]:
    for cmd in REQUIRED_COMMANDS:
        try:
            require_command(cmd)
        except RuntimeError as err:
            raise ToolInstallError(str(err)) from err
    versions = {
        "kops": cfg.cluster.kops_version,
        "helm": cfg.driver.helm_version,
        "ginkgo": cfg.suite.ginkgo_version,
    }
    return ensure_tools(versions, cfg.bin_dir)


def _publish_image(cfg: E2EConfig) -> str:
    registry = EcrRegistry(cfg.context.region)
    image_name = resolve_image_name(registry, cfg.driver.image_name, cfg.driver.driver_name)
    try:
        client = docker.from_env()
    except docker.errors.DockerException as err:
        raise ImagePublishError(f"Failed to connect to Docker: {err}") from err
    try:
        ensure_image(client, registry, image_name, cfg.context.image_tag, cfg.driver.source_dir)
    finally:
        client.close()
    return image_name


def new_kops(cfg: E2EConfig, kops_bin: Path) -> Kops:
    """Build the kops collaborator for this run's cluster."""
    return Kops(kops_bin, cfg.cluster.kops_state_store, cfg.kubeconfig, cfg.context.working_directory)


def planned_cluster(cfg: E2EConfig) -> ClusterDescriptor:
    """Describe the cluster this run owns, before anything is known about it."""
    return ClusterDescriptor(
        name=cfg.context.cluster_name,
        desired_spec=ClusterSpec(
            zones=cfg.context.zones,
            node_count=cfg.cluster.node_count,
            node_size=cfg.context.instance_type,
            kubernetes_version=cfg.cluster.k8s_version,
            ssh_public_key=Path(f"{cfg.ssh_key_path}.pub"),
        ),
    )


def _reconcile_cluster(cfg: E2EConfig, tools: dict[str, Path], descriptor: ClusterDescriptor) -> ClusterDescriptor:
    ensure_ssh_key(cfg.ssh_key_path)
    return ensure_cluster(
        new_kops(cfg, tools["kops"]),
        descriptor,
        load_overlays(),
        timeout=cfg.cluster.validate_timeout,
        poll_interval=cfg.cluster.validate_poll_interval,
    )


def _deploy_driver(cfg: E2EConfig, tools: dict[str, Path], image_name: str) -> DeploymentRecord:
    kubectl = Kubectl(cfg.kubeconfig)
    install_snapshot_crds(kubectl, snapshot_crd_urls())
    values_files = [cfg.driver.helm_values_file] if cfg.driver.helm_values_file else []
    record = deploy(
        Helm(tools["helm"], cfg.kubeconfig),
        cfg.driver.driver_name,
        cfg.driver.namespace,
        str(cfg.driver.source_dir / cfg.driver.chart_path),
        driver_options(image_name, cfg.context.image_tag),
        values_files,
    )
    wait_for_driver_ready(kubectl, cfg.driver.namespace)
    return record


def _run_tests(cfg: E2EConfig, tools: dict[str, Path]) -> TestOutcome:
    return run_suite(
        tools["ginkgo"],
        focus=cfg.suite.ginkgo_focus,
        skip=cfg.suite.ginkgo_skip,
        parallelism=cfg.suite.ginkgo_nodes,
        kubeconfig=cfg.kubeconfig,
        artifact_dir=cfg.artifacts,
        test_path=cfg.suite.test_path,
        cwd=cfg.driver.source_dir,
        zone=cfg.context.first_zone,
        extra_args=shlex.split(cfg.suite.test_extra_flags),
    )


def _verify_migration(cfg: E2EConfig) -> MigrationSignal:
    return verify(
        Kubectl(cfg.kubeconfig),
        node_selector=cfg.migration.node_selector,
        metrics_port=cfg.migration.metrics_port,
        poll_interval=cfg.migration.poll_interval,
        timeout=cfg.migration.timeout,
        csi_plugin=cfg.migration.csi_plugin,
        legacy_plugin=cfg.migration.legacy_plugin,
    )


def _cleanup(cfg: E2EConfig, state: RunState) -> CleanupReport:
    helm = Helm(state.tools["helm"], cfg.kubeconfig) if "helm" in state.tools else None
    kops = new_kops(cfg, state.tools["kops"]) if "kops" in state.tools else None
    return cleanup(state.deployment, state.cluster, cfg.context.working_directory, helm, kops)


def default_pipeline() -> Pipeline:
    """Compose the real phase implementations."""
    return Pipeline(
        prepare_tools=_prepare_tools,
        publish_image=_publish_image,
        reconcile_cluster=_reconcile_cluster,
        deploy_driver=_deploy_driver,
        run_tests=_run_tests,
        verify_migration=_verify_migration,
        cleanup=_cleanup,
    )


# ============================================================================
# Run
# ============================================================================

def _execute(cfg: E2EConfig, pipeline: Pipeline, state: RunState) -> None:
    """Run phases 1-6 in order, recording each result on ``state``."""
    cfg.context.working_directory.mkdir(parents=True, exist_ok=True)

    logger.info("Phase 1/6: preparing tools")
    state.tools = pipeline.prepare_tools(cfg)

    logger.info("Phase 2/6: publishing image")
    state.image_name = pipeline.publish_image(cfg)

    logger.info("Phase 3/6: reconciling cluster")
    # Recorded before reconciling so cleanup deletes a partially created cluster too.
    state.cluster = planned_cluster(cfg)
    state.cluster = pipeline.reconcile_cluster(cfg, state.tools, state.cluster)

    logger.info("Phase 4/6: deploying driver")
    state.deployment = pipeline.deploy_driver(cfg, state.tools, state.image_name)

    logger.info("Phase 5/6: running conformance suite")
    state.outcome = pipeline.run_tests(cfg, state.tools)

    if cfg.flags.check_migration:
        logger.info("Phase 6/6: verifying migration")
        state.signal = pipeline.verify_migration(cfg)
    else:
        logger.info("Phase 6/6: migration check disabled")


def _print_verdict(state: RunState, passed: bool) -> None:
    test_passed = state.outcome.passed if state.outcome is not None else False
    lines = [f"test passed         : {test_passed}"]
    if state.signal is not None:
        lines += [
            f"new path invoked    : {state.signal.csi_path_invoked}",
            f"legacy path invoked : {state.signal.legacy_path_invoked}",
        ]
    if state.error is not None:
        lines.append(f"aborted             : {state.error}")
    title, style = ("PASS", "bold green") if passed else ("FAIL", "bold red")
    console.print(Panel.fit("\n".join(lines), title=title, style=style))


def run(cfg: E2EConfig, pipeline: Pipeline | None = None) -> int:
    """Run the full e2e pipeline and return the process exit code.

    Phases run strictly in order; any exception aborts the remaining ones and
    fails the run. When cleanup is enabled it runs exactly once, on every exit
    path, and its failures never change the exit code.

    Args:
        cfg: Resolved run configuration.
        pipeline: Phase implementations, or None for the real ones.

    Returns:
        0 if the run passed, 1 otherwise.
    """
    pipeline = pipeline or default_pipeline()
    state = RunState()

    try:
        _execute(cfg, pipeline, state)
    except E2EError as err:
        state.error = err
        console.print(f"[red]\u274c {err}[/red]")
    except Exception as err:
        state.error = err
        logger.exception("Unexpected error during run")
        console.print(f"[red]\u274c Unexpected {type(err).__name__}: {err}[/red]")
    finally:
        if cfg.flags.clean:
            try:
                state.cleanup_report = pipeline.cleanup(cfg, state)
            except Exception as err:
                logger.warning("Cleanup failed: %s", err)
        else:
            console.print("[yellow]\u2139\ufe0f  Not cleaning up (clean disabled)[/yellow]")

    passed = state.error is None and final_verdict(state.outcome, state.signal)
    _print_verdict(state, passed)
    return EXIT_SUCCESS if passed else EXIT_FAILURE
