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

"""Configuration classes, RunFlags, and config resolution/display."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.panel import Panel

from e2e_runner import console
from e2e_runner.constants import (
    DEFAULT_CHART_PATH,
    DEFAULT_CSI_PLUGIN,
    DEFAULT_DRIVER_NAME,
    DEFAULT_DRIVER_NAMESPACE,
    DEFAULT_GINKGO_FOCUS,
    DEFAULT_GINKGO_NODES,
    DEFAULT_GINKGO_SKIP,
    DEFAULT_INSTANCE_TYPE,
    DEFAULT_KOPS_STATE_STORE,
    DEFAULT_LEGACY_PLUGIN,
    DEFAULT_MASTER_SELECTOR,
    DEFAULT_METRICS_PORT,
    DEFAULT_NODE_COUNT,
    DEFAULT_REGION,
    DEFAULT_TEST_PATH,
    DEFAULT_TUNNEL_POLL_INTERVAL_SECONDS,
    DEFAULT_TUNNEL_TIMEOUT_SECONDS,
    DEFAULT_VALIDATE_POLL_INTERVAL_SECONDS,
    DEFAULT_VALIDATE_TIMEOUT_SECONDS,
    DEFAULT_ZONES,
    SSH_KEY_FILE,
    dep_value,
)
from e2e_runner.models import RunContext, new_run_id


# ============================================================================
# Configuration classes
# ============================================================================

class ClusterConfig(BaseSettings):
    """kops cluster configuration, auto-loaded from E2E_* env vars.

    Attributes:
        test_id: Run identifier; every run-scoped name derives from it.
        region: AWS region for the cluster and the image registry.
        zones: Comma separated availability zones, first one is primary.
        node_count: Number of worker nodes.
        instance_type: EC2 instance type for worker nodes.
        k8s_version: Kubernetes version to provision.
        kops_version: Pinned kops release.
        kops_state_store: kops state store URL.
        validate_timeout: Seconds to wait for the cluster to validate.
        validate_poll_interval: Seconds between validation attempts.
        base_dir: Parent directory for the run working directory.
    """

    model_config = SettingsConfigDict(env_prefix="E2E_", extra="ignore")

    test_id: str = Field(default_factory=new_run_id, pattern=r"^[a-z0-9-]+$")
    region: str = DEFAULT_REGION
    zones: str = Field(default=DEFAULT_ZONES, pattern=r"^[a-z0-9-]+(,[a-z0-9-]+)*$")
    node_count: int = Field(default=DEFAULT_NODE_COUNT, ge=1, le=50)
    instance_type: str = DEFAULT_INSTANCE_TYPE
    k8s_version: str = Field(default=dep_value("kubernetes", "version"), pattern=r"^[\d.]+$")
    kops_version: str = Field(default=dep_value("kops", "version"), pattern=r"^[\d.]+$")
    kops_state_store: str = DEFAULT_KOPS_STATE_STORE
    validate_timeout: int = Field(default=DEFAULT_VALIDATE_TIMEOUT_SECONDS, ge=1)
    validate_poll_interval: int = Field(default=DEFAULT_VALIDATE_POLL_INTERVAL_SECONDS, ge=0)
    base_dir: Path = Field(default_factory=Path.cwd)

    @property
    def zone_list(self) -> tuple[str, ...]:
        return tuple(zone.strip() for zone in self.zones.split(",") if zone.strip())


class DriverConfig(BaseSettings):
    """Driver image and Helm release configuration, auto-loaded from E2E_* env vars.

    Attributes:
        driver_name: Helm release and ECR repository name.
        namespace: Namespace the driver is installed into.
        image_name: Full image repository, or empty to derive the ECR one.
        image_tag: Image tag, or empty to use the run identifier.
        chart_path: Helm chart location, relative to ``source_dir``.
        helm_version: Pinned helm release.
        helm_values_file: Optional extra Helm values file.
        source_dir: Driver source tree used as the docker build context.
    """

    model_config = SettingsConfigDict(env_prefix="E2E_", extra="ignore")

    driver_name: str = DEFAULT_DRIVER_NAME
    namespace: str = DEFAULT_DRIVER_NAMESPACE
    image_name: str = ""
    image_tag: str = ""
    chart_path: str = DEFAULT_CHART_PATH
    helm_version: str = Field(default=dep_value("helm", "version"), pattern=r"^[\d.]+$")
    helm_values_file: Path | None = None
    source_dir: Path = Field(default_factory=Path.cwd)


class SuiteConfig(BaseSettings):
    """Conformance suite configuration, auto-loaded from E2E_* env vars.

    Attributes:
        ginkgo_version: Pinned ginkgo release.
        ginkgo_focus: Regex of specs to run.
        ginkgo_skip: Regex of specs to skip.
        ginkgo_nodes: Number of parallel ginkgo nodes.
        test_path: Package path of the suite, relative to the source tree.
        artifacts: Report directory, or None for ``<workdir>/artifacts``.
        kubeconfig: Kubeconfig path, or None for one inside the workdir.
        test_extra_flags: Extra arguments passed after ``--`` to the suite.
    """

    model_config = SettingsConfigDict(env_prefix="E2E_", extra="ignore")

    ginkgo_version: str = Field(default=dep_value("ginkgo", "version"), pattern=r"^[\d.]+$")
    ginkgo_focus: str = DEFAULT_GINKGO_FOCUS
    ginkgo_skip: str = DEFAULT_GINKGO_SKIP
    ginkgo_nodes: int = Field(default=DEFAULT_GINKGO_NODES, ge=1, le=64)
    test_path: str = DEFAULT_TEST_PATH
    artifacts: Path | None = None
    kubeconfig: Path | None = None
    test_extra_flags: str = ""


class MigrationConfig(BaseSettings):
    """Migration check configuration, auto-loaded from E2E_MIGRATION_* env vars.

    Attributes:
        node_selector: Label selector of the node running the controller manager.
        metrics_port: Controller manager metrics port, forwarded 1:1.
        poll_interval: Seconds between tunnel health probes.
        timeout: Seconds to wait for the tunnel to report healthy.
        csi_plugin: Volume plugin name of the CSI driver.
        legacy_plugin: Volume plugin name of the in-tree driver.
    """

    model_config = SettingsConfigDict(env_prefix="E2E_MIGRATION_", extra="ignore")

    node_selector: str = DEFAULT_MASTER_SELECTOR
    metrics_port: int = Field(default=DEFAULT_METRICS_PORT, ge=1, le=65535)
    poll_interval: float = Field(default=DEFAULT_TUNNEL_POLL_INTERVAL_SECONDS, ge=0)
    timeout: float = Field(default=DEFAULT_TUNNEL_TIMEOUT_SECONDS, gt=0)
    csi_plugin: str = DEFAULT_CSI_PLUGIN
    legacy_plugin: str = DEFAULT_LEGACY_PLUGIN


# ============================================================================
# Run flags and resolved config
# ============================================================================

class RunFlags(BaseSettings):
    """Optional pipeline behaviour, auto-loaded from E2E_* env vars.

    Attributes:
        check_migration: Whether to run the migration verifier.
        clean: Whether to tear everything down at the end of the run.
    """

    model_config = SettingsConfigDict(env_prefix="E2E_", extra="ignore", frozen=True)

    check_migration: bool = False
    clean: bool = True


@dataclass(frozen=True)
class E2EConfig:
    """Every setting of a run, resolved once at entry."""

    cluster: ClusterConfig
    driver: DriverConfig
    suite: SuiteConfig
    migration: MigrationConfig
    flags: RunFlags
    context: RunContext

    @property
    def kubeconfig(self) -> Path:
        if self.suite.kubeconfig is not None:
            return self.suite.kubeconfig
        return self.context.working_directory / f"{self.context.cluster_name}.kubeconfig"

    @property
    def artifacts(self) -> Path:
        if self.suite.artifacts is not None:
            return self.suite.artifacts
        return self.context.working_directory / "artifacts"

    @property
    def bin_dir(self) -> Path:
        return self.context.working_directory / "bin"

    @property
    def ssh_key_path(self) -> Path:
        return self.context.working_directory / SSH_KEY_FILE


# ============================================================================
# Config resolution
# ============================================================================

def _given(**values) -> dict:
    """Drop the overrides that were not given."""
    return {key: value for key, value in values.items() if value is not None}


def resolve_config(
    *,
    check_migration: bool | None = None,
    clean: bool | None = None,
    test_id: str | None = None,
    region: str | None = None,
    zones: str | None = None,
    node_count: int | None = None,
    image_tag: str | None = None,
    ginkgo_focus: str | None = None,
    ginkgo_skip: str | None = None,
    ginkgo_nodes: int | None = None,
    base_dir: Path | None = None,
) -> E2EConfig:
    """Merge CLI overrides, environment variables, and defaults into one config.

    Resolution priority: CLI arguments > E2E_* environment variables > defaults.
    Overrides are passed to the settings constructors, so they go through the
    same field validation as environment values.

    Args:
        check_migration: Migration verifier override, or None.
        clean: Cleanup override, or None.
        test_id: Run identifier override, or None.
        region: AWS region override, or None.
        zones: Comma separated zone list override, or None.
        node_count: Worker node count override, or None.
        image_tag: Image tag override, or None.
        ginkgo_focus: Suite focus regex override, or None.
        ginkgo_skip: Suite skip regex override, or None.
        ginkgo_nodes: Suite parallelism override, or None.
        base_dir: Working directory parent override, or None.

    Returns:
        The fully resolved, immutable run configuration.

    Raises:
        pydantic.ValidationError: If an override or env value is invalid.
    """
    cluster_cfg = ClusterConfig(**_given(
        test_id=test_id,
        region=region,
        zones=zones,
        node_count=node_count,
        base_dir=base_dir,
    ))
    driver_cfg = DriverConfig(**_given(image_tag=image_tag))
    suite_cfg = SuiteConfig(**_given(
        ginkgo_focus=ginkgo_focus,
        ginkgo_skip=ginkgo_skip,
        ginkgo_nodes=ginkgo_nodes,
    ))
    migration_cfg = MigrationConfig()
    flags = RunFlags(**_given(check_migration=check_migration, clean=clean))

    context = RunContext.create(
        run_id=cluster_cfg.test_id,
        region=cluster_cfg.region,
        zones=cluster_cfg.zone_list,
        instance_type=cluster_cfg.instance_type,
        base_dir=cluster_cfg.base_dir,
        image_tag=driver_cfg.image_tag or None,
    )

    return E2EConfig(
        cluster=cluster_cfg,
        driver=driver_cfg,
        suite=suite_cfg,
        migration=migration_cfg,
        flags=flags,
        context=context,
    )


# ============================================================================
# Display
# ============================================================================

def display_config(cfg: E2EConfig) -> None:
    """Print the resolved configuration.

    Args:
        cfg: Resolved run configuration.
    """
    console.print(Panel.fit("Configuration", style="bold blue"))

    console.print("[yellow]Run:[/yellow]")
    console.print(f"  run_id          : {cfg.context.run_id}")
    console.print(f"  working_dir     : {cfg.context.working_directory}")
    console.print(f"  check_migration : {cfg.flags.check_migration}")
    console.print(f"  clean           : {cfg.flags.clean}")

    console.print("[yellow]Cluster:[/yellow]")
    console.print(f"  cluster_name    : {cfg.context.cluster_name}")
    console.print(f"  region          : {cfg.context.region}")
    console.print(f"  zones           : {','.join(cfg.context.zones)}")
    console.print(f"  node_count      : {cfg.cluster.node_count}")
    console.print(f"  instance_type   : {cfg.context.instance_type}")
    console.print(f"  k8s_version     : {cfg.cluster.k8s_version}")
    console.print(f"  kops_version    : {cfg.cluster.kops_version}")
    console.print(f"  state_store     : {cfg.cluster.kops_state_store}")

    console.print("[yellow]Driver:[/yellow]")
    console.print(f"  release         : {cfg.driver.driver_name} ({cfg.driver.namespace})")
    console.print(f"  image           : {cfg.driver.image_name or '(auto from ECR)'}:{cfg.context.image_tag}")

    console.print("[yellow]Suite:[/yellow]")
    console.print(f"  focus           : {cfg.suite.ginkgo_focus}")
    console.print(f"  skip            : {cfg.suite.ginkgo_skip}")
    console.print(f"  nodes           : {cfg.suite.ginkgo_nodes}")
    console.print(f"  artifacts       : {cfg.artifacts}")

    if cfg.flags.check_migration:
        console.print("[yellow]Migration check:[/yellow]")
        console.print(f"  node_selector   : {cfg.migration.node_selector}")
        console.print(f"  metrics_port    : {cfg.migration.metrics_port}")
        console.print(f"  timeout         : {cfg.migration.timeout}s")
