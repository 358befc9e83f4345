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

"""In-tree to CSI migration check via kube-controller-manager metrics.

The controller manager exposes ``storage_operation_duration_seconds`` with a
``volume_plugin`` label. After the suite has run, provisioning samples for the
CSI plugin prove the new path was exercised, and any sample for the in-tree
plugin means the legacy path was still taken.
"""

from __future__ import annotations

import re
import subprocess
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import TracebackType

import requests
from rich.panel import Panel
from tenacity import RetryError, retry, retry_if_result, stop_after_delay, wait_fixed

from e2e_runner import console, logger
from e2e_runner.constants import (
    CONTROLLER_MANAGER_POD_PREFIX,
    DEFAULT_CSI_PLUGIN,
    DEFAULT_LEGACY_PLUGIN,
    HEALTH_OK_BODY,
    HEALTH_PATH,
    HTTP_REQUEST_TIMEOUT_SECONDS,
    METRICS_PATH,
    NS_KUBE_SYSTEM,
    PROVISION_METRIC,
    PROVISION_OPERATION,
    TUNNEL_TERMINATE_GRACE_SECONDS,
)
from e2e_runner.errors import PhaseTimeoutError, VerificationError
from e2e_runner.models import MigrationSignal
from e2e_runner.utils import Kubectl

_SAMPLE_RE = re.compile(r"^(?P<name>[a-zA-Z_:][a-zA-Z0-9_:]*)(?:\{(?P<labels>.*)\})?\s")
_LABEL_RE = re.compile(r'([a-zA-Z_][a-zA-Z0-9_]*)="((?:[^"\\]|\\.)*)"')


# ============================================================================
# Metrics parsing
# ============================================================================

@dataclass(frozen=True)
class MetricPattern:
    """A metric name plus the label values a sample must carry to match."""

    name: str
    labels: Mapping[str, str] = field(default_factory=dict)

    def matches(self, line: str) -> bool:
        match = _SAMPLE_RE.match(line)
        if match is None or match.group("name") != self.name:
            return False
        sample_labels = dict(_LABEL_RE.findall(match.group("labels") or ""))
        return all(sample_labels.get(key) == value for key, value in self.labels.items())


def provision_patterns(
    csi_plugin: str = DEFAULT_CSI_PLUGIN,
    legacy_plugin: str = DEFAULT_LEGACY_PLUGIN,
) -> tuple[MetricPattern, MetricPattern]:
    """Return the (csi, legacy) provisioning bucket patterns."""
    return (
        MetricPattern(PROVISION_METRIC, {"operation_name": PROVISION_OPERATION, "volume_plugin": csi_plugin}),
        MetricPattern(PROVISION_METRIC, {"operation_name": PROVISION_OPERATION, "volume_plugin": legacy_plugin}),
    )


def count_matching_samples(body: str, pattern: MetricPattern) -> int:
    """Count sample lines of a Prometheus text exposition matching ``pattern``."""
    return sum(
        1 for line in body.splitlines()
        if line and not line.startswith("#") and pattern.matches(line)
    )


def parse_migration_signal(body: str, csi_pattern: MetricPattern, legacy_pattern: MetricPattern) -> MigrationSignal:
    """Derive the migration signal; any matching sample counts as invoked."""
    csi_count = count_matching_samples(body, csi_pattern)
    legacy_count = count_matching_samples(body, legacy_pattern)
    logger.info("Provision samples: csi=%d legacy=%d", csi_count, legacy_count)
    return MigrationSignal(csi_path_invoked=csi_count > 0, legacy_path_invoked=legacy_count > 0)


# ============================================================================
# Tunnel
# ============================================================================

class PortForward:
    """A ``kubectl port-forward`` child process scoped to a ``with`` block.

    The process is terminated, and killed if it does not exit in time, on
    every exit from the block.
    """

    def __init__(self, kubectl: Kubectl, pod: str, namespace: str, local_port: int, remote_port: int) -> None:
        self.kubectl = kubectl
        self.pod = pod
        self.namespace = namespace
        self.local_port = local_port
        self.remote_port = remote_port
        self._proc: subprocess.Popen | None = None

    @property
    def base_url(self) -> str:
        return f"http://127.0.0.1:{self.local_port}"

    def is_running(self) -> bool:
        return self._proc is not None and self._proc.poll() is None

    def start(self) -> None:
        console.print(f"[yellow]\u2139\ufe0f  Forwarding {self.local_port} -> {self.pod}:{self.remote_port}[/yellow]")
        self._proc = self.kubectl.popen(
            ["port-forward", self.pod, f"{self.local_port}:{self.remote_port}", "-n", self.namespace],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )

    def close(self) -> None:
        if self._proc is None:
            return
        self._proc.terminate()
        try:
            self._proc.wait(timeout=TUNNEL_TERMINATE_GRACE_SECONDS)
        except subprocess.TimeoutExpired:
            self._proc.kill()
            self._proc.wait()

    def __enter__(self) -> PortForward:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


# ============================================================================
# Probing
# ============================================================================

def wait_for_health(probe: Callable[[], bool], poll_interval: float, timeout: float) -> None:
    """Call ``probe`` every ``poll_interval`` seconds until it returns True.

    Raises:
        PhaseTimeoutError: If ``probe`` never succeeds within ``timeout`` seconds.
    """
    @retry(
        stop=stop_after_delay(timeout),
        wait=wait_fixed(poll_interval),
        retry=retry_if_result(lambda ok: not ok),
    )
    def _poll() -> bool:
        return probe()

    try:
        _poll()
    except RetryError as err:
        raise PhaseTimeoutError(f"Metrics tunnel not healthy after {timeout}s") from err


def _health_probe(http, url: str) -> Callable[[], bool]:
    def _probe() -> bool:
        try:
            response = http.get(url, timeout=HTTP_REQUEST_TIMEOUT_SECONDS)
        except requests.RequestException:
            return False
        return response.status_code == 200 and response.text.strip() == HEALTH_OK_BODY
    return _probe


def fetch_metrics(http, url: str) -> str:
    """Fetch a metrics exposition body.

    Raises:
        VerificationError: If the request fails or returns an error status.
    """
    try:
        response = http.get(url, timeout=HTTP_REQUEST_TIMEOUT_SECONDS)
        response.raise_for_status()
    except requests.RequestException as err:
        raise VerificationError(f"Could not fetch {url}: {err}") from err
    return response.text


# ============================================================================
# Verification
# ============================================================================

def verify(
    kubectl: Kubectl,
    node_selector: str,
    metrics_port: int,
    poll_interval: float,
    timeout: float,
    csi_plugin: str = DEFAULT_CSI_PLUGIN,
    legacy_plugin: str = DEFAULT_LEGACY_PLUGIN,
    http=requests,
) -> MigrationSignal:
    """Check which provisioning path the controller manager used.

    Args:
        kubectl: kubectl collaborator bound to the test cluster.
        node_selector: Label selector of the control-plane node.
        metrics_port: Controller manager metrics port, forwarded to the same local port.
        poll_interval: Seconds between tunnel health probes.
        timeout: Seconds to wait for the tunnel to become healthy.
        csi_plugin: Volume plugin name of the CSI driver.
        legacy_plugin: Volume plugin name of the in-tree driver.
        http: Object with a requests-compatible ``get``.

    Returns:
        The migration signal.

    Raises:
        VerificationError: If no node matches or the metrics cannot be fetched.
        PhaseTimeoutError: If the tunnel never reports healthy.
    """
    console.print(Panel.fit("Checking in-tree to CSI migration", style="bold blue"))
    try:
        nodes = kubectl.get_nodes(node_selector)
    except RuntimeError as err:
        raise VerificationError(str(err)) from err
    if not nodes:
        raise VerificationError(f"No node matches selector '{node_selector}'")

    pod = f"{CONTROLLER_MANAGER_POD_PREFIX}{nodes[0]}"
    with PortForward(kubectl, pod, NS_KUBE_SYSTEM, metrics_port, metrics_port) as tunnel:
        wait_for_health(_health_probe(http, tunnel.base_url + HEALTH_PATH), poll_interval, timeout)
        body = fetch_metrics(http, tunnel.base_url + METRICS_PATH)

    csi_pattern, legacy_pattern = provision_patterns(csi_plugin, legacy_plugin)
    signal = parse_migration_signal(body, csi_pattern, legacy_pattern)
    colour = "green" if signal.passed else "red"
    console.print(
        f"[{colour}]CSI path invoked: {signal.csi_path_invoked}, "
        f"legacy path invoked: {signal.legacy_path_invoked}[/{colour}]"
    )
    return signal
