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

"""Parallel ginkgo conformance suite execution."""

from __future__ import annotations

import subprocess
import sys
from collections.abc import Sequence
from pathlib import Path

from rich.panel import Panel

from e2e_runner import console
from e2e_runner.constants import GINKGO_LOG_FILE
from e2e_runner.errors import TestRunnerError
from e2e_runner.models import TestOutcome


def build_ginkgo_command(
    ginkgo_bin: Path,
    focus: str,
    skip: str,
    parallelism: int,
    test_path: str,
    kubeconfig: Path,
    artifact_dir: Path,
    zone: str,
    extra_args: Sequence[str] = (),
) -> list[str]:
    """Assemble the ginkgo invocation; suite flags follow the ``--`` separator."""
    return [
        str(ginkgo_bin),
        "-p", f"-nodes={parallelism}", "-v",
        f"--focus={focus}",
        f"--skip={skip}",
        test_path,
        "--",
        f"-kubeconfig={kubeconfig}",
        f"-report-dir={artifact_dir}",
        f"-gce-zone={zone}",
        *extra_args,
    ]


def run_suite(
    ginkgo_bin: Path,
    focus: str,
    skip: str,
    parallelism: int,
    kubeconfig: Path,
    artifact_dir: Path,
    test_path: str,
    cwd: Path,
    zone: str,
    extra_args: Sequence[str] = (),
) -> TestOutcome:
    """Run the conformance suite against the live cluster.

    Output is streamed to stdout and mirrored to a log file in ``artifact_dir``.
    A failing suite is reported through ``TestOutcome.passed``, not raised.

    Returns:
        The suite outcome.

    Raises:
        TestRunnerError: If the runner cannot be started.
    """
    console.print(Panel.fit(f"Running conformance suite (focus {focus})", style="bold blue"))
    artifact_dir.mkdir(parents=True, exist_ok=True)
    cmd = build_ginkgo_command(
        ginkgo_bin, focus, skip, parallelism, test_path, kubeconfig, artifact_dir, zone, extra_args,
    )
    log_path = artifact_dir / GINKGO_LOG_FILE

    try:
        with open(log_path, "w") as log_file:
            proc = subprocess.Popen(
                cmd, cwd=cwd,
                stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True,
            )
            assert proc.stdout is not None
            for line in proc.stdout:
                sys.stdout.write(line)
                log_file.write(line)
            proc.wait()
    except OSError as err:
        raise TestRunnerError(f"Could not start {ginkgo_bin}: {err}") from err

    passed = proc.returncode == 0
    if passed:
        console.print("[green]\u2705 Conformance suite passed[/green]")
    else:
        console.print(f"[red]\u274c Conformance suite failed (exit {proc.returncode}). See {log_path}[/red]")

    return TestOutcome(
        focus_filter=focus,
        skip_filter=skip,
        parallelism=parallelism,
        passed=passed,
        artifact_path=artifact_dir,
    )
