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

"""Tool subcommands."""

from __future__ import annotations

from pathlib import Path

import typer

from e2e_runner import console
from e2e_runner.config import ClusterConfig, DriverConfig, SuiteConfig
from e2e_runner.tools import ensure_tools

app = typer.Typer(help="Manage pinned tools.")


@app.command()
def install(
    bin_dir: Path = typer.Option(Path("bin"), "--bin-dir", help="Directory to install kops, helm and ginkgo into"),
) -> None:
    """Install the pinned kops, helm and ginkgo releases."""
    versions = {
        "kops": ClusterConfig().kops_version,
        "helm": DriverConfig().helm_version,
        "ginkgo": SuiteConfig().ginkgo_version,
    }
    for name, path in ensure_tools(versions, bin_dir).items():
        console.print(f"  {name:<7}: {path}")
