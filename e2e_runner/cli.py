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

"""
cli.py - CLI for the CSI driver e2e runner.

Subcommands:
    run               Full pipeline: tools, image, cluster, deploy, suite, migration, cleanup
    cluster           Manage one run's kops cluster (up, validate, down)
    verify-migration  Check in-tree to CSI migration on an existing cluster
    tools             Install pinned tools (install)

Examples:
    # Full run with the migration check, keeping everything afterwards
    csi-e2e run --check-migration --no-clean

    # Bring up the cluster of an earlier run again
    csi-e2e cluster up --test-id 3f9c2a71be

    # Tear it down
    csi-e2e cluster down --test-id 3f9c2a71be

For detailed usage information, run: csi-e2e --help
"""

from __future__ import annotations

import logging
import sys

import typer

from e2e_runner import console
from e2e_runner.commands import cluster_cmd, run_cmd, tools_cmd, verify_cmd

app = typer.Typer(
    help="CSI driver e2e and in-tree migration test runner.",
    no_args_is_help=True,
)


@app.callback()
def _main_callback() -> None:
    """Initialize logging for all subcommands."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


app.command("run")(run_cmd.run)
app.command("verify-migration")(verify_cmd.verify_migration)
app.add_typer(cluster_cmd.app, name="cluster")
app.add_typer(tools_cmd.app, name="tools")


def main() -> None:
    try:
        app()
    except Exception as e:
        console.print(f"[red]\u274c {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
