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

"""Utility functions for kubectl, manifest merging, and command checks."""

from __future__ import annotations

import copy
import subprocess
from collections.abc import Mapping
from pathlib import Path

import sh
import yaml


def require_command(cmd: str) -> None:
    """Check if a command exists on the system PATH.

    Args:
        cmd: Name of the CLI command to check.

    Raises:
        RuntimeError: If the command is not found.
    """
    try:
        sh.which(cmd)
    except sh.ErrorReturnCode as err:
        raise RuntimeError(f"Required command '{cmd}' not found. Please install it first.") from err


def deep_merge(base: Mapping, overlay: Mapping) -> dict:
    """Recursively merge ``overlay`` into a copy of ``base``.

    Nested mappings are merged key by key; any other overlay value replaces
    the base value.

    Args:
        base: Original document.
        overlay: Values to add or override.

    Returns:
        A new merged dictionary; neither input is modified.
    """
    merged = copy.deepcopy(dict(base))
    for key, value in overlay.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_yaml_file(path: Path) -> dict:
    """Load a single YAML document, treating an empty file as an empty dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


class Kubectl:
    """kubectl invocations bound to one kubeconfig.

    Attributes:
        kubeconfig: Kubeconfig path, or None for the ambient default.
    """

    def __init__(self, kubeconfig: Path | None = None) -> None:
        self.kubeconfig = kubeconfig

    def _base(self) -> list[str]:
        args = ["kubectl"]
        if self.kubeconfig is not None:
            args += ["--kubeconfig", str(self.kubeconfig)]
        return args

    def run(self, args: list[str], timeout: int = 30) -> tuple[bool, str, str]:
        """Run a kubectl command via subprocess and return (success, stdout, stderr).

        Args:
            args: kubectl arguments (e.g. ``["get", "pods", "-n", "default"]``).
            timeout: Maximum seconds to wait for the command to complete.

        Returns:
            Tuple of (success, stdout, stderr).
        """
        try:
            result = subprocess.run(
                [*self._base(), *args],
                capture_output=True,
                text=True,
                timeout=timeout,
            )
            return result.returncode == 0, result.stdout, result.stderr
        except (subprocess.SubprocessError, OSError) as exc:
            return False, "", str(exc)

    def popen(self, args: list[str], **kwargs) -> subprocess.Popen:
        """Start a long-running kubectl command in the background."""
        return subprocess.Popen([*self._base(), *args], **kwargs)

    def get_nodes(self, label_selector: str) -> list[str]:
        """Return the names of nodes matching a label selector.

        Raises:
            RuntimeError: If the node list cannot be fetched.
        """
        ok, stdout, stderr = self.run([
            "get", "nodes", "-l", label_selector,
            "-o", "jsonpath={.items[*].metadata.name}",
        ])
        if not ok:
            raise RuntimeError(f"Failed to list nodes for '{label_selector}': {stderr[:200]}")
        return stdout.split()
