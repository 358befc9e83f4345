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

"""Pinned tool installation (kops, helm, ginkgo) into a run-local bin dir."""

from __future__ import annotations

import os
import platform
import tarfile
import tempfile
from collections.abc import Callable, Mapping
from pathlib import Path

import requests
import sh
from rich.panel import Panel

from e2e_runner import console, logger
from e2e_runner.constants import (
    DOWNLOAD_CHUNK_SIZE,
    DOWNLOAD_TIMEOUT_SECONDS,
    HELM_RELEASE_URL,
    KOPS_RELEASE_URL,
    dep_value,
)
from e2e_runner.errors import ToolInstallError


def _platform() -> tuple[str, str]:
    """Return the (os, arch) pair used in release asset names."""
    arch = platform.machine().lower()
    arch = {"x86_64": "amd64", "aarch64": "arm64"}.get(arch, arch)
    return platform.system().lower(), arch


def _download(url: str, dest: Path) -> None:
    """Stream a URL to a local file.

    Raises:
        ToolInstallError: If the download fails.
    """
    logger.info("Downloading %s to %s", url, dest)
    try:
        with requests.get(url, stream=True, timeout=DOWNLOAD_TIMEOUT_SECONDS) as response:
            response.raise_for_status()
            with open(dest, "wb") as f:
                for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
    except requests.RequestException as err:
        raise ToolInstallError(f"Download of {url} failed: {err}") from err


def _install_kops(version: str, target: Path) -> None:
    os_name, arch = _platform()
    _download(KOPS_RELEASE_URL.format(version=version, os=os_name, arch=arch), target)
    target.chmod(0o755)


def _install_helm(version: str, target: Path) -> None:
    os_name, arch = _platform()
    with tempfile.TemporaryDirectory() as tmp:
        archive = Path(tmp) / "helm.tar.gz"
        _download(HELM_RELEASE_URL.format(version=version, os=os_name, arch=arch), archive)
        member_name = f"{os_name}-{arch}/helm"
        try:
            with tarfile.open(archive, "r:gz") as tar:
                member = tar.extractfile(member_name)
                if member is None:
                    raise ToolInstallError(f"{member_name} missing from helm archive")
                target.write_bytes(member.read())
        except (tarfile.TarError, KeyError) as err:
            raise ToolInstallError(f"Could not extract helm {version}: {err}") from err
    target.chmod(0o755)


def _install_ginkgo(version: str, target: Path) -> None:
    module = dep_value("ginkgo", "module", default="github.com/onsi/ginkgo/v2/ginkgo")
    try:
        sh.go("install", f"{module}@v{version}", _env={**os.environ, "GOBIN": str(target.parent)})
    except (sh.ErrorReturnCode, sh.CommandNotFound) as err:
        raise ToolInstallError(f"go install of ginkgo {version} failed: {err}") from err


INSTALLERS: dict[str, Callable[[str, Path], None]] = {
    "kops": _install_kops,
    "helm": _install_helm,
    "ginkgo": _install_ginkgo,
}


def ensure_tool(name: str, version: str, install_dir: Path) -> Path:
    """Install a pinned tool into ``install_dir`` unless it is already there.

    Safe to call repeatedly: an existing binary at the target path is reused
    as-is and nothing is downloaded.

    Args:
        name: Tool name, one of ``INSTALLERS``.
        version: Version to install (without a leading ``v``).
        install_dir: Directory the binary is placed in.

    Returns:
        Path to the tool binary.

    Raises:
        ToolInstallError: If the tool is unknown or its installation fails.
    """
    target = install_dir / name
    if target.exists():
        console.print(f"[yellow]   {name} already present at {target}[/yellow]")
        return target

    installer = INSTALLERS.get(name)
    if installer is None:
        raise ToolInstallError(f"No installer for tool '{name}'")

    install_dir.mkdir(parents=True, exist_ok=True)
    console.print(f"[yellow]\u2139\ufe0f  Installing {name} {version} to {install_dir}...[/yellow]")
    try:
        installer(version, target)
    except ToolInstallError:
        target.unlink(missing_ok=True)
        raise
    except OSError as err:
        target.unlink(missing_ok=True)
        raise ToolInstallError(f"Installing {name} {version} failed: {err}") from err

    if not target.exists():
        raise ToolInstallError(f"Installer for {name} did not produce {target}")
    console.print(f"[green]\u2705 {name} {version} installed[/green]")
    return target


def ensure_tools(versions: Mapping[str, str], install_dir: Path) -> dict[str, Path]:
    """Prepare every pinned tool the pipeline needs.

    Args:
        versions: Mapping of tool name to version.
        install_dir: Directory the binaries are placed in.

    Returns:
        Mapping of tool name to binary path.
    """
    console.print(Panel.fit("Preparing tools", style="bold blue"))
    return {name: ensure_tool(name, version, install_dir) for name, version in versions.items()}
