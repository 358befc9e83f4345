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

import pytest

import e2e_runner.tools as tools_module
from e2e_runner.errors import ToolInstallError
from e2e_runner.tools import ensure_tool, ensure_tools


def fake_installer(calls):
    def _install(version, target):
        calls.append((version, target))
        target.write_text("#!/bin/sh\n")
    return _install


def test_ensure_tool_installs_once(tmp_path, monkeypatch):
    calls = []
    monkeypatch.setitem(tools_module.INSTALLERS, "kops", fake_installer(calls))

    first = ensure_tool("kops", "1.28.4", tmp_path / "bin")
    second = ensure_tool("kops", "1.28.4", tmp_path / "bin")

    assert first == second == tmp_path / "bin" / "kops"
    assert calls == [("1.28.4", tmp_path / "bin" / "kops")]


def test_ensure_tool_reuses_existing_binary(tmp_path, monkeypatch):
    calls = []
    monkeypatch.setitem(tools_module.INSTALLERS, "helm", fake_installer(calls))
    (tmp_path / "helm").write_text("prebuilt")

    assert ensure_tool("helm", "3.14.4", tmp_path) == tmp_path / "helm"
    assert calls == []


def test_ensure_tool_rejects_unknown_tool(tmp_path):
    with pytest.raises(ToolInstallError, match="No installer"):
        ensure_tool("kubectx", "1.0", tmp_path)


def test_failed_install_leaves_no_partial_binary(tmp_path, monkeypatch):
    def _broken(version, target):
        target.write_text("half")
        raise OSError("disk full")

    monkeypatch.setitem(tools_module.INSTALLERS, "ginkgo", _broken)

    with pytest.raises(ToolInstallError, match="disk full"):
        ensure_tool("ginkgo", "2.17.1", tmp_path)
    assert not (tmp_path / "ginkgo").exists()


def test_installer_that_produces_nothing_is_an_error(tmp_path, monkeypatch):
    monkeypatch.setitem(tools_module.INSTALLERS, "kops", lambda version, target: None)

    with pytest.raises(ToolInstallError, match="did not produce"):
        ensure_tool("kops", "1.28.4", tmp_path)


def test_ensure_tools_maps_every_tool(tmp_path, monkeypatch):
    calls = []
    for name in ("kops", "helm", "ginkgo"):
        monkeypatch.setitem(tools_module.INSTALLERS, name, fake_installer(calls))

    paths = ensure_tools({"kops": "1", "helm": "2", "ginkgo": "3"}, tmp_path)

    assert paths == {name: tmp_path / name for name in ("kops", "helm", "ginkgo")}
    assert len(calls) == 3
