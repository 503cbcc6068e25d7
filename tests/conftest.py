# Copyright (c) 2026 plumiume
# SPDX-License-Identifier: MIT
# License: MIT License (https://opensource.org/licenses/MIT)
# See LICENSE.txt for details.

import os
import subprocess
from pathlib import Path

import pytest

from jex_src.environment import JexPaths, ensure_environment
from jex_src.manager import JexManager
from jex_src.models import JexConfig
from jex_src.runner import setup_logging

PS_NAMES = ("docker", "ps", "-a", "--format", "{{.Names}}")


class FakeProcesses:
    """Stand-in for subprocess.run that records argument vectors.

    Responses are keyed by command prefix; the longest matching prefix wins.
    Unmatched commands succeed with empty output.
    """

    def __init__(self):
        self.calls: list[list[str]] = []
        self.responses: dict[tuple[str, ...], tuple[int, str]] = {}

    def respond(self, *prefix: str, returncode: int = 0, stdout: str = "") -> None:
        self.responses[tuple(prefix)] = (returncode, stdout)

    def __call__(self, cmd, **kwargs):
        cmd = list(cmd)
        self.calls.append(cmd)
        for prefix in sorted(self.responses, key=len, reverse=True):
            if tuple(cmd[: len(prefix)]) == prefix:
                returncode, stdout = self.responses[prefix]
                return subprocess.CompletedProcess(cmd, returncode, stdout, None)
        return subprocess.CompletedProcess(cmd, 0, "", None)

    def ran(self, *prefix: str) -> bool:
        return any(tuple(c[: len(prefix)]) == prefix for c in self.calls)

    def find(self, *prefix: str) -> list[str]:
        for c in self.calls:
            if tuple(c[: len(prefix)]) == prefix:
                return c
        raise AssertionError(f"no call starting with {prefix}: {self.calls}")


class PortProbe:
    def __init__(self):
        self.listening = False
        self.ports: list[int] = []

    def __call__(self, port):
        self.ports.append(port)
        return self.listening


@pytest.fixture
def fake_run(monkeypatch):
    fake = FakeProcesses()
    monkeypatch.setattr("jex_src.runner.subprocess.run", fake)
    return fake


@pytest.fixture
def installed(monkeypatch):
    """Executables reported by shutil.which"""
    names = {"docker", "sudo", "xdg-open"}
    monkeypatch.setattr(
        "shutil.which", lambda name: f"/usr/bin/{name}" if name in names else None
    )
    return names


@pytest.fixture
def port_probe(monkeypatch):
    probe = PortProbe()
    monkeypatch.setattr("jex_src.manager.is_port_listening", probe)
    return probe


@pytest.fixture
def jex_home(tmp_path, monkeypatch) -> Path:
    home = tmp_path / "state"
    monkeypatch.setenv("JEX_HOME", str(home))
    return home


@pytest.fixture
def project(tmp_path, monkeypatch) -> Path:
    root = tmp_path / "site"
    root.mkdir()
    monkeypatch.chdir(root)
    return root


@pytest.fixture
def paths(jex_home) -> JexPaths:
    paths = JexPaths(jex_home)
    ensure_environment(paths)
    setup_logging(paths.log_path)
    return paths


@pytest.fixture
def config() -> JexConfig:
    return JexConfig(
        docker_image="jekyll-site",
        jekyll_port=4000,
        user_id=os.getuid(),
        group_id=os.getgid(),
    )


@pytest.fixture
def manager(config, paths, project, fake_run, installed, port_probe) -> JexManager:
    return JexManager(config, paths, project_root=project)
