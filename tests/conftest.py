from __future__ import annotations

from pathlib import Path

import pytest

from cartage.foundation import process
from cartage.framework import plugin as plugin_module
from cartage.framework.config import CartageConfig
from cartage.framework.runtime import Cartage

REPO_URL = "git@example.com:acme/app.git"
HASHREF = "0123456789abcdef0123456789abcdef01234567"
TIMESTAMP = "20260102030405"


class FakeGit:
    """Answers the git queries cartage makes; anything else is an error."""

    def __init__(self) -> None:
        self.tracked: list[str] = []
        self.status: list[str] = []
        self.committed: dict[str, bytes] = {}
        self.calls: list[list[str]] = []

    def capture(self, command, *, cwd=None) -> str:
        argv = [str(part) for part in command]
        self.calls.append(argv)
        if argv[:3] == ["git", "ls-files", "-z"]:
            return "".join(f"{entry}\0" for entry in self.tracked)
        if argv[:4] == ["git", "remote", "show", "-n"]:
            return f"* remote origin\n  Fetch URL: {REPO_URL}\n  Push  URL: {REPO_URL}\n"
        if argv[:4] == ["git", "status", "--porcelain", "-z"]:
            return "".join(f"{record}\0" for record in self.status)
        if argv[:3] == ["git", "rev-parse", "HEAD"]:
            return HASHREF + "\n"
        raise AssertionError(f"unexpected command: {argv}")

    def capture_bytes(self, command, *, cwd=None) -> bytes:
        argv = [str(part) for part in command]
        self.calls.append(argv)
        assert argv[:2] == ["git", "show"]
        _ref, filename = argv[2].split(":", 1)
        return self.committed[filename]


@pytest.fixture
def plugin_registry(monkeypatch):
    plugin_module.load_plugins()
    monkeypatch.setattr(plugin_module, "_PLUGIN_REGISTRY", dict(plugin_module._PLUGIN_REGISTRY))
    return plugin_module._PLUGIN_REGISTRY


@pytest.fixture
def fake_git(monkeypatch) -> FakeGit:
    git = FakeGit()
    monkeypatch.setattr(process, "capture", git.capture)
    monkeypatch.setattr(process, "capture_bytes", git.capture_bytes)
    return git


@pytest.fixture
def repo_root(tmp_path) -> Path:
    root = tmp_path / "app"
    root.mkdir()
    return root


@pytest.fixture
def make_cartage(repo_root, plugin_registry, fake_git):
    def _make(**overrides) -> Cartage:
        values = {
            "root_path": str(repo_root),
            "timestamp": TIMESTAMP,
            "release_hashref": HASHREF,
        }
        values.update(overrides)
        return Cartage(CartageConfig(**values))

    return _make


@pytest.fixture
def recorded_runs(monkeypatch) -> list[list[str]]:
    """Record `run_command` calls instead of spawning processes."""

    calls: list[list[str]] = []

    def _run(command, *, cwd=None, logger=None):
        calls.append([str(part) for part in command])
        return ""

    monkeypatch.setattr(process, "run_command", _run)
    return calls

