"""Shared test fixtures for dockwork."""

from __future__ import annotations

import pytest

from dockwork.types import LaunchRequest

# ---------------------------------------------------------------------------
# Shared helpers (plain functions, not fixtures, importable by test files)
# ---------------------------------------------------------------------------


def make_settings(**overrides):
    """Create a Settings object with defaults for testing.

    Usage::

        s = make_settings(docker=DockerConfig(tools={"ci": "/opt/docker/bin/docker"}))
        s = make_settings(workspace=WorkspaceConfig(tmp_suffix="_"))
    """
    from dockwork.config import (
        DockerConfig,
        LoggingConfig,
        ScopeConfig,
        Settings,
        WorkspaceConfig,
    )

    defaults = {
        "docker": DockerConfig(),
        "workspace": WorkspaceConfig(),
        "scope": ScopeConfig(),
        "logging": LoggingConfig(),
        "plugins": {},
    }
    defaults.update(overrides)
    return Settings.model_construct(**defaults)


class FakeProcess:
    """Stands in for subprocess.Popen with a canned result."""

    def __init__(self, returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        self.returncode = returncode
        self._stdout = stdout
        self._stderr = stderr

    def communicate(self, input=None, timeout=None):
        return self._stdout, self._stderr

    def wait(self, timeout=None):
        return self.returncode


class FakeLauncher:
    """Records every LaunchRequest; answers with queued FakeProcess results."""

    def __init__(self, *results: FakeProcess) -> None:
        self.requests: list[LaunchRequest] = []
        self._results = list(results)

    def launch(self, request: LaunchRequest) -> FakeProcess:
        self.requests.append(request)
        if self._results:
            return self._results.pop(0)
        return FakeProcess()

    @property
    def argvs(self) -> list[list[str]]:
        return [list(r.argv) for r in self.requests]


# ---------------------------------------------------------------------------
# Autouse fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def reset_settings(monkeypatch):
    """Ensure each test starts with a clean Settings singleton.

    Uses ``make_settings()`` to build from pure defaults: no dockwork.toml,
    no .env, no file I/O.
    """
    monkeypatch.setattr("dockwork.config._settings", make_settings())


# ---------------------------------------------------------------------------
# Reusable fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_launcher():
    return FakeLauncher()


@pytest.fixture
def use_settings(monkeypatch):
    """Install a Settings object built by make_settings(**overrides)."""

    def _use(**overrides):
        s = make_settings(**overrides)
        monkeypatch.setattr("dockwork.config._settings", s)
        return s

    return _use
