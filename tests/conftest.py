"""Shared test fixtures for copilot-bridge.

Provides isolated config directories, output state management, an
in-memory configuration store, and helpers to build controllers on top of
:class:`httpx.MockTransport`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

from copilot_bridge.auth.credential_store import CredentialStore
from copilot_bridge.auth.device_flow import DeviceAuthController
from copilot_bridge.models import BridgeConfig
from copilot_bridge.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. CliRunner swaps those streams per invocation, so a
    stale manager would write to a closed file.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point every XDG directory at *tmp_path* and clear env overrides.

    Returns:
        The tmp_path root directory.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("copilot_bridge.config._is_xdg_platform", lambda: True)

    for var in [
        "COPILOT_BRIDGE_CLIENT_ID",
        "COPILOT_BRIDGE_TIMEOUT",
        "COPILOT_BRIDGE_TOKEN_TTL_DAYS",
        "COPILOT_BRIDGE_MODEL",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a quiet, plain output manager."""
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# Stores and controllers
# ---------------------------------------------------------------------------


class MemoryConfigurationStore:
    """In-memory :class:`ConfigurationStore` that records every call."""

    def __init__(self, records: dict[str, dict[str, Any]] | None = None) -> None:
        self.records: dict[str, dict[str, Any]] = dict(records or {})
        self.writes = 0

    def get_tokens(self, provider: str) -> dict[str, Any]:
        return dict(self.records.get(provider, {}))

    def set_tokens(self, provider: str, tokens: dict[str, Any]) -> None:
        self.writes += 1
        self.records[provider] = dict(tokens)

    def remove_config(self, provider: str) -> None:
        self.records.pop(provider, None)


class FakeClock:
    """Controllable epoch clock; :meth:`sleep` advances it."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def memory_store() -> MemoryConfigurationStore:
    return MemoryConfigurationStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_controller(
    memory_store: MemoryConfigurationStore, clock: FakeClock
) -> Callable[..., DeviceAuthController]:
    """Factory building a controller whose HTTP goes to *handler*."""

    def _make(
        handler: Callable[[httpx.Request], httpx.Response],
        config: BridgeConfig | None = None,
        store: Any = None,
    ) -> DeviceAuthController:
        cfg = config or BridgeConfig()
        http = httpx.Client(transport=httpx.MockTransport(handler))
        credentials = CredentialStore(store if store is not None else memory_store, cfg.provider)
        return DeviceAuthController(http, credentials, cfg, clock=clock, sleep=clock.sleep)

    return _make


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
