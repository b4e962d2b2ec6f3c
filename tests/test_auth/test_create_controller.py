"""Tests for the controller factory and its credential backend selection."""

from __future__ import annotations

import httpx
import pytest

from copilot_bridge.auth import (
    CacheConfigurationStore,
    FileConfigurationStore,
    create_controller,
    open_config_store,
)
from copilot_bridge.cache import TokenCache
from copilot_bridge.exceptions import ConfigError
from copilot_bridge.models import BridgeConfig, ProviderCredential


def _http() -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(500)))


class TestCreateController:
    def test_file_backend(self, isolated_config) -> None:
        controller = create_controller(BridgeConfig(), _http())
        controller._credentials.save(ProviderCredential(grant="gho_grant"))

        path = isolated_config / "data" / "copilot-bridge" / "credentials" / "copilot.json"
        assert path.is_file()

    def test_cache_backend(self, isolated_config) -> None:
        config = BridgeConfig(credential_backend="cache")
        with open_config_store(config) as store:
            assert isinstance(store, CacheConfigurationStore)
            create_controller(config, _http(), store)._credentials.save(
                ProviderCredential(grant="gho_grant")
            )

        assert (isolated_config / "cache" / "copilot-bridge" / "tokens").is_dir()
        with open_config_store(config) as store:
            assert create_controller(config, _http(), store)._credentials.load().grant == "gho_grant"

    def test_cache_backend_requires_store(self, isolated_config) -> None:
        with pytest.raises(ConfigError, match="open_config_store"):
            create_controller(BridgeConfig(credential_backend="cache"), _http())

    def test_explicit_store(self, memory_store) -> None:
        controller = create_controller(BridgeConfig(provider="other"), _http(), memory_store)
        assert controller.provider == "other"
        controller._credentials.save(ProviderCredential(grant="g"))
        assert memory_store.records["other"]["refresh"] == "g"


class TestOpenConfigStore:
    def test_file_backend(self, isolated_config) -> None:
        with open_config_store(BridgeConfig()) as store:
            assert isinstance(store, FileConfigurationStore)

    def test_cache_is_closed_on_exit(self, isolated_config, monkeypatch: pytest.MonkeyPatch) -> None:
        closed: list[bool] = []
        original_close = TokenCache.close

        def tracking_close(self: TokenCache) -> None:
            closed.append(True)
            original_close(self)

        monkeypatch.setattr(TokenCache, "close", tracking_close)

        with open_config_store(BridgeConfig(credential_backend="cache")):
            assert closed == []
        assert closed == [True]
