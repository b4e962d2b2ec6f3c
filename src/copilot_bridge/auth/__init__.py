"""Device-flow authentication for copilot-bridge.

The main entry points are:

- :class:`DeviceAuthController` -- runs the OAuth2 device authorization
  grant and exchanges the resulting grant for short-lived API tokens.
- :class:`CredentialStore` -- typed, per-provider view over a
  :class:`ConfigurationStore`.
- :class:`FileConfigurationStore` / :class:`CacheConfigurationStore` --
  durable record stores (JSON files or an expiring disk cache).
- :func:`open_config_store` -- opens the store picked by a config.
- :func:`create_controller` -- factory wiring a controller from a
  :class:`~copilot_bridge.models.BridgeConfig`.

Typical usage::

    from copilot_bridge.auth import create_controller, open_config_store

    with open_config_store(config) as store:
        controller = create_controller(config, http_client, store)
        token = controller.get_access_token()  # None when not authenticated
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import httpx

from copilot_bridge.auth.credential_store import (
    CacheConfigurationStore,
    ConfigurationStore,
    CredentialStore,
    FileConfigurationStore,
)
from copilot_bridge.auth.device_flow import DeviceAuthController
from copilot_bridge.cache import TokenCache
from copilot_bridge.config import get_cache_dir
from copilot_bridge.exceptions import ConfigError
from copilot_bridge.models import BridgeConfig


@contextmanager
def open_config_store(config: BridgeConfig) -> Iterator[ConfigurationStore]:
    """Yield the record store selected by ``config.credential_backend``.

    The ``"cache"`` backend opens a :class:`TokenCache` under the XDG cache
    directory whose entries expire after ``config.token_ttl_days``; it is
    closed when the block exits.
    """
    if config.credential_backend != "cache":
        yield FileConfigurationStore()
        return
    with TokenCache(get_cache_dir(), entry_ttl_days=config.token_ttl_days) as cache:
        yield CacheConfigurationStore(cache)


def create_controller(
    config: BridgeConfig,
    http_client: httpx.Client,
    config_store: ConfigurationStore | None = None,
) -> DeviceAuthController:
    """Create a :class:`DeviceAuthController` for ``config.provider``.

    Args:
        config: Effective configuration.
        http_client: Transport shared with the chat client.
        config_store: Record store, usually from :func:`open_config_store`.
            May be omitted only for the ``"file"`` backend.

    Raises:
        ConfigError: If *config_store* is omitted while
            ``config.credential_backend`` is ``"cache"``.
    """
    if config_store is None:
        if config.credential_backend == "cache":
            raise ConfigError(
                "The cache credential backend needs an open store; use open_config_store()."
            )
        config_store = FileConfigurationStore()
    return DeviceAuthController(http_client, CredentialStore(config_store, config.provider), config)


__all__ = [
    "CacheConfigurationStore",
    "ConfigurationStore",
    "CredentialStore",
    "DeviceAuthController",
    "FileConfigurationStore",
    "create_controller",
    "open_config_store",
]
