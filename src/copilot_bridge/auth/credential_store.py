"""Persistent per-provider credential storage.

Two layers live here:

* :class:`ConfigurationStore` -- the small key/value protocol the device
  flow persists through: ``get_tokens``, ``set_tokens`` and
  ``remove_config``, keyed by provider name. Two implementations ship:

  - :class:`FileConfigurationStore` keeps one JSON file per provider in
    ``~/.local/share/copilot-bridge/credentials/<provider>.json`` (XDG),
    written atomically with ``0o600`` permissions so secrets are never
    world-readable, even momentarily.
  - :class:`CacheConfigurationStore` keeps records in a
    :class:`~copilot_bridge.cache.TokenCache`, so they expire after the
    configured number of days.

* :class:`CredentialStore` -- a typed facade over a configuration store for
  a single provider, translating raw records to and from
  :class:`~copilot_bridge.models.ProviderCredential`.

See Also:
    :class:`~copilot_bridge.auth.device_flow.DeviceAuthController` -- the
    only writer of provider credentials.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional, Protocol, runtime_checkable

from copilot_bridge.cache import TokenCache
from copilot_bridge.config import atomic_write, get_data_dir
from copilot_bridge.models import ProviderCredential

logger = logging.getLogger(__name__)


@runtime_checkable
class ConfigurationStore(Protocol):
    """Durable key/value store of provider token records."""

    def get_tokens(self, provider: str) -> dict[str, Any]:
        """Return the stored record for *provider*, or ``{}`` if there is none."""
        ...

    def set_tokens(self, provider: str, tokens: dict[str, Any]) -> None:
        """Replace the stored record for *provider*."""
        ...

    def remove_config(self, provider: str) -> None:
        """Delete everything stored for *provider*. No-op when absent."""
        ...


def _credentials_dir() -> Path:
    """Return the credentials directory, creating it if needed."""
    path = get_data_dir() / "credentials"
    path.mkdir(parents=True, exist_ok=True)
    return path


class FileConfigurationStore:
    """One JSON file per provider under the credentials directory.

    All writes are atomic: content is written to a temporary file in the
    same directory with ``0o600`` permissions, fsynced, then renamed into
    place.

    Args:
        directory: Override for the credentials directory. Defaults to
            ``get_data_dir() / "credentials"``.
    """

    def __init__(self, directory: Optional[Path] = None) -> None:
        self._directory = directory

    def path_for(self, provider: str) -> Path:
        directory = self._directory if self._directory is not None else _credentials_dir()
        return directory / f"{provider}.json"

    def get_tokens(self, provider: str) -> dict[str, Any]:
        path = self.path_for(provider)
        if not path.is_file():
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, ValueError, OSError) as exc:
            logger.warning("Ignoring unreadable credential file %s: %s", path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def set_tokens(self, provider: str, tokens: dict[str, Any]) -> None:
        text = json.dumps(tokens, indent=2) + "\n"
        atomic_write(self.path_for(provider), text, mode=0o600)

    def remove_config(self, provider: str) -> None:
        path = self.path_for(provider)
        if path.is_file():
            path.unlink()


class CacheConfigurationStore:
    """Configuration store backed by an expiring :class:`TokenCache`.

    Records disappear after the cache's ``entry_ttl_days``, which forces a
    fresh device authorization.
    """

    def __init__(self, cache: TokenCache) -> None:
        self._cache = cache

    def get_tokens(self, provider: str) -> dict[str, Any]:
        record = self._cache.get(provider)
        return record if isinstance(record, dict) else {}

    def set_tokens(self, provider: str, tokens: dict[str, Any]) -> None:
        self._cache.set(provider, dict(tokens))

    def remove_config(self, provider: str) -> None:
        self._cache.remove(provider)


class CredentialStore:
    """Read/write the :class:`ProviderCredential` of a single provider.

    Args:
        config_store: Where records are persisted.
        provider: Provider name used as the record key.

    Example::

        store = CredentialStore(FileConfigurationStore(), "copilot")
        store.save(ProviderCredential(grant="gho_abc"))
        assert store.load().grant == "gho_abc"
    """

    def __init__(self, config_store: ConfigurationStore, provider: str) -> None:
        self._config_store = config_store
        self._provider = provider

    @property
    def provider(self) -> str:
        return self._provider

    def load(self) -> Optional[ProviderCredential]:
        """Return the stored credential, or ``None`` when not authenticated.

        Backend errors propagate.
        """
        return ProviderCredential.from_record(self._config_store.get_tokens(self._provider))

    def save(self, credential: ProviderCredential) -> None:
        self._config_store.set_tokens(self._provider, credential.to_record())

    def clear(self) -> None:
        self._config_store.remove_config(self._provider)
