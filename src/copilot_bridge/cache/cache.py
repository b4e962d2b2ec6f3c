"""Disk-based expiring key/value store for authentication data.

Uses :mod:`diskcache` to persist values with a fixed lifetime of
``entry_ttl_days`` days. Two rules set this store apart from a plain cache:

* **Delete before write** -- :meth:`TokenCache.set` removes any existing
  entry before storing, so a stale value is never reused for the new entry.
* **Total reads** -- :meth:`TokenCache.get` never raises. A storage fault
  (locked or corrupted SQLite file, unpicklable value) is logged and
  treated as a miss, so auth probing on a cold start degrades to
  "not authenticated" instead of crashing.

See Also:
    :class:`~copilot_bridge.auth.credential_store.CacheConfigurationStore`
    -- the configuration store backed by this cache.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import diskcache

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400


class TokenCache:
    """Disk-backed expiring store for auth records.

    Args:
        cache_dir: Root directory for the cache. A ``tokens/``
            subdirectory is created inside it.
        entry_ttl_days: Lifetime of every entry in days. Fractions are
            allowed.

    Example::

        cache = TokenCache("/tmp/bridge-cache", entry_ttl_days=90)
        cache.set("copilot", {"type": "oauth", "refresh": "gho_..."})
        record = cache.get("copilot")
    """

    def __init__(self, cache_dir: str | Path, entry_ttl_days: float = 90) -> None:
        self._cache_dir = Path(cache_dir)
        self._ttl_seconds = entry_ttl_days * SECONDS_PER_DAY
        self._cache = diskcache.Cache(str(self._cache_dir / "tokens"))

    def __enter__(self) -> TokenCache:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl_seconds

    def set(self, key: str, value: Any) -> None:
        """Store *value* under *key*, replacing any previous entry.

        The entry expires ``entry_ttl_days * 86400`` seconds from now.
        Write failures propagate.
        """
        self._cache.delete(key)
        self._cache.set(key, value, expire=self._ttl_seconds)

    def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or ``None`` if absent, expired, or unreadable."""
        try:
            return self._cache.get(key, default=None)
        except Exception as exc:
            logger.debug("Token cache read failed for %r: %s", key, exc)
            return None

    def remove(self, key: str) -> None:
        """Delete the entry for *key*. Removing an absent key is a no-op."""
        self._cache.delete(key)

    def clear(self) -> None:
        """Remove all entries."""
        self._cache.clear()

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache` and release resources."""
        self._cache.close()
