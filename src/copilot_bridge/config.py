"""Configuration management with XDG paths, atomic writes, and env overrides.

This module handles all persistent configuration for copilot-bridge:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.copilot-bridge/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir`, :func:`get_data_dir`.
* **Config file** -- A single :class:`~copilot_bridge.models.BridgeConfig`
  JSON file storing client ID, endpoint URLs, timeouts and token lifetime.
* **Precedence resolution** -- :func:`resolve_config` layers
  ``COPILOT_BRIDGE_*`` environment variables over the config file.

All file writes use an atomic temp-file-then-rename strategy
(:func:`atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import logging
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from copilot_bridge.exceptions import ConfigError
from copilot_bridge.models import BridgeConfig

logger = logging.getLogger(__name__)

_APP_NAME = "copilot-bridge"
_CONFIG_FILENAME = "config.json"

_ENV_OVERRIDES: dict[str, str] = {
    "COPILOT_BRIDGE_CLIENT_ID": "client_id",
    "COPILOT_BRIDGE_TIMEOUT": "timeout",
    "COPILOT_BRIDGE_TOKEN_TTL_DAYS": "token_ttl_days",
    "COPILOT_BRIDGE_MODEL": "default_model",
}


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/copilot-bridge/`` (default
    ``~/.config/copilot-bridge/``). On macOS/Windows: ``~/.copilot-bridge/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the cache directory, creating it if necessary.

    Holds the :class:`~copilot_bridge.cache.TokenCache` database. Deleting
    it only forces re-authentication.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (stored credentials), creating it if necessary."""
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. When *mode* is
    given, permissions are set on the temp file before any content is
    written. On any failure the temp file is cleaned up.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        if mode is not None:
            os.chmod(tmp_path, mode)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close below
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Config file ---


def config_path() -> Path:
    """Path to the config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_config() -> BridgeConfig:
    """Load the configuration file.

    Returns:
        The deserialised :class:`~copilot_bridge.models.BridgeConfig`, or
        a default instance when the file does not exist.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            validation.
    """
    path = config_path()
    if not path.is_file():
        return BridgeConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return BridgeConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def save_config(config: BridgeConfig) -> None:
    """Persist the configuration atomically to disk."""
    data = config.model_dump(mode="json")
    atomic_write(config_path(), json.dumps(data, indent=2) + "\n")


def resolve_config(overrides: Optional[dict[str, Any]] = None) -> BridgeConfig:
    """Resolve the effective configuration.

    Precedence (high to low):
        1. Explicit *overrides* (usually CLI flags)
        2. Environment variables (``COPILOT_BRIDGE_CLIENT_ID``,
           ``COPILOT_BRIDGE_TIMEOUT``, ``COPILOT_BRIDGE_TOKEN_TTL_DAYS``,
           ``COPILOT_BRIDGE_MODEL``)
        3. Config file
        4. Defaults

    Raises:
        ConfigError: If the file is invalid or an override has a bad value.
    """
    config = load_config()
    updates: dict[str, Any] = {}
    for env_var, field in _ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            logger.debug("Config override from %s", env_var)
            updates[field] = value
    updates.update({k: v for k, v in (overrides or {}).items() if v is not None})
    if not updates:
        return config
    try:
        return BridgeConfig.model_validate({**config.model_dump(), **updates})
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration override: {exc}") from exc


def set_config_value(key: str, value: str) -> BridgeConfig:
    """Set a single top-level config key from its string form and save.

    List fields accept a comma-separated value.

    Raises:
        ConfigError: If *key* is unknown or *value* fails validation.
    """
    config = load_config()
    if key not in BridgeConfig.model_fields:
        known = ", ".join(sorted(BridgeConfig.model_fields))
        raise ConfigError(f"Unknown config key '{key}'. Known keys: {known}")
    parsed: Any = value
    if isinstance(getattr(config, key), list):
        parsed = [item.strip() for item in value.split(",") if item.strip()]
    try:
        updated = BridgeConfig.model_validate({**config.model_dump(), key: parsed})
    except ValidationError as exc:
        raise ConfigError(f"Invalid value for '{key}': {exc}") from exc
    save_config(updated)
    return updated
