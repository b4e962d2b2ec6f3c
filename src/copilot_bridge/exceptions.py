"""Exception hierarchy for copilot-bridge.

All exceptions inherit from :class:`BridgeError`, which carries an
``exit_code`` attribute mapped to a constant from
:mod:`copilot_bridge.exit_codes`. The CLI entry point catches
``BridgeError`` and exits with the matching code.

Failures are wrapped into this taxonomy at the boundary where they occur
(``raise ... from exc``) and are never retried internally. The soft poll
outcomes ``pending`` and ``failed`` are *not* exceptions; see
:class:`~copilot_bridge.models.PollStatus`.

Subclass hierarchy::

    BridgeError             (exit 1)
    +-- ConfigError         (exit 1)
    +-- ProviderError       (exit 1)
        +-- DeviceCodeError      (exit 3)
        +-- TokenExchangeError   (exit 3)
        +-- AuthenticationError  (exit 3)
        +-- TokenError           (exit 3)
        +-- RateLimitExceeded    (exit 8)
        +-- RuntimeError_        (exit 5)
"""

from copilot_bridge.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_GENERIC_FAILURE,
    EXIT_RATE_LIMITED,
    EXIT_SERVER_ERROR,
)


class BridgeError(Exception):
    """Base exception for all copilot-bridge errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(BridgeError):
    """Raised for configuration problems (unreadable or invalid config file, bad values)."""

    exit_code = EXIT_GENERIC_FAILURE


class ProviderError(BridgeError):
    """Generic failure talking to, or storing state for, the chat provider.

    Raised directly when the stored credential cannot be removed.
    """

    exit_code = EXIT_GENERIC_FAILURE


class DeviceCodeError(ProviderError):
    """Raised when the device-code request fails (transport error, non-2xx, bad payload)."""

    exit_code = EXIT_AUTH_FAILURE


class TokenExchangeError(ProviderError):
    """Raised when a poll round-trip could not be completed at the transport level.

    A server that explicitly rejects the device code produces the soft
    ``failed`` poll status instead.
    """

    exit_code = EXIT_AUTH_FAILURE


class AuthenticationError(ProviderError):
    """Raised when the server rejects credentials (HTTP 401 or a failed API-token exchange)."""

    exit_code = EXIT_AUTH_FAILURE


class TokenError(ProviderError):
    """Raised for an unexpected failure while retrieving or refreshing the API token."""

    exit_code = EXIT_AUTH_FAILURE


class RateLimitExceeded(ProviderError):
    """Raised when the chat API answers with HTTP 429."""

    exit_code = EXIT_RATE_LIMITED

    def __init__(self, message: str = "Rate limit exceeded", exit_code: int | None = None):
        super().__init__(message, exit_code)


class RuntimeError_(ProviderError):
    """Raised for malformed or unexpected payloads and unsupported status codes.

    Named with a trailing underscore to avoid shadowing the built-in
    ``RuntimeError``.
    """

    exit_code = EXIT_SERVER_ERROR
