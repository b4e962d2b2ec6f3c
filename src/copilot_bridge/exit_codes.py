"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~copilot_bridge.exceptions.BridgeError` subclass.
Shell wrappers can inspect the exit code to tell an authentication problem
from a rate limit without parsing stderr.

Example::

    $ copilot-bridge auth status
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- not authenticated or token rejected
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_AUTH_FAILURE = 3
"""Device authorization, token exchange, or token refresh failed."""

EXIT_SERVER_ERROR = 5
"""The chat API returned an unexpected status or a malformed payload."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_RATE_LIMITED = 8
"""The chat API rejected the request with HTTP 429."""
