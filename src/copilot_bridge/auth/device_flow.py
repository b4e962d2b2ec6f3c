"""OAuth2 Device Authorization Grant (:rfc:`8628`) controller.

Obtains and maintains access to the chat API in two stages:

1. **Device flow** -- :meth:`DeviceAuthController.authorize` requests a
   device code and a user code. The caller shows the user code, then
   drives :meth:`DeviceAuthController.poll` (or the convenience loop
   :meth:`DeviceAuthController.wait_for_authorization`) until the user
   approves. On approval the long-lived grant is persisted through the
   :class:`~copilot_bridge.auth.credential_store.CredentialStore`.
2. **Token exchange** -- :meth:`DeviceAuthController.get_access_token`
   lazily trades the grant for a short-lived API token, caches it with its
   server-given expiry, and hands it out until it expires.

State machine::

    IDLE -> DEVICE_REQUESTED -> POLLING -> {AUTHORIZED | FAILED | TIMED_OUT}

Each method issues at most one network request (``get_access_token`` may
add the refresh GET). Retry and backoff belong to the caller of
:meth:`~DeviceAuthController.poll`; nothing here retries.

Refreshes are single-flight per provider: concurrent callers holding an
expired token wait on a shared lock and reuse the token fetched by the
first one.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Optional

import httpx

from copilot_bridge.auth.credential_store import CredentialStore
from copilot_bridge.exceptions import (
    AuthenticationError,
    DeviceCodeError,
    ProviderError,
    TokenError,
    TokenExchangeError,
)
from copilot_bridge.models import (
    AuthState,
    BridgeConfig,
    DeviceAuthorization,
    PollStatus,
    ProviderCredential,
)

logger = logging.getLogger(__name__)

DEVICE_CODE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"

_refresh_locks: dict[str, threading.Lock] = {}
_refresh_locks_guard = threading.Lock()


def _refresh_lock(provider: str) -> threading.Lock:
    """Return the process-wide refresh lock for *provider*."""
    with _refresh_locks_guard:
        lock = _refresh_locks.get(provider)
        if lock is None:
            lock = _refresh_locks[provider] = threading.Lock()
        return lock


class DeviceAuthController:
    """Drive the device-authorization state machine for one provider.

    Args:
        http_client: Transport used for every request.
        credentials: Durable store of the provider's credential.
        config: Endpoint URLs, client ID and request headers.
        clock: Returns the current epoch time in seconds.
        sleep: Blocks for the given number of seconds. Only used by
            :meth:`wait_for_authorization`.

    Example::

        controller = DeviceAuthController(httpx.Client(), store, BridgeConfig())
        authorization = controller.authorize()
        print(authorization.verification_uri, authorization.user_code)
        if controller.wait_for_authorization(authorization, timeout=300) is AuthState.AUTHORIZED:
            token = controller.get_access_token()
    """

    def __init__(
        self,
        http_client: httpx.Client,
        credentials: CredentialStore,
        config: BridgeConfig,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._http = http_client
        self._credentials = credentials
        self._config = config
        self._clock = clock
        self._sleep = sleep
        self._state = AuthState.IDLE

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def provider(self) -> str:
        return self._credentials.provider

    # ------------------------------------------------------------------ #
    # Device flow
    # ------------------------------------------------------------------ #

    def authorize(self) -> DeviceAuthorization:
        """Request a device code and user code.

        Returns:
            The :class:`~copilot_bridge.models.DeviceAuthorization` to show
            to the user and poll with.

        Raises:
            DeviceCodeError: On a transport error, a non-2xx status, or a
                response missing ``device_code``, ``user_code`` or
                ``verification_uri``. The controller state is unchanged.
        """
        previous_state = self._state
        self._state = AuthState.DEVICE_REQUESTED
        try:
            response = self._http.post(
                self._config.device_code_url,
                json={"client_id": self._config.client_id, "scope": self._config.scope},
                headers=self._flow_headers(),
                timeout=self._config.timeout,
            )
            response.raise_for_status()
            data: dict[str, Any] = response.json()
            authorization = DeviceAuthorization(
                device_code=data["device_code"],
                user_code=data["user_code"],
                verification_uri=data.get("verification_uri") or data.get("verification_url"),
                interval=data.get("interval") or 5,
                expires_in=data.get("expires_in") or 900,
            )
        except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as exc:
            self._state = previous_state
            logger.error("Failed to request device code: %s", exc)
            raise DeviceCodeError(f"Failed to get device code: {exc}") from exc

        logger.debug(
            "Device code issued; poll every %ss for up to %ss",
            authorization.interval,
            authorization.expires_in,
        )
        self._state = AuthState.POLLING
        return authorization

    def poll(self, device_code: str) -> PollStatus:
        """Exchange *device_code* for a long-lived grant, once.

        Returns:
            * ``PollStatus.COMPLETE`` -- the grant was persisted.
            * ``PollStatus.PENDING`` -- the user has not approved yet, or
              the payload shape was not recognised.
            * ``PollStatus.FAILED`` -- non-200 status or any error other
              than ``authorization_pending``.

        Raises:
            TokenExchangeError: If the round-trip itself failed (transport
                error, undecodable body, grant could not be stored).
        """
        try:
            response = self._http.post(
                self._config.access_token_url,
                json={
                    "client_id": self._config.client_id,
                    "device_code": device_code,
                    "grant_type": DEVICE_CODE_GRANT_TYPE,
                },
                headers=self._flow_headers(),
                timeout=self._config.timeout,
            )
        except httpx.HTTPError as exc:
            logger.error("Token polling failed: %s", exc)
            raise TokenExchangeError(f"Token polling failed: {exc}") from exc

        if response.status_code != 200:
            logger.info("Token endpoint answered HTTP %d", response.status_code)
            self._state = AuthState.FAILED
            return PollStatus.FAILED

        try:
            data = response.json()
        except ValueError as exc:
            logger.error("Token endpoint returned an undecodable body: %s", exc)
            raise TokenExchangeError(f"Token endpoint returned invalid JSON: {exc}") from exc

        if not isinstance(data, dict):
            data = {}

        grant = data.get("access_token")
        if isinstance(grant, str) and grant:
            try:
                self._credentials.save(ProviderCredential(grant=grant))
            except Exception as exc:
                logger.error("Failed to store the authorization grant: %s", exc)
                raise TokenExchangeError(f"Failed to store grant: {exc}") from exc
            self._state = AuthState.AUTHORIZED
            return PollStatus.COMPLETE

        error = data.get("error")
        if error is not None:
            if error == "authorization_pending":
                self._state = AuthState.POLLING
                return PollStatus.PENDING
            logger.info("Device authorization rejected: %s", data.get("error_description", error))
            self._state = AuthState.FAILED
            return PollStatus.FAILED

        # Keep polling on an unknown shape, but make it visible.
        logger.warning(
            "Unrecognized token endpoint payload (keys: %s); treating as pending",
            sorted(data),
        )
        self._state = AuthState.POLLING
        return PollStatus.PENDING

    def poll_outcome(self, device_code: str) -> PollStatus:
        """Like :meth:`poll`, but report transport failures as
        ``PollStatus.TRANSPORT_ERROR`` instead of raising."""
        try:
            return self.poll(device_code)
        except TokenExchangeError:
            return PollStatus.TRANSPORT_ERROR

    def wait_for_authorization(
        self,
        authorization: DeviceAuthorization,
        timeout: float = 300,
        on_status: Optional[Callable[[PollStatus], None]] = None,
    ) -> AuthState:
        """Poll until a terminal outcome or until *timeout* seconds elapse.

        Sleeps ``authorization.interval`` seconds between polls. Each poll
        is a single bounded round-trip.

        Args:
            authorization: Result of :meth:`authorize`.
            timeout: Wall-clock budget in seconds.
            on_status: Called with every poll status, e.g. to update a
                progress display.

        Returns:
            ``AuthState.AUTHORIZED``, ``AuthState.FAILED`` or
            ``AuthState.TIMED_OUT``.

        Raises:
            TokenExchangeError: Propagated from :meth:`poll`; the state
                becomes ``FAILED``.
        """
        start = self._clock()
        while self._clock() - start < timeout:
            try:
                status = self.poll(authorization.device_code)
            except TokenExchangeError:
                self._state = AuthState.FAILED
                raise
            if on_status is not None:
                on_status(status)
            if status is PollStatus.COMPLETE:
                return AuthState.AUTHORIZED
            if status is PollStatus.FAILED:
                return AuthState.FAILED
            self._sleep(authorization.interval)

        logger.info("Device authorization timed out after %ss", timeout)
        self._state = AuthState.TIMED_OUT
        return AuthState.TIMED_OUT

    # ------------------------------------------------------------------ #
    # API token
    # ------------------------------------------------------------------ #

    def get_access_token(self) -> Optional[str]:
        """Return a valid short-lived API token, refreshing it if needed.

        Returns:
            The API token, or ``None`` when no grant is stored (not
            authenticated is a normal state, not an error).

        Raises:
            AuthenticationError: If the token endpoint rejects the grant.
            TokenError: For any other failure while loading, exchanging or
                storing the token.
        """
        try:
            credential = self._credentials.load()
            if credential is None:
                return None
            if credential.has_valid_api_token(self._now_ms()):
                return credential.api_token

            with _refresh_lock(self.provider):
                # Another caller may have refreshed while we waited.
                credential = self._credentials.load()
                if credential is None:
                    return None
                if credential.has_valid_api_token(self._now_ms()):
                    return credential.api_token
                return self._exchange_grant(credential)
        except (AuthenticationError, TokenError):
            raise
        except Exception as exc:
            logger.error("Failed to get API token: %s", exc)
            raise TokenError(f"Failed to get API token: {exc}") from exc

    def remove_tokens(self) -> None:
        """Delete the stored credential. Calling it again is a no-op.

        Raises:
            ProviderError: If the backend fails to delete the record.
        """
        try:
            self._credentials.clear()
        except Exception as exc:
            logger.error("Failed to remove stored tokens: %s", exc)
            raise ProviderError(f"Failed to remove tokens: {exc}") from exc
        self._state = AuthState.IDLE

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _exchange_grant(self, credential: ProviderCredential) -> str:
        """Trade the long-lived grant for a fresh API token and persist it."""
        response = self._http.get(
            self._config.api_key_url,
            headers={
                "Accept": "application/json",
                "Authorization": f"Bearer {credential.grant}",
                "User-Agent": self._config.user_agent,
                "Editor-Version": self._config.editor_version,
                "Editor-Plugin-Version": self._config.editor_plugin_version,
            },
            timeout=self._config.timeout,
        )
        if not response.is_success:
            raise AuthenticationError(
                f"Failed to get API token (HTTP {response.status_code})"
            )

        data = response.json()
        token = data.get("token") if isinstance(data, dict) else None
        expires_at = data.get("expires_at") if isinstance(data, dict) else None
        if not isinstance(token, str) or not token:
            raise TokenError("API token response missing 'token'")
        if isinstance(expires_at, bool) or not isinstance(expires_at, (int, float)):
            raise TokenError("API token response missing numeric 'expires_at'")

        refreshed = credential.with_api_token(token, int(expires_at) * 1000)
        self._credentials.save(refreshed)
        logger.debug("Refreshed API token for %s, expires at %s", self.provider, expires_at)
        return token

    def _flow_headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": self._config.user_agent,
        }

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)
