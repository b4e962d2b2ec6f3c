"""Canonical Pydantic models shared across all copilot-bridge modules.

This is the single source of truth for data shapes in the project. The
models fall into three groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`BridgeConfig`.

**Authorization models** -- produced and consumed by the device flow:
    :class:`DeviceAuthorization`, :class:`ProviderCredential`,
    :class:`PollStatus`, and :class:`AuthState`.

**Chat result models** -- produced by the response classifier and the
stream decoder:
    :class:`TokenUsage`, :class:`ToolCall`, :class:`ToolCallFragment`,
    :class:`TextResult`, :class:`ToolCallResult`, :class:`ChoiceResult`,
    and :class:`StreamResult`.
"""

from __future__ import annotations

import enum
from typing import Any, Iterator, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# --- Configuration ---


class BridgeConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/copilot-bridge/config.json``.

    Loaded and saved by :func:`~copilot_bridge.config.load_config` and
    :func:`~copilot_bridge.config.save_config`. Environment variables
    override individual fields; see :func:`~copilot_bridge.config.resolve_config`.
    """

    provider: str = Field(
        default="copilot", description="Provider name used as the credential store key"
    )
    client_id: str = Field(
        default="Iv1.b507a08c87ecfe98", description="OAuth client ID for the device flow"
    )
    scope: str = Field(default="read:user", description="Scope requested with the device code")
    device_code_url: str = "https://github.com/login/device/code"
    access_token_url: str = "https://github.com/login/oauth/access_token"
    api_key_url: str = "https://api.github.com/copilot_internal/v2/token"
    chat_completions_endpoint: str = "https://api.githubcopilot.com/chat/completions"
    model_responses_endpoint: str = "https://api.githubcopilot.com/responses"
    responses_models: list[str] = Field(
        default_factory=lambda: ["gpt-5-codex"],
        description="Models served by the responses endpoint instead of chat completions",
    )
    default_model: str = "gpt-5-mini"
    credential_backend: Literal["file", "cache"] = Field(
        default="file",
        description="Where credentials live: one JSON file per provider, or the expiring disk cache",
    )
    token_ttl_days: float = Field(
        default=90, gt=0, description="Lifetime of cached auth entries, in days"
    )
    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")
    user_agent: str = "GitHubCopilotChat/0.26.7"
    editor_version: str = "vscode/1.104.1"
    editor_plugin_version: str = "copilot-chat/0.26.7"


# --- Device authorization ---


class DeviceAuthorization(BaseModel):
    """Device and user codes returned by the device-code endpoint.

    Immutable and never persisted. Consumed by repeated
    :meth:`~copilot_bridge.auth.device_flow.DeviceAuthController.poll`
    calls until a terminal outcome or a caller-defined timeout.
    """

    model_config = ConfigDict(frozen=True)

    device_code: str
    user_code: str
    verification_uri: str
    interval: int = Field(default=5, description="Seconds to wait between polls")
    expires_in: int = Field(default=900, description="Seconds until the device code expires")


class ProviderCredential(BaseModel):
    """Durable per-provider credential: a long-lived grant plus a cached API token.

    The three authentication states are distinguishable without peeking at
    raw dicts:

    * no credential -- :meth:`CredentialStore.load` returns ``None``;
    * grant without a usable API token -- :meth:`has_valid_api_token` is
      ``False``;
    * fully refreshed -- :meth:`has_valid_api_token` is ``True``.

    The wire representation (:meth:`to_record` / :meth:`from_record`) uses
    the keys ``type``, ``refresh``, ``access`` and ``expires`` so that
    existing configuration stores stay readable.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["oauth"] = "oauth"
    grant: str = Field(description="Long-lived grant obtained from the device flow")
    api_token: str = Field(default="", description="Short-lived API token, may be empty")
    api_token_expires_at_ms: int = Field(
        default=0, description="API token expiry as epoch milliseconds, 0 if unset"
    )

    def has_valid_api_token(self, now_ms: int) -> bool:
        return bool(self.api_token) and self.api_token_expires_at_ms > now_ms

    def with_api_token(self, api_token: str, expires_at_ms: int) -> ProviderCredential:
        """Return a copy carrying a refreshed API token; the grant is preserved."""
        return self.model_copy(
            update={"api_token": api_token, "api_token_expires_at_ms": expires_at_ms}
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "refresh": self.grant,
            "access": self.api_token,
            "expires": self.api_token_expires_at_ms,
        }

    @classmethod
    def from_record(cls, record: Optional[dict[str, Any]]) -> Optional[ProviderCredential]:
        """Build a credential from a stored record.

        Returns ``None`` for an empty record, a record of another kind, or a
        record without a grant.
        """
        if not record or record.get("type") != "oauth":
            return None
        grant = record.get("refresh")
        if not isinstance(grant, str) or not grant:
            return None
        access = record.get("access") or ""
        expires = record.get("expires") or 0
        try:
            expires_ms = int(expires)
        except (TypeError, ValueError):
            expires_ms = 0
        return cls(
            grant=grant,
            api_token=access if isinstance(access, str) else "",
            api_token_expires_at_ms=expires_ms,
        )


class PollStatus(str, enum.Enum):
    """Outcome of a single poll of the token endpoint.

    ``PENDING``, ``COMPLETE`` and ``FAILED`` are expected protocol states.
    ``TRANSPORT_ERROR`` is only produced by
    :meth:`~copilot_bridge.auth.device_flow.DeviceAuthController.poll_outcome`;
    :meth:`~copilot_bridge.auth.device_flow.DeviceAuthController.poll` raises
    :class:`~copilot_bridge.exceptions.TokenExchangeError` instead.
    """

    PENDING = "pending"
    COMPLETE = "complete"
    FAILED = "failed"
    TRANSPORT_ERROR = "transport_error"


class AuthState(str, enum.Enum):
    """States of the device-authorization state machine."""

    IDLE = "idle"
    DEVICE_REQUESTED = "device_requested"
    POLLING = "polling"
    AUTHORIZED = "authorized"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


# --- Chat results ---


class TokenUsage(BaseModel):
    """Token counters reported by the provider. Any field may be missing."""

    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    thinking_tokens: Optional[int] = None
    tool_tokens: Optional[int] = None
    cached_tokens: Optional[int] = None
    remaining_tokens: Optional[int] = None
    remaining_tokens_minute: Optional[int] = None
    remaining_tokens_month: Optional[int] = None
    total_tokens: Optional[int] = None


class ToolCall(BaseModel):
    """A function invocation requested by the model, with parsed arguments."""

    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ToolCallFragment(BaseModel):
    """Accumulator for one tool call whose arguments arrive across stream chunks.

    ``arguments`` is append-only until the stream terminates.
    """

    id: str
    name: str = ""
    arguments: str = ""


class TextResult(BaseModel):
    """Plain text answer."""

    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class ToolCallResult(BaseModel):
    """A batch of tool calls emitted instead of text."""

    tool_calls: list[ToolCall]
    metadata: dict[str, Any] = Field(default_factory=dict)


class ChoiceResult(BaseModel):
    """Several choices returned for one request, in provider order."""

    results: list[Union[TextResult, ToolCallResult]]
    metadata: dict[str, Any] = Field(default_factory=dict)


class StreamResult:
    """Lazy, single-use sequence of text fragments and at most one final
    :class:`ToolCallResult`.

    Iterating a second time yields nothing: the underlying stream cannot be
    rewound.
    """

    def __init__(self, iterator: Iterator[Union[str, ToolCallResult]]) -> None:
        self._iterator = iterator
        self.metadata: dict[str, Any] = {}

    def __iter__(self) -> Iterator[Union[str, ToolCallResult]]:
        return self._iterator


ChatResult = Union[TextResult, ToolCallResult, ChoiceResult, StreamResult]
