"""Tests for the chat-completion client."""

from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest

from copilot_bridge.chat.client import ChatClient
from copilot_bridge.exceptions import AuthenticationError, RateLimitExceeded, RuntimeError_
from copilot_bridge.models import BridgeConfig, StreamResult, TextResult, ToolCallResult

CONFIG = BridgeConfig()


def _completion(content: str = "Hello") -> dict[str, Any]:
    return {
        "id": "chatcmpl-1",
        "model": "gpt-5-mini",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
    }


def _sse(*payloads: Any) -> bytes:
    lines = []
    for payload in payloads:
        data = payload if isinstance(payload, str) else json.dumps(payload)
        lines.append(f"data: {data}\n\n")
    return "".join(lines).encode()


def _delta(**delta: Any) -> dict[str, Any]:
    return {"choices": [{"index": 0, "delta": delta}]}


@pytest.fixture()
def authenticated(memory_store, clock) -> None:
    """Seed a valid API token so no exchange request is needed."""
    memory_store.records["copilot"] = {
        "type": "oauth",
        "refresh": "gho_grant",
        "access": "tid_api",
        "expires": int((clock.now + 600) * 1000),
    }


@pytest.fixture()
def make_client(make_controller) -> Callable[..., ChatClient]:
    def _make(
        handler: Callable[[httpx.Request], httpx.Response],
        config: BridgeConfig = CONFIG,
    ) -> ChatClient:
        controller = make_controller(handler, config=config)
        http = httpx.Client(transport=httpx.MockTransport(handler))
        return ChatClient(http, controller, config)

    return _make


# ------------------------------------------------------------------ #
# Request shape
# ------------------------------------------------------------------ #


class TestRequest:
    def test_headers_and_body(self, make_client, authenticated) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=_completion())

        client = make_client(handler)
        client.complete(
            model="gpt-4o",
            messages=[{"role": "user", "content": "Hi"}],
            temperature=0.2,
        )

        (request,) = seen
        assert request.method == "POST"
        assert str(request.url) == CONFIG.chat_completions_endpoint
        assert request.headers["Authorization"] == "Bearer tid_api"
        assert request.headers["Content-Type"] == "application/json"
        assert request.headers["Accept"] == "application/json"
        assert request.headers["User-Agent"] == CONFIG.user_agent
        assert request.headers["Editor-Version"] == CONFIG.editor_version
        assert request.headers["Editor-Plugin-Version"] == CONFIG.editor_plugin_version
        assert json.loads(request.content) == {
            "model": "gpt-4o",
            "messages": [{"role": "user", "content": "Hi"}],
            "stream": False,
            "temperature": 0.2,
        }

    def test_default_model(self, make_client, authenticated) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=_completion())

        make_client(handler).complete(messages=[])
        assert json.loads(seen[0].content)["model"] == CONFIG.default_model

    def test_responses_models_are_routed(self, make_client, authenticated) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=_completion())

        make_client(handler).complete(model="gpt-5-codex", messages=[])
        assert str(seen[0].url) == CONFIG.model_responses_endpoint

    def test_routing_follows_config(self, make_client) -> None:
        config = BridgeConfig(responses_models=["o3"])
        client = make_client(lambda request: httpx.Response(500), config=config)
        assert client.endpoint_for("o3") == config.model_responses_endpoint
        assert client.endpoint_for("gpt-5-codex") == config.chat_completions_endpoint

    def test_not_authenticated(self, make_client) -> None:
        calls: list[httpx.Request] = []
        client = make_client(lambda request: calls.append(request) or httpx.Response(200))
        with pytest.raises(AuthenticationError, match="not authenticated"):
            client.complete(messages=[])
        assert calls == []

    def test_refreshes_token_first(self, make_client, memory_store, clock) -> None:
        memory_store.records["copilot"] = {"type": "oauth", "refresh": "gho_grant"}
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if str(request.url) == CONFIG.api_key_url:
                return httpx.Response(200, json={"token": "tid_new", "expires_at": int(clock.now) + 60})
            return httpx.Response(200, json=_completion())

        make_client(handler).complete(messages=[])
        assert [str(r.url) for r in seen] == [CONFIG.api_key_url, CONFIG.chat_completions_endpoint]
        assert seen[1].headers["Authorization"] == "Bearer tid_new"


# ------------------------------------------------------------------ #
# Non-streaming responses
# ------------------------------------------------------------------ #


class TestComplete:
    def test_text_result(self, make_client, authenticated) -> None:
        client = make_client(lambda request: httpx.Response(200, json=_completion("Hi!")))
        result = client.complete(messages=[])
        assert isinstance(result, TextResult)
        assert result.content == "Hi!"
        assert result.metadata["response_id"] == "chatcmpl-1"

    def test_unauthorized(self, make_client, authenticated) -> None:
        client = make_client(
            lambda request: httpx.Response(401, json={"error": {"message": "token expired"}})
        )
        with pytest.raises(AuthenticationError, match="token expired"):
            client.complete(messages=[])

    def test_rate_limited(self, make_client, authenticated) -> None:
        client = make_client(lambda request: httpx.Response(429, text="slow down"))
        with pytest.raises(RateLimitExceeded):
            client.complete(messages=[])

    def test_invalid_json_body(self, make_client, authenticated) -> None:
        client = make_client(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(RuntimeError_):
            client.complete(messages=[])

    def test_transport_error_propagates(self, make_client, authenticated) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down", request=request)

        with pytest.raises(httpx.ConnectError):
            make_client(handler).complete(messages=[])


# ------------------------------------------------------------------ #
# Streaming responses
# ------------------------------------------------------------------ #


class TestStream:
    def test_text_stream(self, make_client, authenticated) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            body = _sse(_delta(content="Hel"), _delta(content="lo"), "[DONE]")
            return httpx.Response(200, content=body, headers={"content-type": "text/event-stream"})

        result = make_client(handler).complete(messages=[], stream=True)
        assert isinstance(result, StreamResult)
        assert list(result) == ["Hel", "lo"]
        assert json.loads(seen[0].content)["stream"] is True
        assert result.metadata["model"] == CONFIG.default_model

    def test_tool_call_stream(self, make_client, authenticated) -> None:
        first = {"index": 0, "id": "c1", "function": {"name": "f", "arguments": '{"a"'}}
        rest = {"index": 0, "function": {"arguments": ":1}"}}

        def handler(request: httpx.Request) -> httpx.Response:
            body = _sse(_delta(tool_calls=[first]), _delta(tool_calls=[rest]), "[DONE]")
            return httpx.Response(200, content=body, headers={"content-type": "text/event-stream"})

        (item,) = list(make_client(handler).complete(messages=[], stream=True))
        assert isinstance(item, ToolCallResult)
        assert item.tool_calls[0].arguments == {"a": 1}

    def test_error_status_is_classified(self, make_client, authenticated) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"message": "nope"})

        with pytest.raises(AuthenticationError, match="nope"):
            make_client(handler).complete(messages=[], stream=True)

    def test_server_error_status(self, make_client, authenticated) -> None:
        client = make_client(lambda request: httpx.Response(502, text="bad gateway"))
        with pytest.raises(RuntimeError_, match="502"):
            client.complete(messages=[], stream=True)
