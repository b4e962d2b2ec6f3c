"""Chat-completion client.

:class:`ChatClient` sends one completion request with a short-lived API
token from a :class:`~copilot_bridge.auth.device_flow.DeviceAuthController`
and hands the response to :func:`~copilot_bridge.chat.classifier.classify`.
Transport failures surface as :class:`httpx.HTTPError`; nothing here
retries.
"""

from __future__ import annotations

import logging
from typing import Any, Iterator, Optional, Union

import httpx

from copilot_bridge.auth.device_flow import DeviceAuthController
from copilot_bridge.chat.classifier import classify
from copilot_bridge.chat.sse import iter_events
from copilot_bridge.exceptions import AuthenticationError, RuntimeError_
from copilot_bridge.models import BridgeConfig, ChatResult, StreamResult

logger = logging.getLogger(__name__)


class ChatClient:
    """Send chat requests to the provider's completion endpoints.

    Args:
        http_client: Transport shared with the auth controller.
        controller: Supplies API tokens, refreshing them when expired.
        config: Endpoints, model routing and client identification headers.

    Example::

        client = ChatClient(http_client, controller, config)
        result = client.complete(messages=[{"role": "user", "content": "Hi"}])
        print(result.content)
    """

    def __init__(
        self,
        http_client: httpx.Client,
        controller: DeviceAuthController,
        config: BridgeConfig,
    ) -> None:
        self._http = http_client
        self._controller = controller
        self._config = config

    def endpoint_for(self, model: str) -> str:
        """Return the endpoint URL serving *model*."""
        if model in self._config.responses_models:
            return self._config.model_responses_endpoint
        return self._config.chat_completions_endpoint

    def complete(
        self,
        model: Optional[str] = None,
        messages: Optional[list[dict[str, Any]]] = None,
        stream: bool = False,
        **options: Any,
    ) -> ChatResult:
        """Request a completion.

        Args:
            model: Model name; defaults to ``config.default_model``.
            messages: Chat messages in the provider's JSON shape.
            stream: Ask for a server-sent event stream.
            **options: Extra body fields such as ``temperature`` or ``tools``.

        Returns:
            The classified result. For ``stream=True`` a
            :class:`~copilot_bridge.models.StreamResult` that must be
            iterated to release the connection.

        Raises:
            AuthenticationError: If no credential is stored or the provider
                rejects the token.
            RateLimitExceeded: On HTTP 429.
            RuntimeError_: On other error statuses or malformed bodies.
            httpx.HTTPError: On transport failures.
        """
        token = self._controller.get_access_token()
        if not token:
            raise AuthenticationError(
                f"{self._controller.provider} is not authenticated. Run authentication first."
            )

        model = model or self._config.default_model
        body: dict[str, Any] = {"model": model, "messages": messages or [], "stream": stream}
        body.update(options)
        url = self.endpoint_for(model)
        headers = self._headers(token)
        logger.debug("POST %s model=%s stream=%s", url, model, stream)

        if not stream:
            response = self._http.post(
                url, json=body, headers=headers, timeout=self._config.timeout
            )
            return classify(response.status_code, _decode_body(response))

        request = self._http.build_request(
            "POST", url, json=body, headers=headers, timeout=self._config.timeout
        )
        response = self._http.send(request, stream=True)
        if not response.is_success:
            try:
                response.read()
            finally:
                response.close()
            return classify(response.status_code, response.text)

        result = classify(response.status_code, _stream_events(response), stream=True)
        if isinstance(result, StreamResult):
            result.metadata["model"] = model
        return result

    def _headers(self, token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": self._config.user_agent,
            "Editor-Version": self._config.editor_version,
            "Editor-Plugin-Version": self._config.editor_plugin_version,
        }


def _decode_body(response: httpx.Response) -> Union[dict[str, Any], str]:
    if not response.is_success:
        return response.text
    try:
        return response.json()
    except ValueError as exc:
        raise RuntimeError_(f"Response body is not valid JSON: {exc}") from exc


def _stream_events(response: httpx.Response) -> Iterator[Any]:
    try:
        yield from iter_events(response.iter_lines())
    finally:
        response.close()
