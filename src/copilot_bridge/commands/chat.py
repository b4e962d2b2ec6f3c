"""The ``chat`` command -- send one prompt and print the answer.

Text goes to stdout, so the answer can be piped. Tool calls requested by
the model are printed as JSON.
"""

from __future__ import annotations

from typing import Optional

import typer

from copilot_bridge.output import error, get_output


def chat_command(
    prompt: str = typer.Argument(help="User message to send."),
    model: Optional[str] = typer.Option(
        None, "--model", "-m", help="Model name. Defaults to the configured model."
    ),
    system: Optional[str] = typer.Option(
        None, "--system", "-s", help="Optional system message."
    ),
    stream: bool = typer.Option(
        True, "--stream/--no-stream", help="Print the answer as it arrives."
    ),
) -> None:
    """Send PROMPT to the chat endpoint and print the answer.

    Raises:
        typer.Exit: With the error's exit code on authentication, rate
            limit, or provider failures, and with the connection error
            code on network failures.

    Example::

        copilot-bridge chat "Explain RFC 8628 in one sentence"
        copilot-bridge chat --model gpt-4o --no-stream "Hello"
    """
    import httpx

    from copilot_bridge.config import resolve_config
    from copilot_bridge.exceptions import BridgeError
    from copilot_bridge.exit_codes import EXIT_CONNECTION_ERROR
    from copilot_bridge.session import open_session

    messages = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})

    config = resolve_config({"default_model": model})
    with open_session(config) as session:
        try:
            result = session.chat.complete(messages=messages, stream=stream)
            _render(result)
        except BridgeError as exc:
            error(str(exc))
            raise typer.Exit(code=exc.exit_code) from None
        except httpx.HTTPError as exc:
            error(f"Connection failed: {exc}")
            raise typer.Exit(code=EXIT_CONNECTION_ERROR) from None


def _render(result: object) -> None:
    from copilot_bridge.models import ChoiceResult, StreamResult, TextResult, ToolCallResult

    output = get_output()
    if isinstance(result, TextResult):
        output.print_data(result.content)
    elif isinstance(result, ToolCallResult):
        output.print_json([call.model_dump() for call in result.tool_calls])
    elif isinstance(result, ChoiceResult):
        for choice in result.results:
            _render(choice)
    elif isinstance(result, StreamResult):
        wrote_text = False
        for item in result:
            if isinstance(item, ToolCallResult):
                if wrote_text:
                    output.print_data("")
                    wrote_text = False
                _render(item)
            else:
                output.write_fragment(item)
                wrote_text = True
        if wrote_text:
            output.print_data("")
