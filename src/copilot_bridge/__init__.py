"""copilot-bridge -- talk to GitHub Copilot chat models from Python.

The package authenticates with the OAuth2 device authorization grant,
exchanges the resulting long-lived grant for short-lived API tokens, and
sends chat-completion requests whose responses (plain or streamed) are
turned into typed results.

Typical workflow::

    copilot-bridge auth login         # device flow, stores the grant
    copilot-bridge chat "Hello"       # uses a fresh API token

Modules:
    app: Typer application and CLI entry point.
    auth: Device flow controller and credential stores.
    chat: Chat client, response classifier and stream decoder.
    cache: Expiring disk cache for credential records.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration with environment overrides.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes.
    output: stdout/stderr output with Rich support.
"""

__version__ = "0.1.0"
