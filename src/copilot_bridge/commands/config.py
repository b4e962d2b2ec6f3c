"""Config commands -- view and modify the user configuration.

Settings live in ``config.json`` in the copilot-bridge config directory
and hold the OAuth client ID, endpoint URLs, default model and timeouts.
"""

from __future__ import annotations

import typer

from copilot_bridge.output import error, get_output, info, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show() -> None:
    """Show the effective configuration, environment overrides included.

    Example::

        copilot-bridge config show
        copilot-bridge --json config show
    """
    from copilot_bridge.config import config_path, resolve_config
    from copilot_bridge.exceptions import ConfigError

    try:
        config = resolve_config()
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    info(f"Config file: {config_path()}")
    get_output().print_json(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Config key, e.g. 'default_model'."),
    value: str = typer.Argument(help="Value to set. Lists are comma-separated."),
) -> None:
    """Set a configuration value.

    The value is validated against the configuration model before it is
    saved.

    Raises:
        typer.Exit: With code 2 if the key is unknown or the value invalid.

    Example::

        copilot-bridge config set default_model gpt-4o
        copilot-bridge config set responses_models gpt-5-codex,o3
    """
    from copilot_bridge.config import set_config_value
    from copilot_bridge.exceptions import ConfigError
    from copilot_bridge.exit_codes import EXIT_INVALID_USAGE

    try:
        updated = set_config_value(key, value)
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    success(f"Set {key} = {getattr(updated, key)}")
