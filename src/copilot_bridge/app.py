"""Typer application and CLI entry point for copilot-bridge.

Registers the ``auth``, ``config`` and ``chat`` commands on the root app.
:func:`main` is the console-script entry point declared in
``pyproject.toml``: it installs a Ctrl-C handler, runs the app, maps
:class:`~copilot_bridge.exceptions.BridgeError` to its exit code, and
writes a crash log for anything unexpected.

See Also:
    :mod:`copilot_bridge.config`: Configuration resolution.
    :mod:`copilot_bridge.output`: Output initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any

import typer
from rich.logging import RichHandler

from copilot_bridge import __version__
from copilot_bridge.commands.auth import auth_app
from copilot_bridge.commands.chat import chat_command
from copilot_bridge.commands.config import config_app
from copilot_bridge.exit_codes import EXIT_GENERIC_FAILURE
from copilot_bridge.output import OutputFormat, OutputManager, set_output


app = typer.Typer(
    name="copilot-bridge",
    help="Authenticate with GitHub Copilot and talk to its chat models.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.add_typer(auth_app, name="auth", help="Device-flow authentication.")
app.add_typer(config_app, name="config", help="Configuration management.")
app.command("chat")(chat_command)

_LOGGER_NAME = "copilot_bridge"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"copilot-bridge {__version__}")
        raise typer.Exit()


def configure_logging(output: OutputManager) -> None:
    """Send package log records to stderr through Rich.

    ``--verbose`` lowers the level to DEBUG; otherwise only warnings and
    errors are shown. Calling it again replaces the previous handler.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)
    handler = RichHandler(
        console=output.stderr_console,
        show_path=output.is_verbose,
        rich_tracebacks=output.is_verbose,
    )
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if output.is_verbose else logging.WARNING)
    logger.propagate = False


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Initialise output and logging before every sub-command."""
    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    output = OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose)
    set_output(output)
    configure_logging(output)

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write the current traceback under the data directory and return its path."""
    from copilot_bridge.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``copilot-bridge`` console script.

    Unhandled :class:`~copilot_bridge.exceptions.BridgeError` instances
    exit with the error's ``exit_code``. Anything else produces a crash
    log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from copilot_bridge.exceptions import BridgeError
        from copilot_bridge.output import error

        if isinstance(exc, BridgeError):
            error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
