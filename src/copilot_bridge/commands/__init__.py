"""Built-in CLI sub-commands for copilot-bridge.

* :mod:`~copilot_bridge.commands.auth` -- device-flow login, logout and
  status.
* :mod:`~copilot_bridge.commands.chat` -- send a prompt.
* :mod:`~copilot_bridge.commands.config` -- view and modify settings.

Multi-command groups export a :class:`typer.Typer` sub-application; single
commands export a plain callback registered on the root app.
"""
