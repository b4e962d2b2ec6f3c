"""Auth commands -- log in with the device flow, log out, show status.

Typical workflow::

    copilot-bridge auth login            # show a code, wait for approval
    copilot-bridge auth status           # verify the stored credential
    copilot-bridge auth logout           # forget it
"""

from __future__ import annotations

import typer

from copilot_bridge.exit_codes import EXIT_AUTH_FAILURE
from copilot_bridge.output import error, get_output, info, success, suggest, warning


auth_app = typer.Typer(no_args_is_help=True)

_PREVIEW_LENGTH = 10


def _preview(token: str) -> str:
    return f"{token[:_PREVIEW_LENGTH]}..."


@auth_app.command("login")
def auth_login(
    timeout: int = typer.Option(
        300, "--timeout", "-t", min=1, help="Seconds to wait for authorization."
    ),
    check_existing: bool = typer.Option(
        False,
        "--check-existing",
        "-c",
        help="Skip the device flow when a valid token is already stored.",
    ),
) -> None:
    """Authenticate with the device flow and store the grant.

    Requests a device code, shows the verification URL and user code, then
    polls the token endpoint until the user approves, denies, or *timeout*
    seconds pass. On approval an API token is fetched right away to prove
    the grant works.

    Raises:
        typer.Exit: With the auth failure code when the flow is denied,
            times out, or the API token cannot be fetched.

    Example::

        copilot-bridge auth login --timeout 600
        copilot-bridge auth login --check-existing
    """
    from copilot_bridge.config import resolve_config
    from copilot_bridge.exceptions import BridgeError
    from copilot_bridge.models import AuthState, PollStatus
    from copilot_bridge.session import open_session

    output = get_output()
    config = resolve_config()

    with open_session(config) as session:
        controller = session.controller

        if check_existing:
            try:
                existing = controller.get_access_token()
            except BridgeError as exc:
                warning(f"Could not check the existing token: {exc}")
                existing = None
            if existing:
                success("A valid token is already stored.")
                info(f"Token: {_preview(existing)}")
                return
            info("No valid token found. Starting authentication.")

        try:
            authorization = controller.authorize()
        except BridgeError as exc:
            error(str(exc))
            raise typer.Exit(code=exc.exit_code) from None

        output.device_code_prompt(authorization.verification_uri, authorization.user_code)

        messages = {
            PollStatus.PENDING: "Still waiting for authorization...",
            PollStatus.COMPLETE: "Authorization received.",
            PollStatus.FAILED: "Authorization failed.",
        }
        with output.status("Waiting for authorization...") as status:
            try:
                outcome = controller.wait_for_authorization(
                    authorization,
                    timeout=timeout,
                    on_status=lambda poll: status.update(messages.get(poll, poll.value)),
                )
            except BridgeError as exc:
                error(f"Authentication error: {exc}")
                raise typer.Exit(code=exc.exit_code) from None

        if outcome is AuthState.TIMED_OUT:
            error(f"Authentication timed out after {timeout} seconds. Please try again.")
            raise typer.Exit(code=EXIT_AUTH_FAILURE)
        if outcome is not AuthState.AUTHORIZED:
            error("Authentication failed. Please try again.")
            raise typer.Exit(code=EXIT_AUTH_FAILURE)

        try:
            token = controller.get_access_token()
        except BridgeError as exc:
            error(f"Failed to retrieve API token: {exc}")
            raise typer.Exit(code=exc.exit_code) from None
        if not token:
            error("Failed to retrieve API token after authentication.")
            raise typer.Exit(code=EXIT_AUTH_FAILURE)

    success("Authentication completed.")
    info(f"Token preview: {_preview(token)}")


@auth_app.command("logout")
def auth_logout() -> None:
    """Remove the stored credential. Safe to run when logged out.

    Example::

        copilot-bridge auth logout
    """
    from copilot_bridge.config import resolve_config
    from copilot_bridge.exceptions import BridgeError
    from copilot_bridge.session import open_session

    config = resolve_config()
    with open_session(config) as session:
        try:
            session.controller.remove_tokens()
        except BridgeError as exc:
            error(str(exc))
            raise typer.Exit(code=exc.exit_code) from None
    success(f"Logged out of {config.provider}.")


@auth_app.command("status")
def auth_status() -> None:
    """Check whether a usable API token can be obtained.

    Fetches (and if needed refreshes) the API token and prints a short
    summary. Exits with the auth failure code when not authenticated.

    Example::

        copilot-bridge auth status
    """
    from copilot_bridge.config import resolve_config
    from copilot_bridge.exceptions import BridgeError
    from copilot_bridge.session import open_session

    config = resolve_config()
    with open_session(config) as session:
        try:
            token = session.controller.get_access_token()
        except BridgeError as exc:
            error(f"Failed to check authentication status: {exc}")
            suggest("Re-authenticate: copilot-bridge auth login")
            raise typer.Exit(code=exc.exit_code) from None

    if not token:
        warning("No authentication token found.")
        suggest("Authenticate first: copilot-bridge auth login")
        raise typer.Exit(code=EXIT_AUTH_FAILURE)

    success(f"{config.provider} authentication is active.")
    get_output().print_table(
        ["Property", "Value"],
        [
            ["Provider", config.provider],
            ["Token length", f"{len(token)} characters"],
            ["Token preview", _preview(token)],
            ["Status", "Valid"],
        ],
        title="Token details",
    )
