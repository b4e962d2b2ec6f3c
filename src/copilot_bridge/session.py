"""Wiring of the HTTP transport, auth controller and chat client for the CLI."""

from __future__ import annotations

from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from typing import Iterator

import httpx

from copilot_bridge.auth import create_controller, open_config_store
from copilot_bridge.auth.device_flow import DeviceAuthController
from copilot_bridge.chat import ChatClient
from copilot_bridge.models import BridgeConfig


@dataclass
class Session:
    """Objects sharing one :class:`httpx.Client` for a single CLI invocation."""

    config: BridgeConfig
    http: httpx.Client
    controller: DeviceAuthController
    chat: ChatClient


@contextmanager
def open_session(config: BridgeConfig) -> Iterator[Session]:
    """Yield a :class:`Session`; close its transport and credential store on exit."""
    with ExitStack() as stack:
        http = stack.enter_context(
            httpx.Client(timeout=config.timeout, follow_redirects=True)
        )
        store = stack.enter_context(open_config_store(config))
        controller = create_controller(config, http, store)
        yield Session(
            config=config,
            http=http,
            controller=controller,
            chat=ChatClient(http, controller, config),
        )
