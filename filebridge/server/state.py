from __future__ import annotations

import logging
from typing import Optional

from fastapi import Request, WebSocket

from filebridge.base.config import BridgeConfig, get_config
from filebridge.client.mcp_client import MCPFileClient
from filebridge.server.broadcast import ChangeBroadcaster
from filebridge.server.dispatcher import ActionDispatcher

logger = logging.getLogger(__name__)


class BridgeState:
    """
    Everything a handler needs: the MCP client, the broadcaster and the
    dispatcher built on top of them.

    One instance per application, stored on ``app.state.bridge``. Tests build
    their own with a stubbed client.
    """

    def __init__(
        self,
        client: Optional[MCPFileClient] = None,
        broadcaster: Optional[ChangeBroadcaster] = None,
        config: Optional[BridgeConfig] = None,
    ):
        self.config = config or get_config()
        self.client = client or MCPFileClient(config=self.config.backend)
        self.broadcaster = broadcaster or ChangeBroadcaster(
            subscriber_queue_size=self.config.events.subscriber_queue_size,
            send_timeout=self.config.events.send_timeout,
        )
        self.dispatcher = ActionDispatcher(self.client, self.broadcaster)


def get_state(request: Request) -> BridgeState:
    """FastAPI dependency resolving the per-app bridge state."""
    return request.app.state.bridge


def get_ws_state(websocket: WebSocket) -> BridgeState:
    return websocket.app.state.bridge
