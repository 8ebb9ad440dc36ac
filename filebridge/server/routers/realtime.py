from __future__ import annotations

import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from sse_starlette.sse import EventSourceResponse

from filebridge.errors import ErrorCode, InvalidMessageError, handle_error
from filebridge.server.schemas import AgentMessage
from filebridge.server.state import BridgeState, get_state, get_ws_state

router = APIRouter(tags=["realtime"])

logger = logging.getLogger(__name__)


async def send_error(websocket: WebSocket, action: Optional[str], message: str) -> None:
    await websocket.send_json({"type": "error", "action": action, "message": message})


async def handle_agent_message(websocket: WebSocket, state: BridgeState, raw: str) -> None:
    """
    Parse one inbound frame, dispatch it, and answer on the same socket.

    Failures are reported as error frames; the socket is never closed here.
    """
    try:
        message = AgentMessage.model_validate_json(raw)
    except ValidationError:
        err = InvalidMessageError()
        logger.warning(f"[WebSocket] Rejected malformed message ({len(raw)} bytes)")
        await send_error(websocket, None, err.message)
        return

    action = message.action
    try:
        result: Any = await state.dispatcher.dispatch(action, message.payload)
    except Exception as exc:
        err = handle_error(exc)
        if err.code is ErrorCode.INTERNAL_ERROR:
            logger.exception(f"[WebSocket] Action {action} failed")
        else:
            logger.info(f"[WebSocket] Action {action} failed: {err.message}")
        await send_error(websocket, action, err.message)
        return

    await websocket.send_json({"type": "response", "action": action, "result": result})


async def agent_socket(websocket: WebSocket) -> None:
    """Duplex agent channel: status push on open, then an action loop."""
    state = get_ws_state(websocket)

    await websocket.accept()
    state.broadcaster.register(websocket)

    try:
        await websocket.send_json({"type": "status", "connected": state.client.is_connected()})

        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                break
            raw = frame.get("text")
            if raw is None:
                raw = (frame.get("bytes") or b"").decode("utf-8", errors="replace")
            await handle_agent_message(websocket, state, raw)
    except WebSocketDisconnect:
        pass
    finally:
        state.broadcaster.unregister(websocket)


# The browser UI opens its socket on the server root, other clients use /ws.
router.add_api_websocket_route("/ws", agent_socket)
router.add_api_websocket_route("/", agent_socket)


@router.get("/api/events")
async def sse_events_endpoint(request: Request, state: BridgeState = Depends(get_state)):
    """
    Server-Sent Events stream of the same notifications pushed to WebSockets.
    """
    async def event_generator():
        async for message in state.broadcaster.subscribe():
            if await request.is_disconnected():
                break
            yield {
                "event": message.get("type", "message"),
                "data": json.dumps(message),
            }

    return EventSourceResponse(event_generator())
