"""
Change broadcaster: fans bridge events out to every live viewer.

Two kinds of listeners are served:
- WebSocket clients, registered by the socket handler for as long as the
  socket is open. Delivery is best effort: sockets that are no longer open,
  or that fail or stall on send, are skipped and forgotten.
- SSE subscribers, each with a bounded queue. A slow subscriber loses its
  oldest pending events instead of holding everyone else back.

Nothing is replayed: a listener only sees events broadcast while it is attached.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, List, Set

from fastapi import WebSocket
from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)


def _is_open(websocket: WebSocket) -> bool:
    return (
        websocket.client_state == WebSocketState.CONNECTED
        and websocket.application_state == WebSocketState.CONNECTED
    )


class ChangeBroadcaster:
    def __init__(self, subscriber_queue_size: int = 100, send_timeout: float = 5.0):
        self.subscriber_queue_size = subscriber_queue_size
        self.send_timeout = send_timeout
        self._clients: Set[WebSocket] = set()
        self._subscribers: List[asyncio.Queue] = []

    # ------------------------------------------------------------------
    # WebSocket membership
    # ------------------------------------------------------------------

    def register(self, websocket: WebSocket) -> None:
        self._clients.add(websocket)
        logger.info(f"[WebSocket] Client connected ({len(self._clients)} open)")

    def unregister(self, websocket: WebSocket) -> None:
        self._clients.discard(websocket)
        logger.info(f"[WebSocket] Client disconnected ({len(self._clients)} open)")

    @property
    def client_count(self) -> int:
        return len(self._clients)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    async def _send(self, websocket: WebSocket, data: str) -> bool:
        try:
            await asyncio.wait_for(websocket.send_text(data), timeout=self.send_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(f"[Broadcast] Dropping client that stalled for {self.send_timeout}s")
            self._clients.discard(websocket)
            return False
        except Exception as e:
            logger.debug(f"[Broadcast] Dropping client after failed send: {e}")
            self._clients.discard(websocket)
            return False

    async def broadcast(self, message: Dict[str, Any]) -> int:
        """
        Send a message to every open WebSocket and SSE subscriber.

        Returns:
            Number of WebSocket clients the message reached
        """
        data = json.dumps(message)

        for queue in list(self._subscribers):
            self._offer(queue, message)

        targets = [ws for ws in list(self._clients) if _is_open(ws)]
        if not targets:
            return 0

        results = await asyncio.gather(*(self._send(ws, data) for ws in targets))
        delivered = sum(1 for ok in results if ok)
        logger.debug(f"[Broadcast] {message.get('type')} delivered to {delivered}/{len(targets)} clients")
        return delivered

    async def file_changed(self, action: str, filename: str) -> int:
        return await self.broadcast({"type": "file_changed", "action": action, "filename": filename})

    async def status(self, connected: bool) -> int:
        return await self.broadcast({"type": "status", "connected": connected})

    # ------------------------------------------------------------------
    # SSE subscribers
    # ------------------------------------------------------------------

    def _offer(self, queue: asyncio.Queue, message: Dict[str, Any]) -> None:
        # Drop-oldest when the subscriber has fallen behind
        if queue.full():
            try:
                queue.get_nowait()
            except asyncio.QueueEmpty:
                pass
        queue.put_nowait(message)

    async def subscribe(self) -> AsyncIterator[Dict[str, Any]]:
        """Async generator of broadcast messages, for Server-Sent Events."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.subscriber_queue_size)
        self._subscribers.append(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            self._subscribers.remove(queue)
