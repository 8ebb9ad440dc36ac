# ============================================================================
# filebridge/server/dispatcher.py
# Action Dispatcher - routes named actions onto the MCP file client
# ============================================================================
#
# PURPOSE:
# WebSocket clients speak in {action, payload} messages. This module maps each
# action name to a client call, validates the payload, and fires change
# notifications after mutating operations. The REST routers reuse the same
# mutating entry points (connect, upload, delete) so both surfaces broadcast
# identically.
#
# FAILURE MODEL:
# - Unknown action      -> UnknownActionError
# - Payload rejected    -> InvalidMessageError
# - Client/backend fail -> propagated unchanged (NotConnectedError, ...)
# Broadcasts only happen after the backend call succeeded.
#
# ============================================================================

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from filebridge.client.mcp_client import MCPFileClient
from filebridge.errors import InvalidMessageError, UnknownActionError
from filebridge.server.broadcast import ChangeBroadcaster
from filebridge.server.schemas import (
    DirectoryRequest,
    FilePayload,
    ListFilesPayload,
    StopStreamPayload,
    StreamRequest,
    TicketPayload,
    UploadRequest,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)
Handler = Callable[[Any], Awaitable[Any]]


def parse_payload(model: Type[ModelT], payload: Any) -> ModelT:
    """Validate a raw payload against a request model."""
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise InvalidMessageError("Payload must be a JSON object")
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise InvalidMessageError(
            f"Invalid payload: {location} {first.get('msg', '')}".strip(),
            details={"errors": e.errors(include_url=False, include_context=False)},
        )


class ActionDispatcher:
    """Maps action names to MCP file client operations."""

    def __init__(self, client: MCPFileClient, broadcaster: ChangeBroadcaster):
        self.client = client
        self.broadcaster = broadcaster
        self._handlers: Dict[str, Handler] = {
            "connect": self._on_connect,
            "disconnect": self._on_disconnect,
            "list_files": self._on_list_files,
            "list_images": self._on_list_images,
            "list_videos": self._on_list_videos,
            "upload": self._on_upload,
            "download": self._on_download,
            "delete": self._on_delete,
            "get_info": self._on_get_info,
            "get_tools": self._on_get_tools,
            "create_directory": self._on_create_directory,
            "queue_status": self._on_queue_status,
            "join_queue": self._on_join_queue,
            "check_ticket": self._on_check_ticket,
            "download_queue_status": self._on_download_queue_status,
            "list_streams": self._on_list_streams,
            "start_stream": self._on_start_stream,
            "stop_stream": self._on_stop_stream,
        }

    @property
    def actions(self) -> List[str]:
        return sorted(self._handlers)

    async def dispatch(self, action: Any, payload: Any = None) -> Any:
        handler = self._handlers.get(action) if isinstance(action, str) else None
        if handler is None:
            raise UnknownActionError(action)
        logger.debug(f"[Dispatch] {action}")
        return await handler(payload)

    # ------------------------------------------------------------------
    # Shared entry points (used by REST routers too)
    # ------------------------------------------------------------------

    async def connect(self) -> Dict[str, Any]:
        await self.client.connect()
        await self.broadcaster.status(True)
        return {"success": True}

    async def disconnect(self) -> Dict[str, Any]:
        connected = await self.client.disconnect()
        await self.broadcaster.status(connected)
        return {"success": True, "connected": connected}

    async def upload(self, request: UploadRequest) -> str:
        result = await self.client.upload_by_kind(request.filename, request.content, request.type)
        logger.info(f"[Dispatch] Uploaded {request.filename} ({request.type or 'file'})")
        await self.broadcaster.file_changed("upload", request.filename)
        return result

    async def delete(self, filename: str, folder: Optional[str] = None) -> str:
        result = await self.client.delete_file(filename, folder)
        logger.info(f"[Dispatch] Deleted {filename} from {folder or 'default folder'}")
        await self.broadcaster.file_changed("delete", filename)
        return result

    # ------------------------------------------------------------------
    # Action handlers
    # ------------------------------------------------------------------

    async def _on_connect(self, payload: Any) -> Any:
        return await self.connect()

    async def _on_disconnect(self, payload: Any) -> Any:
        return await self.disconnect()

    async def _on_list_files(self, payload: Any) -> Any:
        req = parse_payload(ListFilesPayload, payload)
        return await self.client.list_files(req.folder)

    async def _on_list_images(self, payload: Any) -> Any:
        return await self.client.list_images()

    async def _on_list_videos(self, payload: Any) -> Any:
        return await self.client.list_videos()

    async def _on_upload(self, payload: Any) -> Any:
        return await self.upload(parse_payload(UploadRequest, payload))

    async def _on_download(self, payload: Any) -> Any:
        req = parse_payload(FilePayload, payload)
        return await self.client.download_file(req.filename, req.folder)

    async def _on_delete(self, payload: Any) -> Any:
        req = parse_payload(FilePayload, payload)
        return await self.delete(req.filename, req.folder)

    async def _on_get_info(self, payload: Any) -> Any:
        req = parse_payload(FilePayload, payload)
        return await self.client.get_file_info(req.filename, req.folder)

    async def _on_get_tools(self, payload: Any) -> Any:
        return await self.client.get_tools()

    async def _on_create_directory(self, payload: Any) -> Any:
        req = parse_payload(DirectoryRequest, payload)
        return await self.client.create_directory(req.name, req.parentFolder)

    async def _on_queue_status(self, payload: Any) -> Any:
        return await self.client.get_queue_status()

    async def _on_join_queue(self, payload: Any) -> Any:
        req = parse_payload(FilePayload, payload)
        return await self.client.join_download_queue(req.filename, req.folder)

    async def _on_check_ticket(self, payload: Any) -> Any:
        req = parse_payload(TicketPayload, payload)
        return await self.client.check_ticket(req.ticketId)

    async def _on_download_queue_status(self, payload: Any) -> Any:
        return await self.client.get_download_queue_status()

    async def _on_list_streams(self, payload: Any) -> Any:
        return await self.client.get_active_streams()

    async def _on_start_stream(self, payload: Any) -> Any:
        req = parse_payload(StreamRequest, payload)
        return await self.client.start_stream(req.source, req.type)

    async def _on_stop_stream(self, payload: Any) -> Any:
        req = parse_payload(StopStreamPayload, payload)
        return await self.client.stop_stream(req.streamId)
