# ============================================================================
# filebridge/client/mcp_client.py
# MCP File Client - typed adapter over the backend's tool calls
# ============================================================================
#
# PURPOSE:
# The file-hosting backend is an MCP tool server running as a child process.
# This client owns the one channel to it and exposes each backend tool as a
# typed coroutine (list_files, upload_image, check_ticket, ...).
#
# CONNECTION MODEL:
# - One channel at a time. connect() is idempotent and serialized by a lock,
#   so concurrent callers never spawn a second backend process.
# - The MCP session lives inside a dedicated owner task. The stdio transport
#   is built on anyio task groups, which must be entered and exited by the
#   same task, so request handlers never open or close it themselves.
# - No reconnect, no retries, no timeouts. A dead backend needs an explicit
#   connect() after disconnect().
#
# CALL CONVENTION:
# Every tool returns a single text item. Structured results are JSON encoded
# inside that text; _call_json() decodes them.
#
# ============================================================================

from __future__ import annotations

import asyncio
import json
import logging
import os
from contextlib import asynccontextmanager
from enum import Enum
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Union

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client
from mcp.types import Implementation

from filebridge.base.config import BackendConfig, get_config
from filebridge.client.types import (
    DownloadQueueStatus,
    Encoding,
    FileInfo,
    Folder,
    FolderListing,
    ListingFolder,
    QueueStatus,
    StreamInfo,
    StreamType,
    TicketResponse,
)
from filebridge.errors import BridgeError, NotConnectedError, ToolError, TransportError, root_cause

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class MCPFileClient:
    """
    Client for the file-hosting MCP backend.

    Example:
        client = MCPFileClient()
        await client.connect()
        listing = await client.list_files("IMAGES")
        await client.disconnect()
    """

    def __init__(
        self,
        server_path: Optional[Union[str, Path]] = None,
        storage_dir: Optional[Union[str, Path]] = None,
        command: Optional[str] = None,
        config: Optional[BackendConfig] = None,
    ):
        cfg = config or get_config().backend
        self.config = cfg
        self.server_path = Path(server_path or cfg.server_path)
        self.storage_dir = Path(storage_dir or cfg.storage_dir)
        self.command = command or cfg.command
        self.state = ConnectionState.DISCONNECTED

        self._session: Optional[ClientSession] = None
        self._owner: Optional[asyncio.Task] = None
        self._closing: Optional[asyncio.Event] = None
        self._connect_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED and self._session is not None

    def _server_parameters(self) -> StdioServerParameters:
        env = dict(os.environ)
        env["STORAGE_DIR"] = str(self.storage_dir)
        return StdioServerParameters(
            command=self.command,
            args=[str(self.server_path)],
            env=env,
        )

    @asynccontextmanager
    async def _open_session(self) -> AsyncIterator[ClientSession]:
        """Spawn the backend and yield an initialized MCP session."""
        client_info = Implementation(name=self.config.client_name, version=self.config.client_version)
        async with stdio_client(self._server_parameters()) as (read_stream, write_stream):
            async with ClientSession(read_stream, write_stream, client_info=client_info) as session:
                await session.initialize()
                yield session

    async def _hold_session(self, ready: asyncio.Future, closing: asyncio.Event) -> None:
        """Owner task: keeps the channel open until disconnect() asks it to close."""
        try:
            async with self._open_session() as session:
                self._session = session
                ready.set_result(None)
                await closing.wait()
        except Exception as exc:
            cause = root_cause(exc)
            if not ready.done():
                ready.set_exception(cause)
            else:
                logger.error(f"[MCP Client] Backend channel failed: {cause}")
        finally:
            self._session = None
            self.state = ConnectionState.DISCONNECTED

    async def connect(self) -> None:
        if self.is_connected():
            return

        async with self._connect_lock:
            # Another caller may have finished connecting while we waited
            if self.is_connected():
                return

            logger.info(f"[MCP Client] Connecting to server: {self.server_path}")
            self.state = ConnectionState.CONNECTING

            ready = asyncio.get_running_loop().create_future()
            self._closing = asyncio.Event()
            self._owner = asyncio.create_task(
                self._hold_session(ready, self._closing), name="mcp-file-client"
            )

            try:
                await ready
            except BridgeError:
                self.state = ConnectionState.DISCONNECTED
                raise
            except Exception as exc:
                self.state = ConnectionState.DISCONNECTED
                cause = root_cause(exc)
                logger.error(f"[MCP Client] Connection failed: {cause}")
                raise TransportError(
                    str(cause) or type(cause).__name__,
                    details={"server_path": str(self.server_path)},
                ) from exc

            self.state = ConnectionState.CONNECTED
            logger.info("[MCP Client] Connected successfully")

    async def disconnect(self) -> bool:
        """Close the channel if one is open. Returns the final connected flag."""
        owner = self._owner
        if owner is None:
            return self.is_connected()

        if self._closing is not None:
            self._closing.set()
        await owner
        self._owner = None
        self._closing = None
        logger.info("[MCP Client] Disconnected")
        return self.is_connected()

    # ------------------------------------------------------------------
    # Call-and-parse
    # ------------------------------------------------------------------

    def _require_session(self) -> ClientSession:
        if not self.is_connected():
            raise NotConnectedError()
        return self._session

    async def _call_tool(self, name: str, args: Optional[Dict[str, Any]] = None) -> str:
        session = self._require_session()

        logger.debug(f"[MCP Client] call_tool {name} args={sorted((args or {}).keys())}")
        try:
            result = await session.call_tool(name, arguments=args or {})
        except BridgeError:
            raise
        except Exception as exc:
            cause = root_cause(exc)
            raise TransportError(str(cause) or type(cause).__name__, details={"tool": name}) from exc

        text = ""
        content = getattr(result, "content", None)
        if content:
            first = content[0]
            if getattr(first, "type", None) == "text":
                text = first.text

        if getattr(result, "isError", False):
            raise ToolError(name, text or f"Tool {name} failed")
        return text

    async def _call_json(self, name: str, args: Optional[Dict[str, Any]] = None) -> Any:
        text = await self._call_tool(name, args)
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise TransportError(
                f"Invalid JSON from {name}: {exc.msg}",
                details={"tool": name},
            ) from exc

    @staticmethod
    def _with_folder(args: Dict[str, Any], folder: Optional[str], key: str = "folder") -> Dict[str, Any]:
        if folder:
            args[key] = folder
        return args

    # ------------------------------------------------------------------
    # File operations
    # ------------------------------------------------------------------

    async def list_files(self, folder: ListingFolder = "all") -> List[FolderListing]:
        return await self._call_json("list_files", {"folder": folder or "all"})

    async def list_images(self) -> FolderListing:
        return await self._call_json("list_images")

    async def list_videos(self) -> FolderListing:
        return await self._call_json("list_videos")

    async def upload_file(self, filename: str, content: str, encoding: Encoding = "base64") -> str:
        return await self._call_tool("upload_file", {"filename": filename, "content": content, "encoding": encoding})

    async def upload_image(self, filename: str, content: str) -> str:
        return await self._call_tool("upload_image", {"filename": filename, "content": content})

    async def upload_video(self, filename: str, content: str) -> str:
        return await self._call_tool("upload_video", {"filename": filename, "content": content})

    async def upload_by_kind(self, filename: str, content: str, kind: Optional[str] = None) -> str:
        """Route an upload to the image, video or generic tool."""
        if kind == "image":
            return await self.upload_image(filename, content)
        if kind == "video":
            return await self.upload_video(filename, content)
        return await self.upload_file(filename, content, "base64")

    async def download_file(
        self,
        filename: str,
        folder: Optional[Folder] = None,
        encoding: Encoding = "base64",
    ) -> str:
        args = self._with_folder({"filename": filename, "encoding": encoding}, folder)
        return await self._call_tool("download_file", args)

    async def delete_file(self, filename: str, folder: Optional[Folder] = None) -> str:
        return await self._call_tool("delete_file", self._with_folder({"filename": filename}, folder))

    async def get_file_info(self, filename: str, folder: Optional[Folder] = None) -> FileInfo:
        return await self._call_json("get_file_info", self._with_folder({"filename": filename}, folder))

    async def create_directory(self, name: str, parent_folder: Optional[Folder] = None) -> str:
        args = self._with_folder({"name": name}, parent_folder, key="parentFolder")
        return await self._call_tool("create_directory", args)

    # ------------------------------------------------------------------
    # Queue and streaming pass-through
    # ------------------------------------------------------------------

    async def get_queue_status(self) -> QueueStatus:
        return await self._call_json("get_queue_status", {})

    async def join_download_queue(self, filename: str, folder: Optional[Folder] = None) -> TicketResponse:
        return await self._call_json("join_download_queue", self._with_folder({"filename": filename}, folder))

    async def check_ticket(self, ticket_id: str) -> TicketResponse:
        return await self._call_json("check_ticket", {"ticketId": ticket_id})

    async def get_download_queue_status(self) -> DownloadQueueStatus:
        return await self._call_json("get_download_queue_status", {})

    async def get_active_streams(self) -> List[StreamInfo]:
        return await self._call_json("get_active_streams", {})

    async def start_stream(self, source: str, stream_type: StreamType) -> StreamInfo:
        return await self._call_json("start_stream", {"source": source, "type": stream_type})

    async def stop_stream(self, stream_id: str) -> str:
        return await self._call_tool("stop_stream", {"streamId": stream_id})

    # ------------------------------------------------------------------
    # Capability discovery
    # ------------------------------------------------------------------

    async def get_tools(self) -> List[Dict[str, Any]]:
        session = self._require_session()
        try:
            result = await session.list_tools()
        except Exception as exc:
            raise TransportError(str(exc) or type(exc).__name__, details={"tool": "list_tools"}) from exc
        return [tool.model_dump(mode="json", by_alias=True, exclude_none=True) for tool in result.tools]
