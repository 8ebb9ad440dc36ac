"""Request bodies and WebSocket payloads accepted by the bridge."""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from filebridge.client.types import StreamType


class AgentMessage(BaseModel):
    """One inbound WebSocket frame: ``{"action": ..., "payload": ...}``."""
    action: Optional[str] = None
    payload: Optional[Any] = None


class ListFilesPayload(BaseModel):
    folder: str = "all"


class FilePayload(BaseModel):
    filename: str = Field(..., min_length=1)
    # Folder names are checked by the backend, not here
    folder: Optional[str] = None


class UploadRequest(BaseModel):
    filename: str = Field(..., min_length=1)
    # Base64 encoded file body
    content: str
    # "image", "video", or anything else for a generic upload
    type: Optional[str] = None


class DirectoryRequest(BaseModel):
    name: str = Field(..., min_length=1)
    parentFolder: Optional[str] = None


class TicketPayload(BaseModel):
    ticketId: str = Field(..., min_length=1)


class StreamRequest(BaseModel):
    source: str = Field(..., min_length=1)
    type: StreamType


class StopStreamPayload(BaseModel):
    streamId: str = Field(..., min_length=1)
