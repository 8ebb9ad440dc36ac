"""Shapes of the JSON documents returned by the file-hosting backend.

These mirror what the backend sends; the bridge never caches or mutates them.
"""
from __future__ import annotations

from typing import List, Literal, TypedDict

Folder = Literal["IMAGES", "VIDEOS", "root"]
ListingFolder = Literal["IMAGES", "VIDEOS", "root", "all"]
Encoding = Literal["base64", "utf8"]
StreamType = Literal["rtmp", "rtsp"]


class FileInfo(TypedDict, total=False):
    name: str
    type: str
    mimeType: str
    path: str
    size: int
    sizeHuman: str
    created: str
    modified: str


class FolderListing(TypedDict, total=False):
    folder: str
    files: List[FileInfo]
    images: List[FileInfo]
    videos: List[FileInfo]


class WaitingTicket(TypedDict):
    position: int
    ticketId: str
    estimatedWait: float


class QueueStatus(TypedDict, total=False):
    active: int
    waiting: int
    maxConcurrent: int
    waitingTickets: List[WaitingTicket]


class DownloadQueueStatus(TypedDict):
    active: List[dict]
    waiting: List[dict]
    stats: dict


class TicketResponse(TypedDict, total=False):
    status: Literal["granted", "queued", "active", "expired"]
    ticketId: str
    position: int
    waitTime: float
    remainingTime: float


class StreamInfo(TypedDict, total=False):
    id: str
    name: str
    status: str
    url: str
    startedAt: str
    uptime: float
    playlistUrl: str


__all__ = [
    "Folder",
    "ListingFolder",
    "Encoding",
    "StreamType",
    "FileInfo",
    "FolderListing",
    "QueueStatus",
    "DownloadQueueStatus",
    "TicketResponse",
    "StreamInfo",
]
