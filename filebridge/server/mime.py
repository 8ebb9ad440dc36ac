"""Content-type inference for files streamed back from the backend."""
from __future__ import annotations

import os
from typing import Dict

DEFAULT_MIME_TYPE = "application/octet-stream"

MIME_TYPES: Dict[str, str] = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".mp4": "video/mp4",
    ".tiff": "image/tiff",
    ".avif": "image/avif",
    ".heic": "image/heic",
}


def guess_mime_type(filename: str) -> str:
    _, ext = os.path.splitext(filename)
    return MIME_TYPES.get(ext.lower(), DEFAULT_MIME_TYPE)
