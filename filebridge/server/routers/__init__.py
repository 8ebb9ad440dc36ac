"""
Router initialization module.

Exports all API routers for the file bridge.
"""
from filebridge.server.routers import files, queue, realtime, system

__all__ = [
    "files",
    "queue",
    "realtime",
    "system",
]
