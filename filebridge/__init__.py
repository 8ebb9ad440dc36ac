"""File bridge: REST and WebSocket front door for an MCP file-hosting backend."""

__version__ = "1.0.0"
