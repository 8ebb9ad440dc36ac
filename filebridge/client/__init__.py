"""MCP client for the file-hosting backend."""
from filebridge.client.mcp_client import ConnectionState, MCPFileClient

__all__ = ["ConnectionState", "MCPFileClient"]
