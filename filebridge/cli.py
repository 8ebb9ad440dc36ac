"""
File bridge CLI: entrypoint for running the web server and poking the backend.

Usage examples:
    filebridge serve --port 3000
    filebridge tools --server-path ../dist/index.js
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

from filebridge.base.config import BridgeConfig, get_config, setup_logging
from filebridge.client.mcp_client import MCPFileClient
from filebridge.errors import BridgeError

logger = logging.getLogger(__name__)


def _apply_overrides(config: BridgeConfig, args) -> BridgeConfig:
    backend = config.backend
    if args.server_path:
        backend = replace(backend, server_path=Path(args.server_path).resolve())
    if args.storage_dir:
        backend = replace(backend, storage_dir=Path(args.storage_dir).resolve())
    if getattr(args, "no_auto_connect", False):
        backend = replace(backend, auto_connect=False)

    server = config.server
    if getattr(args, "host", None):
        server = replace(server, host=args.host)
    if getattr(args, "port", None):
        server = replace(server, port=args.port)

    return replace(config, backend=backend, server=server)


def run_serve(args) -> int:
    """Launch the web server."""
    from filebridge.server.api import serve

    config = _apply_overrides(get_config(), args)
    serve(config=config)
    return 0


async def _list_tools(config: BridgeConfig):
    client = MCPFileClient(config=config.backend)
    await client.connect()
    try:
        return await client.get_tools()
    finally:
        await client.disconnect()


def run_tools(args) -> int:
    """Connect once and print the backend's tool list."""
    config = _apply_overrides(get_config(), args)
    setup_logging(config)
    try:
        tools = asyncio.run(_list_tools(config))
    except BridgeError as e:
        logger.error(f"Could not list tools: {e.message}")
        print(json.dumps(e.to_dict(), indent=2, default=str), file=sys.stderr)
        return 1
    print(json.dumps(tools, indent=2))
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="MCP file bridge")
    subparsers = parser.add_subparsers(dest="command", required=True)

    backend_args = argparse.ArgumentParser(add_help=False)
    backend_args.add_argument("--server-path", help="Backend entry point (default: ../dist/index.js)")
    backend_args.add_argument("--storage-dir", help="Storage root passed to the backend as STORAGE_DIR")

    serve_parser = subparsers.add_parser("serve", parents=[backend_args], help="Start the web server")
    serve_parser.add_argument("--host", help="Interface to bind")
    serve_parser.add_argument("--port", type=int, help="Port to listen on (default: $PORT or 3000)")
    serve_parser.add_argument("--no-auto-connect", action="store_true", help="Do not connect to the backend at startup")
    serve_parser.set_defaults(func=run_serve)

    tools_parser = subparsers.add_parser("tools", parents=[backend_args], help="Print the backend's tool list")
    tools_parser.set_defaults(func=run_tools)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
