# ============================================================================
# filebridge/server/api.py
# FastAPI application factory and lifecycle
# ============================================================================
#
# PURPOSE:
# Assembles the web server: routers, CORS, error envelopes, and the lifespan
# hooks that open the backend channel at startup and close it at shutdown.
#
# ERROR ENVELOPE:
# Every BridgeError raised by a handler becomes
#   {"error": <message>, "code": <code>}
# with the status code from BridgeError.HTTP_STATUS_MAP. Request validation
# failures are reported the same way as INVALID_MESSAGE (500); only missing
# files (404) and oversized bodies (413) get a status of their own.
#
# ============================================================================

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from filebridge import __version__
from filebridge.base.config import BridgeConfig, get_config, setup_logging
from filebridge.errors import BridgeError, ErrorCode, InvalidMessageError, handle_error
from filebridge.server.routers import files, queue, realtime, system
from filebridge.server.state import BridgeState

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    state: BridgeState = app.state.bridge
    config = state.config
    logger.info(f"File bridge starting on {config.server.host}:{config.server.port}")

    if config.backend.auto_connect:
        try:
            await state.client.connect()
        except BridgeError as e:
            logger.error(f"[Agent] Could not auto-connect to MCP server: {e.message}")

    yield

    logger.info("[Agent] Shutting down...")
    connected = await state.client.disconnect()
    logger.info(f"[Agent] Backend channel closed (connected={connected})")


async def bridge_error_handler(request: Request, exc: BridgeError):
    """Convert BridgeError to the JSON error envelope."""
    if exc.http_status >= 500:
        logger.error(f"[API] {request.method} {request.url.path} -> {exc.code.value}: {exc.message}")
    else:
        logger.info(f"[API] {request.method} {request.url.path} -> {exc.code.value}: {exc.message}")
    return JSONResponse(status_code=exc.http_status, content=exc.to_response())


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"[API] Unhandled error on {request.method} {request.url.path}")
    return await bridge_error_handler(request, handle_error(exc))


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    err = InvalidMessageError(f"Invalid request: {location} {first.get('msg', '')}".strip())
    return await bridge_error_handler(request, err)


def create_app(state: Optional[BridgeState] = None, config: Optional[BridgeConfig] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        state: Pre-built bridge state (tests pass one with a stubbed client)
        config: Configuration to use when no state is given
    """
    if state is None:
        state = BridgeState(config=config or get_config())
    cfg = state.config

    app = FastAPI(
        title="File Bridge API",
        description="REST and WebSocket front door for an MCP file-hosting backend",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.bridge = state

    app.add_exception_handler(BridgeError, bridge_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    max_body = cfg.server.max_body_bytes

    @app.middleware("http")
    async def limit_body_size(request: Request, call_next):
        length = request.headers.get("content-length")
        if length and length.isdigit() and int(length) > max_body:
            err = BridgeError(
                ErrorCode.PAYLOAD_TOO_LARGE,
                f"Request body exceeds {cfg.server.max_body_mb} MB",
            )
            return JSONResponse(status_code=err.http_status, content=err.to_response())
        return await call_next(request)

    origins = list(cfg.server.allowed_origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(system.router)
    app.include_router(files.router)
    app.include_router(queue.router)
    app.include_router(realtime.router)

    return app


def serve(host: Optional[str] = None, port: Optional[int] = None, config: Optional[BridgeConfig] = None):
    cfg = config or get_config()
    setup_logging(cfg)
    app = create_app(config=cfg)
    host = host or cfg.server.host
    port = port or cfg.server.port
    logger.info(f"Frontend API: http://localhost:{port}/api  WebSocket: ws://localhost:{port}/ws")
    uvicorn.run(app, host=host, port=port, log_level=cfg.log.level.lower())
