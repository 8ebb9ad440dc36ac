# ============================================================================
# filebridge/server/__init__.py
# Server Package - FastAPI Web Server
# ============================================================================
#
# PURPOSE:
# Exposes the MCP file backend to browsers and scripts.
#
# API ARCHITECTURE:
# Browser / scripts <- HTTP, WebSocket, SSE -> FastAPI <- stdio MCP -> backend
#
# KEY MODULES:
# - api.py: application factory, lifespan, error envelopes, serve()
# - state.py: per-app BridgeState (client + broadcaster + dispatcher)
# - dispatcher.py: action name -> client call routing
# - broadcast.py: change notifications to WebSockets and SSE subscribers
# - mime.py: extension -> content type table
# - routers/: REST, queue/stream, system and realtime endpoints
#
# ============================================================================
