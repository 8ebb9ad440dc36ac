from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from filebridge.server.state import BridgeState, get_state

logger = logging.getLogger(__name__)

router = APIRouter(tags=["system"])


@router.get("/health")
async def health_check(state: BridgeState = Depends(get_state)):
    """Simple health check endpoint."""
    return {"status": "ok", "connected": state.client.is_connected()}


@router.get("/api/status")
async def get_status(state: BridgeState = Depends(get_state)):
    return {"connected": state.client.is_connected()}


@router.post("/api/connect")
async def connect(state: BridgeState = Depends(get_state)):
    return await state.dispatcher.connect()


@router.post("/api/disconnect")
async def disconnect(state: BridgeState = Depends(get_state)):
    return await state.dispatcher.disconnect()


@router.get("/api/tools")
async def list_tools(state: BridgeState = Depends(get_state)):
    """List the tools the backend advertises."""
    return await state.client.get_tools()
