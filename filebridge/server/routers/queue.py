"""
Download queue and live stream endpoints.

Admission, ticket lifetimes and transcoding all live in the backend; these
routes only forward the calls and return whatever the backend decided.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from filebridge.server.schemas import FilePayload, StreamRequest
from filebridge.server.state import BridgeState, get_state

router = APIRouter(prefix="/api", tags=["queue"])


@router.get("/queue")
async def queue_status(state: BridgeState = Depends(get_state)):
    return await state.client.get_queue_status()


@router.post("/queue/join")
async def join_queue(req: FilePayload, state: BridgeState = Depends(get_state)):
    return await state.client.join_download_queue(req.filename, req.folder)


@router.get("/queue/tickets/{ticket_id}")
async def check_ticket(ticket_id: str, state: BridgeState = Depends(get_state)):
    return await state.client.check_ticket(ticket_id)


@router.get("/queue/downloads")
async def download_queue_status(state: BridgeState = Depends(get_state)):
    return await state.client.get_download_queue_status()


@router.get("/streams")
async def list_streams(state: BridgeState = Depends(get_state)):
    return await state.client.get_active_streams()


@router.post("/streams")
async def start_stream(req: StreamRequest, state: BridgeState = Depends(get_state)):
    return await state.client.start_stream(req.source, req.type)


@router.delete("/streams/{stream_id}")
async def stop_stream(stream_id: str, state: BridgeState = Depends(get_state)):
    message = await state.client.stop_stream(stream_id)
    return {"success": True, "message": message}
