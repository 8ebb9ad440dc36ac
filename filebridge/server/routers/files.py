from __future__ import annotations

import base64
import binascii
import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from filebridge.errors import BridgeError, NotConnectedError, NotFoundError
from filebridge.server.mime import guess_mime_type
from filebridge.server.schemas import DirectoryRequest, UploadRequest
from filebridge.server.state import BridgeState, get_state

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["files"])


@router.get("/files")
async def list_files(folder: str = Query("all"), state: BridgeState = Depends(get_state)):
    return await state.client.list_files(folder)


@router.get("/images")
async def list_images(state: BridgeState = Depends(get_state)):
    return await state.client.list_images()


@router.get("/videos")
async def list_videos(state: BridgeState = Depends(get_state)):
    return await state.client.list_videos()


@router.get("/file/{folder}/{filename}")
async def get_file(folder: str, filename: str, state: BridgeState = Depends(get_state)):
    """
    Stream a stored file back as raw bytes.

    The backend hands the content over base64 encoded; it is decoded here and
    served with a content type guessed from the extension. Any failure to
    produce the bytes (other than a missing channel) is reported as 404.
    """
    try:
        content = await state.client.download_file(filename, folder, "base64")
        body = base64.b64decode(content)
    except NotConnectedError:
        raise
    except BridgeError as e:
        raise NotFoundError(e.message, details={"folder": folder, "filename": filename}) from e
    except (binascii.Error, ValueError) as e:
        raise NotFoundError(
            f"Backend returned undecodable content for {filename}",
            details={"folder": folder, "filename": filename, "reason": str(e)},
        ) from e

    return Response(content=body, media_type=guess_mime_type(filename))


@router.get("/file/{folder}/{filename}/info")
async def get_file_info(folder: str, filename: str, state: BridgeState = Depends(get_state)):
    try:
        return await state.client.get_file_info(filename, folder)
    except NotConnectedError:
        raise
    except BridgeError as e:
        raise NotFoundError(e.message, details={"folder": folder, "filename": filename}) from e


@router.post("/upload")
async def upload_file(req: UploadRequest, state: BridgeState = Depends(get_state)):
    message = await state.dispatcher.upload(req)
    return {"success": True, "message": message}


@router.delete("/file/{folder}/{filename}")
async def delete_file(folder: str, filename: str, state: BridgeState = Depends(get_state)):
    message = await state.dispatcher.delete(filename, folder)
    return {"success": True, "message": message}


@router.post("/directories")
async def create_directory(req: DirectoryRequest, state: BridgeState = Depends(get_state)):
    message = await state.client.create_directory(req.name, req.parentFolder)
    return {"success": True, "message": message}
