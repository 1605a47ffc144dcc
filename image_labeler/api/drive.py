"""
FastAPI routes for Drive access.

Lists the images of a folder or streams one file's bytes back unmodified.
"""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from googleapiclient.errors import HttpError
from starlette.concurrency import run_in_threadpool

from image_labeler.api.deps import get_drive_gateway
from image_labeler.errors import BadRequestError, from_http_error
from image_labeler.models.schemas import DriveFile
from image_labeler.services.drive_gateway import DriveGateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Drive"])


@router.get("/drive", response_model=List[DriveFile])
async def get_drive(
    folder_id: Optional[str] = Query(None, alias="folderId", description="Folder to list images from"),
    file_id: Optional[str] = Query(None, alias="fileId", description="File to stream"),
    width: Optional[int] = Query(None, alias="w", description="Ignored; sent by image loaders"),
    quality: Optional[int] = Query(None, alias="q", description="Ignored; sent by image loaders"),
    gateway: DriveGateway = Depends(get_drive_gateway)
):
    """
    List images in a folder (`folderId`) or fetch one file (`fileId`).

    When both are given the file is fetched.
    """
    logger.info(f"Drive request for folderId={folder_id}, fileId={file_id}")

    if file_id:
        return await _stream_file(gateway, file_id)
    if folder_id:
        return await _list_folder(gateway, folder_id)

    raise BadRequestError("Folder ID or File ID is required")


async def _list_folder(gateway: DriveGateway, folder_id: str) -> List[Dict[str, Any]]:
    try:
        return await run_in_threadpool(gateway.list_images, folder_id)
    except HttpError as e:
        raise from_http_error("Failed to list files from Google Drive", e) from e


async def _stream_file(gateway: DriveGateway, file_id: str) -> StreamingResponse:
    # Metadata first, so upstream failures are reported before the body starts
    try:
        metadata = await run_in_threadpool(gateway.get_file_metadata, file_id)
    except HttpError as e:
        raise from_http_error("Failed to fetch file from Google Drive", e) from e

    mime_type = metadata.get("mimeType") or "application/octet-stream"
    name = metadata.get("name") or file_id

    return StreamingResponse(
        gateway.iter_file_chunks(file_id),
        media_type=mime_type,
        headers={"Content-Disposition": f"inline; filename*=UTF-8''{quote(name)}"}
    )
