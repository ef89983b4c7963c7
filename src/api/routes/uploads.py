"""
Upload API endpoints.

Two ways to put a file into the current folder:
1. Proxy upload (POST /): the file goes through this service, then the
   tree is rebuilt before responding
2. Presigned upload (POST /presigned): the browser gets a short-lived PUT
   URL, uploads directly to storage, then calls POST /bucket/refresh
"""

import logging
from typing import Annotated

from fastapi import APIRouter, File, Form, HTTPException, UploadFile, status
from pydantic import BaseModel, Field

from ...core.explorer.navigation import InvalidObjectNameError
from ..dependencies import AuthenticatedUser, ExplorerDep, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class UploadResponse(BaseModel):
    """Response after a proxied upload."""
    key: str = Field(description="Object key the file was stored under")
    size: int = Field(description="Bytes written")
    content_type: str = Field(description="Content type stored with the object")
    refreshed: bool = Field(description="Whether the tree was rebuilt after the upload")
    message: str = Field(description="Status message")


class PresignRequest(BaseModel):
    """Request for a direct-to-storage upload URL."""
    filename: str = Field(min_length=1, description="Name of the file to upload")
    content_type: str = Field(min_length=1, description="MIME type the browser will send")
    folder_key: str = Field(default="", description="Target folder; empty for the bucket root")


class PresignResponse(BaseModel):
    """A pre-authorized upload target."""
    url: str = Field(description="URL to send the file to")
    method: str = Field(description="HTTP method to use")
    key: str = Field(description="Object key the file will be stored under")
    content_type: str = Field(description="Content-Type header the upload must carry")
    expires_in: int = Field(description="Seconds until the URL stops working")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload file",
    description="Upload a file into a folder through the API, then rebuild the tree",
)
async def upload_file(
    file: Annotated[UploadFile, File(description="File to upload")],
    folder_key: Annotated[str, Form()] = "",
    api_key: AuthenticatedUser = None,
    explorer: ExplorerDep = None,
    settings: SettingsDep = None,
) -> UploadResponse:
    """
    Store a file under ``folder_key`` and rebuild the tree.

    The object key is folder_key + the uploaded filename.
    Max file size: configured in settings (default 100MB)
    """
    filename = file.filename or ""

    logger.info(
        "Upload started",
        extra={
            "bucket": explorer.bucket,
            "folder_key": folder_key,
            "upload_filename": filename,
            "content_type": file.content_type,
        }
    )

    data = await file.read()
    if len(data) > settings.max_upload_size_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large. Maximum size: {settings.max_upload_size_mb}MB"
        )

    try:
        result = await explorer.upload(
            folder_key=folder_key,
            filename=filename,
            data=data,
            content_type=file.content_type,
        )
    except InvalidObjectNameError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    message = f'File "{filename}" uploaded successfully.'
    if not result.refreshed:
        message += " The file list could not be refreshed; try again later."

    return UploadResponse(
        key=result.key,
        size=result.size,
        content_type=result.content_type,
        refreshed=result.refreshed,
        message=message,
    )


@router.post(
    "/presigned",
    response_model=PresignResponse,
    status_code=status.HTTP_200_OK,
    summary="Get presigned upload URL",
    description="Return a short-lived URL the browser can upload a file to directly",
)
async def create_presigned_upload(
    request: PresignRequest,
    api_key: AuthenticatedUser = None,
    explorer: ExplorerDep = None,
) -> PresignResponse:
    try:
        presigned = await explorer.presign_upload(
            folder_key=request.folder_key,
            filename=request.filename,
            content_type=request.content_type,
        )
    except InvalidObjectNameError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    return PresignResponse(
        url=presigned.url,
        method=presigned.method,
        key=presigned.key,
        content_type=presigned.content_type,
        expires_in=presigned.expires_in,
    )
