"""
File endpoints backed by the S3 storage gateway.

Routes (mounted at /api/AwsS3):
1. POST   /api/AwsS3                        - Upload a multipart file (optional "folder" field)
2. GET    /api/AwsS3?fileName=..&folder=..  - Stream a stored file back
3. DELETE /api/AwsS3?fileName=..&folder=..  - Remove a stored file

The gateway hides which kind of failure happened; these endpoints
only map its booleans / missing streams to status codes.
"""
import io
from typing import Iterator, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from app.storage.gateway import DEFAULT_CONTENT_TYPE, StorageGateway, get_storage_gateway

router = APIRouter()

# Chunk size used when streaming object bodies to the client
STREAM_CHUNK_SIZE = 64 * 1024


# ============================================================================
# Response Schemas
# ============================================================================

class UploadResponse(BaseModel):
    """Response schema for a successful upload."""
    message: str = Field(..., description="Always 'success'")
    file_name: str = Field(..., description="Stored file name")
    folder: Optional[str] = Field(None, description="Folder the file was stored in")

    model_config = {
        "json_schema_extra": {
            "example": {
                "message": "success",
                "file_name": "report.pdf",
                "folder": "reports"
            }
        }
    }


def _iter_body(body, chunk_size: int = STREAM_CHUNK_SIZE) -> Iterator[bytes]:
    """Yield an object body in chunks and close it afterwards."""
    try:
        yield from body.iter_chunks(chunk_size)
    finally:
        body.close()


# ============================================================================
# Endpoints
# ============================================================================

@router.post("", response_model=UploadResponse)
async def upload_file(
    file: Optional[UploadFile] = File(None),
    folder: Optional[str] = Form(None),
    gateway: StorageGateway = Depends(get_storage_gateway)
):
    """
    Upload a file to the bucket.

    The whole file is read into memory before it is handed to the
    gateway. The file name comes from the part's content-disposition
    header with leading whitespace removed.
    """
    if file is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="please provide valid file"
        )

    contents = await file.read()
    file_name = (file.filename or "").lstrip()
    if not contents or not file_name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="please provide valid file"
        )

    folder = folder or None
    uploaded = await gateway.upload_stream(
        io.BytesIO(contents),
        file_name,
        folder,
        content_type=file.content_type
    )

    if not uploaded:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"error uploading {file_name}"
        )

    return UploadResponse(message="success", file_name=file_name, folder=folder)


@router.get(
    "",
    responses={
        200: {"content": {"application/octet-stream": {}}},
        400: {"description": "Missing fileName or folder"},
        404: {"description": "File not found"},
    }
)
async def get_file(
    file_name: Optional[str] = Query(None, alias="fileName"),
    folder: Optional[str] = Query(None),
    gateway: StorageGateway = Depends(get_storage_gateway)
):
    """
    Stream a file from the bucket with its stored content type.

    Any read failure (missing object, bad credentials, ...) answers 404.
    """
    if not file_name or not folder:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="please provide valid file or valid folder name"
        )

    result = await gateway.read_file(file_name, folder)
    if result.stream is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="File not found"
        )

    return StreamingResponse(
        _iter_body(result.stream),
        media_type=result.content_type or DEFAULT_CONTENT_TYPE
    )


@router.delete(
    "",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        400: {"description": "Missing fileName or folder"},
        500: {"description": "Delete failed"},
    }
)
async def remove_file(
    file_name: Optional[str] = Query(None, alias="fileName"),
    folder: Optional[str] = Query(None),
    gateway: StorageGateway = Depends(get_storage_gateway)
):
    """Remove a file from the bucket."""
    if not file_name or not folder:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="please provide valid file and/or valid folder name"
        )

    if not await gateway.remove_file(file_name, folder):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"error removing {file_name}"
        )

    return Response(status_code=status.HTTP_204_NO_CONTENT)
