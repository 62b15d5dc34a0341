"""
Bucket endpoints: listing, single-object presigned URLs and multipart uploads.

Multipart flow:
1. GET    .../presigned/upload/multipart?parts=N  - open upload, one URL per part
2. PUT    <part url> (client -> storage directly)  - collect ETag per part
3. POST   .../presigned/upload/multipart           - complete with ordered ETags
   DELETE .../presigned/upload/multipart?uploadId= - abort instead

Keys may contain slashes; they are matched as path segments.

Status codes:
- 400: invalid input (part count, chunk size, empty/unordered part list, missing uploadId)
- 409: upload id unknown for this key, or already completed/aborted
- 502: storage service failure
- 503: storage not configured
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional

from presigned_storage.api.dependencies import get_presign_service, get_session_manager
from presigned_storage.schemas.upload import (
    CompletionRequest,
    FileListResponse,
    MultipartActionResponse,
    MultipartBeginResponse,
    UrlOperation,
    UrlResponse,
)
from presigned_storage.storage.errors import StorageError
from presigned_storage.storage.multipart import UploadSessionManager
from presigned_storage.storage.presign import PresignService

router = APIRouter()


def http_error(error: StorageError) -> HTTPException:
    """Translate a storage error into an HTTP error response."""
    return HTTPException(status_code=error.status_code, detail=error.message)


@router.get("/{bucket}/files", response_model=FileListResponse)
async def list_files(
    bucket: str,
    presign: PresignService = Depends(get_presign_service),
):
    """List every object key in the bucket."""
    try:
        files = await presign.list_files(bucket)
    except StorageError as e:
        raise http_error(e) from e
    return FileListResponse(files=files)


@router.get("/{bucket}/files/{key:path}/presigned/upload/multipart", response_model=MultipartBeginResponse)
async def begin_multipart_upload(
    bucket: str,
    key: str,
    parts: Optional[str] = Query(None, description="Number of parts (positive integer)"),
    size: Optional[int] = Query(None, ge=0, description="File size in bytes; checked against parts"),
    chunk_size: Optional[int] = Query(None, alias="chunkSize", description="Part size the client splits with"),
    manager: UploadSessionManager = Depends(get_session_manager),
):
    """
    Open a multipart upload and return one presigned URL per part.

    `parts` is validated by the session manager rather than by the query
    parser so that non-numeric values are reported as 400.
    """
    try:
        session, part_urls = await manager.begin(bucket, key, parts, file_size=size, chunk_size=chunk_size)
    except StorageError as e:
        raise http_error(e) from e
    return MultipartBeginResponse(upload_id=session.upload_id, parts=part_urls)


@router.post("/{bucket}/files/{key:path}/presigned/upload/multipart", response_model=MultipartActionResponse)
async def complete_multipart_upload(
    bucket: str,
    key: str,
    request: CompletionRequest,
    manager: UploadSessionManager = Depends(get_session_manager),
):
    """Complete a multipart upload with parts listed in ascending order."""
    try:
        session = await manager.complete(bucket, key, request.upload_id, request.parts)
    except StorageError as e:
        raise http_error(e) from e
    return MultipartActionResponse(
        message=f"Completed multipart upload for {key}",
        upload_id=session.upload_id,
    )


@router.delete("/{bucket}/files/{key:path}/presigned/upload/multipart", response_model=MultipartActionResponse)
async def abort_multipart_upload(
    bucket: str,
    key: str,
    upload_id: Optional[str] = Query(None, alias="uploadId"),
    manager: UploadSessionManager = Depends(get_session_manager),
):
    """Abort a multipart upload. Aborting twice is reported as 409."""
    try:
        session = await manager.abort(bucket, key, upload_id)
    except StorageError as e:
        raise http_error(e) from e
    return MultipartActionResponse(
        message=f"Aborted multipart upload for {key}",
        upload_id=session.upload_id,
    )


@router.get("/{bucket}/files/{key:path}/presigned/upload", response_model=UrlResponse)
async def presigned_upload_url(
    bucket: str,
    key: str,
    presign: PresignService = Depends(get_presign_service),
):
    """Presigned PUT URL for a single-part upload."""
    try:
        url = await presign.issue_single_url(bucket, key, UrlOperation.WRITE)
    except StorageError as e:
        raise http_error(e) from e
    return UrlResponse(url=url)


@router.get("/{bucket}/files/{key:path}/presigned/download", response_model=UrlResponse)
async def presigned_download_url(
    bucket: str,
    key: str,
    presign: PresignService = Depends(get_presign_service),
):
    """Presigned GET URL, valid for 5 minutes by default."""
    try:
        url = await presign.issue_single_url(bucket, key, UrlOperation.READ)
    except StorageError as e:
        raise http_error(e) from e
    return UrlResponse(url=url)
