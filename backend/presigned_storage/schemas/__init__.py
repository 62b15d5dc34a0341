"""
Pydantic schemas for API request/response validation.
"""
from presigned_storage.schemas.upload import (
    SessionStatus,
    UrlOperation,
    UploadSession,
    PartUrl,
    PartResult,
    CompletionRequest,
    MultipartBeginResponse,
    MultipartActionResponse,
    UrlResponse,
    FileListResponse,
)

__all__ = [
    "SessionStatus",
    "UrlOperation",
    "UploadSession",
    "PartUrl",
    "PartResult",
    "CompletionRequest",
    "MultipartBeginResponse",
    "MultipartActionResponse",
    "UrlResponse",
    "FileListResponse",
]
