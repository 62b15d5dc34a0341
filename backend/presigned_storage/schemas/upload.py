"""
Pydantic schemas for presigned URL and multipart upload endpoints.

Wire names follow the storage API conventions used by browser and CLI
clients (uploadId, partsETags, ETag, PartNumber); Python attributes
use snake_case.
"""
import enum
from pydantic import BaseModel, Field
from typing import List, Optional


class SessionStatus(str, enum.Enum):
    """Lifecycle state of a multipart upload session."""
    CREATED = "created"            # Upload opened in storage
    PARTS_ISSUED = "parts_issued"  # One presigned URL issued per part
    COMPLETED = "completed"        # Object assembled (terminal)
    ABORTED = "aborted"            # Parts discarded (terminal)


class UrlOperation(str, enum.Enum):
    """Direction of a single-object presigned URL."""
    READ = "read"
    WRITE = "write"


class UploadSession(BaseModel):
    """One in-flight multipart upload, identified by bucket/key/upload_id."""
    bucket: str
    key: str
    upload_id: str = Field(..., min_length=1)
    status: SessionStatus
    part_count: Optional[int] = Field(None, gt=0)  # unknown once aborted

    @property
    def is_terminal(self) -> bool:
        return self.status in (SessionStatus.COMPLETED, SessionStatus.ABORTED)


class PartUrl(BaseModel):
    """Presigned PUT URL for a single part."""
    part: int = Field(..., ge=1, description="1-based part number")
    url: str = Field(..., description="Presigned upload_part URL")


class PartResult(BaseModel):
    """Completion tag returned by storage for one uploaded part."""
    part_number: int = Field(..., ge=1, alias="PartNumber")
    etag: str = Field(..., min_length=1, alias="ETag")

    class Config:
        populate_by_name = True

    def to_storage(self) -> dict:
        """Shape expected by complete_multipart_upload."""
        return {"ETag": self.etag, "PartNumber": self.part_number}


class CompletionRequest(BaseModel):
    """
    Body of the complete endpoint.

    Part ordering and completeness are checked by the session manager
    so that violations surface as 400 rather than schema errors.
    """
    upload_id: str = Field(..., alias="uploadId")
    parts: List[PartResult] = Field(..., alias="partsETags")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "uploadId": "0100018a-7f3e-...",
                "partsETags": [
                    {"ETag": "\"9b2cf535f27731c974343645a3985328\"", "PartNumber": 1},
                    {"ETag": "\"6f8db599de986fab7a21625b7916589c\"", "PartNumber": 2}
                ]
            }
        }


class MultipartBeginResponse(BaseModel):
    """Response of the begin endpoint: upload id plus one URL per part."""
    upload_id: str = Field(..., alias="uploadId")
    parts: List[PartUrl]

    class Config:
        populate_by_name = True


class MultipartActionResponse(BaseModel):
    """Response of complete and abort."""
    message: str
    upload_id: str = Field(..., alias="uploadId")

    class Config:
        populate_by_name = True


class UrlResponse(BaseModel):
    """Single presigned URL."""
    url: str


class FileListResponse(BaseModel):
    """Object keys in a bucket."""
    files: List[str]
