"""
Storage module for S3-compatible object storage.

This module hands out presigned URLs so clients upload and download directly.
The backend NEVER receives file bytes - files go directly to storage.
"""
from presigned_storage.storage.gateway import ObjectStoreGateway
from presigned_storage.storage.multipart import UploadSessionManager
from presigned_storage.storage.presign import PresignService

__all__ = ["ObjectStoreGateway", "UploadSessionManager", "PresignService"]
