"""
Presigned URL generation for single objects.

Used for small files (one PUT, no multipart session) and for downloads.
Each direction has its own validity window:
- read (GET): presign_download_expiration, 5 minutes by default
- write (PUT): presign_upload_expiration, 10 minutes by default
"""
import logging
from typing import List, Union

from presigned_storage.config import Settings
from presigned_storage.schemas.upload import UrlOperation
from presigned_storage.storage.errors import ValidationError
from presigned_storage.storage.gateway import ObjectStoreGateway
from presigned_storage.utils.metrics import presigned_urls_issued_total

logger = logging.getLogger(__name__)

CLIENT_METHODS = {
    UrlOperation.READ: "get_object",
    UrlOperation.WRITE: "put_object",
}


class PresignService:
    """Issues single-object presigned URLs and lists bucket contents."""

    def __init__(self, gateway: ObjectStoreGateway, settings: Settings):
        self._gateway = gateway
        self._settings = settings

    def expiration_for(self, operation: UrlOperation) -> int:
        """URL validity in seconds for the given direction."""
        if operation == UrlOperation.READ:
            return self._settings.presign_download_expiration
        return self._settings.presign_upload_expiration

    async def issue_single_url(
        self,
        bucket: str,
        key: str,
        operation: Union[UrlOperation, str],
    ) -> str:
        """
        Generate a time-bounded URL for reading or writing one object.

        Args:
            bucket: Bucket name
            key: Object key
            operation: 'read' or 'write'

        Returns:
            Presigned URL string

        Raises:
            ValidationError: Unknown operation
            GatewayError: Signing failed
        """
        try:
            operation = UrlOperation(operation)
        except ValueError:
            raise ValidationError(f"Invalid operation: {operation}. Must be 'read' or 'write'")

        expiration = self.expiration_for(operation)
        url = await self._gateway.sign_object_url(bucket, key, CLIENT_METHODS[operation], expiration)

        presigned_urls_issued_total.labels(operation=operation.value).inc()
        logger.debug(f"Issued presigned {operation.value} URL for {bucket}/{key} (expires in {expiration}s)")
        return url

    async def list_files(self, bucket: str) -> List[str]:
        """All object keys in the bucket."""
        return await self._gateway.list_objects(bucket)
