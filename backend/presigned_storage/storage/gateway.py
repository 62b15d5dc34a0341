"""
S3-compatible object storage gateway.

Uses boto3 with the S3-compatible API, so the same code talks to
IBM Cloud Object Storage, Cloudflare R2, MinIO or AWS S3.

The gateway is the only place that touches the storage SDK. It is
constructed explicitly from Settings and handed to the services that
need it (FastAPI dependency), so tests can swap in a fake.

All methods are async: boto3 is blocking, so each call runs in a
worker thread via asyncio.to_thread.
"""
import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from presigned_storage.config import Settings
from presigned_storage.storage.errors import StorageNotConfiguredError, wrap_client_error
from presigned_storage.utils.logging import log_gateway_failure
from presigned_storage.utils.metrics import gateway_failures_total, gateway_latency_seconds

logger = logging.getLogger(__name__)

# list_objects_v2 returns at most 1000 keys per page
LIST_PAGE_SIZE = 1000


class ObjectStoreGateway:
    """
    Capability boundary over an S3-compatible storage service.

    Provides multipart lifecycle calls (create, sign part, complete, abort),
    single-object presigned URLs and key listing.
    """

    def __init__(self, settings: Settings, client: Optional[Any] = None):
        """
        Initialize the gateway.

        Args:
            settings: Application settings (endpoint, credentials, region)
            client: Pre-built boto3 S3 client (tests); built from settings if omitted
        """
        self._settings = settings
        self._client = client

        if self._client is None and settings.storage_configured:
            # Signature v4 is required for presigned part URLs
            self._client = boto3.client(
                "s3",
                endpoint_url=settings.storage_endpoint,
                aws_access_key_id=settings.storage_access_key,
                aws_secret_access_key=settings.storage_secret_key,
                region_name=settings.storage_region,
                config=Config(
                    signature_version="s3v4",
                    s3={"addressing_style": settings.storage_addressing_style},
                ),
            )
            logger.info(f"Storage client initialized for endpoint: {settings.storage_endpoint}")
        elif self._client is None:
            logger.warning(
                "Object storage not configured. "
                "Set STORAGE_ENDPOINT, STORAGE_ACCESS_KEY and STORAGE_SECRET_KEY."
            )

    @property
    def is_configured(self) -> bool:
        """Check if the storage client is available."""
        return self._client is not None

    async def _call(self, operation: str, fn, *args, **kwargs):
        """Run a blocking SDK call in a thread and translate its errors."""
        if not self.is_configured:
            raise StorageNotConfiguredError()

        start = time.time()
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except (ClientError, BotoCoreError) as e:
            gateway_failures_total.labels(operation=operation).inc()
            error = wrap_client_error(operation, e)
            log_gateway_failure(logger, operation=operation, error=error.message)
            raise error from e
        finally:
            gateway_latency_seconds.labels(operation=operation).observe(time.time() - start)

    # Multipart lifecycle

    async def create_multipart_upload(self, bucket: str, key: str) -> str:
        """
        Open a multipart upload.

        Returns:
            The opaque upload id issued by the storage service
        """
        response = await self._call(
            "create_multipart_upload",
            self._client.create_multipart_upload,
            Bucket=bucket,
            Key=key,
        )
        return response["UploadId"]

    async def sign_part_url(self, bucket: str, key: str, upload_id: str, part_number: int) -> str:
        """Generate a presigned PUT URL bound to one upload id and part number."""
        return await self._call(
            "sign_part_url",
            self._client.generate_presigned_url,
            ClientMethod="upload_part",
            Params={
                "Bucket": bucket,
                "Key": key,
                "UploadId": upload_id,
                "PartNumber": part_number,
            },
            ExpiresIn=self._settings.presign_part_expiration,
        )

    async def verify_upload(self, bucket: str, key: str, upload_id: str) -> None:
        """
        Check that upload_id names an open upload for this bucket/key.

        The upload id comes back from the client, so it is checked with
        list_parts before being used. Storage answers NoSuchUpload for ids
        that are unknown, belong to another key, or are already terminal.
        """
        await self._call(
            "verify_upload",
            self._client.list_parts,
            Bucket=bucket,
            Key=key,
            UploadId=upload_id,
            MaxParts=1,
        )

    async def complete_multipart_upload(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: List[Dict[str, Any]],
    ) -> Dict[str, Any]:
        """
        Finalize the upload.

        Args:
            parts: [{"ETag": ..., "PartNumber": ...}] in ascending part order.
                   ETags are forwarded exactly as the client received them.
        """
        return await self._call(
            "complete_multipart_upload",
            self._client.complete_multipart_upload,
            Bucket=bucket,
            Key=key,
            UploadId=upload_id,
            MultipartUpload={"Parts": parts},
        )

    async def abort_multipart_upload(self, bucket: str, key: str, upload_id: str) -> None:
        """Abort the upload; storage discards every part already uploaded."""
        await self._call(
            "abort_multipart_upload",
            self._client.abort_multipart_upload,
            Bucket=bucket,
            Key=key,
            UploadId=upload_id,
        )

    # Single objects

    async def sign_object_url(self, bucket: str, key: str, client_method: str, expiration: int) -> str:
        """
        Generate a presigned URL for a single object.

        Args:
            client_method: 'get_object' or 'put_object'
            expiration: URL validity in seconds
        """
        return await self._call(
            "sign_object_url",
            self._client.generate_presigned_url,
            ClientMethod=client_method,
            Params={"Bucket": bucket, "Key": key},
            ExpiresIn=expiration,
        )

    async def list_objects(self, bucket: str) -> List[str]:
        """List every object key in the bucket, following continuation tokens."""
        keys: List[str] = []
        continuation_token = None

        while True:
            kwargs = {"Bucket": bucket, "MaxKeys": LIST_PAGE_SIZE}
            if continuation_token:
                kwargs["ContinuationToken"] = continuation_token

            response = await self._call("list_objects", self._client.list_objects_v2, **kwargs)
            keys.extend(obj["Key"] for obj in response.get("Contents", []))

            if not response.get("IsTruncated"):
                break
            continuation_token = response.get("NextContinuationToken")

        return keys
