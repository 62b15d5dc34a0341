"""
Multipart upload session management.

Handles the server side of a parallel multipart upload:

Flow:
1. Client asks to begin an upload for N parts
2. Backend opens the upload in storage and signs one PUT URL per part
3. Client uploads each part directly to storage and collects ETags
4. Client sends the ordered (PartNumber, ETag) list to complete
5. Backend finalizes the object, or aborts it when the client gives up

The backend keeps no session state of its own. Storage tracks the open
upload under its upload id, and that id is re-verified against the
bucket/key every time the client sends it back.
"""
import asyncio
import logging
import time
from typing import List, Optional, Sequence, Tuple, Union

from presigned_storage.client.chunking import MAX_CHUNK_SIZE, MIN_CHUNK_SIZE, count_chunks
from presigned_storage.config import Settings
from presigned_storage.schemas.upload import PartResult, PartUrl, SessionStatus, UploadSession
from presigned_storage.storage.errors import GatewayError, StorageError, ValidationError
from presigned_storage.storage.gateway import ObjectStoreGateway
from presigned_storage.utils.logging import (
    log_multipart_aborted,
    log_multipart_completed,
    log_multipart_started,
)
from presigned_storage.utils.metrics import multipart_parts_requested, multipart_sessions_total

logger = logging.getLogger(__name__)


def parse_part_count(value: Union[int, str, None], max_parts: int) -> int:
    """
    Parse a part count coming from client input.

    Accepts ints and decimal digit strings. Booleans, floats, empty values,
    zero, negatives and counts above max_parts are rejected.

    Raises:
        ValidationError: If the value is not a usable part count
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"Invalid part count: {value!r}")

    if isinstance(value, int):
        count = value
    elif isinstance(value, str) and value.strip().isascii() and value.strip().isdigit():
        # Unicode digits such as "²" pass isdigit() but not int()
        count = int(value.strip())
    else:
        raise ValidationError(f"Invalid part count: {value!r}")

    if count <= 0:
        raise ValidationError(f"Part count must be positive, got {count}")
    if count > max_parts:
        raise ValidationError(f"Part count {count} exceeds the maximum of {max_parts}")
    return count


def validate_parts(parts: Sequence[PartResult]) -> None:
    """
    Check that a completion list is non-empty, ascending and gap-free (1..N).

    Raises:
        ValidationError: On empty, unordered, duplicated or gapped lists
    """
    if not parts:
        raise ValidationError("Completion requires at least one part")

    for expected, part in enumerate(parts, start=1):
        if part.part_number != expected:
            raise ValidationError(
                f"Parts must be listed in ascending order without gaps or duplicates: "
                f"expected part {expected}, got {part.part_number}"
            )


class UploadSessionManager:
    """
    Lifecycle of multipart upload sessions.

    Responsibilities:
    - Validate begin/complete/abort input before touching storage
    - Open uploads and issue one presigned URL per part
    - Finalize or abort uploads, propagating every storage failure
    """

    def __init__(self, gateway: ObjectStoreGateway, settings: Settings):
        self._gateway = gateway
        self._settings = settings

    @staticmethod
    def _require_upload_id(upload_id: Optional[str]) -> str:
        if not upload_id or not upload_id.strip():
            raise ValidationError("uploadId is required")
        return upload_id

    async def begin(
        self,
        bucket: str,
        key: str,
        part_count: Union[int, str, None],
        file_size: Optional[int] = None,
        chunk_size: Optional[int] = None,
    ) -> Tuple[UploadSession, List[PartUrl]]:
        """
        Open a multipart upload and sign one URL per part.

        Args:
            bucket: Target bucket
            key: Target object key
            part_count: Requested number of parts (raw client input)
            file_size: Optional file size; when given, part_count must match
                       the chunk plan for that size
            chunk_size: Part size the client splits with; defaults to the
                        configured multipart_chunk_size

        Returns:
            Tuple of (session with status=parts_issued, part URLs 1..N)

        Raises:
            ValidationError: Bad part count, chunk size out of bounds or size
                             mismatch (no storage call made)
            GatewayError: Storage failed to open the upload or sign a URL
        """
        count = parse_part_count(part_count, self._settings.multipart_max_parts)

        if chunk_size is None:
            chunk_size = self._settings.multipart_chunk_size
        elif not MIN_CHUNK_SIZE <= chunk_size <= MAX_CHUNK_SIZE:
            raise ValidationError(
                f"Chunk size must be between {MIN_CHUNK_SIZE} and {MAX_CHUNK_SIZE} bytes, "
                f"got {chunk_size}"
            )

        if file_size is not None:
            if file_size < 0:
                raise ValidationError(f"File size must be >= 0, got {file_size}")
            expected = count_chunks(file_size, chunk_size)
            if expected != count:
                raise ValidationError(
                    f"Part count {count} does not match {expected} parts "
                    f"of {chunk_size} bytes for {file_size} bytes"
                )

        start = time.time()
        upload_id = await self._gateway.create_multipart_upload(bucket, key)
        session = UploadSession(
            bucket=bucket,
            key=key,
            upload_id=upload_id,
            status=SessionStatus.CREATED,
            part_count=count,
        )

        try:
            urls = await asyncio.gather(*[
                self._gateway.sign_part_url(bucket, key, upload_id, part_number)
                for part_number in range(1, count + 1)
            ])
        except StorageError:
            # No URLs are handed out, so nothing can ever complete this upload
            await self._discard(session)
            raise

        parts = [PartUrl(part=number, url=url) for number, url in enumerate(urls, start=1)]
        session.status = SessionStatus.PARTS_ISSUED

        multipart_sessions_total.labels(status="started").inc()
        multipart_parts_requested.observe(count)
        log_multipart_started(
            logger,
            bucket=bucket,
            key=key,
            upload_id=upload_id,
            part_count=count,
            duration_ms=(time.time() - start) * 1000,
        )
        return session, parts

    async def _discard(self, session: UploadSession) -> None:
        """Abort an upload whose part URLs could not be issued."""
        try:
            await self._gateway.abort_multipart_upload(session.bucket, session.key, session.upload_id)
        except StorageError as e:
            logger.warning(f"Could not abort upload {session.upload_id} after signing failure: {e}")
            return
        session.status = SessionStatus.ABORTED
        multipart_sessions_total.labels(status="aborted").inc()
        log_multipart_aborted(
            logger,
            bucket=session.bucket,
            key=session.key,
            upload_id=session.upload_id,
            reason="part URL signing failed",
        )

    async def complete(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: Sequence[PartResult],
    ) -> UploadSession:
        """
        Finalize a multipart upload.

        Storage remains the authority on completeness (missing parts,
        wrong ETags); locally only the list shape is checked.

        Raises:
            ValidationError: Empty upload id, empty/unordered/gapped part list
            StateError: Upload id unknown for bucket/key or already terminal
            GatewayError: Storage rejected the completion
        """
        upload_id = self._require_upload_id(upload_id)
        validate_parts(parts)

        start = time.time()
        await self._gateway.verify_upload(bucket, key, upload_id)
        await self._gateway.complete_multipart_upload(
            bucket,
            key,
            upload_id,
            [part.to_storage() for part in parts],
        )

        multipart_sessions_total.labels(status="completed").inc()
        log_multipart_completed(
            logger,
            bucket=bucket,
            key=key,
            upload_id=upload_id,
            part_count=len(parts),
            duration_ms=(time.time() - start) * 1000,
        )
        return UploadSession(
            bucket=bucket,
            key=key,
            upload_id=upload_id,
            status=SessionStatus.COMPLETED,
            part_count=len(parts),
        )

    async def abort(self, bucket: str, key: str, upload_id: str) -> UploadSession:
        """
        Abort a multipart upload, discarding uploaded parts.

        A repeated abort is not hidden: storage answers NoSuchUpload and
        that surfaces as StateError.

        Raises:
            ValidationError: Empty upload id
            StateError: Upload id unknown for bucket/key or already terminal
            GatewayError: Storage failed to abort
        """
        upload_id = self._require_upload_id(upload_id)

        await self._gateway.verify_upload(bucket, key, upload_id)
        try:
            await self._gateway.abort_multipart_upload(bucket, key, upload_id)
        except GatewayError:
            multipart_sessions_total.labels(status="abort_failed").inc()
            raise

        multipart_sessions_total.labels(status="aborted").inc()
        log_multipart_aborted(logger, bucket=bucket, key=key, upload_id=upload_id, reason="requested")

        return UploadSession(
            bucket=bucket,
            key=key,
            upload_id=upload_id,
            status=SessionStatus.ABORTED,
        )
