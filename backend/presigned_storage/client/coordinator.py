"""
Parallel upload coordinator.

Drives one file into object storage:

Small files (size <= chunk size):
1. Ask the API for a single presigned PUT URL
2. PUT the whole file to storage; success is the HTTP status alone

Large files:
1. Plan chunks (N parts)
2. Open a multipart session for N parts, receive one URL per part
3. PUT every part concurrently, straight to storage, collecting ETags
4. All parts succeeded: complete with ETags sorted by part number
   Any part failed: cancel the others and abort the session

One coordinator call owns exactly one session. Nothing is retried; a
failed upload has to be restarted from scratch as a new session.

At most max_concurrency parts are in flight at once; the rest wait
before opening a connection, so no part times out queued behind others.
"""
import asyncio
import logging
import os
import time
from dataclasses import dataclass
from typing import AsyncIterator, Dict, List, Optional

import httpx

from presigned_storage.client.api import UploadApiClient
from presigned_storage.client.chunking import DEFAULT_CHUNK_SIZE, ChunkRange, plan_chunks
from presigned_storage.client.progress import ProgressAggregator, ProgressCallback
from presigned_storage.schemas.upload import PartResult, PartUrl
from presigned_storage.storage.errors import ApiTransportError, PartTransferError, StateError, StorageError
from presigned_storage.utils.logging import (
    log_multipart_aborted,
    log_multipart_completed,
    log_multipart_started,
    log_part_failed,
)

logger = logging.getLogger(__name__)

# Size of each read from disk while streaming a part
READ_BLOCK_SIZE = 64 * 1024

# Parts uploaded at the same time; must not exceed the storage client's connection limit
DEFAULT_CONCURRENCY = 8


@dataclass
class UploadResult:
    """Outcome of a successful upload."""
    bucket: str
    key: str
    size: int
    part_count: int
    multipart: bool
    upload_id: Optional[str] = None


class ParallelUploadCoordinator:
    """
    Uploads a file through presigned URLs, in parallel parts when large.

    Args:
        api: Client for the presigned storage API
        storage: httpx client used for the direct PUTs to storage
        chunk_size: Part size; also the single-part threshold
        progress_callback: Called with the overall percentage whenever it increases
        max_concurrency: Upper bound on parts uploading at the same time
    """

    def __init__(
        self,
        api: UploadApiClient,
        storage: httpx.AsyncClient,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        progress_callback: Optional[ProgressCallback] = None,
        read_block_size: int = READ_BLOCK_SIZE,
        max_concurrency: int = DEFAULT_CONCURRENCY,
    ):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if max_concurrency <= 0:
            raise ValueError("max_concurrency must be positive")
        self._api = api
        self._storage = storage
        self._chunk_size = chunk_size
        self._progress_callback = progress_callback
        self._read_block_size = read_block_size
        self._max_concurrency = max_concurrency

    async def upload(self, path: str, bucket: str, key: Optional[str] = None) -> UploadResult:
        """
        Upload a local file.

        Args:
            path: Local file path
            bucket: Target bucket
            key: Object key (defaults to the file name)

        Raises:
            PartTransferError: A part (or the single PUT) failed; any session was aborted
            ApiTransportError: Completion got no response; the session is left as is
            ValidationError / StateError / GatewayError: The API refused a call
        """
        key = key or os.path.basename(path)
        size = os.path.getsize(path)

        if size <= self._chunk_size:
            return await self._upload_single(path, bucket, key, size)
        return await self._upload_multipart(path, bucket, key, size)

    # Single part

    async def _upload_single(self, path: str, bucket: str, key: str, size: int) -> UploadResult:
        url = await self._api.get_upload_url(bucket, key)
        chunk = ChunkRange(part_number=1, start=0, end=size)

        aggregator = ProgressAggregator({1: size}, self._progress_callback)
        queue: asyncio.Queue = asyncio.Queue()
        consumer = asyncio.create_task(aggregator.consume(queue))
        try:
            await self._put_part(path, chunk, url, queue, require_etag=False)
        finally:
            queue.put_nowait(None)
            await consumer

        logger.info(f"Uploaded {bucket}/{key} in a single PUT ({size} bytes)")
        return UploadResult(bucket=bucket, key=key, size=size, part_count=1, multipart=False)

    # Multipart

    async def _upload_multipart(self, path: str, bucket: str, key: str, size: int) -> UploadResult:
        chunks = plan_chunks(size, self._chunk_size)
        start = time.time()

        upload_id, part_urls = await self._api.begin_multipart(
            bucket, key, len(chunks), size=size, chunk_size=self._chunk_size
        )
        log_multipart_started(logger, bucket=bucket, key=key, upload_id=upload_id, part_count=len(chunks))

        try:
            urls = self._match_urls(chunks, part_urls)
            results = await self._transfer_parts(path, chunks, urls, upload_id)
        except asyncio.CancelledError:
            await self._abort(bucket, key, upload_id, reason="cancelled")
            raise
        except Exception as e:
            await self._abort(bucket, key, upload_id, reason=str(e), cause=e)
            raise

        ordered = sorted(results, key=lambda part: part.part_number)
        try:
            await self._api.complete_multipart(bucket, key, upload_id, ordered)
        except ApiTransportError:
            # Storage may already have finalized the object; an abort could
            # only fail, or discard an upload that actually succeeded
            logger.warning(f"Completion of upload {upload_id} got no response; its outcome is unknown")
            raise
        except StorageError as e:
            # Storage keeps the upload open when completion is rejected
            await self._abort(bucket, key, upload_id, reason=f"completion failed: {e}", cause=e)
            raise

        log_multipart_completed(
            logger,
            bucket=bucket,
            key=key,
            upload_id=upload_id,
            part_count=len(ordered),
            duration_ms=(time.time() - start) * 1000,
        )
        return UploadResult(
            bucket=bucket,
            key=key,
            size=size,
            part_count=len(ordered),
            multipart=True,
            upload_id=upload_id,
        )

    @staticmethod
    def _match_urls(chunks: List[ChunkRange], part_urls: List[PartUrl]) -> Dict[int, str]:
        """Map part numbers to URLs; the API must return exactly one URL per planned part."""
        urls = {part.part: part.url for part in part_urls}
        expected = [chunk.part_number for chunk in chunks]
        if len(part_urls) != len(chunks) or sorted(urls) != expected:
            raise StateError(
                f"Expected URLs for parts 1..{len(chunks)}, got {sorted(urls)}"
            )
        return urls

    async def _transfer_parts(
        self,
        path: str,
        chunks: List[ChunkRange],
        urls: Dict[int, str],
        upload_id: str,
    ) -> List[PartResult]:
        """
        PUT all parts concurrently.

        Returns as soon as every part succeeded, or raises the first failure
        after cancelling the parts still in flight.
        """
        aggregator = ProgressAggregator({c.part_number: c.size for c in chunks}, self._progress_callback)
        queue: asyncio.Queue = asyncio.Queue()
        consumer = asyncio.create_task(aggregator.consume(queue))
        slots = asyncio.Semaphore(self._max_concurrency)

        tasks = [
            asyncio.create_task(self._put_part(path, chunk, urls[chunk.part_number], queue, slots=slots))
            for chunk in chunks
        ]
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)

            failed = [task for task in tasks if task in done and task.exception() is not None]
            if failed:
                error = failed[0].exception()
                part_number = getattr(error, "part_number", None)
                if part_number is not None:
                    log_part_failed(logger, part_number=part_number, error=str(error), upload_id=upload_id)
                raise error

            return [
                PartResult(part_number=chunk.part_number, etag=task.result())
                for chunk, task in zip(chunks, tasks)
            ]
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            queue.put_nowait(None)
            await consumer

    async def _read_part(self, path: str, chunk: ChunkRange, queue: asyncio.Queue) -> AsyncIterator[bytes]:
        """Stream one byte range from disk, reporting bytes handed to the transport."""
        sent = 0
        with open(path, "rb") as f:
            f.seek(chunk.start)
            while sent < chunk.size:
                block = await asyncio.to_thread(f.read, min(self._read_block_size, chunk.size - sent))
                if not block:
                    raise OSError(f"{path} ended at byte {chunk.start + sent}, expected {chunk.end}")
                yield block
                sent += len(block)
                queue.put_nowait((chunk.part_number, sent))

    async def _send_part(self, path: str, chunk: ChunkRange, url: str, queue: asyncio.Queue) -> httpx.Response:
        return await self._storage.put(
            url,
            content=self._read_part(path, chunk, queue),
            headers={"Content-Length": str(chunk.size)},
        )

    async def _put_part(
        self,
        path: str,
        chunk: ChunkRange,
        url: str,
        queue: asyncio.Queue,
        require_etag: bool = True,
        slots: Optional[asyncio.Semaphore] = None,
    ) -> Optional[str]:
        """
        PUT one byte range to its presigned URL.

        Args:
            slots: Shared concurrency limit, held for the duration of the PUT

        Returns:
            The ETag header, verbatim

        Raises:
            PartTransferError: Transport error, timeout, non-2xx status or missing ETag
        """
        try:
            if slots is None:
                response = await self._send_part(path, chunk, url, queue)
            else:
                async with slots:
                    response = await self._send_part(path, chunk, url, queue)
        except httpx.TimeoutException as e:
            raise PartTransferError(chunk.part_number, f"timed out: {e}") from e
        except (httpx.HTTPError, OSError) as e:
            raise PartTransferError(chunk.part_number, str(e) or type(e).__name__) from e

        if not response.is_success:
            raise PartTransferError(
                chunk.part_number,
                f"storage returned HTTP {response.status_code}",
                status=response.status_code,
            )

        etag = response.headers.get("ETag")
        if require_etag and not etag:
            raise PartTransferError(chunk.part_number, "storage response carried no ETag header")

        # Full size again; the aggregator ignores it if already counted
        queue.put_nowait((chunk.part_number, chunk.size))
        return etag

    async def _abort(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        reason: str,
        cause: Optional[BaseException] = None,
    ) -> None:
        """Abort the session; an abort failure replaces the original error."""
        try:
            await self._api.abort_multipart(bucket, key, upload_id)
        except StorageError as e:
            logger.error(f"Abort of upload {upload_id} failed: {e}")
            raise e from cause
        log_multipart_aborted(logger, bucket=bucket, key=key, upload_id=upload_id, reason=reason)
