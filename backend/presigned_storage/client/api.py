"""
HTTP client for the presigned storage API.

Wraps an httpx.AsyncClient whose base_url points at the API prefix
(e.g. http://localhost:3030/api) and maps error responses back onto
the storage error taxonomy.
"""
import logging
from typing import List, Optional, Sequence, Tuple
from urllib.parse import quote

import httpx

from presigned_storage.schemas.upload import (
    CompletionRequest,
    FileListResponse,
    MultipartBeginResponse,
    PartResult,
    PartUrl,
    UrlResponse,
)
from presigned_storage.storage.errors import (
    ApiTransportError,
    GatewayError,
    StateError,
    StorageError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def _error_from_response(response: httpx.Response) -> StorageError:
    try:
        detail = response.json().get("detail", response.text)
    except ValueError:
        detail = response.text
    message = f"HTTP {response.status_code}: {detail}"

    if response.status_code in (400, 422):
        return ValidationError(message)
    if response.status_code == 409:
        return StateError(message)
    return GatewayError(message, operation=f"{response.request.method} {response.request.url.path}")


class UploadApiClient:
    """Typed access to the bucket endpoints."""

    def __init__(self, http: httpx.AsyncClient):
        self._http = http

    @staticmethod
    def _file_path(bucket: str, key: str, suffix: str = "") -> str:
        return f"/buckets/{quote(bucket, safe='')}/files/{quote(key, safe='')}{suffix}"

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise ApiTransportError(f"API request failed: {e}", operation=f"{method} {path}") from e
        if response.status_code >= 400:
            raise _error_from_response(response)
        return response

    async def list_files(self, bucket: str) -> List[str]:
        response = await self._request("GET", f"/buckets/{quote(bucket, safe='')}/files")
        return FileListResponse.model_validate(response.json()).files

    async def get_upload_url(self, bucket: str, key: str) -> str:
        response = await self._request("GET", self._file_path(bucket, key, "/presigned/upload"))
        return UrlResponse.model_validate(response.json()).url

    async def get_download_url(self, bucket: str, key: str) -> str:
        response = await self._request("GET", self._file_path(bucket, key, "/presigned/download"))
        return UrlResponse.model_validate(response.json()).url

    async def begin_multipart(
        self,
        bucket: str,
        key: str,
        parts: int,
        size: Optional[int] = None,
        chunk_size: Optional[int] = None,
    ) -> Tuple[str, List[PartUrl]]:
        """
        Open a multipart upload.

        When size is given the server checks parts against it, using
        chunk_size if given and its own configured part size otherwise.

        Returns:
            Tuple of (upload_id, part URLs)
        """
        params = {"parts": parts}
        if size is not None:
            params["size"] = size
        if chunk_size is not None:
            params["chunkSize"] = chunk_size
        response = await self._request(
            "GET",
            self._file_path(bucket, key, "/presigned/upload/multipart"),
            params=params,
        )
        body = MultipartBeginResponse.model_validate(response.json())
        return body.upload_id, body.parts

    async def complete_multipart(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: Sequence[PartResult],
    ) -> None:
        request = CompletionRequest(upload_id=upload_id, parts=list(parts))
        await self._request(
            "POST",
            self._file_path(bucket, key, "/presigned/upload/multipart"),
            json=request.model_dump(by_alias=True),
        )

    async def abort_multipart(self, bucket: str, key: str, upload_id: str) -> None:
        await self._request(
            "DELETE",
            self._file_path(bucket, key, "/presigned/upload/multipart"),
            params={"uploadId": upload_id},
        )
