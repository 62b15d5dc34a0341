"""
Test configuration and fixtures.
Storage is replaced by an in-memory fake gateway; no S3 endpoint is needed.
"""
import os

# Set test environment before any imports
os.environ["ENVIRONMENT"] = "test"
os.environ.pop("STORAGE_ENDPOINT", None)
os.environ.pop("STORAGE_ACCESS_KEY", None)
os.environ.pop("STORAGE_SECRET_KEY", None)

import pytest
from typing import AsyncGenerator, Dict, List, Optional
from urllib.parse import quote

from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport

from presigned_storage.config import Settings
from presigned_storage.storage.errors import GatewayError, StateError

STORAGE_HOST = "https://storage.test"


class FakeGateway:
    """
    In-memory stand-in for ObjectStoreGateway.

    Tracks uploads the way S3 does: an upload id is only valid for its own
    bucket/key and stops being valid once completed or aborted.
    """

    def __init__(self):
        self.is_configured = True
        self.calls: List[tuple] = []
        self.uploads: Dict[str, dict] = {}
        self.completed: List[tuple] = []
        self.objects: Dict[str, List[str]] = {"media": ["a.txt", "docs/b.pdf"]}
        self.fail_sign_part: Optional[int] = None
        self._counter = 0

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    def _open_upload(self, bucket: str, key: str, upload_id: str) -> dict:
        upload = self.uploads.get(upload_id)
        if (
            upload is None
            or upload["bucket"] != bucket
            or upload["key"] != key
            or upload["status"] != "open"
        ):
            raise StateError("Upload session is not open: The specified upload does not exist.")
        return upload

    async def create_multipart_upload(self, bucket: str, key: str) -> str:
        self.calls.append(("create", bucket, key))
        self._counter += 1
        upload_id = f"upload-{self._counter}"
        self.uploads[upload_id] = {"bucket": bucket, "key": key, "status": "open"}
        return upload_id

    async def sign_part_url(self, bucket: str, key: str, upload_id: str, part_number: int) -> str:
        self.calls.append(("sign_part", upload_id, part_number))
        if part_number == self.fail_sign_part:
            raise GatewayError("sign_part_url failed: AccessDenied", operation="sign_part_url", code="AccessDenied")
        return f"{STORAGE_HOST}/{bucket}/{quote(key)}?uploadId={upload_id}&partNumber={part_number}"

    async def verify_upload(self, bucket: str, key: str, upload_id: str) -> None:
        self.calls.append(("verify", upload_id))
        self._open_upload(bucket, key, upload_id)

    async def complete_multipart_upload(self, bucket: str, key: str, upload_id: str, parts: List[dict]) -> dict:
        self.calls.append(("complete", upload_id))
        upload = self._open_upload(bucket, key, upload_id)
        upload["status"] = "completed"
        self.completed.append((upload_id, parts))
        self.objects.setdefault(bucket, []).append(key)
        return {"ETag": "\"final-etag-3\""}

    async def abort_multipart_upload(self, bucket: str, key: str, upload_id: str) -> None:
        self.calls.append(("abort", upload_id))
        upload = self._open_upload(bucket, key, upload_id)
        upload["status"] = "aborted"

    async def sign_object_url(self, bucket: str, key: str, client_method: str, expiration: int) -> str:
        self.calls.append(("sign_object", client_method, expiration))
        return f"{STORAGE_HOST}/{bucket}/{quote(key)}?method={client_method}&X-Amz-Expires={expiration}"

    async def list_objects(self, bucket: str) -> List[str]:
        self.calls.append(("list", bucket))
        return list(self.objects.get(bucket, []))


@pytest.fixture
def test_settings() -> Settings:
    """Settings with defaults (5 MiB chunks, 300s downloads, 600s uploads)."""
    return Settings(_env_file=None)


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


def get_test_app(gateway: FakeGateway, app_settings: Settings) -> FastAPI:
    """Create the FastAPI app with the fake gateway injected."""
    from presigned_storage.main import app
    from presigned_storage.api.dependencies import get_gateway, get_settings

    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_settings] = lambda: app_settings
    return app


@pytest.fixture
async def app(fake_gateway: FakeGateway, test_settings: Settings) -> AsyncGenerator[FastAPI, None]:
    application = get_test_app(fake_gateway, test_settings)
    yield application
    # Clean up overrides
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for API testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def api_http(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client rooted at the /api prefix, as the upload client uses it."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test/api") as ac:
        yield ac
