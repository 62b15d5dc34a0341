"""
Tests for service layer business logic: session manager and presign service.
"""
import pytest

from presigned_storage.schemas.upload import PartResult, SessionStatus, UrlOperation
from presigned_storage.storage.errors import GatewayError, StateError, ValidationError
from presigned_storage.storage.multipart import UploadSessionManager, parse_part_count, validate_parts
from presigned_storage.storage.presign import PresignService

MiB = 1024 * 1024


def parts_for(*numbers):
    return [PartResult(part_number=n, etag=f"\"etag-{n}\"") for n in numbers]


class TestParsePartCount:
    """Tests for part count parsing."""

    @pytest.mark.parametrize("value,expected", [(1, 1), ("3", 3), (" 12 ", 12), (10000, 10000)])
    def test_valid(self, value, expected):
        assert parse_part_count(value, max_parts=10000) == expected

    @pytest.mark.parametrize("value", [0, -1, "0", "-2", "abc", "1.5", "", None, True, 2.0, "10001", "²", "٣"])
    def test_invalid(self, value):
        with pytest.raises(ValidationError):
            parse_part_count(value, max_parts=10000)


class TestValidateParts:
    """Tests for completion list checks."""

    def test_ordered_list_passes(self):
        validate_parts(parts_for(1, 2, 3))

    @pytest.mark.parametrize("numbers", [(), (2, 1), (1, 1, 2), (1, 3), (2, 3)])
    def test_rejected(self, numbers):
        with pytest.raises(ValidationError):
            validate_parts(parts_for(*numbers))


class TestUploadSessionManager:
    """Tests for UploadSessionManager against the fake gateway."""

    @pytest.fixture
    def manager(self, fake_gateway, test_settings) -> UploadSessionManager:
        return UploadSessionManager(fake_gateway, test_settings)

    @pytest.mark.asyncio
    async def test_begin_issues_one_url_per_part(self, manager, fake_gateway):
        """Begin opens one upload and signs parts 1..N."""
        session, parts = await manager.begin("media", "video.mp4", "3")

        assert session.status == SessionStatus.PARTS_ISSUED
        assert session.part_count == 3
        assert session.upload_id == "upload-1"
        assert [p.part for p in parts] == [1, 2, 3]
        assert all("uploadId=upload-1" in p.url for p in parts)
        assert fake_gateway.count("create") == 1
        assert fake_gateway.count("sign_part") == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize("part_count", [0, -4, "abc", "2.5", None])
    async def test_begin_invalid_count_never_reaches_gateway(self, manager, fake_gateway, part_count):
        with pytest.raises(ValidationError):
            await manager.begin("media", "video.mp4", part_count)
        assert fake_gateway.calls == []

    @pytest.mark.asyncio
    async def test_begin_with_matching_size(self, manager):
        session, parts = await manager.begin("media", "video.mp4", 3, file_size=12 * MiB)
        assert len(parts) == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize("part_count,size", [(2, 12 * MiB), (4, 12 * MiB), (1, 0)])
    async def test_begin_size_mismatch_rejected(self, manager, fake_gateway, part_count, size):
        with pytest.raises(ValidationError):
            await manager.begin("media", "video.mp4", part_count, file_size=size)
        assert fake_gateway.calls == []

    @pytest.mark.asyncio
    async def test_begin_with_client_chunk_size(self, manager):
        """Part count is checked against the chunk size the client declares."""
        session, parts = await manager.begin("media", "video.mp4", 2, file_size=16 * MiB, chunk_size=8 * MiB)

        assert session.part_count == 2
        assert len(parts) == 2

    @pytest.mark.asyncio
    async def test_begin_client_chunk_size_mismatch(self, manager, fake_gateway):
        with pytest.raises(ValidationError):
            await manager.begin("media", "video.mp4", 4, file_size=16 * MiB, chunk_size=8 * MiB)
        assert fake_gateway.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("chunk_size", [0, MiB, 5 * MiB - 1, 5 * 1024 * MiB + 1])
    async def test_begin_chunk_size_out_of_bounds(self, manager, fake_gateway, chunk_size):
        with pytest.raises(ValidationError):
            await manager.begin("media", "video.mp4", 1, file_size=MiB, chunk_size=chunk_size)
        assert fake_gateway.calls == []

    @pytest.mark.asyncio
    async def test_begin_signing_failure_surfaces_and_aborts(self, manager, fake_gateway):
        """No partial URL list is returned; the opened upload is aborted."""
        fake_gateway.fail_sign_part = 2

        with pytest.raises(GatewayError):
            await manager.begin("media", "video.mp4", 3)

        assert fake_gateway.count("abort") == 1
        assert fake_gateway.uploads["upload-1"]["status"] == "aborted"

    @pytest.mark.asyncio
    async def test_complete(self, manager, fake_gateway):
        session, _ = await manager.begin("media", "video.mp4", 2)

        completed = await manager.complete("media", "video.mp4", session.upload_id, parts_for(1, 2))

        assert completed.status == SessionStatus.COMPLETED
        assert completed.is_terminal
        assert fake_gateway.completed == [
            ("upload-1", [
                {"ETag": "\"etag-1\"", "PartNumber": 1},
                {"ETag": "\"etag-2\"", "PartNumber": 2},
            ])
        ]

    @pytest.mark.asyncio
    async def test_complete_empty_list_fails_fast(self, manager, fake_gateway):
        session, _ = await manager.begin("media", "video.mp4", 2)
        calls_before = len(fake_gateway.calls)

        with pytest.raises(ValidationError):
            await manager.complete("media", "video.mp4", session.upload_id, [])
        assert len(fake_gateway.calls) == calls_before

    @pytest.mark.asyncio
    async def test_complete_out_of_order_rejected(self, manager, fake_gateway):
        session, _ = await manager.begin("media", "video.mp4", 2)

        with pytest.raises(ValidationError):
            await manager.complete("media", "video.mp4", session.upload_id, parts_for(2, 1))
        assert fake_gateway.count("complete") == 0

    @pytest.mark.asyncio
    async def test_complete_upload_id_for_other_key(self, manager, fake_gateway):
        """An upload id is only valid for the key it was opened for."""
        session, _ = await manager.begin("media", "video.mp4", 1)

        with pytest.raises(StateError):
            await manager.complete("media", "other.mp4", session.upload_id, parts_for(1))
        assert fake_gateway.count("complete") == 0

    @pytest.mark.asyncio
    async def test_terminal_session_rejects_further_calls(self, manager):
        session, _ = await manager.begin("media", "video.mp4", 1)
        await manager.complete("media", "video.mp4", session.upload_id, parts_for(1))

        with pytest.raises(StateError):
            await manager.complete("media", "video.mp4", session.upload_id, parts_for(1))
        with pytest.raises(StateError):
            await manager.abort("media", "video.mp4", session.upload_id)

    @pytest.mark.asyncio
    async def test_abort_twice_fails(self, manager, fake_gateway):
        session, _ = await manager.begin("media", "video.mp4", 2)

        aborted = await manager.abort("media", "video.mp4", session.upload_id)
        assert aborted.status == SessionStatus.ABORTED

        with pytest.raises(StateError):
            await manager.abort("media", "video.mp4", session.upload_id)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("upload_id", ["", "   ", None])
    async def test_missing_upload_id(self, manager, fake_gateway, upload_id):
        with pytest.raises(ValidationError):
            await manager.abort("media", "video.mp4", upload_id)
        with pytest.raises(ValidationError):
            await manager.complete("media", "video.mp4", upload_id, parts_for(1))
        assert fake_gateway.calls == []


class TestPresignService:
    """Tests for single-object URLs."""

    @pytest.fixture
    def presign(self, fake_gateway, test_settings) -> PresignService:
        return PresignService(fake_gateway, test_settings)

    @pytest.mark.asyncio
    async def test_download_url_expires_in_five_minutes(self, presign, fake_gateway):
        url = await presign.issue_single_url("media", "a.txt", "read")

        assert "X-Amz-Expires=300" in url
        assert fake_gateway.calls == [("sign_object", "get_object", 300)]

    @pytest.mark.asyncio
    async def test_upload_url(self, presign, fake_gateway):
        await presign.issue_single_url("media", "a.txt", UrlOperation.WRITE)
        assert fake_gateway.calls == [("sign_object", "put_object", 600)]

    @pytest.mark.asyncio
    async def test_invalid_operation(self, presign, fake_gateway):
        with pytest.raises(ValidationError):
            await presign.issue_single_url("media", "a.txt", "delete")
        assert fake_gateway.calls == []

    @pytest.mark.asyncio
    async def test_list_files(self, presign):
        assert await presign.list_files("media") == ["a.txt", "docs/b.pdf"]
        assert await presign.list_files("empty") == []
