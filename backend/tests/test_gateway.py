"""
Tests for the boto3-backed storage gateway.
The boto3 client is replaced by a MagicMock.
"""
import pytest
from unittest.mock import MagicMock

from botocore.exceptions import ClientError, EndpointConnectionError

from presigned_storage.config import Settings
from presigned_storage.storage.errors import GatewayError, StateError, StorageNotConfiguredError
from presigned_storage.storage.gateway import ObjectStoreGateway


def client_error(code: str, operation: str = "CompleteMultipartUpload") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": f"{code} message"}}, operation)


@pytest.fixture
def s3() -> MagicMock:
    return MagicMock()


@pytest.fixture
def gateway(s3: MagicMock, test_settings: Settings) -> ObjectStoreGateway:
    return ObjectStoreGateway(test_settings, client=s3)


class TestObjectStoreGateway:
    """Tests for ObjectStoreGateway."""

    @pytest.mark.asyncio
    async def test_create_multipart_upload(self, gateway, s3):
        s3.create_multipart_upload.return_value = {"UploadId": "abc-123"}

        upload_id = await gateway.create_multipart_upload("media", "video.mp4")

        assert upload_id == "abc-123"
        s3.create_multipart_upload.assert_called_once_with(Bucket="media", Key="video.mp4")

    @pytest.mark.asyncio
    async def test_sign_part_url(self, gateway, s3):
        s3.generate_presigned_url.return_value = "https://signed/part"

        url = await gateway.sign_part_url("media", "video.mp4", "abc-123", 2)

        assert url == "https://signed/part"
        s3.generate_presigned_url.assert_called_once_with(
            ClientMethod="upload_part",
            Params={"Bucket": "media", "Key": "video.mp4", "UploadId": "abc-123", "PartNumber": 2},
            ExpiresIn=3600,
        )

    @pytest.mark.asyncio
    async def test_complete_forwards_parts(self, gateway, s3):
        parts = [{"ETag": "\"e1\"", "PartNumber": 1}, {"ETag": "\"e2\"", "PartNumber": 2}]

        await gateway.complete_multipart_upload("media", "video.mp4", "abc-123", parts)

        s3.complete_multipart_upload.assert_called_once_with(
            Bucket="media",
            Key="video.mp4",
            UploadId="abc-123",
            MultipartUpload={"Parts": parts},
        )

    @pytest.mark.asyncio
    async def test_no_such_upload_is_state_error(self, gateway, s3):
        s3.abort_multipart_upload.side_effect = client_error("NoSuchUpload", "AbortMultipartUpload")

        with pytest.raises(StateError):
            await gateway.abort_multipart_upload("media", "video.mp4", "gone")

    @pytest.mark.asyncio
    async def test_verify_upload_lists_parts(self, gateway, s3):
        await gateway.verify_upload("media", "video.mp4", "abc-123")
        s3.list_parts.assert_called_once_with(Bucket="media", Key="video.mp4", UploadId="abc-123", MaxParts=1)

        s3.list_parts.side_effect = client_error("NoSuchUpload", "ListParts")
        with pytest.raises(StateError):
            await gateway.verify_upload("media", "video.mp4", "abc-123")

    @pytest.mark.asyncio
    async def test_client_error_is_gateway_error(self, gateway, s3):
        s3.complete_multipart_upload.side_effect = client_error("InvalidPart")

        with pytest.raises(GatewayError) as exc_info:
            await gateway.complete_multipart_upload("media", "video.mp4", "abc-123", [])

        assert exc_info.value.code == "InvalidPart"
        assert exc_info.value.operation == "complete_multipart_upload"
        assert isinstance(exc_info.value.__cause__, ClientError)

    @pytest.mark.asyncio
    async def test_connection_error_is_gateway_error(self, gateway, s3):
        s3.create_multipart_upload.side_effect = EndpointConnectionError(endpoint_url="https://s3.test")

        with pytest.raises(GatewayError):
            await gateway.create_multipart_upload("media", "video.mp4")

    @pytest.mark.asyncio
    async def test_sign_object_url(self, gateway, s3):
        s3.generate_presigned_url.return_value = "https://signed/object"

        await gateway.sign_object_url("media", "a.txt", "get_object", 300)

        s3.generate_presigned_url.assert_called_once_with(
            ClientMethod="get_object",
            Params={"Bucket": "media", "Key": "a.txt"},
            ExpiresIn=300,
        )

    @pytest.mark.asyncio
    async def test_list_objects_follows_pages(self, gateway, s3):
        s3.list_objects_v2.side_effect = [
            {"Contents": [{"Key": "a"}, {"Key": "b"}], "IsTruncated": True, "NextContinuationToken": "t1"},
            {"Contents": [{"Key": "c"}], "IsTruncated": False},
        ]

        keys = await gateway.list_objects("media")

        assert keys == ["a", "b", "c"]
        assert s3.list_objects_v2.call_args_list[1].kwargs["ContinuationToken"] == "t1"

    @pytest.mark.asyncio
    async def test_list_empty_bucket(self, gateway, s3):
        s3.list_objects_v2.return_value = {"KeyCount": 0, "IsTruncated": False}
        assert await gateway.list_objects("media") == []

    @pytest.mark.asyncio
    async def test_not_configured(self, test_settings):
        gateway = ObjectStoreGateway(test_settings)

        assert not gateway.is_configured
        with pytest.raises(StorageNotConfiguredError):
            await gateway.create_multipart_upload("media", "video.mp4")

    def test_builds_client_from_settings(self):
        settings = Settings(
            _env_file=None,
            storage_endpoint="https://s3.us-south.cloud-object-storage.appdomain.cloud",
            storage_access_key="key",
            storage_secret_key="secret",
        )
        assert ObjectStoreGateway(settings).is_configured
