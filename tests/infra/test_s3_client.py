"""Tests for S3 storage client."""

import io
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from zip_uploader.common.config import Settings
from zip_uploader.infra.storage import (
    CompletedPart,
    MultipartUpload,
    StorageBackendNotConfiguredError,
    StorageError,
    build_object_store,
    resume_multipart_upload,
)
from zip_uploader.infra.storage.s3_client import S3StorageClient


def _client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class TestS3StorageClient:
    """Test S3StorageClient implementation."""

    @pytest.fixture
    def mock_s3(self):
        """Mock boto3 S3 client."""
        mock_client = MagicMock()
        with patch.object(S3StorageClient, "_build_client", return_value=mock_client):
            yield mock_client

    @pytest.fixture
    def mock_settings(self):
        settings = MagicMock()
        settings.S3_BUCKET = "test-bucket"
        settings.S3_ENDPOINT_URL = "http://localhost:9000"
        settings.S3_REGION = "auto"
        settings.S3_ACCESS_KEY_ID = "test-key"
        settings.S3_SECRET_ACCESS_KEY = "test-secret"
        settings.S3_USE_SSL = False
        settings.S3_ADDRESSING_STYLE = "path"
        return settings

    @pytest.fixture
    def client(self, mock_s3, mock_settings):
        return S3StorageClient(settings=mock_settings)

    def test_put_object_passes_metadata(self, client, mock_s3):
        mock_s3.put_object.return_value = {"ETag": '"abc"'}

        result = client.put_object(
            "uploads/a.zip",
            b"data",
            content_type="application/zip",
            metadata={"original-name": "a.zip"},
        )

        assert result.etag == '"abc"'
        mock_s3.put_object.assert_called_once_with(
            Bucket="test-bucket",
            Key="uploads/a.zip",
            Body=b"data",
            ContentType="application/zip",
            Metadata={"original-name": "a.zip"},
        )

    def test_get_object_returns_stored_object(self, client, mock_s3):
        mock_s3.get_object.return_value = {
            "Body": io.BytesIO(b"zip-bytes"),
            "ContentLength": 9,
            "ContentType": "application/zip",
            "ETag": '"e1"',
            "Metadata": {"sha256": "f" * 64},
        }

        stored = client.get_object("unzipped/a.zip")

        assert stored is not None
        assert stored.size == 9
        assert stored.metadata == {"sha256": "f" * 64}
        assert b"".join(stored.iter_chunks(4)) == b"zip-bytes"

    def test_get_object_missing_key_returns_none(self, client, mock_s3):
        mock_s3.get_object.side_effect = _client_error("NoSuchKey", "GetObject")

        assert client.get_object("unzipped/missing.zip") is None

    def test_get_object_other_error_raises(self, client, mock_s3):
        mock_s3.get_object.side_effect = _client_error("AccessDenied", "GetObject")

        with pytest.raises(StorageError, match="Failed to get object"):
            client.get_object("unzipped/a.zip")

    def test_list_objects_maps_page(self, client, mock_s3):
        mock_s3.list_objects_v2.return_value = {
            "Contents": [{"Key": "unzipped/a.zip", "Size": 3, "ETag": '"x"'}],
            "CommonPrefixes": [{"Prefix": "unzipped/feeds/"}],
            "IsTruncated": True,
            "NextContinuationToken": "token-2",
        }

        listing = client.list_objects(
            prefix="unzipped/", delimiter="/", limit=10, cursor="token-1"
        )

        assert [obj.key for obj in listing.objects] == ["unzipped/a.zip"]
        assert listing.delimited_prefixes == ["unzipped/feeds/"]
        assert listing.truncated is True
        assert listing.cursor == "token-2"
        mock_s3.list_objects_v2.assert_called_once_with(
            Bucket="test-bucket",
            Prefix="unzipped/",
            MaxKeys=10,
            Delimiter="/",
            ContinuationToken="token-1",
        )

    def test_list_objects_last_page_has_no_cursor(self, client, mock_s3):
        mock_s3.list_objects_v2.return_value = {"IsTruncated": False}

        listing = client.list_objects(prefix="unzipped/")

        assert listing.objects == []
        assert listing.truncated is False
        assert listing.cursor is None

    def test_create_multipart_upload(self, client, mock_s3):
        mock_s3.create_multipart_upload.return_value = {"UploadId": "test-upload-id"}

        result = client.create_multipart_upload(
            "uploads/big.zip", content_type="application/zip"
        )

        assert isinstance(result, MultipartUpload)
        assert result.upload_id == "test-upload-id"
        assert result.object_key == "uploads/big.zip"
        mock_s3.create_multipart_upload.assert_called_once_with(
            Bucket="test-bucket",
            Key="uploads/big.zip",
            ContentType="application/zip",
        )

    def test_create_multipart_upload_without_upload_id(self, client, mock_s3):
        mock_s3.create_multipart_upload.return_value = {}

        with pytest.raises(StorageError, match="UploadId"):
            client.create_multipart_upload("uploads/big.zip")

    def test_upload_part_returns_etag(self, client, mock_s3):
        mock_s3.upload_part.return_value = {"ETag": '"part-1"'}

        etag = client.upload_part("uploads/big.zip", "u-1", 1, b"chunk")

        assert etag == '"part-1"'
        mock_s3.upload_part.assert_called_once_with(
            Bucket="test-bucket",
            Key="uploads/big.zip",
            UploadId="u-1",
            PartNumber=1,
            Body=b"chunk",
        )

    def test_upload_part_missing_etag_raises(self, client, mock_s3):
        mock_s3.upload_part.return_value = {}

        with pytest.raises(StorageError, match="ETag"):
            client.upload_part("uploads/big.zip", "u-1", 2, b"chunk")

    def test_complete_multipart_upload_sorts_parts(self, client, mock_s3):
        parts = [
            CompletedPart(part_number=2, etag="etag2"),
            CompletedPart(part_number=1, etag="etag1"),
        ]

        client.complete_multipart_upload("uploads/big.zip", "u-1", parts)

        call_args = mock_s3.complete_multipart_upload.call_args
        assert call_args[1]["UploadId"] == "u-1"
        assert call_args[1]["MultipartUpload"]["Parts"] == [
            {"ETag": "etag1", "PartNumber": 1},
            {"ETag": "etag2", "PartNumber": 2},
        ]

    def test_abort_multipart_upload(self, client, mock_s3):
        client.abort_multipart_upload("uploads/big.zip", "u-1")

        mock_s3.abort_multipart_upload.assert_called_once_with(
            Bucket="test-bucket",
            Key="uploads/big.zip",
            UploadId="u-1",
        )

    def test_storage_error_wraps_exceptions(self, client, mock_s3):
        mock_s3.delete_object.side_effect = Exception("Network error")

        with pytest.raises(StorageError, match="Failed to delete object"):
            client.delete_object("unzipped/a.zip")

    def test_resumed_session_delegates(self, client, mock_s3):
        mock_s3.upload_part.return_value = {"ETag": '"p"'}
        session = resume_multipart_upload(client, "uploads/big.zip", "u-9")

        assert session.upload_part(1, b"x") == '"p"'
        session.abort()

        mock_s3.abort_multipart_upload.assert_called_once_with(
            Bucket="test-bucket", Key="uploads/big.zip", UploadId="u-9"
        )


class TestBuildObjectStore:
    def test_rejects_unknown_backend(self):
        settings = Settings(STORAGE_BACKEND="gcs", S3_BUCKET="b")

        with pytest.raises(StorageBackendNotConfiguredError, match="Unsupported"):
            build_object_store(settings)

    def test_requires_credentials(self):
        settings = Settings(S3_BUCKET="b")

        with pytest.raises(StorageBackendNotConfiguredError, match="S3_ACCESS_KEY_ID"):
            build_object_store(settings)

    def test_builds_s3_client(self, caplog):
        settings = Settings(
            S3_BUCKET="b", S3_ACCESS_KEY_ID="key", S3_SECRET_ACCESS_KEY="secret"
        )
        with patch.object(S3StorageClient, "_build_client", return_value=MagicMock()):
            with caplog.at_level("INFO", logger="zip_uploader.infra.storage"):
                store = build_object_store(settings)

        assert isinstance(store, S3StorageClient)
        assert store.bucket == "b"
        assert any(
            "bucket=b" in record.getMessage() and record.extra["bucket"] == "b"
            for record in caplog.records
        )
