"""S3-compatible storage client implementation.

This module provides an object store backed by any S3-compatible service
(AWS S3, MinIO, Cloudflare R2 through ``S3_ENDPOINT_URL``).

Dependencies:
    - boto3
    - botocore
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, BinaryIO, Sequence

from zip_uploader.infra.storage.client import (
    CompletedPart,
    MultipartUpload,
    ObjectListing,
    ObjectSummary,
    PutResult,
    StorageError,
    StoredObject,
)

if TYPE_CHECKING:
    from zip_uploader.common.config import Settings

_MISSING_KEY_CODES = {"NoSuchKey", "404", "NotFound"}


class S3StorageClient:
    """S3-compatible object store bound to a single bucket.

    Uses boto3 for all storage operations.
    """

    def __init__(self, *, settings: "Settings") -> None:
        """Initialize the S3 client with configuration from settings.

        Args:
            settings: Application settings containing S3 configuration.

        Raises:
            StorageError: If boto3 is not installed.
        """
        self._settings = settings
        self._bucket = str(settings.S3_BUCKET)
        self._client = self._build_client(settings)

    @property
    def bucket(self) -> str:
        return self._bucket

    @staticmethod
    def _build_client(settings: "Settings") -> Any:
        """Create a boto3 S3 client from settings."""
        try:
            import boto3
            from botocore.config import Config
        except ImportError as exc:
            raise StorageError(
                "boto3 and botocore are required for S3 storage backend. "
                "Install with: pip install boto3"
            ) from exc

        addressing_style = (settings.S3_ADDRESSING_STYLE or "path").strip().lower()
        config = Config(s3={"addressing_style": addressing_style})

        return boto3.client(
            "s3",
            endpoint_url=settings.S3_ENDPOINT_URL,
            region_name=settings.S3_REGION,
            aws_access_key_id=settings.S3_ACCESS_KEY_ID,
            aws_secret_access_key=settings.S3_SECRET_ACCESS_KEY,
            use_ssl=bool(settings.S3_USE_SSL),
            config=config,
        )

    def put_object(
        self,
        key: str,
        body: BinaryIO | bytes,
        *,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> PutResult:
        """Write a whole object in one request."""
        params: dict[str, Any] = {"Bucket": self._bucket, "Key": key, "Body": body}
        if content_type:
            params["ContentType"] = content_type
        if metadata:
            params["Metadata"] = metadata

        try:
            response = self._client.put_object(**params)
        except Exception as exc:
            raise StorageError(f"Failed to put object: {exc}") from exc

        return PutResult(etag=response.get("ETag"))

    def get_object(self, key: str) -> StoredObject | None:
        """Fetch an object, returning ``None`` for a missing key."""
        try:
            response = self._client.get_object(Bucket=self._bucket, Key=key)
        except Exception as exc:
            if _error_code(exc) in _MISSING_KEY_CODES:
                return None
            raise StorageError(f"Failed to get object: {exc}") from exc

        size = response.get("ContentLength")
        return StoredObject(
            key=key,
            body=response["Body"],
            size=int(size) if size is not None else 0,
            content_type=response.get("ContentType"),
            etag=response.get("ETag"),
            metadata=dict(response.get("Metadata") or {}),
        )

    def delete_object(self, key: str) -> None:
        """Delete an object from storage."""
        try:
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except Exception as exc:
            raise StorageError(f"Failed to delete object: {exc}") from exc

    def list_objects(
        self,
        *,
        prefix: str,
        delimiter: str | None = None,
        limit: int = 1000,
        cursor: str | None = None,
    ) -> ObjectListing:
        """List one page of objects using ListObjectsV2."""
        params: dict[str, Any] = {
            "Bucket": self._bucket,
            "Prefix": prefix,
            "MaxKeys": int(limit),
        }
        if delimiter:
            params["Delimiter"] = delimiter
        if cursor:
            params["ContinuationToken"] = cursor

        try:
            response = self._client.list_objects_v2(**params)
        except Exception as exc:
            raise StorageError(f"Failed to list objects: {exc}") from exc

        objects = [
            ObjectSummary(
                key=item["Key"],
                size=int(item.get("Size") or 0),
                last_modified=item.get("LastModified"),
                etag=item.get("ETag"),
            )
            for item in response.get("Contents") or []
        ]
        prefixes = [
            item["Prefix"]
            for item in response.get("CommonPrefixes") or []
            if item.get("Prefix")
        ]
        truncated = bool(response.get("IsTruncated"))
        return ObjectListing(
            objects=objects,
            delimited_prefixes=prefixes,
            truncated=truncated,
            cursor=response.get("NextContinuationToken") if truncated else None,
        )

    def create_multipart_upload(
        self,
        key: str,
        *,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> MultipartUpload:
        """Initialize a multipart upload session."""
        params: dict[str, Any] = {"Bucket": self._bucket, "Key": key}
        if content_type:
            params["ContentType"] = content_type
        if metadata:
            params["Metadata"] = metadata

        try:
            response = self._client.create_multipart_upload(**params)
        except Exception as exc:
            raise StorageError(f"Failed to create multipart upload: {exc}") from exc

        upload_id = response.get("UploadId")
        if not upload_id:
            raise StorageError("S3 response missing UploadId")

        return MultipartUpload(upload_id=str(upload_id), object_key=key)

    def upload_part(
        self,
        key: str,
        upload_id: str,
        part_number: int,
        body: BinaryIO | bytes,
    ) -> str:
        """Upload one part of a multipart upload."""
        try:
            response = self._client.upload_part(
                Bucket=self._bucket,
                Key=key,
                UploadId=upload_id,
                PartNumber=int(part_number),
                Body=body,
            )
        except Exception as exc:
            raise StorageError(f"Failed to upload part {part_number}: {exc}") from exc

        etag = response.get("ETag")
        if not etag:
            raise StorageError(f"S3 response missing ETag for part {part_number}")
        return str(etag)

    def complete_multipart_upload(
        self,
        key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> None:
        """Complete a multipart upload by combining all parts."""
        multipart_payload = {
            "Parts": [
                {"ETag": part.etag, "PartNumber": int(part.part_number)}
                for part in sorted(parts, key=lambda p: p.part_number)
            ]
        }

        try:
            self._client.complete_multipart_upload(
                Bucket=self._bucket,
                Key=key,
                UploadId=upload_id,
                MultipartUpload=multipart_payload,
            )
        except Exception as exc:
            raise StorageError(f"Failed to complete multipart upload: {exc}") from exc

    def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        """Abort a multipart upload and clean up uploaded parts."""
        try:
            self._client.abort_multipart_upload(
                Bucket=self._bucket,
                Key=key,
                UploadId=upload_id,
            )
        except Exception as exc:
            raise StorageError(f"Failed to abort multipart upload: {exc}") from exc


def _error_code(exc: Exception) -> str | None:
    response = getattr(exc, "response", None)
    if isinstance(response, dict):
        code = response.get("Error", {}).get("Code")
        return str(code) if code is not None else None
    return None
