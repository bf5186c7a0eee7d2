"""Object storage abstraction layer.

This module provides a protocol-based abstraction for object storage backends,
enabling support for S3, MinIO, Cloudflare R2 and other S3-compatible services.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .client import (
    CompletedPart,
    MultipartSession,
    MultipartUpload,
    ObjectListing,
    ObjectStore,
    ObjectSummary,
    PutResult,
    StorageError,
    StoredObject,
    resume_multipart_upload,
)

if TYPE_CHECKING:
    from zip_uploader.common.config import Settings

logger = logging.getLogger(__name__)


class StorageBackendNotConfiguredError(Exception):
    """Raised when the storage backend is not properly configured."""


def build_object_store(settings: "Settings") -> ObjectStore:
    """Build the appropriate object store based on configuration."""
    backend = (settings.STORAGE_BACKEND or "").strip().lower()
    if backend != "s3":
        raise StorageBackendNotConfiguredError(
            f"Unsupported storage backend: {backend}. Only 's3' is supported."
        )
    if not settings.S3_BUCKET:
        raise StorageBackendNotConfiguredError("S3_BUCKET is required")
    if not settings.S3_ACCESS_KEY_ID or not settings.S3_SECRET_ACCESS_KEY:
        raise StorageBackendNotConfiguredError(
            "S3_ACCESS_KEY_ID and S3_SECRET_ACCESS_KEY are required"
        )
    from .s3_client import S3StorageClient

    store = S3StorageClient(settings=settings)
    logger.info(
        "object store ready backend=s3 bucket=%s",
        store.bucket,
        extra={
            "extra": {
                "backend": "s3",
                "bucket": store.bucket,
                "endpoint": settings.S3_ENDPOINT_URL,
            }
        },
    )
    return store


__all__ = [
    "CompletedPart",
    "MultipartSession",
    "MultipartUpload",
    "ObjectListing",
    "ObjectStore",
    "ObjectSummary",
    "PutResult",
    "StorageBackendNotConfiguredError",
    "StorageError",
    "StoredObject",
    "build_object_store",
    "resume_multipart_upload",
]
