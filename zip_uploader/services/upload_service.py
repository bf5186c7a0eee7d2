"""Upload service for single-shot and multipart ZIP uploads.

This module validates upload requests and wraps the object store's native
multipart primitive. The store itself tracks the parts of an open session;
this layer only checks filenames, sizes, checksums, part numbers and the
completeness of the part list before delegating.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, BinaryIO, Mapping, Sequence

from zip_uploader.common.config import Settings
from zip_uploader.infra.storage import (
    CompletedPart,
    ObjectStore,
    resume_multipart_upload,
)

from .base import BaseService, SizeLimitError, StoreError, ValidationError
from .checksum import sha256_hexdigest

logger = logging.getLogger(__name__)

# Maximum part number allowed by S3
MAX_PART_NUMBER = 10000
DEFAULT_CONTENT_TYPE = "application/zip"

_SHA256_PATTERN = re.compile(r"^[0-9a-fA-F]{64}$")
_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_-]")


@dataclass(frozen=True, slots=True)
class SimpleUploadResult:
    """Result of a single-shot upload."""

    key: str
    filename: str
    size: int
    etag: str | None


@dataclass(frozen=True, slots=True)
class MultipartInitResult:
    """Result of opening a multipart session."""

    upload_id: str
    key: str
    filename: str
    chunk_size: int


@dataclass(frozen=True, slots=True)
class UploadedPart:
    """Entity tag recorded for one uploaded part."""

    part_number: int
    etag: str


def generate_unique_filename(original: str, *, now_ms: int | None = None) -> str:
    """Build ``<epoch-millis>-<safe base>.<ext>`` from a client filename."""
    timestamp = int(time.time() * 1000) if now_ms is None else int(now_ms)
    name = original.strip()
    if "." in name:
        base, ext = name.rsplit(".", 1)
    else:
        base, ext = name, ""
    ext = ext or "zip"
    safe_base = _UNSAFE_NAME_CHARS.sub("_", base)
    return f"{timestamp}-{safe_base}.{ext}"


def _coerce_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _stream_size(stream: BinaryIO) -> int:
    position = stream.tell()
    stream.seek(0, 2)
    size = stream.tell()
    stream.seek(position)
    return size


class UploadService(BaseService):
    """Application service for the upload lifecycle.

    Handles single-shot uploads and the init / part / complete / abort
    sequence of multipart sessions.
    """

    def __init__(self, store: ObjectStore, settings: Settings | None = None) -> None:
        super().__init__(store, settings)

    def _validate_filename(self, filename: str | None) -> str:
        name = self._require(filename, "filename").strip()
        allowed = self.settings.ALLOWED_EXTENSIONS
        if not any(name.lower().endswith(ext) for ext in allowed):
            raise ValidationError("Only ZIP files are allowed")
        return name

    def _validate_size(self, size: Any, *, allow_zero: bool) -> int:
        if size is None:
            raise ValidationError("size is required")
        value = _coerce_int(size)
        if value is None:
            raise ValidationError("size must be an integer")
        if value < 0 or (value == 0 and not allow_zero):
            raise ValidationError("size must be positive")
        max_size = self.settings.MAX_FILE_SIZE
        if value > max_size:
            raise SizeLimitError(
                f"File too large. Maximum size: {round(max_size / 1024 / 1024)}MB"
            )
        return value

    @staticmethod
    def _validate_sha256(sha256: str | None) -> str | None:
        if sha256 is None or sha256 == "":
            return None
        if not _SHA256_PATTERN.match(sha256):
            raise ValidationError("sha256 must be 64 hexadecimal characters")
        return sha256.lower()

    def _build_metadata(
        self, original_name: str, upload_type: str, sha256: str | None
    ) -> dict[str, str]:
        metadata = {
            "original-name": original_name,
            "uploaded-at": datetime.now(timezone.utc).isoformat(),
            "upload-type": upload_type,
        }
        if sha256:
            metadata["sha256"] = sha256
        return metadata

    def _object_key(self, filename: str) -> str:
        return f"{self.settings.UPLOAD_PREFIX}{filename}"

    def upload_simple(
        self,
        filename: str | None,
        stream: BinaryIO,
        size: int | None = None,
        content_type: str | None = None,
        sha256: str | None = None,
    ) -> SimpleUploadResult:
        """Store a whole file in one request.

        Args:
            filename: Client-side filename; must carry an allowed extension.
            stream: Seekable binary stream holding the body.
            size: Body size in bytes, measured from the stream when omitted.
            content_type: Declared content type, ``application/zip`` by default.
            sha256: Optional hex digest the body must match.

        Raises:
            ValidationError: Bad filename, malformed or mismatched checksum.
            SizeLimitError: Body larger than ``MAX_FILE_SIZE``.
            StoreError: The store rejected the write.
        """
        name = self._validate_filename(filename)
        if size is None:
            size = _stream_size(stream)
        size = self._validate_size(size, allow_zero=True)
        expected = self._validate_sha256(sha256)

        if expected is not None:
            actual = sha256_hexdigest(stream)
            stream.seek(0)
            if actual != expected:
                raise ValidationError("sha256 does not match uploaded content")

        unique_name = generate_unique_filename(name)
        key = self._object_key(unique_name)
        with self.store_call("upload file") as store:
            result = store.put_object(
                key,
                stream,
                content_type=content_type or DEFAULT_CONTENT_TYPE,
                metadata=self._build_metadata(name, "simple", expected),
            )

        logger.info(
            "simple upload stored key=%s size=%s",
            key,
            size,
            extra={"extra": {"key": key, "size": size, "upload_type": "simple"}},
        )
        return SimpleUploadResult(
            key=key, filename=unique_name, size=size, etag=result.etag
        )

    def initiate(
        self,
        filename: str | None,
        size: Any,
        content_type: str | None = None,
        sha256: str | None = None,
    ) -> MultipartInitResult:
        """Open a multipart session for a new object."""
        if not filename or size in (None, ""):
            raise ValidationError("filename and size are required")
        name = self._validate_filename(filename)
        total = self._validate_size(size, allow_zero=False)
        checksum = self._validate_sha256(sha256)

        unique_name = generate_unique_filename(name)
        key = self._object_key(unique_name)
        with self.store_call("initiate multipart upload") as store:
            upload = store.create_multipart_upload(
                key,
                content_type=content_type or DEFAULT_CONTENT_TYPE,
                metadata=self._build_metadata(name, "multipart", checksum),
            )

        logger.info(
            "multipart upload initiated key=%s size=%s",
            key,
            total,
            extra={
                "extra": {
                    "key": key,
                    "size": total,
                    "upload_id": upload.upload_id,
                    "upload_type": "multipart",
                }
            },
        )
        return MultipartInitResult(
            upload_id=upload.upload_id,
            key=key,
            filename=unique_name,
            chunk_size=self.settings.CHUNK_SIZE,
        )

    def upload_part(
        self,
        key: str | None,
        upload_id: str | None,
        part_number: Any,
        body: BinaryIO | bytes,
    ) -> UploadedPart:
        """Store one numbered part of an open session."""
        object_key = self._require(key, "key")
        session_id = self._require(upload_id, "uploadId")
        number = _coerce_int(part_number)
        if number is None or number < 1:
            raise ValidationError("partNumber must be a positive integer")
        if number > MAX_PART_NUMBER:
            raise ValidationError(f"partNumber must not exceed {MAX_PART_NUMBER}")

        session = resume_multipart_upload(self.store, object_key, session_id)
        with self.store_call(f"upload part {number}"):
            etag = session.upload_part(number, body)
        if not etag:
            raise StoreError(f"Store returned no ETag for part {number}")
        return UploadedPart(part_number=number, etag=etag)

    def _coerce_parts(self, parts: Any) -> list[CompletedPart]:
        if not isinstance(parts, (list, tuple)):
            raise ValidationError("parts must be a list")
        if not parts:
            raise ValidationError("parts must not be empty")

        completed: list[CompletedPart] = []
        for index, entry in enumerate(parts):
            if isinstance(entry, CompletedPart):
                raw_number, raw_etag = entry.part_number, entry.etag
            elif isinstance(entry, Mapping):
                raw_number = entry.get("PartNumber", entry.get("part_number"))
                raw_etag = entry.get("ETag", entry.get("etag"))
            else:
                raise ValidationError(f"parts[{index}] must be an object")
            number = _coerce_int(raw_number)
            if number is None or number < 1:
                raise ValidationError(
                    f"parts[{index}].PartNumber must be a positive integer"
                )
            if not raw_etag or not str(raw_etag).strip():
                raise ValidationError(f"parts[{index}].ETag is required")
            completed.append(CompletedPart(part_number=number, etag=str(raw_etag)))

        numbers = sorted(part.part_number for part in completed)
        if numbers != list(range(1, len(completed) + 1)):
            raise ValidationError(
                "parts must be numbered 1..N without gaps or duplicates"
            )
        return sorted(completed, key=lambda part: part.part_number)

    def complete(
        self,
        key: str | None,
        upload_id: str | None,
        parts: Sequence[Mapping[str, Any] | CompletedPart] | Any,
    ) -> str:
        """Assemble the uploaded parts into the final object and return its key."""
        object_key = self._require(key, "key")
        session_id = self._require(upload_id, "uploadId")
        ordered = self._coerce_parts(parts)

        session = resume_multipart_upload(self.store, object_key, session_id)
        with self.store_call("complete multipart upload"):
            session.complete(ordered)

        logger.info(
            "multipart upload completed key=%s parts=%s",
            object_key,
            len(ordered),
            extra={
                "extra": {
                    "key": object_key,
                    "upload_id": session_id,
                    "parts": len(ordered),
                }
            },
        )
        return object_key

    def abort(self, key: str | None, upload_id: str | None) -> None:
        """Abort an open session; store failures propagate as ``StoreError``."""
        object_key = self._require(key, "key")
        session_id = self._require(upload_id, "uploadId")
        session = resume_multipart_upload(self.store, object_key, session_id)
        with self.store_call("abort multipart upload"):
            session.abort()
        logger.info(
            "multipart upload aborted key=%s",
            object_key,
            extra={"extra": {"key": object_key, "upload_id": session_id}},
        )
