"""Client-side upload orchestration.

An upload always hashes first and transfers second. Files below the multipart
threshold go up in one request; larger files are split into fixed-size parts
and sent in batches of bounded concurrency. Batch ``n + 1`` only starts once
every request of batch ``n`` has settled, and the first failed part ends the
whole upload. Any failure after the session was opened triggers a best-effort
abort whose own failure is logged and never replaces the original error.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable

from zip_uploader.services.checksum import DEFAULT_HASH_CHUNK_SIZE, compute_sha256

from .api import UploadApiClient
from .errors import AbortFailure, ApiError, PartUploadError
from .tasks import UploadStatus, UploadStrategy, UploadTask

logger = logging.getLogger(__name__)

MIB = 1024 * 1024
DEFAULT_PART_SIZE = 8 * MIB
DEFAULT_PART_CONCURRENCY = 5
DEFAULT_MULTIPART_THRESHOLD = 100 * MIB

PHASE_HASH = "hash"
PHASE_UPLOAD = "upload"


@dataclass(frozen=True, slots=True)
class PartSpec:
    """One contiguous byte range of the file, numbered from 1."""

    part_number: int
    offset: int
    length: int


@dataclass(frozen=True, slots=True)
class UploadProgress:
    phase: str
    percent: int


@dataclass(frozen=True, slots=True)
class UploadResult:
    key: str
    etag: str | None
    correlation_id: str | None
    strategy: UploadStrategy


@dataclass(frozen=True, slots=True)
class MultipartRef:
    key: str
    upload_id: str


ProgressCallback = Callable[[UploadProgress], None]


def split_into_parts(size: int, part_size: int) -> list[PartSpec]:
    """Partition ``size`` bytes into parts of ``part_size``; the last may be shorter.

    A zero-byte file yields exactly one empty part.
    """
    if part_size <= 0:
        raise ValueError("part_size must be positive")
    if size < 0:
        raise ValueError("size must not be negative")
    if size == 0:
        return [PartSpec(part_number=1, offset=0, length=0)]
    return [
        PartSpec(
            part_number=index + 1,
            offset=offset,
            length=min(part_size, size - offset),
        )
        for index, offset in enumerate(range(0, size, part_size))
    ]


async def attempt_abort(
    api: UploadApiClient, key: str, upload_id: str
) -> AbortFailure | None:
    """Abort a multipart session, returning the failure instead of raising it."""
    try:
        await api.abort_multipart(key, upload_id)
    except Exception as exc:
        logger.warning(
            "abort of multipart upload failed key=%s upload_id=%s error=%s",
            key,
            upload_id,
            exc,
            extra={"extra": {"key": key, "upload_id": upload_id, "error": str(exc)}},
        )
        return AbortFailure(key=key, upload_id=upload_id, error=exc)
    return None


def _emit(on_progress: ProgressCallback | None, phase: str, percent: int) -> None:
    if on_progress is None:
        return
    try:
        on_progress(UploadProgress(phase=phase, percent=percent))
    except Exception:
        logger.debug("upload progress callback failed", exc_info=True)


def _as_part_error(spec: PartSpec, exc: BaseException) -> PartUploadError:
    if isinstance(exc, PartUploadError):
        return exc
    if isinstance(exc, ApiError):
        return PartUploadError(
            f"Chunk upload failed: {exc.message}",
            spec.part_number,
            exc.status_code,
            exc.correlation_id,
        )
    return PartUploadError(f"Chunk upload failed: {exc}", spec.part_number)


class UploadOrchestrator:
    """Drive one ``UploadTask`` from hashing to a durable object."""

    def __init__(
        self,
        api: UploadApiClient,
        *,
        part_size: int | None = None,
        part_concurrency: int = DEFAULT_PART_CONCURRENCY,
        multipart_threshold: int = DEFAULT_MULTIPART_THRESHOLD,
        hash_chunk_size: int = DEFAULT_HASH_CHUNK_SIZE,
    ) -> None:
        if part_size is not None and part_size <= 0:
            raise ValueError("part_size must be positive")
        if part_concurrency < 1:
            raise ValueError("part_concurrency must be at least 1")
        self.api = api
        # None means use the part size the server announces on init
        self.part_size = part_size
        self.part_concurrency = part_concurrency
        self.multipart_threshold = multipart_threshold
        self.hash_chunk_size = hash_chunk_size
        # file_id -> open multipart session, kept for cleanup bookkeeping
        self.active_uploads: dict[str, MultipartRef] = {}

    def _part_size_for(self, init: dict[str, Any]) -> int:
        if self.part_size is not None:
            return self.part_size
        announced = init.get("chunkSize")
        if isinstance(announced, int) and announced > 0:
            return announced
        return DEFAULT_PART_SIZE

    def choose_strategy(self, size: int) -> UploadStrategy:
        if size < self.multipart_threshold:
            return UploadStrategy.SIMPLE
        return UploadStrategy.MULTIPART

    async def upload(
        self, task: UploadTask, on_progress: ProgressCallback | None = None
    ) -> UploadResult:
        """Hash and transfer ``task``; the task ends ``completed`` or ``failed``."""
        try:
            task.advance(UploadStatus.HASHING)
            task.checksum = await compute_sha256(
                task.source,
                chunk_size=self.hash_chunk_size,
                on_progress=lambda percent: _emit(on_progress, PHASE_HASH, percent),
            )
            task.strategy = self.choose_strategy(task.size)
            task.advance(UploadStatus.UPLOADING)
            if task.strategy is UploadStrategy.SIMPLE:
                result = await self._upload_simple(task, on_progress)
            else:
                result = await self._upload_multipart(task, on_progress)
        except Exception as exc:
            task.fail(exc)
            logger.warning(
                "upload failed file=%s error=%s",
                task.filename,
                exc,
                extra={
                    "extra": {
                        "file_id": task.file_id,
                        "filename": task.filename,
                        "strategy": task.strategy.value if task.strategy else None,
                        "error": str(exc),
                    }
                },
            )
            raise
        task.advance(UploadStatus.COMPLETED)
        return result

    async def _upload_simple(
        self, task: UploadTask, on_progress: ProgressCallback | None
    ) -> UploadResult:
        response = await self.api.upload_simple(task.source, sha256=task.checksum)
        _emit(on_progress, PHASE_UPLOAD, 100)
        return UploadResult(
            key=response["key"],
            etag=response.get("etag"),
            correlation_id=response.get("correlationId"),
            strategy=UploadStrategy.SIMPLE,
        )

    async def _upload_part(
        self, task: UploadTask, ref: MultipartRef, spec: PartSpec
    ) -> dict[str, Any]:
        chunk = await asyncio.to_thread(task.source.read, spec.offset, spec.length)
        response = await self.api.upload_part(
            ref.key, ref.upload_id, spec.part_number, chunk
        )
        etag = response.get("etag")
        if not etag:
            raise PartUploadError(
                f"Chunk upload failed: part {spec.part_number} returned no ETag",
                spec.part_number,
                correlation_id=response.get("correlationId"),
            )
        return {"PartNumber": spec.part_number, "ETag": etag}

    async def _upload_multipart(
        self, task: UploadTask, on_progress: ProgressCallback | None
    ) -> UploadResult:
        init = await self.api.init_multipart(
            task.filename,
            task.size,
            content_type=task.source.content_type,
            sha256=task.checksum,
        )
        ref = MultipartRef(key=init["key"], upload_id=init["uploadId"])
        self.active_uploads[task.file_id] = ref

        try:
            parts = split_into_parts(task.size, self._part_size_for(init))
            completed: list[dict[str, Any]] = []
            for start in range(0, len(parts), self.part_concurrency):
                batch = parts[start : start + self.part_concurrency]
                outcomes = await asyncio.gather(
                    *(self._upload_part(task, ref, spec) for spec in batch),
                    return_exceptions=True,
                )
                for spec, outcome in zip(batch, outcomes):
                    if isinstance(outcome, BaseException):
                        error = _as_part_error(spec, outcome)
                        if error is outcome:
                            raise error
                        raise error from outcome
                    completed.append(outcome)
                _emit(
                    on_progress,
                    PHASE_UPLOAD,
                    round(len(completed) / len(parts) * 100),
                )

            completed.sort(key=lambda part: part["PartNumber"])
            response = await self.api.complete_multipart(
                ref.key, ref.upload_id, completed
            )
        except Exception:
            await attempt_abort(self.api, ref.key, ref.upload_id)
            raise
        finally:
            self.active_uploads.pop(task.file_id, None)

        logger.info(
            "multipart upload finished key=%s parts=%s",
            ref.key,
            len(completed),
            extra={
                "extra": {
                    "file_id": task.file_id,
                    "key": ref.key,
                    "upload_id": ref.upload_id,
                    "parts": len(completed),
                }
            },
        )
        return UploadResult(
            key=response.get("key", ref.key),
            etag=None,
            correlation_id=response.get("correlationId"),
            strategy=UploadStrategy.MULTIPART,
        )
