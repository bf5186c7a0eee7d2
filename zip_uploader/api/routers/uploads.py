"""Upload API router.

Single-shot uploads plus the init / part / complete / abort endpoints of the
multipart protocol. Service exceptions are rendered by the application-level
handlers registered in ``zip_uploader.main``.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, UploadFile

from zip_uploader.api.deps import get_correlation_id, get_services
from zip_uploader.api.schemas.uploads import (
    MessageOut,
    MultipartAbort,
    MultipartComplete,
    MultipartCompleteOut,
    MultipartInit,
    MultipartInitOut,
    MultipartPartOut,
    SimpleUploadOut,
)
from zip_uploader.infra.observability.metrics import UPLOAD_BYTES
from zip_uploader.infra.storage import CompletedPart
from zip_uploader.services import ServiceBundle, ValidationError

router = APIRouter()


@router.post(
    "/upload",
    response_model=SimpleUploadOut,
    summary="Upload a file",
    description="Store a whole ZIP file in one request.",
)
def upload_file(
    file: UploadFile | None = File(default=None),
    sha256: str | None = Form(default=None),
    services: ServiceBundle = Depends(get_services),
    correlation_id: str = Depends(get_correlation_id),
) -> SimpleUploadOut:
    if file is None:
        raise ValidationError("No file provided")
    result = services.upload().upload_simple(
        file.filename,
        file.file,
        size=file.size,
        content_type=file.content_type,
        sha256=sha256,
    )
    UPLOAD_BYTES.labels("simple").inc(result.size)
    return SimpleUploadOut(
        key=result.key,
        filename=result.filename,
        size=result.size,
        etag=result.etag,
        correlation_id=correlation_id,
    )


@router.post(
    "/upload/multipart/init",
    response_model=MultipartInitOut,
    summary="Initialize multipart upload",
    description="Open a multipart upload session for a new object.",
)
def init_multipart_upload(
    payload: MultipartInit,
    services: ServiceBundle = Depends(get_services),
    correlation_id: str = Depends(get_correlation_id),
) -> MultipartInitOut:
    result = services.upload().initiate(
        payload.filename,
        payload.size,
        content_type=payload.content_type,
        sha256=payload.sha256,
    )
    return MultipartInitOut(
        upload_id=result.upload_id,
        key=result.key,
        filename=result.filename,
        chunk_size=result.chunk_size,
        correlation_id=correlation_id,
    )


@router.post(
    "/upload/multipart/part",
    response_model=MultipartPartOut,
    summary="Upload one part",
    description="Store one numbered part of an open multipart session.",
)
def upload_part(
    chunk: UploadFile | None = File(default=None),
    key: str | None = Form(default=None),
    upload_id: str | None = Form(default=None, alias="uploadId"),
    part_number: str | None = Form(default=None, alias="partNumber"),
    services: ServiceBundle = Depends(get_services),
    correlation_id: str = Depends(get_correlation_id),
) -> MultipartPartOut:
    if chunk is None:
        raise ValidationError("chunk is required")
    uploaded = services.upload().upload_part(key, upload_id, part_number, chunk.file)
    if chunk.size:
        UPLOAD_BYTES.labels("multipart").inc(chunk.size)
    return MultipartPartOut(
        part_number=uploaded.part_number,
        etag=uploaded.etag,
        correlation_id=correlation_id,
    )


@router.post(
    "/upload/multipart/complete",
    response_model=MultipartCompleteOut,
    summary="Complete multipart upload",
    description="Assemble the uploaded parts into the final object.",
)
def complete_multipart_upload(
    payload: MultipartComplete,
    services: ServiceBundle = Depends(get_services),
    correlation_id: str = Depends(get_correlation_id),
) -> MultipartCompleteOut:
    parts = None
    if payload.parts is not None:
        parts = [
            CompletedPart(part_number=part.part_number, etag=part.etag)
            for part in payload.parts
        ]
    key = services.upload().complete(payload.key, payload.upload_id, parts)
    return MultipartCompleteOut(key=key, correlation_id=correlation_id)


@router.post(
    "/upload/multipart/abort",
    response_model=MessageOut,
    summary="Abort multipart upload",
    description="Abort an open multipart session and release its parts.",
)
def abort_multipart_upload(
    payload: MultipartAbort,
    services: ServiceBundle = Depends(get_services),
    correlation_id: str = Depends(get_correlation_id),
) -> MessageOut:
    services.upload().abort(payload.key, payload.upload_id)
    return MessageOut(message="Upload aborted", correlation_id=correlation_id)
