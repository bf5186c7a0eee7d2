"""Pydantic schemas for upload API endpoints.

Field names on the wire are camelCase; Python attributes stay snake_case and
are mapped through aliases.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SimpleUploadOut(WireModel):
    """Response model for a single-shot upload."""

    success: bool = True
    key: str
    filename: str
    size: int
    etag: str | None = None
    correlation_id: str = Field(alias="correlationId")


class MultipartInit(WireModel):
    """Request body for opening a multipart session."""

    filename: str | None = None
    size: int | None = None
    content_type: str | None = Field(default=None, alias="contentType")
    sha256: str | None = None


class MultipartInitOut(WireModel):
    """Response model for multipart session initialization."""

    upload_id: str = Field(alias="uploadId")
    key: str
    filename: str
    chunk_size: int = Field(alias="chunkSize")
    correlation_id: str = Field(alias="correlationId")


class MultipartPartOut(WireModel):
    """Response model for one uploaded part."""

    part_number: int = Field(alias="partNumber")
    etag: str
    success: bool = True
    correlation_id: str = Field(alias="correlationId")


class CompletedPartIn(WireModel):
    """One ``{PartNumber, ETag}`` entry of a completion request."""

    part_number: int = Field(alias="PartNumber")
    etag: str = Field(alias="ETag")


class MultipartComplete(WireModel):
    """Request body for completing a multipart upload."""

    key: str | None = None
    upload_id: str | None = Field(default=None, alias="uploadId")
    parts: list[CompletedPartIn] | None = None


class MultipartCompleteOut(WireModel):
    success: bool = True
    key: str
    correlation_id: str = Field(alias="correlationId")


class MultipartAbort(WireModel):
    """Request body for aborting a multipart upload."""

    key: str | None = None
    upload_id: str | None = Field(default=None, alias="uploadId")


class MessageOut(WireModel):
    success: bool = True
    message: str
    correlation_id: str = Field(alias="correlationId")
