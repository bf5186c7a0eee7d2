"""Pydantic schemas for listing, search and system endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class FileEntryOut(BaseModel):
    """One file of a listing or search page."""

    model_config = ConfigDict(populate_by_name=True)

    key: str
    filename: str
    size: int
    last_modified: datetime | None = Field(default=None, alias="lastModified")
    etag: str | None = None


class ListingOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prefix: str
    folders: list[str] = Field(default_factory=list)
    files: list[FileEntryOut] = Field(default_factory=list)
    truncated: bool = False
    cursor: str | None = None
    correlation_id: str = Field(alias="correlationId")


class SearchOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prefix: str
    q: str
    files: list[FileEntryOut] = Field(default_factory=list)
    truncated: bool = False
    cursor: str | None = None
    correlation_id: str = Field(alias="correlationId")


class HealthOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str
    service: str
    storage_connected: bool
    timestamp: datetime
    correlation_id: str = Field(alias="correlationId")
