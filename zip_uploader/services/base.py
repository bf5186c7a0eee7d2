from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from zip_uploader.common.config import Settings, get_settings
from zip_uploader.infra.storage import ObjectStore, StorageError


class ServiceError(Exception):
    """Base class for application service level exceptions."""

    status_code = 500
    error_code = "internal_error"


class ValidationError(ServiceError):
    """Raised when a required field is missing or malformed."""

    status_code = 400
    error_code = "validation_error"


class SizeLimitError(ServiceError):
    """Raised when a file exceeds the configured maximum size."""

    status_code = 400
    error_code = "size_limit_exceeded"


class NotFoundError(ServiceError):
    """Raised when the requested key does not exist."""

    status_code = 404
    error_code = "not_found"


class StoreError(ServiceError):
    """Raised when the object store fails for reasons outside the caller's control."""

    status_code = 500
    error_code = "store_error"


class BaseService:
    """Provides guard rails and helpers shared by application services."""

    def __init__(self, store: ObjectStore, settings: Settings | None = None):
        self._store = store
        self._settings = settings or get_settings()

    @property
    def store(self) -> ObjectStore:
        return self._store

    @property
    def settings(self) -> Settings:
        return self._settings

    def _require(self, value: str | None, field_name: str) -> str:
        if value is None or not str(value).strip():
            raise ValidationError(f"{field_name} is required")
        return str(value)

    @contextmanager
    def store_call(self, action: str) -> Generator[ObjectStore, None, None]:
        """Translate storage failures into ``StoreError`` for one store interaction."""
        try:
            yield self._store
        except StorageError as exc:
            raise StoreError(f"Failed to {action}: {exc}") from exc
