from __future__ import annotations

import logging
import uuid
from functools import lru_cache

from fastapi import Depends, Header, HTTPException, Request

from zip_uploader.common.config import get_settings
from zip_uploader.common.logging import correlation_id_context
from zip_uploader.infra.storage import (
    ObjectStore,
    StorageBackendNotConfiguredError,
    build_object_store,
)
from zip_uploader.services import ServiceBundle, get_service_bundle

logger = logging.getLogger("http")

CORRELATION_HEADER = "X-Correlation-ID"


@lru_cache(maxsize=1)
def _cached_object_store() -> ObjectStore:
    return build_object_store(get_settings())


def get_object_store() -> ObjectStore:
    try:
        return _cached_object_store()
    except StorageBackendNotConfiguredError as exc:
        raise HTTPException(
            status_code=503,
            detail={"message": str(exc), "error_code": "storage_not_configured"},
        ) from exc


def get_services(store: ObjectStore = Depends(get_object_store)) -> ServiceBundle:
    return get_service_bundle(store, get_settings())


def get_correlation_id(request: Request) -> str:
    correlation_id = getattr(request.state, "correlation_id", None)
    if not correlation_id:
        correlation_id = (
            correlation_id_context.get()
            or request.headers.get(CORRELATION_HEADER)
            or str(uuid.uuid4())
        )
        request.state.correlation_id = correlation_id
    return correlation_id


def require_api_key(
    request: Request, x_api_key: str | None = Header(default=None)
) -> None:
    settings = get_settings()
    if not settings.API_KEY_ENABLED:
        return
    if not x_api_key:
        raise HTTPException(
            status_code=401,
            detail={"message": "Unauthorized", "error_code": "MISSING_KEY"},
        )
    accepted = {key for key in (settings.API_KEY_PUBLIC, settings.API_KEY_ADMIN) if key}
    if x_api_key in accepted:
        return
    key_prefix = f"{x_api_key[:8]}..."
    logger.warning(
        "invalid_api_key key_prefix=%s path=%s",
        key_prefix,
        request.url.path,
        extra={"extra": {"key_prefix": key_prefix, "route": request.url.path}},
    )
    raise HTTPException(
        status_code=401,
        detail={"message": "Unauthorized", "error_code": "INVALID_KEY"},
    )
