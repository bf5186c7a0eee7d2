import logging
from datetime import datetime, timezone

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from zip_uploader import __version__
from zip_uploader.api.deps import (
    CORRELATION_HEADER,
    get_correlation_id,
    get_object_store,
    require_api_key,
)
from zip_uploader.api.routers.files import router as files_router
from zip_uploader.api.routers.uploads import router as uploads_router
from zip_uploader.api.schemas.files import HealthOut
from zip_uploader.common.config import get_settings
from zip_uploader.common.logging import setup_logging
from zip_uploader.infra.observability.metrics import metrics_app
from zip_uploader.infra.observability.middleware import ObservabilityMiddleware
from zip_uploader.infra.storage import ObjectStore, StorageError
from zip_uploader.services import ServiceError

SERVICE_NAME = "zip-uploader"

ERROR_CODE_BY_STATUS = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    413: "payload_too_large",
    415: "unsupported_media_type",
    429: "too_many_requests",
    500: "internal_error",
    502: "bad_gateway",
    503: "service_unavailable",
}

ENDPOINTS = [
    "GET /api/health",
    "POST /api/upload",
    "POST /api/upload/multipart/init",
    "POST /api/upload/multipart/part",
    "POST /api/upload/multipart/complete",
    "POST /api/upload/multipart/abort",
    "GET /api/files",
    "GET /api/files/{key}",
    "GET /api/files-inline/{key}",
    "DELETE /api/files/{key}",
    "GET /api/search",
]


def _normalize_detail(detail):
    if isinstance(detail, dict):
        maybe_code = detail.get("error_code")
        cleaned = {k: v for k, v in detail.items() if k != "error_code"}
        if len(cleaned) == 1 and "message" in cleaned:
            cleaned = cleaned["message"]
        if not cleaned:
            cleaned = None
        return cleaned, maybe_code if isinstance(maybe_code, str) else None
    return detail, None


def _resolve_error_code(status_code: int, override: str | None = None) -> str:
    if override:
        return override
    if status_code == 422:
        return "validation_error"
    return ERROR_CODE_BY_STATUS.get(status_code, "unknown_error")


def _error_response(
    request: Request, status_code: int, message, code: str
) -> JSONResponse:
    correlation_id = get_correlation_id(request)
    return JSONResponse(
        status_code=status_code,
        content={
            "error": message,
            "code": code,
            "correlationId": correlation_id,
        },
        headers={CORRELATION_HEADER: correlation_id},
    )


def _log_error(request: Request, status_code: int, message, code: str) -> None:
    logger = logging.getLogger("http")
    logger.log(
        logging.WARNING if status_code < 500 else logging.ERROR,
        "http_error status=%s code=%s detail=%s method=%s path=%s",
        status_code,
        code,
        message,
        request.method,
        request.url.path,
        extra={
            "extra": {
                "status": status_code,
                "code": code,
                "detail": message,
                "method": request.method,
                "route": request.url.path,
            }
        },
    )


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    app = FastAPI(
        title="ZIP Uploader",
        version=__version__,
        description="ZIP archive upload, listing and download service backed by S3-compatible storage",
    )

    # Routers
    app.include_router(
        uploads_router,
        prefix="/api",
        tags=["uploads"],
        dependencies=[Depends(require_api_key)],
    )
    app.include_router(
        files_router,
        prefix="/api",
        tags=["files"],
        dependencies=[Depends(require_api_key)],
    )

    # Metrics
    app.add_middleware(ObservabilityMiddleware, enable_metrics=settings.ENABLE_METRICS)
    if settings.ENABLE_METRICS:
        app.mount("/metrics", metrics_app)

    # Optional CORS (outermost)
    if settings.CORS_ENABLED:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.CORS_ORIGINS or ["*"],
            allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
            allow_headers=["Content-Type", "X-API-Key", CORRELATION_HEADER],
            expose_headers=["ETag", "X-Checksum-SHA256", CORRELATION_HEADER],
        )

    @app.on_event("startup")
    def on_startup() -> None:
        startup_logger = logging.getLogger("zip_uploader.startup")
        startup_logger.info(
            "zip-uploader starting backend=%s bucket=%s root_prefix=%s "
            "upload_prefix=%s api_key_enabled=%s",
            settings.STORAGE_BACKEND,
            settings.S3_BUCKET or "<unset>",
            settings.STORAGE_ROOT_PREFIX,
            settings.UPLOAD_PREFIX,
            settings.API_KEY_ENABLED,
        )

    @app.exception_handler(ServiceError)
    async def service_exception_handler(request: Request, exc: ServiceError):
        _log_error(request, exc.status_code, str(exc), exc.error_code)
        return _error_response(request, exc.status_code, str(exc), exc.error_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ):
        normalized_detail, code_override = _normalize_detail(exc.detail)
        code = _resolve_error_code(exc.status_code, code_override)
        _log_error(request, exc.status_code, normalized_detail, code)
        return _error_response(request, exc.status_code, normalized_detail, code)

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        errors = jsonable_encoder(exc.errors())
        message = "; ".join(
            f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
            for error in errors
        )
        _log_error(request, 400, message, "validation_error")
        return _error_response(request, 400, message or "Invalid request", "validation_error")

    @app.get("/")
    def index(correlation_id: str = Depends(get_correlation_id)):
        return {
            "service": SERVICE_NAME,
            "version": __version__,
            "endpoints": ENDPOINTS,
            "correlationId": correlation_id,
        }

    @app.get("/api/health", response_model=HealthOut)
    def health(
        store: ObjectStore = Depends(get_object_store),
        correlation_id: str = Depends(get_correlation_id),
    ):
        storage_connected = True
        try:
            store.list_objects(prefix=settings.STORAGE_ROOT_PREFIX, limit=1)
        except StorageError as exc:
            storage_connected = False
            logging.getLogger("http").warning(
                "health_check_failed error=%s",
                exc,
                extra={"extra": {"error": str(exc)}},
            )

        payload = HealthOut(
            status="ok" if storage_connected else "unhealthy",
            service=SERVICE_NAME,
            storage_connected=storage_connected,
            timestamp=datetime.now(timezone.utc),
            correlation_id=correlation_id,
        )
        return JSONResponse(
            status_code=200 if storage_connected else 503,
            content=jsonable_encoder(payload, by_alias=True),
        )

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("zip_uploader.main:app", host="0.0.0.0", port=8000, reload=True)
