import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from zip_uploader.common.logging import correlation_id_context
from zip_uploader.infra.observability.metrics import LATENCY, REQUESTS

CORRELATION_HEADER = "X-Correlation-ID"


def _client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return None


def _route_template(request: Request) -> str:
    route = request.scope.get("route", None)
    if route is not None and hasattr(route, "path"):
        return route.path
    return request.url.path


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Correlation id propagation, access logging and request metrics."""

    def __init__(self, app: ASGIApp, *, enable_metrics: bool = True) -> None:
        super().__init__(app)
        self.enable_metrics = enable_metrics

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        token = correlation_id_context.set(correlation_id)
        client_ip = _client_ip(request)
        logger = logging.getLogger("http")

        try:
            try:
                response = await call_next(request)
            except Exception as exc:
                elapsed = time.perf_counter() - start
                logger.exception(
                    "request_error method=%s route=%s status=%s duration_ms=%.3f "
                    "correlation_id=%s client_ip=%s",
                    request.method,
                    request.url.path,
                    500,
                    round(elapsed * 1000, 3),
                    correlation_id,
                    client_ip or "-",
                    extra={
                        "extra": {
                            "method": request.method,
                            "route": request.url.path,
                            "status": 500,
                            "duration_ms": round(elapsed * 1000, 3),
                            "client_ip": client_ip,
                            "exception": repr(exc),
                        }
                    },
                )
                raise

            elapsed = time.perf_counter() - start
            status_code = response.status_code
            route = _route_template(request)

            if self.enable_metrics:
                REQUESTS.labels(request.method, route, str(status_code)).inc()
                LATENCY.labels(request.method, route).observe(elapsed)

            if CORRELATION_HEADER not in response.headers:
                response.headers[CORRELATION_HEADER] = correlation_id

            level = logging.INFO
            if status_code >= 500:
                level = logging.ERROR
            elif status_code >= 400:
                level = logging.WARNING

            duration_ms = round(elapsed * 1000, 3)
            logger.log(
                level,
                "request method=%s route=%s status=%s duration_ms=%.3f "
                "correlation_id=%s client_ip=%s query=%s user_agent=%s",
                request.method,
                route,
                status_code,
                duration_ms,
                correlation_id,
                client_ip or "-",
                request.url.query or "-",
                request.headers.get("User-Agent") or "-",
                extra={
                    "extra": {
                        "method": request.method,
                        "route": route,
                        "query": request.url.query,
                        "status": status_code,
                        "duration_ms": duration_ms,
                        "client_ip": client_ip,
                        "user_agent": request.headers.get("User-Agent"),
                    }
                },
            )
            return response
        finally:
            correlation_id_context.reset(token)
