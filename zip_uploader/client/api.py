"""Async HTTP client for the upload service.

Every wire route is wrapped by one coroutine on ``UploadApiClient``. Error
responses are turned into ``ApiError`` carrying the server's message and the
correlation id the operator can look up in the service logs.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import os
from pathlib import Path
from typing import Any
from urllib.parse import quote

import httpx

from .errors import ApiError, ChecksumMismatchError
from .sources import ByteSource

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"
CHECKSUM_HEADER = "X-Checksum-SHA256"
DEFAULT_TIMEOUT = 300.0
DOWNLOAD_CHUNK_SIZE = 1024 * 1024


def _error_message(response: httpx.Response, fallback: str) -> tuple[str, str | None]:
    correlation_id = response.headers.get(CORRELATION_HEADER)
    try:
        body = response.json()
    except ValueError:
        return fallback, correlation_id
    if not isinstance(body, dict):
        return fallback, correlation_id
    message = body.get("error")
    if not isinstance(message, str) or not message:
        message = fallback
    return message, body.get("correlationId") or correlation_id


class UploadApiClient:
    """Thin async wrapper over ``httpx.AsyncClient`` for the upload service."""

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        headers = {"X-API-Key": api_key} if api_key else {}
        self._owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._client = client
        self._headers = headers
        self._base_url = base_url.rstrip("/")

    async def __aenter__(self) -> "UploadApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    async def _request(
        self, method: str, path: str, *, fallback: str, **kwargs: Any
    ) -> httpx.Response:
        headers = {**self._headers, **kwargs.pop("headers", {})}
        try:
            response = await self._client.request(
                method, self._url(path), headers=headers, **kwargs
            )
        except httpx.HTTPError as exc:
            raise ApiError(f"{fallback}: {exc}") from exc
        if response.is_success:
            return response
        message, correlation_id = _error_message(response, fallback)
        raise ApiError(message, response.status_code, correlation_id)

    async def _json(
        self, method: str, path: str, *, fallback: str, **kwargs: Any
    ) -> dict[str, Any]:
        response = await self._request(method, path, fallback=fallback, **kwargs)
        return response.json()

    async def health(self) -> dict[str, Any]:
        return await self._json("GET", "/api/health", fallback="Health check failed")

    async def upload_simple(
        self, source: ByteSource, *, sha256: str | None = None
    ) -> dict[str, Any]:
        body = await asyncio.to_thread(source.read, 0, source.size)
        data = {"sha256": sha256} if sha256 else {}
        return await self._json(
            "POST",
            "/api/upload",
            fallback="Upload failed",
            files={"file": (source.filename, body, source.content_type)},
            data=data,
        )

    async def init_multipart(
        self,
        filename: str,
        size: int,
        *,
        content_type: str | None = None,
        sha256: str | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"filename": filename, "size": size}
        if content_type:
            payload["contentType"] = content_type
        if sha256:
            payload["sha256"] = sha256
        return await self._json(
            "POST",
            "/api/upload/multipart/init",
            fallback="Failed to initiate multipart upload",
            json=payload,
        )

    async def upload_part(
        self, key: str, upload_id: str, part_number: int, chunk: bytes
    ) -> dict[str, Any]:
        return await self._json(
            "POST",
            "/api/upload/multipart/part",
            fallback=f"Failed to upload part {part_number}",
            files={"chunk": (f"part-{part_number}", chunk, "application/octet-stream")},
            data={"key": key, "uploadId": upload_id, "partNumber": str(part_number)},
        )

    async def complete_multipart(
        self, key: str, upload_id: str, parts: list[dict[str, Any]]
    ) -> dict[str, Any]:
        return await self._json(
            "POST",
            "/api/upload/multipart/complete",
            fallback="Failed to complete multipart upload",
            json={"key": key, "uploadId": upload_id, "parts": parts},
        )

    async def abort_multipart(self, key: str, upload_id: str) -> dict[str, Any]:
        return await self._json(
            "POST",
            "/api/upload/multipart/abort",
            fallback="Failed to abort multipart upload",
            json={"key": key, "uploadId": upload_id},
        )

    async def list_files(
        self,
        prefix: str | None = None,
        *,
        cursor: str | None = None,
        limit: int | None = None,
    ) -> dict[str, Any]:
        params = {
            name: value
            for name, value in (("prefix", prefix), ("cursor", cursor), ("limit", limit))
            if value is not None
        }
        return await self._json(
            "GET", "/api/files", fallback="Failed to list files", params=params
        )

    async def search(
        self,
        query: str,
        *,
        prefix: str | None = None,
        cursor: str | None = None,
        limit: int | None = None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"q": query}
        if prefix is not None:
            params["prefix"] = prefix
        if cursor is not None:
            params["cursor"] = cursor
        if limit is not None:
            params["limit"] = limit
        return await self._json(
            "GET", "/api/search", fallback="Failed to search files", params=params
        )

    async def delete(self, key: str) -> dict[str, Any]:
        return await self._json(
            "DELETE",
            f"/api/files/{quote(key, safe='/')}",
            fallback="Failed to delete file",
        )

    async def download(self, key: str, dest: str | os.PathLike[str]) -> Path:
        """Download ``key`` into ``dest``, verifying ``X-Checksum-SHA256`` when sent.

        Bytes go to a temporary sibling file first; on a checksum mismatch the
        temporary file is removed and ``dest`` is left untouched.
        """
        target = Path(dest)
        partial = target.with_name(f"{target.name}.part")
        digest = hashlib.sha256()
        url = self._url(f"/api/files/{quote(key, safe='/')}")

        try:
            async with self._client.stream("GET", url, headers=self._headers) as response:
                if not response.is_success:
                    await response.aread()
                    message, correlation_id = _error_message(
                        response, "Failed to download file"
                    )
                    raise ApiError(message, response.status_code, correlation_id)
                expected = response.headers.get(CHECKSUM_HEADER)
                handle = await asyncio.to_thread(partial.open, "wb")
                try:
                    async for chunk in response.aiter_bytes(DOWNLOAD_CHUNK_SIZE):
                        digest.update(chunk)
                        await asyncio.to_thread(handle.write, chunk)
                finally:
                    await asyncio.to_thread(handle.close)
        except httpx.HTTPError as exc:
            partial.unlink(missing_ok=True)
            raise ApiError(f"Failed to download file: {exc}") from exc

        actual = digest.hexdigest()
        if expected and actual != expected.lower():
            partial.unlink(missing_ok=True)
            raise ChecksumMismatchError(key, expected, actual)

        await asyncio.to_thread(partial.replace, target)
        logger.info(
            "downloaded %s to %s",
            key,
            target,
            extra={"extra": {"key": key, "dest": str(target), "verified": bool(expected)}},
        )
        return target
