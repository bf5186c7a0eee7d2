"""Streaming SHA-256 digests.

The digest is fed incrementally, one chunk at a time, so sources far larger
than memory can be hashed. The chunk size only changes how many reads are
made, never the resulting digest.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from typing import BinaryIO, Callable, Protocol

logger = logging.getLogger(__name__)

DEFAULT_HASH_CHUNK_SIZE = 32 * 1024 * 1024

ProgressCallback = Callable[[int], None]


class RangedSource(Protocol):
    """Anything exposing a total size and ranged reads."""

    @property
    def size(self) -> int: ...

    def read(self, offset: int, length: int) -> bytes: ...


def _validate_chunk_size(chunk_size: int) -> int:
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    return int(chunk_size)


def _notify(on_progress: ProgressCallback | None, percent: int) -> None:
    if on_progress is None:
        return
    try:
        on_progress(percent)
    except Exception:
        logger.debug("checksum progress callback failed", exc_info=True)


async def compute_sha256(
    source: RangedSource,
    *,
    chunk_size: int = DEFAULT_HASH_CHUNK_SIZE,
    on_progress: ProgressCallback | None = None,
) -> str:
    """Hash ``source`` chunk by chunk and return the lowercase hex digest.

    Each chunk read runs in a worker thread so the event loop is never blocked.
    ``on_progress`` receives the floor percentage of bytes hashed after every
    chunk; errors it raises are logged and ignored.
    """
    chunk_size = _validate_chunk_size(chunk_size)
    digest = hashlib.sha256()
    total = int(source.size)

    if total == 0:
        _notify(on_progress, 100)
        return digest.hexdigest()

    offset = 0
    while offset < total:
        length = min(chunk_size, total - offset)
        chunk = await asyncio.to_thread(source.read, offset, length)
        if not chunk:
            raise IOError(f"Unexpected end of source at offset {offset}")
        digest.update(chunk)
        offset += len(chunk)
        _notify(on_progress, offset * 100 // total)

    return digest.hexdigest()


def sha256_hexdigest(
    stream: BinaryIO, *, chunk_size: int = DEFAULT_HASH_CHUNK_SIZE
) -> str:
    """Hash a readable binary stream until EOF."""
    chunk_size = _validate_chunk_size(chunk_size)
    digest = hashlib.sha256()
    while True:
        chunk = stream.read(chunk_size)
        if not chunk:
            break
        digest.update(chunk)
    return digest.hexdigest()
