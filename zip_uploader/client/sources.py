"""Byte sources an upload can be read from.

A source is resolved once, when the caller hands something to the uploader,
into either a file on disk or an in-memory buffer. Everything downstream reads
through ``read(offset, length)`` and never inspects the concrete type again.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union

DEFAULT_CONTENT_TYPE = "application/zip"


@dataclass(frozen=True, slots=True)
class FileSource:
    """Ranged reads from a file on disk."""

    path: Path
    size: int
    filename: str
    content_type: str = DEFAULT_CONTENT_TYPE

    @classmethod
    def from_path(
        cls,
        path: str | os.PathLike[str],
        *,
        filename: str | None = None,
        content_type: str | None = None,
    ) -> "FileSource":
        resolved = Path(path)
        return cls(
            path=resolved,
            size=resolved.stat().st_size,
            filename=filename or resolved.name,
            content_type=content_type or DEFAULT_CONTENT_TYPE,
        )

    def read(self, offset: int, length: int) -> bytes:
        with self.path.open("rb") as handle:
            handle.seek(offset)
            return handle.read(length)


@dataclass(frozen=True, slots=True)
class BytesSource:
    """An upload held entirely in memory."""

    data: bytes
    filename: str
    content_type: str = DEFAULT_CONTENT_TYPE

    @property
    def size(self) -> int:
        return len(self.data)

    def read(self, offset: int, length: int) -> bytes:
        return self.data[offset : offset + length]


ByteSource = Union[FileSource, BytesSource]


def as_byte_source(
    obj: object,
    *,
    filename: str | None = None,
    content_type: str | None = None,
) -> ByteSource:
    """Resolve a path, a bytes buffer or an existing source into a ``ByteSource``.

    Raises:
        TypeError: For any other kind of object.
        ValueError: When bytes are given without a filename.
    """
    if isinstance(obj, (FileSource, BytesSource)):
        return obj
    if isinstance(obj, (str, os.PathLike)):
        return FileSource.from_path(obj, filename=filename, content_type=content_type)
    if isinstance(obj, (bytes, bytearray, memoryview)):
        if not filename:
            raise ValueError("filename is required for in-memory sources")
        return BytesSource(
            data=bytes(obj),
            filename=filename,
            content_type=content_type or DEFAULT_CONTENT_TYPE,
        )
    raise TypeError(f"Unsupported upload source: {type(obj).__name__}")
