"""Object store protocol and data types.

This module defines the contract the service consumes from the remote blob
store: single-shot put/get/delete, prefix listing with opaque cursors, and the
native multipart upload primitive.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import BinaryIO, Iterator, Protocol, Sequence


class StorageError(RuntimeError):
    """Raised when object storage operations fail."""


@dataclass(frozen=True, slots=True)
class CompletedPart:
    """Represents a completed part in a multipart upload."""

    part_number: int
    etag: str


@dataclass(frozen=True, slots=True)
class MultipartUpload:
    """Result of initiating a multipart upload."""

    upload_id: str
    object_key: str


@dataclass(frozen=True, slots=True)
class PutResult:
    """Result of a single-shot object write."""

    etag: str | None


@dataclass(frozen=True, slots=True)
class ObjectSummary:
    """One entry of a listing page."""

    key: str
    size: int
    last_modified: datetime | None
    etag: str | None


@dataclass(frozen=True, slots=True)
class ObjectListing:
    """One page returned by the store's list call."""

    objects: list[ObjectSummary] = field(default_factory=list)
    delimited_prefixes: list[str] = field(default_factory=list)
    truncated: bool = False
    cursor: str | None = None


@dataclass(slots=True)
class StoredObject:
    """An object fetched from the store, body not yet consumed."""

    key: str
    body: BinaryIO
    size: int
    content_type: str | None
    etag: str | None
    metadata: dict[str, str] = field(default_factory=dict)

    def iter_chunks(self, chunk_size: int = 1024 * 1024) -> Iterator[bytes]:
        try:
            while True:
                chunk = self.body.read(chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            self.body.close()


class ObjectStore(Protocol):
    """Protocol defining the interface for object storage backends."""

    def put_object(
        self,
        key: str,
        body: BinaryIO | bytes,
        *,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> PutResult:
        """Write a whole object in one request.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def get_object(self, key: str) -> StoredObject | None:
        """Fetch an object, or ``None`` when the key does not exist.

        Raises:
            StorageError: If the operation fails for any other reason.
        """
        ...

    def delete_object(self, key: str) -> None:
        """Delete an object. Deleting a missing key is not an error."""
        ...

    def list_objects(
        self,
        *,
        prefix: str,
        delimiter: str | None = None,
        limit: int = 1000,
        cursor: str | None = None,
    ) -> ObjectListing:
        """List one page of objects under ``prefix``.

        Args:
            prefix: Key prefix the listing is scoped to.
            delimiter: When set, keys are rolled up into ``delimited_prefixes``
                at the first delimiter after the prefix.
            limit: Maximum number of entries for this page.
            cursor: Continuation token returned by a previous page.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def create_multipart_upload(
        self,
        key: str,
        *,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> MultipartUpload:
        """Open a multipart upload session for ``key``."""
        ...

    def upload_part(
        self,
        key: str,
        upload_id: str,
        part_number: int,
        body: BinaryIO | bytes,
    ) -> str:
        """Upload one numbered part and return its entity tag."""
        ...

    def complete_multipart_upload(
        self,
        key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> None:
        """Assemble the uploaded parts into the final object."""
        ...

    def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        """Abort a multipart upload and release its parts."""
        ...


class MultipartSession:
    """Handle on an in-progress multipart upload, bound to one key and upload id."""

    def __init__(self, store: ObjectStore, key: str, upload_id: str) -> None:
        self._store = store
        self.key = key
        self.upload_id = upload_id

    def upload_part(self, part_number: int, body: BinaryIO | bytes) -> str:
        return self._store.upload_part(self.key, self.upload_id, part_number, body)

    def complete(self, parts: Sequence[CompletedPart]) -> None:
        self._store.complete_multipart_upload(self.key, self.upload_id, parts)

    def abort(self) -> None:
        self._store.abort_multipart_upload(self.key, self.upload_id)


def resume_multipart_upload(
    store: ObjectStore, key: str, upload_id: str
) -> MultipartSession:
    """Re-attach to a multipart session created by an earlier request."""
    return MultipartSession(store, key, upload_id)
