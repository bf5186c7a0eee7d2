"""Prefix-scoped listing and recursive substring search.

Every prefix is confined to the configured root segment. Listing maps to a
single delimited store call; search walks the recursive listing page by page
and stops at the caller's limit or at a fixed number of store pages.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from urllib.parse import unquote

from zip_uploader.common.config import Settings
from zip_uploader.infra.storage import ObjectStore, ObjectSummary

from .base import BaseService, ValidationError

logger = logging.getLogger(__name__)

LIST_LIMIT_RANGE = (1, 1000)
SEARCH_LIMIT_RANGE = (1, 500)
DEFAULT_LIST_LIMIT = 100
DEFAULT_SEARCH_LIMIT = 50


@dataclass(frozen=True, slots=True)
class ListingFile:
    key: str
    filename: str
    size: int
    last_modified: datetime | None
    etag: str | None


@dataclass(frozen=True, slots=True)
class ListingPage:
    prefix: str
    folders: list[str] = field(default_factory=list)
    files: list[ListingFile] = field(default_factory=list)
    truncated: bool = False
    cursor: str | None = None


@dataclass(frozen=True, slots=True)
class SearchPage:
    prefix: str
    query: str
    files: list[ListingFile] = field(default_factory=list)
    truncated: bool = False
    cursor: str | None = None


@dataclass(frozen=True, slots=True)
class SearchCursor:
    """Resume point of a search: a store page and an offset inside it."""

    store_cursor: str | None
    offset: int

    def encode(self) -> str:
        raw = json.dumps(
            {"c": self.store_cursor, "o": self.offset}, separators=(",", ":")
        ).encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")

    @classmethod
    def decode(cls, token: str) -> "SearchCursor":
        padded = token + "=" * (-len(token) % 4)
        try:
            payload = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
        except (binascii.Error, UnicodeError, ValueError) as exc:
            raise ValidationError("Invalid search cursor") from exc
        if not isinstance(payload, dict):
            raise ValidationError("Invalid search cursor")
        store_cursor = payload.get("c")
        offset = payload.get("o")
        if store_cursor is not None and not isinstance(store_cursor, str):
            raise ValidationError("Invalid search cursor")
        if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
            raise ValidationError("Invalid search cursor")
        return cls(store_cursor=store_cursor, offset=offset)


def clamp(value: int, bounds: tuple[int, int]) -> int:
    low, high = bounds
    return max(low, min(high, int(value)))


def _to_file(obj: ObjectSummary) -> ListingFile:
    return ListingFile(
        key=obj.key,
        filename=obj.key.rsplit("/", 1)[-1],
        size=obj.size,
        last_modified=obj.last_modified,
        etag=obj.etag,
    )


class ListingService(BaseService):
    """Browse and search objects under the storage root."""

    def __init__(self, store: ObjectStore, settings: Settings | None = None) -> None:
        super().__init__(store, settings)

    @property
    def root(self) -> str:
        return self.settings.STORAGE_ROOT_PREFIX

    def normalize_prefix(self, prefix: str | None) -> str:
        """Return the canonical ``/``-terminated prefix or raise ``ValidationError``.

        Prefixes outside the root are rejected rather than replaced by the root.
        """
        if prefix is None or prefix == "":
            return self.root
        decoded = unquote(prefix)
        if not decoded.endswith("/"):
            decoded = f"{decoded}/"
        if not decoded.startswith(self.root):
            raise ValidationError(f"prefix must start with '{self.root}'")
        if ".." in decoded.split("/"):
            raise ValidationError("prefix must not contain '..' segments")
        return decoded

    def list(
        self,
        prefix: str | None = None,
        cursor: str | None = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> ListingPage:
        """Return one delimited page of folders and files directly under ``prefix``."""
        scoped = self.normalize_prefix(prefix)
        with self.store_call("list files") as store:
            listing = store.list_objects(
                prefix=scoped,
                delimiter="/",
                limit=clamp(limit, LIST_LIMIT_RANGE),
                cursor=cursor or None,
            )

        files = [_to_file(obj) for obj in listing.objects if not obj.key.endswith("/")]
        truncated = bool(listing.truncated and listing.cursor)
        return ListingPage(
            prefix=scoped,
            folders=list(listing.delimited_prefixes),
            files=files,
            truncated=truncated,
            cursor=listing.cursor if truncated else None,
        )

    def search(
        self,
        prefix: str | None,
        query: str | None,
        cursor: str | None = None,
        limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> SearchPage:
        """Recursive, case-insensitive substring search over keys under ``prefix``.

        At most ``SEARCH_MAX_PAGES`` store pages are scanned per call. When the
        cap is hit the matches found so far are returned with ``truncated`` set
        and a cursor that resumes at the next unscanned store page.
        """
        scoped = self.normalize_prefix(prefix)
        needle = (query or "").strip()
        if not needle:
            return SearchPage(prefix=scoped, query=query or "")

        position = SearchCursor.decode(cursor) if cursor else SearchCursor(None, 0)
        wanted = clamp(limit, SEARCH_LIMIT_RANGE)
        page_size = self.settings.SEARCH_PAGE_SIZE
        max_pages = self.settings.SEARCH_MAX_PAGES
        lowered = needle.lower()

        matches: list[ListingFile] = []
        store_cursor = position.store_cursor
        offset = position.offset
        pages_scanned = 0
        next_position: SearchCursor | None = None

        while True:
            with self.store_call("search files") as store:
                listing = store.list_objects(
                    prefix=scoped, limit=page_size, cursor=store_cursor
                )
            pages_scanned += 1
            objects = listing.objects
            has_more_pages = bool(listing.truncated and listing.cursor)

            for index in range(offset, len(objects)):
                obj = objects[index]
                if obj.key.endswith("/") or lowered not in obj.key.lower():
                    continue
                matches.append(_to_file(obj))
                if len(matches) < wanted:
                    continue
                if index + 1 < len(objects):
                    next_position = SearchCursor(store_cursor, index + 1)
                elif has_more_pages:
                    next_position = SearchCursor(listing.cursor, 0)
                break

            if len(matches) >= wanted or not has_more_pages:
                break
            store_cursor = listing.cursor
            offset = 0
            if pages_scanned >= max_pages:
                next_position = SearchCursor(store_cursor, 0)
                logger.info(
                    "search page cap reached prefix=%s pages=%s matches=%s",
                    scoped,
                    pages_scanned,
                    len(matches),
                    extra={
                        "extra": {
                            "prefix": scoped,
                            "pages_scanned": pages_scanned,
                            "matches": len(matches),
                        }
                    },
                )
                break

        return SearchPage(
            prefix=scoped,
            query=query or "",
            files=matches,
            truncated=next_position is not None,
            cursor=next_position.encode() if next_position else None,
        )
