"""Bidirectional paging over forward-only cursors.

The store only hands out "next" cursors, so the cursor used to fetch each
page is recorded by page index. Going back replays the recorded cursor for
the previous index instead of synthesizing one.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from .api import UploadApiClient


class PageState(str, Enum):
    FIRST_PAGE = "first_page"
    HAS_NEXT = "has_next"
    LAST_PAGE = "last_page"


class PageUnavailableError(LookupError):
    """Raised when navigating past the first or last page."""


class CursorPager:
    """Cursor book indexed by logical page number."""

    def __init__(self) -> None:
        self._cursors: list[str | None] = [None]
        self.page_index = 0
        self.state = PageState.FIRST_PAGE

    def reset(self) -> None:
        self._cursors = [None]
        self.page_index = 0
        self.state = PageState.FIRST_PAGE

    def record(
        self, page_index: int, cursor: str | None, next_cursor: str | None
    ) -> None:
        """Remember the cursor that produced ``page_index`` and the one after it."""
        if page_index < 0 or page_index > len(self._cursors):
            raise IndexError(f"page {page_index} is not reachable")
        del self._cursors[page_index:]
        self._cursors.append(cursor)
        if next_cursor:
            self._cursors.append(next_cursor)
        self.page_index = page_index
        if page_index == 0:
            self.state = PageState.FIRST_PAGE
        elif next_cursor:
            self.state = PageState.HAS_NEXT
        else:
            self.state = PageState.LAST_PAGE

    def cursor_for(self, page_index: int) -> str | None:
        if page_index < 0 or page_index >= len(self._cursors):
            raise IndexError(f"no cursor recorded for page {page_index}")
        return self._cursors[page_index]

    @property
    def has_next(self) -> bool:
        return self.page_index + 1 < len(self._cursors)

    @property
    def has_previous(self) -> bool:
        return self.page_index > 0


class _CursorBrowser:
    def __init__(self, api: UploadApiClient, pager: CursorPager | None = None) -> None:
        self.api = api
        self.pager = pager or CursorPager()

    async def _load(self, cursor: str | None) -> dict[str, Any]:
        raise NotImplementedError

    async def _fetch(self, page_index: int) -> dict[str, Any]:
        cursor = self.pager.cursor_for(page_index)
        page = await self._load(cursor)
        next_cursor = page.get("cursor") if page.get("truncated") else None
        self.pager.record(page_index, cursor, next_cursor)
        return page

    async def first(self) -> dict[str, Any]:
        self.pager.reset()
        return await self._fetch(0)

    async def next(self) -> dict[str, Any]:
        if not self.pager.has_next:
            raise PageUnavailableError("already on the last page")
        return await self._fetch(self.pager.page_index + 1)

    async def previous(self) -> dict[str, Any]:
        if not self.pager.has_previous:
            raise PageUnavailableError("already on the first page")
        return await self._fetch(self.pager.page_index - 1)


class ListingBrowser(_CursorBrowser):
    def __init__(
        self,
        api: UploadApiClient,
        prefix: str | None = None,
        *,
        limit: int | None = None,
        pager: CursorPager | None = None,
    ) -> None:
        super().__init__(api, pager)
        self.prefix = prefix
        self.limit = limit

    async def _load(self, cursor: str | None) -> dict[str, Any]:
        return await self.api.list_files(self.prefix, cursor=cursor, limit=self.limit)


class SearchBrowser(_CursorBrowser):
    def __init__(
        self,
        api: UploadApiClient,
        query: str,
        *,
        prefix: str | None = None,
        limit: int | None = None,
        pager: CursorPager | None = None,
    ) -> None:
        super().__init__(api, pager)
        self.query = query
        self.prefix = prefix
        self.limit = limit

    async def _load(self, cursor: str | None) -> dict[str, Any]:
        return await self.api.search(
            self.query, prefix=self.prefix, cursor=cursor, limit=self.limit
        )
