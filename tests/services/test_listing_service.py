"""Tests for prefix listing and recursive search."""

from __future__ import annotations

import base64

import pytest

from zip_uploader.common.config import Settings
from zip_uploader.infra.storage import StorageError
from zip_uploader.services import (
    ListingService,
    SearchCursor,
    StoreError,
    ValidationError,
)
from tests.services.mock_storage import MockObjectStore


@pytest.fixture
def mock_store() -> MockObjectStore:
    store = MockObjectStore()
    store.add_object("unzipped/readme.zip")
    store.add_object("unzipped/feeds/")
    store.add_object("unzipped/feeds/2024/invoice-01.zip")
    store.add_object("unzipped/feeds/2024/report.zip")
    store.add_object("unzipped/archive/old.zip")
    store.add_object("outside/secret.zip")
    return store


def _service(store, **overrides) -> ListingService:
    return ListingService(store, Settings(S3_BUCKET="b", **overrides))


class TestNormalizePrefix:
    @pytest.fixture
    def service(self, mock_store):
        return _service(mock_store)

    @pytest.mark.parametrize("raw", [None, ""])
    def test_empty_means_root(self, service, raw):
        assert service.normalize_prefix(raw) == "unzipped/"

    def test_appends_trailing_slash(self, service):
        assert service.normalize_prefix("unzipped/feeds") == "unzipped/feeds/"

    def test_url_decodes_once(self, service):
        assert service.normalize_prefix("unzipped%2Ffeeds%2F2024") == "unzipped/feeds/2024/"

    @pytest.mark.parametrize(
        "raw", ["etc/passwd", "/unzipped/", "unzippedx/", "feeds/2024/"]
    )
    def test_rejects_prefix_outside_root(self, service, raw):
        with pytest.raises(ValidationError, match="must start with"):
            service.normalize_prefix(raw)

    def test_rejects_parent_segments(self, service):
        with pytest.raises(ValidationError, match=r"\.\."):
            service.normalize_prefix("unzipped/../outside/")


class TestList:
    def test_splits_folders_and_files(self, mock_store):
        page = _service(mock_store).list("unzipped/")

        assert page.prefix == "unzipped/"
        assert page.folders == ["unzipped/archive/", "unzipped/feeds/"]
        assert [f.key for f in page.files] == ["unzipped/readme.zip"]
        assert page.files[0].filename == "readme.zip"
        assert page.truncated is False
        assert page.cursor is None

    def test_skips_folder_markers(self, mock_store):
        page = _service(mock_store).list("unzipped/feeds/")

        assert page.files == []
        assert page.folders == ["unzipped/feeds/2024/"]

    def test_prefix_outside_root_makes_no_store_call(self, mock_store):
        with pytest.raises(ValidationError):
            _service(mock_store).list("etc/passwd")
        assert mock_store.count("list_objects") == 0

    def test_cursor_present_only_when_truncated(self, mock_store):
        service = _service(mock_store)

        first = service.list("unzipped/", limit=2)
        assert first.truncated is True
        assert first.cursor is not None

        second = service.list("unzipped/", cursor=first.cursor, limit=2)
        assert second.truncated is False
        assert second.cursor is None
        assert [f.key for f in second.files] == ["unzipped/readme.zip"]

    def test_replaying_cursor_returns_same_page(self, mock_store):
        service = _service(mock_store)
        first = service.list("unzipped/", limit=1)

        again = service.list("unzipped/", cursor=first.cursor, limit=1)
        once_more = service.list("unzipped/", cursor=first.cursor, limit=1)

        assert again == once_more

    @pytest.mark.parametrize("limit,expected", [(0, 1), (-4, 1), (5000, 1000), (10, 10)])
    def test_limit_is_clamped(self, mock_store, limit, expected):
        seen = {}
        original = mock_store.list_objects

        def spy(**kwargs):
            seen.update(kwargs)
            return original(**kwargs)

        mock_store.list_objects = spy
        _service(mock_store).list(None, limit=limit)

        assert seen["limit"] == expected
        assert seen["delimiter"] == "/"

    def test_store_failure_becomes_store_error(self, mock_store):
        mock_store.fail_on["list_objects"] = StorageError("timeout")

        with pytest.raises(StoreError, match="timeout"):
            _service(mock_store).list()


class TestSearch:
    def test_matches_case_insensitively_and_recursively(self, mock_store):
        page = _service(mock_store).search("unzipped/", "INVOICE")

        assert [f.key for f in page.files] == ["unzipped/feeds/2024/invoice-01.zip"]
        assert page.query == "INVOICE"
        assert page.truncated is False
        assert page.cursor is None

    def test_results_stay_under_prefix(self, mock_store):
        page = _service(mock_store).search("unzipped/", "secret")
        assert page.files == []

    def test_folder_markers_never_match(self, mock_store):
        page = _service(mock_store).search("unzipped/", "feeds")
        assert all(not f.key.endswith("/") for f in page.files)

    @pytest.mark.parametrize("query", [None, "", "   "])
    def test_blank_query_skips_store(self, mock_store, query):
        page = _service(mock_store).search("unzipped/", query)

        assert page.files == []
        assert page.truncated is False
        assert mock_store.count("list_objects") == 0

    def test_prefix_outside_root_is_rejected(self, mock_store):
        with pytest.raises(ValidationError):
            _service(mock_store).search("feeds/2024/", "invoice")
        assert mock_store.count("list_objects") == 0

    def test_stops_at_page_cap_with_partial_results(self):
        store = MockObjectStore()
        for index in range(100):
            name = "invoice" if index == 3 else "other"
            store.add_object(f"unzipped/feeds/2024/{index:04d}-{name}.zip")
        service = _service(store, SEARCH_PAGE_SIZE=10, SEARCH_MAX_PAGES=3)

        page = service.search("unzipped/feeds/2024/", "invoice", limit=50)

        assert [f.key for f in page.files] == ["unzipped/feeds/2024/0003-invoice.zip"]
        assert page.truncated is True
        assert page.cursor is not None
        assert store.count("list_objects") == 3

    def test_resumes_after_page_cap(self):
        store = MockObjectStore()
        for index in range(40):
            store.add_object(f"unzipped/{index:04d}-invoice.zip")
        service = _service(store, SEARCH_PAGE_SIZE=10, SEARCH_MAX_PAGES=2)

        seen: list[str] = []
        cursor = None
        while True:
            page = service.search(None, "invoice", cursor=cursor, limit=500)
            seen.extend(f.key for f in page.files)
            if not page.truncated:
                break
            cursor = page.cursor

        assert seen == [f"unzipped/{index:04d}-invoice.zip" for index in range(40)]

    def test_limit_mid_page_loses_no_matches(self):
        store = MockObjectStore()
        for index in range(7):
            store.add_object(f"unzipped/{index}-invoice.zip")
        service = _service(store, SEARCH_PAGE_SIZE=1000)

        first = service.search(None, "invoice", limit=3)
        second = service.search(None, "invoice", cursor=first.cursor, limit=3)
        third = service.search(None, "invoice", cursor=second.cursor, limit=3)

        keys = [f.key for p in (first, second, third) for f in p.files]
        assert keys == [f"unzipped/{index}-invoice.zip" for index in range(7)]
        assert first.truncated and second.truncated
        assert third.truncated is False

    def test_replaying_search_cursor_returns_same_page(self):
        store = MockObjectStore()
        for index in range(6):
            store.add_object(f"unzipped/{index}-invoice.zip")
        service = _service(store)
        first = service.search(None, "invoice", limit=2)

        assert service.search(None, "invoice", cursor=first.cursor, limit=2) == (
            service.search(None, "invoice", cursor=first.cursor, limit=2)
        )

    def test_search_limit_is_clamped(self, mock_store):
        store = MockObjectStore()
        for index in range(600):
            store.add_object(f"unzipped/{index:04d}-invoice.zip")

        page = _service(store).search(None, "invoice", limit=10_000)

        assert len(page.files) == 500
        assert page.truncated is True

    @pytest.mark.parametrize(
        "cursor",
        [
            "not-base64!!",
            base64.urlsafe_b64encode(b"[1, 2]").decode(),
            base64.urlsafe_b64encode(b'{"c": 5, "o": 0}').decode(),
            base64.urlsafe_b64encode(b'{"c": null, "o": -1}').decode(),
        ],
    )
    def test_malformed_cursor_is_rejected(self, mock_store, cursor):
        with pytest.raises(ValidationError, match="cursor"):
            _service(mock_store).search(None, "invoice", cursor=cursor)


def test_search_cursor_round_trip():
    cursor = SearchCursor(store_cursor="tok", offset=7)
    assert SearchCursor.decode(cursor.encode()) == cursor
