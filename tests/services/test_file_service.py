import pytest

from zip_uploader.common.config import Settings
from zip_uploader.infra.storage import StorageError
from zip_uploader.services import FileService, NotFoundError, StoreError, ValidationError
from zip_uploader.services.file_service import object_basename
from tests.services.mock_storage import MockObjectStore


@pytest.fixture
def mock_store():
    store = MockObjectStore()
    store.add_object("unzipped/feeds/a.zip", b"zip-a", metadata={"sha256": "ab" * 32})
    return store


@pytest.fixture
def service(mock_store):
    return FileService(mock_store, Settings(S3_BUCKET="b"))


def test_get_returns_object_with_metadata(service):
    stored = service.get("unzipped/feeds/a.zip")

    assert b"".join(stored.iter_chunks()) == b"zip-a"
    assert stored.metadata["sha256"] == "ab" * 32


def test_get_missing_raises_not_found(service):
    with pytest.raises(NotFoundError):
        service.get("unzipped/feeds/missing.zip")


@pytest.mark.parametrize("key", ["", None, "unzipped/../etc/passwd", ".."])
def test_rejects_invalid_keys(service, mock_store, key):
    with pytest.raises(ValidationError):
        service.get(key)
    with pytest.raises(ValidationError):
        service.delete(key)
    assert mock_store.calls == []


def test_delete_removes_object(service, mock_store):
    service.delete("unzipped/feeds/a.zip")

    assert "unzipped/feeds/a.zip" not in mock_store.objects


def test_store_failure_becomes_store_error(service, mock_store):
    mock_store.fail_on["get_object"] = StorageError("boom")

    with pytest.raises(StoreError):
        service.get("unzipped/feeds/a.zip")


def test_object_basename():
    assert object_basename("unzipped/feeds/a.zip") == "a.zip"
    assert object_basename("a.zip") == "a.zip"
    assert object_basename("folder/") == "file"
