from __future__ import annotations

import os

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("S3_BUCKET", "test-bucket")
os.environ.setdefault("API_KEY_ENABLED", "false")

from zip_uploader.api.deps import get_object_store  # noqa: E402
from zip_uploader.common.config import Settings, get_settings  # noqa: E402
from zip_uploader.main import create_app  # noqa: E402

from tests.services.mock_storage import MockObjectStore  # noqa: E402


@pytest.fixture
def store() -> MockObjectStore:
    return MockObjectStore()


@pytest.fixture
def settings() -> Settings:
    return Settings(S3_BUCKET="test-bucket")


@pytest.fixture
def app(store):
    get_settings.cache_clear()  # type: ignore[attr-defined]
    application = create_app()
    application.dependency_overrides[get_object_store] = lambda: store
    yield application
    application.dependency_overrides.clear()
    get_settings.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
