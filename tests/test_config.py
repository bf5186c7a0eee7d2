import pytest

from zip_uploader.common.config import GIB, MIB, Settings


def test_defaults():
    settings = Settings()

    assert settings.STORAGE_ROOT_PREFIX == "unzipped/"
    assert settings.UPLOAD_PREFIX == "uploads/"
    assert settings.MAX_FILE_SIZE == 5 * GIB
    assert settings.CHUNK_SIZE == 8 * MIB
    assert settings.ALLOWED_EXTENSIONS == [".zip"]
    assert settings.SEARCH_PAGE_SIZE == 1000
    assert settings.SEARCH_MAX_PAGES == 10


def test_from_environment(monkeypatch):
    monkeypatch.setenv("S3_BUCKET", "archives")
    monkeypatch.setenv("MAX_FILE_SIZE", str(100 * MIB))
    monkeypatch.setenv("API_KEY_ENABLED", "yes")
    monkeypatch.setenv("ALLOWED_EXTENSIONS", "zip, .JAR")
    monkeypatch.setenv("CORS_ORIGINS", "http://a.test, http://b.test")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings.from_environment()

    assert settings.S3_BUCKET == "archives"
    assert settings.MAX_FILE_SIZE == 100 * MIB
    assert settings.API_KEY_ENABLED is True
    assert settings.ALLOWED_EXTENSIONS == [".zip", ".jar"]
    assert settings.CORS_ORIGINS == ["http://a.test", "http://b.test"]
    assert settings.LOG_LEVEL == "DEBUG"


@pytest.mark.parametrize(
    "overrides",
    [
        {"STORAGE_ROOT_PREFIX": "unzipped"},
        {"STORAGE_ROOT_PREFIX": ""},
        {"UPLOAD_PREFIX": "uploads"},
        {"MAX_FILE_SIZE": 0},
        {"CHUNK_SIZE": 4 * MIB},
        {"SEARCH_PAGE_SIZE": 1001},
        {"SEARCH_MAX_PAGES": 0},
    ],
)
def test_invalid_values_are_rejected(overrides):
    with pytest.raises(ValueError):
        Settings(**overrides)
