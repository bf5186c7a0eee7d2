from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

ENV_FILE = Path(".env")

MIB = 1024 * 1024
GIB = 1024 * MIB

DEFAULT_ALLOWED_EXTENSIONS: tuple[str, ...] = (".zip",)


def _load_env_file() -> None:
    if not ENV_FILE.exists():
        return
    for raw_line in ENV_FILE.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "y", "on"}


def _as_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _as_int(value: str | None, default: int) -> int:
    if value is None or value.strip() == "":
        return default
    return int(value)


@dataclass
class Settings:
    STORAGE_BACKEND: str = "s3"
    S3_BUCKET: str | None = None
    S3_ENDPOINT_URL: str | None = None
    S3_REGION: str = "auto"
    S3_ACCESS_KEY_ID: str | None = None
    S3_SECRET_ACCESS_KEY: str | None = None
    S3_USE_SSL: bool = True
    S3_ADDRESSING_STYLE: str = "path"
    STORAGE_ROOT_PREFIX: str = "unzipped/"
    UPLOAD_PREFIX: str = "uploads/"
    MAX_FILE_SIZE: int = 5 * GIB
    CHUNK_SIZE: int = 8 * MIB
    ALLOWED_EXTENSIONS: list[str] = field(
        default_factory=lambda: list(DEFAULT_ALLOWED_EXTENSIONS)
    )
    SEARCH_PAGE_SIZE: int = 1000
    SEARCH_MAX_PAGES: int = 10
    API_KEY_ENABLED: bool = False
    API_KEY_PUBLIC: str | None = None
    API_KEY_ADMIN: str | None = None
    CORS_ENABLED: bool = False
    CORS_ORIGINS: list[str] = field(default_factory=list)
    ENABLE_METRICS: bool = True
    LOG_LEVEL: str = "INFO"

    def __post_init__(self) -> None:
        if not self.STORAGE_ROOT_PREFIX or not self.STORAGE_ROOT_PREFIX.endswith("/"):
            raise ValueError("STORAGE_ROOT_PREFIX must be a non-empty prefix ending with '/'.")
        if not self.UPLOAD_PREFIX.endswith("/"):
            raise ValueError("UPLOAD_PREFIX must end with '/'.")
        if self.MAX_FILE_SIZE <= 0:
            raise ValueError("MAX_FILE_SIZE must be positive.")
        # S3 rejects non-final parts below 5 MiB
        if self.CHUNK_SIZE < 5 * MIB:
            raise ValueError("CHUNK_SIZE must be at least 5 MiB.")
        if not 1 <= self.SEARCH_PAGE_SIZE <= 1000:
            raise ValueError("SEARCH_PAGE_SIZE must be between 1 and 1000.")
        if self.SEARCH_MAX_PAGES < 1:
            raise ValueError("SEARCH_MAX_PAGES must be at least 1.")
        self.ALLOWED_EXTENSIONS = [
            ext.lower() if ext.startswith(".") else f".{ext.lower()}"
            for ext in self.ALLOWED_EXTENSIONS
        ]

    @classmethod
    def from_environment(cls) -> "Settings":
        _load_env_file()
        allowed_extensions_env = os.environ.get("ALLOWED_EXTENSIONS")
        if allowed_extensions_env is None:
            allowed_extensions = list(DEFAULT_ALLOWED_EXTENSIONS)
        else:
            allowed_extensions = _as_list(allowed_extensions_env)

        return cls(
            STORAGE_BACKEND=os.environ.get("STORAGE_BACKEND", cls.STORAGE_BACKEND),
            S3_BUCKET=os.environ.get("S3_BUCKET"),
            S3_ENDPOINT_URL=os.environ.get("S3_ENDPOINT_URL"),
            S3_REGION=os.environ.get("S3_REGION", cls.S3_REGION),
            S3_ACCESS_KEY_ID=os.environ.get("S3_ACCESS_KEY_ID"),
            S3_SECRET_ACCESS_KEY=os.environ.get("S3_SECRET_ACCESS_KEY"),
            S3_USE_SSL=_as_bool(os.environ.get("S3_USE_SSL"), cls.S3_USE_SSL),
            S3_ADDRESSING_STYLE=os.environ.get(
                "S3_ADDRESSING_STYLE", cls.S3_ADDRESSING_STYLE
            ),
            STORAGE_ROOT_PREFIX=os.environ.get(
                "STORAGE_ROOT_PREFIX", cls.STORAGE_ROOT_PREFIX
            ),
            UPLOAD_PREFIX=os.environ.get("UPLOAD_PREFIX", cls.UPLOAD_PREFIX),
            MAX_FILE_SIZE=_as_int(os.environ.get("MAX_FILE_SIZE"), cls.MAX_FILE_SIZE),
            CHUNK_SIZE=_as_int(os.environ.get("CHUNK_SIZE"), cls.CHUNK_SIZE),
            ALLOWED_EXTENSIONS=allowed_extensions,
            SEARCH_PAGE_SIZE=_as_int(
                os.environ.get("SEARCH_PAGE_SIZE"), cls.SEARCH_PAGE_SIZE
            ),
            SEARCH_MAX_PAGES=_as_int(
                os.environ.get("SEARCH_MAX_PAGES"), cls.SEARCH_MAX_PAGES
            ),
            API_KEY_ENABLED=_as_bool(
                os.environ.get("API_KEY_ENABLED"), cls.API_KEY_ENABLED
            ),
            API_KEY_PUBLIC=os.environ.get("API_KEY_PUBLIC"),
            API_KEY_ADMIN=os.environ.get("API_KEY_ADMIN"),
            CORS_ENABLED=_as_bool(os.environ.get("CORS_ENABLED"), cls.CORS_ENABLED),
            CORS_ORIGINS=_as_list(os.environ.get("CORS_ORIGINS")),
            ENABLE_METRICS=_as_bool(
                os.environ.get("ENABLE_METRICS"), cls.ENABLE_METRICS
            ),
            LOG_LEVEL=os.environ.get("LOG_LEVEL", cls.LOG_LEVEL).upper(),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_environment()
