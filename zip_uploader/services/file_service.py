from __future__ import annotations

import logging

from zip_uploader.common.config import Settings
from zip_uploader.infra.storage import ObjectStore, StoredObject

from .base import BaseService, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def object_basename(key: str) -> str:
    return key.rsplit("/", 1)[-1] or "file"


class FileService(BaseService):
    """Fetch and delete stored objects by key."""

    def __init__(self, store: ObjectStore, settings: Settings | None = None) -> None:
        super().__init__(store, settings)

    def _validate_key(self, key: str | None) -> str:
        value = self._require(key, "key")
        if ".." in value.split("/"):
            raise ValidationError("key must not contain '..' segments")
        return value

    def get(self, key: str | None) -> StoredObject:
        object_key = self._validate_key(key)
        with self.store_call("get file") as store:
            stored = store.get_object(object_key)
        if stored is None:
            raise NotFoundError("File not found")
        return stored

    def delete(self, key: str | None) -> None:
        object_key = self._validate_key(key)
        with self.store_call("delete file") as store:
            store.delete_object(object_key)
        logger.info(
            "file deleted key=%s",
            object_key,
            extra={"extra": {"key": object_key}},
        )
