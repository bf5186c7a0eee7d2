from __future__ import annotations

from dataclasses import dataclass, field

from zip_uploader.common.config import Settings
from zip_uploader.infra.storage import ObjectStore

from .file_service import FileService
from .listing_service import ListingService
from .upload_service import UploadService


@dataclass
class ServiceBundle:
    """Lazily constructs application services sharing the same object store."""

    store: ObjectStore
    settings: Settings
    _upload: UploadService | None = field(default=None, init=False, repr=False)
    _listing: ListingService | None = field(default=None, init=False, repr=False)
    _file: FileService | None = field(default=None, init=False, repr=False)

    def upload(self) -> UploadService:
        if self._upload is None:
            self._upload = UploadService(self.store, self.settings)
        return self._upload

    def listing(self) -> ListingService:
        if self._listing is None:
            self._listing = ListingService(self.store, self.settings)
        return self._listing

    def file(self) -> FileService:
        if self._file is None:
            self._file = FileService(self.store, self.settings)
        return self._file


def get_service_bundle(store: ObjectStore, settings: Settings) -> ServiceBundle:
    return ServiceBundle(store=store, settings=settings)
