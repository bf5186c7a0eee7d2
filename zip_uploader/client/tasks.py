from __future__ import annotations

import secrets
import time
from dataclasses import dataclass, field
from enum import Enum

from .sources import ByteSource


class UploadStatus(str, Enum):
    QUEUED = "queued"
    HASHING = "hashing"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    FAILED = "failed"


class UploadStrategy(str, Enum):
    SIMPLE = "simple"
    MULTIPART = "multipart"


TERMINAL_STATUSES = frozenset({UploadStatus.COMPLETED, UploadStatus.FAILED})

_NEXT_STATUSES: dict[UploadStatus, frozenset[UploadStatus]] = {
    UploadStatus.QUEUED: frozenset({UploadStatus.HASHING, UploadStatus.FAILED}),
    UploadStatus.HASHING: frozenset({UploadStatus.UPLOADING, UploadStatus.FAILED}),
    UploadStatus.UPLOADING: frozenset({UploadStatus.COMPLETED, UploadStatus.FAILED}),
    UploadStatus.COMPLETED: frozenset(),
    UploadStatus.FAILED: frozenset(),
}


class InvalidTransitionError(ValueError):
    """Raised when a task status would move backwards or leave a terminal state."""


def new_file_id() -> str:
    return f"{int(time.time() * 1000)}-{secrets.token_hex(5)}"


@dataclass
class UploadTask:
    """One file's journey from the queue to the store.

    Status only moves forward and the checksum cannot change once recorded.
    """

    source: ByteSource
    file_id: str = field(default_factory=new_file_id)
    status: UploadStatus = UploadStatus.QUEUED
    strategy: UploadStrategy | None = None
    error: str | None = None
    _checksum: str | None = field(default=None, init=False, repr=False)

    @property
    def checksum(self) -> str | None:
        return self._checksum

    @checksum.setter
    def checksum(self, value: str) -> None:
        if self._checksum is not None and self._checksum != value:
            raise ValueError(f"checksum of task {self.file_id} is already set")
        self._checksum = value

    @property
    def filename(self) -> str:
        return self.source.filename

    @property
    def size(self) -> int:
        return self.source.size

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def advance(self, status: UploadStatus) -> None:
        if status not in _NEXT_STATUSES[self.status]:
            raise InvalidTransitionError(
                f"cannot move task {self.file_id} from {self.status.value} to {status.value}"
            )
        self.status = status

    def fail(self, error: BaseException | str) -> None:
        if self.status is not UploadStatus.FAILED:
            self.advance(UploadStatus.FAILED)
        self.error = str(error)
