from __future__ import annotations

from dataclasses import dataclass


class ApiError(Exception):
    """Raised when the upload service answers with an error or cannot be reached."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        correlation_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.correlation_id = correlation_id

    def __str__(self) -> str:
        if self.correlation_id:
            return f"{self.message} (correlation id: {self.correlation_id})"
        return self.message


class PartUploadError(ApiError):
    """Raised when one part of a multipart upload fails; fatal for the whole upload."""

    def __init__(
        self,
        message: str,
        part_number: int,
        status_code: int | None = None,
        correlation_id: str | None = None,
    ) -> None:
        super().__init__(message, status_code, correlation_id)
        self.part_number = part_number


class ChecksumMismatchError(Exception):
    """Raised when downloaded bytes do not match the advertised SHA-256."""

    def __init__(self, key: str, expected: str, actual: str) -> None:
        super().__init__(
            f"Checksum mismatch for {key}: expected {expected}, got {actual}"
        )
        self.key = key
        self.expected = expected
        self.actual = actual


@dataclass(frozen=True, slots=True)
class AbortFailure:
    """Secondary failure while aborting a multipart session. Logged, never raised."""

    key: str
    upload_id: str
    error: BaseException
