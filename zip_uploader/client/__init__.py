from .api import UploadApiClient
from .errors import AbortFailure, ApiError, ChecksumMismatchError, PartUploadError
from .orchestrator import (
    MultipartRef,
    PartSpec,
    UploadOrchestrator,
    UploadProgress,
    UploadResult,
    attempt_abort,
    split_into_parts,
)
from .pagination import (
    CursorPager,
    ListingBrowser,
    PageState,
    PageUnavailableError,
    SearchBrowser,
)
from .queue import UploadQueueManager
from .sources import BytesSource, ByteSource, FileSource, as_byte_source
from .tasks import InvalidTransitionError, UploadStatus, UploadStrategy, UploadTask

__all__ = [
    "UploadApiClient",
    "ApiError",
    "PartUploadError",
    "AbortFailure",
    "ChecksumMismatchError",
    "UploadOrchestrator",
    "UploadProgress",
    "UploadResult",
    "MultipartRef",
    "PartSpec",
    "attempt_abort",
    "split_into_parts",
    "CursorPager",
    "PageState",
    "PageUnavailableError",
    "ListingBrowser",
    "SearchBrowser",
    "UploadQueueManager",
    "ByteSource",
    "BytesSource",
    "FileSource",
    "as_byte_source",
    "UploadTask",
    "UploadStatus",
    "UploadStrategy",
    "InvalidTransitionError",
]
