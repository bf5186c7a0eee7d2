from .base import (
    BaseService,
    NotFoundError,
    ServiceError,
    SizeLimitError,
    StoreError,
    ValidationError,
)
from .bundle import ServiceBundle, get_service_bundle
from .checksum import compute_sha256, sha256_hexdigest
from .file_service import FileService
from .listing_service import (
    ListingFile,
    ListingPage,
    ListingService,
    SearchCursor,
    SearchPage,
)
from .upload_service import (
    MultipartInitResult,
    SimpleUploadResult,
    UploadedPart,
    UploadService,
    generate_unique_filename,
)

__all__ = [
    "BaseService",
    "ServiceError",
    "ValidationError",
    "SizeLimitError",
    "NotFoundError",
    "StoreError",
    "ServiceBundle",
    "get_service_bundle",
    "compute_sha256",
    "sha256_hexdigest",
    "FileService",
    "ListingService",
    "ListingFile",
    "ListingPage",
    "SearchPage",
    "SearchCursor",
    "UploadService",
    "SimpleUploadResult",
    "MultipartInitResult",
    "UploadedPart",
    "generate_unique_filename",
]
