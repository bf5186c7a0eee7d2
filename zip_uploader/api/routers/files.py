"""File browsing API router.

Listing, recursive search, download and delete of stored objects.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from zip_uploader.api.deps import get_correlation_id, get_services
from zip_uploader.api.schemas.files import FileEntryOut, ListingOut, SearchOut
from zip_uploader.api.schemas.uploads import MessageOut
from zip_uploader.services import ListingFile, ServiceBundle
from zip_uploader.services.file_service import object_basename

router = APIRouter()

CHECKSUM_HEADER = "X-Checksum-SHA256"


def _file_entry(item: ListingFile) -> FileEntryOut:
    return FileEntryOut(
        key=item.key,
        filename=item.filename,
        size=item.size,
        last_modified=item.last_modified,
        etag=item.etag,
    )


def _download(services: ServiceBundle, key: str, disposition: str) -> StreamingResponse:
    stored = services.file().get(key)
    headers = {
        "Content-Disposition": f'{disposition}; filename="{object_basename(stored.key)}"',
    }
    if stored.size:
        headers["Content-Length"] = str(stored.size)
    if stored.etag:
        headers["ETag"] = stored.etag
    checksum = stored.metadata.get("sha256")
    if checksum:
        headers[CHECKSUM_HEADER] = checksum
    return StreamingResponse(
        stored.iter_chunks(),
        media_type=stored.content_type or "application/octet-stream",
        headers=headers,
    )


@router.get(
    "/files",
    response_model=ListingOut,
    summary="List files",
    description="List folders and files directly under a prefix.",
)
def list_files(
    prefix: str | None = Query(default=None),
    cursor: str | None = Query(default=None),
    limit: int = Query(default=100),
    services: ServiceBundle = Depends(get_services),
    correlation_id: str = Depends(get_correlation_id),
) -> ListingOut:
    page = services.listing().list(prefix, cursor=cursor, limit=limit)
    return ListingOut(
        prefix=page.prefix,
        folders=page.folders,
        files=[_file_entry(item) for item in page.files],
        truncated=page.truncated,
        cursor=page.cursor,
        correlation_id=correlation_id,
    )


@router.get(
    "/search",
    response_model=SearchOut,
    summary="Search files",
    description="Recursive case-insensitive substring search on keys under a prefix.",
)
def search_files(
    prefix: str | None = Query(default=None),
    q: str | None = Query(default=None),
    cursor: str | None = Query(default=None),
    limit: int = Query(default=50),
    services: ServiceBundle = Depends(get_services),
    correlation_id: str = Depends(get_correlation_id),
) -> SearchOut:
    page = services.listing().search(prefix, q, cursor=cursor, limit=limit)
    return SearchOut(
        prefix=page.prefix,
        q=page.query,
        files=[_file_entry(item) for item in page.files],
        truncated=page.truncated,
        cursor=page.cursor,
        correlation_id=correlation_id,
    )


@router.get(
    "/files/{key:path}",
    summary="Download file",
    description="Stream the raw bytes of a stored object as an attachment.",
)
def download_file(
    key: str, services: ServiceBundle = Depends(get_services)
) -> StreamingResponse:
    return _download(services, key, "attachment")


@router.get(
    "/files-inline/{key:path}",
    summary="View file inline",
    description="Stream the raw bytes of a stored object for inline display.",
)
def view_file_inline(
    key: str, services: ServiceBundle = Depends(get_services)
) -> StreamingResponse:
    return _download(services, key, "inline")


@router.delete(
    "/files/{key:path}",
    response_model=MessageOut,
    summary="Delete file",
)
def delete_file(
    key: str,
    services: ServiceBundle = Depends(get_services),
    correlation_id: str = Depends(get_correlation_id),
) -> MessageOut:
    services.file().delete(key)
    return MessageOut(message="File deleted", correlation_id=correlation_id)
