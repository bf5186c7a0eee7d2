"""Command line client for the zip-uploader service."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Sequence

from zip_uploader.client import (
    ApiError,
    ChecksumMismatchError,
    ListingBrowser,
    SearchBrowser,
    UploadApiClient,
    UploadOrchestrator,
    UploadProgress,
    UploadQueueManager,
    UploadResult,
    UploadTask,
)
from zip_uploader.client.orchestrator import (
    DEFAULT_MULTIPART_THRESHOLD,
    DEFAULT_PART_CONCURRENCY,
)
from zip_uploader.client.queue import DEFAULT_MAX_PARALLEL_FILES

DEFAULT_URL = "http://localhost:8000"


def _print_progress(task: UploadTask, progress: UploadProgress) -> None:
    print(f"{task.filename}: {progress.phase} {progress.percent}%", file=sys.stderr)


def _print_page(page: dict) -> None:
    for folder in page.get("folders", []):
        print(f"{folder}")
    for item in page.get("files", []):
        print(f"{item['size']:>12}  {item.get('lastModified') or '-':<32}  {item['key']}")
    if page.get("truncated"):
        print(f"-- more results, cursor: {page.get('cursor')}", file=sys.stderr)


async def _run_upload(api: UploadApiClient, args: argparse.Namespace) -> int:
    orchestrator = UploadOrchestrator(
        api,
        part_size=args.part_size,
        part_concurrency=args.part_concurrency,
        multipart_threshold=args.multipart_threshold,
    )
    queue = UploadQueueManager(orchestrator, max_parallel_files=args.parallel_files)
    tasks = queue.enqueue(str(path) for path in args.files)
    for name in queue.skipped:
        print(f"skipped {name}: only ZIP files are allowed", file=sys.stderr)

    outcomes = await queue.drain(None if args.quiet else _print_progress)
    exit_code = 0
    for task in tasks:
        outcome = outcomes.get(task.file_id)
        if isinstance(outcome, UploadResult):
            print(f"{task.filename} -> {outcome.key} ({outcome.strategy.value})")
        else:
            exit_code = 1
            print(f"{task.filename} failed: {outcome}", file=sys.stderr)
    if queue.skipped:
        exit_code = exit_code or 2
    return exit_code


async def _run_ls(api: UploadApiClient, args: argparse.Namespace) -> int:
    browser = ListingBrowser(api, args.prefix, limit=args.limit)
    page = await browser.first()
    _print_page(page)
    for _ in range(args.pages - 1):
        if not browser.pager.has_next:
            break
        page = await browser.next()
        _print_page(page)
    return 0


async def _run_search(api: UploadApiClient, args: argparse.Namespace) -> int:
    browser = SearchBrowser(api, args.query, prefix=args.prefix, limit=args.limit)
    page = await browser.first()
    _print_page(page)
    for _ in range(args.pages - 1):
        if not browser.pager.has_next:
            break
        page = await browser.next()
        _print_page(page)
    return 0


async def _run_download(api: UploadApiClient, args: argparse.Namespace) -> int:
    dest = args.dest or Path(args.key.rsplit("/", 1)[-1])
    if dest.is_dir():
        dest = dest / args.key.rsplit("/", 1)[-1]
    path = await api.download(args.key, dest)
    print(f"downloaded {args.key} -> {path}")
    return 0


async def _run_rm(api: UploadApiClient, args: argparse.Namespace) -> int:
    for key in args.keys:
        await api.delete(key)
        print(f"deleted {key}")
    return 0


COMMANDS = {
    "upload": _run_upload,
    "ls": _run_ls,
    "search": _run_search,
    "download": _run_download,
    "rm": _run_rm,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zip-uploader", description="Upload, browse and download ZIP archives."
    )
    parser.add_argument(
        "--url",
        default=os.environ.get("ZIP_UPLOADER_URL", DEFAULT_URL),
        help="Service base URL (env: ZIP_UPLOADER_URL).",
    )
    parser.add_argument(
        "--api-key",
        default=os.environ.get("ZIP_UPLOADER_API_KEY"),
        help="Value sent as X-API-Key (env: ZIP_UPLOADER_API_KEY).",
    )
    parser.add_argument("--timeout", type=float, default=300.0)
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    upload = sub.add_parser("upload", help="Upload one or more ZIP files.")
    upload.add_argument("files", nargs="+", type=Path)
    upload.add_argument(
        "--part-size",
        type=int,
        default=None,
        help="Multipart part size in bytes (default: the size the server announces).",
    )
    upload.add_argument(
        "--part-concurrency", type=int, default=DEFAULT_PART_CONCURRENCY
    )
    upload.add_argument(
        "--multipart-threshold", type=int, default=DEFAULT_MULTIPART_THRESHOLD
    )
    upload.add_argument(
        "--parallel-files", type=int, default=DEFAULT_MAX_PARALLEL_FILES
    )
    upload.add_argument("-q", "--quiet", action="store_true")

    ls = sub.add_parser("ls", help="List folders and files under a prefix.")
    ls.add_argument("prefix", nargs="?", default=None)
    ls.add_argument("--limit", type=int, default=None)
    ls.add_argument("--pages", type=int, default=1)

    search = sub.add_parser("search", help="Search keys by substring.")
    search.add_argument("query")
    search.add_argument("--prefix", default=None)
    search.add_argument("--limit", type=int, default=None)
    search.add_argument("--pages", type=int, default=1)

    download = sub.add_parser("download", help="Download one object.")
    download.add_argument("key")
    download.add_argument("dest", nargs="?", type=Path, default=None)

    rm = sub.add_parser("rm", help="Delete objects.")
    rm.add_argument("keys", nargs="+")
    return parser


async def run(args: argparse.Namespace) -> int:
    async with UploadApiClient(
        args.url, api_key=args.api_key, timeout=args.timeout
    ) as api:
        return await COMMANDS[args.command](api, args)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(run(args))
    except (ApiError, ChecksumMismatchError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except OSError as exc:
        # unreadable upload source or unwritable download target
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
