from __future__ import annotations

import asyncio
import logging
from typing import Callable, Iterable

from .orchestrator import UploadOrchestrator, UploadProgress, UploadResult
from .sources import as_byte_source
from .tasks import UploadStatus, UploadTask

logger = logging.getLogger(__name__)

DEFAULT_MAX_PARALLEL_FILES = 2
ALLOWED_SUFFIX = ".zip"

TaskProgressCallback = Callable[[UploadTask, UploadProgress], None]


class UploadQueueManager:
    """Owns the queue of pending uploads and runs them with bounded parallelism.

    At most ``max_parallel_files`` files upload at once; each of them may have
    up to the orchestrator's part concurrency of requests in flight.
    """

    def __init__(
        self,
        orchestrator: UploadOrchestrator,
        *,
        max_parallel_files: int = DEFAULT_MAX_PARALLEL_FILES,
    ) -> None:
        if max_parallel_files < 1:
            raise ValueError("max_parallel_files must be at least 1")
        self.orchestrator = orchestrator
        self.max_parallel_files = max_parallel_files
        self._queue: list[UploadTask] = []
        self.skipped: list[str] = []

    @property
    def pending(self) -> list[UploadTask]:
        return list(self._queue)

    def enqueue(self, sources: Iterable[object]) -> list[UploadTask]:
        """Queue every ZIP source; anything else is skipped and recorded in ``skipped``."""
        added: list[UploadTask] = []
        for item in sources:
            source = as_byte_source(item)
            if not source.filename.lower().endswith(ALLOWED_SUFFIX):
                logger.warning(
                    "skipping non-ZIP file %s",
                    source.filename,
                    extra={"extra": {"filename": source.filename}},
                )
                self.skipped.append(source.filename)
                continue
            task = UploadTask(source=source)
            self._queue.append(task)
            added.append(task)
        return added

    def cancel(self, file_id: str) -> bool:
        """Drop a task that has not started yet. In-flight uploads are not cancellable."""
        for task in self._queue:
            if task.file_id == file_id and task.status is UploadStatus.QUEUED:
                self._queue.remove(task)
                return True
        return False

    def _remove(self, task: UploadTask) -> None:
        if task in self._queue:
            self._queue.remove(task)

    async def drain(
        self, on_progress: TaskProgressCallback | None = None
    ) -> dict[str, UploadResult | Exception]:
        """Upload everything queued and return the outcome per ``file_id``."""
        semaphore = asyncio.Semaphore(self.max_parallel_files)
        snapshot = list(self._queue)
        outcomes: dict[str, UploadResult | Exception] = {}

        async def run(task: UploadTask) -> None:
            async with semaphore:
                if task not in self._queue:
                    return

                def forward(progress: UploadProgress) -> None:
                    if on_progress is not None:
                        on_progress(task, progress)

                try:
                    outcomes[task.file_id] = await self.orchestrator.upload(
                        task, forward
                    )
                except Exception as exc:
                    outcomes[task.file_id] = exc
                finally:
                    self._remove(task)

        await asyncio.gather(*(run(task) for task in snapshot))
        return {
            task.file_id: outcomes[task.file_id]
            for task in snapshot
            if task.file_id in outcomes
        }
