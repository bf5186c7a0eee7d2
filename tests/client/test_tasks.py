import re

import pytest

from zip_uploader.client import (
    BytesSource,
    FileSource,
    InvalidTransitionError,
    UploadStatus,
    UploadTask,
    as_byte_source,
)
from zip_uploader.client.tasks import new_file_id


def _task() -> UploadTask:
    return UploadTask(source=BytesSource(data=b"abc", filename="a.zip"))


class TestUploadTask:
    def test_starts_queued(self):
        task = _task()

        assert task.status is UploadStatus.QUEUED
        assert task.filename == "a.zip"
        assert task.size == 3
        assert not task.is_terminal

    def test_forward_transitions(self):
        task = _task()
        task.advance(UploadStatus.HASHING)
        task.advance(UploadStatus.UPLOADING)
        task.advance(UploadStatus.COMPLETED)

        assert task.is_terminal

    @pytest.mark.parametrize(
        "path",
        [
            [UploadStatus.UPLOADING],
            [UploadStatus.HASHING, UploadStatus.QUEUED],
            [UploadStatus.HASHING, UploadStatus.COMPLETED],
        ],
    )
    def test_rejects_skips_and_backward_moves(self, path):
        task = _task()

        with pytest.raises(InvalidTransitionError):
            for status in path:
                task.advance(status)

    def test_terminal_states_are_final(self):
        task = _task()
        task.fail("boom")

        assert task.status is UploadStatus.FAILED
        assert task.error == "boom"
        with pytest.raises(InvalidTransitionError):
            task.advance(UploadStatus.HASHING)

    def test_fail_from_any_active_state(self):
        task = _task()
        task.advance(UploadStatus.HASHING)
        task.advance(UploadStatus.UPLOADING)

        task.fail(RuntimeError("network"))

        assert task.status is UploadStatus.FAILED
        assert task.error == "network"

    def test_completed_task_cannot_fail(self):
        task = _task()
        for status in (UploadStatus.HASHING, UploadStatus.UPLOADING, UploadStatus.COMPLETED):
            task.advance(status)

        with pytest.raises(InvalidTransitionError):
            task.fail("late")

    def test_checksum_is_write_once(self):
        task = _task()
        task.checksum = "a" * 64
        task.checksum = "a" * 64

        with pytest.raises(ValueError):
            task.checksum = "b" * 64
        assert task.checksum == "a" * 64

    def test_file_ids_are_unique(self):
        ids = {new_file_id() for _ in range(50)}

        assert len(ids) == 50
        assert all(re.fullmatch(r"\d+-[0-9a-f]{10}", value) for value in ids)


class TestByteSources:
    def test_file_source_reads_ranges(self, tmp_path):
        path = tmp_path / "data.zip"
        path.write_bytes(b"0123456789")

        source = as_byte_source(path)

        assert isinstance(source, FileSource)
        assert source.filename == "data.zip"
        assert source.size == 10
        assert source.read(3, 4) == b"3456"
        assert source.read(8, 10) == b"89"

    def test_bytes_source(self):
        source = as_byte_source(b"hello", filename="h.zip")

        assert isinstance(source, BytesSource)
        assert source.size == 5
        assert source.read(1, 3) == b"ell"

    def test_bytes_need_filename(self):
        with pytest.raises(ValueError):
            as_byte_source(b"hello")

    def test_existing_source_passes_through(self):
        source = BytesSource(data=b"x", filename="x.zip")
        assert as_byte_source(source) is source

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            as_byte_source(42)
