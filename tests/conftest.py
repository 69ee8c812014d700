import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

from fileshelf.errors import NotFoundError, StorageIOError
from fileshelf.storage.backend import FileDescriptor, FileDownload, StoreEntry

EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeStore:
    """In-memory store whose entries and delete failures are set up per test."""

    def __init__(self, entries=None, fail_delete=None, root_exists=True):
        self.entries = list(entries or [])
        self.contents: dict[str, bytes] = {}
        self.fail_delete = set(fail_delete or [])
        self._root_exists = root_exists
        self.deleted: list[str] = []
        self.initialize_error: Exception | None = None
        self.initialize_calls = 0

    def add_file(self, name: str, content: bytes = b"") -> None:
        self.entries.append(StoreEntry(name))
        self.contents[name] = content

    def add_dir(self, name: str) -> None:
        self.entries.append(StoreEntry(name, is_dir=True))

    async def initialize(self) -> None:
        self.initialize_calls += 1
        if self.initialize_error is not None:
            raise self.initialize_error

    async def root_exists(self) -> bool:
        return self._root_exists

    async def list_entries(self) -> list[StoreEntry]:
        return list(self.entries)

    async def describe(self, name: str) -> FileDescriptor:
        if name not in self.contents:
            raise NotFoundError(name)
        return FileDescriptor(name, len(self.contents[name]), EPOCH)

    async def exists(self, name: str) -> bool:
        return name in self.contents

    async def delete(self, name: str) -> None:
        if name in self.fail_delete:
            raise StorageIOError(name, "permission denied")
        self.deleted.append(name)
        self.entries = [e for e in self.entries if e.name != name]
        self.contents.pop(name, None)

    async def open_read(self, name: str) -> FileDownload:
        if name not in self.contents:
            raise NotFoundError(name)

        async def chunks():
            yield self.contents[name]

        return FileDownload(name, len(self.contents[name]), chunks())


@pytest.fixture
def make_store():
    return FakeStore


@pytest.fixture
def temp_uploads_dir():
    with tempfile.TemporaryDirectory() as tmpdir:
        uploads_dir = Path(tmpdir) / "uploads"
        uploads_dir.mkdir()
        yield uploads_dir
