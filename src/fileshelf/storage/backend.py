from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import AsyncIterator, Protocol, runtime_checkable

CHUNK_SIZE = 64 * 1024


class StorageBackend(str, Enum):
    REMOTE = "remote"
    LOCAL = "local"


@dataclass(frozen=True)
class FileDescriptor:
    name: str
    size_bytes: int
    created_at: datetime

    def to_dict(self) -> dict:
        return {
            "filename": self.name,
            "size": self.size_bytes,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class StoreEntry:
    name: str
    is_dir: bool = False
    size_bytes: int | None = None
    created_at: datetime | None = None

    @property
    def descriptor(self) -> FileDescriptor | None:
        """The entry's metadata when the enumeration call already reported it."""
        if self.is_dir or self.size_bytes is None or self.created_at is None:
            return None
        return FileDescriptor(self.name, self.size_bytes, self.created_at)


@dataclass
class FileDownload:
    name: str
    size_bytes: int | None
    chunks: AsyncIterator[bytes]

    async def read_all(self) -> bytes:
        parts = [chunk async for chunk in self.chunks]
        return b"".join(parts)


def is_plain_name(name: str) -> bool:
    """True when name addresses a direct child of a store root."""
    if not name or name in (".", ".."):
        return False
    return "/" not in name and "\\" not in name and "\x00" not in name


@runtime_checkable
class FileStore(Protocol):
    async def initialize(self) -> None: ...

    async def root_exists(self) -> bool: ...

    async def list_entries(self) -> list[StoreEntry]: ...

    async def describe(self, name: str) -> FileDescriptor: ...

    async def exists(self, name: str) -> bool: ...

    async def delete(self, name: str) -> None: ...

    async def open_read(self, name: str) -> FileDownload: ...
