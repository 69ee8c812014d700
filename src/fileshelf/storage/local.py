from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator

import aiofiles
import aiofiles.os
from loguru import logger

from fileshelf.errors import (
    InitializationFailure,
    ListError,
    NotFoundError,
    StorageIOError,
)
from fileshelf.storage.backend import (
    CHUNK_SIZE,
    FileDescriptor,
    FileDownload,
    StoreEntry,
    is_plain_name,
)


class LocalStorage:
    def __init__(self, root: Path):
        self.root = root

    def _get_path(self, name: str) -> Path:
        return self.root / name

    async def initialize(self) -> None:
        try:
            await aiofiles.os.makedirs(self.root, exist_ok=True)
        except OSError as e:
            raise InitializationFailure(
                "Local Storage Unavailable",
                f"Could not create {self.root}: {e}",
                ["Check that the uploads directory is writable"],
            ) from e
        logger.debug(f"Local storage ready at {self.root}")

    async def root_exists(self) -> bool:
        return await aiofiles.os.path.isdir(self.root)

    async def list_entries(self) -> list[StoreEntry]:
        try:
            names = sorted(await aiofiles.os.listdir(self.root))
        except OSError as e:
            raise ListError(f"Could not list {self.root}: {e}") from e

        return [
            StoreEntry(name, await aiofiles.os.path.isdir(self._get_path(name)))
            for name in names
        ]

    async def describe(self, name: str) -> FileDescriptor:
        if not is_plain_name(name):
            raise NotFoundError(name)
        try:
            stats = await aiofiles.os.stat(self._get_path(name))
        except FileNotFoundError as e:
            raise NotFoundError(name) from e
        except OSError as e:
            raise StorageIOError(name, str(e)) from e

        created = getattr(stats, "st_birthtime", None) or stats.st_ctime
        return FileDescriptor(
            name=name,
            size_bytes=stats.st_size,
            created_at=datetime.fromtimestamp(created, tz=timezone.utc),
        )

    async def exists(self, name: str) -> bool:
        if not is_plain_name(name):
            return False
        return await aiofiles.os.path.isfile(self._get_path(name))

    async def delete(self, name: str) -> None:
        try:
            await aiofiles.os.remove(self._get_path(name))
        except OSError as e:
            raise StorageIOError(name, str(e)) from e

    async def open_read(self, name: str) -> FileDownload:
        if not await self.exists(name):
            raise NotFoundError(name)

        file_path = self._get_path(name)
        try:
            stats = await aiofiles.os.stat(file_path)
            f = await aiofiles.open(file_path, "rb")
        except FileNotFoundError as e:
            raise NotFoundError(name) from e
        except OSError as e:
            raise StorageIOError(name, str(e)) from e

        return FileDownload(name, stats.st_size, self._iter_file(f))

    async def _iter_file(self, f) -> AsyncIterator[bytes]:
        try:
            while True:
                chunk = await f.read(CHUNK_SIZE)
                if not chunk:
                    break
                yield chunk
        finally:
            await f.close()
