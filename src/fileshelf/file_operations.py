import asyncio
from dataclasses import dataclass, field
from enum import Enum

from loguru import logger

from fileshelf.errors import ListError, NotFoundError, StorageIOError
from fileshelf.selector import BackendSelection
from fileshelf.storage.backend import FileDescriptor, FileDownload, StoreEntry

RESERVED_NAMES = frozenset({"test"})
MAX_CONCURRENT_STATS = 16


def is_hidden(name: str) -> bool:
    return name.startswith(".")


class ClearCacheOutcome(str, Enum):
    CLEARED = "cleared"
    PARTIAL = "partial"
    NOTHING_TO_CLEAR = "nothing_to_clear"


@dataclass(frozen=True)
class ClearCacheError:
    item_name: str
    message: str

    def __str__(self) -> str:
        return f"{self.item_name}: {self.message}"


@dataclass
class ClearCacheResult:
    deleted_count: int = 0
    errors: list[ClearCacheError] = field(default_factory=list)
    root_missing: bool = False

    @property
    def outcome(self) -> ClearCacheOutcome:
        if self.root_missing:
            return ClearCacheOutcome.NOTHING_TO_CLEAR
        if self.errors:
            return ClearCacheOutcome.PARTIAL
        return ClearCacheOutcome.CLEARED

    @property
    def message(self) -> str:
        if self.outcome is ClearCacheOutcome.NOTHING_TO_CLEAR:
            return "No cache to clear"
        if self.outcome is ClearCacheOutcome.PARTIAL:
            return (
                f"Cache partially cleared. {self.deleted_count} files deleted, "
                f"{len(self.errors)} errors."
            )
        return "Cache cleared successfully"


class FileOperations:
    """List, download and clear files on whichever store was selected at startup."""

    def __init__(self, selection: BackendSelection):
        self.selection = selection
        self.store = selection.store

    async def _describe_or_none(self, name: str) -> FileDescriptor | None:
        try:
            return await self.store.describe(name)
        except NotFoundError:
            logger.debug(f"{name} disappeared while listing, skipping")
            return None
        except StorageIOError as e:
            raise ListError(f"Could not stat {name}: {e.message}") from e

    async def list_files(self) -> list[FileDescriptor]:
        """Describe every visible file in the store root, in listing order.

        Hidden entries are excluded. Subdirectories are excluded too: a blob
        store prefix has no size or creation time, so files-only keeps the
        listing the same on both backends.
        """
        entries = await self.store.list_entries()
        files = [e for e in entries if not e.is_dir and not is_hidden(e.name)]
        limit = asyncio.Semaphore(MAX_CONCURRENT_STATS)

        async def resolve(entry: StoreEntry) -> FileDescriptor | None:
            if entry.descriptor is not None:
                return entry.descriptor
            async with limit:
                return await self._describe_or_none(entry.name)

        descriptors = await asyncio.gather(*[resolve(e) for e in files])
        return [d for d in descriptors if d is not None]

    async def download(self, name: str) -> FileDownload:
        if not await self.store.exists(name):
            raise NotFoundError(name)
        return await self.store.open_read(name)

    def _is_eligible(self, entry: StoreEntry) -> bool:
        return not is_hidden(entry.name) and entry.name not in RESERVED_NAMES

    async def clear_cache(self) -> ClearCacheResult:
        if not await self.store.root_exists():
            logger.info("Store root does not exist, nothing to clear")
            return ClearCacheResult(root_missing=True)

        logger.info(f"Clearing cache from {self.selection.backend.value} storage")
        entries = [e for e in await self.store.list_entries() if self._is_eligible(e)]

        result = ClearCacheResult()
        for entry in entries:
            if entry.is_dir:
                logger.debug(f"Skipping directory: {entry.name}")
                continue
            try:
                await self.store.delete(entry.name)
            except StorageIOError as e:
                logger.error(f"Error deleting {entry.name}: {e.message}")
                result.errors.append(ClearCacheError(entry.name, e.message))
                continue
            logger.info(f"Deleted file: {entry.name}")
            result.deleted_count += 1

        return result
