from dataclasses import dataclass
from typing import Optional

from loguru import logger

from fileshelf.errors import InitializationFailure
from fileshelf.storage.backend import FileStore, StorageBackend
from fileshelf.storage.local import LocalStorage


@dataclass(frozen=True)
class InitializationStatus:
    remote_available: bool
    reason: Optional[str] = None

    @property
    def blob_storage(self) -> str:
        return "connected" if self.remote_available else "fallback"


@dataclass(frozen=True)
class BackendSelection:
    """The storage decision made at startup, held for the process lifetime."""

    backend: StorageBackend
    store: FileStore
    status: InitializationStatus


async def resolve_backend(
    local: LocalStorage, remote: Optional[FileStore] = None
) -> BackendSelection:
    """Pick the store that serves requests for the life of the process.

    The local store is always prepared first since it is the fallback. Any
    failure to initialize the remote store is logged and recovered from by
    selecting the local store; it is never retried.
    """
    await local.initialize()

    if remote is None:
        reason = "remote storage not configured"
        logger.warning(f"No remote storage configured, using local storage at {local.root}")
        return BackendSelection(
            StorageBackend.LOCAL, local, InitializationStatus(False, reason)
        )

    try:
        await remote.initialize()
    except InitializationFailure as e:
        logger.error(f"Error initializing remote storage:\n{e.describe()}")
        reason = str(e)
    except Exception as e:
        logger.error(f"Error initializing remote storage: {e}")
        reason = str(e) or type(e).__name__
    else:
        logger.info("Remote storage initialized successfully")
        return BackendSelection(
            StorageBackend.REMOTE, remote, InitializationStatus(True)
        )

    logger.warning(f"Will use local storage at {local.root} as fallback")
    return BackendSelection(
        StorageBackend.LOCAL, local, InitializationStatus(False, reason)
    )
