from fileshelf.app import create_app
from fileshelf.file_operations import (
    ClearCacheError,
    ClearCacheOutcome,
    ClearCacheResult,
    FileOperations,
)
from fileshelf.selector import BackendSelection, InitializationStatus, resolve_backend

__all__ = [
    "create_app",
    "resolve_backend",
    "BackendSelection",
    "InitializationStatus",
    "FileOperations",
    "ClearCacheError",
    "ClearCacheOutcome",
    "ClearCacheResult",
]
