from fileshelf.storage.backend import (
    FileDescriptor,
    FileDownload,
    FileStore,
    StorageBackend,
    StoreEntry,
)
from fileshelf.storage.local import LocalStorage
from fileshelf.storage.s3 import S3Storage

__all__ = [
    "FileDescriptor",
    "FileDownload",
    "FileStore",
    "StorageBackend",
    "StoreEntry",
    "LocalStorage",
    "S3Storage",
]
