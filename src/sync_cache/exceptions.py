# SPDX-License-Identifier: MIT
"""Standard exceptions for the sync cache service."""


class SyncCacheError(Exception):
    """Base class for all sync cache exceptions."""


class CacheNotInitializedError(SyncCacheError):
    """Raised when data is requested before the first successful synchronization."""

    def __init__(self, message: str = "Cache is not initialized yet") -> None:
        super().__init__(message)


class StorageError(SyncCacheError):
    """Base class for all storage-related exceptions."""

    def __init__(self, message: str, storage_name: str | None = None) -> None:
        self.storage_name = storage_name
        super().__init__(message)


class StorageUnavailableError(StorageError):
    """Raised when the object store cannot be listed, read or written."""

    pass


class MalformedObjectFileError(StorageError):
    """Raised when an object-category file does not hold a JSON object."""

    def __init__(
        self, path: str, reason: str, storage_name: str | None = None
    ) -> None:
        self.path = path
        super().__init__(f"Malformed object file {path}: {reason}", storage_name)


class DatabaseVersionExhaustedError(SyncCacheError):
    """Raised when no further database version can be created this year."""

    pass
