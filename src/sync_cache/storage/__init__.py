# SPDX-License-Identifier: MIT
"""Object store adapters for the versioned ``<database>/<category>/NNNN.json`` layout."""

from .base import Storage, StorageBase, WritableStorage, file_path
from .local import LocalStorage
from .memory import MemoryStorage
from .registry import StorageRegistry, create_storage, get_storage_registry


__all__ = [
    "LocalStorage",
    "MemoryStorage",
    "Storage",
    "StorageBase",
    "StorageRegistry",
    "WritableStorage",
    "create_storage",
    "file_path",
    "get_storage_registry",
]
