# SPDX-License-Identifier: MIT
"""Sync Cache - Incremental synchronization cache for a versioned object store."""

from importlib.metadata import PackageNotFoundError, version

from .cache import CacheEngine
from .models import DataDiff, Snapshot, VersionVector


__all__: list[str] = [
    "CacheEngine",
    "DataDiff",
    "Snapshot",
    "VersionVector",
    "__version__",
]

# Get version from installed package metadata
__version__: str
try:
    __version__ = version("sync-cache")
except PackageNotFoundError:
    # Package is not installed, use development fallback
    __version__ = "development"
