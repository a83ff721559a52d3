# SPDX-License-Identifier: MIT
"""Version-tracking cache in front of a versioned object store.

The engine keeps one immutable ``Snapshot`` of the whole dataset. Each
``synchronize()`` assembles a new snapshot from the storage adapter (fetching
only what is newer than the current one) and swaps the reference in a single
assignment, so readers always see either the old or the new snapshot.
``get_newer_data()`` never awaits and computes the slice a client is missing.
"""

import asyncio
from datetime import datetime, timezone

from .constants import CATEGORIES
from .enums import Category, SyncStatus
from .exceptions import CacheNotInitializedError
from .logging_config import get_detail_logger, get_status_logger
from .models import DataDiff, Document, FileGroups, Snapshot, VersionVector
from .storage.base import Storage


class CacheEngine:
    """Holds the cached snapshot and computes per-client diffs."""

    def __init__(self, storage: Storage):
        self.storage = storage
        self.detail_logger = get_detail_logger()
        self.status_logger = get_status_logger()
        self._snapshot = Snapshot.empty()
        self._initialized = False
        self.last_sync_status = SyncStatus.NEVER
        self.last_synchronized_at: datetime | None = None

    @property
    def initialized(self) -> bool:
        """True once a synchronization has completed successfully."""
        return self._initialized

    @property
    def snapshot(self) -> Snapshot:
        """The snapshot currently served to clients."""
        return self._snapshot

    async def synchronize(self) -> None:
        """Refresh the snapshot from storage.

        Failures are logged and leave the previous snapshot in place; this
        method never raises for storage problems.
        """
        try:
            self.detail_logger.debug("Starting cache synchronization")

            database = await self.storage.get_latest_folder_name()
            if not database:
                self.status_logger.warning("No database found, keeping current cache")
                self.last_sync_status = SyncStatus.SKIPPED
                return

            self.detail_logger.debug(f"Found database {database}")

            data_version, messages_version, results_version, sponsors_version = (
                await asyncio.gather(
                    *(self._get_version(database, category) for category in CATEGORIES)
                )
            )
            versions = VersionVector(
                database=database,
                data=data_version,
                messages=messages_version,
                results=results_version,
                sponsors=sponsors_version,
            )
            self.detail_logger.debug(f"Versions found: {versions}")

            # Everything below is computed against the snapshot visible now,
            # even if another synchronization swaps it in the meantime.
            current = self._snapshot
            data, messages, results, sponsors = await asyncio.gather(
                self._load_object(
                    current, database, Category.DATABASES, versions.data, current.data
                ),
                self._load_arrays(
                    current,
                    database,
                    Category.MESSAGES,
                    versions.messages,
                    current.messages,
                ),
                self._load_arrays(
                    current,
                    database,
                    Category.RESULTS,
                    versions.results,
                    current.results,
                ),
                self._load_object(
                    current,
                    database,
                    Category.SPONSORS,
                    versions.sponsors,
                    current.sponsors,
                ),
            )

            self._snapshot = Snapshot(
                versions=versions,
                data=data,
                sponsors=sponsors,
                messages=messages,
                results=results,
            )
            self._initialized = True
            self.last_sync_status = SyncStatus.SUCCESS
            self.last_synchronized_at = datetime.now(timezone.utc)

            self.status_logger.info(f"Cache synchronized to {self._describe(versions)}")

        except Exception as e:
            self.detail_logger.exception(f"Failed to synchronize cache: {e}")
            self.status_logger.error(
                f"Failed to synchronize cache: {type(e).__name__} - {e}"
            )
            self.last_sync_status = SyncStatus.FAILED

    def get_newer_data(self, previous_versions: VersionVector) -> DataDiff:
        """Return all cached data newer than ``previous_versions``.

        Args:
            previous_versions: Version vector the client last received

        Returns:
            The whole snapshot when the client's database is older than the
            cached one, otherwise the per-category difference. The returned
            versions are always the snapshot's versions.

        Raises:
            CacheNotInitializedError: If no synchronization has succeeded yet
        """
        if not self._initialized:
            raise CacheNotInitializedError()

        snapshot = self._snapshot
        versions = snapshot.versions

        # The client has an outdated database: return the whole cache.
        if previous_versions.database < versions.database:
            return snapshot

        return DataDiff(
            versions=versions,
            data=self._object_newer_than(
                previous_versions.data, versions.data, snapshot.data
            ),
            sponsors=self._object_newer_than(
                previous_versions.sponsors, versions.sponsors, snapshot.sponsors
            ),
            messages=self._arrays_newer_than(
                previous_versions.messages, snapshot.messages
            ),
            results=self._arrays_newer_than(previous_versions.results, snapshot.results),
        )

    async def _get_version(self, database: str, category: Category) -> int:
        file_number = await self.storage.get_latest_file_name(database, category.value)
        return file_number or 0

    def _is_current(
        self, current: Snapshot, database: str, new_version: int, current_version: int
    ) -> bool:
        return database == current.versions.database and new_version == current_version

    async def _load_object(
        self,
        current: Snapshot,
        database: str,
        category: Category,
        new_version: int,
        current_data: Document,
    ) -> Document:
        current_version = self._current_version(current, category)
        if self._is_current(current, database, new_version, current_version):
            self.detail_logger.debug(
                f"Cache for {database}/{category.value} is already up-to-date"
            )
            return current_data

        if new_version == 0:
            self.detail_logger.debug(f"No data available for {database}/{category.value}")
            return {}

        # Object categories are always replaced as a whole.
        document = await self.storage.get_object_file(
            database, category.value, new_version
        )
        self.detail_logger.debug(
            f"Loaded {database}/{category.value} version {new_version}"
        )
        return document

    async def _load_arrays(
        self,
        current: Snapshot,
        database: str,
        category: Category,
        new_version: int,
        current_data: FileGroups,
    ) -> FileGroups:
        current_version = self._current_version(current, category)
        if self._is_current(current, database, new_version, current_version):
            self.detail_logger.debug(
                f"Cache for {database}/{category.value} is already up-to-date"
            )
            return current_data

        if new_version == 0:
            self.detail_logger.debug(f"No data available for {database}/{category.value}")
            return []

        same_database = database == current.versions.database
        start = current_version if same_database else 0
        new_data = await self.storage.get_array_files(
            database, category.value, start, new_version
        )
        self.detail_logger.debug(
            f"Loaded {database}/{category.value} version ({start}, {new_version}]"
        )

        # Same database: append to what we have. New database: start over.
        return [*current_data, *new_data] if same_database else new_data

    @staticmethod
    def _current_version(snapshot: Snapshot, category: Category) -> int:
        versions = snapshot.versions
        return {
            Category.DATABASES: versions.data,
            Category.MESSAGES: versions.messages,
            Category.RESULTS: versions.results,
            Category.SPONSORS: versions.sponsors,
        }[category]

    @staticmethod
    def _object_newer_than(
        previous_version: int, version: int, data: Document
    ) -> Document:
        # Object data is all or nothing.
        return data if previous_version < version else {}

    @staticmethod
    def _arrays_newer_than(previous_version: int, data: FileGroups) -> FileGroups:
        # Array data can be partial: the file-groups the client has not seen.
        return data[previous_version:] if previous_version < len(data) else []

    @staticmethod
    def _describe(versions: VersionVector) -> str:
        return (
            f"database {versions.database} (data {versions.data}, "
            f"messages {versions.messages}, results {versions.results}, "
            f"sponsors {versions.sponsors})"
        )
