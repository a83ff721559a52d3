# SPDX-License-Identifier: MIT
"""Storage contract and shared logic for versioned object stores.

The store is organized as ``<database>/<category>/<NNNN>.json``. Concrete
backends implement a handful of primitives (list, read, write) and
``StorageBase`` derives the latest-folder, latest-file and range-fetch
operations from them.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any, Protocol, runtime_checkable

from ..constants import FILE_NAME_PATTERN, FILE_NUMBER_DIGITS
from ..exceptions import MalformedObjectFileError
from ..logging_config import get_detail_logger
from ..models import Document, FileGroups


detail_logger = get_detail_logger()


@runtime_checkable
class Storage(Protocol):
    """Read operations the cache engine needs from a store."""

    async def get_latest_folder_name(self) -> str | None:
        """Return the lexicographically last database folder, or None if empty."""
        ...

    async def get_latest_file_name(self, folder: str, category: str) -> int | None:
        """Return the highest ``NNNN.json`` number under folder/category."""
        ...

    async def get_object_file(
        self, folder: str, category: str, file_number: int
    ) -> Document:
        """Return the JSON object stored in one file, ``{}`` if absent."""
        ...

    async def get_array_files(
        self, folder: str, category: str, start: int, end: int
    ) -> FileGroups:
        """Return the JSON arrays of files ``start + 1`` to ``end`` inclusive.

        Contrary to common practice, start is excluded and end is included.
        Absent or unreadable files yield an empty group in their slot.
        """
        ...


@runtime_checkable
class WritableStorage(Storage, Protocol):
    """Store that also accepts new database folders and files."""

    async def create_folder(self, folder: str) -> None:
        """Create a (possibly nested) folder."""
        ...

    async def create_sub_folder(self, folder: str, category: str) -> None:
        """Create a category folder inside a database folder."""
        ...

    async def create_file(
        self, folder: str, category: str, file_number: int, data: str
    ) -> None:
        """Write a numbered data file."""
        ...


def file_path(folder: str, category: str, file_number: int) -> str:
    """Build the object key of a numbered data file."""
    return f"{folder}/{category}/{file_number:0{FILE_NUMBER_DIGITS}d}.json"


class StorageBase(ABC):
    """Base class deriving the storage contract from list/read/write primitives."""

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    async def list_directories(self, prefix: str | None = None) -> list[str]:
        """List the names of the directories directly under prefix."""
        pass

    @abstractmethod
    async def list_files(self, prefix: str | None = None) -> list[str]:
        """List the full keys of all files under prefix."""
        pass

    @abstractmethod
    async def read_file_contents(self, path: str) -> bytes | None:
        """Read a file, returning None when it does not exist."""
        pass

    @abstractmethod
    async def write_file_contents(self, path: str, contents: str) -> None:
        """Write a JSON file, replacing any existing one."""
        pass

    @abstractmethod
    async def create_folder(self, folder: str) -> None:
        """Create a (possibly nested) folder."""
        pass

    async def get_latest_folder_name(self) -> str | None:
        directories = await self.list_directories()
        detail_logger.debug(f"{self.name}: found {len(directories)} database folders")
        return max(directories) if directories else None

    async def get_latest_file_name(self, folder: str, category: str) -> int | None:
        prefix = f"{folder}/{category}/"
        numbers = []
        for key in await self.list_files(prefix):
            if not key.startswith(prefix):
                continue
            match = FILE_NAME_PATTERN.match(key[len(prefix) :])
            if match:
                numbers.append(int(match.group(1)))

        return max(numbers) if numbers else None

    async def get_object_file(
        self, folder: str, category: str, file_number: int
    ) -> Document:
        path = file_path(folder, category, file_number)
        contents = await self.read_file_contents(path)
        if contents is None:
            detail_logger.debug(f"{self.name}: {path} does not exist")
            return {}

        try:
            document = json.loads(contents)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MalformedObjectFileError(path, str(e), self.name) from e

        if not isinstance(document, dict):
            raise MalformedObjectFileError(
                path, f"expected an object, got {type(document).__name__}", self.name
            )
        return document

    async def get_array_files(
        self, folder: str, category: str, start: int, end: int
    ) -> FileGroups:
        numbers = range(start + 1, end + 1)
        detail_logger.debug(
            f"{self.name}: reading {folder}/{category} files ({start}, {end}]"
        )
        contents = await asyncio.gather(
            *(
                self.read_file_contents(file_path(folder, category, number))
                for number in numbers
            )
        )

        # Skipped files keep their slot so the file count equals the list length.
        return [
            self._parse_array(file_path(folder, category, number), raw) or []
            for number, raw in zip(numbers, contents, strict=True)
        ]

    def _parse_array(self, path: str, raw: bytes | None) -> list[Any] | None:
        """Parse an array file; absent or corrupt files yield None."""
        if raw is None:
            detail_logger.debug(f"{self.name}: {path} does not exist, skipping")
            return None

        try:
            entries = json.loads(raw)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            detail_logger.warning(f"{self.name}: skipping unparseable {path}: {e}")
            return None

        if not isinstance(entries, list):
            detail_logger.warning(
                f"{self.name}: skipping {path}, expected an array, "
                f"got {type(entries).__name__}"
            )
            return None
        return entries

    async def create_sub_folder(self, folder: str, category: str) -> None:
        await self.create_folder(f"{folder}/{category}")

    async def create_file(
        self, folder: str, category: str, file_number: int, data: str
    ) -> None:
        path = file_path(folder, category, file_number)
        detail_logger.debug(f"{self.name}: writing {path}")
        await self.write_file_contents(path, data)
