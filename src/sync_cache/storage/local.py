# SPDX-License-Identifier: MIT
"""Object store backed by a directory tree on the local filesystem."""

import asyncio
from pathlib import Path

from ..exceptions import StorageUnavailableError
from .base import StorageBase


class LocalStorage(StorageBase):
    """Directory tree laid out like the bucket: ``root/<db>/<category>/NNNN.json``.

    Blocking filesystem calls run in a worker thread so the event loop keeps
    serving requests.
    """

    def __init__(self, root_path: Path):
        super().__init__("local")
        self.root_path = root_path

    def _resolve(self, key: str | None) -> Path:
        return self.root_path / key if key else self.root_path

    async def list_directories(self, prefix: str | None = None) -> list[str]:
        def _list() -> list[str]:
            directory = self._resolve(prefix)
            if not directory.is_dir():
                return []
            return sorted(entry.name for entry in directory.iterdir() if entry.is_dir())

        try:
            return await asyncio.to_thread(_list)
        except OSError as e:
            raise StorageUnavailableError(
                f"Cannot list {self._resolve(prefix)}: {e}", self.name
            ) from e

    async def list_files(self, prefix: str | None = None) -> list[str]:
        def _list() -> list[str]:
            directory = self._resolve(prefix)
            if not directory.is_dir():
                return []
            return sorted(
                path.relative_to(self.root_path).as_posix()
                for path in directory.rglob("*")
                if path.is_file()
            )

        try:
            return await asyncio.to_thread(_list)
        except OSError as e:
            raise StorageUnavailableError(
                f"Cannot list {self._resolve(prefix)}: {e}", self.name
            ) from e

    async def read_file_contents(self, path: str) -> bytes | None:
        def _read() -> bytes | None:
            try:
                return self._resolve(path).read_bytes()
            except FileNotFoundError:
                return None

        try:
            return await asyncio.to_thread(_read)
        except OSError as e:
            raise StorageUnavailableError(f"Cannot read {path}: {e}", self.name) from e

    async def write_file_contents(self, path: str, contents: str) -> None:
        def _write() -> None:
            target = self._resolve(path)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(contents, encoding="utf-8")

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            raise StorageUnavailableError(f"Cannot write {path}: {e}", self.name) from e

    async def create_folder(self, folder: str) -> None:
        try:
            await asyncio.to_thread(
                self._resolve(folder).mkdir, parents=True, exist_ok=True
            )
        except OSError as e:
            raise StorageUnavailableError(
                f"Cannot create folder {folder}: {e}", self.name
            ) from e
