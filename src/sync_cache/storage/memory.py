# SPDX-License-Identifier: MIT
"""In-process object store, used for tests and local experiments."""

from .base import StorageBase


class MemoryStorage(StorageBase):
    """Object store keeping blobs in a dict keyed by their full path.

    Folders are zero-length keys ending in ``/``, the way S3 consoles
    create them.
    """

    def __init__(self, objects: dict[str, bytes] | None = None):
        super().__init__("memory")
        self.objects: dict[str, bytes] = dict(objects or {})

    async def list_directories(self, prefix: str | None = None) -> list[str]:
        prefix = prefix or ""
        directories = set()
        for key in self.objects:
            if key.startswith(prefix):
                rest = key[len(prefix) :]
                if "/" in rest:
                    directories.add(rest.split("/", 1)[0])
        return sorted(directories)

    async def list_files(self, prefix: str | None = None) -> list[str]:
        prefix = prefix or ""
        return sorted(
            key
            for key in self.objects
            if key.startswith(prefix) and not key.endswith("/")
        )

    async def read_file_contents(self, path: str) -> bytes | None:
        return self.objects.get(path)

    async def write_file_contents(self, path: str, contents: str) -> None:
        self.objects[path] = contents.encode("utf-8")

    async def create_folder(self, folder: str) -> None:
        self.objects.setdefault(f"{folder.rstrip('/')}/", b"")
