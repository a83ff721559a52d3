# SPDX-License-Identifier: MIT
"""Google Cloud Storage object store backend."""

import asyncio
from typing import Any

from google.api_core.exceptions import GoogleAPIError, NotFound
from google.cloud import storage as gcs
from google.cloud.storage.retry import DEFAULT_RETRY

from ..constants import DEFAULT_LIST_PAGE_SIZE
from ..exceptions import StorageUnavailableError
from ..logging_config import get_detail_logger
from .base import StorageBase


detail_logger = get_detail_logger()


def create_gcs_storage(
    bucket: str, page_size: int = DEFAULT_LIST_PAGE_SIZE
) -> "GcsStorage":
    """Create a GCS backend using application default credentials."""
    return GcsStorage(gcs.Client().bucket(bucket), page_size=page_size)


class GcsStorage(StorageBase):
    """Bucket-backed storage; google-cloud-storage calls run in worker threads.

    Reads and listings are retried by the client library (``DEFAULT_RETRY``),
    one request at a time.
    """

    def __init__(self, bucket: Any, page_size: int = DEFAULT_LIST_PAGE_SIZE):
        super().__init__("gcs")
        self.bucket = bucket
        self.page_size = page_size

    async def _list_blobs(
        self, prefix: str | None = None, delimiter: str | None = None
    ) -> tuple[list[str], list[str]]:
        """List blob names and delimiter prefixes under prefix."""

        def _list() -> tuple[list[str], list[str]]:
            detail_logger.debug(
                f"GCS list blobs: prefix={prefix!r} delimiter={delimiter!r}"
            )
            iterator = self.bucket.list_blobs(
                prefix=prefix,
                delimiter=delimiter,
                include_trailing_delimiter=bool(delimiter),
                page_size=self.page_size,
                retry=DEFAULT_RETRY,
            )
            names = [blob.name for blob in iterator]
            return names, sorted(iterator.prefixes)

        try:
            return await asyncio.to_thread(_list)
        except GoogleAPIError as e:
            raise StorageUnavailableError(
                f"GCS listing of {prefix or '/'} failed: {e}", self.name
            ) from e

    async def list_directories(self, prefix: str | None = None) -> list[str]:
        _, prefixes = await self._list_blobs(prefix, "/")
        offset = len(prefix or "")
        return [name[offset:].rstrip("/") for name in prefixes]

    async def list_files(self, prefix: str | None = None) -> list[str]:
        names, _ = await self._list_blobs(prefix)
        return [name for name in names if not name.endswith("/")]

    async def read_file_contents(self, path: str) -> bytes | None:
        def _read() -> bytes | None:
            try:
                contents: bytes = self.bucket.blob(path).download_as_bytes(
                    retry=DEFAULT_RETRY
                )
                return contents
            except NotFound:
                return None

        try:
            return await asyncio.to_thread(_read)
        except GoogleAPIError as e:
            raise StorageUnavailableError(
                f"GCS read of {path} failed: {e}", self.name
            ) from e

    async def _upload(self, path: str, contents: str, content_type: str) -> None:
        try:
            await asyncio.to_thread(
                self.bucket.blob(path).upload_from_string,
                contents,
                content_type=content_type,
            )
        except GoogleAPIError as e:
            raise StorageUnavailableError(
                f"GCS upload of {path} failed: {e}", self.name
            ) from e

    async def write_file_contents(self, path: str, contents: str) -> None:
        detail_logger.debug(f"GCS create file: {path}")
        await self._upload(path, contents, "application/json")

    async def create_folder(self, folder: str) -> None:
        detail_logger.debug(f"GCS create folder: {folder}/")
        await self._upload(
            f"{folder.rstrip('/')}/", "", "application/x-www-form-urlencoded"
        )
