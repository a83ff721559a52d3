# SPDX-License-Identifier: MIT
"""Amazon S3 (and S3-compatible) object store backend."""

import asyncio
from typing import Any

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from ..constants import DEFAULT_LIST_PAGE_SIZE, S3_MAX_ATTEMPTS
from ..exceptions import StorageUnavailableError
from ..logging_config import get_detail_logger
from .base import StorageBase


detail_logger = get_detail_logger()

_MISSING_KEY_CODES = {"NoSuchKey", "404", "NotFound"}


def create_s3_storage(
    bucket: str,
    access_key_id: str | None = None,
    secret_access_key: str | None = None,
    region: str | None = None,
    endpoint_url: str | None = None,
    page_size: int = DEFAULT_LIST_PAGE_SIZE,
) -> "S3Storage":
    """Create an S3 backend with a boto3 client.

    Credentials left as None fall back to the default boto3 credential chain.
    Every request, including each listing page, is retried by botocore.
    """
    session = boto3.session.Session(
        aws_access_key_id=access_key_id or None,
        aws_secret_access_key=secret_access_key or None,
        region_name=region or None,
    )
    client = session.client(
        "s3",
        endpoint_url=endpoint_url or None,
        config=BotoConfig(
            retries={"max_attempts": S3_MAX_ATTEMPTS, "mode": "standard"}
        ),
    )
    return S3Storage(client, bucket, page_size=page_size)


class S3Storage(StorageBase):
    """Bucket-backed storage; boto3 calls run in worker threads."""

    def __init__(
        self, client: Any, bucket_name: str, page_size: int = DEFAULT_LIST_PAGE_SIZE
    ):
        super().__init__("s3")
        self.client = client
        self.bucket_name = bucket_name
        self.page_size = page_size

    async def _call(self, operation: str, **params: Any) -> dict[str, Any]:
        try:
            response: dict[str, Any] = await asyncio.to_thread(
                getattr(self.client, operation), Bucket=self.bucket_name, **params
            )
            return response
        except (ClientError, BotoCoreError) as e:
            raise StorageUnavailableError(
                f"S3 {operation} on {self.bucket_name} failed: {e}", self.name
            ) from e

    async def _list_objects(
        self, prefix: str | None = None, delimiter: str | None = None
    ) -> list[dict[str, Any]]:
        pages: list[dict[str, Any]] = []
        params: dict[str, Any] = {"MaxKeys": self.page_size}
        if prefix:
            params["Prefix"] = prefix
        if delimiter:
            params["Delimiter"] = delimiter

        while True:
            detail_logger.debug(f"S3 list objects: {params}")
            page = await self._call("list_objects_v2", **params)
            pages.append(page)
            if not page.get("IsTruncated"):
                return pages
            params["ContinuationToken"] = page["NextContinuationToken"]

    async def list_directories(self, prefix: str | None = None) -> list[str]:
        pages = await self._list_objects(prefix, "/")
        offset = len(prefix or "")
        return [
            common["Prefix"][offset:].rstrip("/")
            for page in pages
            for common in page.get("CommonPrefixes", [])
        ]

    async def list_files(self, prefix: str | None = None) -> list[str]:
        pages = await self._list_objects(prefix)
        return [
            content["Key"]
            for page in pages
            for content in page.get("Contents", [])
            if not content["Key"].endswith("/")
        ]

    async def read_file_contents(self, path: str) -> bytes | None:
        def _read() -> bytes | None:
            try:
                response = self.client.get_object(Bucket=self.bucket_name, Key=path)
            except ClientError as e:
                if e.response.get("Error", {}).get("Code", "") in _MISSING_KEY_CODES:
                    return None
                raise
            body: bytes = response["Body"].read()
            return body

        try:
            return await asyncio.to_thread(_read)
        except (ClientError, BotoCoreError) as e:
            raise StorageUnavailableError(
                f"S3 read of {path} failed: {e}", self.name
            ) from e

    async def write_file_contents(self, path: str, contents: str) -> None:
        detail_logger.debug(f"S3 put object: {path}")
        await self._call(
            "put_object",
            Key=path,
            Body=contents.encode("utf-8"),
            ContentType="application/json",
        )

    async def create_folder(self, folder: str) -> None:
        detail_logger.debug(f"S3 put folder: {folder}/")
        await self._call("put_object", Key=f"{folder.rstrip('/')}/", Body=b"")
