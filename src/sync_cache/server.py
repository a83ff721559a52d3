# SPDX-License-Identifier: MIT
"""HTTP layer serving the cache to clients and accepting uploads."""

import asyncio
import contextlib
import hmac
import re
import time
from collections.abc import AsyncIterator, Callable, Mapping
from datetime import datetime
from typing import Any

from aiohttp import web

from .cache import CacheEngine
from .constants import (
    CATEGORIES,
    DATABASE_SEQUENCE_DIGITS,
    DEFAULT_SYNC_COOLDOWN_SECONDS,
    MAX_DATABASE_SEQUENCE,
)
from .enums import UploadType
from .exceptions import (
    CacheNotInitializedError,
    DatabaseVersionExhaustedError,
    SyncCacheError,
)
from .logging_config import get_detail_logger, get_status_logger
from .models import VersionVector
from .storage.base import WritableStorage


detail_logger = get_detail_logger()
status_logger = get_status_logger()

# Query parameter names sent by clients, mapped to VersionVector fields
VERSION_QUERY_PARAMS: dict[str, str] = {
    "database": "databaseversion",
    "data": "dataversion",
    "messages": "messageversion",
    "results": "resultversion",
    "sponsors": "sponsorsversion",
}

# Version counters are ASCII digits only
VERSION_NUMBER_PATTERN = re.compile(r"[0-9]+")


class SyncCooldown:
    """Token allowing at most one manual synchronization per window."""

    def __init__(
        self,
        seconds: float = DEFAULT_SYNC_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.seconds = seconds
        self._clock = clock
        self._last_acquired: float | None = None

    def try_acquire(self) -> bool:
        """Take the token if the window since the last acquisition has passed."""
        now = self._clock()
        if self._last_acquired is not None and now - self._last_acquired < self.seconds:
            return False
        self._last_acquired = now
        return True


def parse_versions(query: Mapping[str, str]) -> VersionVector | None:
    """Build a VersionVector from request query parameters.

    Returns:
        None if any parameter is missing or not a plain ASCII decimal number
    """
    database = query.get(VERSION_QUERY_PARAMS["database"])
    if database is None:
        return None

    counters: dict[str, int] = {}
    for field_name in ("data", "messages", "results", "sponsors"):
        raw = query.get(VERSION_QUERY_PARAMS[field_name], "")
        if not VERSION_NUMBER_PATTERN.fullmatch(raw):
            return None
        counters[field_name] = int(raw)

    return VersionVector(database=database, **counters)


def format_versions(
    versions: VersionVector, previous_database_version: str
) -> dict[str, str | int]:
    """Format a version vector the way clients expect it.

    Key casing differs from the query parameters and messages/results are
    singular. ``newDatabaseVersion`` is a string telling whether the
    database changed compared to the client's.
    """
    return {
        "databaseVersion": versions.database,
        "dataVersion": versions.data,
        "messageVersion": versions.messages,
        "resultVersion": versions.results,
        "sponsorsVersion": versions.sponsors,
        "newDatabaseVersion": (
            "false" if versions.database == previous_database_version else "true"
        ),
    }


def next_database_version(current_version: str | None, now: datetime) -> str:
    """Compute the name of the next database folder.

    Database versions are the year followed by a 2-digit sequence number,
    restarting at 00 every year.

    Raises:
        DatabaseVersionExhaustedError: If the current year is already at 99
    """
    current_year = f"{now.year}"

    sequence = 0
    if current_version and current_version.startswith(current_year):
        current_sequence = int(current_version[len(current_year) :])
        if current_sequence >= MAX_DATABASE_SEQUENCE:
            raise DatabaseVersionExhaustedError(
                f"Version number cannot be greater than {MAX_DATABASE_SEQUENCE}"
            )
        sequence = current_sequence + 1

    return f"{current_year}{sequence:0{DATABASE_SEQUENCE_DIGITS}d}"


class SyncCacheServer:
    """aiohttp application exposing the cache engine."""

    def __init__(
        self,
        storage: WritableStorage,
        password: str = "",
        sync_interval_seconds: float = 0,
        cooldown: SyncCooldown | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.storage = storage
        self.cache_engine = CacheEngine(storage)
        self.password = password
        self.sync_interval_seconds = sync_interval_seconds
        self.cooldown = cooldown or SyncCooldown()
        self._clock = clock

    async def create_app(self) -> web.Application:
        """Load the cache and build the application."""
        await self.cache_engine.synchronize()

        app = web.Application()
        app.router.add_get("/getData.php", self.get_data)
        app.router.add_post("/upload.php", self.upload)
        app.router.add_post("/createNewVersion", self.create_new_version)
        app.router.add_post("/synchronize", self.synchronize)
        if self.sync_interval_seconds > 0:
            app.cleanup_ctx.append(self._periodic_synchronization)
        return app

    async def _periodic_synchronization(
        self, app: web.Application
    ) -> AsyncIterator[None]:
        async def _loop() -> None:
            while True:
                await asyncio.sleep(self.sync_interval_seconds)
                detail_logger.debug("Periodic synchronization")
                await self.cache_engine.synchronize()

        task = asyncio.create_task(_loop())
        yield
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def get_data(self, request: web.Request) -> web.Response:
        detail_logger.info(f"GET getData.php: {dict(request.query)}")

        previous_versions = parse_versions(request.query)
        if previous_versions is None:
            status_logger.warning(f"Rejected getData.php query: {dict(request.query)}")
            raise web.HTTPBadRequest(text="Invalid or missing version parameters")

        try:
            diff = self.cache_engine.get_newer_data(previous_versions)
        except CacheNotInitializedError as e:
            raise web.HTTPServiceUnavailable(text=str(e)) from e

        body: dict[str, Any] = {
            **format_versions(diff.versions, previous_versions.database),
            **diff.data,
            **diff.sponsors,
            "messages": diff.flat_messages(),
            "results": diff.flat_results(),
        }
        return web.json_response(body)

    async def _check_password(self, request: web.Request) -> Mapping[str, Any]:
        form = await request.post()
        password = form.get("password")
        if not password:
            raise web.HTTPUnauthorized()
        if not self.password or not hmac.compare_digest(
            str(password).encode("utf-8"), self.password.encode("utf-8")
        ):
            status_logger.warning(f"Wrong password on {request.path}")
            raise web.HTTPForbidden()
        return form

    async def upload(self, request: web.Request) -> web.Response:
        form = await self._check_password(request)

        try:
            upload_type = UploadType(form.get("type"))
        except ValueError as e:
            raise web.HTTPBadRequest(text="Unknown data type") from e

        category = upload_type.category.value
        try:
            folder = await self.storage.get_latest_folder_name()
            if not folder:
                raise web.HTTPInternalServerError(text="No database to upload into")

            # Two concurrent uploads of the same type would both claim the same
            # file number; uploads come from a single operator.
            current_number = await self.storage.get_latest_file_name(folder, category)
            file_number = (current_number or 0) + 1
            data = upload_type.wrap(str(form.get("data") or ""))
            await self.storage.create_file(folder, category, file_number, data)
        except SyncCacheError as e:
            status_logger.error(f"Failed to upload {upload_type.value}: {e}")
            raise web.HTTPInternalServerError(text=str(e)) from e

        status_logger.info(f"Uploaded {folder}/{category} file {file_number}")
        await self.cache_engine.synchronize()
        return web.Response(text="OK")

    async def create_new_version(self, request: web.Request) -> web.Response:
        await self._check_password(request)

        try:
            current_version = await self.storage.get_latest_folder_name()
            new_version = next_database_version(current_version, self._clock())

            await self.storage.create_folder(new_version)
            await asyncio.gather(
                *(
                    self.storage.create_sub_folder(new_version, category.value)
                    for category in CATEGORIES
                )
            )
        except SyncCacheError as e:
            status_logger.error(f"Create new version failed: {e}")
            raise web.HTTPInternalServerError(text=str(e)) from e

        status_logger.info(f"Created database {new_version}")
        await self.cache_engine.synchronize()
        return web.Response(text=new_version)

    async def synchronize(self, request: web.Request) -> web.Response:
        status_logger.info("POST synchronize")

        if not self.cooldown.try_acquire():
            raise web.HTTPServiceUnavailable(text="Synchronization cooling down")

        await self.cache_engine.synchronize()
        return web.Response(text=self.cache_engine.last_sync_status.value)
