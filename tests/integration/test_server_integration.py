# SPDX-License-Identifier: MIT
"""Integration tests for the HTTP server.

INTEGRATION TEST FILE: These tests run the aiohttp application end to end
against an in-memory object store: requests go through routing, form
parsing, the cache engine and the storage contract.
"""

import asyncio
import json
from datetime import datetime

import pytest
from aiohttp import test_utils
from storage_helpers import DATABASE, populated_storage, seed_objects

from sync_cache.enums import SyncStatus
from sync_cache.server import SyncCacheServer, SyncCooldown
from sync_cache.storage import MemoryStorage


PASSWORD = "hunter2"

FLAT_RESULTS = [
    {"one": "one"},
    {"two": "two"},
    {"one": "one1"},
    {"two": "two2"},
    {"one": "one2"},
]


def version_query(database="", data=0, messages=0, results=0, sponsors=0):
    return {
        "databaseversion": database,
        "dataversion": str(data),
        "messageversion": str(messages),
        "resultversion": str(results),
        "sponsorsversion": str(sponsors),
    }


async def start_client(server: SyncCacheServer) -> test_utils.TestClient:
    app = await server.create_app()
    client = test_utils.TestClient(test_utils.TestServer(app))
    await client.start_server()
    return client


class TestGetData:
    """End-to-end tests for GET /getData.php."""

    @pytest.mark.asyncio
    async def test_new_client_receives_everything(self, storage):
        """Test the response for a client without any data."""
        client = await start_client(SyncCacheServer(storage))
        try:
            response = await client.get("/getData.php", params=version_query())
            assert response.status == 200
            body = await response.json()
        finally:
            await client.close()

        assert body == {
            "databaseVersion": DATABASE,
            "dataVersion": 3,
            "messageVersion": 0,
            "resultVersion": 4,
            "sponsorsVersion": 2,
            "newDatabaseVersion": "true",
            "some": "data",
            "other": "data",
            "messages": [],
            "results": FLAT_RESULTS,
        }

    @pytest.mark.asyncio
    async def test_up_to_date_client(self, storage):
        """Test that a current client only receives the versions."""
        client = await start_client(SyncCacheServer(storage))
        try:
            response = await client.get(
                "/getData.php",
                params=version_query(DATABASE, data=3, results=4, sponsors=2),
            )
            body = await response.json()
        finally:
            await client.close()

        assert body["newDatabaseVersion"] == "false"
        assert body["messages"] == []
        assert body["results"] == []
        assert "some" not in body
        assert "other" not in body

    @pytest.mark.asyncio
    async def test_partial_results(self, storage):
        """Test that only unseen result files are sent."""
        client = await start_client(SyncCacheServer(storage))
        try:
            response = await client.get(
                "/getData.php",
                params=version_query(DATABASE, data=3, results=2, sponsors=1),
            )
            body = await response.json()
        finally:
            await client.close()

        assert body["results"] == [{"two": "two2"}, {"one": "one2"}]
        assert body["other"] == "data"
        assert "some" not in body

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "params",
        [
            {"dataversion": "0"},
            {**version_query(), "resultversion": "two"},
            {**version_query(), "messageversion": "-1"},
        ],
    )
    async def test_bad_query(self, storage, params):
        """Test that missing or invalid parameters are rejected."""
        client = await start_client(SyncCacheServer(storage))
        try:
            response = await client.get("/getData.php", params=params)
            assert response.status == 400
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_not_initialized(self, empty_storage):
        """Test that nothing is served before the first successful load."""
        client = await start_client(SyncCacheServer(empty_storage))
        try:
            response = await client.get("/getData.php", params=version_query())
            assert response.status == 503
        finally:
            await client.close()


class TestUpload:
    """End-to-end tests for POST /upload.php."""

    @pytest.mark.asyncio
    async def test_upload_messages(self, storage):
        """Test that an upload is stored and served to clients."""
        server = SyncCacheServer(storage, password=PASSWORD)
        client = await start_client(server)
        try:
            response = await client.post(
                "/upload.php",
                data={
                    "password": PASSWORD,
                    "type": "message",
                    "data": '{"message": "hello"}, {"message": "world"}',
                },
            )
            assert response.status == 200
            assert await response.text() == "OK"

            response = await client.get(
                "/getData.php",
                params=version_query(DATABASE, data=3, results=4, sponsors=2),
            )
            body = await response.json()
        finally:
            await client.close()

        assert json.loads(storage.objects[f"{DATABASE}/messages/0001.json"]) == [
            {"message": "hello"},
            {"message": "world"},
        ]
        assert body["messageVersion"] == 1
        assert body["messages"] == [{"message": "hello"}, {"message": "world"}]

    @pytest.mark.asyncio
    async def test_upload_database(self, storage):
        """Test that object uploads get the next file number."""
        server = SyncCacheServer(storage, password=PASSWORD)
        client = await start_client(server)
        try:
            response = await client.post(
                "/upload.php",
                data={"password": PASSWORD, "type": "database", "data": '"new": 1'},
            )
            assert response.status == 200
        finally:
            await client.close()

        assert json.loads(storage.objects[f"{DATABASE}/databases/0004.json"]) == {
            "new": 1
        }
        assert server.cache_engine.snapshot.data == {"new": 1}

    @pytest.mark.asyncio
    async def test_missing_password(self, storage):
        """Test that uploads without a password are unauthorized."""
        client = await start_client(SyncCacheServer(storage, password=PASSWORD))
        try:
            response = await client.post(
                "/upload.php", data={"type": "message", "data": "{}"}
            )
            assert response.status == 401
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_wrong_password(self, storage):
        """Test that a wrong password is forbidden."""
        client = await start_client(SyncCacheServer(storage, password=PASSWORD))
        try:
            response = await client.post(
                "/upload.php",
                data={"password": "guess", "type": "message", "data": "{}"},
            )
            assert response.status == 403
        finally:
            await client.close()

        assert f"{DATABASE}/messages/0001.json" not in storage.objects

    @pytest.mark.asyncio
    async def test_uploads_disabled_without_configured_password(self, storage):
        """Test that an unconfigured password rejects every upload."""
        client = await start_client(SyncCacheServer(storage))
        try:
            response = await client.post(
                "/upload.php",
                data={"password": "anything", "type": "message", "data": "{}"},
            )
            assert response.status == 403
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_unknown_type(self, storage):
        """Test that only known data types are accepted."""
        client = await start_client(SyncCacheServer(storage, password=PASSWORD))
        try:
            response = await client.post(
                "/upload.php",
                data={"password": PASSWORD, "type": "messages", "data": "{}"},
            )
            assert response.status == 400
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_no_database(self, empty_storage):
        """Test uploading into a store without database folder."""
        client = await start_client(
            SyncCacheServer(empty_storage, password=PASSWORD)
        )
        try:
            response = await client.post(
                "/upload.php",
                data={"password": PASSWORD, "type": "message", "data": "{}"},
            )
            assert response.status == 500
        finally:
            await client.close()

        assert empty_storage.objects == {}


class TestCreateNewVersion:
    """End-to-end tests for POST /createNewVersion."""

    @pytest.mark.asyncio
    async def test_creates_next_database(self):
        """Test that a new epoch is created and served to clients."""
        storage = MemoryStorage()
        seed_objects(storage, "201900", "databases", 1, {"old": "epoch"})
        server = SyncCacheServer(
            storage, password=PASSWORD, clock=lambda: datetime(2019, 6, 1)
        )
        client = await start_client(server)
        try:
            response = await client.post(
                "/createNewVersion", data={"password": PASSWORD}
            )
            assert response.status == 200
            assert await response.text() == "201901"

            response = await client.get(
                "/getData.php", params=version_query("201900", data=1)
            )
            body = await response.json()
        finally:
            await client.close()

        for category in ("databases", "messages", "results", "sponsors"):
            assert f"201901/{category}/" in storage.objects
        assert body["databaseVersion"] == "201901"
        assert body["newDatabaseVersion"] == "true"
        assert body["dataVersion"] == 0
        assert "old" not in body

    @pytest.mark.asyncio
    async def test_first_database_of_the_year(self, empty_storage):
        """Test creating the very first database."""
        server = SyncCacheServer(
            empty_storage, password=PASSWORD, clock=lambda: datetime(2024, 1, 1)
        )
        client = await start_client(server)
        try:
            response = await client.post(
                "/createNewVersion", data={"password": PASSWORD}
            )
            assert await response.text() == "202400"
        finally:
            await client.close()

        assert server.cache_engine.initialized
        assert server.cache_engine.snapshot.versions.database == "202400"

    @pytest.mark.asyncio
    async def test_exhausted_year(self):
        """Test that version 99 cannot be followed."""
        storage = MemoryStorage()
        storage.objects["201999/"] = b""
        server = SyncCacheServer(
            storage, password=PASSWORD, clock=lambda: datetime(2019, 12, 31)
        )
        client = await start_client(server)
        try:
            response = await client.post(
                "/createNewVersion", data={"password": PASSWORD}
            )
            assert response.status == 500
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_requires_password(self, storage):
        """Test that creating a version is protected."""
        client = await start_client(SyncCacheServer(storage, password=PASSWORD))
        try:
            response = await client.post("/createNewVersion", data={})
            assert response.status == 401
        finally:
            await client.close()


class TestSynchronizeEndpoint:
    """End-to-end tests for POST /synchronize and periodic synchronization."""

    @pytest.mark.asyncio
    async def test_cooldown(self, storage):
        """Test that manual synchronizations are limited to one per window."""
        now = [1000.0]
        server = SyncCacheServer(
            storage, cooldown=SyncCooldown(60, clock=lambda: now[0])
        )
        client = await start_client(server)
        try:
            response = await client.post("/synchronize")
            assert response.status == 200
            assert await response.text() == SyncStatus.SUCCESS.value

            now[0] += 30
            response = await client.post("/synchronize")
            assert response.status == 503

            now[0] += 30
            response = await client.post("/synchronize")
            assert response.status == 200
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_picks_up_new_files(self, storage):
        """Test that files written by other writers appear after a sync."""
        server = SyncCacheServer(storage)
        client = await start_client(server)
        try:
            seed_objects(storage, DATABASE, "sponsors", 3, {"sponsor": "new"})
            await client.post("/synchronize")

            response = await client.get(
                "/getData.php",
                params=version_query(DATABASE, data=3, results=4, sponsors=2),
            )
            body = await response.json()
        finally:
            await client.close()

        assert body["sponsorsVersion"] == 3
        assert body["sponsor"] == "new"

    @pytest.mark.asyncio
    async def test_periodic_synchronization(self, empty_storage):
        """Test that the background task loads data written after startup."""
        server = SyncCacheServer(empty_storage, sync_interval_seconds=0.01)
        client = await start_client(server)
        try:
            assert not server.cache_engine.initialized
            seed_objects(empty_storage, DATABASE, "databases", 1, {"some": "data"})

            for _ in range(200):
                if server.cache_engine.initialized:
                    break
                await asyncio.sleep(0.01)
        finally:
            await client.close()

        assert server.cache_engine.initialized
        assert server.cache_engine.snapshot.data == {"some": "data"}
