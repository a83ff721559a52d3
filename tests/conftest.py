# SPDX-License-Identifier: MIT
"""Pytest configuration and shared fixtures."""

import pytest
from storage_helpers import populated_storage

from sync_cache.config import reset_config_manager
from sync_cache.storage import MemoryStorage


@pytest.fixture(autouse=True)
def isolated_config():
    """Make sure no test sees a config manager left over by another test."""
    reset_config_manager()
    yield
    reset_config_manager()


@pytest.fixture
def empty_storage():
    """Storage without any database folder."""
    return MemoryStorage()


@pytest.fixture
def storage():
    """Storage holding database 20190001 (databases 3, results 4, sponsors 2)."""
    return populated_storage()
