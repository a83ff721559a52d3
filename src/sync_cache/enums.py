# SPDX-License-Identifier: MIT
"""Enums for the sync cache service."""

from enum import Enum


class Category(str, Enum):
    """Data categories stored under each database folder."""

    DATABASES = "databases"
    MESSAGES = "messages"
    RESULTS = "results"
    SPONSORS = "sponsors"

    @property
    def is_list(self) -> bool:
        """True for append-only list categories, False for object categories."""
        return self in (Category.MESSAGES, Category.RESULTS)


class UploadType(str, Enum):
    """Data types accepted by the upload endpoint.

    Note that "database" and "message" are singular while the matching
    categories are plural.
    """

    DATABASE = "database"
    MESSAGE = "message"
    RESULTS = "results"
    SPONSORS = "sponsors"

    @property
    def category(self) -> Category:
        """Category folder the upload is written to."""
        return {
            UploadType.DATABASE: Category.DATABASES,
            UploadType.MESSAGE: Category.MESSAGES,
            UploadType.RESULTS: Category.RESULTS,
            UploadType.SPONSORS: Category.SPONSORS,
        }[self]

    def wrap(self, data: str) -> str:
        """Wrap an upload body, sent without its outer braces or brackets."""
        if self.category.is_list:
            return f"[{data}]"
        return f"{{{data}}}"


class SyncStatus(str, Enum):
    """Outcome of the most recent synchronization."""

    NEVER = "never"
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"
