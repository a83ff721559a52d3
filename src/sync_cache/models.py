# SPDX-License-Identifier: MIT
"""Core data models for the sync cache service."""

from __future__ import annotations

from dataclasses import dataclass, field
from itertools import chain
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# One parsed JSON array file is a file-group; list categories hold one
# file-group per uploaded file, in upload order.
Document = dict[str, Any]
FileGroups = list[list[Any]]


class VersionVector(BaseModel):
    """Versions a client or the cache has seen, one field per category."""

    model_config = ConfigDict(frozen=True)

    database: str = Field(..., description="Database folder name (epoch)")
    data: int = Field(..., ge=0, description="Latest databases file number")
    messages: int = Field(..., ge=0, description="Number of message files merged")
    results: int = Field(..., ge=0, description="Number of result files merged")
    sponsors: int = Field(..., ge=0, description="Latest sponsors file number")

    @classmethod
    def empty(cls) -> VersionVector:
        """Version vector of a cache that has not loaded anything."""
        return cls(database="", data=0, messages=0, results=0, sponsors=0)


@dataclass(frozen=True)
class DataDiff:
    """Data newer than a client's version vector.

    The ``data`` and ``sponsors`` documents may be shared with the live
    snapshot and must be treated as read-only.
    """

    versions: VersionVector
    data: Document = field(default_factory=dict)
    sponsors: Document = field(default_factory=dict)
    messages: FileGroups = field(default_factory=list)
    results: FileGroups = field(default_factory=list)

    def flat_messages(self) -> list[Any]:
        """All message entries in upload order, without file grouping."""
        return list(chain.from_iterable(self.messages))

    def flat_results(self) -> list[Any]:
        """All result entries in upload order, without file grouping."""
        return list(chain.from_iterable(self.results))


@dataclass(frozen=True)
class Snapshot(DataDiff):
    """The complete cached dataset with the versions it represents.

    Snapshots are never modified after construction; synchronization builds
    a new one and swaps the reference.
    """

    @classmethod
    def empty(cls) -> Snapshot:
        """Snapshot held by a cache engine before its first synchronization."""
        return cls(versions=VersionVector.empty())
