"""Pydantic models for user-owned library state (groups, history) and refresh stats."""
from __future__ import annotations

import time
import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from xtreamsync.models.catalog import ContentKind


def now_ms() -> int:
    return int(time.time() * 1000)


class CustomGroup(BaseModel):
    """A user-defined grouping of item ids, independent of server categories."""
    model_config = ConfigDict(extra="allow")

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    kind: ContentKind
    content_ids: list[int] = Field(default_factory=list)
    created_at: int = Field(default_factory=now_ms)


class WatchHistoryEntry(BaseModel):
    model_config = ConfigDict(extra="allow")

    kind: ContentKind
    content_id: int
    timestamp: int = Field(default_factory=now_ms)
    progress: Optional[float] = None  # playback position in seconds
    title: Optional[str] = None
    extension: Optional[str] = None


class RefreshStats(BaseModel):
    """Read-model of what a server's cache currently holds."""

    live_categories: int = 0
    movie_categories: int = 0
    series_categories: int = 0
    channels: int = 0
    movies: int = 0
    series: int = 0
    last_updated: int = 0
