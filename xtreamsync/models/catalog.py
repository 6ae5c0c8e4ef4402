"""Pydantic models for catalog content (categories, items, episodes)."""
from __future__ import annotations

from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ContentKind(str, Enum):
    """The three content kinds an Xtream server exposes."""

    LIVE = "live"
    MOVIE = "movie"
    SERIES = "series"


# Fixed order used by bulk refresh and stats.
KINDS: tuple[ContentKind, ...] = (ContentKind.LIVE, ContentKind.MOVIE, ContentKind.SERIES)

KIND_LABELS = {
    ContentKind.LIVE: "Live TV",
    ContentKind.MOVIE: "Movies",
    ContentKind.SERIES: "Series",
}


class Category(BaseModel):
    """A server-defined category. Identity is ``(kind, id)``."""
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    parent_id: Optional[int] = None
    kind: ContentKind


class Channel(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    name: str
    category_id: int
    icon: str = ""
    epg_channel_id: str = ""


class Movie(BaseModel):
    """A VOD item.

    ``extension`` is required: cached movie records written before the
    container extension was tracked fail validation and are dropped.
    """
    model_config = ConfigDict(extra="allow")

    id: int
    name: str
    category_id: int
    extension: str
    poster: str = ""
    backdrop: str = ""
    year: str = ""
    duration: str = ""
    rating: str = ""
    plot: str = ""


class Series(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    name: str
    category_id: int
    poster: str = ""
    backdrop: str = ""
    year: str = ""
    rating: str = ""
    plot: str = ""


ContentItem = Union[Channel, Movie, Series]

ITEM_MODELS: dict[ContentKind, type[BaseModel]] = {
    ContentKind.LIVE: Channel,
    ContentKind.MOVIE: Movie,
    ContentKind.SERIES: Series,
}


class Episode(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    season_number: int
    episode_number: int = 0
    title: str = ""
    plot: str = ""
    duration: str = ""
    extension: str = "mp4"


class SeriesDetail(BaseModel):
    """Result of ``get_series_info``: series metadata plus episodes per season."""

    info: dict = Field(default_factory=dict)
    episodes_by_season: dict[int, list[Episode]] = Field(default_factory=dict)


class UserInfo(BaseModel):
    model_config = ConfigDict(extra="allow")

    username: str = ""
    status: str = ""
    exp_date: Optional[Union[int, str]] = None
    is_trial: Optional[Union[int, str]] = None
    active_cons: Optional[Union[int, str]] = None
    max_connections: Optional[Union[int, str]] = None
    allowed_output_formats: list[str] = Field(default_factory=list)

    @field_validator("allowed_output_formats", mode="before")
    @classmethod
    def _wrap_single_format(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value


class ServerInfo(BaseModel):
    model_config = ConfigDict(extra="allow")

    url: str = ""
    port: Optional[Union[int, str]] = None
    https_port: Optional[Union[int, str]] = None
    server_protocol: Optional[str] = None
    timezone: Optional[str] = None


class AuthInfo(BaseModel):
    """Account and server blocks returned by an authenticated ``player_api.php`` call."""

    user_info: UserInfo
    server_info: ServerInfo
