"""Raw ``player_api.php`` records -> typed catalog models."""
from __future__ import annotations

import logging
from typing import Any, Optional

from xtreamsync.models.catalog import (
    Category,
    Channel,
    ContentItem,
    ContentKind,
    Episode,
    Movie,
    Series,
    SeriesDetail,
)

logger = logging.getLogger(__name__)


def _to_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (ValueError, TypeError):
        return default


def _to_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def transform_category(raw: dict, kind: ContentKind) -> Category:
    parent = _to_int(raw.get("parent_id"), 0)
    return Category(
        id=_to_int(raw.get("category_id")),
        name=_to_str(raw.get("category_name")),
        parent_id=parent or None,
        kind=kind,
    )


def transform_categories(raw_list: list, kind: ContentKind) -> list[Category]:
    return [transform_category(raw, kind) for raw in raw_list if isinstance(raw, dict)]


def transform_channel(raw: dict) -> Channel:
    return Channel(
        id=_to_int(raw.get("stream_id")),
        name=_to_str(raw.get("name")),
        category_id=_to_int(raw.get("category_id")),
        icon=_to_str(raw.get("stream_icon")),
        epg_channel_id=_to_str(raw.get("epg_channel_id")),
    )


def transform_movie(raw: dict) -> Movie:
    return Movie(
        id=_to_int(raw.get("stream_id")),
        name=_to_str(raw.get("name")),
        category_id=_to_int(raw.get("category_id")),
        extension=_to_str(raw.get("container_extension")) or "mp4",
        poster=_to_str(raw.get("stream_icon")),
        rating=_to_str(raw.get("rating")),
    )


def transform_series(raw: dict) -> Series:
    backdrops = raw.get("backdrop_path") or []
    if isinstance(backdrops, str):
        backdrops = [backdrops]
    release = _to_str(raw.get("releaseDate") or raw.get("release_date"))
    return Series(
        id=_to_int(raw.get("series_id")),
        name=_to_str(raw.get("name")),
        category_id=_to_int(raw.get("category_id")),
        poster=_to_str(raw.get("cover")),
        backdrop=_to_str(backdrops[0]) if backdrops else "",
        year=release.split("-")[0] if release else "",
        rating=_to_str(raw.get("rating")),
        plot=_to_str(raw.get("plot")),
    )


_ITEM_TRANSFORMS = {
    ContentKind.LIVE: transform_channel,
    ContentKind.MOVIE: transform_movie,
    ContentKind.SERIES: transform_series,
}


def transform_items(raw_list: list, kind: ContentKind) -> list[ContentItem]:
    transform = _ITEM_TRANSFORMS[ContentKind(kind)]
    return [transform(raw) for raw in raw_list if isinstance(raw, dict)]


def transform_episode(raw: dict, season_number: int) -> Episode:
    info = raw.get("info") or {}
    if not isinstance(info, dict):
        info = {}
    return Episode(
        id=_to_int(raw.get("id")),
        season_number=_to_int(raw.get("season"), season_number),
        episode_number=_to_int(raw.get("episode_num")),
        title=_to_str(raw.get("title")),
        plot=_to_str(info.get("plot")),
        duration=_to_str(info.get("duration")),
        extension=_to_str(raw.get("container_extension")) or "mp4",
    )


def transform_series_detail(raw: dict) -> SeriesDetail:
    """Group ``get_series_info`` episodes by season number.

    Servers return ``episodes`` either as ``{"1": [...], "2": [...]}`` or,
    on some panels, as a flat list of episode records.
    """
    episodes_raw = raw.get("episodes") or {}
    by_season: dict[int, list[Episode]] = {}
    if isinstance(episodes_raw, dict):
        for season_key, season_eps in episodes_raw.items():
            season_number = _to_int(season_key)
            for ep in season_eps or []:
                if isinstance(ep, dict):
                    by_season.setdefault(season_number, []).append(transform_episode(ep, season_number))
    elif isinstance(episodes_raw, list):
        for ep in episodes_raw:
            if isinstance(ep, dict):
                episode = transform_episode(ep, 0)
                by_season.setdefault(episode.season_number, []).append(episode)

    info = raw.get("info")
    return SeriesDetail(
        info=info if isinstance(info, dict) else {},
        episodes_by_season=dict(sorted(by_season.items())),
    )


def find_item(items: list[ContentItem], item_id: int) -> Optional[ContentItem]:
    for item in items:
        if item.id == item_id:
            return item
    return None
