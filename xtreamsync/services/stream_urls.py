"""Stream URL builders and server/account helpers. Pure functions, no I/O."""
from __future__ import annotations

import re
import time
from datetime import datetime
from typing import Optional

from xtreamsync.models.catalog import ContentKind

# Path segment the Xtream stream endpoint uses for each kind.
STREAM_PATHS = {
    ContentKind.LIVE: "live",
    ContentKind.MOVIE: "movie",
    ContentKind.SERIES: "series",
}

DEFAULT_EXTENSIONS = {
    ContentKind.LIVE: "m3u8",
    ContentKind.MOVIE: "mp4",
    ContentKind.SERIES: "mp4",
}


def normalize_server_url(url: str) -> str:
    """Ensure an http(s) scheme and strip trailing slashes."""
    normalized = url.strip()
    if not normalized.startswith(("http://", "https://")):
        normalized = f"http://{normalized}"
    return normalized.rstrip("/")


def build_stream_url(
    base_url: str,
    username: str,
    password: str,
    kind: ContentKind,
    stream_id: int,
    extension: Optional[str] = None,
    masked: bool = False,
) -> str:
    """Build the playback URL for a channel, movie or series episode."""
    kind = ContentKind(kind)
    ext = extension or DEFAULT_EXTENSIONS[kind]
    base = base_url.rstrip("/")
    path = STREAM_PATHS[kind]
    if masked:
        return f"{base}/{path}/***/***/***/{stream_id}.{ext}"
    return f"{base}/{path}/{username}/{password}/{stream_id}.{ext}"


_PATH_CREDENTIALS = re.compile(r"/([^/]+)/([^/]+)/(\d+)\.")


def mask_credentials(url: str) -> str:
    """Hide credentials in a stream URL or a ``player_api.php`` query string."""
    masked = _PATH_CREDENTIALS.sub(r"/***/***/***/\3.", url, count=1)
    masked = re.sub(r"username=[^&]+", "username=***", masked, count=1)
    return re.sub(r"password=[^&]+", "password=***", masked, count=1)


def _parse_exp_date(exp_date) -> Optional[int]:
    if exp_date is None or str(exp_date) in ("", "0", "null"):
        return None
    try:
        return int(exp_date)
    except (ValueError, TypeError):
        return None


def format_expiration_date(exp_date) -> str:
    if exp_date is None or str(exp_date) in ("", "0", "null"):
        return "Never"
    timestamp = _parse_exp_date(exp_date)
    if timestamp is None:
        return str(exp_date)
    return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d")


def is_account_expired(exp_date, now: Optional[float] = None) -> bool:
    timestamp = _parse_exp_date(exp_date)
    if timestamp is None:
        return False
    return timestamp < (now if now is not None else time.time())
