"""Pydantic models for application configuration."""
from __future__ import annotations

import random
import string
import time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def generate_server_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"{int(time.time() * 1000)}-{suffix}"


class ServerConnection(BaseModel):
    """A saved Xtream Codes server connection."""
    model_config = ConfigDict(extra="allow")

    id: str = Field(default_factory=generate_server_id)
    name: str = ""
    url: str = ""
    username: str = ""
    password: str = ""
    last_connected: Optional[int] = None


class ClientOptions(BaseModel):
    """Timeout/retry policy for catalog requests (seconds)."""
    model_config = ConfigDict(extra="allow")

    timeout: float = 30.0
    retries: int = 2
    retry_delay: float = 1.0


class Options(BaseModel):
    """Application options."""
    model_config = ConfigDict(extra="allow")

    timeout: float = 30.0
    retries: int = 2
    retry_delay: float = 1.0
    test_timeout: float = 15.0
    test_retries: int = 1
    test_retry_delay: float = 0.5
    done_delay: float = 1.5
    history_limit: int = 100


class Preferences(BaseModel):
    model_config = ConfigDict(extra="allow")

    show_one_group_at_a_time: bool = False
    hide_credentials_in_url: bool = False
    default_view: str = "grid"  # "grid" or "list"


class AppConfig(BaseModel):
    """Root application configuration."""
    model_config = ConfigDict(extra="allow")

    servers: list[ServerConnection] = Field(default_factory=list)
    options: Options = Field(default_factory=Options)
    preferences: Preferences = Field(default_factory=Preferences)
