"""Configuration service — loads, saves and provides access to the app config and saved servers."""
from __future__ import annotations

import json
import logging
import os
from typing import Optional

from pydantic import ValidationError

from xtreamsync.models.config import AppConfig, ClientOptions, Preferences, ServerConnection
from xtreamsync.services.stream_urls import normalize_server_url

logger = logging.getLogger(__name__)


class ConfigService:
    """Manages application configuration with file persistence.

    The config is kept in-memory after first load and re-read on explicit
    ``load()`` calls.  Every route that needs the config
    should depend on this service rather than reading the JSON directly.
    """

    def __init__(self, data_dir: str):
        self.data_dir = data_dir
        self.config_file = os.path.join(data_dir, "config.json")
        self._config: AppConfig = AppConfig()

    # ------------------------------------------------------------------
    # Load / Save
    # ------------------------------------------------------------------

    def load(self) -> AppConfig:
        """Load configuration from disk, applying defaults for missing keys."""
        if os.path.exists(self.config_file):
            try:
                with open(self.config_file) as f:
                    raw = json.load(f)
                self._config = AppConfig.model_validate(raw)
                return self._config
            except (OSError, json.JSONDecodeError, ValidationError) as e:
                logger.error(f"Error loading config: {e}")

        self._config = AppConfig()
        return self._config

    def save(self, config: AppConfig | None = None) -> None:
        """Persist the config to disk."""
        if config is not None:
            self._config = config
        os.makedirs(self.data_dir, exist_ok=True)
        with open(self.config_file, "w") as f:
            json.dump(self._config.model_dump(mode="json"), f, indent=2)

    @property
    def config(self) -> AppConfig:
        return self._config

    # ------------------------------------------------------------------
    # Saved servers
    # ------------------------------------------------------------------

    def get_servers(self) -> list[ServerConnection]:
        return self._config.servers

    def get_server_by_id(self, server_id: str) -> Optional[ServerConnection]:
        for server in self._config.servers:
            if server.id == server_id:
                return server
        return None

    def add_server(self, server: ServerConnection) -> ServerConnection:
        server.url = normalize_server_url(server.url)
        self._config.servers.append(server)
        self.save()
        logger.info(f"Added server {server.name or server.url} ({server.id})")
        return server

    def update_server(self, server: ServerConnection) -> Optional[ServerConnection]:
        server.url = normalize_server_url(server.url)
        for i, existing in enumerate(self._config.servers):
            if existing.id == server.id:
                self._config.servers[i] = server
                self.save()
                return server
        return None

    def remove_server(self, server_id: str) -> bool:
        before = len(self._config.servers)
        self._config.servers = [s for s in self._config.servers if s.id != server_id]
        if len(self._config.servers) == before:
            return False
        self.save()
        logger.info(f"Removed server {server_id}")
        return True

    # ------------------------------------------------------------------
    # Convenience accessors
    # ------------------------------------------------------------------

    def get_client_options(self) -> ClientOptions:
        opts = self._config.options
        return ClientOptions(timeout=opts.timeout, retries=opts.retries, retry_delay=opts.retry_delay)

    client_options = property(get_client_options)

    def get_test_options(self) -> ClientOptions:
        """Shorter policy used for connectivity tests."""
        opts = self._config.options
        return ClientOptions(
            timeout=opts.test_timeout,
            retries=opts.test_retries,
            retry_delay=opts.test_retry_delay,
        )

    test_options = property(get_test_options)

    def get_done_delay(self) -> float:
        return max(self._config.options.done_delay, 0.0)

    def get_history_limit(self) -> int:
        return max(self._config.options.history_limit, 1)

    def get_preferences(self) -> Preferences:
        return self._config.preferences

    def set_preferences(self, **changes) -> Preferences:
        self._config.preferences = Preferences.model_validate({**self._config.preferences.model_dump(), **changes})
        self.save()
        return self._config.preferences
