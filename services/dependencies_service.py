#!/usr/bin/env python3
"""Dependency Injection Container Module.

Builds and wires the resolver services from one validated configuration:

    CacheService -> HostPool (one MusicBrainzHost per ``musicbrainz.apis`` entry)
        -> MusicBrainzApiClient -> MusicBrainzResolver

Construction is synchronous. ``initialize`` loads the cache snapshot and opens
the shared HTTP session; ``close`` saves the cache, closes the session and
stops the log queue listener.
"""

import logging

from logging.handlers import QueueListener
from typing import Any

from services.cache_service import CacheService
from services.host_pool import HostPool, MusicBrainzHost
from services.musicbrainz_client import MusicBrainzApiClient
from services.musicbrainz_resolver import MusicBrainzResolver


def build_hosts(config: dict[str, Any], logger: logging.Logger | None = None) -> list[MusicBrainzHost]:
    """Create one host per configured API entry."""
    mb_config = config.get("musicbrainz", {}) or {}
    app_name = mb_config.get("app_name", "RecordingResolver")
    app_version = mb_config.get("app_version", "1.0.0")
    apis = mb_config.get("apis") or [{}]
    return [MusicBrainzHost.from_config(api, app_name, app_version, logger) for api in apis]


class DependencyContainer:
    """Central container for the resolver services.

    Provides access to configured service instances. Call ``initialize`` before use
    and ``close`` on shutdown.
    """

    def __init__(
        self,
        config: dict[str, Any],
        console_logger: logging.Logger,
        error_logger: logging.Logger,
        logging_listener: QueueListener | None = None,
    ):
        """Wire the services. Does NOT perform asynchronous setup here.

        Args:
            config: Validated application configuration (see ``utils.config.load_config``).
            console_logger: The logger for console output.
            error_logger: The logger for error messages.
            logging_listener: Queue listener to stop on ``close``.

        """
        self.config = config
        self.console_logger = console_logger
        self.error_logger = error_logger
        self._listener = logging_listener

        self.cache_service = CacheService(self.config, self.console_logger, self.error_logger)
        self.host_pool = HostPool(
            build_hosts(self.config, self.console_logger),
            self.cache_service,
            self.console_logger,
            self.error_logger,
        )
        self.api_client = MusicBrainzApiClient(
            self.config, self.console_logger, self.error_logger, self.host_pool
        )
        self.resolver = MusicBrainzResolver(
            self.config, self.console_logger, self.error_logger, self.api_client
        )
        self.console_logger.debug("All resolver services initialized and wired (sync part).")

    async def initialize(self) -> None:
        """Load the cache snapshot and open the HTTP session."""
        self.console_logger.debug("Asynchronously initializing DependencyContainer services...")
        await self.cache_service.initialize()
        await self.host_pool.initialize()
        self.console_logger.debug(self.resolver.defaults.summary())

    async def close(self) -> None:
        """Persist the cache, close the HTTP session and stop the log listener."""
        try:
            await self.cache_service.save_cache()
            await self.host_pool.close()
        finally:
            if self._listener is not None:
                self.console_logger.debug("Stopping logging listener...")
                self._listener.stop()
                self._listener = None
