"""Shared fixtures: stub loggers, cache service and a resolver factory wired to fake hosts."""

from __future__ import annotations

import logging

from collections.abc import Callable
from typing import Any

import pytest

from builders import FakeHost, stub_loggers
from services.cache_service import CacheService
from services.host_pool import HostPool
from services.musicbrainz_client import MusicBrainzApiClient
from services.musicbrainz_resolver import MusicBrainzResolver


@pytest.fixture(name="loggers")
def _loggers() -> tuple[logging.Logger, logging.Logger]:
    return stub_loggers()


@pytest.fixture(name="cache_service")
def _cache_service(loggers: tuple[logging.Logger, logging.Logger]) -> CacheService:
    console_logger, error_logger = loggers
    return CacheService(config={}, console_logger=console_logger, error_logger=error_logger)


@pytest.fixture(name="make_resolver")
def _make_resolver(
    loggers: tuple[logging.Logger, logging.Logger],
    cache_service: CacheService,
) -> Callable[..., tuple[MusicBrainzResolver, HostPool]]:
    """Build a resolver over the given fake hosts, optionally with configured stage defaults."""
    console_logger, error_logger = loggers

    def factory(
        *hosts: FakeHost, defaults: dict[str, Any] | None = None
    ) -> tuple[MusicBrainzResolver, HostPool]:
        config: dict[str, Any] = {"musicbrainz": {"defaults": defaults}}
        pool = HostPool(hosts or [FakeHost()], cache_service, console_logger, error_logger)
        client = MusicBrainzApiClient(config, console_logger, error_logger, pool)
        return MusicBrainzResolver(config, console_logger, error_logger, client), pool

    return factory
