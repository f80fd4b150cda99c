"""Tests for service wiring and the command line play loader."""

from __future__ import annotations

import asyncio
import json

from resolve_play import load_plays, parse_arguments
from services.dependencies_service import DependencyContainer, build_hosts
from utils.config import validate_config


def _config(tmp_path) -> dict:
    return validate_config(
        {
            "logs_base_dir": str(tmp_path),
            "musicbrainz": {
                "app_name": "ResolverTests",
                "apis": [
                    {"url": "https://musicbrainz.org", "contact": "me@example.org"},
                    {"url": "http://localhost:5000", "rate_limit": 10, "api_key": "k"},
                ],
                "defaults": {"score": 75},
            },
            "cache": {"persist": True, "cache_file": "cache/mb.json"},
        }
    )


def test_build_hosts_from_config(tmp_path) -> None:
    hosts = build_hosts(_config(tmp_path))
    assert [h.name for h in hosts] == ["musicbrainz.org", "localhost:5000"]
    assert hosts[0].user_agent == "ResolverTests/1.0.0 ( me@example.org )"
    assert hosts[1].headers()["Authorization"] == "Bearer k"


def test_container_wires_and_shuts_down(tmp_path, loggers) -> None:
    console_logger, error_logger = loggers
    deps = DependencyContainer(_config(tmp_path), console_logger, error_logger)
    assert deps.resolver.api_client is deps.api_client
    assert deps.api_client.host_pool is deps.host_pool
    assert deps.host_pool.cache_service is deps.cache_service
    assert deps.resolver.defaults.score == 75

    async def lifecycle() -> bool:
        await deps.initialize()
        deps.cache_service.set("k", {"v": 1})
        opened = deps.host_pool.session is not None and not deps.host_pool.session.closed
        await deps.close()
        return opened and deps.host_pool.session.closed

    assert asyncio.run(lifecycle())
    assert (tmp_path / "cache" / "mb.json").exists()


def test_load_plays_from_arguments() -> None:
    args = parse_arguments(["--artist", "A", "--artist", "B", "--title", "Song", "--duration", "200"])
    [play] = load_plays(args)
    assert play.artists == ("A", "B")
    assert play.track == "Song"
    assert play.duration == 200.0
    assert play.album is None


def test_load_plays_from_file(tmp_path) -> None:
    path = tmp_path / "plays.json"
    path.write_text(
        json.dumps([{"track": "One", "artists": ["A"]}, {"data": {"track": "Two", "artists": "B"}}]),
        encoding="utf-8",
    )
    plays = load_plays(parse_arguments(["--plays", str(path)]))
    assert [p.track for p in plays] == ["One", "Two"]
    assert plays[1].artists == ("B",)
