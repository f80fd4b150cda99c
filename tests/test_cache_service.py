"""Tests for the TTL cache service."""

from __future__ import annotations

import asyncio
import time

from services.cache_service import CacheBackend, CacheService


def test_cache_service_satisfies_backend_protocol(cache_service: CacheService) -> None:
    assert isinstance(cache_service, CacheBackend)


def test_get_returns_independent_copies(cache_service: CacheService) -> None:
    cache_service.set("key", {"recordings": [1, 2]})
    first = cache_service.get("key")
    first["recordings"].append(3)
    assert cache_service.get("key") == {"recordings": [1, 2]}


def test_entries_expire_after_ttl(cache_service: CacheService, monkeypatch) -> None:
    now = time.time()
    cache_service.set("short", "value", ttl=10)
    cache_service.set("default", "value")
    monkeypatch.setattr("services.cache_service.time.time", lambda: now + 60)
    assert cache_service.get("short") is None
    assert cache_service.get("default") == "value"


def test_invalidate_single_and_all(cache_service: CacheService) -> None:
    cache_service.set("a", 1)
    cache_service.set("b", 2)
    cache_service.invalidate("a")
    assert cache_service.get("a") is None
    assert cache_service.get("b") == 2
    cache_service.invalidate("ALL")
    assert cache_service.get("b") is None


def test_get_async_computes_missing_value(cache_service: CacheService) -> None:
    calls = []

    async def compute() -> str:
        calls.append(1)
        return "computed"

    async def scenario() -> list[str]:
        return [
            await cache_service.get_async("key", compute),
            await cache_service.get_async("key", compute),
        ]

    assert asyncio.run(scenario()) == ["computed", "computed"]
    assert len(calls) == 1


def test_snapshot_round_trip(tmp_path, loggers) -> None:
    console_logger, error_logger = loggers
    config = {
        "logs_base_dir": str(tmp_path),
        "cache": {"persist": True, "cache_file": "cache/mb.json"},
    }
    writer = CacheService(config, console_logger, error_logger)
    writer.set("kept", {"a": 1})
    writer.set("expired", {"b": 2}, ttl=-1)
    asyncio.run(writer.save_cache())
    assert (tmp_path / "cache" / "mb.json").exists()

    reader = CacheService(config, console_logger, error_logger)
    asyncio.run(reader.initialize())
    assert reader.get("kept") == {"a": 1}
    assert reader.get("expired") is None
    assert len(reader.cache) == 1


def test_snapshot_ignores_corrupt_file(tmp_path, loggers) -> None:
    console_logger, error_logger = loggers
    (tmp_path / "cache").mkdir()
    (tmp_path / "cache" / "mb.json").write_text("{not json", encoding="utf-8")
    config = {"logs_base_dir": str(tmp_path), "cache": {"persist": True, "cache_file": "cache/mb.json"}}
    service = CacheService(config, console_logger, error_logger)
    asyncio.run(service.initialize())
    assert service.cache == {}


def test_save_writes_entries_present_when_called(tmp_path, loggers) -> None:
    console_logger, error_logger = loggers
    config = {"logs_base_dir": str(tmp_path), "cache": {"persist": True, "cache_file": "cache/mb.json"}}
    writer = CacheService(config, console_logger, error_logger)
    writer.set("early", {"a": 1})

    async def scenario() -> None:
        saving = asyncio.create_task(writer.save_cache())
        # let save_cache run up to the executor hand-off
        await asyncio.sleep(0)
        writer.set("late", {"b": 2})
        await saving

    asyncio.run(scenario())

    reader = CacheService(config, console_logger, error_logger)
    asyncio.run(reader.initialize())
    assert reader.get("early") == {"a": 1}
    assert reader.get("late") is None
    assert writer.get("late") == {"b": 2}
