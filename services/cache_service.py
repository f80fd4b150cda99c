#!/usr/bin/env python3

"""Cache Service Module.

Time-bounded key/value cache for search responses.

Features:
    - ``CacheBackend`` protocol: the get/set/invalidate surface the host pool relies on,
      so an in-memory, distributed or file-backed cache can be swapped in.
    - ``CacheService``: in-memory implementation with per-entry TTL and SHA256 hashed keys.
    - Values are stored JSON-serialized, so callers never share mutable cached objects.
    - Optional JSON snapshot on disk (``cache.persist``) loaded and saved asynchronously
      through ``run_in_executor``; expired entries are skipped on load and save.

No locking is taken: two callers that miss on the same key both compute and the
last write wins.
"""

import asyncio
import hashlib
import json
import os
import time

from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable

from utils.logger import get_full_log_path

DEFAULT_TTL_SECONDS = 3600


@runtime_checkable
class CacheBackend(Protocol):
    """Structural interface of the response cache."""

    async def get_async(self, key_data: Any) -> Any:
        """Return the cached value or None when missing/expired."""
        ...

    async def set_async(self, key_data: Any, value: Any, ttl: int | None = None) -> None:
        """Store ``value`` for ``ttl`` seconds (backend default when None)."""
        ...

    def invalidate(self, key_data: Any) -> None:
        """Drop a single entry."""
        ...


class CacheService:
    """In-memory TTL cache with an optional on-disk JSON snapshot."""

    CACHE_ENTRY_LENGTH = 2

    def __init__(
        self,
        config: dict[str, Any],
        console_logger: Any,
        error_logger: Any,
    ):
        """Initialize the CacheService with configuration and loggers.

        Does NOT load the snapshot here. Use the async initialize method.

        :param config: Application configuration (reads the ``cache`` section).
        :param console_logger: Logger object for console output.
        :param error_logger: Logger object for error logging.
        """
        self.config = config
        self.console_logger = console_logger
        self.error_logger = error_logger

        cache_config = config.get("cache", {}) or {}
        self.default_ttl: int = cache_config.get("default_ttl", DEFAULT_TTL_SECONDS)
        self.persist: bool = bool(cache_config.get("persist", False))
        # key (hash) -> (serialized value, expiry_time)
        self.cache: dict[str, tuple[str, float]] = {}
        self.cache_file = (
            get_full_log_path(
                config,
                "cache_file",
                "cache/musicbrainz_cache.json",
                error_logger,
                section="cache",
            )
            if self.persist
            else None
        )

    async def initialize(self) -> None:
        """Load the persisted snapshot, when persistence is enabled."""
        if self.persist:
            await self.load_cache()

    def _is_expired(self, expiry_time: float) -> bool:
        return time.time() > expiry_time

    def _hash_key(self, key_data: Any) -> str:
        """Generate a SHA256 hash for a cache key (string, tuple or any printable object)."""
        return hashlib.sha256(str(key_data).encode("utf-8")).hexdigest()

    def set(self, key_data: Any, value: Any, ttl: int | None = None) -> None:
        """Set a value in the in-memory cache with an optional TTL."""
        key = self._hash_key(key_data)
        ttl_value = ttl if ttl is not None else self.default_ttl
        self.cache[key] = (json.dumps(value), time.time() + ttl_value)

    def get(self, key_data: Any) -> Any:
        """Return a fresh copy of the cached value, or None when missing or expired."""
        key = self._hash_key(key_data)
        entry = self.cache.get(key)
        if entry is None:
            return None
        serialized, expiry_time = entry
        if self._is_expired(expiry_time):
            self.console_logger.debug(f"Cache expired for {key_data}")
            del self.cache[key]
            return None
        self.console_logger.debug(f"Cache hit for {key_data}")
        return json.loads(serialized)

    async def set_async(self, key_data: Any, value: Any, ttl: int | None = None) -> None:
        """Asynchronously set a value; in-memory so this just calls ``set``."""
        self.set(key_data, value, ttl)

    async def get_async(
        self,
        key_data: Any,
        compute_func: Callable[[], Awaitable[Any]] | None = None,
    ) -> Any:
        """Fetch a value from the cache or compute (and store) it if needed."""
        value = self.get(key_data)
        if value is not None or compute_func is None:
            return value
        self.console_logger.debug(f"Computing value for {key_data}")
        value = await compute_func()
        if value is not None:
            self.set(key_data, value)
        return value

    def invalidate(self, key_data: Any) -> None:
        """Invalidate a single cache entry, or every entry when ``key_data == "ALL"``."""
        if key_data == "ALL":
            self.clear()
            return
        if self.cache.pop(self._hash_key(key_data), None) is not None:
            self.console_logger.debug(f"Cache invalidated for key: {key_data}")

    def clear(self) -> None:
        self.cache.clear()
        self.console_logger.info("All in-memory cache entries cleared.")

    async def load_cache(self) -> None:
        """Load the persistent snapshot from disk asynchronously."""
        if not self.cache_file:
            return
        cache_file = self.cache_file
        loop = asyncio.get_running_loop()

        def blocking_load() -> dict[str, tuple[str, float]]:
            if not os.path.exists(cache_file):
                return {}
            try:
                with open(cache_file, encoding="utf-8") as f:
                    data = json.load(f)
            except (OSError, ValueError) as e:
                self.error_logger.error(f"Error loading cache from {cache_file}: {e}")
                return {}
            result: dict[str, tuple[str, float]] = {}
            for k, v in data.items():
                if (
                    isinstance(v, list)
                    and len(v) == self.CACHE_ENTRY_LENGTH
                    and isinstance(v[0], str)
                    and isinstance(v[1], int | float)
                    and not self._is_expired(float(v[1]))
                ):
                    result[k] = (v[0], float(v[1]))
            return result

        self.cache = await loop.run_in_executor(None, blocking_load)
        self.console_logger.info(f"Loaded {len(self.cache)} cached entries from {cache_file}")

    async def save_cache(self) -> None:
        """Persist the non-expired entries to disk asynchronously."""
        if not self.cache_file:
            return
        cache_file = self.cache_file
        loop = asyncio.get_running_loop()
        # built on the loop; the executor thread only sees this copy
        data = {k: [v, exp] for k, (v, exp) in self.cache.items() if not self._is_expired(exp)}

        def blocking_save() -> int:
            os.makedirs(os.path.dirname(cache_file) or ".", exist_ok=True)
            temp_file = f"{cache_file}.tmp"
            with open(temp_file, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(temp_file, cache_file)
            return len(data)

        try:
            saved = await loop.run_in_executor(None, blocking_save)
        except OSError as e:
            self.error_logger.error(f"Error saving cache to {cache_file}: {e}")
            return
        self.console_logger.info(f"Saved {saved} cache entries to {cache_file}")
