#!/usr/bin/env python3

"""Host Pool and Query Executor Module.

Runs search requests against a pool of interchangeable MusicBrainz-compatible hosts
(the official service, mirrors, self-hosted instances).

Key Features:
- ``EnhancedRateLimiter``: per-host moving-window rate limit plus a concurrency cap
- ``MusicBrainzHost``: one configured host (URL, contact, API key, rate limit, TTL, timeout)
- ``RoundRobinHostSelector``: injectable, lock-guarded round-robin cursor
- ``HostPool.call_api``: cache lookup, per-attempt timeout race, cache write and
  cross-host failover; every host is tried at most once per call

Failure semantics:
- network errors, timeouts, 429 and 5xx are retryable on the next host
- other 4xx mark the host as a show stopper: the call fails over and the host is
  disabled for later calls, unless it is the last enabled host
- malformed bodies (``MalformedResponseError``) are raised immediately
- when every host failed, ``AllHostsFailedError`` is raised
"""

import asyncio
import json
import logging
import threading
import time
import urllib.parse

from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from fractions import Fraction
from typing import Any

import aiohttp

from services.cache_service import CacheBackend
from utils.errors import AllHostsFailedError, MalformedResponseError, UpstreamError

DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_APP_NAME = "RecordingResolver"
DEFAULT_APP_VERSION = "1.0.0"
MUSICBRAINZ_URL = "https://musicbrainz.org"
WAIT_TIME_LOG_THRESHOLD = 0.1
HTTP_TOO_MANY_REQUESTS = 429
HTTP_SERVER_ERROR = 500
HTTP_CLIENT_ERROR = 400
RESPONSE_SNIPPET_LENGTH = 200
RATE_DENOMINATOR_LIMIT = 1000


class EnhancedRateLimiter:
    """Moving-window rate limiter with an asyncio Lock and a concurrency semaphore."""

    def __init__(
        self,
        requests_per_window: int,
        window_size: float,
        max_concurrent: int = 3,
        logger: logging.Logger | None = None,
    ):
        if not isinstance(requests_per_window, int) or requests_per_window <= 0:
            raise ValueError("requests_per_window must be a positive integer")
        if not isinstance(window_size, int | float) or window_size <= 0:
            raise ValueError("window_size must be a positive number")
        if not isinstance(max_concurrent, int) or max_concurrent <= 0:
            raise ValueError("max_concurrent must be a positive integer")

        self.requests_per_window = requests_per_window
        self.window_size = float(window_size)
        self.request_timestamps: list[float] = []
        self.semaphore = asyncio.Semaphore(max_concurrent)
        self.logger = logger or logging.getLogger(__name__)
        self.total_requests = 0
        self.total_wait_time = 0.0
        self._rate_lock = asyncio.Lock()

    @classmethod
    def per_second(
        cls, rate: float, max_concurrent: int = 3, logger: logging.Logger | None = None
    ) -> "EnhancedRateLimiter":
        """Build a limiter from a requests-per-second figure (fractions allowed, e.g. 0.5 or 1.5).

        The rate is expressed as requests per whole-second window, so 1.5 becomes
        3 requests per 2 seconds and 0.25 becomes 1 request per 4 seconds.
        """
        if rate <= 0:
            raise ValueError("rate must be positive")
        exact = Fraction(rate).limit_denominator(RATE_DENOMINATOR_LIMIT)
        if exact == 0:
            return cls(1, 1.0 / rate, max_concurrent, logger)
        return cls(exact.numerator, float(exact.denominator), max_concurrent, logger)

    async def acquire(self) -> float:
        """Wait for a concurrency slot and room in the window. Returns seconds spent waiting."""
        await self.semaphore.acquire()
        try:
            waited = await self._wait_if_needed()
        except BaseException:
            # cancelled while waiting (e.g. by a timeout race): give the slot back
            self.semaphore.release()
            raise
        self.total_requests += 1
        self.total_wait_time += waited
        return waited

    def release(self) -> None:
        self.semaphore.release()

    async def _wait_if_needed(self) -> float:
        async with self._rate_lock:
            waited = 0.0
            while True:
                now = time.monotonic()
                while self.request_timestamps and now - self.request_timestamps[0] > self.window_size:
                    self.request_timestamps.pop(0)

                if len(self.request_timestamps) >= self.requests_per_window:
                    wait_duration = (self.request_timestamps[0] + self.window_size) - now
                    if wait_duration > 0:
                        self.logger.debug(
                            f"Rate limit reached ({len(self.request_timestamps)}/{self.requests_per_window} "
                            f"in {self.window_size}s). Waiting {wait_duration:.3f}s"
                        )
                        await asyncio.sleep(wait_duration)
                        waited += wait_duration
                        continue

                self.request_timestamps.append(time.monotonic())
                return waited

    def get_stats(self) -> dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "total_wait_time": self.total_wait_time,
            "avg_wait_time": self.total_wait_time / max(1, self.total_requests),
            "max_requests_per_window": self.requests_per_window,
            "window_size": self.window_size,
        }


@dataclass(frozen=True)
class HostResponse:
    """Parsed JSON payload plus the rendered query and URL, kept for troubleshooting."""

    data: dict[str, Any]
    query: str
    url: str


class MusicBrainzHost:
    """One search host with its own rate limit, TTL and request timeout."""

    def __init__(
        self,
        url: str = MUSICBRAINZ_URL,
        *,
        contact: str | None = None,
        api_key: str | None = None,
        rate_limit: float = 1,
        ttl: int | None = None,
        request_timeout: float | None = None,
        app_name: str = DEFAULT_APP_NAME,
        app_version: str = DEFAULT_APP_VERSION,
        max_concurrent: int = 3,
        logger: logging.Logger | None = None,
    ):
        self.base_url = url.rstrip("/")
        parsed = urllib.parse.urlparse(self.base_url)
        self.name = parsed.netloc or self.base_url
        self.contact = contact or None
        self.api_key = api_key or None
        self.ttl = ttl
        self.request_timeout = request_timeout
        self.logger = logger or logging.getLogger(__name__)
        self.rate_limiter = EnhancedRateLimiter.per_second(rate_limit, max_concurrent, self.logger)
        self.user_agent = (
            f"{app_name}/{app_version} ( {self.contact} )" if self.contact else f"{app_name}/{app_version}"
        )
        self.call_durations: list[float] = []

    @classmethod
    def from_config(
        cls,
        api_config: dict[str, Any],
        app_name: str = DEFAULT_APP_NAME,
        app_version: str = DEFAULT_APP_VERSION,
        logger: logging.Logger | None = None,
    ) -> "MusicBrainzHost":
        return cls(
            api_config.get("url") or MUSICBRAINZ_URL,
            contact=api_config.get("contact"),
            api_key=api_config.get("api_key"),
            rate_limit=api_config.get("rate_limit") or 1,
            ttl=api_config.get("ttl"),
            request_timeout=api_config.get("request_timeout"),
            app_name=app_name,
            app_version=app_version,
            logger=logger,
        )

    def __repr__(self) -> str:
        return f"MusicBrainzHost({self.base_url!r})"

    def headers(self) -> dict[str, str]:
        headers = {"User-Agent": self.user_agent, "Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def search(
        self,
        session: aiohttp.ClientSession,
        entity: str,
        query: str,
        limit: int = 25,
    ) -> HostResponse:
        """Run one search request against this host.

        Raises:
            UpstreamError: network failure or an error status.
            MalformedResponseError: the body is not a JSON object or reports an error.

        """
        url = f"{self.base_url}/ws/2/{entity}"
        params = {"query": query, "fmt": "json", "limit": str(limit)}
        log_url = f"{url}?{urllib.parse.urlencode(params)}"

        wait_time = await self.rate_limiter.acquire()
        if wait_time > WAIT_TIME_LOG_THRESHOLD:
            self.logger.debug(f"[{self.name}] Waited {wait_time:.3f}s for rate limiting")
        start_time = time.monotonic()
        try:
            async with session.get(url, params=params, headers=self.headers()) as response:
                status = response.status
                text = await response.text(encoding="utf-8", errors="ignore")
        except (aiohttp.ClientError, OSError) as e:
            raise UpstreamError(f"Request failed: {type(e).__name__}: {e}", host=self.name) from e
        finally:
            self.rate_limiter.release()
            self.call_durations.append(time.monotonic() - start_time)

        self.logger.debug(f"[{self.name}] GET {log_url} - Status: {status}")
        snippet = text[:RESPONSE_SNIPPET_LENGTH]
        if status == HTTP_TOO_MANY_REQUESTS or status >= HTTP_SERVER_ERROR:
            raise UpstreamError("Host unavailable", host=self.name, status=status, response_body=snippet)
        if status >= HTTP_CLIENT_ERROR:
            raise UpstreamError(
                "Host rejected the request", host=self.name, status=status, show_stopper=True, response_body=snippet
            )

        try:
            data = json.loads(text)
        except ValueError as e:
            raise MalformedResponseError(
                "Response body is not valid JSON", host=self.name, status=status, response_body=snippet
            ) from e
        if not isinstance(data, dict):
            raise MalformedResponseError(
                f"Response JSON is not an object (type: {type(data).__name__})",
                host=self.name,
                status=status,
                response_body=snippet,
            )
        if "error" in data:
            raise MalformedResponseError(str(data["error"]), host=self.name, status=status, response_body=snippet)
        return HostResponse(data=data, query=query, url=log_url)

    def get_stats(self) -> dict[str, Any]:
        stats = self.rate_limiter.get_stats()
        stats["avg_duration"] = sum(self.call_durations) / max(1, len(self.call_durations))
        return stats


class RoundRobinHostSelector:
    """Cycles through hosts. Shared by concurrent calls; the cursor advance is lock-guarded."""

    def __init__(self, hosts: Iterable[MusicBrainzHost]):
        self._hosts = list(hosts)
        if not self._hosts:
            raise ValueError("At least one host is required")
        self._cursor = 0
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._hosts)

    @property
    def hosts(self) -> list[MusicBrainzHost]:
        return list(self._hosts)

    def next(self, exclude: Iterable[MusicBrainzHost] = ()) -> MusicBrainzHost:
        """Return the next host in rotation that is not in ``exclude``."""
        skip = set(exclude)
        with self._lock:
            for _ in range(len(self._hosts)):
                host = self._hosts[self._cursor]
                self._cursor = (self._cursor + 1) % len(self._hosts)
                if host not in skip:
                    return host
        raise LookupError("No untried hosts remain")


class HostPool:
    """Executes queries against the pool with caching and cross-host failover."""

    def __init__(
        self,
        hosts: Iterable[MusicBrainzHost],
        cache_service: CacheBackend,
        console_logger: logging.Logger,
        error_logger: logging.Logger,
        selector: RoundRobinHostSelector | None = None,
        default_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ):
        self.selector = selector or RoundRobinHostSelector(hosts)
        self.cache_service = cache_service
        self.console_logger = console_logger
        self.error_logger = error_logger
        self.default_timeout = default_timeout
        self.session: aiohttp.ClientSession | None = None
        # hosts that answered with a non-retryable 4xx
        self.disabled: set[MusicBrainzHost] = set()
        self.console_logger.debug(
            f"Round Robin API calls using hosts: {' | '.join(h.base_url for h in self.selector.hosts)}"
        )

    @property
    def hosts(self) -> list[MusicBrainzHost]:
        return self.selector.hosts

    @property
    def enabled_hosts(self) -> list[MusicBrainzHost]:
        return [h for h in self.selector.hosts if h not in self.disabled]

    def _disable(self, host: MusicBrainzHost, error: UpstreamError) -> None:
        """Stop routing requests to a host that rejected a request outright; the last enabled host is kept."""
        if host in self.disabled:
            return
        if len(self.enabled_hosts) <= 1:
            self.error_logger.warning(f"[{host.name}] {error} - last enabled host, keeping it in rotation")
            return
        self.disabled.add(host)
        self.error_logger.error(f"[{host.name}] {error} - host disabled for the rest of this session")

    async def initialize(self) -> None:
        """Create the shared aiohttp ClientSession if it is missing or closed."""
        if self.session is None or self.session.closed:
            self.session = self._create_client_session()

    def _create_client_session(self) -> aiohttp.ClientSession:
        connector = aiohttp.TCPConnector(limit_per_host=10, limit=50, ttl_dns_cache=300)
        # per-attempt timeouts are enforced by call_api; this only bounds stuck sockets
        timeout = aiohttp.ClientTimeout(total=None, connect=15, sock_read=self.default_timeout)
        self.console_logger.debug("Host pool HTTP session initialized")
        return aiohttp.ClientSession(
            timeout=timeout, connector=connector, headers={"Accept-Encoding": "gzip, deflate"}
        )

    async def get_session(self) -> aiohttp.ClientSession:
        await self.initialize()
        assert self.session is not None
        return self.session

    async def close(self) -> None:
        """Log per-host request statistics and close the HTTP session."""
        self.console_logger.info("--- Search Host Statistics ---")
        for host in self.hosts:
            stats = host.get_stats()
            self.console_logger.info(
                f"Host: {host.name:<24} | "
                f"Requests: {stats['total_requests']:<5} | "
                f"Avg Wait: {stats['avg_wait_time']:.3f}s | "
                f"Avg Duration: {stats['avg_duration']:.3f}s"
            )
        if self.session is not None and not self.session.closed:
            await self.session.close()
            self.console_logger.info("Host pool session closed")

    async def _cache_get(self, cache_key: str) -> Any:
        try:
            return await self.cache_service.get_async(cache_key)
        except Exception as e:
            self.error_logger.warning(f"Could not fetch cache key {cache_key}: {e}")
            return None

    async def _cache_set(self, cache_key: str, value: Any, ttl: int | None) -> None:
        try:
            await self.cache_service.set_async(cache_key, value, ttl=ttl)
        except Exception as e:
            self.error_logger.warning(f"Could not write cache key {cache_key}: {e}")

    async def call_api(
        self,
        func: Callable[[MusicBrainzHost], Awaitable[HostResponse]],
        *,
        timeout: float | None = None,
        ttl: int | None = None,
        cache_key: str | None = None,
    ) -> dict[str, Any]:
        """Run ``func`` against the next host, failing over until one succeeds.

        Args:
            func: Coroutine function performing the request on the given host.
            timeout: Per-attempt timeout; defaults to the host's request_timeout, then 30s.
            ttl: Cache TTL for the result; defaults to the host's ttl, then the cache default.
            cache_key: When set, a cached payload is returned without any request and a
                fresh payload is stored under it (plus ``-query`` / ``-url`` debug keys).

        Returns:
            The JSON payload of the first successful host.

        Raises:
            MalformedResponseError: a host returned an unusable body.
            AllHostsFailedError: every host failed.

        """
        if cache_key:
            cached = await self._cache_get(cache_key)
            if cached is not None:
                self.console_logger.debug(f"Cache hit for {cache_key}")
                return cached

        tried: list[MusicBrainzHost] = []
        errors: dict[str, Exception] = {}
        last_error: Exception | None = None

        while True:
            try:
                host = self.selector.next(exclude=[*tried, *self.disabled])
            except LookupError:
                break
            tried.append(host)
            attempt_timeout = timeout or host.request_timeout or self.default_timeout

            try:
                response = await asyncio.wait_for(func(host), timeout=attempt_timeout)
            except MalformedResponseError as e:
                self.error_logger.error(f"[{host.name}] Malformed response, not retrying: {e}")
                raise
            except asyncio.TimeoutError as e:
                last_error = UpstreamError(
                    f"Timeout occurred after {attempt_timeout}s waiting for host", host=host.name
                )
                last_error.__cause__ = e
            except UpstreamError as e:
                last_error = e
                if e.show_stopper:
                    self._disable(host, e)
            except aiohttp.ClientError as e:
                last_error = UpstreamError(f"Request failed: {e}", host=host.name)
                last_error.__cause__ = e
            else:
                if cache_key:
                    entry_ttl = ttl if ttl is not None else host.ttl
                    await self._cache_set(cache_key, response.data, entry_ttl)
                    await self._cache_set(f"{cache_key}-query", response.query, entry_ttl)
                    await self._cache_set(f"{cache_key}-url", response.url, entry_ttl)
                return response.data

            errors[host.base_url] = last_error
            remaining = len([h for h in self.enabled_hosts if h not in tried])
            if remaining > 0:
                self.console_logger.warning(
                    f"{last_error} - trying next host ({remaining} untried)"
                )
            else:
                self.error_logger.error(f"{last_error} - no untried hosts remain")

        raise AllHostsFailedError(errors) from last_error
