#!/usr/bin/env python3

"""MusicBrainz Recording Search Client Module.

Thin client over the host pool for the ``recording`` search entity:
builds the Lucene query for a play, derives the cache key from the play's
content and search options, runs the request through ``HostPool.call_api``
and parses the payload into ``CandidateRecording`` values.
"""

import logging

from typing import Any

from services.host_pool import RESPONSE_SNIPPET_LENGTH, HostPool, HostResponse, MusicBrainzHost
from utils.errors import MalformedResponseError
from utils.metadata import play_content_hash
from utils.models import CandidateRecording, Play, SearchOptions
from utils.query_builder import build_query

RECORDING_ENTITY = "recording"
CACHE_KEY_PREFIX = "mb-recSearch"
DEFAULT_SEARCH_LIMIT = 25


def recording_cache_key(play: Play, options: SearchOptions) -> str:
    return f"{CACHE_KEY_PREFIX}-{play_content_hash(play, options)}"


class MusicBrainzApiClient:
    """Searches recordings for a play across the host pool."""

    def __init__(
        self,
        config: dict[str, Any],
        console_logger: logging.Logger,
        error_logger: logging.Logger,
        host_pool: HostPool,
        search_limit: int | None = None,
    ):
        self.config = config
        self.console_logger = console_logger
        self.error_logger = error_logger
        self.host_pool = host_pool
        mb_config = config.get("musicbrainz", {}) or {}
        self.search_limit: int = search_limit or mb_config.get("search_limit") or DEFAULT_SEARCH_LIMIT

    async def search_recordings(
        self,
        play: Play,
        options: SearchOptions | None = None,
    ) -> list[CandidateRecording]:
        """Search for recordings matching ``play``.

        Returns an empty list without any request when the play yields an empty query.

        Raises:
            MalformedResponseError: the payload has no ``recordings`` list.
            AllHostsFailedError: no host could answer.

        """
        opts = options or SearchOptions()
        query = build_query(play, opts)
        if not query:
            self.console_logger.debug(f"[musicbrainz] Nothing to search for {play.describe()}")
            return []

        cache_key = recording_cache_key(play, opts)
        session = await self.host_pool.get_session()

        async def do_search(host: MusicBrainzHost) -> HostResponse:
            response = await host.search(session, RECORDING_ENTITY, query, self.search_limit)
            # checked before call_api caches the payload
            if not isinstance(response.data.get("recordings"), list):
                raise MalformedResponseError(
                    "Search response has no 'recordings' list",
                    host=host.name,
                    response_body=str(response.data)[:RESPONSE_SNIPPET_LENGTH],
                )
            return response

        self.console_logger.debug(f"[musicbrainz] Searching: {query}")
        data = await self.host_pool.call_api(do_search, ttl=opts.ttl, cache_key=cache_key)

        recordings = data.get("recordings") or []
        candidates = [CandidateRecording.from_json(r) for r in recordings if isinstance(r, dict)]
        self.console_logger.debug(f"[musicbrainz] {len(candidates)} recordings for: {query}")
        return candidates
