#!/usr/bin/env python3

"""MusicBrainz Resolver Module.

Resolves a play against the recording search service and returns the play
rewritten from the best matching recording and release.

Flow of one resolution:
    1. Merge the per-call stage options over the configured defaults.
    2. Pre-check: skip (``SkipSignal``) unless a desired identifier is missing
       or the search is forced. Nothing touches the network on skip.
    3. Search cascade, strictly one stage after another, stopping at the first
       stage that returns any recording:
           isrc -> regular -> album -> artist -> freetext
    4. Score gate, release filters and priority ranking.
    5. Map the winning recording/release back into a play.

``resolve`` raises on every non-enriched outcome; ``enrich`` is the lenient
wrapper that hands back the original play instead.
"""

import logging

from collections.abc import Iterator
from dataclasses import dataclass, replace
from typing import Any

from services.musicbrainz_client import MusicBrainzApiClient
from services.release_filter import select_best
from utils.credits import find_first_delimiter, parse_artist_credits, parse_track_credits
from utils.errors import NoMatchError, SkipSignal, UpstreamError
from utils.metadata import missing_fields, recording_to_play
from utils.models import CandidateRecording, Play, Release, ResolutionResult, SearchOptions
from utils.stage_config import StageConfig, parse_stage_config

STAGE_ISRC = "isrc"
STAGE_REGULAR = "regular"
STAGE_ALBUM = "album"
STAGE_ARTIST = "artist"
STAGE_FREETEXT = "freetext"


@dataclass(frozen=True)
class SearchOutcome:
    """Recordings returned by the first productive cascade stage."""

    recordings: list[CandidateRecording]
    stage: str
    freetext: bool = False


class MusicBrainzResolver:
    """Runs the pre-check, search cascade, selection and mapping for one play at a time."""

    def __init__(
        self,
        config: dict[str, Any],
        console_logger: logging.Logger,
        error_logger: logging.Logger,
        api_client: MusicBrainzApiClient,
    ):
        self.config = config
        self.console_logger = console_logger
        self.error_logger = error_logger
        self.api_client = api_client
        mb_config = config.get("musicbrainz", {}) or {}
        self.defaults: StageConfig = parse_stage_config(mb_config.get("defaults"))

    def stage_config(self, stage_data: StageConfig | dict[str, Any] | None = None) -> StageConfig:
        """Resolve per-call options against the configured defaults."""
        if isinstance(stage_data, StageConfig):
            return stage_data
        return parse_stage_config(stage_data, self.defaults)

    @staticmethod
    def missing_fields(play: Play) -> list[str]:
        return missing_fields(play)

    def check_should_resolve(self, play: Play, stage: StageConfig) -> list[str]:
        """Return the missing fields that justify a search.

        Raises:
            SkipSignal: nothing in ``search_when_missing`` is missing and the search is not forced.

        """
        missing = self.missing_fields(play)
        wanted = [field for field in missing if field in stage.search_when_missing]
        if wanted:
            return wanted
        if stage.force_search:
            self.console_logger.debug(f"[musicbrainz] Nothing missing but forceSearch is set: {play.describe()}")
            return []
        missing_text = ", ".join(missing) if missing else "nothing"
        raise SkipSignal(
            f"Play is missing {missing_text}; "
            f"search only when missing {', '.join(stage.search_when_missing) or '(nothing)'}"
        )

    def _artist_fallback_play(self, play: Play, strategy: str) -> Play | None:
        """Derive a play with a cleaned-up single artist (and title for ``native``)."""
        artist = play.artists[0]
        if strategy == "naive":
            delimiter = find_first_delimiter(artist)
            if delimiter is None:
                return None
            first = artist.split(delimiter)[0].strip()
            return replace(play, artists=(first,)) if first else None

        artist_credits = parse_artist_credits(artist)
        track_credits = parse_track_credits(play.track) if play.track else None
        artists: list[str] = []
        if artist_credits is not None:
            artists = [artist_credits.primary, *artist_credits.secondary]
        else:
            artists = [artist]
        if track_credits is not None:
            artists.extend(track_credits.secondary)
        # dedupe, keeping credit order
        unique = tuple(dict.fromkeys(a for a in artists if a))
        track = track_credits.primary_composite if track_credits is not None else play.track
        return replace(play, artists=unique or play.artists, track=track)

    def _cascade(self, play: Play, stage: StageConfig) -> Iterator[tuple[str, Play, SearchOptions]]:
        ttl = stage.ttl
        if play.isrc:
            yield STAGE_ISRC, play, SearchOptions(using=("isrc",), ttl=ttl)
        yield STAGE_REGULAR, play, SearchOptions(ttl=ttl)
        if stage.fallback_album_search and play.album and play.artists:
            yield STAGE_ALBUM, play, SearchOptions(using=("title", "album"), ttl=ttl)
        if stage.fallback_artist_search and len(play.artists) == 1:
            cleaned = self._artist_fallback_play(play, stage.fallback_artist_search)
            if cleaned is not None and cleaned != play:
                yield STAGE_ARTIST, cleaned, SearchOptions(using=("title", "artist"), ttl=ttl)
            else:
                self.console_logger.debug(
                    f"[musicbrainz] {stage.fallback_artist_search} artist fallback found nothing to clean up"
                )
        if stage.fallback_free_text:
            yield STAGE_FREETEXT, play, SearchOptions(free_text=True, ttl=ttl)

    async def search(self, play: Play, stage: StageConfig) -> SearchOutcome:
        """Run the cascade until a stage returns recordings.

        Raises:
            NoMatchError: every stage came back empty.
            UpstreamError: a stage could not be searched on any host.

        """
        tried: list[str] = []
        for name, stage_play, options in self._cascade(play, stage):
            tried.append(name)
            recordings = await self.api_client.search_recordings(stage_play, options)
            if recordings:
                self.console_logger.debug(f"[musicbrainz] {name} search returned {len(recordings)} recordings")
                return SearchOutcome(recordings=recordings, stage=name, freetext=options.free_text)
            self.console_logger.debug(f"[musicbrainz] {name} search returned no recordings")
        raise NoMatchError(f"No matches returned from searches: {', '.join(tried)}")

    def select(
        self, recordings: list[CandidateRecording], stage: StageConfig
    ) -> tuple[CandidateRecording, Release | None]:
        return select_best(recordings, stage, self.console_logger)

    async def resolve(
        self,
        play: Play,
        stage_data: StageConfig | dict[str, Any] | None = None,
    ) -> ResolutionResult:
        """Resolve ``play`` to its best recording/release.

        Args:
            play: The play to resolve. Never modified.
            stage_data: Per-call options merged over the configured defaults.

        Returns:
            ResolutionResult: the mapped play plus how it was found.

        Raises:
            ConfigError: invalid stage options (before any request).
            SkipSignal: nothing to resolve.
            NoMatchError: no acceptable candidate.
            UpstreamError: the search hosts failed.

        """
        stage = self.stage_config(stage_data)
        self.check_should_resolve(play, stage)
        outcome = await self.search(play, stage)
        recording, release = self.select(outcome.recordings, stage)
        mapped = recording_to_play(recording, release, ignore_va=stage.ignore_va)
        self.console_logger.info(
            f"[musicbrainz] Matched {play.describe()} => {mapped.describe()} "
            f"(score {recording.score}, {outcome.stage} search{', freetext' if outcome.freetext else ''})"
        )
        return ResolutionResult(
            play=mapped,
            recording=recording,
            release=release,
            score=recording.score,
            stage=outcome.stage,
            freetext=outcome.freetext,
        )

    async def enrich(
        self,
        play: Play,
        stage_data: StageConfig | dict[str, Any] | None = None,
        *,
        fail_on_fetch: bool = False,
    ) -> Play:
        """Return the resolved play, or ``play`` itself when it is skipped or unmatched.

        Upstream failures are logged and also return ``play`` unless ``fail_on_fetch`` is set.
        """
        try:
            result = await self.resolve(play, stage_data)
        except SkipSignal as e:
            self.console_logger.debug(f"[musicbrainz] Skipping {play.describe()}: {e}")
            return play
        except NoMatchError as e:
            self.console_logger.info(f"[musicbrainz] No match for {play.describe()}: {e}")
            return play
        except UpstreamError as e:
            if fail_on_fetch:
                raise
            self.error_logger.error(f"[musicbrainz] Search failed for {play.describe()}: {e}")
            return play
        return result.play
