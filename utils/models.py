#!/usr/bin/env python3

"""Data Model Module.

Value types shared by the resolution engine:

    - BrainzMeta / Play: the observed play and its known MusicBrainz identifiers.
    - SearchOptions: how a single search query is built.
    - ArtistCredit / ReleaseGroup / Release / CandidateRecording: parsed search results.
    - ResolutionResult: the selected candidate mapped back into a play.

Every type is a frozen dataclass holding tuples, so filtering and fallback
stages derive new values with ``dataclasses.replace`` instead of mutating.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

SEARCH_FIELDS = ("title", "artist", "album", "isrc")
DEFAULT_SEARCH_FIELDS = ("album", "artist", "title")


def _as_tuple(value: Any) -> tuple[str, ...]:
    """Coerce a string, list or None into a tuple of non-empty strings."""
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,) if value.strip() else ()
    return tuple(str(v) for v in value if v is not None and str(v).strip())


def _clean_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class BrainzMeta:
    """MusicBrainz identifiers attached to a play."""

    track: str | None = None
    artist: tuple[str, ...] = ()
    album_artist: tuple[str, ...] = ()
    album: str | None = None
    release_group: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> BrainzMeta:
        data = data or {}
        return cls(
            track=_clean_str(data.get("track")),
            artist=_as_tuple(data.get("artist")),
            album_artist=_as_tuple(data.get("albumArtist", data.get("album_artist"))),
            album=_clean_str(data.get("album")),
            release_group=_clean_str(data.get("releaseGroup", data.get("release_group"))),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "track": self.track,
            "artist": list(self.artist),
            "albumArtist": list(self.album_artist),
            "album": self.album,
            "releaseGroup": self.release_group,
        }


@dataclass(frozen=True)
class Play:
    """A single observed artist/track/album/duration event."""

    track: str | None = None
    artists: tuple[str, ...] = ()
    album: str | None = None
    album_artists: tuple[str, ...] = ()
    duration: float | None = None
    isrc: str | None = None
    meta: BrainzMeta = field(default_factory=BrainzMeta)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Play:
        """Build a play from the loose dictionary shape used by the transform pipeline.

        Accepts either the bare data mapping or one wrapped in ``{"data": ...}``.
        Brainz identifiers are read from ``meta.brainz``.
        """
        if "data" in data and isinstance(data["data"], dict):
            data = data["data"]
        meta = data.get("meta") or {}
        duration = data.get("duration")
        return cls(
            track=_clean_str(data.get("track")),
            artists=_as_tuple(data.get("artists")),
            album=_clean_str(data.get("album")),
            album_artists=_as_tuple(data.get("albumArtists", data.get("album_artists"))),
            duration=float(duration) if duration is not None else None,
            isrc=_clean_str(data.get("isrc")),
            meta=BrainzMeta.from_dict(meta.get("brainz") if isinstance(meta, dict) else None),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "track": self.track,
            "artists": list(self.artists),
            "album": self.album,
            "albumArtists": list(self.album_artists),
            "duration": self.duration,
            "isrc": self.isrc,
            "meta": {"brainz": self.meta.to_dict()},
        }

    def describe(self) -> str:
        """Short human readable form for log messages."""
        artists = " / ".join(self.artists) or "(no artist)"
        text = f"{artists} - {self.track or '(no title)'}"
        if self.album:
            text += f" [{self.album}]"
        return text


@dataclass(frozen=True)
class SearchOptions:
    """Controls how a play is turned into one query string."""

    using: tuple[str, ...] = DEFAULT_SEARCH_FIELDS
    escape_characters: bool = True
    remove_characters: bool = False
    free_text: bool = False
    ttl: int | None = None

    def cache_fields(self) -> dict[str, Any]:
        """Options that change the query and therefore belong in the cache key."""
        return {
            "using": sorted(self.using),
            "escape": self.escape_characters,
            "remove": self.remove_characters,
            "freetext": self.free_text,
        }


@dataclass(frozen=True)
class ArtistCredit:
    """One entry of an ordered artist-credit list."""

    name: str
    artist_id: str | None = None
    artist_name: str | None = None
    joinphrase: str = ""

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> ArtistCredit:
        artist = data.get("artist") or {}
        return cls(
            name=data.get("name") or artist.get("name") or "",
            artist_id=artist.get("id"),
            artist_name=artist.get("name"),
            joinphrase=data.get("joinphrase") or "",
        )


def _credits(data: Any) -> tuple[ArtistCredit, ...]:
    if not isinstance(data, list):
        return ()
    return tuple(ArtistCredit.from_json(c) for c in data if isinstance(c, dict))


@dataclass(frozen=True)
class ReleaseGroup:
    id: str | None = None
    primary_type: str | None = None
    secondary_types: tuple[str, ...] = ()

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> ReleaseGroup:
        primary = data.get("primary-type")
        return cls(
            id=data.get("id"),
            primary_type=primary.lower() if isinstance(primary, str) else None,
            secondary_types=tuple(
                s.lower() for s in data.get("secondary-types") or [] if isinstance(s, str)
            ),
        )


@dataclass(frozen=True)
class Release:
    """A published edition containing the recording."""

    id: str | None = None
    title: str | None = None
    status: str | None = None
    release_group: ReleaseGroup | None = None
    country: str | None = None
    artist_credit: tuple[ArtistCredit, ...] = ()

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Release:
        status = data.get("status")
        country = data.get("country")
        rg = data.get("release-group")
        return cls(
            id=data.get("id"),
            title=data.get("title"),
            status=status.lower() if isinstance(status, str) else None,
            release_group=ReleaseGroup.from_json(rg) if isinstance(rg, dict) else None,
            country=country.upper() if isinstance(country, str) else None,
            artist_credit=_credits(data.get("artist-credit")),
        )


@dataclass(frozen=True)
class CandidateRecording:
    """A scored recording returned by the search service."""

    id: str
    score: int
    title: str | None = None
    length: int | None = None
    artist_credit: tuple[ArtistCredit, ...] = ()
    releases: tuple[Release, ...] = ()
    isrcs: tuple[str, ...] = ()

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> CandidateRecording:
        try:
            score = int(data.get("score", 0))
        except (TypeError, ValueError):
            score = 0
        length = data.get("length")
        return cls(
            id=data.get("id") or "",
            score=score,
            title=data.get("title"),
            length=int(length) if isinstance(length, int | float) else None,
            artist_credit=_credits(data.get("artist-credit")),
            releases=tuple(
                Release.from_json(r) for r in data.get("releases") or [] if isinstance(r, dict)
            ),
            isrcs=_as_tuple(data.get("isrcs")),
        )


@dataclass(frozen=True)
class ResolutionResult:
    """The best candidate, mapped into a play, plus how it was found."""

    play: Play
    recording: CandidateRecording
    release: Release | None
    score: int
    stage: str
    freetext: bool = False
