#!/usr/bin/env python3

"""Metadata Helpers Module.

Play-level helpers used by the resolver and the search client.

Functions:
    - missing_fields: which desired MusicBrainz identifiers a play lacks.
    - play_content_hash: stable hash of a play's content plus search options (cache keys).
    - credit_names / credit_ids: flatten an artist-credit list.
    - recording_to_play: map a selected recording/release pair into a play.
"""

import hashlib
import json

from typing import Any

from utils.models import ArtistCredit, BrainzMeta, CandidateRecording, Play, Release, SearchOptions

VARIOUS_ARTISTS = "Various Artists"


def missing_fields(play: Play) -> list[str]:
    """Return the metadata fields of ``play`` that have no MusicBrainz identifier (or value).

    :param play: The play to inspect.
    :return: Subset of ``["title", "artists", "album", "duration"]``, in that order.
    """
    missing = []
    if not play.meta.track:
        missing.append("title")
    if not play.meta.artist:
        missing.append("artists")
    if not play.meta.album:
        missing.append("album")
    if play.duration is None:
        missing.append("duration")
    return missing


def play_content_hash(play: Play, options: SearchOptions | None = None) -> str:
    """Generate a SHA256 hash of the play content and search options.

    Only content fields are included so two observations of the same track from
    different sources share a cache entry.
    """
    content: dict[str, Any] = {
        "track": play.track,
        "artists": list(play.artists),
        "album": play.album,
        "albumArtists": list(play.album_artists),
        "duration": play.duration,
        "isrc": play.isrc,
    }
    if options is not None:
        content["options"] = options.cache_fields()
    serialized = json.dumps(content, sort_keys=True, ensure_ascii=False)
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


def credit_names(credits: tuple[ArtistCredit, ...]) -> list[str]:
    return [c.name for c in credits if c.name]


def credit_ids(credits: tuple[ArtistCredit, ...]) -> list[str]:
    return [c.artist_id for c in credits if c.artist_id]


def recording_to_play(
    recording: CandidateRecording,
    release: Release | None = None,
    ignore_va: bool = True,
) -> Play:
    """Translate a selected recording and release into the canonical play shape.

    Album artists are only set when the release is credited to a different set of
    artists than the recording. A lone "Various Artists" credit is dropped when
    ``ignore_va`` is set.

    :param recording: The selected candidate recording.
    :param release: The best-ranked release of that recording, if any.
    :param ignore_va: Clear album artists that are exactly ``["Various Artists"]``.
    :return: A new Play.
    """
    artist_ids = credit_ids(recording.artist_credit)
    album_artists: list[str] = []
    album_artist_ids: list[str] = []

    if release is not None and release.artist_credit:
        release_ids = credit_ids(release.artist_credit)
        if set(release_ids) != set(artist_ids):
            album_artists = credit_names(release.artist_credit)
            album_artist_ids = release_ids
        if ignore_va and album_artists == [VARIOUS_ARTISTS]:
            album_artists = []
            album_artist_ids = []

    release_group = release.release_group if release is not None else None
    return Play(
        track=recording.title,
        artists=tuple(credit_names(recording.artist_credit)),
        album=release.title if release is not None else None,
        album_artists=tuple(album_artists),
        duration=recording.length / 1000 if recording.length is not None else None,
        isrc=recording.isrcs[0] if recording.isrcs else None,
        meta=BrainzMeta(
            track=recording.id or None,
            artist=tuple(artist_ids),
            album_artist=tuple(album_artist_ids),
            album=release.id if release is not None else None,
            release_group=release_group.id if release_group is not None else None,
        ),
    )
