"""Unit tests for artist/title credit parsing used by the native artist fallback."""

from __future__ import annotations

from utils.credits import (
    find_first_delimiter,
    parse_artist_credits,
    parse_string_list,
    parse_track_credits,
)


def test_parse_string_list_splits_on_every_delimiter() -> None:
    assert parse_string_list("A & B, C/D") == ["A", "B", "C", "D"]
    assert parse_string_list("  ") == []


def test_find_first_delimiter_picks_earliest_position() -> None:
    assert find_first_delimiter("A & B, C") == "&"
    assert find_first_delimiter("A, B & C") == ","
    assert find_first_delimiter("Solo Artist") is None


def test_artist_with_feat_joiner() -> None:
    credits = parse_artist_credits("Artist feat. Guest")
    assert credits is not None
    assert credits.primary == "Artist"
    assert credits.secondary == ("Guest",)


def test_artist_delimited_list() -> None:
    credits = parse_artist_credits("A & B")
    assert credits is not None
    assert credits.primary == "A"
    assert credits.secondary == ("B",)


def test_artist_without_credits_is_primary_only() -> None:
    credits = parse_artist_credits("Solo Artist")
    assert credits is not None
    assert credits.primary == "Solo Artist"
    assert credits.secondary == ()


def test_track_with_bracketed_feat_and_suffix() -> None:
    credits = parse_track_credits("Song (feat. Guest) - Remix")
    assert credits is not None
    assert credits.primary == "Song"
    assert credits.secondary == ("Guest",)
    assert credits.primary_composite == "Song - Remix"


def test_track_with_bracketed_with() -> None:
    credits = parse_track_credits("Song (with Guest)")
    assert credits is not None
    assert credits.primary_composite == "Song"
    assert credits.secondary == ("Guest",)


def test_bare_with_in_title_is_not_a_credit() -> None:
    assert parse_track_credits("Stay with Me") is None
    assert parse_track_credits("") is None
