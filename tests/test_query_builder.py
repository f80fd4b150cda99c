"""Unit tests for Lucene query rendering."""

from __future__ import annotations

import pytest

from utils.models import Play, SearchOptions
from utils.query_builder import build_query, clean_term, escape_lucene, remove_punctuation


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("AC/DC", r"AC\/DC"),
        ('Say "Hi"', r"Say \"Hi\""),
        ("Rock && Roll", r"Rock \&& Roll"),
        ("Yes || No", r"Yes \|| No"),
        ("What? (Live) [Demo]", r"What\? \(Live\) \[Demo\]"),
        ("Time: 1+1=2", r"Time\: 1\+1=2"),
        ("Plain Title", "Plain Title"),
    ],
)
def test_escape_lucene(raw: str, expected: str) -> None:
    assert escape_lucene(raw) == expected


def test_single_ampersand_is_not_escaped() -> None:
    assert escape_lucene("Simon & Garfunkel") == "Simon & Garfunkel"


def test_remove_punctuation_strips_word_adjacent_marks() -> None:
    assert remove_punctuation("Don't Stop (Live)") == "Dont Stop Live"
    assert remove_punctuation("Simon & Garfunkel") == "Simon & Garfunkel"


def test_removal_runs_before_escaping() -> None:
    opts = SearchOptions(escape_characters=True, remove_characters=True)
    assert clean_term("AC/DC", opts) == "ACDC"


def test_structured_query_with_single_artist() -> None:
    play = Play(track="Song", artists=("Artist",), album="Album")
    assert build_query(play) == 'recording:"Song" AND artist:"Artist" AND release:"Album"'


def test_multiple_artists_render_all_or_any_clause() -> None:
    play = Play(track="Song", artists=("A", "B"))
    assert build_query(play) == (
        'recording:"Song" AND ((artist:"A" AND artist:"B") OR (artist:"A" OR artist:"B"))'
    )


def test_only_requested_fields_are_used() -> None:
    play = Play(track="Song", artists=("Artist",), album="Album", isrc="USRC17607839")
    assert build_query(play, SearchOptions(using=("title", "album"))) == 'recording:"Song" AND release:"Album"'
    assert build_query(play, SearchOptions(using=("isrc",))) == "isrc:USRC17607839"


def test_isrc_is_not_used_by_default() -> None:
    play = Play(track="Song", isrc="USRC17607839")
    assert build_query(play) == 'recording:"Song"'


def test_freetext_query_is_unquoted_and_unscoped() -> None:
    play = Play(track="Song", artists=("A", "B"), album="Album")
    assert build_query(play, SearchOptions(free_text=True)) == "Song A B Album"


def test_escaping_applies_inside_quoted_terms() -> None:
    play = Play(track='The "Best" Song', artists=("AC/DC",))
    assert build_query(play) == r'recording:"The \"Best\" Song" AND artist:"AC\/DC"'


def test_empty_play_builds_empty_query() -> None:
    assert build_query(Play()) == ""
    assert build_query(Play(album="Album"), SearchOptions(using=("title",))) == ""
