#!/usr/bin/env python3

"""Query Builder Module.

Turns a play into a Lucene query string for the recording search endpoint.

Two forms are produced:
    - field-scoped (default): ``recording:"..." AND artist:"..." AND release:"..."``
    - freetext: title, artist tokens and album joined by spaces, no field prefixes

Special characters are escaped with a backslash (``escape_characters``) and/or
punctuation touching word characters is stripped (``remove_characters``).
"""

from __future__ import annotations

import re

from utils.models import Play, SearchOptions

# Two-character operators first so "&&" is escaped as one token
LUCENE_SPECIAL_REGEX = re.compile(r'(&&|\|\||[\\+\-!(){}\[\]^"~*?:/])')
PUNCTUATION_NEAR_WORD_REGEX = re.compile(r"(?<=\w)[^\w\s]+|[^\w\s]+(?=\w)")
MULTI_WHITESPACE_REGEX = re.compile(r"\s{2,}")


def escape_lucene(term: str) -> str:
    """Escape Lucene special characters with a leading backslash."""
    return LUCENE_SPECIAL_REGEX.sub(r"\\\1", term)


def remove_punctuation(term: str) -> str:
    """Strip punctuation that is attached to a word and collapse whitespace."""
    stripped = PUNCTUATION_NEAR_WORD_REGEX.sub("", term)
    return MULTI_WHITESPACE_REGEX.sub(" ", stripped).strip()


def clean_term(term: str, options: SearchOptions) -> str:
    result = term.strip()
    if options.remove_characters:
        result = remove_punctuation(result)
    if options.escape_characters:
        result = escape_lucene(result)
    return result


def _artist_clause(artists: list[str]) -> str:
    if len(artists) == 1:
        return f'artist:"{artists[0]}"'
    terms = [f'artist:"{a}"' for a in artists]
    every = " AND ".join(terms)
    any_of = " OR ".join(terms)
    # all credits in either order, or at least one of them
    return f"(({every}) OR ({any_of}))"


def build_query(play: Play, options: SearchOptions | None = None) -> str:
    """Build the query string for ``play``.

    Only fields listed in ``options.using`` and present on the play are used.
    Returns an empty string when nothing usable remains.
    """
    opts = options or SearchOptions()
    using = set(opts.using)

    title = clean_term(play.track, opts) if play.track and "title" in using else ""
    album = clean_term(play.album, opts) if play.album and "album" in using else ""
    artists = (
        [a for a in (clean_term(x, opts) for x in play.artists) if a] if "artist" in using else []
    )
    isrc = play.isrc.strip() if play.isrc and "isrc" in using else ""

    if opts.free_text:
        tokens = [t for t in [title, *artists, album] if t]
        return " ".join(tokens)

    clauses: list[str] = []
    if isrc:
        clauses.append(f"isrc:{escape_lucene(isrc)}")
    if title:
        clauses.append(f'recording:"{title}"')
    if artists:
        clauses.append(_artist_clause(artists))
    if album:
        clauses.append(f'release:"{album}"')
    return " AND ".join(clauses)
