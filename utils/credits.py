#!/usr/bin/env python3

"""Artist/Title Credit Parsing Module.

Splits artist and track strings that carry more than one credit, e.g.::

    "Bowling For Soup & Punk Rock Factory"
    "Endless Possibility (feat. Wheatus)"
    "Criminal Mind Ft Akon (Remix Braquer vos têtes)"
    "Wasted Energy (feat. Kaash Paige & Diamond Platnumz) - Remix"

The result is a ``PlayCredits`` with the primary credit, the primary plus any
suffix that followed the secondary credits (``primary_composite``), the list of
secondary credits and the suffix itself. The ``native`` artist fallback of the
resolver uses these to build a cleaned play.
"""

from __future__ import annotations

import re

from dataclasses import dataclass

DELIMITERS = [",", "&", "/", "\\"]

# Joiner wrapped in brackets: "(feat. A & B) - Remix"
SECONDARY_CAPTURED_REGEX = re.compile(
    r"[(\[]\s*(?P<joiner>ft\.?\W|feat\.?\W|featuring|vs\.?\W|with\W)\s*(?P<credits>.*)[)\]](?P<suffix>.*)",
    re.IGNORECASE,
)
# Bare joiner: "feat. A & B - Remix" or "Ft Akon, Paige (Remix)"
SECONDARY_FREE_REGEX = re.compile(
    r"^\s*(?P<joiner>ft\.?\W|feat\.?\W|featuring|vs\.?\W)\s*"
    r"(?P<credits>(?:.+?(?= - |\s*[(\[]))|(?:.*))(?P<suffix>.*)",
    re.IGNORECASE,
)
# Primary section followed by a required joiner, optionally opened by a bracket
PRIMARY_SECONDARY_SECTIONS_REGEX = re.compile(
    r"^(?P<primary>.+?)(?P<secondary>(?:[(\[]?(?:\Wft\.?|\Wfeat\.?|\Wfeaturing|\Wvs\.)|[(\[]with\W).*)",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class PlayCredits:
    primary: str
    primary_composite: str
    secondary: tuple[str, ...] = ()
    suffix: str | None = None


def parse_string_list(text: str, delimiters: list[str] | None = None) -> list[str]:
    """Split ``text`` on every delimiter, trimming each part and dropping empty ones."""
    delims = DELIMITERS if delimiters is None else delimiters
    parts = [text]
    for delim in delims:
        parts = [piece for part in parts for piece in part.split(delim)]
    return [p.strip() for p in parts if p.strip()]


def find_first_delimiter(text: str, delimiters: list[str] | None = None) -> str | None:
    """Return the delimiter that occurs earliest in ``text``, if any."""
    found = [
        (text.index(d), d) for d in (DELIMITERS if delimiters is None else delimiters) if d in text
    ]
    if not found:
        return None
    return min(found)[1]


def parse_credits(text: str, delimiters: list[str] | None = None) -> PlayCredits | None:
    """Parse ``Primary <joiner> Secondary`` strings. Returns None when no joiner is present."""
    if not text or not text.strip():
        return None
    sections = PRIMARY_SECONDARY_SECTIONS_REGEX.match(text)
    if sections is None:
        return None

    primary = sections.group("primary").strip()
    secondary_section = sections.group("secondary")
    for strategy in (SECONDARY_CAPTURED_REGEX, SECONDARY_FREE_REGEX):
        match = strategy.search(secondary_section)
        if match is None:
            continue
        secondary = parse_string_list(match.group("credits"), delimiters)
        suffix = match.group("suffix") or None
        composite = f"{primary}{suffix}" if suffix else primary
        return PlayCredits(
            primary=primary,
            primary_composite=composite.strip(),
            secondary=tuple(secondary),
            suffix=suffix,
        )
    return None


def parse_artist_credits(text: str, delimiters: list[str] | None = None) -> PlayCredits | None:
    """Parse an artist string into primary and secondary artists.

    Handles both joiner clauses ("A feat. B") and plain delimiter lists ("A & B, C").
    """
    if not text or not text.strip():
        return None
    with_joiner = parse_credits(text, delimiters)
    if with_joiner is not None:
        # joiner parsing leaves delimiter-joined primaries together
        primaries = parse_string_list(with_joiner.primary, delimiters)
        if len(primaries) > 1:
            return PlayCredits(
                primary=primaries[0],
                primary_composite=primaries[0],
                secondary=tuple(primaries[1:]) + with_joiner.secondary,
            )
        return with_joiner

    artists = parse_string_list(text, delimiters)
    if not artists:
        return None
    return PlayCredits(
        primary=artists[0],
        primary_composite=artists[0],
        secondary=tuple(artists[1:]),
    )


def parse_track_credits(text: str, delimiters: list[str] | None = None) -> PlayCredits | None:
    return parse_credits(text, delimiters)
