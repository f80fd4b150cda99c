#!/usr/bin/env python3

"""Stage Configuration Module.

Builds the fully-resolved ``StageConfig`` used by one resolution call.

Stage options arrive as loose dictionaries (from the YAML ``defaults`` section
and from per-call overrides), in snake_case or in the camelCase names used by
the transform pipeline (``searchWhenMissing``, ``releaseStatusAllow``...).
``parse_stage_config`` normalizes the keys, validates values with Cerberus and
merges the overrides on top of the defaults. Any problem raises ``ConfigError``
before a single request is made.
"""

from __future__ import annotations

import re

from dataclasses import dataclass, fields, replace
from typing import Any

from cerberus import Validator

from utils.errors import ConfigError

MISSING_FIELD_TYPES = ("artists", "title", "album", "duration")
DEFAULT_MISSING_FIELDS = ("artists", "title", "album", "duration")

RELEASE_STATUSES = [
    "official",
    "promotion",
    "bootleg",
    "pseudo-release",
    "withdrawn",
    "expunged",
    "cancelled",
]
RELEASE_GROUP_PRIMARY_TYPES = ["album", "single", "ep", "broadcast", "other"]
RELEASE_GROUP_SECONDARY_TYPES = [
    "compilation",
    "soundtrack",
    "spokenword",
    "interview",
    "audiobook",
    "audio drama",
    "live",
    "remix",
    "dj-mix",
    "mixtape/street",
    "demo",
    "field recording",
]
ARTIST_FALLBACK_STRATEGIES = ["naive", "native"]

# axis name -> allowed values (None means free-form, validated by regex)
FILTER_AXES: dict[str, list[str] | None] = {
    "release_status": RELEASE_STATUSES,
    "release_group_primary_type": RELEASE_GROUP_PRIMARY_TYPES,
    "release_group_secondary_type": RELEASE_GROUP_SECONDARY_TYPES,
    "release_country": None,
}
FILTER_KINDS = ("allow", "deny", "priority")
COUNTRY_CODE_REGEX = "^[A-Z]{2}$"


def _list_rule(allowed: list[str] | None) -> dict[str, Any]:
    item: dict[str, Any] = {"type": "string"}
    if allowed is None:
        item["regex"] = COUNTRY_CODE_REGEX
    else:
        item["allowed"] = allowed
    return {"type": "list", "schema": item}


STAGE_SCHEMA: dict[str, Any] = {
    "search_when_missing": {
        "type": "list",
        "schema": {"type": "string", "allowed": list(MISSING_FIELD_TYPES)},
    },
    "force_search": {"type": "boolean"},
    "score": {"type": "number", "min": 0, "max": 100},
    "fallback_album_search": {"type": "boolean"},
    "fallback_artist_search": {
        "type": "string",
        "nullable": True,
        "allowed": ARTIST_FALLBACK_STRATEGIES,
    },
    "fallback_free_text": {"type": "boolean"},
    "ignore_va": {"type": "boolean"},
    "release_allow_empty": {"type": "boolean"},
    "ttl": {"type": "integer", "nullable": True, "min": 0},
    # Pipeline-owned keys passed through with the stage, ignored here
    "type": {"type": "string"},
    "name": {"type": "string"},
}
for _axis, _allowed in FILTER_AXES.items():
    for _kind in FILTER_KINDS:
        STAGE_SCHEMA[f"{_axis}_{_kind}"] = _list_rule(_allowed)


@dataclass(frozen=True)
class StageConfig:
    """Fully-resolved options for one resolution call."""

    search_when_missing: tuple[str, ...] = DEFAULT_MISSING_FIELDS
    force_search: bool = False
    score: float = 90
    fallback_album_search: bool = True
    fallback_artist_search: str | None = "naive"
    fallback_free_text: bool = False
    ignore_va: bool = True
    release_allow_empty: bool = False
    ttl: int | None = None

    release_status_allow: tuple[str, ...] = ()
    release_status_deny: tuple[str, ...] = ()
    release_status_priority: tuple[str, ...] = ()
    release_group_primary_type_allow: tuple[str, ...] = ()
    release_group_primary_type_deny: tuple[str, ...] = ()
    release_group_primary_type_priority: tuple[str, ...] = ()
    release_group_secondary_type_allow: tuple[str, ...] = ()
    release_group_secondary_type_deny: tuple[str, ...] = ()
    release_group_secondary_type_priority: tuple[str, ...] = ()
    release_country_allow: tuple[str, ...] = ()
    release_country_deny: tuple[str, ...] = ()
    release_country_priority: tuple[str, ...] = ()

    def axis_lists(self, axis: str) -> tuple[tuple[str, ...], tuple[str, ...], tuple[str, ...]]:
        """Return the (allow, deny, priority) lists configured for a filter axis."""
        return (
            getattr(self, f"{axis}_allow"),
            getattr(self, f"{axis}_deny"),
            getattr(self, f"{axis}_priority"),
        )

    @property
    def has_priorities(self) -> bool:
        return any(self.axis_lists(axis)[2] for axis in FILTER_AXES)

    def summary(self) -> str:
        return (
            f"Will search if missing: {', '.join(self.search_when_missing) or '(nothing)'}"
            f" | forceSearch: {self.force_search}"
            f" | Match if score is >= {self.score}"
            f" | Fallbacks: album={self.fallback_album_search},"
            f" artist={self.fallback_artist_search or 'off'}, freetext={self.fallback_free_text}"
        )


DEFAULT_STAGE_CONFIG = StageConfig()
_STAGE_FIELDS = {f.name for f in fields(StageConfig)}
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")
# camelCase names whose snake_case form cannot be derived mechanically
_KEY_ALIASES = {"ignoreVA": "ignore_va"}


def to_snake_case(key: str) -> str:
    """Convert a camelCase option name to snake_case (snake_case input is unchanged)."""
    if key in _KEY_ALIASES:
        return _KEY_ALIASES[key]
    return _CAMEL_BOUNDARY.sub(r"_\1", key).lower()


def as_missing_field(value: str) -> str:
    """Normalize a missing-field name, accepting the ``track`` and ``artist`` aliases."""
    clean = str(value).strip().lower()
    if clean in ("track", "title"):
        return "title"
    if clean in ("artist", "artists"):
        return "artists"
    if clean in ("album", "duration"):
        return clean
    raise ConfigError(
        f"searchWhenMissing values must be one of 'artists', 'title', 'album' or 'duration', given: {clean}"
    )


def _normalize(data: dict[str, Any]) -> dict[str, Any]:
    """Rename keys to snake_case and canonicalize enum casing before validation."""
    normalized: dict[str, Any] = {}
    for key, value in data.items():
        name = to_snake_case(str(key))
        if name == "search_when_missing" and value is not None:
            value = [as_missing_field(v) for v in _as_list(value, name)]
        elif name == "fallback_artist_search":
            if value is False:
                value = None
            elif isinstance(value, str):
                value = value.strip().lower()
        elif name.startswith("release_country_") and value is not None:
            value = [str(v).strip().upper() for v in _as_list(value, name)]
        elif name.startswith("release_") and name != "release_allow_empty" and value is not None:
            value = [str(v).strip().lower() for v in _as_list(value, name)]
        normalized[name] = value
    return normalized


def _as_list(value: Any, name: str) -> list[Any]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, list | tuple):
        return list(value)
    raise ConfigError(f"'{name}' must be a list of strings, given: {type(value).__name__}")


def _format_errors(errors: dict[str, Any]) -> str:
    return "; ".join(f"{field}: {err}" for field, err in sorted(errors.items()))


def parse_stage_config(
    data: dict[str, Any] | None = None,
    defaults: StageConfig | None = None,
) -> StageConfig:
    """Validate ``data`` and merge it over ``defaults`` into a new ``StageConfig``.

    Args:
        data: Stage options (snake_case or camelCase keys). ``None`` means no overrides.
        defaults: Already-resolved defaults. Falls back to ``DEFAULT_STAGE_CONFIG``.

    Returns:
        StageConfig: a frozen, fully-populated configuration.

    Raises:
        ConfigError: if ``data`` is not a mapping or holds invalid values.

    """
    base = defaults or DEFAULT_STAGE_CONFIG
    if data is None:
        return base
    if not isinstance(data, dict):
        raise ConfigError("Musicbrainz stage data should be a mapping or not defined.")

    normalized = _normalize(data)
    validator = Validator(STAGE_SCHEMA, allow_unknown=False)
    if not validator.validate(normalized):
        raise ConfigError(f"Invalid musicbrainz stage config: {_format_errors(validator.errors)}")

    overrides: dict[str, Any] = {}
    for key, value in validator.document.items():
        if key not in _STAGE_FIELDS:
            continue
        if value is None and key not in ("fallback_artist_search", "ttl"):
            continue
        overrides[key] = tuple(value) if isinstance(value, list) else value
    return replace(base, **overrides)
