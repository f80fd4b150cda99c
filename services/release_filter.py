#!/usr/bin/env python3

"""Candidate Filter & Ranker Module.

Narrows scored recording candidates down to one recording/release pair.

Steps, in order:
    1. Score gate: recordings below the stage's score threshold are dropped.
    2. Release filtering, one axis at a time (status, primary type, secondary
       type, country). An allow list keeps only matching releases, otherwise a
       deny list drops matching ones. A recording left without releases is
       dropped unless it had none to begin with and empty releases are allowed.
    3. Release ranking within each recording by the sum of its priority
       scores over every axis with a priority list.
    4. The highest-scoring recording wins, together with its first release.

Every step returns new values; inputs are never modified.
"""

import logging

from collections.abc import Callable, Iterable, Sequence
from dataclasses import replace

from utils.errors import NoMatchError
from utils.models import CandidateRecording, Release
from utils.stage_config import StageConfig

ReleaseAccessor = Callable[[Release], tuple[str, ...]]


def release_status(release: Release) -> tuple[str, ...]:
    return (release.status,) if release.status else ()


def release_group_primary_type(release: Release) -> tuple[str, ...]:
    rg = release.release_group
    return (rg.primary_type,) if rg is not None and rg.primary_type else ()


def release_group_secondary_types(release: Release) -> tuple[str, ...]:
    rg = release.release_group
    return rg.secondary_types if rg is not None else ()


def release_country(release: Release) -> tuple[str, ...]:
    return (release.country,) if release.country else ()


AXIS_ACCESSORS: dict[str, ReleaseAccessor] = {
    "release_status": release_status,
    "release_group_primary_type": release_group_primary_type,
    "release_group_secondary_type": release_group_secondary_types,
    "release_country": release_country,
}


def apply_score_gate(
    recordings: Sequence[CandidateRecording], threshold: float
) -> list[CandidateRecording]:
    """Keep recordings scoring at least ``threshold``.

    Raises:
        NoMatchError: when nothing passes; carries the best score seen.

    """
    passing = [r for r in recordings if r.score >= threshold]
    if not passing:
        best = max((r.score for r in recordings), default=None)
        raise NoMatchError(
            f"No recordings scored >= {threshold} (best score: {best if best is not None else 'n/a'})",
            best_score=best,
        )
    return passing


def filter_releases(
    recordings: Iterable[CandidateRecording],
    accessor: ReleaseAccessor,
    allow: Iterable[str] = (),
    deny: Iterable[str] = (),
    allow_empty: bool = False,
) -> list[CandidateRecording]:
    """Filter the releases of each recording on one axis.

    :param accessor: Returns the axis values of a release (several for secondary types).
    :param allow: When non-empty, only releases sharing a value with it are kept.
    :param deny: Used only without an allow list; releases sharing a value are dropped.
    :param allow_empty: Keep recordings that had no releases at all.
    """
    allow_set = set(allow)
    deny_set = set(deny)
    recordings = list(recordings)
    if not allow_set and not deny_set:
        return recordings

    kept = []
    for recording in recordings:
        if allow_set:
            releases = tuple(r for r in recording.releases if allow_set.intersection(accessor(r)))
        else:
            releases = tuple(r for r in recording.releases if not deny_set.intersection(accessor(r)))

        if not releases and not (allow_empty and not recording.releases):
            continue
        kept.append(recording if releases == recording.releases else replace(recording, releases=releases))
    return kept


def release_priority_score(release: Release, accessor: ReleaseAccessor, priority: Sequence[str]) -> int:
    """Earlier entries in ``priority`` weigh more; values not listed add nothing."""
    size = len(priority)
    return sum(size - priority.index(value) for value in accessor(release) if value in priority)


def rank_releases(
    recordings: Iterable[CandidateRecording],
    accessor: ReleaseAccessor,
    priority: Sequence[str],
) -> list[CandidateRecording]:
    """Stable-sort the releases of every recording by priority score, best first."""
    recordings = list(recordings)
    if not priority:
        return recordings
    ranked = []
    for recording in recordings:
        releases = tuple(
            sorted(recording.releases, key=lambda r: release_priority_score(r, accessor, priority), reverse=True)
        )
        ranked.append(recording if releases == recording.releases else replace(recording, releases=releases))
    return ranked


def filter_recordings(
    recordings: Iterable[CandidateRecording],
    stage: StageConfig,
    logger: logging.Logger | None = None,
) -> list[CandidateRecording]:
    """Apply every configured axis filter in order."""
    filtered = list(recordings)
    for axis, accessor in AXIS_ACCESSORS.items():
        allow, deny, _ = stage.axis_lists(axis)
        before = len(filtered)
        filtered = filter_releases(filtered, accessor, allow, deny, stage.release_allow_empty)
        if logger is not None and (allow or deny):
            logger.debug(f"[musicbrainz] {axis} filter kept {len(filtered)}/{before} recordings")
    return filtered


def combined_priority_score(release: Release, stage: StageConfig) -> int:
    """Sum of the release's priority score over every axis."""
    return sum(
        release_priority_score(release, accessor, stage.axis_lists(axis)[2])
        for axis, accessor in AXIS_ACCESSORS.items()
    )


def rank_recordings(recordings: Iterable[CandidateRecording], stage: StageConfig) -> list[CandidateRecording]:
    """Stable-sort the releases of every recording by their summed priority score, best first."""
    ranked = []
    for recording in recordings:
        releases = tuple(
            sorted(recording.releases, key=lambda r: combined_priority_score(r, stage), reverse=True)
        )
        ranked.append(recording if releases == recording.releases else replace(recording, releases=releases))
    return ranked


def select_best(
    recordings: Sequence[CandidateRecording],
    stage: StageConfig,
    logger: logging.Logger | None = None,
) -> tuple[CandidateRecording, Release | None]:
    """Run the score gate, filters and ranking and pick the winning recording.

    Returns:
        The highest-scoring surviving recording (first one on ties) and its
        best-ranked release, or ``None`` when it has no releases.

    Raises:
        NoMatchError: when the score gate or the filters leave nothing.

    """
    passing = apply_score_gate(recordings, stage.score)
    filtered = filter_recordings(passing, stage, logger)
    if not filtered:
        raise NoMatchError(
            f"{len(passing)} recordings scored >= {stage.score} but release filters filtered to empty",
            best_score=max(r.score for r in passing),
        )
    if stage.has_priorities:
        filtered = rank_recordings(filtered, stage)

    best = max(filtered, key=lambda r: r.score)
    release = best.releases[0] if best.releases else None
    if logger is not None:
        logger.debug(
            f"[musicbrainz] Selected recording {best.id} (score {best.score}) "
            f"release {release.id if release is not None else '(none)'}"
        )
    return best, release
