"""Unit tests for the score gate, per-axis release filters and priority ranking."""

from __future__ import annotations

import pytest

from builders import make_recording, make_release
from services.release_filter import (
    apply_score_gate,
    combined_priority_score,
    filter_releases,
    rank_recordings,
    rank_releases,
    release_group_primary_type,
    release_group_secondary_types,
    release_priority_score,
    release_status,
    select_best,
)
from utils.errors import NoMatchError
from utils.models import CandidateRecording, Release
from utils.stage_config import parse_stage_config


def _recording(**kwargs) -> CandidateRecording:
    return CandidateRecording.from_json(make_recording(**kwargs))


def _release_ids(recording: CandidateRecording) -> list[str | None]:
    return [r.id for r in recording.releases]


# ---------------------------------------------------------------------------
# Score gate
# ---------------------------------------------------------------------------

def test_score_below_threshold_is_never_selected() -> None:
    with pytest.raises(NoMatchError) as exc_info:
        apply_score_gate([_recording(score=89)], 90)
    assert exc_info.value.best_score == 89


def test_score_at_threshold_is_eligible() -> None:
    passing = apply_score_gate([_recording(rec_id="a", score=90), _recording(rec_id="b", score=89)], 90)
    assert [r.id for r in passing] == ["a"]


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------

def test_status_allow_keeps_matching_release_and_recording() -> None:
    recording = _recording(
        releases=[make_release("official", status="Official"), make_release("bootleg", status="Bootleg")]
    )
    result = filter_releases([recording], release_status, allow=["official"])
    assert len(result) == 1
    assert _release_ids(result[0]) == ["official"]
    # input untouched
    assert _release_ids(recording) == ["official", "bootleg"]


def test_deny_drops_matching_releases() -> None:
    recording = _recording(
        releases=[make_release("official", status="Official"), make_release("bootleg", status="Bootleg")]
    )
    result = filter_releases([recording], release_status, deny=["bootleg"])
    assert _release_ids(result[0]) == ["official"]


def test_allow_list_takes_precedence_over_deny_list() -> None:
    recording = _recording(releases=[make_release("a", status="Official")])
    result = filter_releases([recording], release_status, allow=["official"], deny=["official"])
    assert _release_ids(result[0]) == ["a"]


def test_recording_with_no_releases_retained_when_empty_allowed() -> None:
    recording = _recording(releases=[])
    kept = filter_releases([recording], release_status, allow=["official"], allow_empty=True)
    assert kept == [recording]
    assert kept[0].releases == ()


def test_recording_with_no_releases_dropped_by_default() -> None:
    recording = _recording(releases=[])
    assert filter_releases([recording], release_status, allow=["official"]) == []


def test_recording_emptied_by_filter_is_dropped_even_when_empty_allowed() -> None:
    recording = _recording(releases=[make_release("bootleg", status="Bootleg")])
    assert filter_releases([recording], release_status, allow=["official"], allow_empty=True) == []


def test_secondary_type_matching_uses_any_value() -> None:
    recording = _recording(
        releases=[
            make_release("live-comp", secondary_types=["Compilation", "Live"]),
            make_release("studio"),
        ]
    )
    result = filter_releases([recording], release_group_secondary_types, deny=["compilation"])
    assert _release_ids(result[0]) == ["studio"]


def test_primary_type_deny_only_filter_applies() -> None:
    recording = _recording(
        releases=[make_release("single", primary_type="Single"), make_release("album", primary_type="Album")]
    )
    result = filter_releases([recording], release_group_primary_type, deny=["single"])
    assert _release_ids(result[0]) == ["album"]


def test_axis_without_lists_is_noop() -> None:
    recording = _recording(releases=[make_release("a", status=None)])
    assert filter_releases([recording], release_status) == [recording]


# ---------------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------------

def test_primary_type_priority_reorders_releases() -> None:
    recording = _recording(
        releases=[make_release("single", primary_type="Single"), make_release("album", primary_type="Album")]
    )
    ranked = rank_releases([recording], release_group_primary_type, ["album", "single"])
    assert _release_ids(ranked[0]) == ["album", "single"]


def test_ranking_is_stable_and_keeps_recording_order() -> None:
    first = _recording(rec_id="r1", releases=[make_release("x", primary_type="EP"), make_release("y", primary_type="EP")])
    second = _recording(rec_id="r2", releases=[make_release("z", primary_type="Album")])
    ranked = rank_releases([first, second], release_group_primary_type, ["album"])
    assert [r.id for r in ranked] == ["r1", "r2"]
    assert _release_ids(ranked[0]) == ["x", "y"]


def test_secondary_type_priority_sums_over_values() -> None:
    release = Release.from_json(make_release(secondary_types=["Live", "Compilation"]))
    assert release_priority_score(release, release_group_secondary_types, ["compilation", "live"]) == 3
    assert release_priority_score(release, release_group_secondary_types, ["remix"]) == 0


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------

def test_select_best_prefers_highest_score_first_on_ties() -> None:
    stage = parse_stage_config({"score": 80})
    recordings = [_recording(rec_id="a", score=95), _recording(rec_id="b", score=99), _recording(rec_id="c", score=99)]
    recording, release = select_best(recordings, stage)
    assert recording.id == "b"
    assert release is not None and release.id == "rel-1"


def test_select_best_returns_best_ranked_release() -> None:
    stage = parse_stage_config(
        {"releaseStatusDeny": ["bootleg"], "releaseGroupPrimaryTypePriority": ["album", "single"]}
    )
    recordings = [
        _recording(
            releases=[
                make_release("bootleg-album", status="Bootleg", primary_type="Album"),
                make_release("single", primary_type="Single"),
                make_release("album", primary_type="Album"),
            ]
        )
    ]
    recording, release = select_best(recordings, stage)
    assert _release_ids(recording) == ["album", "single"]
    assert release is not None and release.id == "album"


def test_release_matching_more_axes_ranks_first() -> None:
    stage = parse_stage_config(
        {"releaseStatusPriority": ["official"], "releaseCountryPriority": ["GB"]}
    )
    recordings = [
        _recording(
            releases=[
                make_release("promo-gb", status="Promotion", country="GB"),
                make_release("official-us", status="Official", country="US"),
                make_release("official-gb", status="Official", country="GB"),
            ]
        )
    ]
    recording, release = select_best(recordings, stage)
    assert release is not None and release.id == "official-gb"
    # promo-gb and official-us tie on one matching axis each, so input order holds
    assert _release_ids(recording) == ["official-gb", "promo-gb", "official-us"]


def test_priority_scores_sum_across_axes() -> None:
    stage = parse_stage_config(
        {
            "releaseStatusPriority": ["official"],
            "releaseGroupPrimaryTypePriority": ["album"],
            "releaseCountryPriority": ["GB"],
        }
    )
    official_ep = make_release("x-official-ep-us", status="Official", primary_type="EP", country="US")
    promo_album = make_release("y-promo-album-gb", status="Promotion", primary_type="Album", country="GB")
    assert combined_priority_score(Release.from_json(official_ep), stage) == 1
    assert combined_priority_score(Release.from_json(promo_album), stage) == 2

    # status alone would favour the official EP; the summed score favours the album
    _, release = select_best([_recording(releases=[official_ep, promo_album])], stage)
    assert release is not None and release.id == "y-promo-album-gb"


def test_later_axis_priority_weights_count_fully() -> None:
    stage = parse_stage_config(
        {"releaseStatusPriority": ["official"], "releaseCountryPriority": ["JP", "GB", "US"]}
    )
    recording = _recording(
        releases=[
            make_release("official-us", status="Official", country="US"),
            make_release("promo-jp", status="Promotion", country="JP"),
        ]
    )
    [ranked] = rank_recordings([recording], stage)
    # official-us: 1 + 1, promo-jp: 0 + 3
    assert _release_ids(ranked) == ["promo-jp", "official-us"]


def test_select_best_raises_when_filtered_to_empty() -> None:
    stage = parse_stage_config({"releaseCountryAllow": ["JP"]})
    with pytest.raises(NoMatchError, match="filtered to empty"):
        select_best([_recording()], stage)


def test_select_best_allows_recording_without_release() -> None:
    stage = parse_stage_config({"releaseStatusAllow": ["official"], "releaseAllowEmpty": True})
    recording, release = select_best([_recording(releases=[])], stage)
    assert recording.releases == ()
    assert release is None
