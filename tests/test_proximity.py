from datetime import timedelta

import pytest

from conftest import MINUTE, T0
from overhead.analytics.proximity import (
    ProximityPhase,
    StatusProjector,
    classify,
    group_by_aircraft,
    minutes_between,
    project_statuses,
    project_tracks,
    summarize_track,
)


def _phase_at(track, index):
    """Classify a track as it looked when observation ``index`` was the latest."""
    window = track[: index + 1]
    summary = summarize_track(window)
    return classify(summary, now=window[-1].captured_at)


def test_closest_point_then_passed_over(make_track):
    track = make_track("a1", [8, 6, 4, 6, 8])

    assert _phase_at(track, 2) == (ProximityPhase.AT_CLOSEST_POINT, None)
    assert _phase_at(track, 3) == (ProximityPhase.PASSED_OVER, 1)

    phase, minutes = _phase_at(track, 4)
    assert phase is ProximityPhase.PASSED_OVER
    assert minutes == 2


def test_reaching_new_minimum_beats_approaching(make_track):
    track = make_track("a1", [9, 7, 5])

    assert _phase_at(track, 1) == (ProximityPhase.AT_CLOSEST_POINT, None)
    assert _phase_at(track, 2) == (ProximityPhase.AT_CLOSEST_POINT, None)


def test_approaching_after_earlier_minimum(make_track):
    # Closest point was earlier in the window, now closing in again
    track = make_track("a1", [5, 9, 7])

    assert _phase_at(track, 2) == (ProximityPhase.APPROACHING, None)


def test_constant_distance_above_minimum_is_unknown(make_track):
    track = make_track("a1", [4, 6, 6])

    assert _phase_at(track, 2) == (ProximityPhase.UNKNOWN, None)


def test_single_observation_is_unknown(make_track):
    track = make_track("a1", [3])

    summary = summarize_track(track)
    assert summary.previous_distance is None
    assert classify(summary, now=T0) == (ProximityPhase.UNKNOWN, None)
    assert project_statuses(track, now=T0) == []


def test_minimum_tie_resolves_to_earliest(make_track):
    track = make_track("a1", [5, 3, 3, 4])

    summary = summarize_track(track)
    assert summary.min_distance == 3
    assert summary.min_distance_at == T0 + MINUTE

    # Minutes count from the first time the minimum was seen
    phase, minutes = classify(summary, now=T0 + 5 * MINUTE)
    assert phase is ProximityPhase.PASSED_OVER
    assert minutes == 4


def test_summary_fields(make_track):
    track = make_track("a1", [8, 6, 4, 6])

    summary = summarize_track(track)

    assert summary.aircraft_id == "a1"
    assert summary.latest is track[-1]
    assert summary.latest_distance == 6
    assert summary.previous_distance == 4
    assert summary.observation_count == 4


def test_summarize_empty_track_rejected():
    with pytest.raises(ValueError):
        summarize_track([])


def test_group_by_aircraft_orders_each_track(make_observation):
    observations = [
        make_observation("b2", 7, T0 + MINUTE),
        make_observation("a1", 5, T0 + 2 * MINUTE),
        make_observation("a1", 6, T0),
        make_observation("b2", 8, T0),
        make_observation("a1", None, T0 + 3 * MINUTE),
    ]

    groups = group_by_aircraft(observations)

    assert list(groups) == ["b2", "a1"]
    assert [o.captured_at for o in groups["a1"]] == [T0, T0 + 2 * MINUTE]
    assert [o.distance for o in groups["b2"]] == [8, 7]


@pytest.mark.parametrize(
    "elapsed_ms, expected",
    [
        (0, 0),
        (29_999, 0),
        (30_000, 1),
        (90_000, 2),
        (150_000, 3),
        (10 * MINUTE, 10),
    ],
)
def test_minutes_between_rounds_half_up(elapsed_ms, expected):
    assert minutes_between(T0 + elapsed_ms, T0) == expected


def test_ranking_order(make_track):
    now = T0 + 20 * MINUTE
    passed_long_ago = make_track("d4", [6, 2, 5], start=now - 11 * MINUTE)    # min at now-10
    approaching = make_track("a1", [4, 9, 7], start=now - 3 * MINUTE)       # latest now-1
    passed_recently = make_track("c3", [5, 1, 4], start=now - 4 * MINUTE)   # min at now-3
    closest = make_track("b2", [8, 4], start=now - MINUTE)                   # latest now

    observations = passed_long_ago + closest + passed_recently + approaching

    statuses = project_statuses(observations, now=now)

    assert [s.aircraft_id for s in statuses] == ["a1", "b2", "c3", "d4"]
    assert [s.status_label for s in statuses] == [
        "Approaching",
        "At Closest Point",
        "Passed Over 3 mins ago",
        "Passed Over 10 mins ago",
    ]


def test_ranking_within_one_snapshot_puts_approaching_first(make_track):
    # Both tracks share capture times, as aircraft from one snapshot do
    closest = make_track("a1", [8, 4])
    approaching = make_track("b2", [3, 9, 7], start=T0 - 3 * MINUTE, step=2 * MINUTE)

    statuses = project_statuses(closest + approaching, now=T0 + MINUTE)

    assert [s.phase for s in statuses] == [
        ProximityPhase.APPROACHING,
        ProximityPhase.AT_CLOSEST_POINT,
    ]


def test_ranking_earliest_latest_observation_first(make_track):
    stale = make_track("z9", [9, 8], start=T0)
    fresh = make_track("a1", [9, 8], start=T0 + MINUTE)

    statuses = project_statuses(fresh + stale, now=T0 + 2 * MINUTE)

    assert [s.aircraft_id for s in statuses] == ["z9", "a1"]


def test_unknown_tracks_are_dropped(make_track):
    observations = make_track("a1", [4, 6, 6]) + make_track("b2", [3]) + make_track("c3", [9, 7])

    statuses = project_statuses(observations, now=T0 + 3 * MINUTE)

    assert [s.aircraft_id for s in statuses] == ["c3"]


def test_projection_is_idempotent(make_track):
    observations = (
        make_track("a1", [8, 6, 4, 6, 8])
        + make_track("b2", [9, 7, 5])
        + make_track("c3", [5, 9, 7])
    )
    now = T0 + 5 * MINUTE

    first = project_statuses(observations, now=now)
    second = project_statuses(observations, now=now)

    assert first == second
    assert len(first) == 3


def test_flight_status_fields(make_track):
    track = make_track(
        "a1",
        [8.0, 4.123, 6.456],
        registration="G-EUPT",
        aircraft_type="A319",
        operator="British Airways",
    )

    [status] = project_statuses(track, now=T0 + 2 * MINUTE)

    assert status.flight_number == "FLA1"
    assert status.distance == 6.456
    # Passed-over rows report when the closest approach happened
    assert status.time == T0 + MINUTE

    payload = status.to_dict()
    assert payload["distance"] == 6.46
    assert payload["status"] == "Passed Over 1 mins ago"
    assert payload["registration"] == "G-EUPT"
    assert payload["aircraft_type"] == "A319"
    assert payload["operator"] == "British Airways"
    assert payload["time"] == "2024-06-03T11:07:40+00:00"


def test_project_tracks_newest_first_and_capped(make_track):
    observations = (
        make_track("a1", [5, 3], start=T0)
        + make_track("b2", [4], start=T0 + 5 * MINUTE)
        + make_track("c3", [2, 6], start=T0 + MINUTE)
    )

    tracks = project_tracks(observations, limit=2)

    assert [t.aircraft_id for t in tracks] == ["b2", "c3"]
    c3 = tracks[1]
    assert c3.latest_distance == 6
    assert c3.latest_timestamp == T0 + 2 * MINUTE
    assert c3.min_distance == 2
    assert c3.min_distance_at == T0 + MINUTE

    payload = c3.to_dict()
    assert payload["flight_number"] == "FLC3"
    assert payload["min_distance_timestamp"] == "2024-06-03T11:07:40+00:00"


def test_project_tracks_latest_position_is_under_ceiling(make_track):
    observations = (
        make_track("a1", [2.0, 9.0, 12.0], start=T0)
        + make_track("b2", [6.0, 4.0], start=T0 + MINUTE)
    )

    tracks = project_tracks(observations, limit=20, ceiling=5.0)

    # b2 was last under the ceiling after a1 was
    assert [t.aircraft_id for t in tracks] == ["b2", "a1"]
    a1 = tracks[1]
    assert a1.latest_distance == 2.0
    assert a1.latest_timestamp == T0
    assert a1.min_distance == 2.0
    assert a1.observation_count == 3


def test_project_tracks_min_distance_spans_whole_window(make_track):
    observations = make_track("a1", [4.0, 0.5, 4.5, 7.0], start=T0)

    [a1] = project_tracks(observations, limit=20, ceiling=5.0)

    assert a1.latest_distance == 4.5
    assert a1.latest_timestamp == T0 + 2 * MINUTE
    assert a1.min_distance == 0.5
    assert a1.min_distance_at == T0 + MINUTE


def test_project_tracks_skips_aircraft_never_under_ceiling(make_track):
    observations = make_track("a1", [3.0, 2.0]) + make_track("far", [8.0, 6.0])

    tracks = project_tracks(observations, limit=20, ceiling=5.0)

    assert [t.aircraft_id for t in tracks] == ["a1"]


def test_recent_tracks_reports_last_position_under_ceiling(store, make_track):
    store.append_batch(make_track("a1", [2.0, 9.0, 12.0], start=T0))
    projector = StatusProjector(store, tracks_lookback=timedelta(hours=12), tracks_radius_km=5.0)

    [a1] = projector.recent_tracks(now=T0 + 3 * MINUTE)

    assert a1.latest_distance == 2.0
    assert a1.latest_timestamp == T0


def test_projector_keeps_explicit_zero_settings(store, make_track):
    store.append_batch(make_track("a1", [3.0, 2.0], start=T0))
    projector = StatusProjector(store, lookback=timedelta(0), tracks_limit=0)

    assert projector.lookback == timedelta(0)
    assert projector.tracks_limit == 0
    assert projector.recent_tracks(now=T0 + MINUTE) == []
