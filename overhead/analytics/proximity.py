"""
Proximity analysis over the observation log.

Answers "what is overhead right now?" for a fixed observer. For every
aircraft seen recently near the observer, the observation window is
reduced to a TrackSummary (closest approach, latest position, previous
distance) and the summary is classified into a motion phase:

- AT_CLOSEST_POINT: the latest distance is the minimum over the window
- PASSED_OVER: moving away again after the minimum
- APPROACHING: closing in, minimum not yet reached
- UNKNOWN: not enough information; never surfaced

The reduction is done in-process rather than with SQL window functions,
so the tie-break and ordering rules live here where they can be tested:

1. Group observations by aircraft_id, each group in capture order
2. Fold each group into a TrackSummary
3. Classify and rank into FlightStatus records

Everything is recomputed per request. Given the same stored rows and the
same reference time, the output is identical.
"""

import logging
import math
from collections import OrderedDict
from dataclasses import dataclass, replace
from datetime import timedelta
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from overhead.config import config
from overhead.models import Observation, from_millis, now_millis
from overhead.store import ObservationStore

logger = logging.getLogger(__name__)

_MS_PER_MINUTE = 60_000


class ProximityPhase(str, Enum):
    """Motion phase relative to the observer."""
    APPROACHING = 'Approaching'
    AT_CLOSEST_POINT = 'At Closest Point'
    PASSED_OVER = 'Passed Over'
    UNKNOWN = 'Unknown'


# Approaching and at-closest share a rank class ahead of passed-over
_PHASE_CLASS = {
    ProximityPhase.APPROACHING: 0,
    ProximityPhase.AT_CLOSEST_POINT: 0,
    ProximityPhase.PASSED_OVER: 1,
}
_PHASE_ORDER = {
    ProximityPhase.APPROACHING: 0,
    ProximityPhase.AT_CLOSEST_POINT: 1,
    ProximityPhase.PASSED_OVER: 2,
}


@dataclass(frozen=True)
class TrackSummary:
    """
    Closest-approach and latest-position facts for one aircraft.

    ``min_distance`` is the floor over the whole window, regardless of
    when it happened; it may be older or newer than ``previous_distance``.
    """
    aircraft_id: str
    latest: Observation
    previous_distance: Optional[float]
    min_distance: float
    min_distance_at: int  # Unix ms
    observation_count: int

    @property
    def flight_number(self) -> Optional[str]:
        return self.latest.flight_number

    @property
    def latest_distance(self) -> float:
        return self.latest.distance

    @property
    def latest_timestamp(self) -> int:
        return self.latest.captured_at

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict for the track listing."""
        return {
            'aircraft_id': self.aircraft_id,
            'flight_number': self.flight_number,
            'latest_distance': round(self.latest_distance, 2),
            'latest_timestamp': from_millis(self.latest_timestamp).isoformat(),
            'min_distance': round(self.min_distance, 2),
            'min_distance_timestamp': from_millis(self.min_distance_at).isoformat(),
        }


@dataclass(frozen=True)
class FlightStatus:
    """One row of the status list."""
    aircraft_id: str
    flight_number: Optional[str]
    registration: Optional[str]
    aircraft_type: Optional[str]
    operator: Optional[str]
    distance: float
    phase: ProximityPhase
    # Time of the latest observation, or of the closest approach once passed
    time: int  # Unix ms
    minutes_since_closest: Optional[int] = None

    @property
    def status_label(self) -> str:
        if self.phase is ProximityPhase.PASSED_OVER:
            return f'Passed Over {self.minutes_since_closest} mins ago'
        return self.phase.value

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict for API responses."""
        return {
            'aircraft_id': self.aircraft_id,
            'flight_number': self.flight_number,
            'registration': self.registration,
            'aircraft_type': self.aircraft_type,
            'operator': self.operator,
            'distance': round(self.distance, 2),
            'status': self.status_label,
            'time': from_millis(self.time).isoformat(),
        }


# -------------------------------------------------------------------------
# Reduction
# -------------------------------------------------------------------------

def group_by_aircraft(observations: Iterable[Observation]) -> Dict[str, List[Observation]]:
    """
    Group observations by aircraft_id, each group in capture order.

    Observations without a distance carry no proximity information and
    are left out. Groups keep first-seen order; members are sorted by
    captured_at with arrival order preserved for equal timestamps.
    """
    groups: Dict[str, List[Observation]] = OrderedDict()
    for observation in observations:
        if observation.distance is None:
            continue
        groups.setdefault(observation.aircraft_id, []).append(observation)

    for track in groups.values():
        track.sort(key=lambda o: o.captured_at)
    return groups


def summarize_track(track: Sequence[Observation]) -> TrackSummary:
    """
    Fold one aircraft's observations (capture order) into a TrackSummary.

    The closest observation is the minimum distance; equal distances
    resolve to the earliest capture.
    """
    if not track:
        raise ValueError('cannot summarize an empty track')

    latest = track[-1]
    previous_distance = track[-2].distance if len(track) > 1 else None
    closest = min(track, key=lambda o: (o.distance, o.captured_at))

    return TrackSummary(
        aircraft_id=latest.aircraft_id,
        latest=latest,
        previous_distance=previous_distance,
        min_distance=closest.distance,
        min_distance_at=closest.captured_at,
        observation_count=len(track),
    )


def minutes_between(later: int, earlier: int) -> int:
    """Whole minutes between two Unix ms timestamps, half rounding up."""
    return int(math.floor((later - earlier) / _MS_PER_MINUTE + 0.5))


def classify(summary: TrackSummary, now: int) -> Tuple[ProximityPhase, Optional[int]]:
    """
    Classify a track summary; first matching rule wins.

    Returns (phase, minutes since closest approach). Minutes are only set
    for PASSED_OVER.
    """
    previous = summary.previous_distance
    if previous is None:
        # A lone observation says nothing about direction of travel
        return ProximityPhase.UNKNOWN, None

    latest = summary.latest_distance
    minimum = summary.min_distance

    if latest == minimum:
        return ProximityPhase.AT_CLOSEST_POINT, None

    if latest > minimum and latest > previous:
        return ProximityPhase.PASSED_OVER, minutes_between(now, summary.min_distance_at)

    if latest < previous:
        return ProximityPhase.APPROACHING, None

    return ProximityPhase.UNKNOWN, None


def to_flight_status(summary: TrackSummary, now: int) -> Optional[FlightStatus]:
    """Classify a summary into a status row, or None when UNKNOWN."""
    phase, minutes = classify(summary, now)
    if phase is ProximityPhase.UNKNOWN:
        return None

    latest = summary.latest
    return FlightStatus(
        aircraft_id=summary.aircraft_id,
        flight_number=latest.flight_number,
        registration=latest.registration,
        aircraft_type=latest.aircraft_type,
        operator=latest.operator,
        distance=latest.distance,
        phase=phase,
        time=summary.min_distance_at if phase is ProximityPhase.PASSED_OVER else latest.captured_at,
        minutes_since_closest=minutes,
    )


def _rank_key(status: FlightStatus, latest_at: int) -> tuple:
    if status.phase is ProximityPhase.PASSED_OVER:
        within_class = status.minutes_since_closest
    else:
        within_class = latest_at
    return (
        _PHASE_CLASS[status.phase],
        within_class,
        _PHASE_ORDER[status.phase],
        status.aircraft_id,
    )


def rank_statuses(ranked: Iterable[Tuple[FlightStatus, int]]) -> List[FlightStatus]:
    """
    Order (status, latest capture time) pairs for display.

    Approaching and at-closest flights come first, earliest latest
    observation first; passed-over flights follow, most recently
    passed first.
    """
    pairs = sorted(ranked, key=lambda pair: _rank_key(*pair))
    return [status for status, _ in pairs]


def project_statuses(observations: Iterable[Observation], now: int) -> List[FlightStatus]:
    """Reduce a window of observations to the ranked status list."""
    pairs = []
    for track in group_by_aircraft(observations).values():
        summary = summarize_track(track)
        status = to_flight_status(summary, now)
        if status is None:
            logger.debug(f'{summary.aircraft_id}: unclassified, dropped')
            continue
        pairs.append((status, summary.latest_timestamp))
    return rank_statuses(pairs)


def project_tracks(
    observations: Iterable[Observation],
    limit: int,
    ceiling: Optional[float] = None,
) -> List[TrackSummary]:
    """
    Reduce a window of observations to the most recently updated tracks.

    With a ceiling, the latest position is the newest observation closer
    than the ceiling, and recency is judged by that observation. The
    closest approach is still taken over the whole group.
    """
    summaries = []
    for track in group_by_aircraft(observations).values():
        summary = summarize_track(track)
        if ceiling is not None:
            near = [o for o in track if o.distance < ceiling]
            if not near:
                continue
            summary = replace(summary, latest=near[-1])
        summaries.append(summary)

    summaries.sort(key=lambda s: (-s.latest_timestamp, s.aircraft_id))
    return summaries[:limit]


class StatusProjector:
    """
    Read-side projections over an observation store.

    Holds no state between calls; every call scans the store again.
    """

    def __init__(
        self,
        store: ObservationStore,
        lookback: Optional[timedelta] = None,
        radius_km: Optional[float] = None,
        tracks_lookback: Optional[timedelta] = None,
        tracks_radius_km: Optional[float] = None,
        tracks_limit: Optional[int] = None,
    ):
        self.store = store
        status = config.status
        if lookback is None:
            lookback = timedelta(minutes=status.lookback_minutes)
        if radius_km is None:
            radius_km = status.radius_km
        if tracks_lookback is None:
            tracks_lookback = timedelta(hours=status.tracks_lookback_hours)
        if tracks_radius_km is None:
            tracks_radius_km = status.tracks_radius_km
        if tracks_limit is None:
            tracks_limit = status.tracks_limit

        self.lookback = lookback
        self.radius_km = radius_km
        self.tracks_lookback = tracks_lookback
        self.tracks_radius_km = tracks_radius_km
        self.tracks_limit = tracks_limit

    def flight_statuses(self, now: Optional[int] = None) -> List[FlightStatus]:
        """
        Ranked status list for aircraft that came within radius_km recently.

        Raises QueryError if the store cannot be read; no partial list
        is ever returned.
        """
        now = now_millis() if now is None else now
        window = self.store.query_window(now, self.lookback, self.radius_km)
        statuses = project_statuses(window, now)
        logger.debug(f'Projected {len(statuses)} flight statuses')
        return statuses

    def recent_tracks(self, now: Optional[int] = None) -> List[TrackSummary]:
        """Most recently updated track summaries, newest first."""
        now = now_millis() if now is None else now
        window = self.store.query_window(now, self.tracks_lookback, self.tracks_radius_km)
        return project_tracks(window, self.tracks_limit, ceiling=self.tracks_radius_km)
