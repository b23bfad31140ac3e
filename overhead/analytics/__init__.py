"""
Analytics module for Overhead.

Derives per-aircraft proximity facts and status labels from the
observation log.
"""

from overhead.analytics.proximity import (
    FlightStatus,
    ProximityPhase,
    StatusProjector,
    TrackSummary,
    classify,
    project_statuses,
    project_tracks,
    summarize_track,
)

__all__ = [
    'FlightStatus',
    'ProximityPhase',
    'StatusProjector',
    'TrackSummary',
    'classify',
    'project_statuses',
    'project_tracks',
    'summarize_track',
]
