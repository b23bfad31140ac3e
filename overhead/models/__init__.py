"""
Database models for Overhead.

Schema designed for an append-only observation log with these priorities:
1. Cheap batch appends every poll interval
2. Efficient time-range scans ordered per aircraft
"""

from overhead.models.base import Base, create_db_engine, create_session_factory, init_db
from overhead.models.observation import Observation, from_millis, now_millis

__all__ = [
    'Base',
    'create_db_engine',
    'create_session_factory',
    'init_db',
    'Observation',
    'from_millis',
    'now_millis',
]
