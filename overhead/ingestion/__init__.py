"""
Data ingestion module for Overhead.

Handles polling the live traffic feed, decoding snapshots, and appending
them to the observation log.
"""

from overhead.ingestion.feed_client import FeedClient
from overhead.ingestion.pipeline import IngestionPipeline, IngestionState
from overhead.ingestion.snapshot import AircraftSnapshot, BarometricAltitude, Snapshot, decode_snapshot

__all__ = [
    'FeedClient',
    'IngestionPipeline',
    'IngestionState',
    'AircraftSnapshot',
    'BarometricAltitude',
    'Snapshot',
    'decode_snapshot',
]
