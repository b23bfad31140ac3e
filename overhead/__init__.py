"""
Overhead Package.

Tracks aircraft passing near a fixed observer, built with Flask,
SQLAlchemy, and requests.

Modules:
    api/          HTML and JSON endpoints for statuses and recent tracks
    models/       SQLAlchemy ORM model for the observation log
    ingestion/    Traffic feed client, snapshot decoding, polling pipeline
    analytics/    Closest-approach reduction and status classification
    store.py      Append-only observation store with windowed reads
    errors.py     Error taxonomy
    config.py     Centralized configuration from environment variables
    collector.py  Standalone ingestion entry point
"""

__version__ = '1.0.0'
