"""
Configuration management for Overhead.

Loads settings from environment variables with sensible defaults.
All configuration is centralized here to avoid magic strings scattered
throughout the codebase.
"""

import os
from dataclasses import dataclass
from typing import Optional, Tuple

from dotenv import load_dotenv

load_dotenv()


def _parse_location(value: str) -> Optional[Tuple[float, float]]:
    """Parse 'lat,lon' string into tuple, or None if empty/invalid."""
    if not value:
        return None
    try:
        lat, lon = value.split(',')
        return (float(lat.strip()), float(lon.strip()))
    except (ValueError, AttributeError):
        return None


def _get_bool(env_var: str, default: bool = False) -> bool:
    value = os.getenv(env_var)
    if value is None:
        return default
    return value.lower() in {'1', 'true', 'yes', 'on'}


@dataclass(frozen=True)
class FeedConfig:
    """Live traffic feed configuration."""
    url_template: str = os.getenv(
        'FEED_URL_TEMPLATE',
        'https://api.airplanes.live/v2/point/{lat}/{lon}/{radius}',
    )
    timeout_seconds: float = float(os.getenv('FEED_TIMEOUT_SECONDS', '10'))


@dataclass(frozen=True)
class DatabaseConfig:
    """Database configuration."""
    url: str = os.getenv('DATABASE_URL', 'sqlite:///overhead.db')


@dataclass(frozen=True)
class IngestionConfig:
    """Data ingestion settings."""
    enabled: bool = _get_bool('ENABLE_INGESTION', default=True)
    poll_interval: float = float(os.getenv('POLL_INTERVAL_SECONDS', '2'))
    radius_km: float = float(os.getenv('SEARCH_RADIUS_KM', '10'))


@dataclass(frozen=True)
class StatusConfig:
    """Windows and ceilings for the two read paths."""
    lookback_minutes: int = int(os.getenv('STATUS_LOOKBACK_MINUTES', '30'))
    radius_km: float = float(os.getenv('STATUS_RADIUS_KM', '5'))

    tracks_lookback_hours: int = int(os.getenv('TRACKS_LOOKBACK_HOURS', '12'))
    tracks_radius_km: float = float(os.getenv('TRACKS_RADIUS_KM', '5'))
    tracks_limit: int = int(os.getenv('TRACKS_LIMIT', '20'))

    # Request-scoped; a read that runs longer is aborted
    query_timeout_seconds: float = float(os.getenv('QUERY_TIMEOUT_SECONDS', '5'))


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""
    feed: FeedConfig
    database: DatabaseConfig
    ingestion: IngestionConfig
    status: StatusConfig

    # Fixed point that distances are measured from
    observer_location: Optional[Tuple[float, float]]

    # Flask settings
    port: int
    debug: bool


def load_config() -> AppConfig:
    """Load and validate all configuration."""
    return AppConfig(
        feed=FeedConfig(),
        database=DatabaseConfig(),
        ingestion=IngestionConfig(),
        status=StatusConfig(),
        observer_location=_parse_location(os.getenv('OBSERVER_LOCATION', '')),
        port=int(os.getenv('PORT', '5000')),
        debug=os.getenv('FLASK_DEBUG', '0') == '1',
    )


# Singleton instance
config = load_config()
