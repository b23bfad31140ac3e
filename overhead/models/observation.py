"""
Observation model - the append-only aircraft observation log.

Every aircraft in every feed snapshot becomes one row here. Rows are never
updated or deleted by this package; corrections arrive as new rows with a
later capture time. This table is the only state in the system: the
ingestion loop writes it and both read paths are computed from it.

Schema optimized for:
- Batch appends once per poll interval
- Time-bounded scans grouped per aircraft
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import BigInteger, Boolean, Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from overhead.models.base import Base


class Observation(Base):
    """
    One timestamped aircraft position/telemetry record.

    All aircraft decoded from one feed snapshot share the snapshot's
    capture time, so ``captured_at`` groups a batch as well as ordering
    an aircraft's track.
    """

    __tablename__ = 'observations'

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
        comment='Surrogate key'
    )

    # Feed-reported snapshot time, Unix milliseconds
    captured_at: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        comment='Snapshot capture time (Unix ms)'
    )

    aircraft_id: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        comment='ICAO hex identity'
    )

    # Identification (as reported; all optional)
    message_type: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    flight_number: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    registration: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    aircraft_type: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    operator: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    manufacture_year: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)

    # Altitude - barometric feet, absent when on ground or unknown
    altitude: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment='Barometric altitude in feet'
    )
    is_ground: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    ground_speed: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    wind_direction: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    wind_speed: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    track_angle: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    position_age: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment='Seconds since last position update'
    )

    distance: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment='Distance from observer in km'
    )
    direction: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment='Bearing from observer in degrees'
    )

    __table_args__ = (
        # Window scan: per-aircraft chronological order
        Index('ix_observations_aircraft_time', 'aircraft_id', 'captured_at'),

        # Window bound: everything newer than a cutoff
        Index('ix_observations_time', 'captured_at'),
    )

    def __repr__(self) -> str:
        return f'<Observation {self.aircraft_id} @ {self.captured_at} {self.distance}km>'


# -------------------------------------------------------------------------
# Timestamp helpers
# -------------------------------------------------------------------------

def now_millis() -> int:
    """Current UTC time as Unix milliseconds."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def from_millis(value: int) -> datetime:
    """Unix milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
