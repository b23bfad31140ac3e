"""
Ingestion pipeline - orchestrates data flow from the traffic feed to the store.

Each tick walks a small state machine:

    IDLE -> FETCHING -> DECODING -> PERSISTING -> IDLE

1. Fetch: one request to the feed for the observer point and radius
2. Decode: parse the snapshot, recovering per-field anomalies in-line
3. Persist: append one observation per aircraft, all stamped with the
   snapshot's capture time

Failures are independent per tick. A transport or decode failure drops
the tick; a failed row is logged and the rest of the batch is written.
Ticks never overlap: an overrunning tick delays the next one and missed
ticks are coalesced rather than queued.
"""

import logging
import math
import threading
import time
from enum import Enum
from typing import Optional, List, Tuple

from overhead.config import config
from overhead.errors import DecodeError, TransportError
from overhead.models import Observation
from overhead.store import ObservationStore
from overhead.ingestion.feed_client import FeedClient
from overhead.ingestion.snapshot import AircraftSnapshot, decode_snapshot

logger = logging.getLogger(__name__)


def haversine_distance(
    lat1: float, lon1: float,
    lat2: float, lon2: float
) -> float:
    """
    Calculate great-circle distance between two points in kilometers.

    Uses the Haversine formula for accuracy over short to medium distances.
    """
    R = 6371.0  # Earth radius in km

    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_lat / 2) ** 2 +
        math.cos(lat1_rad) * math.cos(lat2_rad) *
        math.sin(delta_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return R * c


class IngestionState(str, Enum):
    """Where the pipeline is within a tick."""
    IDLE = 'idle'
    FETCHING = 'fetching'
    DECODING = 'decoding'
    PERSISTING = 'persisting'


class IngestionPipeline:
    """
    Manages the data ingestion lifecycle.

    Coordinates fetching from the feed, decoding, and appending to the
    observation store. Can run as a background thread for continuous polling.
    """

    def __init__(
        self,
        store: ObservationStore,
        observer_location: Tuple[float, float],
        client: Optional[FeedClient] = None,
        radius_km: Optional[float] = None,
    ):
        """
        Initialize the ingestion pipeline.

        Args:
            store: Observation store to append to
            observer_location: (lat, lon) tuple the feed is queried around
            client: Feed client (created from config if None)
            radius_km: Query radius in kilometers
        """
        self.store = store
        self.observer_location = observer_location
        self.client = client or FeedClient.from_config()
        self.radius_km = radius_km or config.ingestion.radius_km

        # State tracking
        self._state = IngestionState.IDLE
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._last_fetch_time: float = 0
        self._tick_count: int = 0
        self._error_count: int = 0
        self._rows_written: int = 0
        self._rows_failed: int = 0

    @property
    def state(self) -> IngestionState:
        return self._state

    def _to_observation(self, ac: AircraftSnapshot, captured_at: int) -> Observation:
        """Map a decoded aircraft onto an observation row."""
        distance = ac.distance
        if distance is None and ac.has_position():
            distance = haversine_distance(
                self.observer_location[0], self.observer_location[1],
                ac.latitude, ac.longitude,
            )

        return Observation(
            captured_at=captured_at,
            aircraft_id=ac.hex_code,
            message_type=ac.message_type,
            flight_number=ac.flight_number,
            registration=ac.registration,
            aircraft_type=ac.aircraft_type,
            description=ac.description,
            operator=ac.operator,
            manufacture_year=ac.manufacture_year,
            altitude=ac.altitude.altitude,
            is_ground=ac.altitude.is_ground,
            ground_speed=ac.ground_speed,
            wind_direction=ac.wind_direction,
            wind_speed=ac.wind_speed,
            track_angle=ac.track_angle,
            latitude=ac.latitude,
            longitude=ac.longitude,
            position_age=ac.position_age,
            distance=distance,
            direction=ac.direction,
        )

    def tick(self) -> int:
        """
        Execute one ingestion cycle.

        Returns count of observations written, or -1 if the tick was dropped.
        """
        try:
            # Stage 1: Fetch
            self._state = IngestionState.FETCHING
            try:
                body = self.client.fetch(
                    self.observer_location[0],
                    self.observer_location[1],
                    self.radius_km,
                )
            except TransportError as e:
                self._error_count += 1
                logger.warning(f'Fetch failed, skipping tick: {e}')
                return -1

            self._last_fetch_time = time.time()

            # Stage 2: Decode
            self._state = IngestionState.DECODING
            try:
                snapshot = decode_snapshot(body)
            except DecodeError as e:
                self._error_count += 1
                logger.warning(f'Decode failed, discarding tick: {e}')
                return -1

            if not snapshot.aircraft:
                logger.debug('No aircraft in range')
                return 0

            observations: List[Observation] = [
                self._to_observation(ac, snapshot.captured_at)
                for ac in snapshot.aircraft
            ]

            # Stage 3: Persist
            self._state = IngestionState.PERSISTING
            written = self.store.append_batch(observations)
            failed = len(observations) - written
            self._rows_written += written
            self._rows_failed += failed

            if failed:
                logger.warning(f'Stored {written}/{len(observations)} aircraft, {failed} rows failed')
            else:
                logger.info(f'Stored {written} aircraft')

            return written
        finally:
            self._tick_count += 1
            self._state = IngestionState.IDLE

    def run_continuous(self, interval: Optional[float] = None) -> None:
        """
        Run ingestion loop continuously on a fixed cadence.

        This method blocks - use start_background() for non-blocking.
        """
        interval = interval or config.ingestion.poll_interval
        self._stop_event.clear()

        logger.info(f'Starting continuous ingestion (interval={interval}s)')

        next_tick = time.monotonic()
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception as e:
                # Nothing in a tick may end the loop
                self._error_count += 1
                logger.exception(f'Unexpected ingestion error: {e}')

            next_tick += interval
            now = time.monotonic()
            if next_tick < now:
                # Overran: start the next tick now, drop the missed ones
                next_tick = now
            self._stop_event.wait(next_tick - now)

        logger.info('Ingestion stopped')

    def start_background(self, interval: Optional[float] = None) -> None:
        """Start ingestion in background thread."""
        if self._thread and self._thread.is_alive():
            logger.warning('Ingestion already running')
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self.run_continuous,
            args=(interval,),
            name='ingestion',
            daemon=True,
        )
        self._thread.start()
        logger.info('Background ingestion started')

    def stop(self) -> None:
        """Stop background ingestion."""
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()

    @property
    def stats(self) -> dict:
        """Get ingestion statistics."""
        return {
            'state': self._state.value,
            'tick_count': self._tick_count,
            'error_count': self._error_count,
            'rows_written': self._rows_written,
            'rows_failed': self._rows_failed,
            'last_fetch_time': self._last_fetch_time,
            'running': self.running,
        }
