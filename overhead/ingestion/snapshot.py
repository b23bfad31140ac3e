"""
Decoding of live traffic feed snapshots.

The feed answers with a JSON object shaped like::

    {"ac": [{"hex": "4ca7b5", "flight": "RYR8TK  ", "alt_baro": 3450, ...}],
     "now": 1717412345123, "msg": "No error", "total": 1, ...}

Field reference: https://airplanes.live/rest-api-adsb-data-field-descriptions/

Decoding is permissive per field and strict per body:
- A body that is not JSON, not an object, lacks ``now`` or has a
  non-list ``ac`` raises DecodeError and the whole snapshot is dropped.
- A single field with an unexpected type raises FieldDecodeError inside
  the entry decoder; it is logged, the field falls back to its default
  and the rest of the entry is kept.
- An entry without a hex identity cannot be tracked and is skipped.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Union

from overhead.errors import DecodeError, FieldDecodeError

logger = logging.getLogger(__name__)

GROUND_SENTINEL = 'ground'


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a valid telemetry number
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass(frozen=True)
class BarometricAltitude:
    """
    Barometric altitude as a tagged variant.

    The feed encodes ``alt_baro`` as either a number of feet or the
    literal string ``"ground"``:

    - ``"ground"`` -> is_ground=True, altitude=0
    - ``1500``     -> is_ground=False, altitude=1500
    - absent       -> is_ground=False, altitude=None
    """
    is_ground: bool
    altitude: Optional[int]

    @classmethod
    def decode(cls, value: Any) -> 'BarometricAltitude':
        """Decode a raw ``alt_baro`` value. Raises FieldDecodeError otherwise."""
        if value is None:
            return UNKNOWN_ALTITUDE

        # Sentinel first, then numeric
        if isinstance(value, str):
            if value == GROUND_SENTINEL:
                return cls(is_ground=True, altitude=0)
            raise FieldDecodeError('alt_baro', value)

        if _is_number(value) and float(value).is_integer():
            return cls(is_ground=False, altitude=int(value))

        raise FieldDecodeError('alt_baro', value)


UNKNOWN_ALTITUDE = BarometricAltitude(is_ground=False, altitude=None)


# -------------------------------------------------------------------------
# Field decoders - each raises FieldDecodeError for a wrong JSON type
# -------------------------------------------------------------------------

def _decode_string(key: str, value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise FieldDecodeError(key, value)
    return value.strip() or None


def _decode_float(key: str, value: Any) -> Optional[float]:
    if value is None:
        return None
    if not _is_number(value):
        raise FieldDecodeError(key, value)
    return float(value)


def _decode_int(key: str, value: Any) -> Optional[int]:
    if value is None:
        return None
    if not _is_number(value) or not float(value).is_integer():
        raise FieldDecodeError(key, value)
    return int(value)


@dataclass
class AircraftSnapshot:
    """
    One aircraft entry from a feed snapshot.

    Field names follow the observation log; the feed's short keys are
    noted alongside.
    """
    hex_code: str                            # hex
    message_type: Optional[str] = None       # type
    flight_number: Optional[str] = None      # flight
    registration: Optional[str] = None       # r
    aircraft_type: Optional[str] = None      # t
    description: Optional[str] = None        # desc
    operator: Optional[str] = None           # ownOp
    manufacture_year: Optional[str] = None   # year
    altitude: BarometricAltitude = UNKNOWN_ALTITUDE  # alt_baro
    ground_speed: Optional[float] = None     # gs
    wind_direction: Optional[int] = None     # wd
    wind_speed: Optional[int] = None         # ws
    track_angle: Optional[float] = None      # track
    latitude: Optional[float] = None         # lat
    longitude: Optional[float] = None        # lon
    position_age: Optional[float] = None     # seen_pos
    distance: Optional[float] = None         # dst
    direction: Optional[float] = None        # dir

    # Fields that failed to decode and were defaulted
    anomalies: List[str] = field(default_factory=list)

    @classmethod
    def from_json(cls, entry: Any) -> Optional['AircraftSnapshot']:
        """
        Decode one ``ac`` entry.

        Returns None if the entry is not an object or has no hex identity.
        """
        if not isinstance(entry, dict):
            return None

        try:
            hex_code = _decode_string('hex', entry.get('hex'))
        except FieldDecodeError:
            hex_code = None
        if not hex_code:
            return None

        snapshot = cls(hex_code=hex_code.lower())

        def take(attr: str, key: str, decoder: Callable[[str, Any], Any]) -> None:
            try:
                setattr(snapshot, attr, decoder(key, entry.get(key)))
            except FieldDecodeError as e:
                logger.warning(f'{hex_code}: {e}')
                snapshot.anomalies.append(key)

        take('message_type', 'type', _decode_string)
        take('flight_number', 'flight', _decode_string)
        take('registration', 'r', _decode_string)
        take('aircraft_type', 't', _decode_string)
        take('description', 'desc', _decode_string)
        take('operator', 'ownOp', _decode_string)
        take('manufacture_year', 'year', _decode_string)
        take('altitude', 'alt_baro', lambda _key, value: BarometricAltitude.decode(value))
        take('ground_speed', 'gs', _decode_float)
        take('wind_direction', 'wd', _decode_int)
        take('wind_speed', 'ws', _decode_int)
        take('track_angle', 'track', _decode_float)
        take('latitude', 'lat', _decode_float)
        take('longitude', 'lon', _decode_float)
        take('position_age', 'seen_pos', _decode_float)
        take('distance', 'dst', _decode_float)
        take('direction', 'dir', _decode_float)

        return snapshot

    def has_position(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass
class Snapshot:
    """A decoded feed response: every aircraft shares one capture time."""
    captured_at: int  # Unix ms, feed clock
    aircraft: List[AircraftSnapshot]
    skipped: int = 0


def decode_snapshot(body: Union[str, bytes]) -> Snapshot:
    """
    Decode a feed response body.

    Raises:
        DecodeError if the body as a whole is unusable
    """
    try:
        payload = json.loads(body)
    except ValueError as e:
        raise DecodeError(f'error decoding JSON: {e}') from e

    if not isinstance(payload, dict):
        raise DecodeError(f'expected a JSON object, got {type(payload).__name__}')

    now = payload.get('now')
    if not _is_number(now):
        raise DecodeError(f'missing or invalid capture time: {now!r}')

    entries = payload.get('ac')
    if entries is None:
        entries = []
    if not isinstance(entries, list):
        raise DecodeError(f'expected "ac" to be a list, got {type(entries).__name__}')

    aircraft = []
    skipped = 0
    for entry in entries:
        snapshot = AircraftSnapshot.from_json(entry)
        if snapshot is None:
            skipped += 1
            continue
        aircraft.append(snapshot)

    if skipped:
        logger.warning(f'Skipped {skipped} entries without a hex identity')

    return Snapshot(captured_at=int(now), aircraft=aircraft, skipped=skipped)
