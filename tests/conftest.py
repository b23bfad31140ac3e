import pytest

from overhead.models import Observation, create_db_engine, create_session_factory, init_db
from overhead.store import ObservationStore

# 2024-06-03 11:06:40 UTC, arbitrary fixed reference time
T0 = 1_717_412_800_000
MINUTE = 60_000


@pytest.fixture
def store(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path}/observations.db", echo=False)
    init_db(engine)
    yield ObservationStore(create_session_factory(engine))
    engine.dispose()


@pytest.fixture
def make_observation():
    def _make(aircraft_id, distance, captured_at, **fields):
        fields.setdefault("flight_number", f"FL{aircraft_id.upper()}")
        fields.setdefault("is_ground", False)
        return Observation(
            aircraft_id=aircraft_id,
            distance=distance,
            captured_at=captured_at,
            **fields,
        )

    return _make


@pytest.fixture
def make_track(make_observation):
    """Observations one minute apart for the given distances, starting at ``start``."""

    def _make(aircraft_id, distances, start=T0, step=MINUTE, **fields):
        return [
            make_observation(aircraft_id, distance, start + i * step, **fields)
            for i, distance in enumerate(distances)
        ]

    return _make
