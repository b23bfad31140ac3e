"""
Observation store - append and windowed reads over the observation log.

The store is an explicit handle: the ingestion pipeline and the web app
each receive one rather than reaching for a module-level session. It
offers exactly two write operations and one read shape:

- append / append_batch: add rows, never update or delete
- query_window: time-bounded, optionally distance-qualified scan in
  per-aircraft chronological order

SQLite (WAL) and PostgreSQL both give one writer plus concurrent readers,
which is all the ingestion loop and status requests need.
"""

import logging
import time
from datetime import timedelta
from typing import Iterable, Iterator, Optional

from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from overhead.errors import QueryError, WriteError
from overhead.models import Observation, create_db_engine, create_session_factory, init_db

logger = logging.getLogger(__name__)

# Rows pulled from the cursor at a time while scanning a window
_YIELD_PER = 500

# SQLite VM instructions between deadline checks while a statement runs
_PROGRESS_INSTRUCTIONS = 1000


def _to_row(observation: Observation) -> dict:
    """Column values of an observation, ready for a Core insert."""
    row = {}
    for column in Observation.__table__.columns:
        if column.key == 'id':
            continue
        value = getattr(observation, column.key)
        if value is None and column.default is not None and column.default.is_scalar:
            value = column.default.arg
        row[column.key] = value
    return row


class ObservationStore:
    """
    Append-only access to the observations table.

    Args:
        session_factory: sessionmaker bound to the target database
        query_timeout: seconds a single window scan may take (None = no limit)
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        query_timeout: Optional[float] = None,
    ):
        self._session_factory = session_factory
        self.query_timeout = query_timeout

    @classmethod
    def from_url(cls, url: Optional[str] = None, query_timeout: Optional[float] = None) -> 'ObservationStore':
        """
        Connect to a database and make sure the schema exists.

        Raises SQLAlchemyError if the database is unreachable - callers
        treat that as fatal at startup.
        """
        engine = create_db_engine(url)
        init_db(engine)
        return cls(create_session_factory(engine), query_timeout=query_timeout)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def append(self, observation: Observation) -> None:
        """Write a single observation. Raises WriteError on a storage fault."""
        self._insert([_to_row(observation)])

    def append_batch(self, observations: Iterable[Observation]) -> int:
        """
        Write a batch of observations, best-effort per row.

        The whole batch is tried in one statement first. If that fails the
        rows are retried one by one so a single bad row only costs itself.
        No atomicity across the batch is promised.

        Returns count of rows written.
        """
        rows = [_to_row(o) for o in observations]
        if not rows:
            return 0

        try:
            self._insert(rows)
            return len(rows)
        except WriteError as e:
            logger.warning(f'Batch insert of {len(rows)} rows failed, retrying per row: {e}')

        written = 0
        for index, row in enumerate(rows):
            try:
                self._insert([row])
                written += 1
            except WriteError as e:
                logger.error(f'Error inserting record {index} ({row.get("aircraft_id")}): {e}')
        return written

    def _insert(self, rows: list) -> None:
        with self._session_factory() as session:
            try:
                session.execute(Observation.__table__.insert(), rows)
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                raise WriteError(str(e)) from e

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def query_window(
        self,
        now: int,
        lookback: timedelta,
        distance_ceiling: Optional[float] = None,
    ) -> Iterator[Observation]:
        """
        Lazily scan observations captured at or after ``now - lookback``.

        Args:
            now: Reference time, Unix ms
            lookback: Window length
            distance_ceiling: If given, only aircraft with at least one
                in-window observation strictly closer than this (km) are
                returned - but with all of their in-window observations.

        Yields observations ordered by aircraft_id, then captured_at.

        Raises:
            QueryError on a storage fault or when the scan exceeds
            the store's query timeout
        """
        cutoff = now - int(lookback.total_seconds() * 1000)

        stmt = select(Observation).where(Observation.captured_at >= cutoff)
        if distance_ceiling is not None:
            qualifying = select(Observation.aircraft_id).where(
                Observation.captured_at >= cutoff,
                Observation.distance < distance_ceiling,
            ).distinct()
            stmt = stmt.where(Observation.aircraft_id.in_(qualifying))

        stmt = stmt.order_by(
            Observation.aircraft_id.asc(),
            Observation.captured_at.asc(),
            Observation.id.asc(),
        ).execution_options(yield_per=_YIELD_PER)

        logger.debug(f'Window scan: cutoff={cutoff} ceiling={distance_ceiling}')
        return self._scan(stmt)

    def _scan(self, stmt) -> Iterator[Observation]:
        timeout = self.query_timeout
        deadline = time.monotonic() + timeout if timeout else None

        try:
            with self._session_factory() as session:
                dialect = session.get_bind().dialect.name
                sqlite_connection = None

                if deadline is not None and dialect == 'postgresql':
                    # Let the server abort a slow plan too
                    session.execute(text(f'SET LOCAL statement_timeout = {int(timeout * 1000)}'))
                elif deadline is not None and dialect == 'sqlite':
                    # Interrupt a statement still running at the deadline,
                    # including a sort before the first row comes back
                    sqlite_connection = session.connection().connection.driver_connection
                    sqlite_connection.set_progress_handler(
                        lambda: int(time.monotonic() > deadline),
                        _PROGRESS_INSTRUCTIONS,
                    )

                try:
                    for observation in session.execute(stmt).scalars():
                        if deadline is not None and time.monotonic() > deadline:
                            raise QueryError(f'Window scan exceeded {timeout}s')
                        yield observation
                finally:
                    if sqlite_connection is not None:
                        sqlite_connection.set_progress_handler(None, 0)
        except SQLAlchemyError as e:
            logger.error(f'Window scan failed: {e}')
            raise QueryError(str(e)) from e

    def ping(self) -> bool:
        """Check database connectivity."""
        try:
            with self._session_factory() as session:
                session.execute(text('SELECT 1'))
            return True
        except SQLAlchemyError as e:
            logger.error(f'Database health check failed: {e}')
            return False
