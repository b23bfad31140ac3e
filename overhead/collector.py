"""
Standalone collector - runs only the ingestion loop.

Useful when the web app and the poller are deployed as separate
processes sharing one database (set ENABLE_INGESTION=0 for the web app).

Usage:
    python -m overhead.collector
"""

import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from overhead.config import config
from overhead.store import ObservationStore
from overhead.ingestion import IngestionPipeline

logger = logging.getLogger(__name__)


def main() -> int:
    logging.basicConfig(
        level=logging.DEBUG if config.debug else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )

    if not config.observer_location:
        logger.error('No observer location configured. Set OBSERVER_LOCATION=lat,lon in .env')
        return 2

    try:
        store = ObservationStore.from_url(config.database.url)
    except SQLAlchemyError as e:
        logger.critical(f'Unable to connect to the database: {e}')
        return 1

    pipeline = IngestionPipeline(store, observer_location=config.observer_location)
    try:
        pipeline.run_continuous()
    except KeyboardInterrupt:
        logger.info('Interrupted, shutting down')

    return 0


if __name__ == '__main__':
    sys.exit(main())
