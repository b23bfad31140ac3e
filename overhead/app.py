"""
Overhead Flask Application.

Main entry point for the web application. Initializes:
- Observation store (database schema)
- Status projector
- Ingestion pipeline (optional, background thread)
- Routes

Usage:
    python -m overhead.app

Or with gunicorn:
    gunicorn 'overhead.app:create_app()'
"""

import logging
import sys
from typing import Optional

from flask import Flask
from flask_cors import CORS
from sqlalchemy.exc import SQLAlchemyError

from overhead.config import config
from overhead.models import from_millis
from overhead.store import ObservationStore
from overhead.api import flights_bp
from overhead.analytics import StatusProjector
from overhead.ingestion import IngestionPipeline

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S',
)
logger = logging.getLogger(__name__)


def open_store() -> ObservationStore:
    """
    Connect to the configured database.

    An unreachable database at startup is the one fatal condition.
    """
    try:
        return ObservationStore.from_url(
            config.database.url,
            query_timeout=config.status.query_timeout_seconds,
        )
    except SQLAlchemyError as e:
        logger.critical(f'Unable to connect to the database: {e}')
        raise


def create_app(
    store: Optional[ObservationStore] = None,
    start_ingestion: Optional[bool] = None,
) -> Flask:
    """
    Application factory for Flask.

    Args:
        store: Observation store to read (and write) through. Opened from
               config if None.
        start_ingestion: Whether to start the background ingestion pipeline.
                         Defaults to config; set to False for testing.

    Returns:
        Configured Flask application instance.
    """
    app = Flask(__name__)

    # Enable CORS for API endpoints
    CORS(app, resources={r'/api/*': {'origins': '*'}})

    if store is None:
        logger.info('Initializing database...')
        store = open_store()

    app.config['OBSERVATION_STORE'] = store
    app.config['STATUS_PROJECTOR'] = StatusProjector(store)
    app.config['INGESTION_PIPELINE'] = None

    app.register_blueprint(flights_bp)

    @app.template_filter('clock')
    def clock(value: int) -> str:
        """Unix ms as a UTC wall-clock time."""
        return from_millis(value).strftime('%H:%M:%S')

    if start_ingestion is None:
        start_ingestion = config.ingestion.enabled

    observer_location = config.observer_location
    if start_ingestion and observer_location:
        pipeline = IngestionPipeline(store, observer_location=observer_location)
        pipeline.start_background()
        app.config['INGESTION_PIPELINE'] = pipeline

        logger.info(f'Ingestion started for location {observer_location} with radius {pipeline.radius_km}km')
    elif start_ingestion:
        logger.warning('No observer location configured. Set OBSERVER_LOCATION=lat,lon in .env')

    @app.route('/health')
    def health():
        """Simple health check endpoint."""
        return {'status': 'ok'}

    # -------------------------------------------------------------------------
    # Error handlers
    # -------------------------------------------------------------------------

    @app.errorhandler(404)
    def not_found(e):
        return {'error': 'Not found'}, 404

    @app.errorhandler(500)
    def server_error(e):
        logger.error(f'Server error: {e}')
        return {'error': 'Internal server error'}, 500

    return app


def run_development_server():
    """Run the development server."""
    try:
        app = create_app()
    except SQLAlchemyError:
        sys.exit(1)

    port = config.port

    logger.info(f'Starting Overhead on http://localhost:{port}')
    logger.info(f'Status view: http://localhost:{port}/')
    logger.info(f'Tracks view: http://localhost:{port}/tracks')

    app.run(
        host='0.0.0.0',
        port=port,
        debug=config.debug,
        use_reloader=False,  # Disable reloader to prevent duplicate pipeline threads
    )


if __name__ == '__main__':
    run_development_server()
