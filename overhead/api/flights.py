"""
Flight status and track listing endpoints.

Provides endpoints for:
- GET /               - Status table (HTML)
- GET /api/status     - Ranked flight statuses (JSON)
- GET /tracks         - Recent tracks table (HTML)
- GET /api/flights    - Recent track summaries (JSON)
- GET /api/ingestion  - Ingestion loop statistics

The projector is taken from the app config, so each app instance reads
from the store it was created with.
"""

import logging
import time
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, render_template

from overhead.analytics import StatusProjector
from overhead.errors import QueryError

logger = logging.getLogger(__name__)

flights_bp = Blueprint('flights', __name__)


def _projector() -> StatusProjector:
    return current_app.config['STATUS_PROJECTOR']


@flights_bp.route('/', methods=['GET'])
def status_page():
    """Render the ranked status list as an HTML table."""
    try:
        statuses = _projector().flight_statuses()
    except QueryError as e:
        logger.error(f'Status query failed: {e}')
        return 'Database query error', 500

    return render_template('status.html', flights=statuses)


@flights_bp.route('/api/status', methods=['GET'])
def list_statuses():
    """
    Ranked flight statuses.

    Approaching and at-closest flights first, then passed-over flights,
    most recently passed first. Unclassifiable tracks are omitted.
    """
    start_time = time.perf_counter()

    try:
        statuses = _projector().flight_statuses()
    except QueryError as e:
        logger.error(f'Status query failed: {e}')
        return jsonify({'error': 'Database query error'}), 500

    query_time_ms = (time.perf_counter() - start_time) * 1000

    return jsonify({
        'flights': [s.to_dict() for s in statuses],
        'count': len(statuses),
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'query_time_ms': round(query_time_ms, 2),
    })


@flights_bp.route('/tracks', methods=['GET'])
def tracks_page():
    """Render recent track summaries as an HTML table."""
    try:
        tracks = _projector().recent_tracks()
    except QueryError as e:
        logger.error(f'Track query failed: {e}')
        return 'Database query error', 500

    return render_template('tracks.html', tracks=tracks)


@flights_bp.route('/api/flights', methods=['GET'])
def list_tracks():
    """Recent track summaries, most recently updated first."""
    try:
        tracks = _projector().recent_tracks()
    except QueryError as e:
        logger.error(f'Track query failed: {e}')
        return jsonify({'error': 'Database query error'}), 500

    return jsonify([t.to_dict() for t in tracks])


@flights_bp.route('/api/ingestion', methods=['GET'])
def ingestion_status():
    """Ingestion loop statistics, if the loop runs in this process."""
    pipeline = current_app.config.get('INGESTION_PIPELINE')
    stats = pipeline.stats if pipeline else {'running': False}

    store = current_app.config['OBSERVATION_STORE']

    return jsonify({
        'ingestion': stats,
        'database': {'connected': store.ping()},
        'timestamp': datetime.now(timezone.utc).isoformat(),
    })
