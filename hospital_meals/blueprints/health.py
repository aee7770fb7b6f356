"""
Health and metrics endpoints.

``/health/live`` answers as long as the process serves requests.
``/health/ready`` and ``/health`` ping MongoDB and return 503 when it is
unreachable, so load balancers stop routing to an instance that cannot
persist anything.
"""

from datetime import datetime, timezone

import structlog
from flask import Blueprint, Response, current_app, jsonify

from hospital_meals.data.exceptions import DatabaseException
from hospital_meals.monitoring.metrics import render_latest

logger = structlog.get_logger(__name__)

health_bp = Blueprint('health', __name__)


class HealthStatus:
    HEALTHY = 'healthy'
    UNHEALTHY = 'unhealthy'


def _check_database():
    store = current_app.extensions['hospital_meals']['mongodb']
    try:
        return store.ping()
    except DatabaseException as exc:
        logger.warning("Database health check failed", error=exc.message)
        return {'status': HealthStatus.UNHEALTHY, 'error': exc.message}


@health_bp.route('/health', methods=['GET'])
def basic_health():
    database = _check_database()
    healthy = database['status'] == HealthStatus.HEALTHY
    response = {
        'status': HealthStatus.HEALTHY if healthy else HealthStatus.UNHEALTHY,
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'application': {
            'name': current_app.config.get('APP_NAME'),
            'version': current_app.config.get('APP_VERSION'),
        },
        'dependencies': {'database': database},
    }
    return jsonify(response), 200 if healthy else 503


@health_bp.route('/health/live', methods=['GET'])
def liveness_probe():
    return jsonify({
        'status': HealthStatus.HEALTHY,
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'probe_type': 'liveness',
    }), 200


@health_bp.route('/health/ready', methods=['GET'])
def readiness_probe():
    database = _check_database()
    ready = database['status'] == HealthStatus.HEALTHY
    return jsonify({
        'status': HealthStatus.HEALTHY if ready else HealthStatus.UNHEALTHY,
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'probe_type': 'readiness',
        'ready': ready,
        'critical_dependencies': {'database': database},
    }), 200 if ready else 503


@health_bp.route('/metrics', methods=['GET'])
def prometheus_metrics():
    """Prometheus exposition of request, write and database metrics."""
    metrics_data, content_type = render_latest()
    response = Response(metrics_data, mimetype=content_type)
    response.headers['Cache-Control'] = 'no-cache'
    return response
