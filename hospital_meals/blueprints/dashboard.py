"""Dashboard routes under ``/api/v1/dashboard``."""

from flask import Blueprint, request

from hospital_meals.blueprints.common import monitor_endpoint_performance
from hospital_meals.business import get_query_service
from hospital_meals.utils.response import format_api_response

dashboard_bp = Blueprint('dashboard', __name__, url_prefix='/api/v1/dashboard')


@dashboard_bp.route('/stats', methods=['GET'])
@monitor_endpoint_performance
def dashboard_stats():
    """Patient, staff and status counts for the overview screen."""
    stats = get_query_service().dashboard_stats()
    return format_api_response(stats, "Dashboard statistics retrieved successfully")


@dashboard_bp.route('/recent-deliveries', methods=['GET'])
@monitor_endpoint_performance
def recent_deliveries():
    limit = request.args.get('limit', 5, type=int)
    records = get_query_service().recent_deliveries(limit)
    return format_api_response(records, "Recent deliveries retrieved successfully")
