"""Pantry staff routes under ``/api/v1/pantry-staff``."""

from flask import Blueprint

from hospital_meals.blueprints.common import json_body, monitor_endpoint_performance, query_params
from hospital_meals.business import EntityType, get_query_service, get_write_orchestrator
from hospital_meals.utils.response import format_api_response, format_paginated_response

pantry_staff_bp = Blueprint('pantry_staff', __name__, url_prefix='/api/v1/pantry-staff')


@pantry_staff_bp.route('/create-pantryStaff', methods=['POST'])
@monitor_endpoint_performance
def create_pantry_staff():
    record = get_write_orchestrator().create(EntityType.PANTRY_STAFF, json_body())
    return format_api_response(record, "Pantry staff created successfully", 201)


@pantry_staff_bp.route('/get-all-pantryStaff', methods=['GET'])
@monitor_endpoint_performance
def get_all_pantry_staff():
    page = get_query_service().list_records(EntityType.PANTRY_STAFF, query_params())
    return format_paginated_response(page.items, page.page, page.limit, page.total,
                                     "Pantry staff retrieved successfully")


@pantry_staff_bp.route('/get-pantryStaff-by-id/<staff_id>', methods=['GET'])
@monitor_endpoint_performance
def get_pantry_staff_by_id(staff_id):
    record = get_query_service().get_by_id(EntityType.PANTRY_STAFF, staff_id)
    return format_api_response(record, "Pantry staff retrieved successfully")


@pantry_staff_bp.route('/update-pantryStaff/<staff_id>', methods=['PUT'])
@monitor_endpoint_performance
def update_pantry_staff(staff_id):
    record = get_write_orchestrator().update(EntityType.PANTRY_STAFF, staff_id, json_body())
    return format_api_response(record, "Pantry staff updated successfully")


@pantry_staff_bp.route('/delete-pantryStaff/<staff_id>', methods=['DELETE'])
@monitor_endpoint_performance
def delete_pantry_staff(staff_id):
    record = get_write_orchestrator().delete(EntityType.PANTRY_STAFF, staff_id)
    return format_api_response(record, "Pantry staff deleted successfully")
