"""Meal delivery routes under ``/api/v1/meal-delivery``."""

from flask import Blueprint

from hospital_meals.blueprints.common import json_body, monitor_endpoint_performance, query_params
from hospital_meals.business import EntityType, get_query_service, get_write_orchestrator
from hospital_meals.utils.response import format_api_response, format_paginated_response

meal_deliveries_bp = Blueprint('meal_deliveries', __name__, url_prefix='/api/v1/meal-delivery')


def _populated(record):
    return get_query_service().populate(EntityType.MEAL_DELIVERY, [record])[0]


@meal_deliveries_bp.route('/create-meal-delivery', methods=['POST'])
@monitor_endpoint_performance
def create_meal_delivery():
    record = get_write_orchestrator().create(EntityType.MEAL_DELIVERY, json_body())
    return format_api_response(_populated(record), "Meal delivery created successfully", 201)


@meal_deliveries_bp.route('/get-all-meal-deliveries', methods=['GET'])
@monitor_endpoint_performance
def get_all_meal_deliveries():
    page = get_query_service().list_records(EntityType.MEAL_DELIVERY, query_params())
    return format_paginated_response(page.items, page.page, page.limit, page.total,
                                     "Meal deliveries retrieved successfully")


@meal_deliveries_bp.route('/get-meal-delivery-by-id/<delivery_id>', methods=['GET'])
@monitor_endpoint_performance
def get_meal_delivery_by_id(delivery_id):
    record = get_query_service().get_by_id(EntityType.MEAL_DELIVERY, delivery_id)
    return format_api_response(record, "Meal delivery retrieved successfully")


@meal_deliveries_bp.route('/update-meal-delivery-status/<delivery_id>', methods=['PUT'])
@monitor_endpoint_performance
def update_meal_delivery(delivery_id):
    """Full delivery update; moving to Delivered requires ``deliveryTime``."""
    record = get_write_orchestrator().update(EntityType.MEAL_DELIVERY, delivery_id, json_body())
    return format_api_response(_populated(record), "Meal delivery updated successfully")


@meal_deliveries_bp.route('/update-delivery-status/<delivery_id>', methods=['PATCH', 'PUT'])
@monitor_endpoint_performance
def update_delivery_status(delivery_id):
    """Status-only update; ``deliveryTime`` is stamped when it becomes Delivered."""
    record = get_write_orchestrator().update_status(
        EntityType.MEAL_DELIVERY, delivery_id, json_body(), stamp_now=True
    )
    return format_api_response(
        _populated(record),
        f"Delivery status updated to {record['deliveryStatus']}",
    )


@meal_deliveries_bp.route('/delete-meal-delivery/<delivery_id>', methods=['DELETE'])
@monitor_endpoint_performance
def delete_meal_delivery(delivery_id):
    record = get_write_orchestrator().delete(EntityType.MEAL_DELIVERY, delivery_id)
    return format_api_response(record, "Meal delivery deleted successfully")
