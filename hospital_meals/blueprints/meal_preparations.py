"""
Meal preparation routes under ``/api/v1/meal-preparation``.

``update-meal`` accepts staff reassignment and a status change together;
``update-meal-status`` accepts only ``preparationStatus``. Both go through
the same status order: forward only, frozen once Delivered.
"""

from flask import Blueprint

from hospital_meals.blueprints.common import json_body, monitor_endpoint_performance, query_params
from hospital_meals.business import EntityType, get_query_service, get_write_orchestrator
from hospital_meals.utils.response import format_api_response, format_paginated_response

meal_preparations_bp = Blueprint('meal_preparations', __name__,
                                 url_prefix='/api/v1/meal-preparation')


def _populated(record):
    return get_query_service().populate(EntityType.MEAL_PREPARATION, [record])[0]


@meal_preparations_bp.route('/create-meal', methods=['POST'])
@monitor_endpoint_performance
def create_meal_preparation():
    record = get_write_orchestrator().create(EntityType.MEAL_PREPARATION, json_body())
    return format_api_response(_populated(record), "Meal preparation created successfully", 201)


@meal_preparations_bp.route('/get-all-meals', methods=['GET'])
@monitor_endpoint_performance
def get_all_meal_preparations():
    page = get_query_service().list_records(EntityType.MEAL_PREPARATION, query_params())
    return format_paginated_response(page.items, page.page, page.limit, page.total,
                                     "Meal preparations retrieved successfully")


@meal_preparations_bp.route('/get-meal-by-id/<preparation_id>', methods=['GET'])
@monitor_endpoint_performance
def get_meal_preparation_by_id(preparation_id):
    record = get_query_service().get_by_id(EntityType.MEAL_PREPARATION, preparation_id)
    return format_api_response(record, "Meal preparation retrieved successfully")


@meal_preparations_bp.route('/update-meal/<preparation_id>', methods=['PUT'])
@monitor_endpoint_performance
def update_meal_preparation(preparation_id):
    record = get_write_orchestrator().update(
        EntityType.MEAL_PREPARATION, preparation_id, json_body()
    )
    return format_api_response(_populated(record), "Meal preparation updated successfully")


@meal_preparations_bp.route('/update-meal-status/<preparation_id>', methods=['PATCH', 'PUT'])
@monitor_endpoint_performance
def update_meal_preparation_status(preparation_id):
    record = get_write_orchestrator().update_status(
        EntityType.MEAL_PREPARATION, preparation_id, json_body()
    )
    return format_api_response(
        _populated(record),
        f"Meal preparation status updated to {record['preparationStatus']}",
    )


@meal_preparations_bp.route('/delete-meal/<preparation_id>', methods=['DELETE'])
@monitor_endpoint_performance
def delete_meal_preparation(preparation_id):
    record = get_write_orchestrator().delete(EntityType.MEAL_PREPARATION, preparation_id)
    return format_api_response(record, "Meal preparation deleted successfully")
