"""Diet plan routes under ``/api/v1/diet-plan``."""

from flask import Blueprint

from hospital_meals.blueprints.common import json_body, monitor_endpoint_performance, query_params
from hospital_meals.business import EntityType, get_query_service, get_write_orchestrator
from hospital_meals.utils.response import format_api_response, format_paginated_response

diet_plans_bp = Blueprint('diet_plans', __name__, url_prefix='/api/v1/diet-plan')


@diet_plans_bp.route('/create-dietPlan', methods=['POST'])
@monitor_endpoint_performance
def create_diet_plan():
    record = get_write_orchestrator().create(EntityType.DIET_PLAN, json_body())
    return format_api_response(record, "Diet plan created successfully", 201)


@diet_plans_bp.route('/get-all-dietPlans', methods=['GET'])
@monitor_endpoint_performance
def get_all_diet_plans():
    page = get_query_service().list_records(EntityType.DIET_PLAN, query_params())
    return format_paginated_response(page.items, page.page, page.limit, page.total,
                                     "Diet plans retrieved successfully")


@diet_plans_bp.route('/get-dietPlan-by-id/<diet_plan_id>', methods=['GET'])
@monitor_endpoint_performance
def get_diet_plan_by_id(diet_plan_id):
    record = get_query_service().get_by_id(EntityType.DIET_PLAN, diet_plan_id)
    return format_api_response(record, "Diet plan retrieved successfully")


@diet_plans_bp.route('/update-dietPlan/<diet_plan_id>', methods=['PUT'])
@monitor_endpoint_performance
def update_diet_plan(diet_plan_id):
    record = get_write_orchestrator().update(EntityType.DIET_PLAN, diet_plan_id, json_body())
    return format_api_response(record, "Diet plan updated successfully")


@diet_plans_bp.route('/delete-dietPlan/<diet_plan_id>', methods=['DELETE'])
@monitor_endpoint_performance
def delete_diet_plan(diet_plan_id):
    record = get_write_orchestrator().delete(EntityType.DIET_PLAN, diet_plan_id)
    return format_api_response(record, "Diet plan deleted successfully")
