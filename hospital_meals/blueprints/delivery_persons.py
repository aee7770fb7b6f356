"""Delivery person routes under ``/api/v1/delivery-person``."""

from flask import Blueprint

from hospital_meals.blueprints.common import json_body, monitor_endpoint_performance, query_params
from hospital_meals.business import EntityType, get_query_service, get_write_orchestrator
from hospital_meals.utils.response import format_api_response, format_paginated_response

delivery_persons_bp = Blueprint('delivery_persons', __name__, url_prefix='/api/v1/delivery-person')


@delivery_persons_bp.route('/create-delivery-person', methods=['POST'])
@monitor_endpoint_performance
def create_delivery_person():
    record = get_write_orchestrator().create(EntityType.DELIVERY_PERSON, json_body())
    return format_api_response(record, "Delivery person created successfully", 201)


@delivery_persons_bp.route('/get-all-delivery-persons', methods=['GET'])
@monitor_endpoint_performance
def get_all_delivery_persons():
    page = get_query_service().list_records(EntityType.DELIVERY_PERSON, query_params())
    return format_paginated_response(page.items, page.page, page.limit, page.total,
                                     "Delivery persons retrieved successfully")


@delivery_persons_bp.route('/get-delivery-person-by-id/<person_id>', methods=['GET'])
@monitor_endpoint_performance
def get_delivery_person_by_id(person_id):
    record = get_query_service().get_by_id(EntityType.DELIVERY_PERSON, person_id)
    return format_api_response(record, "Delivery person retrieved successfully")


@delivery_persons_bp.route('/update-delivery-person/<person_id>', methods=['PUT'])
@monitor_endpoint_performance
def update_delivery_person(person_id):
    record = get_write_orchestrator().update(EntityType.DELIVERY_PERSON, person_id, json_body())
    return format_api_response(record, "Delivery person updated successfully")


@delivery_persons_bp.route('/delete-delivery-person/<person_id>', methods=['DELETE'])
@monitor_endpoint_performance
def delete_delivery_person(person_id):
    record = get_write_orchestrator().delete(EntityType.DELIVERY_PERSON, person_id)
    return format_api_response(record, "Delivery person deleted successfully")
