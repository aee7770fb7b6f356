"""Patient routes under ``/api/v1/patient-details``."""

from flask import Blueprint

from hospital_meals.blueprints.common import json_body, monitor_endpoint_performance, query_params
from hospital_meals.business import EntityType, get_query_service, get_write_orchestrator
from hospital_meals.utils.response import format_api_response, format_paginated_response


patients_bp = Blueprint('patients', __name__, url_prefix='/api/v1/patient-details')


@patients_bp.route('/create-patient', methods=['POST'])
@monitor_endpoint_performance
def create_patient():
    record = get_write_orchestrator().create(EntityType.PATIENT, json_body())
    return format_api_response(record, "Patient created successfully", 201)


@patients_bp.route('/get-all-patients', methods=['GET'])
@monitor_endpoint_performance
def get_all_patients():
    """List patients; ``search`` matches name, room, bed, disease or contact number."""
    page = get_query_service().list_records(EntityType.PATIENT, query_params())
    return format_paginated_response(page.items, page.page, page.limit, page.total,
                                     "Patients retrieved successfully")


@patients_bp.route('/get-patient-by-id/<patient_id>', methods=['GET'])
@monitor_endpoint_performance
def get_patient_by_id(patient_id):
    record = get_query_service().get_by_id(EntityType.PATIENT, patient_id)
    return format_api_response(record, "Patient retrieved successfully")


@patients_bp.route('/update-patient/<patient_id>', methods=['PUT'])
@monitor_endpoint_performance
def update_patient(patient_id):
    record = get_write_orchestrator().update(EntityType.PATIENT, patient_id, json_body())
    return format_api_response(record, "Patient updated successfully")


@patients_bp.route('/delete-patient/<patient_id>', methods=['DELETE'])
@monitor_endpoint_performance
def delete_patient(patient_id):
    record = get_write_orchestrator().delete(EntityType.PATIENT, patient_id)
    return format_api_response(record, "Patient deleted successfully")
