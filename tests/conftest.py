"""
Shared pytest fixtures.

Every test gets a fresh application bound to an in-memory mongomock client,
so tests never share records. Payload builders return valid request bodies
and accept keyword overrides; the seeded-record fixtures create records
through the write orchestrator exactly as the API would.
"""

import mongomock
import pytest

from hospital_meals.app import create_app
from hospital_meals.business import EntityType


# ============================================================================
# APPLICATION FIXTURES
# ============================================================================

@pytest.fixture
def mongo_client():
    return mongomock.MongoClient()


@pytest.fixture
def app(mongo_client):
    """Flask application in testing configuration."""
    return create_app('testing', mongo_client=mongo_client)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    return app.extensions['hospital_meals']['mongodb']


@pytest.fixture
def orchestrator(app):
    return app.extensions['hospital_meals']['orchestrator']


@pytest.fixture
def queries(app):
    return app.extensions['hospital_meals']['queries']


# ============================================================================
# PAYLOAD BUILDERS
# ============================================================================

@pytest.fixture
def patient_payload():
    def build(**overrides):
        payload = {
            'patientName': 'Asha Verma',
            'diseases': ['Diabetes'],
            'allergies': ['Peanuts'],
            'roomNumber': '204',
            'bedNumber': 'B',
            'floorNumber': '2',
            'age': 54,
            'gender': 'Female',
            'contactInformation': '9876543210',
            'emergencyContact': '9123456780',
        }
        payload.update(overrides)
        return payload
    return build


@pytest.fixture
def diet_plan_payload():
    def build(patient_id, **overrides):
        payload = {
            'patientId': str(patient_id),
            'meals': [{
                'mealTime': 'Morning',
                'mealItems': [{
                    'name': 'Oatmeal',
                    'ingredients': ['oats', 'milk'],
                    'calories': 250,
                }],
                'specificInstructions': 'Low sugar',
            }],
        }
        payload.update(overrides)
        return payload
    return build


@pytest.fixture
def pantry_staff_payload():
    def build(**overrides):
        payload = {
            'name': 'Ravi Kumar',
            'contactNumber': '9000000001',
            'location': 'Kitchen A',
            'role': 'Kitchen Staff',
        }
        payload.update(overrides)
        return payload
    return build


@pytest.fixture
def delivery_person_payload():
    def build(**overrides):
        payload = {'name': 'Meena Das', 'contactNumber': '9000000101'}
        payload.update(overrides)
        return payload
    return build


# ============================================================================
# SEEDED RECORDS
# ============================================================================

@pytest.fixture
def patient(orchestrator, patient_payload):
    return orchestrator.create(EntityType.PATIENT, patient_payload())


@pytest.fixture
def diet_plan(orchestrator, diet_plan_payload, patient):
    return orchestrator.create(EntityType.DIET_PLAN, diet_plan_payload(patient['_id']))


@pytest.fixture
def pantry_staff(orchestrator, pantry_staff_payload):
    return orchestrator.create(EntityType.PANTRY_STAFF, pantry_staff_payload())


@pytest.fixture
def delivery_person(orchestrator, delivery_person_payload):
    return orchestrator.create(EntityType.DELIVERY_PERSON, delivery_person_payload())


@pytest.fixture
def meal_preparation(orchestrator, diet_plan, pantry_staff):
    return orchestrator.create(EntityType.MEAL_PREPARATION, {
        'dietPlanId': str(diet_plan['_id']),
        'assignedStaff': [{'staffId': str(pantry_staff['_id']), 'role': 'Kitchen Staff'}],
    })


@pytest.fixture
def meal_delivery(orchestrator, meal_preparation, delivery_person):
    return orchestrator.create(EntityType.MEAL_DELIVERY, {
        'mealPreparationId': str(meal_preparation['_id']),
        'deliveryPersonId': str(delivery_person['_id']),
    })


@pytest.fixture
def advance_preparation(orchestrator):
    """Move a meal preparation through the given statuses in order."""
    def advance(preparation, *statuses):
        record = preparation
        for status in statuses:
            record = orchestrator.update_status(
                EntityType.MEAL_PREPARATION, str(preparation['_id']),
                {'preparationStatus': status},
            )
        return record
    return advance
