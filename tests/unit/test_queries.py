"""Listing, detail and dashboard reads."""

import pytest
from bson import ObjectId

from hospital_meals.business import EntityType
from hospital_meals.business.exceptions import (
    DataValidationError,
    MalformedIdentifierError,
    ResourceNotFoundError,
    StoreFailureError,
)
from hospital_meals.business.queries import LISTING_SPECS, EntityQueryService
from hospital_meals.data.exceptions import TimeoutException


@pytest.fixture
def many_patients(orchestrator, patient_payload):
    names = ['Asha Verma', 'Bilal Khan', 'Chitra Rao', 'Dev Patel', 'Esha Nair']
    return [
        orchestrator.create(EntityType.PATIENT, patient_payload(
            patientName=name,
            roomNumber=str(100 + index),
            age=30 + index,
            gender='Male' if index % 2 else 'Female',
        ))
        for index, name in enumerate(names)
    ]


class TestGetById:

    def test_populates_references(self, queries, diet_plan, patient):
        record = queries.get_by_id(EntityType.DIET_PLAN, str(diet_plan['_id']))
        assert record['patientId'] == patient['_id']
        assert record['patient']['patientName'] == patient['patientName']

    def test_meal_preparation_view(self, queries, meal_preparation, pantry_staff):
        record = queries.get_by_id(EntityType.MEAL_PREPARATION, str(meal_preparation['_id']))
        assert record['dietPlan']['status'] == 'active'
        assert record['assignedStaff'][0]['staff']['name'] == pantry_staff['name']
        assert record['totalStaffAssigned'] == 1
        assert record['staffRoles'] == ['Kitchen Staff']

    def test_dangling_reference_populates_as_none(self, queries, orchestrator, diet_plan, patient):
        orchestrator.delete(EntityType.PATIENT, str(patient['_id']))
        record = queries.get_by_id(EntityType.DIET_PLAN, str(diet_plan['_id']))
        assert record['patient'] is None

    def test_not_found(self, queries):
        with pytest.raises(ResourceNotFoundError):
            queries.get_by_id(EntityType.PATIENT, str(ObjectId()))

    @pytest.mark.parametrize('raw_id', ['nope', 'a' * 24 + '\n'])
    def test_malformed(self, queries, raw_id):
        with pytest.raises(MalformedIdentifierError):
            queries.get_by_id(EntityType.PATIENT, raw_id)

    def test_populate_reports_store_failure(self, queries, store, meal_delivery, mocker):
        mocker.patch.object(store, 'find_many',
                            side_effect=TimeoutException("timed out", timeout_duration=2.0))
        with pytest.raises(StoreFailureError) as exc_info:
            queries.populate(EntityType.MEAL_DELIVERY, [meal_delivery])
        assert exc_info.value.http_status_code == 504
        assert exc_info.value.operation == 'populate'


class TestListRecords:

    def test_empty_collection_is_an_empty_page(self, queries):
        page = queries.list_records(EntityType.PATIENT, {})
        assert page.items == []
        assert page.total == 0
        assert (page.page, page.limit) == (1, 10)

    def test_pagination(self, queries, many_patients):
        page = queries.list_records(EntityType.PATIENT, {'page': '2', 'limit': '2',
                                                         'sortBy': 'patientName', 'order': 'asc'})
        assert [item['patientName'] for item in page.items] == ['Chitra Rao', 'Dev Patel']
        assert page.total == 5

    def test_page_past_the_end(self, queries, many_patients):
        page = queries.list_records(EntityType.PATIENT, {'page': '9'})
        assert page.items == []
        assert page.total == 5

    def test_search_is_case_insensitive(self, queries, many_patients):
        page = queries.list_records(EntityType.PATIENT, {'search': 'khan'})
        assert [item['patientName'] for item in page.items] == ['Bilal Khan']

    def test_search_is_literal(self, queries, many_patients):
        page = queries.list_records(EntityType.PATIENT, {'search': '.*'})
        assert page.total == 0

    def test_enum_filter(self, queries, many_patients):
        page = queries.list_records(EntityType.PATIENT, {'gender': 'Male'})
        assert page.total == 2

    def test_invalid_enum_filter(self, queries):
        with pytest.raises(DataValidationError) as exc_info:
            queries.list_records(EntityType.PATIENT, {'gender': 'male'})
        assert 'gender' in exc_info.value.field_errors

    def test_active_filter(self, queries, orchestrator, many_patients):
        orchestrator.update(EntityType.PATIENT, str(many_patients[0]['_id']),
                            {'dischargeDate': '2099-01-01'})
        assert queries.list_records(EntityType.PATIENT, {'active': 'true'}).total == 4
        assert queries.list_records(EntityType.PATIENT, {'active': 'false'}).total == 1

    def test_sort_field_whitelist(self, queries):
        with pytest.raises(DataValidationError) as exc_info:
            queries.list_records(EntityType.PATIENT, {'sortBy': 'contactInformation'})
        assert 'sortBy' in exc_info.value.field_errors

    def test_limit_above_maximum(self, queries):
        with pytest.raises(DataValidationError) as exc_info:
            queries.list_records(EntityType.PATIENT, {'limit': '101'})
        assert 'limit' in exc_info.value.field_errors

    def test_id_filter(self, queries, orchestrator, patient, diet_plan, diet_plan_payload,
                       patient_payload):
        other = orchestrator.create(EntityType.PATIENT, patient_payload(patientName='Other One'))
        orchestrator.create(EntityType.DIET_PLAN, diet_plan_payload(other['_id']))

        page = queries.list_records(EntityType.DIET_PLAN, {'patientId': str(patient['_id'])})
        assert [item['_id'] for item in page.items] == [diet_plan['_id']]

    def test_malformed_id_filter(self, queries):
        with pytest.raises(MalformedIdentifierError):
            queries.list_records(EntityType.DIET_PLAN, {'patientId': 'xyz'})

    def test_status_filter(self, queries, meal_preparation, advance_preparation):
        advance_preparation(meal_preparation, 'In Progress')
        assert queries.list_records(EntityType.MEAL_PREPARATION,
                                    {'status': 'In Progress'}).total == 1
        assert queries.list_records(EntityType.MEAL_PREPARATION,
                                    {'status': 'Not Started'}).total == 0

    def test_every_entity_has_a_listing(self):
        assert set(LISTING_SPECS) == set(EntityType)


class TestBuildQuery:

    def test_combines_filters_and_search(self):
        query = EntityQueryService.build_query(
            LISTING_SPECS[EntityType.PANTRY_STAFF],
            {'role': 'Kitchen Staff', 'search': 'ravi'},
            'ravi',
        )
        assert query == {'$and': [
            {'role': 'Kitchen Staff'},
            {'$or': [
                {'name': {'$regex': 'ravi', '$options': 'i'}},
                {'contactNumber': {'$regex': 'ravi', '$options': 'i'}},
                {'location': {'$regex': 'ravi', '$options': 'i'}},
            ]},
        ]}

    def test_blank_filters_are_ignored(self):
        query = EntityQueryService.build_query(
            LISTING_SPECS[EntityType.PANTRY_STAFF], {'role': ''}, None
        )
        assert query == {}


class TestDashboard:

    def test_stats(self, queries, meal_delivery, advance_preparation, meal_preparation):
        advance_preparation(meal_preparation, 'Completed')
        stats = queries.dashboard_stats()

        assert stats['totalPatients'] == 1
        assert stats['activePatients'] == 1
        assert stats['pantryStaffCount'] == 1
        assert stats['deliveryPersonCount'] == 1
        assert stats['preparationStatus'] == {
            'Not Started': 0, 'In Progress': 0, 'Completed': 1, 'Delivered': 0,
        }
        assert stats['deliveryStatus']['Pending'] == 1
        assert stats['mealTimeDistribution'] == {'Morning': 1, 'Evening': 0, 'Night': 0}

    def test_recent_deliveries_are_populated(self, queries, meal_delivery, delivery_person):
        recent = queries.recent_deliveries()
        assert len(recent) == 1
        assert recent[0]['deliveryPerson']['name'] == delivery_person['name']
        assert recent[0]['mealPreparation']['preparationStatus'] == 'Not Started'

    def test_recent_deliveries_limit_is_clamped(self, queries, store, mocker):
        find_many = mocker.spy(store, 'find_many')
        queries.recent_deliveries(500)
        assert find_many.call_args.kwargs['limit'] == 50
