"""
Read side: detail views, listings and dashboard figures.

Reads never go through the write orchestrator. They share its policies to
find collections and to populate referenced records with the same
projections the reference resolver returns. A dangling reference populates
as ``None`` instead of failing the read.
"""

import re
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import structlog
from pymongo import ASCENDING, DESCENDING

from hospital_meals.business.exceptions import (
    DataValidationError,
    ResourceNotFoundError,
    StoreFailureError,
)
from hospital_meals.business.policies import POLICIES, EntityType, get_policy
from hospital_meals.business.references import ReferenceResolver, object_ids_in, parse_object_id
from hospital_meals.business.validators import (
    DELIVERY_STATUSES,
    GENDERS,
    MEAL_TIMES,
    PREPARATION_STATUSES,
    STAFF_ROLES,
    ListQuerySchema,
    load_payload,
)
from hospital_meals.data.exceptions import DatabaseException, TimeoutException
from hospital_meals.data.mongodb import MongoDBManager

logger = structlog.get_logger(__name__)

FilterBuilder = Callable[[str], Dict[str, Any]]


@dataclass(frozen=True)
class ListingSpec:
    """
    Query parameters a listing endpoint understands for one entity.

    Attributes:
        search_fields: Fields matched case-insensitively by ``search``
        filters: Query parameter name -> builder of the Mongo filter for it
        sort_fields: Fields allowed in ``sortBy``
    """
    search_fields: Tuple[str, ...] = ()
    filters: Mapping[str, FilterBuilder] = field(default_factory=dict)
    sort_fields: Tuple[str, ...] = ('createdAt', 'updatedAt')


def _enum_filter(field_name: str, choices: Tuple[str, ...]) -> FilterBuilder:
    def build(value: str) -> Dict[str, Any]:
        if value not in choices:
            raise DataValidationError(
                message=f"Invalid {field_name} filter",
                field_errors={field_name: [f"Must be one of: {', '.join(choices)}."]},
            )
        return {field_name: value}
    return build


def _id_filter(field_name: str, param: str) -> FilterBuilder:
    def build(value: str) -> Dict[str, Any]:
        return {field_name: parse_object_id(value, param)}
    return build


def _exact_filter(field_name: str) -> FilterBuilder:
    def build(value: str) -> Dict[str, Any]:
        return {field_name: value}
    return build


def _active_filter(value: str) -> Dict[str, Any]:
    if value.lower() in ('true', '1', 'yes'):
        return {'dischargeDate': None}
    if value.lower() in ('false', '0', 'no'):
        return {'dischargeDate': {'$ne': None}}
    raise DataValidationError(
        message="Invalid active filter",
        field_errors={'active': ["Must be true or false."]},
    )


LISTING_SPECS: Dict[EntityType, ListingSpec] = {
    EntityType.PATIENT: ListingSpec(
        search_fields=('patientName', 'roomNumber', 'bedNumber', 'diseases', 'contactInformation'),
        filters={
            'gender': _enum_filter('gender', GENDERS),
            'floorNumber': _exact_filter('floorNumber'),
            'active': _active_filter,
        },
        sort_fields=('createdAt', 'updatedAt', 'patientName', 'age', 'admissionDate', 'roomNumber'),
    ),
    EntityType.DIET_PLAN: ListingSpec(
        filters={
            'patientId': _id_filter('patientId', 'patientId'),
            'mealTime': _enum_filter('meals.mealTime', MEAL_TIMES),
        },
    ),
    EntityType.PANTRY_STAFF: ListingSpec(
        search_fields=('name', 'contactNumber', 'location'),
        filters={
            'role': _enum_filter('role', STAFF_ROLES),
            'location': _exact_filter('location'),
        },
        sort_fields=('createdAt', 'updatedAt', 'name', 'location', 'role'),
    ),
    EntityType.DELIVERY_PERSON: ListingSpec(
        search_fields=('name', 'contactNumber'),
        sort_fields=('createdAt', 'updatedAt', 'name'),
    ),
    EntityType.MEAL_PREPARATION: ListingSpec(
        filters={
            'status': _enum_filter('preparationStatus', PREPARATION_STATUSES),
            'dietPlanId': _id_filter('dietPlanId', 'dietPlanId'),
            'staffId': _id_filter('assignedStaff.staffId', 'staffId'),
        },
        sort_fields=('createdAt', 'updatedAt', 'preparationStatus'),
    ),
    EntityType.MEAL_DELIVERY: ListingSpec(
        filters={
            'status': _enum_filter('deliveryStatus', DELIVERY_STATUSES),
            'deliveryPersonId': _id_filter('deliveryPersonId', 'deliveryPersonId'),
            'mealPreparationId': _id_filter('mealPreparationId', 'mealPreparationId'),
        },
        sort_fields=('createdAt', 'updatedAt', 'deliveryStatus', 'deliveryTime'),
    ),
}


@dataclass
class Page:
    items: List[Dict[str, Any]]
    page: int
    limit: int
    total: int


def store_errors_as_failures(func):
    """Report store errors from a read as ``StoreFailureError``."""
    @wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except DatabaseException as exc:
            raise StoreFailureError(
                operation=func.__name__,
                timeout=isinstance(exc, TimeoutException),
                cause=exc,
            ) from exc
    return wrapper


class EntityQueryService:
    """Detail, list and dashboard reads for every entity."""

    def __init__(self, store: MongoDBManager, resolver: Optional[ReferenceResolver] = None,
                 default_page_size: int = 10, max_page_size: int = 100):
        self.store = store
        self.resolver = resolver or ReferenceResolver(store)
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    @store_errors_as_failures
    def get_by_id(self, entity_type: EntityType, raw_id: Any) -> Dict[str, Any]:
        """
        Fetch one record with its references populated.

        Raises:
            MalformedIdentifierError: ``raw_id`` is not a valid identifier
            ResourceNotFoundError: No such record
        """
        policy = get_policy(entity_type)
        object_id = parse_object_id(raw_id, "id")
        record = self.store.find_by_id(policy.collection, object_id)
        if record is None:
            raise ResourceNotFoundError(policy.label, raw_id)
        return self.populate(entity_type, [record])[0]

    @store_errors_as_failures
    def list_records(self, entity_type: EntityType, params: Mapping[str, Any]) -> Page:
        """
        List records with pagination, search, filters and sorting.

        ``params`` is the raw query string mapping; unknown keys are ignored.
        """
        policy = get_policy(entity_type)
        spec = LISTING_SPECS[EntityType(entity_type)]
        options = load_payload(ListQuerySchema, dict(params), label="Query")

        if options['sortBy'] not in spec.sort_fields:
            raise DataValidationError(
                message="Invalid sort field",
                field_errors={'sortBy': [f"Must be one of: {', '.join(spec.sort_fields)}."]},
            )

        limit = options['limit'] or self.default_page_size
        if limit > self.max_page_size:
            raise DataValidationError(
                message="Invalid page size",
                field_errors={'limit': [f"Must be at most {self.max_page_size}."]},
            )

        query = self.build_query(spec, params, options.get('search'))
        page = options['page']
        direction = ASCENDING if options['order'] == 'asc' else DESCENDING

        total = self.store.count_documents(policy.collection, query)
        records = self.store.find_many(
            policy.collection,
            query,
            sort=[(options['sortBy'], direction), ('_id', direction)],
            skip=(page - 1) * limit,
            limit=limit,
        )

        logger.debug(
            "Listing served",
            entity=policy.entity_type.value,
            page=page,
            limit=limit,
            total=total,
        )
        return Page(items=self.populate(entity_type, records), page=page, limit=limit, total=total)

    @staticmethod
    def build_query(spec: ListingSpec, params: Mapping[str, Any],
                    search: Optional[str]) -> Dict[str, Any]:
        clauses: List[Dict[str, Any]] = []
        for name, builder in spec.filters.items():
            value = params.get(name)
            if value not in (None, ''):
                clauses.append(builder(value))

        if search and spec.search_fields:
            pattern = {'$regex': re.escape(search), '$options': 'i'}
            clauses.append({'$or': [{field_name: pattern} for field_name in spec.search_fields]})

        if not clauses:
            return {}
        if len(clauses) == 1:
            return clauses[0]
        return {'$and': clauses}

    @store_errors_as_failures
    def populate(self, entity_type: EntityType, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Attach referenced projections next to each stored id."""
        policy = get_policy(entity_type)
        records = [dict(record) for record in records]

        for rule in policy.references:
            found = self.resolver.lookup_many(rule.target, object_ids_in(records, rule))
            for record in records:
                if rule.item_key is None:
                    record[rule.populate_as] = found.get(record.get(rule.field))
                else:
                    record[rule.field] = [
                        {**item, rule.populate_as: found.get(item.get(rule.item_key))}
                        for item in record.get(rule.field) or []
                    ]

        if EntityType(entity_type) is EntityType.MEAL_PREPARATION:
            for record in records:
                assigned = record.get('assignedStaff') or []
                record['totalStaffAssigned'] = len(assigned)
                record['staffRoles'] = sorted({item.get('role') for item in assigned if item.get('role')})

        return records

    @store_errors_as_failures
    def dashboard_stats(self) -> Dict[str, Any]:
        patients = POLICIES[EntityType.PATIENT].collection
        preparations = POLICIES[EntityType.MEAL_PREPARATION].collection
        deliveries = POLICIES[EntityType.MEAL_DELIVERY].collection
        diet_plans = POLICIES[EntityType.DIET_PLAN].collection

        return {
            'totalPatients': self.store.count_documents(patients, {}),
            'activePatients': self.store.count_documents(patients, {'dischargeDate': None}),
            'pantryStaffCount': self.store.count_documents(
                POLICIES[EntityType.PANTRY_STAFF].collection, {}),
            'deliveryPersonCount': self.store.count_documents(
                POLICIES[EntityType.DELIVERY_PERSON].collection, {}),
            'preparationStatus': {
                status: self.store.count_documents(preparations, {'preparationStatus': status})
                for status in PREPARATION_STATUSES
            },
            'deliveryStatus': {
                status: self.store.count_documents(deliveries, {'deliveryStatus': status})
                for status in DELIVERY_STATUSES
            },
            'mealTimeDistribution': {
                meal_time: self.store.count_documents(diet_plans, {'meals.mealTime': meal_time})
                for meal_time in MEAL_TIMES
            },
        }

    @store_errors_as_failures
    def recent_deliveries(self, limit: int = 5) -> List[Dict[str, Any]]:
        limit = max(1, min(limit, 50))
        records = self.store.find_many(
            POLICIES[EntityType.MEAL_DELIVERY].collection,
            {},
            sort=[('updatedAt', DESCENDING), ('_id', DESCENDING)],
            limit=limit,
        )
        return self.populate(EntityType.MEAL_DELIVERY, records)
