"""
Entity policies.

One ``EntityPolicy`` per entity type declares everything the write
orchestrator needs to know about that entity: its collection, which input
schema each operation uses, which foreign keys must resolve, which fields are
unique and in what scope, its status order and delete guard, initial values
and record level invariants. The orchestrator itself holds no entity names.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Tuple, Type

from marshmallow import Schema

from hospital_meals.business import validators as v
from hospital_meals.business.status import (
    DELIVERY_STATUS_ORDER,
    PREPARATION_STATUS_ORDER,
    StatusOrder,
)
from hospital_meals.data.mongodb import IndexSpec
from hospital_meals.utils.datetime_utils import utc_now

Invariant = Callable[[Mapping[str, Any]], Dict[str, List[str]]]


class EntityType(str, Enum):
    PATIENT = "patient"
    DIET_PLAN = "diet_plan"
    PANTRY_STAFF = "pantry_staff"
    DELIVERY_PERSON = "delivery_person"
    MEAL_PREPARATION = "meal_preparation"
    MEAL_DELIVERY = "meal_delivery"


class SchemaVariant(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    STATUS = "status"


@dataclass(frozen=True)
class ReferenceRule:
    """
    A foreign key that must resolve before the write.

    ``item_key`` marks a list of embedded documents each holding one id
    (``assignedStaff[].staffId``); every element must resolve.
    ``inactive_field``/``inactive_values`` reject a referenced record that
    exists but is in a closed state.
    """
    field: str
    target: EntityType
    populate_as: str
    item_key: Optional[str] = None
    inactive_field: Optional[str] = None
    inactive_values: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class UniqueRule:
    field: str
    scope: EntityType


@dataclass(frozen=True)
class EntityPolicy:
    entity_type: EntityType
    label: str
    collection: str
    create_schema: Type[Schema]
    update_schema: Type[Schema]
    status_schema: Optional[Type[Schema]] = None
    projection: Tuple[str, ...] = ()
    references: Tuple[ReferenceRule, ...] = ()
    unique_fields: Tuple[UniqueRule, ...] = ()
    status: Optional[StatusOrder] = None
    delete_guard: FrozenSet[str] = frozenset()
    initial_values: Mapping[str, Any] = field(default_factory=dict)
    invariants: Tuple[Invariant, ...] = ()

    def schema_for(self, variant: SchemaVariant) -> Tuple[Type[Schema], bool]:
        """Return ``(schema_class, partial)`` for a payload variant."""
        if variant is SchemaVariant.CREATE:
            return self.create_schema, False
        if variant is SchemaVariant.STATUS:
            if self.status_schema is None:
                raise ValueError(f"{self.label} has no status schema")
            return self.status_schema, False
        return self.update_schema, True

    def initial_document(self) -> Dict[str, Any]:
        return {
            key: value() if callable(value) else value
            for key, value in self.initial_values.items()
        }


POLICIES: Dict[EntityType, EntityPolicy] = {
    EntityType.PATIENT: EntityPolicy(
        entity_type=EntityType.PATIENT,
        label="Patient",
        collection="patient_details",
        create_schema=v.PatientSchema,
        update_schema=v.PatientSchema,
        projection=("patientName", "age", "gender", "roomNumber", "bedNumber"),
        initial_values={
            'admissionDate': utc_now,
            'dischargeDate': None,
            'additionalDetails': '',
        },
        invariants=(v.patient_dates_invariant,),
    ),
    EntityType.DIET_PLAN: EntityPolicy(
        entity_type=EntityType.DIET_PLAN,
        label="Diet plan",
        collection="diet_plans",
        create_schema=v.DietPlanSchema,
        update_schema=v.DietPlanSchema,
        projection=("patientId", "meals", "status"),
        references=(
            ReferenceRule(field="patientId", target=EntityType.PATIENT, populate_as="patient"),
        ),
        initial_values={'status': 'active'},
    ),
    EntityType.PANTRY_STAFF: EntityPolicy(
        entity_type=EntityType.PANTRY_STAFF,
        label="Pantry staff",
        collection="pantry_staff",
        create_schema=v.PantryStaffSchema,
        update_schema=v.PantryStaffSchema,
        projection=("name", "role", "contactNumber"),
        unique_fields=(UniqueRule(field="contactNumber", scope=EntityType.PANTRY_STAFF),),
        initial_values={'role': 'Pantry Staff'},
    ),
    EntityType.DELIVERY_PERSON: EntityPolicy(
        entity_type=EntityType.DELIVERY_PERSON,
        label="Delivery person",
        collection="delivery_persons",
        create_schema=v.DeliveryPersonSchema,
        update_schema=v.DeliveryPersonSchema,
        projection=("name", "contactNumber"),
        unique_fields=(UniqueRule(field="contactNumber", scope=EntityType.DELIVERY_PERSON),),
    ),
    EntityType.MEAL_PREPARATION: EntityPolicy(
        entity_type=EntityType.MEAL_PREPARATION,
        label="Meal preparation",
        collection="meal_preparations",
        create_schema=v.MealPreparationCreateSchema,
        update_schema=v.MealPreparationUpdateSchema,
        status_schema=v.MealPreparationStatusSchema,
        projection=("dietPlanId", "preparationStatus"),
        references=(
            ReferenceRule(
                field="dietPlanId",
                target=EntityType.DIET_PLAN,
                populate_as="dietPlan",
                inactive_field="status",
                inactive_values=frozenset({"cancelled", "completed"}),
            ),
            ReferenceRule(
                field="assignedStaff",
                item_key="staffId",
                target=EntityType.PANTRY_STAFF,
                populate_as="staff",
            ),
        ),
        status=PREPARATION_STATUS_ORDER,
        delete_guard=frozenset({"Completed", "Delivered"}),
        initial_values={'preparationStatus': 'Not Started', 'statusHistory': dict},
    ),
    EntityType.MEAL_DELIVERY: EntityPolicy(
        entity_type=EntityType.MEAL_DELIVERY,
        label="Meal delivery",
        collection="meal_deliveries",
        create_schema=v.MealDeliveryCreateSchema,
        update_schema=v.MealDeliveryUpdateSchema,
        status_schema=v.DeliveryStatusSchema,
        projection=("mealPreparationId", "deliveryPersonId", "deliveryStatus"),
        references=(
            ReferenceRule(field="mealPreparationId", target=EntityType.MEAL_PREPARATION,
                          populate_as="mealPreparation"),
            ReferenceRule(field="deliveryPersonId", target=EntityType.DELIVERY_PERSON,
                          populate_as="deliveryPerson"),
        ),
        status=DELIVERY_STATUS_ORDER,
        initial_values={'deliveryStatus': 'Pending', 'deliveryTime': None, 'deliveryNotes': ''},
        invariants=(v.delivery_time_invariant,),
    ),
}


def get_policy(entity_type: EntityType) -> EntityPolicy:
    return POLICIES[EntityType(entity_type)]


def unique_index_specs() -> List[IndexSpec]:
    """Unique indexes backing every uniqueness rule."""
    specs = []
    for policy in POLICIES.values():
        for rule in policy.unique_fields:
            specs.append(IndexSpec(POLICIES[rule.scope].collection, rule.field, unique=True))
    return specs
