"""
Field validators and per-operation input schemas.

Field validators are small rule objects: ``rule.check(value)`` returns
``None`` when the value is acceptable or a violation reason otherwise. They
have no side effects and know nothing about entities.

Input schemas are marshmallow schemas, one per accepted request shape. They
enumerate exactly the fields an operation accepts (unknown fields are
rejected) and apply the rules through ``RuleValidator``. Marshmallow
collects every violation of a payload before failing, and
``load_payload`` turns them into one ``DataValidationError``.
"""

import math
import numbers
import re
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Type

import structlog
from marshmallow import EXCLUDE, RAISE, Schema, ValidationError, fields, validate

from hospital_meals.business.exceptions import DataValidationError
from hospital_meals.utils.datetime_utils import DateParseError, parse_datetime, utc_now

logger = structlog.get_logger(__name__)

GENDERS = ("Male", "Female", "Other")
STAFF_ROLES = ("Pantry Staff", "Kitchen Staff", "Delivery Staff")
MEAL_TIMES = ("Morning", "Evening", "Night")
DIET_PLAN_STATUSES = ("active", "completed", "cancelled")
PREPARATION_STATUSES = ("Not Started", "In Progress", "Completed", "Delivered")
DELIVERY_STATUSES = ("Pending", "In-Transit", "Delivered", "Failed")

# Client clocks drift; an admission stamped "now" must not bounce.
FUTURE_TOLERANCE = timedelta(minutes=1)


# Field validators

class FieldRule:
    """A single constraint on one raw value."""

    def check(self, value: Any) -> Optional[str]:
        raise NotImplementedError


class PhoneNumberRule(FieldRule):
    PATTERN = re.compile(r'[0-9]{10}')

    def check(self, value):
        if not isinstance(value, str) or not self.PATTERN.fullmatch(value):
            return "Must be exactly 10 digits."
        return None


class LengthRule(FieldRule):
    def __init__(self, min_length: int, max_length: int):
        self.min_length = min_length
        self.max_length = max_length

    def check(self, value):
        if not isinstance(value, str):
            return "Not a valid string."
        if not self.min_length <= len(value.strip()) <= self.max_length:
            return f"Length must be between {self.min_length} and {self.max_length}."
        return None


class NotBlankRule(FieldRule):
    def check(self, value):
        if not isinstance(value, str) or not value.strip():
            return "Must not be blank."
        return None


class EnumRule(FieldRule):
    """Case-sensitive membership in a closed set."""

    def __init__(self, choices: Sequence[str]):
        self.choices = tuple(choices)

    def check(self, value):
        if value not in self.choices:
            return f"Must be one of: {', '.join(self.choices)}."
        return None


class PositiveRule(FieldRule):
    def check(self, value):
        if isinstance(value, bool) or not isinstance(value, numbers.Real):
            return "Not a valid number."
        if not math.isfinite(value):
            return "Not a valid number."
        if not value > 0:
            return "Must be greater than 0."
        return None


class MinItemsRule(FieldRule):
    def __init__(self, min_items: int = 1):
        self.min_items = min_items

    def check(self, value):
        if not isinstance(value, (list, tuple)) or len(value) < self.min_items:
            return f"Must contain at least {self.min_items} item{'s' if self.min_items != 1 else ''}."
        return None


def check_field(value: Any, rule: FieldRule) -> Optional[str]:
    """Apply ``rule`` to ``value``; ``None`` means valid."""
    return rule.check(value)


def check_date_order(start: Optional[datetime], end: Optional[datetime]) -> Optional[str]:
    if start is None or end is None:
        return None
    if end < start:
        return "Must not be earlier than the admission date."
    return None


def check_not_future(value: Optional[datetime], now: Optional[datetime] = None) -> Optional[str]:
    if value is None:
        return None
    now = now or utc_now()
    if value > now + FUTURE_TOLERANCE:
        return "Must not be in the future."
    return None


class RuleValidator(validate.Validator):
    """Adapter running a ``FieldRule`` as a marshmallow validator."""

    def __init__(self, rule: FieldRule):
        self.rule = rule

    def __call__(self, value):
        reason = self.rule.check(value)
        if reason:
            raise ValidationError(reason)
        return value


PHONE = RuleValidator(PhoneNumberRule())
NAME_LENGTH = RuleValidator(LengthRule(2, 50))
NOT_BLANK = RuleValidator(NotBlankRule())
POSITIVE = RuleValidator(PositiveRule())
AT_LEAST_ONE = RuleValidator(MinItemsRule(1))


# Custom fields

class TrimmedString(fields.String):
    """String field stripping surrounding whitespace."""

    def _deserialize(self, value, attr, data, **kwargs):
        result = super()._deserialize(value, attr, data, **kwargs)
        return result.strip()


class NumberField(fields.Field):
    """Finite int or float, kept as sent; booleans, numeric strings, NaN and
    infinities are rejected."""

    default_error_messages = {"invalid": "Not a valid number."}

    def _deserialize(self, value, attr, data, **kwargs):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise self.make_error("invalid")
        if not math.isfinite(value):
            raise self.make_error("invalid")
        return value


class TimestampField(fields.Field):
    """ISO 8601 date or datetime, loaded as naive UTC."""

    default_error_messages = {"invalid": "Not a valid datetime."}

    def _deserialize(self, value, attr, data, **kwargs):
        try:
            return parse_datetime(value)
        except DateParseError as exc:
            raise self.make_error("invalid") from exc


# Input schemas

class BaseInputSchema(Schema):
    """Base for every request payload; unknown fields are rejected."""

    class Meta:
        unknown = RAISE


class PatientSchema(BaseInputSchema):
    patientName = TrimmedString(required=True, validate=NAME_LENGTH)
    diseases = fields.List(TrimmedString(validate=NOT_BLANK), required=True)
    allergies = fields.List(TrimmedString(validate=NOT_BLANK), required=True)
    roomNumber = TrimmedString(required=True, validate=NOT_BLANK)
    bedNumber = TrimmedString(required=True, validate=NOT_BLANK)
    floorNumber = TrimmedString(required=True, validate=NOT_BLANK)
    age = fields.Integer(required=True, strict=True, validate=POSITIVE)
    gender = fields.String(required=True, validate=RuleValidator(EnumRule(GENDERS)))
    contactInformation = fields.String(required=True, validate=PHONE)
    emergencyContact = fields.String(required=True, validate=PHONE)
    additionalDetails = TrimmedString()
    admissionDate = TimestampField()
    dischargeDate = TimestampField(allow_none=True)


class MealItemSchema(BaseInputSchema):
    name = TrimmedString(required=True, validate=NOT_BLANK)
    ingredients = fields.List(TrimmedString(validate=NOT_BLANK), required=True,
                              validate=AT_LEAST_ONE)
    calories = NumberField(required=True, validate=POSITIVE)


class MealSchema(BaseInputSchema):
    mealTime = fields.String(required=True, validate=RuleValidator(EnumRule(MEAL_TIMES)))
    mealItems = fields.List(fields.Nested(MealItemSchema), required=True, validate=AT_LEAST_ONE)
    specificInstructions = TrimmedString(load_default='')


class DietPlanSchema(BaseInputSchema):
    patientId = fields.String(required=True)
    meals = fields.List(fields.Nested(MealSchema), required=True, validate=AT_LEAST_ONE)
    status = fields.String(validate=RuleValidator(EnumRule(DIET_PLAN_STATUSES)))


class PantryStaffSchema(BaseInputSchema):
    name = TrimmedString(required=True, validate=NAME_LENGTH)
    contactNumber = fields.String(required=True, validate=PHONE)
    location = TrimmedString(required=True, validate=NOT_BLANK)
    role = fields.String(validate=RuleValidator(EnumRule(STAFF_ROLES)))


class DeliveryPersonSchema(BaseInputSchema):
    name = TrimmedString(required=True, validate=NAME_LENGTH)
    contactNumber = fields.String(required=True, validate=PHONE)


class AssignedStaffSchema(BaseInputSchema):
    staffId = fields.String(required=True)
    role = fields.String(required=True, validate=RuleValidator(EnumRule(STAFF_ROLES)))


class MealPreparationCreateSchema(BaseInputSchema):
    dietPlanId = fields.String(required=True)
    assignedStaff = fields.List(fields.Nested(AssignedStaffSchema), required=True,
                                validate=AT_LEAST_ONE)


class MealPreparationUpdateSchema(BaseInputSchema):
    assignedStaff = fields.List(fields.Nested(AssignedStaffSchema), validate=AT_LEAST_ONE)
    preparationStatus = fields.String(validate=RuleValidator(EnumRule(PREPARATION_STATUSES)))


class MealPreparationStatusSchema(BaseInputSchema):
    preparationStatus = fields.String(required=True,
                                      validate=RuleValidator(EnumRule(PREPARATION_STATUSES)))


class MealDeliveryCreateSchema(BaseInputSchema):
    mealPreparationId = fields.String(required=True)
    deliveryPersonId = fields.String(required=True)
    deliveryNotes = TrimmedString()


class MealDeliveryUpdateSchema(BaseInputSchema):
    deliveryPersonId = fields.String()
    deliveryStatus = fields.String(validate=RuleValidator(EnumRule(DELIVERY_STATUSES)))
    deliveryTime = TimestampField()
    deliveryNotes = TrimmedString()


class DeliveryStatusSchema(BaseInputSchema):
    deliveryStatus = fields.String(required=True,
                                   validate=RuleValidator(EnumRule(DELIVERY_STATUSES)))
    deliveryNotes = TrimmedString()


class ListQuerySchema(Schema):
    """Pagination, search and sort parameters of listing endpoints."""

    class Meta:
        unknown = EXCLUDE

    page = fields.Integer(load_default=1, validate=validate.Range(min=1))
    limit = fields.Integer(load_default=None, validate=validate.Range(min=1))
    search = TrimmedString(load_default=None)
    sortBy = fields.String(load_default='createdAt')
    order = fields.String(load_default='desc', validate=validate.OneOf(('asc', 'desc')))


# Record level invariants, checked on the record as it would be stored

def patient_dates_invariant(record: Mapping[str, Any]) -> Dict[str, List[str]]:
    errors: Dict[str, List[str]] = {}
    admission = record.get('admissionDate')
    reason = check_not_future(admission)
    if reason:
        errors['admissionDate'] = [reason]
    reason = check_date_order(admission, record.get('dischargeDate'))
    if reason:
        errors['dischargeDate'] = [reason]
    return errors


def delivery_time_invariant(record: Mapping[str, Any]) -> Dict[str, List[str]]:
    delivered = record.get('deliveryStatus') == 'Delivered'
    has_time = record.get('deliveryTime') is not None
    if delivered and not has_time:
        return {'deliveryTime': ["Required when the delivery status is Delivered."]}
    if has_time and not delivered:
        return {'deliveryTime': ["Only allowed when the delivery status is Delivered."]}
    return {}


# Loading

def flatten_errors(messages: Any, prefix: str = '') -> Dict[str, List[str]]:
    """
    Flatten marshmallow's nested error messages into dotted paths.

    ``{'meals': {0: {'mealItems': ['...']}}}`` becomes
    ``{'meals.0.mealItems': ['...']}``.
    """
    flat: Dict[str, List[str]] = {}
    if isinstance(messages, dict):
        for key, value in messages.items():
            path = f"{prefix}.{key}" if prefix else str(key)
            flat.update(flatten_errors(value, path))
    elif isinstance(messages, (list, tuple)):
        if all(isinstance(item, str) for item in messages):
            flat[prefix or '_schema'] = list(messages)
        else:
            for item in messages:
                flat.update(flatten_errors(item, prefix))
    else:
        flat[prefix or '_schema'] = [str(messages)]
    return flat


def load_payload(schema_class: Type[Schema], payload: Any, partial: bool = False,
                 label: str = "Request") -> Dict[str, Any]:
    """
    Validate ``payload`` against ``schema_class`` and return the loaded data.

    With ``partial`` only the fields present are validated, but nested
    documents that are present are still validated in full.

    Raises:
        DataValidationError: With every violation found, keyed by field path
    """
    schema = schema_class()
    partial_fields: Any = tuple(schema.fields) if partial else False
    try:
        return schema.load(payload if payload is not None else {}, partial=partial_fields)
    except ValidationError as exc:
        field_errors = flatten_errors(exc.messages)
        logger.info(
            "Payload validation failed",
            schema=schema_class.__name__,
            fields=sorted(field_errors),
        )
        raise DataValidationError(
            message=f"{label} validation failed",
            field_errors=field_errors,
            cause=exc,
        ) from exc


def collect_invariant_errors(record: Mapping[str, Any],
                             invariants: Iterable) -> Dict[str, List[str]]:
    errors: Dict[str, List[str]] = {}
    for invariant in invariants:
        for field_name, messages in invariant(record).items():
            errors.setdefault(field_name, []).extend(messages)
    return errors
