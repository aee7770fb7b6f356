"""Conversion of stored MongoDB documents into JSON compatible structures."""

from datetime import datetime
from typing import Any

from bson import ObjectId

from hospital_meals.utils.datetime_utils import to_iso


def to_json_compatible(value: Any) -> Any:
    """
    Recursively convert BSON values for JSON output.

    ObjectIds become their 24 character hex string, the same format the API
    accepts back as an identifier. Datetimes become ISO 8601 strings.
    """
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return to_iso(value)
    if isinstance(value, dict):
        return {key: to_json_compatible(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_compatible(item) for item in value]
    return value
