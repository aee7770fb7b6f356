"""
Reference resolver.

Verifies that a foreign key names an existing record and returns a minimal
projection of it. Malformed ids and ids that resolve to nothing are distinct
errors: ``MalformedIdentifierError`` versus ``ReferenceNotFoundError``.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional

import structlog
from bson import ObjectId

from hospital_meals.business.exceptions import (
    MalformedIdentifierError,
    ReferenceNotFoundError,
    TerminalStateGuardError,
)
from hospital_meals.business.policies import EntityType, ReferenceRule, get_policy
from hospital_meals.data.mongodb import MongoDBManager, is_valid_object_id

logger = structlog.get_logger(__name__)


def parse_object_id(value: Any, field: str = "id") -> ObjectId:
    """
    Convert an API identifier into an ObjectId.

    Only 24 character hex strings are accepted, the exact format every
    response carries under ``_id``.
    """
    if isinstance(value, ObjectId):
        return value
    if not is_valid_object_id(value):
        raise MalformedIdentifierError(field=field, value=value)
    return ObjectId(value)


class ReferenceResolver:
    """Read-only foreign key checks against the store."""

    def __init__(self, store: MongoDBManager):
        self.store = store

    def resolve(self, field: str, raw_id: Any, target: EntityType) -> Dict[str, Any]:
        """
        Resolve one foreign key.

        Returns:
            The target's projection, always including ``_id``

        Raises:
            MalformedIdentifierError: ``raw_id`` is not a valid identifier
            ReferenceNotFoundError: No ``target`` record has that id
        """
        object_id = parse_object_id(raw_id, field)
        policy = get_policy(target)
        record = self.store.find_by_id(policy.collection, object_id, policy.projection)
        if record is None:
            raise ReferenceNotFoundError(field=field, target=policy.label, reference_id=raw_id)
        return record

    def resolve_rule(self, rule: ReferenceRule, payload: Mapping[str, Any]) -> Optional[Any]:
        """
        Resolve the reference ``rule`` declares, if the payload carries it.

        Returns ``None`` when the field is absent. For a single id, returns the
        projection; for an embedded list, returns projections in list order.
        Resolution stops at the first failing element, naming its index.
        """
        if rule.field not in payload:
            return None

        if rule.item_key is None:
            record = self.resolve(rule.field, payload[rule.field], rule.target)
            self._check_active(rule, record)
            return record

        resolved = []
        for index, item in enumerate(payload[rule.field]):
            field_path = f"{rule.field}.{index}.{rule.item_key}"
            record = self.resolve(field_path, item[rule.item_key], rule.target)
            self._check_active(rule, record)
            resolved.append(record)
        return resolved

    def lookup_many(self, target: EntityType, ids: Iterable[Any]) -> Dict[ObjectId, Dict[str, Any]]:
        """
        Fetch projections for ``ids`` in one query, keyed by ObjectId.

        Used to populate read views; unknown or malformed ids are skipped.
        """
        object_ids = list({oid for oid in ids if isinstance(oid, ObjectId)})
        if not object_ids:
            return {}
        policy = get_policy(target)
        records = self.store.find_many(
            policy.collection, {'_id': {'$in': object_ids}}, policy.projection
        )
        return {record['_id']: record for record in records}

    def _check_active(self, rule: ReferenceRule, record: Mapping[str, Any]) -> None:
        if rule.inactive_field and record.get(rule.inactive_field) in rule.inactive_values:
            raise TerminalStateGuardError(
                message=f"Cannot reference a {record.get(rule.inactive_field)} "
                        f"{get_policy(rule.target).label.lower()}",
                status=record.get(rule.inactive_field),
                field=rule.field,
            )


def object_ids_in(records: List[Mapping[str, Any]], rule: ReferenceRule) -> List[ObjectId]:
    """Collect the ids ``rule`` points at across ``records``."""
    ids = []
    for record in records:
        value = record.get(rule.field)
        if rule.item_key is None:
            ids.append(value)
        else:
            ids.extend(item.get(rule.item_key) for item in value or ())
    return ids
