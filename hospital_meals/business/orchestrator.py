"""
Write orchestrator.

Every create, update and delete in the service goes through
``WriteOrchestrator.mutate``. A mutation runs as an ordered pipeline of
steps over a ``WriteContext``; each step either enriches the context or
raises a business exception, which ends the pipeline. Only the last step
writes, and it issues exactly one store call, so a failed mutation leaves the
store untouched.

Pipelines:
    create: validate -> invariants -> references -> uniqueness -> insert
    update: load -> validate -> references -> uniqueness -> status -> invariants -> update
    delete: load -> delete guard -> delete

Uniqueness pre-checks are a fast path only. The unique indexes created at
startup are authoritative, and a duplicate-key rejection at write time is
reported as ``UniquenessConflictError`` as well.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

import structlog
from bson import ObjectId

from hospital_meals.business.exceptions import (
    BaseBusinessException,
    DataValidationError,
    InvalidStatusTransitionError,
    ResourceNotFoundError,
    StoreFailureError,
    TerminalStateGuardError,
    UniquenessConflictError,
)
from hospital_meals.business.policies import EntityPolicy, EntityType, SchemaVariant, get_policy
from hospital_meals.business.references import ReferenceResolver, parse_object_id
from hospital_meals.business.status import Transition, check_transition
from hospital_meals.business.validators import collect_invariant_errors, load_payload
from hospital_meals.data.exceptions import DatabaseException, DuplicateKeyException, TimeoutException
from hospital_meals.data.mongodb import MongoDBManager
from hospital_meals.monitoring.metrics import WRITE_DURATION, WRITE_OPERATIONS
from hospital_meals.utils.datetime_utils import utc_now

logger = structlog.get_logger(__name__)


class Operation(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class WriteContext:
    """State threaded through one pipeline run."""
    policy: EntityPolicy
    operation: Operation
    variant: SchemaVariant
    payload: Any = None
    raw_target_id: Any = None
    stamp_now: bool = False
    target_id: Optional[ObjectId] = None
    current: Optional[Dict[str, Any]] = None
    data: Dict[str, Any] = field(default_factory=dict)
    changes: Dict[str, Any] = field(default_factory=dict)
    references: Dict[str, Any] = field(default_factory=dict)
    transition: Optional[Transition] = None
    result: Optional[Dict[str, Any]] = None


Step = Callable[[WriteContext], None]


class WriteOrchestrator:
    """Single choke point for all mutations."""

    def __init__(self, store: MongoDBManager, resolver: Optional[ReferenceResolver] = None):
        self.store = store
        self.resolver = resolver or ReferenceResolver(store)
        self.pipelines: Dict[Operation, Tuple[Step, ...]] = {
            Operation.CREATE: (
                self._validate_payload,
                self._check_invariants,
                self._resolve_references,
                self._check_uniqueness,
                self._persist_create,
            ),
            Operation.UPDATE: (
                self._load_target,
                self._validate_payload,
                self._resolve_references,
                self._check_uniqueness,
                self._check_status_transition,
                self._check_invariants,
                self._persist_update,
            ),
            Operation.DELETE: (
                self._load_target,
                self._check_delete_guard,
                self._persist_delete,
            ),
        }

    def mutate(self, entity_type: EntityType, operation: Operation, payload: Any = None,
               target_id: Any = None, variant: Optional[SchemaVariant] = None,
               stamp_now: bool = False) -> Dict[str, Any]:
        """
        Run one mutation and return the stored record.

        For deletes the returned record is the snapshot taken at deletion.

        Args:
            entity_type: Entity to mutate
            operation: create, update or delete
            payload: Request body; ignored for deletes
            target_id: Id of the record to update or delete
            variant: Input shape to validate against; defaults to the
                operation's own (``STATUS`` selects the status-only shape)
            stamp_now: Supply the current time as the terminal-transition
                timestamp instead of requiring it in the payload

        Raises:
            BaseBusinessException: Any of the business error kinds; no store
                mutation has happened when one is raised
        """
        operation = Operation(operation)
        policy = get_policy(entity_type)
        if variant is None:
            variant = SchemaVariant.CREATE if operation is Operation.CREATE else SchemaVariant.UPDATE

        ctx = WriteContext(
            policy=policy,
            operation=operation,
            variant=SchemaVariant(variant),
            payload=payload,
            raw_target_id=target_id,
            stamp_now=stamp_now,
        )

        start_time = time.perf_counter()
        outcome = "error"
        try:
            for step in self.pipelines[operation]:
                step(ctx)
                logger.debug(
                    "Pipeline step completed",
                    entity=policy.entity_type.value,
                    operation=operation.value,
                    step=step.__name__.lstrip('_'),
                )
            outcome = "success"
        except BaseBusinessException as exc:
            outcome = exc.kind
            raise
        except DatabaseException as exc:
            outcome = StoreFailureError.kind
            raise StoreFailureError(
                operation=f"{policy.entity_type.value}.{operation.value}",
                timeout=isinstance(exc, TimeoutException),
                cause=exc,
            ) from exc
        finally:
            WRITE_OPERATIONS.labels(
                entity=policy.entity_type.value,
                operation=operation.value,
                outcome=outcome,
            ).inc()
            WRITE_DURATION.labels(
                entity=policy.entity_type.value,
                operation=operation.value,
            ).observe(time.perf_counter() - start_time)

        logger.info(
            "Write completed",
            entity=policy.entity_type.value,
            operation=operation.value,
            record_id=str(ctx.result['_id']),
            status_changed=bool(ctx.transition and ctx.transition.changed),
        )
        return ctx.result

    def create(self, entity_type: EntityType, payload: Any) -> Dict[str, Any]:
        return self.mutate(entity_type, Operation.CREATE, payload)

    def update(self, entity_type: EntityType, target_id: Any, payload: Any) -> Dict[str, Any]:
        return self.mutate(entity_type, Operation.UPDATE, payload, target_id)

    def update_status(self, entity_type: EntityType, target_id: Any, payload: Any,
                      stamp_now: bool = False) -> Dict[str, Any]:
        return self.mutate(entity_type, Operation.UPDATE, payload, target_id,
                           variant=SchemaVariant.STATUS, stamp_now=stamp_now)

    def delete(self, entity_type: EntityType, target_id: Any) -> Dict[str, Any]:
        return self.mutate(entity_type, Operation.DELETE, target_id=target_id)

    # Pipeline steps

    def _load_target(self, ctx: WriteContext) -> None:
        ctx.target_id = parse_object_id(ctx.raw_target_id, "id")
        ctx.current = self.store.find_by_id(ctx.policy.collection, ctx.target_id)
        if ctx.current is None:
            raise ResourceNotFoundError(ctx.policy.label, ctx.raw_target_id)

    def _validate_payload(self, ctx: WriteContext) -> None:
        schema_class, partial = ctx.policy.schema_for(ctx.variant)
        ctx.data = load_payload(schema_class, ctx.payload, partial=partial,
                                label=ctx.policy.label)
        if ctx.operation is Operation.UPDATE and not ctx.data:
            raise DataValidationError(
                message="No fields provided for update",
                error_code="EMPTY_UPDATE",
            )

        if ctx.operation is Operation.CREATE:
            ctx.changes = ctx.policy.initial_document()
        ctx.changes.update(ctx.data)

    def _check_invariants(self, ctx: WriteContext) -> None:
        if not ctx.policy.invariants:
            return
        record = dict(ctx.current or {})
        record.update(ctx.changes)
        errors = collect_invariant_errors(record, ctx.policy.invariants)
        if errors:
            raise DataValidationError(
                message=f"{ctx.policy.label} validation failed",
                field_errors=errors,
            )

    def _resolve_references(self, ctx: WriteContext) -> None:
        for rule in ctx.policy.references:
            resolved = self.resolver.resolve_rule(rule, ctx.data)
            if resolved is None:
                continue
            ctx.references[rule.populate_as] = resolved
            if rule.item_key is None:
                ctx.changes[rule.field] = resolved['_id']
            else:
                ctx.changes[rule.field] = [
                    {**item, rule.item_key: record['_id']}
                    for item, record in zip(ctx.data[rule.field], resolved)
                ]

    def _check_uniqueness(self, ctx: WriteContext) -> None:
        for rule in ctx.policy.unique_fields:
            if rule.field not in ctx.data:
                continue
            value = ctx.data[rule.field]
            query: Dict[str, Any] = {rule.field: value}
            if ctx.current is not None:
                if ctx.current.get(rule.field) == value:
                    continue
                query['_id'] = {'$ne': ctx.target_id}

            scope = get_policy(rule.scope)
            if self.store.find_one(scope.collection, query, ('_id',)) is not None:
                raise UniquenessConflictError(
                    resource_type=scope.label.lower(),
                    field=rule.field,
                    context={'source': 'precheck'},
                )

    def _check_status_transition(self, ctx: WriteContext) -> None:
        order = ctx.policy.status
        if order is None or order.field not in ctx.data:
            return

        requested = ctx.data[order.field]
        timestamp = None
        if order.stamp_automatically or ctx.stamp_now:
            timestamp = utc_now()
        elif order.timestamp_field in ctx.data:
            timestamp = ctx.data[order.timestamp_field]

        ctx.transition = check_transition(order, ctx.current.get(order.field), requested, timestamp)
        if not ctx.transition.changed:
            return

        stamped_at = timestamp or utc_now()
        history_key = order.history_key(requested)
        if history_key:
            ctx.changes[history_key] = stamped_at
        if order.is_terminal(requested) and order.timestamp_field:
            ctx.changes.setdefault(order.timestamp_field, stamped_at)

    def _check_delete_guard(self, ctx: WriteContext) -> None:
        order = ctx.policy.status
        if order is None or not ctx.policy.delete_guard:
            return
        status = ctx.current.get(order.field)
        if status in ctx.policy.delete_guard:
            raise TerminalStateGuardError(
                message=f"Cannot delete a {ctx.policy.label.lower()} that is {status}",
                status=status,
                field=order.field,
            )

    def _persist_create(self, ctx: WriteContext) -> None:
        try:
            ctx.result = self.store.insert_one(ctx.policy.collection, ctx.changes)
        except DuplicateKeyException as exc:
            raise self._conflict_from_store(ctx, exc) from exc

    def _persist_update(self, ctx: WriteContext) -> None:
        query: Dict[str, Any] = {'_id': ctx.target_id}
        if ctx.transition is not None:
            # Fails the write if another request moved the status meanwhile
            query[ctx.policy.status.field] = ctx.transition.current

        try:
            ctx.result = self.store.find_one_and_update(ctx.policy.collection, query, ctx.changes)
        except DuplicateKeyException as exc:
            raise self._conflict_from_store(ctx, exc) from exc

        if ctx.result is None:
            if ctx.transition is not None:
                raise InvalidStatusTransitionError(
                    message=f"{ctx.policy.label} status was changed by another request",
                    current_status=ctx.transition.current,
                    requested_status=ctx.transition.requested,
                    field=ctx.policy.status.field,
                    error_code="STATUS_CHANGED_CONCURRENTLY",
                )
            raise ResourceNotFoundError(ctx.policy.label, ctx.raw_target_id)

    def _persist_delete(self, ctx: WriteContext) -> None:
        ctx.result = self.store.find_one_and_delete(ctx.policy.collection, {'_id': ctx.target_id})
        if ctx.result is None:
            raise ResourceNotFoundError(ctx.policy.label, ctx.raw_target_id)

    def _conflict_from_store(self, ctx: WriteContext,
                             exc: DuplicateKeyException) -> UniquenessConflictError:
        fields: List[str] = exc.fields or [rule.field for rule in ctx.policy.unique_fields]
        return UniquenessConflictError(
            resource_type=ctx.policy.label.lower(),
            field=fields[0] if fields else 'unknown',
            context={'source': 'unique_index'},
            cause=exc,
        )
