"""
Forward-only status machine.

Each status-bearing entity declares a ``StatusOrder``: its status values in
rank order, the terminal values, and where the timestamp that must accompany
a terminal transition lives. ``check_transition`` is the one place that
decides whether a status change is allowed. It never writes.

Rules:
    - A terminal status is frozen. Any requested status, including the same
      one, is rejected.
    - Requesting the current status is an idempotent no-op.
    - Otherwise the requested rank must not be lower than the current rank.
    - Entering a terminal status requires a timestamp.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import FrozenSet, Optional, Tuple

from hospital_meals.business.exceptions import DataValidationError, InvalidStatusTransitionError


@dataclass(frozen=True)
class StatusOrder:
    """
    Ordered status enum for one entity type.

    Attributes:
        field: Name of the status field on the record
        values: Status values, lowest rank first
        terminal: Values from which no transition is permitted
        timestamp_field: Field carrying the terminal-transition timestamp
        stamp_automatically: Whether the service supplies that timestamp itself
            instead of requiring it from the caller
        history_field: Embedded document stamped with ``<status>At`` on every
            change, if the entity keeps a status history
    """
    field: str
    values: Tuple[str, ...]
    terminal: FrozenSet[str] = frozenset()
    timestamp_field: Optional[str] = None
    stamp_automatically: bool = False
    history_field: Optional[str] = None

    def rank(self, value: str) -> int:
        try:
            return self.values.index(value)
        except ValueError:
            raise DataValidationError(
                message=f"Invalid {self.field}",
                field_errors={self.field: [f"Must be one of: {', '.join(self.values)}."]},
            ) from None

    def is_terminal(self, value: Optional[str]) -> bool:
        return value in self.terminal

    def history_key(self, value: str) -> Optional[str]:
        """``In Progress`` -> ``statusHistory.inProgressAt``."""
        if not self.history_field:
            return None
        words = value.replace('-', ' ').split()
        camel = words[0].lower() + ''.join(word.capitalize() for word in words[1:])
        return f"{self.history_field}.{camel}At"


@dataclass(frozen=True)
class Transition:
    current: str
    requested: str
    changed: bool
    timestamp: Optional[datetime] = None


def check_transition(order: StatusOrder, current: str, requested: str,
                     timestamp: Optional[datetime] = None) -> Transition:
    """
    Decide whether ``current -> requested`` is allowed under ``order``.

    Returns:
        Transition describing the change; ``changed`` is False for a no-op

    Raises:
        DataValidationError: ``requested`` is not a member of the enum
        InvalidStatusTransitionError: The transition breaks the ordering rules
    """
    requested_rank = order.rank(requested)

    if order.is_terminal(current):
        raise InvalidStatusTransitionError(
            message=f"Status cannot be changed once it is {current}",
            current_status=current,
            requested_status=requested,
            field=order.field,
            context={'terminal': True},
        )

    if requested == current:
        return Transition(current=current, requested=requested, changed=False)

    if requested_rank < order.rank(current):
        raise InvalidStatusTransitionError(
            message=f"Cannot move {order.field} back from {current} to {requested}",
            current_status=current,
            requested_status=requested,
            field=order.field,
        )

    if order.is_terminal(requested) and order.timestamp_field and timestamp is None:
        raise InvalidStatusTransitionError(
            message=f"{order.timestamp_field} is required to set {order.field} to {requested}",
            current_status=current,
            requested_status=requested,
            field=order.timestamp_field,
            error_code="TRANSITION_TIMESTAMP_REQUIRED",
        )

    return Transition(current=current, requested=requested, changed=True, timestamp=timestamp)


PREPARATION_STATUS_ORDER = StatusOrder(
    field='preparationStatus',
    values=("Not Started", "In Progress", "Completed", "Delivered"),
    terminal=frozenset({"Delivered"}),
    timestamp_field='statusHistory.deliveredAt',
    stamp_automatically=True,
    history_field='statusHistory',
)

DELIVERY_STATUS_ORDER = StatusOrder(
    field='deliveryStatus',
    values=("Pending", "In-Transit", "Delivered", "Failed"),
    terminal=frozenset({"Delivered"}),
    timestamp_field='deliveryTime',
)
