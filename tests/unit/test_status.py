"""Status order and transition checks."""

from datetime import datetime
from itertools import product

import pytest

from hospital_meals.business.exceptions import DataValidationError, InvalidStatusTransitionError
from hospital_meals.business.status import (
    DELIVERY_STATUS_ORDER,
    PREPARATION_STATUS_ORDER,
    StatusOrder,
    check_transition,
)

STAMP = datetime(2024, 3, 10, 12, 0)


class TestStatusOrder:

    def test_rank_follows_declaration_order(self):
        ranks = [PREPARATION_STATUS_ORDER.rank(value) for value in PREPARATION_STATUS_ORDER.values]
        assert ranks == [0, 1, 2, 3]

    def test_unknown_value_is_a_validation_error(self):
        with pytest.raises(DataValidationError) as exc_info:
            DELIVERY_STATUS_ORDER.rank('In Transit')
        assert 'deliveryStatus' in exc_info.value.field_errors

    def test_history_key(self):
        assert PREPARATION_STATUS_ORDER.history_key('In Progress') == 'statusHistory.inProgressAt'
        assert PREPARATION_STATUS_ORDER.history_key('Not Started') == 'statusHistory.notStartedAt'
        assert DELIVERY_STATUS_ORDER.history_key('Delivered') is None

    def test_only_delivered_is_terminal(self):
        assert PREPARATION_STATUS_ORDER.is_terminal('Delivered')
        assert not PREPARATION_STATUS_ORDER.is_terminal('Completed')
        assert DELIVERY_STATUS_ORDER.is_terminal('Delivered')
        assert not DELIVERY_STATUS_ORDER.is_terminal('Failed')


class TestCheckTransition:

    @pytest.mark.parametrize('current,requested', list(product(
        PREPARATION_STATUS_ORDER.values, PREPARATION_STATUS_ORDER.values
    )))
    def test_forward_only_and_terminal_frozen(self, current, requested):
        order = PREPARATION_STATUS_ORDER
        allowed = (order.rank(requested) >= order.rank(current)
                   and not order.is_terminal(current))

        if allowed:
            transition = check_transition(order, current, requested, STAMP)
            assert transition.changed is (requested != current)
        else:
            with pytest.raises(InvalidStatusTransitionError):
                check_transition(order, current, requested, STAMP)

    def test_same_status_is_a_no_op(self):
        transition = check_transition(DELIVERY_STATUS_ORDER, 'Pending', 'Pending')
        assert transition.changed is False
        assert transition.timestamp is None

    def test_backward_move_reports_both_statuses(self):
        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            check_transition(PREPARATION_STATUS_ORDER, 'Completed', 'In Progress', STAMP)
        error = exc_info.value
        assert error.current_status == 'Completed'
        assert error.requested_status == 'In Progress'
        assert error.http_status_code == 422
        assert error.details == {'current_status': 'Completed', 'requested_status': 'In Progress'}

    def test_terminal_status_rejects_even_the_same_status(self):
        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            check_transition(PREPARATION_STATUS_ORDER, 'Delivered', 'Delivered', STAMP)
        assert exc_info.value.context['terminal'] is True

    def test_delivered_to_in_progress_is_rejected(self):
        with pytest.raises(InvalidStatusTransitionError):
            check_transition(PREPARATION_STATUS_ORDER, 'Delivered', 'In Progress', STAMP)

    def test_terminal_transition_needs_a_timestamp(self):
        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            check_transition(DELIVERY_STATUS_ORDER, 'In-Transit', 'Delivered')
        assert exc_info.value.error_code == 'TRANSITION_TIMESTAMP_REQUIRED'
        assert exc_info.value.field == 'deliveryTime'

    def test_terminal_transition_with_timestamp(self):
        transition = check_transition(DELIVERY_STATUS_ORDER, 'Pending', 'Delivered', STAMP)
        assert transition.changed
        assert transition.timestamp == STAMP

    def test_failed_is_reachable_from_any_non_terminal_status(self):
        for current in ('Pending', 'In-Transit'):
            assert check_transition(DELIVERY_STATUS_ORDER, current, 'Failed').changed

    def test_requested_value_is_validated_before_the_current_one(self):
        order = StatusOrder(field='state', values=('a', 'b'), terminal=frozenset({'b'}))
        with pytest.raises(DataValidationError):
            check_transition(order, 'b', 'z')
