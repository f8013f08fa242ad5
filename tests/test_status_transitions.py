import pytest

from cafeteria.domain.exceptions import EmptyOrderError, InvalidTransition
from cafeteria.domain.models import ALLOWED_TRANSITIONS, Order, OrderStatus

from tests.factories import make_item

LEGAL = {
    (OrderStatus.PENDING, OrderStatus.CONFIRMED),
    (OrderStatus.PENDING, OrderStatus.CANCELLED),
    (OrderStatus.CONFIRMED, OrderStatus.PREPARING),
    (OrderStatus.CONFIRMED, OrderStatus.CANCELLED),
    (OrderStatus.PREPARING, OrderStatus.READY),
    (OrderStatus.READY, OrderStatus.COMPLETED),
}


@pytest.mark.parametrize("current", list(OrderStatus))
@pytest.mark.parametrize("target", list(OrderStatus))
def test_transition_matrix(current, target):
    order = Order.new("S1")
    order.status = current
    if (current, target) in LEGAL:
        order.transition_to(target)
        assert order.status == target
    else:
        with pytest.raises(InvalidTransition) as exc:
            order.transition_to(target)
        assert exc.value.current == current
        assert exc.value.target == target
        assert order.status == current


def test_table_matches_lifecycle():
    assert {(s, t) for s, targets in ALLOWED_TRANSITIONS.items() for t in targets} == LEGAL


def test_terminal_statuses():
    for status in (OrderStatus.COMPLETED, OrderStatus.CANCELLED):
        order = Order.new("S1")
        order.status = status
        assert order.is_finished()
        assert not order.can_be_cancelled()


def test_transition_updates_status_time():
    order = Order.new("S1")
    before = order.status_updated_time
    order.transition_to(OrderStatus.CANCELLED)
    assert order.status_updated_time >= before


def test_confirm_requires_lines():
    order = Order.new("S1")
    with pytest.raises(EmptyOrderError):
        order.confirm(0)
    assert order.status == OrderStatus.PENDING


def test_confirm_records_earned_points():
    order = Order.new("S1")
    order.add_line(make_item(), 1)
    order.confirm(4)
    assert order.status == OrderStatus.CONFIRMED
    assert order.loyalty_points_earned == 4
    with pytest.raises(InvalidTransition):
        order.confirm(4)
