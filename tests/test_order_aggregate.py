"""
Order aggregate: totals, capacity and the PENDING-only mutation rule.
"""
from decimal import Decimal

import pytest
from hypothesis import given, settings, strategies as st

from cafeteria.domain.exceptions import (
    CapacityExceeded,
    DomainException,
    ItemUnavailableError,
    LineNotFoundError,
    OrderNotModifiable,
    RedemptionNotApplicable,
    ValidationError,
)
from cafeteria.domain.models import MAX_UNITS_PER_ORDER, CatalogItem, MenuCategory, Order, OrderStatus

from tests.factories import make_item


def order_with(*items_and_qty):
    order = Order.new("S1")
    for item, qty in items_and_qty:
        order.add_line(item, qty)
    return order


class TestCatalogItem:
    def test_rejects_blank_name_and_negative_price(self):
        with pytest.raises(ValidationError):
            CatalogItem(item_id="X", name="  ", price=Decimal("1"), category="DRINK")
        with pytest.raises(ValidationError):
            CatalogItem(item_id="X", name="Tea", price=Decimal("-1"), category="DRINK")

    def test_rejects_unknown_category(self):
        with pytest.raises(ValidationError):
            CatalogItem(item_id="X", name="Tea", price=Decimal("1"), category="SOUP")

    def test_zero_price_allowed(self):
        assert CatalogItem(item_id="X", name="Water", price=Decimal("0"), category=MenuCategory.DRINK).price == 0


class TestOrderBasics:
    def test_new_order(self):
        order = Order.new("S1")
        assert order.order_id.startswith("ORD-")
        assert len(order.order_id) == 12
        assert order.status == OrderStatus.PENDING
        assert order.is_empty
        assert order.total_amount == Decimal("0.00")

    def test_add_merges_lines(self):
        koshari = make_item("MAI_KOSHARI", "45.00")
        order = order_with((koshari, 1), (koshari, 2))
        assert len(order.lines) == 1
        assert order.lines[0].quantity == 3
        assert order.total_amount == Decimal("135.00")

    def test_add_rejects_bad_quantity_and_unavailable(self):
        order = Order.new("S1")
        with pytest.raises(ValidationError):
            order.add_line(make_item(), 0)
        with pytest.raises(ItemUnavailableError):
            order.add_line(make_item(available=False), 1)
        assert order.is_empty

    def test_set_quantity(self):
        tea = make_item("DRI_TEA", "15.00", MenuCategory.DRINK)
        order = order_with((tea, 2))
        order.set_line_quantity("DRI_TEA", 5)
        assert order.total_amount == Decimal("75.00")
        order.set_line_quantity("DRI_TEA", 0)
        assert order.is_empty

    def test_set_quantity_is_idempotent(self):
        once = order_with((make_item(), 1))
        twice = once.model_copy(deep=True)
        once.set_line_quantity("MAI_KOSHARI", 4)
        twice.set_line_quantity("MAI_KOSHARI", 4)
        twice.set_line_quantity("MAI_KOSHARI", 4)
        assert once.model_dump() == twice.model_dump()

    def test_set_quantity_negative_or_unknown(self):
        order = order_with((make_item(), 1))
        with pytest.raises(ValidationError):
            order.set_line_quantity("MAI_KOSHARI", -1)
        with pytest.raises(LineNotFoundError):
            order.set_line_quantity("NOPE", 1)

    def test_remove_line(self):
        order = order_with((make_item(), 1), (make_item("DRI_TEA", "15.00"), 1))
        order.remove_line("MAI_KOSHARI")
        assert [line.item.item_id for line in order.lines] == ["DRI_TEA"]
        with pytest.raises(LineNotFoundError):
            order.remove_line("MAI_KOSHARI")

    def test_discount_clamps_total_at_zero(self):
        order = order_with((make_item("SNA_CHIPS", "5.00"), 1))
        order.apply_redemption(50, Decimal("10.00"))
        assert order.subtotal == Decimal("5.00")
        assert order.total_amount == Decimal("0.00")


class TestCapacity:
    def test_limit_reached_exactly(self):
        order = order_with((make_item(), MAX_UNITS_PER_ORDER))
        assert order.total_units == 50

    def test_exceeding_leaves_order_unchanged(self):
        order = order_with((make_item(), 49))
        before = order.model_dump()
        with pytest.raises(CapacityExceeded) as exc:
            order.add_line(make_item("DRI_TEA", "15.00"), 2)
        assert exc.value.limit == 50
        assert exc.value.requested == 51
        assert order.model_dump() == before

    def test_set_quantity_checks_capacity(self):
        order = order_with((make_item(), 10), (make_item("DRI_TEA", "15.00"), 10))
        with pytest.raises(CapacityExceeded):
            order.set_line_quantity("DRI_TEA", 41)
        order.set_line_quantity("DRI_TEA", 40)
        assert order.total_units == 50

    def test_free_item_counts_towards_capacity(self):
        order = order_with((make_item(), 50))
        water = make_item("DRI_WATER", "10.00", MenuCategory.DRINK)
        with pytest.raises(CapacityExceeded):
            order.apply_redemption(100, Decimal("0.00"), water)
        assert not order.has_redemption


class TestRedemption:
    def test_free_line_is_zero_priced_and_separate(self):
        water = make_item("DRI_WATER", "10.00", MenuCategory.DRINK)
        order = order_with((water, 2))
        order.apply_redemption(100, Decimal("0.00"), water)
        assert len(order.lines) == 2
        assert order.free_line.quantity == 1
        assert order.subtotal == Decimal("20.00")
        # item mutations only touch the paid line
        order.set_line_quantity("DRI_WATER", 1)
        assert order.free_line.quantity == 1
        assert order.subtotal == Decimal("10.00")

    def test_only_one_redemption(self):
        order = order_with((make_item(), 2))
        order.apply_redemption(50, Decimal("10.00"))
        with pytest.raises(RedemptionNotApplicable):
            order.apply_redemption(50, Decimal("10.00"))
        assert order.loyalty_points_redeemed == 50

    def test_empty_order_cannot_redeem(self):
        with pytest.raises(RedemptionNotApplicable):
            Order.new("S1").apply_redemption(50, Decimal("10.00"))


class TestPendingOnly:
    @pytest.mark.parametrize("status", [s for s in OrderStatus if s != OrderStatus.PENDING])
    def test_mutations_rejected_outside_pending(self, status):
        order = order_with((make_item(), 2))
        order.status = status
        before = order.model_dump()
        mutations = [
            lambda: order.add_line(make_item("DRI_TEA", "15.00"), 1),
            lambda: order.remove_line("MAI_KOSHARI"),
            lambda: order.set_line_quantity("MAI_KOSHARI", 3),
            lambda: order.apply_redemption(50, Decimal("10.00")),
            lambda: order.set_notes("extra spicy"),
        ]
        for mutate in mutations:
            with pytest.raises(OrderNotModifiable):
                mutate()
        assert order.model_dump() == before


operations = st.lists(
    st.tuples(
        st.sampled_from(["add", "set", "remove"]),
        st.sampled_from(["MAI_KOSHARI", "DRI_TEA", "SNA_CHIPS"]),
        st.integers(min_value=-3, max_value=30),
    ),
    max_size=25,
)

PRICES = {"MAI_KOSHARI": "45.00", "DRI_TEA": "15.00", "SNA_CHIPS": "12.50"}


class TestTotalInvariant:
    @settings(max_examples=200)
    @given(operations)
    def test_total_matches_lines_after_any_sequence(self, ops):
        order = Order.new("S1")
        for op, item_id, qty in ops:
            before = order.model_dump()
            try:
                if op == "add":
                    order.add_line(make_item(item_id, PRICES[item_id]), qty)
                elif op == "set":
                    order.set_line_quantity(item_id, qty)
                else:
                    order.remove_line(item_id)
            except DomainException:
                assert order.model_dump() == before

            assert order.total_units <= MAX_UNITS_PER_ORDER
            assert order.total_amount == max(
                Decimal("0.00"),
                sum((line.item.price * line.quantity for line in order.lines), Decimal("0.00"))
                - order.discount_amount,
            )
