import logging
from typing import Optional

from pydantic import BaseModel

from cafeteria.application.interfaces import NotificationEvent, NotificationSink
from cafeteria.application.loyalty_service import credit_points, debit_points, load_account
from cafeteria.domain.exceptions import (
    InsufficientBalance,
    ItemNotFoundError,
    OrderNotFoundError,
    RedemptionNotApplicable,
    ValidationError,
)
from cafeteria.domain.loyalty import (
    MIN_REDEEMABLE_POINTS,
    discount_for_points,
    is_free_item_redemption,
    points_earned,
)
from cafeteria.domain.models import CatalogItem, Order, OrderStatus

logger = logging.getLogger(__name__)

BASE_PREPARATION_MINUTES = 15
MINUTES_PER_UNIT = 2

STATUS_MESSAGES = {
    OrderStatus.PREPARING: "Your order is now being prepared",
    OrderStatus.READY: "Your order is ready for pickup",
    OrderStatus.COMPLETED: "Thank you! Your order has been completed",
    OrderStatus.CANCELLED: "Your order has been cancelled",
}


class AddItemDTO(BaseModel):
    item_id: str
    quantity: int


def _order_payload(order: Order) -> dict:
    return {
        "order_id": order.order_id,
        "student_id": order.student_id,
        "status": order.status.value,
        "total_amount": str(order.total_amount),
    }


async def _load_order(uow, order_id: str) -> Order:
    order = await uow.orders.find_by_id(order_id)
    if not order:
        raise OrderNotFoundError(f"Order {order_id} not found")
    return order


class OrderLifecycleService:
    """Every change to an order, and its loyalty side effects, goes through here.

    Each operation runs in one unit of work: validation failures raise before
    anything is written, and any exception rolls the whole unit back. Callers
    must serialize mutating calls to the same order.
    """

    def __init__(self, unit_of_work, notifications: NotificationSink, free_item_id: str):
        self._uow = unit_of_work
        self._notifications = notifications
        self._free_item_id = free_item_id

    async def create_order(self, student_id: str) -> Order:
        student_id = (student_id or "").strip()
        if not student_id:
            raise ValidationError("Student ID cannot be empty")

        async with self._uow() as uow:
            await load_account(uow, student_id)
            order = await uow.orders.save(Order.new(student_id))
            await uow.commit()

        logger.info(f"Order {order.order_id} created for student {student_id}")
        return order

    async def add_item(self, order_id: str, item: CatalogItem, quantity: int) -> Order:
        async with self._uow() as uow:
            order = await _load_order(uow, order_id)
            current = await uow.catalog.find_available(item.item_id)
            # the catalog is authoritative for price and availability
            item = current or item.model_copy(update={"available": False})
            order.add_line(item, quantity)
            order = await uow.orders.update(order)
            await uow.commit()

        logger.info(f"Added {quantity} x {item.item_id} to order {order_id}")
        return order

    async def add_item_by_id(self, order_id: str, dto: AddItemDTO) -> Order:
        async with self._uow() as uow:
            item = await uow.catalog.get(dto.item_id)
        if not item:
            raise ItemNotFoundError(f"Menu item {dto.item_id} not found")
        return await self.add_item(order_id, item, dto.quantity)

    async def remove_item(self, order_id: str, item_id: str) -> Order:
        async with self._uow() as uow:
            order = await _load_order(uow, order_id)
            order.remove_line(item_id)
            order = await uow.orders.update(order)
            await uow.commit()

        logger.info(f"Removed {item_id} from order {order_id}")
        return order

    async def set_item_quantity(self, order_id: str, item_id: str, quantity: int) -> Order:
        async with self._uow() as uow:
            order = await _load_order(uow, order_id)
            order.set_line_quantity(item_id, quantity)
            order = await uow.orders.update(order)
            await uow.commit()

        logger.info(f"Set {item_id} quantity to {quantity} on order {order_id}")
        return order

    async def update_notes(self, order_id: str, notes: Optional[str]) -> Order:
        async with self._uow() as uow:
            order = await _load_order(uow, order_id)
            order.set_notes(notes)
            order = await uow.orders.update(order)
            await uow.commit()
        return order

    async def apply_loyalty_discount(self, order_id: str, points_to_redeem: int) -> Order:
        """Attach a redemption to a pending order.

        The balance is only checked here; the points are debited when the
        order is confirmed, for the free-item tier as well.
        """
        async with self._uow() as uow:
            order = await _load_order(uow, order_id)
            order.ensure_modifiable()
            if points_to_redeem < MIN_REDEEMABLE_POINTS:
                raise RedemptionNotApplicable(
                    f"Minimum {MIN_REDEEMABLE_POINTS} points required, got {points_to_redeem}"
                )
            order.ensure_redeemable()

            account = await load_account(uow, order.student_id)
            if not account.can_debit(points_to_redeem):
                raise InsufficientBalance(account.balance, points_to_redeem)

            free_item = None
            if is_free_item_redemption(points_to_redeem):
                free_item = await uow.catalog.find_available(self._free_item_id)
                if not free_item:
                    raise RedemptionNotApplicable(f"Free item {self._free_item_id} is not available")

            discount = discount_for_points(points_to_redeem)
            order.apply_redemption(points_to_redeem, discount, free_item)
            order = await uow.orders.update(order)
            await uow.commit()

        logger.info(f"Order {order_id}: {points_to_redeem} points attached for discount {discount}")
        return order

    async def confirm_order(self, order_id: str) -> Order:
        async with self._uow() as uow:
            order = await _load_order(uow, order_id)
            # earning is based on the pre-discount subtotal
            earned = points_earned(order.subtotal)
            order.confirm(earned)

            if order.has_redemption:
                await debit_points(
                    uow, order.student_id, order.loyalty_points_redeemed,
                    f"Redeemed for order {order.order_id}",
                )
            if earned > 0:
                await credit_points(
                    uow, order.student_id, earned,
                    f"Points earned from order {order.order_id} (EGP {order.subtotal})",
                )

            order = await uow.orders.update(order)
            await uow.commit()

        logger.info(f"Order {order_id} confirmed, total {order.total_amount}, earned {earned} points")
        self._notifications.notify(NotificationEvent.ORDER_CONFIRMED, _order_payload(order))
        if order.has_redemption:
            self._notifications.notify(NotificationEvent.POINTS_REDEEMED, {
                "student_id": order.student_id,
                "order_id": order.order_id,
                "points": order.loyalty_points_redeemed,
                "discount_amount": str(order.discount_amount),
            })
        if earned > 0:
            self._notifications.notify(NotificationEvent.POINTS_EARNED, {
                "student_id": order.student_id,
                "order_id": order.order_id,
                "points": earned,
            })
        return order

    async def cancel_order(self, order_id: str) -> Order:
        async with self._uow() as uow:
            order = await _load_order(uow, order_id)
            was_confirmed = order.status == OrderStatus.CONFIRMED
            order.transition_to(OrderStatus.CANCELLED)

            # points only move at confirmation, so only a confirmed order has anything to reverse
            if was_confirmed:
                await self._reverse_loyalty(uow, order)

            order = await uow.orders.update(order)
            await uow.commit()

        logger.info(f"Order {order_id} cancelled")
        self._notify_status(order)
        return order

    async def update_status(self, order_id: str, new_status) -> Order:
        try:
            new_status = OrderStatus(new_status)
        except ValueError:
            raise ValidationError(f"Unknown order status: {new_status}")

        if new_status == OrderStatus.CONFIRMED:
            return await self.confirm_order(order_id)
        if new_status == OrderStatus.CANCELLED:
            return await self.cancel_order(order_id)

        async with self._uow() as uow:
            order = await _load_order(uow, order_id)
            previous = order.status
            order.transition_to(new_status)
            order = await uow.orders.update(order)
            await uow.commit()

        logger.info(f"Order {order_id}: {previous.value} -> {new_status.value}")
        self._notify_status(order)
        return order

    async def estimated_preparation_time(self, order_id: str) -> int:
        async with self._uow() as uow:
            order = await _load_order(uow, order_id)
        return BASE_PREPARATION_MINUTES + MINUTES_PER_UNIT * order.total_units

    async def _reverse_loyalty(self, uow, order: Order) -> None:
        """Undo the ledger effects of a confirmation.

        Redeemed points are credited back first. Earned points are then taken
        back, clamped to the balance when the student has already spent some
        of them elsewhere.
        """
        if order.has_redemption:
            await credit_points(
                uow, order.student_id, order.loyalty_points_redeemed,
                f"Refund of points redeemed on cancelled order {order.order_id}",
            )
        if order.loyalty_points_earned > 0:
            account = await load_account(uow, order.student_id)
            clawback = min(order.loyalty_points_earned, account.balance)
            if clawback < order.loyalty_points_earned:
                logger.warning(
                    f"Order {order.order_id}: only {clawback} of {order.loyalty_points_earned} "
                    f"earned points could be reversed"
                )
            if clawback > 0:
                await debit_points(
                    uow, order.student_id, clawback,
                    f"Reversal of points earned on cancelled order {order.order_id}",
                )

    def _notify_status(self, order: Order) -> None:
        payload = _order_payload(order)
        payload["message"] = STATUS_MESSAGES.get(order.status, "")
        if order.status == OrderStatus.READY:
            self._notifications.notify(NotificationEvent.ORDER_READY, payload)
        else:
            self._notifications.notify(NotificationEvent.ORDER_STATUS_CHANGED, payload)
