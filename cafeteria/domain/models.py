import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from cafeteria.domain.exceptions import (
    CapacityExceeded,
    EmptyOrderError,
    InvalidTransition,
    ItemUnavailableError,
    LineNotFoundError,
    OrderNotModifiable,
    RedemptionNotApplicable,
    ValidationError,
)

MAX_UNITS_PER_ORDER = 50


class MenuCategory(str, Enum):
    MAIN_COURSE = "MAIN_COURSE"
    SNACK = "SNACK"
    DRINK = "DRINK"
    DESSERT = "DESSERT"
    BREAKFAST = "BREAKFAST"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PREPARING = "PREPARING"
    READY = "READY"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


# Every legal edge of the order lifecycle. Statuses mapped to an empty set are terminal.
ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY}),
    OrderStatus.READY: frozenset({OrderStatus.COMPLETED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CatalogItem(BaseModel):
    """Value Object: menu item as supplied by the catalog"""
    item_id: str
    name: str
    description: str = ""
    price: Decimal
    category: MenuCategory
    available: bool = True

    @field_validator("item_id", "name")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValidationError("Menu item id and name cannot be empty")
        return value.strip()

    @field_validator("price")
    @classmethod
    def _non_negative_price(cls, value: Decimal) -> Decimal:
        # 0.00 is allowed: loyalty reward items can be priced at zero
        if value < 0:
            raise ValidationError(f"Price cannot be negative: {value}")
        return value

    @field_validator("category", mode="before")
    @classmethod
    def _known_category(cls, value):
        try:
            return MenuCategory(value)
        except ValueError:
            raise ValidationError(f"Unknown menu category: {value}")


class OrderLine(BaseModel):
    item: CatalogItem
    quantity: int
    free: bool = False

    @property
    def subtotal(self) -> Decimal:
        if self.free:
            return Decimal("0.00")
        return self.item.price * self.quantity


class Order(BaseModel):
    """Domain Entity: order aggregate.

    All mutation goes through the methods below; each one validates
    completely before touching any field, so a rejected call leaves the
    order exactly as it was.
    """
    order_id: str
    student_id: str
    status: OrderStatus = OrderStatus.PENDING
    lines: list[OrderLine] = Field(default_factory=list)
    discount_amount: Decimal = Decimal("0.00")
    loyalty_points_earned: int = 0
    loyalty_points_redeemed: int = 0
    order_time: datetime = Field(default_factory=_now)
    status_updated_time: datetime = Field(default_factory=_now)
    notes: str = ""

    @classmethod
    def new(cls, student_id: str) -> "Order":
        now = _now()
        return cls(
            order_id=f"ORD-{uuid.uuid4().hex[:8].upper()}",
            student_id=student_id,
            order_time=now,
            status_updated_time=now,
        )

    @property
    def subtotal(self) -> Decimal:
        """Pre-discount amount: what the student would pay without a redemption"""
        return sum((line.subtotal for line in self.lines), Decimal("0.00"))

    @property
    def total_amount(self) -> Decimal:
        return max(Decimal("0.00"), self.subtotal - self.discount_amount)

    @property
    def total_units(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def has_redemption(self) -> bool:
        return self.loyalty_points_redeemed > 0

    @property
    def free_line(self) -> Optional[OrderLine]:
        return next((line for line in self.lines if line.free), None)

    def can_be_cancelled(self) -> bool:
        return OrderStatus.CANCELLED in ALLOWED_TRANSITIONS[self.status]

    def is_finished(self) -> bool:
        return not ALLOWED_TRANSITIONS[self.status]

    def can_transition_to(self, target: OrderStatus) -> bool:
        return target in ALLOWED_TRANSITIONS[self.status]

    def transition_to(self, target: OrderStatus) -> None:
        if not self.can_transition_to(target):
            raise InvalidTransition(self.status, target)
        self.status = target
        self.status_updated_time = _now()

    def confirm(self, points_earned: int) -> None:
        if not self.can_transition_to(OrderStatus.CONFIRMED):
            raise InvalidTransition(self.status, OrderStatus.CONFIRMED)
        if self.is_empty:
            raise EmptyOrderError(f"Cannot confirm empty order {self.order_id}")
        self.loyalty_points_earned = points_earned
        self.transition_to(OrderStatus.CONFIRMED)

    def ensure_modifiable(self) -> None:
        if self.status != OrderStatus.PENDING:
            raise OrderNotModifiable(self.order_id, self.status)

    def _ensure_capacity(self, units_after: int) -> None:
        if units_after > MAX_UNITS_PER_ORDER:
            raise CapacityExceeded(MAX_UNITS_PER_ORDER, units_after)

    def _paid_line(self, item_id: str) -> Optional[OrderLine]:
        return next(
            (line for line in self.lines if not line.free and line.item.item_id == item_id),
            None,
        )

    def add_line(self, item: CatalogItem, quantity: int) -> None:
        self.ensure_modifiable()
        if quantity <= 0:
            raise ValidationError("Quantity must be positive")
        if not item.available:
            raise ItemUnavailableError(f"Menu item is not available: {item.name}")
        self._ensure_capacity(self.total_units + quantity)

        existing = self._paid_line(item.item_id)
        if existing:
            existing.quantity += quantity
        else:
            self.lines.append(OrderLine(item=item, quantity=quantity))

    def remove_line(self, item_id: str) -> None:
        self.ensure_modifiable()
        line = self._paid_line(item_id)
        if not line:
            raise LineNotFoundError(f"Item {item_id} is not in order {self.order_id}")
        self.lines.remove(line)

    def set_line_quantity(self, item_id: str, quantity: int) -> None:
        self.ensure_modifiable()
        if quantity < 0:
            raise ValidationError("Quantity cannot be negative")
        line = self._paid_line(item_id)
        if not line:
            raise LineNotFoundError(f"Item {item_id} is not in order {self.order_id}")
        if quantity == 0:
            self.lines.remove(line)
            return
        self._ensure_capacity(self.total_units - line.quantity + quantity)
        line.quantity = quantity

    def ensure_redeemable(self) -> None:
        self.ensure_modifiable()
        if self.has_redemption:
            raise RedemptionNotApplicable(f"Loyalty points were already redeemed on order {self.order_id}")
        if self.is_empty:
            raise RedemptionNotApplicable("Cannot apply a loyalty discount to an empty order")

    def apply_redemption(self, points: int, discount: Decimal, free_item: Optional[CatalogItem] = None) -> None:
        """Record a loyalty redemption: an order-level discount, or a free line."""
        self.ensure_redeemable()
        if free_item is not None:
            if not free_item.available:
                raise ItemUnavailableError(f"Menu item is not available: {free_item.name}")
            self._ensure_capacity(self.total_units + 1)
            self.lines.append(OrderLine(item=free_item, quantity=1, free=True))

        self.loyalty_points_redeemed = points
        self.discount_amount = discount

    def set_notes(self, notes: Optional[str]) -> None:
        self.ensure_modifiable()
        self.notes = notes or ""
