from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from cafeteria.domain.loyalty import TransactionType
from cafeteria.domain.models import MenuCategory, OrderStatus


class CreateOrderRequest(BaseModel):
    student_id: str


class AddItemRequest(BaseModel):
    item_id: str
    quantity: int = 1


class SetQuantityRequest(BaseModel):
    quantity: int


class NotesRequest(BaseModel):
    notes: Optional[str] = None


class RedemptionRequest(BaseModel):
    points: int


class StatusUpdateRequest(BaseModel):
    status: str


class MenuItemResponse(BaseModel):
    item_id: str
    name: str
    description: str
    price: Decimal
    category: MenuCategory
    available: bool

    @classmethod
    def from_domain(cls, item):
        return cls(
            item_id=item.item_id,
            name=item.name,
            description=item.description,
            price=item.price,
            category=item.category,
            available=item.available
        )


class OrderLineResponse(BaseModel):
    item_id: str
    name: str
    unit_price: Decimal
    quantity: int
    free: bool
    subtotal: Decimal


class OrderResponse(BaseModel):
    order_id: str
    student_id: str
    status: OrderStatus
    lines: List[OrderLineResponse]
    subtotal: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    loyalty_points_earned: int
    loyalty_points_redeemed: int
    order_time: datetime
    status_updated_time: datetime
    notes: Optional[str] = None

    @classmethod
    def from_domain(cls, order):
        return cls(
            order_id=order.order_id,
            student_id=order.student_id,
            status=order.status,
            lines=[
                OrderLineResponse(
                    item_id=line.item.item_id,
                    name=line.item.name,
                    unit_price=line.item.price,
                    quantity=line.quantity,
                    free=line.free,
                    subtotal=line.subtotal
                )
                for line in order.lines
            ],
            subtotal=order.subtotal,
            discount_amount=order.discount_amount,
            total_amount=order.total_amount,
            loyalty_points_earned=order.loyalty_points_earned,
            loyalty_points_redeemed=order.loyalty_points_redeemed,
            order_time=order.order_time,
            status_updated_time=order.status_updated_time,
            notes=order.notes
        )


class TransactionResponse(BaseModel):
    type: TransactionType
    points: int
    description: str
    timestamp: datetime


class LoyaltyAccountResponse(BaseModel):
    student_id: str
    points_balance: int
    transactions: List[TransactionResponse] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, account, limit: Optional[int] = None):
        return cls(
            student_id=account.student_id,
            points_balance=account.balance,
            transactions=[
                TransactionResponse(
                    type=txn.type,
                    points=txn.points,
                    description=txn.description,
                    timestamp=txn.timestamp
                )
                for txn in account.history(limit)
            ]
        )


class RedemptionOptionResponse(BaseModel):
    points_required: int
    discount_amount: Decimal
    description: str
    free_item: bool


class PreparationTimeResponse(BaseModel):
    order_id: str
    minutes: int


class OrderStatisticsResponse(BaseModel):
    total: int
    by_status: Dict[OrderStatus, int]

    @classmethod
    def from_counts(cls, counts: Dict[OrderStatus, int]) -> "OrderStatisticsResponse":
        return cls(total=sum(counts.values()), by_status=counts)


class ErrorResponse(BaseModel):
    detail: str
