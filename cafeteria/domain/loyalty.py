"""Loyalty program: point ledger and the pricing rules for earning and redeeming.

The policy functions are pure; they never look at an account or an order.
"""
from datetime import datetime, timezone
from decimal import ROUND_DOWN, ROUND_HALF_UP, ROUND_UP, Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from cafeteria.domain.exceptions import InsufficientBalance, ValidationError

SPEND_PER_POINT = Decimal("10")
VALUE_PER_POINT = Decimal("0.20")
MIN_REDEEMABLE_POINTS = 10

FIXED_DISCOUNT_POINTS = 50
FIXED_DISCOUNT_AMOUNT = Decimal("10.00")
FREE_ITEM_POINTS = 100
GENERIC_TIERS = (200, 500)

CENT = Decimal("0.01")


def points_earned(spend_amount: Decimal) -> int:
    if spend_amount is None or spend_amount <= 0:
        return 0
    return int((Decimal(spend_amount) / SPEND_PER_POINT).to_integral_value(rounding=ROUND_DOWN))


def discount_for_points(points: int) -> Decimal:
    if points <= 0:
        return Decimal("0.00")
    if points == FIXED_DISCOUNT_POINTS:
        return FIXED_DISCOUNT_AMOUNT
    if points == FREE_ITEM_POINTS:
        # the reward is a zero-priced line, not an order discount
        return Decimal("0.00")
    return (VALUE_PER_POINT * points).quantize(CENT, rounding=ROUND_HALF_UP)


def points_for_discount(amount: Decimal) -> int:
    if amount is None or amount <= 0:
        return 0
    return int((Decimal(amount) / VALUE_PER_POINT).to_integral_value(rounding=ROUND_UP))


def is_free_item_redemption(points: int) -> bool:
    return points == FREE_ITEM_POINTS


class RedemptionOption(BaseModel):
    """Value Object: a redemption the student can currently afford"""
    points_required: int
    discount_amount: Decimal
    description: str
    free_item: bool = False


def available_redemptions(balance: int) -> list[RedemptionOption]:
    options = []
    if balance >= FIXED_DISCOUNT_POINTS:
        options.append(RedemptionOption(
            points_required=FIXED_DISCOUNT_POINTS,
            discount_amount=FIXED_DISCOUNT_AMOUNT,
            description=f"{FIXED_DISCOUNT_POINTS} points = EGP {FIXED_DISCOUNT_AMOUNT} discount",
        ))
    if balance >= FREE_ITEM_POINTS:
        options.append(RedemptionOption(
            points_required=FREE_ITEM_POINTS,
            discount_amount=Decimal("0.00"),
            description=f"{FREE_ITEM_POINTS} points = free item",
            free_item=True,
        ))
    for points in GENERIC_TIERS:
        if balance >= points:
            discount = discount_for_points(points)
            options.append(RedemptionOption(
                points_required=points,
                discount_amount=discount,
                description=f"{points} points = EGP {discount} discount",
            ))
    return options


class TransactionType(str, Enum):
    EARNED = "EARNED"
    REDEEMED = "REDEEMED"


class LoyaltyTransaction(BaseModel):
    type: TransactionType
    points: int
    description: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def signed_points(self) -> int:
        return self.points if self.type == TransactionType.EARNED else -self.points


class LoyaltyAccount(BaseModel):
    """Domain Entity: a student's point balance and its append-only ledger"""
    student_id: str
    points_balance: int = 0
    transactions: list[LoyaltyTransaction] = Field(default_factory=list)

    @property
    def balance(self) -> int:
        return self.points_balance

    def can_debit(self, points: int) -> bool:
        return 0 < points <= self.points_balance

    def apply(self, transaction: LoyaltyTransaction) -> LoyaltyTransaction:
        if transaction.points <= 0:
            raise ValidationError("Transaction points must be positive")
        if transaction.type == TransactionType.REDEEMED and transaction.points > self.points_balance:
            raise InsufficientBalance(self.points_balance, transaction.points)
        self.points_balance += transaction.signed_points
        self.transactions.append(transaction)
        return transaction

    def credit(self, points: int, description: str) -> LoyaltyTransaction:
        return self.apply(LoyaltyTransaction(type=TransactionType.EARNED, points=points, description=description))

    def debit(self, points: int, description: str) -> LoyaltyTransaction:
        return self.apply(LoyaltyTransaction(type=TransactionType.REDEEMED, points=points, description=description))

    def history(self, limit: Optional[int] = None) -> list[LoyaltyTransaction]:
        recent = list(reversed(self.transactions))
        if limit is not None:
            return recent[:max(limit, 0)]
        return recent
