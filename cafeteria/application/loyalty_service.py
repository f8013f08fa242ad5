import logging
from typing import List, Optional

from cafeteria.application.interfaces import NotificationEvent, NotificationSink
from cafeteria.domain.exceptions import (
    InsufficientBalance,
    StudentNotFoundError,
    ValidationError,
)
from cafeteria.domain.loyalty import (
    LoyaltyAccount,
    LoyaltyTransaction,
    RedemptionOption,
    TransactionType,
    available_redemptions,
)

logger = logging.getLogger(__name__)


async def load_account(uow, student_id: str) -> LoyaltyAccount:
    account = await uow.accounts.get_by_student(student_id)
    if not account:
        raise StudentNotFoundError(f"Student {student_id} has no loyalty account")
    return account


async def credit_points(uow, student_id: str, points: int, description: str) -> LoyaltyTransaction:
    """Credit inside the caller's unit of work"""
    if points <= 0:
        raise ValidationError("Points to add must be positive")
    await load_account(uow, student_id)
    txn = LoyaltyTransaction(type=TransactionType.EARNED, points=points, description=description)
    await uow.accounts.credit(student_id, txn)
    return txn


async def debit_points(uow, student_id: str, points: int, description: str) -> LoyaltyTransaction:
    """Debit inside the caller's unit of work.

    Sufficiency is decided by the repository at the moment of the write, never
    by a balance the caller read earlier.
    """
    if points <= 0:
        raise ValidationError("Points to redeem must be positive")
    txn = LoyaltyTransaction(type=TransactionType.REDEEMED, points=points, description=description)
    if not await uow.accounts.debit(student_id, txn):
        account = await load_account(uow, student_id)
        raise InsufficientBalance(account.balance, points)
    return txn


class LoyaltyAccountService:
    def __init__(self, unit_of_work, notifications: NotificationSink):
        self._uow = unit_of_work
        self._notifications = notifications

    async def open_account(self, student_id: str) -> LoyaltyAccount:
        student_id = (student_id or "").strip()
        if not student_id:
            raise ValidationError("Student ID cannot be empty")

        async with self._uow() as uow:
            if await uow.accounts.get_by_student(student_id):
                raise ValidationError(f"Student {student_id} already has a loyalty account")
            account = LoyaltyAccount(student_id=student_id)
            await uow.accounts.create(account)
            await uow.commit()

        logger.info(f"Loyalty account opened for student {student_id}")
        return account

    async def get_account(self, student_id: str) -> LoyaltyAccount:
        async with self._uow() as uow:
            return await load_account(uow, student_id)

    async def balance(self, student_id: str) -> int:
        account = await self.get_account(student_id)
        return account.balance

    async def credit(self, student_id: str, points: int, description: str) -> LoyaltyAccount:
        async with self._uow() as uow:
            await credit_points(uow, student_id, points, description)
            account = await load_account(uow, student_id)
            await uow.commit()

        logger.info(f"Credited {points} points to {student_id}")
        self._notifications.notify(NotificationEvent.POINTS_EARNED, {
            "student_id": student_id,
            "points": points,
            "description": description,
        })
        return account

    async def debit(self, student_id: str, points: int, description: str) -> LoyaltyAccount:
        async with self._uow() as uow:
            await debit_points(uow, student_id, points, description)
            account = await load_account(uow, student_id)
            await uow.commit()

        logger.info(f"Debited {points} points from {student_id}")
        self._notifications.notify(NotificationEvent.POINTS_REDEEMED, {
            "student_id": student_id,
            "points": points,
            "description": description,
        })
        return account

    async def history(self, student_id: str, limit: Optional[int] = None) -> List[LoyaltyTransaction]:
        account = await self.get_account(student_id)
        return account.history(limit)

    async def available_redemptions(self, student_id: str) -> List[RedemptionOption]:
        account = await self.get_account(student_id)
        return available_redemptions(account.balance)
