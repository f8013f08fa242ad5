from abc import ABC, abstractmethod
from enum import Enum
from datetime import datetime
from typing import Dict, List, Optional

from cafeteria.domain.loyalty import LoyaltyAccount, LoyaltyTransaction
from cafeteria.domain.models import CatalogItem, Order, OrderStatus


class OrderRepository(ABC):
    @abstractmethod
    async def save(self, order: Order) -> Order:
        pass

    @abstractmethod
    async def find_by_id(self, order_id: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def find_by_student(self, student_id: str) -> List[Order]:
        pass

    @abstractmethod
    async def find_recent_by_student(self, student_id: str, limit: int) -> List[Order]:
        pass

    @abstractmethod
    async def find_by_status(self, status: OrderStatus) -> List[Order]:
        pass

    @abstractmethod
    async def find_by_date_range(self, start: datetime, end: datetime) -> List[Order]:
        """Orders placed at or after start and before end, oldest first"""
        pass

    @abstractmethod
    async def count_by_status(self) -> Dict[OrderStatus, int]:
        """Only statuses with at least one order appear"""
        pass

    @abstractmethod
    async def update(self, order: Order) -> Order:
        """Raises OrderNotFoundError when the order was never saved"""
        pass

    @abstractmethod
    async def delete(self, order_id: str) -> bool:
        pass


class LoyaltyAccountRepository(ABC):
    @abstractmethod
    async def create(self, account: LoyaltyAccount) -> None:
        pass

    @abstractmethod
    async def get_by_student(self, student_id: str) -> Optional[LoyaltyAccount]:
        pass

    @abstractmethod
    async def credit(self, student_id: str, transaction: LoyaltyTransaction) -> None:
        pass

    @abstractmethod
    async def debit(self, student_id: str, transaction: LoyaltyTransaction) -> bool:
        """Atomic compare-and-decrement. Returns False when the stored balance is too low."""
        pass


class CatalogLookup(ABC):
    @abstractmethod
    async def get(self, item_id: str) -> Optional[CatalogItem]:
        pass

    @abstractmethod
    async def find_available(self, item_id: str) -> Optional[CatalogItem]:
        pass

    @abstractmethod
    async def list_available(self) -> List[CatalogItem]:
        pass


class UnitOfWork(ABC):
    """Transaction scope yielded by a unit-of-work factory; nothing persists without commit"""
    orders: OrderRepository
    accounts: LoyaltyAccountRepository
    catalog: CatalogLookup

    @abstractmethod
    async def commit(self):
        pass

    @abstractmethod
    async def rollback(self):
        pass


class NotificationEvent(str, Enum):
    ORDER_CONFIRMED = "order.confirmed"
    ORDER_STATUS_CHANGED = "order.status_changed"
    ORDER_READY = "order.ready"
    POINTS_EARNED = "loyalty.points_earned"
    POINTS_REDEEMED = "loyalty.points_redeemed"


class NotificationSink(ABC):
    @abstractmethod
    def notify(self, event: NotificationEvent, payload: dict) -> None:
        """Fire-and-forget: must not raise and is never awaited by callers"""
        pass
