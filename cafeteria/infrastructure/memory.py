"""In-process storage for development and tests.

Repositories hand out deep copies, so an aggregate mutated by a failed use
case never leaks into the store. The unit of work restores the last
committed state when it exits without commit.
"""
from contextlib import asynccontextmanager
from copy import deepcopy
from datetime import datetime
from typing import Dict, List, Optional

from cafeteria.application.interfaces import CatalogLookup, LoyaltyAccountRepository, OrderRepository, UnitOfWork
from cafeteria.domain.exceptions import OrderNotFoundError
from cafeteria.domain.loyalty import LoyaltyAccount, LoyaltyTransaction
from cafeteria.domain.models import CatalogItem, Order, OrderStatus


class InMemoryStore:
    def __init__(self):
        self.orders: Dict[str, Order] = {}
        self.accounts: Dict[str, LoyaltyAccount] = {}
        self.menu: Dict[str, CatalogItem] = {}

    def add_menu_item(self, item: CatalogItem) -> CatalogItem:
        self.menu[item.item_id] = item.model_copy(deep=True)
        return item

    def snapshot(self) -> tuple:
        return deepcopy(self.orders), deepcopy(self.accounts)

    def restore(self, snapshot: tuple) -> None:
        self.orders, self.accounts = deepcopy(snapshot[0]), deepcopy(snapshot[1])


class InMemoryOrderRepository(OrderRepository):
    def __init__(self, store: InMemoryStore):
        self._store = store

    async def save(self, order: Order) -> Order:
        self._store.orders[order.order_id] = order.model_copy(deep=True)
        return order

    async def find_by_id(self, order_id: str) -> Optional[Order]:
        order = self._store.orders.get(order_id)
        return order.model_copy(deep=True) if order else None

    async def find_by_student(self, student_id: str) -> List[Order]:
        orders = [o for o in self._store.orders.values() if o.student_id == student_id]
        return [o.model_copy(deep=True) for o in sorted(orders, key=lambda o: o.order_time)]

    async def find_recent_by_student(self, student_id: str, limit: int) -> List[Order]:
        orders = [o for o in self._store.orders.values() if o.student_id == student_id]
        orders.sort(key=lambda o: o.order_time, reverse=True)
        return [o.model_copy(deep=True) for o in orders[:limit]]

    async def find_by_status(self, status: OrderStatus) -> List[Order]:
        orders = [o for o in self._store.orders.values() if o.status == status]
        return [o.model_copy(deep=True) for o in sorted(orders, key=lambda o: o.order_time)]

    async def find_by_date_range(self, start: datetime, end: datetime) -> List[Order]:
        orders = [o for o in self._store.orders.values() if start <= o.order_time < end]
        return [o.model_copy(deep=True) for o in sorted(orders, key=lambda o: o.order_time)]

    async def count_by_status(self) -> Dict[OrderStatus, int]:
        counts: Dict[OrderStatus, int] = {}
        for order in self._store.orders.values():
            counts[order.status] = counts.get(order.status, 0) + 1
        return counts

    async def update(self, order: Order) -> Order:
        if order.order_id not in self._store.orders:
            raise OrderNotFoundError(f"Order {order.order_id} not found")
        self._store.orders[order.order_id] = order.model_copy(deep=True)
        return order

    async def delete(self, order_id: str) -> bool:
        return self._store.orders.pop(order_id, None) is not None


class InMemoryLoyaltyAccountRepository(LoyaltyAccountRepository):
    def __init__(self, store: InMemoryStore):
        self._store = store

    async def create(self, account: LoyaltyAccount) -> None:
        self._store.accounts[account.student_id] = account.model_copy(deep=True)

    async def get_by_student(self, student_id: str) -> Optional[LoyaltyAccount]:
        account = self._store.accounts.get(student_id)
        return account.model_copy(deep=True) if account else None

    async def credit(self, student_id: str, transaction: LoyaltyTransaction) -> None:
        self._store.accounts[student_id].apply(transaction.model_copy())

    async def debit(self, student_id: str, transaction: LoyaltyTransaction) -> bool:
        # no await between the check and the write
        account = self._store.accounts.get(student_id)
        if not account or not account.can_debit(transaction.points):
            return False
        account.apply(transaction.model_copy())
        return True


class InMemoryCatalog(CatalogLookup):
    def __init__(self, store: InMemoryStore):
        self._store = store

    async def get(self, item_id: str) -> Optional[CatalogItem]:
        item = self._store.menu.get(item_id)
        return item.model_copy(deep=True) if item else None

    async def find_available(self, item_id: str) -> Optional[CatalogItem]:
        item = self._store.menu.get(item_id)
        return item.model_copy(deep=True) if item and item.available else None

    async def list_available(self) -> List[CatalogItem]:
        items = [i for i in self._store.menu.values() if i.available]
        return [i.model_copy(deep=True) for i in sorted(items, key=lambda i: (i.category.value, i.name))]


class InMemoryUnitOfWork:
    def __init__(self, store: Optional[InMemoryStore] = None):
        self.store = store or InMemoryStore()

    @asynccontextmanager
    async def __call__(self):
        uow_impl = _InMemoryUnitOfWorkImpl(self.store)
        try:
            yield uow_impl
        finally:
            await uow_impl.rollback()


class _InMemoryUnitOfWorkImpl(UnitOfWork):
    def __init__(self, store: InMemoryStore):
        self._store = store
        self._committed = store.snapshot()
        self.orders = InMemoryOrderRepository(store)
        self.accounts = InMemoryLoyaltyAccountRepository(store)
        self.catalog = InMemoryCatalog(store)

    async def commit(self):
        self._committed = self._store.snapshot()

    async def rollback(self):
        self._store.restore(self._committed)


DEFAULT_MENU = [
    CatalogItem(item_id="DRI_WATER", name="Mineral Water", price="10.00", category="DRINK"),
    CatalogItem(item_id="DRI_TEA", name="Tea", price="15.00", category="DRINK"),
    CatalogItem(item_id="BRE_FOUL", name="Foul Sandwich", price="20.00", category="BREAKFAST"),
    CatalogItem(item_id="MAI_KOSHARI", name="Koshari", price="45.00", category="MAIN_COURSE"),
    CatalogItem(item_id="SNA_CHIPS", name="Chips", price="12.50", category="SNACK"),
    CatalogItem(item_id="DES_BASBOUSA", name="Basbousa", price="25.00", category="DESSERT"),
]


def seeded_store() -> InMemoryStore:
    """Store with a starter menu for running without a database"""
    store = InMemoryStore()
    for item in DEFAULT_MENU:
        store.add_menu_item(item)
    return store
