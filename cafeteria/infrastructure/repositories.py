from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from cafeteria.application.interfaces import CatalogLookup, LoyaltyAccountRepository, OrderRepository
from cafeteria.domain.exceptions import OrderNotFoundError
from cafeteria.domain.loyalty import LoyaltyAccount, LoyaltyTransaction, TransactionType
from cafeteria.domain.models import CatalogItem, MenuCategory, Order, OrderLine, OrderStatus
from cafeteria.infrastructure.db_schema import (
    loyalty_accounts_tbl,
    loyalty_transactions_tbl,
    menu_items_tbl,
    order_lines_tbl,
    orders_tbl,
)


class SQLAlchemyOrderRepository(OrderRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def save(self, order: Order) -> Order:
        await self._session.execute(insert(orders_tbl).values(**self._order_values(order)))
        await self._insert_lines(order)
        return order

    async def find_by_id(self, order_id: str) -> Optional[Order]:
        result = await self._session.execute(
            select(orders_tbl).where(orders_tbl.c.order_id == order_id)
        )
        row = result.fetchone()
        if not row:
            return None
        lines = await self._load_lines([order_id])
        return self._to_domain(row, lines[order_id])

    async def find_by_student(self, student_id: str) -> List[Order]:
        return await self._find(
            select(orders_tbl)
            .where(orders_tbl.c.student_id == student_id)
            .order_by(orders_tbl.c.order_time.asc())
        )

    async def find_recent_by_student(self, student_id: str, limit: int) -> List[Order]:
        return await self._find(
            select(orders_tbl)
            .where(orders_tbl.c.student_id == student_id)
            .order_by(orders_tbl.c.order_time.desc())
            .limit(limit)
        )

    async def find_by_status(self, status: OrderStatus) -> List[Order]:
        return await self._find(
            select(orders_tbl)
            .where(orders_tbl.c.status == status)
            .order_by(orders_tbl.c.order_time.asc())
        )

    async def find_by_date_range(self, start: datetime, end: datetime) -> List[Order]:
        return await self._find(
            select(orders_tbl)
            .where(orders_tbl.c.order_time >= start, orders_tbl.c.order_time < end)
            .order_by(orders_tbl.c.order_time.asc())
        )

    async def count_by_status(self) -> Dict[OrderStatus, int]:
        result = await self._session.execute(
            select(orders_tbl.c.status, func.count()).group_by(orders_tbl.c.status)
        )
        return {OrderStatus(status): count for status, count in result.all()}

    async def update(self, order: Order) -> Order:
        values = self._order_values(order)
        values.pop("order_id")
        result = await self._session.execute(
            update(orders_tbl)
            .where(orders_tbl.c.order_id == order.order_id)
            .values(**values)
        )
        if result.rowcount == 0:
            raise OrderNotFoundError(f"Order {order.order_id} not found")

        await self._session.execute(
            delete(order_lines_tbl).where(order_lines_tbl.c.order_id == order.order_id)
        )
        await self._insert_lines(order)
        return order

    async def delete(self, order_id: str) -> bool:
        await self._session.execute(
            delete(order_lines_tbl).where(order_lines_tbl.c.order_id == order_id)
        )
        result = await self._session.execute(
            delete(orders_tbl).where(orders_tbl.c.order_id == order_id)
        )
        return result.rowcount > 0

    async def _find(self, stmt) -> List[Order]:
        result = await self._session.execute(stmt)
        rows = result.fetchall()
        if not rows:
            return []
        lines = await self._load_lines([row.order_id for row in rows])
        return [self._to_domain(row, lines[row.order_id]) for row in rows]

    async def _load_lines(self, order_ids: List[str]) -> dict:
        result = await self._session.execute(
            select(order_lines_tbl)
            .where(order_lines_tbl.c.order_id.in_(order_ids))
            .order_by(order_lines_tbl.c.order_id, order_lines_tbl.c.position)
        )
        lines = defaultdict(list)
        for row in result.fetchall():
            lines[row.order_id].append(self._line_to_domain(row))
        return lines

    async def _insert_lines(self, order: Order) -> None:
        if not order.lines:
            return
        await self._session.execute(
            insert(order_lines_tbl),
            [
                {
                    "order_id": order.order_id,
                    "position": position,
                    "item_id": line.item.item_id,
                    "item_name": line.item.name,
                    "item_description": line.item.description,
                    "unit_price": line.item.price,
                    "category": line.item.category,
                    "quantity": line.quantity,
                    "free": line.free,
                    "subtotal": line.subtotal,
                }
                for position, line in enumerate(order.lines)
            ]
        )

    def _order_values(self, order: Order) -> dict:
        return {
            "order_id": order.order_id,
            "student_id": order.student_id,
            "status": order.status,
            "total_amount": order.total_amount,
            "discount_amount": order.discount_amount,
            "points_earned": order.loyalty_points_earned,
            "points_redeemed": order.loyalty_points_redeemed,
            "order_time": order.order_time,
            "status_updated_time": order.status_updated_time,
            "notes": order.notes,
        }

    def _line_to_domain(self, row) -> OrderLine:
        return OrderLine(
            item=CatalogItem(
                item_id=row.item_id,
                name=row.item_name,
                description=row.item_description,
                price=row.unit_price,
                category=MenuCategory(row.category),
            ),
            quantity=row.quantity,
            free=row.free,
        )

    def _to_domain(self, row, lines: List[OrderLine]) -> Order:
        """DB row → domain; total_amount is recomputed from the lines"""
        return Order(
            order_id=row.order_id,
            student_id=row.student_id,
            status=OrderStatus(row.status),
            lines=lines,
            discount_amount=row.discount_amount,
            loyalty_points_earned=row.points_earned,
            loyalty_points_redeemed=row.points_redeemed,
            order_time=row.order_time,
            status_updated_time=row.status_updated_time,
            notes=row.notes
        )


class SQLAlchemyLoyaltyAccountRepository(LoyaltyAccountRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(self, account: LoyaltyAccount) -> None:
        await self._session.execute(
            insert(loyalty_accounts_tbl).values(
                student_id=account.student_id,
                points_balance=account.points_balance
            )
        )
        for txn in account.transactions:
            await self._append(account.student_id, txn)

    async def get_by_student(self, student_id: str) -> Optional[LoyaltyAccount]:
        result = await self._session.execute(
            select(loyalty_accounts_tbl).where(loyalty_accounts_tbl.c.student_id == student_id)
        )
        row = result.fetchone()
        if not row:
            return None

        txn_result = await self._session.execute(
            select(loyalty_transactions_tbl)
            .where(loyalty_transactions_tbl.c.student_id == student_id)
            .order_by(loyalty_transactions_tbl.c.id.asc())
        )
        return LoyaltyAccount(
            student_id=row.student_id,
            points_balance=row.points_balance,
            transactions=[
                LoyaltyTransaction(
                    type=TransactionType(txn.type),
                    points=txn.points,
                    description=txn.description,
                    timestamp=txn.timestamp,
                )
                for txn in txn_result.fetchall()
            ]
        )

    async def credit(self, student_id: str, transaction: LoyaltyTransaction) -> None:
        await self._session.execute(
            update(loyalty_accounts_tbl)
            .where(loyalty_accounts_tbl.c.student_id == student_id)
            .values(
                points_balance=loyalty_accounts_tbl.c.points_balance + transaction.points,
                updated_at=datetime.now(timezone.utc)
            )
        )
        await self._append(student_id, transaction)

    async def debit(self, student_id: str, transaction: LoyaltyTransaction) -> bool:
        # single conditional UPDATE: the balance check and the decrement cannot be separated
        result = await self._session.execute(
            update(loyalty_accounts_tbl)
            .where(
                loyalty_accounts_tbl.c.student_id == student_id,
                loyalty_accounts_tbl.c.points_balance >= transaction.points
            )
            .values(
                points_balance=loyalty_accounts_tbl.c.points_balance - transaction.points,
                updated_at=datetime.now(timezone.utc)
            )
        )
        if result.rowcount == 0:
            return False
        await self._append(student_id, transaction)
        return True

    async def _append(self, student_id: str, transaction: LoyaltyTransaction) -> None:
        await self._session.execute(
            insert(loyalty_transactions_tbl).values(
                student_id=student_id,
                type=transaction.type,
                points=transaction.points,
                description=transaction.description,
                timestamp=transaction.timestamp
            )
        )


class SQLAlchemyCatalog(CatalogLookup):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, item_id: str) -> Optional[CatalogItem]:
        result = await self._session.execute(
            select(menu_items_tbl).where(menu_items_tbl.c.item_id == item_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def find_available(self, item_id: str) -> Optional[CatalogItem]:
        result = await self._session.execute(
            select(menu_items_tbl).where(
                menu_items_tbl.c.item_id == item_id,
                menu_items_tbl.c.available.is_(True)
            )
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def list_available(self) -> List[CatalogItem]:
        result = await self._session.execute(
            select(menu_items_tbl)
            .where(menu_items_tbl.c.available.is_(True))
            .order_by(menu_items_tbl.c.category, menu_items_tbl.c.name)
        )
        return [self._to_domain(row) for row in result.fetchall()]

    def _to_domain(self, row) -> CatalogItem:
        return CatalogItem(
            item_id=row.item_id,
            name=row.name,
            description=row.description or "",
            price=row.price,
            category=MenuCategory(row.category),
            available=row.available
        )
