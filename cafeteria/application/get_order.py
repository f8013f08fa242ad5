from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, List, Optional

from cafeteria.domain.exceptions import OrderNotFoundError, ValidationError
from cafeteria.domain.models import CatalogItem, Order, OrderStatus


class GetOrderUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, order_id: str) -> Order:
        async with self._uow() as uow:
            order = await uow.orders.find_by_id(order_id)
            if not order:
                raise OrderNotFoundError(f"Order {order_id} not found")
            return order


class ListStudentOrdersUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, student_id: str, limit: Optional[int] = None) -> List[Order]:
        """Most recent first when a limit is given, otherwise in order-time order"""
        async with self._uow() as uow:
            if limit is not None:
                if limit <= 0:
                    return []
                return await uow.orders.find_recent_by_student(student_id, limit)
            return await uow.orders.find_by_student(student_id)


class ListOrdersByStatusUseCase:
    """Staff queue: orders in one lifecycle status, oldest first"""

    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, status) -> List[Order]:
        try:
            status = OrderStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown order status: {status}")
        async with self._uow() as uow:
            return await uow.orders.find_by_status(status)


class ListOrdersByDateUseCase:
    """Orders placed between two calendar days (UTC), both days included"""

    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, start_date: date, end_date: Optional[date] = None) -> List[Order]:
        end_date = end_date or start_date
        if end_date < start_date:
            raise ValidationError(f"End date {end_date} is before start date {start_date}")
        start = datetime.combine(start_date, time.min, tzinfo=timezone.utc)
        end = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=timezone.utc)
        async with self._uow() as uow:
            return await uow.orders.find_by_date_range(start, end)


class OrderStatisticsUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self) -> Dict[OrderStatus, int]:
        async with self._uow() as uow:
            counts = await uow.orders.count_by_status()
        return {status: counts.get(status, 0) for status in OrderStatus}


class ListMenuUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self) -> List[CatalogItem]:
        async with self._uow() as uow:
            return await uow.catalog.list_available()
