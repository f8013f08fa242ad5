from functools import lru_cache
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from cafeteria.application.get_order import (
    GetOrderUseCase,
    ListMenuUseCase,
    ListOrdersByDateUseCase,
    ListOrdersByStatusUseCase,
    ListStudentOrdersUseCase,
    OrderStatisticsUseCase,
)
from cafeteria.application.interfaces import NotificationSink
from cafeteria.application.loyalty_service import LoyaltyAccountService
from cafeteria.application.order_lifecycle import AddItemDTO, OrderLifecycleService
from cafeteria.config import settings
from cafeteria.database import get_unit_of_work
from cafeteria.domain.exceptions import (
    CapacityExceeded,
    DomainException,
    InsufficientBalance,
    InvalidTransition,
    NotFoundError,
    OrderNotModifiable,
)
from cafeteria.infrastructure.notifications import build_notification_sink
from cafeteria.presentation.schemas import (
    AddItemRequest,
    CreateOrderRequest,
    ErrorResponse,
    LoyaltyAccountResponse,
    MenuItemResponse,
    NotesRequest,
    OrderResponse,
    OrderStatisticsResponse,
    PreparationTimeResponse,
    RedemptionOptionResponse,
    RedemptionRequest,
    SetQuantityRequest,
    StatusUpdateRequest,
)

router = APIRouter()

CONFLICTS = (OrderNotModifiable, InvalidTransition, CapacityExceeded, InsufficientBalance)

ERRORS = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


def to_http_error(e: DomainException) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, CONFLICTS):
        return HTTPException(status_code=409, detail=str(e))
    # ValidationError, RedemptionNotApplicable
    return HTTPException(status_code=400, detail=str(e))


@lru_cache
def get_notification_sink() -> NotificationSink:
    return build_notification_sink(settings)


# Use case factories
def get_lifecycle_service(
    uow=Depends(get_unit_of_work),
    notifications: NotificationSink = Depends(get_notification_sink)
):
    return OrderLifecycleService(uow, notifications, settings.FREE_ITEM_ID)


def get_loyalty_service(
    uow=Depends(get_unit_of_work),
    notifications: NotificationSink = Depends(get_notification_sink)
):
    return LoyaltyAccountService(uow, notifications)


def get_get_order_use_case(uow=Depends(get_unit_of_work)):
    return GetOrderUseCase(uow)


def get_student_orders_use_case(uow=Depends(get_unit_of_work)):
    return ListStudentOrdersUseCase(uow)


def get_orders_by_status_use_case(uow=Depends(get_unit_of_work)):
    return ListOrdersByStatusUseCase(uow)


def get_orders_by_date_use_case(uow=Depends(get_unit_of_work)):
    return ListOrdersByDateUseCase(uow)


def get_order_statistics_use_case(uow=Depends(get_unit_of_work)):
    return OrderStatisticsUseCase(uow)


def get_menu_use_case(uow=Depends(get_unit_of_work)):
    return ListMenuUseCase(uow)


# Loyalty

@router.post(
    "/students/{student_id}/loyalty",
    response_model=LoyaltyAccountResponse,
    responses=ERRORS,
    status_code=status.HTTP_201_CREATED
)
async def open_loyalty_account(
    student_id: str,
    service: LoyaltyAccountService = Depends(get_loyalty_service)
):
    try:
        account = await service.open_account(student_id)
        return LoyaltyAccountResponse.from_domain(account)
    except DomainException as e:
        raise to_http_error(e)


@router.get("/students/{student_id}/loyalty", response_model=LoyaltyAccountResponse, responses=ERRORS)
async def get_loyalty_account(
    student_id: str,
    limit: Optional[int] = None,
    service: LoyaltyAccountService = Depends(get_loyalty_service)
):
    """Balance plus transaction history, most recent first"""
    try:
        account = await service.get_account(student_id)
        return LoyaltyAccountResponse.from_domain(account, limit)
    except DomainException as e:
        raise to_http_error(e)


@router.get(
    "/students/{student_id}/loyalty/redemptions",
    response_model=List[RedemptionOptionResponse],
    responses=ERRORS
)
async def list_redemptions(
    student_id: str,
    service: LoyaltyAccountService = Depends(get_loyalty_service)
):
    try:
        options = await service.available_redemptions(student_id)
        return [RedemptionOptionResponse(**option.model_dump()) for option in options]
    except DomainException as e:
        raise to_http_error(e)


@router.get("/students/{student_id}/orders", response_model=List[OrderResponse])
async def list_student_orders(
    student_id: str,
    limit: Optional[int] = None,
    use_case: ListStudentOrdersUseCase = Depends(get_student_orders_use_case)
):
    orders = await use_case(student_id, limit)
    return [OrderResponse.from_domain(order) for order in orders]


# Menu

@router.get("/menu", response_model=List[MenuItemResponse])
async def list_menu(use_case: ListMenuUseCase = Depends(get_menu_use_case)):
    items = await use_case()
    return [MenuItemResponse.from_domain(item) for item in items]


# Orders

@router.post(
    "/orders",
    response_model=OrderResponse,
    responses=ERRORS,
    status_code=status.HTTP_201_CREATED
)
async def create_order(
    request: CreateOrderRequest,
    service: OrderLifecycleService = Depends(get_lifecycle_service)
):
    try:
        order = await service.create_order(request.student_id)
        return OrderResponse.from_domain(order)
    except DomainException as e:
        raise to_http_error(e)


@router.get("/orders", response_model=List[OrderResponse], responses=ERRORS)
async def list_orders_by_status(
    order_status: str = Query(..., alias="status"),
    use_case: ListOrdersByStatusUseCase = Depends(get_orders_by_status_use_case)
):
    """Staff queue, oldest first"""
    try:
        orders = await use_case(order_status)
        return [OrderResponse.from_domain(order) for order in orders]
    except DomainException as e:
        raise to_http_error(e)


@router.get("/orders/by-date", response_model=List[OrderResponse], responses=ERRORS)
async def list_orders_by_date(
    start: date,
    end: Optional[date] = None,
    use_case: ListOrdersByDateUseCase = Depends(get_orders_by_date_use_case)
):
    """Orders placed from start to end (UTC days, inclusive); end defaults to start"""
    try:
        orders = await use_case(start, end)
        return [OrderResponse.from_domain(order) for order in orders]
    except DomainException as e:
        raise to_http_error(e)


@router.get("/orders/statistics", response_model=OrderStatisticsResponse)
async def order_statistics(use_case: OrderStatisticsUseCase = Depends(get_order_statistics_use_case)):
    counts = await use_case()
    return OrderStatisticsResponse.from_counts(counts)


@router.get("/orders/{order_id}", response_model=OrderResponse, responses=ERRORS)
async def get_order(
    order_id: str,
    use_case: GetOrderUseCase = Depends(get_get_order_use_case)
):
    try:
        order = await use_case(order_id)
        return OrderResponse.from_domain(order)
    except DomainException as e:
        raise to_http_error(e)


@router.post("/orders/{order_id}/items", response_model=OrderResponse, responses=ERRORS)
async def add_item(
    order_id: str,
    request: AddItemRequest,
    service: OrderLifecycleService = Depends(get_lifecycle_service)
):
    try:
        order = await service.add_item_by_id(
            order_id, AddItemDTO(item_id=request.item_id, quantity=request.quantity)
        )
        return OrderResponse.from_domain(order)
    except DomainException as e:
        raise to_http_error(e)


@router.put("/orders/{order_id}/items/{item_id}", response_model=OrderResponse, responses=ERRORS)
async def set_item_quantity(
    order_id: str,
    item_id: str,
    request: SetQuantityRequest,
    service: OrderLifecycleService = Depends(get_lifecycle_service)
):
    try:
        order = await service.set_item_quantity(order_id, item_id, request.quantity)
        return OrderResponse.from_domain(order)
    except DomainException as e:
        raise to_http_error(e)


@router.delete("/orders/{order_id}/items/{item_id}", response_model=OrderResponse, responses=ERRORS)
async def remove_item(
    order_id: str,
    item_id: str,
    service: OrderLifecycleService = Depends(get_lifecycle_service)
):
    try:
        order = await service.remove_item(order_id, item_id)
        return OrderResponse.from_domain(order)
    except DomainException as e:
        raise to_http_error(e)


@router.put("/orders/{order_id}/notes", response_model=OrderResponse, responses=ERRORS)
async def update_notes(
    order_id: str,
    request: NotesRequest,
    service: OrderLifecycleService = Depends(get_lifecycle_service)
):
    try:
        order = await service.update_notes(order_id, request.notes)
        return OrderResponse.from_domain(order)
    except DomainException as e:
        raise to_http_error(e)


@router.post("/orders/{order_id}/redemption", response_model=OrderResponse, responses=ERRORS)
async def apply_redemption(
    order_id: str,
    request: RedemptionRequest,
    service: OrderLifecycleService = Depends(get_lifecycle_service)
):
    """Attach a loyalty redemption; points are debited on confirmation"""
    try:
        order = await service.apply_loyalty_discount(order_id, request.points)
        return OrderResponse.from_domain(order)
    except DomainException as e:
        raise to_http_error(e)


@router.post("/orders/{order_id}/confirm", response_model=OrderResponse, responses=ERRORS)
async def confirm_order(
    order_id: str,
    service: OrderLifecycleService = Depends(get_lifecycle_service)
):
    try:
        order = await service.confirm_order(order_id)
        return OrderResponse.from_domain(order)
    except DomainException as e:
        raise to_http_error(e)


@router.post("/orders/{order_id}/cancel", response_model=OrderResponse, responses=ERRORS)
async def cancel_order(
    order_id: str,
    service: OrderLifecycleService = Depends(get_lifecycle_service)
):
    try:
        order = await service.cancel_order(order_id)
        return OrderResponse.from_domain(order)
    except DomainException as e:
        raise to_http_error(e)


@router.patch("/orders/{order_id}/status", response_model=OrderResponse, responses=ERRORS)
async def update_status(
    order_id: str,
    request: StatusUpdateRequest,
    service: OrderLifecycleService = Depends(get_lifecycle_service)
):
    try:
        order = await service.update_status(order_id, request.status)
        return OrderResponse.from_domain(order)
    except DomainException as e:
        raise to_http_error(e)


@router.get(
    "/orders/{order_id}/preparation-time",
    response_model=PreparationTimeResponse,
    responses=ERRORS
)
async def preparation_time(
    order_id: str,
    service: OrderLifecycleService = Depends(get_lifecycle_service)
):
    try:
        minutes = await service.estimated_preparation_time(order_id)
        return PreparationTimeResponse(order_id=order_id, minutes=minutes)
    except DomainException as e:
        raise to_http_error(e)
