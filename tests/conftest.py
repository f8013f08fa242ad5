import pytest

from cafeteria.application.loyalty_service import LoyaltyAccountService
from cafeteria.application.order_lifecycle import OrderLifecycleService
from cafeteria.domain.loyalty import LoyaltyAccount
from cafeteria.domain.models import MenuCategory
from cafeteria.infrastructure.memory import InMemoryStore, InMemoryUnitOfWork

from tests.factories import RecordingSink, make_item

FREE_ITEM_ID = "DRI_WATER"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def store():
    store = InMemoryStore()
    store.add_menu_item(make_item("MAI_KOSHARI", "45.00"))
    store.add_menu_item(make_item("MAI_BURGER", "50.00"))
    store.add_menu_item(make_item("DRI_TEA", "15.00", MenuCategory.DRINK))
    store.add_menu_item(make_item(FREE_ITEM_ID, "10.00", MenuCategory.DRINK, name="Mineral Water"))
    store.add_menu_item(make_item("SNA_CHIPS", "12.50", MenuCategory.SNACK))
    store.add_menu_item(make_item("DES_CAKE", "30.00", MenuCategory.DESSERT, available=False))
    return store


@pytest.fixture
def uow(store):
    return InMemoryUnitOfWork(store)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def service(uow, sink):
    return OrderLifecycleService(uow, sink, FREE_ITEM_ID)


@pytest.fixture
def loyalty(uow, sink):
    return LoyaltyAccountService(uow, sink)


@pytest.fixture
def student(store):
    """Student S1 with an open loyalty account and no points"""
    store.accounts["S1"] = LoyaltyAccount(student_id="S1")
    return "S1"
