"""
Test data builders and a notification sink that records instead of delivering.
"""
from decimal import Decimal

from cafeteria.application.interfaces import NotificationSink
from cafeteria.domain.models import CatalogItem, MenuCategory


class RecordingSink(NotificationSink):
    def __init__(self):
        self.events = []

    def notify(self, event, payload):
        self.events.append((event, payload))

    def names(self):
        return [event.value for event, _ in self.events]


def make_item(item_id="MAI_KOSHARI", price="45.00", category=MenuCategory.MAIN_COURSE, available=True, name=None):
    return CatalogItem(
        item_id=item_id,
        name=name or item_id.title(),
        price=Decimal(price),
        category=category,
        available=available,
    )
