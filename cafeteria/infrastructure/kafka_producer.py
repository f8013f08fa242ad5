import asyncio
import json
import logging
from typing import Set

from aiokafka import AIOKafkaProducer

from cafeteria.application.interfaces import NotificationEvent, NotificationSink

logger = logging.getLogger(__name__)


class KafkaNotificationSink(NotificationSink):
    """Publishes order and loyalty events for the kitchen display and the notification service"""

    def __init__(self, bootstrap_servers: str, topic: str = "cafeteria.order-events"):
        self._bootstrap_servers = bootstrap_servers
        self._producer: AIOKafkaProducer | None = None
        self._topic = topic
        self._pending: Set[asyncio.Task] = set()

    async def start(self):
        if not self._producer:
            self._producer = AIOKafkaProducer(
                bootstrap_servers=self._bootstrap_servers
            )
            await self._producer.start()
            logger.info("Kafka producer started")

    async def stop(self):
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        if self._producer:
            await self._producer.stop()
            self._producer = None
            logger.info("Kafka producer stopped")

    def notify(self, event: NotificationEvent, payload: dict) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop, event {event.value} dropped")
            return
        task = loop.create_task(self.publish(event, payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def publish(self, event: NotificationEvent, payload: dict) -> bool:
        if not self._producer:
            logger.error("Kafka producer not started")
            return False

        key = payload.get("order_id") or payload.get("student_id") or ""
        try:
            await self._producer.send_and_wait(
                topic=self._topic,
                key=key.encode(),
                value=json.dumps({"event_type": event.value, **payload}).encode()
            )
            logger.info(f"Published {event.value} for {key}")
            return True

        except Exception as e:
            logger.error(f"Failed to publish {event.value}: {e}")
            return False
