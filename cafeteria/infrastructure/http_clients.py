import asyncio
import logging
import uuid
from typing import Optional, Set

import httpx

from cafeteria.application.interfaces import NotificationEvent, NotificationSink

logger = logging.getLogger(__name__)


class HTTPNotificationsClient(NotificationSink):
    def __init__(
        self,
        base_url: str,
        api_token: str,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._base_url = base_url
        self._api_token = api_token
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._transport = transport
        self._pending: Set[asyncio.Task] = set()

    def notify(self, event: NotificationEvent, payload: dict) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop, notification {event.value} dropped")
            return
        task = loop.create_task(self.send(event, payload, idempotency_key=str(uuid.uuid4())))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for deliveries still in flight"""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    async def send(self, event: NotificationEvent, payload: dict, idempotency_key: str) -> bool:
        """POST one event, retrying on transport errors and non-2xx replies"""
        body = {
            "event": event.value,
            "student_id": payload.get("student_id"),
            "reference_id": payload.get("order_id") or payload.get("student_id"),
            "payload": payload,
            "idempotency_key": idempotency_key
        }
        for attempt in range(self._max_retries):
            try:
                async with httpx.AsyncClient(transport=self._transport) as client:
                    response = await client.post(
                        f"{self._base_url}/api/notifications",
                        json=body,
                        headers={"X-API-Key": self._api_token},
                        timeout=10.0
                    )

                    if response.status_code in (200, 201):
                        logger.info(f"Notification {event.value} delivered (attempt {attempt + 1})")
                        return True
                    else:
                        logger.warning(f"Notification service returned {response.status_code}")

            except httpx.HTTPError as e:
                logger.warning(f"Notification delivery failed (attempt {attempt + 1}/{self._max_retries}): {e}")

            if attempt < self._max_retries - 1:
                await asyncio.sleep(self._retry_delay)

        logger.error(f"Notification {event.value} not delivered after {self._max_retries} attempts")
        return False
