import logging

from cafeteria.application.interfaces import NotificationEvent, NotificationSink

logger = logging.getLogger(__name__)


class LoggingNotificationSink(NotificationSink):
    """Default sink when no delivery backend is configured"""

    def notify(self, event: NotificationEvent, payload: dict) -> None:
        logger.info(f"Notification {event.value}: {payload}")


def build_notification_sink(settings) -> NotificationSink:
    backend = settings.NOTIFICATIONS_BACKEND
    if backend == "http":
        from cafeteria.infrastructure.http_clients import HTTPNotificationsClient
        return HTTPNotificationsClient(settings.NOTIFICATIONS_BASE_URL, settings.API_TOKEN)
    if backend == "kafka":
        from cafeteria.infrastructure.kafka_producer import KafkaNotificationSink
        return KafkaNotificationSink(settings.KAFKA_BOOTSTRAP_SERVERS)
    if backend != "log":
        logger.warning(f"Unknown NOTIFICATIONS_BACKEND {backend!r}, falling back to logging")
    return LoggingNotificationSink()
