import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from cafeteria.config import settings
from cafeteria.database import create_tables
from cafeteria.infrastructure.http_clients import HTTPNotificationsClient
from cafeteria.infrastructure.kafka_producer import KafkaNotificationSink
from cafeteria.presentation.api import get_notification_sink, router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_tables()

    sink = get_notification_sink()
    if isinstance(sink, KafkaNotificationSink):
        await sink.start()
    logger.info(f"Notifications backend: {settings.NOTIFICATIONS_BACKEND}")

    yield

    logger.info("Shutting down")
    if isinstance(sink, KafkaNotificationSink):
        await sink.stop()
    elif isinstance(sink, HTTPNotificationsClient):
        await sink.drain()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Cafeteria Ordering Service",
        description="Student orders and loyalty points",
        version="1.0.0",
        lifespan=lifespan
    )
    app.include_router(router, prefix="/api")

    @app.get("/health")
    async def health():
        return {"status": "healthy", "notifications": settings.NOTIFICATIONS_BACKEND}

    return app


app = create_app()
