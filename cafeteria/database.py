import logging
from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from cafeteria.config import settings
from cafeteria.infrastructure.db_schema import metadata
from cafeteria.infrastructure.memory import InMemoryUnitOfWork, seeded_store
from cafeteria.infrastructure.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


@lru_cache
def get_engine() -> AsyncEngine:
    return create_async_engine(settings.DATABASE_URL, pool_pre_ping=True)


@lru_cache
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(get_engine(), expire_on_commit=False)


@lru_cache
def get_unit_of_work():
    if not settings.POSTGRES_CONNECTION_STRING:
        logger.warning("POSTGRES_CONNECTION_STRING is not set, using the in-memory store")
        return InMemoryUnitOfWork(seeded_store())
    return UnitOfWork(get_session_factory())


async def create_tables() -> None:
    if not settings.POSTGRES_CONNECTION_STRING:
        return
    async with get_engine().begin() as conn:
        await conn.run_sync(metadata.create_all)
    logger.info("Tables created")
