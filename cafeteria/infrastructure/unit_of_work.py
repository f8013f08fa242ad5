from contextlib import asynccontextmanager
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cafeteria.application.interfaces import UnitOfWork as UnitOfWorkScope
from cafeteria.infrastructure.repositories import (
    SQLAlchemyCatalog,
    SQLAlchemyLoyaltyAccountRepository,
    SQLAlchemyOrderRepository
)


class UnitOfWork:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def __call__(self):
        async with self._session_factory() as session:
            try:
                uow_impl = _UnitOfWorkImpl(session)
                yield uow_impl
                # nothing survives without an explicit commit
                await session.rollback()
            except Exception:
                await session.rollback()
                raise


class _UnitOfWorkImpl(UnitOfWorkScope):
    def __init__(self, session: AsyncSession):
        self._session = session
        self.orders = SQLAlchemyOrderRepository(session)
        self.accounts = SQLAlchemyLoyaltyAccountRepository(session)
        self.catalog = SQLAlchemyCatalog(session)

    async def commit(self):
        await self._session.commit()

    async def rollback(self):
        await self._session.rollback()
