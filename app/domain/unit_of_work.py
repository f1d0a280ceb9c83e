"""
Unit of Work pattern for transaction management.

The Unit of Work pattern ensures:
1. Each lifecycle operation runs in its own transaction
2. Atomic commit (all or nothing)
3. Rollback when any exception escapes the operation
4. Proper resource cleanup

Concurrent operations each open their own unit of work, so they never share
a session; conflicting writes are detected by the repository's version check.
"""

from abc import ABC, abstractmethod
from typing import Callable, TYPE_CHECKING
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
import logging

if TYPE_CHECKING:
    from app.core.interfaces import IOrderRepository
    from app.repositories.in_memory_order_repository import InMemoryOrderRepository

logger = logging.getLogger(__name__)


class AbstractUnitOfWork(ABC):
    """
    Abstract Unit of Work for transaction management.

    Provides:
    - Transaction boundaries (commit/rollback)
    - Repository access (orders)
    """

    orders: 'IOrderRepository'

    async def __aenter__(self):
        """Enter async context"""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """
        Exit async context.

        On success: commits
        On exception: rolls back
        """
        try:
            if exc_type is None:
                await self.commit()
            else:
                await self.rollback()
        finally:
            await self.close()

    @abstractmethod
    async def commit(self):
        """Commit transaction"""
        pass

    @abstractmethod
    async def rollback(self):
        """Rollback transaction"""
        pass

    @abstractmethod
    async def close(self):
        """Close resources"""
        pass


class SQLAlchemyUnitOfWork(AbstractUnitOfWork):
    """
    SQLAlchemy implementation of Unit of Work.

    Owns one AsyncSession for the duration of a single operation.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize Unit of Work.

        Args:
            session: SQLAlchemy async session
        """
        self._session = session

        # Import here to avoid circular dependencies
        from app.repositories.order_repository import OrderRepository

        self.orders = OrderRepository(session)

    async def commit(self):
        await self._session.commit()
        logger.debug("✅ Transaction committed")

    async def rollback(self):
        """Discard all pending changes"""
        await self._session.rollback()
        logger.debug("↩️  Transaction rolled back")

    async def close(self):
        """Close session and release resources"""
        await self._session.close()


class InMemoryUnitOfWork(AbstractUnitOfWork):
    """
    Unit of Work over an InMemoryOrderRepository.

    The in-memory repository applies each conditional save atomically on
    its own, so commit and rollback have nothing left to do. Several units
    of work share one repository to model one durable store.
    """

    def __init__(self, orders: 'InMemoryOrderRepository'):
        self.orders = orders

    async def commit(self):
        pass

    async def rollback(self):
        pass

    async def close(self):
        pass


def sqlalchemy_uow_factory(
    session_maker: async_sessionmaker,
) -> Callable[[], AbstractUnitOfWork]:
    """
    Build a Unit of Work factory bound to a session factory.

    Args:
        session_maker: SQLAlchemy async session factory

    Returns:
        Zero-argument callable returning a fresh SQLAlchemyUnitOfWork

    Usage:
        service = OrderService(sqlalchemy_uow_factory(async_session_maker))
    """
    def factory() -> AbstractUnitOfWork:
        return SQLAlchemyUnitOfWork(session_maker())

    return factory
