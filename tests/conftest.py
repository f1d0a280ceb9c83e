"""
Pytest configuration and shared fixtures.
"""
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.application.order_service import OrderService
from app.db.models import Base
from app.domain.entities import NewOrderItem
from app.domain.unit_of_work import InMemoryUnitOfWork, sqlalchemy_uow_factory
from app.repositories.in_memory_order_repository import InMemoryOrderRepository


@pytest.fixture
def order_repo() -> InMemoryOrderRepository:
    """Empty in-memory order store"""
    return InMemoryOrderRepository()


@pytest.fixture
def order_service(order_repo: InMemoryOrderRepository) -> OrderService:
    """OrderService over the in-memory store"""
    return OrderService(lambda: InMemoryUnitOfWork(order_repo))


@pytest_asyncio.fixture
async def session_maker():
    """Create an in-memory test database"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    yield async_session_maker

    await engine.dispose()


@pytest.fixture
def sql_uow_factory(session_maker):
    return sqlalchemy_uow_factory(session_maker)


@pytest.fixture
def sql_order_service(sql_uow_factory) -> OrderService:
    """OrderService over the SQLite-backed repository"""
    return OrderService(sql_uow_factory)


@pytest.fixture
def sample_items():
    """The two-line order used across tests"""
    return [
        NewOrderItem(sku="X1", quantity=2, unit_price="9.99"),
        NewOrderItem(sku="Y7", quantity=1, unit_price="0.50"),
    ]
