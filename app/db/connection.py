"""
Database connection management with SQLAlchemy async support.

Supports SQLite (development) and PostgreSQL/MySQL (production) via DATABASE_URL.
"""
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from app.db.models import Base
from app.config import settings
from app.domain.unit_of_work import AbstractUnitOfWork, SQLAlchemyUnitOfWork
import logging

logger = logging.getLogger(__name__)

# Database engine (will be initialized in init_db)
engine = None
async_session_maker = None


async def init_db(database_url: Optional[str] = None):
    """
    Initialize database connection and create tables.

    Args:
        database_url: Optional database URL override (defaults to settings)
    """
    global engine, async_session_maker

    if database_url is None:
        database_url = settings.database_url
    logger.info(f"Initializing database: {database_url.split('://')[0]}")

    # Create async engine with appropriate settings based on database type
    if database_url.startswith("sqlite") and ":memory:" in database_url:
        # In-memory SQLite: one shared connection or every session sees an empty DB
        engine = create_async_engine(
            database_url,
            echo=settings.database_echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    elif database_url.startswith("sqlite"):
        engine = create_async_engine(
            database_url,
            echo=settings.database_echo,
            connect_args={"check_same_thread": False},
        )
    else:
        # PostgreSQL/MySQL configuration
        engine = create_async_engine(
            database_url,
            echo=settings.database_echo,
            pool_pre_ping=True,  # Verify connections before using
            pool_recycle=3600,   # Recycle connections after 1 hour
        )

    # Create session factory
    async_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("✅ Database initialized successfully")


def get_unit_of_work() -> AbstractUnitOfWork:
    """
    Unit of Work factory bound to the initialized session factory.

    Each call opens a new session, so concurrent requests never share one.
    """
    if async_session_maker is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return SQLAlchemyUnitOfWork(async_session_maker())


async def close_db():
    """Close database connection."""
    global engine, async_session_maker
    if engine:
        await engine.dispose()
        engine = None
        async_session_maker = None
        logger.info("Database connection closed")
