"""
Database connection and session management
"""
from datetime import datetime, timezone
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool
from contextlib import asynccontextmanager
from .config import get_settings

settings = get_settings()


def _engine_options(url: str) -> dict:
    # aiosqlite connections are bound to the event loop that opened them
    if url.startswith("sqlite"):
        return {"poolclass": NullPool}
    return {"pool_pre_ping": True, "pool_size": 10, "max_overflow": 20}


async_engine = create_async_engine(
    settings.database_url,
    echo=False,
    **_engine_options(settings.database_url)
)

AsyncSessionLocal = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False
)

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every table stores"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@asynccontextmanager
async def get_async_session():
    """Get async database session"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def get_db():
    """Dependency for FastAPI"""
    async with get_async_session() as session:
        yield session


async def init_models():
    """Create all tables that do not exist yet"""
    # Registers the mapped classes on Base.metadata
    from . import tables  # noqa: F401

    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_models():
    """Drop all tables (used by tests)"""
    from . import tables  # noqa: F401

    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
