"""
StockPulse Database Session Management

Async SQLAlchemy engine and session factory shared by the API and workers.
"""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from core.config import get_settings

settings = get_settings()

_engine_kwargs = {"echo": settings.database_echo, "pool_pre_ping": True}
if not settings.database_url.startswith("sqlite"):
    # SQLite uses a static pool; sizing only applies to server databases
    _engine_kwargs.update(pool_size=settings.database_pool_size, max_overflow=10)

engine = create_async_engine(settings.database_url, **_engine_kwargs)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Declarative base for all StockPulse models."""

    pass
