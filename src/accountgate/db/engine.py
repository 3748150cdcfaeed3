"""Async SQLAlchemy engine and session factory.

Learn: SQLAlchemy 2.0 async mode — create_async_engine for connection pooling,
AsyncSession for per-request database access, dependency injection via FastAPI.
The engine is created lazily so importing the app never opens a pool
(tests swap the store out entirely).
"""

from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from accountgate.config import settings

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def get_engine() -> AsyncEngine:
    """Create the engine on first use. echo=True in debug to see SQL."""
    global _engine, _session_factory
    if _engine is None:
        kwargs = {"echo": settings.debug}
        if not settings.database_url.startswith("sqlite"):
            # Connection pool: min 5, max 20 connections.
            kwargs.update(pool_size=5, max_overflow=15)
        _engine = create_async_engine(settings.database_url, **kwargs)
        _session_factory = async_sessionmaker(
            _engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _engine


async def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None


async def get_db() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency — yields a session per request, auto-closes.

    Uncommitted writes are rolled back on close, which is what keeps a
    failed refresh rotation from leaving half its work behind.
    """
    get_engine()
    async with _session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
