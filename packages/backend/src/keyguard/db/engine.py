"""Async SQLAlchemy engine and session factory.

Learn: SQLAlchemy 2.0 async mode — create_async_engine for connection pooling,
AsyncSession for per-request database access, dependency injection via FastAPI.

The engine is built from an explicit Settings instance inside create_app()
and kept on app.state, so tests can point it at a throwaway SQLite file.
"""

from typing import AsyncIterator

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from keyguard.config import Settings


def build_engine(settings: Settings) -> AsyncEngine:
    """Create the engine. Pool sizing only applies to server databases."""
    kwargs = {}
    if not settings.database_url.startswith("sqlite"):
        # Connection pool: min 5, max 20 connections.
        kwargs.update(pool_size=5, max_overflow=15)
    return create_async_engine(settings.database_url, echo=settings.debug, **kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory — each request gets its own session."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """FastAPI dependency — yields a session per request, auto-closes."""
    async with request.app.state.session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
