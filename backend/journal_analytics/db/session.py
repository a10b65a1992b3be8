"""Database engine and session utilities."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from journal_analytics.config import AnalyticsSettings


def create_engine(settings: AnalyticsSettings) -> AsyncEngine:
    return create_async_engine(settings.database_url, echo=False, future=True)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Build the session factory handed to the SQL ledger adapter."""

    return async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


__all__ = ["create_engine", "create_session_factory"]
