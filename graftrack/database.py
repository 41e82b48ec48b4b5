# path: graftrack-api/graftrack/database.py

"""Database setup and session management."""

from __future__ import annotations

from typing import Tuple

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""

    pass


def create_session_factory(database_url: str, echo: bool = False) -> Tuple[AsyncEngine, async_sessionmaker]:
    engine = create_async_engine(database_url, echo=echo, future=True)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    return engine, factory


async def init_db(engine: AsyncEngine) -> None:
    """Create tables if they don't exist."""
    # Register the mapped tables on Base.metadata before create_all.
    from graftrack.models import db_models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
