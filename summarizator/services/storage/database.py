"""
Database bootstrap for the recording index and its documents.

A ``Database`` owns one async engine and its session factory, both built
from an explicit URL. The application lifespan creates it from
``Settings`` and disposes it on shutdown; nothing is cached at module
level. Storage access goes through ``session_scope()``, which yields an
``AsyncSession`` that commits on clean exit and rolls back on error.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from summarizator.core.config import Settings


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


def is_memory_url(url: str) -> bool:
    parsed = make_url(url)
    return parsed.get_backend_name() == "sqlite" and parsed.database in (None, "", ":memory:")


def sqlite_file(url: str) -> Path | None:
    """Return the database file of a file-backed SQLite URL, otherwise ``None``."""
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite" or is_memory_url(url):
        return None
    return Path(parsed.database)


@asynccontextmanager
async def session_scope(factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """Yield an ``AsyncSession`` that commits on success, rolls back on error."""
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


class Database:
    """Async engine plus session factory for one database URL.

    An in-memory SQLite URL is pinned to a single connection so every
    session sees the same tables.

    Args:
        url: Async SQLAlchemy URL, e.g. ``sqlite+aiosqlite:///data/summarizator.db``.
        echo: Log every emitted SQL statement.
    """

    def __init__(self, url: str, *, echo: bool = False) -> None:
        options = {"poolclass": StaticPool} if is_memory_url(url) else {}
        self.url = url
        self.engine = create_async_engine(url, echo=echo, **options)
        self.session_factory = async_sessionmaker(self.engine, expire_on_commit=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(settings.database_url, echo=settings.database_echo)

    async def create_all(self) -> None:
        """Create the database file's directory and all tables."""
        # Register the mapped classes on Base.metadata before create_all.
        from summarizator.services.storage import models_db  # noqa: F401

        path = sqlite_file(self.url)
        if path is not None:
            path.parent.mkdir(parents=True, exist_ok=True)
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()
