# zyra/db/database.py
from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from zyra.core.config import settings

Base = declarative_base()


class Database:
    """Process-wide holder for the async engine and its session factory."""
    _url: str | None = None
    _engine: AsyncEngine | None = None
    _sessionmaker: async_sessionmaker[AsyncSession] | None = None

    @classmethod
    def configure(cls, url: str) -> None:
        """Points subsequent connections at another database. Call before first use."""
        cls._url = url
        cls._engine = None
        cls._sessionmaker = None

    @classmethod
    def get_engine(cls) -> AsyncEngine:
        if cls._engine is None:
            url = cls._url or settings.DATABASE_URL
            connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
            cls._engine = create_async_engine(url, connect_args=connect_args)
        return cls._engine

    @classmethod
    def get_sessionmaker(cls) -> async_sessionmaker[AsyncSession]:
        if cls._sessionmaker is None:
            cls._sessionmaker = async_sessionmaker(cls.get_engine(), expire_on_commit=False)
        return cls._sessionmaker

    @classmethod
    async def create_all(cls) -> None:
        # Import for side effects: registers the tables on Base.metadata.
        from zyra.db import models  # noqa: F401

        async with cls.get_engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @classmethod
    async def close(cls) -> None:
        if cls._engine is not None:
            await cls._engine.dispose()
            cls._engine = None
            cls._sessionmaker = None


async def get_db_session() -> AsyncIterator[AsyncSession]:
    async with Database.get_sessionmaker()() as session:
        yield session
