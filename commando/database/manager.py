import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import make_url, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .models import Base

logger = logging.getLogger(__name__)

# dialect -> (async driver, engine options)
ASYNC_DRIVERS: dict[str, tuple[str, dict[str, Any]]] = {
    "sqlite": ("aiosqlite", {"connect_args": {"check_same_thread": False}}),
    "postgresql": (
        "asyncpg",
        {"pool_size": 5, "max_overflow": 10, "pool_pre_ping": True, "pool_recycle": 300},
    ),
}


def async_database_url(database_url: str) -> tuple[str, dict[str, Any]]:
    """Pick the async driver for a database URL.

    ``sqlite:///x.db`` becomes ``sqlite+aiosqlite:///x.db``; URLs that already
    name a driver are kept as they are.
    """
    url = make_url(database_url)
    if url.get_backend_name() not in ASYNC_DRIVERS:
        raise ValueError(f"Unsupported database URL: {database_url}")

    driver, options = ASYNC_DRIVERS[url.get_backend_name()]
    if "+" not in url.drivername:
        url = url.set(drivername=f"{url.drivername}+{driver}")
    return url.render_as_string(hide_password=False), dict(options)


class DatabaseManager:
    """Async SQLAlchemy engine and sessions for the settings store."""

    def __init__(self, database_url: str, echo: bool = False) -> None:
        self.database_url = database_url
        self.echo = echo
        self.engine: AsyncEngine | None = None
        self.session_factory: async_sessionmaker[AsyncSession] | None = None
        self._setup_engine()

    def _setup_engine(self) -> None:
        async_url, engine_kwargs = async_database_url(self.database_url)
        database = make_url(async_url).database
        if async_url.startswith("sqlite") and database and database != ":memory:":
            Path(database).parent.mkdir(parents=True, exist_ok=True)

        self.engine = create_async_engine(async_url, echo=self.echo, **engine_kwargs)
        self.session_factory = async_sessionmaker(bind=self.engine, class_=AsyncSession, expire_on_commit=False)
        logger.debug(f"Database engine created for {make_url(async_url).get_backend_name()}")

    async def create_tables(self) -> None:
        if not self.engine:
            raise RuntimeError("Database engine not initialized")

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info("Database tables created successfully")

    async def drop_tables(self) -> None:
        if not self.engine:
            raise RuntimeError("Database engine not initialized")

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

        logger.info("Database tables dropped successfully")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        if not self.session_factory:
            raise RuntimeError("Session factory not initialized")

        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def health_check(self) -> bool:
        try:
            async with self.session() as session:
                await session.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False

    async def close(self) -> None:
        if self.engine:
            await self.engine.dispose()
            logger.info("Database connection closed")
