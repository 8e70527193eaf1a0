"""SQLite storage for registrations."""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ..orm.base import Base

# Seconds a writer waits on SQLite's file lock before the call fails
LOCK_TIMEOUT = 15


class DatabaseService:
    """Owns the async engine for the registration database."""

    def __init__(self, database_path: str | Path):
        self.database_path = Path(database_path).expanduser()
        self.database_path.parent.mkdir(parents=True, exist_ok=True)

        self.engine = create_async_engine(
            f"sqlite+aiosqlite:///{self.database_path}",
            connect_args={"timeout": LOCK_TIMEOUT},
        )
        # Returned registrations stay readable after their session closes
        self.async_session_factory = async_sessionmaker(self.engine, expire_on_commit=False)

    async def initialize(self) -> None:
        """Create the registrations table if it doesn't exist."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Open a session. Writers commit explicitly; anything else is rolled back."""
        async with self.async_session_factory() as session:
            yield session

    async def close(self) -> None:
        await self.engine.dispose()


async def init_db_service(database_path: str | Path) -> DatabaseService:
    """Create a database service and make sure its tables exist."""
    db_service = DatabaseService(database_path)
    await db_service.initialize()
    return db_service
