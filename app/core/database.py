from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from app.core.config import settings
from typing import AsyncGenerator, Optional
import logging

# registers every model on Base.metadata
import app.models  # noqa: F401

logger = logging.getLogger(__name__)

class DatabaseManager:
    def __init__(self, database_url: Optional[str] = None):
        """Initializes the database engine and session maker upon creation."""
        self.engine = create_async_engine(database_url or settings.DATABASE_URL, echo=False)
        self.async_session_maker = async_sessionmaker(
            self.engine, expire_on_commit=False, class_=AsyncSession
        )

    async def close(self):
        """Closes the database engine connections."""
        if self.engine:
            await self.engine.dispose()

    async def get_db_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provides a database session."""
        async with self.async_session_maker() as session:
            yield session

db_manager = DatabaseManager()
