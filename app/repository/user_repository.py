from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import joinedload
from app.models import user_model
from app.repository.base_repository import BaseRepository
from typing import Optional, List

class UserRepository(BaseRepository[user_model.Users]):
    def __init__(self):
        super().__init__(user_model.Users)

    async def get_user(self, db: AsyncSession, user_id: int) -> Optional[user_model.Users]:
        """Loads the user with its plan; always re-reads counters from the database."""
        result = await db.execute(
            select(self.model)
            .options(joinedload(self.model.current_plan))
            .filter(self.model.id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_users(self, db: AsyncSession, skip: int = 0, limit: int = 100) -> List[user_model.Users]:
        return await self.get_multi(db, skip=skip, limit=limit)

user_repository = UserRepository()
