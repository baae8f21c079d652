from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.database.models import Profile, Project
from tender_ai.repositories.base_repository import BaseRepository


class ProjectRepository(BaseRepository[Project]):
    """Repository for tender projects."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Project)


class ProfileRepository(BaseRepository[Profile]):
    """Repository for user profiles (default models and prompts)."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Profile)

    async def get_by_user_id(self, user_id: str) -> Optional[Profile]:
        result = await self.session.execute(
            select(Profile).where(Profile.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_or_create(self, user_id: str) -> Profile:
        profile = await self.get_by_user_id(user_id)
        if profile is None:
            profile = await self.create(user_id=user_id, default_models={}, default_prompts={})
        return profile
