from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from bodymetrics.database.models import Profile as ProfileModel
from bodymetrics.repositories.base_repository import BaseRepository
from bodymetrics.schemas.analysis import Profile


class ProfileRepository(BaseRepository[ProfileModel]):
    """Read access to user demographics."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, ProfileModel)

    async def get_profile(self, user_id: UUID) -> Optional[Profile]:
        row = await self.get_by_id(user_id)
        return Profile.model_validate(row) if row else None
