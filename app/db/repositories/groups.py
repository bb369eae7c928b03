"""
Group repository.
"""
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.db.repositories.base import BaseRepository
from app.models.group import Group
from app.schemas.academic import GroupCreate


class GroupRepository(BaseRepository[Group, GroupCreate]):
    """Group repository for database operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session=session, model=Group)

    async def get_by_code(self, code: str) -> Optional[Group]:
        return await self.get_by_attribute("code", code)
