"""
Subject repository.
"""
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.db.repositories.base import BaseRepository
from app.models.subject import Subject
from app.schemas.academic import SubjectCreate


class SubjectRepository(BaseRepository[Subject, SubjectCreate]):
    """Subject repository for database operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session=session, model=Subject)

    async def get_by_code(self, code: str) -> Optional[Subject]:
        return await self.get_by_attribute("code", code)
