"""
Schedule repository.
"""
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.repositories.base import BaseRepository
from app.models.schedule import Schedule
from app.schemas.academic import ScheduleCreate


class ScheduleRepository(BaseRepository[Schedule, ScheduleCreate]):
    """Schedule repository for database operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session=session, model=Schedule)

    async def get_by_group(self, group_id: str) -> List[Schedule]:
        """
        Get the sessions of a group in date order.

        Args:
            group_id: Group ID

        Returns:
            List[Schedule]: Sessions ordered by date and start time
        """
        result = await self.session.execute(
            select(Schedule)
            .where(Schedule.group_id == group_id)
            .order_by(Schedule.fecha, Schedule.hora_inicio)
        )
        return list(result.scalars().all())
