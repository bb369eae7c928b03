"""
Generic repository shared by every table of the import pipeline.
"""
from typing import Any, Dict, Generic, Optional, Type, TypeVar, Union
from uuid import uuid4

from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)


class BaseRepository(Generic[ModelType, CreateSchemaType]):
    """
    Lookup, insert and count for one model.

    Writes are flushed, never committed: whoever opened the session
    (normally app.db.session.get_session) owns the transaction, so a row
    processor can roll back everything it wrote for a rejected row.
    """

    def __init__(self, session: AsyncSession, model: Type[ModelType]):
        self.session = session
        self.model = model

    def _where(self, query, filters: Optional[Dict[str, Any]]):
        for name, value in (filters or {}).items():
            if value is not None:
                query = query.where(getattr(self.model, name) == value)
        return query

    async def get_by_id(self, id: str) -> Optional[ModelType]:
        return await self.session.get(self.model, id)

    async def get_by_attribute(self, attr_name: str, attr_value: Any) -> Optional[ModelType]:
        """
        First record whose column equals the value.

        Used for natural keys (username, subject code, group code), which are
        unique, so "first" is "the".
        """
        result = await self.session.execute(
            select(self.model).where(getattr(self.model, attr_name) == attr_value).limit(1)
        )
        return result.scalar_one_or_none()

    async def create(self, *, obj_in: Union[CreateSchemaType, Dict[str, Any]]) -> ModelType:
        """
        Insert a record and flush it.

        Args:
            obj_in: Create schema or plain dict; unset schema fields fall back
                to column defaults

        Returns:
            ModelType: The flushed record, refreshed with server defaults

        Raises:
            sqlalchemy.exc.IntegrityError: A constraint rejected the row
        """
        values = obj_in if isinstance(obj_in, dict) else obj_in.model_dump(exclude_unset=True)
        db_obj = self.model(**values)
        if not db_obj.id:
            db_obj.id = str(uuid4())

        self.session.add(db_obj)
        await self.session.flush()
        await self.session.refresh(db_obj)
        return db_obj

    async def count(self, *, filters: Optional[Dict[str, Any]] = None) -> int:
        query = self._where(select(func.count()).select_from(self.model), filters)
        return (await self.session.execute(query)).scalar_one()
