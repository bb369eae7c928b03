"""
Base database model with common fields and helpers.
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Type

from sqlalchemy import Column, DateTime, String, Enum as SQLEnum
from sqlalchemy.orm import as_declarative, declared_attr


@as_declarative()
class Base:
    """Base class for all database models."""

    # Generate __tablename__ automatically from class name
    @declared_attr
    def __tablename__(cls) -> str:
        return cls.__name__.lower()

    # Common columns for all models
    id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc), nullable=False)


def value_enum(enum_cls: Type[Enum], length: int = 20) -> SQLEnum:
    """
    Column type storing an enum by its value.

    The shared schema keeps lowercase values ('completed', 'docente'), not the
    member names SQLAlchemy stores by default.
    """
    return SQLEnum(
        enum_cls,
        values_callable=lambda members: [member.value for member in members],
        native_enum=False,
        length=length,
        validate_strings=True,
    )
