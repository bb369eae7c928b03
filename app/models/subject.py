"""
Database model for academic subjects.
"""
from sqlalchemy import Boolean, Column, Integer, String, Text
from sqlalchemy.orm import relationship

from app.models.base import Base


class Subject(Base):
    """A subject (course) identified by its unique code."""

    __tablename__ = "subjects"

    code = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    credits = Column(Integer, default=1, nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    groups = relationship("Group", back_populates="subject")
