"""
Database model for student groups.
"""
from sqlalchemy import Boolean, Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.models.base import Base


class Group(Base):
    """A group (section) of a subject for a given semester and year."""

    __tablename__ = "groups"

    code = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    semester = Column(String, nullable=False, default="1")
    year = Column(Integer, nullable=False)
    max_students = Column(Integer, default=30, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    subject_id = Column(String, ForeignKey("subjects.id"), nullable=False, index=True)

    subject = relationship("Subject", back_populates="groups")
