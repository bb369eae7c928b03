"""
Database models for user profiles and locally stored auth identities.
"""
from enum import Enum

from sqlalchemy import Boolean, Column, String, JSON

from app.models.base import Base, value_enum


class UserRole(str, Enum):
    """Roles recognized by the scheduling dashboard."""
    SUPERADMIN = "superadmin"
    ADMIN = "admin"
    DIRECTOR = "director"
    COORDINADOR = "coordinador"
    ASISTENTE = "asistente"
    DOCENTE = "docente"


class Profile(Base):
    """
    Application profile linked 1:1 to an auth identity.

    The primary key is the identity id generated by the auth provider.
    """

    __tablename__ = "profiles"

    username = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=False)
    role = Column(value_enum(UserRole), default=UserRole.DOCENTE, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)


class AuthUser(Base):
    """Credential record used by the built-in (local) auth provider."""

    __tablename__ = "auth_users"

    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    email_confirmed = Column(Boolean, default=True, nullable=False)
    user_metadata = Column(JSON, nullable=True)
