"""
Profile and local auth identity repositories.
"""
from typing import Any, Dict, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import get_password_hash
from app.db.repositories.base import BaseRepository
from app.models.profile import AuthUser, Profile
from app.schemas.user import AuthUserCreate, ProfileCreate


class ProfileRepository(BaseRepository[Profile, ProfileCreate]):
    """Profile repository for database operations."""

    def __init__(self, session: AsyncSession):
        """Initialize with session and Profile model."""
        super().__init__(session=session, model=Profile)

    async def get_by_username(self, username: str) -> Optional[Profile]:
        """
        Get a profile by username.

        Args:
            username: Exact username

        Returns:
            Profile: Found profile or None
        """
        return await self.get_by_attribute("username", username)


class AuthUserRepository(BaseRepository[AuthUser, AuthUserCreate]):
    """Credential store behind the local auth provider."""

    def __init__(self, session: AsyncSession):
        super().__init__(session=session, model=AuthUser)

    async def get_by_email(self, email: str) -> Optional[AuthUser]:
        """Case-insensitive email lookup."""
        result = await self.session.execute(
            select(AuthUser).where(func.lower(AuthUser.email) == email.lower())
        )
        return result.scalar_one_or_none()

    async def create_identity(
        self,
        *,
        email: str,
        password: str,
        user_metadata: Optional[Dict[str, Any]] = None,
    ) -> AuthUser:
        """
        Create a confirmed identity with a hashed password.

        Args:
            email: Login email
            password: Plain text password
            user_metadata: Free-form metadata kept with the identity

        Returns:
            AuthUser: Created identity
        """
        return await self.create(
            obj_in=AuthUserCreate(
                email=email,
                hashed_password=get_password_hash(password),
                user_metadata=user_metadata or {},
            )
        )

    async def delete_identity(self, identity_id: str) -> bool:
        """Delete an identity; returns False when it did not exist."""
        result = await self.session.execute(delete(AuthUser).where(AuthUser.id == identity_id))
        return result.rowcount > 0
