"""
Pydantic schemas for profiles, imported users and token payloads.
"""
from typing import Any, Dict, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field

from app.models.profile import UserRole


class ProfileCreate(BaseModel):
    """Schema for inserting a profile linked to an existing identity."""
    id: str = Field(..., description="Auth identity ID")
    username: str = Field(..., description="Unique username")
    full_name: str = Field(..., description="Display name")
    role: UserRole = Field(UserRole.DOCENTE, description="Dashboard role")
    is_active: bool = Field(True, description="Whether the profile can sign in")


class AuthUserCreate(BaseModel):
    """Schema for inserting a local identity; the password is already hashed."""
    email: str
    hashed_password: str
    email_confirmed: bool = True
    user_metadata: Dict[str, Any] = Field(default_factory=dict)


class UserImportPayload(BaseModel):
    """A validated user row: identity credentials plus profile fields."""
    username: str
    full_name: str
    email: str
    password: str
    role: UserRole = UserRole.DOCENTE
    is_active: bool = True

    def identity_metadata(self) -> Dict[str, Any]:
        """Metadata stored on the auth identity, mirroring the profile."""
        return {
            "username": self.username,
            "full_name": self.full_name,
            "role": self.role.value,
        }

    def profile(self, identity_id: str) -> ProfileCreate:
        return ProfileCreate(
            id=identity_id,
            username=self.username,
            full_name=self.full_name,
            role=self.role,
            is_active=self.is_active,
        )


class CurrentUser(BaseModel):
    """The authenticated caller of an API request."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    full_name: str
    role: UserRole
    is_active: bool = True


class TokenData(BaseModel):
    """Schema for token payload."""
    sub: str  # Identity ID
    exp: Optional[datetime] = None
    email: Optional[str] = None
    role: Optional[str] = None
