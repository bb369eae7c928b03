"""
Dependencies for API endpoints.
"""
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import AuthenticationError, AuthorizationError
from app.core.security import decode_access_token
from app.db.repositories.profiles import ProfileRepository
from app.db.session import get_db, get_session_factory
from app.models.profile import UserRole
from app.schemas.user import CurrentUser, TokenData
from app.services.auth.provider import AuthProvider, get_auth_provider

# Bearer tokens are issued by the auth provider, not by this service
bearer_scheme = HTTPBearer(auto_error=False)

# Roles allowed to run and inspect bulk imports
IMPORT_ROLES = frozenset({
    UserRole.SUPERADMIN,
    UserRole.ADMIN,
    UserRole.DIRECTOR,
    UserRole.COORDINADOR,
    UserRole.ASISTENTE,
})


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """
    Get the current authenticated user from the bearer token.

    The token subject is the auth identity ID, which is also the profile ID.

    Args:
        credentials: Bearer credentials from the Authorization header
        session: Database session

    Returns:
        CurrentUser: The authenticated user

    Raises:
        AuthenticationError: If the token is missing, invalid or expired, or
            the profile is unknown or inactive
    """
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    token_data = TokenData(**payload)

    profile = await ProfileRepository(session).get_by_id(token_data.sub)
    if not profile:
        raise AuthenticationError("User not found")

    if not profile.is_active:
        raise AuthenticationError("User is inactive")

    return CurrentUser.model_validate(profile)


async def require_import_access(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """
    Ensure the caller may use the bulk import tools.

    Raises:
        AuthorizationError: If the user's role is not allowed
    """
    if current_user.role not in IMPORT_ROLES:
        raise AuthorizationError(
            "Bulk imports require one of the roles: "
            + ", ".join(sorted(role.value for role in IMPORT_ROLES))
        )
    return current_user


async def get_import_auth_provider(
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> AuthProvider:
    """Identity provider used by user imports."""
    return get_auth_provider(session_factory)
