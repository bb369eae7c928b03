"""
Auth identity providers used when importing users.

An imported user needs an authentication identity (email and password)
before its profile can be inserted. Two providers are available:

- ``LocalAuthProvider`` stores identities in the ``auth_users`` table.
- ``SupabaseAuthProvider`` talks to the Supabase GoTrue admin API.

Identity creation is its own commit boundary in both cases, so a failed
profile insert has to be undone explicitly with ``delete_identity``.
"""
import logging
from typing import Any, Dict, Optional

import httpx
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.config import settings
from app.core.exceptions import AuthProviderError, ConflictError
from app.db.repositories.profiles import AuthUserRepository
from app.db.session import get_repository_context

logger = logging.getLogger("cronos.auth")


class AuthProvider:
    """Interface of an identity provider."""

    name = "base"

    async def email_exists(self, email: str) -> bool:
        """Whether an identity with this email is already registered."""
        raise NotImplementedError

    async def create_identity(self, email: str, password: str, metadata: Dict[str, Any]) -> str:
        """
        Create a confirmed identity.

        Returns:
            str: The new identity ID

        Raises:
            ConflictError: The email is already registered
            AuthProviderError: The provider rejected or failed the request
        """
        raise NotImplementedError

    async def delete_identity(self, identity_id: str) -> None:
        """Delete an identity created by ``create_identity``."""
        raise NotImplementedError


class LocalAuthProvider(AuthProvider):
    """Identities stored in the application database."""

    name = "local"

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self.session_factory = session_factory

    async def email_exists(self, email: str) -> bool:
        async with get_repository_context(AuthUserRepository, self.session_factory) as repo:
            return await repo.get_by_email(email) is not None

    async def create_identity(self, email: str, password: str, metadata: Dict[str, Any]) -> str:
        # Committed on exit, independently of the profile insert that follows
        async with get_repository_context(AuthUserRepository, self.session_factory) as repo:
            if await repo.get_by_email(email) is not None:
                raise ConflictError(f"Email '{email}' is already registered", code="IDENTITY_EXISTS")
            identity = await repo.create_identity(email=email, password=password, user_metadata=metadata)
            identity_id = identity.id

        logger.debug(f"Created local identity {identity_id} for {email}")
        return identity_id

    async def delete_identity(self, identity_id: str) -> None:
        async with get_repository_context(AuthUserRepository, self.session_factory) as repo:
            deleted = await repo.delete_identity(identity_id)
        if not deleted:
            raise AuthProviderError(f"Identity {identity_id} not found", status_code=404)
        logger.debug(f"Deleted local identity {identity_id}")


class SupabaseAuthProvider(AuthProvider):
    """
    Identities managed by Supabase Auth through its admin API.

    Requires the service role key; never expose it to clients.
    """

    name = "supabase"
    PAGE_SIZE = 1000

    def __init__(
        self,
        base_url: Optional[str] = None,
        service_role_key: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the provider.

        Args:
            base_url: Supabase project URL
            service_role_key: Service role API key
            timeout: Request timeout in seconds
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = (base_url or settings.SUPABASE_URL).rstrip("/")
        self.service_role_key = service_role_key or settings.SUPABASE_SERVICE_ROLE_KEY
        self.timeout = timeout if timeout is not None else settings.AUTH_HTTP_TIMEOUT
        self.transport = transport

        if not self.base_url or not self.service_role_key:
            raise AuthProviderError(
                "Supabase auth provider requires SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY",
                code="AUTH_PROVIDER_NOT_CONFIGURED",
                status_code=500,
            )

    @property
    def admin_url(self) -> str:
        return f"{self.base_url}/auth/v1/admin/users"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers={
                "apikey": self.service_role_key,
                "Authorization": f"Bearer {self.service_role_key}",
            },
            timeout=self.timeout,
            transport=self.transport,
        )

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        return body.get("msg") or body.get("message") or body.get("error_description") or body.get("error") or str(body)

    async def email_exists(self, email: str) -> bool:
        target = email.lower()
        page = 1

        async with self._client() as client:
            while True:
                try:
                    response = await client.get(
                        self.admin_url, params={"page": page, "per_page": self.PAGE_SIZE}
                    )
                except httpx.HTTPError as e:
                    raise AuthProviderError(f"Could not list auth users: {e}")

                if response.status_code != 200:
                    raise AuthProviderError(f"Could not list auth users: {self._error_message(response)}")

                users = response.json().get("users", [])
                if any((user.get("email") or "").lower() == target for user in users):
                    return True
                if len(users) < self.PAGE_SIZE:
                    return False
                page += 1

    async def create_identity(self, email: str, password: str, metadata: Dict[str, Any]) -> str:
        payload = {
            "email": email,
            "password": password,
            "email_confirm": True,
            "user_metadata": metadata,
        }

        async with self._client() as client:
            try:
                response = await client.post(self.admin_url, json=payload)
            except httpx.HTTPError as e:
                raise AuthProviderError(f"Error creating user: {e}")

        if response.status_code in (409, 422) and "already" in self._error_message(response).lower():
            raise ConflictError(f"Email '{email}' is already registered", code="IDENTITY_EXISTS")
        if response.status_code not in (200, 201):
            raise AuthProviderError(f"Error creating user: {self._error_message(response)}")

        data = response.json()
        identity_id = data.get("id") or (data.get("user") or {}).get("id")
        if not identity_id:
            raise AuthProviderError("Auth provider did not return the new user ID")

        logger.info(f"Created Supabase identity {identity_id} for {email}")
        return identity_id

    async def delete_identity(self, identity_id: str) -> None:
        async with self._client() as client:
            try:
                response = await client.delete(f"{self.admin_url}/{identity_id}")
            except httpx.HTTPError as e:
                raise AuthProviderError(f"Error deleting user {identity_id}: {e}")

        if response.status_code not in (200, 204):
            raise AuthProviderError(
                f"Error deleting user {identity_id}: {self._error_message(response)}"
            )
        logger.info(f"Deleted Supabase identity {identity_id}")


def get_auth_provider(session_factory: Optional[async_sessionmaker] = None) -> AuthProvider:
    """
    Build the provider selected by ``settings.AUTH_PROVIDER``.

    Args:
        session_factory: Session factory for the local provider

    Returns:
        AuthProvider: Configured provider
    """
    if settings.AUTH_PROVIDER == "supabase":
        return SupabaseAuthProvider()
    if settings.AUTH_PROVIDER == "local":
        return LocalAuthProvider(session_factory)
    raise AuthProviderError(
        f"Unknown auth provider '{settings.AUTH_PROVIDER}'",
        code="AUTH_PROVIDER_NOT_CONFIGURED",
        status_code=500,
    )
