"""
Row processors: one per import kind.

A processor validates a record with its resolver and inserts the result in
a transaction of its own, committed before the next row starts. User rows
span two stores (auth identity, then profile); a failed profile insert
deletes the identity again.
"""
import logging
from typing import Dict, Optional, Type

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import AuthProviderError, ConflictError, RowDuplicateError, RowImportError
from app.db.repositories.base import BaseRepository
from app.db.repositories.groups import GroupRepository
from app.db.repositories.profiles import ProfileRepository
from app.db.repositories.schedules import ScheduleRepository
from app.db.repositories.subjects import SubjectRepository
from app.db.session import get_session
from app.models.import_job import ImportType
from app.services.auth.provider import AuthProvider
from app.services.imports.compensation import compensating
from app.services.imports.resolvers import resolve_group, resolve_schedule, resolve_subject, resolve_user

logger = logging.getLogger("cronos.imports.processors")

_UNIQUE_MARKERS = ("unique", "duplicate")


async def insert_row(repo: BaseRepository, payload, duplicate_message: str):
    """
    Insert a payload, reporting store-level uniqueness violations as duplicates.

    Args:
        repo: Repository of the target entity
        payload: Create schema
        duplicate_message: Row error message for a unique violation

    Returns:
        The created model instance
    """
    try:
        return await repo.create(obj_in=payload)
    except IntegrityError as e:
        reason = str(e.orig)
        if any(marker in reason.lower() for marker in _UNIQUE_MARKERS):
            raise RowDuplicateError(duplicate_message) from e
        raise RowImportError(f"Could not save row: {reason}") from e


class RowProcessor:
    """Base class: resolve and insert one record."""

    import_type: ImportType

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        auth_provider: Optional[AuthProvider] = None,
    ):
        self.session_factory = session_factory
        self.auth_provider = auth_provider

    async def process(self, record: Dict[str, str]) -> None:
        """
        Import one record in its own transaction.

        Raises:
            RowImportError: The row was rejected; nothing was kept
        """
        async with get_session(self.session_factory) as session:
            await self.handle(session, record)

    async def handle(self, session: AsyncSession, record: Dict[str, str]) -> None:
        raise NotImplementedError


class SubjectRowProcessor(RowProcessor):
    import_type = ImportType.SUBJECTS

    async def handle(self, session: AsyncSession, record: Dict[str, str]) -> None:
        payload = await resolve_subject(session, record)
        await insert_row(
            SubjectRepository(session), payload, f"Subject with code '{payload.code}' already exists"
        )


class GroupRowProcessor(RowProcessor):
    import_type = ImportType.GROUPS

    async def handle(self, session: AsyncSession, record: Dict[str, str]) -> None:
        payload = await resolve_group(session, record)
        await insert_row(
            GroupRepository(session), payload, f"Group with code '{payload.code}' already exists"
        )


class ScheduleRowProcessor(RowProcessor):
    import_type = ImportType.SCHEDULES

    async def handle(self, session: AsyncSession, record: Dict[str, str]) -> None:
        payload = await resolve_schedule(session, record)
        await insert_row(ScheduleRepository(session), payload, "Schedule already exists")


class UserRowProcessor(RowProcessor):
    """
    Create an auth identity, then the linked profile.

    The identity is committed by the provider before the profile insert
    starts, so the two steps cannot share a transaction. The profile insert
    runs inside ``compensating`` which deletes the identity on failure.
    """

    import_type = ImportType.USERS

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        auth_provider: Optional[AuthProvider] = None,
    ):
        if auth_provider is None:
            raise ValueError("User imports need an auth provider")
        super().__init__(session_factory, auth_provider)

    async def process(self, record: Dict[str, str]) -> None:
        async with get_session(self.session_factory) as session:
            payload = await resolve_user(session, record, self.auth_provider)

        try:
            identity_id = await self.auth_provider.create_identity(
                payload.email, payload.password, payload.identity_metadata()
            )
        except ConflictError as e:
            raise RowDuplicateError(f"User with email '{payload.email}' already exists") from e
        except AuthProviderError as e:
            raise RowImportError(f"Failed to create auth identity: {e.message}") from e

        async with compensating(
            lambda: self.auth_provider.delete_identity(identity_id),
            f"delete auth identity {identity_id}",
        ):
            async with get_session(self.session_factory) as session:
                await insert_row(
                    ProfileRepository(session),
                    payload.profile(identity_id),
                    f"User with username '{payload.username}' already exists",
                )

        logger.debug(f"Created user {payload.username} with identity {identity_id}")


PROCESSORS: Dict[ImportType, Type[RowProcessor]] = {
    ImportType.USERS: UserRowProcessor,
    ImportType.SUBJECTS: SubjectRowProcessor,
    ImportType.GROUPS: GroupRowProcessor,
    ImportType.SCHEDULES: ScheduleRowProcessor,
}


def get_processor(
    import_type: ImportType,
    session_factory: Optional[async_sessionmaker] = None,
    auth_provider: Optional[AuthProvider] = None,
) -> RowProcessor:
    """
    Resolve the processor for an import kind.

    Args:
        import_type: Kind of the job
        session_factory: Session factory for row transactions
        auth_provider: Identity provider (user imports only)

    Returns:
        RowProcessor: Ready-to-use processor
    """
    return PROCESSORS[ImportType(import_type)](session_factory, auth_provider)
