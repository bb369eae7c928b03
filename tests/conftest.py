from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.main import app
from app.api.v1 import dependencies
from app.db import session as session_module
from app.db.base import Base
from app.db.repositories.import_jobs import BulkImportRepository
from app.db.session import build_engine, build_session_factory
from app.models.import_job import ImportType
from app.models.profile import UserRole
from app.schemas.user import CurrentUser
from app.services.auth.provider import LocalAuthProvider

TEST_USER_ID = "test-user-id"

TEST_USER = CurrentUser(
    id=TEST_USER_ID,
    username="coordinador1",
    full_name="Test Coordinator",
    role=UserRole.COORDINADOR,
    is_active=True,
)


@pytest_asyncio.fixture()
async def engine(tmp_path):
    """A fresh SQLite database file per test."""
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest_asyncio.fixture()
async def session_factory(engine) -> async_sessionmaker:
    return build_session_factory(engine)


@pytest_asyncio.fixture()
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture()
def auth_provider(session_factory) -> LocalAuthProvider:
    return LocalAuthProvider(session_factory)


@pytest.fixture()
def create_job(session_factory):
    """Factory fixture creating a pending import job."""
    async def _create(import_type: ImportType, file_name: str = "import.csv") -> str:
        async with session_factory() as session:
            job = await BulkImportRepository(session).create_import_job(
                import_type=import_type,
                file_name=file_name,
                imported_by=TEST_USER_ID,
            )
            await session.commit()
            return job.id
    return _create


@pytest.fixture()
def override_db(session_factory):
    async def _get_db():
        async with session_module.get_session(session_factory) as session:
            yield session

    app.dependency_overrides[session_module.get_session_factory] = lambda: session_factory
    app.dependency_overrides[session_module.get_db] = _get_db
    yield
    app.dependency_overrides.clear()


@pytest.fixture()
def override_auth(override_db):
    app.dependency_overrides[dependencies.get_current_user] = lambda: TEST_USER
    yield TEST_USER
    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(base_url="http://testserver", transport=transport) as client:
        yield client
