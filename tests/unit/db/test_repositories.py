import pytest
from pydantic import ValidationError

from app.core.security import verify_password
from app.db.repositories.import_jobs import BulkImportRepository, ImportRowErrorRepository
from app.db.repositories.profiles import AuthUserRepository
from app.models.import_job import ImportStatus, ImportType


async def _pending_job(db_session):
    return await BulkImportRepository(db_session).create_import_job(
        import_type=ImportType.SUBJECTS, file_name="materias.csv", imported_by="coordinador-1"
    )


@pytest.mark.asyncio
async def test_add_row_error_keeps_raw_values(db_session):
    job = await _pending_job(db_session)
    repo = ImportRowErrorRepository(db_session)

    await repo.add_row_error(
        bulk_import_id=job.id,
        row_number=3,
        error_message="Subject with code 'MAT100' already exists",
        row_data={"code": "MAT100", "name": "Cálculo"},
    )

    errors, total = await repo.get_by_import(job.id)
    assert total == 1
    assert errors[0].row_number == 3
    assert errors[0].row_data == {"code": "MAT100", "name": "Cálculo"}


@pytest.mark.asyncio
async def test_add_row_error_rejects_header_row(db_session):
    job = await _pending_job(db_session)

    with pytest.raises(ValidationError):
        await ImportRowErrorRepository(db_session).add_row_error(
            bulk_import_id=job.id, row_number=1, error_message="header", row_data={}
        )


@pytest.mark.asyncio
async def test_create_identity_hashes_password(db_session):
    repo = AuthUserRepository(db_session)

    identity = await repo.create_identity(email="Ana@Escuela.test", password="Secret123!")

    assert identity.email_confirmed is True
    assert identity.user_metadata == {}
    assert identity.hashed_password != "Secret123!"
    assert verify_password("Secret123!", identity.hashed_password)
    assert (await repo.get_by_email("ana@escuela.test")).id == identity.id


@pytest.mark.asyncio
async def test_complete_job_records_job_level_errors(db_session):
    repo = BulkImportRepository(db_session)
    job = await _pending_job(db_session)
    assert await repo.mark_processing(job.id)

    await repo.complete_job(
        job.id, processed=2, successful=2, failed=0,
        errors=[{"code": "IMPORT_ABORTED", "message": "database went away"}],
    )
    await db_session.commit()

    stored = await repo.get_by_id(job.id)
    await db_session.refresh(stored)
    assert stored.status == ImportStatus.COMPLETED
    assert stored.processed_records == 2
    assert stored.errors == [{"code": "IMPORT_ABORTED", "message": "database went away"}]
