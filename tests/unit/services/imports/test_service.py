import pytest
from sqlalchemy import func, select

from app.core.exceptions import ConflictError, EmptyFileError, ImportPreconditionError, NotFoundError
from app.db.repositories.import_jobs import BulkImportRepository, ImportRowErrorRepository
from app.db.repositories.schedules import ScheduleRepository
from app.models.group import Group
from app.models.import_job import ImportStatus, ImportType
from app.models.profile import Profile
from app.models.schedule import Schedule
from app.models.subject import Subject
from app.services.imports import processors
from app.services.imports.service import ImportService

SUBJECTS_CSV = (
    "code,name,credits,description\n"
    "MAT100,Cálculo I,4,Límites y derivadas\n"
    "FIS100,Física I,,\"Mecánica, ondas\"\n"
    "QUI100,Química,11,\n"
)

USERS_CSV = (
    "username,full_name,email,password,role,is_active\n"
    "jperez,Juan Pérez,juan.perez@email.com,TempPass123!,docente,true\n"
    "mlopez,María López,maria.lopez@email.com,,coordinador,\n"
)


async def _job(session_factory, job_id):
    async with session_factory() as session:
        return await BulkImportRepository(session).get_by_id(job_id)


async def _row_errors(session_factory, job_id):
    async with session_factory() as session:
        errors, _ = await ImportRowErrorRepository(session).get_by_import(job_id)
        return errors


async def _count(session_factory, model) -> int:
    async with session_factory() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


async def _run(session_factory, auth_provider, job_id, content, import_type=None):
    service = ImportService(job_id, session_factory=session_factory, auth_provider=auth_provider)
    return await service.run(content, import_type)


@pytest.mark.asyncio
async def test_counts_match_data_lines(session_factory, auth_provider, create_job):
    job_id = await create_job(ImportType.SUBJECTS)

    result = await _run(session_factory, auth_provider, job_id, SUBJECTS_CSV)

    # 4 non-blank lines: header + 3 data rows
    assert result.processed == 3
    assert result.successful + result.failed == result.processed
    assert (result.successful, result.failed) == (2, 1)

    job = await _job(session_factory, job_id)
    assert job.status == ImportStatus.COMPLETED
    assert job.total_records == 3
    assert job.processed_records == 3
    assert job.successful_records == 2
    assert job.failed_records == 1
    assert job.started_at is not None
    assert job.completed_at is not None

    errors = await _row_errors(session_factory, job_id)
    assert len(errors) == 1
    assert errors[0].row_number == 4
    assert "between 1 and 10" in errors[0].error_message
    assert errors[0].row_data["code"] == "QUI100"


@pytest.mark.asyncio
async def test_omitted_credits_default_to_one(session_factory, auth_provider, create_job):
    job_id = await create_job(ImportType.SUBJECTS)
    await _run(session_factory, auth_provider, job_id, SUBJECTS_CSV)

    async with session_factory() as session:
        subject = (await session.execute(select(Subject).where(Subject.code == "FIS100"))).scalar_one()
    assert subject.credits == 1
    assert subject.description == "Mecánica, ondas"


@pytest.mark.asyncio
async def test_existing_subject_scenario(session_factory, auth_provider, create_job):
    first_job = await create_job(ImportType.SUBJECTS)
    await _run(session_factory, auth_provider, first_job, "code,name\nMAT100,Cálculo I\n")

    job_id = await create_job(ImportType.SUBJECTS)
    result = await _run(
        session_factory,
        auth_provider,
        job_id,
        "code,name,credits\nFIS100,Física I,4\nMAT100,Cálculo I,4\n",
    )

    assert (result.processed, result.successful, result.failed) == (2, 1, 1)
    errors = await _row_errors(session_factory, job_id)
    assert len(errors) == 1
    assert errors[0].row_number == 3
    assert "MAT100" in errors[0].error_message
    assert "already exists" in errors[0].error_message


@pytest.mark.asyncio
async def test_rerun_of_same_file_inserts_nothing(session_factory, auth_provider, create_job):
    first = await create_job(ImportType.SUBJECTS)
    await _run(session_factory, auth_provider, first, SUBJECTS_CSV)

    second = await create_job(ImportType.SUBJECTS)
    result = await _run(session_factory, auth_provider, second, SUBJECTS_CSV)

    assert result.successful == 0
    assert result.failed == 3
    assert await _count(session_factory, Subject) == 2


@pytest.mark.asyncio
async def test_empty_file_fails_the_job(session_factory, auth_provider, create_job):
    job_id = await create_job(ImportType.SUBJECTS)

    with pytest.raises(EmptyFileError):
        await _run(session_factory, auth_provider, job_id, "\n  \n")

    job = await _job(session_factory, job_id)
    assert job.status == ImportStatus.FAILED
    assert job.completed_at is not None
    assert job.errors[0]["code"] == "EMPTY_FILE"
    assert job.processed_records == 0
    assert await _row_errors(session_factory, job_id) == []


@pytest.mark.asyncio
async def test_declared_type_mismatch_fails_the_job(session_factory, auth_provider, create_job):
    job_id = await create_job(ImportType.SUBJECTS)

    with pytest.raises(ImportPreconditionError) as exc_info:
        await _run(session_factory, auth_provider, job_id, SUBJECTS_CSV, ImportType.GROUPS)
    assert exc_info.value.code == "IMPORT_TYPE_MISMATCH"

    job = await _job(session_factory, job_id)
    assert job.status == ImportStatus.FAILED
    assert await _count(session_factory, Subject) == 0


@pytest.mark.asyncio
async def test_job_must_be_pending(session_factory, auth_provider, create_job):
    job_id = await create_job(ImportType.SUBJECTS)
    await _run(session_factory, auth_provider, job_id, SUBJECTS_CSV)

    with pytest.raises(ConflictError):
        await _run(session_factory, auth_provider, job_id, SUBJECTS_CSV)

    job = await _job(session_factory, job_id)
    assert job.status == ImportStatus.COMPLETED
    assert job.processed_records == 3


@pytest.mark.asyncio
async def test_unknown_job(session_factory, auth_provider):
    with pytest.raises(NotFoundError):
        await _run(session_factory, auth_provider, "missing-job", SUBJECTS_CSV)


@pytest.mark.asyncio
async def test_all_rows_failing_still_completes(session_factory, auth_provider, create_job):
    job_id = await create_job(ImportType.GROUPS)

    result = await _run(
        session_factory,
        auth_provider,
        job_id,
        "name,code,subject_code\nGrupo A,X-A,NOPE\nGrupo B,X-B,NOPE\n",
    )

    assert (result.successful, result.failed) == (0, 2)
    job = await _job(session_factory, job_id)
    assert job.status == ImportStatus.COMPLETED
    errors = await _row_errors(session_factory, job_id)
    assert [error.row_number for error in errors] == [2, 3]
    assert all("Import subjects first" in error.error_message for error in errors)


@pytest.mark.asyncio
async def test_duplicate_usernames_in_one_file(session_factory, auth_provider, create_job):
    job_id = await create_job(ImportType.USERS)
    content = USERS_CSV + "jperez,Juan P. Duplicado,otro@email.com,,docente,true\n"

    result = await _run(session_factory, auth_provider, job_id, content)

    assert (result.processed, result.successful, result.failed) == (3, 2, 1)
    errors = await _row_errors(session_factory, job_id)
    assert errors[0].row_number == 4
    assert "already exists" in errors[0].error_message
    assert await _count(session_factory, Profile) == 2


@pytest.mark.asyncio
async def test_unknown_teacher_inserts_no_schedule(session_factory, auth_provider, create_job):
    users = await create_job(ImportType.USERS)
    await _run(session_factory, auth_provider, users, USERS_CSV)
    subjects = await create_job(ImportType.SUBJECTS)
    await _run(session_factory, auth_provider, subjects, "code,name\nMAT002,Matemáticas II\n")
    groups = await create_job(ImportType.GROUPS)
    await _run(session_factory, auth_provider, groups, "name,code,year,subject_code\nGrupo B,MAT002-B,2024,MAT002\n")

    job_id = await create_job(ImportType.SCHEDULES)
    result = await _run(
        session_factory,
        auth_provider,
        job_id,
        "fecha,hora_inicio,hora_fin,teacher_username,subject_code,group_code,modalidad,aula\n"
        "2024-03-15,10:00,12:00,jperez,MAT002,MAT002-B,presencial,B201\n"
        "2024-03-16,10:00,12:00,ghost,MAT002,MAT002-B,virtual,\n",
    )

    assert (result.successful, result.failed) == (1, 1)
    errors = await _row_errors(session_factory, job_id)
    assert errors[0].row_number == 3
    assert "Import users first" in errors[0].error_message
    assert await _count(session_factory, Schedule) == 1

    async with session_factory() as session:
        group_id = (await session.execute(select(Schedule.group_id))).scalar_one()
        schedules = await ScheduleRepository(session).get_by_group(group_id)
    assert schedules[0].horas_programadas == 2.0
    assert schedules[0].aula == "B201"


@pytest.mark.asyncio
async def test_unterminated_quote_fails_only_its_row(session_factory, auth_provider, create_job):
    job_id = await create_job(ImportType.SUBJECTS)

    result = await _run(
        session_factory,
        auth_provider,
        job_id,
        'code,name\nMAT100,"Cálculo\nFIS100,Física\n',
    )

    assert (result.successful, result.failed) == (1, 1)
    errors = await _row_errors(session_factory, job_id)
    assert errors[0].row_number == 2
    assert "Unterminated quoted field" in errors[0].error_message


@pytest.mark.asyncio
async def test_unexpected_row_exception_is_recorded(session_factory, auth_provider, create_job, monkeypatch):
    calls = []
    original = processors.resolve_subject

    async def flaky_resolve(session, record):
        calls.append(record["code"])
        if record["code"] == "BOOM":
            raise KeyError("boom")
        return await original(session, record)

    monkeypatch.setattr(processors, "resolve_subject", flaky_resolve)
    job_id = await create_job(ImportType.SUBJECTS)

    result = await _run(
        session_factory, auth_provider, job_id, "code,name\nBOOM,Roto\nMAT100,Cálculo\n"
    )

    assert calls == ["BOOM", "MAT100"]
    assert (result.successful, result.failed) == (1, 1)
    errors = await _row_errors(session_factory, job_id)
    assert errors[0].error_message.startswith("Unexpected error")


@pytest.mark.asyncio
async def test_progress_is_flushed_while_processing(session_factory, auth_provider, create_job, monkeypatch):
    job_id = await create_job(ImportType.SUBJECTS)
    snapshots = []
    original = BulkImportRepository.update_progress

    async def recording_update(self, job, **counts):
        snapshots.append(counts)
        await original(self, job, **counts)

    monkeypatch.setattr(BulkImportRepository, "update_progress", recording_update)

    service = ImportService(
        job_id, session_factory=session_factory, auth_provider=auth_provider, progress_interval=2
    )
    content = "code,name\n" + "".join(f"S{i:03d},Subject {i}\n" for i in range(5))
    await service.run(content)

    assert snapshots == [
        {"processed": 2, "successful": 2, "failed": 0},
        {"processed": 4, "successful": 4, "failed": 0},
    ]


@pytest.mark.asyncio
async def test_aborted_run_keeps_counts_of_committed_rows(session_factory, auth_provider, create_job, monkeypatch):
    async def broken_add_row_error(self, **kwargs):
        raise RuntimeError("database went away")

    monkeypatch.setattr(ImportRowErrorRepository, "add_row_error", broken_add_row_error)
    job_id = await create_job(ImportType.SUBJECTS)

    with pytest.raises(RuntimeError):
        await _run(
            session_factory, auth_provider, job_id,
            "code,name,credits\nA1,Uno,3\nB1,Dos,2\nC1,Tres,99\nD1,Cuatro,1\n",
        )

    job = await _job(session_factory, job_id)
    assert job.status == ImportStatus.COMPLETED
    assert (job.processed_records, job.successful_records, job.failed_records) == (2, 2, 0)
    assert job.errors[0]["code"] == "IMPORT_ABORTED"
    assert job.completed_at is not None
    assert await _count(session_factory, Subject) == 2


@pytest.mark.asyncio
async def test_padded_group_code_is_trimmed_and_accepted(session_factory, auth_provider, create_job):
    subjects = await create_job(ImportType.SUBJECTS)
    await _run(session_factory, auth_provider, subjects, "code,name\nMAT002,Matemáticas II\n")
    groups = await create_job(ImportType.GROUPS)

    result = await _run(
        session_factory, auth_provider, groups,
        "name,code,year,subject_code\nGrupo B,   MAT002-B  ,2024, MAT002\n",
    )

    assert (result.successful, result.failed) == (1, 0)
    async with session_factory() as session:
        group = (await session.execute(select(Group))).scalar_one()
    assert group.code == "MAT002-B"
