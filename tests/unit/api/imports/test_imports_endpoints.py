import pytest
from httpx import AsyncClient

from app.api.v1 import dependencies
from app.api.v1.endpoints.imports import decode_upload
from app.core.config import settings
from app.core.security import create_access_token
from app.db.repositories.import_jobs import BulkImportRepository
from app.db.session import get_session_factory
from app.main import app
from app.models.profile import Profile, UserRole
from app.schemas.user import CurrentUser

SUBJECTS_CSV = "code,name,credits\nMAT100,Cálculo I,4\nFIS100,Física I,12\n"


async def _create_job(async_client: AsyncClient, import_type: str = "subjects") -> dict:
    response = await async_client.post(
        "/api/v1/imports/jobs", json={"import_type": import_type, "file_name": "subjects.csv"}
    )
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_health_check(async_client: AsyncClient):
    response = await async_client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_create_job_is_pending(async_client: AsyncClient, override_auth):
    job = await _create_job(async_client)

    assert job["status"] == "pending"
    assert job["import_type"] == "subjects"
    assert job["imported_by"] == override_auth.id
    assert job["total_records"] == 0
    assert job["progress_percentage"] == 0


@pytest.mark.asyncio
async def test_requests_use_the_test_database(async_client: AsyncClient, override_auth, session_factory):
    job = await _create_job(async_client)

    async with session_factory() as session:
        stored = await BulkImportRepository(session).get_by_id(job["id"])
    assert stored is not None
    assert stored.file_name == "subjects.csv"
    assert app.dependency_overrides[get_session_factory]() is session_factory


@pytest.mark.asyncio
async def test_create_job_rejects_unknown_type(async_client: AsyncClient, override_auth):
    response = await async_client.post(
        "/api/v1/imports/jobs", json={"import_type": "teachers", "file_name": "x.csv"}
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_process_job(async_client: AsyncClient, override_auth):
    job = await _create_job(async_client)

    response = await async_client.post(
        "/api/v1/imports/process",
        json={
            "importId": job["id"],
            "importType": "subjects",
            "fileContent": SUBJECTS_CSV,
            "fileName": "subjects.csv",
        },
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "processed": 2, "successful": 1, "failed": 1}

    detail = await async_client.get(f"/api/v1/imports/jobs/{job['id']}")
    assert detail.status_code == 200
    assert detail.json()["status"] == "completed"
    assert detail.json()["progress_percentage"] == 100

    errors = await async_client.get(f"/api/v1/imports/jobs/{job['id']}/errors")
    assert errors.status_code == 200
    data = errors.json()
    assert data["page_info"]["total_items"] == 1
    assert data["items"][0]["row_number"] == 3
    assert "between 1 and 10" in data["items"][0]["error_message"]


@pytest.mark.asyncio
async def test_process_job_twice_is_a_conflict(async_client: AsyncClient, override_auth):
    job = await _create_job(async_client)
    payload = {"importId": job["id"], "importType": "subjects", "fileContent": SUBJECTS_CSV}

    first = await async_client.post("/api/v1/imports/process", json=payload)
    second = await async_client.post("/api/v1/imports/process", json=payload)

    assert first.status_code == 200
    assert second.status_code == 409
    assert second.json()["code"] == "CONFLICT"


@pytest.mark.asyncio
async def test_process_empty_file_fails_job(async_client: AsyncClient, override_auth):
    job = await _create_job(async_client)

    response = await async_client.post(
        "/api/v1/imports/process",
        json={"importId": job["id"], "importType": "subjects", "fileContent": ""},
    )

    assert response.status_code == 422
    body = response.json()
    assert body["status"] == "error"
    assert body["code"] == "EMPTY_FILE"

    detail = await async_client.get(f"/api/v1/imports/jobs/{job['id']}")
    assert detail.json()["status"] == "failed"


@pytest.mark.asyncio
async def test_unknown_job_returns_error_payload(async_client: AsyncClient, override_auth):
    response = await async_client.get("/api/v1/imports/jobs/nonexistent-job")

    assert response.status_code == 404
    body = response.json()
    assert body["status"] == "error"
    assert body["code"] == "NOT_FOUND"
    assert "nonexistent-job" in body["error"]


@pytest.mark.asyncio
async def test_upload_processes_inline(async_client: AsyncClient, override_auth):
    files = {"file": ("subjects.csv", SUBJECTS_CSV.encode("utf-8"), "text/csv")}

    response = await async_client.post(
        "/api/v1/imports/upload", data={"import_type": "subjects"}, files=files
    )

    assert response.status_code == 200
    data = response.json()
    assert data["summary"]["successful"] == 1
    assert data["summary"]["failed"] == 1
    assert data["job"]["status"] == "completed"
    assert data["job"]["file_name"] == "subjects.csv"


@pytest.mark.asyncio
async def test_upload_in_background(async_client: AsyncClient, override_auth):
    files = {"file": ("subjects.csv", SUBJECTS_CSV.encode("utf-8"), "text/csv")}

    response = await async_client.post(
        "/api/v1/imports/upload",
        params={"background": "true"},
        data={"import_type": "subjects"},
        files=files,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["summary"] is None
    assert data["message"] == "Import queued for processing"

    # Background tasks run before the ASGI call returns
    detail = await async_client.get(f"/api/v1/imports/jobs/{data['job']['id']}")
    assert detail.json()["status"] == "completed"
    assert detail.json()["successful_records"] == 1


@pytest.mark.asyncio
async def test_upload_latin1_file(async_client: AsyncClient, override_auth):
    files = {"file": ("subjects.csv", "code,name\nQUI100,Química\n".encode("latin-1"), "text/csv")}

    response = await async_client.post(
        "/api/v1/imports/upload", data={"import_type": "subjects"}, files=files
    )

    assert response.status_code == 200
    assert response.json()["summary"]["successful"] == 1


@pytest.mark.asyncio
async def test_upload_too_large(async_client: AsyncClient, override_auth, monkeypatch):
    monkeypatch.setattr(settings, "MAX_IMPORT_FILE_SIZE", 10)
    files = {"file": ("subjects.csv", SUBJECTS_CSV.encode("utf-8"), "text/csv")}

    response = await async_client.post(
        "/api/v1/imports/upload", data={"import_type": "subjects"}, files=files
    )

    assert response.status_code == 413
    assert response.json()["code"] == "HTTP_413"


def test_decode_upload_strips_bom():
    assert decode_upload("\ufeffcode,name".encode("utf-8")) == "code,name"


@pytest.mark.asyncio
async def test_list_jobs(async_client: AsyncClient, override_auth):
    await _create_job(async_client, "subjects")
    await _create_job(async_client, "groups")

    response = await async_client.get("/api/v1/imports/jobs")
    assert response.status_code == 200
    data = response.json()
    assert data["page_info"]["total_items"] == 2

    filtered = await async_client.get("/api/v1/imports/jobs", params={"import_type": "groups", "mine": "true"})
    assert [job["import_type"] for job in filtered.json()["items"]] == ["groups"]

    by_status = await async_client.get("/api/v1/imports/jobs", params={"status": "completed"})
    assert by_status.json()["items"] == []


@pytest.mark.asyncio
async def test_list_templates(async_client: AsyncClient, override_auth):
    response = await async_client.get("/api/v1/imports/templates")

    assert response.status_code == 200
    templates = {template["import_type"]: template for template in response.json()}
    assert set(templates) == {"users", "subjects", "groups", "schedules"}
    assert templates["subjects"]["required_fields"] == ["code", "name"]


@pytest.mark.asyncio
async def test_download_template(async_client: AsyncClient, override_auth):
    response = await async_client.get("/api/v1/imports/templates/groups")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert 'filename="template_groups.csv"' in response.headers["content-disposition"]
    assert response.text.splitlines()[0] == "name,code,semester,year,max_students,subject_code"


@pytest.mark.asyncio
async def test_requires_authentication(async_client: AsyncClient, override_db):
    response = await async_client.get("/api/v1/imports/jobs")

    assert response.status_code == 401
    assert response.json()["code"] == "AUTHENTICATION_ERROR"


@pytest.mark.asyncio
async def test_invalid_token(async_client: AsyncClient, override_db):
    response = await async_client.get(
        "/api/v1/imports/jobs", headers={"Authorization": "Bearer not-a-token"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_bearer_token_of_active_profile(async_client: AsyncClient, override_db, session_factory):
    async with session_factory() as session:
        session.add(Profile(id="admin-1", username="admin", full_name="Admin", role=UserRole.ADMIN))
        await session.commit()

    token = create_access_token({"sub": "admin-1"})
    response = await async_client.post(
        "/api/v1/imports/jobs",
        json={"import_type": "users", "file_name": "users.csv"},
        headers={"Authorization": f"Bearer {token}"},
    )

    assert response.status_code == 201
    assert response.json()["imported_by"] == "admin-1"


@pytest.mark.asyncio
async def test_inactive_profile_is_rejected(async_client: AsyncClient, override_db, session_factory):
    async with session_factory() as session:
        session.add(Profile(id="old-1", username="old", full_name="Old", role=UserRole.ADMIN, is_active=False))
        await session.commit()

    token = create_access_token({"sub": "old-1"})
    response = await async_client.get(
        "/api/v1/imports/jobs", headers={"Authorization": f"Bearer {token}"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_docente_cannot_import(async_client: AsyncClient, override_db):
    app.dependency_overrides[dependencies.get_current_user] = lambda: CurrentUser(
        id="docente-1", username="docente1", full_name="Docente", role=UserRole.DOCENTE
    )

    response = await async_client.get("/api/v1/imports/templates")

    assert response.status_code == 403
    assert response.json()["code"] == "AUTHORIZATION_ERROR"
