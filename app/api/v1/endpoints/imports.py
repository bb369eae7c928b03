# app/api/v1/endpoints/imports.py
"""
Bulk CSV import endpoints.

Jobs are created pending and processed by ImportService, either within the
request or as a background task. History, row errors and CSV templates are
exposed for the dashboard.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.api.v1.dependencies import get_import_auth_provider, require_import_access
from app.core.config import settings
from app.core.exceptions import CronosException, NotFoundError
from app.db.repositories.import_jobs import BulkImportRepository, ImportRowErrorRepository
from app.db.session import get_repository_context, get_session_factory
from app.models.import_job import ImportStatus, ImportType
from app.schemas.import_job import (
    BulkImportCreate,
    BulkImportResponse,
    ImportRowErrorResponse,
    ImportSummary,
    ImportTemplate,
    ProcessImportRequest,
    UploadResponse,
)
from app.schemas.user import CurrentUser
from app.services.auth.provider import AuthProvider
from app.services.imports.service import ImportService
from app.services.imports.templates import list_templates, render_template_csv, template_file_name
from app.utils.pagination import PaginatedResponse, PaginationParams, paginate_response

router = APIRouter()
logger = logging.getLogger("cronos.api.imports")

FALLBACK_ENCODING = "latin-1"


def decode_upload(raw: bytes) -> str:
    """
    Decode uploaded bytes as UTF-8 (BOM aware), falling back to Latin-1.

    Spreadsheet exports on Windows are frequently Latin-1 encoded.
    """
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.info("Upload is not valid UTF-8, decoding as Latin-1")
        return raw.decode(FALLBACK_ENCODING)


async def _get_job_or_404(job_id: str, session_factory: async_sessionmaker) -> BulkImportResponse:
    async with get_repository_context(BulkImportRepository, session_factory) as repo:
        job = await repo.get_by_id(job_id)
        if not job:
            raise NotFoundError(f"Import job {job_id} not found")
        return BulkImportResponse.model_validate(job)


async def run_import_job(
    job_id: str,
    file_content: str,
    import_type: ImportType,
    session_factory: async_sessionmaker,
    auth_provider: AuthProvider,
) -> None:
    """
    Background task wrapper around ImportService.

    Failures are already recorded on the job; here they are only logged
    because there is no caller left to report them to.
    """
    try:
        await ImportService(
            job_id, session_factory=session_factory, auth_provider=auth_provider
        ).run(file_content, import_type)
    except CronosException as e:
        logger.warning(f"Background import {job_id} did not complete: {e.message}")
    except Exception:
        logger.exception(f"Background import {job_id} crashed")


@router.post("/jobs", response_model=BulkImportResponse, status_code=status.HTTP_201_CREATED)
async def create_import_job(
    job_in: BulkImportCreate,
    current_user: CurrentUser = Depends(require_import_access),
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> BulkImportResponse:
    """
    Create a pending import job owned by the caller.

    The file is submitted afterwards through ``POST /process``.
    """
    async with get_repository_context(BulkImportRepository, session_factory) as repo:
        job = await repo.create_import_job(
            import_type=job_in.import_type,
            file_name=job_in.file_name,
            imported_by=current_user.id,
        )
        return BulkImportResponse.model_validate(job)


@router.post("/process", response_model=ImportSummary)
async def process_import(
    request: ProcessImportRequest,
    current_user: CurrentUser = Depends(require_import_access),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    auth_provider: AuthProvider = Depends(get_import_auth_provider),
) -> ImportSummary:
    """
    Process the raw CSV text of a pending job and return aggregate counts.

    Per-row failures do not fail the request; they are listed by
    ``GET /jobs/{job_id}/errors``.

    Args:
        request: Job ID, declared import type, file text and name
        current_user: Authenticated user
        session_factory: Session factory for the run
        auth_provider: Identity provider for user imports

    Returns:
        ImportSummary: Rows processed, successful and failed

    Raises:
        NotFoundError: Unknown job
        ConflictError: Job is not pending
        ImportPreconditionError: File unusable (the job is marked failed)
    """
    logger.info(
        f"User {current_user.username} processing import {request.import_id} "
        f"({request.import_type.value}, {request.file_name or 'unnamed file'})"
    )

    service = ImportService(
        request.import_id, session_factory=session_factory, auth_provider=auth_provider
    )
    result = await service.run(request.file_content, request.import_type)

    return ImportSummary(
        processed=result.processed,
        successful=result.successful,
        failed=result.failed,
    )


@router.post("/upload", response_model=UploadResponse)
async def upload_import_file(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(..., description="CSV file"),
    import_type: ImportType = Form(..., description="Kind of entities in the file"),
    background: bool = Query(False, description="Process in a background task and return immediately"),
    current_user: CurrentUser = Depends(require_import_access),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    auth_provider: AuthProvider = Depends(get_import_auth_provider),
) -> UploadResponse:
    """
    Upload a CSV file, create its job and process it.

    Args:
        background_tasks: FastAPI background tasks manager
        file: Uploaded CSV file
        import_type: Kind of entities in the file
        background: Queue processing instead of waiting for it
        current_user: Authenticated user
        session_factory: Session factory for the run
        auth_provider: Identity provider for user imports

    Returns:
        UploadResponse: The job, plus the summary when processed inline

    Raises:
        HTTPException: No file or file too large
        ImportPreconditionError: File unusable (the job is marked failed)
    """
    if not file or not file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file provided")

    raw = await file.read(settings.MAX_IMPORT_FILE_SIZE + 1)
    if len(raw) > settings.MAX_IMPORT_FILE_SIZE:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File size exceeds {settings.MAX_IMPORT_FILE_SIZE // (1024 * 1024)}MB limit",
        )
    content = decode_upload(raw)

    async with get_repository_context(BulkImportRepository, session_factory) as repo:
        job = await repo.create_import_job(
            import_type=import_type,
            file_name=file.filename[:255],
            imported_by=current_user.id,
        )
        job_id = job.id

    if background:
        background_tasks.add_task(
            run_import_job, job_id, content, import_type, session_factory, auth_provider
        )
        return UploadResponse(
            job=await _get_job_or_404(job_id, session_factory),
            message="Import queued for processing",
        )

    result = await ImportService(
        job_id, session_factory=session_factory, auth_provider=auth_provider
    ).run(content, import_type)

    return UploadResponse(
        job=await _get_job_or_404(job_id, session_factory),
        summary=ImportSummary(
            processed=result.processed,
            successful=result.successful,
            failed=result.failed,
        ),
        message="Import completed",
    )


@router.get("/jobs", response_model=PaginatedResponse[BulkImportResponse])
async def list_import_jobs(
    pagination: PaginationParams = Depends(),
    status_filter: Optional[ImportStatus] = Query(None, alias="status", description="Filter by job status"),
    import_type: Optional[ImportType] = Query(None, description="Filter by import type"),
    mine: bool = Query(False, description="Only jobs submitted by the caller"),
    current_user: CurrentUser = Depends(require_import_access),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """
    List import history, newest first.
    """
    async with get_repository_context(BulkImportRepository, session_factory) as repo:
        jobs, total = await repo.list_jobs(
            imported_by=current_user.id if mine else None,
            status=status_filter,
            import_type=import_type,
            skip=pagination.skip,
            limit=pagination.limit,
        )
        items = [BulkImportResponse.model_validate(job) for job in jobs]

    return paginate_response(items=items, total=total, pagination=pagination)


@router.get("/jobs/{job_id}", response_model=BulkImportResponse)
async def get_import_job(
    job_id: str,
    current_user: CurrentUser = Depends(require_import_access),
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> BulkImportResponse:
    """Get one import job with its counters and status."""
    return await _get_job_or_404(job_id, session_factory)


@router.get("/jobs/{job_id}/errors", response_model=PaginatedResponse[ImportRowErrorResponse])
async def list_import_job_errors(
    job_id: str,
    pagination: PaginationParams = Depends(),
    current_user: CurrentUser = Depends(require_import_access),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """
    List the rejected rows of a job in file order.
    """
    await _get_job_or_404(job_id, session_factory)

    async with get_repository_context(ImportRowErrorRepository, session_factory) as repo:
        errors, total = await repo.get_by_import(job_id, skip=pagination.skip, limit=pagination.limit)
        items = [ImportRowErrorResponse.model_validate(error) for error in errors]

    return paginate_response(items=items, total=total, pagination=pagination)


@router.get("/templates", response_model=List[ImportTemplate])
async def get_import_templates(
    current_user: CurrentUser = Depends(require_import_access),
) -> List[ImportTemplate]:
    """Column layout, required fields and an example row for every import type."""
    return list_templates()


@router.get("/templates/{import_type}")
async def download_import_template(
    import_type: ImportType,
    current_user: CurrentUser = Depends(require_import_access),
) -> Response:
    """Download the CSV template of one import type."""
    return Response(
        content=render_template_csv(import_type),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{template_file_name(import_type)}"'},
    )
