# app/services/imports/service.py
"""
Import Service - runs one bulk import job from raw CSV text to final status.

The job moves pending -> processing -> completed | failed. Rows are handled
strictly in file order, each in its own transaction, so one bad row never
affects the others. Job bookkeeping (status, counters, row errors) is written
in short transactions of its own, independent of the row transactions.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.config import settings
from app.core.exceptions import (
    ConflictError,
    ImportPreconditionError,
    NotFoundError,
    RowImportError,
)
from app.core.logging import ImportJobLogger
from app.db.repositories.import_jobs import BulkImportRepository, ImportRowErrorRepository
from app.db.session import get_repository_context
from app.models.import_job import ImportStatus, ImportType
from app.services.auth.provider import AuthProvider, get_auth_provider
from app.services.imports.parser import ParsedFile, parse_csv_content
from app.services.imports.processors import RowProcessor, get_processor

logger = logging.getLogger("cronos.imports.service")


@dataclass
class ImportResult:
    """Aggregate outcome of a completed run."""
    processed: int = 0
    successful: int = 0
    failed: int = 0


class ImportService:
    """
    Orchestrates a single import job.

    One instance per job. The session factory and auth provider are injectable
    so the API, the CLI and tests can run the same code path.
    """

    def __init__(
        self,
        job_id: str,
        *,
        session_factory: Optional[async_sessionmaker] = None,
        auth_provider: Optional[AuthProvider] = None,
        progress_interval: Optional[int] = None,
    ):
        """
        Initialize import service for a specific job.

        Args:
            job_id: Import job identifier
            session_factory: Session factory (defaults to the application one)
            auth_provider: Identity provider for user imports
            progress_interval: Rows between progress flushes
        """
        self.job_id = job_id
        self.session_factory = session_factory
        self.auth_provider = auth_provider
        self.progress_interval = max(1, progress_interval or settings.IMPORT_PROGRESS_INTERVAL)
        self.log = ImportJobLogger(logger, job_id)
        self._last_milestone = 0

    async def run(self, file_content: str, import_type: Optional[ImportType] = None) -> ImportResult:
        """
        Process the job's file.

        Args:
            file_content: Decoded CSV text
            import_type: Kind declared by the caller, checked against the job

        Returns:
            ImportResult: Rows attempted, inserted and rejected

        Raises:
            NotFoundError: Unknown job
            ConflictError: Job is not pending
            ImportPreconditionError: File unusable; the job is marked failed
            Exception: Infrastructure error mid-run; the job is completed with
                the counts reached so far before it propagates
        """
        job_type = await self._load_pending_job_type()
        processor = self._build_processor(job_type)
        await self._claim()

        try:
            if import_type is not None and ImportType(import_type) != job_type:
                raise ImportPreconditionError(
                    f"Declared import type '{ImportType(import_type).value}' does not match "
                    f"job import type '{job_type.value}'",
                    code="IMPORT_TYPE_MISMATCH",
                )
            parsed = parse_csv_content(file_content)
        except ImportPreconditionError as e:
            await self._fail([{"code": e.code, "message": e.message, **e.details}])
            raise

        self.log.info(f"Processing {parsed.total_records} {job_type.value} rows")
        async with get_repository_context(BulkImportRepository, self.session_factory) as repo:
            await repo.set_total(self.job_id, parsed.total_records)

        result = ImportResult()
        try:
            await self._process_rows(parsed, processor, result)
        except Exception as e:
            # Rows already committed stay; the job keeps the counts reached so far
            self.log.exception(f"Import aborted after {result.processed} rows")
            await self._complete(result, errors=[{"code": "IMPORT_ABORTED", "message": str(e)}])
            raise

        await self._complete(result)

        self.log.info(
            f"Finished: {result.successful} successful, {result.failed} failed of {result.processed}"
        )
        return result

    async def _load_pending_job_type(self) -> ImportType:
        async with get_repository_context(BulkImportRepository, self.session_factory) as repo:
            job = await repo.get_by_id(self.job_id)
            if job is None:
                raise NotFoundError(f"Import job {self.job_id} not found")
            if ImportStatus(job.status) != ImportStatus.PENDING:
                raise ConflictError(
                    f"Import job {self.job_id} is {ImportStatus(job.status).value}, expected pending",
                    details={"status": ImportStatus(job.status).value},
                )
            return ImportType(job.import_type)

    def _build_processor(self, job_type: ImportType) -> RowProcessor:
        auth_provider = self.auth_provider
        if job_type == ImportType.USERS and auth_provider is None:
            auth_provider = get_auth_provider(self.session_factory)
        return get_processor(job_type, self.session_factory, auth_provider)

    async def _claim(self) -> None:
        async with get_repository_context(BulkImportRepository, self.session_factory) as repo:
            claimed = await repo.mark_processing(self.job_id)
        if not claimed:
            # Another runner moved the job between the read and the update
            raise ConflictError(f"Import job {self.job_id} is no longer pending")
        self.log.info("Marked as processing")

    async def _fail(self, errors: List[Dict[str, Any]]) -> None:
        async with get_repository_context(BulkImportRepository, self.session_factory) as repo:
            await repo.fail_job(self.job_id, errors)

    async def _complete(self, result: ImportResult, errors: Optional[List[Dict[str, Any]]] = None) -> None:
        async with get_repository_context(BulkImportRepository, self.session_factory) as repo:
            await repo.complete_job(
                self.job_id,
                processed=result.processed,
                successful=result.successful,
                failed=result.failed,
                errors=errors,
            )

    async def _process_rows(self, parsed: ParsedFile, processor: RowProcessor, result: ImportResult) -> None:
        """
        Attempt every row in file order, updating result in place.

        A row only counts once its outcome is stored, so the counters never
        include a failure whose row error could not be written.
        """
        for row, record in parsed.records():
            error_message = None
            try:
                row.check()
                await processor.process(record)
            except RowImportError as e:
                error_message = e.message
                self.log.warning(f"Row {row.row_number} rejected: {e.message}")
            except Exception as e:
                error_message = f"Unexpected error: {e}"
                self.log.exception(f"Row {row.row_number} failed unexpectedly")

            if error_message is None:
                result.successful += 1
            else:
                await self._record_row_error(row.row_number, error_message, record)
                result.failed += 1

            result.processed += 1
            if result.processed % self.progress_interval == 0:
                await self._flush_progress(result)
            self._log_progress(result.processed, parsed.total_records)

    async def _record_row_error(self, row_number: int, message: str, record: Dict[str, str]) -> None:
        async with get_repository_context(ImportRowErrorRepository, self.session_factory) as repo:
            await repo.add_row_error(
                bulk_import_id=self.job_id,
                row_number=row_number,
                error_message=message,
                row_data=record,
            )

    async def _flush_progress(self, result: ImportResult) -> None:
        async with get_repository_context(BulkImportRepository, self.session_factory) as repo:
            await repo.update_progress(
                self.job_id,
                processed=result.processed,
                successful=result.successful,
                failed=result.failed,
            )

    def _log_progress(self, processed: int, total: int) -> None:
        """Log every 10% milestone."""
        if total == 0:
            return

        milestone = int((processed / total) * 100 // 10) * 10
        if milestone > self._last_milestone:
            self._last_milestone = milestone
            self.log.info(f"Reached {milestone}% ({processed:,}/{total:,} rows)")
