"""
Repositories for bulk import jobs and their row errors.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import desc, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.repositories.base import BaseRepository
from app.models.import_job import BulkImport, ImportRowError, ImportStatus, ImportType
from app.schemas.import_job import BulkImportCreate, ImportRowErrorCreate
from app.utils.datetime import utc_now

logger = logging.getLogger("cronos.db")


class BulkImportRepository(BaseRepository[BulkImport, BulkImportCreate]):
    """Repository for bulk import job records."""

    def __init__(self, session: AsyncSession):
        """Initialize with session and BulkImport model."""
        super().__init__(session=session, model=BulkImport)

    async def create_import_job(
        self,
        *,
        import_type: ImportType,
        file_name: str,
        imported_by: str,
        id: Optional[str] = None,
    ) -> BulkImport:
        """
        Create a new pending import job.

        Args:
            import_type: Kind of entities the file holds
            file_name: Original file name
            imported_by: Profile id of the submitter
            id: Optional pre-generated job id

        Returns:
            BulkImport: Created job
        """
        data: Dict[str, Any] = {
            "import_type": import_type,
            "file_name": file_name,
            "imported_by": imported_by,
            "status": ImportStatus.PENDING,
            "total_records": 0,
            "processed_records": 0,
            "successful_records": 0,
            "failed_records": 0,
        }
        if id:
            data["id"] = id

        db_obj = await self.create(obj_in=data)
        logger.info(f"Created {import_type.value} import job {db_obj.id} for {imported_by}")
        return db_obj

    async def mark_processing(self, job_id: str) -> bool:
        """
        Move a pending job to processing.

        The status guard is part of the UPDATE so two runners can never both
        claim the same job.

        Args:
            job_id: Import job ID

        Returns:
            bool: True if the job was pending and is now processing
        """
        now = utc_now()
        result = await self.session.execute(
            update(BulkImport)
            .where(BulkImport.id == job_id, BulkImport.status == ImportStatus.PENDING)
            .values(status=ImportStatus.PROCESSING, started_at=now, updated_at=now)
        )
        return result.rowcount == 1

    async def set_total(self, job_id: str, total_records: int) -> None:
        """Record how many data rows the file holds."""
        await self.session.execute(
            update(BulkImport)
            .where(BulkImport.id == job_id)
            .values(total_records=total_records, updated_at=utc_now())
        )

    async def update_progress(
        self,
        job_id: str,
        *,
        processed: int,
        successful: int,
        failed: int,
    ) -> None:
        """
        Flush running counters to the job.

        Args:
            job_id: Import job ID
            processed: Rows attempted so far
            successful: Rows inserted so far
            failed: Rows rejected so far
        """
        await self.session.execute(
            update(BulkImport)
            .where(BulkImport.id == job_id, BulkImport.status == ImportStatus.PROCESSING)
            .values(
                processed_records=processed,
                successful_records=successful,
                failed_records=failed,
                updated_at=utc_now(),
            )
        )

    async def complete_job(
        self,
        job_id: str,
        *,
        processed: int,
        successful: int,
        failed: int,
        errors: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        """
        Mark a processing job as completed with its final counters.

        A job is completed even when every row failed; row failures are
        reported through import_errors. errors carries job-level notes, such
        as the reason a run stopped before its last row.
        """
        now = utc_now()
        values = dict(
            status=ImportStatus.COMPLETED,
            processed_records=processed,
            successful_records=successful,
            failed_records=failed,
            completed_at=now,
            updated_at=now,
        )
        if errors:
            values["errors"] = errors
        await self.session.execute(
            update(BulkImport)
            .where(BulkImport.id == job_id, BulkImport.status == ImportStatus.PROCESSING)
            .values(**values)
        )
        logger.info(
            f"Import job {job_id} completed: {successful} successful, {failed} failed of {processed}"
        )

    async def fail_job(self, job_id: str, errors: List[Dict[str, Any]]) -> None:
        """
        Mark a processing job as failed before any row was attempted.

        Args:
            job_id: Import job ID
            errors: Job-level failure details
        """
        now = utc_now()
        await self.session.execute(
            update(BulkImport)
            .where(BulkImport.id == job_id, BulkImport.status == ImportStatus.PROCESSING)
            .values(status=ImportStatus.FAILED, errors=errors, completed_at=now, updated_at=now)
        )
        logger.warning(f"Import job {job_id} failed: {errors}")

    async def list_jobs(
        self,
        *,
        imported_by: Optional[str] = None,
        status: Optional[ImportStatus] = None,
        import_type: Optional[ImportType] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[BulkImport], int]:
        """
        List jobs newest first with optional filtering.

        Args:
            imported_by: Only jobs submitted by this profile
            status: Optional status filter
            import_type: Optional kind filter
            skip: Number of records to skip
            limit: Maximum number of records to return

        Returns:
            Tuple[List[BulkImport], int]: (jobs, total_count)
        """
        query = select(BulkImport)
        count_query = select(func.count(BulkImport.id))

        conditions = []
        if imported_by:
            conditions.append(BulkImport.imported_by == imported_by)
        if status:
            conditions.append(BulkImport.status == status)
        if import_type:
            conditions.append(BulkImport.import_type == import_type)

        for condition in conditions:
            query = query.where(condition)
            count_query = count_query.where(condition)

        total = (await self.session.execute(count_query)).scalar() or 0

        query = query.order_by(desc(BulkImport.created_at)).offset(skip).limit(limit)
        result = await self.session.execute(query)

        return list(result.scalars().all()), total


class ImportRowErrorRepository(BaseRepository[ImportRowError, ImportRowErrorCreate]):
    """Repository for per-row import failures."""

    def __init__(self, session: AsyncSession):
        super().__init__(session=session, model=ImportRowError)

    async def add_row_error(
        self,
        *,
        bulk_import_id: str,
        row_number: int,
        error_message: str,
        row_data: Dict[str, str],
    ) -> ImportRowError:
        """
        Record one failed row.

        Args:
            bulk_import_id: Owning job
            row_number: 1-based line number, the header being row 1
            error_message: Human-readable reason
            row_data: Raw values keyed by header name

        Returns:
            ImportRowError: Created record
        """
        return await self.create(
            obj_in=ImportRowErrorCreate(
                bulk_import_id=bulk_import_id,
                row_number=row_number,
                error_message=error_message,
                row_data=row_data,
            )
        )

    async def get_by_import(
        self,
        bulk_import_id: str,
        *,
        skip: int = 0,
        limit: int = 100,
    ) -> Tuple[List[ImportRowError], int]:
        """
        Get the row errors of a job ordered by row number.

        Returns:
            Tuple[List[ImportRowError], int]: (errors, total_count)
        """
        total = await self.count(filters={"bulk_import_id": bulk_import_id})

        result = await self.session.execute(
            select(ImportRowError)
            .where(ImportRowError.bulk_import_id == bulk_import_id)
            .order_by(ImportRowError.row_number)
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all()), total
