# app/scripts/import_csv.py
"""
Run a bulk import from a local CSV file.

Usage:
    python -m app.scripts.import_csv --type subjects subjects.csv --imported-by <profile id>
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from app.core.exceptions import CronosException
from app.core.logging import configure_logging
from app.db.repositories.import_jobs import BulkImportRepository
from app.db.session import close_database_connections, get_repository_context, initialize_database
from app.models.import_job import ImportType
from app.services.imports.service import ImportResult, ImportService

logger = logging.getLogger("cronos.scripts.import_csv")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Import users, subjects, groups or schedules from a CSV file.")
    parser.add_argument("file", type=Path, help="Path to the CSV file")
    parser.add_argument(
        "--type",
        dest="import_type",
        required=True,
        choices=[import_type.value for import_type in ImportType],
        help="Kind of entities in the file",
    )
    parser.add_argument("--imported-by", required=True, help="Profile ID recorded as the submitter")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    return parser


def read_file(path: Path) -> str:
    """Read a CSV file as UTF-8 (BOM aware), falling back to Latin-1."""
    raw = path.read_bytes()
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


async def import_file(
    path: Path,
    import_type: ImportType,
    imported_by: str,
    session_factory=None,
) -> ImportResult:
    """
    Create a job for the file and run it to completion.

    Args:
        path: CSV file
        import_type: Kind of entities in the file
        imported_by: Submitter profile ID
        session_factory: Optional session factory (tests)

    Returns:
        ImportResult: Aggregate counts
    """
    content = read_file(path)

    async with get_repository_context(BulkImportRepository, session_factory) as repo:
        job = await repo.create_import_job(
            import_type=import_type, file_name=path.name, imported_by=imported_by
        )
        job_id = job.id

    print(f"Import job {job_id} created for {path.name}")
    return await ImportService(job_id, session_factory=session_factory).run(content, import_type)


async def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    if not args.file.is_file():
        print(f"File not found: {args.file}", file=sys.stderr)
        return 2

    await initialize_database()
    try:
        result = await import_file(args.file, ImportType(args.import_type), args.imported_by)
    except CronosException as e:
        print(f"Import failed: {e.message}", file=sys.stderr)
        return 1
    finally:
        await close_database_connections()

    print(f"Processed: {result.processed}")
    print(f"Successful: {result.successful}")
    print(f"Failed: {result.failed}")
    return 0


def run() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
