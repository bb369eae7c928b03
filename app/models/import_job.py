"""
Database models for bulk import job tracking.
"""
from enum import Enum

from sqlalchemy import Column, String, DateTime, JSON, Integer, ForeignKey, Text
from sqlalchemy.orm import relationship

from app.models.base import Base, value_enum


class ImportStatus(str, Enum):
    """Import job status enum."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ImportType(str, Enum):
    """Kinds of entities a bulk import can create."""
    USERS = "users"
    SUBJECTS = "subjects"
    GROUPS = "groups"
    SCHEDULES = "schedules"


class BulkImport(Base):
    """Model for tracking one bulk CSV import run and its counters."""

    __tablename__ = "bulk_imports"

    import_type = Column(value_enum(ImportType), nullable=False, index=True)
    file_name = Column(String(255), nullable=False)
    status = Column(value_enum(ImportStatus), nullable=False, default=ImportStatus.PENDING, index=True)

    # Progress tracking
    total_records = Column(Integer, default=0, nullable=False)
    processed_records = Column(Integer, default=0, nullable=False)
    successful_records = Column(Integer, default=0, nullable=False)
    failed_records = Column(Integer, default=0, nullable=False)

    # Job-level failure details (row failures live in import_errors)
    errors = Column(JSON, nullable=True)

    # Ownership
    imported_by = Column(String, nullable=False, index=True)

    # Processing metadata
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    row_errors = relationship(
        "ImportRowError",
        back_populates="bulk_import",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ImportRowError.row_number",
    )

    # Helper properties
    @property
    def progress_percentage(self) -> float:
        """Calculate the import progress percentage."""
        if not self.total_records:
            return 0
        return round((self.processed_records / self.total_records) * 100, 2)


class ImportRowError(Base):
    """One failed data row of a bulk import."""

    __tablename__ = "import_errors"

    bulk_import_id = Column(
        String,
        ForeignKey("bulk_imports.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    row_number = Column(Integer, nullable=False)  # 1-based, header is row 1
    error_message = Column(Text, nullable=False)
    row_data = Column(JSON, nullable=True)  # raw values keyed by header name

    bulk_import = relationship("BulkImport", back_populates="row_errors")
