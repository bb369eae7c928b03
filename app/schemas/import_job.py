"""
Pydantic schemas for bulk import API operations.
"""
from typing import List, Optional, Dict, Any
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.import_job import ImportStatus, ImportType


class BulkImportCreate(BaseModel):
    """Schema for creating a new (pending) import job."""
    import_type: ImportType = Field(..., description="Kind of entities in the file")
    file_name: str = Field(..., description="Original filename")

    @field_validator("file_name")
    @classmethod
    def validate_file_name(cls, v):
        """File names must be non-blank and fit the column."""
        v = v.strip()
        if not v:
            raise ValueError("File name must not be empty")
        if len(v) > 255:
            raise ValueError("File name must be at most 255 characters")
        return v


class BulkImportResponse(BaseModel):
    """Schema for import job response."""
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Import job ID")
    import_type: ImportType = Field(..., description="Kind of entities in the file")
    file_name: str = Field(..., description="Original filename")
    status: ImportStatus = Field(..., description="Import job status")
    total_records: int = Field(..., description="Data rows in the file")
    processed_records: int = Field(..., description="Rows attempted")
    successful_records: int = Field(..., description="Rows inserted")
    failed_records: int = Field(..., description="Rows rejected")
    errors: Optional[List[Dict[str, Any]]] = Field(None, description="Job-level failure details")
    imported_by: str = Field(..., description="Profile that submitted the import")
    progress_percentage: float = Field(0, description="Import progress percentage")
    started_at: Optional[datetime] = Field(None, description="Processing start time")
    completed_at: Optional[datetime] = Field(None, description="Processing completion time")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")


class ImportRowErrorCreate(BaseModel):
    """Schema for recording a failed row."""
    bulk_import_id: str
    row_number: int = Field(..., ge=2)
    error_message: str
    row_data: Dict[str, str] = Field(default_factory=dict)


class ImportRowErrorResponse(BaseModel):
    """Schema for one failed row."""
    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": "0b8f6a62-3f0e-4a52-9d0e-6b3c8f1b2a10",
                "bulk_import_id": "5c7e9a44-1d2b-4c3e-8f9a-0b1c2d3e4f50",
                "row_number": 3,
                "error_message": "Subject with code 'MAT100' already exists",
                "row_data": {"code": "MAT100", "name": "Cálculo", "credits": "4"},
                "created_at": "2024-03-15T10:00:00Z",
            }
        },
    )

    id: str = Field(..., description="Row error ID")
    bulk_import_id: str = Field(..., description="Owning import job")
    row_number: int = Field(..., description="Line number in the file (header is row 1)")
    error_message: str = Field(..., description="Why the row was rejected")
    row_data: Optional[Dict[str, Any]] = Field(None, description="Raw values keyed by header")
    created_at: datetime = Field(..., description="Creation timestamp")


class ProcessImportRequest(BaseModel):
    """
    Request to process an already created job.

    Field names are accepted in camelCase as the dashboard sends them.
    """
    model_config = ConfigDict(populate_by_name=True)

    import_id: str = Field(..., alias="importId", description="Pending import job ID")
    import_type: ImportType = Field(..., alias="importType", description="Declared kind of the file")
    file_content: str = Field(..., alias="fileContent", description="Raw CSV text")
    file_name: Optional[str] = Field(None, alias="fileName", description="Original filename")


class ImportSummary(BaseModel):
    """Aggregate outcome of one import run."""
    success: bool = True
    processed: int = Field(..., description="Rows attempted")
    successful: int = Field(..., description="Rows inserted")
    failed: int = Field(..., description="Rows rejected")


class UploadResponse(BaseModel):
    """
    Result of a file upload.

    ``summary`` is present when the file was processed within the request
    and absent when it was queued as a background task.
    """
    job: BulkImportResponse
    summary: Optional[ImportSummary] = None
    message: str


class ImportTemplate(BaseModel):
    """Column layout and example row of one import kind."""
    import_type: ImportType
    title: str
    description: str
    fields: List[str]
    required_fields: List[str]
    example: List[str]
    notes: List[str] = Field(default_factory=list)
