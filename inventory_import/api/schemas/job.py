"""Import job request and response payloads."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from inventory_import.domain.job import ImportType, Job


class JobOptionsIn(BaseModel):
    overwrite_existing: bool = False
    validate_only: bool = False
    notify_email: bool = False
    specific: dict[str, Any] = Field(default_factory=dict, description="Type-specific switches")


class EnqueueRequest(BaseModel):
    import_type: ImportType | Literal["auto"] = Field(..., description="products|suppliers|movements|auto")
    tenant_id: int = Field(..., gt=0)
    user_id: int = Field(..., gt=0)
    source_file_ref: str = Field(..., min_length=1, description="Path of the uploaded file")
    options: JobOptionsIn = Field(default_factory=JobOptionsIn)


class EnqueueResponse(BaseModel):
    job_id: str
    import_type: ImportType
    confidence: int | None = Field(None, description="Detection confidence when import_type was auto")


class RowErrorOut(BaseModel):
    row: int
    column: str
    raw_value: Any = None
    message: str
    kind: str


class JobStatus(BaseModel):
    id: str
    import_type: ImportType
    tenant_id: int
    user_id: int
    state: str = Field(..., description="pending|processing|completed|failed|cancelled")
    progress: int = Field(..., description="0-100")
    message: str
    total_records: int
    processed_records: int
    success_records: int
    error_records: int
    errors: list[RowErrorOut] = Field(default_factory=list)
    error_report_ref: str | None = None
    created_at: datetime | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @classmethod
    def from_job(cls, job: Job) -> "JobStatus":
        return cls(
            id=job.id,
            import_type=job.import_type,
            tenant_id=job.tenant_id,
            user_id=job.user_id,
            state=job.state.value,
            progress=job.progress,
            message=status_message(job),
            total_records=job.total_records,
            processed_records=job.processed_records,
            success_records=job.success_records,
            error_records=job.error_records,
            errors=[RowErrorOut(**error.to_dict()) for error in job.errors],
            error_report_ref=job.error_report_ref,
            created_at=job.created_at,
            started_at=job.started_at,
            finished_at=job.finished_at,
        )


class CancelResponse(BaseModel):
    job_id: str
    cancelled: bool


class DetectRequest(BaseModel):
    columns: list[str] = Field(..., min_length=1)


class DetectionOut(BaseModel):
    import_type: ImportType
    confidence: int
    matched_columns: list[str]
    missing_required_columns: list[str]
    rationale: str


def status_message(job: Job) -> str:
    """Human summary shown next to the progress bar."""
    total_display = job.total_records if job.total_records else "?"
    if job.state.value == "completed" and job.error_records:
        return (
            f"Completed with partial errors: {job.error_records} of "
            f"{job.processed_records} rows failed"
        )
    if job.state.value == "failed":
        last = job.errors[-1].message if job.errors else "unknown error"
        return f"Failed: {last}"
    return f"Processed {job.processed_records}/{total_display} rows"
