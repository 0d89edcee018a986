"""Import job endpoints: enqueue, status, cancel and tenant listings."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from redis.exceptions import RedisError

from inventory_import.api.dependencies.services import get_import_service, get_queue
from inventory_import.api.schemas.job import (
    CancelResponse,
    DetectionOut,
    DetectRequest,
    EnqueueRequest,
    EnqueueResponse,
    JobStatus,
)
from inventory_import.core.errors import ImportFileError, SerializationError, TypeDetectionError
from inventory_import.domain.job import JobOptions
from inventory_import.services.import_service import ImportService
from inventory_import.services.job_queue import JobQueue
from inventory_import.services.type_detector import detect

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "/jobs",
    summary="Enqueue an import job",
    response_model=EnqueueResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
def enqueue_job(
    payload: EnqueueRequest,
    service: ImportService = Depends(get_import_service),
) -> EnqueueResponse:
    """Queue a file for background import; ``auto`` resolves the type from its headers."""
    try:
        result = service.submit(
            payload.import_type,
            payload.tenant_id,
            payload.user_id,
            payload.source_file_ref,
            JobOptions(**payload.options.model_dump()),
        )
    except (SerializationError, TypeDetectionError) as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except ImportFileError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except RedisError as e:
        logger.error(f"Queue unavailable while enqueueing: {e}", exc_info=True)
        raise HTTPException(status_code=503, detail="Job queue unavailable") from e
    return EnqueueResponse(
        job_id=result.job_id,
        import_type=result.import_type,
        confidence=result.detection.confidence if result.detection else None,
    )


@router.get("/jobs/{job_id}", summary="Fetch job state and progress", response_model=JobStatus)
def get_job(job_id: str, queue: JobQueue = Depends(get_queue)) -> JobStatus:
    """Expose job state for polling dashboards."""
    job = queue.get_status(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobStatus.from_job(job)


@router.post("/jobs/{job_id}/cancel", summary="Cancel a pending or running job", response_model=CancelResponse)
def cancel_job(job_id: str, queue: JobQueue = Depends(get_queue)) -> CancelResponse:
    return CancelResponse(job_id=job_id, cancelled=queue.cancel(job_id))


@router.get(
    "/tenants/{tenant_id}/jobs",
    summary="List a tenant's import jobs",
    response_model=list[JobStatus],
)
def list_tenant_jobs(
    tenant_id: int,
    limit: int = Query(50, ge=1, le=500, description="Maximum number of jobs to return"),
    offset: int = Query(0, ge=0),
    queue: JobQueue = Depends(get_queue),
) -> list[JobStatus]:
    """Jobs in reverse chronological order (newest first)."""
    return [JobStatus.from_job(job) for job in queue.list_by_tenant(tenant_id, limit, offset)]


@router.get("/tenants/{tenant_id}/stats", summary="Aggregate import counters for a tenant")
def tenant_stats(tenant_id: int, queue: JobQueue = Depends(get_queue)) -> dict:
    return queue.tenant_stats(tenant_id)


@router.get("/types", summary="Expected columns per import type")
def import_types(service: ImportService = Depends(get_import_service)) -> list[dict]:
    return service.describe_types()


@router.post("/detect", summary="Score column headers against every import type", response_model=list[DetectionOut])
def detect_columns(payload: DetectRequest) -> list[DetectionOut]:
    return [DetectionOut(**result.to_dict()) for result in detect(payload.columns)]
