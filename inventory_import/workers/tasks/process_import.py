"""Celery task running one import job end to end."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from inventory_import.core.config import get_settings
from inventory_import.core.logging import configure_logging
from inventory_import.db.record_store import SqlAlchemyRecordStore
from inventory_import.db.session import SessionLocal
from inventory_import.services.batch_processor import BatchProcessor
from inventory_import.services.error_report import ErrorReportWriter
from inventory_import.services.file_reader import FileReader
from inventory_import.services.job_queue import JobQueue, get_job_queue
from inventory_import.services.retry_policy import handle_job_exception
from inventory_import.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


def build_batch_processor(queue: JobQueue, session: Session) -> BatchProcessor:
    settings = get_settings()
    return BatchProcessor(
        queue,
        SqlAlchemyRecordStore(session),
        FileReader(settings.uploads_dir),
        ErrorReportWriter(settings.reports_dir),
        cache=queue.cache,
        max_records={
            "products": settings.max_records_products,
            "suppliers": settings.max_records_suppliers,
            "movements": settings.max_records_movements,
        },
    )


@celery_app.task(bind=True, name="inventory_import.workers.tasks.process_import", max_retries=None)
def process_import_job(self, job_id: str):
    """Process every row of ``job_id``; retries with backoff on unexpected errors."""
    configure_logging()
    settings = get_settings()
    queue = get_job_queue()
    session = SessionLocal()
    try:
        job = build_batch_processor(queue, session).run(job_id)
        return {"job_id": job_id, "state": job.state.value if job else None}
    except Exception as exc:
        session.rollback()
        countdown = handle_job_exception(
            queue,
            job_id,
            exc,
            retries=self.request.retries,
            attempts=settings.job_attempts,
            base_seconds=settings.retry_backoff_seconds,
        )
        if countdown is None:
            raise
        raise self.retry(exc=exc, countdown=countdown)
    finally:
        session.close()
