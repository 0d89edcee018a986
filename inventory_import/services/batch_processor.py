"""Drive one import job through its type processor, chunk by chunk."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from inventory_import.core.errors import ImportFileError, RowRejected, UnsupportedImportTypeError
from inventory_import.db.record_store import RecordStore
from inventory_import.domain.job import Job, JobState, RowError
from inventory_import.services.cache import ImportCache
from inventory_import.services.error_report import ErrorReportWriter
from inventory_import.services.file_reader import FileReader, SourceRow
from inventory_import.services.job_queue import JobQueue
from inventory_import.services.processors import ProcessingContext, TypeProcessor, create_processor
from inventory_import.utils.batching import chunked

logger = logging.getLogger(__name__)

STRUCTURE_FAILURE_MESSAGE = "El archivo no tiene la estructura requerida; no se procesó ningún registro"


@dataclass
class ChunkOutcome:
    processed: int = 0
    succeeded: int = 0
    failed_rows: int = 0
    errors: list[RowError] = field(default_factory=list)

    def success(self) -> None:
        self.processed += 1
        self.succeeded += 1

    def failure(self, errors: list[RowError]) -> None:
        self.processed += 1
        self.failed_rows += 1
        self.errors.extend(errors)


class BatchProcessor:
    """Runs the read, validate, chunk and finish cycle for a single job.

    Rows are processed strictly in file order. Counters are persisted after
    every chunk, so a redelivered job resumes at the first row of the chunk
    that was in flight when the previous worker stopped.
    """

    def __init__(
        self,
        queue: JobQueue,
        store: RecordStore,
        file_reader: FileReader,
        report_writer: ErrorReportWriter,
        *,
        cache: ImportCache | None = None,
        max_records: dict[str, int] | None = None,
    ):
        self.queue = queue
        self.store = store
        self.file_reader = file_reader
        self.report_writer = report_writer
        self.cache = cache
        self.max_records = max_records or {}

    def run(self, job_id: str) -> Job | None:
        job = self.queue.claim(job_id)
        if job is None:
            logger.warning(f"Job {job_id} not found; nothing to process")
            return None
        if job.is_terminal:
            logger.info(f"Job {job_id} already {job.state.value}; skipping")
            return job

        logger.info(
            f"Processing job {job.id} ({job.import_type.value}) for tenant {job.tenant_id}, "
            f"attempt {job.attempts}"
        )
        context = ProcessingContext(
            job=job,
            store=self.store,
            cache=self.cache,
            max_records=self.max_records.get(job.import_type.value),
        )
        try:
            processor = create_processor(job.import_type, context)
        except UnsupportedImportTypeError as e:
            return self.queue.fail(job.id, [RowError.system(str(e))])

        try:
            sheet = self.file_reader.read(job.source_file_ref)
        except ImportFileError as e:
            logger.error(f"Job {job.id}: cannot read {job.source_file_ref}: {e}")
            return self.queue.fail(job.id, [RowError.system(f"No se pudo leer el archivo: {e}")])

        structure_errors = processor.validate_file_structure(sheet)
        if structure_errors:
            return self.queue.fail(
                job.id, structure_errors + [RowError.system(STRUCTURE_FAILURE_MESSAGE)]
            )

        job = self.queue.set_total(job.id, len(sheet.rows)) or job
        if job.is_terminal:
            return job
        processor.prepare()

        remaining = sheet.rows[job.processed_records :]
        if job.processed_records:
            logger.info(f"Job {job.id}: resuming after {job.processed_records} processed rows")

        try:
            for chunk in chunked(remaining, processor.chunk_size):
                current = self.queue.fetch(job.id)
                if current is None or current.is_terminal:
                    logger.info(f"Job {job.id} stopped at a chunk boundary (cancelled or removed)")
                    return current
                outcome = self._process_chunk(processor, chunk, job)
                updated = self.queue.record_chunk(
                    job.id,
                    processed=outcome.processed,
                    succeeded=outcome.succeeded,
                    failed_rows=outcome.failed_rows,
                    errors=outcome.errors,
                )
                if updated is None or updated.is_terminal:
                    logger.info(f"Job {job.id} ended while its last chunk was running")
                    return updated
                job = updated
                logger.info(
                    f"Job {job.id}: {job.processed_records}/{job.total_records} rows "
                    f"({job.progress}%), {job.error_records} with errors"
                )
        finally:
            # Rows already committed must reach the tenant lookup even when the job stops early
            processor.finish()
        return self._finalize(job)

    def _process_chunk(self, processor: TypeProcessor, rows: list[SourceRow], job: Job) -> ChunkOutcome:
        outcome = ChunkOutcome()
        for row in rows:
            errors = processor.validate_row(row)
            if errors:
                outcome.failure(errors)
                continue
            try:
                with self.store.transaction(rollback=job.options.validate_only):
                    existing = processor.resolve_existing(row)
                    processor.apply(row, existing)
            except RowRejected as e:
                outcome.failure(e.errors)
            except Exception as e:
                logger.warning(f"Job {job.id}: unexpected error on row {row.number}: {e}", exc_info=True)
                outcome.failure([RowError.system(f"Error inesperado: {e}", row=row.number)])
            else:
                outcome.success()
        return outcome

    def _finalize(self, job: Job) -> Job | None:
        report_ref = None
        if job.errors:
            try:
                report_ref = self.report_writer.write(job.errors, f"errores-{job.id}")
            except OSError as e:
                logger.error(f"Job {job.id}: could not write error report: {e}", exc_info=True)
        finished = self.queue.complete(job.id, report_ref)
        if finished is not None and finished.state == JobState.COMPLETED:
            logger.info(
                f"Job {job.id} completed: {finished.success_records} ok, "
                f"{finished.error_records} with errors"
            )
            if finished.options.notify_email:
                logger.info(f"Job {job.id}: completion notice requested for user {finished.user_id}")
        return finished
