"""Convert jobs to and from the flat record stored in a Redis hash.

Redis hashes only hold strings and numbers, so nested values (options,
errors) travel as JSON strings and timestamps as ISO-8601. Writing is
strict: a job missing an identity field never reaches the backend. Reading
is lenient: a half-written record still yields a job, but every value that
had to be replaced is logged.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Mapping

from inventory_import.core.errors import SerializationError
from inventory_import.domain.job import ImportType, Job, JobOptions, JobState, RowError

logger = logging.getLogger(__name__)

PrimitiveRecord = dict[str, str | int | float]

REQUIRED_FIELDS = ("id", "import_type", "tenant_id", "user_id", "source_file_ref", "created_at")
COUNTER_FIELDS = (
    "total_records",
    "processed_records",
    "success_records",
    "error_records",
    "progress",
    "attempts",
)


def _format_ts(value: datetime | None) -> str:
    return value.isoformat() if value else ""


class JobSerializer:
    """Strict write path, lenient-but-logged read path."""

    def serialize(self, job: Job) -> PrimitiveRecord:
        for name in REQUIRED_FIELDS:
            value = getattr(job, name, None)
            if value is None or value == "":
                raise SerializationError(f"Job field '{name}' is required")
        if not isinstance(job.import_type, ImportType):
            raise SerializationError(f"Unknown import type: {job.import_type!r}")
        if not isinstance(job.state, JobState):
            raise SerializationError(f"Unknown job state: {job.state!r}")

        try:
            options = json.dumps(job.options.to_dict(), default=str)
            errors = json.dumps([error.to_dict() for error in job.errors], default=str)
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Job {job.id} has non-serializable payload: {e}") from e

        return {
            "id": str(job.id),
            "import_type": job.import_type.value,
            "tenant_id": int(job.tenant_id),
            "user_id": int(job.user_id),
            "source_file_ref": str(job.source_file_ref),
            "options": options,
            "total_records": int(job.total_records),
            "processed_records": int(job.processed_records),
            "success_records": int(job.success_records),
            "error_records": int(job.error_records),
            "errors": errors,
            "progress": int(job.progress),
            "state": job.state.value,
            "created_at": _format_ts(job.created_at),
            "started_at": _format_ts(job.started_at),
            "finished_at": _format_ts(job.finished_at),
            "error_report_ref": job.error_report_ref or "",
            "attempts": int(job.attempts),
        }

    def deserialize(self, record: Mapping[str, Any]) -> Job:
        if not record:
            raise SerializationError("Empty job record")
        job_id = str(record.get("id") or "")
        for name in ("id", "tenant_id", "user_id", "source_file_ref"):
            if record.get(name) in (None, ""):
                raise SerializationError(f"Job record {job_id or '?'} lacks '{name}'")

        import_type = self._coerce_enum(
            ImportType, record.get("import_type"), ImportType.PRODUCTS, job_id, "import_type"
        )
        state = self._coerce_enum(JobState, record.get("state"), JobState.PENDING, job_id, "state")

        counters = {name: self._coerce_int(record.get(name), job_id, name) for name in COUNTER_FIELDS}

        return Job(
            id=job_id,
            import_type=import_type,
            tenant_id=self._coerce_int(record.get("tenant_id"), job_id, "tenant_id"),
            user_id=self._coerce_int(record.get("user_id"), job_id, "user_id"),
            source_file_ref=str(record.get("source_file_ref")),
            options=JobOptions.from_dict(self._load_json(record.get("options"), {}, job_id, "options")),
            errors=[
                RowError.from_dict(item)
                for item in self._load_json(record.get("errors"), [], job_id, "errors")
                if isinstance(item, dict)
            ],
            state=state,
            created_at=self._coerce_ts(record.get("created_at"), job_id, "created_at"),
            started_at=self._coerce_ts(record.get("started_at"), job_id, "started_at"),
            finished_at=self._coerce_ts(record.get("finished_at"), job_id, "finished_at"),
            error_report_ref=str(record.get("error_report_ref") or "") or None,
            **counters,
        )

    def validate_integrity(self, job: Job) -> bool:
        """Sanity check applied before trusting a job read from the queue or cache."""
        problems = []
        if not job.id:
            problems.append("empty id")
        if not isinstance(job.tenant_id, int) or job.tenant_id <= 0:
            problems.append(f"tenant_id={job.tenant_id!r}")
        if not isinstance(job.user_id, int) or job.user_id <= 0:
            problems.append(f"user_id={job.user_id!r}")
        if not job.source_file_ref or not str(job.source_file_ref).strip():
            problems.append("empty source_file_ref")
        if not isinstance(job.created_at, datetime):
            problems.append("invalid created_at")
        if job.processed_records > job.total_records:
            problems.append("processed_records exceeds total_records")
        if job.success_records + job.error_records > job.processed_records:
            problems.append("success+error exceeds processed_records")
        if problems:
            logger.warning(f"Job {job.id or '?'} failed integrity check: {', '.join(problems)}")
            return False
        return True

    @staticmethod
    def _coerce_enum(enum_cls, raw: Any, default, job_id: str, name: str):
        try:
            return enum_cls(str(raw).lower())
        except ValueError:
            logger.warning(
                f"Job {job_id}: invalid {name} {raw!r}, defaulting to {default.value}"
            )
            return default

    @staticmethod
    def _coerce_int(raw: Any, job_id: str, name: str) -> int:
        if raw in (None, ""):
            return 0
        try:
            return int(float(raw))
        except (TypeError, ValueError):
            logger.warning(f"Job {job_id}: invalid {name} {raw!r}, defaulting to 0")
            return 0

    @staticmethod
    def _coerce_ts(raw: Any, job_id: str, name: str) -> datetime | None:
        if raw in (None, ""):
            return None
        try:
            return datetime.fromisoformat(str(raw))
        except ValueError:
            logger.warning(f"Job {job_id}: unparseable {name} {raw!r}, dropping it")
            return None

    @staticmethod
    def _load_json(raw: Any, default, job_id: str, name: str):
        if raw in (None, ""):
            return default
        if isinstance(raw, (dict, list)):
            return raw
        try:
            value = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"Job {job_id}: corrupt {name} payload, using empty value")
            return default
        if not isinstance(value, type(default)):
            logger.warning(f"Job {job_id}: unexpected {name} payload type, using empty value")
            return default
        return value
