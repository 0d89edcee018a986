"""Import job value types and the job state machine."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ImportType(str, Enum):
    PRODUCTS = "products"
    SUPPLIERS = "suppliers"
    MOVEMENTS = "movements"


class JobState(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    DUPLICATE = "duplicate"
    REFERENCE = "reference"
    SYSTEM = "system"


TERMINAL_STATES = frozenset({JobState.COMPLETED, JobState.FAILED, JobState.CANCELLED})

ALLOWED_TRANSITIONS: dict[JobState, frozenset[JobState]] = {
    JobState.PENDING: frozenset({JobState.PROCESSING, JobState.FAILED, JobState.CANCELLED}),
    JobState.PROCESSING: frozenset({JobState.COMPLETED, JobState.FAILED, JobState.CANCELLED}),
    JobState.COMPLETED: frozenset(),
    JobState.FAILED: frozenset(),
    JobState.CANCELLED: frozenset(),
}

# Lower number is served first by the broker
PRIORITY_BY_TYPE: dict[ImportType, int] = {
    ImportType.MOVEMENTS: 1,
    ImportType.PRODUCTS: 2,
    ImportType.SUPPLIERS: 3,
}

CANCELLATION_MESSAGE = "Trabajo cancelado por el usuario"


class InvalidStateTransition(RuntimeError):
    """A job was asked to move backwards or out of a terminal state."""


@dataclass
class RowError:
    row: int
    column: str
    raw_value: Any
    message: str
    kind: ErrorKind = ErrorKind.VALIDATION

    def to_dict(self) -> dict[str, Any]:
        return {
            "row": self.row,
            "column": self.column,
            "raw_value": self.raw_value,
            "message": self.message,
            "kind": self.kind.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RowError:
        try:
            kind = ErrorKind(data.get("kind", ErrorKind.SYSTEM.value))
        except ValueError:
            kind = ErrorKind.SYSTEM
        return cls(
            row=int(data.get("row") or 0),
            column=str(data.get("column") or ""),
            raw_value=data.get("raw_value"),
            message=str(data.get("message") or ""),
            kind=kind,
        )

    @classmethod
    def system(cls, message: str, row: int = 0, column: str = "") -> RowError:
        return cls(row=row, column=column, raw_value=None, message=message, kind=ErrorKind.SYSTEM)


@dataclass
class JobOptions:
    overwrite_existing: bool = False
    validate_only: bool = False
    notify_email: bool = False
    # Per-type switches, e.g. {"crearProductoSiNoExiste": true}
    specific: dict[str, Any] = field(default_factory=dict)

    def flag(self, name: str) -> bool:
        return bool(self.specific.get(name, False))

    def to_dict(self) -> dict[str, Any]:
        return {
            "overwrite_existing": self.overwrite_existing,
            "validate_only": self.validate_only,
            "notify_email": self.notify_email,
            "specific": dict(self.specific),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> JobOptions:
        data = data or {}
        return cls(
            overwrite_existing=bool(data.get("overwrite_existing", False)),
            validate_only=bool(data.get("validate_only", False)),
            notify_email=bool(data.get("notify_email", False)),
            specific=dict(data.get("specific") or {}),
        )


def new_job_id() -> str:
    return f"import-{uuid.uuid4().hex}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Job:
    """One enqueued request to import a file of a given type for a tenant."""

    id: str
    import_type: ImportType
    tenant_id: int
    user_id: int
    source_file_ref: str
    options: JobOptions = field(default_factory=JobOptions)
    total_records: int = 0
    processed_records: int = 0
    success_records: int = 0
    error_records: int = 0
    errors: list[RowError] = field(default_factory=list)
    progress: int = 0
    state: JobState = JobState.PENDING
    created_at: datetime = field(default_factory=utcnow)
    started_at: datetime | None = None
    finished_at: datetime | None = None
    error_report_ref: str | None = None
    attempts: int = 0

    @classmethod
    def create(
        cls,
        import_type: ImportType,
        tenant_id: int,
        user_id: int,
        source_file_ref: str,
        options: JobOptions | None = None,
    ) -> Job:
        return cls(
            id=new_job_id(),
            import_type=import_type,
            tenant_id=tenant_id,
            user_id=user_id,
            source_file_ref=source_file_ref,
            options=options or JobOptions(),
        )

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    @property
    def priority(self) -> int:
        return PRIORITY_BY_TYPE[self.import_type]

    def transition_to(self, state: JobState, *, at: datetime | None = None) -> None:
        """Move to ``state``, stamping start/finish times and pinning progress on exit."""
        if state == self.state:
            return
        if state not in ALLOWED_TRANSITIONS[self.state]:
            raise InvalidStateTransition(
                f"Job {self.id} cannot move from {self.state.value} to {state.value}"
            )
        moment = at or utcnow()
        self.state = state
        if state == JobState.PROCESSING and self.started_at is None:
            self.started_at = moment
        if state.is_terminal:
            self.finished_at = moment
            self.progress = 100

    def record_chunk(self, processed: int, succeeded: int, errors: list[RowError], failed_rows: int) -> None:
        """Fold one processed chunk into the counters; progress never goes down."""
        self.processed_records = min(self.total_records, self.processed_records + processed)
        self.success_records += succeeded
        self.error_records += failed_rows
        self.errors.extend(errors)
        if self.total_records:
            computed = int(self.processed_records * 100 / self.total_records + 0.5)
            self.progress = max(self.progress, min(100, computed))
