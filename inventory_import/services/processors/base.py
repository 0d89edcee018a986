"""Common contract for per-type import processors."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, ClassVar

from inventory_import.db.record_store import RecordStore
from inventory_import.domain.job import ErrorKind, ImportType, Job, RowError
from inventory_import.services.cache import ImportCache
from inventory_import.services.column_patterns import ColumnPattern, resolve_columns
from inventory_import.services.file_reader import SheetData, SourceRow
from inventory_import.utils.normalize import clean_text

logger = logging.getLogger(__name__)

EMPTY_FILE_MESSAGE = "El archivo está vacío o no contiene datos"
# Row number for errors about the file as a whole; data rows start at 1
FILE_ROW = 0


def primitive(value: Any) -> Any:
    """Reduce a raw cell value to something JSON and Redis can carry."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


@dataclass
class ProcessingContext:
    job: Job
    store: RecordStore
    cache: ImportCache | None = None
    max_records: int | None = None

    @property
    def tenant_id(self) -> int:
        return self.job.tenant_id


class TypeProcessor(ABC):
    """Validation and persistence strategy for one import type.

    A processor instance serves a single job. ``validate_file_structure``
    must run first: it resolves which header carries each expected column.
    """

    import_type: ClassVar[ImportType]
    chunk_size: ClassVar[int] = 50
    patterns: ClassVar[tuple[ColumnPattern, ...]] = ()

    def __init__(self, context: ProcessingContext):
        self.context = context
        self.columns: dict[str, str] = {}

    @property
    def store(self) -> RecordStore:
        return self.context.store

    @property
    def options(self):
        return self.context.job.options

    @property
    def required_columns(self) -> list[str]:
        return [pattern.canonical for pattern in self.patterns if pattern.required]

    def validate_file_structure(self, sheet: SheetData) -> list[RowError]:
        if not sheet.headers or not sheet.rows:
            return [RowError(row=FILE_ROW, column="", raw_value=None, message=EMPTY_FILE_MESSAGE)]
        self.columns = resolve_columns(sheet.headers, self.patterns)
        errors = [
            RowError(
                row=FILE_ROW,
                column=column,
                raw_value=None,
                message=f"Falta la columna requerida '{column}'",
            )
            for column in self.required_columns
            if column not in self.columns
        ]
        limit = self.context.max_records
        if limit and len(sheet.rows) > limit:
            errors.append(
                RowError(
                    row=FILE_ROW,
                    column="",
                    raw_value=len(sheet.rows),
                    message=f"El archivo tiene {len(sheet.rows)} registros; el máximo es {limit}",
                )
            )
        return errors

    def prepare(self) -> None:
        """Hook run once after structure validation, before the first chunk."""

    def finish(self) -> None:
        """Hook run once when the job stops processing rows, however it stops."""

    @abstractmethod
    def validate_row(self, row: SourceRow) -> list[RowError]: ...

    @abstractmethod
    def resolve_existing(self, row: SourceRow) -> Any | None: ...

    @abstractmethod
    def apply(self, row: SourceRow, existing: Any | None) -> None: ...

    # helpers shared by the concrete processors

    def value(self, row: SourceRow, column: str) -> Any:
        return row.get(self.columns.get(column))

    def text(self, row: SourceRow, column: str) -> str | None:
        return clean_text(self.value(row, column))

    def source_ref(self, row: SourceRow) -> str:
        """Identifies the import row that wrote a record, so a redelivered row is recognised."""
        return f"{self.context.job.id}:{row.number}"

    def error(
        self, row: SourceRow, column: str, message: str, kind: ErrorKind = ErrorKind.VALIDATION
    ) -> RowError:
        return RowError(
            row=row.number,
            column=column,
            raw_value=primitive(self.value(row, column)),
            message=message,
            kind=kind,
        )

    def number(
        self,
        row: SourceRow,
        column: str,
        parser: Callable[[Any], Any],
        errors: list[RowError],
        *,
        label: str,
        required: bool = False,
        minimum: int | None = None,
        strictly_positive: bool = False,
    ):
        """Parse a numeric cell, appending a RowError instead of raising."""
        raw = self.value(row, column)
        try:
            parsed = parser(raw)
        except ValueError:
            errors.append(self.error(row, column, f"{label} debe ser un número válido"))
            return None
        if parsed is None:
            if required:
                errors.append(self.error(row, column, f"{label} es requerido"))
            return None
        if strictly_positive and parsed <= 0:
            errors.append(self.error(row, column, f"{label} debe ser mayor a cero"))
            return None
        if minimum is not None and parsed < minimum:
            errors.append(self.error(row, column, f"{label} no puede ser negativo"))
            return None
        return parsed
