"""Domain exceptions raised across the import pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from inventory_import.domain.job import RowError


class SerializationError(ValueError):
    """A job cannot be converted to or from its queue record."""


class ImportFileError(ValueError):
    """The source file cannot be read as a spreadsheet."""


class UnsupportedImportTypeError(ValueError):
    """No processor is registered for the requested import type."""


class TypeDetectionError(ValueError):
    """Automatic type resolution did not reach the required confidence."""


class RecordNotFoundError(LookupError):
    """A record addressed by id does not exist for the tenant."""


class RowRejected(Exception):
    """Raised by a processor to reject one row without aborting the batch."""

    def __init__(self, errors: list[RowError]):
        self.errors = errors
        super().__init__("; ".join(error.message for error in errors))
