"""Map each import type to its processor class."""

from __future__ import annotations

from inventory_import.core.errors import UnsupportedImportTypeError
from inventory_import.domain.job import ImportType
from inventory_import.services.processors.base import ProcessingContext, TypeProcessor

PROCESSORS: dict[ImportType, type[TypeProcessor]] = {}


def register(processor_cls: type[TypeProcessor]) -> type[TypeProcessor]:
    """Class decorator adding a processor to the registry."""
    PROCESSORS[processor_cls.import_type] = processor_cls
    return processor_cls


def get_processor_class(import_type: ImportType | str) -> type[TypeProcessor]:
    try:
        return PROCESSORS[ImportType(import_type)]
    except (KeyError, ValueError) as e:
        raise UnsupportedImportTypeError(f"Unsupported import type: {import_type}") from e


def create_processor(import_type: ImportType | str, context: ProcessingContext) -> TypeProcessor:
    return get_processor_class(import_type)(context)
