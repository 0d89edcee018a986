"""Per-type import processors; importing this package registers all of them."""
from inventory_import.services.processors.base import ProcessingContext, TypeProcessor
from inventory_import.services.processors.registry import (
    PROCESSORS,
    create_processor,
    get_processor_class,
    register,
)
from inventory_import.services.processors import movements, products, suppliers  # noqa: F401

__all__ = [
    "PROCESSORS",
    "ProcessingContext",
    "TypeProcessor",
    "create_processor",
    "get_processor_class",
    "register",
]
