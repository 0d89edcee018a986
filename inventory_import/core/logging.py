"""Process-wide logging setup shared by the API and the Celery worker."""

from __future__ import annotations

import logging

from inventory_import.core.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def configure_logging(level: str | None = None) -> None:
    """Apply the configured log level once per process."""
    global _configured
    if _configured:
        return
    level_name = (level or get_settings().log_level).upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=LOG_FORMAT)
    # SQLAlchemy echoes every statement once the root level drops to DEBUG
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    _configured = True
