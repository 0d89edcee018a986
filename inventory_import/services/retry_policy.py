"""Retry decisions for jobs whose worker raised an unexpected exception."""

from __future__ import annotations

import logging

from inventory_import.domain.job import RowError
from inventory_import.services.job_queue import JobQueue

logger = logging.getLogger(__name__)


def retry_countdown(retries: int, base_seconds: float) -> float:
    """Exponential backoff: ``base * 2**retries`` seconds before the next attempt."""
    return base_seconds * (2**retries)


def handle_job_exception(
    queue: JobQueue,
    job_id: str,
    exc: Exception,
    *,
    retries: int,
    attempts: int,
    base_seconds: float,
) -> float | None:
    """Return the countdown for another attempt, or fail the job for good.

    ``retries`` counts the retries already made, so the attempt that just
    failed was number ``retries + 1`` out of ``attempts``.
    """
    if retries + 1 < attempts:
        countdown = retry_countdown(retries, base_seconds)
        logger.warning(
            f"Job {job_id} attempt {retries + 1}/{attempts} failed: {exc}; retrying in {countdown:g}s"
        )
        return countdown
    logger.error(f"Job {job_id} failed after {attempts} attempts: {exc}", exc_info=exc)
    queue.fail(job_id, [RowError.system(f"Error del sistema tras {attempts} intentos: {exc}")])
    return None
