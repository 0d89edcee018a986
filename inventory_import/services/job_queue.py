"""Authoritative job records in Redis plus Celery dispatch.

Every job lives in a Redis hash written through :class:`JobSerializer` and
is indexed in one sorted set per state (``waiting``, ``active``,
``completed``, ``failed``, ``cancelled``). All mutations run inside a
WATCH/MULTI transaction so a worker can never overwrite a terminal state set
by a concurrent cancel. After each mutation the new record is mirrored into
the ``trabajos`` cache namespace; the cache is never written any other way.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Callable

from redis import Redis
from redis.exceptions import RedisError

from inventory_import.core.config import get_settings
from inventory_import.core.errors import SerializationError
from inventory_import.domain.job import (
    CANCELLATION_MESSAGE,
    Job,
    JobState,
    RowError,
    TERMINAL_STATES,
)
from inventory_import.services.cache import ImportCache, build_cache, job_key, tenant_stats_key
from inventory_import.services.job_serializer import JobSerializer
from inventory_import.utils.redis_client import create_redis_client

logger = logging.getLogger(__name__)

REGISTRY_BY_STATE: dict[JobState, str] = {
    JobState.PENDING: "waiting",
    JobState.PROCESSING: "active",
    JobState.COMPLETED: "completed",
    JobState.FAILED: "failed",
    JobState.CANCELLED: "cancelled",
}
LISTING_ORDER = (
    JobState.COMPLETED,
    JobState.FAILED,
    JobState.CANCELLED,
    JobState.PENDING,
    JobState.PROCESSING,
)

Dispatcher = Callable[[Job], None]


def celery_dispatch(job: Job) -> None:
    """Hand the job id to the Celery ``imports`` queue at the job's priority."""
    from inventory_import.workers.tasks.process_import import process_import_job

    process_import_job.apply_async(args=[job.id], task_id=job.id, priority=job.priority)


class JobQueue:
    def __init__(
        self,
        client: Redis,
        *,
        cache: ImportCache | None = None,
        serializer: JobSerializer | None = None,
        dispatcher: Dispatcher | None = None,
        prefix: str = "importacion",
    ):
        self.client = client
        self.cache = cache
        self.serializer = serializer or JobSerializer()
        self.dispatcher = dispatcher or celery_dispatch
        self.prefix = prefix

    # keys

    def _job_key(self, job_id: str) -> str:
        return f"{self.prefix}:job:{job_id}"

    def _registry_key(self, state: JobState) -> str:
        return f"{self.prefix}:jobs:{REGISTRY_BY_STATE[state]}"

    @staticmethod
    def _score(job: Job) -> float:
        moment = job.finished_at if job.state in TERMINAL_STATES else job.created_at
        return (moment or datetime.now(timezone.utc)).timestamp()

    # mirror

    def _mirror(self, job: Job, record: dict | None = None) -> None:
        if self.cache is None:
            return
        self.cache.set(job_key(job.id), record or self.serializer.serialize(job))
        if job.is_terminal:
            self.cache.invalidate(tenant_stats_key(job.tenant_id))

    # write path

    def enqueue(self, job: Job) -> str:
        """Persist a new PENDING job and dispatch it; returns the job id.

        Raises SerializationError when the job would not survive a round
        trip through the backend, so poisoned jobs never reach a worker.
        """
        if job.state != JobState.PENDING:
            raise SerializationError(f"Job {job.id} must be pending to enqueue, got {job.state.value}")
        record = self.serializer.serialize(job)
        if not self.serializer.validate_integrity(job):
            raise SerializationError(f"Job {job.id} failed integrity validation")

        pipe = self.client.pipeline()
        pipe.hset(self._job_key(job.id), mapping=record)
        pipe.zadd(self._registry_key(JobState.PENDING), {job.id: self._score(job)})
        pipe.execute()
        self._mirror(job, record)
        logger.info(
            f"Enqueued job {job.id} ({job.import_type.value}) for tenant {job.tenant_id} "
            f"with priority {job.priority}"
        )

        try:
            self.dispatcher(job)
        except Exception as e:
            logger.error(f"Failed to dispatch job {job.id}: {e}", exc_info=True)
            self.fail(job.id, [RowError.system(f"No se pudo encolar el trabajo: {e}")])
            raise
        return job.id

    def _mutate(self, job_id: str, mutate: Callable[[Job], bool]) -> Job | None:
        """Apply ``mutate`` to the stored job atomically.

        ``mutate`` returns False to leave the record untouched. Returns the
        job as stored afterwards, or None when no such job exists.
        """
        key = self._job_key(job_id)
        outcome: dict = {}

        def transaction(pipe) -> Job | None:
            outcome.clear()
            raw = pipe.hgetall(key)
            if not raw:
                return None
            job = self.serializer.deserialize(raw)
            previous = job.state
            if not mutate(job):
                return job
            record = self.serializer.serialize(job)
            pipe.multi()
            pipe.hset(key, mapping=record)
            if job.state != previous:
                pipe.zrem(self._registry_key(previous), job_id)
                pipe.zadd(self._registry_key(job.state), {job_id: self._score(job)})
            outcome["record"] = record
            return job

        job = self.client.transaction(transaction, key, value_from_callable=True)
        if job is not None and "record" in outcome:
            self._mirror(job, outcome["record"])
        return job

    def claim(self, job_id: str) -> Job | None:
        """Mark a job PROCESSING for the worker that received it.

        A redelivered job is already PROCESSING and is handed back as is so
        the worker resumes after its last recorded chunk.
        """

        def start(job: Job) -> bool:
            if job.is_terminal:
                return False
            job.transition_to(JobState.PROCESSING)
            job.attempts += 1
            return True

        return self._mutate(job_id, start)

    def set_total(self, job_id: str, total: int) -> Job | None:
        def apply(job: Job) -> bool:
            if job.is_terminal or job.total_records == total:
                return False
            job.total_records = max(total, job.processed_records)
            return True

        return self._mutate(job_id, apply)

    def record_chunk(
        self, job_id: str, *, processed: int, succeeded: int, failed_rows: int, errors: list[RowError]
    ) -> Job | None:
        """Fold one finished chunk into the stored counters unless the job already ended."""

        def apply(job: Job) -> bool:
            if job.is_terminal:
                return False
            job.record_chunk(processed, succeeded, errors, failed_rows)
            return True

        return self._mutate(job_id, apply)

    def complete(self, job_id: str, error_report_ref: str | None = None) -> Job | None:
        def apply(job: Job) -> bool:
            if job.is_terminal:
                return False
            job.error_report_ref = error_report_ref
            job.transition_to(JobState.COMPLETED)
            return True

        return self._mutate(job_id, apply)

    def fail(self, job_id: str, errors: list[RowError]) -> Job | None:
        def apply(job: Job) -> bool:
            if job.is_terminal:
                return False
            job.errors.extend(errors)
            job.transition_to(JobState.FAILED)
            return True

        job = self._mutate(job_id, apply)
        if job is not None:
            logger.warning(f"Job {job_id} failed: {'; '.join(e.message for e in errors)}")
        return job

    def cancel(self, job_id: str) -> bool:
        """Fail a PENDING or PROCESSING job with a cancellation error.

        Returns False when the job does not exist or has already finished.
        A running worker notices at its next chunk boundary.
        """
        changed = []

        def apply(job: Job) -> bool:
            changed.clear()
            if job.is_terminal:
                return False
            job.errors.append(RowError.system(CANCELLATION_MESSAGE))
            job.transition_to(JobState.FAILED)
            changed.append(True)
            return True

        job = self._mutate(job_id, apply)
        if job is None:
            logger.info(f"Cancel requested for unknown job {job_id}")
            return False
        if changed:
            logger.info(f"Cancelled job {job_id}")
        return bool(changed)

    # read path

    def fetch(self, job_id: str) -> Job | None:
        """Read the authoritative record, bypassing the cache."""
        raw = self.client.hgetall(self._job_key(job_id))
        if not raw:
            return None
        try:
            job = self.serializer.deserialize(raw)
        except SerializationError as e:
            logger.error(f"Job record {job_id} is unreadable: {e}")
            return None
        if not self.serializer.validate_integrity(job):
            return None
        return job

    def get_status(self, job_id: str) -> Job | None:
        """Serve terminal snapshots from the cache; anything else comes from the record.

        Mirror writes are not ordered against each other, so a late write from
        a worker can leave a running snapshot behind a cancel. Only terminal
        snapshots are final, and every other read rebuilds the mirror.
        """
        if self.cache is not None:
            cached = self.cache.get(job_key(job_id))
            if cached:
                try:
                    job = self.serializer.deserialize(cached)
                except SerializationError as e:
                    logger.warning(f"Discarding cached snapshot of job {job_id}: {e}")
                else:
                    if job.id == job_id and job.is_terminal and self.serializer.validate_integrity(job):
                        return job
        job = self.fetch(job_id)
        if job is not None:
            self._mirror(job)
        return job

    def _load_many(self, job_ids: list[str]) -> list[Job]:
        if not job_ids:
            return []
        pipe = self.client.pipeline(transaction=False)
        for job_id in job_ids:
            pipe.hgetall(self._job_key(job_id))
        jobs = []
        for job_id, raw in zip(job_ids, pipe.execute()):
            if not raw:
                continue
            try:
                job = self.serializer.deserialize(raw)
            except SerializationError as e:
                logger.warning(f"Skipping unreadable job record {job_id}: {e}")
                continue
            if self.serializer.validate_integrity(job):
                jobs.append(job)
        return jobs

    def list_by_tenant(self, tenant_id: int, limit: int = 50, offset: int = 0) -> list[Job]:
        """Jobs of one tenant, newest first.

        Linear scan over every state registry; paging applies after the
        tenant filter.
        """
        seen: set[str] = set()
        job_ids: list[str] = []
        for state in LISTING_ORDER:
            for job_id in self.client.zrevrange(self._registry_key(state), 0, -1):
                if job_id not in seen:
                    seen.add(job_id)
                    job_ids.append(job_id)
        jobs = [job for job in self._load_many(job_ids) if job.tenant_id == tenant_id]
        jobs.sort(key=lambda job: job.created_at, reverse=True)
        return jobs[offset : offset + limit]

    def tenant_stats(self, tenant_id: int) -> dict:
        """Per-state job counts and record totals, cached in ``estadisticas``."""

        def load() -> dict:
            jobs = self.list_by_tenant(tenant_id, limit=10**9)
            by_state = {state.value: 0 for state in JobState}
            for job in jobs:
                by_state[job.state.value] += 1
            return {
                "tenant_id": tenant_id,
                "total_jobs": len(jobs),
                "by_state": by_state,
                "records_processed": sum(job.processed_records for job in jobs),
                "records_succeeded": sum(job.success_records for job in jobs),
                "records_failed": sum(job.error_records for job in jobs),
            }

        if self.cache is None:
            return load()
        return self.cache.get_or_load(tenant_stats_key(tenant_id), load)

    def purge_older_than(self, days: int) -> int:
        """Delete terminal jobs finished more than ``days`` ago; returns how many."""
        cutoff = (datetime.now(timezone.utc) - timedelta(days=days)).timestamp()
        removed = 0
        for state in TERMINAL_STATES:
            registry = self._registry_key(state)
            try:
                job_ids = self.client.zrangebyscore(registry, "-inf", cutoff)
            except RedisError as e:
                logger.error(f"Failed to scan {registry} for purge: {e}", exc_info=True)
                continue
            for job_id in job_ids:
                try:
                    pipe = self.client.pipeline()
                    pipe.delete(self._job_key(job_id))
                    pipe.zrem(registry, job_id)
                    pipe.execute()
                except RedisError as e:
                    logger.error(f"Failed to purge job {job_id}: {e}", exc_info=True)
                    continue
                if self.cache is not None:
                    self.cache.invalidate(job_key(job_id))
                removed += 1
        logger.info(f"Purged {removed} jobs finished before {days} days ago")
        return removed


@lru_cache
def get_job_queue() -> JobQueue:
    settings = get_settings()
    client = create_redis_client(settings.redis_url, decode_responses=True)
    return JobQueue(client, cache=build_cache(), prefix=settings.key_prefix)
