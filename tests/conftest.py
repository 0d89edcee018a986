"""Shared fixtures: fake Redis, in-memory SQLite and spreadsheet writers."""

from __future__ import annotations

import csv
from pathlib import Path

import fakeredis
import pytest
from openpyxl import Workbook
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from inventory_import.db.base import Base
from inventory_import.db.record_store import SqlAlchemyRecordStore
from inventory_import.domain.job import ImportType, Job, JobOptions
from inventory_import.services.batch_processor import BatchProcessor
from inventory_import.services.cache import ImportCache
from inventory_import.services.error_report import ErrorReportWriter
from inventory_import.services.file_reader import FileReader
from inventory_import.services.job_queue import JobQueue


class RecordingDispatcher:
    """Stands in for Celery: remembers what would have been sent to the broker."""

    def __init__(self) -> None:
        self.dispatched: list[tuple[str, int]] = []

    def __call__(self, job: Job) -> None:
        self.dispatched.append((job.id, job.priority))


@pytest.fixture
def redis_client():
    client = fakeredis.FakeRedis(decode_responses=True)
    yield client
    client.flushall()


@pytest.fixture
def cache(redis_client) -> ImportCache:
    return ImportCache(redis_client, prefix="test")


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def queue(redis_client, cache, dispatcher) -> JobQueue:
    return JobQueue(redis_client, cache=cache, dispatcher=dispatcher, prefix="test")


@pytest.fixture
def db_session():
    engine = create_engine("sqlite://", future=True)
    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine, autoflush=False)()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def store(db_session) -> SqlAlchemyRecordStore:
    return SqlAlchemyRecordStore(db_session)


@pytest.fixture
def reports_dir(tmp_path) -> Path:
    return tmp_path / "reports"


@pytest.fixture
def batch_processor(queue, store, cache, reports_dir) -> BatchProcessor:
    return BatchProcessor(
        queue,
        store,
        FileReader(),
        ErrorReportWriter(reports_dir),
        cache=cache,
        max_records={"products": 10000, "suppliers": 5000, "movements": 10000},
    )


@pytest.fixture
def write_csv(tmp_path):
    def _write(name: str, headers: list[str], rows: list[list]) -> str:
        path = tmp_path / name
        with path.open("w", newline="", encoding="utf-8") as handle:
            writer = csv.writer(handle)
            writer.writerow(headers)
            writer.writerows(rows)
        return str(path)

    return _write


@pytest.fixture
def write_xlsx(tmp_path):
    def _write(name: str, headers: list[str], rows: list[list]) -> str:
        wb = Workbook()
        ws = wb.active
        ws.append(headers)
        for row in rows:
            ws.append(row)
        path = tmp_path / name
        wb.save(path)
        return str(path)

    return _write


@pytest.fixture
def make_job():
    def _make(
        import_type: ImportType = ImportType.PRODUCTS,
        source_file_ref: str = "uploads/file.csv",
        tenant_id: int = 1,
        user_id: int = 7,
        **options,
    ) -> Job:
        return Job.create(import_type, tenant_id, user_id, source_file_ref, JobOptions(**options))

    return _make
