"""FastAPI dependencies wiring the queue and import service."""

from inventory_import.core.config import get_settings
from inventory_import.services.file_reader import FileReader
from inventory_import.services.import_service import ImportService
from inventory_import.services.job_queue import JobQueue, get_job_queue


def get_queue() -> JobQueue:
    return get_job_queue()


def get_import_service() -> ImportService:
    queue = get_job_queue()
    settings = get_settings()
    return ImportService(queue, FileReader(settings.uploads_dir), cache=queue.cache, settings=settings)
