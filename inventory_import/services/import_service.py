"""Entry point used by the API to submit imports and inspect import types."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from inventory_import.core.config import Settings, get_settings
from inventory_import.core.errors import TypeDetectionError
from inventory_import.domain.job import ImportType, Job, JobOptions
from inventory_import.services.cache import ImportCache, template_key, validation_key
from inventory_import.services.column_patterns import COLUMN_PATTERNS, resolve_columns
from inventory_import.services.file_reader import FileReader
from inventory_import.services.job_queue import JobQueue
from inventory_import.services.processors import get_processor_class
from inventory_import.services.type_detector import TypeDetectionResult, detect

logger = logging.getLogger(__name__)

AUTO = "auto"


@dataclass
class SubmitResult:
    job_id: str
    import_type: ImportType
    detection: TypeDetectionResult | None = None


class ImportService:
    def __init__(
        self,
        queue: JobQueue,
        file_reader: FileReader,
        *,
        cache: ImportCache | None = None,
        settings: Settings | None = None,
    ):
        self.queue = queue
        self.file_reader = file_reader
        self.cache = cache
        self.settings = settings or get_settings()

    def detect_file(self, source_file_ref: str) -> list[TypeDetectionResult]:
        """Detection results for a file, cached by content hash in ``validacion``."""

        def load() -> list[dict]:
            headers = self.file_reader.read_headers(source_file_ref)
            return [result.to_dict() for result in detect(headers)]

        if self.cache is None:
            payload = load()
        else:
            key = validation_key(self.file_reader.content_hash(source_file_ref))
            payload = self.cache.get_or_load(key, load)
        return [TypeDetectionResult.from_dict(item) for item in payload]

    def resolve_type(self, source_file_ref: str) -> TypeDetectionResult:
        best = self.detect_file(source_file_ref)[0]
        threshold = self.settings.auto_detect_min_confidence
        if best.confidence < threshold or best.missing_required_columns:
            raise TypeDetectionError(
                f"Could not determine import type (best: {best.import_type.value} at "
                f"{best.confidence}%, minimum {threshold}%; {best.rationale})"
            )
        # Processors read values through exact header matches only
        patterns = COLUMN_PATTERNS[best.import_type]
        resolved = resolve_columns(self.file_reader.read_headers(source_file_ref), patterns)
        unresolved = [p.canonical for p in patterns if p.required and p.canonical not in resolved]
        if unresolved:
            raise TypeDetectionError(
                f"Detected {best.import_type.value} at {best.confidence}%, but required columns "
                f"only match partially: {', '.join(unresolved)}; rename them to the expected names"
            )
        logger.info(
            f"Detected {best.import_type.value} for {source_file_ref} with {best.confidence}% confidence"
        )
        return best

    def submit(
        self,
        import_type: ImportType | str,
        tenant_id: int,
        user_id: int,
        source_file_ref: str,
        options: JobOptions | None = None,
    ) -> SubmitResult:
        detection = None
        if import_type == AUTO:
            detection = self.resolve_type(source_file_ref)
            resolved = detection.import_type
        else:
            resolved = ImportType(import_type)
        job = Job.create(resolved, tenant_id, user_id, source_file_ref, options)
        job_id = self.queue.enqueue(job)
        return SubmitResult(job_id=job_id, import_type=resolved, detection=detection)

    def describe_type(self, import_type: ImportType) -> dict:
        """Template metadata for one import type, read through ``plantillas``."""

        def load() -> dict:
            processor_cls = get_processor_class(import_type)
            return {
                "import_type": import_type.value,
                "chunk_size": processor_cls.chunk_size,
                "max_records": self.settings.max_records_for(import_type.value),
                "columns": [
                    {
                        "name": pattern.canonical,
                        "aliases": list(pattern.aliases),
                        "required": pattern.required,
                    }
                    for pattern in COLUMN_PATTERNS[import_type]
                ],
            }

        if self.cache is None:
            return load()
        return self.cache.get_or_load(template_key(import_type), load)

    def describe_types(self) -> list[dict]:
        return [self.describe_type(import_type) for import_type in ImportType]
