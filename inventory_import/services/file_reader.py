"""Read uploaded CSV/XLSX files into ordered, numbered rows."""

from __future__ import annotations

import csv
import hashlib
import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from openpyxl import load_workbook

from inventory_import.core.errors import ImportFileError

logger = logging.getLogger(__name__)

CSV_SUFFIXES = {".csv", ".txt"}
XLSX_SUFFIXES = {".xlsx", ".xlsm"}
TEXT_ENCODINGS = ("utf-8-sig", "latin-1")


@dataclass
class SourceRow:
    """One data row; ``number`` is 1-based and excludes the header row."""

    number: int
    values: dict[str, Any]

    def get(self, header: str | None) -> Any:
        if header is None:
            return None
        return self.values.get(header)


@dataclass
class SheetData:
    headers: list[str] = field(default_factory=list)
    rows: list[SourceRow] = field(default_factory=list)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class FileReader:
    """Parses a ``source_file_ref`` (a filesystem path) into a :class:`SheetData`."""

    def __init__(self, base_dir: str | Path | None = None):
        self.base_dir = Path(base_dir) if base_dir else None

    def resolve(self, source_file_ref: str) -> Path:
        path = Path(source_file_ref)
        if not path.is_absolute() and self.base_dir is not None:
            path = self.base_dir / path
        return path

    def read(self, source_file_ref: str) -> SheetData:
        path = self.resolve(source_file_ref)
        content = self._read_bytes(path)
        suffix = path.suffix.lower()
        if suffix in XLSX_SUFFIXES:
            return self._parse_xlsx(content, path)
        if suffix in CSV_SUFFIXES:
            return self._parse_csv(content, path)
        raise ImportFileError(f"Unsupported file type '{suffix}' for {path.name}")

    def read_headers(self, source_file_ref: str) -> list[str]:
        return self.read(source_file_ref).headers

    def content_hash(self, source_file_ref: str) -> str:
        return hashlib.sha256(self._read_bytes(self.resolve(source_file_ref))).hexdigest()

    @staticmethod
    def _read_bytes(path: Path) -> bytes:
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise ImportFileError(f"File not found: {path}") from e
        except PermissionError as e:
            raise ImportFileError(f"Permission denied reading file: {path}") from e
        except OSError as e:
            raise ImportFileError(f"Error reading file {path}: {e}") from e

    def _parse_csv(self, content: bytes, path: Path) -> SheetData:
        text = None
        for encoding in TEXT_ENCODINGS:
            try:
                text = content.decode(encoding)
                break
            except UnicodeDecodeError:
                continue
        if text is None:
            raise ImportFileError(f"File encoding error: {path.name}")

        try:
            reader = csv.reader(io.StringIO(text, newline=""))
            raw_headers = next(reader, None)
            if not raw_headers or all(_is_blank(h) for h in raw_headers):
                return SheetData()
            headers = [str(h).strip() for h in raw_headers]
            rows: list[SourceRow] = []
            for number, cells in enumerate(reader, start=1):
                if all(_is_blank(cell) for cell in cells):
                    continue
                values = {
                    header: (cells[i].strip() if i < len(cells) else None)
                    for i, header in enumerate(headers)
                    if header
                }
                rows.append(SourceRow(number=number, values=values))
        except csv.Error as e:
            raise ImportFileError(f"CSV parsing error: {e}") from e
        return SheetData(headers=[h for h in headers if h], rows=rows)

    def _parse_xlsx(self, content: bytes, path: Path) -> SheetData:
        try:
            workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
        except Exception as e:
            logger.warning(f"Could not open workbook {path.name}: {e}")
            raise ImportFileError(f"Invalid Excel file {path.name}: {e}") from e
        try:
            sheet = workbook.active
            if sheet is None:
                return SheetData()
            row_iter = sheet.iter_rows(values_only=True)
            raw_headers = next(row_iter, None)
            if not raw_headers or all(_is_blank(h) for h in raw_headers):
                return SheetData()
            headers = [str(h).strip() if h is not None else "" for h in raw_headers]
            rows: list[SourceRow] = []
            for number, cells in enumerate(row_iter, start=1):
                if all(_is_blank(cell) for cell in cells):
                    continue
                values = {
                    header: (cells[i] if i < len(cells) else None)
                    for i, header in enumerate(headers)
                    if header
                }
                rows.append(SourceRow(number=number, values=values))
        finally:
            workbook.close()
        return SheetData(headers=[h for h in headers if h], rows=rows)
