"""Write the post-import error report workbook."""

from __future__ import annotations

import logging
import re
from collections import Counter
from pathlib import Path

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from inventory_import.domain.job import RowError

logger = logging.getLogger(__name__)

ERROR_HEADERS = ["Fila", "Columna", "Valor", "Mensaje", "Tipo"]
_UNSAFE_NAME = re.compile(r"[^A-Za-z0-9._-]+")


class ErrorReportWriter:
    """Render RowErrors to ``<reports_dir>/<hint>.xlsx`` and return the path."""

    def __init__(self, reports_dir: str | Path):
        self.reports_dir = Path(reports_dir)

    def write(self, errors: list[RowError], filename_hint: str) -> str:
        self.reports_dir.mkdir(parents=True, exist_ok=True)
        name = _UNSAFE_NAME.sub("-", filename_hint).strip("-") or "errores"
        path = self.reports_dir / f"{name}.xlsx"

        wb = Workbook()
        summary = wb.active
        summary.title = "Resumen"
        summary.append(["Total de errores", len(errors)])
        summary.append(["Filas afectadas", len({error.row for error in errors})])
        summary.append([])
        summary.append(["Tipo", "Cantidad"])
        for kind, count in sorted(Counter(error.kind.value for error in errors).items()):
            summary.append([kind, count])
        summary.append([])
        summary.append(["Columna", "Cantidad"])
        for column, count in Counter(error.column or "-" for error in errors).most_common():
            summary.append([column, count])

        sheet = wb.create_sheet("Errores")
        header_font = Font(bold=True, color="FFFFFF")
        header_fill = PatternFill(start_color="B91C1C", end_color="B91C1C", fill_type="solid")
        for col_idx, header in enumerate(ERROR_HEADERS, 1):
            cell = sheet.cell(row=1, column=col_idx, value=header)
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = Alignment(horizontal="center")

        for row_idx, error in enumerate(errors, 2):
            raw = error.raw_value
            values = [error.row, error.column, "" if raw is None else str(raw), error.message, error.kind.value]
            for col_idx, value in enumerate(values, 1):
                sheet.cell(row=row_idx, column=col_idx, value=value)

        for col_idx, header in enumerate(ERROR_HEADERS, 1):
            longest = max(
                [len(header)] + [len(str(sheet.cell(row=r, column=col_idx).value or "")) for r in range(2, len(errors) + 2)]
            )
            sheet.column_dimensions[get_column_letter(col_idx)].width = min(longest + 2, 60)
        sheet.freeze_panes = "A2"

        wb.save(path)
        logger.info(f"Wrote error report with {len(errors)} errors to {path}")
        return str(path)
