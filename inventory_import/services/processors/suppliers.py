"""Supplier directory import."""

from __future__ import annotations

import re
from typing import Any

from inventory_import.core.errors import RowRejected
from inventory_import.db.models import Supplier
from inventory_import.domain.job import ErrorKind, ImportType, RowError
from inventory_import.services.column_patterns import SUPPLIER_COLUMNS
from inventory_import.services.file_reader import SourceRow
from inventory_import.services.processors.base import TypeProcessor
from inventory_import.services.processors.registry import register

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^[\d\s\-\+\(\)]+$")


@register
class SupplierProcessor(TypeProcessor):
    import_type = ImportType.SUPPLIERS
    chunk_size = 50
    patterns = SUPPLIER_COLUMNS

    def _extract(self, row: SourceRow) -> tuple[dict[str, Any], list[RowError]]:
        errors: list[RowError] = []
        name = self.text(row, "nombre")
        if not name:
            errors.append(self.error(row, "nombre", "El nombre del proveedor es requerido"))
        email = self.text(row, "email")
        if email and not EMAIL_RE.match(email):
            errors.append(self.error(row, "email", "El email no tiene un formato válido"))
        phone = self.text(row, "telefono")
        if phone and not PHONE_RE.match(phone):
            errors.append(self.error(row, "telefono", "El teléfono contiene caracteres no válidos"))
        data = {
            "name": name,
            "email": email.lower() if email else None,
            "phone": phone,
            "address": self.text(row, "direccion"),
            "contact": self.text(row, "contacto"),
            "tax_id": (self.text(row, "rfc") or "").upper() or None,
        }
        return data, errors

    def validate_row(self, row: SourceRow) -> list[RowError]:
        return self._extract(row)[1]

    def resolve_existing(self, row: SourceRow) -> Supplier | None:
        return self.store.find(Supplier, self.context.tenant_id, {"name": self.text(row, "nombre")})

    def apply(self, row: SourceRow, existing: Supplier | None) -> None:
        data, errors = self._extract(row)
        if errors:
            raise RowRejected(errors)
        source_ref = self.source_ref(row)
        if existing is None:
            self.store.create(Supplier, self.context.tenant_id, {**data, "source_ref": source_ref})
        elif existing.source_ref == source_ref:
            # Written by an earlier delivery of this job
            return
        elif self.options.overwrite_existing:
            self.store.update(Supplier, self.context.tenant_id, existing.id, data)
        else:
            raise RowRejected(
                [self.error(row, "nombre", f"El proveedor '{existing.name}' ya existe", ErrorKind.DUPLICATE)]
            )
