"""Product catalogue import."""

from __future__ import annotations

import logging
from typing import Any

from inventory_import.core.errors import RowRejected
from inventory_import.db.models import Product
from inventory_import.domain.job import ErrorKind, ImportType, RowError
from inventory_import.services.cache import tenant_products_key
from inventory_import.services.column_patterns import PRODUCT_COLUMNS
from inventory_import.services.file_reader import SourceRow
from inventory_import.services.processors.base import TypeProcessor
from inventory_import.services.processors.registry import register
from inventory_import.utils.normalize import parse_decimal, parse_int

logger = logging.getLogger(__name__)

# Optional rule: sale price must not be below purchase price
VALIDATE_PRICES = "validarPrecios"


@register
class ProductProcessor(TypeProcessor):
    import_type = ImportType.PRODUCTS
    chunk_size = 100
    patterns = PRODUCT_COLUMNS

    def __init__(self, context):
        super().__init__(context)
        self.created = 0
        self.updated = 0

    def _extract(self, row: SourceRow) -> tuple[dict[str, Any], list[RowError]]:
        errors: list[RowError] = []
        name = self.text(row, "nombre")
        if not name:
            errors.append(self.error(row, "nombre", "El nombre es requerido"))
        stock = self.number(row, "stock", parse_int, errors, label="El stock", required=True, minimum=0)
        purchase = self.number(
            row, "precioCompra", parse_decimal, errors, label="El precio de compra", required=True, minimum=0
        )
        sale = self.number(
            row, "precioVenta", parse_decimal, errors, label="El precio de venta", required=True, minimum=0
        )
        min_stock = self.number(row, "stockMinimo", parse_int, errors, label="El stock mínimo", minimum=0)

        if (
            self.options.flag(VALIDATE_PRICES)
            and purchase is not None
            and sale is not None
            and sale < purchase
        ):
            errors.append(
                self.error(row, "precioVenta", "El precio de venta no puede ser menor al precio de compra")
            )

        data = {
            "name": name,
            "description": self.text(row, "descripcion"),
            "sku": self.text(row, "sku"),
            "barcode": self.text(row, "codigoBarras"),
            "category": self.text(row, "categoria"),
            "unit": (self.text(row, "unidad") or "UNIDAD").upper(),
            "product_type": "GENERICO",
            "stock": stock,
            "min_stock": min_stock or 0,
            "purchase_price": purchase,
            "sale_price": sale,
        }
        return data, errors

    def validate_row(self, row: SourceRow) -> list[RowError]:
        return self._extract(row)[1]

    def resolve_existing(self, row: SourceRow) -> Product | None:
        return self.store.find(
            Product,
            self.context.tenant_id,
            {
                "name": self.text(row, "nombre"),
                "barcode": self.text(row, "codigoBarras"),
                "sku": self.text(row, "sku"),
            },
            match_any=True,
        )

    def apply(self, row: SourceRow, existing: Product | None) -> None:
        data, errors = self._extract(row)
        if errors:
            raise RowRejected(errors)
        source_ref = self.source_ref(row)
        if existing is None:
            self.store.create(Product, self.context.tenant_id, {**data, "source_ref": source_ref})
            self.created += 1
            return
        if existing.source_ref == source_ref:
            logger.info(f"Product for row {row.number} of job {self.context.job.id} already imported")
            return
        if not self.options.overwrite_existing:
            raise RowRejected(
                [self.error(row, "nombre", f"El producto '{existing.name}' ya existe", ErrorKind.DUPLICATE)]
            )
        self.store.update(Product, self.context.tenant_id, existing.id, data)
        self.updated += 1

    def finish(self) -> None:
        if self.context.cache is not None and (self.created or self.updated):
            self.context.cache.invalidate(tenant_products_key(self.context.tenant_id))
        logger.info(
            f"Product import {self.context.job.id}: {self.created} created, {self.updated} updated"
        )
