"""Inventory movement import (stock in/out against existing products)."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from inventory_import.core.errors import RowRejected
from inventory_import.db.models import Movement, Product
from inventory_import.domain.job import ErrorKind, ImportType, RowError, utcnow
from inventory_import.services.cache import tenant_products_key
from inventory_import.services.column_patterns import MOVEMENT_COLUMNS
from inventory_import.services.file_reader import SourceRow
from inventory_import.services.processors.base import TypeProcessor
from inventory_import.services.processors.registry import register
from inventory_import.utils.normalize import normalize_key, parse_datetime, parse_int

logger = logging.getLogger(__name__)

CREATE_MISSING_PRODUCTS = "crearProductoSiNoExiste"
ALLOW_NEGATIVE_STOCK = "permitirStockNegativo"

MOVEMENT_KINDS = {"entrada": "ENTRADA", "salida": "SALIDA"}
MAX_FUTURE_SKEW = timedelta(days=1)


def build_product_lookup(products: list[Product]) -> dict[str, int]:
    """Normalized name, barcode and sku -> product id for one tenant."""
    lookup: dict[str, int] = {}
    for product in products:
        for key in (product.name, product.barcode, product.sku):
            normalized = normalize_key(key)
            if normalized:
                lookup.setdefault(normalized, product.id)
    return lookup


@register
class MovementProcessor(TypeProcessor):
    import_type = ImportType.MOVEMENTS
    chunk_size = 50
    patterns = MOVEMENT_COLUMNS

    def __init__(self, context):
        super().__init__(context)
        self.product_lookup: dict[str, int] = {}
        self.created_products = 0

    def prepare(self) -> None:
        tenant_id = self.context.tenant_id

        def load() -> dict[str, int]:
            return build_product_lookup(self.store.list_all(Product, tenant_id))

        cache = self.context.cache
        if cache is None:
            self.product_lookup = load()
        else:
            self.product_lookup = dict(cache.get_or_load(tenant_products_key(tenant_id), load) or {})

    def _extract(self, row: SourceRow) -> tuple[dict[str, Any], list[RowError]]:
        errors: list[RowError] = []
        product = self.text(row, "producto")
        if not product:
            errors.append(self.error(row, "producto", "El producto es requerido"))

        raw_kind = (self.text(row, "tipo") or "").lower()
        kind = MOVEMENT_KINDS.get(raw_kind)
        if kind is None:
            errors.append(self.error(row, "tipo", "El tipo de movimiento debe ser 'entrada' o 'salida'"))

        quantity = self.number(
            row, "cantidad", parse_int, errors, label="La cantidad", required=True, strictly_positive=True
        )

        occurred_at = None
        try:
            occurred_at = parse_datetime(self.value(row, "fecha"))
        except ValueError:
            errors.append(self.error(row, "fecha", "La fecha no tiene un formato válido"))
        if occurred_at is not None and occurred_at > utcnow() + MAX_FUTURE_SKEW:
            errors.append(self.error(row, "fecha", "La fecha no puede ser futura"))

        data = {
            "product": product,
            "kind": kind,
            "quantity": quantity,
            "occurred_at": occurred_at or utcnow(),
            "reason": self.text(row, "motivo"),
            "description": self.text(row, "descripcion"),
            "reference": self.text(row, "referencia"),
        }
        return data, errors

    def _missing_product(self, row: SourceRow, name: str) -> RowError:
        return self.error(row, "producto", f"El producto '{name}' no existe", ErrorKind.REFERENCE)

    def validate_row(self, row: SourceRow) -> list[RowError]:
        data, errors = self._extract(row)
        product = data["product"]
        if (
            product
            and not self.options.flag(CREATE_MISSING_PRODUCTS)
            and not self._known_product(row, product)
        ):
            errors.append(self._missing_product(row, product))
        return errors

    def _known_product(self, row: SourceRow, name: str) -> bool:
        """Check the cached lookup, then the record store; the lookup may be stale."""
        key = normalize_key(name)
        if key in self.product_lookup:
            return True
        found = self.resolve_existing(row)
        if found is None:
            return False
        self.product_lookup[key] = found.id
        return True

    def resolve_existing(self, row: SourceRow) -> Product | None:
        product = self.text(row, "producto")
        return self.store.find(
            Product,
            self.context.tenant_id,
            {"name": product, "barcode": product, "sku": product},
            match_any=True,
        )

    def apply(self, row: SourceRow, existing: Product | None) -> None:
        data, errors = self._extract(row)
        if errors:
            raise RowRejected(errors)
        tenant_id = self.context.tenant_id
        source_ref = self.source_ref(row)
        if self.store.find(Movement, tenant_id, {"source_ref": source_ref}) is not None:
            logger.info(f"Movement for row {row.number} of job {self.context.job.id} already applied")
            return

        if existing is None:
            if not self.options.flag(CREATE_MISSING_PRODUCTS):
                raise RowRejected([self._missing_product(row, data["product"])])
            existing = self.store.create(
                Product,
                tenant_id,
                {"name": data["product"], "stock": 0, "purchase_price": 0, "sale_price": 0},
            )
            created_product = True
        else:
            created_product = False

        quantity = data["quantity"]
        delta = quantity if data["kind"] == "ENTRADA" else -quantity
        allow_negative = self.options.flag(ALLOW_NEGATIVE_STOCK)
        if not self.store.adjust_stock(tenant_id, existing.id, delta, allow_negative=allow_negative):
            available = self.store.current_stock(tenant_id, existing.id)
            raise RowRejected(
                [
                    self.error(
                        row,
                        "cantidad",
                        f"Stock insuficiente. Disponible: {available}, Solicitado: {quantity}",
                    )
                ]
            )

        self.store.create(
            Movement,
            tenant_id,
            {
                "product_id": existing.id,
                "kind": data["kind"],
                "quantity": quantity,
                "occurred_at": data["occurred_at"],
                "reason": data["reason"],
                "description": data["description"],
                "reference": data["reference"],
                "source_ref": source_ref,
            },
        )
        if created_product:
            self.product_lookup[normalize_key(existing.name)] = existing.id
            self.created_products += 1

    def finish(self) -> None:
        if self.context.cache is not None and self.created_products:
            self.context.cache.invalidate(tenant_products_key(self.context.tenant_id))
        if self.created_products:
            logger.info(
                f"Movement import {self.context.job.id} created {self.created_products} missing products"
            )
