"""Tenant-scoped record store consumed by the import processors."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Protocol, TypeVar

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inventory_import.core.errors import RecordNotFoundError
from inventory_import.db.base import Base
from inventory_import.db.models import Product
from inventory_import.utils.normalize import normalize_key

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=Base)


class RecordStore(Protocol):
    def find(
        self, model: type[ModelT], tenant_id: int, criteria: dict[str, Any], *, match_any: bool = False
    ) -> ModelT | None: ...

    def create(self, model: type[ModelT], tenant_id: int, data: dict[str, Any]) -> ModelT: ...

    def update(self, model: type[ModelT], tenant_id: int, record_id: int, data: dict[str, Any]) -> ModelT: ...

    def list_all(self, model: type[ModelT], tenant_id: int) -> list[ModelT]: ...

    def adjust_stock(self, tenant_id: int, product_id: int, delta: int, *, allow_negative: bool = False) -> bool: ...

    def current_stock(self, tenant_id: int, product_id: int) -> int | None: ...

    def transaction(self, *, rollback: bool = False): ...


class SqlAlchemyRecordStore:
    """RecordStore over one SQLAlchemy session (one per running job)."""

    def __init__(self, session: Session):
        self.session = session

    def find(self, model, tenant_id, criteria, *, match_any=False):
        """Return the first tenant record matching ``criteria``.

        String criteria compare trimmed and case-insensitively; empty values
        are ignored. With ``match_any`` a record matching any one criterion
        is enough (product by name, barcode or sku).
        """
        conditions = []
        for column_name, value in criteria.items():
            if value is None or value == "":
                continue
            column = getattr(model, column_name)
            if isinstance(value, str):
                conditions.append(func.lower(func.trim(column)) == normalize_key(value))
            else:
                conditions.append(column == value)
        if not conditions:
            return None
        where = or_(*conditions) if match_any else conditions
        stmt = select(model).where(model.tenant_id == tenant_id)
        stmt = stmt.where(where) if match_any else stmt.where(*where)
        return self.session.scalars(stmt.order_by(model.id).limit(1)).first()

    def create(self, model, tenant_id, data):
        record = model(tenant_id=tenant_id, **data)
        self.session.add(record)
        self.session.flush()
        return record

    def update(self, model, tenant_id, record_id, data):
        record = self.session.get(model, record_id)
        if record is None or record.tenant_id != tenant_id:
            raise RecordNotFoundError(f"{model.__name__} {record_id} not found for tenant {tenant_id}")
        for key, value in data.items():
            setattr(record, key, value)
        self.session.flush()
        return record

    def list_all(self, model, tenant_id):
        return list(self.session.scalars(select(model).where(model.tenant_id == tenant_id)))

    def adjust_stock(self, tenant_id, product_id, delta, *, allow_negative=False):
        """Add ``delta`` to a product's stock in one conditional UPDATE.

        Unless ``allow_negative`` is set the row only changes when the result
        stays at or above zero, so concurrent workers cannot oversell the
        same product. Returns whether the row was updated.
        """
        stmt = update(Product).where(Product.id == product_id, Product.tenant_id == tenant_id)
        if not allow_negative:
            stmt = stmt.where(Product.stock + delta >= 0)
        stmt = stmt.values(stock=Product.stock + delta).execution_options(synchronize_session=False)
        result = self.session.execute(stmt)
        loaded = self.session.get(Product, product_id)
        if loaded is not None:
            self.session.expire(loaded, ["stock"])
        return result.rowcount == 1

    def current_stock(self, tenant_id, product_id):
        return self.session.scalar(
            select(Product.stock).where(Product.id == product_id, Product.tenant_id == tenant_id)
        )

    @contextmanager
    def transaction(self, *, rollback: bool = False) -> Iterator[SqlAlchemyRecordStore]:
        """Commit the unit of work on success; ``rollback=True`` always discards it."""
        try:
            yield self
        except Exception:
            self.session.rollback()
            raise
        try:
            if rollback:
                self.session.rollback()
            else:
                self.session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to finish record store transaction: {e}", exc_info=True)
            self.session.rollback()
            raise
