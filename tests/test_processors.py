"""Unit tests for the per-type processors."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from inventory_import.core.errors import RowRejected, UnsupportedImportTypeError
from inventory_import.db.models import Movement, Product, Supplier
from inventory_import.domain.job import ErrorKind, ImportType
from inventory_import.services.cache import tenant_products_key
from inventory_import.services.file_reader import SheetData, SourceRow
from inventory_import.services.processors import (
    PROCESSORS,
    ProcessingContext,
    create_processor,
    get_processor_class,
)


def bind(import_type, job, store, headers, cache=None, max_records=None):
    processor = create_processor(import_type, ProcessingContext(job, store, cache, max_records))
    rows = [SourceRow(1, {h: None for h in headers})]
    assert processor.validate_file_structure(SheetData(headers, rows)) == []
    processor.prepare()
    return processor


def apply_row(processor, store, row):
    with store.transaction():
        processor.apply(row, processor.resolve_existing(row))


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


def test_every_import_type_has_a_processor() -> None:
    assert set(PROCESSORS) == set(ImportType)
    assert get_processor_class(ImportType.PRODUCTS).chunk_size == 100
    assert get_processor_class(ImportType.SUPPLIERS).chunk_size == 50
    assert get_processor_class(ImportType.MOVEMENTS).chunk_size == 50


def test_unknown_type_is_rejected() -> None:
    with pytest.raises(UnsupportedImportTypeError):
        get_processor_class("widgets")


# ---------------------------------------------------------------------------
# Structure
# ---------------------------------------------------------------------------


def test_structure_reports_each_missing_required_column(make_job, store) -> None:
    processor = create_processor(ImportType.MOVEMENTS, ProcessingContext(make_job(ImportType.MOVEMENTS), store))
    rows = [SourceRow(1, {"producto": "x"})]

    errors = processor.validate_file_structure(SheetData(["producto"], rows))

    assert [e.column for e in errors] == ["tipo", "cantidad"]
    assert all(e.row == 0 for e in errors)


def test_structure_accepts_aliases(make_job, store) -> None:
    processor = create_processor(ImportType.PRODUCTS, ProcessingContext(make_job(), store))
    headers = ["Artículo", "Existencias", "Costo", "PVP"]

    assert processor.validate_file_structure(SheetData(headers, [SourceRow(1, {})])) == []
    assert processor.columns["nombre"] == "Artículo"


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

PRODUCT_HEADERS = ["nombre", "stock", "precioCompra", "precioVenta", "stockMinimo", "codigoBarras"]


def product_row(number=1, **values):
    base = {"nombre": "Pala", "stock": "3", "precioCompra": "100", "precioVenta": "150"}
    base.update(values)
    return SourceRow(number, base)


def test_product_row_validations(make_job, store) -> None:
    processor = bind(ImportType.PRODUCTS, make_job(), store, PRODUCT_HEADERS)

    assert processor.validate_row(product_row()) == []
    assert processor.validate_row(product_row(stock="2.5"))[0].column == "stock"
    assert processor.validate_row(product_row(precioVenta="-1"))[0].message.endswith("no puede ser negativo")
    assert processor.validate_row(product_row(stockMinimo="-3"))[0].column == "stockMinimo"
    missing = processor.validate_row(product_row(nombre=" ", precioCompra=None))
    assert {e.column for e in missing} == {"nombre", "precioCompra"}


def test_sale_below_purchase_only_checked_when_enabled(make_job, store) -> None:
    lenient = bind(ImportType.PRODUCTS, make_job(), store, PRODUCT_HEADERS)
    strict = bind(
        ImportType.PRODUCTS, make_job(specific={"validarPrecios": True}), store, PRODUCT_HEADERS
    )
    row = product_row(precioCompra="200", precioVenta="150")

    assert lenient.validate_row(row) == []
    assert strict.validate_row(row)[0].column == "precioVenta"


def test_product_lookup_matches_barcode(make_job, store, db_session) -> None:
    store.create(Product, 1, {"name": "Pala", "barcode": "750100", "stock": 1, "purchase_price": 1, "sale_price": 1})
    db_session.commit()
    processor = bind(ImportType.PRODUCTS, make_job(), store, PRODUCT_HEADERS)

    found = processor.resolve_existing(product_row(nombre="Pala grande", codigoBarras="750100"))

    assert found is not None and found.name == "Pala"


def test_product_lookup_is_tenant_scoped(make_job, store, db_session) -> None:
    store.create(Product, 2, {"name": "Pala", "stock": 1, "purchase_price": 1, "sale_price": 1})
    db_session.commit()
    processor = bind(ImportType.PRODUCTS, make_job(tenant_id=1), store, PRODUCT_HEADERS)

    assert processor.resolve_existing(product_row()) is None


def test_replaying_a_row_with_overwrite_is_idempotent(make_job, store, db_session) -> None:
    processor = bind(ImportType.PRODUCTS, make_job(overwrite_existing=True), store, PRODUCT_HEADERS)
    row = product_row(stock="8")

    apply_row(processor, store, row)
    first = [(p.name, p.stock, p.sale_price) for p in db_session.scalars(select(Product))]
    apply_row(processor, store, row)
    second = [(p.name, p.stock, p.sale_price) for p in db_session.scalars(select(Product))]

    assert first == second
    assert len(second) == 1


def test_existing_product_without_overwrite_is_a_duplicate(make_job, store) -> None:
    processor = bind(ImportType.PRODUCTS, make_job(), store, PRODUCT_HEADERS)
    apply_row(processor, store, product_row())

    with pytest.raises(RowRejected) as excinfo:
        apply_row(processor, store, product_row(number=2, nombre="  PALA "))

    assert excinfo.value.errors[0].kind == ErrorKind.DUPLICATE
    assert excinfo.value.errors[0].row == 2


def test_redelivered_product_row_is_not_a_duplicate(make_job, store, db_session) -> None:
    job = make_job()
    processor = bind(ImportType.PRODUCTS, job, store, PRODUCT_HEADERS)
    apply_row(processor, store, product_row())

    # A fresh worker for the same job sees the row it already committed
    again = bind(ImportType.PRODUCTS, job, store, PRODUCT_HEADERS)
    apply_row(again, store, product_row())

    product = db_session.scalars(select(Product)).one()
    assert product.source_ref == f"{job.id}:1"
    with pytest.raises(RowRejected):
        apply_row(again, store, product_row(number=2))


def test_product_defaults(make_job, store, db_session) -> None:
    processor = bind(ImportType.PRODUCTS, make_job(), store, PRODUCT_HEADERS)
    apply_row(processor, store, product_row())

    product = db_session.scalars(select(Product)).one()
    assert product.unit == "UNIDAD"
    assert product.product_type == "GENERICO"
    assert product.min_stock == 0


# ---------------------------------------------------------------------------
# Suppliers
# ---------------------------------------------------------------------------

SUPPLIER_HEADERS = ["nombre", "email", "telefono"]


def test_supplier_contact_formats(make_job, store) -> None:
    processor = bind(ImportType.SUPPLIERS, make_job(ImportType.SUPPLIERS), store, SUPPLIER_HEADERS)

    ok = SourceRow(1, {"nombre": "Acme", "email": "a@b.mx", "telefono": "+52 (55) 1234-5678"})
    bad = SourceRow(2, {"nombre": "Acme", "email": "sin-arroba", "telefono": "llamar"})

    assert processor.validate_row(ok) == []
    assert {e.column for e in processor.validate_row(bad)} == {"email", "telefono"}


def test_supplier_overwrite_updates_contact(make_job, store, db_session) -> None:
    processor = bind(
        ImportType.SUPPLIERS, make_job(ImportType.SUPPLIERS, overwrite_existing=True), store, SUPPLIER_HEADERS
    )
    apply_row(processor, store, SourceRow(1, {"nombre": "Acme", "email": "old@acme.mx"}))
    apply_row(processor, store, SourceRow(2, {"nombre": "ACME", "email": "New@Acme.mx"}))

    supplier = db_session.scalars(select(Supplier)).one()
    assert supplier.email == "new@acme.mx"


def test_redelivered_supplier_row_is_not_a_duplicate(make_job, store, db_session) -> None:
    job = make_job(ImportType.SUPPLIERS)
    row = SourceRow(3, {"nombre": "Acme", "email": "ventas@acme.mx"})
    apply_row(bind(ImportType.SUPPLIERS, job, store, SUPPLIER_HEADERS), store, row)

    apply_row(bind(ImportType.SUPPLIERS, job, store, SUPPLIER_HEADERS), store, row)

    supplier = db_session.scalars(select(Supplier)).one()
    assert supplier.source_ref == f"{job.id}:3"
    other_job = bind(ImportType.SUPPLIERS, make_job(ImportType.SUPPLIERS), store, SUPPLIER_HEADERS)
    with pytest.raises(RowRejected) as excinfo:
        apply_row(other_job, store, row)
    assert excinfo.value.errors[0].kind == ErrorKind.DUPLICATE


# ---------------------------------------------------------------------------
# Movements
# ---------------------------------------------------------------------------

MOVEMENT_HEADERS = ["producto", "tipo", "cantidad", "fecha"]


@pytest.fixture
def tornillo(store, db_session):
    product = store.create(Product, 1, {"name": "Tornillo", "sku": "T-1", "stock": 5, "purchase_price": 1, "sale_price": 2})
    db_session.commit()
    return product


def movement(number=1, **values):
    base = {"producto": "Tornillo", "tipo": "entrada", "cantidad": "2", "fecha": None}
    base.update(values)
    return SourceRow(number, base)


def test_movement_field_validations(make_job, store, tornillo) -> None:
    processor = bind(ImportType.MOVEMENTS, make_job(ImportType.MOVEMENTS), store, MOVEMENT_HEADERS)
    tomorrow_plus = (datetime.now(timezone.utc) + timedelta(days=3)).strftime("%Y-%m-%d")

    assert processor.validate_row(movement()) == []
    assert processor.validate_row(movement(tipo="ajuste"))[0].column == "tipo"
    assert processor.validate_row(movement(cantidad="0"))[0].column == "cantidad"
    assert processor.validate_row(movement(fecha="31/02/2024"))[0].column == "fecha"
    assert processor.validate_row(movement(fecha=tomorrow_plus))[0].message == "La fecha no puede ser futura"


def test_unknown_product_is_a_reference_error(make_job, store, tornillo) -> None:
    processor = bind(ImportType.MOVEMENTS, make_job(ImportType.MOVEMENTS), store, MOVEMENT_HEADERS)

    errors = processor.validate_row(movement(producto="Clavo"))

    assert [e.kind for e in errors] == [ErrorKind.REFERENCE]


def test_product_found_by_sku(make_job, store, tornillo) -> None:
    processor = bind(ImportType.MOVEMENTS, make_job(ImportType.MOVEMENTS), store, MOVEMENT_HEADERS)

    assert processor.validate_row(movement(producto="t-1")) == []
    assert processor.resolve_existing(movement(producto="t-1")).id == tornillo.id


def test_movement_lookup_comes_from_cache(make_job, store, cache, tornillo) -> None:
    processor = bind(ImportType.MOVEMENTS, make_job(ImportType.MOVEMENTS), store, MOVEMENT_HEADERS, cache=cache)

    assert processor.product_lookup["tornillo"] == tornillo.id
    assert cache.get(tenant_products_key(1))["t-1"] == tornillo.id


def test_movement_replay_is_a_no_op(make_job, store, db_session, tornillo) -> None:
    processor = bind(ImportType.MOVEMENTS, make_job(ImportType.MOVEMENTS), store, MOVEMENT_HEADERS)
    row = movement(cantidad="4")

    apply_row(processor, store, row)
    apply_row(processor, store, row)

    assert store.current_stock(1, tornillo.id) == 9
    assert len(db_session.scalars(select(Movement)).all()) == 1


def test_negative_stock_allowed_when_enabled(make_job, store, tornillo) -> None:
    job = make_job(ImportType.MOVEMENTS, specific={"permitirStockNegativo": True})
    processor = bind(ImportType.MOVEMENTS, job, store, MOVEMENT_HEADERS)

    apply_row(processor, store, movement(tipo="salida", cantidad="8"))

    assert store.current_stock(1, tornillo.id) == -3


def test_missing_product_created_when_enabled(make_job, store, db_session, tornillo) -> None:
    job = make_job(ImportType.MOVEMENTS, specific={"crearProductoSiNoExiste": True})
    processor = bind(ImportType.MOVEMENTS, job, store, MOVEMENT_HEADERS)
    row = movement(producto="Arandela", cantidad="7")

    assert processor.validate_row(row) == []
    apply_row(processor, store, row)

    created = db_session.scalars(select(Product).where(Product.name == "Arandela")).one()
    assert created.stock == 7
    assert processor.product_lookup["arandela"] == created.id


def test_product_missing_from_a_stale_lookup_is_found_in_the_store(make_job, store, cache, tornillo) -> None:
    cache.set(tenant_products_key(1), {})
    processor = bind(ImportType.MOVEMENTS, make_job(ImportType.MOVEMENTS), store, MOVEMENT_HEADERS, cache=cache)

    assert processor.validate_row(movement()) == []
    assert processor.product_lookup["tornillo"] == tornillo.id
    assert [e.kind for e in processor.validate_row(movement(producto="Clavo"))] == [ErrorKind.REFERENCE]
