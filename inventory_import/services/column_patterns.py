"""Expected spreadsheet columns per import type.

The same tables drive header resolution in the processors and header scoring
in the type detector, so a column alias added here is understood by both.
"""

from __future__ import annotations

from dataclasses import dataclass

from inventory_import.domain.job import ImportType
from inventory_import.utils.normalize import normalize_header


@dataclass(frozen=True)
class ColumnPattern:
    canonical: str
    aliases: tuple[str, ...] = ()
    weight: int = 1
    required: bool = False

    @property
    def terms(self) -> tuple[str, ...]:
        """Normalized canonical name followed by normalized aliases."""
        return tuple(dict.fromkeys(normalize_header(t) for t in (self.canonical, *self.aliases)))


PRODUCT_COLUMNS: tuple[ColumnPattern, ...] = (
    ColumnPattern("nombre", ("producto", "nombreproducto", "articulo", "item"), 10, True),
    ColumnPattern("stock", ("existencia", "existencias", "inventario"), 8, True),
    ColumnPattern("precioCompra", ("costo", "costounitario", "preciocosto"), 8, True),
    ColumnPattern("precioVenta", ("precio", "preciopublico", "pvp"), 8, True),
    ColumnPattern("descripcion", ("detalle",), 2),
    ColumnPattern("stockMinimo", ("minimo", "stockmin"), 2),
    ColumnPattern("categoria", ("etiquetas", "familia", "clasificacion"), 1),
    ColumnPattern("codigoBarras", ("barcode", "ean", "upc"), 1),
    ColumnPattern("sku", ("codigo", "clave"), 1),
    ColumnPattern("unidad", ("unidadmedida", "um"), 1),
)

SUPPLIER_COLUMNS: tuple[ColumnPattern, ...] = (
    ColumnPattern("nombre", ("proveedor", "razonsocial", "nombreproveedor", "empresa"), 10, True),
    ColumnPattern("email", ("correo", "mail", "correoelectronico"), 6),
    ColumnPattern("telefono", ("tel", "celular", "movil", "phone"), 6),
    ColumnPattern("direccion", ("domicilio", "ubicacion", "calle"), 4),
    ColumnPattern("contacto", ("representante", "personacontacto"), 3),
    ColumnPattern("rfc", ("taxid", "nif", "cif"), 3),
)

MOVEMENT_COLUMNS: tuple[ColumnPattern, ...] = (
    ColumnPattern("producto", ("productonombre", "nombreproducto", "articulo", "item"), 10, True),
    ColumnPattern("tipo", ("tipomovimiento", "operacion", "movimiento"), 10, True),
    ColumnPattern("cantidad", ("cant", "qty", "unidades"), 8, True),
    ColumnPattern("fecha", ("fechamovimiento", "dia"), 6),
    ColumnPattern("motivo", ("razon", "causa"), 3),
    ColumnPattern("descripcion", ("detalle", "observaciones"), 2),
    ColumnPattern("referencia", ("folio", "documento", "ref"), 2),
    ColumnPattern("proveedor", ("supplier",), 1),
)

COLUMN_PATTERNS: dict[ImportType, tuple[ColumnPattern, ...]] = {
    ImportType.PRODUCTS: PRODUCT_COLUMNS,
    ImportType.SUPPLIERS: SUPPLIER_COLUMNS,
    ImportType.MOVEMENTS: MOVEMENT_COLUMNS,
}


def resolve_columns(headers: list[str], patterns: tuple[ColumnPattern, ...]) -> dict[str, str]:
    """Map canonical column names to the header that carries them in a file.

    Only exact (normalized) matches count here; partial matches are evidence
    for type detection but too loose to read values from.
    """
    by_normalized: dict[str, str] = {}
    for header in headers:
        by_normalized.setdefault(normalize_header(header), header)
    resolved: dict[str, str] = {}
    taken: set[str] = set()
    for pattern in patterns:
        for term in pattern.terms:
            header = by_normalized.get(term)
            if header is not None and header not in taken:
                resolved[pattern.canonical] = header
                taken.add(header)
                break
    return resolved
