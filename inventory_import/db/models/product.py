"""SQLAlchemy model for product records."""

from sqlalchemy import Column, ForeignKey, Index, Integer, Numeric, String, Text, func
from sqlalchemy.types import DateTime

from inventory_import.db.base import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    sku = Column(String(64))
    barcode = Column(String(64))
    category = Column(String(120))
    unit = Column(String(32), nullable=False, default="UNIDAD")
    product_type = Column(String(32), nullable=False, default="GENERICO")
    stock = Column(Integer, nullable=False, default=0)
    min_stock = Column(Integer, nullable=False, default=0)
    purchase_price = Column(Numeric(12, 2), nullable=False, default=0)
    sale_price = Column(Numeric(12, 2), nullable=False, default=0)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"))
    # "<job id>:<row>" of the import row that created the record
    source_ref = Column(String(160))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        Index("ix_products_tenant_name_lower", tenant_id, func.lower(name)),
        Index("ix_products_tenant_barcode", tenant_id, barcode),
        Index("ix_products_tenant_sku", tenant_id, sku),
    )
