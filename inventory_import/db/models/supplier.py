"""SQLAlchemy model for supplier records."""

from sqlalchemy import Column, Index, Integer, String, Text, func
from sqlalchemy.types import DateTime

from inventory_import.db.base import Base


class Supplier(Base):
    __tablename__ = "suppliers"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255))
    phone = Column(String(64))
    address = Column(Text)
    contact = Column(String(255))
    tax_id = Column(String(32))
    # "<job id>:<row>" of the import row that created the record
    source_ref = Column(String(160))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (Index("ix_suppliers_tenant_name_lower", tenant_id, func.lower(name)),)
