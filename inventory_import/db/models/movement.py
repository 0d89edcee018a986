"""SQLAlchemy model for inventory movements (stock in/out)."""

from sqlalchemy import Column, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.types import DateTime

from inventory_import.db.base import Base


class Movement(Base):
    __tablename__ = "movements"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    kind = Column(String(16), nullable=False)  # ENTRADA | SALIDA
    quantity = Column(Integer, nullable=False)
    occurred_at = Column(DateTime(timezone=True), nullable=False)
    reason = Column(String(255))
    description = Column(Text)
    reference = Column(String(120))
    # "<job id>:<row>" for rows written by an import; replays are skipped
    source_ref = Column(String(160))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (UniqueConstraint("tenant_id", "source_ref", name="uq_movements_source_ref"),)
