"""Database models package."""
from inventory_import.db.models.movement import Movement
from inventory_import.db.models.product import Product
from inventory_import.db.models.supplier import Supplier

__all__ = ["Product", "Supplier", "Movement"]
