"""Database package - all database-related code."""
from app.db.connection import init_db, get_unit_of_work, close_db
from app.db.models import Base, OrderModel, OrderItemModel

__all__ = [
    "init_db",
    "get_unit_of_work",
    "close_db",
    "Base",
    "OrderModel",
    "OrderItemModel",
]
