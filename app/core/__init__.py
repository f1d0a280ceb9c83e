"""Core module containing interfaces."""

from app.core.interfaces import IOrderRepository

__all__ = ["IOrderRepository"]
