"""
Core interfaces for the Orders service.

The lifecycle service depends only on IOrderRepository; any durable store
that can perform a version-conditioned write satisfies it.
"""
from abc import ABC, abstractmethod
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from app.domain.entities import Order
    from app.domain.value_objects import OrderId


class IOrderRepository(ABC):
    """
    Interface for order storage and retrieval.

    Implementations must handle:
    - Persisting an order together with its items
    - Loading an order with its items in their original order
    - Conditional writes: a save succeeds only if the stored version
      still equals the version the order was loaded with
    """

    @abstractmethod
    async def add(self, order: 'Order') -> 'OrderId':
        """
        Store a brand-new order with its items.

        Args:
            order: New Order aggregate

        Returns:
            ID of the stored order

        Raises:
            DuplicateOrderError: If order ID already exists
        """
        pass

    @abstractmethod
    async def get_by_id(self, order_id: 'OrderId') -> Optional['Order']:
        """
        Get order by ID with items.

        Args:
            order_id: Order identifier

        Returns:
            Order if found, None otherwise
        """
        pass

    @abstractmethod
    async def save(self, order: 'Order') -> 'Order':
        """
        Overwrite an existing order's mutable fields and items.

        The write is applied only if the stored version equals
        order.version; the stored version is then advanced by one in the
        same atomic step.

        Args:
            order: Modified Order carrying the version it was loaded with

        Returns:
            The saved order carrying its new version

        Raises:
            ConcurrencyConflictError: If the stored version no longer matches
        """
        pass
