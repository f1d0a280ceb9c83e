"""
Order Service - the lifecycle service for orders.

This service is the only component that reads, modifies and writes orders.
It provides:
- Order creation (Draft, with initial items)
- Item addition/removal while Draft
- Confirmation and cancellation (Draft → Confirmed / Cancelled)
- Read-only order lookup

Every mutation is a load → pure transform → conditional save cycle inside its
own Unit of Work. A stale save surfaces as ConcurrencyConflictError; the
service never retries on its own, the caller re-reads and decides.

Outcome channels:
- create_order / add_item raise domain errors (ValidationError,
  OrderNotFoundError, InvalidStateError, ConcurrencyConflictError)
- confirm_order / cancel_order / delete_item return an OrderActionResult
  for the expected not-found and wrong-state cases
- Infrastructure failures propagate unchanged from every operation
"""

import enum
import logging
from datetime import datetime
from typing import Callable, Optional, Sequence

from app.domain.unit_of_work import AbstractUnitOfWork
from app.domain.entities import (
    InvalidStateError,
    NewOrderItem,
    Order,
    OrderItem,
    OrderNotFoundError,
    can_mutate_items,
    utcnow,
    validate_new_item,
)
from app.domain.value_objects import OrderId, OrderItemId, OrderStatus

logger = logging.getLogger(__name__)


class OrderActionResult(str, enum.Enum):
    """Expected business outcomes of confirm/cancel/delete-item"""
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"


class OrderService:
    """
    Application service for the order lifecycle.

    State machine:
        Draft → Confirmed  (confirm_order)
        Draft → Cancelled  (cancel_order)
        Confirmed, Cancelled: terminal
    """

    def __init__(
        self,
        uow_factory: Callable[[], AbstractUnitOfWork],
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize order service.

        Args:
            uow_factory: Returns a fresh Unit of Work per operation
            clock: Source of timestamps for created_at/updated_at
        """
        self._uow_factory = uow_factory
        self._clock = clock

    async def create_order(self, customer_id: str, items: Sequence[NewOrderItem]) -> OrderId:
        """
        Create a Draft order with its initial items.

        Returns:
            ID of the new order

        Raises:
            ValidationError: If customer_id or any item is invalid
        """
        logger.info(f"Creating order for customer {customer_id!r} with {len(items or ())} item(s)")

        order = Order.create(customer_id, items, now=self._clock())

        async with self._uow_factory() as uow:
            order_id = await uow.orders.add(order)

        logger.info(f"✅ Order {order_id} created, total {order.total_amount}")
        return order_id

    async def add_item(self, order_id: OrderId, item: NewOrderItem) -> OrderItemId:
        """
        Append an item to a Draft order.

        Returns:
            ID assigned to the new item

        Raises:
            ValidationError: If the item is invalid
            OrderNotFoundError: If the order doesn't exist
            InvalidStateError: If the order is not Draft
            ConcurrencyConflictError: If the order changed since it was loaded
        """
        request = validate_new_item(item)
        logger.info(f"Adding item {request.sku} to order {order_id}")

        async with self._uow_factory() as uow:
            order = await uow.orders.get_by_id(order_id)
            if order is None:
                logger.warning(f"Order not found: {order_id}")
                raise OrderNotFoundError(order_id)

            if not can_mutate_items(order):
                logger.warning(f"Order {order_id} is {order.status.value}, cannot add items")
                raise InvalidStateError(order_id, order.status, "add item to")

            new_item = OrderItem.from_request(request)
            updated = order.with_items(order.items + (new_item,), now=self._clock())
            saved = await uow.orders.save(updated)

        logger.info(
            f"✅ Item {new_item.id} added to order {order_id}, "
            f"total {saved.total_amount}, version {saved.version}"
        )
        return new_item.id

    async def get_order(self, order_id: OrderId) -> Optional[Order]:
        """Read-only lookup; None if the order doesn't exist"""
        async with self._uow_factory() as uow:
            return await uow.orders.get_by_id(order_id)

    async def confirm_order(self, order_id: OrderId) -> OrderActionResult:
        """Transition Draft → Confirmed"""
        return await self._transition(order_id, OrderStatus.CONFIRMED, "confirm")

    async def cancel_order(self, order_id: OrderId) -> OrderActionResult:
        """Transition Draft → Cancelled"""
        return await self._transition(order_id, OrderStatus.CANCELLED, "cancel")

    async def delete_item(self, order_id: OrderId, item_id: OrderItemId) -> OrderActionResult:
        """
        Remove an item from a Draft order.

        NOT_FOUND covers both a missing order and a missing item.

        Raises:
            ConcurrencyConflictError: If the order changed since it was loaded
        """
        async with self._uow_factory() as uow:
            order = await uow.orders.get_by_id(order_id)
            if order is None:
                logger.warning(f"Order not found: {order_id}")
                return OrderActionResult.NOT_FOUND

            if not can_mutate_items(order):
                logger.warning(f"Order {order_id} is {order.status.value}, cannot delete items")
                return OrderActionResult.INVALID_STATE

            if order.find_item(item_id) is None:
                logger.warning(f"Item {item_id} not found in order {order_id}")
                return OrderActionResult.NOT_FOUND

            remaining = [item for item in order.items if item.id != item_id]
            saved = await uow.orders.save(order.with_items(remaining, now=self._clock()))

        logger.info(
            f"🗑️ Item {item_id} removed from order {order_id}, total {saved.total_amount}"
        )
        return OrderActionResult.SUCCESS

    async def _transition(
        self,
        order_id: OrderId,
        target: OrderStatus,
        action: str,
    ) -> OrderActionResult:
        """Move a Draft order into a terminal status"""
        async with self._uow_factory() as uow:
            order = await uow.orders.get_by_id(order_id)
            if order is None:
                logger.warning(f"Order not found: {order_id}")
                return OrderActionResult.NOT_FOUND

            if order.status.is_terminal:
                logger.warning(
                    f"Cannot {action} order {order_id}: status is {order.status.value}"
                )
                return OrderActionResult.INVALID_STATE

            await uow.orders.save(order.with_status(target, now=self._clock()))

        logger.info(f"✅ Order {order_id} → {target.value}")
        return OrderActionResult.SUCCESS
