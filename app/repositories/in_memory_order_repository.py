"""
In-memory Order Repository.

Satisfies the same conditional-write contract as the SQLAlchemy repository.
Useful for tests and for running the lifecycle service without a database.
Orders are immutable snapshots, so storing and returning them never aliases
mutable state.
"""

import asyncio
import logging
from typing import Dict, Optional

from app.core.interfaces import IOrderRepository
from app.domain.entities import Order, ConcurrencyConflictError, DuplicateOrderError
from app.domain.value_objects import OrderId

logger = logging.getLogger(__name__)


class InMemoryOrderRepository(IOrderRepository):
    """Dictionary-backed repository with a lock-guarded compare-and-swap"""

    def __init__(self) -> None:
        self._orders: Dict[OrderId, Order] = {}
        self._lock = asyncio.Lock()

    async def add(self, order: Order) -> OrderId:
        async with self._lock:
            if order.id in self._orders:
                raise DuplicateOrderError(order.id)
            self._orders[order.id] = order
        logger.debug(f"💾 Added order {order.id} (in-memory)")
        return order.id

    async def get_by_id(self, order_id: OrderId) -> Optional[Order]:
        return self._orders.get(order_id)

    async def save(self, order: Order) -> Order:
        async with self._lock:
            stored = self._orders.get(order.id)
            if stored is None or stored.version != order.version:
                raise ConcurrencyConflictError(order.id, order.version)
            saved = order.with_version(order.version + 1)
            self._orders[order.id] = saved
        logger.debug(f"💾 Saved order {order.id} version {saved.version} (in-memory)")
        return saved

    def __len__(self) -> int:
        return len(self._orders)
