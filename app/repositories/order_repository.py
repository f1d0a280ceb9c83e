"""
Order Repository implementation using SQLAlchemy.

Handles conversion between:
- Domain entities (Order, OrderItem) → ORM models (OrderModel, OrderItemModel)
- ORM models → Domain entities

Concurrency:
- save() is a compare-and-swap on the version column:
  UPDATE orders SET ..., version = :expected + 1
  WHERE id = :id AND version = :expected
  Zero affected rows means another writer got there first.
- Item rows are replaced in the same transaction, so a rejected save
  leaves nothing behind once the unit of work rolls back.
"""

from datetime import datetime, timezone
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload
import logging

from app.core.interfaces import IOrderRepository
from app.domain.entities import (
    Order,
    OrderItem,
    ConcurrencyConflictError,
    DuplicateOrderError,
)
from app.domain.value_objects import OrderId, OrderItemId, OrderStatus, to_decimal
from app.db.models import OrderModel, OrderItemModel

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    """SQLite drops tzinfo on the way back; timestamps are always stored in UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class OrderRepository(IOrderRepository):
    """
    SQLAlchemy implementation of IOrderRepository.

    Never commits: transaction boundaries belong to the Unit of Work.
    """

    def __init__(self, db_session: AsyncSession):
        """
        Initialize repository with database session.

        Args:
            db_session: SQLAlchemy async session
        """
        self._db = db_session

    async def add(self, order: Order) -> OrderId:
        """
        Store a new order and its items.

        Raises:
            DuplicateOrderError: If order ID already exists
        """
        try:
            self._db.add(self._to_orm(order))
            await self._db.flush()

            logger.info(
                f"💾 Added order {order.id} for customer {order.customer_id} "
                f"with {order.item_count} item(s), total {order.total_amount}"
            )
            return order.id

        except IntegrityError as e:
            logger.error(f"Order {order.id} already exists")
            raise DuplicateOrderError(order.id) from e
        except Exception as e:
            logger.error(f"Failed to add order {order.id}: {e}")
            raise

    async def get_by_id(self, order_id: OrderId) -> Optional[Order]:
        """
        Retrieve order by ID with items.

        Returns:
            Order with items if found, None otherwise
        """
        try:
            # populate_existing: rows written by save() bypass the identity map
            stmt = (
                select(OrderModel)
                .where(OrderModel.id == str(order_id))
                .options(joinedload(OrderModel.items))
                .execution_options(populate_existing=True)
            )
            result = await self._db.execute(stmt)
            db_order = result.unique().scalar_one_or_none()

            if db_order is None:
                return None

            order = self._from_orm(db_order)

            logger.debug(
                f"📖 Retrieved order {order_id} (version {order.version}) "
                f"with {order.item_count} item(s)"
            )

            return order

        except Exception as e:
            logger.error(f"Failed to retrieve order {order_id}: {e}")
            raise

    async def save(self, order: Order) -> Order:
        """
        Conditionally overwrite an order and its items.

        Returns:
            The saved order with its advanced version

        Raises:
            ConcurrencyConflictError: If the stored version != order.version
        """
        expected_version = order.version
        order_key = str(order.id)

        try:
            stmt = (
                update(OrderModel)
                .where(OrderModel.id == order_key)
                .where(OrderModel.version == expected_version)
                .values(
                    status=order.status.value,
                    total_amount=order.total_amount,
                    updated_at=order.updated_at,
                    version=expected_version + 1,
                )
                .execution_options(synchronize_session=False)
            )
            result = await self._db.execute(stmt)

            if result.rowcount != 1:
                logger.warning(
                    f"⚠️ Stale write rejected for order {order.id} "
                    f"(expected version {expected_version})"
                )
                raise ConcurrencyConflictError(order.id, expected_version)

            await self._db.execute(
                delete(OrderItemModel)
                .where(OrderItemModel.order_id == order_key)
                .execution_options(synchronize_session=False)
            )
            if order.items:
                await self._db.execute(
                    insert(OrderItemModel),
                    [
                        self._item_values(order_key, position, item)
                        for position, item in enumerate(order.items)
                    ],
                )

            logger.info(
                f"💾 Saved order {order.id} ({order.status.value}) "
                f"version {expected_version} → {expected_version + 1}"
            )

            return order.with_version(expected_version + 1)

        except ConcurrencyConflictError:
            raise
        except Exception as e:
            logger.error(f"Failed to save order {order.id}: {e}")
            raise

    # Domain ↔ ORM conversion methods

    def _to_orm(self, order: Order) -> OrderModel:
        """Convert domain Order → ORM OrderModel (with items)"""
        order_key = str(order.id)
        return OrderModel(
            id=order_key,
            customer_id=order.customer_id,
            status=order.status.value,
            total_amount=order.total_amount,
            created_at=order.created_at,
            updated_at=order.updated_at,
            version=order.version,
            items=[
                OrderItemModel(**self._item_values(order_key, position, item))
                for position, item in enumerate(order.items)
            ],
        )

    def _from_orm(self, db_order: OrderModel) -> Order:
        """Convert ORM OrderModel → domain Order"""
        items = [self._item_from_orm(db_item) for db_item in db_order.items]

        return Order(
            id=OrderId.from_string(db_order.id),
            customer_id=db_order.customer_id,
            status=OrderStatus(db_order.status),
            items=tuple(items),
            created_at=_as_utc(db_order.created_at),
            updated_at=_as_utc(db_order.updated_at),
            version=db_order.version,
        )

    def _item_values(self, order_key: str, position: int, item: OrderItem) -> dict:
        """Column values for one order_items row"""
        return {
            "id": str(item.id),
            "order_id": order_key,
            "position": position,
            "sku": item.sku,
            "quantity": item.quantity,
            "unit_price": item.unit_price,
        }

    def _item_from_orm(self, db_item: OrderItemModel) -> OrderItem:
        """Convert ORM OrderItemModel → domain OrderItem"""
        return OrderItem(
            id=OrderItemId.from_string(db_item.id),
            sku=db_item.sku,
            quantity=db_item.quantity,
            unit_price=to_decimal(db_item.unit_price),
        )
