"""
Domain Entities - the Order aggregate and its line items.

The Order is an aggregate root - it owns its OrderItems. Items have no
independent lifecycle and hold no reference back to their order.

Entities here are immutable snapshots. Mutations are expressed as pure
transforms (with_items, with_status) that return a new Order; the
lifecycle service persists the result through a conditional save.

Invariants (enforced by construction):
1. total_amount always equals sum(quantity * unit_price) over items
2. Item ids are unique within an order
3. Quantity > 0, unit price >= 0, sku non-empty
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional, Sequence, Tuple

from .value_objects import (
    Amount,
    OrderId,
    OrderItemId,
    OrderStatus,
    to_decimal,
)


PRICE_DECIMAL_PLACES = 2
PRICE_QUANTUM = Decimal(1).scaleb(-PRICE_DECIMAL_PLACES)  # 0.01

# Largest value a Numeric(18, 2) column holds
MAX_UNIT_PRICE = Decimal("9999999999999999.99")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Domain exceptions

class DomainError(Exception):
    """Base exception for domain layer errors"""
    pass


class ValidationError(DomainError):
    """Raised when input violates order or item constraints"""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class OrderNotFoundError(DomainError):
    """Raised when order doesn't exist"""

    def __init__(self, order_id: OrderId):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


class InvalidStateError(DomainError):
    """Raised when the order's lifecycle state forbids the requested action"""

    def __init__(self, order_id: OrderId, status: OrderStatus, action: str):
        self.order_id = order_id
        self.status = status
        self.action = action
        super().__init__(
            f"Cannot {action} order {order_id} in status {status.value}"
        )


class ConcurrencyConflictError(DomainError):
    """Raised when a save presents a version that is no longer current"""

    def __init__(self, order_id: OrderId, expected_version: int):
        self.order_id = order_id
        self.expected_version = expected_version
        super().__init__(
            f"Order {order_id} was modified concurrently "
            f"(expected version {expected_version})"
        )


class DuplicateOrderError(DomainError):
    """Raised when attempting to add an order whose ID already exists"""

    def __init__(self, order_id: OrderId):
        self.order_id = order_id
        super().__init__(f"Order {order_id} already exists")


# Aggregate members

@dataclass(frozen=True)
class NewOrderItem:
    """
    Item request - what a caller supplies before an ID is assigned.

    Not validated on construction: validate_new_item() reports the
    offending field with its position in the request.
    """

    sku: str
    quantity: int
    unit_price: Amount


def validate_new_item(item: NewOrderItem, field_prefix: str = "") -> NewOrderItem:
    """
    Validate an item request and normalize its price to Decimal.

    Args:
        item: Item request to validate
        field_prefix: Prefix for error field names (e.g. "items[2].")

    Returns:
        Normalized item request

    Raises:
        ValidationError: Naming the first offending field
    """
    sku = item.sku.strip() if isinstance(item.sku, str) else ""
    if not sku:
        raise ValidationError(f"{field_prefix}sku", "must not be empty")

    if isinstance(item.quantity, bool) or not isinstance(item.quantity, int):
        raise ValidationError(f"{field_prefix}quantity", "must be an integer")
    if item.quantity <= 0:
        raise ValidationError(
            f"{field_prefix}quantity", f"must be greater than 0, got {item.quantity}"
        )

    try:
        unit_price = to_decimal(item.unit_price)
    except ValueError as e:
        raise ValidationError(f"{field_prefix}unit_price", str(e))
    if unit_price < 0:
        raise ValidationError(
            f"{field_prefix}unit_price", f"must not be negative, got {unit_price}"
        )
    if unit_price > MAX_UNIT_PRICE:
        raise ValidationError(
            f"{field_prefix}unit_price", f"must not exceed {MAX_UNIT_PRICE}, got {unit_price}"
        )
    # Storage keeps currency at two decimal places (9.990 passes, 9.995 does not)
    cents = unit_price.quantize(PRICE_QUANTUM)
    if cents != unit_price:
        raise ValidationError(
            f"{field_prefix}unit_price",
            f"must have at most {PRICE_DECIMAL_PLACES} decimal places, got {unit_price}"
        )
    unit_price = cents

    return NewOrderItem(sku=sku, quantity=item.quantity, unit_price=unit_price)


@dataclass(frozen=True)
class OrderItem:
    """
    Order line - part of the Order aggregate.

    Deleted only through the lifecycle service, never independently.
    """

    id: OrderItemId
    sku: str
    quantity: int
    unit_price: Decimal

    def __post_init__(self):
        if not self.sku:
            raise ValueError("OrderItem sku cannot be empty")
        if self.quantity <= 0:
            raise ValueError(f"OrderItem quantity must be > 0, got {self.quantity}")
        if self.unit_price < 0:
            raise ValueError(f"OrderItem unit_price must be >= 0, got {self.unit_price}")

    @classmethod
    def from_request(cls, request: NewOrderItem) -> "OrderItem":
        """Assign a fresh ID to an already validated item request"""
        return cls(
            id=OrderItemId(),
            sku=request.sku,
            quantity=request.quantity,
            unit_price=to_decimal(request.unit_price),
        )

    @property
    def line_total(self) -> Decimal:
        return self.quantity * self.unit_price


def compute_total(items: Iterable[OrderItem]) -> Decimal:
    """Sum of quantity * unit_price over items (0 for no items)"""
    return sum((item.line_total for item in items), Decimal("0"))


@dataclass(frozen=True)
class Order:
    """
    Order aggregate root.

    total_amount is derived from items in __post_init__ and cannot be
    passed in, so it can never drift from the line items.

    version is the optimistic-concurrency token: 1 for a new order,
    advanced by the repository on every successful save.
    """

    # Identity
    id: OrderId
    customer_id: str

    # Lifecycle
    status: OrderStatus
    items: Tuple[OrderItem, ...]

    # Timestamps
    created_at: datetime
    updated_at: datetime

    # Concurrency token
    version: int = 1

    total_amount: Decimal = field(init=False)

    def __post_init__(self):
        if not self.customer_id:
            raise ValueError("Order customer_id cannot be empty")

        # Accept any sequence, store a tuple
        object.__setattr__(self, "items", tuple(self.items))

        item_ids = [item.id for item in self.items]
        if len(item_ids) != len(set(item_ids)):
            raise ValueError(f"Order {self.id} contains duplicate item ids")

        object.__setattr__(self, "total_amount", compute_total(self.items))

    @classmethod
    def create(
        cls,
        customer_id: str,
        items: Sequence[NewOrderItem],
        now: Optional[datetime] = None,
    ) -> "Order":
        """
        Create a new Draft order.

        Raises:
            ValidationError: If customer_id is empty, no items are given,
                or any item is invalid
        """
        customer_id = customer_id.strip() if isinstance(customer_id, str) else ""
        if not customer_id:
            raise ValidationError("customer_id", "must not be empty")

        if not items:
            raise ValidationError("items", "order must contain at least one item")

        order_items = [
            OrderItem.from_request(validate_new_item(item, f"items[{index}]."))
            for index, item in enumerate(items)
        ]

        now = now or utcnow()
        return cls(
            id=OrderId(),
            customer_id=customer_id,
            status=OrderStatus.DRAFT,
            items=tuple(order_items),
            created_at=now,
            updated_at=now,
            version=1,
        )

    # Pure transforms

    def with_items(self, items: Sequence[OrderItem], now: Optional[datetime] = None) -> "Order":
        """Return a copy with the given items (total recomputed)"""
        return replace(self, items=tuple(items), updated_at=now or utcnow())

    def with_status(self, status: OrderStatus, now: Optional[datetime] = None) -> "Order":
        """Return a copy in the given status"""
        return replace(self, status=status, updated_at=now or utcnow())

    def with_version(self, version: int) -> "Order":
        return replace(self, version=version)

    def find_item(self, item_id: OrderItemId) -> Optional[OrderItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    @property
    def item_count(self) -> int:
        return len(self.items)

    def __repr__(self) -> str:
        return (
            f"Order(id={self.id}, customer={self.customer_id}, "
            f"status={self.status.value}, items={self.item_count}, "
            f"total={self.total_amount}, version={self.version})"
        )


def can_mutate_items(order: Order) -> bool:
    """Items and totals may change only while the order is Draft"""
    return order.status is OrderStatus.DRAFT
