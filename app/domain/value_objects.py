"""
Value Objects for type-safe order identifiers and amounts.

Value objects are immutable and self-validating. They prevent ID type
confusion between:
- Order IDs (aggregate root identity)
- Order item IDs (identity within an order)

Money and quantity coercion helpers live here too so every layer
(API, service, repository) converts input the same way.
"""

import enum
import uuid
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Union


class OrderStatus(str, enum.Enum):
    """Order lifecycle states"""
    DRAFT = "Draft"  # Initial, fully mutable
    CONFIRMED = "Confirmed"  # Terminal
    CANCELLED = "Cancelled"  # Terminal

    @property
    def is_terminal(self) -> bool:
        return self is not OrderStatus.DRAFT


@dataclass(frozen=True)
class OrderId:
    """
    Order identifier value object.

    Format: UUID4
    Example: 3f2b9c1e-8a4d-4c55-9b7e-2d1f0a6c9e11

    Used for:
    - Primary key in orders table
    - API path parameters (/orders/{order_id})
    """

    value: uuid.UUID = field(default_factory=uuid.uuid4)

    def __post_init__(self):
        if not isinstance(self.value, uuid.UUID):
            raise ValueError(f"OrderId must wrap a UUID, got {type(self.value).__name__}")

    @classmethod
    def from_string(cls, order_id: str) -> "OrderId":
        """
        Parse order ID from its string form.

        Raises:
            ValueError: If the string is not a valid UUID
        """
        try:
            return cls(uuid.UUID(str(order_id)))
        except (ValueError, AttributeError):
            raise ValueError(f"Invalid OrderId format: {order_id}")

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self) -> str:
        return f"OrderId('{self.value}')"


@dataclass(frozen=True)
class OrderItemId:
    """
    Order item identifier value object.

    Unique within its order, and globally unique by construction (UUID4).
    """

    value: uuid.UUID = field(default_factory=uuid.uuid4)

    def __post_init__(self):
        if not isinstance(self.value, uuid.UUID):
            raise ValueError(f"OrderItemId must wrap a UUID, got {type(self.value).__name__}")

    @classmethod
    def from_string(cls, item_id: str) -> "OrderItemId":
        """Parse order item ID from its string form"""
        try:
            return cls(uuid.UUID(str(item_id)))
        except (ValueError, AttributeError):
            raise ValueError(f"Invalid OrderItemId format: {item_id}")

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self) -> str:
        return f"OrderItemId('{self.value}')"


Amount = Union[Decimal, int, float, str]


def to_decimal(value: Amount) -> Decimal:
    """
    Convert a price-like value to Decimal.

    Floats go through their string form so 9.99 stays exactly 9.99
    instead of 9.9900000000000002131628...

    Raises:
        ValueError: If value is not a finite number
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a monetary amount: {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, TypeError):
            raise ValueError(f"Not a monetary amount: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Amount must be finite, got {value!r}")
    return result
