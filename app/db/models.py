"""
SQLAlchemy ORM models for database tables.

Orders and their items live in two tables. Items carry a position column so
they load back in the order they were added.
"""
from decimal import Decimal
from sqlalchemy import Column, String, DateTime, Index, ForeignKey, Integer, Numeric
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.types import TypeDecorator

Base = declarative_base()


class Money(TypeDecorator):
    """
    Decimal amount with two decimal places.

    NUMERIC(18, 2) on databases with a real decimal type. SQLite has none
    and would round-trip through float, so there the value is kept as text.
    """
    impl = Numeric
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(32))
        return dialect.type_descriptor(Numeric(18, 2))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = Decimal(str(value))
        if dialect.name == "sqlite":
            return str(value)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(str(value))


class OrderModel(Base):
    """
    Orders table - one row per order aggregate.

    version is the optimistic-concurrency token. It is compared and advanced
    explicitly by OrderRepository.save (UPDATE ... WHERE version = :expected).
    """
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True)  # UUID string
    customer_id = Column(String(100), nullable=False)
    status = Column(String(20), nullable=False)  # 'Draft', 'Confirmed', 'Cancelled'
    total_amount = Column(Money(), nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        Index('idx_orders_customer_id', 'customer_id'),
        Index('idx_orders_status', 'status'),
    )

    # Relationships
    items = relationship(
        "OrderItemModel",
        cascade="all, delete-orphan",
        order_by="OrderItemModel.position",
    )


class OrderItemModel(Base):
    """
    Order items - owned by exactly one order.

    No back-reference to OrderModel: items are reached only through their order.
    """
    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True)  # UUID string
    order_id = Column(String(36), ForeignKey('orders.id', ondelete='CASCADE'), nullable=False)
    position = Column(Integer, nullable=False)  # 0, 1, 2 ... insertion order
    sku = Column(String(100), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Money(), nullable=False)

    __table_args__ = (
        Index('idx_order_items_order_id', 'order_id'),
    )
