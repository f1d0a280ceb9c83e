"""
Tests for OrderService over the in-memory repository.

Covers the state machine, the result-code vs. exception split, and the
optimistic-concurrency contract.
"""
import asyncio
import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from app.application.order_service import OrderService, OrderActionResult
from app.domain.entities import (
    ConcurrencyConflictError,
    InvalidStateError,
    NewOrderItem,
    OrderNotFoundError,
    ValidationError,
)
from app.domain.unit_of_work import InMemoryUnitOfWork
from app.domain.value_objects import OrderId, OrderItemId, OrderStatus
from app.repositories.in_memory_order_repository import InMemoryOrderRepository


class RendezvousOrderRepository(InMemoryOrderRepository):
    """Holds every armed reader until `parties` of them have loaded the order"""

    def __init__(self, parties: int):
        super().__init__()
        self.armed = False
        self._parties = parties
        self._arrived = 0
        self._all_loaded = asyncio.Event()

    async def get_by_id(self, order_id):
        order = await super().get_by_id(order_id)
        if self.armed:
            self._arrived += 1
            if self._arrived >= self._parties:
                self._all_loaded.set()
            await self._all_loaded.wait()
        return order


class UnavailableOrderRepository(InMemoryOrderRepository):
    """Storage whose reads time out"""

    async def get_by_id(self, order_id):
        raise asyncio.TimeoutError("storage did not answer")


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


async def _snapshot(service: OrderService, order_id: OrderId):
    order = await service.get_order(order_id)
    return order.items, order.total_amount, order.version, order.status


# ============================================
# create / get
# ============================================

@pytest.mark.asyncio
async def test_create_order_is_draft_with_exact_total(order_service, sample_items):
    order_id = await order_service.create_order("cust-1", sample_items)

    order = await order_service.get_order(order_id)
    assert order is not None
    assert order.status is OrderStatus.DRAFT
    assert order.total_amount == Decimal("20.48")
    assert order.version == 1


@pytest.mark.asyncio
async def test_get_order_round_trips_items(order_service, sample_items):
    order_id = await order_service.create_order("cust-1", sample_items)

    order = await order_service.get_order(order_id)
    assert [(i.sku, i.quantity, i.unit_price) for i in order.items] == [
        ("X1", 2, Decimal("9.99")),
        ("Y7", 1, Decimal("0.50")),
    ]


@pytest.mark.asyncio
async def test_get_missing_order_returns_none(order_service):
    assert await order_service.get_order(OrderId()) is None


@pytest.mark.asyncio
async def test_create_order_validation_error_stores_nothing(order_service, order_repo):
    with pytest.raises(ValidationError) as exc_info:
        await order_service.create_order("", [NewOrderItem("X1", 1, "1.00")])
    assert exc_info.value.field == "customer_id"

    with pytest.raises(ValidationError):
        await order_service.create_order("cust-1", [])

    assert len(order_repo) == 0


# ============================================
# add_item
# ============================================

@pytest.mark.asyncio
async def test_add_item_updates_total_version_and_timestamp():
    repo = InMemoryOrderRepository()
    clock = FakeClock(datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc))
    service = OrderService(lambda: InMemoryUnitOfWork(repo), clock=clock)

    order_id = await service.create_order("cust-1", [NewOrderItem("X1", 2, "9.99")])
    clock.advance(minutes=1)

    item_id = await service.add_item(order_id, NewOrderItem("X2", 1, "5.00"))

    order = await service.get_order(order_id)
    assert order.total_amount == Decimal("24.98")
    assert order.version == 2
    assert order.updated_at == clock.now
    assert order.created_at < order.updated_at
    assert order.find_item(item_id).sku == "X2"


@pytest.mark.asyncio
async def test_add_item_to_missing_order(order_service):
    with pytest.raises(OrderNotFoundError):
        await order_service.add_item(OrderId(), NewOrderItem("X1", 1, "1.00"))


@pytest.mark.asyncio
async def test_add_invalid_item_rejected_before_load(order_service):
    # Validation runs first, so even a missing order reports the bad field
    with pytest.raises(ValidationError) as exc_info:
        await order_service.add_item(OrderId(), NewOrderItem("X1", 0, "1.00"))
    assert exc_info.value.field == "quantity"


# ============================================
# confirm / cancel
# ============================================

@pytest.mark.asyncio
async def test_confirm_twice_is_success_then_invalid_state(order_service, sample_items):
    order_id = await order_service.create_order("cust-1", sample_items)

    assert await order_service.confirm_order(order_id) is OrderActionResult.SUCCESS
    assert await order_service.confirm_order(order_id) is OrderActionResult.INVALID_STATE

    order = await order_service.get_order(order_id)
    assert order.status is OrderStatus.CONFIRMED
    assert order.version == 2


@pytest.mark.asyncio
async def test_cancel_draft_order(order_service, sample_items):
    order_id = await order_service.create_order("cust-1", sample_items)

    assert await order_service.cancel_order(order_id) is OrderActionResult.SUCCESS
    assert (await order_service.get_order(order_id)).status is OrderStatus.CANCELLED


@pytest.mark.asyncio
async def test_confirm_and_cancel_missing_order_return_not_found(order_service):
    assert await order_service.confirm_order(OrderId()) is OrderActionResult.NOT_FOUND
    assert await order_service.cancel_order(OrderId()) is OrderActionResult.NOT_FOUND


@pytest.mark.asyncio
@pytest.mark.parametrize("terminal", ["confirm_order", "cancel_order"])
async def test_terminal_orders_reject_every_mutation(order_service, sample_items, terminal):
    order_id = await order_service.create_order("cust-1", sample_items)
    assert await getattr(order_service, terminal)(order_id) is OrderActionResult.SUCCESS

    before = await _snapshot(order_service, order_id)
    existing_item = before[0][0].id

    with pytest.raises(InvalidStateError):
        await order_service.add_item(order_id, NewOrderItem("X9", 1, "1.00"))
    assert await order_service.delete_item(order_id, existing_item) is OrderActionResult.INVALID_STATE
    assert await order_service.confirm_order(order_id) is OrderActionResult.INVALID_STATE
    assert await order_service.cancel_order(order_id) is OrderActionResult.INVALID_STATE

    assert await _snapshot(order_service, order_id) == before


# ============================================
# delete_item
# ============================================

@pytest.mark.asyncio
async def test_delete_item_recomputes_total(order_service, sample_items):
    order_id = await order_service.create_order("cust-1", sample_items)
    order = await order_service.get_order(order_id)
    x1 = order.items[0]

    assert await order_service.delete_item(order_id, x1.id) is OrderActionResult.SUCCESS

    order = await order_service.get_order(order_id)
    assert [i.sku for i in order.items] == ["Y7"]
    assert order.total_amount == Decimal("0.50")
    assert order.version == 2


@pytest.mark.asyncio
async def test_delete_last_item_leaves_empty_draft(order_service):
    order_id = await order_service.create_order("cust-1", [NewOrderItem("X1", 1, "3.00")])
    item_id = (await order_service.get_order(order_id)).items[0].id

    assert await order_service.delete_item(order_id, item_id) is OrderActionResult.SUCCESS

    order = await order_service.get_order(order_id)
    assert order.items == ()
    assert order.total_amount == Decimal("0")
    assert order.status is OrderStatus.DRAFT


@pytest.mark.asyncio
async def test_delete_item_not_found_cases(order_service, sample_items):
    order_id = await order_service.create_order("cust-1", sample_items)
    before = await _snapshot(order_service, order_id)

    assert await order_service.delete_item(OrderId(), OrderItemId()) is OrderActionResult.NOT_FOUND
    assert await order_service.delete_item(order_id, OrderItemId()) is OrderActionResult.NOT_FOUND
    assert await _snapshot(order_service, order_id) == before


# ============================================
# Worked example
# ============================================

@pytest.mark.asyncio
async def test_worked_example(order_service):
    order_id = await order_service.create_order("cust-1", [NewOrderItem("X1", 2, 9.99)])
    assert (await order_service.get_order(order_id)).total_amount == Decimal("19.98")

    await order_service.add_item(order_id, NewOrderItem("X2", 1, "5.00"))
    order = await order_service.get_order(order_id)
    assert order.total_amount == Decimal("24.98")

    assert await order_service.confirm_order(order_id) is OrderActionResult.SUCCESS
    for item in order.items:
        assert await order_service.delete_item(order_id, item.id) is OrderActionResult.INVALID_STATE


# ============================================
# Concurrency
# ============================================

@pytest.mark.asyncio
async def test_concurrent_add_item_exactly_one_wins():
    repo = RendezvousOrderRepository(parties=2)
    service = OrderService(lambda: InMemoryUnitOfWork(repo))
    order_id = await service.create_order("cust-1", [NewOrderItem("X1", 2, "9.99")])

    repo.armed = True
    results = await asyncio.gather(
        service.add_item(order_id, NewOrderItem("A", 1, "1.00")),
        service.add_item(order_id, NewOrderItem("B", 1, "100.00")),
        return_exceptions=True,
    )
    repo.armed = False

    winners = [r for r in results if isinstance(r, OrderItemId)]
    conflicts = [r for r in results if isinstance(r, ConcurrencyConflictError)]
    assert len(winners) == 1
    assert len(conflicts) == 1
    assert conflicts[0].expected_version == 1

    order = await service.get_order(order_id)
    assert order.version == 2
    assert len(order.items) == 2
    winner = order.find_item(winners[0])
    assert winner is not None
    assert order.total_amount == Decimal("19.98") + winner.line_total


@pytest.mark.asyncio
async def test_concurrent_confirm_and_cancel_conflict():
    repo = RendezvousOrderRepository(parties=2)
    service = OrderService(lambda: InMemoryUnitOfWork(repo))
    order_id = await service.create_order("cust-1", [NewOrderItem("X1", 1, "1.00")])

    repo.armed = True
    results = await asyncio.gather(
        service.confirm_order(order_id),
        service.cancel_order(order_id),
        return_exceptions=True,
    )
    repo.armed = False

    assert results.count(OrderActionResult.SUCCESS) == 1
    assert sum(isinstance(r, ConcurrencyConflictError) for r in results) == 1

    order = await service.get_order(order_id)
    assert order.status in (OrderStatus.CONFIRMED, OrderStatus.CANCELLED)
    assert order.version == 2


@pytest.mark.asyncio
async def test_stale_save_is_rejected_without_changes(order_service, order_repo, sample_items):
    order_id = await order_service.create_order("cust-1", sample_items)
    stale = await order_repo.get_by_id(order_id)

    await order_service.add_item(order_id, NewOrderItem("X2", 1, "5.00"))

    with pytest.raises(ConcurrencyConflictError):
        await order_repo.save(stale.with_items(()))

    order = await order_repo.get_by_id(order_id)
    assert len(order.items) == 3
    assert order.version == 2


# ============================================
# Infrastructure failures
# ============================================

@pytest.mark.asyncio
async def test_storage_timeout_propagates_instead_of_not_found():
    service = OrderService(lambda: InMemoryUnitOfWork(UnavailableOrderRepository()))

    with pytest.raises(asyncio.TimeoutError):
        await service.confirm_order(OrderId())
    with pytest.raises(asyncio.TimeoutError):
        await service.delete_item(OrderId(), OrderItemId())
    with pytest.raises(asyncio.TimeoutError):
        await service.add_item(OrderId(), NewOrderItem("X1", 1, "1.00"))
