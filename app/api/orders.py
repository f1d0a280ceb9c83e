"""
Orders API - thin HTTP adapter over OrderService.

Status mapping:
- 201 order created, 200 successful mutation/read
- 400 invalid input (request validation or domain ValidationError)
- 404 order (or item) not found
- 409 wrong lifecycle state or concurrent modification
- 500 anything else (storage failures included)
"""
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import List
import uuid
import logging

from app.application.order_service import OrderService, OrderActionResult
from app.db.connection import get_unit_of_work
from app.domain.entities import (
    ConcurrencyConflictError,
    InvalidStateError,
    NewOrderItem,
    Order,
    OrderNotFoundError,
    ValidationError,
)
from app.domain.value_objects import OrderId, OrderItemId

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================
# Pydantic Models
# ============================================

class OrderItemCreateRequest(BaseModel):
    """Item to add to an order"""
    sku: str = Field(..., min_length=1, max_length=100, description="Product identifier")
    quantity: int = Field(..., gt=0, description="Number of units")
    unit_price: Decimal = Field(..., ge=0, description="Price per unit")

    def to_domain(self) -> NewOrderItem:
        return NewOrderItem(sku=self.sku, quantity=self.quantity, unit_price=self.unit_price)


class OrderCreateRequest(BaseModel):
    """Request to create a Draft order"""
    customer_id: str = Field(..., min_length=1, max_length=100, description="Customer identifier")
    items: List[OrderItemCreateRequest] = Field(..., min_length=1, description="Initial order items")


class OrderCreatedResponse(BaseModel):
    id: str


class OrderItemAddedResponse(BaseModel):
    id: str = Field(..., description="ID assigned to the new item")


class OrderItemResponse(BaseModel):
    id: str
    sku: str
    quantity: int
    unit_price: str = Field(..., description="Decimal amount as string")


class OrderResponse(BaseModel):
    """Order projection returned by GET /orders/{id}"""
    id: str
    customer_id: str
    status: str = Field(..., description="Draft | Confirmed | Cancelled")
    total_amount: str = Field(..., description="Decimal amount as string")
    created_at: datetime
    updated_at: datetime
    version: int
    items: List[OrderItemResponse]

    @classmethod
    def from_domain(cls, order: Order) -> "OrderResponse":
        return cls(
            id=str(order.id),
            customer_id=order.customer_id,
            status=order.status.value,
            total_amount=str(order.total_amount),
            created_at=order.created_at,
            updated_at=order.updated_at,
            version=order.version,
            items=[
                OrderItemResponse(
                    id=str(item.id),
                    sku=item.sku,
                    quantity=item.quantity,
                    unit_price=str(item.unit_price),
                )
                for item in order.items
            ],
        )


class ActionResponse(BaseModel):
    result: str


# ============================================
# Dependencies
# ============================================

def get_order_service() -> OrderService:
    """OrderService bound to the database Unit of Work factory"""
    return OrderService(get_unit_of_work)


def _raise_for_result(result: OrderActionResult, not_found: str, invalid_state: str) -> None:
    """Translate expected business outcomes into HTTP errors"""
    if result is OrderActionResult.NOT_FOUND:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=not_found)
    if result is OrderActionResult.INVALID_STATE:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=invalid_state)


# ============================================
# Endpoints
# ============================================

@router.post("/orders", response_model=OrderCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    request: OrderCreateRequest,
    service: OrderService = Depends(get_order_service),
):
    """Create a new Draft order with items"""
    logger.info(f"Create order request - customer: {request.customer_id}, items: {len(request.items)}")

    try:
        order_id = await service.create_order(
            request.customer_id,
            [item.to_domain() for item in request.items],
        )
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating order for customer {request.customer_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while creating the order."
        )

    return OrderCreatedResponse(id=str(order_id))


@router.post("/orders/{order_id}/items", response_model=OrderItemAddedResponse)
async def add_item_to_order(
    order_id: uuid.UUID,
    request: OrderItemCreateRequest,
    service: OrderService = Depends(get_order_service),
):
    """Add an item to a Draft order"""
    logger.info(f"Add item request - order: {order_id}, sku: {request.sku}")

    try:
        item_id = await service.add_item(OrderId(order_id), request.to_domain())
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except OrderNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ConcurrencyConflictError:
        logger.warning(f"Concurrency conflict adding item to order {order_id}")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="The order was modified concurrently. Re-read it and try again."
        )
    except Exception as e:
        logger.error(f"Error adding item to order {order_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while adding the item to the order."
        )

    return OrderItemAddedResponse(id=str(item_id))


@router.get("/orders/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: uuid.UUID,
    service: OrderService = Depends(get_order_service),
):
    """Get an order with its items"""
    try:
        order = await service.get_order(OrderId(order_id))
    except Exception as e:
        logger.error(f"Error retrieving order {order_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while retrieving the order."
        )

    if order is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Order with ID '{order_id}' not found."
        )

    return OrderResponse.from_domain(order)


@router.post("/orders/{order_id}/confirm", response_model=ActionResponse)
async def confirm_order(
    order_id: uuid.UUID,
    service: OrderService = Depends(get_order_service),
):
    """Confirm a Draft order"""
    try:
        result = await service.confirm_order(OrderId(order_id))
    except ConcurrencyConflictError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="The order was modified concurrently. Re-read it and try again."
        )
    except Exception as e:
        logger.error(f"Error confirming order {order_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while confirming the order."
        )

    _raise_for_result(
        result,
        not_found=f"Order with ID '{order_id}' not found.",
        invalid_state="Order cannot be confirmed in its current state.",
    )
    return ActionResponse(result=result.value)


@router.post("/orders/{order_id}/cancel", response_model=ActionResponse)
async def cancel_order(
    order_id: uuid.UUID,
    service: OrderService = Depends(get_order_service),
):
    """Cancel a Draft order"""
    try:
        result = await service.cancel_order(OrderId(order_id))
    except ConcurrencyConflictError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="The order was modified concurrently. Re-read it and try again."
        )
    except Exception as e:
        logger.error(f"Error cancelling order {order_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while cancelling the order."
        )

    _raise_for_result(
        result,
        not_found=f"Order with ID '{order_id}' not found.",
        invalid_state="Order cannot be cancelled in its current state.",
    )
    return ActionResponse(result=result.value)


@router.delete("/orders/{order_id}/items/{item_id}", response_model=ActionResponse)
async def delete_order_item(
    order_id: uuid.UUID,
    item_id: uuid.UUID,
    service: OrderService = Depends(get_order_service),
):
    """Remove an item from a Draft order"""
    try:
        result = await service.delete_item(OrderId(order_id), OrderItemId(item_id))
    except ConcurrencyConflictError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="The order was modified concurrently. Re-read it and try again."
        )
    except Exception as e:
        logger.error(f"Error deleting item {item_id} from order {order_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while deleting the item from the order."
        )

    _raise_for_result(
        result,
        not_found=f"Order or item not found. OrderId: '{order_id}', ItemId: '{item_id}'.",
        invalid_state="Order cannot be modified in its current state.",
    )
    return ActionResponse(result=result.value)
