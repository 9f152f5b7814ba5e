from celery.exceptions import CeleryError
from fastapi import APIRouter, Depends, Query, Response, status
from kombu.exceptions import OperationalError
from typing import Optional
import logging
import math

from app.dependencies import get_fulfillment_engine
from app.receipts import receipt_path, render_receipt
from app.services.fulfillment import FulfillmentEngine
from app.schemas.order import (
    OrderCreate,
    OrderResponse,
    OrderListResponse
)
from app.tasks.order_tasks import generate_receipt

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post(
    "/",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a cart as an order",
    description="""
    Submit a cart and commit it as an order.

    **Partial fulfillment:**
    Each line is resolved independently. Unknown products are dropped and
    quantities are clamped to the stock on hand, so the returned lines may
    differ from the requested ones. Only when nothing at all can be fulfilled
    is the order rejected with a 400 error.

    After the order is committed, a background Celery task writes its receipt.
    The order stands even when the task cannot be queued; its receipt is still
    available from `GET /orders/{id}/receipt`.
    """
)
def create_order(
    order_data: OrderCreate,
    engine: FulfillmentEngine = Depends(get_fulfillment_engine)
):
    """
    Submit an order.

    - **customer**: Customer identifier, defaults to "guest" (optional)
    - **account_id**: Linked account identifier (optional)
    - **contact**: Name, phone and email printed on the receipt (optional)
    - **lines**: Non-empty list of `{id, quantity}` items (required)
    """
    contact = order_data.contact.model_dump(exclude_none=True) if order_data.contact else None
    order = engine.submit_order(
        order_data.customer,
        order_data.lines,
        order_data.account_id,
        contact=contact,
    )

    # The order is committed; its receipt can still be rendered on demand
    try:
        generate_receipt.delay(order.id)
    except (OperationalError, CeleryError) as e:
        logger.error(f"Could not queue receipt for Order #{order.id}: {e}")

    return order


@router.get(
    "/",
    response_model=OrderListResponse,
    summary="List orders",
    description="Get a paginated list of orders, newest first, optionally for one customer."
)
def list_orders(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(10, ge=1, le=100, description="Items per page"),
    customer: Optional[str] = Query(None, description="Customer or account identifier"),
    engine: FulfillmentEngine = Depends(get_fulfillment_engine)
):
    """Get paginated list of orders."""
    if customer:
        orders = engine.list_customer_orders(customer)
    else:
        orders = engine.list_orders()

    orders.sort(key=lambda o: o.id, reverse=True)

    total = len(orders)
    total_pages = math.ceil(total / page_size) if total > 0 else 1
    offset = (page - 1) * page_size

    return OrderListResponse(
        items=[OrderResponse.model_validate(o) for o in orders[offset:offset + page_size]],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages
    )


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order by ID",
    description="Get detailed information about a specific order."
)
def get_order(
    order_id: int,
    engine: FulfillmentEngine = Depends(get_fulfillment_engine)
):
    """Get an order by ID."""
    return engine.get_order(order_id)


@router.get(
    "/{order_id}/receipt",
    response_class=Response,
    responses={200: {"content": {"application/pdf": {}}}},
    summary="Get order receipt",
    description="Render the receipt of an order as a PDF ticket."
)
def get_order_receipt(
    order_id: int,
    engine: FulfillmentEngine = Depends(get_fulfillment_engine)
):
    """Render an order receipt."""
    order = engine.get_order(order_id)
    return Response(
        content=render_receipt(order),
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{receipt_path(order).name}"'},
    )


@router.delete(
    "/{order_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Cancel an order",
    description="Cancel an order: its stock is returned to the catalog and the order is deleted."
)
def cancel_order(
    order_id: int,
    engine: FulfillmentEngine = Depends(get_fulfillment_engine)
):
    """Cancel an order."""
    engine.cancel_order(order_id)
    return None
