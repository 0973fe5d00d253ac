"""Checkout router: delivery quotes and order placement."""

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from libs.common.config import get_settings
from libs.common.rate_limit import limiter
from libs.db.session import get_async_db, get_session_factory
from services.commerce_service.dependencies import get_current_customer
from services.commerce_service.models import Customer
from services.commerce_service.schemas import (
    DeliveryFeeRequest,
    DeliveryQuoteResponse,
    OrderResponse,
    PlaceOrderRequest,
)
from services.commerce_service.services import checkout, delivery, notifications
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

settings = get_settings()
router = APIRouter(prefix="/checkout", tags=["checkout"])


@router.post("/delivery-fee", response_model=DeliveryQuoteResponse)
async def quote_delivery_fee(
    data: DeliveryFeeRequest,
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_async_db),
):
    """Quote the delivery fee for a method and (optionally) a saved address."""
    address = await checkout.load_address(db, customer.id, data.address_id)
    quote = delivery.calculate(data.delivery_method, address)
    return DeliveryQuoteResponse(
        delivery_method=quote.delivery_method,
        delivery_fee=quote.fee,
        delivery_distance_km=quote.distance_km,
        fee_note=quote.note,
        fee_pending=quote.fee_pending,
        has_coordinates=quote.has_coordinates,
        contact_us=quote.contact_us,
    )


@router.post("/place-order", response_model=OrderResponse, status_code=201)
@limiter.limit(settings.PLACE_ORDER_RATE_LIMIT)
async def place_order(
    request: Request,
    data: PlaceOrderRequest,
    background_tasks: BackgroundTasks,
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_async_db),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """Place an order from the cart.

    Stock conflicts return 409 with ``stock_issues``; the cart is left as-is
    so the customer can review it.
    """
    customer_id = customer.id
    order = await checkout.place_order(db, customer_id, data, actor=str(customer_id))

    if settings.NOTIFICATIONS_ENABLED:
        background_tasks.add_task(
            notifications.process_new_order, order.id, session_factory
        )
    return order
