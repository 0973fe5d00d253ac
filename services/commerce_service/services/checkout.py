"""Order placement: turn a customer's cart into an order.

Flow per attempt:

1. Load the cart and reconcile it against current products. Any drift is a
   StockConflict; the customer re-confirms on the cart page.
2. Deduct stock for each line, in cart order, through the stock ledger.
3. Price the order, insert it with its items and initial history row, and
   link the deduction movements to it.
4. Clear the cart and commit.

Steps 2-4 share one transaction. Lock errors and order-number collisions
roll back and retry up to ``CHECKOUT_MAX_ATTEMPTS`` times.
"""

import asyncio
import uuid
from decimal import Decimal
from typing import Optional

from libs.common.config import get_settings
from libs.common.datetime_utils import store_today
from libs.common.logging import get_logger
from services.commerce_service.errors import (
    AddressNotFound,
    AddressRequired,
    EmptyCart,
    InsufficientStock,
    IntegrityViolation,
    InvalidRequest,
    StockConflict,
    TransientError,
)
from services.commerce_service.models import (
    CustomerAddress,
    Order,
    OrderItem,
    OrderStatus,
    PaymentStatus,
    StockMovementReason,
)
from services.commerce_service.schemas import PlaceOrderRequest
from services.commerce_service.services import delivery, stock_ledger
from services.commerce_service.services.cart import clear_cart
from services.commerce_service.services.cart_reconciler import load_cart, reconcile
from services.commerce_service.services.order_queries import get_order
from services.commerce_service.services.order_state import record_history
from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

STOCK_CONFLICT_MESSAGE = (
    "Some items exceed available stock. "
    "Please return to your cart and adjust quantities."
)


def is_retryable(exc: DBAPIError) -> bool:
    """Consistency faults worth another attempt."""
    if isinstance(exc, IntegrityError):
        return "order_number" in str(exc.orig)
    if isinstance(exc, OperationalError):
        return True
    return bool(exc.connection_invalidated)


def validate_request(request: PlaceOrderRequest) -> None:
    if request.delivery_method.requires_address and not request.delivery_address_id:
        raise AddressRequired()
    if (
        request.preferred_delivery_date is not None
        and request.preferred_delivery_date < store_today()
    ):
        raise InvalidRequest("Delivery date cannot be in the past")


async def load_address(
    db: AsyncSession, customer_id: uuid.UUID, address_id: Optional[uuid.UUID]
) -> Optional[CustomerAddress]:
    if address_id is None:
        return None
    result = await db.execute(
        select(CustomerAddress).where(
            CustomerAddress.id == address_id,
            CustomerAddress.customer_id == customer_id,
        )
    )
    address = result.scalar_one_or_none()
    if not address:
        raise AddressNotFound()
    return address


async def place_order(
    db: AsyncSession,
    customer_id: uuid.UUID,
    request: PlaceOrderRequest,
    *,
    actor: Optional[str] = None,
) -> Order:
    """Place an order from the customer's cart and return it with its items."""
    settings = get_settings()
    validate_request(request)

    attempt = 0
    while True:
        attempt += 1
        try:
            order_id = await _place_order_once(db, customer_id, request, actor=actor)
            break
        except DBAPIError as exc:
            await db.rollback()
            if not is_retryable(exc):
                raise
            if attempt >= settings.CHECKOUT_MAX_ATTEMPTS:
                logger.error(
                    "Checkout for customer %s failed after %d attempts: %s",
                    customer_id,
                    attempt,
                    exc.orig,
                )
                raise TransientError() from exc
            logger.warning(
                "Checkout attempt %d for customer %s hit %s, retrying",
                attempt,
                customer_id,
                type(exc).__name__,
            )
            await asyncio.sleep(settings.CHECKOUT_RETRY_BACKOFF_SECONDS * attempt)
        except Exception:
            await db.rollback()
            raise

    return await get_order(db, order_id)


async def _place_order_once(
    db: AsyncSession,
    customer_id: uuid.UUID,
    request: PlaceOrderRequest,
    *,
    actor: Optional[str],
) -> uuid.UUID:
    settings = get_settings()
    address = await load_address(db, customer_id, request.delivery_address_id)

    lines = await load_cart(db, customer_id)
    if not lines:
        raise EmptyCart()

    reconciled = reconcile(lines)
    if not reconciled.clean_items:
        raise EmptyCart("Your cart is empty or all items are unavailable")
    # Dropped lines stay out of the order; clamped ones need re-confirming
    if reconciled.adjusted:
        raise StockConflict(reconciled.stock_issues(), STOCK_CONFLICT_MESSAGE)

    # Deduct stock in cart order; the first shortfall aborts everything
    movements = []
    for line in reconciled.clean_items:
        try:
            movement = await stock_ledger.reserve_and_deduct(
                db,
                product_id=line.product.id,
                quantity=line.quantity,
                reason=StockMovementReason.SALE,
                actor=actor,
            )
        except InsufficientStock as exc:
            raise StockConflict([exc.as_issue()], STOCK_CONFLICT_MESSAGE) from exc
        movements.append(movement)

    quote = delivery.calculate(request.delivery_method, address)

    order = Order(
        id=uuid.uuid4(),
        order_number=Order.generate_order_number(
            settings.ORDER_NUMBER_PREFIX, store_today()
        ),
        customer_id=customer_id,
        status=OrderStatus.NEW,
        payment_status=PaymentStatus.PENDING,
        delivery_method=request.delivery_method,
        delivery_address_id=address.id if address else None,
        delivery_distance_km=quote.distance_km,
        delivery_fee_pending=quote.fee_pending,
        preferred_delivery_date=request.preferred_delivery_date,
        payment_method=request.payment_method,
        order_notes=request.order_notes,
        subtotal=Decimal("0.00"),
        delivery_fee=quote.fee,
        total=quote.fee,
    )

    items = []
    for position, line in enumerate(reconciled.clean_items, start=1):
        product = line.product
        items.append(
            OrderItem(
                order_id=order.id,
                product_id=product.id,
                position=position,
                product_name=product.display_name,
                product_generic_name=product.generic_name,
                product_sku=product.sku,
                quantity=line.quantity,
                unit_price=product.wholesale_price,
                total_price=product.wholesale_price * line.quantity,
            )
        )

    order.subtotal = sum(
        (item.unit_price * item.quantity for item in items),
        Decimal("0.00"),
    )
    order.total = order.subtotal + order.delivery_fee
    verify_totals(order, items)

    db.add(order)
    await db.flush()
    db.add_all(items)
    record_history(
        db,
        order_id=order.id,
        new_status=OrderStatus.NEW.value,
        notes="Order placed",
        actor=actor,
    )
    for movement in movements:
        movement.order_id = order.id
        movement.notes = f"Order {order.order_number}"

    await clear_cart(db, customer_id)
    await db.commit()

    logger.info(
        "Placed order %s for customer %s: %d items, subtotal=%s fee=%s total=%s",
        order.order_number,
        customer_id,
        len(items),
        order.subtotal,
        order.delivery_fee,
        order.total,
    )
    return order.id


def verify_totals(order: Order, items: list[OrderItem]) -> None:
    """Refuse to persist an order whose totals do not add up."""
    for item in items:
        if item.total_price != item.unit_price * item.quantity:
            raise _violation(f"line {item.product_id} total mismatch")
    if order.subtotal != sum((item.total_price for item in items), Decimal("0")):
        raise _violation(f"order {order.order_number} subtotal mismatch")
    if order.total != order.subtotal + order.delivery_fee:
        raise _violation(f"order {order.order_number} total mismatch")


def _violation(detail: str) -> IntegrityViolation:
    logger.critical("Checkout integrity check failed: %s", detail)
    return IntegrityViolation(detail)
