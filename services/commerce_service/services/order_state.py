"""Order status and payment status state machines.

Every accepted transition appends an ``OrderStatusHistory`` row in the same
transaction. Rejected transitions leave the order untouched.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.commerce_service.errors import (
    CancellationReasonRequired,
    InvalidRequest,
    InvalidTransition,
    NoChanges,
    OrderNotFound,
)
from services.commerce_service.models import (
    Order,
    OrderStatus,
    OrderStatusHistory,
    PaymentStatus,
    StatusHistoryKind,
)
from services.commerce_service.schemas import OrderUpdate
from services.commerce_service.services import stock_ledger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.NEW: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PACKING, OrderStatus.CANCELLED}),
    OrderStatus.PACKING: frozenset({OrderStatus.READY, OrderStatus.CANCELLED}),
    OrderStatus.READY: frozenset({OrderStatus.DISPATCHED}),
    OrderStatus.DISPATCHED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PAID}),
    PaymentStatus.PAID: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.REFUNDED: frozenset(),
}

# Timestamp column stamped when an order enters the given status
STATUS_TIMESTAMPS = {
    OrderStatus.CONFIRMED: "confirmed_at",
    OrderStatus.DISPATCHED: "dispatched_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.CANCELLED: "cancelled_at",
}


def allowed_targets(current: OrderStatus) -> list[OrderStatus]:
    return sorted(ALLOWED_TRANSITIONS[current], key=lambda s: s.value)


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def record_history(
    db: AsyncSession,
    *,
    order_id: uuid.UUID,
    new_status: str,
    old_status: Optional[str] = None,
    kind: StatusHistoryKind = StatusHistoryKind.STATUS,
    notes: Optional[str] = None,
    actor: Optional[str] = None,
) -> OrderStatusHistory:
    entry = OrderStatusHistory(
        order_id=order_id,
        kind=kind,
        old_status=old_status,
        new_status=new_status,
        notes=notes,
        changed_by=actor,
    )
    db.add(entry)
    return entry


async def transition(
    db: AsyncSession,
    order: Order,
    target: OrderStatus,
    *,
    notes: Optional[str] = None,
    actor: Optional[str] = None,
    cancelled_reason: Optional[str] = None,
) -> Order:
    """Move ``order`` to ``target``. Cancelling credits the stock back.

    Does not commit.
    """
    current = order.status
    if not can_transition(current, target):
        raise InvalidTransition(
            current.value, target.value, [s.value for s in allowed_targets(current)]
        )

    reason = (cancelled_reason or "").strip()
    if target == OrderStatus.CANCELLED and not reason:
        raise CancellationReasonRequired()

    if target == OrderStatus.CANCELLED:
        await stock_ledger.reverse(
            db,
            order_id=order.id,
            actor=actor,
            notes=f"Order {order.order_number} cancelled",
        )
        order.cancelled_reason = reason

    order.status = target
    timestamp_field = STATUS_TIMESTAMPS.get(target)
    if timestamp_field:
        setattr(order, timestamp_field, utc_now())

    record_history(
        db,
        order_id=order.id,
        old_status=current.value,
        new_status=target.value,
        notes=notes,
        actor=actor,
    )
    logger.info(
        "Order %s status %s → %s by %s",
        order.order_number,
        current.value,
        target.value,
        actor,
    )
    return order


def transition_payment(
    db: AsyncSession,
    order: Order,
    target: PaymentStatus,
    *,
    notes: Optional[str] = None,
    actor: Optional[str] = None,
) -> Order:
    current = order.payment_status
    if target not in PAYMENT_TRANSITIONS[current]:
        raise InvalidTransition(
            current.value,
            target.value,
            sorted(s.value for s in PAYMENT_TRANSITIONS[current]),
        )

    order.payment_status = target
    record_history(
        db,
        order_id=order.id,
        kind=StatusHistoryKind.PAYMENT,
        old_status=current.value,
        new_status=target.value,
        notes=notes,
        actor=actor,
    )
    logger.info(
        "Order %s payment %s → %s by %s",
        order.order_number,
        current.value,
        target.value,
        actor,
    )
    return order


async def lock_order(db: AsyncSession, order_id: uuid.UUID) -> Order:
    """Load an order with a row lock so concurrent admin updates serialise."""
    result = await db.execute(
        select(Order)
        .where(Order.id == order_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if not order:
        raise OrderNotFound()
    return order


@dataclass
class OrderUpdateResult:
    order: Order
    old_status: Optional[OrderStatus] = None
    new_status: Optional[OrderStatus] = None
    old_payment_status: Optional[PaymentStatus] = None
    new_payment_status: Optional[PaymentStatus] = None

    @property
    def status_changed(self) -> bool:
        return self.new_status is not None


async def apply_order_update(
    db: AsyncSession,
    order_id: uuid.UUID,
    data: OrderUpdate,
    *,
    actor: Optional[str] = None,
) -> OrderUpdateResult:
    """Apply an admin PATCH: at most one status and one payment transition.

    Fields are acted on only if present in the request. Does not commit.
    """
    provided = data.model_fields_set
    if "status" in provided and data.status is None:
        raise InvalidRequest("status cannot be null")
    if "payment_status" in provided and data.payment_status is None:
        raise InvalidRequest("payment_status cannot be null")

    wants_status = data.status is not None
    wants_payment = data.payment_status is not None
    wants_admin_notes = "admin_notes" in provided
    if not (wants_status or wants_payment or wants_admin_notes):
        raise NoChanges()

    order = await lock_order(db, order_id)
    result = OrderUpdateResult(order=order)
    notes = (data.notes or "").strip() or None

    if wants_status:
        result.old_status = order.status
        await transition(
            db,
            order,
            data.status,
            notes=notes,
            actor=actor,
            cancelled_reason=data.cancelled_reason,
        )
        result.new_status = order.status

    if wants_payment:
        result.old_payment_status = order.payment_status
        transition_payment(db, order, data.payment_status, notes=notes, actor=actor)
        result.new_payment_status = order.payment_status

    if wants_admin_notes:
        order.admin_notes = (data.admin_notes or "").strip() or None

    return result
