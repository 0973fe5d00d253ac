"""Unit tests for the order status and payment state machines."""

import pytest
from services.commerce_service.errors import (
    CancellationReasonRequired,
    InvalidRequest,
    InvalidTransition,
    NoChanges,
)
from services.commerce_service.models import (
    Order,
    OrderStatus,
    OrderStatusHistory,
    PaymentStatus,
    Product,
    StatusHistoryKind,
)
from services.commerce_service.schemas import OrderUpdate
from services.commerce_service.services import order_state
from services.commerce_service.services.stock_ledger import reconcile_ledger
from sqlalchemy import func, select
from tests.factories import add_customer, placed_order, stock_product

EXPECTED_TRANSITIONS = {
    OrderStatus.NEW: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PACKING, OrderStatus.CANCELLED},
    OrderStatus.PACKING: {OrderStatus.READY, OrderStatus.CANCELLED},
    OrderStatus.READY: {OrderStatus.DISPATCHED},
    OrderStatus.DISPATCHED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}


async def _history_count(db, order_id) -> int:
    result = await db.execute(
        select(func.count(OrderStatusHistory.id)).where(
            OrderStatusHistory.order_id == order_id
        )
    )
    return result.scalar_one()


async def _stock(db, product_id) -> int:
    result = await db.execute(
        select(Product.stock_quantity).where(Product.id == product_id)
    )
    return result.scalar_one()


async def _status(db, order_id) -> OrderStatus:
    result = await db.execute(select(Order.status).where(Order.id == order_id))
    return result.scalar_one()


async def _new_order(db, stock=10, quantity=3):
    customer = await add_customer(db)
    product = await stock_product(db, stock=stock)
    order = await placed_order(db, customer.id, [(product, quantity)])
    return order, product


# ---------------------------------------------------------------------------
# Transition table
# ---------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.parametrize("current", list(OrderStatus))
@pytest.mark.parametrize("target", list(OrderStatus))
def test_transition_table(current, target):
    expected = target in EXPECTED_TRANSITIONS[current]
    assert order_state.can_transition(current, target) is expected


@pytest.mark.unit
def test_payment_transitions_move_forward_only():
    assert PaymentStatus.PAID in order_state.PAYMENT_TRANSITIONS[PaymentStatus.PENDING]
    assert PaymentStatus.REFUNDED in order_state.PAYMENT_TRANSITIONS[PaymentStatus.PAID]
    assert order_state.PAYMENT_TRANSITIONS[PaymentStatus.REFUNDED] == frozenset()
    assert (
        PaymentStatus.PENDING not in order_state.PAYMENT_TRANSITIONS[PaymentStatus.PAID]
    )


# ---------------------------------------------------------------------------
# transition
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_full_lifecycle_records_history_and_timestamps(db_session):
    order, _ = await _new_order(db_session)

    for target in (
        OrderStatus.CONFIRMED,
        OrderStatus.PACKING,
        OrderStatus.READY,
        OrderStatus.DISPATCHED,
        OrderStatus.DELIVERED,
    ):
        await order_state.transition(db_session, order, target, actor="admin")
        await db_session.commit()

    assert order.status == OrderStatus.DELIVERED
    assert order.confirmed_at is not None
    assert order.dispatched_at is not None
    assert order.delivered_at is not None
    assert order.cancelled_at is None
    # "Order placed" plus five transitions
    assert await _history_count(db_session, order.id) == 6


@pytest.mark.asyncio
@pytest.mark.unit
async def test_invalid_transition_changes_nothing(db_session):
    order, _ = await _new_order(db_session)
    order_id = order.id

    with pytest.raises(InvalidTransition) as exc_info:
        await order_state.transition(db_session, order, OrderStatus.DISPATCHED)

    assert exc_info.value.extra["current"] == "new"
    assert exc_info.value.extra["allowed"] == ["cancelled", "confirmed"]
    await db_session.rollback()
    assert await _status(db_session, order_id) == OrderStatus.NEW
    assert await _history_count(db_session, order_id) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_same_status_is_invalid(db_session):
    order, _ = await _new_order(db_session)

    with pytest.raises(InvalidTransition):
        await order_state.transition(db_session, order, OrderStatus.NEW)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cancel_requires_reason(db_session):
    order, _ = await _new_order(db_session)

    with pytest.raises(CancellationReasonRequired):
        await order_state.transition(
            db_session, order, OrderStatus.CANCELLED, cancelled_reason="   "
        )
    assert order.status == OrderStatus.NEW


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cancel_restores_stock_exactly_once(db_session):
    order, product = await _new_order(db_session, stock=10, quantity=3)
    product_id = product.id
    assert await _stock(db_session, product.id) == 7

    await order_state.transition(
        db_session,
        order,
        OrderStatus.CANCELLED,
        cancelled_reason="Customer request",
        actor="admin",
    )
    await db_session.commit()

    assert order.status == OrderStatus.CANCELLED
    assert order.cancelled_reason == "Customer request"
    assert order.cancelled_at is not None
    assert await _stock(db_session, product.id) == 10

    # Cancelled is terminal; a second cancel is refused and credits nothing
    with pytest.raises(InvalidTransition):
        await order_state.transition(
            db_session, order, OrderStatus.CANCELLED, cancelled_reason="Again"
        )
    await db_session.rollback()
    assert await _stock(db_session, product_id) == 10

    _, drifted = await reconcile_ledger(db_session)
    assert drifted == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_ready_orders_cannot_be_cancelled(db_session):
    order, product = await _new_order(db_session)
    for target in (OrderStatus.CONFIRMED, OrderStatus.PACKING, OrderStatus.READY):
        await order_state.transition(db_session, order, target)
    await db_session.commit()

    with pytest.raises(InvalidTransition):
        await order_state.transition(
            db_session, order, OrderStatus.CANCELLED, cancelled_reason="Too late"
        )
    assert await _stock(db_session, product.id) == 7


# ---------------------------------------------------------------------------
# Payment
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_payment_transition_records_payment_history(db_session):
    order, _ = await _new_order(db_session)

    order_state.transition_payment(db_session, order, PaymentStatus.PAID, actor="admin")
    await db_session.commit()

    result = await db_session.execute(
        select(OrderStatusHistory).where(
            OrderStatusHistory.order_id == order.id,
            OrderStatusHistory.kind == StatusHistoryKind.PAYMENT,
        )
    )
    entry = result.scalar_one()
    assert (entry.old_status, entry.new_status) == ("pending", "paid")
    assert entry.changed_by == "admin"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_refund_requires_payment_first(db_session):
    order, _ = await _new_order(db_session)

    with pytest.raises(InvalidTransition):
        order_state.transition_payment(db_session, order, PaymentStatus.REFUNDED)
    assert order.payment_status == PaymentStatus.PENDING


# ---------------------------------------------------------------------------
# apply_order_update
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_update_applies_status_and_payment_together(db_session):
    order, _ = await _new_order(db_session)

    result = await order_state.apply_order_update(
        db_session,
        order.id,
        OrderUpdate(
            status=OrderStatus.CONFIRMED,
            payment_status=PaymentStatus.PAID,
            notes="Bank slip received",
        ),
        actor="admin",
    )
    await db_session.commit()

    assert result.status_changed
    assert (result.old_status, result.new_status) == (
        OrderStatus.NEW,
        OrderStatus.CONFIRMED,
    )
    assert result.new_payment_status == PaymentStatus.PAID
    assert await _history_count(db_session, order.id) == 3


@pytest.mark.asyncio
@pytest.mark.unit
async def test_update_admin_notes_only(db_session):
    order, _ = await _new_order(db_session)

    result = await order_state.apply_order_update(
        db_session, order.id, OrderUpdate(admin_notes="  Call before delivery ")
    )
    await db_session.commit()

    assert not result.status_changed
    refreshed = await db_session.get(Order, order.id)
    assert refreshed.admin_notes == "Call before delivery"
    assert await _history_count(db_session, order.id) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_update_without_changes_rejected(db_session):
    order, _ = await _new_order(db_session)

    with pytest.raises(NoChanges):
        await order_state.apply_order_update(
            db_session, order.id, OrderUpdate(notes="just a note")
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_update_explicit_null_status_rejected(db_session):
    order, _ = await _new_order(db_session)

    with pytest.raises(InvalidRequest):
        await order_state.apply_order_update(
            db_session, order.id, OrderUpdate.model_validate({"status": None})
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_update_invalid_payment_after_valid_status_rolls_back(db_session):
    order, _ = await _new_order(db_session)
    order_id = order.id

    with pytest.raises(InvalidTransition):
        await order_state.apply_order_update(
            db_session,
            order_id,
            OrderUpdate(
                status=OrderStatus.CONFIRMED, payment_status=PaymentStatus.REFUNDED
            ),
        )
    await db_session.rollback()

    assert await _status(db_session, order_id) == OrderStatus.NEW
    assert await _history_count(db_session, order_id) == 1
