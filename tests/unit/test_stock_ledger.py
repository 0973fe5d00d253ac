"""Unit tests for the stock ledger.

Tests call stock_ledger functions directly with the db_session fixture.
"""

import uuid

import pytest
from services.commerce_service.errors import (
    InsufficientStock,
    InvalidRequest,
    ProductNotFound,
    WouldGoNegative,
)
from services.commerce_service.models import Product, StockMovement, StockMovementReason
from services.commerce_service.services import stock_ledger
from sqlalchemy import select, update
from tests.factories import stock_product


async def _reload(db, product_id) -> Product:
    result = await db.execute(
        select(Product)
        .where(Product.id == product_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def _movements(db, product_id) -> list[StockMovement]:
    result = await db.execute(
        select(StockMovement)
        .where(StockMovement.product_id == product_id)
        .order_by(StockMovement.created_at, StockMovement.id)
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# reserve_and_deduct
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_deduct_records_snapshot_and_total_sold(db_session):
    product = await stock_product(db_session, stock=10)
    order_id = uuid.uuid4()

    movement = await stock_ledger.reserve_and_deduct(
        db_session, product_id=product.id, quantity=3, order_id=order_id
    )
    await db_session.commit()

    assert movement.quantity_change == -3
    assert movement.quantity_before == 10
    assert movement.quantity_after == 7
    assert movement.reason == StockMovementReason.SALE
    assert movement.order_id == order_id

    product = await _reload(db_session, product.id)
    assert product.stock_quantity == 7
    assert product.total_sold == 3


@pytest.mark.asyncio
@pytest.mark.unit
async def test_deduct_exact_stock_reaches_zero(db_session):
    product = await stock_product(db_session, stock=4)

    await stock_ledger.reserve_and_deduct(db_session, product_id=product.id, quantity=4)
    await db_session.commit()

    assert (await _reload(db_session, product.id)).stock_quantity == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_deduct_insufficient_leaves_stock_untouched(db_session):
    product = await stock_product(db_session, stock=2)
    product_id = product.id

    with pytest.raises(InsufficientStock) as exc_info:
        await stock_ledger.reserve_and_deduct(
            db_session, product_id=product.id, quantity=5
        )

    assert exc_info.value.requested == 5
    assert exc_info.value.available == 2
    assert exc_info.value.as_issue()["product_name"] == "Paracetamol (Panadol)"
    await db_session.rollback()

    assert (await _reload(db_session, product_id)).stock_quantity == 2
    assert len(await _movements(db_session, product_id)) == 1  # opening stock only


@pytest.mark.asyncio
@pytest.mark.unit
async def test_damage_deduction_does_not_count_as_sold(db_session):
    product = await stock_product(db_session, stock=5)

    await stock_ledger.reserve_and_deduct(
        db_session,
        product_id=product.id,
        quantity=2,
        reason=StockMovementReason.DAMAGE,
    )
    await db_session.commit()

    product = await _reload(db_session, product.id)
    assert product.stock_quantity == 3
    assert product.total_sold == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_deduct_rejects_non_positive_quantity(db_session):
    product = await stock_product(db_session, stock=5)

    with pytest.raises(InvalidRequest):
        await stock_ledger.reserve_and_deduct(
            db_session, product_id=product.id, quantity=0
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_deduct_unknown_product(db_session):
    with pytest.raises(ProductNotFound):
        await stock_ledger.reserve_and_deduct(
            db_session, product_id=uuid.uuid4(), quantity=1
        )


# ---------------------------------------------------------------------------
# reverse
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reverse_credits_each_deduction_once(db_session):
    first = await stock_product(db_session, stock=10)
    second = await stock_product(db_session, stock=6, generic_name="Amoxicillin")
    order_id = uuid.uuid4()

    await stock_ledger.reserve_and_deduct(
        db_session, product_id=first.id, quantity=4, order_id=order_id
    )
    await stock_ledger.reserve_and_deduct(
        db_session, product_id=second.id, quantity=1, order_id=order_id
    )
    await db_session.commit()

    credits = await stock_ledger.reverse(db_session, order_id=order_id, actor="admin")
    await db_session.commit()

    assert len(credits) == 2
    assert all(c.reason == StockMovementReason.RETURN for c in credits)
    assert all(c.reverses_movement_id is not None for c in credits)

    first = await _reload(db_session, first.id)
    second = await _reload(db_session, second.id)
    assert first.stock_quantity == 10
    assert first.total_sold == 0
    assert second.stock_quantity == 6

    # Second call finds nothing left to reverse
    again = await stock_ledger.reverse(db_session, order_id=order_id)
    await db_session.commit()
    assert again == []
    assert (await _reload(db_session, first.id)).stock_quantity == 10


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reverse_without_movements_is_noop(db_session):
    assert await stock_ledger.reverse(db_session, order_id=uuid.uuid4()) == []


# ---------------------------------------------------------------------------
# adjust
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_adjust_positive_and_negative(db_session):
    product = await stock_product(db_session, stock=5)

    up = await stock_ledger.adjust(
        db_session,
        product_id=product.id,
        quantity_change=20,
        reason=StockMovementReason.PURCHASE,
        actor="admin",
    )
    down = await stock_ledger.adjust(
        db_session,
        product_id=product.id,
        quantity_change=-3,
        reason=StockMovementReason.EXPIRED,
        notes="Batch 42 expired",
    )
    await db_session.commit()

    assert (up.quantity_before, up.quantity_after) == (5, 25)
    assert (down.quantity_before, down.quantity_after) == (25, 22)
    assert down.notes == "Batch 42 expired"
    assert (await _reload(db_session, product.id)).stock_quantity == 22


@pytest.mark.asyncio
@pytest.mark.unit
async def test_adjust_below_zero_rejected(db_session):
    product = await stock_product(db_session, stock=3)
    product_id = product.id

    with pytest.raises(WouldGoNegative) as exc_info:
        await stock_ledger.adjust(
            db_session,
            product_id=product.id,
            quantity_change=-4,
            reason=StockMovementReason.DAMAGE,
        )

    assert exc_info.value.extra["current_stock"] == 3
    await db_session.rollback()
    assert (await _reload(db_session, product_id)).stock_quantity == 3


@pytest.mark.asyncio
@pytest.mark.unit
async def test_adjust_zero_rejected(db_session):
    product = await stock_product(db_session, stock=3)

    with pytest.raises(InvalidRequest):
        await stock_ledger.adjust(
            db_session,
            product_id=product.id,
            quantity_change=0,
            reason=StockMovementReason.OTHER,
        )


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_ledger_replays_to_current_stock(db_session):
    product = await stock_product(db_session, stock=12)
    order_id = uuid.uuid4()

    await stock_ledger.reserve_and_deduct(
        db_session, product_id=product.id, quantity=5, order_id=order_id
    )
    await stock_ledger.reverse(db_session, order_id=order_id)
    await stock_ledger.adjust(
        db_session,
        product_id=product.id,
        quantity_change=-2,
        reason=StockMovementReason.COUNT_CORRECTION,
    )
    await db_session.commit()

    assert await stock_ledger.ledger_balance(db_session, product.id) == 10
    checked, drifted = await stock_ledger.reconcile_ledger(db_session)
    assert checked == 1
    assert drifted == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reconcile_reports_drift(db_session):
    product = await stock_product(db_session, stock=8)
    clean = await stock_product(db_session, stock=3, generic_name="Cetirizine")

    # Simulate an out-of-band write that bypassed the ledger
    await db_session.execute(
        update(Product).where(Product.id == product.id).values(stock_quantity=11)
    )
    await db_session.commit()

    checked, drifted = await stock_ledger.reconcile_ledger(db_session)

    assert checked == 2
    assert len(drifted) == 1
    assert drifted[0].product_id == product.id
    assert drifted[0].ledger_balance == 8
    assert drifted[0].drift == 3

    checked, drifted = await stock_ledger.reconcile_ledger(
        db_session, product_ids=[clean.id]
    )
    assert (checked, drifted) == (1, [])
