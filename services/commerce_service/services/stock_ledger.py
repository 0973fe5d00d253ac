"""Stock ledger: atomic stock changes with an append-only movement log.

Every change to ``Product.stock_quantity`` goes through this module. Each
change is a single conditional ``UPDATE ... RETURNING`` (compare-and-swap on
the row) followed by a ``StockMovement`` snapshotting the before/after
quantities. Nothing here commits; callers own the transaction.
"""

import uuid
from dataclasses import dataclass
from typing import Iterable, Optional

from libs.common.logging import get_logger
from services.commerce_service.errors import (
    InsufficientStock,
    InvalidRequest,
    ProductNotFound,
    WouldGoNegative,
)
from services.commerce_service.models import (
    Product,
    StockMovement,
    StockMovementReason,
)
from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

logger = get_logger(__name__)


@dataclass(frozen=True)
class LedgerDrift:
    product_id: uuid.UUID
    product_name: str
    stock_quantity: int
    ledger_balance: int

    @property
    def drift(self) -> int:
        return self.stock_quantity - self.ledger_balance


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


async def _apply_change(
    db: AsyncSession,
    product_id: uuid.UUID,
    quantity_change: int,
    *,
    sold_delta: int = 0,
) -> Optional[int]:
    """Apply ``quantity_change`` if the result stays non-negative.

    Returns the new stock quantity, or None when no row matched (unknown
    product or not enough stock).
    """
    values = {"stock_quantity": Product.stock_quantity + quantity_change}
    if sold_delta > 0:
        values["total_sold"] = Product.total_sold + sold_delta
    elif sold_delta < 0:
        values["total_sold"] = case(
            (Product.total_sold >= -sold_delta, Product.total_sold + sold_delta),
            else_=0,
        )

    stmt = update(Product).where(Product.id == product_id)
    if quantity_change < 0:
        stmt = stmt.where(Product.stock_quantity >= -quantity_change)
    stmt = (
        stmt.values(**values)
        .returning(Product.stock_quantity)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def _load_product(db: AsyncSession, product_id: uuid.UUID) -> Optional[Product]:
    """Reload a product, overwriting any stale identity-map copy."""
    result = await db.execute(
        select(Product)
        .where(Product.id == product_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _record(
    db: AsyncSession,
    *,
    product_id: uuid.UUID,
    quantity_change: int,
    quantity_after: int,
    reason: StockMovementReason,
    order_id: Optional[uuid.UUID] = None,
    reverses_movement_id: Optional[uuid.UUID] = None,
    notes: Optional[str] = None,
    actor: Optional[str] = None,
) -> StockMovement:
    movement = StockMovement(
        product_id=product_id,
        quantity_change=quantity_change,
        quantity_before=quantity_after - quantity_change,
        quantity_after=quantity_after,
        reason=reason,
        order_id=order_id,
        reverses_movement_id=reverses_movement_id,
        notes=notes,
        created_by=actor,
    )
    db.add(movement)
    await db.flush()
    return movement


# ---------------------------------------------------------------------------
# Deduct
# ---------------------------------------------------------------------------


async def reserve_and_deduct(
    db: AsyncSession,
    *,
    product_id: uuid.UUID,
    quantity: int,
    reason: StockMovementReason = StockMovementReason.SALE,
    order_id: Optional[uuid.UUID] = None,
    notes: Optional[str] = None,
    actor: Optional[str] = None,
) -> StockMovement:
    """Atomically take ``quantity`` units out of stock.

    Raises InsufficientStock (without touching the row) when fewer than
    ``quantity`` units remain. Sales also bump ``total_sold``.
    """
    if quantity <= 0:
        raise InvalidRequest("Quantity must be positive")

    sold = quantity if reason == StockMovementReason.SALE else 0
    new_quantity = await _apply_change(db, product_id, -quantity, sold_delta=sold)
    if new_quantity is None:
        product = await _load_product(db, product_id)
        if product is None:
            raise ProductNotFound()
        logger.info(
            "Insufficient stock for product %s: requested=%d available=%d",
            product_id,
            quantity,
            product.stock_quantity,
        )
        raise InsufficientStock(
            product_id=product_id,
            product_name=product.display_name,
            requested=quantity,
            available=product.stock_quantity,
        )

    movement = await _record(
        db,
        product_id=product_id,
        quantity_change=-quantity,
        quantity_after=new_quantity,
        reason=reason,
        order_id=order_id,
        notes=notes,
        actor=actor,
    )
    logger.info(
        "Stock -%d for product %s (%s), %d→%d",
        quantity,
        product_id,
        reason.value,
        new_quantity + quantity,
        new_quantity,
    )
    return movement


# ---------------------------------------------------------------------------
# Reverse (cancellation)
# ---------------------------------------------------------------------------


async def reverse(
    db: AsyncSession,
    *,
    order_id: uuid.UUID,
    actor: Optional[str] = None,
    notes: Optional[str] = None,
) -> list[StockMovement]:
    """Credit back every deduction tied to ``order_id`` not yet reversed.

    Safe to call more than once: deductions that already have a compensating
    movement are skipped, and ``reverses_movement_id`` is unique.
    """
    compensation = aliased(StockMovement)
    result = await db.execute(
        select(StockMovement)
        .outerjoin(
            compensation, compensation.reverses_movement_id == StockMovement.id
        )
        .where(
            StockMovement.order_id == order_id,
            StockMovement.quantity_change < 0,
            StockMovement.reverses_movement_id.is_(None),
            compensation.id.is_(None),
        )
        .order_by(StockMovement.created_at, StockMovement.id)
    )
    pending = result.scalars().all()

    credits = []
    for original in pending:
        quantity = -original.quantity_change
        sold = quantity if original.reason == StockMovementReason.SALE else 0
        new_quantity = await _apply_change(
            db, original.product_id, quantity, sold_delta=-sold
        )
        if new_quantity is None:
            raise ProductNotFound()
        credits.append(
            await _record(
                db,
                product_id=original.product_id,
                quantity_change=quantity,
                quantity_after=new_quantity,
                reason=StockMovementReason.RETURN,
                order_id=order_id,
                reverses_movement_id=original.id,
                notes=notes,
                actor=actor,
            )
        )
        logger.info(
            "Stock +%d for product %s (reversal of %s), %d→%d",
            quantity,
            original.product_id,
            original.id,
            new_quantity - quantity,
            new_quantity,
        )

    if not pending:
        logger.info("No stock to reverse for order %s", order_id)
    return credits


# ---------------------------------------------------------------------------
# Manual adjustment
# ---------------------------------------------------------------------------


async def adjust(
    db: AsyncSession,
    *,
    product_id: uuid.UUID,
    quantity_change: int,
    reason: StockMovementReason,
    notes: Optional[str] = None,
    actor: Optional[str] = None,
) -> StockMovement:
    """Admin stock adjustment (purchases, write-offs, count corrections)."""
    if quantity_change == 0:
        raise InvalidRequest("quantity_change must not be zero")

    new_quantity = await _apply_change(db, product_id, quantity_change)
    if new_quantity is None:
        product = await _load_product(db, product_id)
        if product is None:
            raise ProductNotFound()
        raise WouldGoNegative(product_id, product.stock_quantity, quantity_change)

    movement = await _record(
        db,
        product_id=product_id,
        quantity_change=quantity_change,
        quantity_after=new_quantity,
        reason=reason,
        notes=notes,
        actor=actor,
    )
    logger.info(
        "Stock adjusted %+d for product %s (%s) by %s, now %d",
        quantity_change,
        product_id,
        reason.value,
        actor,
        new_quantity,
    )
    return movement


# ---------------------------------------------------------------------------
# Reconciliation (read-only)
# ---------------------------------------------------------------------------


async def ledger_balance(db: AsyncSession, product_id: uuid.UUID) -> int:
    """Sum of all movements for a product, i.e. its replayed stock level."""
    result = await db.execute(
        select(func.coalesce(func.sum(StockMovement.quantity_change), 0)).where(
            StockMovement.product_id == product_id
        )
    )
    return int(result.scalar_one())


async def reconcile_ledger(
    db: AsyncSession, product_ids: Optional[Iterable[uuid.UUID]] = None
) -> tuple[int, list[LedgerDrift]]:
    """Compare each product's stock with its replayed movement log.

    Returns ``(products_checked, drifted)``.
    """
    balances = (
        select(
            StockMovement.product_id.label("product_id"),
            func.sum(StockMovement.quantity_change).label("balance"),
        )
        .group_by(StockMovement.product_id)
        .subquery()
    )
    query = (
        select(
            Product.id,
            Product.generic_name,
            Product.brand_name,
            Product.stock_quantity,
            func.coalesce(balances.c.balance, 0),
        )
        .outerjoin(balances, balances.c.product_id == Product.id)
        .order_by(Product.generic_name, Product.id)
    )
    if product_ids is not None:
        query = query.where(Product.id.in_(list(product_ids)))

    rows = (await db.execute(query)).all()
    drifted = []
    for product_id, generic_name, brand_name, stock, balance in rows:
        if stock != balance:
            drift = LedgerDrift(
                product_id=product_id,
                product_name=f"{generic_name} ({brand_name})",
                stock_quantity=stock,
                ledger_balance=int(balance),
            )
            logger.error(
                "Ledger drift for product %s: stock=%d ledger=%d",
                product_id,
                drift.stock_quantity,
                drift.ledger_balance,
            )
            drifted.append(drift)
    return len(rows), drifted
