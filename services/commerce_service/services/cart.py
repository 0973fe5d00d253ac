"""Cart operations for approved customers.

Every quantity coming from the client is validated on its own against the
current product row; quantities are clamped to stock rather than rejected.
"""

import uuid
from dataclasses import dataclass, field
from decimal import Decimal

from libs.common.logging import get_logger
from services.commerce_service.errors import (
    CartItemNotFound,
    ProductNotFound,
    ProductUnavailable,
)
from services.commerce_service.models import CartItem, Product
from services.commerce_service.schemas import MAX_CART_QUANTITY
from services.commerce_service.services.cart_reconciler import (
    CartLine,
    ReconcileWarning,
    apply_reconciliation,
    load_cart,
    reconcile,
)
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass
class CartView:
    lines: list[CartLine] = field(default_factory=list)
    warnings: list[ReconcileWarning] = field(default_factory=list)

    @property
    def subtotal(self) -> Decimal:
        return sum((line.line_total for line in self.lines), Decimal("0.00"))

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)


async def list_cart(db: AsyncSession, customer_id: uuid.UUID) -> CartView:
    """Return the reconciled cart, persisting removals and clamps."""
    result = reconcile(await load_cart(db, customer_id))
    if result.changed:
        await apply_reconciliation(db, result)
        await db.commit()
        logger.info(
            "Reconciled cart for customer %s: removed=%d clamped=%d",
            customer_id,
            len(result.removed_ids),
            len(result.adjusted),
        )
    return CartView(lines=result.clean_items, warnings=result.warnings)


async def count_items(db: AsyncSession, customer_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.coalesce(func.sum(CartItem.quantity), 0)).where(
            CartItem.customer_id == customer_id
        )
    )
    return int(result.scalar_one())


async def _get_cartable_product(db: AsyncSession, product_id: uuid.UUID) -> Product:
    result = await db.execute(
        select(Product)
        .where(Product.id == product_id)
        .execution_options(populate_existing=True)
    )
    product = result.scalar_one_or_none()
    if not product:
        raise ProductNotFound()
    if not product.is_cartable:
        raise ProductUnavailable()
    if product.stock_quantity <= 0:
        raise ProductUnavailable("This product is out of stock")
    return product


async def _get_owned_item(
    db: AsyncSession, customer_id: uuid.UUID, item_id: uuid.UUID
) -> CartItem:
    result = await db.execute(
        select(CartItem).where(
            CartItem.id == item_id, CartItem.customer_id == customer_id
        )
    )
    item = result.scalar_one_or_none()
    if not item:
        raise CartItemNotFound()
    return item


async def add_item(
    db: AsyncSession,
    customer_id: uuid.UUID,
    product_id: uuid.UUID,
    quantity: int,
) -> tuple[CartLine, bool]:
    """Add a product, merging with an existing line.

    Returns ``(line, clamped)`` where clamped means the cumulative quantity
    was reduced to what is in stock.
    """
    product = await _get_cartable_product(db, product_id)

    result = await db.execute(
        select(CartItem).where(
            CartItem.customer_id == customer_id,
            CartItem.product_id == product_id,
        )
    )
    item = result.scalar_one_or_none()

    requested = quantity + (item.quantity if item else 0)
    limit = min(product.stock_quantity, MAX_CART_QUANTITY)
    new_quantity = min(requested, limit)

    if item:
        item.quantity = new_quantity
    else:
        item = CartItem(
            customer_id=customer_id, product_id=product_id, quantity=new_quantity
        )
        db.add(item)

    await db.commit()
    await db.refresh(item)
    return CartLine(item=item, product=product, quantity=item.quantity), (
        new_quantity < requested
    )


async def update_item(
    db: AsyncSession,
    customer_id: uuid.UUID,
    item_id: uuid.UUID,
    quantity: int,
) -> tuple[CartLine, bool]:
    """Set a line's quantity, clamped to current stock.

    A line whose product became unavailable or ran out is removed and the
    call fails with ProductUnavailable; the removal is kept.
    """
    item = await _get_owned_item(db, customer_id, item_id)
    try:
        product = await _get_cartable_product(db, item.product_id)
    except (ProductNotFound, ProductUnavailable) as exc:
        await db.delete(item)
        await db.commit()
        logger.info("Removed unavailable cart item %s: %s", item_id, exc.message)
        if isinstance(exc, ProductNotFound):
            raise ProductUnavailable() from exc
        raise

    new_quantity = min(quantity, product.stock_quantity)
    item.quantity = new_quantity
    await db.commit()
    await db.refresh(item)
    return CartLine(item=item, product=product, quantity=item.quantity), (
        new_quantity < quantity
    )


async def remove_item(
    db: AsyncSession, customer_id: uuid.UUID, item_id: uuid.UUID
) -> None:
    item = await _get_owned_item(db, customer_id, item_id)
    await db.delete(item)
    await db.commit()


async def clear_cart(db: AsyncSession, customer_id: uuid.UUID) -> None:
    """Delete every line for a customer. Does not commit."""
    await db.execute(
        delete(CartItem)
        .where(CartItem.customer_id == customer_id)
        .execution_options(synchronize_session=False)
    )
