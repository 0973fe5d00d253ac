"""Re-add a past order's items to the customer's cart."""

import uuid
from dataclasses import dataclass, field
from typing import Optional

from libs.common.logging import get_logger
from services.commerce_service.errors import InvalidRequest
from services.commerce_service.models import CartItem, Product
from services.commerce_service.services.order_queries import get_order
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

UNAVAILABLE = "unavailable"
OUT_OF_STOCK = "out_of_stock"
QUANTITY_REDUCED = "quantity_reduced"


@dataclass
class ReorderWarning:
    product_name: str
    reason: str
    original_quantity: Optional[int] = None
    added_quantity: Optional[int] = None


@dataclass
class ReorderResult:
    items_added: int = 0
    warnings: list[ReorderWarning] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.items_added > 0


async def reorder(
    db: AsyncSession, customer_id: uuid.UUID, order_id: uuid.UUID
) -> ReorderResult:
    """Add each historical line to the cart, clamped to what is in stock.

    Unavailable lines are reported, never raised. Quantities accumulate on
    lines already in the cart so the cart never exceeds stock.
    """
    order = await get_order(db, order_id, customer_id=customer_id)
    if not order.items:
        raise InvalidRequest("Order has no items")

    product_ids = [item.product_id for item in order.items]
    products = {
        product.id: product
        for product in (
            await db.execute(
                select(Product)
                .where(Product.id.in_(product_ids))
                .execution_options(populate_existing=True)
            )
        ).scalars()
    }
    cart = {
        item.product_id: item
        for item in (
            await db.execute(
                select(CartItem).where(CartItem.customer_id == customer_id)
            )
        ).scalars()
    }

    result = ReorderResult()
    clamped = False
    for line in order.items:
        product = products.get(line.product_id)
        if product is None or not product.is_cartable:
            result.warnings.append(ReorderWarning(line.product_name, UNAVAILABLE))
            continue
        if product.stock_quantity <= 0:
            result.warnings.append(ReorderWarning(line.product_name, OUT_OF_STOCK))
            continue

        existing = cart.get(product.id)
        in_cart = existing.quantity if existing else 0
        room = product.stock_quantity - in_cart
        if room <= 0:
            # The cart line itself may be above what is left
            if in_cart > product.stock_quantity:
                existing.quantity = product.stock_quantity
                clamped = True
            result.warnings.append(ReorderWarning(line.product_name, OUT_OF_STOCK))
            continue

        to_add = min(line.quantity, room)
        if to_add < line.quantity:
            result.warnings.append(
                ReorderWarning(
                    line.product_name,
                    QUANTITY_REDUCED,
                    original_quantity=line.quantity,
                    added_quantity=to_add,
                )
            )

        if existing:
            existing.quantity = in_cart + to_add
        else:
            cart[product.id] = CartItem(
                customer_id=customer_id, product_id=product.id, quantity=to_add
            )
            db.add(cart[product.id])
        result.items_added += 1

    if result.items_added or clamped:
        await db.commit()
    logger.info(
        "Reorder of %s by customer %s: added=%d warnings=%d",
        order.order_number,
        customer_id,
        result.items_added,
        len(result.warnings),
    )
    return result
