"""Cart reconciliation against current product state.

``reconcile`` is pure: it decides what a cart should look like given the
latest products and reports why. ``apply_reconciliation`` persists that
decision for the cart page. Checkout places unavailable lines aside and
blocks only on lines whose quantity no longer fits the stock.
"""

import uuid
from dataclasses import dataclass, field
from typing import Optional

from services.commerce_service.models import CartItem, Product
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

PRODUCT_UNAVAILABLE = "product_unavailable"
OUT_OF_STOCK = "out_of_stock"
QUANTITY_REDUCED = "quantity_reduced"


@dataclass
class CartLine:
    """A cart item paired with its freshly loaded product (None if deleted)."""

    item: CartItem
    product: Optional[Product]
    quantity: int

    @property
    def line_total(self):
        return self.product.wholesale_price * self.quantity


@dataclass
class ReconcileWarning:
    product_id: uuid.UUID
    product_name: Optional[str]
    reason: str
    old_quantity: int
    new_quantity: Optional[int] = None


@dataclass
class ReconcileResult:
    clean_items: list[CartLine] = field(default_factory=list)
    warnings: list[ReconcileWarning] = field(default_factory=list)
    removed_ids: list[uuid.UUID] = field(default_factory=list)
    adjusted: dict[uuid.UUID, int] = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return bool(self.removed_ids or self.adjusted)

    def stock_issues(self) -> list[dict]:
        """Clamped lines in the checkout conflict shape.

        Dropped lines are not issues: checkout leaves them out of the order.
        """
        return [
            {
                "product_id": str(w.product_id),
                "product_name": w.product_name,
                "requested": w.old_quantity,
                "available": w.new_quantity,
            }
            for w in self.warnings
            if w.reason == QUANTITY_REDUCED
        ]


async def load_cart(db: AsyncSession, customer_id: uuid.UUID) -> list[CartLine]:
    """Load a customer's cart in insertion order with current product rows."""
    result = await db.execute(
        select(CartItem, Product)
        .outerjoin(Product, Product.id == CartItem.product_id)
        .where(CartItem.customer_id == customer_id)
        .order_by(CartItem.created_at, CartItem.id)
        .execution_options(populate_existing=True)
    )
    return [
        CartLine(item=item, product=product, quantity=item.quantity)
        for item, product in result.all()
    ]


def reconcile(lines: list[CartLine]) -> ReconcileResult:
    result = ReconcileResult()
    for line in lines:
        item, product = line.item, line.product

        if product is None or not product.is_cartable:
            result.removed_ids.append(item.id)
            result.warnings.append(
                ReconcileWarning(
                    product_id=item.product_id,
                    product_name=product.display_name if product else None,
                    reason=PRODUCT_UNAVAILABLE,
                    old_quantity=item.quantity,
                )
            )
            continue

        if product.stock_quantity <= 0:
            result.removed_ids.append(item.id)
            result.warnings.append(
                ReconcileWarning(
                    product_id=product.id,
                    product_name=product.display_name,
                    reason=OUT_OF_STOCK,
                    old_quantity=item.quantity,
                )
            )
            continue

        if product.stock_quantity < item.quantity:
            result.adjusted[item.id] = product.stock_quantity
            result.warnings.append(
                ReconcileWarning(
                    product_id=product.id,
                    product_name=product.display_name,
                    reason=QUANTITY_REDUCED,
                    old_quantity=item.quantity,
                    new_quantity=product.stock_quantity,
                )
            )
            result.clean_items.append(
                CartLine(item=item, product=product, quantity=product.stock_quantity)
            )
            continue

        result.clean_items.append(
            CartLine(item=item, product=product, quantity=item.quantity)
        )
    return result


async def apply_reconciliation(db: AsyncSession, result: ReconcileResult) -> None:
    """Persist removals and clamps. Does not commit."""
    if result.removed_ids:
        await db.execute(
            delete(CartItem)
            .where(CartItem.id.in_(result.removed_ids))
            .execution_options(synchronize_session=False)
        )
    for line in result.clean_items:
        if line.item.id in result.adjusted:
            line.item.quantity = line.quantity
    await db.flush()
