"""Read-side order lookups shared by customer and admin routes."""

import uuid
from typing import Optional

from services.commerce_service.errors import OrderNotFound
from services.commerce_service.models import Order, OrderStatus
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload


async def get_order(
    db: AsyncSession,
    order_id: uuid.UUID,
    *,
    customer_id: Optional[uuid.UUID] = None,
    with_history: bool = False,
) -> Order:
    """Load an order with its items.

    When ``customer_id`` is given, another customer's order is reported as
    not found.
    """
    options = [selectinload(Order.items)]
    if with_history:
        options.append(selectinload(Order.status_history))

    query = (
        select(Order)
        .where(Order.id == order_id)
        .options(*options)
        .execution_options(populate_existing=True)
    )
    if customer_id is not None:
        query = query.where(Order.customer_id == customer_id)

    order = (await db.execute(query)).scalar_one_or_none()
    if not order:
        raise OrderNotFound()
    return order


async def list_orders(
    db: AsyncSession,
    *,
    customer_id: Optional[uuid.UUID] = None,
    status: Optional[OrderStatus] = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[Order], int]:
    """Newest first. Returns ``(orders, total)``."""
    filters = []
    if customer_id is not None:
        filters.append(Order.customer_id == customer_id)
    if status is not None:
        filters.append(Order.status == status)

    total = (
        await db.execute(select(func.count(Order.id)).where(*filters))
    ).scalar_one()

    result = await db.execute(
        select(Order)
        .where(*filters)
        .options(selectinload(Order.items))
        .order_by(Order.created_at.desc(), Order.id)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return list(result.scalars().all()), total
