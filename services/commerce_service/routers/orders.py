"""Customer order history and reorder."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.db.session import get_async_db
from services.commerce_service.dependencies import get_current_customer
from services.commerce_service.models import Customer, OrderStatus
from services.commerce_service.schemas import (
    OrderDetailResponse,
    OrderListResponse,
    OrderResponse,
    ReorderResponse,
    ReorderWarningResponse,
)
from services.commerce_service.services import order_queries
from services.commerce_service.services.reorder import reorder
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("", response_model=OrderListResponse)
async def list_my_orders(
    status: Optional[OrderStatus] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_async_db),
):
    orders, total = await order_queries.list_orders(
        db, customer_id=customer.id, status=status, page=page, page_size=page_size
    )
    return OrderListResponse(
        orders=[OrderResponse.model_validate(o) for o in orders],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{order_id}", response_model=OrderDetailResponse)
async def get_my_order(
    order_id: uuid.UUID,
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_async_db),
):
    order = await order_queries.get_order(
        db, order_id, customer_id=customer.id, with_history=True
    )
    return order


@router.post("/{order_id}/reorder", response_model=ReorderResponse)
async def reorder_items(
    order_id: uuid.UUID,
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_async_db),
):
    """Add a past order's items back into the cart."""
    result = await reorder(db, customer.id, order_id)
    return ReorderResponse(
        success=result.success,
        items_added=result.items_added,
        warnings=[
            ReorderWarningResponse(
                product_name=w.product_name,
                reason=w.reason,
                original_quantity=w.original_quantity,
                added_quantity=w.added_quantity,
            )
            for w in result.warnings
        ],
    )
