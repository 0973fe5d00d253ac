"""Admin order management: listing, transitions and invoices."""

import uuid
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.db.session import get_async_db, get_session_factory
from services.commerce_service.models import OrderStatus
from services.commerce_service.schemas import (
    AdminOrderDetailResponse,
    InvoiceResponse,
    OrderListResponse,
    OrderResponse,
    OrderUpdate,
)
from services.commerce_service.services import notifications, order_queries
from services.commerce_service.services.invoices import generate_invoice
from services.commerce_service.services.order_state import apply_order_update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

router = APIRouter(prefix="/admin/orders", tags=["admin-orders"])


@router.get("", response_model=OrderListResponse)
async def list_orders(
    status: Optional[OrderStatus] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    orders, total = await order_queries.list_orders(
        db, status=status, page=page, page_size=page_size
    )
    return OrderListResponse(
        orders=[OrderResponse.model_validate(o) for o in orders],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{order_id}", response_model=AdminOrderDetailResponse)
async def get_order(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await order_queries.get_order(db, order_id, with_history=True)


@router.patch("/{order_id}", response_model=AdminOrderDetailResponse)
async def update_order(
    order_id: uuid.UUID,
    data: OrderUpdate,
    background_tasks: BackgroundTasks,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """
    Apply at most one status transition and one payment transition.

    Cancelling requires ``cancelled_reason`` and returns the order's stock.
    """
    result = await apply_order_update(db, order_id, data, actor=current_user.user_id)
    await db.commit()

    if result.status_changed and get_settings().NOTIFICATIONS_ENABLED:
        background_tasks.add_task(
            notifications.process_status_change,
            order_id,
            session_factory,
            (data.notes or "").strip() or None,
        )
    return await order_queries.get_order(db, order_id, with_history=True)


@router.post("/{order_id}/invoice", response_model=InvoiceResponse)
async def regenerate_invoice(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Re-render the invoice PDF (e.g. after a delivery fee is confirmed)."""
    return InvoiceResponse(invoice_url=await generate_invoice(db, order_id))
