"""Admin stock management: adjustments, movement history, reconciliation."""

import uuid

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.commerce_service.errors import ProductNotFound
from services.commerce_service.models import Product, StockMovement
from services.commerce_service.schemas import (
    LedgerDriftResponse,
    LedgerReconciliationResponse,
    StockAdjustmentRequest,
    StockAdjustmentResponse,
    StockMovementResponse,
)
from services.commerce_service.services import stock_ledger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/admin", tags=["admin-inventory"])


@router.post("/products/{product_id}/stock", response_model=StockAdjustmentResponse)
async def adjust_stock(
    product_id: uuid.UUID,
    data: StockAdjustmentRequest,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Manually adjust stock. Goes through the ledger like every other change."""
    movement = await stock_ledger.adjust(
        db,
        product_id=product_id,
        quantity_change=data.quantity_change,
        reason=data.reason,
        notes=data.notes,
        actor=current_user.user_id,
    )
    await db.commit()
    return StockAdjustmentResponse(
        stock_quantity=movement.quantity_after,
        movement=StockMovementResponse.model_validate(movement),
    )


@router.get(
    "/products/{product_id}/movements", response_model=list[StockMovementResponse]
)
async def list_movements(
    product_id: uuid.UUID,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Movement history for a product, newest first."""
    if not await db.get(Product, product_id):
        raise ProductNotFound()
    result = await db.execute(
        select(StockMovement)
        .where(StockMovement.product_id == product_id)
        .order_by(StockMovement.created_at.desc(), StockMovement.id)
        .offset(skip)
        .limit(limit)
    )
    return result.scalars().all()


@router.get("/stock/reconciliation", response_model=LedgerReconciliationResponse)
async def reconcile_stock(
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Replay the movement log and report products whose stock has drifted."""
    checked, drifted = await stock_ledger.reconcile_ledger(db)
    return LedgerReconciliationResponse(
        products_checked=checked,
        drifted=[
            LedgerDriftResponse(
                product_id=d.product_id,
                product_name=d.product_name,
                stock_quantity=d.stock_quantity,
                ledger_balance=d.ledger_balance,
                drift=d.drift,
            )
            for d in drifted
        ],
    )
