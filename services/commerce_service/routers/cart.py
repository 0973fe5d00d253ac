"""Cart router: view and edit the current customer's cart."""

import uuid

from fastapi import APIRouter, Depends
from libs.db.session import get_async_db
from services.commerce_service.dependencies import get_current_customer
from services.commerce_service.models import Customer
from services.commerce_service.schemas import (
    CartCountResponse,
    CartItemCreate,
    CartItemResponse,
    CartItemUpdate,
    CartMutationResponse,
    CartProductSummary,
    CartResponse,
    ReconcileWarningResponse,
)
from services.commerce_service.services import cart as cart_service
from services.commerce_service.services.cart_reconciler import CartLine
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/cart", tags=["cart"])


def line_response(line: CartLine) -> CartItemResponse:
    return CartItemResponse(
        id=line.item.id,
        product_id=line.item.product_id,
        quantity=line.quantity,
        product=CartProductSummary.model_validate(line.product),
        line_total=line.line_total,
    )


@router.get("", response_model=CartResponse)
async def get_cart(
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_async_db),
):
    """Get the cart, revalidated against current stock."""
    view = await cart_service.list_cart(db, customer.id)
    return CartResponse(
        items=[line_response(line) for line in view.lines],
        warnings=[
            ReconcileWarningResponse(
                product_id=w.product_id,
                product_name=w.product_name,
                reason=w.reason,
                old_quantity=w.old_quantity,
                new_quantity=w.new_quantity,
            )
            for w in view.warnings
        ],
        subtotal=view.subtotal,
        item_count=view.item_count,
    )


@router.get("/count", response_model=CartCountResponse)
async def get_cart_count(
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_async_db),
):
    return CartCountResponse(count=await cart_service.count_items(db, customer.id))


@router.post("", response_model=CartMutationResponse, status_code=201)
async def add_to_cart(
    data: CartItemCreate,
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_async_db),
):
    """Add a product to the cart (quantity is clamped to stock)."""
    line, clamped = await cart_service.add_item(
        db, customer.id, data.product_id, data.quantity
    )
    return CartMutationResponse(
        item=line_response(line),
        clamped=clamped,
        message=f"Only {line.quantity} available" if clamped else None,
    )


@router.patch("/{item_id}", response_model=CartMutationResponse)
async def update_cart_item(
    item_id: uuid.UUID,
    data: CartItemUpdate,
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_async_db),
):
    """Change a line's quantity."""
    line, clamped = await cart_service.update_item(
        db, customer.id, item_id, data.quantity
    )
    return CartMutationResponse(
        item=line_response(line),
        clamped=clamped,
        message=f"Only {line.quantity} available" if clamped else None,
    )


@router.delete("/{item_id}")
async def remove_cart_item(
    item_id: uuid.UUID,
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_async_db),
):
    await cart_service.remove_item(db, customer.id, item_id)
    return {"success": True}
