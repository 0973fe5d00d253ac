"""FastAPI dependencies for customer-facing commerce routes."""

import uuid

from fastapi import Depends, HTTPException, Request, status
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.commerce_service.errors import CustomerNotEligible
from services.commerce_service.models import Customer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession


async def get_current_customer(
    request: Request,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
) -> Customer:
    """Resolve the bearer token to an active, approved customer.

    Also records the caller on ``request.state`` for per-customer rate limits.
    """
    try:
        customer_id = uuid.UUID(current_user.user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )

    result = await db.execute(select(Customer).where(Customer.id == customer_id))
    customer = result.scalar_one_or_none()
    if not customer:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Customer account not found",
        )
    if not customer.can_order:
        raise CustomerNotEligible()

    request.state.user_id = str(customer.id)
    return customer
