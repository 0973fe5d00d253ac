"""Post-commit side effects for orders: invoices and emails.

These run as background tasks after the response is sent. Each step is
isolated; a failure is logged and never reaches the order or the caller.
"""

import uuid
from typing import Optional

from libs.common.config import get_settings
from libs.common.emails.client import get_email_client
from libs.common.logging import get_logger
from libs.common.pdf import format_money
from services.commerce_service.models import Order
from services.commerce_service.services.invoices import (
    generate_invoice,
    load_invoice_order,
)
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = get_logger(__name__)


def order_template_data(order: Order) -> dict:
    settings = get_settings()
    money = lambda value: format_money(value, settings.CURRENCY_PREFIX)  # noqa: E731
    customer = order.customer
    return {
        "store_name": settings.STORE_NAME,
        "order_number": order.order_number,
        "customer_name": customer.contact_name,
        "business_name": customer.business_name,
        "status": order.status.value,
        "delivery_method": order.delivery_method.value,
        "payment_method": order.payment_method.value,
        "items": [
            {
                "name": item.product_name,
                "quantity": item.quantity,
                "unit_price": money(item.unit_price),
                "total_price": money(item.total_price),
            }
            for item in order.items
        ],
        "subtotal": money(order.subtotal),
        "delivery_fee": money(order.delivery_fee),
        "delivery_fee_pending": order.delivery_fee_pending,
        "total": money(order.total),
        "invoice_url": order.invoice_url,
    }


async def process_new_order(
    order_id: uuid.UUID, session_factory: async_sessionmaker[AsyncSession]
) -> None:
    """Generate the invoice, then email the customer and the admin inbox."""
    settings = get_settings()
    async with session_factory() as db:
        try:
            await generate_invoice(db, order_id)
        except Exception as e:
            await db.rollback()
            logger.error("Invoice generation failed for order %s: %s", order_id, e)

        try:
            order = await load_invoice_order(db, order_id)
            data = order_template_data(order)
        except Exception as e:
            logger.error("Could not load order %s for notifications: %s", order_id, e)
            return

        email_client = get_email_client()
        try:
            await email_client.send_template(
                template_type="order_confirmation",
                to_email=order.customer.email,
                template_data=data,
            )
        except Exception as e:
            logger.error("Failed to send order confirmation email: %s", e)

        try:
            await email_client.send_template(
                template_type="admin_new_order",
                to_email=settings.ADMIN_EMAIL,
                template_data=data,
            )
        except Exception as e:
            logger.error("Failed to send admin new-order email: %s", e)


async def process_status_change(
    order_id: uuid.UUID,
    session_factory: async_sessionmaker[AsyncSession],
    notes: Optional[str] = None,
) -> None:
    """Tell the customer their order moved to a new status."""
    try:
        async with session_factory() as db:
            order = await load_invoice_order(db, order_id)
            data = order_template_data(order)
            data["notes"] = notes
            if order.cancelled_reason:
                data["cancelled_reason"] = order.cancelled_reason
            await get_email_client().send_template(
                template_type="order_status_update",
                to_email=order.customer.email,
                template_data=data,
            )
    except Exception as e:
        logger.error("Failed to send status update for order %s: %s", order_id, e)
