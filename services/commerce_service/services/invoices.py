"""Order invoice rendering and storage."""

import asyncio
import uuid
from pathlib import Path

from libs.common.config import get_settings
from libs.common.logging import get_logger
from libs.common.pdf import generate_invoice_pdf
from services.commerce_service.errors import OrderNotFound
from services.commerce_service.models import Customer, Order
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)


def invoice_number(order_number: str) -> str:
    return f"INV-{order_number}"


def invoice_filename(order_number: str) -> str:
    return f"{invoice_number(order_number)}.pdf"


async def load_invoice_order(db: AsyncSession, order_id: uuid.UUID) -> Order:
    result = await db.execute(
        select(Order)
        .where(Order.id == order_id)
        .options(
            selectinload(Order.items),
            selectinload(Order.customer),
            selectinload(Order.delivery_address),
        )
        .execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if not order:
        raise OrderNotFound()
    return order


def customer_lines(customer: Customer) -> list[str]:
    lines = [customer.business_name or customer.contact_name]
    if customer.business_name:
        lines.append(f"Attn: {customer.contact_name}")
    lines.append(customer.email)
    if customer.phone:
        lines.append(customer.phone)
    return lines


def render_invoice(order: Order) -> bytes:
    settings = get_settings()
    fee_note = None
    if order.delivery_fee_pending:
        fee_note = "to be confirmed"
    return generate_invoice_pdf(
        store_name=settings.STORE_NAME,
        store_address=settings.STORE_ADDRESS,
        invoice_number=invoice_number(order.order_number),
        order_number=order.order_number,
        order_date=order.created_at,
        customer_lines=customer_lines(order.customer),
        delivery_lines=order.delivery_address.lines() if order.delivery_address else None,
        items=[
            {
                "name": item.product_name,
                "sku": item.product_sku,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "total_price": item.total_price,
            }
            for item in order.items
        ],
        subtotal=order.subtotal,
        delivery_fee=order.delivery_fee,
        total=order.total,
        delivery_method=order.delivery_method.value,
        payment_method=order.payment_method.value,
        delivery_fee_note=fee_note,
        currency_prefix=settings.CURRENCY_PREFIX,
    )


async def generate_invoice(db: AsyncSession, order_id: uuid.UUID) -> str:
    """Render, store and link an order's invoice. Returns the invoice URL.

    Regenerating overwrites the stored file; the URL stays the same.
    """
    settings = get_settings()
    order = await load_invoice_order(db, order_id)
    pdf_bytes = render_invoice(order)

    filename = invoice_filename(order.order_number)
    path = Path(settings.INVOICE_STORAGE_DIR) / filename
    path.parent.mkdir(parents=True, exist_ok=True)
    await asyncio.to_thread(path.write_bytes, pdf_bytes)

    order.invoice_url = f"{settings.INVOICE_BASE_URL.rstrip('/')}/{filename}"
    await db.commit()
    logger.info(
        "Stored invoice for order %s (%d bytes) at %s",
        order.order_number,
        len(pdf_bytes),
        path,
    )
    return order.invoice_url
