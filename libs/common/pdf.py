"""
PDF generation utilities using ReportLab.
"""

import io
from datetime import datetime
from decimal import Decimal
from typing import Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle


def format_money(amount: Decimal, prefix: str = "Rs") -> str:
    """Format an amount as ``Rs 1,234.50``."""
    return f"{prefix} {Decimal(amount):,.2f}"


def generate_invoice_pdf(
    store_name: str,
    store_address: str,
    invoice_number: str,
    order_number: str,
    order_date: datetime,
    customer_lines: list[str],
    delivery_lines: Optional[list[str]],
    items: list[dict],  # [{"name": str, "sku": str | None, "quantity": int, "unit_price": Decimal, "total_price": Decimal}]
    subtotal: Decimal,
    delivery_fee: Decimal,
    total: Decimal,
    delivery_method: str,
    payment_method: str,
    delivery_fee_note: Optional[str] = None,
    currency_prefix: str = "Rs",
) -> bytes:
    """
    Generate an order invoice PDF.

    Returns PDF as bytes, ready to be stored or attached to an email.
    """
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=0.75 * inch,
        leftMargin=0.75 * inch,
        topMargin=0.75 * inch,
        bottomMargin=0.75 * inch,
        title=invoice_number,
    )

    styles = getSampleStyleSheet()
    elements = []

    title_style = ParagraphStyle(
        "InvoiceTitle",
        parent=styles["Heading1"],
        fontSize=22,
        textColor=colors.HexColor("#0f766e"),
        spaceAfter=4,
    )
    heading_style = ParagraphStyle(
        "InvoiceHeading",
        parent=styles["Heading2"],
        fontSize=12,
        textColor=colors.HexColor("#1e293b"),
        spaceBefore=14,
        spaceAfter=6,
    )
    normal_style = styles["Normal"]
    money = lambda value: format_money(value, currency_prefix)  # noqa: E731

    # Header
    elements.append(Paragraph(escape(store_name), title_style))
    elements.append(Paragraph(escape(store_address), normal_style))
    elements.append(Spacer(1, 16))

    meta_table = Table(
        [
            ["Invoice:", invoice_number],
            ["Order:", order_number],
            ["Date:", order_date.strftime("%B %d, %Y")],
            ["Delivery:", delivery_method.replace("_", " ").title()],
            ["Payment:", payment_method.replace("_", " ").title()],
        ],
        colWidths=[1.3 * inch, 4 * inch],
    )
    meta_table.setStyle(
        TableStyle(
            [
                ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 10),
                ("TEXTCOLOR", (0, 0), (0, -1), colors.HexColor("#64748b")),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
            ]
        )
    )
    elements.append(meta_table)

    # Bill to / ship to
    elements.append(Paragraph("Bill To", heading_style))
    for line in customer_lines:
        elements.append(Paragraph(escape(line), normal_style))
    if delivery_lines:
        elements.append(Paragraph("Deliver To", heading_style))
        for line in delivery_lines:
            elements.append(Paragraph(escape(line), normal_style))

    # Items
    elements.append(Paragraph("Items", heading_style))
    item_rows = [["Product", "SKU", "Qty", "Unit Price", "Total"]]
    for item in items:
        item_rows.append(
            [
                Paragraph(escape(item["name"]), normal_style),
                item.get("sku") or "-",
                str(item["quantity"]),
                money(item["unit_price"]),
                money(item["total_price"]),
            ]
        )
    items_table = Table(
        item_rows,
        colWidths=[2.6 * inch, 1 * inch, 0.5 * inch, 1.2 * inch, 1.2 * inch],
        repeatRows=1,
    )
    items_table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#0f766e")),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 9),
                ("ALIGN", (2, 0), (-1, -1), "RIGHT"),
                ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#e2e8f0")),
                ("PADDING", (0, 0), (-1, -1), 6),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ]
        )
    )
    elements.append(items_table)
    elements.append(Spacer(1, 12))

    # Totals
    fee_label = money(delivery_fee)
    if delivery_fee_note:
        fee_label = f"{fee_label} ({delivery_fee_note})"
    totals_table = Table(
        [
            ["Subtotal:", money(subtotal)],
            ["Delivery fee:", fee_label],
            ["Total:", money(total)],
        ],
        colWidths=[4.8 * inch, 1.7 * inch],
    )
    totals_table.setStyle(
        TableStyle(
            [
                ("ALIGN", (0, 0), (-1, -1), "RIGHT"),
                ("FONTSIZE", (0, 0), (-1, -1), 10),
                ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
                ("LINEABOVE", (0, -1), (-1, -1), 1, colors.HexColor("#1e293b")),
            ]
        )
    )
    elements.append(totals_table)
    elements.append(Spacer(1, 30))

    footer_style = ParagraphStyle(
        "Footer",
        parent=normal_style,
        fontSize=8,
        textColor=colors.HexColor("#94a3b8"),
        alignment=1,  # Center
    )
    elements.append(
        Paragraph(
            f"{escape(store_name)} &bull; Thank you for your order",
            footer_style,
        )
    )

    doc.build(elements)
    buffer.seek(0)
    return buffer.getvalue()
