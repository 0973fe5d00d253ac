"""Catalog models read by the order engine."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.commerce_service.models.enums import ProductSection, enum_values
from sqlalchemy import Boolean, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship


class Product(Base):
    """Wholesale products.

    ``stock_quantity`` is owned by the stock ledger: it only changes through
    ``services.stock_ledger`` so that it always equals the sum of the
    product's stock movements.
    """

    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )

    # Basic info
    generic_name: Mapped[str] = mapped_column(String(255), nullable=False)
    brand_name: Mapped[str] = mapped_column(String(255), nullable=False)
    strength: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    pack_size: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    sku: Mapped[Optional[str]] = mapped_column(
        String(100), unique=True, nullable=True
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    section: Mapped[ProductSection] = mapped_column(
        SAEnum(
            ProductSection,
            values_callable=enum_values,
            name="product_section_enum",
        ),
        default=ProductSection.MEDICINES,
        nullable=False,
    )

    # Pricing
    wholesale_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # Stock
    stock_quantity: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )
    low_stock_threshold: Mapped[int] = mapped_column(
        Integer, default=10, server_default="10", nullable=False
    )
    total_sold: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )

    # Availability
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="true", nullable=False
    )
    is_visible: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="true", nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="non_negative_stock"),
        CheckConstraint("wholesale_price >= 0", name="non_negative_price"),
        CheckConstraint("total_sold >= 0", name="non_negative_total_sold"),
    )

    movements = relationship("StockMovement", back_populates="product")

    @property
    def display_name(self) -> str:
        """Name snapshotted onto order lines."""
        return f"{self.generic_name} ({self.brand_name})"

    @property
    def is_orderable(self) -> bool:
        return self.is_active and self.is_visible

    @property
    def is_cartable(self) -> bool:
        """SPC items are priced on request and never go through the cart."""
        return self.is_orderable and self.section != ProductSection.SPC

    def __repr__(self):
        return f"<Product {self.generic_name} stock={self.stock_quantity}>"
