"""Stock ledger model: append-only audit trail of every stock change."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.commerce_service.models.enums import StockMovementReason, enum_values
from sqlalchemy import CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship


class StockMovement(Base):
    """Immutable ledger row. Never updated or deleted.

    Replaying a product's movements in creation order from zero yields its
    current ``stock_quantity``.
    """

    __tablename__ = "stock_movements"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
    )

    quantity_change: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_before: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_after: Mapped[int] = mapped_column(Integer, nullable=False)

    reason: Mapped[StockMovementReason] = mapped_column(
        SAEnum(
            StockMovementReason,
            values_callable=enum_values,
            name="stock_movement_reason_enum",
        ),
        nullable=False,
    )

    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("orders.id", ondelete="RESTRICT"),
        nullable=True,
    )
    # Set on compensating movements; unique so an order can't be credited twice.
    reverses_movement_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("stock_movements.id", ondelete="RESTRICT"),
        unique=True,
        nullable=True,
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (
        CheckConstraint("quantity_change <> 0", name="non_zero_change"),
        CheckConstraint("quantity_before >= 0", name="non_negative_before"),
        CheckConstraint("quantity_after >= 0", name="non_negative_after"),
        CheckConstraint(
            "quantity_after = quantity_before + quantity_change",
            name="balanced_movement",
        ),
        Index("ix_stock_movements_product_created", "product_id", "created_at"),
        Index("ix_stock_movements_order", "order_id"),
    )

    product = relationship("Product", back_populates="movements")

    def __repr__(self):
        return (
            f"<StockMovement {self.reason} {self.quantity_change:+d} "
            f"({self.quantity_before}->{self.quantity_after})>"
        )
