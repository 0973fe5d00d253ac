"""Customer models: verified pharmacy/hospital accounts and their addresses."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.commerce_service.models.enums import CustomerStatus, enum_values
from sqlalchemy import Boolean, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import Float, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship


class Customer(Base):
    """Wholesale customers. Only approved, active accounts may order."""

    __tablename__ = "customers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    contact_name: Mapped[str] = mapped_column(String(255), nullable=False)
    business_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Verification outcome (documents are reviewed elsewhere)
    status: Mapped[CustomerStatus] = mapped_column(
        SAEnum(
            CustomerStatus,
            values_callable=enum_values,
            name="customer_status_enum",
        ),
        default=CustomerStatus.PENDING,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="true", nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    addresses = relationship(
        "CustomerAddress", back_populates="customer", cascade="all, delete-orphan"
    )

    @property
    def can_order(self) -> bool:
        return self.is_active and self.status == CustomerStatus.APPROVED

    def __repr__(self):
        return f"<Customer {self.email} status={self.status}>"


class CustomerAddress(Base):
    """Delivery addresses. Coordinates are optional and drive the delivery fee."""

    __tablename__ = "customer_addresses"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("customers.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    label: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    address_line1: Mapped[str] = mapped_column(String(255), nullable=False)
    address_line2: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    district: Mapped[str] = mapped_column(String(100), nullable=False)
    postal_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    customer = relationship("Customer", back_populates="addresses")

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def lines(self) -> list[str]:
        """Printable address lines (empty parts skipped)."""
        return [
            part
            for part in (
                self.address_line1,
                self.address_line2,
                self.city,
                self.district,
                self.postal_code,
            )
            if part
        ]

    def __repr__(self):
        return f"<CustomerAddress {self.city} customer={self.customer_id}>"
