"""Enum definitions for commerce service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class ProductSection(str, enum.Enum):
    MEDICINES = "medicines"
    SURGICAL = "surgical"
    EQUIPMENT = "equipment"
    SPC = "spc"  # Special category: contact-us pricing, never carted


class CustomerStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SUSPENDED = "suspended"


class OrderStatus(str, enum.Enum):
    NEW = "new"
    CONFIRMED = "confirmed"
    PACKING = "packing"
    READY = "ready"
    DISPATCHED = "dispatched"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class DeliveryMethod(str, enum.Enum):
    PICKUP = "pickup"
    STANDARD = "standard"
    EXPRESS = "express"
    HOSPITAL_NHSL = "hospital_nhsl"
    HOSPITAL_CSTH = "hospital_csth"

    @property
    def requires_address(self) -> bool:
        return self in (DeliveryMethod.STANDARD, DeliveryMethod.EXPRESS)


class PaymentMethod(str, enum.Enum):
    CASH_ON_DELIVERY = "cash_on_delivery"
    BANK_TRANSFER = "bank_transfer"


class StockMovementReason(str, enum.Enum):
    PURCHASE = "purchase"
    SALE = "sale"
    RETURN = "return"
    DAMAGE = "damage"
    EXPIRED = "expired"
    COUNT_CORRECTION = "count_correction"
    OTHER = "other"


class StatusHistoryKind(str, enum.Enum):
    STATUS = "status"
    PAYMENT = "payment"
