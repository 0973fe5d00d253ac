"""Commerce service models package."""

from services.commerce_service.models.catalog import Product
from services.commerce_service.models.commerce import (
    CartItem,
    Order,
    OrderItem,
    OrderStatusHistory,
)
from services.commerce_service.models.customers import Customer, CustomerAddress
from services.commerce_service.models.enums import (
    CustomerStatus,
    DeliveryMethod,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    ProductSection,
    StatusHistoryKind,
    StockMovementReason,
)
from services.commerce_service.models.inventory import StockMovement

__all__ = [
    "CartItem",
    "Customer",
    "CustomerAddress",
    "CustomerStatus",
    "DeliveryMethod",
    "Order",
    "OrderItem",
    "OrderStatus",
    "OrderStatusHistory",
    "PaymentMethod",
    "PaymentStatus",
    "Product",
    "ProductSection",
    "StatusHistoryKind",
    "StockMovement",
    "StockMovementReason",
]
