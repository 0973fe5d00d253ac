"""Pydantic schemas for the commerce service."""

import html
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from services.commerce_service.models import (
    DeliveryMethod,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    StatusHistoryKind,
    StockMovementReason,
)

MAX_CART_QUANTITY = 9999
MAX_ORDER_NOTES_LENGTH = 1000


def sanitize_text(value: str) -> str:
    """Escape markup characters and trim surrounding whitespace."""
    return html.escape(value, quote=True).strip()


# ============================================================================
# CART SCHEMAS
# ============================================================================


class CartItemCreate(BaseModel):
    product_id: uuid.UUID
    quantity: int = Field(1, ge=1, le=MAX_CART_QUANTITY)


class CartItemUpdate(BaseModel):
    quantity: int = Field(..., ge=1, le=MAX_CART_QUANTITY)


class CartProductSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    generic_name: str
    brand_name: str
    display_name: str
    sku: Optional[str] = None
    wholesale_price: Decimal
    stock_quantity: int


class CartItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    product_id: uuid.UUID
    quantity: int
    product: Optional[CartProductSummary] = None
    line_total: Decimal = Decimal("0")


class ReconcileWarningResponse(BaseModel):
    product_id: uuid.UUID
    product_name: Optional[str] = None
    reason: str  # product_unavailable | out_of_stock | quantity_reduced
    old_quantity: int
    new_quantity: Optional[int] = None


class CartResponse(BaseModel):
    items: list[CartItemResponse] = []
    warnings: list[ReconcileWarningResponse] = []
    subtotal: Decimal = Decimal("0")
    item_count: int = 0


class CartCountResponse(BaseModel):
    count: int


class CartMutationResponse(BaseModel):
    item: Optional[CartItemResponse] = None
    clamped: bool = False
    message: Optional[str] = None


# ============================================================================
# CHECKOUT SCHEMAS
# ============================================================================


class DeliveryFeeRequest(BaseModel):
    delivery_method: DeliveryMethod
    address_id: Optional[uuid.UUID] = None


class DeliveryQuoteResponse(BaseModel):
    delivery_method: DeliveryMethod
    delivery_fee: Decimal
    delivery_distance_km: Optional[Decimal] = None
    fee_note: str
    fee_pending: bool = False
    has_coordinates: bool = False
    contact_us: bool = False


class PlaceOrderRequest(BaseModel):
    delivery_method: DeliveryMethod
    delivery_address_id: Optional[uuid.UUID] = None
    payment_method: PaymentMethod
    order_notes: Optional[str] = None
    preferred_delivery_date: Optional[date] = None

    @field_validator("order_notes")
    @classmethod
    def clean_order_notes(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        cleaned = sanitize_text(v)[:MAX_ORDER_NOTES_LENGTH]
        return cleaned or None


# ============================================================================
# ORDER SCHEMAS
# ============================================================================


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    product_id: uuid.UUID
    product_name: str
    product_generic_name: Optional[str] = None
    product_sku: Optional[str] = None
    quantity: int
    unit_price: Decimal
    total_price: Decimal


class OrderStatusHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    kind: StatusHistoryKind
    old_status: Optional[str] = None
    new_status: str
    notes: Optional[str] = None
    changed_by: Optional[str] = None
    created_at: datetime


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_number: str
    customer_id: uuid.UUID
    status: OrderStatus
    payment_status: PaymentStatus
    delivery_method: DeliveryMethod
    delivery_address_id: Optional[uuid.UUID] = None
    delivery_distance_km: Optional[Decimal] = None
    delivery_fee_pending: bool = False
    preferred_delivery_date: Optional[date] = None
    payment_method: PaymentMethod
    subtotal: Decimal
    delivery_fee: Decimal
    total: Decimal
    order_notes: Optional[str] = None
    cancelled_reason: Optional[str] = None
    invoice_url: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    dispatched_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    items: list[OrderItemResponse] = []


class OrderDetailResponse(OrderResponse):
    """Order plus its transition history."""

    status_history: list[OrderStatusHistoryResponse] = []


class AdminOrderDetailResponse(OrderDetailResponse):
    admin_notes: Optional[str] = None


class OrderListResponse(BaseModel):
    orders: list[OrderResponse]
    total: int
    page: int
    page_size: int


class ReorderWarningResponse(BaseModel):
    product_name: str
    reason: str  # unavailable | out_of_stock | quantity_reduced
    original_quantity: Optional[int] = None
    added_quantity: Optional[int] = None


class ReorderResponse(BaseModel):
    success: bool
    items_added: int
    warnings: list[ReorderWarningResponse] = []


# ============================================================================
# ADMIN SCHEMAS
# ============================================================================


class OrderUpdate(BaseModel):
    """Admin order update.

    Only fields present in the request body are acted on; ``model_fields_set``
    distinguishes an omitted field from an explicit null.
    """

    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    cancelled_reason: Optional[str] = Field(None, max_length=1000)
    notes: Optional[str] = Field(None, max_length=1000)
    admin_notes: Optional[str] = Field(None, max_length=2000)


class InvoiceResponse(BaseModel):
    invoice_url: str


class StockAdjustmentRequest(BaseModel):
    quantity_change: int
    reason: StockMovementReason
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("quantity_change")
    @classmethod
    def non_zero(cls, v: int) -> int:
        if v == 0:
            raise ValueError("quantity_change must not be zero")
        return v


class StockMovementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    product_id: uuid.UUID
    quantity_change: int
    quantity_before: int
    quantity_after: int
    reason: StockMovementReason
    order_id: Optional[uuid.UUID] = None
    reverses_movement_id: Optional[uuid.UUID] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime


class StockAdjustmentResponse(BaseModel):
    success: bool = True
    stock_quantity: int
    movement: StockMovementResponse


class LedgerDriftResponse(BaseModel):
    product_id: uuid.UUID
    product_name: str
    stock_quantity: int
    ledger_balance: int
    drift: int


class LedgerReconciliationResponse(BaseModel):
    products_checked: int
    drifted: list[LedgerDriftResponse] = []
