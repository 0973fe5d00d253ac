"""Business and consistency errors raised by the commerce engine."""

import uuid
from typing import Optional

from libs.common.error_handler import AppError


class CommerceError(AppError):
    """Base for commerce errors; rendered as ``{error, kind, ...}``."""


# ---------------------------------------------------------------------------
# Validation / lookup
# ---------------------------------------------------------------------------


class InvalidRequest(CommerceError):
    kind = "validation"
    status_code = 400
    default_message = "Invalid request"


class NoChanges(InvalidRequest):
    kind = "no_changes"
    default_message = "No changes requested"


class AddressRequired(InvalidRequest):
    kind = "address_required"
    default_message = "A delivery address is required for this delivery method"


class CancellationReasonRequired(InvalidRequest):
    kind = "cancellation_reason_required"
    default_message = "A reason is required to cancel an order"


class EmptyCart(CommerceError):
    kind = "empty_cart"
    status_code = 400
    default_message = "Your cart is empty"


class ProductUnavailable(CommerceError):
    kind = "product_unavailable"
    status_code = 400
    default_message = "This product is currently unavailable"


class CustomerNotEligible(CommerceError):
    kind = "customer_not_eligible"
    status_code = 403
    default_message = "Your account must be approved before ordering"


class NotFound(CommerceError):
    kind = "not_found"
    status_code = 404


class OrderNotFound(NotFound):
    default_message = "Order not found"


class ProductNotFound(NotFound):
    default_message = "Product not found"


class CartItemNotFound(NotFound):
    default_message = "Cart item not found"


class AddressNotFound(NotFound):
    kind = "address_not_found"
    default_message = "Delivery address not found"


# ---------------------------------------------------------------------------
# Stock
# ---------------------------------------------------------------------------


class InsufficientStock(CommerceError):
    """Raised by the stock ledger when a conditional deduction matches no row."""

    kind = "insufficient_stock"
    status_code = 409

    def __init__(
        self,
        product_id: uuid.UUID,
        product_name: str,
        requested: int,
        available: int,
    ):
        self.product_id = product_id
        self.product_name = product_name
        self.requested = requested
        self.available = available
        super().__init__(
            f"Only {available} of {product_name} available (requested {requested})",
            stock_issues=[self.as_issue()],
        )

    def as_issue(self) -> dict:
        return {
            "product_id": str(self.product_id),
            "product_name": self.product_name,
            "requested": self.requested,
            "available": self.available,
        }


class StockConflict(CommerceError):
    """Cart and stock disagree; the client must re-confirm quantities."""

    kind = "stock_conflict"
    status_code = 409

    def __init__(self, stock_issues: list[dict], message: Optional[str] = None):
        self.stock_issues = stock_issues
        super().__init__(
            message or "Some items in your cart are no longer available",
            stock_issues=stock_issues,
        )


class WouldGoNegative(CommerceError):
    kind = "would_go_negative"
    status_code = 409

    def __init__(self, product_id: uuid.UUID, current: int, quantity_change: int):
        super().__init__(
            f"Adjustment of {quantity_change} would take stock below zero "
            f"(current {current})",
            product_id=str(product_id),
            current_stock=current,
        )


# ---------------------------------------------------------------------------
# Order lifecycle
# ---------------------------------------------------------------------------


class InvalidTransition(CommerceError):
    kind = "invalid_transition"
    status_code = 409

    def __init__(self, current: str, target: str, allowed: list[str]):
        super().__init__(
            f"Cannot change from '{current}' to '{target}'",
            current=current,
            target=target,
            allowed=allowed,
        )


# ---------------------------------------------------------------------------
# Consistency faults
# ---------------------------------------------------------------------------


class TransientError(CommerceError):
    """Retries exhausted on a consistency fault. No internal detail is exposed."""

    kind = "transient"
    status_code = 503
    default_message = "Please try again"


class IntegrityViolation(CommerceError):
    kind = "integrity_violation"
    status_code = 500
    default_message = "Order totals failed verification"

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__()
