"""Delivery fee calculation.

Standard delivery is charged per kilometre of great-circle distance from the
store. Express and hospital runs are quoted manually; pickup is free.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from libs.common.config import get_settings
from libs.common.geo import haversine_km
from services.commerce_service.models import CustomerAddress, DeliveryMethod

CENTS = Decimal("0.01")
ONE_DP = Decimal("0.1")

PICKUP_NOTE = "Free, collect from store"
NO_ADDRESS_NOTE = "Select an address to calculate delivery fee"
PENDING_NOTE = "Delivery fee will be confirmed after order review"

CONTACT_US_NOTES = {
    DeliveryMethod.EXPRESS: "Contact us for express delivery pricing",
    DeliveryMethod.HOSPITAL_NHSL: "Contact us for NHSL hospital delivery pricing",
    DeliveryMethod.HOSPITAL_CSTH: "Contact us for CSTH hospital delivery pricing",
}


@dataclass(frozen=True)
class DeliveryQuote:
    delivery_method: DeliveryMethod
    fee: Decimal
    note: str
    distance_km: Optional[Decimal] = None
    fee_pending: bool = False
    has_coordinates: bool = False
    contact_us: bool = False


def fee_for_distance(distance_km: float, rate_per_km: Decimal) -> Decimal:
    """Fee for an unrounded distance, rounded half-up to cents."""
    return (Decimal(str(distance_km)) * rate_per_km).quantize(
        CENTS, rounding=ROUND_HALF_UP
    )


def calculate(
    delivery_method: DeliveryMethod, address: Optional[CustomerAddress]
) -> DeliveryQuote:
    settings = get_settings()

    if delivery_method == DeliveryMethod.PICKUP:
        return DeliveryQuote(delivery_method, Decimal("0.00"), PICKUP_NOTE)

    if delivery_method in CONTACT_US_NOTES:
        return DeliveryQuote(
            delivery_method,
            Decimal("0.00"),
            CONTACT_US_NOTES[delivery_method],
            contact_us=True,
        )

    # Standard
    if address is None:
        return DeliveryQuote(
            delivery_method, Decimal("0.00"), NO_ADDRESS_NOTE, fee_pending=True
        )

    store_known = (
        settings.STORE_LATITUDE is not None and settings.STORE_LONGITUDE is not None
    )
    if not (address.has_coordinates and store_known):
        return DeliveryQuote(
            delivery_method, Decimal("0.00"), PENDING_NOTE, fee_pending=True
        )

    distance = haversine_km(
        settings.STORE_LATITUDE,
        settings.STORE_LONGITUDE,
        address.latitude,
        address.longitude,
    )
    rate = settings.DELIVERY_RATE_PER_KM
    display_distance = Decimal(str(distance)).quantize(ONE_DP, rounding=ROUND_HALF_UP)
    return DeliveryQuote(
        delivery_method,
        fee_for_distance(distance, rate),
        f"{settings.CURRENCY_PREFIX} {rate}/km × {display_distance} km (subject to change)",
        distance_km=display_distance,
        has_coordinates=True,
    )
