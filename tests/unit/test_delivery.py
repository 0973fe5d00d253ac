"""Unit tests for delivery fee quotes."""

from decimal import Decimal

import pytest
from libs.common.config import get_settings
from libs.common.geo import haversine_km
from services.commerce_service.models import DeliveryMethod
from services.commerce_service.services import delivery
from tests.factories import CustomerAddressFactory

settings = get_settings()


@pytest.mark.unit
def test_fee_for_distance_rounds_half_up_to_cents():
    assert delivery.fee_for_distance(10, Decimal("25")) == Decimal("250.00")
    assert delivery.fee_for_distance(0.0002, Decimal("25")) == Decimal("0.01")
    assert delivery.fee_for_distance(1.23456, Decimal("25")) == Decimal("30.86")


@pytest.mark.unit
def test_pickup_is_free():
    quote = delivery.calculate(DeliveryMethod.PICKUP, None)

    assert quote.fee == Decimal("0.00")
    assert quote.note == delivery.PICKUP_NOTE
    assert not quote.fee_pending


@pytest.mark.unit
@pytest.mark.parametrize(
    "method",
    [
        DeliveryMethod.EXPRESS,
        DeliveryMethod.HOSPITAL_NHSL,
        DeliveryMethod.HOSPITAL_CSTH,
    ],
)
def test_manual_quote_methods_are_contact_us(method):
    address = CustomerAddressFactory.create(latitude=7.0, longitude=80.0)
    quote = delivery.calculate(method, address)

    assert quote.fee == Decimal("0.00")
    assert quote.contact_us
    assert quote.note == delivery.CONTACT_US_NOTES[method]


@pytest.mark.unit
def test_standard_without_address_is_pending():
    quote = delivery.calculate(DeliveryMethod.STANDARD, None)

    assert quote.fee_pending
    assert quote.note == delivery.NO_ADDRESS_NOTE


@pytest.mark.unit
def test_standard_without_coordinates_is_pending():
    address = CustomerAddressFactory.create()
    quote = delivery.calculate(DeliveryMethod.STANDARD, address)

    assert quote.fee == Decimal("0.00")
    assert quote.fee_pending
    assert not quote.has_coordinates
    assert quote.note == delivery.PENDING_NOTE


@pytest.mark.unit
def test_standard_charges_per_km(monkeypatch):
    monkeypatch.setattr(settings, "STORE_LATITUDE", 0.0)
    monkeypatch.setattr(settings, "STORE_LONGITUDE", 0.0)
    monkeypatch.setattr(settings, "DELIVERY_RATE_PER_KM", Decimal("25"))

    # One degree of latitude is ~111.19 km on the haversine sphere
    address = CustomerAddressFactory.create(latitude=1.0, longitude=0.0)
    quote = delivery.calculate(DeliveryMethod.STANDARD, address)

    distance = haversine_km(0.0, 0.0, 1.0, 0.0)
    assert quote.has_coordinates
    assert not quote.fee_pending
    assert quote.fee == delivery.fee_for_distance(distance, Decimal("25"))
    assert quote.distance_km == Decimal("111.2")
    assert "111.2 km" in quote.note


@pytest.mark.unit
def test_standard_without_store_location_is_pending(monkeypatch):
    monkeypatch.setattr(settings, "STORE_LATITUDE", None)
    address = CustomerAddressFactory.create(latitude=7.0, longitude=80.0)

    quote = delivery.calculate(DeliveryMethod.STANDARD, address)

    assert quote.fee_pending
    assert quote.fee == Decimal("0.00")
