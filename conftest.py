"""Shared pytest fixtures for rate tables, users and bookings."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal

import pytest
from django.core.cache import cache

from apps.bookings.writer import BookingWriter
from apps.fleet.models import AddOn, Location, SystemSetting, Vehicle
from apps.pricing.engine import PricingRequest
from apps.users.models import User

TUESDAY = datetime(2026, 10, 20, 10, 0, tzinfo=dt_timezone.utc)


@pytest.fixture(autouse=True)
def _reset_throttles():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def surrey(db):
    return Location.objects.create(name="Surrey Central", city="Surrey", fee_group="surrey")


@pytest.fixture
def langley(db):
    return Location.objects.create(name="Langley Bypass", city="Langley", fee_group="langley")


@pytest.fixture
def abbotsford(db):
    return Location.objects.create(name="Abbotsford Airport", city="Abbotsford", fee_group="abbotsford")


@pytest.fixture
def sedan(db, surrey):
    return Vehicle.objects.create(
        name="Toyota Corolla",
        category="Economy Sedan",
        daily_rate=Decimal("80.00"),
        home_location=surrey,
    )


@pytest.fixture
def standard_suv(db):
    return Vehicle.objects.create(name="Toyota RAV4", category="Standard SUV", daily_rate=Decimal("95.00"))


@pytest.fixture
def large_suv(db):
    return Vehicle.objects.create(name="Chevrolet Tahoe", category="Large SUV", daily_rate=Decimal("140.00"))


@pytest.fixture
def child_seat(db):
    return AddOn.objects.create(name="Child Seat", daily_rate=Decimal("12.50"), one_time_fee=Decimal("5.00"))


@pytest.fixture
def fuel_service(db):
    return AddOn.objects.create(name="Prepaid Fuel Tank", daily_rate=Decimal("0.00"))


@pytest.fixture
def premium_roadside(db):
    return AddOn.objects.create(name="Premium Roadside Assistance", daily_rate=Decimal("9.99"))


@pytest.fixture
def setting(db):
    def _setting(key: str, value: str) -> SystemSetting:
        return SystemSetting.objects.update_or_create(key=key, defaults={"value": value})[0]

    return _setting


@pytest.fixture
def customer(db):
    return User.objects.create_user(email="customer@example.com", phone="+16045550111", password="CustomerPass1")


@pytest.fixture
def staff_user(db):
    return User.objects.create_user(
        email="counter@example.com",
        password="StaffPass123",
        role=User.RoleChoices.STAFF,
    )


@pytest.fixture
def book(db, customer):
    """Create a booking through the writer at the canonical price."""

    def _book(vehicle, start=TUESDAY, days=3, *, user=None, status="confirmed", **kwargs):
        kwargs.setdefault("driver_age_band", "25_70")
        request = PricingRequest(vehicle_id=vehicle.pk, start_at=start, end_at=start + timedelta(days=days), **kwargs)
        writer = BookingWriter()
        return writer.create(
            request,
            user=user or customer,
            client_total=writer.engine.quote(request).total,
            status=status,
        )

    return _book
