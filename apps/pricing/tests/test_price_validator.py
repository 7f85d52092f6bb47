"""Checkout price validation: tolerance, fail-closed behaviour and the API."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal
from unittest import mock

import pytest
from django.urls import reverse
from rest_framework.test import APIClient

from apps.pricing.config import PricingConfig
from apps.pricing.engine import PriceBreakdown, PricingEngine, PricingRequest
from apps.pricing.validator import PriceValidator
from shared.errors import PriceComputationFailed, PriceMismatch

TUESDAY = datetime(2026, 10, 20, 10, 0, tzinfo=dt_timezone.utc)
ZERO = Decimal("0.00")

_EMPTY = PriceBreakdown(
    days=1, daily_rate=ZERO, vehicle_base_total=ZERO, weekend_surcharge=ZERO, duration_discount=ZERO,
    vehicle_total=ZERO, protection_daily_rate=ZERO, protection_total=ZERO, add_ons_total=ZERO,
    young_driver_fee=ZERO, additional_drivers_total=ZERO, daily_fees_total=ZERO, delivery_fee=ZERO,
    different_dropoff_fee=ZERO, upgrade_total=ZERO, subtotal=ZERO, pst_amount=ZERO, gst_amount=ZERO,
    tax_amount=ZERO, total=ZERO, deposit_amount=ZERO,
)


class FixedTotalEngine(PricingEngine):
    def __init__(self, total: str):
        super().__init__(repository=mock.Mock(), config=PricingConfig())
        self.total = Decimal(total)

    def quote(self, request):
        return replace(_EMPTY, total=self.total)


class FailingEngine(PricingEngine):
    def __init__(self):
        super().__init__(repository=mock.Mock(), config=PricingConfig())

    def quote(self, request):
        raise PriceComputationFailed("Invalid vehicle: 1")


REQUEST = PricingRequest(vehicle_id=1, start_at=TUESDAY, end_at=TUESDAY + timedelta(days=2))


def test_tolerance_absorbs_small_rounding_differences():
    result = PriceValidator(FixedTotalEngine("500.40")).validate(REQUEST, Decimal("500.00"))

    assert result.valid is True
    assert result.difference == Decimal("0.40")


def test_difference_just_over_tolerance_is_rejected():
    result = PriceValidator(FixedTotalEngine("500.60")).validate(REQUEST, Decimal("500.00"))

    assert result.valid is False


def test_difference_at_exact_tolerance_is_valid():
    result = PriceValidator(FixedTotalEngine("500.50")).validate(REQUEST, Decimal("500.00"))

    assert result.valid is True


def test_large_difference_is_rejected_with_canonical_total():
    validator = PriceValidator(FixedTotalEngine("500.60"))

    result = validator.validate(REQUEST, Decimal("495.00"))
    assert result.valid is False
    assert result.server_total == Decimal("500.60")

    with pytest.raises(PriceMismatch) as excinfo:
        validator.ensure_valid(REQUEST, "495.00")
    assert excinfo.value.server_total == Decimal("500.60")
    assert excinfo.value.as_payload()["serverTotal"] == "500.60"


def test_engine_failure_is_never_reported_as_mismatch():
    with pytest.raises(PriceComputationFailed):
        PriceValidator(FailingEngine()).validate(REQUEST, Decimal("100.00"))


@pytest.mark.django_db
def test_validate_endpoint_reports_server_total(sedan):
    client = APIClient()
    payload = {
        "vehicle_id": sedan.pk,
        "start_at": TUESDAY.isoformat(),
        "end_at": (TUESDAY + timedelta(days=3)).isoformat(),
        "driver_age_band": "25_70",
        "client_total": "270.00",
    }

    rejected = client.post(reverse("pricing-validate"), payload, format="json")
    accepted = client.post(reverse("pricing-validate"), {**payload, "client_total": "277.00"}, format="json")

    assert rejected.status_code == 200
    assert rejected.data["valid"] is False
    assert rejected.data["server_total"] == "277.21"
    assert accepted.data["valid"] is True
    assert accepted.data["breakdown"]["daily_fees_total"] == "7.50"


@pytest.mark.django_db
def test_validate_endpoint_fails_closed_for_unknown_vehicle():
    client = APIClient()
    payload = {
        "vehicle_id": 987654,
        "start_at": TUESDAY.isoformat(),
        "end_at": (TUESDAY + timedelta(days=3)).isoformat(),
        "driver_age_band": "25_70",
        "client_total": "100.00",
    }

    response = client.post(reverse("pricing-validate"), payload, format="json")

    assert response.status_code == 400
    assert response.data["code"] == "price_computation_failed"
    assert "valid" not in response.data


@pytest.mark.django_db
def test_quote_endpoint_rejects_bad_age_band(sedan):
    client = APIClient()
    payload = {
        "vehicle_id": sedan.pk,
        "start_at": TUESDAY.isoformat(),
        "end_at": (TUESDAY + timedelta(days=3)).isoformat(),
        "driver_age_band": "16_19",
    }

    response = client.post(reverse("pricing-quote"), payload, format="json")

    assert response.status_code == 400
    assert response.data["code"] == "validation_failed"
    assert "driver_age_band" in response.data["errors"]


@pytest.mark.django_db
def test_malformed_quote_request_uses_validation_envelope():
    response = APIClient().post(reverse("pricing-quote"), {"start_at": "x"}, format="json")

    assert response.status_code == 400
    assert response.data["code"] == "validation_failed"
    assert response.data["detail"] == "Invalid request."
    assert {"vehicle_id", "start_at", "end_at"} <= set(response.data["errors"])
    assert response.data["correlationId"] == response["X-Correlation-ID"]
