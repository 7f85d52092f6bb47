"""Catalogue endpoints and the rate repository."""

from __future__ import annotations

from decimal import Decimal

import pytest
from django.urls import reverse
from rest_framework.test import APIClient

from apps.fleet.models import Vehicle
from apps.fleet.repository import RateLookupError, RateRepository
from shared.throttling import WindowRateThrottle


def _results(response):
    return response.data["results"] if isinstance(response.data, dict) else response.data


@pytest.mark.django_db
def test_vehicle_list_hides_inactive_and_filters_by_category(sedan, standard_suv, large_suv):
    Vehicle.objects.filter(pk=large_suv.pk).update(is_active=False)
    client = APIClient()

    everything = client.get(reverse("vehicle-list"))
    suvs = client.get(reverse("vehicle-list"), {"category": "suv"})

    assert {row["name"] for row in _results(everything)} == {"Toyota Corolla", "Toyota RAV4"}
    assert [row["name"] for row in _results(suvs)] == ["Toyota RAV4"]


@pytest.mark.django_db
def test_add_on_list_exposes_rates(child_seat):
    response = APIClient().get(reverse("add-on-list"))

    row = _results(response)[0]
    assert row["daily_rate"] == "12.50"
    assert row["one_time_fee"] == "5.00"


@pytest.mark.django_db
def test_repository_refuses_unknown_rows(sedan, child_seat):
    repository = RateRepository()

    assert repository.get_vehicle(sedan.pk) == sedan
    with pytest.raises(RateLookupError):
        repository.get_vehicle(999)
    with pytest.raises(RateLookupError):
        repository.get_add_ons([child_seat.pk, 999])


@pytest.mark.django_db
def test_repository_fee_groups_require_both_branches(surrey, langley):
    repository = RateRepository()

    assert repository.get_fee_groups(surrey.pk, langley.pk) == (surrey.fee_group, langley.fee_group)
    with pytest.raises(RateLookupError):
        repository.get_fee_groups(surrey.pk, 999)
    with pytest.raises(RateLookupError):
        repository.get_fee_groups("abc", langley.pk)


@pytest.mark.django_db
def test_repository_settings_parse_decimals(setting):
    setting("gst_rate", "0.05")
    setting("broken_rate", "five")
    repository = RateRepository()

    assert repository.get_decimal_setting("gst_rate") == Decimal("0.05")
    assert repository.get_decimal_setting("missing") is None
    with pytest.raises(RateLookupError):
        repository.get_decimal_setting("broken_rate")


@pytest.mark.parametrize(
    "rate, expected",
    [("3/5m", (3, 300)), ("10/10m", (10, 600)), ("100/h", (100, 3600)), ("5/2d", (5, 172800))],
)
def test_window_rate_parsing(rate, expected):
    assert WindowRateThrottle.parse_rate(WindowRateThrottle.__new__(WindowRateThrottle), rate) == expected
