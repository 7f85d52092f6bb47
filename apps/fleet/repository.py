"""Read access to the rate tables used by the pricing engine.

Every lookup either returns a real value or raises ``RateLookupError``;
nothing here falls back to zero. Optional settings are reported as
``None`` so the caller decides which fallback table applies.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from shared.domain.value_objects import to_decimal

from .models import AddOn, Location, SystemSetting, Vehicle


class RateLookupError(Exception):
    """A rate the caller depends on is missing or malformed."""


class RateRepository:
    """Thin query layer over fleet models."""

    def get_vehicle(self, vehicle_id) -> Vehicle:
        try:
            return Vehicle.objects.get(pk=vehicle_id, is_active=True)
        except (Vehicle.DoesNotExist, ValueError, TypeError) as exc:
            raise RateLookupError(f"Invalid vehicle: {vehicle_id}") from exc

    def get_add_ons(self, add_on_ids: Iterable) -> dict[int, AddOn]:
        """Return active add-ons keyed by id; any unknown id is an error."""
        try:
            ids = [int(add_on_id) for add_on_id in add_on_ids]
        except (ValueError, TypeError) as exc:
            raise RateLookupError("Invalid add-on ids") from exc
        if not ids:
            return {}
        rows = {row.pk: row for row in AddOn.objects.filter(pk__in=ids, is_active=True)}
        for add_on_id in ids:
            if add_on_id not in rows:
                raise RateLookupError(f"Invalid add-on: {add_on_id}")
        return rows

    def get_decimal_setting(self, key: str) -> Decimal | None:
        """Numeric system setting, ``None`` when the key is absent."""
        value = SystemSetting.objects.filter(key=key).values_list("value", flat=True).first()
        if value is None or value == "":
            return None
        try:
            return to_decimal(value.strip())
        except ValueError as exc:
            raise RateLookupError(f"Setting {key} is not numeric: {value!r}") from exc

    def get_decimal_settings(self, keys: Iterable[str]) -> dict[str, Decimal]:
        result: dict[str, Decimal] = {}
        for key, value in SystemSetting.objects.filter(key__in=list(keys)).values_list("key", "value"):
            if value == "":
                continue
            try:
                result[key] = to_decimal(value.strip())
            except ValueError as exc:
                raise RateLookupError(f"Setting {key} is not numeric: {value!r}") from exc
        return result

    def get_fee_groups(self, pickup_location_id, return_location_id) -> tuple[str, str]:
        """Fee groups of both branches; either may be blank."""
        try:
            pickup_pk, return_pk = int(pickup_location_id), int(return_location_id)
        except (ValueError, TypeError) as exc:
            raise RateLookupError("Invalid location ids") from exc
        rows = dict(Location.objects.filter(pk__in=[pickup_pk, return_pk]).values_list("pk", "fee_group"))
        if pickup_pk not in rows or return_pk not in rows:
            raise RateLookupError(f"Invalid location: {pickup_location_id}/{return_location_id}")
        return rows[pickup_pk] or "", rows[return_pk] or ""
