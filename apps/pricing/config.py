"""Injectable pricing constants.

All rates the engine uses that do not live in the rate tables are held in
one frozen ``PricingConfig``. Production builds it from
``settings.PRICING`` (overrides merged onto the defaults below); tests
construct engines with alternative configs directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from decimal import Decimal
from typing import Any, Mapping

from django.conf import settings  # type: ignore

from shared.domain.value_objects import round_cents, to_decimal

YOUNG_DRIVER_BAND = "20_24"
STANDARD_DRIVER_BAND = "25_70"
AGE_BANDS = (YOUNG_DRIVER_BAND, STANDARD_DRIVER_BAND)

PROTECTION_PLANS = ("none", "basic", "smart", "premium")


def _default_protection_rates() -> dict[str, dict[str, Decimal]]:
    return {
        "protection": {"basic": Decimal("32.99"), "smart": Decimal("37.99"), "premium": Decimal("49.99")},
        "protection_g2": {"basic": Decimal("52.99"), "smart": Decimal("57.99"), "premium": Decimal("69.99")},
        "protection_g3": {"basic": Decimal("64.99"), "smart": Decimal("69.99"), "premium": Decimal("82.99")},
    }


def _default_tank_sizes() -> dict[str, int]:
    # Ordered: "large-suv" must be tried before "suv".
    return {
        "economy": 45,
        "compact": 50,
        "midsize": 55,
        "fullsize": 65,
        "large-suv": 90,
        "suv": 75,
        "minivan": 75,
        "premium": 70,
        "luxury": 80,
    }


def _default_dropoff_fees() -> dict[str, Decimal]:
    return {
        "langley|surrey": Decimal("50.00"),
        "abbotsford|langley": Decimal("75.00"),
        "abbotsford|surrey": Decimal("75.00"),
    }


@dataclass(frozen=True)
class PricingConfig:
    pst_rate: Decimal = Decimal("0.07")
    gst_rate: Decimal = Decimal("0.05")
    pvrt_daily_fee: Decimal = Decimal("1.50")
    acsrch_daily_fee: Decimal = Decimal("1.00")
    young_driver_daily_fee: Decimal = Decimal("15.00")
    weekend_surcharge_rate: Decimal = Decimal("0.15")
    weekend_weekdays: tuple[int, ...] = (4, 5, 6)  # Fri, Sat, Sun (date.weekday())
    weekly_threshold_days: int = 7
    weekly_discount_rate: Decimal = Decimal("0.10")
    monthly_threshold_days: int = 21
    monthly_discount_rate: Decimal = Decimal("0.20")
    minimum_deposit: Decimal = Decimal("350.00")
    mismatch_tolerance: Decimal = Decimal("0.50")
    max_add_ons: int = 10
    max_add_on_quantity: int = 10
    max_additional_drivers: int = 5
    additional_driver_standard_rate: Decimal = Decimal("14.99")
    additional_driver_young_rate: Decimal = Decimal("19.99")
    market_fuel_price_per_litre: Decimal = Decimal("1.85")
    fuel_discount_per_litre: Decimal = Decimal("0.05")
    default_tank_litres: int = 60
    tank_sizes: Mapping[str, int] = field(default_factory=_default_tank_sizes)
    protection_rates: Mapping[str, Mapping[str, Decimal]] = field(default_factory=_default_protection_rates)
    dropoff_fees: Mapping[str, Decimal] = field(default_factory=_default_dropoff_fees)

    @property
    def regulatory_daily_fee(self) -> Decimal:
        return round_cents(self.pvrt_daily_fee + self.acsrch_daily_fee)

    @property
    def fuel_price_per_litre(self) -> Decimal:
        return self.market_fuel_price_per_litre - self.fuel_discount_per_litre

    def tank_litres_for(self, category: str) -> int:
        lower = (category or "").lower().replace(" ", "-")
        for key, litres in self.tank_sizes.items():
            if key in lower:
                return litres
        return self.default_tank_litres

    def with_overrides(self, overrides: Mapping[str, Any]) -> "PricingConfig":
        known = {f.name: f for f in fields(self)}
        changes: dict[str, Any] = {}
        for name, value in overrides.items():
            if name not in known:
                raise ValueError(f"Unknown pricing setting: {name}")
            current = getattr(self, name)
            if isinstance(current, Decimal):
                value = to_decimal(value)
            changes[name] = value
        return replace(self, **changes)

    @classmethod
    def from_settings(cls) -> "PricingConfig":
        return cls().with_overrides(getattr(settings, "PRICING", {}) or {})
