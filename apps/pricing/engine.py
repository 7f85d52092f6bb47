"""Canonical price computation.

``PricingEngine`` is the only place a booking amount is derived. Checkout
validation, booking persistence, upsells and staff repricing all call it
rather than re-deriving any part of the formula.

Every multiplication and addition is rounded half-up to the cent as it
happens, so results reproduce exactly across call sites.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal
from typing import Any, Sequence

from apps.fleet.repository import RateLookupError, RateRepository
from shared.domain.value_objects import ZERO, RentalPeriod, round_cents, to_decimal
from shared.errors import PriceComputationFailed

from .config import AGE_BANDS, PROTECTION_PLANS, YOUNG_DRIVER_BAND, PricingConfig

logger = logging.getLogger(__name__)

ADDITIONAL_DRIVER_STANDARD_KEYS = ("additional_driver_daily_rate_standard", "additional_driver_daily_rate")
ADDITIONAL_DRIVER_YOUNG_KEYS = ("additional_driver_daily_rate_young", "young_additional_driver_daily_rate")


@dataclass(frozen=True)
class AddOnSelection:
    add_on_id: int
    quantity: int = 1


@dataclass(frozen=True)
class AdditionalDriverInput:
    age_band: str
    driver_name: str | None = None


@dataclass(frozen=True)
class PricingRequest:
    vehicle_id: int
    start_at: datetime
    end_at: datetime
    driver_age_band: str = "25_70"
    protection_plan: str = "none"
    add_ons: Sequence[AddOnSelection] = ()
    additional_drivers: Sequence[AdditionalDriverInput] = ()
    delivery_fee: Decimal | None = None
    different_dropoff_fee: Decimal | None = None
    pickup_location_id: int | None = None
    return_location_id: int | None = None
    upgrade_daily_fee: Decimal | None = None

    def without_extras(self) -> "PricingRequest":
        return replace(self, add_ons=(), additional_drivers=())


@dataclass(frozen=True)
class AddOnLine:
    add_on_id: int
    name: str
    quantity: int
    price: Decimal


@dataclass(frozen=True)
class AdditionalDriverLine:
    driver_name: str | None
    age_band: str
    fee: Decimal


@dataclass(frozen=True)
class PriceBreakdown:
    days: int
    daily_rate: Decimal
    vehicle_base_total: Decimal
    weekend_surcharge: Decimal
    duration_discount: Decimal
    vehicle_total: Decimal
    protection_daily_rate: Decimal
    protection_total: Decimal
    add_ons_total: Decimal
    young_driver_fee: Decimal
    additional_drivers_total: Decimal
    daily_fees_total: Decimal
    delivery_fee: Decimal
    different_dropoff_fee: Decimal
    upgrade_total: Decimal
    subtotal: Decimal
    pst_amount: Decimal
    gst_amount: Decimal
    tax_amount: Decimal
    total: Decimal
    deposit_amount: Decimal
    add_on_lines: tuple[AddOnLine, ...] = field(default_factory=tuple)
    driver_lines: tuple[AdditionalDriverLine, ...] = field(default_factory=tuple)

    def as_dict(self) -> dict[str, Any]:
        """JSON-friendly view: money as fixed two-decimal strings."""

        def convert(value):
            if isinstance(value, Decimal):
                return f"{value:.2f}"
            if isinstance(value, (list, tuple)):
                return [convert(item) for item in value]
            if isinstance(value, dict):
                return {key: convert(item) for key, item in value.items()}
            return value

        return convert(asdict(self))


def protection_group_for(category: str) -> str:
    upper = (category or "").upper()
    if "LARGE" in upper and "SUV" in upper:
        return "protection_g3"
    if "MINIVAN" in upper or ("STANDARD" in upper and "SUV" in upper):
        return "protection_g2"
    return "protection"


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=dt_timezone.utc)
    return moment.astimezone(dt_timezone.utc)


class PricingEngine:
    """Computes a full ``PriceBreakdown`` from rate tables read at call time."""

    def __init__(self, repository: RateRepository | None = None, config: PricingConfig | None = None):
        self.repository = repository or RateRepository()
        self.config = config or PricingConfig.from_settings()

    # --- public API -----------------------------------------------------

    def quote(self, request: PricingRequest) -> PriceBreakdown:
        try:
            return self._quote(request)
        except PriceComputationFailed:
            raise
        except RateLookupError as exc:
            logger.warning(f"Rate lookup failed for vehicle {request.vehicle_id}: {exc}")
            raise PriceComputationFailed(str(exc)) from exc
        except (ValueError, TypeError, ArithmeticError) as exc:
            logger.warning(f"Price computation failed for vehicle {request.vehicle_id}: {exc}")
            raise PriceComputationFailed() from exc

    def quote_with_lines(
        self,
        request: PricingRequest,
        add_ons_total: Decimal,
        additional_drivers_total: Decimal,
    ) -> PriceBreakdown:
        """Price ``request`` without extras, then add already-persisted line totals.

        Used when the current child rows, not a fresh selection, define the
        add-ons and drivers (repricing after upsells or staff edits).
        """
        base = self.quote(request.without_extras())
        add_ons_total = round_cents(add_ons_total)
        additional_drivers_total = round_cents(additional_drivers_total)
        subtotal = round_cents(base.subtotal + add_ons_total + additional_drivers_total)
        return replace(
            base,
            add_ons_total=add_ons_total,
            additional_drivers_total=additional_drivers_total,
            **self.totals_from_subtotal(subtotal),
        )

    def totals_from_subtotal(self, subtotal: Decimal) -> dict[str, Decimal]:
        """Tax, total and deposit for an already-rounded subtotal.

        Keys match the ``PriceBreakdown`` fields they fill.
        """
        subtotal = round_cents(subtotal)
        pst, gst, tax = self.tax_for(subtotal)
        total = round_cents(subtotal + tax)
        return {
            "subtotal": subtotal,
            "pst_amount": pst,
            "gst_amount": gst,
            "tax_amount": tax,
            "total": total,
            "deposit_amount": self.deposit_for(total),
        }

    def tax_for(self, subtotal: Decimal) -> tuple[Decimal, Decimal, Decimal]:
        """Return ``(pst, gst, tax)``; each part rounded before summing."""
        pst = round_cents(subtotal * self.config.pst_rate)
        gst = round_cents(subtotal * self.config.gst_rate)
        return pst, gst, round_cents(pst + gst)

    def deposit_for(self, total: Decimal) -> Decimal:
        return max(round_cents(self.config.minimum_deposit), total)

    # --- steps ----------------------------------------------------------

    def _quote(self, request: PricingRequest) -> PriceBreakdown:
        cfg = self.config
        if not isinstance(request.start_at, datetime) or not isinstance(request.end_at, datetime):
            raise PriceComputationFailed("Pickup and return must be timestamps.")
        if request.driver_age_band not in AGE_BANDS:
            raise PriceComputationFailed(f"Unknown driver age band: {request.driver_age_band}")
        if request.protection_plan not in PROTECTION_PLANS:
            raise PriceComputationFailed(f"Unknown protection plan: {request.protection_plan}")

        try:
            period = RentalPeriod(_as_utc(request.start_at), _as_utc(request.end_at))
        except ValueError as exc:
            raise PriceComputationFailed("Return must be after pickup.") from exc
        days = period.rental_days

        vehicle = self.repository.get_vehicle(request.vehicle_id)
        daily_rate = round_cents(vehicle.daily_rate)

        vehicle_base_total = round_cents(daily_rate * days)
        weekend_surcharge = ZERO
        if period.start_at.weekday() in cfg.weekend_weekdays:
            weekend_surcharge = round_cents(vehicle_base_total * cfg.weekend_surcharge_rate)
        after_surcharge = round_cents(vehicle_base_total + weekend_surcharge)
        duration_discount = round_cents(after_surcharge * self._discount_rate(days))
        vehicle_total = round_cents(after_surcharge - duration_discount)

        protection_daily_rate = self._protection_rate(request.protection_plan, vehicle.category)
        protection_total = round_cents(protection_daily_rate * days)

        add_on_lines = self._add_on_lines(request, vehicle.category, days)
        add_ons_total = ZERO
        for line in add_on_lines:
            add_ons_total = round_cents(add_ons_total + line.price)

        young_driver_fee = ZERO
        if request.driver_age_band == YOUNG_DRIVER_BAND:
            young_driver_fee = round_cents(cfg.young_driver_daily_fee * days)

        driver_lines = self._driver_lines(request.additional_drivers, days)
        additional_drivers_total = ZERO
        for line in driver_lines:
            additional_drivers_total = round_cents(additional_drivers_total + line.fee)

        daily_fees_total = round_cents(cfg.regulatory_daily_fee * days)
        delivery_fee = self._non_negative(request.delivery_fee, "delivery fee")
        different_dropoff_fee = self._dropoff_fee(request)

        upgrade_total = ZERO
        if request.upgrade_daily_fee:
            upgrade_total = round_cents(self._non_negative(request.upgrade_daily_fee, "upgrade fee") * days)

        subtotal = round_cents(
            vehicle_total
            + protection_total
            + add_ons_total
            + young_driver_fee
            + additional_drivers_total
            + daily_fees_total
            + delivery_fee
            + different_dropoff_fee
            + upgrade_total
        )

        return PriceBreakdown(
            days=days,
            daily_rate=daily_rate,
            vehicle_base_total=vehicle_base_total,
            weekend_surcharge=weekend_surcharge,
            duration_discount=duration_discount,
            vehicle_total=vehicle_total,
            protection_daily_rate=protection_daily_rate,
            protection_total=protection_total,
            add_ons_total=add_ons_total,
            young_driver_fee=young_driver_fee,
            additional_drivers_total=additional_drivers_total,
            daily_fees_total=daily_fees_total,
            delivery_fee=delivery_fee,
            different_dropoff_fee=different_dropoff_fee,
            upgrade_total=upgrade_total,
            add_on_lines=tuple(add_on_lines),
            driver_lines=tuple(driver_lines),
            **self.totals_from_subtotal(subtotal),
        )

    def _discount_rate(self, days: int) -> Decimal:
        cfg = self.config
        if days >= cfg.monthly_threshold_days:
            return cfg.monthly_discount_rate
        if days >= cfg.weekly_threshold_days:
            return cfg.weekly_discount_rate
        return ZERO

    def _protection_rate(self, plan: str, category: str) -> Decimal:
        if plan == "none":
            return ZERO
        group = protection_group_for(category)
        configured = self.repository.get_decimal_setting(f"{group}_{plan}_rate")
        if configured is not None:
            return round_cents(configured)
        fallback = self.config.protection_rates.get(group) or self.config.protection_rates["protection"]
        if plan not in fallback:
            raise PriceComputationFailed(f"No rate for protection plan {plan} in {group}")
        return round_cents(fallback[plan])

    def _add_on_lines(self, request: PricingRequest, category: str, days: int) -> list[AddOnLine]:
        cfg = self.config
        selections = list(request.add_ons)[: cfg.max_add_ons]
        if not selections:
            return []
        add_ons = self.repository.get_add_ons(selection.add_on_id for selection in selections)

        if request.protection_plan == "premium":
            # Premium protection already includes premium roadside cover
            dropped = [s.add_on_id for s in selections if add_ons[int(s.add_on_id)].is_premium_roadside]
            if dropped:
                logger.info(f"Dropping roadside add-ons {dropped} covered by premium protection")
                selections = [s for s in selections if int(s.add_on_id) not in dropped]

        lines: list[AddOnLine] = []
        for selection in selections:
            add_on = add_ons[int(selection.add_on_id)]
            if add_on.is_fuel_service:
                litres = cfg.tank_litres_for(category)
                price = round_cents(litres * cfg.fuel_price_per_litre)
                lines.append(AddOnLine(add_on.pk, add_on.name, 1, price))
                continue

            quantity = min(cfg.max_add_on_quantity, max(1, int(selection.quantity)))
            daily_cost = round_cents(to_decimal(add_on.daily_rate) * days * quantity)
            one_time_cost = round_cents(to_decimal(add_on.one_time_fee or ZERO) * quantity)
            lines.append(AddOnLine(add_on.pk, add_on.name, quantity, round_cents(daily_cost + one_time_cost)))
        return lines

    def _driver_lines(self, drivers: Sequence[AdditionalDriverInput], days: int) -> list[AdditionalDriverLine]:
        cfg = self.config
        drivers = list(drivers)[: cfg.max_additional_drivers]
        if not drivers:
            return []

        configured = self.repository.get_decimal_settings(ADDITIONAL_DRIVER_STANDARD_KEYS + ADDITIONAL_DRIVER_YOUNG_KEYS)
        standard_rate = next(
            (configured[key] for key in ADDITIONAL_DRIVER_STANDARD_KEYS if key in configured),
            cfg.additional_driver_standard_rate,
        )
        young_rate = next(
            (configured[key] for key in ADDITIONAL_DRIVER_YOUNG_KEYS if key in configured),
            cfg.additional_driver_young_rate,
        )

        lines = []
        for driver in drivers:
            if driver.age_band not in AGE_BANDS:
                raise PriceComputationFailed(f"Unknown additional driver age band: {driver.age_band}")
            rate = young_rate if driver.age_band == YOUNG_DRIVER_BAND else standard_rate
            name = (driver.driver_name or "").strip()[:100] or None
            lines.append(AdditionalDriverLine(name, driver.age_band, round_cents(rate * days)))
        return lines

    def _dropoff_fee(self, request: PricingRequest) -> Decimal:
        if request.pickup_location_id and request.return_location_id:
            if request.pickup_location_id == request.return_location_id:
                return ZERO
            groups = self.repository.get_fee_groups(request.pickup_location_id, request.return_location_id)
            pickup_group, return_group = (group.strip().lower() for group in groups)
            if not pickup_group or not return_group or pickup_group == return_group:
                return ZERO
            pair = "|".join(sorted((pickup_group, return_group)))
            return round_cents(self.config.dropoff_fees.get(pair, ZERO))
        return self._non_negative(request.different_dropoff_fee, "drop-off fee")

    @staticmethod
    def _non_negative(value, label: str) -> Decimal:
        if value is None:
            return ZERO
        amount = round_cents(value)
        if amount < 0:
            raise PriceComputationFailed(f"Negative {label} is not allowed.")
        return amount
