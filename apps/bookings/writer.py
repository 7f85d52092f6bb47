"""Persistence of bookings and their priced lines.

``BookingWriter`` is the only code that assigns money fields on a
``Booking``. Every amount it writes comes from ``PricingEngine``; request
payloads contribute identifiers, dates and free-text details only, and
the free text is sanitized and length-bounded here.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import structlog
from django.db import transaction  # type: ignore
from django.db.models import Sum  # type: ignore
from django.utils import timezone  # type: ignore

from apps.fleet.models import AddOn
from apps.pricing.engine import (
    AddOnSelection,
    AdditionalDriverInput,
    PriceBreakdown,
    PricingEngine,
    PricingRequest,
)
from apps.pricing.validator import PriceValidator
from shared.domain.value_objects import ZERO, round_cents
from shared.errors import InvalidStateTransition, ValidationFailed

from .models import Booking, BookingAddOn, BookingAdditionalDriver
from .services import ensure_vehicle_is_available

logger = structlog.get_logger(__name__)

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")

MONEY_FIELDS = [
    "daily_rate",
    "total_days",
    "vehicle_total",
    "protection_total",
    "add_ons_total",
    "young_driver_fee",
    "additional_drivers_total",
    "daily_fees_total",
    "delivery_fee",
    "different_dropoff_fee",
    "subtotal",
    "tax_amount",
    "total_amount",
    "deposit_amount",
]


def sanitize_text(value, limit: int) -> str:
    if value is None:
        return ""
    return _CONTROL_CHARS.sub("", str(value)).strip()[:limit]


def sanitize_phone(value) -> str:
    if not value:
        return ""
    return "".join(ch for ch in str(value) if ch.isdigit() or ch == "+")[:20]


@dataclass(frozen=True)
class BookingDetails:
    """Non-financial checkout fields."""

    notes: str = ""
    pickup_address: str = ""
    pickup_contact_name: str = ""
    pickup_contact_phone: str = ""
    special_instructions: str = ""
    card_holder_name: str = ""
    card_last_four: str = ""

    def sanitized(self) -> dict[str, str]:
        digits = "".join(ch for ch in (self.card_last_four or "") if ch.isdigit())
        return {
            "notes": sanitize_text(self.notes, 1000),
            "pickup_address": sanitize_text(self.pickup_address, 500),
            "pickup_contact_name": sanitize_text(self.pickup_contact_name, 100),
            "pickup_contact_phone": sanitize_phone(self.pickup_contact_phone),
            "special_instructions": sanitize_text(self.special_instructions, 500),
            "card_holder_name": sanitize_text(self.card_holder_name, 255),
            "card_last_four": digits[-4:],
        }


def apply_breakdown(booking: Booking, breakdown: PriceBreakdown) -> None:
    booking.daily_rate = breakdown.daily_rate
    booking.total_days = breakdown.days
    booking.vehicle_total = breakdown.vehicle_total
    booking.protection_total = breakdown.protection_total
    booking.add_ons_total = breakdown.add_ons_total
    booking.young_driver_fee = breakdown.young_driver_fee
    booking.additional_drivers_total = breakdown.additional_drivers_total
    booking.daily_fees_total = breakdown.daily_fees_total
    booking.delivery_fee = breakdown.delivery_fee
    booking.different_dropoff_fee = breakdown.different_dropoff_fee
    booking.subtotal = breakdown.subtotal
    booking.tax_amount = breakdown.tax_amount
    booking.total_amount = breakdown.total
    booking.deposit_amount = breakdown.deposit_amount


def _schedule_notification(booking_id: int, template: str) -> None:
    from apps.notifications.services import dispatch_later

    dispatch_later(booking_id, "both", template)


class BookingWriter:
    def __init__(self, engine: PricingEngine | None = None):
        self.engine = engine or PricingEngine()
        self.validator = PriceValidator(self.engine)

    # --- checkout -------------------------------------------------------

    def create(
        self,
        request: PricingRequest,
        *,
        user,
        client_total,
        status: str = Booking.Status.PENDING,
        details: BookingDetails | None = None,
        source: str = "web",
    ) -> Booking:
        """Validate the client total, check availability and insert the booking with its lines."""

        breakdown = self.validator.ensure_valid(request, client_total)
        details = details or BookingDetails()

        with transaction.atomic():
            ensure_vehicle_is_available(request.vehicle_id, request.start_at, request.end_at)
            booking = Booking(
                user=user,
                vehicle_id=request.vehicle_id,
                pickup_location_id=request.pickup_location_id,
                return_location_id=request.return_location_id,
                start_at=request.start_at,
                end_at=request.end_at,
                driver_age_band=request.driver_age_band,
                protection_plan=request.protection_plan,
                status=status,
                source=source,
                **details.sanitized(),
            )
            apply_breakdown(booking, breakdown)
            booking.save()
            BookingAddOn.objects.bulk_create(
                BookingAddOn(booking=booking, add_on_id=line.add_on_id, quantity=line.quantity, price=line.price)
                for line in breakdown.add_on_lines
            )
            BookingAdditionalDriver.objects.bulk_create(
                BookingAdditionalDriver(
                    booking=booking,
                    driver_name=line.driver_name or "",
                    age_band=line.age_band,
                    fee=line.fee,
                )
                for line in breakdown.driver_lines
            )
            _schedule_notification(booking.pk, "confirmation")

        logger.info(
            "booking_created",
            booking_id=booking.pk,
            booking_code=booking.booking_code,
            vehicle_id=booking.vehicle_id,
            status=booking.status,
            total=str(booking.total_amount),
        )
        return booking

    def discard_failed(self, booking: Booking) -> None:
        """Hard-delete a booking whose payment attempt failed before any hold."""

        with transaction.atomic():
            booking = self._lock(booking)
            if booking.status not in (Booking.Status.DRAFT, Booking.Status.PENDING):
                raise InvalidStateTransition("Only draft or pending bookings can be discarded.")
            if booking.deposit_status != Booking.DepositStatus.NONE:
                raise InvalidStateTransition("Booking has a deposit hold and cannot be discarded.")
            booking_id, code = booking.pk, booking.booking_code
            booking.delete()
        logger.info("booking_discarded", booking_id=booking_id, booking_code=code)

    # --- repricing ------------------------------------------------------

    def reprice(self, booking: Booking, *, actor=None, reason: str = "") -> Booking:
        """Recompute totals from the engine plus the booking's current child rows."""

        with transaction.atomic():
            booking = self._lock(booking)
            old_total = booking.total_amount
            add_ons_total = booking.add_on_lines.aggregate(total=Sum("price"))["total"] or ZERO
            drivers_total = booking.additional_drivers.aggregate(total=Sum("fee"))["total"] or ZERO
            breakdown = self.engine.quote_with_lines(self.request_for(booking), add_ons_total, drivers_total)
            apply_breakdown(booking, breakdown)
            booking.save(update_fields=MONEY_FIELDS + ["updated_at"])

        logger.info(
            "booking_repriced",
            booking_id=booking.pk,
            actor_id=getattr(actor, "pk", None),
            reason=reason,
            old_total=str(old_total),
            new_total=str(booking.total_amount),
        )
        return booking

    def modify_dates(self, booking: Booking, new_end_at, *, actor, reason: str = "") -> Booking:
        with transaction.atomic():
            booking = self._lock(booking)
            self._ensure_modifiable(booking)
            if new_end_at <= booking.start_at:
                raise ValidationFailed("New return time must be after pickup.")
            ensure_vehicle_is_available(
                booking.vehicle_id, booking.start_at, new_end_at, exclude_booking_id=booking.pk
            )
            old_end = booking.end_at
            booking.end_at = new_end_at
            booking.save(update_fields=["end_at", "updated_at"])
            self._refresh_line_prices(booking)
            booking = self.reprice(booking, actor=actor, reason=reason or "dates modified")

        logger.info(
            "booking_dates_modified",
            booking_id=booking.pk,
            actor_id=getattr(actor, "pk", None),
            old_end_at=old_end.isoformat(),
            new_end_at=new_end_at.isoformat(),
        )
        return booking

    def apply_upgrade(self, booking: Booking, upgrade_daily_fee, *, actor, reason: str = "") -> Booking:
        fee = round_cents(upgrade_daily_fee)
        if fee <= 0:
            raise ValidationFailed("Upgrade daily fee must be positive.")
        with transaction.atomic():
            booking = self._lock(booking)
            self._ensure_modifiable(booking)
            booking.upgrade_daily_fee = fee
            booking.save(update_fields=["upgrade_daily_fee", "updated_at"])
            return self.reprice(booking, actor=actor, reason=reason or "upgrade applied")

    def remove_upgrade(self, booking: Booking, *, actor, reason: str = "") -> Booking:
        with transaction.atomic():
            booking = self._lock(booking)
            self._ensure_modifiable(booking)
            booking.upgrade_daily_fee = None
            booking.save(update_fields=["upgrade_daily_fee", "updated_at"])
            return self.reprice(booking, actor=actor, reason=reason or "upgrade removed")

    # --- upsells --------------------------------------------------------

    def upsell_add(self, booking: Booking, add_on_id: int, quantity: int = 1, *, actor=None) -> BookingAddOn:
        """Attach (or replace) an add-on line priced by the engine, then reprice."""

        with transaction.atomic():
            booking = self._lock(booking)
            self._ensure_modifiable(booking)
            if not AddOn.objects.filter(pk=add_on_id, is_active=True).exists():
                raise ValidationFailed("Unknown add-on.")
            other_lines = booking.add_on_lines.exclude(add_on_id=add_on_id).count()
            if other_lines >= self.engine.config.max_add_ons:
                raise ValidationFailed("Booking already has the maximum number of add-ons.")

            priced = self.engine.quote(self.request_for(booking, add_ons=(AddOnSelection(add_on_id, quantity),)))
            if not priced.add_on_lines:
                raise ValidationFailed("This add-on is already included in the booking's protection plan.")
            line = priced.add_on_lines[0]

            BookingAddOn.objects.filter(booking=booking, add_on_id=add_on_id).delete()
            created = BookingAddOn.objects.create(
                booking=booking, add_on_id=add_on_id, quantity=line.quantity, price=line.price
            )
            self.reprice(booking, actor=actor, reason=f"add-on {add_on_id} added")

        logger.info("booking_add_on_added", booking_id=booking.pk, add_on_id=add_on_id, price=str(line.price))
        return created

    def upsell_remove(self, booking: Booking, booking_add_on_id: int, *, actor=None) -> Booking:
        with transaction.atomic():
            booking = self._lock(booking)
            self._ensure_modifiable(booking)
            line = BookingAddOn.objects.filter(pk=booking_add_on_id, booking=booking).first()
            if line is None:
                raise ValidationFailed("Add-on line does not belong to this booking.")
            add_on_id = line.add_on_id
            line.delete()
            booking = self.reprice(booking, actor=actor, reason=f"add-on {add_on_id} removed")

        logger.info("booking_add_on_removed", booking_id=booking.pk, add_on_id=add_on_id)
        return booking

    # --- lifecycle ------------------------------------------------------

    def void(self, booking: Booking, *, actor, reason: str) -> Booking:
        reason = sanitize_text(reason, 500)
        if not reason:
            raise ValidationFailed("A reason is required to void a booking.")
        with transaction.atomic():
            booking = self._lock(booking)
            if booking.is_terminal:
                raise InvalidStateTransition(f"Booking is already {booking.status}.")
            previous = booking.status
            booking.status = Booking.Status.VOIDED
            booking.void_reason = reason
            booking.voided_at = timezone.now()
            booking.save(update_fields=["status", "void_reason", "voided_at", "updated_at"])
            _schedule_notification(booking.pk, "booking_voided")

        logger.info(
            "booking_voided",
            booking_id=booking.pk,
            actor_id=getattr(actor, "pk", None),
            previous_status=previous,
            reason=reason,
        )
        return booking

    # --- helpers --------------------------------------------------------

    def request_for(self, booking: Booking, add_ons=(), additional_drivers=()) -> PricingRequest:
        """Rebuild the engine input from a persisted booking."""

        has_locations = bool(booking.pickup_location_id and booking.return_location_id)
        return PricingRequest(
            vehicle_id=booking.vehicle_id,
            start_at=booking.start_at,
            end_at=booking.end_at,
            driver_age_band=booking.driver_age_band,
            protection_plan=booking.protection_plan,
            add_ons=tuple(add_ons),
            additional_drivers=tuple(additional_drivers),
            delivery_fee=booking.delivery_fee,
            different_dropoff_fee=None if has_locations else booking.different_dropoff_fee,
            pickup_location_id=booking.pickup_location_id,
            return_location_id=booking.return_location_id,
            upgrade_daily_fee=booking.upgrade_daily_fee,
        )

    def _refresh_line_prices(self, booking: Booking) -> None:
        """Re-price existing add-on and driver rows for the booking's current period."""

        add_on_rows = list(booking.add_on_lines.all())
        driver_rows = list(booking.additional_drivers.all())
        if not add_on_rows and not driver_rows:
            return
        breakdown = self.engine.quote(
            self.request_for(
                booking,
                add_ons=[AddOnSelection(row.add_on_id, row.quantity) for row in add_on_rows],
                additional_drivers=[AdditionalDriverInput(row.age_band, row.driver_name) for row in driver_rows],
            )
        )
        prices = {line.add_on_id: line.price for line in breakdown.add_on_lines}
        for row in add_on_rows:
            if row.add_on_id in prices and prices[row.add_on_id] != row.price:
                row.price = prices[row.add_on_id]
                row.save(update_fields=["price"])
        for row, line in zip(driver_rows, breakdown.driver_lines):
            if row.fee != line.fee:
                row.fee = line.fee
                row.save(update_fields=["fee"])

    @staticmethod
    def _lock(booking: Booking) -> Booking:
        from .services import _lock_queryset_if_possible

        return _lock_queryset_if_possible(Booking.objects.filter(pk=booking.pk)).get()

    @staticmethod
    def _ensure_modifiable(booking: Booking) -> None:
        if booking.status not in Booking.MODIFIABLE_STATUSES:
            raise InvalidStateTransition(f"Booking in status {booking.status} cannot be modified.")
