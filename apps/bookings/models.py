"""Booking domain models for DriveFleet."""

from __future__ import annotations

import secrets

from django.conf import settings  # type: ignore
from django.db import models, transaction  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from shared.infrastructure.fields import MoneyField


class Booking(models.Model):
    """A vehicle reservation. Every money field is written by BookingWriter only."""

    class Status(models.TextChoices):
        DRAFT = "draft", _("Draft")
        PENDING = "pending", _("Pending")
        CONFIRMED = "confirmed", _("Confirmed")
        ACTIVE = "active", _("Active (vehicle out)")
        COMPLETED = "completed", _("Completed")
        VOIDED = "voided", _("Voided")

    class DepositStatus(models.TextChoices):
        NONE = "none", _("No hold")
        AUTHORIZED = "authorized", _("Authorized")
        CAPTURING = "capturing", _("Capturing")
        CAPTURED = "captured", _("Captured")
        RELEASING = "releasing", _("Releasing")
        RELEASED = "released", _("Released")

    class AgeBand(models.TextChoices):
        YOUNG = "20_24", _("20-24")
        STANDARD = "25_70", _("25-70")

    class ProtectionPlan(models.TextChoices):
        NONE = "none", _("No protection")
        BASIC = "basic", _("Basic")
        SMART = "smart", _("Smart")
        PREMIUM = "premium", _("Premium")

    # Statuses that hold the vehicle for their period
    BLOCKING_STATUSES = (Status.DRAFT, Status.PENDING, Status.CONFIRMED, Status.ACTIVE)
    # Staff may reprice only while the rental is still open
    MODIFIABLE_STATUSES = (Status.PENDING, Status.CONFIRMED, Status.ACTIVE)
    TERMINAL_STATUSES = (Status.COMPLETED, Status.VOIDED)

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    vehicle = models.ForeignKey(
        "fleet.Vehicle",
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    pickup_location = models.ForeignKey(
        "fleet.Location",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="pickup_bookings",
    )
    return_location = models.ForeignKey(
        "fleet.Location",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="return_bookings",
    )
    booking_code = models.CharField(max_length=12, unique=True, editable=False)
    source = models.CharField(max_length=20, default="web")
    start_at = models.DateTimeField()
    end_at = models.DateTimeField()
    driver_age_band = models.CharField(max_length=8, choices=AgeBand.choices, default=AgeBand.STANDARD)
    protection_plan = models.CharField(max_length=16, choices=ProtectionPlan.choices, default=ProtectionPlan.NONE)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING)
    deposit_status = models.CharField(max_length=16, choices=DepositStatus.choices, default=DepositStatus.NONE)

    # Server-computed amounts
    daily_rate = MoneyField()
    total_days = models.PositiveSmallIntegerField(default=1)
    vehicle_total = MoneyField()
    protection_total = MoneyField()
    add_ons_total = MoneyField()
    young_driver_fee = MoneyField()
    additional_drivers_total = MoneyField()
    daily_fees_total = MoneyField()
    delivery_fee = MoneyField()
    different_dropoff_fee = MoneyField()
    upgrade_daily_fee = MoneyField(null=True, blank=True, default=None)
    subtotal = MoneyField(max_digits=12)
    tax_amount = MoneyField(max_digits=12)
    total_amount = MoneyField(max_digits=12)
    deposit_amount = MoneyField(max_digits=12)
    currency = models.CharField(max_length=3, default="CAD")

    # Deposit hold projection; the ledger is in apps.deposits
    deposit_payment_intent_id = models.CharField(max_length=255, blank=True)
    deposit_charge_id = models.CharField(max_length=255, blank=True)
    deposit_authorized_amount = MoneyField(max_digits=12, null=True, blank=True, default=None)
    deposit_captured_amount = MoneyField(max_digits=12, null=True, blank=True, default=None)
    deposit_authorized_at = models.DateTimeField(null=True, blank=True)
    deposit_captured_at = models.DateTimeField(null=True, blank=True)
    deposit_released_at = models.DateTimeField(null=True, blank=True)

    # Non-financial details (length-bounded by the writer)
    notes = models.TextField(blank=True)
    pickup_address = models.CharField(max_length=500, blank=True)
    pickup_contact_name = models.CharField(max_length=100, blank=True)
    pickup_contact_phone = models.CharField(max_length=20, blank=True)
    special_instructions = models.CharField(max_length=500, blank=True)
    card_holder_name = models.CharField(max_length=255, blank=True)
    card_last_four = models.CharField(max_length=4, blank=True)

    void_reason = models.CharField(max_length=500, blank=True)
    voided_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Booking")
        verbose_name_plural = _("Bookings")
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                check=models.Q(end_at__gt=models.F("start_at")),
                name="booking_valid_period",
            ),
        ]
        indexes = [
            models.Index(fields=["vehicle", "start_at", "end_at"]),
            models.Index(fields=["status"]),
            models.Index(fields=["deposit_status"]),
        ]

    def __str__(self) -> str:
        return f"Booking #{self.booking_code} for vehicle {self.vehicle_id}"

    def save(self, *args, **kwargs):  # type: ignore
        with transaction.atomic():
            if self._state.adding and not self.booking_code:
                self.booking_code = self.generate_booking_code()
            super().save(*args, **kwargs)

    @staticmethod
    def generate_booking_code() -> str:
        return secrets.token_hex(4).upper()

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATUSES


class BookingAddOn(models.Model):
    """Add-on line priced by the engine at the time it was attached."""

    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name="add_on_lines")
    add_on = models.ForeignKey("fleet.AddOn", on_delete=models.PROTECT, related_name="booking_lines")
    quantity = models.PositiveSmallIntegerField(default=1)
    price = MoneyField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Booking add-on")
        verbose_name_plural = _("Booking add-ons")
        constraints = [
            models.UniqueConstraint(fields=["booking", "add_on"], name="unique_booking_add_on"),
        ]

    def __str__(self) -> str:
        return f"{self.add_on_id} x{self.quantity} on {self.booking_id}"


class BookingAdditionalDriver(models.Model):
    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name="additional_drivers")
    driver_name = models.CharField(max_length=100, blank=True)
    age_band = models.CharField(max_length=8, choices=Booking.AgeBand.choices)
    fee = MoneyField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Additional driver")
        verbose_name_plural = _("Additional drivers")
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return f"{self.driver_name or 'Driver'} ({self.age_band}) on {self.booking_id}"
