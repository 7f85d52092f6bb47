"""Fleet and rate-table models for DriveFleet."""

from __future__ import annotations

from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from shared.infrastructure.fields import MoneyField


class Location(models.Model):
    """Pickup / return branch."""

    name = models.CharField(max_length=255)
    address = models.CharField(max_length=255, blank=True)
    city = models.CharField(max_length=100)
    fee_group = models.CharField(
        max_length=50,
        blank=True,
        help_text=_("Branches in different fee groups incur a drop-off fee (e.g. surrey, langley)."),
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Location")
        verbose_name_plural = _("Locations")
        ordering = ["name"]

    def __str__(self) -> str:
        return f"{self.name} ({self.city})"


class Vehicle(models.Model):
    """Rentable vehicle with its canonical daily rate."""

    name = models.CharField(max_length=255)
    category = models.CharField(
        max_length=100,
        help_text=_("Free-text category, e.g. 'Standard SUV', 'Minivan', 'Economy'."),
    )
    daily_rate = MoneyField()
    home_location = models.ForeignKey(
        Location,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="vehicles",
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Vehicle")
        verbose_name_plural = _("Vehicles")
        ordering = ["name"]
        indexes = [
            models.Index(fields=["is_active", "category"]),
        ]

    def __str__(self) -> str:
        return f"{self.name} [{self.category}] @ {self.daily_rate}/day"


class AddOn(models.Model):
    """Optional extra (child seat, GPS, fuel service, roadside cover...)."""

    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    daily_rate = MoneyField()
    one_time_fee = MoneyField(null=True, blank=True, default=None)
    is_active = models.BooleanField(default=True)

    class Meta:
        verbose_name = _("Add-on")
        verbose_name_plural = _("Add-ons")
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name

    @property
    def is_fuel_service(self) -> bool:
        lower = self.name.lower()
        return "fuel" in lower and any(word in lower for word in ("service", "tank", "prepaid"))

    @property
    def is_premium_roadside(self) -> bool:
        lower = self.name.lower()
        return "roadside" in lower and ("premium" in lower or "extended" in lower)


class SystemSetting(models.Model):
    """Key/value rate settings editable by administrators."""

    key = models.CharField(max_length=100, unique=True)
    value = models.CharField(max_length=255)
    description = models.CharField(max_length=255, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("System setting")
        verbose_name_plural = _("System settings")
        ordering = ["key"]

    def __str__(self) -> str:
        return f"{self.key}={self.value}"
