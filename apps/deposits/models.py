"""Append-only ledger of deposit movements."""

from __future__ import annotations

from django.conf import settings  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from shared.infrastructure.fields import MoneyField


class LedgerImmutableError(Exception):
    pass


class DepositLedgerEntry(models.Model):
    """One money movement on a booking's deposit hold. Rows are never changed."""

    class Action(models.TextChoices):
        AUTHORIZE = "authorize", _("Hold authorized")
        CAPTURE = "capture", _("Captured")
        PARTIAL_CAPTURE = "partial_capture", _("Partially captured")
        RELEASE = "release", _("Released")

    booking = models.ForeignKey("bookings.Booking", on_delete=models.PROTECT, related_name="deposit_ledger")
    action = models.CharField(max_length=20, choices=Action.choices)
    amount = MoneyField(max_digits=12)
    reason = models.CharField(max_length=500, blank=True)
    payment_intent_id = models.CharField(max_length=255, blank=True)
    charge_id = models.CharField(max_length=255, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="deposit_ledger_entries",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Deposit ledger entry")
        verbose_name_plural = _("Deposit ledger entries")
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return f"{self.action} {self.amount} on booking {self.booking_id}"

    def save(self, *args, **kwargs):  # type: ignore
        if not self._state.adding:
            raise LedgerImmutableError("Deposit ledger entries cannot be modified.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):  # type: ignore
        raise LedgerImmutableError("Deposit ledger entries cannot be deleted.")
