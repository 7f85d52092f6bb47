"""Hashed one-time codes and access tokens issued to guest bookers."""

from __future__ import annotations

from django.db import models  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class BookingOtp(models.Model):
    class Channel(models.TextChoices):
        EMAIL = "email", _("Email")
        SMS = "sms", _("SMS")

    booking = models.ForeignKey("bookings.Booking", on_delete=models.CASCADE, related_name="otps")
    otp_hash = models.CharField(max_length=64)
    channel = models.CharField(max_length=8, choices=Channel.choices, default=Channel.EMAIL)
    expires_at = models.DateTimeField()
    attempts = models.PositiveSmallIntegerField(default=0)
    verified_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Booking one-time code")
        verbose_name_plural = _("Booking one-time codes")
        ordering = ["-created_at", "-id"]
        indexes = [models.Index(fields=["booking", "created_at"])]

    def __str__(self) -> str:
        return f"OTP for booking {self.booking_id} via {self.channel}"

    @property
    def is_expired(self) -> bool:
        return self.expires_at <= timezone.now()


class BookingAccessToken(models.Model):
    booking = models.ForeignKey("bookings.Booking", on_delete=models.CASCADE, related_name="access_tokens")
    token_hash = models.CharField(max_length=64, unique=True)
    expires_at = models.DateTimeField()
    revoked_at = models.DateTimeField(null=True, blank=True)
    used_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Booking access token")
        verbose_name_plural = _("Booking access tokens")
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"Access token for booking {self.booking_id}"

    @property
    def is_active(self) -> bool:
        return self.revoked_at is None and self.expires_at > timezone.now()
