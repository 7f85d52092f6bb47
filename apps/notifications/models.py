"""Notification log.

One row per dispatched notification (not per channel). The idempotency key
groups sends of the same template for the same booking within an hour
bucket so duplicate triggers inside the dedup window are skipped.
"""

from __future__ import annotations

from django.db import models  # type: ignore


class NotificationLog(models.Model):
    class Status(models.TextChoices):
        SENT = "sent", "Sent"
        PARTIAL = "partial", "Partially sent"
        FAILED = "failed", "Failed"

    booking = models.ForeignKey(
        "bookings.Booking", on_delete=models.CASCADE, related_name="notification_logs"
    )
    user = models.ForeignKey(
        "users.CustomUser", on_delete=models.SET_NULL, null=True, blank=True, related_name="notification_logs"
    )
    template_type = models.CharField(max_length=40)
    channel = models.CharField(max_length=8)
    status = models.CharField(max_length=10, choices=Status.choices)
    idempotency_key = models.CharField(max_length=120, db_index=True)
    channel_results = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self) -> str:
        return f"{self.template_type} to booking {self.booking_id}: {self.status}"
