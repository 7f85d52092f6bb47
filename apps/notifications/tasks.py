"""Celery tasks for notification delivery."""

from __future__ import annotations

import logging

from celery import shared_task  # type: ignore

logger = logging.getLogger(__name__)


@shared_task(name="notifications.dispatch_notification")
def dispatch_notification(
    booking_id: int,
    channel: str,
    template_type: str,
    idempotency_key: str | None = None,
    context: dict | None = None,
    secret_ref: str | None = None,
) -> dict:
    from apps.bookings.models import Booking

    from .services import NotificationDispatcher, claim_secret_context

    secret = claim_secret_context(secret_ref)
    if secret is None:
        logger.warning(f"Secret context for booking {booking_id} expired, {template_type} notification dropped")
        return {"sent": False, "skipped": True}

    try:
        booking = Booking.objects.select_related("user", "vehicle").get(pk=booking_id)
    except Booking.DoesNotExist:
        logger.warning(f"Booking {booking_id} not found, {template_type} notification dropped")
        return {"sent": False, "skipped": True}

    result = NotificationDispatcher().send(
        booking, channel, template_type, idempotency_key, context={**(context or {}), **secret}
    )
    return {
        "sent": result.sent,
        "skipped": result.skipped,
        "channels": {name: item.ok for name, item in result.channels.items()},
    }
