"""Notification services for sending booking emails and SMS messages."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import timedelta, timezone as dt_timezone
from smtplib import SMTPException

from django.conf import settings  # type: ignore
from django.core.cache import cache  # type: ignore
from django.core.mail import send_mail  # type: ignore
from django.db import transaction  # type: ignore
from django.utils import timezone  # type: ignore
from kombu.exceptions import OperationalError  # type: ignore
from requests import RequestException
from twilio.base.exceptions import TwilioException  # type: ignore
from twilio.rest import Client  # type: ignore

from .messages import Message, render_message
from .models import NotificationLog

logger = logging.getLogger(__name__)

CHANNELS = ("email", "sms", "both")
DEDUP_BYPASS_TEMPLATES = ("otp",)


@dataclass
class ChannelResult:
    attempted: bool
    ok: bool = False
    error: str = ""

    def as_dict(self) -> dict:
        return {"attempted": self.attempted, "ok": self.ok, "error": self.error}


@dataclass
class DispatchResult:
    sent: bool
    skipped: bool = False
    channels: dict[str, ChannelResult] = field(default_factory=dict)
    log_id: int | None = None


def default_idempotency_key(template_type: str, booking_id: int, now=None) -> str:
    """``{template}:{booking}:{YYYY-MM-DDTHH}`` using the current UTC hour."""

    now = now or timezone.now()
    return f"{template_type}:{booking_id}:{now.astimezone(dt_timezone.utc).strftime('%Y-%m-%dT%H')}"


# ============================================================================
# CHANNELS
# ============================================================================

class EmailChannel:
    name = "email"

    def send(self, recipient: str, message: Message) -> ChannelResult:
        if not recipient:
            return ChannelResult(attempted=False, error="no email address")
        try:
            send_mail(
                subject=message.subject,
                message=message.email_body,
                from_email=settings.DEFAULT_FROM_EMAIL,
                recipient_list=[recipient],
                fail_silently=False,
            )
        except (SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {recipient}: {e}", exc_info=True)
            return ChannelResult(attempted=True, error=str(e))
        logger.info(f"Email sent successfully to {recipient}: {message.subject}")
        return ChannelResult(attempted=True, ok=True)


class SmsChannel:
    name = "sms"

    def __init__(self, client=None):
        self._client = client

    @property
    def from_number(self) -> str:
        return getattr(settings, "TWILIO_FROM_NUMBER", "")

    def get_client(self):
        if self._client is None:
            sid = getattr(settings, "TWILIO_ACCOUNT_SID", "")
            token = getattr(settings, "TWILIO_AUTH_TOKEN", "")
            if not (sid and token and self.from_number):
                return None
            self._client = Client(sid, token)
        return self._client

    def send(self, recipient: str, message: Message) -> ChannelResult:
        if not recipient:
            return ChannelResult(attempted=False, error="no phone number")
        client = self.get_client()
        if client is None:
            return ChannelResult(attempted=False, error="sms not configured")
        try:
            sent = client.messages.create(body=message.sms_body, from_=self.from_number, to=recipient)
        except (TwilioException, RequestException) as e:
            logger.error(f"Failed to send SMS to {recipient}: {e}", exc_info=True)
            return ChannelResult(attempted=True, error=str(e))
        logger.info(f"SMS sent successfully to {recipient} (SID: {sent.sid})")
        return ChannelResult(attempted=True, ok=True)


# ============================================================================
# DISPATCHER
# ============================================================================

class NotificationDispatcher:
    """Send one template over one or both channels, at most once per dedup window."""

    def __init__(self, email_channel: EmailChannel | None = None, sms_channel: SmsChannel | None = None):
        self.email_channel = email_channel or EmailChannel()
        self.sms_channel = sms_channel or SmsChannel()
        window = getattr(settings, "NOTIFICATIONS", {}).get("DEDUP_WINDOW_MINUTES", 60)
        self.dedup_window = timedelta(minutes=int(window))

    def send(
        self,
        booking,
        channel: str,
        template_type: str,
        idempotency_key: str | None = None,
        *,
        context: dict | None = None,
    ) -> DispatchResult:
        if channel not in CHANNELS:
            raise ValueError(f"Unknown notification channel: {channel}")

        now = timezone.now()
        key = idempotency_key or default_idempotency_key(template_type, booking.pk, now)
        if template_type not in DEDUP_BYPASS_TEMPLATES:
            recent = NotificationLog.objects.filter(
                idempotency_key=key, created_at__gte=now - self.dedup_window
            ).exists()
            if recent:
                logger.info(f"Duplicate notification prevented: {key}")
                return DispatchResult(sent=False, skipped=True)

        message = render_message(template_type, booking, context)
        results: dict[str, ChannelResult] = {}
        if channel in ("email", "both"):
            results["email"] = self.email_channel.send(booking.user.email, message)
        if channel in ("sms", "both"):
            results["sms"] = self.sms_channel.send(booking.user.phone, message)

        delivered = [name for name, result in results.items() if result.ok]
        attempted = [name for name, result in results.items() if result.attempted]
        if not delivered:
            status = NotificationLog.Status.FAILED
        elif len(delivered) < len(attempted):
            status = NotificationLog.Status.PARTIAL
        else:
            status = NotificationLog.Status.SENT

        log = NotificationLog.objects.create(
            booking=booking,
            user_id=booking.user_id,
            template_type=template_type,
            channel="both" if len(delivered) == 2 else (delivered[0] if delivered else "none"),
            status=status,
            idempotency_key=key,
            channel_results={name: result.as_dict() for name, result in results.items()},
        )
        return DispatchResult(sent=bool(delivered), channels=results, log_id=log.pk)


SECRET_CONTEXT_PREFIX = "notifications:secret-context"


def _secret_context_key(ref: str) -> str:
    return f"{SECRET_CONTEXT_PREFIX}:{ref}"


def claim_secret_context(ref: str | None) -> dict | None:
    """Fetch and drop context parked by ``dispatch_later``; ``None`` once expired."""
    if not ref:
        return {}
    key = _secret_context_key(ref)
    secret = cache.get(key)
    cache.delete(key)
    return secret


def dispatch_later(
    booking_id: int,
    channel: str,
    template_type: str,
    *,
    idempotency_key: str | None = None,
    context: dict | None = None,
    secret_context: dict | None = None,
) -> str | None:
    """Queue a send once the surrounding transaction commits. Returns the task id.

    ``secret_context`` (one-time codes) is parked in the cache for the
    lifetime of the task; only its reference crosses the broker.
    """

    from .tasks import dispatch_notification

    task_id = str(uuid.uuid4())
    secret_ref = task_id if secret_context else None

    def _enqueue():
        if secret_ref:
            timeout = getattr(settings, "NOTIFICATION_SECRET_TTL_SECONDS", 600)
            cache.set(_secret_context_key(secret_ref), dict(secret_context), timeout)
        try:
            dispatch_notification.apply_async(
                args=[booking_id, channel, template_type],
                kwargs={"idempotency_key": idempotency_key, "context": context, "secret_ref": secret_ref},
                task_id=task_id,
            )
        except OperationalError as e:
            logger.error(f"Could not queue {template_type} notification for booking {booking_id}: {e}")
            if secret_ref:
                cache.delete(_secret_context_key(secret_ref))

    transaction.on_commit(_enqueue)
    return task_id
