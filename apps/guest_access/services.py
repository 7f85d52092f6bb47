"""
Guest access authority

A guest who checked out without an account proves control of the booking's
contact details with a one-time code. A verified code is exchanged for a
short-lived access token; only the HMAC digests of codes and tokens are
stored. The human-readable booking code is never accepted as proof.
"""

from __future__ import annotations

import re
from datetime import timedelta

import structlog
from django.conf import settings  # type: ignore
from django.db import transaction  # type: ignore
from django.db.models import F  # type: ignore
from django.utils import timezone  # type: ignore

from shared.errors import (
    Forbidden,
    OtpExhausted,
    OtpExpired,
    OtpInvalid,
    Unauthorized,
    ValidationFailed,
)
from shared.infrastructure.hashing import (
    digests_match,
    generate_numeric_code,
    generate_token,
    keyed_digest,
)

from .models import BookingAccessToken, BookingOtp

logger = structlog.get_logger(__name__)

OTP_FORMAT = re.compile(r"^\d{4,8}$")


def _setting(name: str, default: int) -> int:
    return int(getattr(settings, "GUEST_ACCESS", {}).get(name, default))


def mask_contact(channel: str, contact: str) -> str:
    if channel == BookingOtp.Channel.SMS:
        return f"***{contact[-4:]}"
    local, _, domain = contact.partition("@")
    return f"{local[:2]}***@{domain}"


class GuestAccessAuthority:
    def __init__(self):
        self.otp_ttl = timedelta(minutes=_setting("OTP_TTL_MINUTES", 10))
        self.max_attempts = _setting("OTP_MAX_ATTEMPTS", 5)
        self.token_ttl = timedelta(minutes=_setting("ACCESS_TOKEN_TTL_MINUTES", 30))

    def issue(self, booking, channel: str = BookingOtp.Channel.EMAIL) -> tuple[BookingOtp, str]:
        """Create a fresh code, invalidate older ones and queue its delivery."""

        from apps.notifications.services import dispatch_later

        user = booking.user
        contact = user.phone if channel == BookingOtp.Channel.SMS else user.email
        if not contact:
            raise ValidationFailed(f"No {'phone number' if channel == 'sms' else 'email address'} on file.")

        code = generate_numeric_code(6)
        now = timezone.now()
        with transaction.atomic():
            BookingOtp.objects.filter(
                booking=booking, verified_at__isnull=True, expires_at__gt=now
            ).update(expires_at=now)
            otp = BookingOtp.objects.create(
                booking=booking,
                otp_hash=keyed_digest(code),
                channel=channel,
                expires_at=now + self.otp_ttl,
            )
            dispatch_later(booking.pk, channel, "otp", secret_context={"code": code})

        logger.info("otp_issued", booking_id=booking.pk, channel=channel, otp_id=otp.pk)
        return otp, mask_contact(channel, contact)

    def verify(self, booking, code) -> tuple[str, object]:
        """Consume a code and mint an access token. Returns ``(raw_token, expires_at)``."""

        code = str(code or "").strip()
        if not OTP_FORMAT.match(code):
            raise ValidationFailed("Code must be 4 to 8 digits.")

        otp = BookingOtp.objects.filter(booking=booking).order_by("-created_at", "-id").first()
        if otp is None:
            raise OtpExpired()
        if otp.verified_at is not None:
            raise OtpInvalid("Code has already been used.")
        if otp.attempts >= self.max_attempts:
            raise OtpExhausted()
        if otp.is_expired:
            raise OtpExpired()

        now = timezone.now()
        if not digests_match(code, otp.otp_hash):
            BookingOtp.objects.filter(pk=otp.pk).update(attempts=F("attempts") + 1)
            otp.refresh_from_db(fields=["attempts"])
            logger.warning("otp_mismatch", booking_id=booking.pk, attempts=otp.attempts)
            if otp.attempts >= self.max_attempts:
                BookingOtp.objects.filter(pk=otp.pk).update(expires_at=now)
                raise OtpExhausted()
            raise OtpInvalid(remaining_attempts=self.max_attempts - otp.attempts)

        with transaction.atomic():
            consumed = BookingOtp.objects.filter(pk=otp.pk, verified_at__isnull=True).update(verified_at=now)
            if not consumed:
                raise OtpInvalid("Code has already been used.")
            raw_token, expires_at = self._mint_token(booking, now)

        logger.info("otp_verified", booking_id=booking.pk, otp_id=otp.pk)
        return raw_token, expires_at

    def _mint_token(self, booking, now):
        BookingAccessToken.objects.filter(booking=booking, revoked_at__isnull=True).update(revoked_at=now)
        raw_token = generate_token(32)
        expires_at = now + self.token_ttl
        BookingAccessToken.objects.create(booking=booking, token_hash=keyed_digest(raw_token), expires_at=expires_at)
        return raw_token, expires_at

    def validate_token(self, booking, raw_token: str | None) -> bool:
        if not raw_token:
            return False
        now = timezone.now()
        token = BookingAccessToken.objects.filter(
            booking=booking,
            token_hash=keyed_digest(raw_token),
            revoked_at__isnull=True,
            expires_at__gt=now,
        ).first()
        if token is None:
            return False
        BookingAccessToken.objects.filter(pk=token.pk, used_at__isnull=True).update(used_at=now)
        return True

    def require_owner_or_token(self, booking, user, raw_token: str | None = None) -> str:
        """Return how access was granted: ``"owner"``, ``"staff"`` or ``"token"``."""

        if user is not None and user.is_authenticated:
            if booking.user_id == user.pk:
                return "owner"
            if hasattr(user, "is_staff_member") and user.is_staff_member():
                return "staff"
        if raw_token:
            if self.validate_token(booking, raw_token):
                return "token"
            raise Unauthorized("Access token is invalid or expired.")
        if user is not None and user.is_authenticated:
            raise Forbidden()
        raise Unauthorized()

    def purge_expired(self, older_than: timedelta = timedelta(days=1)) -> dict[str, int]:
        cutoff = timezone.now() - older_than
        otps, _ = BookingOtp.objects.filter(expires_at__lt=cutoff).delete()
        tokens, _ = BookingAccessToken.objects.filter(expires_at__lt=cutoff).delete()
        return {"otps": otps, "tokens": tokens}
