"""Per-IP and per-booking limits on OTP send and verify, each counted in its own window."""

from __future__ import annotations

from shared.throttling import ClientIpThrottle, WindowRateThrottle


class OtpIpThrottle(ClientIpThrottle):
    scope = "otp_ip"


class OtpBookingThrottle(WindowRateThrottle):
    scope = "otp_booking"

    def get_cache_key(self, request, view):  # type: ignore
        booking_id = request.data.get("bookingId") if hasattr(request.data, "get") else None
        if booking_id in (None, ""):
            return None
        return self.cache_format % {"scope": self.scope, "ident": str(booking_id)}


class OtpVerifyIpThrottle(OtpIpThrottle):
    scope = "otp_verify_ip"


class OtpVerifyBookingThrottle(OtpBookingThrottle):
    scope = "otp_verify_booking"
