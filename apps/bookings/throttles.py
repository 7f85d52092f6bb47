from __future__ import annotations

from shared.throttling import ClientIpThrottle


class GuestCheckoutThrottle(ClientIpThrottle):
    """Limits anonymous checkouts per source IP; signed-in customers are not counted."""

    scope = "guest_checkout"

    def allow_request(self, request, view):  # type: ignore
        if request.user and request.user.is_authenticated:
            return True
        return super().allow_request(request, view)
