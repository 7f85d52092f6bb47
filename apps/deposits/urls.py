"""Deposit routes, mounted under the bookings prefix."""

from __future__ import annotations

from django.urls import path  # type: ignore

from .views import BookingDepositViewSet

urlpatterns = [
    path(
        f"<int:booking_id>/deposit/{action}/",
        BookingDepositViewSet.as_view({method: action}),
        name=f"booking-deposit-{action}",
    )
    for action, method in (
        ("authorize", "post"),
        ("capture", "post"),
        ("release", "post"),
        ("reconcile", "post"),
        ("ledger", "get"),
    )
]
