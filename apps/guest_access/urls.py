from __future__ import annotations

from django.urls import path  # type: ignore

from .views import OtpRequestView, OtpVerifyView

urlpatterns = [
    path("otp/", OtpRequestView.as_view(), name="guest-access-otp"),
    path("verify/", OtpVerifyView.as_view(), name="guest-access-verify"),
]
