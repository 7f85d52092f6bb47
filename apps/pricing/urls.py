"""URL routing for pricing endpoints."""

from __future__ import annotations

from django.urls import path  # type: ignore

from .views import QuoteView, ValidatePriceView

urlpatterns = [
    path("quote/", QuoteView.as_view(), name="pricing-quote"),
    path("validate/", ValidatePriceView.as_view(), name="pricing-validate"),
]
