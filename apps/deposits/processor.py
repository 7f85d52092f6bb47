"""
Stripe gateway for deposit holds.

Holds are PaymentIntents created with ``capture_method="manual"``. Amounts
cross this boundary as integer cents; everything above it works in
``Decimal`` dollars. Every call carries the configured network timeout.
"""

from __future__ import annotations

import logging

import stripe
from django.conf import settings  # type: ignore

logger = logging.getLogger(__name__)

UNEXPECTED_STATE = "payment_intent_unexpected_state"


class ProcessorError(Exception):
    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.code = code

    @property
    def unexpected_state(self) -> bool:
        return self.code == UNEXPECTED_STATE


class StripeDepositProcessor:
    def __init__(self, api_key: str | None = None, timeout: int | None = None, currency: str | None = None):
        deposits = getattr(settings, "DEPOSITS", {})
        self.api_key = api_key or settings.STRIPE_SECRET_KEY
        self.currency = currency or deposits.get("CURRENCY", "cad")
        self.timeout = timeout or deposits.get("PROCESSOR_TIMEOUT_SECONDS", 20)
        stripe.default_http_client = stripe.RequestsClient(timeout=self.timeout)

    def _call(self, operation: str, func, *args, **kwargs):
        try:
            return func(*args, api_key=self.api_key, **kwargs)
        except stripe.StripeError as e:
            code = getattr(e, "code", None)
            logger.error(f"Stripe {operation} failed: {e}")
            raise ProcessorError(str(e), code=code) from e

    def create_hold(self, amount_cents: int, *, payment_method_id: str, metadata: dict, description: str,
                    idempotency_key: str | None = None):
        return self._call(
            "create_hold",
            stripe.PaymentIntent.create,
            amount=amount_cents,
            currency=self.currency,
            capture_method="manual",
            payment_method=payment_method_id,
            confirm=True,
            automatic_payment_methods={"enabled": True, "allow_redirects": "never"},
            metadata=metadata,
            description=description,
            idempotency_key=idempotency_key,
        )

    def retrieve(self, payment_intent_id: str):
        return self._call("retrieve", stripe.PaymentIntent.retrieve, payment_intent_id)

    def capture(self, payment_intent_id: str, amount_cents: int, idempotency_key: str | None = None):
        return self._call(
            "capture",
            stripe.PaymentIntent.capture,
            payment_intent_id,
            amount_to_capture=amount_cents,
            idempotency_key=idempotency_key,
        )

    def cancel(self, payment_intent_id: str):
        return self._call(
            "cancel",
            stripe.PaymentIntent.cancel,
            payment_intent_id,
            cancellation_reason="requested_by_customer",
        )
