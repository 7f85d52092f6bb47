"""
Domain errors and the DRF exception handler.

Every failure the booking core surfaces to a caller is one of the
exception classes below. Each carries a stable ``code`` so clients can
branch on it (re-quote on ``price_mismatch``, re-prompt on ``otp_invalid``,
search again on ``vehicle_unavailable``) without parsing messages.
"""

from __future__ import annotations

from typing import Any

import structlog
from rest_framework import exceptions, status  # type: ignore
from rest_framework.response import Response  # type: ignore
from rest_framework.views import exception_handler  # type: ignore

logger = structlog.get_logger(__name__)


class DomainError(exceptions.APIException):
    """Base class for booking-core failures rendered as ``{code, detail}``."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "error"
    default_detail = "Request failed."

    def __init__(self, detail: str | None = None, **extra: Any):
        super().__init__(detail=detail or self.default_detail, code=self.default_code)
        self.extra = extra

    @property
    def code(self) -> str:
        return self.default_code

    def as_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "detail": str(self.detail)}
        payload.update(self.extra)
        return payload


class ValidationFailed(DomainError):
    default_code = "validation_failed"
    default_detail = "Invalid request."


class PriceMismatch(DomainError):
    """Client and server totals disagree beyond tolerance."""

    status_code = status.HTTP_409_CONFLICT
    default_code = "price_mismatch"
    default_detail = "Price has changed. Please review the updated total."

    def __init__(self, server_total, detail: str | None = None):
        super().__init__(detail, serverTotal=str(server_total))
        self.server_total = server_total


class PriceComputationFailed(DomainError):
    default_code = "price_computation_failed"
    default_detail = "Unable to compute a price for this request."


class VehicleUnavailable(DomainError):
    status_code = status.HTTP_409_CONFLICT
    default_code = "vehicle_unavailable"
    default_detail = "Vehicle is not available for the selected dates."


class Unauthorized(DomainError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "unauthorized"
    default_detail = "Authentication or access token required."


class Forbidden(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    default_code = "forbidden"
    default_detail = "You do not have access to this booking."


class OtpInvalid(DomainError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "otp_invalid"
    default_detail = "Invalid code."

    def __init__(self, detail: str | None = None, remaining_attempts: int | None = None):
        extra = {} if remaining_attempts is None else {"remainingAttempts": remaining_attempts}
        super().__init__(detail, **extra)
        self.remaining_attempts = remaining_attempts


class OtpExpired(DomainError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "otp_expired"
    default_detail = "Code expired or not found. Please request a new one."


class OtpExhausted(DomainError):
    status_code = status.HTTP_423_LOCKED
    default_code = "otp_exhausted"
    default_detail = "Too many attempts. Please request a new code."


class InvalidStateTransition(DomainError):
    status_code = status.HTTP_409_CONFLICT
    default_code = "invalid_state_transition"
    default_detail = "Operation is not allowed in the current state."


class DepositOperationFailed(DomainError):
    """Payment processor call failed; the transient deposit marker is kept."""

    status_code = status.HTTP_502_BAD_GATEWAY
    default_code = "deposit_operation_failed"
    default_detail = "Payment processor request failed. The deposit needs reconciliation."


def api_exception_handler(exc, context):
    """Render domain errors uniformly and log every 5xx with its correlation id."""

    request = context.get("request")
    correlation_id = getattr(request, "correlation_id", None)

    if isinstance(exc, DomainError):
        payload = exc.as_payload()
        if correlation_id:
            payload["correlationId"] = correlation_id
        if exc.status_code >= 500:
            logger.error("domain_error", code=exc.code, detail=str(exc.detail), correlation_id=correlation_id)
        return Response(payload, status=exc.status_code)

    response = exception_handler(exc, context)
    if response is not None and isinstance(exc, exceptions.ValidationError):
        # Serializer errors share the ValidationFailed envelope; field messages go under ``errors``
        payload = {
            "code": ValidationFailed.default_code,
            "detail": str(ValidationFailed.default_detail),
            "errors": response.data,
        }
        if correlation_id:
            payload["correlationId"] = correlation_id
        return Response(payload, status=response.status_code)
    if response is not None:
        if response.status_code >= 500:
            logger.error("api_error", status=response.status_code, correlation_id=correlation_id)
        return response

    logger.exception("unhandled_error", correlation_id=correlation_id, error=str(exc))
    payload = {"code": "internal_error", "detail": "Internal server error."}
    if correlation_id:
        payload["correlationId"] = correlation_id
    return Response(payload, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
