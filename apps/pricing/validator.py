"""Compare a client-submitted total with the canonical one."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

import structlog

from shared.domain.value_objects import round_cents
from shared.errors import PriceMismatch, ValidationFailed

from .engine import PriceBreakdown, PricingEngine, PricingRequest

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PriceValidation:
    valid: bool
    breakdown: PriceBreakdown
    client_total: Decimal
    difference: Decimal

    @property
    def server_total(self) -> Decimal:
        return self.breakdown.total


class PriceValidator:
    """Fails closed: if the engine cannot price the request, nothing is compared."""

    def __init__(self, engine: PricingEngine | None = None):
        self.engine = engine or PricingEngine()

    def validate(self, request: PricingRequest, client_total) -> PriceValidation:
        if client_total is None:
            raise ValidationFailed("Client total is required.")
        try:
            client_amount = round_cents(client_total)
        except ValueError as exc:
            raise ValidationFailed("Client total must be a number.") from exc

        # PriceComputationFailed propagates unchanged
        breakdown = self.engine.quote(request)
        difference = abs(round_cents(breakdown.total) - client_amount)
        valid = difference <= self.engine.config.mismatch_tolerance
        if not valid:
            logger.warning(
                "price_mismatch",
                vehicle_id=request.vehicle_id,
                client_total=str(client_amount),
                server_total=str(breakdown.total),
                difference=str(difference),
            )
        return PriceValidation(valid, breakdown, client_amount, difference)

    def ensure_valid(self, request: PricingRequest, client_total) -> PriceBreakdown:
        result = self.validate(request, client_total)
        if not result.valid:
            raise PriceMismatch(result.server_total)
        return result.breakdown
