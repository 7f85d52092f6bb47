"""Quote and checkout price-validation endpoints."""

from __future__ import annotations

from rest_framework import permissions, status  # type: ignore
from rest_framework.response import Response  # type: ignore
from rest_framework.views import APIView  # type: ignore

from .engine import PricingEngine
from .serializers import PriceValidationSerializer, PricingRequestSerializer
from .validator import PriceValidator


class QuoteView(APIView):
    """Canonical breakdown for a prospective booking."""

    permission_classes = [permissions.AllowAny]

    def post(self, request):  # type: ignore
        serializer = PricingRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        breakdown = PricingEngine().quote(serializer.to_pricing_request())
        return Response(breakdown.as_dict(), status=status.HTTP_200_OK)


class ValidatePriceView(APIView):
    """Compare the storefront's total with the canonical one before payment."""

    permission_classes = [permissions.AllowAny]

    def post(self, request):  # type: ignore
        serializer = PriceValidationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = PriceValidator().validate(
            serializer.to_pricing_request(),
            serializer.validated_data["client_total"],
        )
        return Response(
            {
                "valid": result.valid,
                "server_total": f"{result.server_total:.2f}",
                "difference": f"{result.difference:.2f}",
                "breakdown": result.breakdown.as_dict(),
            },
            status=status.HTTP_200_OK,
        )
