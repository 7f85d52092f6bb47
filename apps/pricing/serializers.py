"""Input serializers that turn request payloads into ``PricingRequest``."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from .config import AGE_BANDS, PROTECTION_PLANS
from .engine import AddOnSelection, AdditionalDriverInput, PricingRequest


class AddOnSelectionSerializer(serializers.Serializer):
    add_on_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(required=False, default=1)


class AdditionalDriverSerializer(serializers.Serializer):
    driver_name = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=255)
    age_band = serializers.ChoiceField(choices=AGE_BANDS)


class PricingRequestSerializer(serializers.Serializer):
    """Everything the engine needs. Money inputs here are pass-through fees only."""

    vehicle_id = serializers.IntegerField(min_value=1)
    start_at = serializers.DateTimeField()
    end_at = serializers.DateTimeField()
    driver_age_band = serializers.ChoiceField(choices=AGE_BANDS)
    protection_plan = serializers.ChoiceField(choices=PROTECTION_PLANS, required=False, default="none")
    add_ons = AddOnSelectionSerializer(many=True, required=False, default=list)
    additional_drivers = AdditionalDriverSerializer(many=True, required=False, default=list)
    delivery_fee = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=0, required=False, allow_null=True
    )
    different_dropoff_fee = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=0, required=False, allow_null=True
    )
    pickup_location_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    return_location_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)

    def validate_add_ons(self, value):  # type: ignore
        ids = [item["add_on_id"] for item in value]
        if len(ids) != len(set(ids)):
            raise serializers.ValidationError("Each add-on may be selected only once.")
        return value

    def validate(self, attrs):  # type: ignore
        if attrs["end_at"] <= attrs["start_at"]:
            raise serializers.ValidationError({"end_at": "Return must be after pickup."})
        return attrs

    def to_pricing_request(self) -> PricingRequest:
        data = self.validated_data
        return PricingRequest(
            vehicle_id=data["vehicle_id"],
            start_at=data["start_at"],
            end_at=data["end_at"],
            driver_age_band=data["driver_age_band"],
            protection_plan=data.get("protection_plan") or "none",
            add_ons=tuple(
                AddOnSelection(item["add_on_id"], item.get("quantity", 1)) for item in data.get("add_ons", [])
            ),
            additional_drivers=tuple(
                AdditionalDriverInput(item["age_band"], item.get("driver_name"))
                for item in data.get("additional_drivers", [])
            ),
            delivery_fee=data.get("delivery_fee"),
            different_dropoff_fee=data.get("different_dropoff_fee"),
            pickup_location_id=data.get("pickup_location_id"),
            return_location_id=data.get("return_location_id"),
        )


class PriceValidationSerializer(PricingRequestSerializer):
    client_total = serializers.DecimalField(max_digits=12, decimal_places=2)
