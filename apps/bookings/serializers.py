"""Serializers for the booking domain."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from apps.pricing.serializers import PricingRequestSerializer

from .models import Booking, BookingAddOn, BookingAdditionalDriver
from .writer import BookingDetails


class CheckoutSerializer(PricingRequestSerializer):
    """Checkout payload: pricing inputs, the storefront total and non-financial details."""

    client_total = serializers.DecimalField(max_digits=12, decimal_places=2)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    pickup_address = serializers.CharField(required=False, allow_blank=True, default="")
    pickup_contact_name = serializers.CharField(required=False, allow_blank=True, default="")
    pickup_contact_phone = serializers.CharField(required=False, allow_blank=True, default="")
    special_instructions = serializers.CharField(required=False, allow_blank=True, default="")
    card_holder_name = serializers.CharField(required=False, allow_blank=True, default="")
    card_last_four = serializers.CharField(required=False, allow_blank=True, default="")
    guest_email = serializers.EmailField(required=False, allow_blank=True, default="")
    guest_phone = serializers.CharField(required=False, allow_blank=True, max_length=32, default="")
    guest_name = serializers.CharField(required=False, allow_blank=True, max_length=200, default="")

    def to_details(self) -> BookingDetails:
        data = self.validated_data
        return BookingDetails(
            notes=data["notes"],
            pickup_address=data["pickup_address"],
            pickup_contact_name=data["pickup_contact_name"],
            pickup_contact_phone=data["pickup_contact_phone"],
            special_instructions=data["special_instructions"],
            card_holder_name=data["card_holder_name"],
            card_last_four=data["card_last_four"],
        )


class BookingAddOnSerializer(serializers.ModelSerializer):
    add_on_name = serializers.ReadOnlyField(source="add_on.name")

    class Meta:
        model = BookingAddOn
        fields = ["id", "add_on", "add_on_name", "quantity", "price"]
        read_only_fields = fields


class BookingAdditionalDriverSerializer(serializers.ModelSerializer):
    class Meta:
        model = BookingAdditionalDriver
        fields = ["id", "driver_name", "age_band", "fee"]
        read_only_fields = fields


class BookingSerializer(serializers.ModelSerializer):
    """Full booking view; every field is read-only."""

    vehicle_name = serializers.ReadOnlyField(source="vehicle.name")
    add_on_lines = BookingAddOnSerializer(many=True, read_only=True)
    additional_drivers = BookingAdditionalDriverSerializer(many=True, read_only=True)

    class Meta:
        model = Booking
        fields = [
            "id",
            "booking_code",
            "user",
            "vehicle",
            "vehicle_name",
            "pickup_location",
            "return_location",
            "source",
            "start_at",
            "end_at",
            "driver_age_band",
            "protection_plan",
            "status",
            "deposit_status",
            "daily_rate",
            "total_days",
            "vehicle_total",
            "protection_total",
            "add_ons_total",
            "young_driver_fee",
            "additional_drivers_total",
            "daily_fees_total",
            "delivery_fee",
            "different_dropoff_fee",
            "upgrade_daily_fee",
            "subtotal",
            "tax_amount",
            "total_amount",
            "deposit_amount",
            "currency",
            "notes",
            "pickup_address",
            "pickup_contact_name",
            "pickup_contact_phone",
            "special_instructions",
            "card_last_four",
            "add_on_lines",
            "additional_drivers",
            "void_reason",
            "voided_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ModifyDatesSerializer(serializers.Serializer):
    new_end_at = serializers.DateTimeField()
    reason = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")


class UpgradeSerializer(serializers.Serializer):
    upgrade_daily_fee = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)
    reason = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")


class ReasonSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")


class VoidSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500)


class AddOnLineSerializer(serializers.Serializer):
    add_on_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(required=False, default=1)


class RemoveAddOnLineSerializer(serializers.Serializer):
    booking_add_on_id = serializers.IntegerField(min_value=1)
