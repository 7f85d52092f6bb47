from __future__ import annotations

from rest_framework import serializers  # type: ignore

from apps.bookings.models import Booking

from .models import DepositLedgerEntry


class AuthorizeDepositSerializer(serializers.Serializer):
    payment_method_id = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class CaptureDepositSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)


class ReleaseDepositSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")
    override = serializers.BooleanField(required=False, default=False)


class DepositSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Booking
        fields = [
            "id",
            "booking_code",
            "status",
            "deposit_status",
            "deposit_amount",
            "deposit_authorized_amount",
            "deposit_captured_amount",
            "deposit_payment_intent_id",
            "deposit_authorized_at",
            "deposit_captured_at",
            "deposit_released_at",
        ]
        read_only_fields = fields


class DepositLedgerEntrySerializer(serializers.ModelSerializer):
    created_by_email = serializers.ReadOnlyField(source="created_by.email")

    class Meta:
        model = DepositLedgerEntry
        fields = [
            "id",
            "action",
            "amount",
            "reason",
            "payment_intent_id",
            "charge_id",
            "created_by_email",
            "created_at",
        ]
        read_only_fields = fields
