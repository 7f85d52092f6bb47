from __future__ import annotations

from rest_framework import serializers  # type: ignore

from .models import BookingOtp


class OtpRequestSerializer(serializers.Serializer):
    bookingId = serializers.IntegerField(min_value=1)
    channel = serializers.ChoiceField(choices=BookingOtp.Channel.choices, default=BookingOtp.Channel.EMAIL)


class OtpVerifySerializer(serializers.Serializer):
    bookingId = serializers.IntegerField(min_value=1)
    code = serializers.CharField(max_length=16, required=False, allow_blank=True, default="")
