"""OTP send and verify endpoints for guest bookers."""

from __future__ import annotations

from django.shortcuts import get_object_or_404  # type: ignore
from rest_framework import permissions, status  # type: ignore
from rest_framework.response import Response  # type: ignore
from rest_framework.views import APIView  # type: ignore

from apps.bookings.models import Booking

from .serializers import OtpRequestSerializer, OtpVerifySerializer
from .services import GuestAccessAuthority
from .throttles import OtpBookingThrottle, OtpIpThrottle, OtpVerifyBookingThrottle, OtpVerifyIpThrottle


class OtpRequestView(APIView):
    permission_classes = [permissions.AllowAny]
    throttle_classes = [OtpIpThrottle, OtpBookingThrottle]

    def post(self, request):  # type: ignore
        serializer = OtpRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = get_object_or_404(Booking.objects.select_related("user"), pk=serializer.validated_data["bookingId"])
        authority = GuestAccessAuthority()
        otp, masked = authority.issue(booking, serializer.validated_data["channel"])
        return Response(
            {"success": True, "channel": otp.channel, "sentTo": masked, "expiresAt": otp.expires_at.isoformat()},
            status=status.HTTP_200_OK,
        )


class OtpVerifyView(APIView):
    """Exchange a one-time code for a booking access token."""

    permission_classes = [permissions.AllowAny]
    throttle_classes = [OtpVerifyIpThrottle, OtpVerifyBookingThrottle]

    def post(self, request):  # type: ignore
        from apps.notifications.services import dispatch_later

        serializer = OtpVerifySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = get_object_or_404(Booking, pk=serializer.validated_data["bookingId"])

        if request.user.is_authenticated and booking.user_id == request.user.pk:
            return Response({"bookingId": booking.pk, "ownerAccess": True}, status=status.HTTP_200_OK)

        raw_token, expires_at = GuestAccessAuthority().verify(booking, serializer.validated_data["code"])
        dispatch_later(booking.pk, "both", "confirmation")
        return Response(
            {
                "bookingId": booking.pk,
                "bookingCode": booking.booking_code,
                "accessToken": raw_token,
                "expiresAt": expires_at.isoformat(),
            },
            status=status.HTTP_200_OK,
        )
