"""Staff endpoints for deposit holds."""

from __future__ import annotations

from django.shortcuts import get_object_or_404  # type: ignore
from rest_framework import status, viewsets  # type: ignore
from rest_framework.response import Response  # type: ignore

from apps.bookings.models import Booking
from apps.users.permissions import IsStaffMember

from .serializers import (
    AuthorizeDepositSerializer,
    CaptureDepositSerializer,
    DepositLedgerEntrySerializer,
    DepositSummarySerializer,
    ReleaseDepositSerializer,
)
from .services import DepositAuthority, DepositResult


class BookingDepositViewSet(viewsets.ViewSet):
    permission_classes = [IsStaffMember]

    def get_booking(self, booking_id) -> Booking:
        return get_object_or_404(Booking, pk=booking_id)

    def get_authority(self) -> DepositAuthority:
        return DepositAuthority()

    def _respond(self, result: DepositResult) -> Response:
        data = dict(DepositSummarySerializer(result.booking).data)
        data["processor_status"] = result.processor_status
        data["already_done"] = result.already_done
        if result.client_secret:
            data["client_secret"] = result.client_secret
        return Response(data, status=status.HTTP_200_OK)

    def authorize(self, request, booking_id=None):  # type: ignore
        serializer = AuthorizeDepositSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = self.get_authority().authorize(
            self.get_booking(booking_id),
            payment_method_id=serializer.validated_data["payment_method_id"],
            actor=request.user,
        )
        return self._respond(result)

    def capture(self, request, booking_id=None):  # type: ignore
        serializer = CaptureDepositSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = self.get_authority().capture(
            self.get_booking(booking_id),
            actor=request.user,
            reason=serializer.validated_data["reason"],
            amount=serializer.validated_data.get("amount"),
        )
        return self._respond(result)

    def release(self, request, booking_id=None):  # type: ignore
        serializer = ReleaseDepositSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = self.get_authority().release(
            self.get_booking(booking_id),
            actor=request.user,
            reason=serializer.validated_data["reason"],
            override=serializer.validated_data["override"],
        )
        return self._respond(result)

    def reconcile(self, request, booking_id=None):  # type: ignore
        return self._respond(self.get_authority().reconcile(self.get_booking(booking_id), actor=request.user))

    def ledger(self, request, booking_id=None):  # type: ignore
        booking = self.get_booking(booking_id)
        entries = booking.deposit_ledger.select_related("created_by")
        return Response(DepositLedgerEntrySerializer(entries, many=True).data)
