"""API views for the booking domain."""

from __future__ import annotations

from django.shortcuts import get_object_or_404  # type: ignore
from rest_framework import mixins, permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore

from apps.guest_access.services import GuestAccessAuthority
from apps.users.models import User
from apps.users.permissions import IsStaffMember
from shared.errors import ValidationFailed

from .models import Booking
from .serializers import (
    AddOnLineSerializer,
    BookingSerializer,
    CheckoutSerializer,
    ModifyDatesSerializer,
    ReasonSerializer,
    RemoveAddOnLineSerializer,
    UpgradeSerializer,
    VoidSerializer,
)
from .throttles import GuestCheckoutThrottle
from .writer import BookingWriter

ACCESS_TOKEN_HEADER = "X-Access-Token"
STAFF_ACTIONS = ("modify", "upgrade", "remove_upgrade", "add_ons", "void")


class BookingViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    """Checkout, booking lookup and counter-staff repricing."""

    queryset = Booking.objects.select_related("vehicle", "user").prefetch_related(
        "add_on_lines__add_on", "additional_drivers"
    )
    serializer_class = BookingSerializer

    def get_permissions(self):  # type: ignore
        if self.action in STAFF_ACTIONS:
            return [IsStaffMember()]
        if self.action == "list":
            return [permissions.IsAuthenticated()]
        return [permissions.AllowAny()]

    def get_throttles(self):  # type: ignore
        if self.action == "create":
            return [GuestCheckoutThrottle()]
        return super().get_throttles()

    def get_queryset(self):  # type: ignore
        user = self.request.user
        qs = super().get_queryset()
        if self.action != "list":
            return qs
        if user.is_staff_member():
            return qs
        return qs.filter(user=user)

    def get_writer(self) -> BookingWriter:
        return BookingWriter()

    def _render(self, booking: Booking, code: int = status.HTTP_200_OK) -> Response:
        booking = self.get_queryset().get(pk=booking.pk)
        return Response(BookingSerializer(booking, context=self.get_serializer_context()).data, status=code)

    def create(self, request, *args, **kwargs):  # type: ignore
        serializer = CheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        if request.user.is_authenticated:
            user, booking_status, source = request.user, Booking.Status.CONFIRMED, "web"
        else:
            if not data["guest_email"] or not data["guest_phone"]:
                raise ValidationFailed("Guest checkout requires an email address and a phone number.")
            user, _created = User.objects.get_or_create_guest(
                data["guest_email"],
                phone=User.objects.normalize_phone(data["guest_phone"]),
                full_name=data["guest_name"],
            )
            booking_status, source = Booking.Status.PENDING, "guest"

        booking = self.get_writer().create(
            serializer.to_pricing_request(),
            user=user,
            client_total=data["client_total"],
            status=booking_status,
            details=serializer.to_details(),
            source=source,
        )
        return self._render(booking, status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):  # type: ignore
        booking = get_object_or_404(self.get_queryset(), pk=pk)
        GuestAccessAuthority().require_owner_or_token(
            booking, request.user, request.headers.get(ACCESS_TOKEN_HEADER)
        )
        return self._render(booking)

    @action(detail=True, methods=["post"])
    def modify(self, request, pk=None):  # type: ignore
        booking: Booking = self.get_object()  # type: ignore
        serializer = ModifyDatesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = self.get_writer().modify_dates(
            booking,
            serializer.validated_data["new_end_at"],
            actor=request.user,
            reason=serializer.validated_data["reason"],
        )
        return self._render(booking)

    @action(detail=True, methods=["post"])
    def upgrade(self, request, pk=None):  # type: ignore
        booking: Booking = self.get_object()  # type: ignore
        serializer = UpgradeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = self.get_writer().apply_upgrade(
            booking,
            serializer.validated_data["upgrade_daily_fee"],
            actor=request.user,
            reason=serializer.validated_data["reason"],
        )
        return self._render(booking)

    @action(detail=True, methods=["post"], url_path="remove-upgrade")
    def remove_upgrade(self, request, pk=None):  # type: ignore
        booking: Booking = self.get_object()  # type: ignore
        serializer = ReasonSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = self.get_writer().remove_upgrade(
            booking, actor=request.user, reason=serializer.validated_data["reason"]
        )
        return self._render(booking)

    @action(detail=True, methods=["post", "delete"], url_path="add-ons")
    def add_ons(self, request, pk=None):  # type: ignore
        booking: Booking = self.get_object()  # type: ignore
        writer = self.get_writer()
        if request.method == "DELETE":
            serializer = RemoveAddOnLineSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            booking = writer.upsell_remove(
                booking, serializer.validated_data["booking_add_on_id"], actor=request.user
            )
            return self._render(booking)

        serializer = AddOnLineSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        writer.upsell_add(
            booking,
            serializer.validated_data["add_on_id"],
            serializer.validated_data["quantity"],
            actor=request.user,
        )
        return self._render(booking, status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def void(self, request, pk=None):  # type: ignore
        booking: Booking = self.get_object()  # type: ignore
        serializer = VoidSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = self.get_writer().void(booking, actor=request.user, reason=serializer.validated_data["reason"])
        return self._render(booking)
