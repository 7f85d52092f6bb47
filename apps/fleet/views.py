"""Read-only catalogue endpoints used by the storefront."""

from __future__ import annotations

from rest_framework import permissions, viewsets  # type: ignore

from .models import AddOn, Location, Vehicle
from .serializers import AddOnSerializer, LocationSerializer, VehicleSerializer


class VehicleViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = Vehicle.objects.filter(is_active=True).select_related("home_location")
    serializer_class = VehicleSerializer
    permission_classes = [permissions.AllowAny]

    def get_queryset(self):  # type: ignore
        qs = super().get_queryset()
        category = self.request.query_params.get("category")
        if category:
            qs = qs.filter(category__icontains=category)
        return qs


class LocationViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = Location.objects.filter(is_active=True)
    serializer_class = LocationSerializer
    permission_classes = [permissions.AllowAny]


class AddOnViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = AddOn.objects.filter(is_active=True)
    serializer_class = AddOnSerializer
    permission_classes = [permissions.AllowAny]
