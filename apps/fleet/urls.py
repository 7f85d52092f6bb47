"""URL routing for the fleet catalogue."""

from __future__ import annotations

from django.urls import include, path  # type: ignore
from rest_framework.routers import DefaultRouter  # type: ignore

from .views import AddOnViewSet, LocationViewSet, VehicleViewSet

router = DefaultRouter()
router.register(r"vehicles", VehicleViewSet, basename="vehicle")
router.register(r"locations", LocationViewSet, basename="location")
router.register(r"add-ons", AddOnViewSet, basename="add-on")

urlpatterns = [
    path("", include(router.urls)),
]
