"""Serializers for the fleet catalogue."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from .models import AddOn, Location, Vehicle


class LocationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Location
        fields = ["id", "name", "address", "city", "fee_group"]


class VehicleSerializer(serializers.ModelSerializer):
    class Meta:
        model = Vehicle
        fields = ["id", "name", "category", "daily_rate", "home_location"]


class AddOnSerializer(serializers.ModelSerializer):
    class Meta:
        model = AddOn
        fields = ["id", "name", "description", "daily_rate", "one_time_fee"]
