"""Admin registrations for the fleet domain."""

from __future__ import annotations

from django.contrib import admin

from .models import AddOn, Location, SystemSetting, Vehicle


@admin.register(Location)
class LocationAdmin(admin.ModelAdmin):
    list_display = ("name", "city", "fee_group", "is_active")
    list_filter = ("city", "fee_group", "is_active")
    search_fields = ("name", "address", "city")


@admin.register(Vehicle)
class VehicleAdmin(admin.ModelAdmin):
    list_display = ("name", "category", "daily_rate", "home_location", "is_active")
    list_filter = ("category", "is_active")
    search_fields = ("name", "category")


@admin.register(AddOn)
class AddOnAdmin(admin.ModelAdmin):
    list_display = ("name", "daily_rate", "one_time_fee", "is_active")
    list_filter = ("is_active",)
    search_fields = ("name",)


@admin.register(SystemSetting)
class SystemSettingAdmin(admin.ModelAdmin):
    list_display = ("key", "value", "updated_at")
    search_fields = ("key",)
