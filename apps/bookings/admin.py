"""Admin registration for bookings."""

from __future__ import annotations

from django.contrib import admin

from .models import Booking, BookingAddOn, BookingAdditionalDriver
from .writer import MONEY_FIELDS


class BookingAddOnInline(admin.TabularInline):
    model = BookingAddOn
    extra = 0
    readonly_fields = ("add_on", "quantity", "price")
    can_delete = False


class BookingAdditionalDriverInline(admin.TabularInline):
    model = BookingAdditionalDriver
    extra = 0
    readonly_fields = ("driver_name", "age_band", "fee")
    can_delete = False


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = (
        "booking_code",
        "vehicle",
        "user",
        "status",
        "deposit_status",
        "start_at",
        "end_at",
        "total_amount",
        "created_at",
    )
    list_filter = ("status", "deposit_status", "source", "start_at")
    search_fields = ("booking_code", "vehicle__name", "user__email")
    inlines = [BookingAddOnInline, BookingAdditionalDriverInline]
    readonly_fields = (
        "booking_code",
        "status",
        "deposit_status",
        "upgrade_daily_fee",
        "deposit_payment_intent_id",
        "deposit_authorized_amount",
        "deposit_captured_amount",
        "created_at",
        "updated_at",
        *MONEY_FIELDS,
    )
