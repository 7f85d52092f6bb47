"""Admin registration for guest credentials. Hashes are never editable."""

from __future__ import annotations

from django.contrib import admin

from .models import BookingAccessToken, BookingOtp


@admin.register(BookingOtp)
class BookingOtpAdmin(admin.ModelAdmin):
    list_display = ("booking", "channel", "attempts", "expires_at", "verified_at", "created_at")
    list_filter = ("channel",)
    search_fields = ("booking__booking_code",)
    readonly_fields = ("otp_hash", "attempts", "verified_at", "created_at")


@admin.register(BookingAccessToken)
class BookingAccessTokenAdmin(admin.ModelAdmin):
    list_display = ("booking", "expires_at", "revoked_at", "used_at", "created_at")
    search_fields = ("booking__booking_code",)
    readonly_fields = ("token_hash", "used_at", "created_at")
