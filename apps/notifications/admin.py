from __future__ import annotations

from django.contrib import admin

from .models import NotificationLog


@admin.register(NotificationLog)
class NotificationLogAdmin(admin.ModelAdmin):
    list_display = ("booking", "template_type", "channel", "status", "created_at")
    list_filter = ("template_type", "status", "channel")
    search_fields = ("booking__booking_code", "idempotency_key")
    readonly_fields = ("channel_results", "idempotency_key", "created_at")
