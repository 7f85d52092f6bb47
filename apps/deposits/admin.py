from __future__ import annotations

from django.contrib import admin

from .models import DepositLedgerEntry


@admin.register(DepositLedgerEntry)
class DepositLedgerEntryAdmin(admin.ModelAdmin):
    list_display = ("booking", "action", "amount", "created_by", "created_at")
    list_filter = ("action",)
    search_fields = ("booking__booking_code", "payment_intent_id", "charge_id")

    def has_change_permission(self, request, obj=None):  # type: ignore
        return False

    def has_delete_permission(self, request, obj=None):  # type: ignore
        return False
