"""Booking writer: server-only amounts, conflicts, repricing and lifecycle."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal

import pytest
from django.core import mail

from apps.bookings.models import Booking, BookingAddOn
from apps.bookings.writer import BookingDetails, BookingWriter
from apps.notifications.models import NotificationLog
from apps.pricing.engine import AddOnSelection, AdditionalDriverInput, PricingEngine, PricingRequest
from shared.errors import InvalidStateTransition, PriceMismatch, ValidationFailed, VehicleUnavailable

TUESDAY = datetime(2026, 10, 20, 10, 0, tzinfo=dt_timezone.utc)


def _request(vehicle, start=TUESDAY, days=3, **kwargs) -> PricingRequest:
    kwargs.setdefault("driver_age_band", "25_70")
    return PricingRequest(vehicle_id=vehicle.pk, start_at=start, end_at=start + timedelta(days=days), **kwargs)


@pytest.fixture
def writer():
    return BookingWriter()


@pytest.mark.django_db
def test_create_persists_engine_amounts_and_lines(writer, sedan, child_seat, customer):
    request = _request(
        sedan,
        add_ons=(AddOnSelection(child_seat.pk, 1),),
        additional_drivers=(AdditionalDriverInput("25_70", "Pat Lee"),),
    )
    canonical = PricingEngine().quote(request)

    booking = writer.create(request, user=customer, client_total=canonical.total, status=Booking.Status.CONFIRMED)

    booking.refresh_from_db()
    assert booking.total_amount == canonical.total
    assert booking.subtotal == canonical.subtotal
    assert booking.deposit_amount == Decimal("350.00")
    assert booking.total_days == 3
    assert len(booking.booking_code) == 8
    line = booking.add_on_lines.get()
    assert line.price == Decimal("42.50")
    assert booking.additional_drivers.get().fee == Decimal("44.97")


@pytest.mark.django_db
def test_price_mismatch_creates_nothing(writer, sedan, customer):
    with pytest.raises(PriceMismatch) as excinfo:
        writer.create(_request(sedan), user=customer, client_total=Decimal("199.00"))

    assert excinfo.value.server_total == Decimal("277.21")
    assert Booking.objects.count() == 0


@pytest.mark.django_db
def test_non_financial_fields_are_sanitized(writer, sedan, customer):
    details = BookingDetails(
        notes="x" * 1500,
        pickup_contact_name="Robin\x00 Smith",
        pickup_contact_phone="(604) 555-0199 ext",
        card_last_four="**** 4242",
    )

    booking = writer.create(_request(sedan), user=customer, client_total=Decimal("277.21"), details=details)

    assert len(booking.notes) == 1000
    assert booking.pickup_contact_name == "Robin Smith"
    assert booking.pickup_contact_phone == "6045550199"
    assert booking.card_last_four == "4242"


@pytest.mark.django_db
def test_confirmation_is_sent_after_commit(writer, sedan, customer, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True):
        booking = writer.create(_request(sedan), user=customer, client_total=Decimal("277.21"))

    log = NotificationLog.objects.get(booking=booking)
    assert log.template_type == "confirmation"
    assert log.status == NotificationLog.Status.SENT
    assert len(mail.outbox) == 1
    assert booking.booking_code in mail.outbox[0].subject


@pytest.mark.django_db
def test_overlap_is_rejected_but_back_to_back_is_allowed(book, sedan):
    book(sedan, start=TUESDAY, days=3)

    with pytest.raises(VehicleUnavailable):
        book(sedan, start=TUESDAY + timedelta(days=1), days=3)

    book(sedan, start=TUESDAY + timedelta(days=3), days=2)
    book(sedan, start=TUESDAY - timedelta(days=2), days=2)
    assert Booking.objects.count() == 3


@pytest.mark.django_db
def test_voided_and_completed_bookings_do_not_block(writer, book, sedan, staff_user):
    first = book(sedan)
    writer.void(first, actor=staff_user, reason="Customer cancelled")
    second = book(sedan)
    Booking.objects.filter(pk=second.pk).update(status=Booking.Status.COMPLETED)

    third = book(sedan)

    assert third.status == Booking.Status.CONFIRMED


@pytest.mark.django_db
def test_upsell_add_reprices_and_is_idempotent(writer, book, sedan, child_seat, staff_user):
    booking = book(sedan)

    writer.upsell_add(booking, child_seat.pk, 2, actor=staff_user)
    writer.upsell_add(booking, child_seat.pk, 2, actor=staff_user)

    booking.refresh_from_db()
    assert BookingAddOn.objects.filter(booking=booking).count() == 1
    assert booking.add_ons_total == Decimal("85.00")
    assert booking.subtotal == Decimal("332.50")
    assert booking.tax_amount == Decimal("39.91")
    assert booking.total_amount == Decimal("372.41")


@pytest.mark.django_db
def test_upsell_remove_restores_total(writer, book, sedan, child_seat, staff_user):
    booking = book(sedan)
    line = writer.upsell_add(booking, child_seat.pk, 1, actor=staff_user)

    writer.upsell_remove(booking, line.pk, actor=staff_user)

    booking.refresh_from_db()
    assert booking.add_on_lines.count() == 0
    assert booking.total_amount == Decimal("277.21")


@pytest.mark.django_db
def test_upsell_remove_rejects_foreign_line(writer, book, sedan, standard_suv, child_seat, staff_user):
    mine = book(sedan)
    other = book(standard_suv)
    foreign_line = writer.upsell_add(other, child_seat.pk, 1, actor=staff_user)

    with pytest.raises(ValidationFailed):
        writer.upsell_remove(mine, foreign_line.pk, actor=staff_user)
    assert BookingAddOn.objects.filter(pk=foreign_line.pk).exists()


@pytest.mark.django_db
def test_upsell_refuses_roadside_on_premium_protection(writer, book, sedan, premium_roadside, staff_user):
    booking = book(sedan, protection_plan="premium")

    with pytest.raises(ValidationFailed):
        writer.upsell_add(booking, premium_roadside.pk, 1, actor=staff_user)


@pytest.mark.django_db
def test_modify_dates_reprices_lines_for_new_period(writer, book, sedan, child_seat, staff_user):
    booking = book(sedan, add_ons=(AddOnSelection(child_seat.pk, 1),))

    booking = writer.modify_dates(booking, TUESDAY + timedelta(days=5), actor=staff_user, reason="Extension")

    assert booking.total_days == 5
    assert booking.add_on_lines.get().price == Decimal("67.50")
    assert booking.subtotal == Decimal("480.00")
    assert booking.total_amount == Decimal("537.60")


@pytest.mark.django_db
def test_modify_dates_checks_conflicts_excluding_itself(writer, book, sedan, staff_user):
    booking = book(sedan, days=3)
    book(sedan, start=TUESDAY + timedelta(days=4), days=2)

    writer.modify_dates(booking, TUESDAY + timedelta(days=4), actor=staff_user)
    with pytest.raises(VehicleUnavailable):
        writer.modify_dates(booking, TUESDAY + timedelta(days=5), actor=staff_user)


@pytest.mark.django_db
def test_modify_rejected_for_closed_booking(writer, book, sedan, staff_user):
    booking = book(sedan)
    Booking.objects.filter(pk=booking.pk).update(status=Booking.Status.COMPLETED)

    with pytest.raises(InvalidStateTransition):
        writer.modify_dates(booking, TUESDAY + timedelta(days=4), actor=staff_user)


@pytest.mark.django_db
def test_upgrade_fee_applies_and_removes_cleanly(writer, book, sedan, staff_user):
    booking = book(sedan)

    upgraded = writer.apply_upgrade(booking, Decimal("20.00"), actor=staff_user, reason="SUV swap")
    assert upgraded.subtotal == Decimal("307.50")
    assert upgraded.total_amount == Decimal("344.41")

    restored = writer.remove_upgrade(upgraded, actor=staff_user)
    assert restored.upgrade_daily_fee is None
    assert restored.total_amount == Decimal("277.21")

    with pytest.raises(ValidationFailed):
        writer.apply_upgrade(booking, Decimal("0"), actor=staff_user)


@pytest.mark.django_db
def test_void_requires_reason_and_is_terminal(writer, book, sedan, staff_user):
    booking = book(sedan)

    with pytest.raises(ValidationFailed):
        writer.void(booking, actor=staff_user, reason="   ")

    voided = writer.void(booking, actor=staff_user, reason="No-show")
    assert voided.status == Booking.Status.VOIDED
    assert voided.void_reason == "No-show"
    assert voided.voided_at is not None

    with pytest.raises(InvalidStateTransition):
        writer.void(voided, actor=staff_user, reason="again")


@pytest.mark.django_db
def test_discard_failed_only_for_unpaid_pending(writer, book, sedan):
    pending = book(sedan, status="pending")
    writer.discard_failed(pending)
    assert not Booking.objects.filter(pk=pending.pk).exists()

    held = book(sedan, status="pending")
    Booking.objects.filter(pk=held.pk).update(deposit_status=Booking.DepositStatus.AUTHORIZED)
    with pytest.raises(InvalidStateTransition):
        writer.discard_failed(held)

    confirmed = book(sedan, start=TUESDAY + timedelta(days=10))
    with pytest.raises(InvalidStateTransition):
        writer.discard_failed(confirmed)
