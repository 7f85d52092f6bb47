"""Deposit holds: authorize, capture, release and reconciliation."""

from __future__ import annotations

from decimal import Decimal
from types import SimpleNamespace
from unittest import mock

import pytest
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from apps.bookings.models import Booking
from apps.deposits.models import DepositLedgerEntry, LedgerImmutableError
from apps.deposits.processor import UNEXPECTED_STATE, ProcessorError
from apps.deposits.services import DepositAuthority
from shared.errors import DepositOperationFailed, InvalidStateTransition, ValidationFailed

Status = Booking.DepositStatus


class FakeProcessor:
    """In-memory PaymentIntent store standing in for Stripe."""

    def __init__(self):
        self.intents: dict[str, SimpleNamespace] = {}
        self.calls: list[str] = []
        self.fail_on: set[str] = set()

    def _maybe_fail(self, operation):
        self.calls.append(operation)
        if operation in self.fail_on:
            raise ProcessorError("Request timed out")

    def create_hold(self, amount_cents, *, payment_method_id, metadata, description, idempotency_key=None):
        self._maybe_fail("create_hold")
        intent = SimpleNamespace(
            id=f"pi_{len(self.intents) + 1}",
            status="requires_capture",
            amount=amount_cents,
            amount_received=0,
            latest_charge="",
            client_secret="pi_secret",
        )
        self.intents[intent.id] = intent
        return intent

    def retrieve(self, payment_intent_id):
        self._maybe_fail("retrieve")
        return self.intents[payment_intent_id]

    def capture(self, payment_intent_id, amount_cents, idempotency_key=None):
        self._maybe_fail("capture")
        intent = self.intents[payment_intent_id]
        intent.status = "succeeded"
        intent.amount_received = amount_cents
        intent.latest_charge = "ch_1"
        return intent

    def cancel(self, payment_intent_id):
        self._maybe_fail("cancel")
        intent = self.intents[payment_intent_id]
        if intent.status == "canceled":
            raise ProcessorError("already canceled", code=UNEXPECTED_STATE)
        intent.status = "canceled"
        return intent


@pytest.fixture
def processor():
    return FakeProcessor()


@pytest.fixture
def authority(processor):
    return DepositAuthority(processor=processor)


@pytest.fixture
def held(authority, book, sedan, staff_user):
    booking = book(sedan)
    authority.authorize(booking, payment_method_id="pm_card_visa", actor=staff_user)
    booking.refresh_from_db()
    return booking


def _actions(booking):
    return list(DepositLedgerEntry.objects.filter(booking=booking).values_list("action", "amount"))


@pytest.mark.django_db
def test_authorize_places_hold_for_deposit_amount(held, processor):
    assert held.deposit_status == Status.AUTHORIZED
    assert held.deposit_authorized_amount == Decimal("350.00")
    assert processor.intents[held.deposit_payment_intent_id].amount == 35000
    assert _actions(held) == [("authorize", Decimal("350.00"))]


@pytest.mark.django_db
def test_authorize_twice_is_a_no_op(authority, held, processor, staff_user):
    result = authority.authorize(held, payment_method_id="pm_card_visa", actor=staff_user)

    assert result.already_done
    assert processor.calls.count("create_hold") == 1
    assert DepositLedgerEntry.objects.filter(booking=held).count() == 1


@pytest.mark.django_db
def test_authorize_pending_action_returns_client_secret(authority, processor, book, sedan, staff_user):
    booking = book(sedan)
    original = processor.create_hold

    def needs_action(*args, **kwargs):
        intent = original(*args, **kwargs)
        intent.status = "requires_action"
        return intent

    processor.create_hold = needs_action
    result = authority.authorize(booking, payment_method_id="pm_3ds", actor=staff_user)

    assert result.processor_status == "requires_action"
    assert result.client_secret == "pi_secret"
    assert result.booking.deposit_status == Status.NONE


@pytest.mark.django_db
def test_full_capture(authority, held, staff_user):
    result = authority.capture(held, actor=staff_user, reason="Damage to rear bumper")

    booking = result.booking
    assert booking.deposit_status == Status.CAPTURED
    assert booking.deposit_captured_amount == Decimal("350.00")
    assert booking.deposit_charge_id == "ch_1"
    assert _actions(booking)[-1] == ("capture", Decimal("350.00"))


@pytest.mark.django_db
def test_partial_capture_records_remainder_release(authority, held, processor, staff_user):
    result = authority.capture(held, actor=staff_user, reason="Fuel shortfall", amount=Decimal("120.50"))

    assert processor.intents[held.deposit_payment_intent_id].amount_received == 12050
    assert result.booking.deposit_captured_amount == Decimal("120.50")
    assert _actions(held)[-2:] == [
        ("partial_capture", Decimal("120.50")),
        ("release", Decimal("229.50")),
    ]


@pytest.mark.django_db
@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5"), Decimal("350.01")])
def test_capture_amount_is_validated_before_processor(authority, held, processor, staff_user, amount):
    with pytest.raises(ValidationFailed):
        authority.capture(held, actor=staff_user, reason="Damage", amount=amount)

    assert "capture" not in processor.calls
    held.refresh_from_db()
    assert held.deposit_status == Status.AUTHORIZED


@pytest.mark.django_db
def test_capture_requires_reason(authority, held, staff_user):
    with pytest.raises(ValidationFailed):
        authority.capture(held, actor=staff_user, reason="  ")


@pytest.mark.django_db
def test_second_capture_is_rejected(authority, held, processor, staff_user):
    authority.capture(held, actor=staff_user, reason="Damage")

    with pytest.raises(InvalidStateTransition):
        authority.capture(held, actor=staff_user, reason="Damage again")
    assert processor.calls.count("capture") == 1


@pytest.mark.django_db
def test_processor_timeout_leaves_transient_state(authority, held, processor, staff_user):
    processor.fail_on.add("capture")

    with pytest.raises(DepositOperationFailed):
        authority.capture(held, actor=staff_user, reason="Damage")

    held.refresh_from_db()
    assert held.deposit_status == Status.CAPTURING
    with pytest.raises(InvalidStateTransition):
        authority.release(held, actor=staff_user, override=True)


@pytest.mark.django_db
def test_capture_of_non_capturable_intent_reverts(authority, held, processor, staff_user):
    processor.intents[held.deposit_payment_intent_id].status = "canceled"

    with pytest.raises(InvalidStateTransition):
        authority.capture(held, actor=staff_user, reason="Damage")

    held.refresh_from_db()
    assert held.deposit_status == Status.AUTHORIZED


@pytest.mark.django_db
def test_release_requires_closed_booking_unless_overridden(authority, held, staff_user):
    with pytest.raises(InvalidStateTransition):
        authority.release(held, actor=staff_user)

    result = authority.release(held, actor=staff_user, reason="Manager approval", override=True)

    assert result.booking.deposit_status == Status.RELEASED
    assert _actions(held)[-1] == ("release", Decimal("350.00"))


@pytest.mark.django_db
def test_release_after_completion_and_repeat_is_idempotent(authority, held, processor, staff_user):
    Booking.objects.filter(pk=held.pk).update(status=Booking.Status.COMPLETED)

    authority.release(held, actor=staff_user)
    again = authority.release(held, actor=staff_user)

    assert again.already_done
    assert processor.calls.count("cancel") == 1
    assert DepositLedgerEntry.objects.filter(booking=held, action="release").count() == 1


@pytest.mark.django_db
def test_release_tolerates_intent_already_canceled(authority, held, processor, staff_user):
    processor.intents[held.deposit_payment_intent_id].status = "canceled"

    result = authority.release(held, actor=staff_user, override=True)

    assert result.already_done
    assert result.booking.deposit_status == Status.RELEASED


@pytest.mark.django_db
def test_release_of_captured_deposit_is_rejected(authority, held, staff_user):
    authority.capture(held, actor=staff_user, reason="Damage")

    with pytest.raises(InvalidStateTransition):
        authority.release(held, actor=staff_user, override=True)


@pytest.mark.django_db
def test_reconcile_settles_from_processor(authority, held, processor, staff_user):
    processor.fail_on.add("capture")
    with pytest.raises(DepositOperationFailed):
        authority.capture(held, actor=staff_user, reason="Damage")
    # the capture went through on the processor side before the timeout
    intent = processor.intents[held.deposit_payment_intent_id]
    intent.status, intent.amount_received, intent.latest_charge = "succeeded", 35000, "ch_9"

    result = authority.reconcile(held)

    assert result.booking.deposit_status == Status.CAPTURED
    assert result.booking.deposit_captured_amount == Decimal("350.00")
    assert result.booking.deposit_charge_id == "ch_9"


@pytest.mark.django_db
def test_reconcile_reverts_when_still_capturable(authority, held, processor, staff_user):
    Booking.objects.filter(pk=held.pk).update(deposit_status=Status.RELEASING)

    result = authority.reconcile(held)

    assert result.booking.deposit_status == Status.AUTHORIZED


@pytest.mark.django_db
def test_reconcile_stuck_sweeps_transient_bookings(authority, held, processor):
    Booking.objects.filter(pk=held.pk).update(deposit_status=Status.RELEASING)
    processor.intents[held.deposit_payment_intent_id].status = "canceled"

    assert authority.reconcile_stuck() == {"settled": 1, "failed": 0}
    held.refresh_from_db()
    assert held.deposit_status == Status.RELEASED


@pytest.mark.django_db
def test_ledger_entries_are_immutable(held):
    entry = DepositLedgerEntry.objects.get(booking=held)

    entry.reason = "edited"
    with pytest.raises(LedgerImmutableError):
        entry.save()
    with pytest.raises(LedgerImmutableError):
        entry.delete()


# --- endpoints -----------------------------------------------------------


@pytest.mark.django_db
def test_staff_capture_and_ledger_endpoints(held, authority, staff_user):
    client = APIClient()
    client.force_authenticate(staff_user)

    with mock.patch("apps.deposits.views.BookingDepositViewSet.get_authority", return_value=authority):
        captured = client.post(
            reverse("booking-deposit-capture", args=[held.pk]),
            {"reason": "Scratched door", "amount": "100.00"},
            format="json",
        )
    ledger = client.get(reverse("booking-deposit-ledger", args=[held.pk]))

    assert captured.status_code == status.HTTP_200_OK, captured.data
    assert captured.data["deposit_status"] == Status.CAPTURED
    assert captured.data["deposit_captured_amount"] == "100.00"
    assert [row["action"] for row in ledger.data] == ["authorize", "partial_capture", "release"]


@pytest.mark.django_db
def test_customer_cannot_touch_deposits(held, customer):
    client = APIClient()
    client.force_authenticate(customer)

    response = client.post(reverse("booking-deposit-release", args=[held.pk]), {"override": True}, format="json")

    assert response.status_code == status.HTTP_403_FORBIDDEN
