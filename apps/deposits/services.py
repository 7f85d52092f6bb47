"""
Deposit authority

Owns every transition of ``Booking.deposit_status``:

    none -> authorized -> capturing -> captured
                       -> releasing -> released

Each transition out of ``authorized`` is a conditional single-row UPDATE,
so two staff members acting at once cannot both capture or release. The
processor is called only after the transient state is won. If the
processor call fails the transient state is left in place for
``reconcile`` rather than guessed at.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from django.db import transaction  # type: ignore
from django.utils import timezone  # type: ignore

from apps.bookings.models import Booking
from apps.bookings.writer import sanitize_text
from shared.domain.value_objects import ZERO, Money, round_cents
from shared.errors import DepositOperationFailed, InvalidStateTransition, ValidationFailed

from .models import DepositLedgerEntry
from .processor import ProcessorError, StripeDepositProcessor

logger = structlog.get_logger(__name__)

Status = Booking.DepositStatus
RELEASABLE_BOOKING_STATUSES = (Booking.Status.COMPLETED, Booking.Status.VOIDED)
TRANSIENT_STATUSES = (Status.CAPTURING, Status.RELEASING)


@dataclass
class DepositResult:
    booking: Booking
    processor_status: str = ""
    already_done: bool = False
    client_secret: str | None = None


def _notify(booking_id: int, template: str, context: dict | None = None) -> None:
    from apps.notifications.services import dispatch_later

    dispatch_later(booking_id, "both", template, context=context)


class DepositAuthority:
    def __init__(self, processor=None):
        self.processor = processor or StripeDepositProcessor()

    # --- authorize ------------------------------------------------------

    def authorize(self, booking: Booking, *, payment_method_id: str = "", actor=None) -> DepositResult:
        """Place (or resume) the manual-capture hold for the booking's deposit amount."""

        booking = Booking.objects.get(pk=booking.pk)
        if booking.deposit_status == Status.AUTHORIZED:
            return DepositResult(booking, processor_status="requires_capture", already_done=True)
        if booking.deposit_status != Status.NONE:
            raise InvalidStateTransition(f"Deposit is {booking.deposit_status}; a new hold cannot be placed.")
        if booking.is_terminal:
            raise InvalidStateTransition(f"Booking is {booking.status}.")
        if booking.deposit_amount <= ZERO:
            raise ValidationFailed("Booking has no deposit amount.")

        try:
            if booking.deposit_payment_intent_id:
                intent = self.processor.retrieve(booking.deposit_payment_intent_id)
            else:
                if not payment_method_id:
                    raise ValidationFailed("A payment method is required to place the hold.")
                intent = self.processor.create_hold(
                    Money(booking.deposit_amount).cents,
                    payment_method_id=payment_method_id,
                    metadata={"type": "deposit_hold", "booking_id": booking.pk, "booking_code": booking.booking_code},
                    description=f"Security Deposit - Booking {booking.booking_code}",
                    idempotency_key=f"deposit-hold-{booking.pk}",
                )
                Booking.objects.filter(pk=booking.pk).update(
                    deposit_payment_intent_id=intent.id, updated_at=timezone.now()
                )
                booking.deposit_payment_intent_id = intent.id
        except ProcessorError as e:
            raise DepositOperationFailed("Could not place the deposit hold.") from e

        if intent.status != "requires_capture":
            logger.info("deposit_hold_pending", booking_id=booking.pk, processor_status=intent.status)
            return DepositResult(
                booking,
                processor_status=intent.status,
                client_secret=getattr(intent, "client_secret", None),
            )

        amount = Money.from_cents(intent.amount).amount
        now = timezone.now()
        with transaction.atomic():
            moved = Booking.objects.filter(pk=booking.pk, deposit_status=Status.NONE).update(
                deposit_status=Status.AUTHORIZED,
                deposit_authorized_amount=amount,
                deposit_authorized_at=now,
                updated_at=now,
            )
            if not moved:
                raise InvalidStateTransition("Deposit state changed concurrently.")
            self._ledger(booking, DepositLedgerEntry.Action.AUTHORIZE, amount, actor, "Deposit hold placed")

        logger.info("deposit_authorized", booking_id=booking.pk, amount=str(amount), payment_intent=intent.id)
        booking.refresh_from_db()
        return DepositResult(booking, processor_status=intent.status)

    # --- capture --------------------------------------------------------

    def capture(self, booking: Booking, *, actor, reason: str, amount=None) -> DepositResult:
        reason = sanitize_text(reason, 500)
        if not reason:
            raise ValidationFailed("A reason is required to capture a deposit.")

        booking = Booking.objects.get(pk=booking.pk)
        authorized = booking.deposit_authorized_amount or booking.deposit_amount
        amount = authorized if amount is None else round_cents(amount)
        if amount <= ZERO or amount > authorized:
            raise ValidationFailed(f"Capture amount must be greater than 0 and at most {authorized}.")
        if not booking.deposit_payment_intent_id:
            raise InvalidStateTransition("Booking has no deposit hold.")

        self._begin(booking, Status.CAPTURING)
        pi_id = booking.deposit_payment_intent_id
        try:
            intent = self.processor.retrieve(pi_id)
            if intent.status != "requires_capture":
                self._revert(booking, Status.CAPTURING)
                raise InvalidStateTransition(f"PaymentIntent is not capturable - status is '{intent.status}'.")
            captured = self.processor.capture(pi_id, Money(amount).cents, idempotency_key=f"deposit-capture-{booking.pk}")
        except ProcessorError as e:
            logger.error("deposit_capture_failed", booking_id=booking.pk, payment_intent=pi_id, error=str(e))
            raise DepositOperationFailed() from e

        self._settle_captured(booking, amount, authorized, getattr(captured, "latest_charge", "") or "", actor, reason)
        _notify(booking.pk, "deposit_captured", {"amount": str(amount), "reason": reason})
        booking.refresh_from_db()
        return DepositResult(booking, processor_status=captured.status)

    # --- release --------------------------------------------------------

    def release(self, booking: Booking, *, actor, reason: str = "", override: bool = False) -> DepositResult:
        booking = Booking.objects.get(pk=booking.pk)
        if not override and booking.status not in RELEASABLE_BOOKING_STATUSES:
            raise InvalidStateTransition(
                f"Cannot release deposit - booking status is '{booking.status}'. Complete or void the booking first."
            )
        if booking.deposit_status == Status.RELEASED:
            return DepositResult(booking, processor_status="canceled", already_done=True)
        if not booking.deposit_payment_intent_id:
            raise InvalidStateTransition("Booking has no deposit hold.")

        self._begin(booking, Status.RELEASING)
        pi_id = booking.deposit_payment_intent_id
        already_canceled = False
        try:
            self.processor.cancel(pi_id)
        except ProcessorError as e:
            if not e.unexpected_state:
                logger.error("deposit_release_failed", booking_id=booking.pk, payment_intent=pi_id, error=str(e))
                raise DepositOperationFailed() from e
            try:
                intent = self.processor.retrieve(pi_id)
            except ProcessorError as inner:
                raise DepositOperationFailed() from inner
            if intent.status != "canceled":
                raise DepositOperationFailed(f"PaymentIntent cannot be canceled - status is '{intent.status}'.") from e
            already_canceled = True

        self._settle_released(booking, actor, sanitize_text(reason, 500) or "Deposit hold released")
        _notify(booking.pk, "deposit_released")
        booking.refresh_from_db()
        return DepositResult(booking, processor_status="canceled", already_done=already_canceled)

    # --- reconcile ------------------------------------------------------

    def reconcile(self, booking: Booking, *, actor=None) -> DepositResult:
        """Settle a booking left in ``capturing``/``releasing`` from the processor's view."""

        booking = Booking.objects.get(pk=booking.pk)
        if booking.deposit_status not in TRANSIENT_STATUSES:
            return DepositResult(booking, already_done=True)

        try:
            intent = self.processor.retrieve(booking.deposit_payment_intent_id)
        except ProcessorError as e:
            raise DepositOperationFailed() from e

        authorized = booking.deposit_authorized_amount or booking.deposit_amount
        if intent.status == "succeeded":
            amount = Money.from_cents(intent.amount_received).amount
            self._settle_captured(
                booking, amount, authorized, getattr(intent, "latest_charge", "") or "", actor,
                "Reconciled from processor",
            )
        elif intent.status == "canceled":
            self._settle_released(booking, actor, "Reconciled from processor")
        elif intent.status == "requires_capture":
            self._revert(booking, booking.deposit_status)
        else:
            logger.warning("deposit_reconcile_unresolved", booking_id=booking.pk, processor_status=intent.status)

        logger.info("deposit_reconciled", booking_id=booking.pk, processor_status=intent.status)
        booking.refresh_from_db()
        return DepositResult(booking, processor_status=intent.status)

    # --- helpers --------------------------------------------------------

    @staticmethod
    def _begin(booking: Booking, transient: str) -> None:
        moved = Booking.objects.filter(pk=booking.pk, deposit_status=Status.AUTHORIZED).update(
            deposit_status=transient, updated_at=timezone.now()
        )
        if not moved:
            current = Booking.objects.values_list("deposit_status", flat=True).get(pk=booking.pk)
            raise InvalidStateTransition(f"Deposit status is '{current}', must be 'authorized'.")

    @staticmethod
    def _revert(booking: Booking, transient: str) -> None:
        Booking.objects.filter(pk=booking.pk, deposit_status=transient).update(
            deposit_status=Status.AUTHORIZED, updated_at=timezone.now()
        )

    def _settle_captured(self, booking, amount, authorized, charge_id, actor, reason) -> None:
        now = timezone.now()
        partial = amount < authorized
        with transaction.atomic():
            Booking.objects.filter(pk=booking.pk).update(
                deposit_status=Status.CAPTURED,
                deposit_captured_amount=amount,
                deposit_captured_at=now,
                deposit_charge_id=charge_id,
                updated_at=now,
            )
            action = DepositLedgerEntry.Action.PARTIAL_CAPTURE if partial else DepositLedgerEntry.Action.CAPTURE
            self._ledger(booking, action, amount, actor, reason, charge_id=charge_id)
            if partial:
                self._ledger(
                    booking,
                    DepositLedgerEntry.Action.RELEASE,
                    round_cents(authorized - amount),
                    actor,
                    "Remaining authorization released after partial capture",
                )
        logger.info(
            "deposit_captured",
            booking_id=booking.pk,
            actor_id=getattr(actor, "pk", None),
            amount=str(amount),
            authorized=str(authorized),
        )

    def _settle_released(self, booking, actor, reason) -> None:
        now = timezone.now()
        amount = booking.deposit_authorized_amount or booking.deposit_amount
        with transaction.atomic():
            Booking.objects.filter(pk=booking.pk).update(
                deposit_status=Status.RELEASED, deposit_released_at=now, updated_at=now
            )
            self._ledger(booking, DepositLedgerEntry.Action.RELEASE, amount, actor, reason)
        logger.info("deposit_released", booking_id=booking.pk, actor_id=getattr(actor, "pk", None), amount=str(amount))

    @staticmethod
    def _ledger(booking, action, amount, actor, reason, *, charge_id: str = "") -> DepositLedgerEntry:
        return DepositLedgerEntry.objects.create(
            booking_id=booking.pk,
            action=action,
            amount=amount,
            reason=reason,
            payment_intent_id=booking.deposit_payment_intent_id,
            charge_id=charge_id,
            created_by=actor if getattr(actor, "pk", None) else None,
        )

    def reconcile_stuck(self) -> dict[str, int]:
        settled = failed = 0
        for booking in Booking.objects.filter(deposit_status__in=TRANSIENT_STATUSES).order_by("updated_at"):
            try:
                self.reconcile(booking)
                settled += 1
            except DepositOperationFailed:
                logger.warning("deposit_reconcile_failed", booking_id=booking.pk)
                failed += 1
        return {"settled": settled, "failed": failed}
