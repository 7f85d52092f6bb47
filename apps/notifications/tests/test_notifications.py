"""Notification dispatch: dedup window, channel outcomes and task queueing."""

from __future__ import annotations

from datetime import datetime, timezone as dt_timezone
from types import SimpleNamespace
from unittest import mock

import pytest
from django.core import mail
from django.core.cache import cache
from twilio.base.exceptions import TwilioRestException

from apps.notifications.models import NotificationLog
from apps.notifications.services import (
    NotificationDispatcher,
    SmsChannel,
    claim_secret_context,
    default_idempotency_key,
    dispatch_later,
)


@pytest.fixture
def sms_client():
    client = mock.Mock()
    client.messages.create.return_value = SimpleNamespace(sid="SM123")
    return client


@pytest.fixture
def dispatcher(sms_client, settings):
    settings.TWILIO_FROM_NUMBER = "+16045550000"
    return NotificationDispatcher(sms_channel=SmsChannel(client=sms_client))


@pytest.fixture
def booking(book, sedan):
    return book(sedan)


def test_idempotency_key_uses_utc_hour_bucket():
    moment = datetime(2026, 10, 20, 17, 59, tzinfo=dt_timezone.utc)

    assert default_idempotency_key("confirmation", 42, moment) == "confirmation:42:2026-10-20T17"


@pytest.mark.django_db
def test_both_channels_write_a_single_log_row(dispatcher, booking, sms_client):
    result = dispatcher.send(booking, "both", "confirmation")

    assert result.sent
    assert len(mail.outbox) == 1
    sms_client.messages.create.assert_called_once()
    assert sms_client.messages.create.call_args.kwargs["to"] == booking.user.phone
    log = NotificationLog.objects.get()
    assert log.status == NotificationLog.Status.SENT
    assert log.channel == "both"
    assert log.channel_results["sms"]["ok"] is True


@pytest.mark.django_db
def test_duplicate_within_window_is_skipped(dispatcher, booking):
    dispatcher.send(booking, "email", "confirmation")

    second = dispatcher.send(booking, "email", "confirmation")

    assert second.skipped
    assert len(mail.outbox) == 1
    assert NotificationLog.objects.count() == 1


@pytest.mark.django_db
def test_failed_attempt_still_blocks_duplicates(dispatcher, booking):
    with mock.patch("apps.notifications.services.send_mail", side_effect=OSError("smtp down")):
        first = dispatcher.send(booking, "email", "confirmation")

    second = dispatcher.send(booking, "email", "confirmation")

    assert not first.sent
    assert NotificationLog.objects.get().status == NotificationLog.Status.FAILED
    assert second.skipped


@pytest.mark.django_db
def test_explicit_key_separates_sends(dispatcher, booking):
    dispatcher.send(booking, "email", "deposit_captured", "deposit_captured:1", context={"amount": "50.00"})
    dispatcher.send(booking, "email", "deposit_captured", "deposit_captured:2", context={"amount": "75.00"})

    assert NotificationLog.objects.count() == 2


@pytest.mark.django_db
def test_otp_messages_bypass_dedup(dispatcher, booking, sms_client):
    dispatcher.send(booking, "sms", "otp", context={"code": "111111"})
    dispatcher.send(booking, "sms", "otp", context={"code": "222222"})

    assert sms_client.messages.create.call_count == 2
    assert "222222" in sms_client.messages.create.call_args.kwargs["body"]


@pytest.mark.django_db
def test_sms_failure_is_recorded_as_partial(dispatcher, booking, sms_client):
    sms_client.messages.create.side_effect = TwilioRestException(400, "https://api.twilio.com", "Invalid 'To'")

    result = dispatcher.send(booking, "both", "booking_voided", context={"reason": "No-show"})

    assert result.sent
    log = NotificationLog.objects.get()
    assert log.status == NotificationLog.Status.PARTIAL
    assert log.channel == "email"
    assert log.channel_results["sms"]["ok"] is False


@pytest.mark.django_db
def test_sms_is_skipped_when_not_configured(booking, settings):
    settings.TWILIO_ACCOUNT_SID = ""
    dispatcher = NotificationDispatcher()

    result = dispatcher.send(booking, "sms", "confirmation")

    assert not result.sent
    assert result.channels["sms"].attempted is False
    assert NotificationLog.objects.get().status == NotificationLog.Status.FAILED


@pytest.mark.django_db
def test_unknown_channel_is_rejected(dispatcher, booking):
    with pytest.raises(ValueError):
        dispatcher.send(booking, "fax", "confirmation")


@pytest.mark.django_db
def test_dispatch_later_runs_after_commit(booking, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=False) as callbacks:
        task_id = dispatch_later(booking.pk, "email", "booking_voided", context={"reason": "No-show"})

    assert task_id
    assert not NotificationLog.objects.exists()

    for callback in callbacks:
        callback()

    assert NotificationLog.objects.get().template_type == "booking_voided"


@pytest.mark.django_db
def test_dispatch_later_survives_broker_outage(booking, django_capture_on_commit_callbacks):
    from kombu.exceptions import OperationalError

    with mock.patch(
        "apps.notifications.tasks.dispatch_notification.apply_async", side_effect=OperationalError("broker down")
    ):
        with django_capture_on_commit_callbacks(execute=True):
            dispatch_later(booking.pk, "email", "confirmation")

    assert not NotificationLog.objects.exists()


@pytest.mark.django_db
def test_secret_context_stays_out_of_task_arguments(booking, django_capture_on_commit_callbacks):
    with mock.patch("apps.notifications.tasks.dispatch_notification.apply_async") as apply_async:
        with django_capture_on_commit_callbacks(execute=True):
            task_id = dispatch_later(booking.pk, "email", "otp", secret_context={"code": "482913"})

    call = apply_async.call_args
    assert "482913" not in repr(call.kwargs)
    assert call.kwargs["kwargs"]["secret_ref"] == task_id
    assert claim_secret_context(task_id) == {"code": "482913"}
    assert claim_secret_context(task_id) is None


@pytest.mark.django_db
def test_secret_context_is_delivered_then_dropped(booking, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True):
        task_id = dispatch_later(booking.pk, "email", "otp", secret_context={"code": "482913"})

    assert any("482913" in message.body for message in mail.outbox)
    assert cache.get(f"notifications:secret-context:{task_id}") is None


@pytest.mark.django_db
def test_expired_secret_context_drops_the_send(booking):
    from apps.notifications.tasks import dispatch_notification

    result = dispatch_notification(booking.pk, "email", "otp", secret_ref="gone")

    assert result == {"sent": False, "skipped": True}
    assert not NotificationLog.objects.exists()
