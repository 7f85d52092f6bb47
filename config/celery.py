import os

from celery import Celery
from celery.schedules import crontab  # type: ignore

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.dev")

app = Celery("drivefleet")

app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()


# ============================================================================
# CELERY BEAT SCHEDULE (Periodic Tasks)
# ============================================================================

app.conf.beat_schedule = {
    # Settle deposits left in capturing/releasing after a processor timeout
    "reconcile-stuck-deposits": {
        "task": "deposits.reconcile_stuck_deposits",
        "schedule": crontab(minute="*/10"),
    },
    # Purge expired one-time codes and access tokens
    "purge-expired-guest-credentials": {
        "task": "guest_access.purge_expired_credentials",
        "schedule": crontab(minute=30, hour="*/6"),
    },
}

app.conf.timezone = "UTC"
