"""Periodic cleanup of spent guest credentials."""

from __future__ import annotations

import logging

from celery import shared_task  # type: ignore

from .services import GuestAccessAuthority

logger = logging.getLogger(__name__)


@shared_task(name="guest_access.purge_expired_credentials")
def purge_expired_credentials() -> dict[str, int]:
    """Delete codes and tokens that expired more than a day ago."""

    result = GuestAccessAuthority().purge_expired()
    logger.info(f"Purged {result['otps']} one-time codes and {result['tokens']} access tokens")
    return result
