"""Periodic settlement of deposits left mid-transition."""

from __future__ import annotations

import logging

from celery import shared_task  # type: ignore

from .services import DepositAuthority

logger = logging.getLogger(__name__)


@shared_task(name="deposits.reconcile_stuck_deposits")
def reconcile_stuck_deposits() -> dict[str, int]:
    result = DepositAuthority().reconcile_stuck()
    if result["settled"] or result["failed"]:
        logger.info(f"Reconciled {result['settled']} deposits, {result['failed']} still unresolved")
    return result
