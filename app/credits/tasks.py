"""
Celery tasks for credits.

Tasks:
- reset_billing_periods: Periodic task that rolls expired billing
  periods over and clears the per-period usage counters

Usage:
    # Typically called via celery-beat schedule (see migration 0003)
    from credits.tasks import reset_billing_periods

    reset_billing_periods.delay()
"""

from __future__ import annotations

import logging

from celery import shared_task
from django.db import transaction
from django.utils import timezone

from credits.models import BalanceHolder
from credits.periods import add_months, anchor_day

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Maximum holders rolled over per run; the rest are picked up next run
BATCH_SIZE = 500


# =============================================================================
# Periodic Task: Billing Period Rollover
# =============================================================================


@shared_task(bind=True)
def reset_billing_periods(self) -> dict:
    """
    Start a new billing period for holders whose period has ended.

    Targets active, non-trial holders with current_period_end in the
    past. For each one minutes_used and calls_used go back to zero and
    the period is advanced in whole months until it covers now. Periods
    keep renewing on the day they were anchored to, so one clamped to a
    short month (Jan 31 -> Feb 29) returns to the 31st afterwards.
    assistants_created is left alone; it is not a per-period counter.

    Returns:
        Dict with:
        - reset_count: Number of holders rolled over

    Note:
        This task is idempotent. Each holder is re-checked under a row
        lock, so overlapping runs skip holders another run already reset.
    """
    now = timezone.now()
    logger.info("Starting billing period rollover")

    holder_ids = list(
        BalanceHolder.objects.filter(
            is_active=True,
            is_trial=False,
            current_period_end__lt=now,
        )
        .order_by("current_period_end")
        .values_list("id", flat=True)[:BATCH_SIZE]
    )

    reset_count = 0
    for holder_id in holder_ids:
        with transaction.atomic():
            holder = (
                BalanceHolder.objects.select_for_update()
                .filter(id=holder_id, current_period_end__lt=now)
                .first()
            )
            if holder is None:
                continue

            day = anchor_day(holder.current_period_start, holder.current_period_end)
            period_start = holder.current_period_end
            period_end = add_months(period_start, day=day)
            while period_end <= now:
                period_start = period_end
                period_end = add_months(period_start, day=day)

            holder.minutes_used = 0
            holder.calls_used = 0
            holder.current_period_start = period_start
            holder.current_period_end = period_end
            holder.save(
                update_fields=[
                    "minutes_used",
                    "calls_used",
                    "current_period_start",
                    "current_period_end",
                    "updated_at",
                ]
            )
            reset_count += 1

        logger.info(
            "Billing period rolled over",
            extra={
                "user_id": holder.user_id,
                "period_start": period_start.isoformat(),
                "period_end": period_end.isoformat(),
            },
        )

    logger.info(
        f"Billing period rollover complete: reset {reset_count} holders",
        extra={"reset_count": reset_count},
    )

    return {"reset_count": reset_count}
