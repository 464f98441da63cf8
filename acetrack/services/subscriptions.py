"""Subscription lifecycle: end-date derivation, single open subscription per organization."""
from __future__ import annotations

import calendar
import logging
from datetime import datetime, timedelta
from typing import Optional

from acetrack.models.subscription import (
    Subscription,
    SubscriptionDuration,
    SubscriptionStatus,
)

logger = logging.getLogger(__name__)

DURATION_MONTHS = {
    SubscriptionDuration.SIX_MONTHS: 6,
    SubscriptionDuration.ONE_YEAR: 12,
    SubscriptionDuration.TWO_YEARS: 24,
}
OPEN_STATUSES = [SubscriptionStatus.ACTIVE, SubscriptionStatus.PENDING]
EXPIRING_WINDOW = timedelta(days=30)


def add_months(start: datetime, months: int) -> datetime:
    """Calendar month arithmetic; day clamped to the target month's length."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def calculate_end_date(start_date: datetime, duration: SubscriptionDuration) -> datetime:
    return add_months(start_date, DURATION_MONTHS[duration])


async def get_open_subscription(organization_id: str) -> Optional[Subscription]:
    return await Subscription.find_one(
        {
            "organization_id": organization_id,
            "status": {"$in": [s.value for s in OPEN_STATUSES]},
        }
    )


async def verify_subscription(
    subscription: Subscription,
    *,
    verified: bool,
    verified_by: str,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Subscription:
    now = now or datetime.utcnow()
    subscription.status = SubscriptionStatus.ACTIVE if verified else SubscriptionStatus.CANCELLED
    subscription.verified_by = verified_by
    subscription.verified_at = now
    if notes is not None:
        subscription.notes = notes
    subscription.updated_at = now
    await subscription.save()
    logger.info("Subscription %s verified=%s by %s", subscription.id, verified, verified_by)
    return subscription


def expiring_filter(now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    return {
        "status": SubscriptionStatus.ACTIVE.value,
        "start_date": {"$lte": now},
        "end_date": {"$gte": now, "$lte": now + EXPIRING_WINDOW},
    }


def serialize_subscription(s: Subscription) -> dict:
    return {
        "id": str(s.id),
        "organization_id": s.organization_id,
        "duration": s.duration.value,
        "start_date": s.start_date.isoformat(),
        "end_date": s.end_date.isoformat(),
        "status": s.status.value,
        "payment_amount": s.payment_amount,
        "payment_method": s.payment_method,
        "auto_renewal": s.auto_renewal,
        "verified_by": s.verified_by,
        "verified_at": s.verified_at.isoformat() if s.verified_at else None,
        "notes": s.notes,
        "created_at": s.created_at.isoformat(),
        "updated_at": s.updated_at.isoformat(),
    }
