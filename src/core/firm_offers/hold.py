import math
from datetime import datetime, timedelta
from typing import Optional

from src.core.firm_offers.models import HoldStatus

HOLD_PERIOD = timedelta(days=14)
_SECONDS_PER_DAY = 24 * 60 * 60


def default_hold_expiry(created_at: datetime) -> datetime:
    return created_at + HOLD_PERIOD


def compute_hold_status(
    *,
    hold_expires_at: Optional[datetime],
    created_at: datetime,
    now: datetime,
) -> HoldStatus:
    """Derive the hold state at read time.

    Remaining time is rounded up to whole days; the hold only counts as
    expired once that count is negative. Rows without an explicit expiry
    fall back to the default window from creation.
    """
    expires_at = hold_expires_at or default_hold_expiry(created_at)
    days_remaining = math.ceil((expires_at - now).total_seconds() / _SECONDS_PER_DAY)
    if days_remaining < 0:
        return HoldStatus(expired=True, days_remaining=0, expires_at=expires_at.isoformat())
    return HoldStatus(
        expired=False,
        days_remaining=days_remaining,
        expires_at=expires_at.isoformat(),
    )
