from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import config


def store_today(now: datetime | None = None) -> date:
    """
    Calendar day in the store timezone.

    Discount validity windows are date-only and inclusive, so they are
    evaluated against the store's local day, not the server's.

    Args:
        now: Aware datetime to evaluate (defaults to current UTC time).
             Naive values are treated as UTC.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(config.STORE_TIMEZONE)).date()
