import math
from datetime import date, datetime, time, timedelta, timezone

DAY_SECONDS = 24 * 60 * 60

# (max days left, score); anything later scores NOT_URGENT_SCORE
EXPIRY_SCORES = [
    (0, 100),  # expired or expiring today
    (2, 90),
    (5, 70),
    (7, 50),
]
NOT_URGENT_SCORE = 20
EXPIRING_SOON_DAYS = 7


def _as_instant(value) -> datetime:
    if isinstance(value, str):
        value = date.fromisoformat(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    # a bare date is midnight UTC on that day
    return datetime.combine(value, time(), tzinfo=timezone.utc)


def days_until_expiry(expiry_date, now=None) -> int:
    """Whole days from ``now`` to ``expiry_date``, rounded up.

    ``now`` keeps its time of day, so near midnight the answer can move by
    one depending on the hour. Negative once the date has passed.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    diff = _as_instant(expiry_date) - _as_instant(now)
    return math.ceil(diff.total_seconds() / DAY_SECONDS)


def expiry_score(days: int) -> int:
    for limit, score in EXPIRY_SCORES:
        if days <= limit:
            return score
    return NOT_URGENT_SCORE


def expiry_date_in(days: int, today=None) -> date:
    if today is None:
        today = datetime.now(timezone.utc).date()
    return today + timedelta(days=days)
