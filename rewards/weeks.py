"""
Week identifiers used as aggregation keys.

A week starts on Sunday 00:00 UTC. Its identifier is the ISO date of that
Sunday (``YYYY-MM-DD``), so identifiers sort lexically in time order.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional

WEEK_ID_FORMAT = "%Y-%m-%d"


def week_start(moment: datetime) -> date:
    moment = moment.astimezone(timezone.utc)
    # Monday == 0 ... Sunday == 6
    days_since_sunday = (moment.weekday() + 1) % 7
    return moment.date() - timedelta(days=days_since_sunday)


def to_week_id(timestamp: int) -> str:
    """Return the week identifier for a unix timestamp (seconds)."""
    moment = datetime.fromtimestamp(int(timestamp), tz=timezone.utc)
    return week_start(moment).strftime(WEEK_ID_FORMAT)


def current_week_id(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return week_start(now).strftime(WEEK_ID_FORMAT)


def parse_week_id(week_id: str) -> date:
    try:
        parsed = datetime.strptime(week_id, WEEK_ID_FORMAT).date()
    except ValueError as e:
        raise ValueError(f"Invalid week id: {week_id!r}") from e
    if parsed.weekday() != 6:
        raise ValueError(f"Week id {week_id!r} does not fall on a week start")
    return parsed


def previous_week_id(week_id: str) -> str:
    return (parse_week_id(week_id) - timedelta(weeks=1)).strftime(WEEK_ID_FORMAT)


def trailing_week_ids(week_id: str, count: int) -> list[str]:
    """Return ``count`` week ids ending with ``week_id``, newest first."""
    start = parse_week_id(week_id)
    return [(start - timedelta(weeks=i)).strftime(WEEK_ID_FORMAT) for i in range(count)]
