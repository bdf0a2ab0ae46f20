"""Timezone helpers – provide a single UTC *now()* for the whole backend.

Import :pyfunc:`utc_now` / :pyfunc:`utc_now_naive` everywhere instead of
calling the stdlib helpers directly so timestamps written by services and
by column defaults agree.
"""

from datetime import datetime
from datetime import timezone

from dateutil.relativedelta import relativedelta


def utc_now() -> datetime:  # noqa: D401 – simple utility
    """Return *aware* current time in UTC."""

    return datetime.now(timezone.utc)


def utc_now_naive() -> datetime:  # noqa: D401 – simple utility
    """Return *naive* current time in UTC for database compatibility.

    SQLAlchemy DateTime columns without timezone info store naive datetimes.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    """Normalise *value* to a naive UTC datetime (aware values are converted)."""

    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def add_months(value: datetime, months: int) -> datetime:
    """Shift *value* by *months* calendar months, clamping the day.

    ``add_months(datetime(2024, 1, 31), 1)`` yields 2024-02-29.
    """

    return value + relativedelta(months=months)


__all__ = ["utc_now", "utc_now_naive", "as_naive_utc", "add_months"]
