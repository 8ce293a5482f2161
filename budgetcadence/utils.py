"""Utility functions shared by the detection and forecasting modules."""

import re
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

from .constants import CENTS_PRECISION

_ONE_DAY_MICROSECONDS = Decimal(timedelta(days=1) // timedelta(microseconds=1))


def round_money(value: Union[Decimal, int, float]) -> Decimal:
    """Round a currency figure half-up to cents.

    Floats are converted through ``str`` so that ``0.125`` rounds to ``0.13``
    rather than inheriting binary representation error.
    """
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENTS_PRECISION, rounding=ROUND_HALF_UP)


def days_between(start: datetime, end: datetime) -> Decimal:
    """Exact (fractional) number of days from ``start`` to ``end``.

    Negative when ``end`` precedes ``start``. No calendar-aware arithmetic is
    applied; the difference is measured in microseconds and divided by the
    length of one day.
    """
    micros = (end - start) // timedelta(microseconds=1)
    return Decimal(micros) / _ONE_DAY_MICROSECONDS


def to_datetime(value: Union[date, datetime]) -> datetime:
    """Promote a plain date to midnight; datetimes pass through."""
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, datetime.min.time())


def slugify(text: str) -> str:
    """Convert text to a lowercase, hyphen-separated identifier.

    Example:
        >>> slugify("Edison Power & Light")
        'edison-power-light'
    """
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower())
    return slug.strip("-")


def month_key(value: date) -> str:
    """Calendar-month bucket key in ``YYYY-MM`` form."""
    return f"{value.year:04d}-{value.month:02d}"
