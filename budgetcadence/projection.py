"""Projection of accepted patterns onto recurring obligations."""

import logging
from datetime import date, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta

from . import constants
from .schema import RecurringBillDraft, RecurringPattern
from .types import Frequency

logger = logging.getLogger(__name__)


def _validate_preferred_day(preferred_day_of_month: Optional[int]) -> Optional[int]:
    if preferred_day_of_month is None:
        return None
    if not 1 <= preferred_day_of_month <= 31:
        raise ValueError(
            f"preferred_day_of_month must be between 1 and 31, got {preferred_day_of_month}",
        )
    return min(preferred_day_of_month, constants.MAX_PREFERRED_DAY)


def advance(anchor: date, frequency: Frequency, units: int = 1) -> date:
    """Move ``anchor`` forward by ``units`` frequency units.

    Month-based frequencies use calendar months; a day that does not exist
    in the target month is clamped to the last day of that month.
    """
    if frequency in constants.WEEK_BASED_DAYS:
        return anchor + timedelta(days=constants.WEEK_BASED_DAYS[frequency] * units)
    return anchor + relativedelta(months=constants.MONTH_BASED_MONTHS[frequency] * units)


def next_due_date(
    pattern: RecurringPattern,
    preferred_day_of_month: Optional[int] = None,
    today: Optional[date] = None,
) -> date:
    """Calculate the next due date for a recurring pattern.

    The most recent member date is the anchor; one frequency unit is added,
    with the preferred day (capped at 28) applied to month-based units. A
    stale result is advanced one unit at a time until it is on or after
    today.

    Args:
        pattern: Accepted recurring pattern.
        preferred_day_of_month: Optional day the obligation should fall on.
        today: Reference date (defaults to ``date.today()``).

    Returns:
        Next due date, never in the past.

    Example:
        >>> next_due_date(monthly_pattern_last_paid_2024_02_20, today=date(2024, 6, 15))
        date(2024, 6, 20)
    """
    today = today or date.today()
    preferred_day = _validate_preferred_day(preferred_day_of_month)

    if not pattern.transactions:
        due = today + relativedelta(months=1)
        if preferred_day is not None:
            due = due.replace(day=preferred_day)
        return due

    anchor = max(t.date for t in pattern.transactions)
    apply_day = preferred_day is not None and pattern.frequency.is_month_based

    def step(units: int) -> date:
        candidate = advance(anchor, pattern.frequency, units)
        if apply_day:
            candidate = candidate.replace(day=preferred_day)
        return candidate

    units = 1
    due = step(units)
    # Each step adds at least a week, so this terminates.
    while due < today:
        units += 1
        due = step(units)

    if units > 1:
        logger.debug(
            "Pattern '%s' is stale: advanced %d cycles past %s to %s",
            pattern.vendor_name,
            units - 1,
            anchor,
            due,
        )
    return due


def build_recurring_bill(
    pattern: RecurringPattern,
    preferred_day_of_month: Optional[int] = None,
    today: Optional[date] = None,
) -> RecurringBillDraft:
    """Build the recurring obligation record for an accepted pattern.

    Persisting the draft (and creating the vendor when ``create_vendor`` is
    set) is left to the caller.
    """
    due = next_due_date(pattern, preferred_day_of_month, today)
    name = pattern.suggested_name or f"Recurring payment to {pattern.vendor_name}"
    notes = (
        f"{name}. Auto-generated from {pattern.transaction_count} recurring transactions. "
        f"Amount may vary between ${pattern.min_amount:.2f} and ${pattern.max_amount:.2f}."
    )
    create_vendor = pattern.vendor_id is None

    return RecurringBillDraft(
        vendor_id=pattern.vendor_id,
        vendor_name=pattern.vendor_name,
        create_vendor=create_vendor,
        vendor_notes=constants.AUTO_VENDOR_NOTES if create_vendor else None,
        amount=pattern.average_amount,
        due_date=due,
        frequency=pattern.frequency,
        notes=notes,
    )
