"""Budget pacing: status tiers, time-elapsed pacing and burn-rate projection."""

import logging
import math
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Iterable, Mapping, Optional, Union

from . import constants
from .schema import BudgetPeriod, BurnRateResult, PacingResult, Transaction
from .types import BudgetStatus, PaceStatus, TransactionType
from .utils import days_between, round_money

logger = logging.getLogger(__name__)

# Spend-ratio bands, checked in order: (exclusive lower bound, status, label)
_PACE_BANDS = (
    (constants.OVER_ACCELERATING_RATIO, PaceStatus.OVER_ACCELERATING, constants.LABEL_SPENDING_TOO_FAST),
    (Decimal("1"), PaceStatus.BEHIND, constants.LABEL_SLIGHTLY_AHEAD),
)


def percent_used(period: BudgetPeriod) -> Decimal:
    """Actual spend as a percentage of the budget (0 for a zero budget)."""
    if period.budgeted_amount == 0:
        return constants.ZERO
    return period.actual_to_date / period.budgeted_amount * constants.HUNDRED


def budget_status(percent: Decimal) -> BudgetStatus:
    """Tier for a percent-used figure.

    - above 100 → OVER_BUDGET
    - 75 to 100 → AT_RISK
    - below 75 → ON_TRACK
    """
    if percent > constants.OVER_BUDGET_PERCENT:
        return BudgetStatus.OVER_BUDGET
    if percent >= constants.AT_RISK_PERCENT:
        return BudgetStatus.AT_RISK
    return BudgetStatus.ON_TRACK


def pace_for_ratio(spend_ratio: Decimal) -> tuple[PaceStatus, str]:
    """Pace status and label for actual / expected spend."""
    for lower_bound, status, label in _PACE_BANDS:
        if spend_ratio > lower_bound:
            return status, label
    if spend_ratio >= constants.UNDER_PACE_RATIO:
        return PaceStatus.ON_SCHEDULE, constants.LABEL_ON_TRACK
    return PaceStatus.AHEAD, constants.LABEL_UNDER_PACE


def _is_aware(value: datetime) -> bool:
    return value.tzinfo is not None and value.utcoffset() is not None


def _matching(current: datetime, period: BudgetPeriod) -> datetime:
    # an aware default instant becomes local wall-clock time for naive periods
    if _is_aware(current) and not _is_aware(period.start_date):
        return current.astimezone().replace(tzinfo=None)
    return current


def reference_instant(period: BudgetPeriod, now: Optional[datetime] = None) -> datetime:
    """Resolve the instant a period is measured at.

    Defaults to the current time in the period's own timezone (naive local
    time for naive periods). An explicit ``now`` must agree with the period
    on being naive or timezone-aware.

    Raises:
        ValueError: If ``now`` is aware and the period naive, or vice versa.
    """
    if now is None:
        return datetime.now(tz=period.start_date.tzinfo)
    if _is_aware(now) != _is_aware(period.start_date):
        raise ValueError(
            f"now ({now.isoformat()}) and the budget period "
            f"({period.start_date.isoformat()}) must both be naive or both be timezone-aware",
        )
    return now


class BudgetPacingAnalyzer:
    """Derives dashboard signals from a budget-vs-actual snapshot.

    Nothing is cached: every call recomputes from the period and ``now``.
    """

    def burn_rate(self, period: BudgetPeriod, now: Optional[datetime] = None) -> BurnRateResult:
        """Project end-of-period spend from the average daily spend so far.

        Elapsed days are floored at 1 and remaining days at 0. Day counts are
        exact time differences, with no calendar-aware month arithmetic.
        """
        now = reference_instant(period, now)
        elapsed_days = max(Decimal("1"), days_between(period.start_date, now))
        remaining_days = max(constants.ZERO, days_between(now, period.end_date))

        daily_burn_rate = period.actual_to_date / elapsed_days
        projected_end_spend = period.actual_to_date + daily_burn_rate * remaining_days

        return BurnRateResult(
            daily_burn_rate=round_money(daily_burn_rate),
            projected_end_spend=round_money(projected_end_spend),
            days_remaining=math.ceil(remaining_days),
        )

    def analyze(self, period: BudgetPeriod, now: Optional[datetime] = None) -> PacingResult:
        """Compute status tier, pacing and burn rate for a budget period.

        Args:
            period: Budget period with budgeted and actual amounts.
            now: Reference instant (defaults to the current time in the
                period's timezone).

        Returns:
            PacingResult for the period at ``now``.
        """
        now = reference_instant(period, now)
        used = percent_used(period)
        burn = self.burn_rate(period, now)
        budgeted = period.budgeted_amount
        actual = period.actual_to_date
        spend_ratio: Optional[Decimal] = None

        if now < period.start_date:
            time_status = PaceStatus.AHEAD
            label = constants.LABEL_NOT_STARTED
            elapsed_fraction = constants.ZERO
            expected = constants.ZERO
        elif now > period.end_date:
            time_status = PaceStatus.OVER_ACCELERATING if actual > budgeted else PaceStatus.ON_SCHEDULE
            label = constants.LABEL_PERIOD_ENDED
            elapsed_fraction = Decimal("1")
            expected = budgeted
        else:
            total_days = max(constants.ZERO, days_between(period.start_date, period.end_date))
            elapsed_days = max(constants.ZERO, days_between(period.start_date, now))
            elapsed_fraction = elapsed_days / total_days if total_days > 0 else Decimal("1")
            expected = budgeted * elapsed_fraction
            spend_ratio = actual / max(expected, constants.EXPECTED_SPEND_FLOOR)
            time_status, label = pace_for_ratio(spend_ratio)

        logger.debug(
            "Pacing at %s: %.2f%% used, %s (%s)",
            now,
            used,
            time_status.value,
            label,
        )

        return PacingResult(
            status=budget_status(used),
            time_status=time_status,
            label=label,
            percent_used=round_money(used),
            percent_time_elapsed=round_money(elapsed_fraction * constants.HUNDRED),
            expected_spend_by_now=round_money(expected),
            spend_ratio=round_money(spend_ratio) if spend_ratio is not None else None,
            daily_burn_rate=burn.daily_burn_rate,
            projected_end_spend=burn.projected_end_spend,
            days_remaining=burn.days_remaining,
        )

    def analyze_many(
        self,
        periods: Mapping[str, BudgetPeriod],
        now: Optional[datetime] = None,
    ) -> dict[str, PacingResult]:
        """Analyze several budget lines against the same instant."""
        if now is not None:
            return {key: self.analyze(period, now) for key, period in periods.items()}
        current = datetime.now(timezone.utc)
        return {key: self.analyze(period, _matching(current, period)) for key, period in periods.items()}


def actual_to_date(
    transactions: Iterable[Transaction],
    start: Union[date, datetime],
    end: Union[date, datetime],
    category_id: Optional[str] = None,
    transaction_type: TransactionType = TransactionType.EXPENSE,
) -> Decimal:
    """Sum transaction amounts inside ``[start, end]``.

    Args:
        transactions: Transactions to sum.
        start: First day of the period (inclusive).
        end: Last day of the period (inclusive).
        category_id: Restrict to one category when given.
        transaction_type: Only transactions of this type are counted.

    Returns:
        Total amount as a Decimal.
    """
    start_day = start.date() if isinstance(start, datetime) else start
    end_day = end.date() if isinstance(end, datetime) else end

    total = constants.ZERO
    for txn in transactions:
        if txn.type != transaction_type:
            continue
        if category_id is not None and txn.category_id != category_id:
            continue
        if start_day <= txn.date <= end_day:
            total += txn.amount
    return total
