"""Public library entry points.

These functions are thin wrappers over the component classes. Each accepts an
optional detector/suggester so callers can plug in the AI-assisted variants;
the deterministic implementation is used otherwise.
"""

from datetime import date, datetime
from typing import Iterable, Optional

from . import constants
from .budgeting import BudgetSuggester, CategoryBudgetSuggester
from .detector import DeterministicDetector, PatternDetector
from .pacing import BudgetPacingAnalyzer
from .projection import next_due_date
from .schema import (
    BudgetPeriod,
    BudgetSuggestion,
    BurnRateResult,
    Category,
    PacingResult,
    RecurringPattern,
    Transaction,
    Vendor,
)


def detect_recurring_patterns(
    transactions: Iterable[Transaction],
    lookback_months: int = constants.DEFAULT_LOOKBACK_MONTHS,
    *,
    vendors: Iterable[Vendor] = (),
    today: Optional[date] = None,
    detector: Optional[PatternDetector] = None,
) -> list[RecurringPattern]:
    """
    Discover recurring payment and income patterns.

    Args:
        transactions: Transaction history to scan.
        lookback_months: Window size in months, ending today. Must be positive.
        vendors: Known vendors used to resolve ``vendor_id`` references.
        today: Reference date (defaults to ``date.today()``).
        detector: Detector implementation (defaults to DeterministicDetector).

    Returns:
        Accepted patterns, highest confidence first. Empty when the history
        carries too little signal.

    Raises:
        ValueError: If lookback_months is not positive.
    """
    detector = detector or DeterministicDetector()
    return detector.detect(transactions, lookback_months, vendors=vendors, today=today)


def suggest_budgets(
    transactions: Iterable[Transaction],
    lookback_months: int = constants.DEFAULT_LOOKBACK_MONTHS,
    *,
    categories: Iterable[Category],
    today: Optional[date] = None,
    suggester: Optional[BudgetSuggester] = None,
) -> list[BudgetSuggestion]:
    """
    Suggest a monthly budget for each category with history.

    Args:
        transactions: Categorized transaction history.
        lookback_months: Window size in months, ending today. Must be positive.
        categories: Known categories with their income/expense type.
        today: Reference date (defaults to ``date.today()``).
        suggester: Suggester implementation (defaults to CategoryBudgetSuggester).

    Returns:
        Suggestions ordered by suggested amount, highest first.

    Raises:
        ValueError: If lookback_months is not positive.
    """
    suggester = suggester or CategoryBudgetSuggester()
    return suggester.suggest(transactions, categories, lookback_months, today)


def analyze_pacing(period: BudgetPeriod, now: Optional[datetime] = None) -> PacingResult:
    """Status tier, pacing and burn rate of a budget period at ``now``."""
    return BudgetPacingAnalyzer().analyze(period, now)


def compute_burn_rate(period: BudgetPeriod, now: Optional[datetime] = None) -> BurnRateResult:
    """Linear end-of-period spend projection at ``now``."""
    return BudgetPacingAnalyzer().burn_rate(period, now)


def project_next_due_date(
    pattern: RecurringPattern,
    preferred_day_of_month: Optional[int] = None,
    today: Optional[date] = None,
) -> date:
    """Next due date of a recurring pattern, never earlier than ``today``.

    Raises:
        ValueError: If preferred_day_of_month is outside 1-31.
    """
    return next_due_date(pattern, preferred_day_of_month, today)
