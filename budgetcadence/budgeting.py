"""Per-category monthly budget suggestions from categorized history."""

import logging
import statistics
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Protocol

from . import constants
from .grouping import lookback_cutoff
from .schema import BudgetSuggestion, Category, Transaction
from .types import TransactionType
from .utils import month_key, round_money

logger = logging.getLogger(__name__)


@dataclass
class CategoryStats:
    """Monthly aggregates for one category."""

    category: Category
    transaction_count: int = 0
    monthly_totals: dict[str, Decimal] = field(default_factory=dict)
    """Sum of amounts per ``YYYY-MM`` month, in first-seen order."""

    @property
    def months(self) -> int:
        return len(self.monthly_totals)

    @property
    def average(self) -> Decimal:
        values = list(self.monthly_totals.values())
        return sum(values, Decimal("0")) / len(values) if values else Decimal("0")

    @property
    def median(self) -> Decimal:
        """Middle monthly total, the lower-middle one for an even count.

        No interpolation: the result is always one of the monthly totals.
        """
        values = sorted(self.monthly_totals.values())
        return values[(len(values) - 1) // 2] if values else Decimal("0")

    @property
    def variance(self) -> Decimal:
        """Population standard deviation of the monthly totals."""
        values = list(self.monthly_totals.values())
        if len(values) < 2:
            return Decimal("0")
        return statistics.pstdev(values)


def collect_category_stats(
    transactions: Iterable[Transaction],
    categories: Iterable[Category],
    cutoff: date,
) -> tuple[int, dict[str, CategoryStats]]:
    """Aggregate qualifying transactions into per-category monthly totals.

    Returns:
        Tuple of (qualifying transaction count, stats by category id).
    """
    category_map = {c.id: c for c in categories}
    stats: dict[str, CategoryStats] = {}
    qualifying = 0

    for txn in transactions:
        if txn.date < cutoff or txn.category_id is None:
            continue
        qualifying += 1

        category = category_map.get(txn.category_id)
        if category is None:
            logger.debug("Ignoring transaction %s: unknown category %s", txn.id, txn.category_id)
            continue

        entry = stats.get(category.id)
        if entry is None:
            entry = stats[category.id] = CategoryStats(category=category)
        entry.transaction_count += 1
        key = month_key(txn.date)
        entry.monthly_totals[key] = entry.monthly_totals.get(key, Decimal("0")) + abs(txn.amount)

    return qualifying, stats


class BudgetSuggester(Protocol):
    """Common interface of the deterministic and AI-assisted suggesters."""

    def suggest(
        self,
        transactions: Iterable[Transaction],
        categories: Iterable[Category],
        lookback_months: int = constants.DEFAULT_LOOKBACK_MONTHS,
        today: Optional[date] = None,
    ) -> list[BudgetSuggestion]: ...


class CategoryBudgetSuggester:
    """Deterministic monthly budget suggestions with a confidence score."""

    def __init__(
        self,
        min_transactions: int = constants.MIN_BUDGET_TRANSACTIONS,
        expense_buffer: Decimal = constants.EXPENSE_BUFFER,
        income_haircut: Decimal = constants.INCOME_HAIRCUT,
    ):
        """Initialize suggester.

        Args:
            min_transactions: Minimum qualifying transactions across all
                categories; below it no suggestion is made.
            expense_buffer: Multiplier applied to average expense.
            income_haircut: Multiplier applied to average income.
        """
        self.min_transactions = min_transactions
        self.expense_buffer = Decimal(str(expense_buffer))
        self.income_haircut = Decimal(str(income_haircut))

    def collect(
        self,
        transactions: Iterable[Transaction],
        categories: Iterable[Category],
        lookback_months: int,
        today: Optional[date] = None,
    ) -> dict[str, CategoryStats]:
        """Aggregate history, or return {} when the signal is insufficient."""
        cutoff = lookback_cutoff(today or date.today(), lookback_months)
        qualifying, stats = collect_category_stats(transactions, categories, cutoff)

        if qualifying < self.min_transactions:
            logger.info(
                "Not enough categorized transactions for budget suggestions: %d since %s (min: %d)",
                qualifying,
                cutoff,
                self.min_transactions,
            )
            return {}
        return stats

    def suggest(
        self,
        transactions: Iterable[Transaction],
        categories: Iterable[Category],
        lookback_months: int = constants.DEFAULT_LOOKBACK_MONTHS,
        today: Optional[date] = None,
    ) -> list[BudgetSuggestion]:
        """Suggest a monthly budget per category.

        Args:
            transactions: Categorized transaction history.
            categories: Known categories (name and income/expense type).
            lookback_months: Window size in months, ending today.
            today: Reference date (defaults to ``date.today()``).

        Returns:
            BudgetSuggestion list ordered by suggested amount, highest first.
        """
        stats = self.collect(transactions, categories, lookback_months, today)
        suggestions = [self.suggest_for(entry) for entry in stats.values() if entry.months]
        return sort_suggestions(suggestions)

    def suggest_for(self, stats: CategoryStats) -> BudgetSuggestion:
        """Build the suggestion for one category's aggregates."""
        category = stats.category
        is_expense = category.type == TransactionType.EXPENSE
        multiplier = self.expense_buffer if is_expense else self.income_haircut

        average = stats.average
        variance = stats.variance
        rounded_average = round_money(average)

        return BudgetSuggestion(
            category_id=category.id,
            category_name=category.name,
            type=category.type,
            suggested_monthly_amount=round_money(average * multiplier),
            based_on_average=rounded_average,
            based_on_median=round_money(stats.median),
            variance=round_money(variance),
            confidence=self.calculate_confidence(stats.months, average, variance),
            reasoning=self.reasoning(category.type, stats.months, rounded_average),
            months_of_data=stats.months,
        )

    def calculate_confidence(self, months: int, average: Decimal, variance: Decimal) -> int:
        """Score predictability from history length and month-to-month spread.

        Scoring:
        - Base 70
        - +10 with at least 4 months of data
        - +10 when stddev / average < 0.2
        - -20 when stddev / average > 0.5
        - Clamped to 50-95
        - A zero average keeps the base score
        """
        confidence = constants.BASE_SUGGESTION_CONFIDENCE
        if average == 0:
            return confidence

        if months >= constants.MANY_MONTHS_THRESHOLD:
            confidence += constants.MANY_MONTHS_BONUS

        ratio = variance / average
        if ratio < constants.LOW_VARIATION_RATIO:
            confidence += constants.LOW_VARIATION_BONUS
        if ratio > constants.HIGH_VARIATION_RATIO:
            confidence -= constants.HIGH_VARIATION_PENALTY

        return max(
            constants.MIN_SUGGESTION_CONFIDENCE,
            min(constants.MAX_SUGGESTION_CONFIDENCE, confidence),
        )

    def reasoning(self, category_type: TransactionType, months: int, average: Decimal) -> str:
        """User-facing explanation matching the returned figures."""
        if category_type == TransactionType.EXPENSE:
            buffer_pct = round((self.expense_buffer - 1) * 100)
            return (
                f"Based on {months} months of data, average spending is ${average:.2f}. "
                f"Added {buffer_pct}% buffer for unexpected expenses."
            )
        haircut_pct = round(self.income_haircut * 100)
        return (
            f"Based on {months} months of data, average income is ${average:.2f}. "
            f"Conservative estimate at {haircut_pct}% of average."
        )


def sort_suggestions(suggestions: list[BudgetSuggestion]) -> list[BudgetSuggestion]:
    """Order suggestions by suggested monthly amount, highest first."""
    ordered = sorted(suggestions, key=lambda s: s.suggested_monthly_amount, reverse=True)
    logger.info("Generated %d budget suggestions", len(ordered))
    return ordered
