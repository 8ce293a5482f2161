"""Recurring transaction pattern detection engine.

Analyzes transaction history to discover recurring payment and income
patterns, each with a frequency bucket and a confidence score.
"""

import logging
import statistics
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional, Protocol

from . import constants
from .grouping import CandidateSeries, TimeSeriesGrouper
from .schema import PatternMember, RecurringPattern, Transaction, Vendor
from .types import Frequency
from .utils import round_money

logger = logging.getLogger(__name__)


@dataclass
class IntervalAnalysis:
    """Analysis of day intervals between consecutive transactions."""

    intervals: list[int] = field(default_factory=list)
    """Days between consecutive transactions."""

    mean_interval: float = 0.0
    """Mean interval in days."""

    std_dev: float = 0.0
    """Population standard deviation of intervals."""

    @property
    def is_irregular(self) -> bool:
        """Whether spacing varies by more than the tolerated share of the mean."""
        return self.std_dev > constants.IRREGULARITY_RATIO * self.mean_interval


@dataclass
class FrequencyDetection:
    """Frequency bucket assigned to an average interval."""

    frequency: Frequency
    base_confidence: int

    def formatted_name(self) -> str:
        """Return the capitalized frequency name used in suggested names."""
        return self.frequency.value.capitalize()


def analyze_intervals(dates: list[date]) -> IntervalAnalysis:
    """Compute day intervals and their spread for sorted dates.

    Args:
        dates: Dates sorted ascending.

    Returns:
        IntervalAnalysis (empty when fewer than two dates).
    """
    if len(dates) < 2:
        return IntervalAnalysis()

    intervals = [(dates[i] - dates[i - 1]).days for i in range(1, len(dates))]
    return IntervalAnalysis(
        intervals=intervals,
        mean_interval=statistics.fmean(intervals),
        std_dev=statistics.pstdev(intervals),
    )


def classify_frequency(mean_interval: float) -> Optional[FrequencyDetection]:
    """Bucket an average interval into a frequency.

    Ranges are inclusive on both ends:
    - 5-9 days → WEEKLY (70)
    - 12-16 days → BIWEEKLY (70)
    - 25-35 days → MONTHLY (80)
    - 80-100 days → QUARTERLY (75)
    - 350-380 days → YEARLY (70)

    Returns:
        FrequencyDetection, or None when no bucket matches.
    """
    for frequency, low, high, base_confidence in constants.FREQUENCY_BUCKETS:
        if low <= mean_interval <= high:
            return FrequencyDetection(frequency=frequency, base_confidence=base_confidence)
    return None


class IntervalPatternDetector:
    """Decides whether one candidate series is a recurring pattern."""

    def __init__(self, min_confidence: int = constants.MIN_PATTERN_CONFIDENCE):
        """Initialize detector.

        Args:
            min_confidence: Patterns scoring below this (0-100) are rejected.
        """
        self.min_confidence = min_confidence

    def detect(self, candidate: CandidateSeries) -> Optional[RecurringPattern]:
        """Detect a recurring pattern in a candidate series.

        Args:
            candidate: Series of transactions sharing a counterparty.

        Returns:
            RecurringPattern, or None when the series is not recurring.
        """
        members = sorted(candidate.transactions, key=lambda t: t.date)
        analysis = analyze_intervals([t.date for t in members])
        if not analysis.intervals:
            logger.debug("Skipping '%s': fewer than two transactions", candidate.vendor_name)
            return None

        detection = classify_frequency(analysis.mean_interval)
        if detection is None:
            logger.debug(
                "Skipping '%s': average interval %.1f days matches no frequency",
                candidate.vendor_name,
                analysis.mean_interval,
            )
            return None

        confidence = self.calculate_confidence(analysis, detection)
        if confidence < self.min_confidence:
            logger.debug(
                "Skipping '%s': confidence %d < %d",
                candidate.vendor_name,
                confidence,
                self.min_confidence,
            )
            return None

        return self._create_pattern(candidate, members, detection, confidence)

    def calculate_confidence(
        self,
        analysis: IntervalAnalysis,
        detection: FrequencyDetection,
    ) -> int:
        """Base bucket confidence, penalized once for irregular spacing."""
        confidence = detection.base_confidence
        if analysis.is_irregular:
            confidence -= constants.IRREGULARITY_PENALTY
        return confidence

    def _create_pattern(
        self,
        candidate: CandidateSeries,
        members: list[Transaction],
        detection: FrequencyDetection,
        confidence: int,
    ) -> RecurringPattern:
        amounts = [abs(t.amount) for t in members]
        first = members[0]

        return RecurringPattern(
            vendor_name=candidate.vendor_name,
            vendor_id=first.vendor_id,
            category_id=first.category_id,
            average_amount=round_money(sum(amounts) / len(amounts)),
            min_amount=round_money(min(amounts)),
            max_amount=round_money(max(amounts)),
            frequency=detection.frequency,
            transaction_type=first.type,
            transaction_count=len(members),
            member_transaction_ids=[t.id for t in members],
            transactions=[
                PatternMember(id=t.id, date=t.date, amount=t.amount, description=t.description)
                for t in members
            ],
            confidence=confidence,
            suggested_name=f"{detection.formatted_name()} {candidate.vendor_name} Payment",
        )


class PatternDetector(Protocol):
    """Common interface of the deterministic and AI-assisted detectors."""

    def detect(
        self,
        transactions: Iterable[Transaction],
        lookback_months: int = constants.DEFAULT_LOOKBACK_MONTHS,
        vendors: Iterable[Vendor] = (),
        today: Optional[date] = None,
    ) -> list[RecurringPattern]: ...


class DeterministicDetector:
    """Main detection pipeline: grouping followed by interval analysis."""

    def __init__(
        self,
        min_confidence: int = constants.MIN_PATTERN_CONFIDENCE,
        min_transactions: int = constants.MIN_TRANSACTIONS_FOR_DETECTION,
    ):
        """Initialize detector with configurable thresholds.

        Args:
            min_confidence: Minimum confidence to include in results.
            min_transactions: Minimum in-window transactions for a run.
        """
        self.min_confidence = min_confidence
        self.min_transactions = min_transactions
        self.interval_detector = IntervalPatternDetector(min_confidence=min_confidence)

    def grouper(self, vendors: Iterable[Vendor] = ()) -> TimeSeriesGrouper:
        """Build the grouper used for a run."""
        return TimeSeriesGrouper(vendors=vendors, min_transactions=self.min_transactions)

    def detect(
        self,
        transactions: Iterable[Transaction],
        lookback_months: int = constants.DEFAULT_LOOKBACK_MONTHS,
        vendors: Iterable[Vendor] = (),
        today: Optional[date] = None,
    ) -> list[RecurringPattern]:
        """Detect recurring patterns in a transaction history.

        Args:
            transactions: Transactions to analyze.
            lookback_months: Window size in months, ending today.
            vendors: Known vendors for resolving vendor references.
            today: Reference date (defaults to ``date.today()``).

        Returns:
            RecurringPattern list sorted by confidence (highest first).
        """
        candidates = self.grouper(vendors).group(transactions, lookback_months, today)
        return self.detect_candidates(candidates.values())

    def detect_candidates(self, candidates: Iterable[CandidateSeries]) -> list[RecurringPattern]:
        """Run interval analysis over already-grouped candidates."""
        patterns: list[RecurringPattern] = []
        rejected = 0
        for candidate in candidates:
            pattern = self.interval_detector.detect(candidate)
            if pattern is None:
                rejected += 1
                continue
            patterns.append(pattern)

        return sort_patterns(patterns, rejected)


def sort_patterns(patterns: list[RecurringPattern], rejected: int = 0) -> list[RecurringPattern]:
    """Order patterns by confidence (highest first), keeping ties stable."""
    ordered = sorted(patterns, key=lambda p: p.confidence, reverse=True)
    logger.info(
        "Detected %d recurring patterns (%d candidates rejected)",
        len(ordered),
        rejected,
    )
    return ordered
