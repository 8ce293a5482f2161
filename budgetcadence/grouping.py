"""Grouping of transactions into candidate recurring series.

Transactions are grouped by counterparty identity: the resolved vendor name
when a vendor reference exists, otherwise a synthetic key extracted from the
free-text description.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Mapping, Optional

from dateutil.relativedelta import relativedelta

from . import constants
from .schema import Transaction, Vendor

logger = logging.getLogger(__name__)

_LONG_DIGIT_RUN = re.compile(r"\d{4,}")
_NOISE_CHARS = re.compile(r"[#*]+")
_WHITESPACE = re.compile(r"\s+")


def extract_vendor_key(description: Optional[str]) -> str:
    """Extract a vendor name from a bank-style description.

    Strips reference numbers (digit runs of 4 or more), ``#`` and ``*``
    characters, collapses whitespace and keeps the first three words.

    Example:
        >>> extract_vendor_key("NETFLIX.COM *8473 Los Gatos CA")
        'NETFLIX.COM Los Gatos'
    """
    if not description or not isinstance(description, str):
        return constants.UNKNOWN_VENDOR

    cleaned = _LONG_DIGIT_RUN.sub("", description)
    cleaned = _NOISE_CHARS.sub("", cleaned)
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()

    words = cleaned.split(" ")[: constants.VENDOR_KEY_MAX_TOKENS]
    return " ".join(words) or constants.UNKNOWN_VENDOR


def lookback_cutoff(today: date, lookback_months: int) -> date:
    """First date inside a lookback window of ``lookback_months`` months."""
    if lookback_months <= 0:
        raise ValueError(f"lookback_months must be positive, got {lookback_months}")
    return today - relativedelta(months=lookback_months)


@dataclass
class CandidateSeries:
    """Transactions sharing a counterparty identity, considered for recurrence."""

    key: str
    """Lower-cased vendor name or extracted description token."""

    vendor_name: str
    """Display name of the counterparty (first member's casing)."""

    vendor_id: Optional[str] = None
    """Vendor reference when the series was grouped by vendor."""

    transactions: list[Transaction] = field(default_factory=list)
    """Members sorted by date ascending."""

    @property
    def count(self) -> int:
        """Number of transactions in the series."""
        return len(self.transactions)

    @property
    def dates(self) -> list[date]:
        """Member dates in series order."""
        return [t.date for t in self.transactions]


class TimeSeriesGrouper:
    """Groups a flat transaction list into candidate recurring series."""

    def __init__(
        self,
        vendors: Iterable[Vendor] = (),
        min_series_size: int = constants.MIN_SERIES_SIZE,
        min_transactions: int = constants.MIN_TRANSACTIONS_FOR_DETECTION,
    ):
        """Initialize grouper.

        Args:
            vendors: Known vendors, used to resolve ``vendor_id`` to a name.
            min_series_size: Minimum members for a group to be a candidate.
            min_transactions: Minimum in-window transactions for a run to
                produce any candidate at all.
        """
        self.vendor_names: Mapping[str, str] = {v.id: v.name for v in vendors}
        self.min_series_size = max(min_series_size, constants.MIN_SERIES_SIZE)
        self.min_transactions = min_transactions

    def vendor_name_for(self, txn: Transaction) -> str:
        """Resolve the counterparty name of a transaction."""
        if txn.vendor_id is not None:
            return self.vendor_names.get(txn.vendor_id, constants.UNKNOWN_VENDOR)
        return extract_vendor_key(txn.description)

    def group(
        self,
        transactions: Iterable[Transaction],
        lookback_months: int,
        today: Optional[date] = None,
    ) -> dict[str, CandidateSeries]:
        """Group in-window transactions into candidate series.

        Args:
            transactions: Transactions to group.
            lookback_months: Size of the window ending today, in months.
            today: Reference date (defaults to ``date.today()``).

        Returns:
            Mapping of series key to CandidateSeries, in first-appearance
            order, containing only groups with enough members.
        """
        today = today or date.today()
        cutoff = lookback_cutoff(today, lookback_months)

        recent = [t for t in transactions if t.date >= cutoff]
        if len(recent) < self.min_transactions:
            logger.info(
                "Not enough transactions for pattern detection: %d since %s (min: %d)",
                len(recent),
                cutoff,
                self.min_transactions,
            )
            return {}

        groups: dict[str, CandidateSeries] = {}
        for txn in recent:
            name = self.vendor_name_for(txn)
            key = name.lower()
            series = groups.get(key)
            if series is None:
                series = CandidateSeries(key=key, vendor_name=name, vendor_id=txn.vendor_id)
                groups[key] = series
            series.transactions.append(txn)

        candidates: dict[str, CandidateSeries] = {}
        for key, series in groups.items():
            if series.count < self.min_series_size:
                continue
            series.transactions.sort(key=lambda t: t.date)
            candidates[key] = series

        logger.debug(
            "Grouped %d transactions into %d groups (%d candidates)",
            len(recent),
            len(groups),
            len(candidates),
        )
        return candidates
