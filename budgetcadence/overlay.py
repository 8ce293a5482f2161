"""AI-assisted overlay for pattern detection and budget suggestions.

The overlay asks an external model for the same results the deterministic
engine computes. Its output is untrusted: every response is parsed and every
item validated against the transactions and categories of the run before it
is used. Any unit of work whose response cannot be used falls back to the
deterministic algorithm, which is always reachable.
"""

import json
import logging
import os
from datetime import date
from typing import Any, Callable, Iterable, Iterator, Optional, Protocol, TypeVar

from pydantic import ValidationError

from . import constants
from .budgeting import CategoryBudgetSuggester, CategoryStats, sort_suggestions
from .detector import DeterministicDetector, sort_patterns
from .grouping import CandidateSeries
from .ratelimit import RateLimiter
from .schema import (
    AiPatternItem,
    AiPatternResponse,
    AiSuggestionItem,
    AiSuggestionResponse,
    BudgetSuggestion,
    Category,
    OverlayConfig,
    PatternMember,
    RecurringPattern,
    Transaction,
    Vendor,
)
from .types import ResultSource
from .utils import round_money

logger = logging.getLogger(__name__)

KeyT = TypeVar("KeyT")
InT = TypeVar("InT")
OutT = TypeVar("OutT")

PATTERN_SYSTEM_PROMPT = (
    "You are a financial pattern detection expert. Analyze transaction history to "
    "identify recurring expenses and income. Respond with valid JSON only."
)
BUDGET_SYSTEM_PROMPT = (
    "You are a financial planning expert. Create realistic budget suggestions based "
    "on historical data. Respond with valid JSON only."
)


class OverlayError(Exception):
    """Raised when an overlay response cannot be used."""


class OverlayClient(Protocol):
    """Sends one prompt to an external model and returns its raw JSON text."""

    def complete(self, system: str, prompt: str) -> Optional[str]: ...


class OpenAIOverlayClient:
    """Overlay client backed by the OpenAI Chat Completions API.

    The SDK client is created lazily on first use; nothing happens at import
    or construction time.
    """

    def __init__(
        self,
        model: str = constants.DEFAULT_AI_MODEL,
        max_completion_tokens: int = constants.AI_MAX_COMPLETION_TOKENS,
        client: Any = None,
    ):
        self.model = model
        self.max_completion_tokens = max_completion_tokens
        self._client = client

    @classmethod
    def from_env(cls, config: OverlayConfig) -> Optional["OpenAIOverlayClient"]:
        """Return a client when ``OPENAI_API_KEY`` is set, else None."""
        if not os.getenv("OPENAI_API_KEY"):
            logger.info("OPENAI_API_KEY is not set; AI overlay unavailable")
            return None
        return cls(model=config.model, max_completion_tokens=config.max_completion_tokens)

    def _get_client(self):
        if self._client is None:
            from openai import OpenAI

            self._client = OpenAI()
        return self._client

    def complete(self, system: str, prompt: str) -> Optional[str]:
        completion = self._get_client().chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            response_format={"type": "json_object"},
            max_completion_tokens=self.max_completion_tokens,
        )
        if not completion.choices:
            return None
        return completion.choices[0].message.content


def iter_units(
    units: Iterable[tuple[KeyT, InT]],
    worker: Callable[[InT], OutT],
    rate_limiter: Optional[RateLimiter] = None,
) -> Iterator[tuple[KeyT, Optional[OutT]]]:
    """Process independent units of work one at a time.

    Each unit waits for the rate limiter before its call. A failing unit is
    logged and yielded with a ``None`` result; the remaining units still run.
    Stopping iteration abandons the rest of the run, and results already
    yielded stay valid.
    """
    for key, payload in units:
        if rate_limiter is not None:
            rate_limiter.acquire()
        try:
            result = worker(payload)
        except (OverlayError, ValueError) as e:
            logger.warning("AI overlay unit %s unusable, falling back: %s", key, e)
            result = None
        except Exception as e:
            logger.warning("AI overlay unit %s failed unexpectedly, falling back: %s", key, e, exc_info=True)
            result = None
        yield key, result


def _decode_envelope(text: Optional[str], model):
    if not text or not text.strip():
        raise OverlayError("empty response")
    return model.model_validate_json(text)


class AiAssistedDetector:
    """Pattern detector that asks an external model, with deterministic fallback."""

    def __init__(
        self,
        client: Optional[OverlayClient],
        fallback: Optional[DeterministicDetector] = None,
        rate_limiter: Optional[RateLimiter] = None,
        config: Optional[OverlayConfig] = None,
    ):
        """Initialize detector.

        Args:
            client: Overlay client; None means the overlay is absent.
            fallback: Deterministic detector used for grouping and fallback.
            rate_limiter: Spacing and budget for overlay calls.
            config: Overlay configuration (group and description limits).
        """
        self.client = client
        self.fallback = fallback or DeterministicDetector()
        self.config = config or OverlayConfig()
        self.rate_limiter = rate_limiter or RateLimiter.from_config(self.config)

    def detect(
        self,
        transactions: Iterable[Transaction],
        lookback_months: int = constants.DEFAULT_LOOKBACK_MONTHS,
        vendors: Iterable[Vendor] = (),
        today: Optional[date] = None,
    ) -> list[RecurringPattern]:
        """Detect recurring patterns, preferring validated overlay output.

        Candidates are sent in chunks of ``max_groups``; a chunk whose
        response is unusable is analyzed deterministically instead.
        """
        candidates = list(self.fallback.grouper(vendors).group(transactions, lookback_months, today).values())
        if not candidates:
            return []

        if self.client is None:
            logger.info("AI overlay not available - using deterministic detection")
            return self.fallback.detect_candidates(candidates)

        size = self.config.max_groups
        chunks = [candidates[i : i + size] for i in range(0, len(candidates), size)]

        patterns: list[RecurringPattern] = []
        for index, result in iter_units(enumerate(chunks), self.request_patterns, self.rate_limiter):
            if result is None:
                patterns.extend(self.fallback.detect_candidates(chunks[index]))
            else:
                patterns.extend(result)

        return sort_patterns(patterns)

    def build_prompt(self, chunk: list[CandidateSeries]) -> str:
        """Describe candidate groups for the model."""
        limit = self.config.description_max_length
        groups = [
            {
                "vendorName": series.vendor_name,
                "transactionType": series.transactions[0].type.value,
                "transactions": [
                    {
                        "id": t.id,
                        "date": t.date.isoformat(),
                        "amount": str(t.amount),
                        "description": t.description[:limit],
                    }
                    for t in series.transactions
                ],
            }
            for series in chunk
        ]
        return (
            "Analyze these transaction groups and identify RECURRING patterns "
            "(weekly, biweekly, monthly, quarterly, yearly).\n\n"
            f"Transaction Groups:\n{json.dumps(groups, indent=2)}\n\n"
            "For each recurring group respond with vendorName, frequency, averageAmount, "
            "minAmount, maxAmount, transactionIds, confidence (0-100) and suggestedBillName.\n"
            f"Only include patterns with confidence >= {self.fallback.min_confidence}.\n"
            'Respond with JSON: {"patterns": [...]}'
        )

    def request_patterns(self, chunk: list[CandidateSeries]) -> list[RecurringPattern]:
        """Ask the model about one chunk and validate its answer.

        Raises:
            OverlayError: The response is empty or yields no usable pattern.
            pydantic.ValidationError: The response is not the expected JSON.
        """
        text = self.client.complete(PATTERN_SYSTEM_PROMPT, self.build_prompt(chunk))
        envelope = _decode_envelope(text, AiPatternResponse)

        members = {t.id: t for series in chunk for t in series.transactions}
        claimed: set[str] = set()
        patterns: list[RecurringPattern] = []

        for raw in envelope.patterns:
            try:
                item = AiPatternItem.model_validate(raw)
            except ValidationError as e:
                logger.debug("Rejecting AI pattern %r: %s", raw, e)
                continue
            pattern = self._repair_pattern(item, members, claimed)
            if pattern is not None:
                patterns.append(pattern)

        if not patterns:
            raise OverlayError(f"no usable patterns in {len(envelope.patterns)} returned")
        return patterns

    def _repair_pattern(
        self,
        item: AiPatternItem,
        members: dict[str, Transaction],
        claimed: set[str],
    ) -> Optional[RecurringPattern]:
        """Rebuild a pattern from the run's own transactions.

        Amounts, counts and the transaction type come from the referenced
        transactions, not from the model. Unknown or already-claimed ids are
        dropped.
        """
        txns = [members[i] for i in dict.fromkeys(item.transaction_ids) if i in members and i not in claimed]
        if len(txns) < constants.MIN_SERIES_SIZE:
            logger.debug("Rejecting AI pattern '%s': too few known transactions", item.vendor_name)
            return None

        confidence = round(item.confidence)
        if confidence < self.fallback.min_confidence:
            logger.debug("Rejecting AI pattern '%s': confidence %d", item.vendor_name, confidence)
            return None

        txns.sort(key=lambda t: t.date)
        claimed.update(t.id for t in txns)
        amounts = [t.amount for t in txns]
        first = txns[0]
        vendor_name = item.vendor_name.strip()

        return RecurringPattern(
            vendor_name=vendor_name,
            vendor_id=first.vendor_id,
            category_id=first.category_id,
            average_amount=round_money(sum(amounts) / len(amounts)),
            min_amount=round_money(min(amounts)),
            max_amount=round_money(max(amounts)),
            frequency=item.frequency,
            transaction_type=first.type,
            transaction_count=len(txns),
            member_transaction_ids=[t.id for t in txns],
            transactions=[
                PatternMember(id=t.id, date=t.date, amount=t.amount, description=t.description)
                for t in txns
            ],
            confidence=confidence,
            suggested_name=item.suggested_name.strip()
            or f"{item.frequency.value.capitalize()} {vendor_name} Payment",
            source=ResultSource.AI,
        )


class AiAssistedSuggester:
    """Budget suggester that asks an external model, with deterministic fallback."""

    def __init__(
        self,
        client: Optional[OverlayClient],
        fallback: Optional[CategoryBudgetSuggester] = None,
        rate_limiter: Optional[RateLimiter] = None,
        config: Optional[OverlayConfig] = None,
    ):
        self.client = client
        self.fallback = fallback or CategoryBudgetSuggester()
        self.config = config or OverlayConfig()
        self.rate_limiter = rate_limiter or RateLimiter.from_config(self.config)

    def suggest(
        self,
        transactions: Iterable[Transaction],
        categories: Iterable[Category],
        lookback_months: int = constants.DEFAULT_LOOKBACK_MONTHS,
        today: Optional[date] = None,
    ) -> list[BudgetSuggestion]:
        """Suggest monthly budgets, preferring validated overlay output."""
        stats = self.fallback.collect(transactions, categories, lookback_months, today)
        if not stats:
            return []

        deterministic = [self.fallback.suggest_for(entry) for entry in stats.values() if entry.months]
        if self.client is None:
            logger.info("AI overlay not available - using deterministic suggestions")
            return sort_suggestions(deterministic)

        unit = [("categories", (stats, lookback_months))]
        for _, result in iter_units(unit, self._request_unit, self.rate_limiter):
            if result is not None:
                return sort_suggestions(result)
        return sort_suggestions(deterministic)

    def _request_unit(self, payload: tuple[dict[str, CategoryStats], int]) -> list[BudgetSuggestion]:
        stats, lookback_months = payload
        return self.request_suggestions(stats, lookback_months)

    def build_prompt(self, stats: dict[str, CategoryStats], lookback_months: int) -> str:
        """Describe the category aggregate table for the model."""
        table = [
            {
                "categoryId": entry.category.id,
                "categoryName": entry.category.name,
                "type": entry.category.type.value,
                "transactionCount": entry.transaction_count,
                "averageMonthly": str(round_money(entry.average)),
                "monthsWithData": entry.months,
            }
            for entry in stats.values()
        ]
        return (
            "Based on this spending/income history, suggest monthly budget amounts.\n\n"
            f"Category Data (last {lookback_months} months):\n{json.dumps(table, indent=2)}\n\n"
            "Respond with JSON: "
            '{"suggestions": [{"categoryId": "<id>", "categoryName": "<name>", '
            '"type": "income"|"expense", "suggestedMonthlyAmount": <number>, '
            '"reasoning": "<brief explanation>", "confidence": <0-100>}]}'
        )

    def request_suggestions(
        self,
        stats: dict[str, CategoryStats],
        lookback_months: int,
    ) -> list[BudgetSuggestion]:
        """Ask the model for suggestions and validate its answer.

        Items must reference a category of this run and agree with its type.
        Categories the model skipped get the deterministic suggestion.

        Raises:
            OverlayError: The response is empty or yields no usable suggestion.
            pydantic.ValidationError: The response is not the expected JSON.
        """
        text = self.client.complete(BUDGET_SYSTEM_PROMPT, self.build_prompt(stats, lookback_months))
        envelope = _decode_envelope(text, AiSuggestionResponse)

        accepted: dict[str, BudgetSuggestion] = {}
        for raw in envelope.suggestions:
            try:
                item = AiSuggestionItem.model_validate(raw)
            except ValidationError as e:
                logger.debug("Rejecting AI suggestion %r: %s", raw, e)
                continue

            entry = stats.get(item.category_id)
            if entry is None or not entry.months or item.category_id in accepted:
                logger.debug("Rejecting AI suggestion for unknown category %s", item.category_id)
                continue
            if item.type is not None and item.type != entry.category.type:
                logger.debug("Rejecting AI suggestion for %s: type mismatch", item.category_id)
                continue

            baseline = self.fallback.suggest_for(entry)
            accepted[item.category_id] = baseline.model_copy(
                update={
                    "suggested_monthly_amount": round_money(item.suggested_monthly_amount),
                    "confidence": round(item.confidence),
                    "reasoning": item.reasoning.strip() or baseline.reasoning,
                    "source": ResultSource.AI,
                },
            )

        if not accepted:
            raise OverlayError(f"no usable suggestions in {len(envelope.suggestions)} returned")

        return [
            accepted.get(category_id) or self.fallback.suggest_for(entry)
            for category_id, entry in stats.items()
            if entry.months
        ]
