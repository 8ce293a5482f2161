"""Pydantic schema models for engine inputs, outputs and configuration."""

import datetime as dt
from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from . import constants
from .types import BudgetStatus, Frequency, PaceStatus, ResultSource, TransactionType
from .utils import to_datetime


def _coerce_id(v):
    """Accept integer identifiers from repositories that number their rows."""
    if v is None or isinstance(v, str):
        return v
    if isinstance(v, bool):
        raise ValueError("identifier must be a string or integer")
    if isinstance(v, int):
        return str(v)
    return v


# ============================================================================
# Inputs
# ============================================================================


class Transaction(BaseModel):
    """A ledger transaction as seen by the engine (read-only)."""

    id: str = Field(..., description="Transaction identifier")
    date: dt.date = Field(..., description="Posting date")
    amount: Decimal = Field(..., description="Positive magnitude of the amount")
    type: TransactionType = Field(..., description="income or expense")
    description: str = Field("", description="Free-text description")
    vendor_id: Optional[str] = Field(None, description="Vendor reference")
    category_id: Optional[str] = Field(None, description="Category reference")

    @field_validator("id", "vendor_id", "category_id", mode="before")
    @classmethod
    def coerce_ids(cls, v):
        return _coerce_id(v)

    @field_validator("description", mode="before")
    @classmethod
    def default_description(cls, v):
        """Absent descriptions degrade to an empty string."""
        return "" if v is None else v

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v):
        """Ensure amount is a positive magnitude; the sign lives in ``type``."""
        if v <= 0:
            raise ValueError("amount must be positive; use type for the cash direction")
        return v


class Vendor(BaseModel):
    """Counterparty record."""

    id: str
    name: str

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return _coerce_id(v)


class Category(BaseModel):
    """Budget category record."""

    id: str
    name: str
    type: TransactionType

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return _coerce_id(v)


class BudgetPeriod(BaseModel):
    """A budget line over a period with its actual spend so far."""

    start_date: datetime = Field(..., description="Period start (inclusive)")
    end_date: datetime = Field(..., description="Period end")
    budgeted_amount: Decimal = Field(..., description="Budgeted amount for the period")
    actual_to_date: Decimal = Field(Decimal("0"), description="Actual spend so far")

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def promote_dates(cls, v):
        """Plain dates mean midnight at the start of that day."""
        if isinstance(v, date):
            return to_datetime(v)
        return v

    @field_validator("budgeted_amount", "actual_to_date")
    @classmethod
    def validate_non_negative(cls, v):
        if v < 0:
            raise ValueError("budget amounts must not be negative")
        return v

    @model_validator(mode="after")
    def validate_range(self):
        """Ensure the period does not end before it starts."""
        if (self.start_date.tzinfo is None) != (self.end_date.tzinfo is None):
            raise ValueError("start_date and end_date must both be naive or both be timezone-aware")
        if self.end_date < self.start_date:
            raise ValueError(
                f"end_date ({self.end_date}) must not precede start_date ({self.start_date})",
            )
        return self


# ============================================================================
# Outputs
# ============================================================================


class PatternMember(BaseModel):
    """A transaction that belongs to a recurring pattern."""

    model_config = ConfigDict(frozen=True)

    id: str
    date: dt.date
    amount: Decimal
    description: str = ""


class RecurringPattern(BaseModel):
    """A detected recurring payment or income pattern."""

    model_config = ConfigDict(frozen=True)

    vendor_name: str
    vendor_id: Optional[str] = None
    category_id: Optional[str] = None
    average_amount: Decimal
    min_amount: Decimal
    max_amount: Decimal
    frequency: Frequency
    transaction_type: TransactionType
    transaction_count: int
    member_transaction_ids: List[str] = Field(default_factory=list)
    transactions: List[PatternMember] = Field(default_factory=list)
    confidence: int = Field(..., ge=0, le=100)
    suggested_name: str
    source: ResultSource = ResultSource.DETERMINISTIC


class BudgetSuggestion(BaseModel):
    """Suggested monthly budget for one category."""

    model_config = ConfigDict(frozen=True)

    category_id: str
    category_name: str
    type: TransactionType
    suggested_monthly_amount: Decimal
    based_on_average: Decimal
    based_on_median: Decimal
    variance: Decimal
    confidence: int = Field(..., ge=0, le=100)
    reasoning: str
    months_of_data: int = 0
    source: ResultSource = ResultSource.DETERMINISTIC


class BurnRateResult(BaseModel):
    """Linear burn-rate projection to the end of a budget period."""

    model_config = ConfigDict(frozen=True)

    daily_burn_rate: Decimal
    projected_end_spend: Decimal
    days_remaining: int


class PacingResult(BaseModel):
    """Status and pacing signals for a budget period."""

    model_config = ConfigDict(frozen=True)

    status: BudgetStatus
    time_status: PaceStatus
    label: str
    percent_used: Decimal
    percent_time_elapsed: Decimal
    expected_spend_by_now: Decimal
    spend_ratio: Optional[Decimal] = None
    daily_burn_rate: Decimal
    projected_end_spend: Decimal
    days_remaining: int


class RecurringBillDraft(BaseModel):
    """Recurring obligation the caller persists when a pattern is accepted."""

    model_config = ConfigDict(frozen=True)

    vendor_id: Optional[str] = None
    vendor_name: str
    create_vendor: bool = Field(False, description="No vendor exists yet; caller creates one")
    vendor_notes: Optional[str] = None
    amount: Decimal
    due_date: date
    frequency: Frequency
    notes: str
    is_recurring: bool = True
    ai_suggested: bool = True


# ============================================================================
# AI overlay payloads (untrusted)
# ============================================================================


class AiPatternItem(BaseModel):
    """One pattern as returned by the AI overlay."""

    model_config = ConfigDict(populate_by_name=True)

    vendor_name: str = Field(..., alias="vendorName", min_length=1)
    frequency: Frequency
    transaction_ids: List[str] = Field(..., alias="transactionIds", min_length=1)
    confidence: float = Field(..., ge=0, le=100)
    suggested_name: str = Field("", alias="suggestedBillName")
    average_amount: Optional[Decimal] = Field(None, alias="averageAmount")
    min_amount: Optional[Decimal] = Field(None, alias="minAmount")
    max_amount: Optional[Decimal] = Field(None, alias="maxAmount")

    @field_validator("frequency", mode="before")
    @classmethod
    def normalize_frequency(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("transaction_ids", mode="before")
    @classmethod
    def coerce_transaction_ids(cls, v):
        if isinstance(v, list):
            return [_coerce_id(item) for item in v]
        return v


class AiPatternResponse(BaseModel):
    """Envelope of an AI pattern response; items are validated one by one."""

    patterns: List[Any]


class AiSuggestionItem(BaseModel):
    """One budget suggestion as returned by the AI overlay."""

    model_config = ConfigDict(populate_by_name=True)

    category_id: str = Field(..., alias="categoryId")
    category_name: str = Field("", alias="categoryName")
    type: Optional[TransactionType] = None
    suggested_monthly_amount: Decimal = Field(..., alias="suggestedMonthlyAmount", gt=0)
    reasoning: str = ""
    confidence: float = Field(..., ge=0, le=100)

    @field_validator("category_id", mode="before")
    @classmethod
    def coerce_category_id(cls, v):
        return _coerce_id(v)


class AiSuggestionResponse(BaseModel):
    """Envelope of an AI budget response; items are validated one by one."""

    suggestions: List[Any]


# ============================================================================
# Configuration
# ============================================================================


class OverlayConfig(BaseModel):
    """Configuration for the optional AI-assisted overlay."""

    enabled: bool = Field(False, description="Use the AI overlay when a client is available")
    model: str = Field(constants.DEFAULT_AI_MODEL, description="Chat model name")
    max_groups: int = Field(constants.AI_MAX_GROUPS_PER_REQUEST, description="Groups per request")
    description_max_length: int = Field(
        constants.AI_DESCRIPTION_MAX_LENGTH,
        description="Description characters sent per transaction",
    )
    max_completion_tokens: int = Field(constants.AI_MAX_COMPLETION_TOKENS)
    requests_per_window: int = Field(constants.AI_REQUESTS_PER_WINDOW)
    window_seconds: float = Field(constants.AI_WINDOW_SECONDS)
    min_spacing_seconds: float = Field(constants.AI_MIN_SPACING_SECONDS)

    @field_validator("max_groups", "description_max_length", "max_completion_tokens", "requests_per_window")
    @classmethod
    def validate_positive_int(cls, v):
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator("window_seconds")
    @classmethod
    def validate_window(cls, v):
        if v <= 0:
            raise ValueError("window_seconds must be positive")
        return v

    @field_validator("min_spacing_seconds")
    @classmethod
    def validate_spacing(cls, v):
        if v < 0:
            raise ValueError("min_spacing_seconds must not be negative")
        return v


class EngineConfig(BaseModel):
    """Global configuration for budgetcadence."""

    lookback_months: int = Field(constants.DEFAULT_LOOKBACK_MONTHS)
    min_confidence: int = Field(constants.MIN_PATTERN_CONFIDENCE)
    min_transactions: int = Field(constants.MIN_TRANSACTIONS_FOR_DETECTION)
    min_budget_transactions: int = Field(constants.MIN_BUDGET_TRANSACTIONS)
    expense_buffer: Decimal = Field(constants.EXPENSE_BUFFER)
    income_haircut: Decimal = Field(constants.INCOME_HAIRCUT)
    ai: OverlayConfig = Field(default_factory=OverlayConfig)

    @field_validator("lookback_months")
    @classmethod
    def validate_lookback(cls, v):
        if v < 1:
            raise ValueError("lookback_months must be at least 1")
        return v

    @field_validator("min_confidence")
    @classmethod
    def validate_confidence(cls, v):
        if v < 0 or v > 100:
            raise ValueError("min_confidence must be between 0 and 100")
        return v

    @field_validator("min_transactions", "min_budget_transactions")
    @classmethod
    def validate_minimums(cls, v):
        if v < 0:
            raise ValueError("minimum transaction counts must not be negative")
        return v

    @field_validator("expense_buffer", "income_haircut")
    @classmethod
    def validate_multiplier(cls, v):
        if v <= 0:
            raise ValueError("budget multipliers must be positive")
        return v
