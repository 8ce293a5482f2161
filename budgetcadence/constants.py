"""
Global constants for budgetcadence.

This module centralizes thresholds, bucket ranges and default values so the
detection and forecasting heuristics can be tuned in one place.
"""

from decimal import Decimal

from .types import Frequency

# ============================================================================
# Configuration Discovery
# ============================================================================

CONFIG_FILENAME = "budgetcadence.yaml"
ENV_CONFIG_FILE = "BUDGETCADENCE_CONFIG"

# ============================================================================
# Pattern Detection
# ============================================================================

DEFAULT_LOOKBACK_MONTHS = 6
MIN_SERIES_SIZE = 2  # A single occurrence cannot imply a recurrence
MIN_TRANSACTIONS_FOR_DETECTION = 3
MIN_PATTERN_CONFIDENCE = 60

# Inclusive average-interval ranges (days) and base confidence per bucket
FREQUENCY_BUCKETS = (
    (Frequency.WEEKLY, 5, 9, 70),
    (Frequency.BIWEEKLY, 12, 16, 70),
    (Frequency.MONTHLY, 25, 35, 80),
    (Frequency.QUARTERLY, 80, 100, 75),
    (Frequency.YEARLY, 350, 380, 70),
)

IRREGULARITY_RATIO = 0.3  # stddev above this share of the mean is irregular
IRREGULARITY_PENALTY = 20

VENDOR_KEY_MAX_TOKENS = 3
UNKNOWN_VENDOR = "Unknown"

# ============================================================================
# Recurring Bill Projection
# ============================================================================

MAX_PREFERRED_DAY = 28  # Avoid month-length edge cases
WEEK_BASED_DAYS = {
    Frequency.WEEKLY: 7,
    Frequency.BIWEEKLY: 14,
}
MONTH_BASED_MONTHS = {
    Frequency.MONTHLY: 1,
    Frequency.QUARTERLY: 3,
    Frequency.YEARLY: 12,
}
AUTO_VENDOR_NOTES = "Auto-created from recurring transaction pattern"

# ============================================================================
# Budget Suggestions
# ============================================================================

MIN_BUDGET_TRANSACTIONS = 5
EXPENSE_BUFFER = Decimal("1.10")
INCOME_HAIRCUT = Decimal("0.95")

BASE_SUGGESTION_CONFIDENCE = 70
MANY_MONTHS_THRESHOLD = 4
MANY_MONTHS_BONUS = 10
LOW_VARIATION_RATIO = Decimal("0.2")
LOW_VARIATION_BONUS = 10
HIGH_VARIATION_RATIO = Decimal("0.5")
HIGH_VARIATION_PENALTY = 20
MIN_SUGGESTION_CONFIDENCE = 50
MAX_SUGGESTION_CONFIDENCE = 95

# ============================================================================
# Budget Pacing
# ============================================================================

AT_RISK_PERCENT = Decimal("75")
OVER_BUDGET_PERCENT = Decimal("100")
OVER_ACCELERATING_RATIO = Decimal("1.25")
UNDER_PACE_RATIO = Decimal("0.75")
EXPECTED_SPEND_FLOOR = Decimal("0.01")

LABEL_NOT_STARTED = "Not started"
LABEL_PERIOD_ENDED = "Period ended"
LABEL_SPENDING_TOO_FAST = "Spending too fast"
LABEL_SLIGHTLY_AHEAD = "Slightly ahead of pace"
LABEL_ON_TRACK = "On track"
LABEL_UNDER_PACE = "Under budget pace"

# ============================================================================
# AI Overlay
# ============================================================================

DEFAULT_AI_MODEL = "gpt-4o"
AI_MAX_GROUPS_PER_REQUEST = 20
AI_DESCRIPTION_MAX_LENGTH = 50
AI_MAX_COMPLETION_TOKENS = 4000
AI_REQUESTS_PER_WINDOW = 10
AI_WINDOW_SECONDS = 60.0
AI_MIN_SPACING_SECONDS = 0.1

# ============================================================================
# Financial/Decimal Constants
# ============================================================================

CENTS_PRECISION = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

# ============================================================================
# Display/Formatting Constants
# ============================================================================

MAX_TABLE_COLUMN_WIDTH = 30
HIGH_CONFIDENCE = 90
MEDIUM_CONFIDENCE = 70
