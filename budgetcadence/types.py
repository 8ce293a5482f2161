"""Type definitions and enums for budgetcadence."""

from enum import Enum


class Frequency(str, Enum):
    """Recurrence frequency buckets."""

    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"

    @property
    def is_month_based(self) -> bool:
        """Whether one unit of this frequency is counted in calendar months."""
        return self in (Frequency.MONTHLY, Frequency.QUARTERLY, Frequency.YEARLY)


class TransactionType(str, Enum):
    """Direction of the cash effect of a transaction."""

    INCOME = "income"
    EXPENSE = "expense"


class BudgetStatus(str, Enum):
    """Percent-of-budget-used tier."""

    ON_TRACK = "on_track"
    AT_RISK = "at_risk"
    OVER_BUDGET = "over_budget"


class PaceStatus(str, Enum):
    """Spend pace against the time-elapsed-implied expected spend.

    The values are about spend pace: BEHIND means spending slightly faster
    than the linear pace, labelled "Slightly ahead of pace".
    """

    AHEAD = "ahead"
    ON_SCHEDULE = "on_schedule"
    BEHIND = "behind"
    OVER_ACCELERATING = "over_accelerating"


class ResultSource(str, Enum):
    """Which computation path produced a result."""

    DETERMINISTIC = "deterministic"
    AI = "ai"


# Display labels for frequencies
FREQUENCY_LABELS = {
    Frequency.WEEKLY: "Weekly",
    Frequency.BIWEEKLY: "Every 2 Weeks",
    Frequency.MONTHLY: "Monthly",
    Frequency.QUARTERLY: "Quarterly",
    Frequency.YEARLY: "Yearly",
}
