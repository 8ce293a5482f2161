"""Budgetcadence - Recurring-pattern detection and budget forecasting.

This package scans a transaction history for recurring payments and income,
suggests per-category monthly budgets from categorized spend, and derives
time-aware pacing signals from a budget-vs-actual snapshot.

Main exports:
    detect_recurring_patterns: Discover recurring patterns with confidence
    suggest_budgets: Per-category monthly budget suggestions
    analyze_pacing: Status tier, pacing and burn rate of a budget period
    compute_burn_rate: Linear end-of-period spend projection
    project_next_due_date: Next due date of an accepted pattern
"""

from .api import (
    analyze_pacing,
    compute_burn_rate,
    detect_recurring_patterns,
    project_next_due_date,
    suggest_budgets,
)

__all__ = [
    "analyze_pacing",
    "compute_burn_rate",
    "detect_recurring_patterns",
    "project_next_due_date",
    "suggest_budgets",
]
__version__ = "1.0.0"
