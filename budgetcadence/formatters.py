"""Output formatting functions for CLI commands."""

import csv
import json
import sys

import click

from . import constants
from .types import FREQUENCY_LABELS


def confidence_label(confidence: int) -> str:
    """Human label for a 0-100 confidence score."""
    if confidence > constants.HIGH_CONFIDENCE:
        return "High"
    if confidence >= constants.MEDIUM_CONFIDENCE:
        return "Medium"
    return "Low"


def print_pattern_table(patterns: list) -> None:
    """Print detected patterns as a formatted ASCII table.

    Shows confidence, frequency, vendor, average amount, amount range and
    transaction count for each pattern.

    Args:
        patterns: List of RecurringPattern objects, highest confidence first.
    """
    confidence_width = len("Confidence")
    frequency_width = max(
        len("Frequency"),
        max((len(FREQUENCY_LABELS[p.frequency]) for p in patterns), default=0),
    )

    vendor_width = max(
        len("Vendor"),
        max((len(p.vendor_name) for p in patterns), default=0),
    )
    vendor_width = min(vendor_width, constants.MAX_TABLE_COLUMN_WIDTH)

    amount_width = max(
        len("Average"),
        max((len(f"{p.average_amount:.2f}") for p in patterns), default=0),
    )

    header = (
        f"{'Confidence':<{confidence_width}}  "
        f"{'Frequency':<{frequency_width}}  "
        f"{'Vendor':<{vendor_width}}  "
        f"{'Average':>{amount_width}}  "
        f"{'Range':<19}  "
        f"Count"
    )
    click.echo(header)
    click.echo("-" * len(header))

    for p in patterns:
        confidence = f"{p.confidence}% {confidence_label(p.confidence)}"
        amount_range = f"{p.min_amount:.2f}-{p.max_amount:.2f}"
        row = (
            f"{confidence:<{confidence_width}}  "
            f"{FREQUENCY_LABELS[p.frequency]:<{frequency_width}}  "
            f"{p.vendor_name[:vendor_width]:<{vendor_width}}  "
            f"{p.average_amount:>{amount_width}.2f}  "
            f"{amount_range:<19}  "
            f"{p.transaction_count}"
        )
        click.echo(row)


def print_pattern_json(patterns: list) -> None:
    """Print detected patterns as JSON.

    Args:
        patterns: List of RecurringPattern objects.
    """
    output = []
    for p in patterns:
        output.append(
            {
                "vendor_name": p.vendor_name,
                "vendor_id": p.vendor_id,
                "category_id": p.category_id,
                "frequency": p.frequency.value,
                "type": p.transaction_type.value,
                "average_amount": float(p.average_amount),
                "min_amount": float(p.min_amount),
                "max_amount": float(p.max_amount),
                "transaction_count": p.transaction_count,
                "transaction_ids": list(p.member_transaction_ids),
                "confidence": p.confidence,
                "suggested_name": p.suggested_name,
                "source": p.source.value,
            },
        )

    click.echo(json.dumps(output, indent=2))


def print_suggestion_table(suggestions: list) -> None:
    """Print budget suggestions as a formatted ASCII table.

    Args:
        suggestions: List of BudgetSuggestion objects.
    """
    name_width = max(
        len("Category"),
        max((len(s.category_name) for s in suggestions), default=0),
    )
    name_width = min(name_width, constants.MAX_TABLE_COLUMN_WIDTH)

    header = (
        f"{'Category':<{name_width}}  {'Type':<7}  {'Suggested':>12}  "
        f"{'Average':>12}  {'Median':>12}  {'Std Dev':>10}  {'Months':>6}  Confidence"
    )
    click.echo(header)
    click.echo("-" * len(header))

    for s in suggestions:
        click.echo(
            f"{s.category_name[:name_width]:<{name_width}}  "
            f"{s.type.value:<7}  "
            f"${s.suggested_monthly_amount:>11,.2f}  "
            f"${s.based_on_average:>11,.2f}  "
            f"${s.based_on_median:>11,.2f}  "
            f"{s.variance:>10,.2f}  "
            f"{s.months_of_data:>6}  "
            f"{s.confidence}% {confidence_label(s.confidence)}",
        )

    click.echo(f"\nTotal: {len(suggestions)} suggestions")


def print_suggestion_json(suggestions: list) -> None:
    """Print budget suggestions as JSON."""
    output = [
        {
            "category_id": s.category_id,
            "category_name": s.category_name,
            "type": s.type.value,
            "suggested_monthly_amount": float(s.suggested_monthly_amount),
            "based_on_average": float(s.based_on_average),
            "based_on_median": float(s.based_on_median),
            "variance": float(s.variance),
            "months_of_data": s.months_of_data,
            "confidence": s.confidence,
            "reasoning": s.reasoning,
            "source": s.source.value,
        }
        for s in suggestions
    ]
    click.echo(json.dumps(output, indent=2))


def print_suggestion_csv(suggestions: list) -> None:
    """Print budget suggestions as CSV to stdout."""
    writer = csv.writer(sys.stdout)
    writer.writerow(["Category", "Type", "Suggested", "Average", "Median", "StdDev", "Months", "Confidence"])

    for s in suggestions:
        writer.writerow(
            [
                s.category_name,
                s.type.value,
                f"{s.suggested_monthly_amount:.2f}",
                f"{s.based_on_average:.2f}",
                f"{s.based_on_median:.2f}",
                f"{s.variance:.2f}",
                s.months_of_data,
                s.confidence,
            ],
        )


def print_pacing(category: str, period, result) -> None:
    """Print the pacing summary of one budget line.

    Args:
        category: Category account or name.
        period: BudgetPeriod that was analyzed.
        result: PacingResult for the period.
    """
    click.echo(f"Category:        {category}")
    click.echo(f"Period:          {period.start_date.date()} to {period.end_date.date()}")
    click.echo(f"Budgeted:        ${period.budgeted_amount:,.2f}")
    click.echo(f"Actual:          ${period.actual_to_date:,.2f} ({result.percent_used}% used)")
    click.echo(f"Status:          {result.status.value}")
    click.echo(f"Pace:            {result.label} ({result.time_status.value})")
    click.echo(f"Time elapsed:    {result.percent_time_elapsed}%")
    click.echo(f"Expected by now: ${result.expected_spend_by_now:,.2f}")
    if result.spend_ratio is not None:
        click.echo(f"Spend ratio:     {result.spend_ratio}")
    click.echo(f"Daily burn rate: ${result.daily_burn_rate:,.2f}")
    click.echo(f"Projected spend: ${result.projected_end_spend:,.2f}")
    click.echo(f"Days remaining:  {result.days_remaining}")


def print_bill_draft(draft) -> None:
    """Print a recurring bill draft for review."""
    click.echo(f"Vendor:     {draft.vendor_name}")
    if draft.create_vendor:
        click.echo("            (new vendor will be created)")
    click.echo(f"Amount:     ${draft.amount:,.2f}")
    click.echo(f"Frequency:  {FREQUENCY_LABELS[draft.frequency]}")
    click.echo(f"Next due:   {draft.due_date}")
    click.echo(f"Notes:      {draft.notes}")
