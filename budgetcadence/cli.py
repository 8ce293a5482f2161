"""Command-line interface for budgetcadence."""

import logging
import sys
import traceback
from datetime import date
from decimal import Decimal
from pathlib import Path

import click

from . import __version__, constants
from .api import analyze_pacing, detect_recurring_patterns, suggest_budgets
from .budgeting import CategoryBudgetSuggester
from .detector import DeterministicDetector
from .formatters import (
    print_bill_draft,
    print_pacing,
    print_pattern_json,
    print_pattern_table,
    print_suggestion_csv,
    print_suggestion_json,
    print_suggestion_table,
)
from .grouping import lookback_cutoff
from .loader import LedgerData, load_config, load_ledger
from .overlay import AiAssistedDetector, AiAssistedSuggester, OpenAIOverlayClient
from .pacing import actual_to_date
from .projection import build_recurring_bill
from .schema import BudgetPeriod, EngineConfig
from .types import TransactionType

logger = logging.getLogger(__name__)

DATE_FORMATS = ["%Y-%m-%d"]

EXAMPLE_CONFIG = """# Configuration for budgetcadence
lookback_months: 6

# Pattern detection
min_confidence: 60
min_transactions: 3

# Budget suggestions
min_budget_transactions: 5
expense_buffer: 1.10
income_haircut: 0.95

# Optional AI-assisted overlay (requires OPENAI_API_KEY)
ai:
  enabled: false
  model: gpt-4o
  max_groups: 20
  description_max_length: 50
  max_completion_tokens: 4000
  requests_per_window: 10
  window_seconds: 60
  min_spacing_seconds: 0.1
"""


def _fail(e: Exception) -> None:
    click.echo(f"Error: {e}", err=True)
    if logger.isEnabledFor(logging.DEBUG):
        traceback.print_exc()
    sys.exit(1)


def _load_ledger(ledger_path: str, quiet: bool = False) -> LedgerData:
    """Load a ledger, exiting when Beancount reports errors."""
    if not quiet:
        click.echo(f"Loading ledger from: {ledger_path}")
    ledger = load_ledger(Path(ledger_path))
    if ledger.errors:
        click.echo("Errors found while loading ledger:", err=True)
        for error in ledger.errors:
            click.echo(f"  {error}", err=True)
        sys.exit(1)
    return ledger


def _overlay_client(config: EngineConfig, use_ai: bool):
    """Overlay client when the AI path is requested and available."""
    if not (use_ai or config.ai.enabled):
        return None
    client = OpenAIOverlayClient.from_env(config.ai)
    if client is None:
        click.echo("Warning: OPENAI_API_KEY is not set; using deterministic analysis", err=True)
    return client


def _reference_date(today) -> date:
    return today.date() if today is not None else date.today()


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help=f"Configuration file (default: ${constants.ENV_CONFIG_FILE} or ./{constants.CONFIG_FILENAME})",
)
@click.version_option(version=__version__)
@click.pass_context
def main(ctx: click.Context, verbose: bool, config_path: str | None):
    """Budgetcadence - Recurring-pattern detection and budget forecasting."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")
    ctx.obj = {"config_path": config_path}


@main.command()
@click.argument("ledger_path", type=click.Path(exists=True))
@click.option("--months", type=int, default=None, help="Lookback window in months (default: from config, 6)")
@click.option(
    "--confidence",
    type=int,
    default=None,
    help="Minimum confidence threshold (0-100, default: from config, 60)",
)
@click.option("--ai", "use_ai", is_flag=True, help="Use the AI-assisted overlay when available")
@click.option("--today", type=click.DateTime(formats=DATE_FORMATS), default=None, help="Reference date")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format (default: table)",
)
@click.pass_obj
def detect(  # noqa: PLR0913
    obj: dict,
    ledger_path: str,
    months: int | None,
    confidence: int | None,
    use_ai: bool,
    today,
    output_format: str,
):
    """Detect recurring payment and income patterns in a ledger.

    Examples:
        budgetcadence detect ledger.bean
        budgetcadence detect ledger.bean --months 12 --confidence 75
        budgetcadence detect ledger.bean --format json
    """
    try:
        config = load_config(obj["config_path"])
        if months is None:
            months = config.lookback_months
        min_confidence = confidence if confidence is not None else config.min_confidence

        if not 0 <= min_confidence <= 100:  # noqa: PLR2004
            click.echo("Error: --confidence must be between 0 and 100", err=True)
            sys.exit(1)
        if months < 1:
            click.echo("Error: --months must be at least 1", err=True)
            sys.exit(1)

        table = output_format == "table"
        ledger = _load_ledger(ledger_path, quiet=not table)
        reference = _reference_date(today)

        detector = DeterministicDetector(
            min_confidence=min_confidence,
            min_transactions=config.min_transactions,
        )
        client = _overlay_client(config, use_ai)
        if client is not None:
            detector = AiAssistedDetector(client, fallback=detector, config=config.ai)

        if table:
            click.echo(f"Analyzing {len(ledger.transactions)} transactions...")
        patterns = detect_recurring_patterns(
            ledger.transactions,
            months,
            vendors=ledger.vendors,
            today=reference,
            detector=detector,
        )

        if not patterns:
            cutoff = lookback_cutoff(reference, months)
            click.echo(f"No recurring patterns detected in the last {months} months (since {cutoff}).")
            click.echo("Try adjusting thresholds: a longer --months or a lower --confidence")
            sys.exit(0)

        if table:
            click.echo(f"\nDetected {len(patterns)} recurring patterns:\n")
            print_pattern_table(patterns)
        else:
            print_pattern_json(patterns)

    except Exception as e:
        _fail(e)


@main.command()
@click.argument("ledger_path", type=click.Path(exists=True))
@click.option("--months", type=int, default=None, help="Lookback window in months (default: from config, 6)")
@click.option("--ai", "use_ai", is_flag=True, help="Use the AI-assisted overlay when available")
@click.option("--today", type=click.DateTime(formats=DATE_FORMATS), default=None, help="Reference date")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json", "csv"]),
    default="table",
    help="Output format (default: table)",
)
@click.pass_obj
def suggest(obj: dict, ledger_path: str, months: int | None, use_ai: bool, today, output_format: str):
    """Suggest monthly budgets per category from ledger history.

    Examples:
        budgetcadence suggest ledger.bean
        budgetcadence suggest ledger.bean --months 12 --format csv
    """
    try:
        config = load_config(obj["config_path"])
        if months is None:
            months = config.lookback_months
        if months < 1:
            click.echo("Error: --months must be at least 1", err=True)
            sys.exit(1)

        table = output_format == "table"
        ledger = _load_ledger(ledger_path, quiet=not table)
        reference = _reference_date(today)

        suggester = CategoryBudgetSuggester(
            min_transactions=config.min_budget_transactions,
            expense_buffer=config.expense_buffer,
            income_haircut=config.income_haircut,
        )
        client = _overlay_client(config, use_ai)
        if client is not None:
            suggester = AiAssistedSuggester(client, fallback=suggester, config=config.ai)

        suggestions = suggest_budgets(
            ledger.transactions,
            months,
            categories=ledger.categories,
            today=reference,
            suggester=suggester,
        )

        if not suggestions:
            cutoff = lookback_cutoff(reference, months)
            click.echo(
                f"No budget suggestions: not enough categorized history "
                f"in the last {months} months (since {cutoff}).",
            )
            sys.exit(0)

        if output_format == "table":
            click.echo(f"\nSuggested monthly budgets ({months} months of history):\n")
            print_suggestion_table(suggestions)
        elif output_format == "json":
            print_suggestion_json(suggestions)
        else:
            print_suggestion_csv(suggestions)

    except Exception as e:
        _fail(e)


@main.command()
@click.argument("ledger_path", type=click.Path(exists=True))
@click.option("--category", required=True, help="Category account, e.g. Expenses:Food:Groceries")
@click.option("--start", "start_date", type=click.DateTime(formats=DATE_FORMATS), required=True)
@click.option("--end", "end_date", type=click.DateTime(formats=DATE_FORMATS), required=True)
@click.option("--budget", type=float, required=True, help="Budgeted amount for the period")
@click.option("--now", type=click.DateTime(formats=DATE_FORMATS), default=None, help="Reference date")
@click.pass_obj
def pacing(obj: dict, ledger_path: str, category: str, start_date, end_date, budget: float, now):  # noqa: PLR0913
    """Show budget status, pacing and burn rate for one category.

    Actual spend is summed from the ledger between START and END inclusive.

    Examples:
        budgetcadence pacing ledger.bean --category Expenses:Food \\
            --start 2024-01-01 --end 2024-01-31 --budget 1000
    """
    try:
        ledger = _load_ledger(ledger_path)

        category_type = TransactionType.EXPENSE
        for c in ledger.categories:
            if c.id == category:
                category_type = c.type
                break
        else:
            click.echo(f"Warning: no transactions found for category {category}", err=True)

        actual = actual_to_date(
            ledger.transactions,
            start_date,
            end_date,
            category_id=category,
            transaction_type=category_type,
        )
        period = BudgetPeriod(
            start_date=start_date,
            end_date=end_date,
            budgeted_amount=Decimal(str(budget)),
            actual_to_date=actual,
        )
        result = analyze_pacing(period, now)

        click.echo()
        print_pacing(category, period, result)

    except Exception as e:
        _fail(e)


@main.command(name="next-due")
@click.argument("ledger_path", type=click.Path(exists=True))
@click.argument("vendor")
@click.option("--day", type=int, default=None, help="Preferred day of month (1-31, capped at 28)")
@click.option("--months", type=int, default=None, help="Lookback window in months (default: from config, 6)")
@click.option("--today", type=click.DateTime(formats=DATE_FORMATS), default=None, help="Reference date")
@click.pass_obj
def next_due(obj: dict, ledger_path: str, vendor: str, day: int | None, months: int | None, today):  # noqa: PLR0913
    """Draft a recurring bill for a vendor's detected pattern.

    VENDOR is matched case-insensitively against the pattern's vendor name
    or vendor id.

    Examples:
        budgetcadence next-due ledger.bean Netflix
        budgetcadence next-due ledger.bean "City Power" --day 15
    """
    try:
        config = load_config(obj["config_path"])
        if months is None:
            months = config.lookback_months
        if months < 1:
            click.echo("Error: --months must be at least 1", err=True)
            sys.exit(1)
        ledger = _load_ledger(ledger_path)
        reference = _reference_date(today)

        detector = DeterministicDetector(
            min_confidence=config.min_confidence,
            min_transactions=config.min_transactions,
        )
        patterns = detect_recurring_patterns(
            ledger.transactions,
            months,
            vendors=ledger.vendors,
            today=reference,
            detector=detector,
        )

        wanted = vendor.lower()
        pattern = next(
            (p for p in patterns if p.vendor_name.lower() == wanted or (p.vendor_id or "").lower() == wanted),
            None,
        )
        if pattern is None:
            cutoff = lookback_cutoff(reference, months)
            click.echo(
                f"Error: no recurring pattern found for '{vendor}' in the last {months} months (since {cutoff})",
                err=True,
            )
            sys.exit(1)

        draft = build_recurring_bill(pattern, day, reference)
        click.echo()
        print_bill_draft(draft)

    except Exception as e:
        _fail(e)


@main.command()
@click.argument("path", type=click.Path(dir_okay=False), required=False, default=constants.CONFIG_FILENAME)
def init(path: str):
    """Write an example configuration file.

    PATH: File to create (default: budgetcadence.yaml)

    Examples:
        budgetcadence init
        budgetcadence init config/budgetcadence.yaml
    """
    output_path = Path(path)

    if output_path.exists():
        click.confirm(f"File already exists: {output_path}\nOverwrite?", abort=True)
    else:
        output_path.parent.mkdir(parents=True, exist_ok=True)

    with output_path.open("w") as f:
        f.write(EXAMPLE_CONFIG)

    click.echo(f"Created: {output_path}")
    click.echo("\nNext steps:")
    click.echo("  1. Adjust thresholds to taste")
    click.echo(f"  2. Run: budgetcadence --config {output_path} detect ledger.bean")


if __name__ == "__main__":
    main()
