"""Pytest configuration and shared fixtures for budgetcadence tests."""

import itertools
import json
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

import pytest
from dateutil.relativedelta import relativedelta

from budgetcadence.schema import Category, RecurringPattern, PatternMember, Transaction, Vendor
from budgetcadence.types import Frequency, TransactionType

_ids = itertools.count(1)

# ============================================================================
# Record Builders
# ============================================================================


def make_transaction(
    date_: date,
    amount_value,
    description: str = "Test transaction",
    type_: TransactionType = TransactionType.EXPENSE,
    **kwargs,
) -> Transaction:
    """Create an engine Transaction; ids are generated unless given."""
    return Transaction(
        id=kwargs.get("id", f"txn-{next(_ids)}"),
        date=date_,
        amount=Decimal(str(amount_value)),
        type=type_,
        description=description,
        vendor_id=kwargs.get("vendor_id"),
        category_id=kwargs.get("category_id"),
    )


def make_series(
    start: date,
    count: int,
    amount_value=Decimal("15.99"),
    description: str = "NETFLIX.COM",
    days: Optional[int] = None,
    months: Optional[int] = None,
    **kwargs,
) -> list[Transaction]:
    """Create ``count`` transactions spaced by ``days`` or by ``months``.

    Defaults to a calendar-monthly series.
    """
    txns = []
    for i in range(count):
        if days is not None:
            when = start + timedelta(days=days * i)
        else:
            when = start + relativedelta(months=(months or 1) * i)
        txns.append(make_transaction(when, amount_value, description, **kwargs))
    return txns


def make_dated_series(dates: list[date], amount_value=Decimal("50.00"), description: str = "GYM CLUB", **kwargs):
    """Create one transaction per date with the same description."""
    return [make_transaction(d, amount_value, description, **kwargs) for d in dates]


def make_pattern(
    dates: list[date],
    frequency: Frequency = Frequency.MONTHLY,
    vendor_name: str = "Netflix",
    amounts: Optional[list[Decimal]] = None,
    **kwargs,
) -> RecurringPattern:
    """Create a RecurringPattern whose members fall on ``dates``."""
    amounts = amounts or [Decimal("15.99")] * len(dates)
    members = [
        PatternMember(id=f"m-{i}", date=d, amount=a, description=vendor_name)
        for i, (d, a) in enumerate(zip(dates, amounts))
    ]
    return RecurringPattern(
        vendor_name=vendor_name,
        vendor_id=kwargs.get("vendor_id"),
        category_id=kwargs.get("category_id"),
        average_amount=kwargs.get("average_amount", sum(amounts) / len(amounts) if amounts else Decimal("0")),
        min_amount=min(amounts) if amounts else Decimal("0"),
        max_amount=max(amounts) if amounts else Decimal("0"),
        frequency=frequency,
        transaction_type=TransactionType.EXPENSE,
        transaction_count=len(members),
        member_transaction_ids=[m.id for m in members],
        transactions=members,
        confidence=kwargs.get("confidence", 80),
        suggested_name=kwargs.get("suggested_name", f"Monthly {vendor_name} Payment"),
    )


def make_category(id_: str, name: Optional[str] = None, type_: TransactionType = TransactionType.EXPENSE) -> Category:
    """Create a Category."""
    return Category(id=id_, name=name or id_, type=type_)


def make_vendor(id_: str, name: str) -> Vendor:
    """Create a Vendor."""
    return Vendor(id=id_, name=name)


# ============================================================================
# Test Doubles
# ============================================================================


class FakeClock:
    """Manually advanced clock; ``sleep`` advances time instantly."""

    def __init__(self, start: float = 1000.0):
        self.current = start
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self.current

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += seconds

    def advance(self, seconds: float) -> None:
        self.current += seconds


class StubOverlayClient:
    """Overlay client returning canned responses in order.

    Each response may be a string (returned as-is), a dict (JSON-encoded),
    None, or an exception instance (raised).
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls: list[tuple[str, str]] = []

    def complete(self, system: str, prompt: str) -> Optional[str]:
        self.calls.append((system, prompt))
        response = self.responses.pop(0) if self.responses else None
        if isinstance(response, Exception):
            raise response
        if isinstance(response, (dict, list)):
            return json.dumps(response)
        return response


# ============================================================================
# Pytest Fixtures
# ============================================================================


@pytest.fixture
def today():
    """Fixed reference date used across tests."""
    return date(2024, 6, 15)


@pytest.fixture
def fake_clock():
    """Fixture providing a FakeClock."""
    return FakeClock()


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch, tmp_path):
    """Keep tests independent of the caller's config file and API key."""
    monkeypatch.delenv("BUDGETCADENCE_CONFIG", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def sample_ledger(tmp_path):
    """Fixture providing a Beancount ledger with recurring payments and income."""
    lines = [
        "option \"operating_currency\" \"USD\"",
        "",
        "2023-01-01 open Assets:Bank:Checking USD",
        "2023-01-01 open Assets:Bank:Savings USD",
        "2023-01-01 open Expenses:Entertainment:Streaming USD",
        "2023-01-01 open Expenses:Food:Groceries USD",
        "2023-01-01 open Income:Salary USD",
        "",
    ]
    for month in range(1, 7):
        lines += [
            f'2024-{month:02d}-05 * "Netflix" "NETFLIX.COM monthly"',
            "  Expenses:Entertainment:Streaming  15.99 USD",
            "  Assets:Bank:Checking",
            "",
            f'2024-{month:02d}-01 * "Acme Corp" "Payroll"',
            "  Assets:Bank:Checking  3000.00 USD",
            "  Income:Salary",
            "",
            f'2024-{month:02d}-12 * "Grocer" "Weekly shop"',
            f"  Expenses:Food:Groceries  {100 + month * 10}.00 USD",
            "  Assets:Bank:Checking",
            "",
            f'2024-{month:02d}-20 * "Transfer to savings"',
            "  Assets:Bank:Savings  200.00 USD",
            "  Assets:Bank:Checking",
            "",
        ]

    path = tmp_path / "ledger.bean"
    path.write_text("\n".join(lines))
    return path
