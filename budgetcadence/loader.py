"""Configuration and Beancount ledger loading."""

import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Optional, Union

import yaml
from beancount import loader as beancount_loader
from beancount.core import data

from . import constants
from .schema import Category, EngineConfig, Transaction, Vendor
from .types import TransactionType
from .utils import slugify

logger = logging.getLogger(__name__)

EXPENSES_ROOT = "Expenses"
INCOME_ROOT = "Income"


# ============================================================================
# Configuration
# ============================================================================


def find_config_file() -> Optional[Path]:
    """
    Locate the configuration file.

    Search order (highest to lowest priority):
    1. BUDGETCADENCE_CONFIG environment variable
    2. budgetcadence.yaml in current directory

    Returns:
        Path to the configuration file or None if not found
    """
    if env_file := os.getenv(constants.ENV_CONFIG_FILE):
        path = Path(env_file)
        if path.is_file():
            return path
        logger.warning("%s points to non-existent file: %s", constants.ENV_CONFIG_FILE, env_file)

    cwd_file = Path.cwd() / constants.CONFIG_FILENAME
    if cwd_file.is_file():
        return cwd_file

    return None


def load_config(filepath: Optional[Union[str, Path]] = None) -> EngineConfig:
    """
    Load and validate engine configuration.

    Args:
        filepath: Optional explicit path. If None, uses find_config_file()
                  and falls back to defaults when nothing is found.

    Returns:
        EngineConfig object

    Raises:
        yaml.YAMLError: If YAML parsing fails
        pydantic.ValidationError: If schema validation fails
    """
    path = Path(filepath) if filepath is not None else find_config_file()
    if path is None:
        logger.debug("No configuration file found, using defaults")
        return EngineConfig()

    logger.info("Loading configuration from: %s", path)
    try:
        with path.open() as f:
            config_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error("YAML parsing error in %s: %s", path, e)
        raise

    if config_data is None:
        logger.warning("Empty configuration file: %s", path)
        return EngineConfig()

    if not isinstance(config_data, dict):
        raise ValueError(f"Configuration in {path} must be a mapping, got {type(config_data).__name__}")

    return EngineConfig(**config_data)


# ============================================================================
# Ledger
# ============================================================================


@dataclass
class LedgerData:
    """Transactions, vendors and categories read from a Beancount ledger."""

    transactions: list[Transaction] = field(default_factory=list)
    vendors: list[Vendor] = field(default_factory=list)
    categories: list[Category] = field(default_factory=list)
    errors: list = field(default_factory=list)
    """Errors reported by the Beancount loader."""


def _category_posting(entry: data.Transaction) -> Optional[tuple[data.Posting, TransactionType]]:
    """Find the income/expense leg of a ledger transaction.

    Expense legs are debits (positive units) and income legs are credits
    (negative units). Refunds and transfers have no such leg.
    """
    for posting in entry.postings:
        units = posting.units
        if units is None or units.number is None:
            continue
        root = posting.account.split(":", 1)[0]
        if root == EXPENSES_ROOT and units.number > 0:
            return posting, TransactionType.EXPENSE
        if root == INCOME_ROOT and units.number < 0:
            return posting, TransactionType.INCOME
    return None


def _category_name(account: str) -> str:
    """Category display name: the account without its root component."""
    parts = account.split(":", 1)
    return parts[1] if len(parts) > 1 else account


def ledger_transaction(entry: data.Transaction) -> Optional[tuple[Transaction, Optional[Vendor], Category]]:
    """
    Convert a Beancount transaction into engine records.

    Args:
        entry: Beancount Transaction directive

    Returns:
        Tuple of (Transaction, Vendor or None, Category), or None when the
        entry is not an income or expense (e.g. a transfer)
    """
    found = _category_posting(entry)
    if found is None:
        return None
    posting, txn_type = found

    amount = abs(Decimal(posting.units.number))
    if amount == 0:
        return None

    vendor = None
    if entry.payee:
        vendor = Vendor(id=slugify(entry.payee) or entry.payee, name=entry.payee)

    category = Category(id=posting.account, name=_category_name(posting.account), type=txn_type)
    meta = entry.meta or {}
    txn = Transaction(
        id=f"{meta.get('filename', '<ledger>')}:{meta.get('lineno', 0)}",
        date=entry.date,
        amount=amount,
        type=txn_type,
        description=entry.narration or entry.payee or "",
        vendor_id=vendor.id if vendor else None,
        category_id=category.id,
    )
    return txn, vendor, category


def load_ledger(filepath: Union[str, Path]) -> LedgerData:
    """
    Load a Beancount ledger as engine inputs.

    Args:
        filepath: Path to the ledger file

    Returns:
        LedgerData; loader errors are collected in ``errors`` rather than raised
    """
    logger.info("Loading ledger from: %s", filepath)
    entries, errors, _options = beancount_loader.load_file(str(filepath))

    ledger = LedgerData(errors=list(errors))
    vendors: dict[str, Vendor] = {}
    categories: dict[str, Category] = {}
    skipped = 0

    for entry in entries:
        if not isinstance(entry, data.Transaction):
            continue
        converted = ledger_transaction(entry)
        if converted is None:
            skipped += 1
            continue
        txn, vendor, category = converted
        ledger.transactions.append(txn)
        if vendor is not None:
            vendors.setdefault(vendor.id, vendor)
        categories.setdefault(category.id, category)

    ledger.vendors = list(vendors.values())
    ledger.categories = list(categories.values())

    logger.info(
        "Loaded %d transactions (%d skipped), %d vendors, %d categories",
        len(ledger.transactions),
        skipped,
        len(ledger.vendors),
        len(ledger.categories),
    )
    return ledger
