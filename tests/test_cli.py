"""Tests for CLI commands."""

import csv
import io
import json

import pytest
import yaml
from click.testing import CliRunner

from budgetcadence.cli import main


@pytest.fixture
def cli_runner():
    """Create a Click test runner."""
    return CliRunner()


class TestDetectCommand:
    """Tests for the detect command."""

    def test_table_output(self, cli_runner, sample_ledger):
        result = cli_runner.invoke(main, ["detect", str(sample_ledger), "--today", "2024-06-15"])

        assert result.exit_code == 0, result.output
        assert "Detected 3 recurring patterns" in result.output
        assert "Netflix" in result.output
        assert "Acme Corp" in result.output
        assert "Monthly" in result.output

    def test_json_output(self, cli_runner, sample_ledger):
        result = cli_runner.invoke(
            main,
            ["detect", str(sample_ledger), "--today", "2024-06-15", "--format", "json"],
        )

        assert result.exit_code == 0, result.output
        patterns = json.loads(result.output)
        by_vendor = {p["vendor_name"]: p for p in patterns}
        assert by_vendor["Netflix"]["frequency"] == "monthly"
        assert by_vendor["Netflix"]["average_amount"] == 15.99
        assert by_vendor["Netflix"]["transaction_count"] == 6
        assert by_vendor["Acme Corp"]["type"] == "income"
        assert by_vendor["Netflix"]["source"] == "deterministic"

    def test_nothing_found_names_window(self, cli_runner, sample_ledger):
        result = cli_runner.invoke(main, ["detect", str(sample_ledger), "--today", "2026-01-01", "--months", "3"])

        assert result.exit_code == 0
        assert "No recurring patterns detected in the last 3 months (since 2025-10-01)" in result.output

    def test_invalid_confidence(self, cli_runner, sample_ledger):
        result = cli_runner.invoke(main, ["detect", str(sample_ledger), "--confidence", "150"])

        assert result.exit_code == 1
        assert "--confidence must be between 0 and 100" in result.output

    def test_ai_without_key_falls_back(self, cli_runner, sample_ledger):
        result = cli_runner.invoke(
            main,
            ["detect", str(sample_ledger), "--today", "2024-06-15", "--ai", "--format", "json"],
        )

        assert result.exit_code == 0
        assert "OPENAI_API_KEY is not set" in result.output
        payload = result.output[result.output.index("[") :]
        assert len(json.loads(payload)) == 3

    def test_config_file_applies(self, cli_runner, sample_ledger, tmp_path):
        config_path = tmp_path / "strict.yaml"
        config_path.write_text(yaml.dump({"min_confidence": 90}))
        result = cli_runner.invoke(
            main,
            ["--config", str(config_path), "detect", str(sample_ledger), "--today", "2024-06-15"],
        )

        assert result.exit_code == 0
        assert "No recurring patterns detected" in result.output

    def test_invalid_config_reports_error(self, cli_runner, sample_ledger, tmp_path):
        config_path = tmp_path / "bad.yaml"
        config_path.write_text("lookback_months: -1\n")
        result = cli_runner.invoke(main, ["--config", str(config_path), "detect", str(sample_ledger)])

        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_ledger_errors_exit(self, cli_runner, tmp_path):
        path = tmp_path / "broken.bean"
        path.write_text('2024-01-05 * "Unopened"\n  Expenses:Nowhere  10.00 USD\n  Assets:Nowhere\n')
        result = cli_runner.invoke(main, ["detect", str(path)])

        assert result.exit_code == 1
        assert "Errors found while loading ledger" in result.output


class TestSuggestCommand:
    """Tests for the suggest command."""

    def test_table_output(self, cli_runner, sample_ledger):
        result = cli_runner.invoke(main, ["suggest", str(sample_ledger), "--today", "2024-06-30"])

        assert result.exit_code == 0, result.output
        assert "Salary" in result.output
        assert "Food:Groceries" in result.output
        assert "Total: 3 suggestions" in result.output

    def test_json_output(self, cli_runner, sample_ledger):
        result = cli_runner.invoke(
            main,
            ["suggest", str(sample_ledger), "--today", "2024-06-30", "--format", "json"],
        )

        assert result.exit_code == 0, result.output
        suggestions = {s["category_id"]: s for s in json.loads(result.output)}
        assert suggestions["Income:Salary"]["suggested_monthly_amount"] == 2850.0
        assert suggestions["Expenses:Entertainment:Streaming"]["suggested_monthly_amount"] == 17.59
        # groceries: 110..160 per month, average 135
        assert suggestions["Expenses:Food:Groceries"]["based_on_average"] == 135.0

    def test_csv_output(self, cli_runner, sample_ledger):
        result = cli_runner.invoke(
            main,
            ["suggest", str(sample_ledger), "--today", "2024-06-30", "--format", "csv"],
        )

        assert result.exit_code == 0, result.output
        rows = list(csv.reader(io.StringIO(result.output)))
        assert rows[0][0] == "Category"
        assert rows[1][0] == "Salary"
        assert len(rows) == 4

    def test_nothing_found(self, cli_runner, sample_ledger):
        result = cli_runner.invoke(main, ["suggest", str(sample_ledger), "--today", "2030-01-01"])

        assert result.exit_code == 0
        assert "No budget suggestions" in result.output
        assert "since 2029-07-01" in result.output


class TestPacingCommand:
    """Tests for the pacing command."""

    def test_pacing_summary(self, cli_runner, sample_ledger):
        result = cli_runner.invoke(
            main,
            [
                "pacing",
                str(sample_ledger),
                "--category",
                "Expenses:Food:Groceries",
                "--start",
                "2024-03-01",
                "--end",
                "2024-03-31",
                "--budget",
                "200",
                "--now",
                "2024-03-16",
            ],
        )

        assert result.exit_code == 0, result.output
        # March groceries: 130.00 against 100.00 expected
        assert "$130.00 (65.00% used)" in result.output
        assert "Spending too fast (over_accelerating)" in result.output
        assert "Days remaining:  15" in result.output

    def test_end_before_start(self, cli_runner, sample_ledger):
        result = cli_runner.invoke(
            main,
            [
                "pacing",
                str(sample_ledger),
                "--category",
                "Expenses:Food:Groceries",
                "--start",
                "2024-03-31",
                "--end",
                "2024-03-01",
                "--budget",
                "200",
            ],
        )

        assert result.exit_code == 1
        assert "Error:" in result.output


class TestNextDueCommand:
    """Tests for the next-due command."""

    def test_draft_for_vendor(self, cli_runner, sample_ledger):
        result = cli_runner.invoke(main, ["next-due", str(sample_ledger), "netflix", "--today", "2024-06-15"])

        assert result.exit_code == 0, result.output
        assert "Vendor:     Netflix" in result.output
        assert "Next due:   2024-07-05" in result.output
        assert "Amount:     $15.99" in result.output

    def test_preferred_day(self, cli_runner, sample_ledger):
        result = cli_runner.invoke(
            main,
            ["next-due", str(sample_ledger), "Netflix", "--day", "30", "--today", "2024-06-15"],
        )

        assert result.exit_code == 0, result.output
        assert "Next due:   2024-07-28" in result.output

    def test_unknown_vendor(self, cli_runner, sample_ledger):
        result = cli_runner.invoke(main, ["next-due", str(sample_ledger), "Hulu", "--today", "2024-06-15"])

        assert result.exit_code == 1
        assert "no recurring pattern found for 'Hulu'" in result.output

    def test_invalid_day(self, cli_runner, sample_ledger):
        result = cli_runner.invoke(
            main,
            ["next-due", str(sample_ledger), "Netflix", "--day", "40", "--today", "2024-06-15"],
        )

        assert result.exit_code == 1
        assert "preferred_day_of_month" in result.output


class TestInitCommand:
    """Tests for the init command."""

    def test_writes_loadable_config(self, cli_runner, tmp_path):
        path = tmp_path / "budgetcadence.yaml"
        result = cli_runner.invoke(main, ["init", str(path)])

        assert result.exit_code == 0, result.output
        config = yaml.safe_load(path.read_text())
        assert config["lookback_months"] == 6
        assert config["ai"]["enabled"] is False

    def test_existing_file_requires_confirmation(self, cli_runner, tmp_path):
        path = tmp_path / "budgetcadence.yaml"
        path.write_text("lookback_months: 12\n")
        result = cli_runner.invoke(main, ["init", str(path)], input="n\n")

        assert result.exit_code == 1
        assert path.read_text() == "lookback_months: 12\n"


@pytest.mark.parametrize(
    "command",
    [["detect"], ["suggest"], ["next-due", "Netflix"]],
    ids=["detect", "suggest", "next-due"],
)
def test_zero_months_rejected(cli_runner, sample_ledger, command):
    name, *rest = command
    result = cli_runner.invoke(main, [name, str(sample_ledger), *rest, "--months", "0"])

    assert result.exit_code == 1
    assert "--months must be at least 1" in result.output


def test_version(cli_runner):
    result = cli_runner.invoke(main, ["--version"])

    assert result.exit_code == 0
    assert "1.0.0" in result.output
