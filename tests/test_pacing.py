"""Tests for budget status, pacing and burn rate."""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from budgetcadence import analyze_pacing, compute_burn_rate
from budgetcadence.pacing import BudgetPacingAnalyzer, actual_to_date, budget_status, pace_for_ratio
from budgetcadence.schema import BudgetPeriod
from budgetcadence.types import BudgetStatus, PaceStatus, TransactionType
from conftest import make_transaction


def january(budget="1000", actual="0"):
    return BudgetPeriod(
        start_date=datetime(2024, 1, 1),
        end_date=datetime(2024, 1, 31),
        budgeted_amount=Decimal(budget),
        actual_to_date=Decimal(actual),
    )


class TestBudgetStatus:
    """Tests for percent-used tiers."""

    @pytest.mark.parametrize(
        ("percent", "expected"),
        [
            ("0", BudgetStatus.ON_TRACK),
            ("74.99", BudgetStatus.ON_TRACK),
            ("75", BudgetStatus.AT_RISK),
            ("100", BudgetStatus.AT_RISK),
            ("100.01", BudgetStatus.OVER_BUDGET),
        ],
    )
    def test_tiers(self, percent, expected):
        assert budget_status(Decimal(percent)) == expected


class TestPaceForRatio:
    """Tests for spend-ratio bands."""

    @pytest.mark.parametrize(
        ("ratio", "status", "label"),
        [
            ("1.26", PaceStatus.OVER_ACCELERATING, "Spending too fast"),
            ("1.25", PaceStatus.BEHIND, "Slightly ahead of pace"),
            ("1.01", PaceStatus.BEHIND, "Slightly ahead of pace"),
            ("1", PaceStatus.ON_SCHEDULE, "On track"),
            ("0.75", PaceStatus.ON_SCHEDULE, "On track"),
            ("0.74", PaceStatus.AHEAD, "Under budget pace"),
            ("0", PaceStatus.AHEAD, "Under budget pace"),
        ],
    )
    def test_bands(self, ratio, status, label):
        assert pace_for_ratio(Decimal(ratio)) == (status, label)


class TestAnalyze:
    """Tests for BudgetPacingAnalyzer.analyze()."""

    def test_slightly_ahead_mid_period(self):
        result = BudgetPacingAnalyzer().analyze(january(actual="520"), datetime(2024, 1, 16))

        assert result.percent_time_elapsed == Decimal("50.00")
        assert result.expected_spend_by_now == Decimal("500.00")
        assert result.spend_ratio == Decimal("1.04")
        assert result.time_status == PaceStatus.BEHIND
        assert result.label == "Slightly ahead of pace"
        assert result.status == BudgetStatus.ON_TRACK

    def test_over_accelerating_mid_period(self):
        result = BudgetPacingAnalyzer().analyze(january(actual="700"), datetime(2024, 1, 16))

        assert result.time_status == PaceStatus.OVER_ACCELERATING
        assert result.label == "Spending too fast"
        assert result.spend_ratio == Decimal("1.40")

    def test_on_track_and_under_pace(self):
        on_track = BudgetPacingAnalyzer().analyze(january(actual="450"), datetime(2024, 1, 16))
        under = BudgetPacingAnalyzer().analyze(january(actual="100"), datetime(2024, 1, 16))

        assert (on_track.time_status, on_track.label) == (PaceStatus.ON_SCHEDULE, "On track")
        assert (under.time_status, under.label) == (PaceStatus.AHEAD, "Under budget pace")

    def test_before_start(self):
        result = BudgetPacingAnalyzer().analyze(january(actual="50"), datetime(2023, 12, 20))

        assert result.time_status == PaceStatus.AHEAD
        assert result.label == "Not started"
        assert result.expected_spend_by_now == Decimal("0.00")
        assert result.percent_time_elapsed == Decimal("0.00")
        assert result.spend_ratio is None

    def test_after_end_over_budget(self):
        result = BudgetPacingAnalyzer().analyze(january(actual="1200"), datetime(2024, 2, 10))

        assert result.time_status == PaceStatus.OVER_ACCELERATING
        assert result.label == "Period ended"
        assert result.status == BudgetStatus.OVER_BUDGET
        assert result.expected_spend_by_now == Decimal("1000.00")
        assert result.percent_time_elapsed == Decimal("100.00")
        assert result.days_remaining == 0

    def test_after_end_within_budget(self):
        result = BudgetPacingAnalyzer().analyze(january(actual="1000"), datetime(2024, 2, 10))

        assert result.time_status == PaceStatus.ON_SCHEDULE
        assert result.status == BudgetStatus.AT_RISK

    def test_zero_budget(self):
        result = BudgetPacingAnalyzer().analyze(january(budget="0", actual="0"), datetime(2024, 1, 16))

        assert result.percent_used == Decimal("0.00")
        assert result.status == BudgetStatus.ON_TRACK
        assert result.time_status == PaceStatus.AHEAD

    def test_expected_spend_floor(self):
        # At the very start expected spend is zero; the floor keeps the ratio finite.
        result = BudgetPacingAnalyzer().analyze(january(actual="5"), datetime(2024, 1, 1))

        assert result.spend_ratio == Decimal("500.00")
        assert result.time_status == PaceStatus.OVER_ACCELERATING

    def test_zero_length_period(self):
        period = BudgetPeriod(
            start_date=datetime(2024, 1, 1),
            end_date=datetime(2024, 1, 1),
            budgeted_amount=Decimal("100"),
            actual_to_date=Decimal("100"),
        )
        result = BudgetPacingAnalyzer().analyze(period, datetime(2024, 1, 1))

        assert result.percent_time_elapsed == Decimal("100.00")
        assert result.time_status == PaceStatus.ON_SCHEDULE

    def test_same_inputs_same_result(self):
        analyzer = BudgetPacingAnalyzer()
        now = datetime(2024, 1, 20, 13, 30)

        assert analyzer.analyze(january(actual="640"), now) == analyzer.analyze(january(actual="640"), now)

    def test_analyze_many(self):
        periods = {"food": january(actual="520"), "fun": january(actual="100")}
        results = BudgetPacingAnalyzer().analyze_many(periods, datetime(2024, 1, 16))

        assert results["food"].time_status == PaceStatus.BEHIND
        assert results["fun"].time_status == PaceStatus.AHEAD

    def test_public_entry_point(self):
        result = analyze_pacing(january(actual="520"), datetime(2024, 1, 16))

        assert result.label == "Slightly ahead of pace"


class TestBurnRate:
    """Tests for BudgetPacingAnalyzer.burn_rate()."""

    def test_linear_projection(self):
        result = BudgetPacingAnalyzer().burn_rate(january(actual="300"), datetime(2024, 1, 11))

        assert result.daily_burn_rate == Decimal("30.00")
        assert result.projected_end_spend == Decimal("900.00")
        assert result.days_remaining == 20

    def test_elapsed_floored_at_one_day(self):
        result = BudgetPacingAnalyzer().burn_rate(january(actual="50"), datetime(2024, 1, 1, 6))

        assert result.daily_burn_rate == Decimal("50.00")

    def test_partial_day_remaining_rounds_up(self):
        result = BudgetPacingAnalyzer().burn_rate(january(actual="300"), datetime(2024, 1, 30, 12))

        assert result.days_remaining == 1

    def test_after_end_no_remaining(self):
        result = BudgetPacingAnalyzer().burn_rate(january(actual="310"), datetime(2024, 2, 5))

        assert result.days_remaining == 0
        assert result.projected_end_spend == Decimal("310.00")

    def test_public_entry_point(self):
        result = compute_burn_rate(january(actual="300"), datetime(2024, 1, 11))

        assert result.projected_end_spend == Decimal("900.00")


def january_utc(budget="1000", actual="0"):
    return BudgetPeriod(
        start_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
        end_date=datetime(2024, 1, 31, tzinfo=timezone.utc),
        budgeted_amount=Decimal(budget),
        actual_to_date=Decimal(actual),
    )


class TestTimezoneAwarePeriods:
    """Tests for periods with timezone-aware bounds."""

    def test_default_now_for_aware_period(self):
        period = BudgetPeriod(
            start_date="2024-01-01T00:00:00Z",
            end_date="2099-01-31T00:00:00Z",
            budgeted_amount=1000,
            actual_to_date=100,
        )

        result = analyze_pacing(period)

        assert result.percent_used == Decimal("10.00")
        assert result.days_remaining > 0

    def test_default_now_for_aware_burn_rate(self):
        period = BudgetPeriod(
            start_date="2024-01-01T00:00:00Z",
            end_date="2099-01-31T00:00:00Z",
            budgeted_amount=1000,
            actual_to_date=100,
        )

        result = compute_burn_rate(period)

        assert result.days_remaining > 0
        assert result.projected_end_spend > Decimal("100")

    def test_explicit_now_in_other_offset(self):
        # 05:00 at +05:00 is midnight UTC on Jan 16
        now = datetime(2024, 1, 16, 5, tzinfo=timezone(timedelta(hours=5)))
        result = BudgetPacingAnalyzer().analyze(january_utc(actual="520"), now)

        assert result.expected_spend_by_now == Decimal("500.00")
        assert result.time_status == PaceStatus.BEHIND

    def test_naive_now_with_aware_period_raises(self):
        with pytest.raises(ValueError, match="both be naive or both be timezone-aware"):
            analyze_pacing(january_utc(actual="520"), datetime(2024, 1, 16))

    def test_aware_now_with_naive_period_raises(self):
        with pytest.raises(ValueError, match="both be naive or both be timezone-aware"):
            compute_burn_rate(january(actual="300"), datetime(2024, 1, 11, tzinfo=timezone.utc))

    def test_analyze_many_default_now_mixes_naive_and_aware(self):
        periods = {"naive": january(actual="100"), "aware": january_utc(actual="100")}

        results = BudgetPacingAnalyzer().analyze_many(periods)

        assert results["naive"].percent_used == Decimal("10.00")
        assert results["aware"].percent_used == Decimal("10.00")


class TestBudgetPeriod:
    """Tests for BudgetPeriod validation."""

    def test_mixed_naive_and_aware_bounds_raise(self):
        with pytest.raises(ValidationError, match="both be naive or both be timezone-aware"):
            BudgetPeriod(
                start_date=datetime(2024, 1, 1),
                end_date=datetime(2024, 1, 31, tzinfo=timezone.utc),
                budgeted_amount=Decimal("1"),
            )

    def test_end_before_start_raises(self):
        with pytest.raises(ValidationError, match="must not precede"):
            BudgetPeriod(start_date=date(2024, 2, 1), end_date=date(2024, 1, 1), budgeted_amount=Decimal("1"))

    def test_validation_error_is_value_error(self):
        with pytest.raises(ValueError):
            BudgetPeriod(start_date=date(2024, 2, 1), end_date=date(2024, 1, 1), budgeted_amount=Decimal("1"))

    def test_negative_budget_raises(self):
        with pytest.raises(ValidationError):
            BudgetPeriod(start_date=date(2024, 1, 1), end_date=date(2024, 1, 31), budgeted_amount=Decimal("-1"))

    def test_dates_promoted_to_midnight(self):
        period = BudgetPeriod(start_date=date(2024, 1, 1), end_date=date(2024, 1, 31), budgeted_amount=Decimal("1"))

        assert period.start_date == datetime(2024, 1, 1)


class TestActualToDate:
    """Tests for actual_to_date()."""

    def test_sums_inclusive_range_by_category_and_type(self):
        txns = [
            make_transaction(date(2024, 1, 1), 10, category_id="food"),
            make_transaction(date(2024, 1, 31), 20, category_id="food"),
            make_transaction(date(2024, 2, 1), 40, category_id="food"),
            make_transaction(date(2024, 1, 15), 80, category_id="fun"),
            make_transaction(date(2024, 1, 15), 160, category_id="food", type_=TransactionType.INCOME),
        ]

        assert actual_to_date(txns, date(2024, 1, 1), date(2024, 1, 31), category_id="food") == Decimal("30")
        assert actual_to_date(txns, date(2024, 1, 1), date(2024, 1, 31)) == Decimal("110")
        assert actual_to_date(
            txns,
            datetime(2024, 1, 1),
            datetime(2024, 1, 31),
            transaction_type=TransactionType.INCOME,
        ) == Decimal("160")
