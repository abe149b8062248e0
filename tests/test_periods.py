"""
tests/test_periods.py - Period Normalization Tests

Covers the experience-length boundaries:
- 3 months rejected, 4 months accepted and annualized
- 12 months: a single full current period
- 13-23 months: current twelve plus a partial prior
- 24+ months: two full periods, older months ignored

Author: Actuarial Pipeline Project
License: MIT
"""

import pytest
from datetime import date

from renewal_engine.errors import InsufficientDataError, InvalidInputError
from renewal_engine.models import Carrier, MonthlyClaimsPoint
from renewal_engine.periods import (
    annualize, assess_data_quality, months_to_midpoint, normalize
)

from conftest import RENEWAL, make_input, monthly_series


class TestExperienceLengthBoundaries:
    """
    Setup: Flat monthly series of varying length.

    Expectation: fewer than 4 months raise InsufficientDataError; anything
    from 4 to 12 months is a single annualized current period.
    """

    def test_three_months_rejected(self):
        series = monthly_series(date(2024, 1, 1), 3, 100.0, 400.0, 100.0)
        with pytest.raises(InsufficientDataError) as exc_info:
            normalize(series)
        assert exc_info.value.months_available == 3
        assert exc_info.value.months_required == 4

    def test_four_months_accepted_and_annualized(self):
        series = monthly_series(date(2024, 1, 1), 4, 100.0, 400.0, 100.0)
        periods = normalize(series)

        assert periods.current.months == 4
        assert periods.prior is None
        assert periods.current.annualization_factor == pytest.approx(3.0)
        assert periods.annualization_applied
        assert periods.current.exposure == pytest.approx(1200.0)

    def test_twelve_months_not_annualized(self):
        series = monthly_series(date(2024, 1, 1), 12, 100.0, 400.0, 100.0)
        periods = normalize(series)

        assert periods.current.months == 12
        assert not periods.current.annualized
        assert not periods.has_prior
        assert periods.current.start == date(2024, 1, 1)
        assert periods.current.end == date(2024, 12, 31)

    @pytest.mark.parametrize("n", [4, 6, 9, 11])
    def test_annualization_factor_is_twelve_over_n(self, n):
        series = monthly_series(date(2024, 1, 1), n, 50.0, 300.0, 80.0)
        periods = normalize(series)
        assert periods.current.annualization_factor == pytest.approx(12.0 / n)

        annual = annualize(periods.current)
        assert annual['member_months'] == pytest.approx(50.0 * 12)
        assert annual['total_claims'] == pytest.approx(380.0 * 50.0 * 12)


class TestCurrentAndPriorSplit:
    """Experience longer than twelve months yields a current and a prior period."""

    def test_thirteen_months_gives_one_month_prior(self):
        series = monthly_series(date(2023, 12, 1), 13, 100.0, 400.0, 100.0)
        periods = normalize(series)

        assert periods.current.months == 12
        assert periods.prior.months == 1
        assert periods.prior.start == date(2023, 12, 1)
        assert periods.current.start == date(2024, 1, 1)
        assert not periods.current.annualized

    def test_twenty_four_months_gives_two_full_periods(self):
        series = monthly_series(date(2023, 1, 1), 24, 100.0, 400.0, 100.0)
        periods = normalize(series)

        assert periods.current.months == 12
        assert periods.prior.months == 12
        assert periods.months_ignored == 0
        assert periods.total_member_months == pytest.approx(2400.0)

    def test_older_months_ignored(self):
        series = monthly_series(date(2022, 7, 1), 30, 100.0, 400.0, 100.0)
        periods = normalize(series)

        assert periods.months_supplied == 30
        assert periods.months_ignored == 6
        assert periods.prior.start == date(2023, 1, 1)
        assert periods.current.end == date(2024, 12, 31)

    def test_current_holds_most_recent_months(self):
        prior = monthly_series(date(2023, 1, 1), 12, 100.0, 100.0, 10.0)
        current = monthly_series(date(2024, 1, 1), 12, 200.0, 500.0, 50.0)
        periods = normalize(prior + current)

        assert periods.current.member_months == pytest.approx(2400.0)
        assert periods.current.medical_claims == pytest.approx(500.0 * 2400.0)
        assert periods.prior.member_months == pytest.approx(1200.0)


class TestSeriesValidation:
    """Month labels must be unique and strictly increasing."""

    def test_duplicate_months_rejected(self):
        series = monthly_series(date(2024, 1, 1), 6, 100.0, 400.0, 100.0)
        series.append(series[-1])
        with pytest.raises(InvalidInputError):
            make_input(Carrier.AETNA, series)

    def test_out_of_order_months_rejected(self):
        series = monthly_series(date(2024, 1, 1), 6, 100.0, 400.0, 100.0)
        series[2], series[3] = series[3], series[2]
        with pytest.raises(InvalidInputError):
            make_input(Carrier.AETNA, series)

    def test_negative_member_months_rejected(self):
        with pytest.raises(InvalidInputError):
            MonthlyClaimsPoint(date(2024, 1, 1), -1.0, 0.0, 0.0)

    def test_month_label_normalized_to_first_day(self):
        point = MonthlyClaimsPoint(date(2024, 3, 17), 10.0, 100.0, 10.0)
        assert point.month == date(2024, 3, 1)
        assert point.total_claims == pytest.approx(110.0)


class TestTrendMonths:
    """Projection months run from the experience midpoint to the renewal midpoint."""

    def test_months_to_midpoint(self):
        series = monthly_series(date(2024, 1, 1), 12, 100.0, 400.0, 100.0)
        periods = normalize(series)
        months = months_to_midpoint(periods.current, RENEWAL)

        # Mid-2024 to mid-2025/26 is eighteen months
        assert months == pytest.approx(18.0, abs=0.1)


class TestDataQualityWarnings:
    """Short or sparse experience produces data-quality warnings."""

    def test_limited_data_warnings(self):
        series = monthly_series(date(2024, 1, 1), 5, 100.0, 400.0, 100.0)
        periods = normalize(series)
        warnings = assess_data_quality(series, (), periods)

        assert any(w.startswith("Limited data: Only 5 months") for w in warnings)
        assert any(w.startswith("Very limited data") for w in warnings)
        assert any(w.startswith("No prior period available") for w in warnings)

    def test_zero_exposure_months_reported(self):
        series = monthly_series(date(2024, 1, 1), 12, 100.0, 400.0, 100.0)
        series[4] = MonthlyClaimsPoint(series[4].month, 0.0, 0.0, 0.0)
        periods = normalize(series)
        warnings = assess_data_quality(series, (), periods)

        assert "1 months have no member months: 2024-05" in warnings
        assert "1 months have no claims data: 2024-05" in warnings
