"""
tests/test_precision.py - Rounding, Credibility and Division Guard Tests

Reproducibility depends on decimal rounding at fixed points:
1. Half-up and half-even rounding on exact decimal ties
2. Final premium rounded before the rate change is computed
3. Credibility always within [0, 1]

Author: Actuarial Pipeline Project
License: MIT
"""

import pytest

from renewal_engine import calculate_renewal
from renewal_engine.errors import DivisionGuardError, InvalidParametersError
from renewal_engine.financials import (
    apply_rounding, credibility, divide, guarded_divide, trend_factor
)
from renewal_engine.parameters import (
    CredibilityParameters, PeriodWeights, RoundingPolicy, build_parameters
)
from renewal_engine.quality import DataQualityRecorder


class TestDecimalRounding:
    """Ties resolve according to the configured rounding method."""

    def test_half_up(self):
        assert apply_rounding(2.665, 2, 'half_up') == 2.67
        assert apply_rounding(1.005, 2, 'half_up') == 1.01

    def test_half_even(self):
        assert apply_rounding(2.665, 2, 'half_even') == 2.66
        assert apply_rounding(2.675, 2, 'half_even') == 2.68

    def test_none_keeps_full_precision(self):
        assert apply_rounding(1 / 3, None) == 1 / 3


class TestRoundingPolicy:
    """
    Setup: The Aetna scenario under different rounding policies.

    Expectation: the final premium carries the configured places and the
    rate change is computed from the rounded final premium.
    """

    def test_default_policy(self):
        policy = RoundingPolicy()
        assert policy.premium_places == 2
        assert policy.line_places is None
        assert policy.method == 'half_up'

    def test_whole_dollar_premium(self, aetna_input, aetna_parameters):
        params = {**aetna_parameters, "rounding": {"premium_places": 0}}
        result = calculate_renewal('AETNA', aetna_input, params)

        assert result.final_premium_pmpm == round(result.final_premium_pmpm)
        assert result.line('26').current.total == pytest.approx(result.final_premium_pmpm)
        assert result.rate_change == pytest.approx(
            result.final_premium_pmpm / result.current_premium_pmpm - 1.0)

    def test_line_precision(self, aetna_input, aetna_parameters):
        params = {**aetna_parameters, "rounding": {"line_places": 2}}
        result = calculate_renewal('AETNA', aetna_input, params)

        for line in result.calculations:
            if line.is_amount:
                assert line.current.med_cap == pytest.approx(round(line.current.med_cap, 2),
                                                             abs=1e-9)
                assert line.current.rx == pytest.approx(round(line.current.rx, 2), abs=1e-9)

    def test_rate_places(self, aetna_input, aetna_parameters):
        params = {**aetna_parameters, "rounding": {"rate_places": 4}}
        result = calculate_renewal('AETNA', aetna_input, params)
        assert result.rate_change == round(result.rate_change, 4)

    def test_unknown_method_rejected(self):
        with pytest.raises(InvalidParametersError):
            build_parameters('CIGNA', {'rounding': {'method': 'truncate'}})


class TestCredibilityBounds:
    """Credibility stays within [0, 1] for every formula and exposure."""

    @pytest.mark.parametrize("formula", ['sqrt', 'linear'])
    @pytest.mark.parametrize("member_months", [0.0, 1.0, 500.0, 7437.0, 12000.0, 1e7])
    def test_bounded(self, formula, member_months):
        z = credibility(member_months, formula, 12000.0)
        assert 0.0 <= z <= 1.0

    def test_sqrt_formula(self):
        assert credibility(3000.0, 'sqrt', 12000.0) == pytest.approx(0.5)
        assert credibility(24000.0, 'sqrt', 12000.0) == 1.0

    def test_minimum_floor(self):
        assert credibility(0.0, 'linear', 12000.0, minimum=0.25) == pytest.approx(0.25)

    def test_fixed_requires_value(self):
        with pytest.raises(ValueError):
            CredibilityParameters(formula='fixed')
        assert CredibilityParameters(formula='fixed', fixed_credibility=0.4).factor(1e6) == 0.4


class TestPeriodWeights:
    """Period weights must sum to one."""

    def test_valid_weights(self):
        weights = PeriodWeights(current=0.75, prior=0.25)
        assert weights.current + weights.prior == 1.0

    def test_weights_not_summing_to_one(self):
        with pytest.raises(ValueError):
            PeriodWeights(current=0.7, prior=0.2)

    def test_invalid_weights_in_parameter_mapping(self):
        with pytest.raises(InvalidParametersError) as exc_info:
            build_parameters('AETNA', {'manual_rates': {'medical': 500.0, 'rx': 100.0},
                                       'period_weights': {'current': 0.9, 'prior': 0.9}})
        assert exc_info.value.carrier == 'AETNA'
        assert exc_info.value.problems


class TestDivisionGuard:
    """Zero denominators are recovered with a sentinel and recorded."""

    def test_divide_raises(self):
        with pytest.raises(DivisionGuardError):
            divide(1.0, 0.0, 'claims PMPM')

    def test_guarded_divide_records_warning(self):
        recorder = DataQualityRecorder()
        assert guarded_divide(5.0, 0.0, 'claims PMPM', recorder) == 0.0
        assert recorder.division_guards == ['claims PMPM']
        assert recorder.warnings[0].startswith('DivisionGuardError: claims PMPM')


class TestTrendFactor:
    """Trend compounds the annual factor over the projection months."""

    def test_twelve_months_is_annual(self):
        assert trend_factor(1.08, 12.0) == pytest.approx(1.08)

    def test_eighteen_months(self):
        assert trend_factor(1.08, 18.0) == pytest.approx(1.08 ** 1.5)

    def test_zero_months(self):
        assert trend_factor(1.25, 0.0) == 1.0
