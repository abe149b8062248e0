"""
tests/test_engine.py - Engine Dispatch and Record-Set Adapter Tests

Author: Actuarial Pipeline Project
License: MIT
"""

import pandas as pd
import pytest
from datetime import date

from renewal_engine import (
    Carrier, CompositeResult, RenewalResult, calculate_renewal, compare_carriers,
    create_engine, load_record_set
)
from renewal_engine.errors import (
    InsufficientDataError, InvalidInputError, InvalidParametersError
)
from renewal_engine.models import ManualRates
from renewal_engine.parameters import UHCParameters, create_default_parameters

from conftest import RENEWAL, make_input, monthly_series


class TestDispatch:
    """The engine routes each carrier to its methodology."""

    def test_carrier_name_case_insensitive(self, aetna_input, aetna_parameters):
        result = create_engine().calculate('aetna', aetna_input, aetna_parameters)
        assert isinstance(result, RenewalResult)
        assert result.carrier == Carrier.AETNA
        assert len(result.calculations) == 28

    def test_unknown_carrier(self, aetna_input):
        with pytest.raises(InvalidParametersError):
            create_engine().calculate('HUMANA', aetna_input, {})

    def test_parameter_model_for_wrong_carrier(self, group_input):
        with pytest.raises(InvalidParametersError):
            create_engine().calculate('CIGNA', group_input, UHCParameters())

    def test_insufficient_data(self):
        series = monthly_series(date(2024, 1, 1), 3, 100.0, 400.0, 100.0)
        universal_input = make_input(Carrier.CIGNA, series, manual=ManualRates(500.0, 120.0))
        with pytest.raises(InsufficientDataError):
            calculate_renewal('CIGNA', universal_input)

    def test_bcbs_group_returns_composite(self, two_plan_input):
        params = {'plans': [{'plan_id': 'PPO', 'current_premium_pmpm': 900.0},
                            {'plan_id': 'HMO', 'current_premium_pmpm': 640.0}]}
        result = calculate_renewal('BCBS', two_plan_input, params)
        assert isinstance(result, CompositeResult)
        assert result.final_premium_pmpm == result.composite_premium_pmpm

    def test_bcbs_plan_parameters_return_single_result(self, group_input):
        result = calculate_renewal('BCBS', group_input,
                                   {'plans': [{'plan_id': 'GROUP',
                                               'current_premium_pmpm': 900.0}]})
        assert isinstance(result, CompositeResult)
        assert len(result.plans) == 1


class TestDefaultParameters:
    """
    Setup: No carrier parameters supplied.

    Expectation: every carrier derives a complete parameter set from the
    group's experience and produces a result.
    """

    @pytest.mark.parametrize("carrier", ['AETNA', 'UHC', 'CIGNA', 'BCBS'])
    def test_defaults_calculate(self, group_input, carrier):
        result = calculate_renewal(carrier, group_input)
        assert result.final_premium_pmpm > 0
        assert result.current_premium_pmpm > 0

    def test_uhc_default_retention_by_size(self, group_input):
        params = create_default_parameters('UHC', group_input)
        # 14,128 member months falls in the 14% tier
        assert params.retention.administrative == pytest.approx(14.0 * 0.33)
        assert params.commission.value == pytest.approx(14.0 * 0.27 / 100)

    def test_bcbs_default_is_single_group_plan(self, group_input):
        params = create_default_parameters('BCBS', group_input)
        assert [p.plan_id for p in params.plans] == ['GROUP']


class TestCompareCarriers:
    """Comparison frame with one row per carrier."""

    def test_comparison_frame(self, group_input, aetna_parameters):
        frame = compare_carriers(group_input, {
            'AETNA': aetna_parameters,
            'UHC': {'current_premium_pmpm': 1015.25},
            'CIGNA': None,
        })

        assert len(frame) == 3
        assert set(frame['carrier']) == {'AETNA', 'UHC', 'CIGNA'}
        assert list(frame['final_premium_pmpm']) == sorted(frame['final_premium_pmpm'])
        counts = dict(zip(frame['carrier'], frame['line_count']))
        assert counts == {'AETNA': 28, 'UHC': 39, 'CIGNA': 25}

    def test_progress_callback(self, group_input):
        calls = []
        create_engine().compare_carriers(group_input, {'CIGNA': None, 'UHC': None},
                                         progress_callback=lambda i, n: calls.append((i, n)))
        assert calls == [(1, 2), (2, 2)]


# =============================================================================
# RECORD-SET ADAPTER
# =============================================================================

def claims_frame(months=12):
    rows = []
    for i in range(months):
        rows.append({
            'Month': f"2024-{i + 1:02d}-01",
            'Member Months': 500,
            'Medical Claims': 200000.0,
            'Rx Claims': 50000.0,
            'Total Claims': 250000.0,
            'Earned Premium': 320000.0,
        })
    return pd.DataFrame(rows)


class TestRecordSetAdapter:
    """
    Setup: A claims frame with aliased headers and a claimant frame.

    Expectation: a UniversalInput in month order with a reproducible hash
    and an audit log of every adjustment.
    """

    def test_load_record_set(self):
        claimants = pd.DataFrame([
            {'claimant_id': 'A1', 'incurred_date': '2024-04-12', 'total_amount': 300000.0,
             'medical_amount': 280000.0, 'rx_amount': 20000.0, 'diagnosis': 'Cardiac'},
            {'claimant_id': None, 'incurred_date': None, 'total_amount': None},
        ])
        result = load_record_set(claims_frame(), claimants, carrier='CIGNA',
                                 case_id='RS-1', effective_dates=RENEWAL)

        ui = result.universal_input
        assert ui.carrier == Carrier.CIGNA
        assert ui.months_available == 12
        assert ui.monthly_claims[0].month == date(2024, 1, 1)
        assert ui.monthly_claims[0].earned_premium == pytest.approx(320000.0)
        assert len(ui.large_claimants) == 1
        assert ui.large_claimants[0].incurred_date == date(2024, 4, 12)
        assert result.rows_dropped == 1
        assert result.get_summary()['claims_rows'] == 12

    def test_hash_is_reproducible(self):
        first = load_record_set(claims_frame(), effective_dates=RENEWAL)
        second = load_record_set(claims_frame(), effective_dates=RENEWAL)
        changed = claims_frame()
        changed.loc[0, 'Medical Claims'] = 1.0
        changed.loc[0, 'Total Claims'] = 50001.0
        third = load_record_set(changed, effective_dates=RENEWAL)

        assert first.input_hash == second.input_hash
        assert first.input_hash != third.input_hash

    def test_unsorted_months_sorted(self):
        frame = claims_frame().iloc[::-1].reset_index(drop=True)
        result = load_record_set(frame, effective_dates=RENEWAL)
        months = [p.month for p in result.universal_input.monthly_claims]
        assert months == sorted(months)
        assert any(r.action == 'sorted' for r in result.audit_log)

    def test_total_mismatch_rejected(self):
        frame = claims_frame()
        frame.loc[3, 'Total Claims'] = 250010.0
        with pytest.raises(InvalidInputError):
            load_record_set(frame, effective_dates=RENEWAL)

    def test_missing_columns_rejected(self):
        frame = claims_frame().drop(columns=['Rx Claims'])
        with pytest.raises(InvalidInputError):
            load_record_set(frame, effective_dates=RENEWAL)

    def test_current_premium_from_earned_premium(self):
        result = load_record_set(claims_frame(), carrier='CIGNA', effective_dates=RENEWAL,
                                 manual_rates=ManualRates(450.0, 110.0))
        renewal = calculate_renewal('CIGNA', result.universal_input,
                                    {'manual_rate_pmpm': 560.0})
        # Earned premium 320,000 / 500 member months
        assert renewal.current_premium_pmpm == pytest.approx(640.0)
        assert renewal.summary.details['current_premium_source'].startswith('earned premium')
