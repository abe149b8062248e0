"""
tests/test_composite.py - Multi-Plan Composite Tests

Author: Actuarial Pipeline Project
License: MIT
"""

import pytest
from datetime import date

from renewal_engine.claimants import ClaimantPolicy
from renewal_engine.composite import MultiPlanComposer, compose
from renewal_engine.errors import InvalidClaimantError
from renewal_engine.models import Carrier, LargeClaimant
from renewal_engine.parameters import BCBSParameters

from conftest import make_input, monthly_series


def plan(plan_id, weight, current_premium, **extra):
    return {'plan_id': plan_id, 'plan_name': f"{plan_id} plan",
            'enrollment_weight': weight, 'current_premium_pmpm': current_premium, **extra}


class TestEnrollmentWeightedComposite:
    """
    Setup: PPO (weight 120) and HMO (weight 60) rated on their own series.

    Expectation: the composite premium is the enrollment-weighted mean of
    the plan premiums and lies between them; plan results are unchanged.
    """

    @pytest.fixture
    def composite(self, two_plan_input):
        params = {'plans': [plan('PPO', 120.0, 900.0), plan('HMO', 60.0, 640.0)]}
        return compose(two_plan_input, params)

    def test_plans_rated_independently(self, composite):
        assert [p.plan_id for p in composite.plans] == ['PPO', 'HMO']
        ppo = composite.plan('PPO')
        assert ppo.result.summary.details['plan_id'] == 'PPO'
        # PPO pools its own $400,000 claimant; HMO has none
        assert ppo.result.line('3a').current.total == pytest.approx(175000.0)
        assert composite.plan('HMO').result.line('3a').current.total == 0.0

    def test_composite_weighted_mean(self, composite):
        ppo, hmo = composite.plan('PPO'), composite.plan('HMO')
        expected = (ppo.final_premium_pmpm * 120 + hmo.final_premium_pmpm * 60) / 180
        assert composite.composite_premium_pmpm == pytest.approx(expected, abs=0.005)
        assert composite.composite_current_premium_pmpm == pytest.approx(
            (900.0 * 120 + 640.0 * 60) / 180)

    def test_composite_within_plan_bounds(self, composite):
        finals = [p.final_premium_pmpm for p in composite.plans]
        assert min(finals) <= composite.composite_premium_pmpm <= max(finals)

    def test_composite_rate_change(self, composite):
        expected = (composite.composite_premium_pmpm / composite.composite_current_premium_pmpm
                    - 1.0)
        assert composite.composite_rate_change == pytest.approx(expected)
        assert composite.composite_line.number == '30'
        assert composite.composite_line.current.total == pytest.approx(expected)

    def test_enrollment_summary(self, composite):
        summary = composite.enrollment_summary()
        assert summary['total_enrollment'] == pytest.approx(180.0)
        shares = {p['plan_id']: p['percentage'] for p in summary['plans']}
        assert shares['PPO'] == pytest.approx(2 / 3)

    def test_frame_has_composite_row(self, composite):
        frame = composite.to_frame()
        assert list(frame['plan_id']) == ['PPO', 'HMO', 'COMPOSITE']


class TestCompositeWarnings:
    """Zero-enrollment plans and large rate actions are reported."""

    def test_zero_enrollment_plan_excluded(self, two_plan_input):
        params = {'plans': [plan('PPO', 100.0, 900.0), plan('HMO', 0.0, 640.0)]}
        composite = MultiPlanComposer().compose(two_plan_input, params)

        assert composite.composite_premium_pmpm == pytest.approx(
            composite.plan('PPO').final_premium_pmpm)
        assert any('HMO has zero enrollment' in w for w in composite.warnings)
        assert len(composite.plans) == 2

    def test_large_rate_action_warning(self, two_plan_input):
        params = {'plans': [plan('PPO', 100.0, 300.0), plan('HMO', 50.0, 640.0)]}
        composite = compose(two_plan_input, params)
        assert any(w.startswith('Plan PPO has significant rate change') for w in composite.warnings)

    def test_all_zero_enrollment(self, two_plan_input):
        params = {'plans': [plan('PPO', 0.0, 900.0), plan('HMO', 0.0, 640.0)]}
        composite = compose(two_plan_input, params)

        assert composite.composite_premium_pmpm == 0.0
        assert composite.composite_rate_change == 0.0
        assert any(w.startswith('DivisionGuardError') for w in composite.warnings)

    def test_enrollment_counts_as_weights(self, two_plan_input):
        params = BCBSParameters(plans=[
            {'plan_id': 'PPO', 'current_premium_pmpm': 900.0,
             'enrollment': {'single': 40, 'family': 20}},
            {'plan_id': 'HMO', 'current_premium_pmpm': 640.0,
             'enrollment': {'single': 30}},
        ])
        composite = compose(two_plan_input, params)
        assert composite.enrollment_weights == {'PPO': 60.0, 'HMO': 30.0}
        assert composite.plan('PPO').enrollment.total_count == 60


class TestGroupSettings:
    """
    Setup: current premium, claimant policy and rounding given once on the
    group rather than on each plan.

    Expectation: every plan that leaves a setting unset takes the group's;
    a plan's own setting wins.
    """

    def test_plan_parameters_fill_unset_fields(self):
        params = BCBSParameters(current_premium_pmpm=900.0, claimant_policy='drop',
                                rounding={'premium_places': 0},
                                plans=[{'plan_id': 'PPO'},
                                       {'plan_id': 'HMO', 'current_premium_pmpm': 640.0}])
        ppo, hmo = params.plan_parameters()

        assert ppo.current_premium_pmpm == 900.0
        assert hmo.current_premium_pmpm == 640.0
        assert ppo.claimant_policy == ClaimantPolicy.DROP
        assert hmo.rounding.premium_places == 0

    def test_group_defaults_left_alone(self):
        params = BCBSParameters(plans=[plan('PPO', 1.0, 900.0)])
        assert params.plan_parameters() == list(params.plans)

    def test_group_current_premium(self, two_plan_input):
        params = {'current_premium_pmpm': 900.0,
                  'plans': [{'plan_id': 'PPO', 'enrollment_weight': 120.0},
                            {'plan_id': 'HMO', 'enrollment_weight': 60.0}]}
        composite = compose(two_plan_input, params)

        assert [p.current_premium_pmpm for p in composite.plans] == [900.0, 900.0]
        assert composite.composite_current_premium_pmpm == pytest.approx(900.0)

    def test_group_rounding(self, two_plan_input):
        params = {'rounding': {'premium_places': 0},
                  'plans': [plan('PPO', 120.0, 900.0), plan('HMO', 60.0, 640.0)]}
        composite = compose(two_plan_input, params)

        for p in composite.plans:
            assert p.final_premium_pmpm == round(p.final_premium_pmpm)

    def test_group_claimant_policy(self):
        series = monthly_series(date(2024, 1, 1), 12, 500.0, 560.0, 220.0)
        claimants = (LargeClaimant('GOOD', date(2024, 2, 1), 300000.0),
                     LargeClaimant('NEG', date(2024, 2, 1), -5.0))
        universal_input = make_input(Carrier.BCBS, series, claimants)
        plans = [plan('GROUP', 1.0, 900.0)]

        with pytest.raises(InvalidClaimantError):
            compose(universal_input, {'plans': plans})

        composite = compose(universal_input, {'claimant_policy': 'drop', 'plans': plans})
        result = composite.plan('GROUP').result
        assert result.line('3a').current.total == pytest.approx(75000.0)
        assert any(w.startswith('Dropped claimant') for w in result.warnings)


class TestCompositeRounding:
    """The rounded composite never leaves the range of the plan premiums."""

    def test_coarse_group_rounding_clamped(self, two_plan_input):
        params = {'rounding': {'premium_places': 0},
                  'plans': [plan('PPO', 100.0, 900.0, rounding={'premium_places': 2}),
                            plan('HMO', 0.0, 640.0)]}
        composite = compose(two_plan_input, params)

        ppo = composite.plan('PPO').final_premium_pmpm
        assert composite.composite_premium_pmpm == pytest.approx(ppo)

    def test_composite_rounded_when_within_range(self, two_plan_input):
        params = {'rounding': {'premium_places': 0},
                  'plans': [plan('PPO', 120.0, 900.0), plan('HMO', 60.0, 640.0)]}
        composite = compose(two_plan_input, params)

        finals = [p.final_premium_pmpm for p in composite.plans]
        assert min(finals) <= composite.composite_premium_pmpm <= max(finals)
        assert composite.composite_premium_pmpm == round(composite.composite_premium_pmpm)
