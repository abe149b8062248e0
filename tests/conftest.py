"""
tests/conftest.py - Shared renewal scenarios

Author: Actuarial Pipeline Project
License: MIT
"""

import pytest
from datetime import date

from renewal_engine.models import (
    Carrier, EffectiveDates, LargeClaimant, ManualRates, MonthlyClaimsPoint,
    PlanExperience, UniversalInput
)


RENEWAL = EffectiveDates(date(2025, 7, 1), date(2026, 6, 30))


def add_months(start: date, offset: int) -> date:
    index = start.year * 12 + (start.month - 1) + offset
    return date(index // 12, index % 12 + 1, 1)


def monthly_series(start: date, months: int, member_months: float,
                   medical_pmpm: float, rx_pmpm: float, earned_pmpm=None):
    """Flat monthly experience: the same exposure and PMPM every month."""
    points = []
    for i in range(months):
        points.append(MonthlyClaimsPoint(
            month=add_months(start, i),
            member_months=member_months,
            medical_claims=medical_pmpm * member_months,
            rx_claims=rx_pmpm * member_months,
            earned_premium=earned_pmpm * member_months if earned_pmpm is not None else None,
        ))
    return points


def make_input(carrier, series, claimants=(), manual=None, plan_experience=None,
               case_id="CASE-001"):
    return UniversalInput(
        carrier=carrier,
        case_id=case_id,
        effective_dates=RENEWAL,
        monthly_claims=series,
        manual_rates=manual,
        large_claimants=claimants,
        plan_experience=plan_experience or {},
    )


# =============================================================================
# AETNA REFERENCE SCENARIO
# 24 months: prior 2023, current 2024 with 6,928 member months at
# $573.87 medical / $230.99 rx PMPM and one claimant above $175,000.
# =============================================================================

CURRENT_MM = 6928.0
CURRENT_MEDICAL_PMPM = 573.87
CURRENT_RX_PMPM = 230.99
AETNA_MANUAL = ManualRates(medical=637.22, rx=204.42)
AETNA_CURRENT_PREMIUM = 1015.25


def aetna_series():
    prior = monthly_series(date(2023, 1, 1), 12, 600.0, 540.00, 215.00)
    current = monthly_series(date(2024, 1, 1), 12, CURRENT_MM / 12,
                             CURRENT_MEDICAL_PMPM, CURRENT_RX_PMPM)
    return prior + current


def aetna_claimants():
    return (
        LargeClaimant('C-100', date(2024, 5, 10), 250000.0,
                      medical_amount=200000.0, rx_amount=50000.0, diagnosis='Oncology'),
        LargeClaimant('C-200', date(2023, 8, 2), 190000.0,
                      medical_amount=190000.0, rx_amount=0.0),
        LargeClaimant('C-300', date(2024, 9, 15), 90000.0),
    )


def aetna_parameter_mapping():
    return {
        'deductible_suppression_factor': 1.0,
        'pooling_threshold': 175000.0,
        'trend': {'medical': 1.0969, 'rx': 1.0788, 'months': 19.0},
        'period_weights': {'current': 0.75, 'prior': 0.25},
        'credibility': {'formula': 'sqrt', 'full_credibility_member_months': 7437.0},
        'manual_rates': {'medical': 637.22, 'rx': 204.42},
        'non_benefit_expenses_pmpm': 42.50,
        'retention': {
            'administration': {'value': 0.06, 'basis': 'percent'},
            'commissions': {'value': 25.0},
            'premium_tax': {'value': 0.02, 'basis': 'percent'},
        },
        'current_premium_pmpm': AETNA_CURRENT_PREMIUM,
    }


@pytest.fixture
def aetna_input():
    return make_input(Carrier.AETNA, aetna_series(), aetna_claimants(), AETNA_MANUAL)


@pytest.fixture
def aetna_parameters():
    return aetna_parameter_mapping()


@pytest.fixture
def group_input():
    """Carrier-neutral 24-month group with manual rates and claimants."""
    return make_input(Carrier.UHC, aetna_series(), aetna_claimants(), AETNA_MANUAL)


@pytest.fixture
def two_plan_input():
    """BCBS group with separate PPO and HMO experience."""
    ppo = PlanExperience(
        plan_id='PPO',
        monthly_claims=monthly_series(date(2023, 1, 1), 24, 400.0, 620.0, 210.0),
        large_claimants=(LargeClaimant('P-1', date(2024, 3, 1), 400000.0,
                                       medical_amount=380000.0, rx_amount=20000.0),),
        plan_name='PPO 1000',
    )
    hmo = PlanExperience(
        plan_id='HMO',
        monthly_claims=monthly_series(date(2023, 1, 1), 24, 250.0, 430.0, 160.0),
        plan_name='HMO 2500',
    )
    return make_input(Carrier.BCBS, aetna_series(), (), AETNA_MANUAL,
                      plan_experience={'PPO': ppo, 'HMO': hmo})
