"""
renewal_engine/results.py - Renewal Results

Immutable outputs of the carrier calculators and the multi-plan composer.

- RenewalResult: one carrier methodology applied to one experience set
- PlanResult: a single BCBS plan inside a multi-plan group
- CompositeResult: enrollment-weighted composite of plan results

The ordered calculation lines are the audit trail; every figure reported in
the summary can be traced back to a numbered line.

Author: Actuarial Pipeline Project
License: MIT
"""

import pandas as pd
from typing import Any, Dict, List, Optional, Tuple
from dataclasses import dataclass, field
import logging

from .lines import CalculationLine, CoverageAmounts, lines_to_frame
from .models import Carrier, EnrollmentTiers
from .periods import ExperiencePeriods
from .quality import DataQuality

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MemberMonthsUsed:
    current: float
    prior: float
    weighted: float


@dataclass(frozen=True)
class RenewalSummary:
    """Headline figures of a renewal."""
    member_months: MemberMonthsUsed
    incurred_claims_pmpm: CoverageAmounts
    projected_claims_pmpm: CoverageAmounts
    total_retention_pmpm: float
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RenewalResult:
    """Complete renewal derivation for one carrier methodology."""
    carrier: Carrier
    case_id: str
    calculations: Tuple[CalculationLine, ...]
    final_premium_pmpm: float
    current_premium_pmpm: float
    rate_change: float
    summary: RenewalSummary
    data_quality: DataQuality
    periods: Optional[ExperiencePeriods] = None

    def line(self, number: str) -> CalculationLine:
        for calc in self.calculations:
            if calc.number == number:
                return calc
        raise KeyError(f"{self.carrier.value} result has no line {number}")

    @property
    def warnings(self) -> Tuple[str, ...]:
        return self.data_quality.warnings

    def get_summary(self) -> Dict:
        """Get summary statistics."""
        return {
            'carrier': self.carrier.value,
            'case_id': self.case_id,
            'line_count': len(self.calculations),
            'final_premium_pmpm': self.final_premium_pmpm,
            'current_premium_pmpm': self.current_premium_pmpm,
            'rate_change': self.rate_change,
            'member_months_current': self.summary.member_months.current,
            'member_months_prior': self.summary.member_months.prior,
            'incurred_claims_pmpm': self.summary.incurred_claims_pmpm.total,
            'projected_claims_pmpm': self.summary.projected_claims_pmpm.total,
            'total_retention_pmpm': self.summary.total_retention_pmpm,
            **self.data_quality.get_summary(),
        }

    def to_frame(self) -> pd.DataFrame:
        """Audit table of the calculation lines."""
        return lines_to_frame(self.calculations)


@dataclass(frozen=True)
class PlanResult:
    """One plan of a multi-plan group."""
    plan_id: str
    plan_name: str
    result: RenewalResult
    enrollment_weight: float
    enrollment: Optional[EnrollmentTiers] = None

    @property
    def final_premium_pmpm(self) -> float:
        return self.result.final_premium_pmpm

    @property
    def current_premium_pmpm(self) -> float:
        return self.result.current_premium_pmpm

    @property
    def rate_change(self) -> float:
        return self.result.rate_change


@dataclass(frozen=True)
class CompositeResult:
    """Enrollment-weighted composite of independently rated plans."""
    carrier: Carrier
    case_id: str
    plans: Tuple[PlanResult, ...]
    composite_premium_pmpm: float
    composite_current_premium_pmpm: float
    composite_rate_change: float
    enrollment_weights: Dict[str, float]
    composite_line: CalculationLine
    warnings: Tuple[str, ...] = ()

    # Shared result surface with RenewalResult
    @property
    def final_premium_pmpm(self) -> float:
        return self.composite_premium_pmpm

    @property
    def current_premium_pmpm(self) -> float:
        return self.composite_current_premium_pmpm

    @property
    def rate_change(self) -> float:
        return self.composite_rate_change

    def plan(self, plan_id: str) -> PlanResult:
        for plan in self.plans:
            if plan.plan_id == plan_id:
                return plan
        raise KeyError(f"No plan {plan_id} in composite")

    def enrollment_summary(self) -> Dict:
        """Total enrollment and each plan's share of it."""
        total = sum(self.enrollment_weights.values())
        breakdown = []
        for plan in self.plans:
            weight = self.enrollment_weights.get(plan.plan_id, 0.0)
            breakdown.append({
                'plan_id': plan.plan_id,
                'plan_name': plan.plan_name,
                'enrollment': weight,
                'percentage': weight / total if total > 0 else 0.0,
            })
        return {'total_enrollment': total, 'plans': breakdown}

    def get_summary(self) -> Dict:
        """Get summary statistics."""
        return {
            'carrier': self.carrier.value,
            'case_id': self.case_id,
            'plan_count': len(self.plans),
            'composite_premium_pmpm': self.composite_premium_pmpm,
            'composite_current_premium_pmpm': self.composite_current_premium_pmpm,
            'composite_rate_change': self.composite_rate_change,
            'warning_count': len(self.warnings),
        }

    def to_frame(self) -> pd.DataFrame:
        """One row per plan plus the composite row."""
        rows: List[Dict] = []
        for plan in self.plans:
            rows.append({
                'plan_id': plan.plan_id,
                'plan_name': plan.plan_name,
                'enrollment_weight': plan.enrollment_weight,
                'final_premium_pmpm': plan.final_premium_pmpm,
                'current_premium_pmpm': plan.current_premium_pmpm,
                'rate_change': plan.rate_change,
            })
        rows.append({
            'plan_id': 'COMPOSITE',
            'plan_name': 'Composite',
            'enrollment_weight': sum(self.enrollment_weights.values()),
            'final_premium_pmpm': self.composite_premium_pmpm,
            'current_premium_pmpm': self.composite_current_premium_pmpm,
            'rate_change': self.composite_rate_change,
        })
        return pd.DataFrame(rows)
