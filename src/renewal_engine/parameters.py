"""
renewal_engine/parameters.py - Carrier Parameter Sets

Validated, read-only actuarial assumptions for each carrier methodology.

Every parameter set is a frozen pydantic model: it is validated once at
construction and can be shared between calculations. Validation failures
are reported as InvalidParametersError before any calculation line is
produced.

Shared Constraints:
- Period weights each in [0, 1] and summing to 1.0 (±1e-9)
- Credibility bounds in [0, 1]
- Pooling thresholds strictly positive
- Retention components in PMPM dollars or as a fraction of a claims base

Default Assumptions (create_default_parameters):
- Manual rates: experience PMPM × 1.15 (AETNA, UHC) or × 1.20 (CIGNA)
- Current premium: experience PMPM × 1.16 (AETNA, UHC) or × 1.22 (CIGNA)
- UHC retention by group size: >30,000 MM 12.5%, >10,000 MM 14.0%, else 15.5%

Author: Actuarial Pipeline Project
License: MIT
"""

from typing import Any, ClassVar, Dict, List, Literal, Mapping, Optional, Union
import logging

from pydantic import (BaseModel, ConfigDict, Field, ValidationError,
                      field_validator, model_validator)

from .claimants import ClaimantPolicy
from .errors import InvalidParametersError
from .financials import credibility, retention_pmpm
from .models import Carrier, UniversalInput

logger = logging.getLogger(__name__)

WEIGHT_TOLERANCE = 1e-9


class FrozenModel(BaseModel):
    """Immutable parameter block; unknown keys are rejected."""
    model_config = ConfigDict(frozen=True, extra="forbid")


# =============================================================================
# SHARED PARAMETER BLOCKS
# =============================================================================

class RoundingPolicy(FrozenModel):
    """Decimal rounding applied to calculation lines and results."""

    line_places: Optional[int] = Field(
        default=None, ge=0, le=10, description="Places for PMPM lines (None = full precision)"
    )
    premium_places: Optional[int] = Field(
        default=2, ge=0, le=10, description="Places for the final premium PMPM"
    )
    rate_places: Optional[int] = Field(
        default=None, ge=0, le=10, description="Places for the rate change"
    )
    method: Literal["half_up", "half_even"] = Field(default="half_up")


class CredibilityParameters(FrozenModel):
    """Credibility of the group's own experience."""

    formula: Literal["sqrt", "linear", "fixed"] = Field(default="sqrt")
    full_credibility_member_months: float = Field(default=12000.0, gt=0)
    minimum_credibility: float = Field(default=0.0, ge=0, le=1)
    fixed_credibility: Optional[float] = Field(default=None, ge=0, le=1)

    @model_validator(mode="after")
    def validate_fixed(self):
        """A fixed formula needs a fixed credibility value."""
        if self.formula == "fixed" and self.fixed_credibility is None:
            raise ValueError("fixed credibility formula requires fixed_credibility")
        return self

    def factor(self, member_months: float) -> float:
        return credibility(member_months, self.formula,
                           self.full_credibility_member_months,
                           self.minimum_credibility, self.fixed_credibility)


class PeriodWeights(FrozenModel):
    """Current and prior experience period weights."""

    current: float = Field(ge=0, le=1)
    prior: float = Field(ge=0, le=1)

    @model_validator(mode="after")
    def validate_sum(self):
        """Weights must sum to 1."""
        if abs(self.current + self.prior - 1.0) > WEIGHT_TOLERANCE:
            raise ValueError(
                f"period weights must sum to 1.0 (got {self.current} + {self.prior} "
                f"= {self.current + self.prior})"
            )
        return self


class RetentionComponent(FrozenModel):
    """A retention or expense charge, in PMPM dollars or as a fraction of a base."""

    value: float = Field(default=0.0, ge=0)
    basis: Literal["pmpm", "percent"] = Field(default="pmpm")

    def to_pmpm(self, base_pmpm: float) -> float:
        return retention_pmpm(self.value, self.basis, base_pmpm)


class ManualRateParameters(FrozenModel):
    """Manual (book) claims rates, PMPM."""

    medical: float = Field(ge=0)
    rx: float = Field(ge=0)

    @property
    def total(self) -> float:
        return self.medical + self.rx


class CarrierParameters(FrozenModel):
    """Fields common to every carrier parameter set."""

    carrier: ClassVar[Carrier]

    rounding: RoundingPolicy = Field(default_factory=RoundingPolicy)
    claimant_policy: ClaimantPolicy = Field(default=ClaimantPolicy.ABORT)
    current_premium_pmpm: Optional[float] = Field(
        default=None, gt=0, description="Current premium; falls back to earned premium"
    )


# =============================================================================
# AETNA
# =============================================================================

class AetnaTrend(FrozenModel):
    """Annual trend factors and projection months."""

    medical: float = Field(gt=0, description="Annual medical trend factor, e.g. 1.0969")
    rx: float = Field(gt=0, description="Annual rx trend factor, e.g. 1.0788")
    months: Optional[float] = Field(
        default=None, ge=0, description="Projection months (None = derived from dates)"
    )
    prior_months: Optional[float] = Field(
        default=None, ge=0,
        description="Prior projection months (None = months, else derived from dates)"
    )


class AetnaRetention(FrozenModel):
    """Aetna retention charges (percent basis is a fraction of blended claims)."""

    administration: RetentionComponent = Field(default_factory=RetentionComponent)
    commissions: RetentionComponent = Field(default_factory=RetentionComponent)
    premium_tax: RetentionComponent = Field(default_factory=RetentionComponent)
    risk_margin: RetentionComponent = Field(default_factory=RetentionComponent)
    other: RetentionComponent = Field(default_factory=RetentionComponent)

    def components(self) -> Dict[str, RetentionComponent]:
        return {
            'administration': self.administration,
            'commissions': self.commissions,
            'premium_tax': self.premium_tax,
            'risk_margin': self.risk_margin,
            'other': self.other,
        }


class AetnaParameters(CarrierParameters):
    """Aetna 28-line experience rating."""

    carrier: ClassVar[Carrier] = Carrier.AETNA

    deductible_suppression_factor: float = Field(gt=0)
    pooling_threshold: float = Field(gt=0)
    trend: AetnaTrend
    period_weights: PeriodWeights
    credibility: CredibilityParameters

    pooling_charge_pmpm: float = Field(default=0.0, ge=0)
    network_adjustment: float = Field(default=1.0, gt=0)
    plan_adjustment: float = Field(default=1.0, gt=0)
    demographic_adjustment: float = Field(default=1.0, gt=0)
    underwriting_adjustment: float = Field(default=1.0, gt=0)
    manual_rates: Optional[ManualRateParameters] = None
    large_claim_adjustment_pmpm: float = Field(default=0.0)
    non_benefit_expenses_pmpm: float = Field(default=0.0, ge=0)
    retention: AetnaRetention = Field(default_factory=AetnaRetention)
    rate_adjustment: float = Field(default=1.0, gt=0)
    producer_service_fee_pmpm: float = Field(default=0.0, ge=0)


# =============================================================================
# UHC
# =============================================================================

class UHCTrend(FrozenModel):
    """Annual trend rates and projection months per period."""

    medical_rate: float = Field(default=0.0969, gt=-1, description="Annual medical trend rate")
    rx_rate: float = Field(default=0.0788, gt=-1, description="Annual rx trend rate")
    current_months: float = Field(default=20.0, ge=0)
    prior_months: float = Field(default=28.0, ge=0)


class UHCManualRates(FrozenModel):
    """Manual premium build-up."""

    base_manual_pmpm: Optional[float] = Field(
        default=None, ge=0, description="Unadjusted manual premium (None = input manual rates)"
    )
    age_sex_adjustment: float = Field(default=1.168, gt=0)
    other_adjustment: float = Field(default=1.0, gt=0)


class UHCRetention(FrozenModel):
    """Retention percentages (e.g. 4.125 means 4.125% of premium)."""

    administrative: float = Field(ge=0, lt=100)
    taxes: float = Field(ge=0, lt=100)
    other: float = Field(default=0.0, ge=0, lt=100)

    @model_validator(mode="after")
    def validate_total(self):
        """Retention of 100% or more leaves nothing for claims."""
        if self.administrative + self.taxes + self.other >= 100:
            raise ValueError("total retention must be below 100%")
        return self

    @property
    def total_fraction(self) -> float:
        return (self.administrative + self.taxes + self.other) / 100.0


class UHCParameters(CarrierParameters):
    """UHC lettered (A..AM) renewal exhibit."""

    carrier: ClassVar[Carrier] = Carrier.UHC
    EXPECTED_THRESHOLD: ClassVar[float] = 125000.0

    pooling_threshold: float = Field(default=125000.0, gt=0)
    pooling_factor: float = Field(default=0.156, ge=0)
    underwriting_adjustment: float = Field(default=1.0, gt=0)
    plan_change_adjustment: float = Field(default=1.002, gt=0)
    trend: UHCTrend = Field(default_factory=UHCTrend)
    period_weights: PeriodWeights = Field(
        default_factory=lambda: PeriodWeights(current=0.70, prior=0.30)
    )
    credibility: CredibilityParameters = Field(
        default_factory=lambda: CredibilityParameters(formula="fixed", fixed_credibility=0.42)
    )
    manual: UHCManualRates = Field(default_factory=UHCManualRates)
    retention: Optional[UHCRetention] = Field(
        default=None, description="None = group-size retention tier"
    )
    member_change_adjustment: float = Field(default=1.0, gt=0)
    other_adjustment: float = Field(default=1.0, gt=0)
    reform_items: RetentionComponent = Field(default_factory=RetentionComponent)
    commission: Optional[RetentionComponent] = Field(
        default=None, description="None = group-size retention tier share"
    )
    fees: Optional[RetentionComponent] = Field(
        default=None, description="None = group-size retention tier share"
    )
    suggested_renewal_action: Optional[float] = Field(default=None, gt=-1)


# Group-size retention tiers: (minimum member months, total retention %)
UHC_RETENTION_TIERS = [
    (30000, 12.5),
    (10000, 14.0),
    (0, 15.5),
]

UHC_RETENTION_SPLIT = {
    'administrative': 0.33,
    'taxes': 0.17,
    'other': 0.10,
    'commission': 0.27,
    'fees': 0.13,
}


def uhc_retention_tier(total_member_months: float) -> float:
    """Total retention percentage for a group of the given size."""
    for minimum, pct in UHC_RETENTION_TIERS:
        if total_member_months > minimum:
            return pct
    return UHC_RETENTION_TIERS[-1][1]


# =============================================================================
# CIGNA
# =============================================================================

class CignaTrend(FrozenModel):
    annual: float = Field(default=1.085, gt=0)
    midpoint_months: Optional[float] = Field(
        default=12.0, ge=0, description="None = derived from dates"
    )


class ClaimsFluctuationCorridor(FrozenModel):
    """Reported corridor; the final claims cost is not clamped to it."""

    enabled: bool = False
    lower_bound: float = Field(default=0.85, gt=0)
    upper_bound: float = Field(default=1.15, gt=0)

    @model_validator(mode="after")
    def validate_bounds(self):
        if self.lower_bound > self.upper_bound:
            raise ValueError("corridor lower bound exceeds upper bound")
        return self


class CignaExpenses(FrozenModel):
    """
    Expense loadings.

    Percent-basis administration, commissions, profit and other loadings are
    fractions of the final claims cost; a percent-basis premium tax is a
    fraction of claims + administration + commissions.
    """

    administration: RetentionComponent = Field(
        default_factory=lambda: RetentionComponent(value=0.10, basis="percent"))
    commissions: RetentionComponent = Field(
        default_factory=lambda: RetentionComponent(value=0.04, basis="percent"))
    premium_tax: RetentionComponent = Field(
        default_factory=lambda: RetentionComponent(value=0.025, basis="percent"))
    profit_and_contingency: RetentionComponent = Field(
        default_factory=lambda: RetentionComponent(value=0.05, basis="percent"))
    other: RetentionComponent = Field(
        default_factory=lambda: RetentionComponent(value=0.02, basis="percent"))


class CignaParameters(CarrierParameters):
    """Cigna single-period PMPM and annual exhibit."""

    carrier: ClassVar[Carrier] = Carrier.CIGNA

    pooling_threshold: float = Field(default=50000.0, gt=0)
    demographic_adjustment: float = Field(default=1.0, gt=0)
    trend: CignaTrend = Field(default_factory=CignaTrend)
    large_claim_add_back_pmpm: Optional[float] = Field(
        default=None, ge=0, description="None = share of pooled claims"
    )
    large_claim_add_back_share: float = Field(default=0.30, ge=0, le=1)
    manual_rate_pmpm: Optional[float] = Field(
        default=None, ge=0, description="None = input manual rates"
    )
    experience_weight: Optional[float] = Field(
        default=0.80, ge=0, le=1, description="None = credibility formula"
    )
    credibility: CredibilityParameters = Field(default_factory=CredibilityParameters)
    claims_fluctuation_corridor: ClaimsFluctuationCorridor = Field(
        default_factory=ClaimsFluctuationCorridor
    )
    expenses: CignaExpenses = Field(default_factory=CignaExpenses)
    projected_member_months: Optional[float] = Field(default=None, gt=0)


# =============================================================================
# BCBS
# =============================================================================

# Group settings a BCBS plan inherits when it does not set its own
GROUP_INHERITED_FIELDS = ('current_premium_pmpm', 'claimant_policy', 'rounding')


class BCBSPeriodAssumptions(FrozenModel):
    """Per-period BCBS assumptions (one block for current, one for prior)."""

    ibnr_medical: float = Field(default=1.0, gt=0)
    ibnr_rx: float = Field(default=1.0, gt=0)
    trend_medical: float = Field(default=1.10, gt=0, description="Annual medical trend factor")
    trend_rx: float = Field(default=1.11, gt=0, description="Annual rx trend factor")
    trend_months: float = Field(default=23.0, ge=0)
    ffs_age_factor: float = Field(default=1.0, gt=0)
    pooling_charge_pmpm: Optional[float] = Field(
        default=None, ge=0, description="None = pooled claims spread over member months"
    )
    member_based_charges_pmpm: float = Field(default=0.0, ge=0)
    manual_claims_pmpm: float = Field(default=0.0, ge=0)
    retention_pmpm: float = Field(default=0.0, ge=0)
    premium_tax_pmpm: float = Field(default=0.0, ge=0)
    aca_adjustments_pmpm: float = Field(default=0.0)


class EnrollmentParameters(FrozenModel):
    single: int = Field(default=0, ge=0)
    couple: int = Field(default=0, ge=0)
    spmd: int = Field(default=0, ge=0)
    family: int = Field(default=0, ge=0)

    @property
    def total_count(self) -> int:
        return self.single + self.couple + self.spmd + self.family


class BCBSPlanParameters(CarrierParameters):
    """Single-plan BCBS experience rating."""

    carrier: ClassVar[Carrier] = Carrier.BCBS

    plan_id: str = Field(min_length=1)
    plan_name: str = ""
    pooling_threshold: float = Field(default=225000.0, gt=0)
    period_weights: PeriodWeights = Field(
        default_factory=lambda: PeriodWeights(current=0.67, prior=0.33)
    )
    credibility: CredibilityParameters = Field(
        default_factory=lambda: CredibilityParameters(formula="fixed", fixed_credibility=1.0)
    )
    current: BCBSPeriodAssumptions = Field(default_factory=BCBSPeriodAssumptions)
    prior: BCBSPeriodAssumptions = Field(default_factory=BCBSPeriodAssumptions)
    benefit_adjustment: float = Field(default=1.0, gt=0)
    underwriter_adjustment: float = Field(default=1.0, gt=0)
    pathway_to_savings: float = Field(default=0.995, gt=0)
    enrollment: Optional[EnrollmentParameters] = None
    enrollment_weight: Optional[float] = Field(default=None, ge=0)

    def resolved_enrollment_weight(self) -> float:
        """Explicit weight, else enrollment count, else 1."""
        if self.enrollment_weight is not None:
            return self.enrollment_weight
        if self.enrollment is not None:
            return float(self.enrollment.total_count)
        return 1.0


class BCBSParameters(CarrierParameters):
    """Multi-plan BCBS group."""

    carrier: ClassVar[Carrier] = Carrier.BCBS

    plans: List[BCBSPlanParameters] = Field(min_length=1)
    large_rate_action_threshold: float = Field(default=0.25, gt=0)

    @field_validator("plans")
    @classmethod
    def validate_unique_plans(cls, v: List[BCBSPlanParameters]) -> List[BCBSPlanParameters]:
        ids = [p.plan_id for p in v]
        if len(set(ids)) != len(ids):
            raise ValueError(f"duplicate plan ids: {ids}")
        return v

    def plan_parameters(self) -> List[BCBSPlanParameters]:
        """
        Plans with group-level settings filled in.

        current_premium_pmpm, claimant_policy and rounding given on the group
        apply to every plan that does not set its own.
        """
        shared = {name: getattr(self, name) for name in GROUP_INHERITED_FIELDS
                  if name in self.model_fields_set}
        plans = []
        for plan in self.plans:
            update = {name: value for name, value in shared.items()
                      if name not in plan.model_fields_set}
            plans.append(plan.model_copy(update=update) if update else plan)
        return plans


PARAMETER_MODELS = {
    Carrier.AETNA: AetnaParameters,
    Carrier.UHC: UHCParameters,
    Carrier.CIGNA: CignaParameters,
    Carrier.BCBS: BCBSParameters,
}

AnyParameters = Union[AetnaParameters, UHCParameters, CignaParameters,
                      BCBSParameters, BCBSPlanParameters]


# =============================================================================
# CONSTRUCTION
# =============================================================================

def _problems(error: ValidationError) -> List[str]:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item['loc']) or "<root>"
        problems.append(f"{location}: {item['msg']}")
    return problems


def build_parameters(carrier: Union[Carrier, str],
                     data: Union[Mapping[str, Any], CarrierParameters]) -> AnyParameters:
    """
    Validate a parameter mapping for a carrier.

    Args:
        carrier: Carrier identity
        data: Parameter mapping, or an already-built parameter model

    Returns:
        Frozen carrier parameter model

    Raises:
        InvalidParametersError: missing or out-of-domain parameters
    """
    carrier = Carrier.parse(carrier)
    model = PARAMETER_MODELS[carrier]

    if isinstance(data, CarrierParameters):
        if isinstance(data, model) or (carrier == Carrier.BCBS
                                       and isinstance(data, BCBSPlanParameters)):
            return data
        raise InvalidParametersError(
            carrier.value, [f"expected {model.__name__}, got {type(data).__name__}"]
        )

    try:
        return model.model_validate(dict(data))
    except ValidationError as exc:
        raise InvalidParametersError(carrier.value, _problems(exc)) from exc


def create_default_parameters(carrier: Union[Carrier, str],
                              universal_input: UniversalInput) -> AnyParameters:
    """
    Derive a complete parameter set from the group's own experience.

    Used when a case arrives without carrier assumptions. Manual rates and
    current premium are loaded from the experience PMPM; retention follows
    each carrier's standard loading.

    Args:
        carrier: Carrier identity
        universal_input: The renewal input

    Returns:
        Frozen carrier parameter model
    """
    carrier = Carrier.parse(carrier)
    medical_pmpm, rx_pmpm = universal_input.experience_pmpm()
    experience = medical_pmpm + rx_pmpm
    manual = universal_input.manual_rates
    logger.info(f"Deriving default {carrier.value} parameters from experience "
                f"PMPM ${experience:,.2f}")

    if carrier == Carrier.AETNA:
        retention = experience * 0.127
        split = {'administration': 0.35, 'commissions': 0.25, 'premium_tax': 0.15,
                 'risk_margin': 0.20, 'other': 0.05}
        return build_parameters(carrier, {
            'deductible_suppression_factor': 1.0,
            'pooling_threshold': 175000.0,
            'pooling_charge_pmpm': experience * 0.097,
            'trend': {'medical': 1.0969, 'rx': 1.0788},
            'period_weights': {'current': 0.75, 'prior': 0.25},
            'credibility': {'formula': 'sqrt', 'full_credibility_member_months': 12000.0},
            'manual_rates': ({'medical': manual.medical, 'rx': manual.rx} if manual else
                             {'medical': medical_pmpm * 1.15, 'rx': rx_pmpm * 1.15}),
            'non_benefit_expenses_pmpm': retention * 0.40,
            'retention': {name: {'value': retention * share} for name, share in split.items()},
            'current_premium_pmpm': experience * 1.16 if experience > 0 else None,
        })

    if carrier == Carrier.UHC:
        total_mm = sum(p.member_months for p in universal_input.monthly_claims)
        pct = uhc_retention_tier(total_mm)
        return build_parameters(carrier, {
            'manual': {'base_manual_pmpm': experience * 1.15 if experience > 0
                       else (manual.total if manual else None)},
            'retention': {'administrative': pct * UHC_RETENTION_SPLIT['administrative'],
                          'taxes': pct * UHC_RETENTION_SPLIT['taxes'],
                          'other': pct * UHC_RETENTION_SPLIT['other']},
            'commission': {'value': pct * UHC_RETENTION_SPLIT['commission'] / 100.0,
                           'basis': 'percent'},
            'fees': {'value': pct * UHC_RETENTION_SPLIT['fees'] / 100.0, 'basis': 'percent'},
            'current_premium_pmpm': experience * 1.16 if experience > 0 else None,
        })

    if carrier == Carrier.CIGNA:
        return build_parameters(carrier, {
            'manual_rate_pmpm': experience * 1.20 if experience > 0
            else (manual.total if manual else None),
            'current_premium_pmpm': experience * 1.22 if experience > 0 else None,
        })

    manual_total = manual.total if manual else experience * 1.15
    return build_parameters(carrier, {'plans': [{
        'plan_id': 'GROUP',
        'plan_name': universal_input.case_id,
        'current': {'ibnr_medical': 1.024, 'ibnr_rx': 1.002, 'trend_medical': 1.1003,
                    'trend_rx': 1.1136, 'trend_months': 23.0, 'ffs_age_factor': 1.0214,
                    'manual_claims_pmpm': manual_total * 1.2,
                    'retention_pmpm': experience * 0.17,
                    'premium_tax_pmpm': experience * 0.0116,
                    'aca_adjustments_pmpm': experience * 0.0005},
        'prior': {'ibnr_medical': 1.0, 'ibnr_rx': 1.0, 'trend_medical': 1.1000,
                  'trend_rx': 1.1073, 'trend_months': 35.0, 'ffs_age_factor': 1.0375,
                  'manual_claims_pmpm': manual_total * 0.8,
                  'retention_pmpm': experience * 0.15,
                  'premium_tax_pmpm': experience * 0.0104,
                  'aca_adjustments_pmpm': experience * 0.0004},
        'current_premium_pmpm': experience * 1.16 if experience > 0 else None,
    }]})
