"""
renewal_engine/models.py - Renewal Input Records

Immutable, typed input records consumed by every carrier calculator.

Records:
- MonthlyClaimsPoint: one calendar month of exposure and paid claims
- LargeClaimant: one high-cost claimant (validated by the claimant processor)
- EffectiveDates: the renewal (projection) period
- ManualRates: carrier manual (book) rates, PMPM
- EnrollmentTiers: plan enrollment by coverage tier
- PlanExperience: per-plan claims history for multi-plan groups
- UniversalInput: the complete carrier-neutral input

Invariant: total claims = medical + rx for every point. The total is derived,
so it can never drift from its parts.

Author: Actuarial Pipeline Project
License: MIT
"""

from typing import Dict, List, Optional, Tuple
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
import logging

from .errors import InvalidInputError, InvalidParametersError

logger = logging.getLogger(__name__)


class Carrier(Enum):
    """Supported carrier methodologies."""
    AETNA = "AETNA"
    UHC = "UHC"
    CIGNA = "CIGNA"
    BCBS = "BCBS"

    @classmethod
    def parse(cls, value) -> "Carrier":
        """Resolve a carrier from an enum member or a case-insensitive name."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise InvalidParametersError(
                None, [f"Unknown carrier '{value}' (expected one of "
                       f"{', '.join(c.value for c in cls)})"]
            ) from None


# Rate factors relative to a single enrollee
TIER_FACTORS = {
    'single': 1.0,
    'couple': 2.0,
    'spmd': 1.8,
    'family': 3.0,
}


@dataclass(frozen=True)
class MonthlyClaimsPoint:
    """One month of claims experience."""
    month: date
    member_months: float
    medical_claims: float
    rx_claims: float
    medical_member_months: Optional[float] = None
    rx_member_months: Optional[float] = None
    earned_premium: Optional[float] = None

    def __post_init__(self):
        for name in ('member_months', 'medical_claims', 'rx_claims'):
            if getattr(self, name) < 0:
                raise InvalidInputError(
                    f"Month {self.month.isoformat()}: {name} cannot be negative "
                    f"({getattr(self, name)})"
                )
        if self.month.day != 1:
            # Month labels are calendar months; normalize to the first day
            object.__setattr__(self, 'month', self.month.replace(day=1))

    @property
    def total_claims(self) -> float:
        return self.medical_claims + self.rx_claims


@dataclass(frozen=True)
class LargeClaimant:
    """
    High-cost claimant record.

    Amounts are left optional here so that the claimant processor can
    decide whether a malformed record aborts the calculation or is dropped.
    """
    claimant_id: Optional[str]
    incurred_date: date
    total_amount: Optional[float]
    medical_amount: Optional[float] = None
    rx_amount: Optional[float] = None
    diagnosis: str = ""
    claim_type: str = ""


@dataclass(frozen=True)
class EffectiveDates:
    """Renewal period boundaries."""
    renewal_start: date
    renewal_end: date

    def __post_init__(self):
        if self.renewal_end < self.renewal_start:
            raise InvalidInputError(
                f"Renewal end {self.renewal_end.isoformat()} precedes "
                f"renewal start {self.renewal_start.isoformat()}"
            )

    @property
    def midpoint(self) -> date:
        return self.renewal_start + (self.renewal_end - self.renewal_start) / 2


@dataclass(frozen=True)
class ManualRates:
    """Carrier manual rates (PMPM)."""
    medical: float
    rx: float

    def __post_init__(self):
        if self.medical < 0 or self.rx < 0:
            raise InvalidInputError(f"Manual rates cannot be negative: {self}")

    @property
    def total(self) -> float:
        return self.medical + self.rx


@dataclass(frozen=True)
class EnrollmentTiers:
    """Enrollment counts by coverage tier."""
    single: int = 0
    couple: int = 0
    spmd: int = 0
    family: int = 0

    def __post_init__(self):
        if min(self.single, self.couple, self.spmd, self.family) < 0:
            raise InvalidInputError(f"Enrollment counts cannot be negative: {self}")

    @property
    def total_count(self) -> int:
        return self.single + self.couple + self.spmd + self.family

    def rate_units(self) -> float:
        """Enrollment expressed in single-rate units."""
        return sum(getattr(self, tier) * factor for tier, factor in TIER_FACTORS.items())


@dataclass(frozen=True)
class PlanExperience:
    """Claims history for a single plan within a multi-plan group."""
    plan_id: str
    monthly_claims: Tuple[MonthlyClaimsPoint, ...]
    large_claimants: Tuple[LargeClaimant, ...] = ()
    plan_name: str = ""

    def __post_init__(self):
        object.__setattr__(self, 'monthly_claims', tuple(self.monthly_claims))
        object.__setattr__(self, 'large_claimants', tuple(self.large_claimants))
        validate_series(self.monthly_claims)


@dataclass(frozen=True)
class UniversalInput:
    """
    Carrier-neutral renewal input.

    monthly_claims must be unique calendar months in strictly increasing
    order; the period normalizer relies on that order and never re-sorts.
    """
    carrier: Carrier
    case_id: str
    effective_dates: EffectiveDates
    monthly_claims: Tuple[MonthlyClaimsPoint, ...]
    manual_rates: Optional[ManualRates] = None
    large_claimants: Tuple[LargeClaimant, ...] = ()
    plan_experience: Dict[str, PlanExperience] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, 'carrier', Carrier.parse(self.carrier))
        object.__setattr__(self, 'monthly_claims', tuple(self.monthly_claims))
        object.__setattr__(self, 'large_claimants', tuple(self.large_claimants))
        validate_series(self.monthly_claims)

    @property
    def months_available(self) -> int:
        return len(self.monthly_claims)

    def experience_pmpm(self) -> Tuple[float, float]:
        """Medical and rx PMPM over the whole series (0.0 when no exposure)."""
        member_months = sum(p.member_months for p in self.monthly_claims)
        if member_months <= 0:
            return 0.0, 0.0
        medical = sum(p.medical_claims for p in self.monthly_claims)
        rx = sum(p.rx_claims for p in self.monthly_claims)
        return medical / member_months, rx / member_months


def validate_series(points: Tuple[MonthlyClaimsPoint, ...]) -> None:
    """Reject duplicate or out-of-order month labels."""
    months: List[date] = [p.month for p in points]
    if len(set(months)) != len(months):
        raise InvalidInputError("Monthly claims contain duplicate month labels")
    for earlier, later in zip(months, months[1:]):
        if later <= earlier:
            raise InvalidInputError(
                f"Monthly claims are not in chronological order: "
                f"{earlier.isoformat()} followed by {later.isoformat()}"
            )
