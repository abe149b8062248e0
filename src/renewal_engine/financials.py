"""
renewal_engine/financials.py - Renewal Rating Mathematics

Pure functions shared by every carrier methodology.

Mathematical Framework:
- Compounded trend: τ = f^{m/12} (annual factor f over m months)
- Trend from rate: τ = (1 + r)^{m/12}
- Credibility: z = min(1, √(MM / MM_full)) or min(1, MM / MM_full), floored
  at the minimum credibility, always within [0, 1]
- Credibility blend: z·E + (1 − z)·M
- Period weighting: w_c·C + w_p·P (w_c + w_p = 1)
- Rate change: (final − current) / current

Zero denominators raise DivisionGuardError, which the guarded helpers catch,
replace with a 0.0 sentinel and record on the calculation's quality recorder.

Author: Actuarial Pipeline Project
License: MIT
"""

import numpy as np
from typing import Optional, Tuple
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_EVEN, ROUND_HALF_UP
import logging

from .errors import DivisionGuardError
from .quality import DataQualityRecorder

logger = logging.getLogger(__name__)

ROUNDING_METHODS = {
    'half_up': ROUND_HALF_UP,
    'half_even': ROUND_HALF_EVEN,
}


# =============================================================================
# TREND
# =============================================================================

def trend_factor(annual_factor: float, months: float) -> float:
    """
    Compound an annual trend factor over a projection period.

    Formula: τ = f^{m/12}

    Args:
        annual_factor: Annual trend factor (e.g. 1.0969 for 9.69%)
        months: Months from experience midpoint to renewal midpoint

    Returns:
        Projection trend factor
    """
    return float(np.power(annual_factor, months / 12.0))


def trend_factor_from_rate(rate: float, months: float) -> float:
    """Formula: τ = (1 + r)^{m/12}"""
    return trend_factor(1.0 + rate, months)


@dataclass(frozen=True)
class TrendProjection:
    """
    Medical and pharmacy trend applied over one projection period.

    The total column is weighted by the claims it trends, falling back to
    the simple average when there are no claims to weight by.
    """

    medical_annual: float
    rx_annual: float
    months: float

    @property
    def medical_factor(self) -> float:
        return trend_factor(self.medical_annual, self.months)

    @property
    def rx_factor(self) -> float:
        return trend_factor(self.rx_annual, self.months)

    def total_factor(self, medical_amount: float, rx_amount: float) -> float:
        return claims_weighted_factor(self.medical_factor, self.rx_factor,
                                      medical_amount, rx_amount)


def claims_weighted_factor(medical_factor: float, rx_factor: float,
                           medical_amount: float, rx_amount: float) -> float:
    """Blend two factors by the claims they apply to."""
    total = medical_amount + rx_amount
    if total <= 0:
        return (medical_factor + rx_factor) / 2.0
    return float(np.average([medical_factor, rx_factor],
                            weights=[medical_amount, rx_amount]))


# =============================================================================
# CREDIBILITY AND WEIGHTING
# =============================================================================

def credibility(member_months: float, formula: str,
                full_credibility_member_months: float,
                minimum: float = 0.0,
                fixed: Optional[float] = None) -> float:
    """
    Credibility assigned to a group's own experience.

    Formula (sqrt): z = √(MM / MM_full)
    Formula (linear): z = MM / MM_full
    Formula (fixed): z = fixed

    The formula result is capped at 1 and floored at the minimum
    credibility; the returned value is always within [0, 1].

    Args:
        member_months: Exposure in the credibility period
        formula: 'sqrt', 'linear' or 'fixed'
        full_credibility_member_months: Exposure for full credibility
        minimum: Credibility floor
        fixed: Credibility used by the fixed formula

    Returns:
        Credibility factor z
    """
    if formula == 'fixed':
        z = fixed if fixed is not None else 1.0
    else:
        ratio = max(0.0, member_months) / full_credibility_member_months
        z = float(np.sqrt(ratio)) if formula == 'sqrt' else ratio
        z = max(min(1.0, z), minimum)
    return float(np.clip(z, 0.0, 1.0))


def blend(experience: float, manual: float, z: float) -> float:
    """Formula: z·E + (1 − z)·M"""
    return z * experience + (1.0 - z) * manual


def effective_weights(current_weight: float, prior_weight: float,
                      has_prior: bool, prior_months: float = 12.0) -> Tuple[float, float]:
    """
    Period weights actually applied.

    All weight goes to current without a prior. A prior shorter than twelve
    months keeps only its share of the prior weight; the rest moves to current.

    Formula (short prior): w_p' = w_p × n/12, w_c' = 1 − w_p'
    """
    if not has_prior:
        return 1.0, 0.0
    if prior_months < 12:
        prior_weight = prior_weight * max(0.0, prior_months) / 12.0
        current_weight = 1.0 - prior_weight
    return current_weight, prior_weight


def retention_pmpm(value: float, basis: str, base_pmpm: float) -> float:
    """Normalize a retention component to PMPM (percent basis is a fraction of base)."""
    if basis == 'percent':
        return value * base_pmpm
    return value


# =============================================================================
# GUARDED DIVISION
# =============================================================================

def divide(numerator: float, denominator: float, label: str,
           substitute: float = 0.0) -> float:
    """Divide, raising DivisionGuardError on a zero denominator."""
    if denominator == 0:
        raise DivisionGuardError(label, substitute)
    return numerator / denominator


def guarded_divide(numerator: float, denominator: float, label: str,
                   recorder: DataQualityRecorder, substitute: float = 0.0) -> float:
    """Divide, recovering a zero denominator with a sentinel and a warning."""
    try:
        return divide(numerator, denominator, label, substitute)
    except DivisionGuardError as exc:
        recorder.record_division_guard(exc)
        return exc.substitute


def rate_change(final_premium: float, current_premium: float,
                recorder: DataQualityRecorder, label: str = "rate change") -> float:
    """Formula: (final − current) / current"""
    return guarded_divide(final_premium - current_premium, current_premium,
                          f"{label} (current premium is zero)", recorder)


# =============================================================================
# ROUNDING
# =============================================================================

def apply_rounding(value: float, places: Optional[int], method: str = 'half_up') -> float:
    """
    Round with decimal arithmetic.

    Args:
        value: Value to round
        places: Decimal places; None leaves the value at full precision
        method: 'half_up' or 'half_even'

    Returns:
        Rounded value
    """
    if places is None:
        return value
    quantum = Decimal(1).scaleb(-places)
    rounded = Decimal(repr(value)).quantize(quantum, rounding=ROUNDING_METHODS[method])
    return float(rounded)
