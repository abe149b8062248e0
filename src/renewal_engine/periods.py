"""
renewal_engine/periods.py - Experience Period Normalizer

Splits a chronological monthly claims series into rating periods.

Period Policy (n = months supplied):
- n ≥ 24: most recent 12 months are "current", the preceding 12 are "prior"
- 13 ≤ n ≤ 23: most recent 12 are "current", the remainder is "prior"
  (not annualized)
- 4 ≤ n ≤ 12: single "current" period, annualized by 12/n; no prior
- n < 4: InsufficientDataError

The series order is trusted as given and only its cardinality is counted;
months need not be contiguous.

Author: Actuarial Pipeline Project
License: MIT
"""

from typing import Dict, List, Optional, Sequence, Tuple
from dataclasses import dataclass
from datetime import date
import calendar
import logging

from .errors import InsufficientDataError
from .models import EffectiveDates, LargeClaimant, MonthlyClaimsPoint

logger = logging.getLogger(__name__)

MINIMUM_MONTHS = 4
PERIOD_MONTHS = 12
DAYS_PER_MONTH = 365.25 / 12


@dataclass(frozen=True)
class ExperiencePeriod:
    """A contiguous block of experience months rated together."""
    label: str
    start: date
    end: date
    months: int
    member_months: float
    medical_claims: float
    rx_claims: float
    annualization_factor: float = 1.0
    points: Tuple[MonthlyClaimsPoint, ...] = ()

    @property
    def total_claims(self) -> float:
        return self.medical_claims + self.rx_claims

    @property
    def annualized(self) -> bool:
        return self.annualization_factor != 1.0

    @property
    def exposure(self) -> float:
        """Member months after annualization."""
        return self.member_months * self.annualization_factor

    @property
    def midpoint(self) -> date:
        return self.start + (self.end - self.start) / 2

    def contains(self, when: date) -> bool:
        return self.start <= when <= self.end

    def earned_premium(self) -> Optional[float]:
        """Total earned premium, or None when no month reports premium."""
        reported = [p.earned_premium for p in self.points if p.earned_premium is not None]
        if not reported:
            return None
        return float(sum(reported))

    def earned_premium_member_months(self) -> float:
        return float(sum(p.member_months for p in self.points if p.earned_premium is not None))


@dataclass(frozen=True)
class ExperiencePeriods:
    """Normalized current and (optional) prior experience."""
    current: ExperiencePeriod
    prior: Optional[ExperiencePeriod] = None
    months_supplied: int = 0
    months_ignored: int = 0

    @property
    def has_prior(self) -> bool:
        return self.prior is not None

    @property
    def total_member_months(self) -> float:
        prior = self.prior.member_months if self.prior else 0.0
        return self.current.member_months + prior

    @property
    def annualization_applied(self) -> bool:
        return self.current.annualized


def _month_end(month: date) -> date:
    return month.replace(day=calendar.monthrange(month.year, month.month)[1])


def build_period(label: str, points: Sequence[MonthlyClaimsPoint],
                 annualization_factor: float = 1.0) -> ExperiencePeriod:
    """Aggregate a block of months into an experience period."""
    points = tuple(points)
    return ExperiencePeriod(
        label=label,
        start=points[0].month,
        end=_month_end(points[-1].month),
        months=len(points),
        member_months=float(sum(p.member_months for p in points)),
        medical_claims=float(sum(p.medical_claims for p in points)),
        rx_claims=float(sum(p.rx_claims for p in points)),
        annualization_factor=annualization_factor,
        points=points,
    )


def normalize(series: Sequence[MonthlyClaimsPoint]) -> ExperiencePeriods:
    """
    Split a monthly claims series into current and prior periods.

    Args:
        series: Monthly claims points, oldest first

    Returns:
        ExperiencePeriods

    Raises:
        InsufficientDataError: fewer than 4 months supplied
    """
    series = tuple(series)
    n = len(series)
    if n < MINIMUM_MONTHS:
        raise InsufficientDataError(n, MINIMUM_MONTHS)

    if n > PERIOD_MONTHS:
        current = build_period('current', series[-PERIOD_MONTHS:])
        older = series[:-PERIOD_MONTHS]
        ignored = max(0, len(older) - PERIOD_MONTHS)
        prior = build_period('prior', older[-PERIOD_MONTHS:])
        if ignored:
            logger.info(f"Ignoring {ignored} months older than the prior period")
        logger.info(f"Periods normalized: current={current.months} mos "
                    f"({current.start} to {current.end}), prior={prior.months} mos")
        return ExperiencePeriods(current=current, prior=prior,
                                 months_supplied=n, months_ignored=ignored)

    factor = PERIOD_MONTHS / n
    current = build_period('current', series, annualization_factor=factor)
    logger.info(f"Periods normalized: current={n} mos, no prior"
                + (f", annualized x{factor:.4f}" if current.annualized else ""))
    return ExperiencePeriods(current=current, prior=None, months_supplied=n)


def annualize(period: ExperiencePeriod) -> Dict[str, float]:
    """Annualized member months and claims of a period."""
    factor = period.annualization_factor
    return {
        'member_months': period.member_months * factor,
        'medical_claims': period.medical_claims * factor,
        'rx_claims': period.rx_claims * factor,
        'total_claims': period.total_claims * factor,
    }


def months_to_midpoint(period: ExperiencePeriod, effective_dates: EffectiveDates) -> float:
    """
    Months from the experience period midpoint to the renewal period midpoint.

    Formula: (renewal_mid − experience_mid).days / (365.25 / 12)
    """
    days = (effective_dates.midpoint - period.midpoint).days
    return days / DAYS_PER_MONTH


def assess_data_quality(series: Sequence[MonthlyClaimsPoint],
                        claimants: Sequence[LargeClaimant],
                        periods: ExperiencePeriods) -> List[str]:
    """
    Warnings describing the limits of the supplied experience.

    Zero member-month months are reported here; the division itself is
    guarded wherever a PMPM is formed.
    """
    warnings = []
    current = periods.current

    if current.months < PERIOD_MONTHS:
        warnings.append(f"Limited data: Only {current.months} months in current period. "
                        f"Results will be annualized.")
    if current.months < 6:
        warnings.append("Very limited data: Less than 6 months available. "
                        "Consider supplementing with industry benchmarks.")
    if not periods.has_prior:
        warnings.append("No prior period available for trend analysis. "
                        "Results based on current period only.")

    no_claims = [p.month.strftime('%Y-%m') for p in series if p.total_claims == 0]
    if no_claims:
        warnings.append(f"{len(no_claims)} months have no claims data: {', '.join(no_claims)}")

    no_exposure = [p.month.strftime('%Y-%m') for p in series if p.member_months == 0]
    if no_exposure:
        warnings.append(f"{len(no_exposure)} months have no member months: "
                        f"{', '.join(no_exposure)}")

    for claimant in claimants:
        in_current = current.contains(claimant.incurred_date)
        in_prior = periods.prior is not None and periods.prior.contains(claimant.incurred_date)
        if not (in_current or in_prior):
            warnings.append(f"Claimant {claimant.claimant_id} with incurred date "
                            f"{claimant.incurred_date.isoformat()} falls outside "
                            f"experience periods")
    return warnings
