"""
renewal_engine/claimants.py - Large-Claimant Pooling

Removes the portion of each high-cost claimant above the carrier's pooling
threshold from the experience being rated.

Pooling Rules:
- A claimant belongs to a period when start ≤ incurred_date ≤ end
- Poolable amount: max(0, total − threshold)
- Annualized periods annualize claimant totals by the same factor before
  the threshold comparison
- The excess is split between medical and rx in proportion to the
  claimant's medical and rx amounts (all medical when the split is unknown)
- Poolable PMPM: pooled dollars / period exposure

Malformed claimants raise InvalidClaimantError under ClaimantPolicy.ABORT
or are excluded with a warning under ClaimantPolicy.DROP.

Author: Actuarial Pipeline Project
License: MIT
"""

from typing import List, Optional, Sequence, Tuple
from dataclasses import dataclass
from enum import Enum
import logging

from .errors import InvalidClaimantError
from .financials import guarded_divide
from .lines import CoverageAmounts, ZERO
from .models import LargeClaimant
from .periods import ExperiencePeriod
from .quality import DataQualityRecorder

logger = logging.getLogger(__name__)

AMOUNT_TOLERANCE = 0.01


class ClaimantPolicy(Enum):
    """Handling of claimant records that fail validation."""
    ABORT = "abort"
    DROP = "drop"


@dataclass(frozen=True)
class PooledClaimant:
    """A claimant included in a period, with its pooled excess."""
    claimant: LargeClaimant
    annualized_total: float
    excess: CoverageAmounts


@dataclass(frozen=True)
class PoolingResult:
    """Pooled claims for one experience period."""
    threshold: float
    period_label: str
    pooled: CoverageAmounts = ZERO
    poolable_pmpm: CoverageAmounts = ZERO
    included: Tuple[PooledClaimant, ...] = ()
    excluded: Tuple[LargeClaimant, ...] = ()
    annualization_factor: float = 1.0
    warnings: Tuple[str, ...] = ()

    @property
    def pooled_count(self) -> int:
        return sum(1 for c in self.included if c.excess.total > 0)


def validate_claimant(claimant: LargeClaimant) -> None:
    """
    Check one claimant record.

    Raises:
        InvalidClaimantError: missing total, negative amounts, or a total
            that disagrees with its medical and rx parts
    """
    cid = claimant.claimant_id
    if claimant.total_amount is None:
        raise InvalidClaimantError(cid, "total amount is missing")
    for name in ('total_amount', 'medical_amount', 'rx_amount'):
        value = getattr(claimant, name)
        if value is not None and value < 0:
            raise InvalidClaimantError(cid, f"{name} cannot be negative ({value})")
    if claimant.medical_amount is not None and claimant.rx_amount is not None:
        parts = claimant.medical_amount + claimant.rx_amount
        if abs(parts - claimant.total_amount) > AMOUNT_TOLERANCE:
            raise InvalidClaimantError(
                cid, f"total {claimant.total_amount:,.2f} does not equal "
                     f"medical + rx ({parts:,.2f})"
            )


def screen_claimants(claimants: Sequence[LargeClaimant],
                     policy: ClaimantPolicy = ClaimantPolicy.ABORT
                     ) -> Tuple[List[LargeClaimant], List[LargeClaimant], List[str]]:
    """
    Apply the claimant policy to a claimant list.

    Returns:
        (valid claimants, excluded claimants, warnings)
    """
    valid, excluded, warnings = [], [], []
    for claimant in claimants:
        if not claimant.claimant_id and claimant.total_amount is None:
            warnings.append(f"Skipped empty claimant record incurred "
                            f"{claimant.incurred_date.isoformat()}")
            excluded.append(claimant)
            continue
        try:
            validate_claimant(claimant)
        except InvalidClaimantError as exc:
            if policy == ClaimantPolicy.ABORT:
                raise
            warnings.append(f"Dropped claimant: {exc}")
            excluded.append(claimant)
            continue
        valid.append(claimant)
    return valid, excluded, warnings


def split_excess(claimant: LargeClaimant, excess: float) -> CoverageAmounts:
    """Allocate a claimant's excess between medical and rx."""
    medical, rx = claimant.medical_amount, claimant.rx_amount
    if medical is not None and rx is not None and medical + rx > 0:
        rx_excess = excess * rx / (medical + rx)
        return CoverageAmounts.amounts(excess - rx_excess, rx_excess)
    return CoverageAmounts.amounts(excess, 0.0)


def process(claimants: Sequence[LargeClaimant], threshold: float,
            period: Optional[ExperiencePeriod],
            policy: ClaimantPolicy = ClaimantPolicy.ABORT,
            recorder: Optional[DataQualityRecorder] = None) -> PoolingResult:
    """
    Pool large claimants of one experience period.

    Args:
        claimants: All large claimants supplied with the input
        threshold: Pooling threshold in dollars
        period: The period to pool; None yields an empty result
        policy: Abort or drop on malformed claimant records
        recorder: Quality recorder for division guards and warnings

    Returns:
        PoolingResult with pooled dollars and poolable PMPM
    """
    recorder = recorder if recorder is not None else DataQualityRecorder()
    valid, excluded, warnings = screen_claimants(claimants, policy)
    recorder.extend(warnings)

    if period is None:
        return PoolingResult(threshold=threshold, period_label='prior',
                             excluded=tuple(excluded), warnings=tuple(warnings))

    factor = period.annualization_factor
    included = []
    pooled = ZERO
    for claimant in valid:
        if not period.contains(claimant.incurred_date):
            continue
        annualized_total = claimant.total_amount * factor
        excess = split_excess(claimant, max(0.0, annualized_total - threshold))
        included.append(PooledClaimant(claimant, annualized_total, excess))
        pooled = CoverageAmounts.amounts(pooled.med_cap + excess.med_cap,
                                         pooled.rx + excess.rx)

    exposure = period.exposure
    label = f"{period.label} pooled claims PMPM (zero member months)"
    poolable_pmpm = pooled.scaled(guarded_divide(1.0, exposure, label, recorder))

    logger.info(f"Pooling {period.label}: {len(included)} claimants in period, "
                f"${pooled.total:,.0f} above ${threshold:,.0f} "
                f"({poolable_pmpm.total:.2f} PMPM)")

    return PoolingResult(
        threshold=threshold,
        period_label=period.label,
        pooled=pooled,
        poolable_pmpm=poolable_pmpm,
        included=tuple(included),
        excluded=tuple(excluded),
        annualization_factor=factor,
        warnings=tuple(warnings),
    )
