"""
renewal_engine/calculator.py - Carrier Calculator Contract

Every carrier methodology implements one contract:

    calculate(universal_input, parameters) -> RenewalResult

The shared preparation is done here once per calculation:
1. Period normalization (current / prior experience)
2. Data-quality assessment
3. Large-claimant pooling for each period
4. Resolution of the current premium

Each carrier then appends its numbered lines to the calculation's LineBook
in its own methodology order. Calculators hold no per-calculation state, so
one instance can serve any number of calculations.

Author: Actuarial Pipeline Project
License: MIT
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional, Sequence, Union
from dataclasses import dataclass, field
import logging

from .claimants import PoolingResult, process
from .errors import InvalidParametersError
from .financials import apply_rounding, effective_weights, guarded_divide, rate_change
from .lines import CoverageAmounts, LineBook, ZERO
from .models import Carrier, LargeClaimant, MonthlyClaimsPoint, UniversalInput
from .parameters import CarrierParameters, build_parameters
from .periods import (ExperiencePeriod, ExperiencePeriods, assess_data_quality,
                      months_to_midpoint, normalize)
from .quality import DataQualityRecorder
from .results import MemberMonthsUsed, RenewalResult, RenewalSummary

logger = logging.getLogger(__name__)


@dataclass
class RatingContext:
    """Working state of a single calculation."""
    universal_input: UniversalInput
    parameters: Any
    periods: ExperiencePeriods
    recorder: DataQualityRecorder
    book: LineBook
    pooling_current: PoolingResult
    pooling_prior: PoolingResult
    current_premium: float
    current_premium_source: str
    credibility: float = 0.0
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_prior(self) -> bool:
        return self.periods.has_prior

    @property
    def rounding(self):
        return self.parameters.rounding

    def period(self, label: str) -> Optional[ExperiencePeriod]:
        return self.periods.current if label == 'current' else self.periods.prior

    def divide(self, numerator: float, denominator: float, label: str) -> float:
        return guarded_divide(numerator, denominator, label, self.recorder)

    def incurred_pmpm(self, label: str) -> CoverageAmounts:
        """Medical and rx incurred claims PMPM of a period (ZERO when absent)."""
        period = self.period(label)
        if period is None:
            return ZERO
        guard = f"{label} incurred claims PMPM (zero member months)"
        scale = self.divide(1.0, period.member_months, guard)
        return CoverageAmounts.amounts(period.medical_claims * scale, period.rx_claims * scale)

    def pooled_pmpm(self, label: str) -> CoverageAmounts:
        pooling = self.pooling_current if label == 'current' else self.pooling_prior
        return pooling.poolable_pmpm

    def trend_months(self, explicit: Optional[float], label: str) -> float:
        """Explicit projection months, else months from period to renewal midpoint."""
        if explicit is not None:
            return explicit
        period = self.period(label)
        if period is None:
            return 0.0
        months = months_to_midpoint(period, self.universal_input.effective_dates)
        self.details.setdefault('derived_trend_months', {})[label] = months
        return months

    @property
    def prior_months(self) -> int:
        return self.periods.prior.months if self.periods.prior else 0

    def weights(self, current_weight: float, prior_weight: float):
        """Applied period weights; a short prior has its weight scaled by months/12."""
        wc, wp = effective_weights(current_weight, prior_weight, self.has_prior,
                                   self.prior_months)
        if self.has_prior and wp != prior_weight:
            self.recorder.warn(f"Short prior period: {self.prior_months} months; prior "
                               f"weight reduced from {prior_weight:.2%} to {wp:.2%}")
        return wc, wp

    def round_premium(self, value: float) -> float:
        return apply_rounding(value, self.rounding.premium_places, self.rounding.method)

    def rate_change(self, final_premium: float, current_premium: float) -> float:
        change = rate_change(final_premium, current_premium, self.recorder)
        return apply_rounding(change, self.rounding.rate_places, self.rounding.method)

    def member_months_used(self, current_weight: float, prior_weight: float) -> MemberMonthsUsed:
        current = self.periods.current.member_months
        prior = self.periods.prior.member_months if self.periods.prior else 0.0
        wc, wp = self.weights(current_weight, prior_weight)
        return MemberMonthsUsed(current=current, prior=prior, weighted=current * wc + prior * wp)


def resolve_current_premium(parameters: CarrierParameters,
                            periods: ExperiencePeriods, carrier: Carrier):
    """
    Current premium PMPM and where it came from.

    A supplied parameter wins; otherwise earned premium of the current
    period is used.

    Raises:
        InvalidParametersError: neither source is available
    """
    if parameters.current_premium_pmpm is not None:
        return parameters.current_premium_pmpm, 'parameters'

    earned = periods.current.earned_premium()
    exposure = periods.current.earned_premium_member_months()
    if earned is not None and exposure > 0:
        months = sum(1 for p in periods.current.points if p.earned_premium is not None)
        return earned / exposure, f"earned premium ({months} months)"

    raise InvalidParametersError(
        carrier.value, ["current_premium_pmpm is required when the claims "
                        "series carries no earned premium"]
    )


class CarrierCalculator(ABC):
    """
    Abstract carrier methodology.

    Subclasses set `carrier` and implement `build_lines`, which appends the
    carrier's numbered lines and returns the headline RatingOutcome.
    """

    carrier: Carrier

    def calculate(self, universal_input: UniversalInput,
                  parameters: Union[CarrierParameters, Mapping[str, Any]]) -> RenewalResult:
        """
        Run the carrier methodology.

        Args:
            universal_input: Claims experience and renewal dates
            parameters: Carrier parameter model or mapping

        Returns:
            RenewalResult with the ordered calculation lines

        Raises:
            InsufficientDataError, InvalidClaimantError, InvalidParametersError
        """
        parameters = build_parameters(self.carrier, parameters)
        context = self.prepare(universal_input, parameters,
                               universal_input.monthly_claims,
                               universal_input.large_claimants)
        return self.run(context)

    def prepare(self, universal_input: UniversalInput, parameters: CarrierParameters,
                series: Sequence[MonthlyClaimsPoint],
                claimants: Sequence[LargeClaimant]) -> RatingContext:
        """Normalize periods, pool claimants and resolve the current premium."""
        periods = normalize(series)

        recorder = DataQualityRecorder()
        recorder.extend(assess_data_quality(series, claimants, periods))

        threshold = parameters.pooling_threshold
        policy = parameters.claimant_policy
        pooling_current = process(claimants, threshold, periods.current, policy, recorder)
        pooling_prior = process(claimants, threshold, periods.prior, policy, recorder)

        current_premium, source = resolve_current_premium(parameters, periods, self.carrier)

        book = LineBook(parameters.rounding.line_places, parameters.rounding.method)
        logger.info(f"{self.carrier.value} calculation prepared for case "
                    f"{universal_input.case_id}: {periods.current.months} current months, "
                    f"prior={'yes' if periods.has_prior else 'no'}")
        return RatingContext(
            universal_input=universal_input,
            parameters=parameters,
            periods=periods,
            recorder=recorder,
            book=book,
            pooling_current=pooling_current,
            pooling_prior=pooling_prior,
            current_premium=current_premium,
            current_premium_source=source,
        )

    def run(self, context: RatingContext) -> RenewalResult:
        """Build the lines and assemble the result."""
        outcome = self.build_lines(context)
        return self.assemble(context, outcome)

    @abstractmethod
    def build_lines(self, context: RatingContext) -> "RatingOutcome":
        """Append the carrier's lines; return the headline figures."""
        pass

    def assemble(self, context: RatingContext, outcome: "RatingOutcome") -> RenewalResult:
        periods = context.periods
        quality = context.recorder.snapshot(
            credibility_score=context.credibility,
            data_completeness=min(1.0, periods.current.months / 12.0),
            annualization_applied=periods.annualization_applied,
        )
        summary = RenewalSummary(
            member_months=outcome.member_months,
            incurred_claims_pmpm=outcome.incurred_claims_pmpm,
            projected_claims_pmpm=outcome.projected_claims_pmpm,
            total_retention_pmpm=outcome.total_retention_pmpm,
            details={'current_premium_source': context.current_premium_source,
                     **context.details},
        )
        logger.info(f"{self.carrier.value} renewal for {context.universal_input.case_id}: "
                    f"final ${outcome.final_premium:,.2f} PMPM vs current "
                    f"${context.current_premium:,.2f} ({outcome.rate_change:+.2%})")
        return RenewalResult(
            carrier=self.carrier,
            case_id=context.universal_input.case_id,
            calculations=context.book.lines,
            final_premium_pmpm=outcome.final_premium,
            current_premium_pmpm=context.current_premium,
            rate_change=outcome.rate_change,
            summary=summary,
            data_quality=quality,
            periods=periods,
        )


@dataclass(frozen=True)
class RatingOutcome:
    """Headline figures a carrier hands back to the shared assembly."""
    final_premium: float
    rate_change: float
    member_months: MemberMonthsUsed
    incurred_claims_pmpm: CoverageAmounts
    projected_claims_pmpm: CoverageAmounts
    total_retention_pmpm: float
