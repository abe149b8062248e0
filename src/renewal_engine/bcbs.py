"""
renewal_engine/bcbs.py - BCBS Single-Plan Experience Rating (lines 1-29)

Each plan is rated on its own experience in two columns: the most recent
twelve months (current) and the twelve before them (prior).

Per-Period Projection (lines 1-15):
    Claims dollars − pooled claims over the plan threshold → net PMPM
    → IBNR completion (medical and rx) → compounded trend
      annual^(months/12) → FFS age factor → + pooling charge
    → × benefit adjustment

Combination (lines 16-29):
    Experience weights (67% / 33%), member based charges, manual claims
    and credibility, then retention, premium tax and ACA adjustments are
    each weighted across the two periods. The underwriter and pathway to
    savings factors give the post-P2S required premium.

Multi-plan groups are rated plan by plan and combined in
renewal_engine.composite.

Author: Actuarial Pipeline Project
License: MIT
"""

from typing import Any, Mapping, Union
import logging

from .calculator import CarrierCalculator, RatingContext, RatingOutcome
from .errors import InvalidParametersError
from .financials import TrendProjection, claims_weighted_factor
from .lines import CoverageAmounts, LineUnit, ZERO
from .models import Carrier, UniversalInput
from .parameters import (BCBSParameters, BCBSPeriodAssumptions, BCBSPlanParameters,
                         build_parameters)
from .results import RenewalResult

logger = logging.getLogger(__name__)

amounts = CoverageAmounts.amounts
uniform = CoverageAmounts.uniform


def _times(value: CoverageAmounts, factors: CoverageAmounts) -> CoverageAmounts:
    """Apply medical and rx factors to their own coverage."""
    return amounts(value.med_cap * factors.med_cap, value.rx * factors.rx)


def _sum(*values: CoverageAmounts) -> CoverageAmounts:
    return amounts(sum(v.med_cap for v in values), sum(v.rx for v in values))


class BCBSCalculator(CarrierCalculator):
    """BCBS single-plan renewal."""

    carrier = Carrier.BCBS

    def calculate(self, universal_input: UniversalInput,
                  parameters: Union[BCBSPlanParameters, BCBSParameters,
                                    Mapping[str, Any]]) -> RenewalResult:
        """
        Rate a single plan.

        A BCBSParameters group is accepted when it holds exactly one plan;
        larger groups are rated through MultiPlanComposer. Group-level
        current premium, claimant policy and rounding fill in what the plan
        leaves unset.
        """
        parameters = build_parameters(self.carrier, parameters)
        if isinstance(parameters, BCBSParameters):
            if len(parameters.plans) != 1:
                raise InvalidParametersError(
                    self.carrier.value,
                    [f"{len(parameters.plans)} plans supplied; multi-plan groups "
                     f"are rated by the composer"]
                )
            parameters = parameters.plan_parameters()[0]
        return self.calculate_plan(universal_input, parameters)

    def calculate_plan(self, universal_input: UniversalInput,
                       plan: BCBSPlanParameters) -> RenewalResult:
        """
        Rate one plan on its own experience.

        The plan's series and claimants come from
        universal_input.plan_experience when present, else from the group.
        """
        experience = universal_input.plan_experience.get(plan.plan_id)
        if experience is not None:
            series, claimants = experience.monthly_claims, experience.large_claimants
        else:
            series, claimants = universal_input.monthly_claims, universal_input.large_claimants

        logger.info(f"Rating BCBS plan {plan.plan_id} ({len(series)} months)")
        context = self.prepare(universal_input, plan, series, claimants)
        context.details.update({'plan_id': plan.plan_id, 'plan_name': plan.plan_name})
        return self.run(context)

    def build_lines(self, ctx: RatingContext) -> RatingOutcome:
        p: BCBSPlanParameters = ctx.parameters
        book = ctx.book
        has_prior = ctx.has_prior
        current, prior = ctx.periods.current, ctx.periods.prior

        def column(label: str, fn) -> CoverageAmounts:
            period = ctx.period(label)
            if period is None:
                return ZERO
            assumptions = p.current if label == 'current' else p.prior
            return fn(period, assumptions, label)

        def both(fn):
            return column('current', fn), column('prior', fn)

        # =====================================================================
        # STEP 1: Experience and pooled claims (lines 1-4)
        # =====================================================================
        book.add('1', 'Experience Period Months', LineUnit.COUNT,
                 *both(lambda period, a, label: uniform(float(period.months))),
                 formula=f"{current.start:%m/%y}-{current.end:%m/%y}")
        book.add('2', 'Member Months Total', LineUnit.COUNT,
                 *both(lambda period, a, label: uniform(period.exposure)),
                 formula='Member months (annualized when short)')
        book.add('2a', 'Projected Total Monthly Members', LineUnit.COUNT,
                 *both(lambda period, a, label: uniform(
                     ctx.divide(period.member_months, period.months,
                                f"BCBS {label} monthly members (empty period)"))),
                 formula='Member Months / Months')

        l3 = book.add('3', 'Claims', LineUnit.COUNT,
                      *both(lambda period, a, label: amounts(
                          period.medical_claims * period.annualization_factor,
                          period.rx_claims * period.annualization_factor)),
                      formula='Incurred claims dollars')

        def pooled_dollars(period, a, label):
            pooling = ctx.pooling_current if label == 'current' else ctx.pooling_prior
            return pooling.pooled

        l3a = book.add('3a', 'Pooled Claims', LineUnit.COUNT, *both(pooled_dollars),
                       formula=f"Claims over ${p.pooling_threshold:,.0f}")
        l4 = book.add('4', 'Net Claims', LineUnit.COUNT,
                      amounts(l3.current.med_cap - l3a.current.med_cap,
                              l3.current.rx - l3a.current.rx),
                      amounts(l3.prior.med_cap - l3a.prior.med_cap,
                              l3.prior.rx - l3a.prior.rx),
                      formula='Line 3 - Line 3a')

        # =====================================================================
        # STEP 2: Net PMPM, IBNR and trend (lines 6-10)
        # =====================================================================
        def net_pmpm(period, a, label):
            net = l4.current if label == 'current' else l4.prior
            scale = ctx.divide(1.0, period.exposure,
                               f"BCBS {label} net PMPM (zero member months)")
            return net.scaled(scale)

        l6 = book.add('6', 'Net PMPM', LineUnit.PMPM, *both(net_pmpm),
                      formula='Line 4 / Line 2')

        def ibnr(period, a: BCBSPeriodAssumptions, label):
            base = l6.current if label == 'current' else l6.prior
            return CoverageAmounts.split(
                a.ibnr_medical, a.ibnr_rx,
                claims_weighted_factor(a.ibnr_medical, a.ibnr_rx, base.med_cap, base.rx))

        l6a = book.add('6a', 'IBNR Factor', LineUnit.FACTOR, *both(ibnr),
                       formula='Medical and pharmacy completion factors')
        l7 = book.add('7', 'Adjusted Net PMPM', LineUnit.PMPM,
                      _times(l6.current, l6a.current), _times(l6.prior, l6a.prior),
                      formula='Line 6 x Line 6a')

        def trend(period, a: BCBSPeriodAssumptions, label):
            base = l7.current if label == 'current' else l7.prior
            projection = TrendProjection(a.trend_medical, a.trend_rx, a.trend_months)
            return CoverageAmounts.split(projection.medical_factor, projection.rx_factor,
                                         projection.total_factor(base.med_cap, base.rx))

        l8 = book.add('8', 'Compounded Trend', LineUnit.FACTOR, *both(trend),
                      formula=f"Med: {p.current.trend_medical}^({p.current.trend_months:g}/12), "
                              f"Rx: {p.current.trend_rx}^({p.current.trend_months:g}/12)")
        l9 = book.add('9', 'Projected PMPM', LineUnit.PMPM,
                      _times(l7.current, l8.current), _times(l7.prior, l8.prior),
                      formula='Line 7 x Line 8')
        l10 = book.add('10', 'Total Projected PMPM', LineUnit.PMPM,
                       l9.current, l9.prior, formula='Medical + Pharmacy projected PMPM')

        # =====================================================================
        # STEP 3: Age, pooling and benefit adjustments (lines 11a-15)
        # =====================================================================
        l11a = book.add('11a', 'FFS Age Adjustment', LineUnit.FACTOR,
                        *both(lambda period, a, label: uniform(a.ffs_age_factor)))
        l12 = book.add('12', 'Sub Total FFS Age Adj. PMPM', LineUnit.PMPM,
                       l10.current.scaled(l11a.current.total),
                       l10.prior.scaled(l11a.prior.total),
                       formula='Line 10 x Line 11a')

        def pooling_charge(period, a: BCBSPeriodAssumptions, label):
            if a.pooling_charge_pmpm is not None:
                return amounts(a.pooling_charge_pmpm, 0.0)
            return ctx.pooled_pmpm(label)

        l13 = book.add('13', 'Total Pooling Charges', LineUnit.PMPM, *both(pooling_charge),
                       formula='Pooling charge PMPM (default: pooled claims / member months)')
        book.add('14', 'Benefit Adjustment', LineUnit.FACTOR, uniform(p.benefit_adjustment),
                 uniform(p.benefit_adjustment) if has_prior else ZERO)
        l15 = book.add('15', 'Adjusted Projected PMPM', LineUnit.PMPM,
                       _sum(l12.current, l13.current).scaled(p.benefit_adjustment),
                       _sum(l12.prior, l13.prior).scaled(p.benefit_adjustment)
                       if has_prior else ZERO,
                       formula='(Line 12 + Line 13) x Line 14')

        # =====================================================================
        # STEP 4: Period weighting and credibility (lines 16-22)
        # =====================================================================
        wc, wp = ctx.weights(p.period_weights.current, p.period_weights.prior)
        book.add('16', 'Experience Weights', LineUnit.RATE, uniform(wc), uniform(wp),
                 formula=f"Current: {wc}, Prior: {wp}")

        def weighted(current_value: CoverageAmounts, prior_value: CoverageAmounts):
            return amounts(current_value.med_cap * wc + prior_value.med_cap * wp,
                           current_value.rx * wc + prior_value.rx * wp)

        def weighted_charge(name: str) -> CoverageAmounts:
            value = getattr(p.current, name) * wc
            if has_prior:
                value += getattr(p.prior, name) * wp
            return amounts(value, 0.0)

        l17 = book.add('17', 'Weighted Experience Claims', LineUnit.PMPM,
                       weighted(l15.current, l15.prior),
                       formula='Line 15 Current x Line 16 Current + '
                               'Line 15 Prior x Line 16 Prior')
        l18 = book.add('18', 'Member Based Charges', LineUnit.PMPM,
                       weighted_charge('member_based_charges_pmpm'),
                       formula='Weighted member based charges PMPM')
        l19 = book.add('19', 'Projected Experience Claim PMPM (incl MBC)', LineUnit.PMPM,
                       _sum(l17.current, l18.current), formula='Line 17 + Line 18')
        l20 = book.add('20', 'Manual Claims PMPM', LineUnit.PMPM,
                       weighted_charge('manual_claims_pmpm'),
                       formula='Weighted manual claims PMPM')

        exposure = current.exposure + (prior.member_months if has_prior else 0.0)
        if exposure > 0:
            z = p.credibility.factor(exposure)
        else:
            z = 0.0
            ctx.recorder.warn(f"BCBS plan {p.plan_id} has no member months; credibility "
                              f"set to 0 and the premium rests on manual claims")
        ctx.credibility = z
        book.add('21', 'Credibility Factor', LineUnit.RATE, uniform(z), uniform(1.0 - z),
                 formula=f"{p.credibility.formula} credibility on {exposure:,.0f} member months")
        l22 = book.add('22', 'Credibility Adjusted Claim PMPM', LineUnit.PMPM,
                       amounts(l19.current.med_cap * z + l20.current.med_cap * (1 - z),
                               l19.current.rx * z + l20.current.rx * (1 - z)),
                       formula='Line 19 x Line 21 + Line 20 x (1 - Line 21)')

        # =====================================================================
        # STEP 5: Retention and required premium (lines 23-29)
        # =====================================================================
        l23 = book.add('23', 'Retention PMPM', LineUnit.PMPM, weighted_charge('retention_pmpm'),
                       formula='Weighted retention PMPM')
        l24 = book.add('24', 'PPO Premium Tax PMPM', LineUnit.PMPM,
                       weighted_charge('premium_tax_pmpm'),
                       formula='Weighted premium tax PMPM')
        l24a = book.add('24a', 'Affordable Care Act Adjustments PMPM', LineUnit.PMPM,
                        weighted_charge('aca_adjustments_pmpm'),
                        formula='Weighted ACA adjustments PMPM')
        book.add('25', 'Underwriter Adjustment Factor', LineUnit.FACTOR,
                 uniform(p.underwriter_adjustment))
        l26 = book.add('26', 'Required Premium PMPM', LineUnit.PMPM,
                       _sum(l22.current, l23.current, l24.current, l24a.current)
                       .scaled(p.underwriter_adjustment),
                       formula='(Line 22 + Line 23 + Line 24 + Line 24a) x Line 25')
        book.add('27', 'Pathway to Savings Adjustment', LineUnit.FACTOR,
                 uniform(p.pathway_to_savings))

        required = l26.current.scaled(p.pathway_to_savings)
        final = ctx.round_premium(required.total)
        if final != required.total:
            required = amounts(required.med_cap + (final - required.total), required.rx)
        book.add('27a', 'Post P2S Adj. Required Premium PMPM', LineUnit.PMPM, required,
                 formula='Line 26 x Line 27')
        book.add('28', 'Current Premium PMPM', LineUnit.PMPM, amounts(ctx.current_premium, 0.0),
                 formula=f"Current premium from {ctx.current_premium_source}")
        change = ctx.rate_change(final, ctx.current_premium)
        if final <= 0:
            ctx.recorder.warn(f"BCBS plan {p.plan_id} required premium is zero; "
                              f"the rate action is not meaningful")
        book.add('29', 'Rate Action', LineUnit.RATE, uniform(change),
                 formula='(Line 27a - Line 28) / Line 28')

        retention = l23.current.total + l24.current.total + l24a.current.total
        ctx.details.update({
            'experience_weights': {'current': wc, 'prior': wp},
            'projected_monthly_members': book['2a'].current.total,
        })

        return RatingOutcome(
            final_premium=final,
            rate_change=change,
            member_months=ctx.member_months_used(p.period_weights.current,
                                                 p.period_weights.prior),
            incurred_claims_pmpm=ctx.incurred_pmpm('current'),
            projected_claims_pmpm=l15.current,
            total_retention_pmpm=retention,
        )
