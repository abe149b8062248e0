"""
renewal_engine/aetna.py - Aetna Experience Rating (28 lines)

Aetna renewal exhibit with current and prior experience columns.

Methodology:
    Lines 1-6    Incurred claims PMPM, deductible suppression, pooling
    Lines 7-11   Network, plan, demographic and underwriting adjustments
    Lines 12-13  Trend: factor^(months/12), medical and rx separately
    Lines 14-15  Period weighting (75% current / 25% prior by default)
    Lines 16-18  Credibility blend with manual rates
    Lines 19-21  Large claim adjustment, non-benefit expenses, retention
    Lines 22-26  Projected premium, rate adjustment, producer fee
    Lines 27-28  Current premium and required rate change

Credibility is measured on the combined current and prior exposure.

Author: Actuarial Pipeline Project
License: MIT
"""

from typing import Dict
import logging

from .calculator import CarrierCalculator, RatingContext, RatingOutcome
from .errors import InvalidParametersError
from .financials import TrendProjection
from .lines import CoverageAmounts, LineUnit, ZERO
from .models import Carrier
from .parameters import AetnaParameters

logger = logging.getLogger(__name__)

amounts = CoverageAmounts.amounts
uniform = CoverageAmounts.uniform


def _product(value: CoverageAmounts, *factors: float) -> CoverageAmounts:
    scale = 1.0
    for factor in factors:
        scale *= factor
    return amounts(value.med_cap * scale, value.rx * scale)


class AetnaCalculator(CarrierCalculator):
    """Aetna 28-line renewal."""

    carrier = Carrier.AETNA

    def build_lines(self, ctx: RatingContext) -> RatingOutcome:
        p: AetnaParameters = ctx.parameters
        book = ctx.book
        has_prior = ctx.has_prior

        manual = p.manual_rates or ctx.universal_input.manual_rates
        if manual is None:
            raise InvalidParametersError(
                self.carrier.value, ["manual_rates are required (parameters or input)"]
            )

        def prior_or_zero(value: CoverageAmounts) -> CoverageAmounts:
            return value if has_prior else ZERO

        # =====================================================================
        # STEP 1: Incurred claims, suppression and pooling (lines 1-6)
        # =====================================================================
        l1 = book.add('1', 'Incurred Claims', LineUnit.PMPM,
                      ctx.incurred_pmpm('current'), ctx.incurred_pmpm('prior'),
                      formula='Total Claims / Member Months')

        dsf = p.deductible_suppression_factor
        book.add('2', 'Deductible Suppression Factor', LineUnit.FACTOR,
                 uniform(dsf), prior_or_zero(uniform(dsf)),
                 formula='Fixed factor applied to both periods')
        l3 = book.add('3', 'Incurred Claims x Deductible Suppression Factor', LineUnit.PMPM,
                      _product(l1.current, dsf), _product(l1.prior, dsf),
                      formula='Line 1 x Line 2')

        l4 = book.add('4', 'Pooled Claims', LineUnit.PMPM,
                      ctx.pooled_pmpm('current'), ctx.pooled_pmpm('prior'),
                      formula=f"Claims over ${p.pooling_threshold:,.0f} / Member Months")

        charge = amounts(p.pooling_charge_pmpm, 0.0)
        l5 = book.add('5', 'Pooling Charge', LineUnit.PMPM,
                      charge, prior_or_zero(charge), formula='Pooling charge PMPM')

        def net(col: str) -> CoverageAmounts:
            c3, c4, c5 = (getattr(line, col) for line in (l3, l4, l5))
            return amounts(c3.med_cap - c4.med_cap + c5.med_cap, c3.rx - c4.rx + c5.rx)

        l6 = book.add('6', 'Incurred Claims w/ Pooling', LineUnit.PMPM,
                      net('current'), prior_or_zero(net('prior')),
                      formula='Line 3 - Line 4 + Line 5')

        # =====================================================================
        # STEP 2: Adjustment factors (lines 7-11), in published order
        # =====================================================================
        factors = [
            ('7', 'Network Adjustment', p.network_adjustment),
            ('8', 'Plan Adjustment', p.plan_adjustment),
            ('9', 'Demographic Adjustment', p.demographic_adjustment),
            ('10', 'Underwriting Adjustment', p.underwriting_adjustment),
        ]
        for number, description, value in factors:
            book.add(number, description, LineUnit.FACTOR,
                     uniform(value), prior_or_zero(uniform(value)))
        values = [value for _, _, value in factors]
        l11 = book.add('11', 'Incurred Claims x Factors', LineUnit.PMPM,
                       _product(l6.current, *values), _product(l6.prior, *values),
                       formula='Line 6 x Lines 7-10')

        # =====================================================================
        # STEP 3: Trend (lines 12-13)
        # =====================================================================
        months = ctx.trend_months(p.trend.months, 'current')
        if p.trend.prior_months is not None:
            prior_months = p.trend.prior_months
        elif p.trend.months is not None:
            prior_months = p.trend.months
        else:
            prior_months = ctx.trend_months(None, 'prior')
        trend_cur = TrendProjection(p.trend.medical, p.trend.rx, months)
        trend_pri = TrendProjection(p.trend.medical, p.trend.rx, prior_months)

        def trend_column(t: TrendProjection, base: CoverageAmounts) -> CoverageAmounts:
            return CoverageAmounts.split(t.medical_factor, t.rx_factor,
                                         t.total_factor(base.med_cap, base.rx))

        l12 = book.add('12', 'Trend Application', LineUnit.FACTOR,
                       trend_column(trend_cur, l11.current),
                       prior_or_zero(trend_column(trend_pri, l11.prior)),
                       formula=f"Med: {p.trend.medical}^(m/12), Rx: {p.trend.rx}^(m/12); "
                               f"current m={months:.2f}, prior m={prior_months:.2f}")

        def trended(col: str) -> CoverageAmounts:
            base, factor = getattr(l11, col), getattr(l12, col)
            return amounts(base.med_cap * factor.med_cap, base.rx * factor.rx)

        l13 = book.add('13', 'Projected Claims PMPM', LineUnit.PMPM,
                       trended('current'), trended('prior'), formula='Line 11 x Line 12')

        # =====================================================================
        # STEP 4: Period weighting (lines 14-15)
        # =====================================================================
        wc, wp = ctx.weights(p.period_weights.current, p.period_weights.prior)
        book.add('14', 'Experience Period Weighting', LineUnit.RATE,
                 uniform(wc), uniform(wp),
                 formula=f"Current: {wc}, Prior: {wp}")
        l15 = book.add('15', 'Experience Weighted Projected Claims', LineUnit.PMPM,
                       amounts(l13.current.med_cap * wc + l13.prior.med_cap * wp,
                               l13.current.rx * wc + l13.prior.rx * wp),
                       formula='Line 13 Current x Line 14 Current + '
                               'Line 13 Prior x Line 14 Prior')

        # =====================================================================
        # STEP 5: Credibility (lines 16-18)
        # =====================================================================
        exposure = ctx.periods.current.exposure + (
            ctx.periods.prior.member_months if has_prior else 0.0)
        z = p.credibility.factor(exposure)
        ctx.credibility = z
        book.add('16', 'Experience Credibility', LineUnit.RATE,
                 uniform(z), uniform(1.0 - z),
                 formula=f"{p.credibility.formula}({exposure:,.0f} / "
                         f"{p.credibility.full_credibility_member_months:,.0f}) = {z:.3f}")
        l17 = book.add('17', 'Manual Projected Claims', LineUnit.PMPM,
                       amounts(manual.medical, manual.rx),
                       formula='Manual rates from carrier')
        l18 = book.add('18', 'Blended Projected Claims', LineUnit.PMPM,
                       amounts(l15.current.med_cap * z + l17.current.med_cap * (1 - z),
                               l15.current.rx * z + l17.current.rx * (1 - z)),
                       formula='Line 15 x Line 16 Experience + Line 17 x Line 16 Manual')

        # =====================================================================
        # STEP 6: Retention (lines 19-21)
        # =====================================================================
        l19 = book.add('19', 'Large Claim Adjustment', LineUnit.PMPM,
                       amounts(p.large_claim_adjustment_pmpm, 0.0),
                       formula='Additional large claim loading')
        l20 = book.add('20', 'Non-Benefit Expenses', LineUnit.PMPM,
                       amounts(p.non_benefit_expenses_pmpm, 0.0),
                       formula='Non-benefit expenses PMPM')

        base = l18.current.total
        retention: Dict[str, float] = {
            name: component.to_pmpm(base)
            for name, component in p.retention.components().items()
        }
        total_retention = sum(retention.values())
        l21 = book.add('21', 'Total Retention Charges', LineUnit.PMPM,
                       amounts(total_retention, 0.0),
                       formula=' + '.join(f"{name}({value:.2f})"
                                          for name, value in retention.items()))
        ctx.details['retention_components'] = retention

        # =====================================================================
        # STEP 7: Premium and rate change (lines 22-28)
        # =====================================================================
        l22 = book.add('22', 'Projected Premium', LineUnit.PMPM,
                       amounts(sum(line.current.med_cap for line in (l18, l19, l20, l21)),
                               sum(line.current.rx for line in (l18, l19, l20, l21))),
                       formula='Lines 18 + 19 + 20 + 21')
        book.add('23', 'Rate Adjustment', LineUnit.FACTOR, uniform(p.rate_adjustment),
                 formula='Rate cap/floor adjustment factor')
        l24 = book.add('24', 'Proposed Premium', LineUnit.PMPM,
                       _product(l22.current, p.rate_adjustment), formula='Line 22 x Line 23')
        l25 = book.add('25', 'Producer Service Fee', LineUnit.PMPM,
                       amounts(p.producer_service_fee_pmpm, 0.0),
                       formula='Producer service fee PMPM')

        due = amounts(l24.current.med_cap + l25.current.med_cap,
                      l24.current.rx + l25.current.rx)
        final = ctx.round_premium(due.total)
        if final != due.total:
            due = amounts(due.med_cap + (final - due.total), due.rx)
        book.add('26', 'Total Amount Due', LineUnit.PMPM, due, formula='Line 24 + Line 25')

        book.add('27', 'Estimated Current Premium', LineUnit.PMPM,
                 amounts(ctx.current_premium, 0.0),
                 formula=f"Current premium from {ctx.current_premium_source}")
        change = ctx.rate_change(final, ctx.current_premium)
        book.add('28', 'Required Rate Change', LineUnit.RATE, uniform(change),
                 formula='(Line 26 / Line 27) - 1')

        return RatingOutcome(
            final_premium=final,
            rate_change=change,
            member_months=ctx.member_months_used(p.period_weights.current,
                                                 p.period_weights.prior),
            incurred_claims_pmpm=l1.current,
            projected_claims_pmpm=l18.current,
            total_retention_pmpm=l20.current.total + l21.current.total,
        )
