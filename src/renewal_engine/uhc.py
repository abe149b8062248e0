"""
renewal_engine/uhc.py - UHC Renewal Exhibit (lines A..AM)

Experience Rating (A-R):
    A-E   Incurred medical PMPM less pooled claims, plus rx PMPM
    F-I   Underwriting, trend (1 + r)^(m/12), plan change adjustments
    J-M   Period weighting, member change, pooling charge
    N-R   Retention percentages; experience premium = M / (1 - Q)

Manual Rating (S-V):
    Base manual premium × age/sex × other adjustment, split medical/rx by
    the group's own claims mix

Renewal Action (W-AM):
    Credibility blend, other adjustment, reform items, commission, fees,
    current revenue, calculated and suggested renewal actions, margin
    and loss ratio

Pooling applies to medical claims only. The rate change reported on the
result is the calculated renewal action (line AG); a suggested action,
when supplied, drives lines AH-AM.

Author: Actuarial Pipeline Project
License: MIT
"""

from typing import Tuple
import logging

from .calculator import CarrierCalculator, RatingContext, RatingOutcome
from .errors import InvalidParametersError
from .financials import trend_factor_from_rate
from .lines import CoverageAmounts, LineUnit
from .models import Carrier
from .parameters import (UHCParameters, UHCRetention, UHC_RETENTION_SPLIT,
                         RetentionComponent, uhc_retention_tier)

logger = logging.getLogger(__name__)

amounts = CoverageAmounts.amounts
uniform = CoverageAmounts.uniform


class UHCCalculator(CarrierCalculator):
    """UHC lettered renewal exhibit."""

    carrier = Carrier.UHC

    def medical_rx_split(self, ctx: RatingContext) -> Tuple[float, float]:
        """Medical and rx shares of claims, falling back to the manual rate mix."""
        series = ctx.universal_input.monthly_claims
        medical = sum(p.medical_claims for p in series)
        rx = sum(p.rx_claims for p in series)
        if medical + rx > 0:
            return medical / (medical + rx), rx / (medical + rx)
        manual = ctx.universal_input.manual_rates
        if manual is not None and manual.total > 0:
            return manual.medical / manual.total, manual.rx / manual.total
        return 1.0, 0.0

    def retention(self, ctx: RatingContext) -> Tuple[UHCRetention, RetentionComponent,
                                                     RetentionComponent]:
        """Retention percentages, commission and fees; group-size tier when unset."""
        p: UHCParameters = ctx.parameters
        pct = uhc_retention_tier(ctx.periods.total_member_months)
        retention = p.retention
        if retention is None:
            retention = UHCRetention(administrative=pct * UHC_RETENTION_SPLIT['administrative'],
                                     taxes=pct * UHC_RETENTION_SPLIT['taxes'],
                                     other=pct * UHC_RETENTION_SPLIT['other'])
            ctx.details['retention_tier_pct'] = pct
        commission = p.commission or RetentionComponent(
            value=pct * UHC_RETENTION_SPLIT['commission'] / 100.0, basis='percent')
        fees = p.fees or RetentionComponent(
            value=pct * UHC_RETENTION_SPLIT['fees'] / 100.0, basis='percent')
        return retention, commission, fees

    def build_lines(self, ctx: RatingContext) -> RatingOutcome:
        p: UHCParameters = ctx.parameters
        book = ctx.book
        has_prior = ctx.has_prior

        manual = ctx.universal_input.manual_rates
        base_manual = p.manual.base_manual_pmpm
        if base_manual is None:
            if manual is None:
                raise InvalidParametersError(
                    self.carrier.value,
                    ["manual.base_manual_pmpm is required when the input has no manual rates"]
                )
            base_manual = manual.total

        if p.pooling_threshold != UHCParameters.EXPECTED_THRESHOLD:
            ctx.recorder.warn(f"UHC pooling threshold ${p.pooling_threshold:,.0f} differs "
                              f"from the standard ${UHCParameters.EXPECTED_THRESHOLD:,.0f}")

        retention, commission, fees = self.retention(ctx)
        med_share, rx_share = self.medical_rx_split(ctx)

        def by_share(value: float) -> CoverageAmounts:
            return amounts(value * med_share, value * rx_share)

        def medical_only(value: CoverageAmounts) -> CoverageAmounts:
            return amounts(value.med_cap, 0.0)

        # =====================================================================
        # EXPERIENCE RATING (A-R)
        # =====================================================================
        incurred_cur = ctx.incurred_pmpm('current')
        incurred_pri = ctx.incurred_pmpm('prior')
        a = book.add('A', 'Incurred Medical Claims PMPM', LineUnit.PMPM,
                     medical_only(incurred_cur), medical_only(incurred_pri))

        pooled_cur = ctx.pooled_pmpm('current').total
        pooled_pri = ctx.pooled_pmpm('prior').total
        b = book.add('B', f"Pooled Claims Over ${p.pooling_threshold:,.0f}", LineUnit.PMPM,
                     amounts(pooled_cur, 0.0), amounts(pooled_pri, 0.0))
        c = book.add('C', 'Adjusted Medical Claims (A - B)', LineUnit.PMPM,
                     amounts(a.current.med_cap - b.current.med_cap, 0.0),
                     amounts(a.prior.med_cap - b.prior.med_cap, 0.0))
        d = book.add('D', 'Incurred Rx Claims PMPM', LineUnit.PMPM,
                     amounts(0.0, incurred_cur.rx), amounts(0.0, incurred_pri.rx))
        e = book.add('E', 'Total Incurred Claims (C + D)', LineUnit.PMPM,
                     amounts(c.current.med_cap, d.current.rx),
                     amounts(c.prior.med_cap, d.prior.rx))

        uw = p.underwriting_adjustment
        f = book.add('F', 'UW Adjustment', LineUnit.PMPM,
                     e.current.scaled(uw), e.prior.scaled(uw), formula=f"E x {uw}")

        t = p.trend
        months_cur, months_pri = t.current_months, t.prior_months
        med_cur = trend_factor_from_rate(t.medical_rate, months_cur)
        rx_cur = trend_factor_from_rate(t.rx_rate, months_cur)
        med_pri = trend_factor_from_rate(t.medical_rate, months_pri)
        rx_pri = trend_factor_from_rate(t.rx_rate, months_pri)
        g = book.add('G', f"Trend Factor (Current {months_cur:g} mos, Prior {months_pri:g} mos)",
                     LineUnit.PMPM,
                     amounts(f.current.med_cap * med_cur, f.current.rx * rx_cur),
                     amounts(f.prior.med_cap * med_pri, f.prior.rx * rx_pri),
                     formula=f"Current med {med_cur:.4f} rx {rx_cur:.4f}; "
                             f"Prior med {med_pri:.4f} rx {rx_pri:.4f}")
        ctx.details['trend_factors'] = {'current': (med_cur, rx_cur), 'prior': (med_pri, rx_pri)}

        pc = p.plan_change_adjustment
        h = book.add('H', 'Plan Change Adjustment', LineUnit.PMPM,
                     g.current.scaled(pc), g.prior.scaled(pc), formula=f"G x {pc}")
        i = book.add('I', 'Trended/Adjusted Claims (E x F x G x H)', LineUnit.PMPM,
                     h.current, h.prior)

        wc, wp = p.period_weights.current, p.period_weights.prior
        eff_c, eff_p = ctx.weights(wc, wp)
        j = book.add('J', f"Claim Period Weighting ({wc:.0%} / {wp:.0%})", LineUnit.PMPM,
                     amounts(i.current.med_cap * eff_c + i.prior.med_cap * eff_p,
                             i.current.rx * eff_c + i.prior.rx * eff_p),
                     formula=f"I current x {eff_c} + I prior x {eff_p}")

        mc = p.member_change_adjustment
        k = book.add('K', 'Adj for Member Change Between Plans', LineUnit.PMPM,
                     j.current.scaled(mc))

        charge = ctx.divide(p.pooling_threshold * p.pooling_factor,
                            ctx.periods.current.exposure,
                            "UHC pooling charge (zero current member months)")
        pool = book.add('L', f"Pooling charge for ${p.pooling_threshold:,.0f}", LineUnit.PMPM,
                     amounts(charge, 0.0),
                     formula=f"{p.pooling_threshold:,.0f} x {p.pooling_factor} / current MM")
        m = book.add('M', 'Expected claims (J x K + L)', LineUnit.PMPM,
                     amounts(k.current.med_cap + pool.current.med_cap,
                             k.current.rx + pool.current.rx))

        n_pct = retention.administrative / 100.0
        o_pct = retention.taxes / 100.0
        p_pct = retention.other / 100.0
        book.add('N', 'Administration', LineUnit.RATE, uniform(n_pct))
        book.add('O', 'State Taxes and Assessments', LineUnit.RATE, uniform(o_pct))
        book.add('P', 'Other adjustment', LineUnit.RATE, uniform(p_pct))
        q_pct = n_pct + o_pct + p_pct
        book.add('Q', 'Total retention (N + O + P)', LineUnit.RATE, uniform(q_pct))
        r = book.add('R', 'Experience Premium PMPM (M / (1 - Q))', LineUnit.PMPM,
                     m.current.scaled(1.0 / (1.0 - q_pct)))

        # =====================================================================
        # MANUAL RATING (S-V)
        # =====================================================================
        s = book.add('S', 'Manual Premium PMPM (unadjusted)', LineUnit.PMPM, by_share(base_manual))
        age_sex = p.manual.age_sex_adjustment
        other = p.manual.other_adjustment
        book.add('T', 'Age/Sex Adjustment', LineUnit.FACTOR, uniform(age_sex))
        book.add('U', 'Other Adjustment', LineUnit.FACTOR, uniform(other))
        v = book.add('V', 'Manual Premium PMPM (S x T x U)', LineUnit.PMPM,
                     s.current.scaled(age_sex * other))

        # =====================================================================
        # RENEWAL ACTION (W-AM)
        # =====================================================================
        z = p.credibility.factor(ctx.periods.current.exposure
                                 + (ctx.periods.prior.member_months if has_prior else 0.0))
        ctx.credibility = z
        w = book.add('W', 'Experience Rating (with credibility)', LineUnit.PMPM,
                     r.current.scaled(z), formula=f"R x {z:.4f}")
        x = book.add('X', 'Manual Rating (with credibility)', LineUnit.PMPM,
                     v.current.scaled(1.0 - z), formula=f"V x {1.0 - z:.4f}")
        y = book.add('Y', 'Initial Calculated Renewal Cost PMPM (W + X)', LineUnit.PMPM,
                     amounts(w.current.med_cap + x.current.med_cap, w.current.rx + x.current.rx))
        book.add('Z', 'Other Adjustment', LineUnit.FACTOR, uniform(p.other_adjustment))
        aa = book.add('AA', 'PMPM Prior to Reform Items, Commission, Fees (Y x Z)',
                      LineUnit.PMPM, y.current.scaled(p.other_adjustment))

        base = aa.current.total
        reform_pmpm = p.reform_items.to_pmpm(base)
        commission_pmpm = commission.to_pmpm(base)
        fees_pmpm = fees.to_pmpm(base)
        ab = book.add('AB', 'Reform Items', LineUnit.PMPM, by_share(reform_pmpm))
        ac = book.add('AC', 'Commission', LineUnit.PMPM, by_share(commission_pmpm))
        ad = book.add('AD', 'Fees', LineUnit.PMPM, by_share(fees_pmpm))

        cost = amounts(sum(line.current.med_cap for line in (aa, ab, ac, ad)),
                       sum(line.current.rx for line in (aa, ab, ac, ad)))
        final = ctx.round_premium(cost.total)
        if final != cost.total:
            cost = amounts(cost.med_cap + (final - cost.total), cost.rx)
        ae = book.add('AE', 'Calculated Renewal Cost PMPM (AA + AB + AC + AD)',
                      LineUnit.PMPM, cost)

        revenue = ctx.current_premium
        book.add('AF', 'Current Revenue PMPM', LineUnit.PMPM, by_share(revenue),
                 formula=f"Current revenue from {ctx.current_premium_source}")
        action = ctx.rate_change(final, revenue)
        book.add('AG', 'Calculated Renewal Action % ((AE - AF) / AF)', LineUnit.RATE,
                 uniform(action))

        suggested = p.suggested_renewal_action if p.suggested_renewal_action is not None else action
        book.add('AH', 'Suggested Renewal Action %', LineUnit.RATE, uniform(suggested))
        revenue_with_action = revenue * (1.0 + suggested)
        ai = book.add('AI', 'Revenue PMPM with Suggested Action (AF x (1 + AH))', LineUnit.PMPM,
                      by_share(revenue_with_action))
        aj = book.add('AJ', 'Revenue vs Cost Difference (AI - AE)', LineUnit.PMPM,
                      amounts(ai.current.med_cap - ae.current.med_cap,
                              ai.current.rx - ae.current.rx))
        margin = ctx.divide(aj.current.total, ai.current.total,
                            "UHC margin (zero revenue with suggested action)")
        loss_ratio = ctx.divide(ae.current.total, ai.current.total,
                                "UHC loss ratio (zero revenue with suggested action)")
        book.add('AK', 'Margin % (AJ / AI)', LineUnit.RATE, uniform(margin))
        book.add('AL', 'Loss Ratio (AE / AI)', LineUnit.RATE, uniform(loss_ratio))
        book.add('AM', 'Final Rate Action Summary', LineUnit.RATE, uniform(suggested))

        ctx.details.update({
            'calculated_renewal_action': action,
            'suggested_renewal_action': suggested,
            'margin': margin,
            'loss_ratio': loss_ratio,
            'medical_rx_split': (med_share, rx_share),
            'projected_annual_premium': final * ctx.periods.current.exposure,
        })

        return RatingOutcome(
            final_premium=final,
            rate_change=action,
            member_months=ctx.member_months_used(wc, wp),
            incurred_claims_pmpm=incurred_cur,
            projected_claims_pmpm=j.current,
            total_retention_pmpm=r.current.total - m.current.total + ab.current.total
            + ac.current.total + ad.current.total,
        )
