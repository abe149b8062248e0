"""
renewal_engine/cigna.py - Cigna Renewal Exhibit (25 lines)

Single experience period reported as PMPM and annual dollars:
annual = PMPM × projected member months (default: average monthly
membership × 12). Prior columns carry the zero sentinel.

Claims Projection:
    Paid claims − pooled claims → demographic adjustment
    → trend annual^(midpoint months/12) → large claim add back
    → experience/manual blend

Expenses:
    Administration, commissions, profit and other are loaded on the final
    claims cost; premium tax is loaded on claims + administration +
    commissions.

The claims fluctuation corridor is reported but does not clamp the final
claims cost.

Author: Actuarial Pipeline Project
License: MIT
"""

import logging

from .calculator import CarrierCalculator, RatingContext, RatingOutcome
from .errors import InvalidParametersError
from .financials import trend_factor
from .lines import CoverageAmounts, LineUnit
from .models import Carrier
from .parameters import CignaParameters

logger = logging.getLogger(__name__)

amounts = CoverageAmounts.amounts
uniform = CoverageAmounts.uniform


class CignaCalculator(CarrierCalculator):
    """Cigna single-period renewal."""

    carrier = Carrier.CIGNA

    def build_lines(self, ctx: RatingContext) -> RatingOutcome:
        p: CignaParameters = ctx.parameters
        book = ctx.book
        period = ctx.periods.current

        manual = ctx.universal_input.manual_rates
        manual_pmpm = p.manual_rate_pmpm
        if manual_pmpm is None:
            if manual is None:
                raise InvalidParametersError(
                    self.carrier.value,
                    ["manual_rate_pmpm is required when the input has no manual rates"]
                )
            manual_pmpm = manual.total

        average_members = ctx.divide(period.member_months, period.months,
                                     "Cigna average membership (empty period)")
        projected_mm = p.projected_member_months or average_members * 12.0
        ctx.details['projected_member_months'] = projected_mm

        def add(number: str, description: str, unit: LineUnit,
                pmpm: CoverageAmounts, formula: str = ""):
            annual = pmpm.scaled(projected_mm) if unit == LineUnit.PMPM else None
            return book.add(number, description, unit, pmpm, annual=annual, formula=formula)

        # =====================================================================
        # STEP 1: Experience claims (lines 1-5)
        # =====================================================================
        paid = add('1', 'Total Paid Claims', LineUnit.PMPM, ctx.incurred_pmpm('current'),
                   formula='Paid claims / member months')
        pooled = add('2', f"Less Pooled Claims over ${p.pooling_threshold:,.0f} PMPM",
                     LineUnit.PMPM, ctx.pooled_pmpm('current'),
                     formula=f"Claims over ${p.pooling_threshold:,.0f} / member months")
        experience = add('3', 'Experience Claim Cost', LineUnit.PMPM,
                         amounts(paid.current.med_cap - pooled.current.med_cap,
                                 paid.current.rx - pooled.current.rx),
                         formula='Line 1 - Line 2')
        demo = p.demographic_adjustment
        add('4', 'Demographic Adjustment Factor', LineUnit.FACTOR, uniform(demo))
        adjusted = add('5', 'Demographically Adjusted Claims', LineUnit.PMPM,
                       experience.current.scaled(demo), formula='Line 3 x Line 4')

        # =====================================================================
        # STEP 2: Trend and large claims (lines 6-11)
        # =====================================================================
        months = ctx.trend_months(p.trend.midpoint_months, 'current')
        effective = trend_factor(p.trend.annual, months)
        add('6', 'Annual Trend', LineUnit.FACTOR, uniform(p.trend.annual),
            formula=f"{(p.trend.annual - 1) * 100:.2f}%")
        add('7', 'Midpoint Months', LineUnit.COUNT, uniform(months))
        add('8', 'Effective Trend', LineUnit.FACTOR, uniform(effective),
            formula=f"{p.trend.annual}^({months:.2f}/12)")
        trended = add('9', 'Trended Experience Claims', LineUnit.PMPM,
                      adjusted.current.scaled(effective), formula='Line 5 x Line 8')

        if p.large_claim_add_back_pmpm is not None:
            add_back = amounts(p.large_claim_add_back_pmpm, 0.0)
            note = 'Large claim add back from parameters'
        else:
            add_back = pooled.current.scaled(p.large_claim_add_back_share)
            note = f"{p.large_claim_add_back_share:.0%} of pooled claims"
        add_back_line = add('10', 'Large Claim Add Back', LineUnit.PMPM, add_back, formula=note)
        projected = add('11', 'Total Projected Claims', LineUnit.PMPM,
                        amounts(trended.current.med_cap + add_back_line.current.med_cap,
                                trended.current.rx + add_back_line.current.rx),
                        formula='Line 9 + Line 10')

        # =====================================================================
        # STEP 3: Credibility blend (lines 12-17)
        # =====================================================================
        if p.experience_weight is not None:
            z = p.experience_weight
        else:
            z = p.credibility.factor(period.exposure)
        ctx.credibility = z
        add('12', 'Experience Weight', LineUnit.RATE, uniform(z))

        manual_split = (amounts(manual_pmpm * manual.medical / manual.total,
                                manual_pmpm * manual.rx / manual.total)
                        if manual is not None and manual.total > 0
                        else amounts(manual_pmpm, 0.0))
        manual_line = add('13', 'Manual Claim Cost', LineUnit.PMPM, manual_split)
        add('14', 'Manual Weight', LineUnit.RATE, uniform(1.0 - z))
        blended = add('15', 'Blended Claims Cost', LineUnit.PMPM,
                      amounts(projected.current.med_cap * z + manual_line.current.med_cap * (1 - z),
                              projected.current.rx * z + manual_line.current.rx * (1 - z)),
                      formula='Line 11 x Line 12 + Line 13 x Line 14')

        cfc = p.claims_fluctuation_corridor
        corridor = (CoverageAmounts.split(cfc.lower_bound, cfc.upper_bound, 1.0)
                    if cfc.enabled else uniform(1.0))
        add('16', 'Claims Fluctuation Corridor', LineUnit.FACTOR, corridor,
            formula=(f"{cfc.lower_bound:.1%} to {cfc.upper_bound:.1%} (informational)"
                     if cfc.enabled else 'Not Applied'))
        final_claims = add('17', 'Final Claims Cost', LineUnit.PMPM, blended.current,
                           formula='Line 15')

        # =====================================================================
        # STEP 4: Expenses (lines 18-22)
        # =====================================================================
        claims = final_claims.current
        expenses = p.expenses

        def loading(component, base: CoverageAmounts) -> CoverageAmounts:
            if component.basis == 'percent':
                return base.scaled(component.value)
            return amounts(component.value, 0.0)

        admin = add('18', 'Administration Expense', LineUnit.PMPM,
                    loading(expenses.administration, claims))
        commissions = add('19', 'Commissions', LineUnit.PMPM,
                          loading(expenses.commissions, claims))
        tax_base = amounts(claims.med_cap + admin.current.med_cap + commissions.current.med_cap,
                           claims.rx + admin.current.rx + commissions.current.rx)
        tax = add('20', 'Premium Tax', LineUnit.PMPM, loading(expenses.premium_tax, tax_base),
                  formula='(Line 17 + Line 18 + Line 19) x premium tax')
        profit = add('21', 'Profit and Contingency', LineUnit.PMPM,
                     loading(expenses.profit_and_contingency, claims))
        other = add('22', 'Other Expenses', LineUnit.PMPM, loading(expenses.other, claims))

        # =====================================================================
        # STEP 5: Premium and rate change (lines 23-25)
        # =====================================================================
        parts = (final_claims, admin, commissions, tax, profit, other)
        required = amounts(sum(line.current.med_cap for line in parts),
                           sum(line.current.rx for line in parts))
        final = ctx.round_premium(required.total)
        if final != required.total:
            required = amounts(required.med_cap + (final - required.total), required.rx)
        add('23', 'Total Required Premium', LineUnit.PMPM, required, formula='Lines 17-22')
        add('24', 'Current Premium', LineUnit.PMPM, amounts(ctx.current_premium, 0.0),
            formula=f"Current premium from {ctx.current_premium_source}")
        change = ctx.rate_change(final, ctx.current_premium)
        add('25', 'Required Rate Change', LineUnit.RATE, uniform(change),
            formula='(Line 23 - Line 24) / Line 24')

        total_expenses = sum(line.current.total for line in parts[1:])
        ctx.details.update({
            'total_expenses_pmpm': total_expenses,
            'total_expenses_annual': total_expenses * projected_mm,
            'required_premium_annual': final * projected_mm,
        })

        return RatingOutcome(
            final_premium=final,
            rate_change=change,
            member_months=ctx.member_months_used(1.0, 0.0),
            incurred_claims_pmpm=paid.current,
            projected_claims_pmpm=projected.current,
            total_retention_pmpm=total_expenses,
        )
