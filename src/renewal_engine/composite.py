"""
renewal_engine/composite.py - Multi-Plan Composite Rating

Rates every plan of a BCBS group independently and combines the results
by enrollment weight.

Composite Formulas:
    Composite PMPM          = Σ(final_i × w_i) / Σ(w_i)
    Composite current PMPM  = Σ(current_i × w_i) / Σ(w_i)
    Composite rate change   = (composite PMPM − composite current) / composite current

Plans with zero enrollment weight are reported but excluded from the
sums. Plan results are kept exactly as the single-plan calculator
produced them.

Group-level current premium, claimant policy and rounding apply to plans
that do not set their own. The rounded composite is held within the range
of the plan premiums.

Author: Actuarial Pipeline Project
License: MIT
"""

import numpy as np
from typing import Any, Dict, List, Mapping, Optional, Union
import logging

from .bcbs import BCBSCalculator
from .errors import DivisionGuardError
from .financials import apply_rounding, guarded_divide
from .lines import CalculationLine, CoverageAmounts, LineUnit
from .models import Carrier, EnrollmentTiers, UniversalInput
from .parameters import BCBSParameters, BCBSPlanParameters, build_parameters
from .quality import DataQualityRecorder
from .results import CompositeResult, PlanResult

logger = logging.getLogger(__name__)

COMPOSITE_LINE = '30'


class MultiPlanComposer:
    """
    Enrollment-weighted composite of BCBS plan renewals.

    Example:
        >>> composer = MultiPlanComposer()
        >>> composite = composer.compose(universal_input, bcbs_parameters)
        >>> composite.composite_premium_pmpm
    """

    def __init__(self, calculator: Optional[BCBSCalculator] = None):
        self.calculator = calculator or BCBSCalculator()

    def compose(self, universal_input: UniversalInput,
                parameters: Union[BCBSParameters, Mapping[str, Any]]) -> CompositeResult:
        """
        Rate each plan and combine by enrollment weight.

        Args:
            universal_input: Group input (plan series in plan_experience)
            parameters: BCBS group parameters, one entry per plan

        Returns:
            CompositeResult with the unmodified plan results
        """
        parameters = build_parameters(Carrier.BCBS, parameters)
        if isinstance(parameters, BCBSPlanParameters):
            parameters = BCBSParameters(plans=[parameters])

        recorder = DataQualityRecorder()
        plans: List[PlanResult] = []
        weights: Dict[str, float] = {}

        # =====================================================================
        # STEP 1: Rate each plan on its own experience
        # =====================================================================
        for plan in parameters.plan_parameters():
            result = self.calculator.calculate_plan(universal_input, plan)
            weight = plan.resolved_enrollment_weight()
            weights[plan.plan_id] = weight
            plans.append(PlanResult(
                plan_id=plan.plan_id,
                plan_name=plan.plan_name,
                result=result,
                enrollment_weight=weight,
                enrollment=(EnrollmentTiers(**plan.enrollment.model_dump())
                            if plan.enrollment is not None else None),
            ))

            if weight == 0:
                recorder.warn(f"Plan {plan.plan_id} has zero enrollment and is excluded "
                              f"from the composite")
            if abs(result.rate_change) > parameters.large_rate_action_threshold:
                recorder.warn(f"Plan {plan.plan_id} has significant rate change: "
                              f"{result.rate_change * 100:.1f}%")

        # =====================================================================
        # STEP 2: Enrollment-weighted composite
        # =====================================================================
        active = [plan for plan in plans if plan.enrollment_weight > 0]
        if active:
            w = [plan.enrollment_weight for plan in active]
            composite = float(np.average([plan.final_premium_pmpm for plan in active],
                                         weights=w))
            composite_current = float(np.average([plan.current_premium_pmpm
                                                  for plan in active], weights=w))
        else:
            recorder.record_division_guard(
                DivisionGuardError("composite premium (total enrollment weight)"))
            composite = composite_current = 0.0

        rounding = parameters.rounding
        composite = apply_rounding(composite, rounding.premium_places, rounding.method)
        if active:
            # Plans may round differently from the group; stay within the plan range
            finals = [plan.final_premium_pmpm for plan in active]
            composite = float(np.clip(composite, min(finals), max(finals)))
        change = guarded_divide(composite - composite_current, composite_current,
                                "composite rate change (composite current premium)", recorder)
        change = apply_rounding(change, rounding.rate_places, rounding.method)

        line = CalculationLine(
            number=COMPOSITE_LINE,
            description='Composite Rate Action',
            unit=LineUnit.RATE,
            current=CoverageAmounts.uniform(change),
            formula=f"Composite ${composite:,.2f} vs current ${composite_current:,.2f} "
                    f"over {len(active)} of {len(plans)} plans",
        )

        logger.info(f"BCBS composite for {universal_input.case_id}: {len(plans)} plans, "
                    f"${composite:,.2f} PMPM ({change:+.2%})")

        warnings = tuple(recorder.warnings)
        return CompositeResult(
            carrier=Carrier.BCBS,
            case_id=universal_input.case_id,
            plans=tuple(plans),
            composite_premium_pmpm=composite,
            composite_current_premium_pmpm=composite_current,
            composite_rate_change=change,
            enrollment_weights=weights,
            composite_line=line,
            warnings=warnings,
        )


def compose(universal_input: UniversalInput,
            parameters: Union[BCBSParameters, Mapping[str, Any]]) -> CompositeResult:
    """Rate a multi-plan BCBS group."""
    return MultiPlanComposer().compose(universal_input, parameters)
