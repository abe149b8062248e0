"""
renewal_engine/engine.py - Renewal Engine

Entry point that dispatches a renewal to its carrier methodology.

    engine = create_engine()
    result = engine.calculate('AETNA', universal_input, parameters)

Parameters may be a validated parameter model, a plain mapping (validated
here), or None to derive carrier defaults from the group's experience.
BCBS parameter groups are rated plan by plan and returned as a
CompositeResult; every other carrier returns a RenewalResult.

Author: Actuarial Pipeline Project
License: MIT
"""

import pandas as pd
from typing import Any, Callable, Dict, Mapping, Optional, Union
import logging

from .aetna import AetnaCalculator
from .bcbs import BCBSCalculator
from .calculator import CarrierCalculator
from .cigna import CignaCalculator
from .composite import MultiPlanComposer
from .models import Carrier, UniversalInput
from .parameters import (BCBSParameters, CarrierParameters, build_parameters,
                         create_default_parameters)
from .results import CompositeResult, RenewalResult
from .uhc import UHCCalculator

logger = logging.getLogger(__name__)

ParameterInput = Optional[Union[CarrierParameters, Mapping[str, Any]]]
AnyResult = Union[RenewalResult, CompositeResult]


class RenewalEngine:
    """Carrier-dispatching renewal engine."""

    def __init__(self, calculators: Optional[Dict[Carrier, CarrierCalculator]] = None):
        self.calculators: Dict[Carrier, CarrierCalculator] = {
            Carrier.AETNA: AetnaCalculator(),
            Carrier.UHC: UHCCalculator(),
            Carrier.CIGNA: CignaCalculator(),
            Carrier.BCBS: BCBSCalculator(),
        }
        if calculators:
            self.calculators.update(calculators)
        self.composer = MultiPlanComposer(self.calculators[Carrier.BCBS])

        logger.info(f"RenewalEngine initialized: "
                    f"{', '.join(c.value for c in self.calculators)}")

    def resolve_parameters(self, carrier: Carrier, universal_input: UniversalInput,
                           parameters: ParameterInput):
        if parameters is None:
            return create_default_parameters(carrier, universal_input)
        return build_parameters(carrier, parameters)

    def calculate(self, carrier_id: Union[Carrier, str], universal_input: UniversalInput,
                  parameters: ParameterInput = None) -> AnyResult:
        """
        Run one carrier methodology.

        Args:
            carrier_id: Carrier enum or case-insensitive name
            universal_input: Claims experience and renewal dates
            parameters: Parameter model, mapping, or None for defaults

        Returns:
            RenewalResult, or CompositeResult for a BCBS plan group

        Raises:
            InsufficientDataError: fewer than 4 months of experience
            InvalidClaimantError: malformed claimant under the abort policy
            InvalidParametersError: unknown carrier or invalid parameters
        """
        carrier = Carrier.parse(carrier_id)
        resolved = self.resolve_parameters(carrier, universal_input, parameters)
        logger.info(f"Dispatching case {universal_input.case_id} to {carrier.value}")

        if isinstance(resolved, BCBSParameters):
            return self.composer.compose(universal_input, resolved)
        return self.calculators[carrier].calculate(universal_input, resolved)

    def compare_carriers(self, universal_input: UniversalInput,
                         parameter_sets: Mapping[Union[Carrier, str], ParameterInput],
                         progress_callback: Optional[Callable] = None) -> pd.DataFrame:
        """
        Rate the same experience under several carriers.

        Args:
            universal_input: Claims experience and renewal dates
            parameter_sets: Carrier -> parameters (None for defaults)
            progress_callback: Optional callable(processed, total)

        Returns:
            DataFrame with one row per carrier
        """
        rows = []
        total = len(parameter_sets)
        for processed, (carrier_id, parameters) in enumerate(parameter_sets.items(), start=1):
            result = self.calculate(carrier_id, universal_input, parameters)
            rows.append(_comparison_row(result))
            if progress_callback:
                progress_callback(processed, total)

        frame = pd.DataFrame(rows)
        if not frame.empty:
            frame = frame.sort_values('final_premium_pmpm').reset_index(drop=True)
        return frame


def _comparison_row(result: AnyResult) -> Dict:
    if isinstance(result, CompositeResult):
        line_count = sum(len(plan.result.calculations) for plan in result.plans)
        credibility = max((plan.result.data_quality.credibility_score
                           for plan in result.plans), default=0.0)
        warning_count = len(result.warnings) + sum(len(plan.result.warnings)
                                                   for plan in result.plans)
    else:
        line_count = len(result.calculations)
        credibility = result.data_quality.credibility_score
        warning_count = len(result.warnings)

    return {
        'carrier': result.carrier.value,
        'final_premium_pmpm': result.final_premium_pmpm,
        'current_premium_pmpm': result.current_premium_pmpm,
        'rate_change': result.rate_change,
        'credibility': credibility,
        'line_count': line_count,
        'warning_count': warning_count,
    }


def create_engine(calculators: Optional[Dict[Carrier, CarrierCalculator]] = None) -> RenewalEngine:
    return RenewalEngine(calculators)


def calculate_renewal(carrier_id: Union[Carrier, str], universal_input: UniversalInput,
                      parameters: ParameterInput = None) -> AnyResult:
    """Calculate a renewal with a default engine."""
    return create_engine().calculate(carrier_id, universal_input, parameters)


def compare_carriers(universal_input: UniversalInput,
                     parameter_sets: Mapping[Union[Carrier, str], ParameterInput]) -> pd.DataFrame:
    """Comparison table of several carriers rating the same experience."""
    return create_engine().compare_carriers(universal_input, parameter_sets)
