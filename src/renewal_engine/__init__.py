"""
Group Health Renewal Engine

Line-by-line renewal premium derivations for fully insured group health
plans under four carrier methodologies (Aetna, UHC, Cigna, BCBS), with
multi-plan BCBS composites.

Pipeline:
- Period normalization (current / prior twelve months, annualization)
- Large-claimant pooling
- Carrier adjustments, trend, period weighting and credibility
- Retention loading, final premium and rate change

Author: Actuarial Pipeline Project
License: MIT
"""

__version__ = "1.0.0"
__author__ = "Actuarial Pipeline Project"

from .engine import (
    RenewalEngine,
    create_engine,
    calculate_renewal,
    compare_carriers
)

from .models import (
    Carrier,
    MonthlyClaimsPoint,
    LargeClaimant,
    EffectiveDates,
    ManualRates,
    EnrollmentTiers,
    PlanExperience,
    UniversalInput
)

from .parameters import (
    RoundingPolicy,
    CredibilityParameters,
    PeriodWeights,
    RetentionComponent,
    AetnaParameters,
    UHCParameters,
    CignaParameters,
    BCBSPlanParameters,
    BCBSParameters,
    build_parameters,
    create_default_parameters
)

from .periods import (
    ExperiencePeriod,
    ExperiencePeriods,
    normalize
)

from .claimants import (
    ClaimantPolicy,
    PoolingResult,
    process
)

from .lines import (
    CoverageAmounts,
    CalculationLine,
    LineUnit,
    ZERO
)

from .results import (
    RenewalResult,
    PlanResult,
    CompositeResult
)

from .calculator import CarrierCalculator
from .aetna import AetnaCalculator
from .uhc import UHCCalculator
from .cigna import CignaCalculator
from .bcbs import BCBSCalculator
from .composite import MultiPlanComposer, compose

from .ingestion import (
    RecordSetLoader,
    RecordSetResult,
    load_record_set
)

from .quality import DataQuality

from .errors import (
    RenewalEngineError,
    InsufficientDataError,
    InvalidClaimantError,
    InvalidParametersError,
    InvalidInputError,
    DivisionGuardError
)

__all__ = [
    # Main engine
    "RenewalEngine",
    "create_engine",
    "calculate_renewal",
    "compare_carriers",

    # Input model
    "Carrier",
    "MonthlyClaimsPoint",
    "LargeClaimant",
    "EffectiveDates",
    "ManualRates",
    "EnrollmentTiers",
    "PlanExperience",
    "UniversalInput",

    # Parameters
    "RoundingPolicy",
    "CredibilityParameters",
    "PeriodWeights",
    "RetentionComponent",
    "AetnaParameters",
    "UHCParameters",
    "CignaParameters",
    "BCBSPlanParameters",
    "BCBSParameters",
    "build_parameters",
    "create_default_parameters",

    # Periods and pooling
    "ExperiencePeriod",
    "ExperiencePeriods",
    "normalize",
    "ClaimantPolicy",
    "PoolingResult",
    "process",

    # Calculation lines and results
    "CoverageAmounts",
    "CalculationLine",
    "LineUnit",
    "ZERO",
    "RenewalResult",
    "PlanResult",
    "CompositeResult",
    "DataQuality",

    # Carrier calculators
    "CarrierCalculator",
    "AetnaCalculator",
    "UHCCalculator",
    "CignaCalculator",
    "BCBSCalculator",
    "MultiPlanComposer",
    "compose",

    # Record-set adapter
    "RecordSetLoader",
    "RecordSetResult",
    "load_record_set",

    # Errors
    "RenewalEngineError",
    "InsufficientDataError",
    "InvalidClaimantError",
    "InvalidParametersError",
    "InvalidInputError",
    "DivisionGuardError",
]
