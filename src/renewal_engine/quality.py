"""
renewal_engine/quality.py - Data Quality Tracking

Collects the warnings produced while a renewal is calculated:
- Limited or very limited experience (annualized results)
- Missing prior period
- Months without claims or without member months
- Claimants dropped by the claimant policy
- Recovered division guards (zero denominators)

DataQualityRecorder is the mutable accumulator used during one calculation;
DataQuality is the frozen snapshot attached to the result.

Author: Actuarial Pipeline Project
License: MIT
"""

from typing import Dict, List, Tuple
from dataclasses import dataclass, field
from enum import Enum
import logging

from .errors import DivisionGuardError

logger = logging.getLogger(__name__)


class DataQualityLevel(Enum):
    """Overall data quality classification."""
    CLEAN = "clean"
    LIMITED = "limited"
    GUARDED = "guarded"


@dataclass(frozen=True)
class DataQuality:
    """Data-quality block of a renewal result."""
    credibility_score: float
    data_completeness: float
    annualization_applied: bool
    warnings: Tuple[str, ...] = ()
    division_guards: Tuple[str, ...] = ()

    @property
    def level(self) -> DataQualityLevel:
        if self.division_guards:
            return DataQualityLevel.GUARDED
        if self.warnings:
            return DataQualityLevel.LIMITED
        return DataQualityLevel.CLEAN

    def get_summary(self) -> Dict:
        return {
            'credibility_score': self.credibility_score,
            'data_completeness': self.data_completeness,
            'annualization_applied': self.annualization_applied,
            'level': self.level.value,
            'warning_count': len(self.warnings),
            'division_guard_count': len(self.division_guards),
        }


@dataclass
class DataQualityRecorder:
    """Accumulates warnings for a single calculation."""
    warnings: List[str] = field(default_factory=list)
    division_guards: List[str] = field(default_factory=list)

    def warn(self, message: str) -> None:
        if message in self.warnings:
            return
        logger.warning(message)
        self.warnings.append(message)

    def extend(self, messages) -> None:
        for message in messages:
            self.warn(message)

    def record_division_guard(self, error: DivisionGuardError) -> None:
        self.division_guards.append(error.label)
        self.warn(str(error))

    def snapshot(self, credibility_score: float, data_completeness: float,
                 annualization_applied: bool) -> DataQuality:
        return DataQuality(
            credibility_score=credibility_score,
            data_completeness=data_completeness,
            annualization_applied=annualization_applied,
            warnings=tuple(self.warnings),
            division_guards=tuple(self.division_guards),
        )
