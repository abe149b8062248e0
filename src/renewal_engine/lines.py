"""
renewal_engine/lines.py - Calculation Line Audit Trail

Every carrier methodology is reported as an ordered list of numbered
calculation lines. Each line carries three coverage columns:
- med_cap: medical and capitation
- rx: pharmacy
- total

and up to three period columns (current, prior, and annual for carriers
that report annual dollars).

Invariant: for amount (PMPM) lines, total = med_cap + rx. Factor, rate and
count lines carry one value per column with no additive relationship.

An absent prior period is represented by the ZERO sentinel, never NaN.

Author: Actuarial Pipeline Project
License: MIT
"""

import pandas as pd
from typing import Dict, List, Optional, Tuple
from dataclasses import dataclass
from enum import Enum
import logging

from .financials import apply_rounding

logger = logging.getLogger(__name__)


class LineUnit(Enum):
    """How a calculation line's values are read."""
    PMPM = "pmpm"
    FACTOR = "factor"
    RATE = "rate"
    COUNT = "count"


@dataclass(frozen=True)
class CoverageAmounts:
    """Medical/capitation, pharmacy and total values of one period column."""
    med_cap: float
    rx: float
    total: float

    @classmethod
    def amounts(cls, med_cap: float, rx: float) -> "CoverageAmounts":
        """Additive amounts; total is derived."""
        return cls(med_cap=med_cap, rx=rx, total=med_cap + rx)

    @classmethod
    def uniform(cls, value: float) -> "CoverageAmounts":
        """Single factor applied to every coverage."""
        return cls(med_cap=value, rx=value, total=value)

    @classmethod
    def split(cls, med_cap: float, rx: float, total: float) -> "CoverageAmounts":
        """Non-additive values (e.g. separate medical and rx trend factors)."""
        return cls(med_cap=med_cap, rx=rx, total=total)

    def scaled(self, factor: float) -> "CoverageAmounts":
        return CoverageAmounts(self.med_cap * factor, self.rx * factor, self.total * factor)

    def rounded(self, places: Optional[int], method: str) -> "CoverageAmounts":
        if places is None:
            return self
        return CoverageAmounts.amounts(apply_rounding(self.med_cap, places, method),
                                       apply_rounding(self.rx, places, method))


ZERO = CoverageAmounts(0.0, 0.0, 0.0)


@dataclass(frozen=True)
class CalculationLine:
    """One numbered step of a carrier methodology."""
    number: str
    description: str
    unit: LineUnit
    current: CoverageAmounts
    prior: CoverageAmounts = ZERO
    annual: Optional[CoverageAmounts] = None
    formula: str = ""

    @property
    def is_amount(self) -> bool:
        return self.unit == LineUnit.PMPM

    def to_record(self) -> Dict:
        record = {
            'line': self.number,
            'description': self.description,
            'unit': self.unit.value,
            'current_med_cap': self.current.med_cap,
            'current_rx': self.current.rx,
            'current_total': self.current.total,
            'prior_med_cap': self.prior.med_cap,
            'prior_rx': self.prior.rx,
            'prior_total': self.prior.total,
            'formula': self.formula,
        }
        if self.annual is not None:
            record.update({
                'annual_med_cap': self.annual.med_cap,
                'annual_rx': self.annual.rx,
                'annual_total': self.annual.total,
            })
        return record


class LineBook:
    """
    Append-only, ordered collection of calculation lines.

    PMPM lines are rounded on entry when a line precision is configured,
    so later lines are computed from the same values the audit trail shows.
    """

    def __init__(self, line_places: Optional[int] = None, method: str = 'half_up'):
        self._lines: List[CalculationLine] = []
        self._index: Dict[str, CalculationLine] = {}
        self.line_places = line_places
        self.method = method

    def add(self, number: str, description: str, unit: LineUnit,
            current: CoverageAmounts, prior: CoverageAmounts = ZERO,
            annual: Optional[CoverageAmounts] = None,
            formula: str = "") -> CalculationLine:
        if number in self._index:
            raise ValueError(f"Calculation line {number} already recorded")
        if unit == LineUnit.PMPM:
            current = current.rounded(self.line_places, self.method)
            prior = prior.rounded(self.line_places, self.method)
            if annual is not None:
                annual = annual.rounded(self.line_places, self.method)

        line = CalculationLine(number, description, unit, current, prior, annual, formula)
        self._lines.append(line)
        self._index[number] = line
        logger.debug(f"Line {number:>4} {description}: current={current.total:.6f} "
                     f"prior={prior.total:.6f}")
        return line

    def __getitem__(self, number: str) -> CalculationLine:
        return self._index[number]

    def __contains__(self, number: str) -> bool:
        return number in self._index

    def __len__(self) -> int:
        return len(self._lines)

    @property
    def lines(self) -> Tuple[CalculationLine, ...]:
        return tuple(self._lines)


def lines_to_frame(lines) -> pd.DataFrame:
    """Audit table of calculation lines, one row per line."""
    return pd.DataFrame([line.to_record() for line in lines])
