"""
renewal_engine/errors.py - Renewal Engine Error Taxonomy

Typed failures raised by the renewal calculators.

Structural failures (raised before any calculation line is produced):
- InsufficientDataError: fewer than 4 months of claims experience
- InvalidClaimantError: malformed large-claimant record
- InvalidParametersError: missing or out-of-domain carrier parameters
- InvalidInputError: malformed claims series or effective dates

Recovered failures:
- DivisionGuardError: zero denominator (member months, current premium).
  Raised internally, caught at the line that produced it, replaced with a
  0.0 sentinel and recorded as a data-quality warning.

Author: Actuarial Pipeline Project
License: MIT
"""

from typing import List, Optional


class RenewalEngineError(Exception):
    """Base class for all renewal engine failures."""


class InsufficientDataError(RenewalEngineError):
    """Claims history too short to produce a renewal."""

    def __init__(self, months_available: int, months_required: int = 4):
        self.months_available = months_available
        self.months_required = months_required
        super().__init__(
            f"Insufficient data: {months_available} months of claims experience "
            f"available, at least {months_required} required"
        )


class InvalidClaimantError(RenewalEngineError):
    """A large-claimant record cannot be pooled."""

    def __init__(self, claimant_id: Optional[str], reason: str):
        self.claimant_id = claimant_id
        self.reason = reason
        super().__init__(f"Invalid claimant {claimant_id or '<unidentified>'}: {reason}")


class InvalidParametersError(RenewalEngineError):
    """Carrier parameter set failed validation."""

    def __init__(self, carrier: Optional[str], problems: List[str]):
        self.carrier = carrier
        self.problems = list(problems)
        prefix = f"Invalid {carrier} parameters" if carrier else "Invalid parameters"
        super().__init__(f"{prefix}: " + "; ".join(self.problems))


class InvalidInputError(RenewalEngineError):
    """Claims series or effective dates are structurally malformed."""


class DivisionGuardError(RenewalEngineError):
    """A ratio was requested with a zero denominator."""

    def __init__(self, label: str, substitute: float = 0.0):
        self.label = label
        self.substitute = substitute
        super().__init__(
            f"DivisionGuardError: {label} has a zero denominator; "
            f"substituted {substitute}"
        )
