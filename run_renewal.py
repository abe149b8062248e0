#!/usr/bin/env python3
"""
run_renewal.py - Group Health Renewal Runner

Runs one carrier renewal from CSV record sets:
1. Adapt the monthly claims (and large claimant) record set
2. Load carrier parameters from JSON, or derive defaults
3. Calculate the renewal line by line
4. Print the calculation lines and the summary

Usage:
    python run_renewal.py \\
        --carrier AETNA \\
        --claims monthly_claims.csv \\
        --claimants large_claimants.csv \\
        --renewal-start 2025-07-01 \\
        --renewal-end 2026-06-30 \\
        --params aetna_params.json

Author: Actuarial Pipeline Project
License: MIT
"""

import argparse
import json
import sys
import logging
from datetime import datetime, date
from pathlib import Path
from typing import Any, Dict, Optional

import pandas as pd

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def parse_date(date_str: str) -> date:
    """Parse date string in YYYY-MM-DD format."""
    return datetime.strptime(date_str, '%Y-%m-%d').date()


def load_parameters(path: Optional[str]) -> Optional[Dict[str, Any]]:
    """Read a carrier parameter mapping from JSON (None = carrier defaults)."""
    if not path:
        return None
    with open(path) as f:
        return json.load(f)


def run_renewal(
    carrier: str,
    case_id: str,
    claims_path: str,
    renewal_start: date,
    renewal_end: date,
    claimants_path: Optional[str] = None,
    params_path: Optional[str] = None,
    manual_medical: Optional[float] = None,
    manual_rx: Optional[float] = None,
):
    """
    Run a complete carrier renewal.

    Args:
        carrier: AETNA, UHC, CIGNA or BCBS
        case_id: Case identifier
        claims_path: Monthly claims CSV
        renewal_start: First day of the renewal period
        renewal_end: Last day of the renewal period
        claimants_path: Large claimant CSV
        params_path: Carrier parameter JSON
        manual_medical: Manual medical rate PMPM
        manual_rx: Manual rx rate PMPM

    Returns:
        RenewalResult or CompositeResult
    """
    from renewal_engine import (
        EffectiveDates, ManualRates, RecordSetLoader, create_engine
    )

    print("=" * 70)
    print(f"GROUP HEALTH RENEWAL - {carrier.upper()} - {case_id}")
    print("=" * 70)
    print()

    # =========================================================================
    # STEP 1: Adapt Record Set
    # =========================================================================
    print("Step 1: Loading claims experience...")

    manual_rates = None
    if manual_medical is not None and manual_rx is not None:
        manual_rates = ManualRates(medical=manual_medical, rx=manual_rx)

    loader = RecordSetLoader(carrier, case_id,
                             EffectiveDates(renewal_start, renewal_end), manual_rates)
    record_set = loader.load_csv(claims_path, claimants_path)
    summary = record_set.get_summary()

    print(f"  Months loaded: {summary['months_loaded']}")
    print(f"  Claimants loaded: {summary['claimants_loaded']}")
    print(f"  Rows dropped: {summary['rows_dropped']}")
    print(f"  Input hash: {summary['input_hash'][:16]}...")
    print()

    # =========================================================================
    # STEP 2: Calculate Renewal
    # =========================================================================
    print("Step 2: Calculating renewal...")

    parameters = load_parameters(params_path)
    if parameters is None:
        print("  No parameter file supplied; deriving carrier defaults")

    result = create_engine().calculate(carrier, record_set.universal_input, parameters)

    # =========================================================================
    # STEP 3: Report
    # =========================================================================
    print()
    with pd.option_context('display.max_rows', None, 'display.width', 160,
                           'display.float_format', '{:,.4f}'.format):
        print(result.to_frame().to_string(index=False))
    print()

    print("=" * 70)
    print("SUMMARY")
    print("=" * 70)
    for key, value in result.get_summary().items():
        print(f"  {key}: {value}")

    if result.warnings:
        print()
        print("Warnings:")
        for warning in result.warnings:
            print(f"  - {warning}")

    return result


def main():
    parser = argparse.ArgumentParser(
        description='Run a group health premium renewal',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Carrier defaults derived from the experience
  python run_renewal.py \\
      --carrier CIGNA \\
      --claims monthly_claims.csv \\
      --renewal-start 2025-07-01 \\
      --renewal-end 2026-06-30

  # Explicit parameters and large claimants
  python run_renewal.py \\
      --carrier AETNA \\
      --case-id ACME-2025 \\
      --claims monthly_claims.csv \\
      --claimants large_claimants.csv \\
      --renewal-start 2025-07-01 \\
      --renewal-end 2026-06-30 \\
      --params aetna_params.json \\
      --manual-medical 512.40 --manual-rx 143.10
"""
    )

    parser.add_argument('--carrier', type=str, required=True,
                        help='Carrier methodology (AETNA, UHC, CIGNA, BCBS)')
    parser.add_argument('--case-id', type=str, default='CASE', help='Case identifier')
    parser.add_argument('--claims', type=str, required=True, help='Monthly claims CSV')
    parser.add_argument('--claimants', type=str, help='Large claimant CSV')
    parser.add_argument('--renewal-start', type=str, required=True,
                        help='Renewal effective date (YYYY-MM-DD)')
    parser.add_argument('--renewal-end', type=str, required=True,
                        help='Renewal end date (YYYY-MM-DD)')
    parser.add_argument('--params', type=str, help='Carrier parameter JSON file')
    parser.add_argument('--manual-medical', type=float, help='Manual medical rate PMPM')
    parser.add_argument('--manual-rx', type=float, help='Manual rx rate PMPM')

    args = parser.parse_args()

    for path in (args.claims, args.claimants, args.params):
        if path and not Path(path).exists():
            print(f"ERROR: File not found: {path}")
            sys.exit(1)

    from renewal_engine import RenewalEngineError

    try:
        run_renewal(
            carrier=args.carrier,
            case_id=args.case_id,
            claims_path=args.claims,
            renewal_start=parse_date(args.renewal_start),
            renewal_end=parse_date(args.renewal_end),
            claimants_path=args.claimants,
            params_path=args.params,
            manual_medical=args.manual_medical,
            manual_rx=args.manual_rx,
        )
    except RenewalEngineError as e:
        logger.error(str(e))
        sys.exit(1)


if __name__ == '__main__':
    main()
