"""
renewal_engine/ingestion.py - Record-Set Adapter

Turns the typed tabular record set delivered by the upstream ingestion
layer into a UniversalInput, with an audit trail:
1. SHA-256 hash of the record set for reproducibility
2. Header standardization against a fixed vocabulary
3. Reconciliation of supplied totals against medical + rx
4. A log of every row dropped, sorted or zero-filled

Claims columns:    month, member_months, medical_claims, rx_claims,
                   [total_claims], [earned_premium]
Claimant columns:  claimant_id, incurred_date, total_amount,
                   [medical_amount], [rx_amount], [diagnosis], [claim_type]

Author: Actuarial Pipeline Project
License: MIT
"""

import numpy as np
import pandas as pd
import hashlib
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple, Union
from dataclasses import dataclass, field
from pathlib import Path
import logging

from .errors import InvalidInputError
from .models import (Carrier, EffectiveDates, LargeClaimant, ManualRates,
                     MonthlyClaimsPoint, UniversalInput)

logger = logging.getLogger(__name__)

TOTAL_TOLERANCE = 0.01


@dataclass
class AdapterRecord:
    """One adjustment made while adapting the record set."""
    row: Any
    field_name: str
    action: str
    reason: str


@dataclass
class RecordSetResult:
    """The adapted input and its audit report."""
    universal_input: UniversalInput
    input_hash: str
    claims_rows: int
    claimant_rows: int
    audit_log: List[AdapterRecord] = field(default_factory=list)
    processing_timestamp: datetime = field(default_factory=datetime.now)

    @property
    def rows_dropped(self) -> int:
        return sum(1 for r in self.audit_log if r.action == 'dropped')

    def get_summary(self) -> Dict:
        """Get summary statistics."""
        ui = self.universal_input
        return {
            'carrier': ui.carrier.value,
            'case_id': ui.case_id,
            'input_hash': self.input_hash,
            'claims_rows': self.claims_rows,
            'claimant_rows': self.claimant_rows,
            'months_loaded': len(ui.monthly_claims),
            'claimants_loaded': len(ui.large_claimants),
            'rows_dropped': self.rows_dropped,
            'adjustments': len(self.audit_log),
            'processing_timestamp': self.processing_timestamp.isoformat(),
        }


class RecordSetLoader:
    """
    Record-set adapter.

    Example:
        >>> loader = RecordSetLoader('AETNA', 'CASE-1', dates)
        >>> result = loader.load_frames(claims_df, claimants_df)
        >>> result.universal_input.months_available
    """

    REQUIRED_CLAIMS_COLUMNS = ('month', 'member_months', 'medical_claims', 'rx_claims')
    REQUIRED_CLAIMANT_COLUMNS = ('claimant_id', 'incurred_date', 'total_amount')

    COLUMN_ALIASES = {
        'month': 'month', 'period': 'month', 'incurredmonth': 'month',
        'membermonths': 'member_months', 'mm': 'member_months', 'members': 'member_months',
        'medicalclaims': 'medical_claims', 'medical': 'medical_claims',
        'rxclaims': 'rx_claims', 'rx': 'rx_claims', 'pharmacyclaims': 'rx_claims',
        'totalclaims': 'total_claims', 'total': 'total_claims',
        'earnedpremium': 'earned_premium', 'premium': 'earned_premium',
        'claimantid': 'claimant_id', 'memberid': 'claimant_id', 'id': 'claimant_id',
        'incurreddate': 'incurred_date', 'dateofservice': 'incurred_date',
        'totalamount': 'total_amount', 'totalpaid': 'total_amount',
        'medicalamount': 'medical_amount', 'rxamount': 'rx_amount',
        'diagnosis': 'diagnosis', 'claimtype': 'claim_type',
    }

    def __init__(self, carrier: Union[Carrier, str], case_id: str,
                 effective_dates: EffectiveDates,
                 manual_rates: Optional[ManualRates] = None):
        self.carrier = Carrier.parse(carrier)
        self.case_id = case_id
        self.effective_dates = effective_dates
        self.manual_rates = manual_rates
        self.audit_log: List[AdapterRecord] = []

    def load_frames(self, claims: pd.DataFrame,
                    claimants: Optional[pd.DataFrame] = None) -> RecordSetResult:
        """
        Adapt claims and claimant frames.

        Raises:
            InvalidInputError: missing columns, unparseable dates or totals
                that do not reconcile
        """
        self.audit_log = []

        # ================================================================
        # STEP 1: Hash the record set as delivered
        # ================================================================
        input_hash = self._hash_frames(claims, claimants)
        logger.info(f"Adapting record set for {self.case_id} (SHA-256: {input_hash[:16]}...)")

        # ================================================================
        # STEP 2: Standardize headers and check required columns
        # ================================================================
        claims = self._standardize_columns(claims)
        self._require(claims, self.REQUIRED_CLAIMS_COLUMNS, 'claims')
        if claimants is not None:
            claimants = self._standardize_columns(claimants)
            self._require(claimants, self.REQUIRED_CLAIMANT_COLUMNS, 'claimants')

        # ================================================================
        # STEP 3: Build typed records
        # ================================================================
        points = self._claims_points(claims)
        large_claimants = self._claimants(claimants) if claimants is not None else []

        universal_input = UniversalInput(
            carrier=self.carrier,
            case_id=self.case_id,
            effective_dates=self.effective_dates,
            monthly_claims=tuple(points),
            manual_rates=self.manual_rates,
            large_claimants=tuple(large_claimants),
        )
        logger.info(f"Loaded {len(points)} months and {len(large_claimants)} claimants "
                    f"({len(self.audit_log)} adjustments)")

        return RecordSetResult(
            universal_input=universal_input,
            input_hash=input_hash,
            claims_rows=len(claims),
            claimant_rows=len(claimants) if claimants is not None else 0,
            audit_log=list(self.audit_log),
        )

    def load_csv(self, claims_path: Union[str, Path],
                 claimants_path: Optional[Union[str, Path]] = None) -> RecordSetResult:
        """Read CSV record sets and adapt them."""
        claims = pd.read_csv(claims_path)
        claimants = pd.read_csv(claimants_path) if claimants_path else None
        return self.load_frames(claims, claimants)

    # --------------------------------------------------------------------

    def _hash_frames(self, claims: pd.DataFrame, claimants: Optional[pd.DataFrame]) -> str:
        sha256 = hashlib.sha256()
        for frame in (claims, claimants):
            if frame is None:
                continue
            sha256.update(','.join(str(c) for c in frame.columns).encode())
            sha256.update(pd.util.hash_pandas_object(frame, index=False).values.tobytes())
        return sha256.hexdigest()

    def _standardize_columns(self, df: pd.DataFrame) -> pd.DataFrame:
        """Standardize column names using aliases."""
        rename_map = {}
        for col in df.columns:
            key = str(col).lower().replace(' ', '').replace('_', '')
            if key in self.COLUMN_ALIASES:
                rename_map[col] = self.COLUMN_ALIASES[key]
        if rename_map:
            df = df.rename(columns=rename_map)
        return df

    @staticmethod
    def _require(df: pd.DataFrame, columns: Tuple[str, ...], name: str) -> None:
        missing = [c for c in columns if c not in df.columns]
        if missing:
            raise InvalidInputError(f"{name} record set is missing columns: {missing}")

    def _log(self, row: Any, field_name: str, action: str, reason: str) -> None:
        self.audit_log.append(AdapterRecord(row, field_name, action, reason))
        logger.debug(f"Row {row} {field_name}: {action} ({reason})")

    @staticmethod
    def _to_dates(series: pd.Series, name: str) -> pd.Series:
        try:
            parsed = pd.to_datetime(series, errors='raise')
        except (ValueError, TypeError) as exc:
            raise InvalidInputError(f"Unparseable {name} values: {exc}") from exc
        return parsed

    @staticmethod
    def _optional(value: Any) -> Optional[float]:
        if value is None or pd.isna(value):
            return None
        return float(value)

    def _claims_points(self, claims: pd.DataFrame) -> List[MonthlyClaimsPoint]:
        df = claims.copy()

        blank = df['month'].isna()
        for idx in df.index[blank]:
            self._log(idx, 'month', 'dropped', 'row has no month')
        df = df[~blank].copy()

        df['month'] = self._to_dates(df['month'], 'month')
        if not df['month'].is_monotonic_increasing:
            df = df.sort_values('month', kind='stable')
            self._log('*', 'month', 'sorted', 'record set was not in month order')

        for col in ('member_months', 'medical_claims', 'rx_claims'):
            values = pd.to_numeric(df[col], errors='coerce')
            for idx in df.index[values.isna()]:
                self._log(idx, col, 'zero_filled', 'missing value')
            df[col] = values.fillna(0.0)

        if 'total_claims' in df.columns:
            supplied = pd.to_numeric(df['total_claims'], errors='coerce')
            diff = (supplied - (df['medical_claims'] + df['rx_claims'])).abs()
            bad = diff[supplied.notna() & (diff > TOTAL_TOLERANCE)]
            if not bad.empty:
                rows = ', '.join(str(i) for i in bad.index[:5])
                raise InvalidInputError(
                    f"total_claims does not equal medical_claims + rx_claims "
                    f"(rows {rows}, max difference {float(np.max(bad.values)):.2f})"
                )

        has_premium = 'earned_premium' in df.columns
        points = []
        for _, row in df.iterrows():
            month = row['month'].date()
            points.append(MonthlyClaimsPoint(
                month=date(month.year, month.month, 1),
                member_months=float(row['member_months']),
                medical_claims=float(row['medical_claims']),
                rx_claims=float(row['rx_claims']),
                earned_premium=self._optional(row['earned_premium']) if has_premium else None,
            ))
        return points

    def _claimants(self, claimants: pd.DataFrame) -> List[LargeClaimant]:
        df = claimants.copy()

        empty = df['claimant_id'].isna() & df['total_amount'].isna()
        for idx in df.index[empty]:
            self._log(idx, 'claimant_id', 'dropped', 'empty claimant row')
        df = df[~empty].copy()

        undated = df['incurred_date'].isna()
        if undated.any():
            ids = ', '.join(str(v) for v in df.loc[undated, 'claimant_id'])
            raise InvalidInputError(f"Claimants without an incurred date: {ids}")
        df['incurred_date'] = self._to_dates(df['incurred_date'], 'incurred_date')

        records = []
        for _, row in df.iterrows():
            cid = row['claimant_id']
            records.append(LargeClaimant(
                claimant_id='' if pd.isna(cid) else str(cid),
                incurred_date=row['incurred_date'].date(),
                total_amount=self._optional(row['total_amount']),
                medical_amount=self._optional(row.get('medical_amount')),
                rx_amount=self._optional(row.get('rx_amount')),
                diagnosis='' if pd.isna(row.get('diagnosis', '')) else str(row.get('diagnosis', '')),
                claim_type='' if pd.isna(row.get('claim_type', '')) else str(row.get('claim_type', '')),
            ))
        return records


def load_record_set(claims: pd.DataFrame, claimants: Optional[pd.DataFrame] = None,
                    carrier: Union[Carrier, str] = Carrier.AETNA,
                    case_id: str = "CASE",
                    effective_dates: Optional[EffectiveDates] = None,
                    manual_rates: Optional[ManualRates] = None) -> RecordSetResult:
    """
    Adapt a claims record set (and optional claimant list) to a UniversalInput.

    Args:
        claims: Monthly claims frame
        claimants: Large claimant frame
        carrier: Carrier identity
        case_id: Case identifier
        effective_dates: Renewal period (required)
        manual_rates: Manual medical/rx rates

    Returns:
        RecordSetResult with the input and its audit trail
    """
    if effective_dates is None:
        raise InvalidInputError("effective_dates are required")
    loader = RecordSetLoader(carrier, case_id, effective_dates, manual_rates)
    return loader.load_frames(claims, claimants)
