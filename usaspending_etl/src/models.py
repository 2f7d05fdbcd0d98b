"""
Data Models Module
Internal record shapes for awards, transactions, query filters and reports.

Awards and transactions are frozen: they are created by the normalizer and
never changed afterwards.
"""

from dataclasses import dataclass, field, fields, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from .field_mappings import NEW_ACTION_DESCRIPTION


class ResourceKind(Enum):
    """Searchable resources of the USAspending API"""
    AWARDS = "awards"
    TRANSACTIONS = "transactions"


def _to_json_value(value: Any) -> Any:
    """Convert model values into JSON-friendly ones."""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    return value


def _record_to_dict(record: Any) -> Dict[str, Any]:
    return {f.name: _to_json_value(getattr(record, f.name)) for f in fields(record)}


def _decimal(value: Any) -> Decimal:
    if value is None or value == '':
        return Decimal(0)
    return Decimal(str(value))


@dataclass(frozen=True)
class SearchFilter:
    """
    Query criteria sent to the search endpoints.

    The same shape is used for the date-window queries and for the
    identifier-based award lookups.
    """
    award_type_codes: List[str] = field(default_factory=list)
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    award_ids: List[str] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        """Build the API 'filters' object, leaving out unset criteria."""
        payload: Dict[str, Any] = {}

        if self.award_type_codes:
            payload['award_type_codes'] = list(self.award_type_codes)

        bounds: Dict[str, Any] = {}
        if self.min_amount is not None:
            bounds['lower_bound'] = float(self.min_amount)
        if self.max_amount is not None:
            bounds['upper_bound'] = float(self.max_amount)
        if bounds:
            payload['award_amounts'] = [bounds]

        if self.start_date and self.end_date:
            payload['time_period'] = [{
                'start_date': self.start_date.isoformat(),
                'end_date': self.end_date.isoformat(),
            }]

        if self.award_ids:
            payload['award_ids'] = list(self.award_ids)

        return payload

    def with_award_ids(self, award_ids: List[str]) -> 'SearchFilter':
        """Copy of this filter restricted to the given award ids."""
        return replace(self, award_ids=list(award_ids))

    @property
    def date_range(self) -> Dict[str, str]:
        return {
            'start': self.start_date.isoformat() if self.start_date else '',
            'end': self.end_date.isoformat() if self.end_date else '',
        }


@dataclass(frozen=True)
class Award:
    """Rolled-up current state of a contract or assistance award."""
    # Award metadata
    award_id: str
    award_type: str = 'Unknown'
    award_amount: Decimal = Decimal(0)
    award_date: str = ''
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    last_modified_date: Optional[str] = None
    base_obligation_date: Optional[str] = None

    # Agency context
    awarding_agency: str = ''
    awarding_sub_agency: Optional[str] = None
    funding_agency: Optional[str] = None

    # Prime recipient
    recipient_name: str = ''
    recipient_uei: Optional[str] = None
    recipient_business_categories: FrozenSet[str] = frozenset()

    # Work description
    award_description: str = ''
    naics_code: Optional[str] = None
    psc_code: Optional[str] = None
    place_of_performance_state: Optional[str] = None

    # System fields
    ingested_at: str = ''
    source_url: str = ''
    internal_id: Optional[str] = None
    generated_internal_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _record_to_dict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Award':
        """Rebuild an award from its stored JSON form."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        values['award_amount'] = _decimal(values.get('award_amount'))
        values['recipient_business_categories'] = frozenset(
            values.get('recipient_business_categories') or []
        )
        return cls(**values)


@dataclass(frozen=True)
class Transaction:
    """One action (new award, modification, correction) against an award."""
    # Identifiers
    transaction_id: str
    award_id: str

    # Action metadata
    action_date: str = ''
    action_type: str = ''
    action_type_description: str = 'Unknown'
    modification_number: Optional[str] = None

    # Amounts
    federal_action_obligation: Decimal = Decimal(0)
    total_dollars_obligated: Decimal = Decimal(0)

    # Award metadata
    award_type: str = 'Unknown'
    award_description: str = ''

    # Performance period
    period_of_performance_start_date: Optional[str] = None
    period_of_performance_current_end_date: Optional[str] = None

    # Agencies
    awarding_agency_name: str = ''
    awarding_sub_agency_name: Optional[str] = None
    funding_agency_name: Optional[str] = None

    # Recipient
    recipient_name: str = ''
    recipient_uei: Optional[str] = None

    # Classification
    naics_code: Optional[str] = None
    product_or_service_code: Optional[str] = None

    # Location
    place_of_performance_state: Optional[str] = None

    # System fields
    ingested_at: str = ''
    source_url: str = ''

    @property
    def is_new_award_event(self) -> bool:
        """
        True for the foundational action of an award.

        That is a zero modification number ("0", "00", ...) or an action type of NEW.
        """
        mod = (self.modification_number or '').strip()
        if mod and set(mod) == {'0'}:
            return True
        return self.action_type_description == NEW_ACTION_DESCRIPTION

    def to_dict(self) -> Dict[str, Any]:
        return _record_to_dict(self)


@dataclass
class AwardSummary:
    total_records: int
    date_range: Dict[str, str]
    fetch_timestamp: str
    total_amount: Decimal
    by_type: Dict[str, int]
    truncated: bool = False
    truncation_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _record_to_dict(self)


@dataclass
class TransactionSummary:
    total_records: int
    date_range: Dict[str, str]
    fetch_timestamp: str
    total_obligation: Decimal
    by_action_type: Dict[str, int]
    by_award_type: Dict[str, int]
    unique_awards: int
    truncated: bool = False
    truncation_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _record_to_dict(self)


@dataclass
class ReconciliationReport:
    """Outcome of a two-stage fetch: what was asked for, found and joined."""
    # Stage 1: transactions
    total_transactions: int
    new_transactions: int
    unique_award_ids: int

    # Stage 2: awards
    awards_requested: int
    awards_fetched: int
    awards_missing: int
    missing_award_ids: List[str]
    duplicates_removed: int
    failed_batches: int

    # Join analysis
    transactions_with_award: int
    transactions_without_award: int
    join_rate: float

    # Metadata
    possibly_truncated: bool
    fetch_timestamp: str
    date_range: Dict[str, str]
    filters: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return _record_to_dict(self)


@dataclass
class FetchResult:
    """Raw records gathered by paging through one search query."""
    kind: ResourceKind
    records: List[Dict[str, Any]] = field(default_factory=list)
    pages_fetched: int = 0
    has_next: bool = False
    possibly_truncated: bool = False
    hit_record_ceiling: bool = False

    @property
    def total_fetched(self) -> int:
        return len(self.records)


@dataclass
class BatchFetchResult:
    """Awards gathered by identifier lookups."""
    awards: List[Award] = field(default_factory=list)
    raw_records: List[Dict[str, Any]] = field(default_factory=list)
    batches_issued: int = 0
    failed_batches: int = 0
    ids_requested: int = 0
    ids_returned: int = 0


@dataclass
class JoinAnalysis:
    matched: int
    unmatched: int
    join_rate: float


@dataclass
class CompleteFetchResult:
    transactions: List[Transaction]
    awards: List[Award]
    report: ReconciliationReport
    raw_transactions: List[Dict[str, Any]] = field(default_factory=list)
    raw_awards: List[Dict[str, Any]] = field(default_factory=list)
