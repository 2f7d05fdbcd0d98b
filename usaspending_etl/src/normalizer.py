"""
Record Normalizer Module
Transforms raw USAspending search results into Award and Transaction records.

Normalization is total: a missing or malformed field turns into its default
("" / None / 0 / empty set) instead of raising, because the API populates fields
inconsistently.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .field_mappings import (
    AWARD_FIELD_MAP,
    TRANSACTION_FIELD_MAP,
    build_source_url,
    describe_action_type,
    extract_award_id,
    map_fields,
)
from .models import Award, Transaction
from .validator import DataValidator

logger = logging.getLogger(__name__)

_clean = DataValidator.normalize_text
_date = DataValidator.normalize_date


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _amount(value: Any) -> Decimal:
    amount = DataValidator.normalize_amount(value)
    return amount if amount is not None else Decimal(0)


def normalize_award(raw: Dict[str, Any], ingested_at: Optional[str] = None) -> Award:
    """
    Transform an API award result into an Award.

    Args:
        raw: Record from spending_by_award
        ingested_at: Ingestion timestamp (defaults to now, UTC)

    Returns:
        Normalized Award
    """
    if not isinstance(raw, dict):
        logger.warning(f"Unexpected award record type: {type(raw).__name__}")
        raw = {}

    fields = map_fields(raw, AWARD_FIELD_MAP)
    award_id = extract_award_id(raw)

    return Award(
        award_id=award_id,
        award_type=(_clean(raw.get('Contract Award Type'))
                    or _clean(raw.get('Award Type'))
                    or 'Unknown'),
        award_amount=_amount(fields.get('award_amount')),
        # 'Award Date' cannot be requested; the base obligation date stands in
        award_date=(_date(fields.get('award_date'))
                    or _date(fields.get('base_obligation_date'))
                    or ''),
        start_date=_date(fields.get('start_date')),
        end_date=_date(fields.get('end_date')),
        last_modified_date=_date(fields.get('last_modified_date')),
        base_obligation_date=_date(fields.get('base_obligation_date')),
        awarding_agency=_clean(fields.get('awarding_agency')) or '',
        awarding_sub_agency=_clean(fields.get('awarding_sub_agency')),
        funding_agency=_clean(fields.get('funding_agency')),
        recipient_name=_clean(fields.get('recipient_name')) or '',
        recipient_uei=_clean(fields.get('recipient_uei')),
        recipient_business_categories=DataValidator.normalize_categories(
            raw.get('business_categories')
        ),
        award_description=_clean(fields.get('award_description')) or '',
        naics_code=_clean(fields.get('naics_code')),
        psc_code=_clean(fields.get('psc_code')),
        place_of_performance_state=_clean(fields.get('place_of_performance_state')),
        ingested_at=ingested_at or _now(),
        source_url=build_source_url(raw, award_id),
        internal_id=_clean(raw.get('internal_id')),
        generated_internal_id=_clean(raw.get('generated_internal_id')),
    )


def normalize_transaction(raw: Dict[str, Any], ingested_at: Optional[str] = None) -> Transaction:
    """
    Transform an API transaction result into a Transaction.

    Args:
        raw: Record from spending_by_transaction
        ingested_at: Ingestion timestamp (defaults to now, UTC)

    Returns:
        Normalized Transaction
    """
    if not isinstance(raw, dict):
        logger.warning(f"Unexpected transaction record type: {type(raw).__name__}")
        raw = {}

    fields = map_fields(raw, TRANSACTION_FIELD_MAP)
    award_id = extract_award_id(raw)
    action_date = _date(fields.get('action_date')) or ''
    action_type = _clean(fields.get('action_type')) or ''

    transaction_id = (_clean(raw.get('internal_id'))
                      or _clean(raw.get('generated_internal_id'))
                      or f"{award_id}_{action_date}")

    obligation = _amount(fields.get('federal_action_obligation'))

    return Transaction(
        transaction_id=transaction_id,
        award_id=award_id,
        action_date=action_date,
        action_type=action_type,
        action_type_description=describe_action_type(action_type),
        modification_number=_clean(fields.get('modification_number')),
        federal_action_obligation=obligation,
        total_dollars_obligated=obligation,
        award_type=_clean(fields.get('award_type')) or 'Unknown',
        award_description=_clean(fields.get('award_description')) or '',
        period_of_performance_start_date=_date(fields.get('period_of_performance_start_date')),
        period_of_performance_current_end_date=_date(
            fields.get('period_of_performance_current_end_date')
        ),
        awarding_agency_name=_clean(fields.get('awarding_agency_name')) or '',
        awarding_sub_agency_name=_clean(fields.get('awarding_sub_agency_name')),
        funding_agency_name=_clean(fields.get('funding_agency_name')),
        recipient_name=_clean(fields.get('recipient_name')) or '',
        recipient_uei=_clean(fields.get('recipient_uei')),
        naics_code=_clean(fields.get('naics_code')),
        product_or_service_code=_clean(fields.get('product_or_service_code')),
        place_of_performance_state=_clean(fields.get('place_of_performance_state')),
        ingested_at=ingested_at or _now(),
        source_url=build_source_url(raw, award_id),
    )


def normalize_awards(raw_awards: List[Dict[str, Any]]) -> List[Award]:
    """Normalize a list of API awards with one shared ingestion timestamp."""
    ingested_at = _now()
    return [normalize_award(raw, ingested_at) for raw in raw_awards]


def normalize_transactions(raw_transactions: List[Dict[str, Any]]) -> List[Transaction]:
    """Normalize a list of API transactions with one shared ingestion timestamp."""
    ingested_at = _now()
    return [normalize_transaction(raw, ingested_at) for raw in raw_transactions]
