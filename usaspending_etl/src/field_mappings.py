"""
Field Mappings Module
Maps USAspending API field names to internal record fields.

The search endpoints return records keyed by human-readable labels ("Award ID",
"Transaction Amount", ...) and the award and transaction endpoints use different
vocabularies. This module centralizes all of those names so the normalizer is
the only place that reads them.
"""

from typing import Any, Dict, Optional

# Hard cap the search API puts on any single query
API_RESULT_LIMIT = 10000

# Award type codes
CONTRACT_TYPE_CODES = ['A', 'B', 'C', 'D']
IDV_TYPE_CODES = ['IDV_A', 'IDV_B', 'IDV_B_A', 'IDV_B_B', 'IDV_B_C', 'IDV_C', 'IDV_D', 'IDV_E']
GRANT_TYPE_CODES = ['02', '03', '04', '05']
DIRECT_PAYMENT_TYPE_CODES = ['06', '10']
LOAN_TYPE_CODES = ['07', '08']
OTHER_ASSISTANCE_TYPE_CODES = ['09', '11', '-1']

ALL_AWARD_TYPE_CODES = (
    CONTRACT_TYPE_CODES
    + IDV_TYPE_CODES
    + GRANT_TYPE_CODES
    + DIRECT_PAYMENT_TYPE_CODES
    + LOAN_TYPE_CODES
    + OTHER_ASSISTANCE_TYPE_CODES
)

# Fields requested from spending_by_award.
# internal_id and generated_internal_id are returned automatically. 'Award Date'
# and the COVID/infrastructure fields are documented but make the request fail.
AWARD_FIELDS = [
    'Award ID',
    'Award Amount',
    'Last Modified Date',
    'Base Obligation Date',
    'Award Type',
    'Start Date',
    'End Date',
    'Awarding Agency',
    'Awarding Sub Agency',
    'Funding Agency',
    'Recipient Name',
    'Recipient UEI',
    'Description',
    'naics_code',
    'product_or_service_code',
    'Place of Performance State Code',
]

# Fields requested from spending_by_transaction
TRANSACTION_FIELDS = [
    'Award ID',
    'Action Date',
    'Action Type',
    'Mod',
    'Transaction Amount',
    'Award Type',
    'Transaction Description',
    'Issued Date',
    'Last Date to Order',
    'Awarding Agency',
    'Awarding Sub Agency',
    'Funding Agency',
    'Recipient Name',
    'Recipient UEI',
    'naics_code',
    'product_or_service_code',
    'pop_state_code',
    'pop_city_name',
    'pop_country_name',
]

AWARD_SORT_FIELD = 'Award Amount'
TRANSACTION_SORT_FIELD = 'Action Date'

# Award field mappings
AWARD_FIELD_MAP = {
    # API field -> Award field
    'Award ID': 'award_id',
    'Award Amount': 'award_amount',
    'Award Date': 'award_date',
    'Start Date': 'start_date',
    'End Date': 'end_date',
    'Last Modified Date': 'last_modified_date',
    'Base Obligation Date': 'base_obligation_date',
    'Awarding Agency': 'awarding_agency',
    'Awarding Sub Agency': 'awarding_sub_agency',
    'Funding Agency': 'funding_agency',
    'Recipient Name': 'recipient_name',
    'Recipient UEI': 'recipient_uei',
    'Description': 'award_description',
    'naics_code': 'naics_code',
    'product_or_service_code': 'psc_code',
    'Place of Performance State Code': 'place_of_performance_state',
}

# Transaction field mappings
TRANSACTION_FIELD_MAP = {
    # API field -> Transaction field
    'Award ID': 'award_id',
    'Action Date': 'action_date',
    'Action Type': 'action_type',
    'Mod': 'modification_number',
    'Transaction Amount': 'federal_action_obligation',
    'Award Type': 'award_type',
    'Transaction Description': 'award_description',
    'Issued Date': 'period_of_performance_start_date',
    'Last Date to Order': 'period_of_performance_current_end_date',
    'Awarding Agency': 'awarding_agency_name',
    'Awarding Sub Agency': 'awarding_sub_agency_name',
    'Funding Agency': 'funding_agency_name',
    'Recipient Name': 'recipient_name',
    'Recipient UEI': 'recipient_uei',
    'naics_code': 'naics_code',
    'product_or_service_code': 'product_or_service_code',
    'pop_state_code': 'place_of_performance_state',
}

# Action type code -> description
ACTION_TYPE_MAP = {
    'A': 'NEW',
    'B': 'CONTINUATION',
    'C': 'REVISION',
    'D': 'FUNDING_ADJUSTMENT',
    'E': 'CORRECTION',
}

NEW_ACTION_DESCRIPTION = 'NEW'

AWARD_URL_TEMPLATE = 'https://www.usaspending.gov/award/{}'
SEARCH_URL_TEMPLATE = 'https://www.usaspending.gov/search/?hash={}'

COMPOSITE_ID_DELIMITER = '_'
# CONT_AWD_<piid>_<agency>_<parent piid>_<parent agency>
COMPOSITE_ID_PARENT_POSITION = 4


def map_fields(data: dict, field_map: dict) -> dict:
    """
    Rename API field names to internal field names.

    Args:
        data: Dictionary with API field names
        field_map: Mapping from API fields to internal fields

    Returns:
        Dictionary containing only the mapped fields
    """
    mapped = {}

    for api_field, value in data.items():
        internal_field = field_map.get(api_field)
        if internal_field:
            mapped[internal_field] = value

    return mapped


def describe_action_type(action_type: Optional[str]) -> str:
    """
    Map an action type code to its description.

    Unknown codes are passed through; an empty code becomes 'Unknown'.
    """
    code = (action_type or '').strip()
    if not code:
        return 'Unknown'
    return ACTION_TYPE_MAP.get(code.upper(), code)


def is_truncated_award_id(award_id: Optional[str]) -> bool:
    """Short all-digit award ids are the API returning a fragment of the PIID."""
    return bool(award_id) and award_id.isdigit() and len(award_id) <= 4


def extract_award_id_from_composite(composite_id: Any) -> Optional[str]:
    """
    Pull the contract number out of a generated_internal_id.

    Args:
        composite_id: Value such as "CONT_AWD_0001_9700_W52P1J13G0027_9700"

    Returns:
        The contract number, or None if the value is missing or malformed
    """
    if not isinstance(composite_id, str):
        return None

    parts = composite_id.strip().split(COMPOSITE_ID_DELIMITER)
    if len(parts) <= COMPOSITE_ID_PARENT_POSITION:
        return None

    candidate = parts[COMPOSITE_ID_PARENT_POSITION].strip()
    if not candidate or candidate == '-NONE-':
        return None

    return candidate


def extract_award_id(record: dict) -> str:
    """
    Extract the award ID from a raw API record.

    Falls back to the internal identifiers when 'Award ID' is empty, and
    recovers the full contract number when the API returned a truncated one.

    Args:
        record: Raw award or transaction record from the API

    Returns:
        Award ID, or an empty string if none is available
    """
    award_id = record.get('Award ID')
    award_id = str(award_id).strip() if award_id is not None else ''

    if not award_id:
        for field in ['internal_id', 'generated_internal_id']:
            if record.get(field):
                return str(record[field])
        return ''

    if is_truncated_award_id(award_id):
        recovered = extract_award_id_from_composite(record.get('generated_internal_id'))
        if recovered:
            return recovered

    return award_id


def build_source_url(record: dict, award_id: str) -> str:
    """
    Build the usaspending.gov link for a record.

    Prefers the internal identifier (award page) over the award id (search link).
    """
    for field in ['internal_id', 'generated_internal_id']:
        value = record.get(field)
        if value not in (None, ''):
            return AWARD_URL_TEMPLATE.format(value)

    return SEARCH_URL_TEMPLATE.format(award_id)
