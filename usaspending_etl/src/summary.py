"""
Summary Module
Aggregate statistics over normalized awards and transactions.
"""

from collections import Counter
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple

from .field_mappings import API_RESULT_LIMIT
from .models import Award, AwardSummary, SearchFilter, Transaction, TransactionSummary


def collection_truncation(count: int, limit: int = API_RESULT_LIMIT) -> Tuple[bool, Optional[str]]:
    """
    Flag a collection whose size equals the API result cap.

    Consumers of normalized files do not see paging metadata, so the size
    alone is the signal here.

    Returns:
        Tuple of (truncated, reason)
    """
    if count == limit:
        return True, (f"Result count equals the API limit of {limit} records; "
                      f"results may be incomplete")
    return False, None


def build_award_summary(awards: List[Award], search_filter: SearchFilter) -> AwardSummary:
    """
    Summarize a list of awards.

    Args:
        awards: Normalized awards
        search_filter: Filter the awards were fetched with

    Returns:
        AwardSummary
    """
    by_type = Counter(award.award_type for award in awards)
    truncated, reason = collection_truncation(len(awards))

    return AwardSummary(
        total_records=len(awards),
        date_range=search_filter.date_range,
        fetch_timestamp=datetime.now(timezone.utc).isoformat(),
        total_amount=sum((award.award_amount for award in awards), Decimal(0)),
        by_type=dict(by_type),
        truncated=truncated,
        truncation_reason=reason,
    )


def build_transaction_summary(
    transactions: List[Transaction],
    search_filter: SearchFilter
) -> TransactionSummary:
    """
    Summarize a list of transactions.

    Args:
        transactions: Normalized transactions
        search_filter: Filter the transactions were fetched with

    Returns:
        TransactionSummary
    """
    by_action_type = Counter(t.action_type_description or 'Unknown' for t in transactions)
    by_award_type = Counter(t.award_type or 'Unknown' for t in transactions)
    truncated, reason = collection_truncation(len(transactions))

    return TransactionSummary(
        total_records=len(transactions),
        date_range=search_filter.date_range,
        fetch_timestamp=datetime.now(timezone.utc).isoformat(),
        total_obligation=sum((t.federal_action_obligation for t in transactions), Decimal(0)),
        by_action_type=dict(by_action_type),
        by_award_type=dict(by_award_type),
        unique_awards=len({t.award_id for t in transactions}),
        truncated=truncated,
        truncation_reason=reason,
    )
