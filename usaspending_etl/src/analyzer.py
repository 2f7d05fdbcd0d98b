"""
Analyzer Module
Filters and sorts already-normalized awards.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from .models import Award

logger = logging.getLogger(__name__)

SORT_FIELDS = ('amount', 'date', 'type')
SORT_ORDERS = ('asc', 'desc')
TOP_AWARDS_SHOWN = 5


def filter_awards(
    awards: Sequence[Award],
    award_types: Optional[List[str]] = None,
    agency: Optional[str] = None,
    min_amount: Optional[float] = None,
    max_amount: Optional[float] = None
) -> List[Award]:
    """
    Filter awards by type, agency and amount.

    Args:
        awards: Awards to filter
        award_types: Award types to keep (case-insensitive)
        agency: Substring matched against awarding agency and sub-agency
        min_amount: Minimum award amount (inclusive)
        max_amount: Maximum award amount (inclusive)

    Returns:
        Filtered list of awards
    """
    result = list(awards)

    if award_types:
        types = {t.strip().upper() for t in award_types if t.strip()}
        result = [a for a in result if a.award_type.upper() in types]
        logger.info(f"Filtered by type [{', '.join(sorted(types))}]: {len(result)} awards")

    if agency:
        needle = agency.lower()
        result = [
            a for a in result
            if needle in a.awarding_agency.lower()
            or needle in (a.awarding_sub_agency or '').lower()
        ]
        logger.info(f"Filtered by agency \"{agency}\": {len(result)} awards")

    if min_amount is not None:
        lower = Decimal(str(min_amount))
        result = [a for a in result if a.award_amount >= lower]
        logger.info(f"Filtered by min amount ${min_amount:,.2f}: {len(result)} awards")

    if max_amount is not None:
        upper = Decimal(str(max_amount))
        result = [a for a in result if a.award_amount <= upper]
        logger.info(f"Filtered by max amount ${max_amount:,.2f}: {len(result)} awards")

    return result


def sort_awards(awards: Sequence[Award], field: str = 'amount', order: str = 'desc') -> List[Award]:
    """
    Sort awards by amount, award date or type.

    Raises:
        ValueError: On an unknown sort field or order
    """
    if field not in SORT_FIELDS:
        raise ValueError(f"Unknown sort field: {field}")
    if order not in SORT_ORDERS:
        raise ValueError(f"Unknown sort order: {order}")

    keys = {
        'amount': lambda a: a.award_amount,
        'date': lambda a: a.award_date or '',
        'type': lambda a: a.award_type,
    }
    return sorted(awards, key=keys[field], reverse=(order == 'desc'))


def summarize_awards(original_count: int, awards: Sequence[Award]) -> Dict[str, Any]:
    """
    Summarize a filtered selection of awards.

    Returns:
        Dictionary with counts, reduction percentage, totals and the top awards
    """
    total = sum((a.award_amount for a in awards), Decimal(0))
    reduction = (1 - len(awards) / original_count) * 100 if original_count else 0.0

    return {
        'original_count': original_count,
        'filtered_count': len(awards),
        'reduction_percent': reduction,
        'total_amount': total,
        'average_amount': (total / len(awards)) if awards else Decimal(0),
        'top_awards': list(awards[:TOP_AWARDS_SHOWN]),
    }
