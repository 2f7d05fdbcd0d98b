"""
Paginated Fetcher Module
Pages through one USAspending search query and collects the raw records.

The search API never returns more than 10,000 records for a query and still
reports "no more pages" when it stops there, so the fetcher also flags results
that were probably cut off at that cap.
"""

import logging
import math
from typing import Any, Dict, List

from .api_client import SpendingAPIClient
from .field_mappings import (
    API_RESULT_LIMIT,
    AWARD_FIELDS,
    AWARD_SORT_FIELD,
    TRANSACTION_FIELDS,
    TRANSACTION_SORT_FIELD,
)
from .models import FetchResult, ResourceKind, SearchFilter

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100
DEFAULT_MAX_RECORDS = 50000

REQUEST_FIELDS = {
    ResourceKind.AWARDS: AWARD_FIELDS,
    ResourceKind.TRANSACTIONS: TRANSACTION_FIELDS,
}

SORT_FIELDS = {
    ResourceKind.AWARDS: AWARD_SORT_FIELD,
    ResourceKind.TRANSACTIONS: TRANSACTION_SORT_FIELD,
}


def is_possibly_truncated(
    total_fetched: int,
    pages_fetched: int,
    has_next: bool,
    page_size: int,
    limit: int = API_RESULT_LIMIT
) -> bool:
    """
    Decide whether a finished fetch was likely cut off by the API's result cap.

    All three must hold: exactly `limit` records, exactly ceil(limit / page_size)
    pages, and the API saying there is nothing more on that last page.
    A result set whose true size is exactly `limit` is reported as well.

    Args:
        total_fetched: Records accumulated
        pages_fetched: Pages requested
        has_next: The API's hasNext flag on the last page
        page_size: Records requested per page
        limit: The API's per-query cap

    Returns:
        True if the collection may be incomplete
    """
    if page_size <= 0:
        return False
    return (
        total_fetched == limit
        and pages_fetched == math.ceil(limit / page_size)
        and has_next is False
    )


def log_truncation_warning(kind: ResourceKind, total_fetched: int) -> None:
    """Log a clearly delimited warning for a possibly truncated result set."""
    logger.warning("=" * 60)
    logger.warning(f"POSSIBLE TRUNCATION: {kind.value} fetch returned exactly "
                   f"{total_fetched} records, the API result limit.")
    logger.warning("Records beyond the limit were silently dropped by the API; "
                   "narrow the date range or use fetch-complete.")
    logger.warning("=" * 60)


class PaginatedFetcher:
    """
    Fetches every page of a search query.

    The API client is injected so tests can substitute a fake transport.
    """

    def __init__(
        self,
        client: SpendingAPIClient,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_records: int = DEFAULT_MAX_RECORDS
    ):
        """
        Initialize the PaginatedFetcher.

        Args:
            client: Open API client
            page_size: Records requested per page
            max_records: Safety ceiling on records accumulated per query
        """
        if page_size <= 0:
            raise ValueError(f"page_size must be positive, got {page_size}")
        if max_records <= 0:
            raise ValueError(f"max_records must be positive, got {max_records}")

        self.client = client
        self.page_size = page_size
        self.max_records = max_records

    def build_payload(self, kind: ResourceKind, search_filter: SearchFilter, page: int) -> Dict[str, Any]:
        """
        Build the request body for one page.

        Args:
            kind: Resource to search
            search_filter: Query criteria
            page: 1-based page number

        Returns:
            Request body for the search endpoint
        """
        return {
            'filters': search_filter.to_payload(),
            'fields': list(REQUEST_FIELDS[kind]),
            'page': page,
            'limit': self.page_size,
            'order': 'desc',
            'sort': SORT_FIELDS[kind],
        }

    async def fetch_all(self, kind: ResourceKind, search_filter: SearchFilter) -> FetchResult:
        """
        Fetch all pages matching the filter.

        Stops when the API reports no further pages, a page comes back empty,
        or max_records is reached. A failed page request propagates and
        aborts the whole fetch.

        Args:
            kind: Resource to search
            search_filter: Query criteria

        Returns:
            FetchResult with raw records and paging metadata

        Raises:
            APIRequestError: If any page request fails
        """
        result = FetchResult(kind=kind)
        records: List[Dict[str, Any]] = result.records
        page = 1
        has_next = True

        while has_next and len(records) < self.max_records:
            payload = self.build_payload(kind, search_filter, page)
            response = await self.client.search(kind, payload)

            page_results = response.get('results') or []
            page_metadata = response.get('page_metadata') or {}
            has_next = bool(page_metadata.get('hasNext', False))

            records.extend(page_results)
            result.pages_fetched = page

            logger.info(f"Fetched {len(page_results)} {kind.value} on page {page} "
                        f"(total: {len(records)}). Has more: {has_next}")

            if not page_results:
                if has_next:
                    logger.warning(f"Page {page} returned no {kind.value} but reported more pages; stopping")
                has_next = False
                break

            page += 1

        result.has_next = has_next

        if has_next and len(records) >= self.max_records:
            result.hit_record_ceiling = True
            logger.warning(f"Reached max_records limit ({self.max_records}) for {kind.value}")

        result.possibly_truncated = is_possibly_truncated(
            len(records), result.pages_fetched, has_next, self.page_size
        )
        if result.possibly_truncated:
            log_truncation_warning(kind, len(records))

        return result
