"""
Batch ID Fetcher Module
Fetches awards by identifier, a fixed number of identifiers per query.

Identifier queries return only the requested awards, so each batch stays far
below the API's 10,000 record cap and nothing is lost to the amount sort.
"""

import asyncio
import logging
from typing import List, Optional, Sequence

from .api_client import APIRequestError
from .fetcher import PaginatedFetcher
from .field_mappings import ALL_AWARD_TYPE_CODES
from .models import Award, BatchFetchResult, ResourceKind, SearchFilter
from .normalizer import normalize_awards

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100


class BatchFetchError(Exception):
    """Raised when a batch fails and batch failures are configured to abort."""

    def __init__(self, batch_number: int, cause: Exception):
        self.batch_number = batch_number
        self.cause = cause
        super().__init__(f"Award batch {batch_number} failed: {cause}")


def split_into_batches(items: Sequence[str], batch_size: int) -> List[List[str]]:
    """Split items into consecutive chunks of at most batch_size."""
    if batch_size <= 0:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    return [list(items[i:i + batch_size]) for i in range(0, len(items), batch_size)]


class BatchIdFetcher:
    """
    Fetches normalized awards for an arbitrary list of award IDs.
    """

    def __init__(
        self,
        fetcher: PaginatedFetcher,
        award_type_codes: Optional[List[str]] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_concurrent_batches: int = 1,
        abort_on_batch_failure: bool = False
    ):
        """
        Initialize the BatchIdFetcher.

        Args:
            fetcher: Paginated fetcher used for each batch query
            award_type_codes: Type codes to filter on; all known codes if empty
            batch_size: Award IDs per query
            max_concurrent_batches: Batch queries allowed in flight at once
            abort_on_batch_failure: Raise on the first failed batch instead of skipping it
        """
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        if max_concurrent_batches <= 0:
            raise ValueError(f"max_concurrent_batches must be positive, got {max_concurrent_batches}")

        self.fetcher = fetcher
        self.award_type_codes = list(award_type_codes) if award_type_codes else list(ALL_AWARD_TYPE_CODES)
        # Identifier lookups carry no date window or amount bound
        self.base_filter = SearchFilter(award_type_codes=self.award_type_codes)
        self.batch_size = batch_size
        self.max_concurrent_batches = max_concurrent_batches
        self.abort_on_batch_failure = abort_on_batch_failure
        self._aborted = False

    async def _fetch_batch(
        self,
        batch_number: int,
        total_batches: int,
        batch: List[str],
        semaphore: asyncio.Semaphore
    ) -> Optional[List[dict]]:
        """
        Fetch the raw records for one batch.

        Returns None if the batch failed and failures are being skipped.
        """
        search_filter = self.base_filter.with_award_ids(batch)

        async with semaphore:
            if self._aborted:
                return None
            logger.info(f"Fetching award batch {batch_number}/{total_batches} ({len(batch)} IDs)")
            try:
                result = await self.fetcher.fetch_all(ResourceKind.AWARDS, search_filter)
            except APIRequestError as e:
                if self.abort_on_batch_failure:
                    self._aborted = True
                    raise BatchFetchError(batch_number, e) from e
                logger.error(f"Award batch {batch_number}/{total_batches} failed, skipping: {e}")
                return None

        return result.records

    async def fetch_awards_by_ids(self, award_ids: Sequence[str]) -> BatchFetchResult:
        """
        Fetch awards for the given IDs.

        Args:
            award_ids: Award IDs to look up (duplicates are ignored)

        Returns:
            BatchFetchResult with the normalized awards (not deduplicated)
            and requested/returned counts

        Raises:
            BatchFetchError: Only when abort_on_batch_failure is set
        """
        unique_ids = list(dict.fromkeys(award_ids))
        batches = split_into_batches(unique_ids, self.batch_size)
        total_batches = len(batches)
        result = BatchFetchResult(ids_requested=len(unique_ids), batches_issued=total_batches)

        if not batches:
            logger.info("No award IDs to fetch")
            return result

        logger.info(f"Fetching {len(unique_ids)} awards by ID in {total_batches} batches "
                    f"of up to {self.batch_size}")

        self._aborted = False
        semaphore = asyncio.Semaphore(self.max_concurrent_batches)
        tasks = [
            asyncio.ensure_future(self._fetch_batch(number, total_batches, batch, semaphore))
            for number, batch in enumerate(batches, start=1)
        ]
        try:
            # gather keeps batch order whatever the completion order
            batch_records = await asyncio.gather(*tasks)
        except BatchFetchError:
            # Batches still queued on the semaphore must not send requests
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        for batch, records in zip(batches, batch_records):
            if records is None:
                result.failed_batches += 1
                continue

            wanted = set(batch)
            awards = normalize_awards(records)
            kept: List[Award] = []
            for raw, award in zip(records, awards):
                if award.award_id in wanted:
                    kept.append(award)
                    result.raw_records.append(raw)

            discarded = len(awards) - len(kept)
            if discarded:
                logger.debug(f"Discarded {discarded} awards not requested in this batch")

            result.awards.extend(kept)

        result.ids_returned = len({award.award_id for award in result.awards})

        logger.info(f"Fetched {len(result.awards)} award records for "
                    f"{result.ids_returned}/{result.ids_requested} requested IDs")
        if result.failed_batches:
            logger.warning(f"{result.failed_batches} of {total_batches} award batches failed")

        return result
