"""
Reconciler Module
Two-stage fetch: transactions first, then exactly the awards they reference.

A plain award search is sorted by amount and capped at 10,000 results, so
the awards behind many transactions never come back. Stage 1 collects the new
award transactions in the date window; stage 2 looks their awards up by ID,
which no sort order or cap can drop.
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from .batch_fetcher import BatchIdFetcher
from .config import AppConfig
from .fetcher import PaginatedFetcher
from .models import (
    Award,
    CompleteFetchResult,
    JoinAnalysis,
    ReconciliationReport,
    ResourceKind,
    Transaction,
)
from .normalizer import normalize_transactions

logger = logging.getLogger(__name__)

MISSING_IDS_SHOWN = 10


def filter_new_transactions(transactions: Sequence[Transaction]) -> List[Transaction]:
    """Keep only the transactions that record a new award."""
    return [t for t in transactions if t.is_new_award_event]


def apply_amount_threshold(transactions: Sequence[Transaction], min_amount) -> List[Transaction]:
    """
    Keep transactions whose obligation is at least min_amount.

    The API already filters on amount, but its award-level amount is not
    the per-action obligation, so the threshold is applied again here.
    A non-positive threshold keeps everything.
    """
    threshold = Decimal(str(min_amount or 0))
    if threshold <= 0:
        return list(transactions)
    return [t for t in transactions if t.federal_action_obligation >= threshold]


def extract_unique_award_ids(transactions: Sequence[Transaction]) -> List[str]:
    """Distinct award IDs referenced by the transactions, in first-seen order."""
    return list(dict.fromkeys(t.award_id for t in transactions))


def deduplicate_awards(awards: Sequence[Award]) -> Tuple[List[Award], int]:
    """
    Keep one award per award_id: the one with the latest last_modified_date.

    A missing date sorts before any date; on equal dates the first record wins.

    Returns:
        Tuple of (unique awards in first-seen order, duplicates removed)
    """
    latest: Dict[str, Award] = {}

    for award in awards:
        existing = latest.get(award.award_id)
        if existing is None:
            latest[award.award_id] = award
        elif (award.last_modified_date or '') > (existing.last_modified_date or ''):
            latest[award.award_id] = award

    unique = list(latest.values())
    return unique, len(awards) - len(unique)


def find_missing_award_ids(requested_ids: Sequence[str], awards: Sequence[Award]) -> List[str]:
    """Requested IDs with no matching award, in request order."""
    fetched = {award.award_id for award in awards}
    return [award_id for award_id in requested_ids if award_id not in fetched]


def analyze_join(transactions: Sequence[Transaction], awards: Sequence[Award]) -> JoinAnalysis:
    """
    Count transactions whose award was fetched.

    The join rate is a percentage; it is 0 when there are no transactions.
    """
    award_ids = {award.award_id for award in awards}
    matched = sum(1 for t in transactions if t.award_id in award_ids)
    unmatched = len(transactions) - matched
    join_rate = (matched / len(transactions) * 100) if transactions else 0.0
    return JoinAnalysis(matched=matched, unmatched=unmatched, join_rate=join_rate)


class Reconciler:
    """
    Runs the two-stage transaction -> award fetch.
    """

    def __init__(self, fetcher: PaginatedFetcher, config: AppConfig,
                 batch_fetcher: Optional[BatchIdFetcher] = None):
        """
        Initialize the Reconciler.

        Args:
            fetcher: Paginated fetcher (owns the API client)
            config: Pipeline configuration
            batch_fetcher: Optional award-by-ID fetcher; built from config if omitted
        """
        self.fetcher = fetcher
        self.config = config
        self.batch_fetcher = batch_fetcher or BatchIdFetcher(
            fetcher,
            award_type_codes=config.eligibility.award_types,
            batch_size=config.pagination.batch_size,
            max_concurrent_batches=config.pagination.max_concurrent_batches,
            abort_on_batch_failure=config.pagination.abort_on_batch_failure,
        )

    async def fetch_complete(self, days: Optional[int] = None,
                             today: Optional[date] = None) -> CompleteFetchResult:
        """
        Execute the two-stage fetch.

        Args:
            days: Look-back override in days
            today: Reference date for the window (defaults to today)

        Returns:
            CompleteFetchResult with the filtered transactions, deduplicated
            awards and the reconciliation report

        Raises:
            APIRequestError: If the stage 1 transaction fetch fails
        """
        search_filter = self.config.build_search_filter(days, today)
        min_amount = self.config.eligibility.min_amount

        # Stage 1: transactions
        logger.info("STAGE 1: fetching transactions")
        logger.info(f"Date range: {search_filter.date_range['start']} to {search_filter.date_range['end']}")
        tx_result = await self.fetcher.fetch_all(ResourceKind.TRANSACTIONS, search_filter)
        all_transactions = normalize_transactions(tx_result.records)
        logger.info(f"Fetched {len(all_transactions)} total transactions")

        new_transactions = filter_new_transactions(all_transactions)
        logger.info(f"Found {len(new_transactions)} new transactions "
                    f"(modification_number=0 or action_type=NEW)")

        transactions = apply_amount_threshold(new_transactions, min_amount)
        if min_amount > 0:
            logger.info(f"{len(transactions)} transactions after minimum amount filter "
                        f">= ${min_amount:,.2f}")

        award_ids = extract_unique_award_ids(transactions)
        logger.info(f"Found {len(award_ids)} unique awards referenced by transactions")

        # Stage 2: awards by ID
        logger.info("STAGE 2: fetching awards by ID")
        batch_result = await self.batch_fetcher.fetch_awards_by_ids(award_ids)

        awards, duplicates_removed = deduplicate_awards(batch_result.awards)
        logger.info(f"Deduplicated to {len(awards)} unique awards "
                    f"(removed {duplicates_removed} duplicates)")

        missing_ids = find_missing_award_ids(award_ids, awards)
        if missing_ids:
            logger.warning(f"{len(missing_ids)} award IDs could not be fetched "
                           f"(first {MISSING_IDS_SHOWN}): {', '.join(missing_ids[:MISSING_IDS_SHOWN])}")

        join = analyze_join(transactions, awards)
        logger.info(f"Join rate: {join.join_rate:.1f}% "
                    f"({join.matched} matched, {join.unmatched} unmatched)")

        report = ReconciliationReport(
            total_transactions=len(all_transactions),
            new_transactions=len(transactions),
            unique_award_ids=len(award_ids),
            awards_requested=len(award_ids),
            awards_fetched=len(awards),
            awards_missing=len(missing_ids),
            missing_award_ids=missing_ids,
            duplicates_removed=duplicates_removed,
            failed_batches=batch_result.failed_batches,
            transactions_with_award=join.matched,
            transactions_without_award=join.unmatched,
            join_rate=join.join_rate,
            possibly_truncated=tx_result.possibly_truncated,
            fetch_timestamp=datetime.now(timezone.utc).isoformat(),
            date_range=search_filter.date_range,
            filters={
                'award_types': list(self.config.eligibility.award_types),
                'min_amount': min_amount,
                'rolling_days': self.config.rolling_days(days),
            },
        )

        return CompleteFetchResult(
            transactions=transactions,
            awards=awards,
            report=report,
            raw_transactions=tx_result.records,
            raw_awards=batch_result.raw_records,
        )
