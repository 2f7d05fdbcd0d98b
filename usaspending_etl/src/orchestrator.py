"""
ETL Orchestrator Module
Coordinates each command's flow from API fetch to stored JSON files.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Any, Dict, Optional
from enum import Enum

from .api_client import SpendingAPIClient
from .config import AppConfig
from .fetcher import PaginatedFetcher
from .models import ResourceKind
from .normalizer import normalize_awards, normalize_transactions
from .reconciler import Reconciler
from .storage import StorageService
from .summary import build_award_summary, build_transaction_summary
from .validator import validate_batch

logger = logging.getLogger(__name__)


class PipelineStatus(Enum):
    """Pipeline execution status."""
    IDLE = "idle"
    FETCHING = "fetching"
    RECONCILING = "reconciling"
    SAVING = "saving"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


class PipelineMetrics:
    """Track pipeline execution metrics."""

    def __init__(self):
        self.start_time: Optional[datetime] = None
        self.end_time: Optional[datetime] = None
        self.fetched_counts: Dict[str, int] = {}
        self.warnings: list = []
        self.files: Dict[str, str] = {}
        self.status: PipelineStatus = PipelineStatus.IDLE

    def start(self):
        """Mark pipeline start."""
        self.start_time = datetime.now()
        self.status = PipelineStatus.FETCHING

    def complete(self, status: PipelineStatus = PipelineStatus.COMPLETED):
        """Mark pipeline completion."""
        self.end_time = datetime.now()
        self.status = status

    @property
    def duration(self) -> Optional[timedelta]:
        """Calculate pipeline duration."""
        if self.start_time and self.end_time:
            return self.end_time - self.start_time
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to dictionary."""
        return {
            'start_time': self.start_time.isoformat() if self.start_time else None,
            'end_time': self.end_time.isoformat() if self.end_time else None,
            'duration_seconds': self.duration.total_seconds() if self.duration else None,
            'status': self.status.value,
            'fetched': self.fetched_counts,
            'total_fetched': sum(self.fetched_counts.values()),
            'warnings': list(self.warnings),
            'files': dict(self.files),
        }


class ETLOrchestrator:
    """
    Main orchestrator for the fetch commands.
    Wires the API client, fetchers, summaries and storage together.
    """

    def __init__(
        self,
        config: AppConfig,
        client: Optional[SpendingAPIClient] = None,
        storage: Optional[StorageService] = None
    ):
        """
        Initialize the ETL Orchestrator.

        Args:
            config: Validated pipeline configuration
            client: Already-open API client; one is opened per run if omitted
            storage: Storage service; built from config.output if omitted
        """
        self.config = config
        self.client = client
        self.storage = storage or StorageService(config.output)
        self.metrics = PipelineMetrics()
        self.last_result = None

    @asynccontextmanager
    async def _open_fetcher(self):
        """Yield a PaginatedFetcher around the injected or a fresh API client."""
        pagination = self.config.pagination
        if self.client is not None:
            yield PaginatedFetcher(self.client, pagination.page_size, pagination.max_records)
            return

        async with SpendingAPIClient(self.config.api) as client:
            yield PaginatedFetcher(client, pagination.page_size, pagination.max_records)
            stats = client.get_statistics()
            logger.info(f"API requests: {stats['total_requests']}, errors: {stats['total_errors']}")

    def _log_record_issues(self, records, record_type: str):
        _, with_issues = validate_batch(records, record_type)
        if with_issues:
            logger.warning(f"{len(with_issues)} of {len(records)} {record_type} records have "
                           f"missing or malformed fields; defaults were used")
            for item in with_issues[:5]:
                logger.debug(f"  {item['issues']}")

    def _finish(self) -> Dict[str, Any]:
        status = PipelineStatus.PARTIAL if self.metrics.warnings else PipelineStatus.COMPLETED
        self.metrics.complete(status)
        logger.info(f"Pipeline completed with status: {self.metrics.status.value}")
        logger.info(f"Duration: {self.metrics.duration}")
        return self.metrics.to_dict()

    async def _run(self, runner) -> Dict[str, Any]:
        self.metrics = PipelineMetrics()
        self.metrics.start()
        try:
            await runner()
        except Exception as e:
            logger.error(f"Pipeline failed with error: {e}")
            self.metrics.complete(PipelineStatus.FAILED)
            raise
        return self._finish()

    async def run_award_fetch(self, days: Optional[int] = None) -> Dict[str, Any]:
        """
        Fetch awards for the configured window and save them.

        Args:
            days: Look-back override in days

        Returns:
            Pipeline execution results
        """
        async def runner():
            search_filter = self.config.build_search_filter(days)
            logger.info(f"Starting award fetch for {search_filter.date_range['start']} "
                        f"to {search_filter.date_range['end']}")

            async with self._open_fetcher() as fetcher:
                result = await fetcher.fetch_all(ResourceKind.AWARDS, search_filter)

            self._log_record_issues(result.records, 'award')
            awards = normalize_awards(result.records)
            summary = build_award_summary(awards, search_filter)
            self.metrics.fetched_counts['awards'] = len(awards)
            if result.possibly_truncated or summary.truncated:
                self.metrics.warnings.append(
                    summary.truncation_reason or "Award results may be truncated"
                )

            self.metrics.status = PipelineStatus.SAVING
            paths = self.storage.save_awards(result.records, awards, summary)
            self.metrics.files.update({k: str(v) for k, v in paths.items() if v})
            self.last_result = summary

        return await self._run(runner)

    async def run_transaction_fetch(self, days: Optional[int] = None) -> Dict[str, Any]:
        """
        Fetch transactions for the configured window and save them.

        Args:
            days: Look-back override in days

        Returns:
            Pipeline execution results
        """
        async def runner():
            search_filter = self.config.build_search_filter(days)
            logger.info(f"Starting transaction fetch for {search_filter.date_range['start']} "
                        f"to {search_filter.date_range['end']}")

            async with self._open_fetcher() as fetcher:
                result = await fetcher.fetch_all(ResourceKind.TRANSACTIONS, search_filter)

            self._log_record_issues(result.records, 'transaction')
            transactions = normalize_transactions(result.records)
            summary = build_transaction_summary(transactions, search_filter)
            self.metrics.fetched_counts['transactions'] = len(transactions)
            if result.possibly_truncated or summary.truncated:
                self.metrics.warnings.append(
                    summary.truncation_reason or "Transaction results may be truncated"
                )

            self.metrics.status = PipelineStatus.SAVING
            paths = self.storage.save_transactions(result.records, transactions, summary)
            self.metrics.files.update({k: str(v) for k, v in paths.items() if v})
            self.last_result = summary

        return await self._run(runner)

    async def run_complete_fetch(self, days: Optional[int] = None) -> Dict[str, Any]:
        """
        Run the two-stage transaction -> award fetch and save the results.

        Args:
            days: Look-back override in days

        Returns:
            Pipeline execution results
        """
        async def runner():
            async with self._open_fetcher() as fetcher:
                self.metrics.status = PipelineStatus.RECONCILING
                result = await Reconciler(fetcher, self.config).fetch_complete(days)

            report = result.report
            self.metrics.fetched_counts['transactions'] = report.total_transactions
            self.metrics.fetched_counts['awards'] = report.awards_fetched
            if report.possibly_truncated:
                self.metrics.warnings.append(
                    "Transaction results hit the API limit and may be truncated"
                )
            if report.awards_missing:
                self.metrics.warnings.append(
                    f"{report.awards_missing} award IDs could not be fetched"
                )

            self.metrics.status = PipelineStatus.SAVING
            paths = self.storage.save_complete_fetch(result)
            self.metrics.files.update({k: str(v) for k, v in paths.items() if v})
            self.last_result = report

        return await self._run(runner)
