"""
Shared fixtures for the ETL tests.
"""

import asyncio
from datetime import date

import pytest

from usaspending_etl.src.api_client import APIConfig
from usaspending_etl.src.config import (
    AppConfig,
    DateRangeConfig,
    EligibilityConfig,
    OutputConfig,
    PaginationConfig,
)


class FakeSearchClient:
    """
    Stands in for SpendingAPIClient.

    `handler(kind, payload)` returns the response dict for a request or raises.
    Every payload is recorded in `calls`.
    """

    def __init__(self, handler, delay: float = 0):
        self.handler = handler
        self.delay = delay
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def search(self, kind, payload):
        self.calls.append((kind, payload))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            return self.handler(kind, payload)
        finally:
            self.in_flight -= 1


@pytest.fixture
def make_client():
    """Factory for FakeSearchClient instances."""
    return FakeSearchClient


@pytest.fixture
def app_config(tmp_path):
    """A complete configuration writing into a temporary directory."""
    return AppConfig(
        api=APIConfig(base_url="https://test.api"),
        eligibility=EligibilityConfig(award_types=['A', 'B', 'C', 'D'], min_amount=900000, rolling_days=30),
        date_range=DateRangeConfig(use_current_date=False, fixed_end_date='2025-01-31'),
        output=OutputConfig(directory=str(tmp_path / "output")),
        pagination=PaginationConfig(page_size=100, batch_size=100),
    )


@pytest.fixture
def today():
    return date(2025, 1, 31)
