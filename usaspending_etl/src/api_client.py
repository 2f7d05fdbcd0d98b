"""
API Client for the USAspending Search API
=========================================

This module provides an async API client for the USAspending.gov search
endpoints (spending_by_award and spending_by_transaction).

Features:
- Async HTTP requests with aiohttp
- Rate limiting to stay polite towards the public API
- Per-request timeout
- Structured errors keeping the upstream status code and response body

Failed requests are not retried; the caller decides whether a failure aborts
the whole fetch or only one batch.
"""

import aiohttp
import asyncio
from typing import Dict, Optional, Any
from dataclasses import dataclass
import logging
from asyncio_throttle import Throttler
import json

from .models import ResourceKind

logger = logging.getLogger(__name__)


class APIRequestError(Exception):
    """
    Raised when a search request fails.

    Attributes:
        status: HTTP status code, or None for network errors and timeouts
        body: Response body (truncated) when the server answered
        url: Requested URL
    """

    def __init__(self, message: str, status: Optional[int] = None,
                 body: Optional[str] = None, url: Optional[str] = None):
        self.status = status
        self.body = body
        self.url = url
        details = message
        if status is not None:
            details += f". Status: {status}"
        if body:
            details += f", Data: {body}"
        super().__init__(details)


@dataclass
class APIConfig:
    """Configuration for the API client"""
    base_url: str = "https://api.usaspending.gov"
    awards_endpoint: str = "/api/v2/search/spending_by_award/"
    transactions_endpoint: str = "/api/v2/search/spending_by_transaction/"
    timeout: float = 30  # seconds
    rate_limit: int = 5  # requests per second

    def endpoint_for(self, kind: ResourceKind) -> str:
        """Return the endpoint path for a resource kind."""
        if kind is ResourceKind.AWARDS:
            return self.awards_endpoint
        return self.transactions_endpoint


class SpendingAPIClient:
    """
    Async API client for the USAspending search endpoints.

    Use as an async context manager so the HTTP session is opened and closed
    around a run:

        async with SpendingAPIClient(config) as client:
            page = await client.search(ResourceKind.AWARDS, payload)
    """

    MAX_ERROR_BODY = 2000

    def __init__(self, config: Optional[APIConfig] = None):
        """
        Initialize the API client.

        Args:
            config: Optional API configuration. Uses defaults if not provided.
        """
        self.config = config or APIConfig()
        self.throttler = Throttler(rate_limit=self.config.rate_limit)
        self.session: Optional[aiohttp.ClientSession] = None
        self.request_count = 0
        self.error_count = 0

    async def __aenter__(self):
        """Async context manager entry"""
        timeout = aiohttp.ClientTimeout(total=self.config.timeout)
        self.session = aiohttp.ClientSession(
            timeout=timeout,
            headers={"Content-Type": "application/json"}
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        if self.session:
            await self.session.close()
            self.session = None

    def _url(self, endpoint: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/{endpoint.lstrip('/')}"

    async def _make_request(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST a JSON payload and return the decoded response.

        Args:
            endpoint: API endpoint path
            payload: Request body

        Returns:
            JSON response from the API

        Raises:
            APIRequestError: On non-2xx status, network failure, timeout or invalid JSON
        """
        if self.session is None:
            raise RuntimeError("SpendingAPIClient must be used as an async context manager")

        url = self._url(endpoint)
        logger.debug(f"POST {url} page={payload.get('page')} limit={payload.get('limit')}")

        try:
            async with self.throttler:
                self.request_count += 1
                async with self.session.post(url, json=payload) as response:
                    text = await response.text()

                    if response.status >= 400:
                        self.error_count += 1
                        logger.error(f"API request to {endpoint} failed with status {response.status}")
                        raise APIRequestError(
                            "API request failed",
                            status=response.status,
                            body=text[:self.MAX_ERROR_BODY],
                            url=url
                        )

        except asyncio.TimeoutError as e:
            self.error_count += 1
            logger.error(f"Timeout after {self.config.timeout}s for {endpoint}")
            raise APIRequestError(
                f"API request timed out after {self.config.timeout}s", url=url
            ) from e

        except aiohttp.ClientError as e:
            self.error_count += 1
            logger.error(f"Client error for {endpoint}: {e}")
            raise APIRequestError(f"API request failed: {e}", url=url) from e

        try:
            data = json.loads(text) if text else {}
        except json.JSONDecodeError as e:
            self.error_count += 1
            logger.error(f"Failed to parse JSON from response: {text[:200]}")
            raise APIRequestError(
                f"Invalid JSON response from {endpoint}",
                body=text[:self.MAX_ERROR_BODY],
                url=url
            ) from e

        if not isinstance(data, dict):
            self.error_count += 1
            raise APIRequestError(
                f"Unexpected response format from {endpoint}: {type(data).__name__}", url=url
            )

        return data

    async def search(self, kind: ResourceKind, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run one page of a search query.

        Args:
            kind: Resource to search (awards or transactions)
            payload: Complete request body (filters, fields, page, limit, sort, order)

        Returns:
            Response with 'results' and 'page_metadata'
        """
        return await self._make_request(self.config.endpoint_for(kind), payload)

    def get_statistics(self) -> Dict[str, float]:
        """
        Get client statistics.

        Returns:
            Dictionary with request and error counts
        """
        return {
            "total_requests": self.request_count,
            "total_errors": self.error_count,
            "success_rate": (
                (self.request_count - self.error_count) / self.request_count * 100
                if self.request_count > 0 else 0
            )
        }
