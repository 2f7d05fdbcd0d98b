"""
USAspending ETL Pipeline
========================

This module contains the ETL (Extract, Transform, Load) pipeline for federal
contract spending data. It fetches award and transaction records from the
USAspending search API, normalizes them, and stores them as timestamped JSON files.

Main components:
- api_client: Async API client with throttling and structured errors
- fetcher: Paginated fetching with truncation detection
- batch_fetcher: Award lookups by identifier in fixed-size batches
- normalizer: Raw API records to Award/Transaction models
- reconciler: Two-stage transaction -> award reconciliation
- summary: Aggregate statistics
- storage: JSON file output
- orchestrator: Command pipelines
"""

__version__ = "0.1.0"
__author__ = "USAspending ETL Development Team"
