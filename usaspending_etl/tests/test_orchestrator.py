"""
Tests for the ETL Orchestrator module.
"""

import json
import pytest

from usaspending_etl.src.api_client import APIRequestError
from usaspending_etl.src.models import ResourceKind
from usaspending_etl.src.orchestrator import ETLOrchestrator, PipelineMetrics, PipelineStatus


def handler_for(transactions=(), awards=(), missing=()):
    def handler(kind, payload):
        if kind is ResourceKind.TRANSACTIONS:
            return {'results': list(transactions), 'page_metadata': {'hasNext': False}}
        ids = payload['filters'].get('award_ids')
        results = [a for a in awards if ids is None or a['Award ID'] in ids]
        if ids is not None:
            results += [{'Award ID': i, 'Award Amount': 1000000} for i in ids
                        if i not in missing and all(a['Award ID'] != i for a in awards)]
        return {'results': results, 'page_metadata': {'hasNext': False}}
    return handler


class TestPipelineMetrics:
    """Test suite for PipelineMetrics."""

    def test_lifecycle(self):
        metrics = PipelineMetrics()
        assert metrics.status == PipelineStatus.IDLE
        assert metrics.duration is None

        metrics.start()
        assert metrics.status == PipelineStatus.FETCHING

        metrics.fetched_counts['awards'] = 3
        metrics.complete()
        data = metrics.to_dict()

        assert data['status'] == 'completed'
        assert data['total_fetched'] == 3
        assert data['duration_seconds'] is not None


class TestETLOrchestrator:
    """Test suite for ETLOrchestrator class."""

    @pytest.mark.asyncio
    async def test_run_award_fetch(self, make_client, app_config):
        """Test fetching, summarizing and saving awards."""
        awards = [
            {'Award ID': 'W1', 'Award Amount': 1500000, 'Award Type': 'D'},
            {'Award ID': 'W2', 'Award Amount': 950000, 'Award Type': 'A'},
        ]
        client = make_client(handler_for(awards=awards))
        orchestrator = ETLOrchestrator(app_config, client=client)

        results = await orchestrator.run_award_fetch(days=7)

        assert results['status'] == 'completed'
        assert results['fetched'] == {'awards': 2}
        assert results['warnings'] == []
        assert set(results['files']) == {'normalized', 'summary'}
        assert orchestrator.last_result.total_records == 2
        assert orchestrator.last_result.by_type == {'D': 1, 'A': 1}

        with open(results['files']['normalized'], 'r', encoding='utf-8') as f:
            assert [a['award_id'] for a in json.load(f)] == ['W1', 'W2']

        _, payload = client.calls[0]
        assert payload['filters']['time_period'] == [{'start_date': '2025-01-24', 'end_date': '2025-01-31'}]

    @pytest.mark.asyncio
    async def test_run_transaction_fetch(self, make_client, app_config):
        transactions = [
            {'Award ID': 'W1', 'Action Date': '2025-01-15', 'Action Type': 'A', 'Mod': '0',
             'Transaction Amount': 1000000},
            {'Award ID': 'W1', 'Action Date': '2025-01-20', 'Action Type': 'C', 'Mod': '1',
             'Transaction Amount': -5000},
        ]
        orchestrator = ETLOrchestrator(app_config, client=make_client(handler_for(transactions)))

        results = await orchestrator.run_transaction_fetch()

        assert results['status'] == 'completed'
        assert results['fetched'] == {'transactions': 2}
        assert orchestrator.last_result.by_action_type == {'NEW': 1, 'REVISION': 1}
        assert orchestrator.last_result.unique_awards == 1

    @pytest.mark.asyncio
    async def test_run_complete_fetch(self, make_client, app_config):
        transactions = [
            {'Award ID': 'W1', 'Action Date': '2025-01-15', 'Action Type': 'A', 'Mod': '0',
             'Transaction Amount': 1000000},
            {'Award ID': 'W2', 'Action Date': '2025-01-16', 'Action Type': 'A', 'Mod': '0',
             'Transaction Amount': 2000000},
        ]
        orchestrator = ETLOrchestrator(app_config, client=make_client(handler_for(transactions)))

        results = await orchestrator.run_complete_fetch()

        assert results['status'] == 'completed'
        assert results['fetched'] == {'transactions': 2, 'awards': 2}
        assert set(results['files']) == {'transactions', 'awards', 'report'}
        assert orchestrator.last_result.join_rate == pytest.approx(100.0)

    @pytest.mark.asyncio
    async def test_missing_awards_make_a_partial_run(self, make_client, app_config):
        """Missing awards are a warning, not a failure."""
        transactions = [
            {'Award ID': 'W1', 'Action Date': '2025-01-15', 'Action Type': 'A', 'Mod': '0',
             'Transaction Amount': 1000000},
            {'Award ID': 'GONE', 'Action Date': '2025-01-16', 'Action Type': 'A', 'Mod': '0',
             'Transaction Amount': 2000000},
        ]
        client = make_client(handler_for(transactions, missing={'GONE'}))
        orchestrator = ETLOrchestrator(app_config, client=client)

        results = await orchestrator.run_complete_fetch()

        assert results['status'] == 'partial'
        assert results['warnings'] == ['1 award IDs could not be fetched']
        assert orchestrator.last_result.missing_award_ids == ['GONE']

    @pytest.mark.asyncio
    async def test_failure_marks_pipeline_failed(self, make_client, app_config):
        def handler(kind, payload):
            raise APIRequestError("API request failed", status=500)

        orchestrator = ETLOrchestrator(app_config, client=make_client(handler))

        with pytest.raises(APIRequestError):
            await orchestrator.run_award_fetch()

        assert orchestrator.metrics.status == PipelineStatus.FAILED
        assert orchestrator.last_result is None
