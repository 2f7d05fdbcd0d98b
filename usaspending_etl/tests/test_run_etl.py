"""
Tests for the command-line interface.
"""

import json
import pytest
from unittest.mock import patch

import yaml

from usaspending_etl import run_etl
from usaspending_etl.src.api_client import APIRequestError
from usaspending_etl.src.models import ResourceKind


class FakeAPIClient:
    """Async context manager replacing SpendingAPIClient inside the orchestrator."""

    handler = None

    def __init__(self, config=None):
        self.config = config

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False

    async def search(self, kind, payload):
        return FakeAPIClient.handler(kind, payload)

    def get_statistics(self):
        return {'total_requests': 0, 'total_errors': 0, 'success_rate': 0}


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for name in ['USASPENDING_CONFIG', 'USASPENDING_BASE_URL',
                 'USASPENDING_TIMEOUT', 'USASPENDING_OUTPUT_DIR']:
        monkeypatch.delenv(name, raising=False)

    raw = {
        'api': {
            'base_url': 'https://test.api',
            'awards_endpoint': '/api/v2/search/spending_by_award/',
            'transactions_endpoint': '/api/v2/search/spending_by_transaction/',
        },
        'eligibility': {'award_types': ['A', 'B', 'C', 'D'], 'min_amount': 900000, 'rolling_days': 30},
        'date_range': {'use_current_date': False, 'fixed_end_date': '2025-01-31'},
        'output': {'directory': str(tmp_path / 'data')},
        'pagination': {'page_size': 100},
    }
    path = tmp_path / 'config.yml'
    path.write_text(yaml.safe_dump(raw))
    return path


class TestCLI:
    """Test suite for run_etl."""

    def test_no_command_prints_help(self, capsys):
        assert run_etl.main([]) == 1
        assert 'fetch-complete' in capsys.readouterr().out

    def test_invalid_days_rejected(self):
        with pytest.raises(SystemExit):
            run_etl.main(['fetch-awards', '--days', '0'])

    def test_missing_config_fails_before_fetching(self, tmp_path, monkeypatch, capsys):
        """A bad configuration exits with status 1 and no request is sent."""
        monkeypatch.chdir(tmp_path)

        with patch('usaspending_etl.src.orchestrator.SpendingAPIClient') as client_class:
            code = run_etl.main(['fetch-awards', '-c', str(tmp_path / 'missing.yml')])

        assert code == 1
        assert 'Configuration error' in capsys.readouterr().out
        client_class.assert_not_called()

    def test_config_show(self, config_path, capsys):
        assert run_etl.main(['config', 'show', '-c', str(config_path)]) == 0

        out = capsys.readouterr().out
        assert 'Current Configuration' in out
        assert 'https://test.api' in out
        assert 'A, B, C, D' in out

    def test_fetch_complete_reports_join_and_warning(self, config_path, capsys):
        """Missing awards give a warning banner but still exit 0."""
        def handler(kind, payload):
            if kind is ResourceKind.TRANSACTIONS:
                return {'results': [
                    {'Award ID': 'W1', 'Action Date': '2025-01-15', 'Action Type': 'A',
                     'Mod': '0', 'Transaction Amount': 1000000},
                    {'Award ID': 'GONE', 'Action Date': '2025-01-15', 'Action Type': 'A',
                     'Mod': '0', 'Transaction Amount': 1000000},
                ], 'page_metadata': {'hasNext': False}}
            ids = payload['filters']['award_ids']
            return {'results': [{'Award ID': i, 'Award Amount': 1000000} for i in ids if i != 'GONE'],
                    'page_metadata': {'hasNext': False}}

        FakeAPIClient.handler = staticmethod(handler)
        with patch('usaspending_etl.src.orchestrator.SpendingAPIClient', FakeAPIClient):
            code = run_etl.main(['fetch-complete', '-c', str(config_path)])

        out = capsys.readouterr().out
        assert code == 0
        assert 'Join rate: 50.0%' in out
        assert 'WARNING: Join rate below 85%' in out
        assert 'WARNING: results may be incomplete' in out
        assert 'Status: partial' in out

    def test_fetch_awards_api_error(self, config_path, capsys):
        def handler(kind, payload):
            raise APIRequestError("API request failed", status=422, body='bad field')

        FakeAPIClient.handler = staticmethod(handler)
        with patch('usaspending_etl.src.orchestrator.SpendingAPIClient', FakeAPIClient):
            code = run_etl.main(['fetch-awards', '-c', str(config_path)])

        assert code == 1
        assert 'Status: 422' in capsys.readouterr().out

    def test_analyze(self, config_path, tmp_path, capsys):
        data_dir = tmp_path / 'data'
        data_dir.mkdir()
        awards = [
            {'award_id': 'W1', 'award_type': 'D', 'award_amount': 5000000.0, 'recipient_name': 'ACME'},
            {'award_id': 'W2', 'award_type': 'A', 'award_amount': 500000.0, 'recipient_name': 'Small Co'},
        ]
        (data_dir / 'awards_normalized_2025-01-31_00-00-00.json').write_text(json.dumps(awards))
        output = tmp_path / 'filtered.json'

        code = run_etl.main(['analyze', '-c', str(config_path), '--min-amount', '1000000',
                             '-o', str(output)])

        out = capsys.readouterr().out
        assert code == 0
        assert 'Using most recent file: awards_normalized_2025-01-31_00-00-00.json' in out
        assert 'Filtered count: 1' in out
        assert [a['award_id'] for a in json.loads(output.read_text())] == ['W1']

    def test_analyze_without_files(self, config_path, capsys):
        assert run_etl.main(['analyze', '-c', str(config_path)]) == 1
        assert 'No award files found' in capsys.readouterr().out
