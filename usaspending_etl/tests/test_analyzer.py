"""
Tests for the Analyzer module.
"""

import pytest
from decimal import Decimal

from usaspending_etl.src.analyzer import filter_awards, sort_awards, summarize_awards
from usaspending_etl.src.models import Award


@pytest.fixture
def awards():
    return [
        Award(award_id='1', award_type='D', award_amount=Decimal('5000000'), award_date='2025-01-10',
              awarding_agency='Department of Defense', awarding_sub_agency='Department of the Navy'),
        Award(award_id='2', award_type='A', award_amount=Decimal('950000'), award_date='2025-01-20',
              awarding_agency='Department of Energy'),
        Award(award_id='3', award_type='C', award_amount=Decimal('1200000'), award_date='2025-01-05',
              awarding_agency='Department of Defense', awarding_sub_agency='Department of the Army'),
        Award(award_id='4', award_type='B', award_amount=Decimal('300000'),
              awarding_agency='General Services Administration'),
    ]


class TestFilterAwards:
    """Test suite for filter_awards."""

    def test_no_filters(self, awards):
        assert filter_awards(awards) == awards

    def test_filter_by_type(self, awards):
        result = filter_awards(awards, award_types=['d', ' C '])

        assert [a.award_id for a in result] == ['1', '3']

    def test_filter_by_agency_matches_sub_agency(self, awards):
        assert [a.award_id for a in filter_awards(awards, agency='navy')] == ['1']
        assert [a.award_id for a in filter_awards(awards, agency='defense')] == ['1', '3']

    def test_filter_by_amount_range(self, awards):
        result = filter_awards(awards, min_amount=950000, max_amount=1200000)

        assert [a.award_id for a in result] == ['2', '3']

    def test_combined_filters(self, awards):
        result = filter_awards(awards, award_types=['A', 'D'], agency='defense', min_amount=1000000)

        assert [a.award_id for a in result] == ['1']


class TestSortAwards:
    """Test suite for sort_awards."""

    def test_sort_by_amount_desc(self, awards):
        assert [a.award_id for a in sort_awards(awards)] == ['1', '3', '2', '4']

    def test_sort_by_amount_asc(self, awards):
        assert [a.award_id for a in sort_awards(awards, 'amount', 'asc')] == ['4', '2', '3', '1']

    def test_sort_by_date(self, awards):
        """Awards without a date sort first ascending."""
        assert [a.award_id for a in sort_awards(awards, 'date', 'asc')] == ['4', '3', '1', '2']

    def test_sort_by_type(self, awards):
        assert [a.award_id for a in sort_awards(awards, 'type', 'asc')] == ['2', '4', '3', '1']

    def test_invalid_sort(self, awards):
        with pytest.raises(ValueError):
            sort_awards(awards, 'recipient')
        with pytest.raises(ValueError):
            sort_awards(awards, 'amount', 'sideways')


class TestSummarizeAwards:
    """Test suite for summarize_awards."""

    def test_summary(self, awards):
        selected = sort_awards(filter_awards(awards, min_amount=900000))

        summary = summarize_awards(len(awards), selected)

        assert summary['original_count'] == 4
        assert summary['filtered_count'] == 3
        assert summary['reduction_percent'] == pytest.approx(25.0)
        assert summary['total_amount'] == Decimal('7150000')
        assert summary['average_amount'] == Decimal('7150000') / 3
        assert [a.award_id for a in summary['top_awards']] == ['1', '3', '2']

    def test_top_awards_limited(self):
        awards = [Award(award_id=str(i), award_amount=Decimal(i)) for i in range(8)]

        assert len(summarize_awards(8, awards)['top_awards']) == 5

    def test_empty(self):
        summary = summarize_awards(0, [])

        assert summary['filtered_count'] == 0
        assert summary['reduction_percent'] == 0.0
        assert summary['average_amount'] == 0
