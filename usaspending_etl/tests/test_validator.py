"""
Tests for the Data Validator module.
"""

import pytest
from decimal import Decimal

from usaspending_etl.src.validator import DataValidator, validate_batch


class TestDataValidator:
    """Test suite for DataValidator class."""

    @pytest.fixture
    def validator(self):
        """Create a DataValidator instance."""
        return DataValidator()

    def test_normalize_date_valid(self, validator):
        """Test normalization of valid date formats."""
        test_cases = [
            ("2024-01-15", "2024-01-15"),
            ("01/15/2024", "2024-01-15"),
            ("2024/01/15", "2024-01-15"),
            ("2024-01-15T10:30:00", "2024-01-15T10:30:00"),
            ("2024-01-15 10:30:00", "2024-01-15T10:30:00"),
            ("2024-01-15T10:30:00.123456Z", "2024-01-15T10:30:00"),
        ]

        for date_str, expected in test_cases:
            assert validator.normalize_date(date_str) == expected

    def test_normalize_date_invalid(self, validator):
        """Test normalization of invalid dates."""
        invalid_dates = ["NULL", "null", "N/A", "", None, "invalid", "2024-13-45"]

        for date_str in invalid_dates:
            assert validator.normalize_date(date_str) is None

    def test_normalize_amount_valid(self, validator):
        """Test normalization of valid amounts."""
        test_cases = [
            (1000, Decimal("1000")),
            (1234.56, Decimal("1234.56")),
            ("1000.00", Decimal("1000.00")),
            ("$1,234,567.89", Decimal("1234567.89")),
            ("-500", Decimal("-500")),
        ]

        for amount, expected in test_cases:
            assert validator.normalize_amount(amount) == expected

    def test_normalize_amount_invalid(self, validator):
        """Test normalization of invalid amounts."""
        invalid_amounts = ["NULL", "N/A", "", None, "abc", True, "nan"]

        for amount in invalid_amounts:
            assert validator.normalize_amount(amount) is None

    def test_normalize_amount_non_finite(self, validator):
        """NaN and Infinity, as json.loads produces them, are not amounts."""
        for amount in [float('nan'), float('inf'), float('-inf'), "Infinity", "-Infinity", "NaN"]:
            assert validator.normalize_amount(amount) is None

    def test_normalize_text(self, validator):
        """Test stripping and null handling of text values."""
        assert validator.normalize_text("  ACME Corp  ") == "ACME Corp"
        assert validator.normalize_text("   ") is None
        assert validator.normalize_text("NULL") is None
        assert validator.normalize_text(None) is None
        assert validator.normalize_text(541330) == "541330"

    def test_normalize_categories(self, validator):
        """Test conversion of category tags to a set."""
        assert validator.normalize_categories(["small_business", " woman_owned ", "small_business"]) == \
            frozenset({"small_business", "woman_owned"})
        assert validator.normalize_categories("a, b") == frozenset({"a", "b"})
        assert validator.normalize_categories(None) == frozenset()
        assert validator.normalize_categories(42) == frozenset()

    def test_clean_null_values(self, validator):
        """Test cleaning of null values."""
        data = {
            "field1": "NULL",
            "field2": "  value  ",
            "field3": "",
            "field4": ["item1", "NULL", "", "item2"],
            "field5": {"nested": "null"},
            "field6": 123,
        }

        cleaned = validator.clean_null_values(data)

        assert cleaned["field1"] is None
        assert cleaned["field2"] == "value"
        assert cleaned["field3"] is None
        assert cleaned["field4"] == ["item1", "item2"]
        assert cleaned["field5"]["nested"] is None
        assert cleaned["field6"] == 123

    def test_find_award_issues_clean(self, validator):
        """A complete award has no issues."""
        award = {
            "Award ID": "W912DY24C0001",
            "Award Amount": 1500000,
            "Start Date": "2024-01-15",
            "Last Modified Date": "2024-02-01 12:00:00",
        }

        assert validator.find_award_issues(award) == []

    def test_find_award_issues(self, validator):
        """Test detection of missing identifiers and bad values."""
        award = {
            "Award ID": None,
            "Award Amount": "-100",
            "End Date": "not a date",
        }

        issues = validator.find_award_issues(award)

        assert any("Missing identifier" in issue for issue in issues)
        assert any("Negative award amount" in issue for issue in issues)
        assert any("End Date" in issue for issue in issues)

    def test_find_award_issues_internal_id_is_an_identifier(self, validator):
        assert validator.find_award_issues({"internal_id": 123}) == []

    def test_find_transaction_issues(self, validator):
        """Test detection of transaction problems."""
        assert validator.find_transaction_issues(
            {"Award ID": "X1", "Action Date": "2024-01-15", "Transaction Amount": 100}
        ) == []

        issues = validator.find_transaction_issues({"Transaction Amount": "abc"})

        assert "Missing identifier: Award ID" in issues
        assert "Missing field: Action Date" in issues
        assert any("Invalid amount" in issue for issue in issues)


class TestValidateBatch:
    """Test suite for validate_batch."""

    def test_validate_batch_awards(self):
        """Records are counted, never dropped."""
        records = [
            {"Award ID": "A1", "Award Amount": 100},
            {"Award Amount": 200},
            {"Award ID": "A3", "Award Amount": "bad"},
        ]

        clean_count, with_issues = validate_batch(records, 'award')

        assert clean_count == 1
        assert len(with_issues) == 2
        assert with_issues[0]['record'] is records[1]
        assert with_issues[0]['issues']

    def test_validate_batch_transactions(self):
        records = [{"Award ID": "A1", "Action Date": "2024-01-01"}]

        clean_count, with_issues = validate_batch(records, 'transaction')

        assert clean_count == 1
        assert with_issues == []

    def test_validate_batch_unknown_type(self):
        with pytest.raises(ValueError, match="Unknown record type"):
            validate_batch([], 'entity')
