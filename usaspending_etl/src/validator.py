"""
Data Validator Module
Responsible for cleaning and coercing values from the USAspending API.

The API is known to populate fields inconsistently, so nothing here raises on
bad input: unparseable values become None and are logged.
"""

import re
from datetime import datetime
from typing import Dict, Any, List, Optional, Tuple
import logging
from decimal import Decimal, InvalidOperation

logger = logging.getLogger(__name__)

NULL_MARKERS = ["NULL", "null", "N/A", "None"]


class DataValidator:
    """
    Validate and clean data from the API.
    """

    @staticmethod
    def normalize_date(date_str: Any) -> Optional[str]:
        """
        Convert various date formats to an ISO string.

        Date-only values become YYYY-MM-DD; values carrying a time keep it
        (YYYY-MM-DDTHH:MM:SS) so modification timestamps stay comparable.

        Args:
            date_str: Date string to normalize

        Returns:
            ISO date string or None if invalid
        """
        if not date_str or date_str in NULL_MARKERS:
            return None

        # (format, has time component)
        date_formats = [
            ("%Y-%m-%d", False),
            ("%Y-%m-%dT%H:%M:%S", True),
            ("%Y-%m-%d %H:%M:%S", True),
            ("%Y-%m-%dT%H:%M:%S.%f", True),
            ("%Y-%m-%d %H:%M:%S.%f", True),
            ("%m/%d/%Y", False),
            ("%Y/%m/%d", False),
        ]

        date_str = str(date_str).strip()
        # Drop a trailing UTC marker, the API only reports UTC
        if date_str.endswith("Z"):
            date_str = date_str[:-1]

        for date_format, has_time in date_formats:
            try:
                parsed = datetime.strptime(date_str, date_format)
            except ValueError:
                continue
            if has_time:
                return parsed.replace(microsecond=0).isoformat()
            return parsed.date().isoformat()

        logger.warning(f"Could not parse date: {date_str}")
        return None

    @staticmethod
    def normalize_amount(amount: Any) -> Optional[Decimal]:
        """
        Normalize monetary amounts to Decimal.

        Args:
            amount: Number or amount string to normalize

        Returns:
            Decimal amount or None if invalid
        """
        if amount is None or isinstance(amount, bool):
            return None

        if isinstance(amount, (int, float)):
            try:
                value = Decimal(str(amount))
            except InvalidOperation:
                return None
            # NaN and Infinity parse from JSON but are not amounts
            return value if value.is_finite() else None

        if amount in NULL_MARKERS or str(amount).strip() == "":
            return None

        try:
            # Remove currency symbols, thousands separators and spaces
            amount_clean = re.sub(r'[$,\s]', '', str(amount))
            value = Decimal(amount_clean)
            if not value.is_finite():
                return None
            return value
        except (InvalidOperation, ValueError) as e:
            logger.warning(f"Could not parse amount: {amount} - {e}")
            return None

    @staticmethod
    def normalize_text(value: Any) -> Optional[str]:
        """
        Strip a text value; empty strings and null markers become None.
        """
        if value is None or value in NULL_MARKERS:
            return None
        text = str(value).strip()
        return text or None

    @staticmethod
    def normalize_categories(value: Any) -> frozenset:
        """
        Turn a list (or comma separated string) of category tags into a set.
        """
        if not value:
            return frozenset()
        if isinstance(value, str):
            value = value.split(',')
        if not isinstance(value, (list, tuple, set, frozenset)):
            return frozenset()

        categories = set()
        for item in value:
            text = DataValidator.normalize_text(item)
            if text:
                categories.add(text)
        return frozenset(categories)

    @staticmethod
    def clean_null_values(data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Replace 'NULL' strings and empty values with None.

        Args:
            data: Dictionary to clean

        Returns:
            Cleaned dictionary
        """
        if not isinstance(data, dict):
            return {}

        cleaned = {}

        for key, value in data.items():
            if isinstance(value, str):
                stripped = value.strip()
                cleaned[key] = None if stripped == "" or stripped in NULL_MARKERS else stripped
            elif isinstance(value, list):
                cleaned_list = []
                for item in value:
                    if isinstance(item, str):
                        stripped_item = item.strip()
                        if stripped_item and stripped_item not in NULL_MARKERS:
                            cleaned_list.append(stripped_item)
                    elif item is not None:
                        cleaned_list.append(item)
                cleaned[key] = cleaned_list if cleaned_list else None
            elif isinstance(value, dict):
                cleaned[key] = DataValidator.clean_null_values(value)
            else:
                cleaned[key] = value

        return cleaned

    @staticmethod
    def find_award_issues(record: Dict[str, Any]) -> List[str]:
        """
        List the problems in a raw award record that normalization will paper over.

        Args:
            record: Raw award record

        Returns:
            List of issue descriptions (empty when the record is complete)
        """
        issues = []
        record = DataValidator.clean_null_values(record)

        if not (record.get('Award ID') or record.get('internal_id')
                or record.get('generated_internal_id')):
            issues.append("Missing identifier: Award ID")

        if record.get('Award Amount') is not None:
            amount = DataValidator.normalize_amount(record['Award Amount'])
            if amount is None:
                issues.append(f"Invalid amount: {record['Award Amount']}")
            elif amount < 0:
                issues.append(f"Negative award amount: {record['Award Amount']}")

        for field in ['Start Date', 'End Date', 'Last Modified Date', 'Base Obligation Date']:
            if record.get(field) and not DataValidator.normalize_date(record[field]):
                issues.append(f"Invalid date format in {field}: {record[field]}")

        return issues

    @staticmethod
    def find_transaction_issues(record: Dict[str, Any]) -> List[str]:
        """
        List the problems in a raw transaction record.

        Args:
            record: Raw transaction record

        Returns:
            List of issue descriptions (empty when the record is complete)
        """
        issues = []
        record = DataValidator.clean_null_values(record)

        if not record.get('Award ID'):
            issues.append("Missing identifier: Award ID")

        if not record.get('Action Date'):
            issues.append("Missing field: Action Date")
        elif not DataValidator.normalize_date(record['Action Date']):
            issues.append(f"Invalid date format in Action Date: {record['Action Date']}")

        if record.get('Transaction Amount') is not None:
            if DataValidator.normalize_amount(record['Transaction Amount']) is None:
                issues.append(f"Invalid amount: {record['Transaction Amount']}")

        return issues


def validate_batch(
    records: List[Dict[str, Any]],
    record_type: str
) -> Tuple[int, List[Dict[str, Any]]]:
    """
    Inspect a batch of raw records.

    Records are never dropped; the caller gets the number of clean records and
    the issues found so it can log them.

    Args:
        records: List of raw records
        record_type: Type of records (award, transaction)

    Returns:
        Tuple of (clean_count, records_with_issues)
    """
    inspect_methods = {
        'award': DataValidator.find_award_issues,
        'transaction': DataValidator.find_transaction_issues,
    }

    inspect_func = inspect_methods.get(record_type)
    if not inspect_func:
        raise ValueError(f"Unknown record type: {record_type}")

    clean_count = 0
    with_issues = []

    for record in records:
        issues = inspect_func(record)
        if issues:
            with_issues.append({
                'record': record,
                'issues': issues
            })
        else:
            clean_count += 1

    return clean_count, with_issues
