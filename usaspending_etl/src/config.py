"""
Configuration Module
Loads the pipeline configuration from a YAML file, with environment overrides.

Required settings are checked up front so that a bad configuration fails
before any request is sent.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from .api_client import APIConfig
from .models import SearchFilter

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path('config') / 'default.yml'

REQUIRED_KEYS = [
    ('api', 'base_url'),
    ('api', 'awards_endpoint'),
    ('api', 'transactions_endpoint'),
    ('eligibility', 'award_types'),
    ('eligibility', 'min_amount'),
    ('eligibility', 'rolling_days'),
    ('output', 'directory'),
    ('pagination', 'page_size'),
]


class ConfigError(ValueError):
    """Raised when the configuration is missing or invalid."""


@dataclass
class EligibilityConfig:
    award_types: List[str]
    min_amount: float
    rolling_days: int


@dataclass
class DateRangeConfig:
    use_current_date: bool = True
    fixed_end_date: Optional[str] = None

    def end_date(self, today: Optional[date] = None) -> date:
        """End of the query window: today, or the configured fixed date."""
        if self.use_current_date:
            return today or date.today()
        return date.fromisoformat(str(self.fixed_end_date))


@dataclass
class OutputConfig:
    directory: str = 'data'
    pretty_print: bool = True
    include_raw: bool = False


@dataclass
class PaginationConfig:
    page_size: int = 100
    max_records: int = 50000
    batch_size: int = 100
    max_concurrent_batches: int = 1
    abort_on_batch_failure: bool = False


@dataclass
class AppConfig:
    """Complete pipeline configuration"""
    api: APIConfig
    eligibility: EligibilityConfig
    date_range: DateRangeConfig = field(default_factory=DateRangeConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    pagination: PaginationConfig = field(default_factory=PaginationConfig)

    def rolling_days(self, days: Optional[int] = None) -> int:
        return days or self.eligibility.rolling_days

    def build_search_filter(self, days: Optional[int] = None,
                            today: Optional[date] = None) -> SearchFilter:
        """
        Build the date-window filter for award and transaction searches.

        Args:
            days: Look-back override; the configured rolling_days otherwise
            today: Reference date when use_current_date is set

        Returns:
            SearchFilter covering [end - days, end]
        """
        end_date = self.date_range.end_date(today)
        start_date = end_date - timedelta(days=self.rolling_days(days))

        return SearchFilter(
            award_type_codes=list(self.eligibility.award_types),
            min_amount=Decimal(str(self.eligibility.min_amount)),
            start_date=start_date,
            end_date=end_date,
        )


def _require(raw: Dict[str, Any], section: str, key: str) -> Any:
    section_data = raw.get(section)
    if not isinstance(section_data, dict) or section_data.get(key) in (None, ''):
        raise ConfigError(f"Missing required config: {section}.{key}")
    return section_data[key]


def _number(value: Any, name: str, cast=float, minimum: Optional[float] = None):
    if isinstance(value, bool):
        raise ConfigError(f"Invalid config value for {name}: {value!r}")
    try:
        number = cast(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid config value for {name}: {value!r}")
    if minimum is not None and number < minimum:
        raise ConfigError(f"Config value {name} must be >= {minimum}, got {number}")
    return number


def parse_config(raw: Dict[str, Any]) -> AppConfig:
    """
    Validate a raw configuration mapping and build an AppConfig.

    Args:
        raw: Parsed YAML document

    Returns:
        AppConfig

    Raises:
        ConfigError: If a required key is missing or a value is invalid
    """
    if not isinstance(raw, dict):
        raise ConfigError("Configuration must be a mapping")

    for section, key in REQUIRED_KEYS:
        _require(raw, section, key)

    api = raw['api']
    eligibility = raw['eligibility']
    date_range = raw.get('date_range') or {}
    output = raw['output']
    pagination = raw['pagination']

    award_types = eligibility['award_types']
    if not isinstance(award_types, list):
        raise ConfigError("Missing required config: eligibility.award_types (must be an array)")

    api_config = APIConfig(
        base_url=str(api['base_url']),
        awards_endpoint=str(api['awards_endpoint']),
        transactions_endpoint=str(api['transactions_endpoint']),
        timeout=_number(api.get('timeout', 30), 'api.timeout', minimum=0.001),
        rate_limit=_number(api.get('rate_limit', 5), 'api.rate_limit', cast=int, minimum=1),
    )

    eligibility_config = EligibilityConfig(
        award_types=[str(code) for code in award_types],
        min_amount=_number(eligibility['min_amount'], 'eligibility.min_amount', minimum=0),
        rolling_days=_number(eligibility['rolling_days'], 'eligibility.rolling_days', cast=int, minimum=1),
    )

    date_range_config = DateRangeConfig(
        use_current_date=bool(date_range.get('use_current_date', True)),
        fixed_end_date=date_range.get('fixed_end_date'),
    )
    if not date_range_config.use_current_date:
        if not date_range_config.fixed_end_date:
            raise ConfigError("Missing required config: date_range.fixed_end_date "
                              "(required when use_current_date is false)")
        try:
            date.fromisoformat(str(date_range_config.fixed_end_date))
        except ValueError:
            raise ConfigError(f"Invalid config value for date_range.fixed_end_date: "
                              f"{date_range_config.fixed_end_date!r} (expected YYYY-MM-DD)")
        date_range_config.fixed_end_date = str(date_range_config.fixed_end_date)

    output_config = OutputConfig(
        directory=str(output['directory']),
        pretty_print=bool(output.get('pretty_print', True)),
        include_raw=bool(output.get('include_raw', False)),
    )

    page_size = _number(pagination['page_size'], 'pagination.page_size', cast=int, minimum=1)
    pagination_config = PaginationConfig(
        page_size=page_size,
        max_records=_number(pagination.get('max_records', 50000), 'pagination.max_records',
                            cast=int, minimum=1),
        batch_size=_number(pagination.get('batch_size', page_size), 'pagination.batch_size',
                           cast=int, minimum=1),
        max_concurrent_batches=_number(pagination.get('max_concurrent_batches', 1),
                                       'pagination.max_concurrent_batches', cast=int, minimum=1),
        abort_on_batch_failure=bool(pagination.get('abort_on_batch_failure', False)),
    )

    return AppConfig(
        api=api_config,
        eligibility=eligibility_config,
        date_range=date_range_config,
        output=output_config,
        pagination=pagination_config,
    )


def apply_env_overrides(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply environment variable overrides to a raw configuration mapping.

    USASPENDING_BASE_URL, USASPENDING_TIMEOUT and USASPENDING_OUTPUT_DIR are read.
    """
    overrides = [
        ('USASPENDING_BASE_URL', 'api', 'base_url'),
        ('USASPENDING_TIMEOUT', 'api', 'timeout'),
        ('USASPENDING_OUTPUT_DIR', 'output', 'directory'),
    ]

    for env_var, section, key in overrides:
        value = os.getenv(env_var)
        if value:
            section_data = raw.get(section)
            if not isinstance(section_data, dict):
                section_data = {}
                raw[section] = section_data
            section_data[key] = value
            logger.debug(f"Config {section}.{key} overridden by {env_var}")

    return raw


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """
    Load configuration from a YAML file.

    The path defaults to $USASPENDING_CONFIG, then ./config/default.yml.

    Args:
        config_path: Optional explicit path

    Returns:
        Validated AppConfig

    Raises:
        ConfigError: If the file is missing, unreadable or invalid
    """
    load_dotenv()

    path = Path(config_path or os.getenv('USASPENDING_CONFIG') or DEFAULT_CONFIG_PATH)
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}")

    if not isinstance(raw, dict):
        raise ConfigError(f"Configuration file {path} must contain a mapping")

    config = parse_config(apply_env_overrides(raw))
    logger.debug(f"Loaded configuration from {path}")
    return config
