"""
Storage Module
Writes fetch results as timestamped JSON files and reads normalized awards back.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import OutputConfig
from .models import (
    Award,
    AwardSummary,
    CompleteFetchResult,
    Transaction,
    TransactionSummary,
)

logger = logging.getLogger(__name__)

AWARD_FILE_PREFIXES = ('awards_normalized_', 'complete_awards_')


class StorageService:
    """
    Stores raw, normalized and summary files in the output directory.
    """

    def __init__(self, output_config: Optional[OutputConfig] = None):
        """
        Initialize the StorageService.

        Args:
            output_config: Output settings (directory, pretty_print, include_raw)
        """
        self.config = output_config or OutputConfig()
        self.output_dir = Path(self.config.directory)
        if not self.output_dir.exists():
            self.output_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created output directory: {self.output_dir}")

    @staticmethod
    def generate_filename(prefix: str, timestamp: Optional[datetime] = None,
                          extension: str = 'json') -> str:
        """Build '<prefix>_<YYYY-MM-DD_HH-MM-SS>.<extension>'."""
        stamp = (timestamp or datetime.now()).strftime('%Y-%m-%d_%H-%M-%S')
        return f"{prefix}_{stamp}.{extension}"

    def _save_to_file(self, data: Any, prefix: str, timestamp: datetime) -> Path:
        """
        Save data to a timestamped JSON file.

        Args:
            data: JSON-serializable data
            prefix: File name prefix (e.g. awards_normalized)
            timestamp: Run timestamp shared by the files of one run

        Returns:
            Path to the saved file
        """
        filepath = self.output_dir / self.generate_filename(prefix, timestamp)
        indent = 2 if self.config.pretty_print else None

        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(data, f, ensure_ascii=False, indent=indent, default=str)

        if isinstance(data, list):
            logger.info(f"Saved {len(data)} records to {filepath}")
        else:
            logger.info(f"Saved {prefix} to {filepath}")

        return filepath

    def _save_set(self, kind: str, raw: List[Dict[str, Any]], normalized: List[Dict[str, Any]],
                  summary: Dict[str, Any]) -> Dict[str, Optional[Path]]:
        timestamp = datetime.now()
        paths: Dict[str, Optional[Path]] = {'raw': None}

        if self.config.include_raw:
            paths['raw'] = self._save_to_file(raw, f"{kind}_raw", timestamp)

        paths['normalized'] = self._save_to_file(normalized, f"{kind}_normalized", timestamp)
        paths['summary'] = self._save_to_file(summary, f"{kind}_summary", timestamp)
        return paths

    def save_awards(self, raw: List[Dict[str, Any]], awards: List[Award],
                    summary: AwardSummary) -> Dict[str, Optional[Path]]:
        """
        Save an award fetch.

        Returns:
            Paths keyed by 'raw' (None unless include_raw), 'normalized', 'summary'
        """
        return self._save_set(
            'awards', raw, [award.to_dict() for award in awards], summary.to_dict()
        )

    def save_transactions(self, raw: List[Dict[str, Any]], transactions: List[Transaction],
                          summary: TransactionSummary) -> Dict[str, Optional[Path]]:
        """
        Save a transaction fetch.

        Returns:
            Paths keyed by 'raw' (None unless include_raw), 'normalized', 'summary'
        """
        return self._save_set(
            'transactions', raw, [t.to_dict() for t in transactions], summary.to_dict()
        )

    def save_complete_fetch(self, result: CompleteFetchResult) -> Dict[str, Optional[Path]]:
        """
        Save a two-stage fetch: transactions, awards and the reconciliation report.

        Returns:
            Paths keyed by 'transactions', 'awards', 'report', plus
            'raw_transactions' and 'raw_awards' (None unless include_raw)
        """
        timestamp = datetime.now()
        paths: Dict[str, Optional[Path]] = {'raw_transactions': None, 'raw_awards': None}

        if self.config.include_raw:
            paths['raw_transactions'] = self._save_to_file(
                result.raw_transactions, 'complete_transactions_raw', timestamp
            )
            paths['raw_awards'] = self._save_to_file(
                result.raw_awards, 'complete_awards_raw', timestamp
            )

        paths['transactions'] = self._save_to_file(
            [t.to_dict() for t in result.transactions], 'complete_transactions', timestamp
        )
        paths['awards'] = self._save_to_file(
            [award.to_dict() for award in result.awards], 'complete_awards', timestamp
        )
        paths['report'] = self._save_to_file(
            result.report.to_dict(), 'complete_report', timestamp
        )
        return paths

    @staticmethod
    def read_normalized_awards(file_path: Path) -> List[Award]:
        """
        Read normalized awards from a JSON file.

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file does not contain a list of awards
        """
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)

        if not isinstance(data, list):
            raise ValueError(f"Expected a list of awards in {file_path}")

        return [Award.from_dict(item) for item in data]

    def list_award_files(self) -> List[Path]:
        """Normalized award files in the output directory, most recent first."""
        files = [
            path for path in self.output_dir.glob('*.json')
            if path.name.startswith(AWARD_FILE_PREFIXES) and '_raw_' not in path.name
        ]
        return sorted(files, key=lambda path: (path.stat().st_mtime, path.name), reverse=True)
