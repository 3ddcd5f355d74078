"""Preflight check run before a pull.

Counts the records of every configured schema and verifies the destination
directory is absent or empty. Count failures are reported per schema and do
not stop the check; a non-empty destination raises ValidationError once all
schemas have been counted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Union

from campaign.lib.config_loader import ExportConfig
from campaign.lib.errors import ValidationError
from campaign.lib.query import QueryExecutor, build_count_query

logger = logging.getLogger(__name__)

__all__ = ["PreflightChecker", "PreflightReport", "is_folder_empty"]

NOT_EMPTY_MESSAGE = (
    "Directory already exists and is not empty. "
    "Please choose an empty directory or a different path."
)


def is_folder_empty(path: Union[str, Path]) -> bool:
    """True when the path does not exist or is a directory with no entries."""
    folder = Path(path)
    if not folder.exists():
        return True
    if not folder.is_dir():
        return False
    return not any(folder.iterdir())


@dataclass
class PreflightReport:
    """Per-schema counts (or count errors) gathered by a check."""

    destination: str
    counts: Dict[str, int] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "destination": self.destination,
            "counts": dict(self.counts),
            "errors": dict(self.errors),
            "total": self.total,
        }


class PreflightChecker:
    """Counts records per schema and validates the destination."""

    def __init__(self, executor: QueryExecutor, config: ExportConfig) -> None:
        self.executor = executor
        self.config = config

    def count(self, schema: str) -> int:
        query_def = self.config.resolve_query(schema, build_count_query(schema))
        result = self.executor.execute_query(query_def)
        return int(result["count"])

    def check(self, destination: Union[str, Path]) -> PreflightReport:
        """Run the check.

        Raises:
            ValidationError: If the destination exists and is not empty
        """
        report = PreflightReport(destination=str(destination))
        logger.info("Checking instance...")

        for schema in self.config.schemas:
            try:
                count = self.count(schema)
            except Exception as e:
                message = getattr(e, "base_message", None) or str(e)
                report.errors[schema] = message
                logger.warning("- %s: Error executing query: %s.", schema, message)
                continue
            report.counts[schema] = count
            logger.info("- %s: %d found.", schema, count)

        logger.info("Will be downloaded to %s", destination)

        if not is_folder_empty(destination):
            raise ValidationError(NOT_EMPTY_MESSAGE, details={"path": str(destination)})

        return report
