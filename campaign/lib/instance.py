"""Check and pull a whole instance.

CampaignInstance ties a logged-in client to an export configuration:

- ``check(path)`` counts each schema's records and refuses a non-empty
  destination (ValidationError).
- ``pull(path)`` exports every schema, page by page, below ``path``. A
  non-empty destination only produces a warning; existing files with the
  same names are overwritten.

Schemas are exported one after the other unless ``workers`` > 1, in which
case independent schemas run on a thread pool. Within a schema pages are
always fetched in order.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Union

from campaign.lib.config_loader import ExportConfig
from campaign.lib.errors import WriteError
from campaign.lib.extract import SchemaExtractor, SchemaPullResult
from campaign.lib.materialize import RecordWriter
from campaign.lib.pagination import PaginationConfig
from campaign.lib.preflight import PreflightChecker, PreflightReport, is_folder_empty
from campaign.lib.query import QueryExecutor

logger = logging.getLogger(__name__)

__all__ = ["CampaignInstance"]


class CampaignInstance:
    """Export operations over every schema of a configuration."""

    def __init__(
        self,
        client: QueryExecutor,
        config: ExportConfig,
        *,
        pagination: Optional[PaginationConfig] = None,
        workers: int = 1,
    ) -> None:
        self.client = client
        self.config = config
        self.pagination = pagination or PaginationConfig()
        self.workers = max(workers, 1)

    @property
    def schemas(self) -> List[str]:
        return self.config.schemas

    def check(self, path: Union[str, Path]) -> PreflightReport:
        """Count records per schema and validate the destination.

        Raises:
            ValidationError: If the destination exists and is not empty
        """
        return PreflightChecker(self.client, self.config).check(path)

    def pull(self, path: Union[str, Path]) -> List[SchemaPullResult]:
        """Export every schema below ``path``.

        Returns:
            One SchemaPullResult per schema, in configuration order

        Raises:
            WriteError: If the destination cannot be created or a record
                cannot be written; the pull stops
        """
        root = Path(path)
        logger.info("Pulling instance to %s...", root)

        if not is_folder_empty(root):
            logger.warning(
                "Destination %s is not empty; existing files may be overwritten", root
            )
        try:
            root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WriteError(
                f"Cannot create destination {root}", path=str(root), cause=e
            ) from e

        if self.workers == 1 or len(self.schemas) < 2:
            results = [self._pull_schema(schema, root) for schema in self.schemas]
        else:
            results = self._pull_parallel(root)

        total = sum(r.records_written for r in results)
        failed = [r.schema for r in results if not r.succeeded]
        logger.info(
            "Pull complete: %d record(s) from %d schema(s), %d with errors",
            total,
            len(results),
            len(failed),
        )
        return results

    def _pull_schema(self, schema: str, root: Path) -> SchemaPullResult:
        extractor = SchemaExtractor(
            self.client,
            self.config,
            RecordWriter(root),
            pagination=self.pagination,
        )
        return extractor.pull_schema(schema)

    def _pull_parallel(self, root: Path) -> List[SchemaPullResult]:
        logger.info(
            "Pulling %d schemas with %d workers", len(self.schemas), self.workers
        )
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            futures: List[Future[SchemaPullResult]] = [
                pool.submit(self._pull_schema, schema, root) for schema in self.schemas
            ]
            results: List[SchemaPullResult] = []
            try:
                for future in futures:
                    results.append(future.result())
            except BaseException:
                for future in futures:
                    future.cancel()
                raise
        return results
