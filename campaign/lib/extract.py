"""Paginated extraction of one schema's records to disk.

For each page window the extractor builds a select query, merges the
schema's query override into it, runs it, and hands every returned record to
the filename template and the RecordWriter. A page shorter than the page
size ends the schema.

Failure containment:
    A failing query is logged and counts as an empty page, which ends the
    schema without raising, so one schema cannot abort a multi-schema pull.
    Write failures are not contained: WriteError propagates.

Example:
    extractor = SchemaExtractor(client, export_config, RecordWriter("./out"))
    result = extractor.pull_schema("nms:recipient")
    print(result.records_written, result.pages_fetched)
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from campaign.lib.config_loader import ExportConfig
from campaign.lib.materialize import RecordWriter
from campaign.lib.pagination import PaginationConfig, StartLinePaginationState
from campaign.lib.placeholders import compute_filename
from campaign.lib.query import QueryExecutor, build_select_query, select_fields_for
from campaign.lib.records import RecordSource, as_record_source

logger = logging.getLogger(__name__)

__all__ = ["SchemaExtractor", "SchemaPullResult"]


@dataclass
class SchemaPullResult:
    """Outcome of exporting one schema."""

    schema: str
    pages_fetched: int = 0
    records_written: int = 0
    last_page_count: int = 0
    files: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["files"] = len(self.files)
        return data


class SchemaExtractor:
    """Exports schemas page by page through a query executor."""

    def __init__(
        self,
        executor: QueryExecutor,
        config: ExportConfig,
        writer: RecordWriter,
        *,
        pagination: Optional[PaginationConfig] = None,
    ) -> None:
        self.executor = executor
        self.config = config
        self.writer = writer
        self.pagination = pagination or PaginationConfig()

    def pull_schema(self, schema: str) -> SchemaPullResult:
        """Export every page of a schema.

        Returns:
            SchemaPullResult with cumulative counts; ``error`` holds the
            message of the query failure that ended the schema, if any
        """
        result = SchemaPullResult(schema=schema)
        state = StartLinePaginationState(self.pagination)
        logger.info("Schema %s", schema, extra={"schema": schema})

        while state.should_fetch_more():
            logger.info("  Downloading %s...", state.describe(), extra={"schema": schema})
            count = self.download(schema, state.start_line, result=result)
            result.pages_fetched += 1
            result.last_page_count = count
            if not state.on_response(count):
                break

        if state.max_pages_limit_hit:
            logger.info(
                "Reached max_pages limit of %d for %s", self.pagination.max_pages, schema
            )

        logger.info(
            "%s: %d record(s) written in %d page(s)",
            schema,
            result.records_written,
            result.pages_fetched,
            extra={"schema": schema, "records": result.records_written},
        )
        return result

    def download(
        self,
        schema: str,
        start_line: int,
        *,
        result: Optional[SchemaPullResult] = None,
    ) -> int:
        """Fetch and write one page.

        Args:
            schema: Schema id
            start_line: 1-based first line of the page
            result: Optional accumulator updated with written files

        Returns:
            Number of records written from this page; 0 when the query failed

        Raises:
            WriteError: If a record cannot be written
        """
        schema_config = self.config.get(schema)
        placeholders = schema_config.placeholders
        select_fields = schema_config.select_fields or select_fields_for(placeholders)

        base = build_select_query(
            schema,
            start_line=start_line,
            line_count=self.pagination.page_size,
            select_fields=select_fields,
        )
        query_def = self.config.resolve_query(schema, base)

        records = self._fetch_page(schema, query_def, result)
        if records is None:
            return 0

        count = 0
        for record in records:
            filename = compute_filename(
                schema_config.filename,
                record,
                schema=schema,
                placeholders=placeholders,
            )
            path = self.writer.write(filename, record.to_payload())
            logger.info("  /%s", filename.lstrip("/"), extra={"schema": schema})
            count += 1
            if result is not None:
                result.records_written += 1
                result.files.append(str(path))

        logger.info("- %s: %d saved.", schema, count, extra={"schema": schema})
        return count

    def _fetch_page(
        self,
        schema: str,
        query_def: Dict[str, Any],
        result: Optional[SchemaPullResult],
    ) -> Optional[RecordSource]:
        try:
            return as_record_source(self.executor.execute_query(query_def))
        except Exception as e:
            message = getattr(e, "base_message", None) or str(e)
            logger.warning(
                "- %s: Error executing query: %s.",
                schema,
                message,
                extra={"schema": schema, "start_line": query_def.get("startLine")},
            )
            if result is not None:
                result.error = message
            return None
