"""Query definitions sent to the server.

A query definition is a JSON-like mapping in the server's vocabulary:

    {
        "schema": "nms:recipient",
        "operation": "select",
        "select": {"node": [{"expr": "data"}, {"expr": "@name"}]},
        "startLine": 11,
        "lineCount": 10,
    }

Builders here produce the base definitions for count and paginated select
queries; per-schema overrides are merged on top by
:meth:`campaign.lib.config_loader.ExportConfig.resolve_query`. Keys the
builders do not know about (``where``, ``orderBy``...) pass through verbatim.

:func:`query_def_to_xml` converts a definition to the ``<queryDef>`` element
the SOAP call carries: scalars become attributes, mappings become child
elements and lists become repeated child elements.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Sequence

from campaign.lib.placeholders import RESERVED_PLACEHOLDERS

__all__ = [
    "QueryDef",
    "QueryExecutor",
    "QueryOperation",
    "DATA_FIELD",
    "build_count_query",
    "build_select_query",
    "select_fields_for",
    "query_def_to_xml",
]

QueryDef = Dict[str, Any]

# XML memo column holding the full entity definition
DATA_FIELD = "data"


class QueryOperation(Enum):
    """Query operations used by the exporter."""

    COUNT = "count"
    SELECT = "select"


class QueryExecutor(Protocol):
    """Anything able to run a query definition against the server.

    Count queries return ``{"count": int}``; select queries return a record
    collection accepted by :func:`campaign.lib.records.as_record_source`.
    """

    def execute_query(self, query_def: QueryDef) -> Any:
        ...


def build_count_query(schema: str) -> QueryDef:
    """Base definition for counting the records of a schema."""
    return {
        "schema": schema,
        "operation": QueryOperation.COUNT.value,
    }


def select_fields_for(placeholders: Sequence[str]) -> List[str]:
    """Select expressions needed to export a record and name its file.

    The ``data`` column carries the payload; each placeholder that is not
    resolved from the export context adds an ``@attribute`` expression.
    """
    fields = [DATA_FIELD]
    for name in placeholders:
        if name in RESERVED_PLACEHOLDERS:
            continue
        expr = name if name.startswith("@") else f"@{name}"
        if expr not in fields:
            fields.append(expr)
    return fields


def build_select_query(
    schema: str,
    *,
    start_line: int,
    line_count: int,
    select_fields: Optional[Sequence[str]] = None,
) -> QueryDef:
    """Base definition for one page of a select query.

    Args:
        schema: Schema id
        start_line: 1-based index of the first record of the page
        line_count: Page size
        select_fields: Select expressions (defaults to ``data`` only)

    Raises:
        ValueError: If start_line < 1 or line_count < 1
    """
    if start_line < 1:
        raise ValueError(f"start_line must be >= 1, got {start_line}")
    if line_count < 1:
        raise ValueError(f"line_count must be >= 1, got {line_count}")

    fields = list(select_fields) if select_fields else [DATA_FIELD]
    return {
        "schema": schema,
        "operation": QueryOperation.SELECT.value,
        "select": {"node": [{"expr": expr} for expr in fields]},
        "startLine": start_line,
        "lineCount": line_count,
    }


def query_def_to_xml(query_def: QueryDef, root_name: str = "queryDef") -> ET.Element:
    """Convert a query definition mapping to its XML element."""
    element = ET.Element(root_name)
    _fill_element(element, query_def)
    return element


def _fill_element(element: ET.Element, data: Dict[str, Any]) -> None:
    for key, value in data.items():
        if value is None:
            continue
        if key == "$":
            # Text content, e.g. {"$": "@email IS NOT NULL"}
            element.text = _scalar(value)
        elif isinstance(value, dict):
            _fill_element(ET.SubElement(element, key), value)
        elif isinstance(value, list):
            for item in value:
                child = ET.SubElement(element, key)
                if isinstance(item, dict):
                    _fill_element(child, item)
                elif item is not None:
                    child.text = _scalar(item)
        else:
            element.set(key, _scalar(value))


def _scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)
