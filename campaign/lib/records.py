"""Records returned by select queries, and the sources that yield them.

The server answers a select query either with an XML collection element
(``<recipient-collection><recipient .../>...</recipient-collection>``) or,
for JSON transports, with a list of plain objects. Both are exposed as a
:class:`RecordSource`: an iterable of :class:`Record` that can be walked
again from the start, so the extractor and filename computation are written
once against the abstraction.

Example:
    source = as_record_source(client.execute_query(query_def))
    for record in source:
        print(record.get("name"), len(record.to_payload()))
"""

from __future__ import annotations

import json
import logging
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, List, Optional

from campaign.lib.errors import QueryError

logger = logging.getLogger(__name__)

__all__ = [
    "Record",
    "XmlRecord",
    "JsonRecord",
    "RecordSource",
    "XmlNodeCursor",
    "JsonRecordList",
    "as_record_source",
]


class Record(ABC):
    """A single exported entity with named attribute access."""

    @abstractmethod
    def get(self, name: str) -> Optional[str]:
        """Return the attribute value as a string, or None when absent."""
        ...

    @abstractmethod
    def to_payload(self) -> bytes:
        """Serialize the record to the bytes written on disk."""
        ...


class XmlRecord(Record):
    """Record backed by an XML element; attributes are read by name."""

    def __init__(self, element: ET.Element) -> None:
        self.element = element

    def get(self, name: str) -> Optional[str]:
        return self.element.get(name.lstrip("@"))

    def to_payload(self) -> bytes:
        return ET.tostring(self.element, encoding="unicode").encode("utf-8")

    def __repr__(self) -> str:
        return f"XmlRecord(<{self.element.tag}>)"


class JsonRecord(Record):
    """Record backed by a plain mapping; fields are read by key."""

    def __init__(self, data: Dict[str, Any]) -> None:
        self.data = data

    def get(self, name: str) -> Optional[str]:
        value = self.data.get(name.lstrip("@"))
        if value is None:
            return None
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (dict, list)):
            return json.dumps(value, sort_keys=True)
        return str(value)

    def to_payload(self) -> bytes:
        return json.dumps(self.data, indent=2, default=str).encode("utf-8")

    def __repr__(self) -> str:
        return f"JsonRecord({sorted(self.data)})"


class RecordSource(ABC):
    """A finite, restartable sequence of records for one page."""

    @abstractmethod
    def __iter__(self) -> Iterator[Record]:
        ...


class XmlNodeCursor(RecordSource):
    """Walks the child elements of a collection element.

    Traversal uses a first-child / next-sibling cursor; every iteration
    starts again from the first child.
    """

    def __init__(self, collection: ET.Element) -> None:
        self.collection = collection
        self._children: List[ET.Element] = list(collection)
        self._positions = {id(child): i for i, child in enumerate(self._children)}

    def first_child(self) -> Optional[ET.Element]:
        return self._children[0] if self._children else None

    def next_sibling(self, node: ET.Element) -> Optional[ET.Element]:
        position = self._positions.get(id(node))
        if position is None or position + 1 >= len(self._children):
            return None
        return self._children[position + 1]

    def __iter__(self) -> Iterator[Record]:
        child = self.first_child()
        while child is not None:
            yield XmlRecord(child)
            child = self.next_sibling(child)


class JsonRecordList(RecordSource):
    """Records from a list of plain objects."""

    def __init__(self, items: List[Dict[str, Any]]) -> None:
        self.items = items

    def __iter__(self) -> Iterator[Record]:
        for item in self.items:
            if not isinstance(item, dict):
                logger.warning("Skipping non-object record of type %s", type(item).__name__)
                continue
            yield JsonRecord(item)


def as_record_source(data: Any) -> RecordSource:
    """Wrap a select result in the matching RecordSource.

    Accepts a RecordSource (returned as is), an XML collection element, a
    list of objects, or an object holding such a list under one of the
    common keys ("items", "data", "results", "records").

    Raises:
        QueryError: If the result has none of these shapes
    """
    if isinstance(data, RecordSource):
        return data
    if isinstance(data, ET.Element):
        return XmlNodeCursor(data)
    if isinstance(data, list):
        return JsonRecordList(data)
    if isinstance(data, dict):
        for key in ("items", "data", "results", "records"):
            if key in data and isinstance(data[key], list):
                return JsonRecordList(data[key])
    raise QueryError(f"Unexpected query result type: {type(data).__name__}")
