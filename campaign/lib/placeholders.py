"""Filename templates with ``{placeholder}`` tokens.

A template such as ``/Forms/{namespace}/{name}.xml`` is turned into a
per-record relative path by replacing each token with the record's value for
that name. There is one template language: tokens are delimited by ``{`` and
``}``. Legacy ``%name%`` templates are rewritten to it by
:func:`normalize_template` when the configuration is loaded.

Reserved placeholders are resolved from the export context rather than the
record:

    {schema}  the schema id with ``:`` replaced by ``_`` (``nms_recipient``)

Unknown placeholders resolve to an empty string, so a template referring to
an attribute the record lacks degrades the filename instead of failing the
export.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Sequence

from campaign.lib.records import Record

logger = logging.getLogger(__name__)

__all__ = [
    "PLACEHOLDER_PATTERN",
    "RESERVED_PLACEHOLDERS",
    "compute_filename",
    "extract_placeholders",
    "normalize_template",
    "schema_token",
]

PLACEHOLDER_OPEN = "{"
PLACEHOLDER_CLOSE = "}"
PLACEHOLDER_PATTERN = re.compile(r"\{([^}]+?)\}")

# %name% tokens from older configuration files
LEGACY_PLACEHOLDER_PATTERN = re.compile(r"%([A-Za-z_][A-Za-z0-9_.@-]*)%")

RESERVED_PLACEHOLDERS = frozenset({"schema"})


def normalize_template(template: str) -> str:
    """Rewrite legacy ``%name%`` tokens as ``{name}``."""
    return LEGACY_PLACEHOLDER_PATTERN.sub(
        lambda m: f"{PLACEHOLDER_OPEN}{m.group(1)}{PLACEHOLDER_CLOSE}", template
    )


def extract_placeholders(template: str) -> List[str]:
    """Return the placeholder names in a template, in order of first appearance.

    Example:
        >>> extract_placeholders("{namespace}/{name}_{name}.xml")
        ['namespace', 'name']
    """
    seen: Dict[str, None] = {}
    for match in PLACEHOLDER_PATTERN.finditer(template):
        seen.setdefault(match.group(1), None)
    return list(seen)


def schema_token(schema: str) -> str:
    """Filesystem-friendly form of a schema id."""
    return schema.replace(":", "_")


def compute_filename(
    template: str,
    record: Record,
    *,
    schema: Optional[str] = None,
    placeholders: Optional[Sequence[str]] = None,
) -> str:
    """Substitute every placeholder of ``template`` with the record's values.

    Args:
        template: Filename template with ``{name}`` tokens
        record: Record the values are read from
        schema: Schema id used for the reserved ``{schema}`` token
        placeholders: Pre-extracted placeholder names (extracted from the
            template when omitted)

    Returns:
        The filename with each occurrence of each token replaced. Tokens the
        record cannot resolve are replaced with an empty string.
    """
    if placeholders is None:
        placeholders = extract_placeholders(template)

    values: Dict[str, str] = {}
    for name in placeholders:
        value = _resolve(name, record, schema)
        if value is None:
            logger.debug("Placeholder {%s} not found on record; using empty string", name)
            value = ""
        values[name] = value

    # Single pass: substituted values are never scanned for tokens again
    return PLACEHOLDER_PATTERN.sub(lambda m: values.get(m.group(1), m.group(0)), template)


def _resolve(name: str, record: Record, schema: Optional[str]) -> Optional[str]:
    if name == "schema" and schema is not None:
        return schema_token(schema)
    return record.get(name)
