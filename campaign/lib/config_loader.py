"""Export configuration loader.

The configuration document maps schema ids to their export settings, plus
one reserved ``default`` entry used for any schema without its own entry.

Example (config/campaign.config.json):
    {
      "default": {
        "filename": "/.tmp/{namespace}_{schema}_{name}_{internalName}.xml"
      },
      "xtk:formRendering": {
        "filename": "/Administration/Configuration/Form rendering/{internalName}.css"
      },
      "nms:recipient": {
        "filename": "/Recipients/{email}.xml",
        "selectFields": ["data", "@email"],
        "queryDef": {"where": {"condition": [{"expr": "@blackList = 0"}]}}
      }
    }

``.json`` documents are read with the json module; any other extension is
parsed with PyYAML, so the same structure may be written as YAML. Legacy ``%name%`` filename tokens are accepted and normalized.

Usage:
    from campaign.lib.config_loader import load_export_config
    config = load_export_config("./config/campaign.config.json")
    query_def = config.resolve_query("nms:recipient", build_count_query("nms:recipient"))
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from campaign.lib.env import expand_options
from campaign.lib.errors import ConfigurationError
from campaign.lib.placeholders import extract_placeholders, normalize_template
from campaign.lib.query import QueryDef

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_KEY",
    "DEFAULT_FILENAME",
    "SchemaConfig",
    "ExportConfig",
    "load_export_config",
    "parse_export_config",
]

DEFAULT_KEY = "default"
DEFAULT_FILENAME = "/.tmp/{namespace}_{schema}_{name}_{internalName}.xml"

SCHEMA_ID_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_]*:[A-Za-z][A-Za-z0-9_]*$")
ALLOWED_KEYS = {"filename", "queryDef", "selectFields"}


@dataclass(frozen=True)
class SchemaConfig:
    """Export settings for one schema (or for the default entry)."""

    schema_id: str
    filename: str
    query_def: Dict[str, Any] = field(default_factory=dict)
    select_fields: Optional[List[str]] = None

    @property
    def placeholders(self) -> List[str]:
        return extract_placeholders(self.filename)


class ExportConfig:
    """Schema id -> SchemaConfig mapping with an explicit default entry.

    Lookups for ids without their own entry fall back to the default entry.
    """

    def __init__(
        self,
        schemas: Mapping[str, SchemaConfig],
        default: Optional[SchemaConfig] = None,
    ) -> None:
        if DEFAULT_KEY in schemas:
            raise ConfigurationError(
                f"'{DEFAULT_KEY}' is reserved and cannot be used as a schema id",
                field=DEFAULT_KEY,
            )
        self._schemas: Dict[str, SchemaConfig] = dict(schemas)
        self.default = default or SchemaConfig(DEFAULT_KEY, DEFAULT_FILENAME)

    @property
    def schemas(self) -> List[str]:
        """Schema ids taking part in the export, in document order."""
        return list(self._schemas)

    def get(self, schema_id: str) -> SchemaConfig:
        """Return the schema's entry, or the default entry when it has none."""
        return self._schemas.get(schema_id, self.default)

    def resolve_query(self, schema_id: str, base: QueryDef) -> QueryDef:
        """Overlay the schema's query override on a base query definition.

        Shallow merge: override keys replace base keys of the same name,
        base-only keys are kept. The base mapping is not modified.
        """
        override = self.get(schema_id).query_def
        return {**base, **override}

    def __contains__(self, schema_id: object) -> bool:
        return schema_id in self._schemas

    def __len__(self) -> int:
        return len(self._schemas)

    def __repr__(self) -> str:
        return f"ExportConfig(schemas={self.schemas!r})"


def _parse_entry(
    key: str,
    entry: Any,
    fallback: Optional[SchemaConfig],
) -> SchemaConfig:
    if entry is None:
        entry = {}
    if not isinstance(entry, dict):
        raise ConfigurationError(
            f"Entry '{key}' must be an object", field=key, value=entry
        )

    unknown = sorted(set(entry) - ALLOWED_KEYS)
    if unknown:
        raise ConfigurationError(
            f"Entry '{key}' has unknown keys: {', '.join(unknown)}",
            field=key,
            suggestion=f"Valid keys: {', '.join(sorted(ALLOWED_KEYS))}",
        )

    filename = entry.get("filename")
    if filename is None:
        if fallback is None:
            raise ConfigurationError(f"Entry '{key}' requires 'filename'", field=f"{key}.filename")
        filename = fallback.filename
    elif not isinstance(filename, str) or not filename.strip():
        raise ConfigurationError(
            f"Entry '{key}' has an invalid filename", field=f"{key}.filename", value=filename
        )

    query_def = entry.get("queryDef") or {}
    if not isinstance(query_def, dict):
        raise ConfigurationError(
            f"Entry '{key}' queryDef must be an object", field=f"{key}.queryDef", value=query_def
        )

    select_fields = entry.get("selectFields")
    if select_fields is None and fallback is not None:
        select_fields = fallback.select_fields
    if select_fields is not None and not (
        isinstance(select_fields, list) and all(isinstance(f, str) for f in select_fields)
    ):
        raise ConfigurationError(
            f"Entry '{key}' selectFields must be a list of strings",
            field=f"{key}.selectFields",
            value=select_fields,
        )

    return SchemaConfig(
        schema_id=key,
        filename=normalize_template(filename),
        query_def=expand_options(query_def, braces_only=True),
        select_fields=list(select_fields) if select_fields else None,
    )


def parse_export_config(document: Any) -> ExportConfig:
    """Build an ExportConfig from a parsed configuration document.

    Raises:
        ConfigurationError: If the document is not a mapping, a key is not a
            valid schema id, or an entry is malformed
    """
    if document is None:
        document = {}
    if not isinstance(document, dict):
        raise ConfigurationError(
            "Configuration document must be an object keyed by schema id",
            value=type(document).__name__,
        )

    builtin_default = SchemaConfig(DEFAULT_KEY, DEFAULT_FILENAME)
    default = builtin_default
    if DEFAULT_KEY in document:
        default = _parse_entry(DEFAULT_KEY, document[DEFAULT_KEY], builtin_default)

    schemas: Dict[str, SchemaConfig] = {}
    invalid: List[str] = []
    for key, entry in document.items():
        if key == DEFAULT_KEY:
            continue
        if not isinstance(key, str) or not SCHEMA_ID_PATTERN.match(key):
            invalid.append(str(key))
            continue
        schemas[key] = _parse_entry(key, entry, default)

    if invalid:
        raise ConfigurationError(
            f"Invalid schema ids: {', '.join(invalid)}",
            suggestion="Schema ids look like 'namespace:name', e.g. 'nms:recipient'",
        )

    if not schemas:
        logger.warning("Configuration lists no schemas; nothing will be exported")

    return ExportConfig(schemas, default)


def load_export_config(path: Union[str, Path]) -> ExportConfig:
    """Load and validate a configuration document from disk.

    Raises:
        ConfigurationError: If the file is missing, unparseable, or invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigurationError(
            f"Configuration file not found: {config_path}",
            suggestion="Pass --config or create ./config/campaign.config.json",
        )

    try:
        with open(config_path, encoding="utf-8") as f:
            if config_path.suffix.lower() == ".json":
                document = json.load(f)
            else:
                document = yaml.safe_load(f)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot parse {config_path}: {e}") from e

    config = parse_export_config(document)
    logger.debug("Loaded %d schema(s) from %s", len(config), config_path)
    return config
