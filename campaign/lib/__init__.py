"""Library modules for campaign exports.

Configuration, query building, pagination, record materialization and the
SOAP client used by the ``campaign`` CLI.
"""

from campaign.lib.archive import RequestArchiver, archive_stamp
from campaign.lib.auth import CampaignAuth, InstanceCredentials, InstanceStore
from campaign.lib.client import CampaignClient, ClientObserver, ServerInfo, SoapCall, redact
from campaign.lib.config_loader import (
    DEFAULT_FILENAME,
    DEFAULT_KEY,
    ExportConfig,
    SchemaConfig,
    load_export_config,
    parse_export_config,
)
from campaign.lib.env import expand_env_vars, expand_options, load_env_file
from campaign.lib.errors import (
    AuthenticationError,
    CampaignError,
    ConfigurationError,
    QueryError,
    ValidationError,
    WriteError,
)
from campaign.lib.extract import SchemaExtractor, SchemaPullResult
from campaign.lib.instance import CampaignInstance
from campaign.lib.materialize import RecordWriter
from campaign.lib.pagination import PaginationConfig, StartLinePaginationState
from campaign.lib.placeholders import compute_filename, extract_placeholders
from campaign.lib.preflight import PreflightChecker, PreflightReport, is_folder_empty
from campaign.lib.query import (
    QueryOperation,
    build_count_query,
    build_select_query,
    query_def_to_xml,
)
from campaign.lib.records import (
    JsonRecord,
    JsonRecordList,
    Record,
    RecordSource,
    XmlNodeCursor,
    XmlRecord,
    as_record_source,
)

__all__ = [
    # Errors
    "AuthenticationError",
    "CampaignError",
    "ConfigurationError",
    "QueryError",
    "ValidationError",
    "WriteError",
    # Configuration
    "DEFAULT_FILENAME",
    "DEFAULT_KEY",
    "ExportConfig",
    "SchemaConfig",
    "load_export_config",
    "parse_export_config",
    "expand_env_vars",
    "expand_options",
    "load_env_file",
    # Queries and records
    "QueryOperation",
    "build_count_query",
    "build_select_query",
    "query_def_to_xml",
    "JsonRecord",
    "JsonRecordList",
    "Record",
    "RecordSource",
    "XmlNodeCursor",
    "XmlRecord",
    "as_record_source",
    "compute_filename",
    "extract_placeholders",
    # Export
    "CampaignInstance",
    "PaginationConfig",
    "PreflightChecker",
    "PreflightReport",
    "RecordWriter",
    "SchemaExtractor",
    "SchemaPullResult",
    "StartLinePaginationState",
    "is_folder_empty",
    # Remote
    "CampaignAuth",
    "CampaignClient",
    "ClientObserver",
    "InstanceCredentials",
    "InstanceStore",
    "RequestArchiver",
    "ServerInfo",
    "SoapCall",
    "archive_stamp",
    "redact",
]
