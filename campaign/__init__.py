"""campaign-pull: export campaign server entities to files.

Usage:
    from campaign import CampaignAuth, CampaignInstance, InstanceStore, load_export_config

    client = CampaignAuth(InstanceStore()).login("prod")
    instance = CampaignInstance(client, load_export_config("./config/campaign.config.json"))
    instance.check("./export")
    instance.pull("./export")
"""

from campaign._version import __version__
from campaign.lib import (
    AuthenticationError,
    CampaignAuth,
    CampaignClient,
    CampaignError,
    CampaignInstance,
    ConfigurationError,
    ExportConfig,
    InstanceStore,
    QueryError,
    ValidationError,
    WriteError,
    load_export_config,
)

__all__ = [
    "__version__",
    "AuthenticationError",
    "CampaignAuth",
    "CampaignClient",
    "CampaignError",
    "CampaignInstance",
    "ConfigurationError",
    "ExportConfig",
    "InstanceStore",
    "QueryError",
    "ValidationError",
    "WriteError",
    "load_export_config",
]
