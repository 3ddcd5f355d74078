"""Instance registry and login.

Instances are stored by alias in a YAML file (``instances.yaml`` under
``$CAMPAIGN_HOME``, default ``~/.config/campaign-pull``):

    instances:
      prod:
        host: https://campaign.example.com
        user: exporter
        password: ${CAMPAIGN_PROD_PASSWORD}

Password values may reference environment variables with ``${VAR}``; they
are expanded at login time and an unset variable is an error. Passwords are
stored as given.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import yaml

from campaign.lib.client import CampaignClient
from campaign.lib.env import expand_env_vars, get_env_path
from campaign.lib.errors import AuthenticationError, ConfigurationError

logger = logging.getLogger(__name__)

__all__ = [
    "CampaignAuth",
    "InstanceCredentials",
    "InstanceStore",
    "default_store_path",
]

STORE_FILENAME = "instances.yaml"
DEFAULT_HOME = "~/.config/campaign-pull"

ClientFactory = Callable[..., CampaignClient]


def default_store_path() -> Path:
    home = get_env_path("CAMPAIGN_HOME") or Path(DEFAULT_HOME).expanduser()
    return home / STORE_FILENAME


@dataclass
class InstanceCredentials:
    """Connection settings for one aliased instance."""

    alias: str
    host: str
    user: str
    password: str

    def describe(self) -> str:
        return f"{self.user}@{self.host}"


class InstanceStore:
    """YAML-backed alias -> credentials registry."""

    INSTANCES_KEY = "instances"

    def __init__(self, path: Optional[Union[str, Path]] = None) -> None:
        self.path = Path(path) if path else default_store_path()

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Cannot parse instance store {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Instance store {self.path} must be a mapping")
        return data

    def _instances(self) -> Dict[str, Dict[str, Any]]:
        instances = self._load().get(self.INSTANCES_KEY) or {}
        if not isinstance(instances, dict):
            raise ConfigurationError(
                f"'{self.INSTANCES_KEY}' in {self.path} must be a mapping"
            )
        return instances

    @property
    def aliases(self) -> List[str]:
        return list(self._instances())

    def get(self, alias: str) -> Optional[InstanceCredentials]:
        entry = self._instances().get(alias)
        if not isinstance(entry, dict):
            return None
        host, user, password = entry.get("host"), entry.get("user"), entry.get("password")
        if not (host and user and password):
            return None
        return InstanceCredentials(alias=alias, host=str(host), user=str(user), password=str(password))

    def add(self, credentials: InstanceCredentials) -> None:
        data = self._load()
        instances = data.setdefault(self.INSTANCES_KEY, {}) or {}
        entry = asdict(credentials)
        entry.pop("alias")
        instances[credentials.alias] = entry
        data[self.INSTANCES_KEY] = instances

        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.touch(mode=0o600, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=True)

    def list(self) -> List[InstanceCredentials]:
        result = []
        for alias in self.aliases:
            credentials = self.get(alias)
            if credentials:
                result.append(credentials)
        return result


class CampaignAuth:
    """Registers instances and opens authenticated clients."""

    def __init__(
        self,
        store: InstanceStore,
        *,
        client_factory: ClientFactory = CampaignClient,
        timeout: float = 30.0,
    ) -> None:
        self.store = store
        self.client_factory = client_factory
        self.timeout = timeout

    def init(self, alias: str, host: str, user: str, password: str) -> CampaignClient:
        """Register a new alias and log in to it.

        Raises:
            AuthenticationError: If the alias exists or the login fails
        """
        if alias in self.store.aliases:
            raise AuthenticationError(
                f"Instance with alias {alias} already exists. Please choose a different alias.",
                alias=alias,
            )
        self.store.add(InstanceCredentials(alias=alias, host=host, user=user, password=password))
        logger.info("Instance %s added successfully.", alias)
        return self.login(alias)

    def login(self, alias: str) -> CampaignClient:
        """Open a logged-in client for an alias.

        Raises:
            AuthenticationError: If the alias is unknown, its password
                references an unset variable, the logon fails, or the server
                reports no server info
        """
        credentials = self.store.get(alias)
        if credentials is None:
            raise AuthenticationError(f'Instance with alias "{alias}" doesn\'t exist.', alias=alias)

        try:
            password = expand_env_vars(credentials.password, strict=True)
        except KeyError as e:
            raise AuthenticationError(
                f"Password for {alias} references an unset variable: {e.args[0]}",
                alias=alias,
            ) from e

        logger.info("Connecting %s...", credentials.describe())
        client = self.client_factory(credentials.host, timeout=self.timeout)
        try:
            server_info = client.logon(credentials.user, password)
            if server_info is None:
                raise AuthenticationError(
                    "Unable to get server info.", alias=alias, host=credentials.host
                )
        except BaseException:
            client.close()
            raise

        logger.info("Logged in to %s successfully.", server_info.describe())
        return client

    def list(self) -> List[InstanceCredentials]:
        instances = self.store.list()
        logger.info("Reading %d instance(s)", len(instances))
        return instances
