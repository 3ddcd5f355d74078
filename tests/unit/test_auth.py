"""Tests for the instance store and login."""

from unittest.mock import MagicMock

import pytest
import yaml

from campaign.lib.auth import CampaignAuth, InstanceCredentials, InstanceStore, default_store_path
from campaign.lib.client import ServerInfo
from campaign.lib.errors import AuthenticationError, ConfigurationError


@pytest.fixture
def store(tmp_path):
    return InstanceStore(tmp_path / "instances.yaml")


def _factory(server_info=ServerInfo("prod", "8.5", "9032")):
    client = MagicMock()
    client.logon.return_value = server_info
    factory = MagicMock(return_value=client)
    return factory, client


class TestInstanceStore:
    """Tests for InstanceStore."""

    def test_default_path_uses_campaign_home(self, monkeypatch, tmp_path):
        """CAMPAIGN_HOME selects the store directory."""
        monkeypatch.setenv("CAMPAIGN_HOME", str(tmp_path / "home"))
        assert default_store_path() == tmp_path / "home" / "instances.yaml"

    def test_empty_store(self, store):
        """A missing file has no aliases."""
        assert store.aliases == []
        assert store.get("prod") is None

    def test_add_and_get(self, store):
        """Added credentials can be read back."""
        store.add(InstanceCredentials("prod", "https://c.example.com", "admin", "secret"))
        credentials = store.get("prod")
        assert credentials == InstanceCredentials("prod", "https://c.example.com", "admin", "secret")
        data = yaml.safe_load(store.path.read_text())
        assert data == {
            "instances": {"prod": {"host": "https://c.example.com", "user": "admin", "password": "secret"}}
        }

    def test_add_keeps_other_aliases(self, store):
        """Adding an alias keeps the existing ones."""
        store.add(InstanceCredentials("a", "h1", "u", "p"))
        store.add(InstanceCredentials("b", "h2", "u", "p"))
        assert store.aliases == ["a", "b"]
        assert [c.alias for c in store.list()] == ["a", "b"]

    def test_incomplete_entry_ignored(self, store):
        """Entries missing fields are not returned."""
        store.path.write_text("instances:\n  broken:\n    host: h\n")
        assert store.get("broken") is None
        assert store.list() == []

    def test_invalid_yaml(self, store):
        """An unparseable store is a ConfigurationError."""
        store.path.write_text("instances: [unclosed\n")
        with pytest.raises(ConfigurationError):
            store.aliases

    def test_instances_must_be_mapping(self, store):
        """'instances' must be a mapping."""
        store.path.write_text("instances:\n  - prod\n")
        with pytest.raises(ConfigurationError, match="must be a mapping"):
            store.aliases


class TestCampaignAuth:
    """Tests for CampaignAuth."""

    def test_init_adds_and_logs_in(self, store):
        """init() stores the instance and returns a logged-in client."""
        factory, client = _factory()
        auth = CampaignAuth(store, client_factory=factory, timeout=5.0)

        assert auth.init("prod", "https://c.example.com", "admin", "secret") is client
        assert store.aliases == ["prod"]
        factory.assert_called_once_with("https://c.example.com", timeout=5.0)
        client.logon.assert_called_once_with("admin", "secret")

    def test_init_duplicate_alias(self, store):
        """A duplicate alias is rejected and nothing is overwritten."""
        store.add(InstanceCredentials("prod", "h", "u", "p"))
        factory, _ = _factory()
        with pytest.raises(AuthenticationError, match="already exists"):
            CampaignAuth(store, client_factory=factory).init("prod", "h2", "u2", "p2")
        assert store.get("prod").host == "h"
        factory.assert_not_called()

    def test_login_unknown_alias(self, store):
        """Unknown aliases are rejected."""
        with pytest.raises(AuthenticationError, match='Instance with alias "nope" doesn\'t exist.'):
            CampaignAuth(store, client_factory=MagicMock()).login("nope")

    def test_login_expands_password(self, store, monkeypatch):
        """Password references are expanded at login."""
        monkeypatch.setenv("PROD_PASSWORD", "from-env")
        store.add(InstanceCredentials("prod", "h", "admin", "${PROD_PASSWORD}"))
        factory, client = _factory()
        CampaignAuth(store, client_factory=factory).login("prod")
        client.logon.assert_called_once_with("admin", "from-env")

    def test_login_unset_password_variable(self, store, monkeypatch):
        """An unset password variable is an AuthenticationError."""
        monkeypatch.delenv("MISSING_PASSWORD", raising=False)
        store.add(InstanceCredentials("prod", "h", "admin", "${MISSING_PASSWORD}"))
        factory, _ = _factory()
        with pytest.raises(AuthenticationError, match="unset variable"):
            CampaignAuth(store, client_factory=factory).login("prod")
        factory.assert_not_called()

    def test_login_without_server_info(self, store):
        """A logon without server info fails and closes the client."""
        store.add(InstanceCredentials("prod", "h", "admin", "pw"))
        factory, client = _factory(server_info=None)
        with pytest.raises(AuthenticationError, match="Unable to get server info."):
            CampaignAuth(store, client_factory=factory).login("prod")
        client.close.assert_called_once()

    def test_login_failure_closes_client(self, store):
        """Logon errors propagate and close the client."""
        store.add(InstanceCredentials("prod", "h", "admin", "pw"))
        factory, client = _factory()
        client.logon.side_effect = AuthenticationError("Logon failed")
        with pytest.raises(AuthenticationError, match="Logon failed"):
            CampaignAuth(store, client_factory=factory).login("prod")
        client.close.assert_called_once()

    def test_list(self, store):
        """list() returns stored credentials."""
        store.add(InstanceCredentials("prod", "https://c.example.com", "admin", "pw"))
        instances = CampaignAuth(store).list()
        assert [i.describe() for i in instances] == ["admin@https://c.example.com"]
