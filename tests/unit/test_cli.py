"""Tests for the campaign CLI.

Tests the command-line interface including:
- auth init / login / list
- instance check / pull
- CampaignError reporting and exit status
"""

import json
import subprocess
import sys
from unittest.mock import MagicMock, patch

import pytest

from campaign import __main__ as cli
from campaign.lib.auth import CampaignAuth, InstanceCredentials, InstanceStore
from campaign.lib.client import ServerInfo
from campaign.lib.errors import CampaignError
from tests.fakes import FakeExecutor, make_collection, named


def _fake_client(executor=None):
    client = MagicMock()
    client.logon.return_value = ServerInfo("prod", "8.5", "9032")
    client.server_info = client.logon.return_value
    if executor is not None:
        client.execute_query.side_effect = executor.execute_query
    return client


@pytest.fixture
def store(tmp_path):
    store = InstanceStore(tmp_path / "instances.yaml")
    store.add(InstanceCredentials("prod", "https://c.example.com", "admin", "secret"))
    return store


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "campaign.config.json"
    path.write_text(
        json.dumps(
            {
                "default": {"filename": "%schema%_%name%.xml"},
                "nms:recipient": {"filename": "recipient_%name%.xml"},
            }
        )
    )
    return path


def _use_client(store, client):
    factory = MagicMock(return_value=client)
    return patch.object(cli, "_auth", return_value=CampaignAuth(store, client_factory=factory))


class TestCLIHelp:
    """Tests for CLI help and basic invocation."""

    def test_help_flag(self):
        """--help should show usage information."""
        result = subprocess.run(
            [sys.executable, "-m", "campaign", "--help"],
            capture_output=True,
            text=True,
        )
        assert result.returncode == 0
        assert "instance" in result.stdout

    def test_command_required(self, capsys):
        """A command is required."""
        with pytest.raises(SystemExit) as exc_info:
            cli.main([])
        assert exc_info.value.code == 2

    def test_version(self, capsys):
        """--version prints the package version."""
        with pytest.raises(SystemExit):
            cli.main(["--version"])
        assert "1.0.0" in capsys.readouterr().out


class TestAuthCommands:
    """Tests for auth subcommands."""

    def test_list(self, store, capsys):
        """auth list prints alias and user@host."""
        with _use_client(store, _fake_client()):
            assert cli.main(["auth", "list"]) == 0
        assert '"prod": admin@https://c.example.com' in capsys.readouterr().out

    def test_list_empty(self, tmp_path, capsys):
        """auth list explains how to add an instance."""
        with _use_client(InstanceStore(tmp_path / "none.yaml"), _fake_client()):
            assert cli.main(["auth", "list"]) == 0
        assert "No instances configured" in capsys.readouterr().out

    def test_login(self, store, capsys):
        """auth login reports the server and logs off."""
        client = _fake_client()
        with _use_client(store, client):
            assert cli.main(["auth", "login", "--alias", "prod"]) == 0
        assert "Logged in to prod (8.5 build 9032)" in capsys.readouterr().out
        client.logoff.assert_called_once()
        client.close.assert_called_once()

    def test_login_unknown_alias(self, store, capsys):
        """Unknown aliases are reported as a campaign warning."""
        with _use_client(store, _fake_client()):
            assert cli.main(["auth", "login", "--alias", "nope"]) == 1
        assert 'Campaign warning: Instance with alias "nope"' in capsys.readouterr().err

    def test_init_duplicate(self, store, capsys):
        """auth init refuses an existing alias."""
        args = ["auth", "init", "--alias", "prod", "--host", "h", "--user", "u", "--password", "p"]
        with _use_client(store, _fake_client()):
            assert cli.main(args) == 1
        assert "already exists" in capsys.readouterr().err

    def test_init(self, store):
        """auth init stores the new alias."""
        args = ["auth", "init", "--alias", "dev", "--host", "h", "--user", "u", "--password", "p"]
        with _use_client(store, _fake_client()):
            assert cli.main(args) == 0
        assert sorted(store.aliases) == ["dev", "prod"]


class TestInstanceCommands:
    """Tests for instance subcommands."""

    def test_pull(self, store, config_path, tmp_path, capsys):
        """instance pull writes files and prints a summary."""
        executor = FakeExecutor(pages=[make_collection("recipient", named(2))])
        client = _fake_client(executor)
        out = tmp_path / "out"
        args = ["instance", "pull", "--alias", "prod", "--path", str(out), "--config", str(config_path)]
        with _use_client(store, client):
            assert cli.main(args) == 0

        assert (out / "recipient_r0.xml").exists()
        assert (out / "recipient_r1.xml").exists()
        assert "nms:recipient: 2 record(s) in 1 page(s) [OK]" in capsys.readouterr().out
        client.logoff.assert_called_once()

    def test_pull_page_size(self, store, config_path, tmp_path, monkeypatch):
        """--page-size wins over CAMPAIGN_PAGE_SIZE."""
        monkeypatch.setenv("CAMPAIGN_PAGE_SIZE", "7")
        executor = FakeExecutor()
        args = [
            "instance", "pull", "--alias", "prod", "--path", str(tmp_path / "out"),
            "--config", str(config_path), "--page-size", "3",
        ]
        with _use_client(store, _fake_client(executor)):
            cli.main(args)
        assert executor.queries[0]["lineCount"] == 3

    def test_pull_page_size_from_env(self, store, config_path, tmp_path, monkeypatch):
        """CAMPAIGN_PAGE_SIZE sets the default page size."""
        monkeypatch.setenv("CAMPAIGN_PAGE_SIZE", "7")
        executor = FakeExecutor()
        args = ["instance", "pull", "--alias", "prod", "--path", str(tmp_path / "out"), "--config", str(config_path)]
        with _use_client(store, _fake_client(executor)):
            cli.main(args)
        assert executor.queries[0]["lineCount"] == 7

    def test_pull_archive(self, store, config_path, tmp_path):
        """--archive registers a request archiver on the client."""
        client = _fake_client(FakeExecutor())
        args = [
            "--archive", str(tmp_path / "archives"),
            "instance", "pull", "--alias", "prod", "--path", str(tmp_path / "out"),
            "--config", str(config_path),
        ]
        with _use_client(store, client):
            cli.main(args)
        observer = client.register_observer.call_args[0][0]
        assert observer.root == tmp_path / "archives"

    def test_pull_onto_file(self, store, config_path, tmp_path, capsys):
        """A destination that cannot be created is reported as a campaign warning."""
        dest = tmp_path / "export"
        dest.write_text("x")
        client = _fake_client(FakeExecutor())
        args = ["instance", "pull", "--alias", "prod", "--path", str(dest), "--config", str(config_path)]
        with _use_client(store, client):
            assert cli.main(args) == 1
        assert "Campaign warning: Cannot create destination" in capsys.readouterr().err
        client.logoff.assert_called_once()

    def test_check_non_empty(self, store, config_path, tmp_path, capsys):
        """instance check fails on a non-empty destination."""
        (tmp_path / "out").mkdir()
        (tmp_path / "out" / "x").write_text("x")
        client = _fake_client(FakeExecutor(counts={"nms:recipient": 4}))
        args = ["instance", "check", "--alias", "prod", "--path", str(tmp_path / "out"), "--config", str(config_path)]
        with _use_client(store, client):
            assert cli.main(args) == 1
        assert "Campaign warning: Directory already exists and is not empty" in capsys.readouterr().err
        client.logoff.assert_called_once()

    def test_check(self, store, config_path, tmp_path, capsys):
        """instance check prints the total to download."""
        client = _fake_client(FakeExecutor(counts={"nms:recipient": 4}))
        args = ["instance", "check", "--alias", "prod", "--path", str(tmp_path / "out"), "--config", str(config_path)]
        with _use_client(store, client):
            assert cli.main(args) == 0
        assert "4 record(s) to download" in capsys.readouterr().out

    def test_missing_config(self, store, tmp_path, capsys):
        """A missing config file is reported before logging in."""
        client = _fake_client()
        args = ["instance", "check", "--alias", "prod", "--config", str(tmp_path / "none.json")]
        with _use_client(store, client):
            assert cli.main(args) == 1
        assert "Configuration file not found" in capsys.readouterr().err
        client.logon.assert_not_called()


class TestHandleCampaignError:
    """Tests for handle_campaign_error."""

    def test_campaign_error(self, capsys):
        """CampaignErrors print a warning and return 1."""
        assert cli.handle_campaign_error(CampaignError("boom")) == 1
        assert capsys.readouterr().err.strip() == "Campaign warning: boom"

    def test_other_errors_reraised(self):
        """Other exceptions propagate."""
        with pytest.raises(RuntimeError):
            cli.handle_campaign_error(RuntimeError("boom"))
