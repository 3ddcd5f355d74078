"""Tests for environment helpers."""

import logging
import os
from pathlib import Path

import pytest

from campaign.lib.env import (
    expand_env_vars,
    expand_options,
    get_env_int,
    get_env_path,
    load_env_file,
)


def test_expand_env_vars_simple(monkeypatch):
    monkeypatch.setenv("TOKEN", "abc123")
    assert expand_env_vars("${TOKEN}") == "abc123"
    assert expand_env_vars("x-$TOKEN") == "x-abc123"


def test_expand_env_vars_no_match(monkeypatch):
    monkeypatch.delenv("MISSING", raising=False)
    assert expand_env_vars("${MISSING}") == "${MISSING}"


def test_expand_env_vars_strict_missing(monkeypatch):
    monkeypatch.delenv("MISSING", raising=False)
    with pytest.raises(KeyError):
        expand_env_vars("${MISSING}", strict=True)


def test_expand_options_recurses_into_lists_of_dicts(monkeypatch):
    monkeypatch.setenv("FOLDER", "12")
    options = {
        "where": {"condition": [{"expr": "@folder = ${FOLDER}"}, "${FOLDER}", 3]},
        "lineCount": 10,
    }
    expanded = expand_options(options)
    assert expanded["where"]["condition"][0]["expr"] == "@folder = 12"
    assert expanded["where"]["condition"][1] == "12"
    assert expanded["where"]["condition"][2] == 3
    assert expanded["lineCount"] == 10
    assert options["where"]["condition"][0]["expr"] == "@folder = ${FOLDER}"


class TestGetEnvInt:
    """Tests for get_env_int."""

    def test_unset(self, monkeypatch):
        monkeypatch.delenv("CAMPAIGN_PAGE_SIZE", raising=False)
        assert get_env_int("CAMPAIGN_PAGE_SIZE", 10) == 10

    def test_valid(self, monkeypatch):
        monkeypatch.setenv("CAMPAIGN_PAGE_SIZE", "250")
        assert get_env_int("CAMPAIGN_PAGE_SIZE", 10) == 250

    @pytest.mark.parametrize("raw", ["abc", "0", "-3"])
    def test_invalid_falls_back(self, monkeypatch, caplog, raw):
        """Invalid or non-positive values are ignored with a warning."""
        monkeypatch.setenv("CAMPAIGN_PAGE_SIZE", raw)
        with caplog.at_level(logging.WARNING):
            assert get_env_int("CAMPAIGN_PAGE_SIZE", 10) == 10
        assert "Ignoring CAMPAIGN_PAGE_SIZE" in caplog.text


class TestGetEnvPath:
    """Tests for get_env_path."""

    def test_set(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CAMPAIGN_ARCHIVE_DIR", str(tmp_path))
        assert get_env_path("CAMPAIGN_ARCHIVE_DIR") == tmp_path

    def test_unset_default(self, monkeypatch):
        monkeypatch.delenv("CAMPAIGN_ARCHIVE_DIR", raising=False)
        assert get_env_path("CAMPAIGN_ARCHIVE_DIR") is None
        assert get_env_path("CAMPAIGN_ARCHIVE_DIR", "~/x") == Path("~/x").expanduser()


def test_load_env_file(monkeypatch, tmp_path):
    """Variables from a .env file are loaded without overriding."""
    monkeypatch.delenv("CAMPAIGN_FROM_DOTENV", raising=False)
    monkeypatch.setenv("CAMPAIGN_ALREADY_SET", "kept")
    env_file = tmp_path / ".env"
    env_file.write_text("CAMPAIGN_FROM_DOTENV=loaded\nCAMPAIGN_ALREADY_SET=replaced\n")

    assert load_env_file(env_file) is True

    assert os.environ["CAMPAIGN_FROM_DOTENV"] == "loaded"
    assert os.environ["CAMPAIGN_ALREADY_SET"] == "kept"
    monkeypatch.delenv("CAMPAIGN_FROM_DOTENV")


def test_expand_env_vars_braces_only(monkeypatch):
    """braces_only expands ${VAR} and leaves $VAR untouched."""
    monkeypatch.setenv("amount", "999")
    assert expand_env_vars("${amount}/$amount", braces_only=True) == "999/$amount"
    assert expand_env_vars("${amount}/$amount") == "999/999"


def test_expand_options_braces_only(monkeypatch):
    monkeypatch.setenv("amount", "999")
    expanded = expand_options({"where": [{"expr": "@code = 'X$amount'"}]}, braces_only=True)
    assert expanded["where"][0]["expr"] == "@code = 'X$amount'"
