"""Pytest configuration and fixtures."""

import logging

import pytest

from campaign.lib.config_loader import parse_export_config


@pytest.fixture
def export_config():
    """Recipient entry plus a default used by every other schema."""
    return parse_export_config(
        {
            "default": {"filename": "%schema%_%name%.xml"},
            "nms:recipient": {"filename": "recipient_%name%.xml"},
        }
    )


@pytest.fixture(autouse=True)
def isolated_campaign_env(monkeypatch, tmp_path):
    """Keep tests away from the user's instance store and CAMPAIGN_* settings."""
    for name in ("CAMPAIGN_PAGE_SIZE", "CAMPAIGN_ARCHIVE_DIR", "CAMPAIGN_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("CAMPAIGN_HOME", str(tmp_path / "campaign-home"))


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Drop handlers installed by setup_logging() during a test."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in root.handlers[:]:
        if type(handler) in (logging.StreamHandler, logging.FileHandler):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
