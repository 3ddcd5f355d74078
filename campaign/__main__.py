"""CLI entrypoint for campaign-pull.

Usage:
    campaign auth init --alias prod --host https://campaign.example.com --user exporter --password '${PROD_PASSWORD}'
    campaign auth login --alias prod
    campaign auth list
    campaign instance check --alias prod --path ./export
    campaign instance pull --alias prod --path ./export --page-size 100
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Callable, Dict, List, Optional

from campaign._version import __version__
from campaign.lib.archive import RequestArchiver
from campaign.lib.auth import CampaignAuth, InstanceStore
from campaign.lib.client import CampaignClient
from campaign.lib.config_loader import load_export_config
from campaign.lib.env import get_env_int, get_env_path, load_env_file
from campaign.lib.errors import CampaignError
from campaign.lib.extract import SchemaPullResult
from campaign.lib.instance import CampaignInstance
from campaign.lib.logging import setup_logging
from campaign.lib.pagination import DEFAULT_PAGE_SIZE, PaginationConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "./config/campaign.config.json"
DEFAULT_TIMEOUT = 30


def handle_campaign_error(error: BaseException) -> int:
    """Report a CampaignError as a warning line; re-raise anything else."""
    if isinstance(error, CampaignError):
        print(f"Campaign warning: {error}", file=sys.stderr)
        return 1
    raise error


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="campaign",
        description="Export campaign server entities to a local directory",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Register an instance and log in
    campaign auth init --alias prod --host https://campaign.example.com --user exporter --password secret

    # Count records and validate the destination
    campaign instance check --alias prod --path ./export

    # Export everything, 100 records per request
    campaign instance pull --alias prod --path ./export --page-size 100
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Output logs in JSON format (for log aggregation systems)",
    )
    parser.add_argument(
        "--log-file",
        help="Write logs to a file in addition to console",
    )
    parser.add_argument(
        "--archive",
        metavar="DIR",
        help="Archive every SOAP request/response under DIR (default: $CAMPAIGN_ARCHIVE_DIR)",
    )

    commands = parser.add_subparsers(dest="command", metavar="command")
    commands.required = True

    auth = commands.add_parser("auth", help="Manage instance credentials")
    auth_commands = auth.add_subparsers(dest="action", metavar="action")
    auth_commands.required = True

    init = auth_commands.add_parser("init", help="Add an instance and log in to it")
    init.add_argument("--alias", required=True, help="Local name of the instance")
    init.add_argument("--host", required=True, help="Server URL, e.g. https://campaign.example.com")
    init.add_argument("--user", required=True, help="Operator login")
    init.add_argument(
        "--password",
        required=True,
        help="Operator password; ${VAR} references are expanded at login",
    )

    login = auth_commands.add_parser("login", help="Log in to a configured instance")
    login.add_argument("--alias", required=True, help="Local name of the instance")

    auth_commands.add_parser("list", help="List configured instances")

    instance = commands.add_parser("instance", help="Export data from an instance")
    instance_commands = instance.add_subparsers(dest="action", metavar="action")
    instance_commands.required = True

    check = instance_commands.add_parser(
        "check", help="Count records per schema and validate the destination"
    )
    pull = instance_commands.add_parser("pull", help="Export every configured schema")
    for sub in (check, pull):
        sub.add_argument("--alias", required=True, help="Local name of the instance")
        sub.add_argument(
            "--path",
            default=os.getcwd(),
            help="Destination directory (default: current directory)",
        )
        sub.add_argument(
            "--config",
            default=DEFAULT_CONFIG_PATH,
            help=f"Export configuration file (default: {DEFAULT_CONFIG_PATH})",
        )

    pull.add_argument(
        "--page-size",
        type=int,
        help=f"Records per request (default: $CAMPAIGN_PAGE_SIZE or {DEFAULT_PAGE_SIZE})",
    )
    pull.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Schemas exported in parallel (default: 1)",
    )

    return parser


def _auth(args: argparse.Namespace) -> CampaignAuth:
    return CampaignAuth(
        InstanceStore(),
        timeout=float(get_env_int("CAMPAIGN_TIMEOUT", DEFAULT_TIMEOUT)),
    )


def _archiver(args: argparse.Namespace) -> Optional[RequestArchiver]:
    root = args.archive or get_env_path("CAMPAIGN_ARCHIVE_DIR")
    if not root:
        return None
    logger.info("Archiving requests to %s", root)
    return RequestArchiver(root)


def _open_client(args: argparse.Namespace) -> CampaignClient:
    client = _auth(args).login(args.alias)
    archiver = _archiver(args)
    if archiver is not None:
        client.register_observer(archiver)
    return client


def _release(client: CampaignClient) -> None:
    try:
        client.logoff()
    finally:
        client.close()


def auth_init(args: argparse.Namespace) -> int:
    client = _auth(args).init(args.alias, args.host, args.user, args.password)
    _release(client)
    return 0


def auth_login(args: argparse.Namespace) -> int:
    client = _auth(args).login(args.alias)
    if client.server_info is not None:
        print(f"Logged in to {client.server_info.describe()}")
    _release(client)
    return 0


def auth_list(args: argparse.Namespace) -> int:
    instances = _auth(args).list()
    if not instances:
        print("No instances configured. Add one with: campaign auth init")
        return 0
    for credentials in instances:
        print(f'"{credentials.alias}": {credentials.describe()}')
    return 0


def instance_check(args: argparse.Namespace) -> int:
    config = load_export_config(args.config)
    client = _open_client(args)
    try:
        report = CampaignInstance(client, config).check(args.path)
    finally:
        _release(client)

    print(f"{report.total} record(s) to download to {report.destination}")
    if report.errors:
        print(f"{len(report.errors)} schema(s) could not be counted")
    return 0


def instance_pull(args: argparse.Namespace) -> int:
    config = load_export_config(args.config)
    page_size = args.page_size or get_env_int("CAMPAIGN_PAGE_SIZE", DEFAULT_PAGE_SIZE)
    pagination = PaginationConfig(page_size=page_size)

    client = _open_client(args)
    try:
        results = CampaignInstance(
            client, config, pagination=pagination, workers=args.workers
        ).pull(args.path)
    finally:
        _release(client)

    print_pull_summary(results)
    return 0


def print_pull_summary(results: List[SchemaPullResult]) -> None:
    print()
    print("=" * 60)
    print("PULL SUMMARY")
    print("=" * 60)
    for result in results:
        status = "OK" if result.succeeded else f"FAILED - {result.error}"
        print(
            f"  {result.schema}: {result.records_written} record(s) "
            f"in {result.pages_fetched} page(s) [{status}]"
        )
    print("-" * 60)
    print(f"  Total: {sum(r.records_written for r in results)} record(s)")
    print()


COMMANDS: Dict[str, Dict[str, Callable[[argparse.Namespace], int]]] = {
    "auth": {"init": auth_init, "login": auth_login, "list": auth_list},
    "instance": {"check": instance_check, "pull": instance_pull},
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    load_env_file()
    setup_logging(verbose=args.verbose, json_format=args.json_logs, log_file=args.log_file)

    command = COMMANDS[args.command][args.action]
    try:
        return command(args)
    except CampaignError as e:
        return handle_campaign_error(e)


if __name__ == "__main__":
    sys.exit(main())
