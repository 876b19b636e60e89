"""
CLI argument parser.
"""

import argparse

from vanity import __version__
from vanity.config import DEFAULT_CONFIG_FILE

from .commands import (
    handle_check_command,
    handle_launch_command,
    handle_resolve_command,
)


def add_launch_arguments(launch_parser: argparse.ArgumentParser):
    launch_parser.add_argument(
        "--host",
        help="Bind socket to this host. Default: 127.0.0.1",
        default="127.0.0.1",
    )
    launch_parser.add_argument(
        "--port",
        "-p",
        type=int,
        help="Bind socket to this port. Default: 8000",
        default=8000,
    )
    launch_parser.add_argument(
        "--workers",
        "-w",
        type=int,
        help="Number of worker processes. Defaults to 1.",
        default=1,
    )
    launch_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Load and configure the app but don't start the server.",
    )
    launch_parser.add_argument(
        "--dev",
        action="store_true",
        help="Enable development mode for the application.",
    )
    launch_parser.set_defaults(func=handle_launch_command)


def create_parser():
    """Create and configure the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="vanity", description="Serve go-get vanity import paths."
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging.",
    )
    parser.add_argument(
        "--app",
        "-a",
        help='Custom application CLASS in the format "module.path:ClassName".',
        default=None,
    )
    parser.add_argument(
        "--config",
        "-c",
        help=f"Path to config file. Default: ./{DEFAULT_CONFIG_FILE}",
        default=None,
    )

    subparsers = parser.add_subparsers(
        title="commands", dest="command", required=False, help="Command to execute"
    )

    launch_parser = subparsers.add_parser("launch", help="Launch the vanity server.")
    add_launch_arguments(launch_parser)

    check_parser = subparsers.add_parser(
        "check", help="Validate the configuration and list the import paths."
    )
    check_parser.set_defaults(func=handle_check_command)

    resolve_parser = subparsers.add_parser(
        "resolve", help="Show how a request would be resolved."
    )
    resolve_parser.add_argument("host", help="Request host, e.g. example.com")
    resolve_parser.add_argument("path", help="Request path, e.g. /github/owner/repo/pkg")
    resolve_parser.set_defaults(func=handle_resolve_command)

    # Without a command the defaults of 'launch' apply
    add_launch_arguments(parser)

    return parser
