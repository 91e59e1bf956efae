"""
Main entry point for the Oriento session client.

Provides a command-line interface for signing in, registering an account and
issuing authenticated requests against the API server.
"""

import sys
import json
import asyncio
import argparse
import logging
from typing import Optional, List

from oriento_shared.exceptions import (
    AuthenticationError, ConfigurationError, CredentialRejectedError, NetworkError, OrientoError,
    handle_exception
)
from oriento_shared.interfaces import INavigator
from oriento_shared.logging_config import LogFormat, LogLevel, log_structured_error, setup_logging

from oriento_client.api_client import OrientoAPIClient
from oriento_client.config import ClientConfiguration

logger = logging.getLogger(__name__)


EXIT_SUCCESS = 0
EXIT_FAILED = 1
EXIT_AUTH_FAILED = 2
EXIT_NETWORK_ERROR = 3
EXIT_INTERRUPTED = 130


class ConsoleNavigator(INavigator):
    """Navigator for the command line: records and reports redirects."""

    def __init__(self):
        self.current_route: Optional[str] = None

    def navigate(self, route: str) -> None:
        self.current_route = route
        print(f"Redirect: {route}", file=sys.stderr)


def parse_arguments(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="oriento-session",
        description="Oriento session client",
        epilog="""
Examples:
  %(prog)s login --email me@example.com --password secret
  %(prog)s login --email me@example.com --password secret --get /api/profile
  %(prog)s register --name "ACME" --tax-id 12345678000199 --email me@example.com --password secret
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    config_group = parser.add_argument_group('Configuration')
    config_group.add_argument("--config", type=str, metavar="FILE",
                              help="Path to configuration file")
    config_group.add_argument("--server-url", type=str, metavar="URL",
                              help="Override server URL")

    debug_group = parser.add_argument_group('Debug')
    debug_group.add_argument("--debug", action="store_true",
                             help="Enable debug logging")
    debug_group.add_argument("--log-file", type=str, metavar="FILE",
                             help="Also log to this file")
    debug_group.add_argument("--json-logs", action="store_true",
                             help="Emit structured JSON log lines")

    subparsers = parser.add_subparsers(dest="command", required=True)

    login_parser = subparsers.add_parser("login", help="Sign in, optionally fetching a protected path")
    login_parser.add_argument("--email", required=True, help="Account e-mail or tax id")
    login_parser.add_argument("--password", required=True, help="Account password")
    login_parser.add_argument("--get", metavar="PATH", dest="get_path",
                              help="Authenticated GET to issue after signing in")

    register_parser = subparsers.add_parser("register", help="Register a new account")
    register_parser.add_argument("--name", required=True, help="Display name")
    register_parser.add_argument("--tax-id", required=True, help="Company tax id (CNPJ)")
    register_parser.add_argument("--email", required=True, help="Account e-mail")
    register_parser.add_argument("--password", required=True, help="Account password")

    return parser.parse_args(argv)


def configure_logging(args, config: ClientConfiguration) -> None:
    """Configure logging from configuration and command line arguments."""
    level_name = 'DEBUG' if args.debug else config.get_log_level()
    try:
        log_level = LogLevel(level_name)
    except ValueError:
        log_level = LogLevel.INFO

    if args.json_logs:
        log_format = LogFormat.JSON
    elif args.debug:
        log_format = LogFormat.DETAILED
    else:
        try:
            log_format = LogFormat(config.get_log_format())
        except ValueError:
            log_format = LogFormat.STANDARD

    setup_logging(
        log_level=log_level,
        log_format=log_format,
        log_file=args.log_file or config.get_log_file() or None,
        audit_file=config.get_audit_file() or None
    )


async def run_command(args, client: OrientoAPIClient) -> int:
    """Run the selected command against an open client."""
    if args.command == "register":
        result = await client.register(args.name, args.tax_id, args.email, args.password)
        print(json.dumps(result, indent=2, default=str))
        if client.navigator:
            client.navigator.navigate(client.login_route)
        return EXIT_SUCCESS

    grant = await client.login(args.email, args.password)
    print(f"Signed in as {args.email}"
          + (f" (expires {grant.expires_at.isoformat()})" if grant.expires_at else ""))
    if client.navigator:
        client.navigator.navigate(client.home_route)

    if args.get_path:
        data = await client.get(args.get_path)
        print(json.dumps(data, indent=2, default=str))
    return EXIT_SUCCESS


async def run(args, config: ClientConfiguration) -> int:
    async with OrientoAPIClient.from_config(config, navigator=ConsoleNavigator()) as client:
        try:
            return await run_command(args, client)
        except CredentialRejectedError as e:
            print(f"Error: {e.user_message}", file=sys.stderr)
            return EXIT_AUTH_FAILED
        except AuthenticationError as e:
            print(f"Error: {e.user_message}", file=sys.stderr)
            return EXIT_AUTH_FAILED
        except NetworkError as e:
            print(f"Error: {e.user_message}", file=sys.stderr)
            return EXIT_NETWORK_ERROR
        except OrientoError as e:
            log_structured_error(logger, e)
            print(f"Error: {e.user_message}", file=sys.stderr)
            return EXIT_FAILED
        except Exception as e:
            error = handle_exception(e)
            log_structured_error(logger, error)
            print(f"Error: {error.user_message}", file=sys.stderr)
            return EXIT_FAILED


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the client."""
    args = parse_arguments(argv)

    try:
        config = ClientConfiguration(args.config)
        if args.server_url:
            config.set_override('server.url', args.server_url)
        configure_logging(args, config)
        return asyncio.run(run(args, config))
    except ConfigurationError as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        return EXIT_FAILED
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
