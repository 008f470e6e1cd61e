"""Command line interface for docker-proxy.

Usage:
    docker-proxy start     Forward the user socket to the daemon socket
    docker-proxy stop      Stop the proxy and remove the socket
    docker-proxy status    Exit 0 when running, 1 otherwise
    docker-proxy env       Print the DOCKER_HOST export line

`start` and `env` print `export DOCKER_HOST=...` on stdout, so
`eval "$(docker-proxy start)"` configures the current shell.
Also available as `python . proxy ...`.
"""

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv

from dent.config import EnvVar, get_environment
from dent.core import get_logger, parse_level, setup_logging

from .lib import (
    ProxyConfig,
    ProxyError,
    docker_host_url,
    proxy_status,
    start_proxy,
    stop_proxy,
)

logger = get_logger("dent.proxy")


def _config(args: argparse.Namespace) -> ProxyConfig:
    return ProxyConfig.from_environment(
        socket=args.socket,
        target=getattr(args, "target", None),
        use_sudo=False if getattr(args, "no_sudo", False) else None,
    )


def _print_export(config: ProxyConfig) -> None:
    print(f"export DOCKER_HOST={docker_host_url(config.socket)}")


def cmd_start(args: argparse.Namespace) -> int:
    """Handle `docker-proxy start`."""
    config = _config(args)
    try:
        status = start_proxy(config, wait=args.wait)
    except ProxyError as e:
        logger.error(str(e))
        return 1

    logger.info(status.summary)
    _print_export(config)
    return 0


def cmd_stop(args: argparse.Namespace) -> int:
    """Handle `docker-proxy stop`."""
    config = _config(args)
    try:
        stopped = stop_proxy(config)
    except ProxyError as e:
        logger.error(str(e))
        return 1

    if not stopped:
        logger.info("Proxy not running")
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    """Handle `docker-proxy status`."""
    status = proxy_status(_config(args))
    print(status.summary)
    if status.running and not status.socket_exists:
        print(f"Warning: socket {status.socket} is missing")
    return 0 if status.running else 1


def cmd_env(args: argparse.Namespace) -> int:
    """Handle `docker-proxy env`."""
    _print_export(_config(args))
    return 0


def build_parser(prog: str = "docker-proxy") -> argparse.ArgumentParser:
    """Create the docker-proxy argument parser."""
    parser = argparse.ArgumentParser(
        prog=prog,
        description="Forward a user-owned socket to the docker daemon socket with socat",
    )
    parser.add_argument(
        "--socket",
        "-s",
        type=Path,
        default=None,
        help="Socket to listen on (default: DENT_PROXY_SOCKET or $XDG_RUNTIME_DIR/docker.sock)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    start_parser = subparsers.add_parser("start", help="Start the proxy")
    start_parser.add_argument(
        "--target",
        "-t",
        type=Path,
        default=None,
        help="Daemon socket (default: DOCKER_SOCKET or /var/run/docker.sock)",
    )
    start_parser.add_argument(
        "--no-sudo", action="store_true", help="Run socat directly instead of via sudo -n"
    )
    start_parser.add_argument(
        "--wait",
        type=float,
        default=5.0,
        help="Seconds to wait for the socket to appear (default: 5)",
    )
    start_parser.set_defaults(func=cmd_start)

    stop_parser = subparsers.add_parser("stop", help="Stop the proxy")
    stop_parser.set_defaults(func=cmd_stop)

    status_parser = subparsers.add_parser("status", help="Show whether the proxy runs")
    status_parser.set_defaults(func=cmd_status)

    env_parser = subparsers.add_parser("env", help="Print the DOCKER_HOST export line")
    env_parser.set_defaults(func=cmd_env)

    return parser


def handle_proxy_command(argv: list[str], prog: str = "docker-proxy") -> int:
    """Handle docker-proxy commands."""
    parser = build_parser(prog)

    if not argv:
        parser.print_help()
        return 1

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    if args.verbose:
        setup_logging(parse_level("DEBUG"))

    return args.func(args)


def main() -> int:
    """Entry point for the `docker-proxy` console script."""
    load_dotenv()
    setup_logging(parse_level(get_environment(EnvVar.DENT_LOG_LEVEL)))
    return handle_proxy_command(sys.argv[1:])


if __name__ == "__main__":
    sys.exit(main())
