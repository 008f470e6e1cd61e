"""CLI entry point for dent.

This module acts as the central entry point for the project's CLI tools.
It delegates commands to the appropriate submodules or runs specific tasks.
"""

import argparse
import subprocess
import sys

from dotenv import load_dotenv

from dent.config import EnvVar, get_environment, get_environment_info, list_environment_variables
from dent.core import get_logger, parse_level, setup_logging
from dent.enter.cli import handle_enter_command
from dent.environment import check_environment
from dent.proxy.cli import handle_proxy_command

# Load environment variables from .env file
load_dotenv()

logger = get_logger("cli")


# =============================================================================
# Env Command
# =============================================================================


def cmd_env_check(_args: argparse.Namespace) -> int:
    """Print the environment report; exit 0 when docker is usable."""
    report = check_environment()
    report.print_report()
    return 0 if report.docker_usable else 1


def cmd_env_vars(args: argparse.Namespace) -> int:
    """List the environment variables dent reads."""
    for var in list_environment_variables(args.category):
        info = get_environment_info(var)
        value = get_environment(var)
        print(f"{info.name:<20} {info.category:<8} {value!s:<30} {info.description}")
    return 0


def handle_env_command(argv: list[str]) -> int:
    """Handle env commands.

    Usage:
        python . env check            # Diagnose docker access
        python . env vars [category]  # Show configuration variables
    """
    parser = argparse.ArgumentParser(
        prog="python . env",
        description="Inspect the host environment",
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    check_parser = subparsers.add_parser("check", help="Diagnose docker and proxy access")
    check_parser.set_defaults(func=cmd_env_check)

    vars_parser = subparsers.add_parser("vars", help="Show configuration variables")
    vars_parser.add_argument(
        "category",
        nargs="?",
        default=None,
        choices=["docker", "dent", "proxy", "logging", "test"],
        help="Only show one category",
    )
    vars_parser.set_defaults(func=cmd_env_vars)

    if not argv:
        parser.print_help()
        return 1

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    return args.func(args)


# =============================================================================
# Test Command
# =============================================================================


def cmd_test(extra_args: list[str]) -> int:
    """Run pytest with provided arguments and test tier options.

    Usage:
        python . test                # Run all tests
        python . test --unit         # Run only unit tests (no docker)
        python . test --integration  # Run integration tests (no docker)
        python . test --docker       # Run live tests against the daemon
        python . test --all          # Run all tests explicitly
        python . test -v             # Run with verbose output
        python . test -k "proxy"     # Run tests matching pattern

    Test Tiers:
        unit        - Fast tests with docker and socat mocked
        integration - Tests that spawn the CLI but need no daemon
        docker      - Live tests against the docker daemon
        socat       - Live proxy tests (socat plus root or passwordless sudo)
    """
    tier_markers = {
        "--unit": ["-m", "unit"],
        "--integration": ["-m", "integration and not docker"],
        "--docker": ["-m", "docker or socat"],
        "--all": [],
    }

    pytest_args: list[str] = []
    remaining_args: list[str] = []

    for arg in extra_args:
        if arg in tier_markers:
            pytest_args.extend(tier_markers[arg])
        else:
            remaining_args.append(arg)

    cmd = [sys.executable, "-m", "pytest", *pytest_args, *remaining_args]
    logger.info(f"Running: {' '.join(cmd)}")

    try:
        return subprocess.call(cmd)
    except KeyboardInterrupt:
        return 130


# =============================================================================
# Main
# =============================================================================


def show_help() -> None:
    """Display CLI help message."""
    print("Usage: python . {command} [args]")
    print("\n=== Containers ===")
    print("  enter      Enter a container, creating or starting it (alias: dent)")
    print("  proxy      Forward a user socket to the docker daemon socket")
    print("\n=== Environment ===")
    print("  env        Diagnose docker access, list configuration")
    print("\n=== Development ===")
    print("  test       Run pytest with tier options")
    print("\nExamples:")
    print("  python . enter alpine                  # Shell in a dent-alpine-latest container")
    print("  python . enter -u -m debian:stable     # As yourself, cwd mounted at /work")
    print("  python . enter alpine -- uname -a      # Run one command")
    print("  python . enter ls                      # List dent containers")
    print('  eval "$(python . proxy start)"         # Start the socket proxy')
    print("  python . env check                     # Explain docker access problems")
    print("  python . test --unit                   # Fast unit tests")


def main() -> int:
    """Main entry point for the CLI."""
    if len(sys.argv) < 2:
        show_help()
        return 1

    command = sys.argv[1]
    rest_args = sys.argv[2:]

    if command in ("-h", "--help"):
        show_help()
        return 0

    commands = {
        "enter": lambda: handle_enter_command(rest_args, prog="python . enter"),
        "dent": lambda: handle_enter_command(rest_args, prog="python . dent"),
        "proxy": lambda: handle_proxy_command(rest_args, prog="python . proxy"),
        "env": lambda: handle_env_command(rest_args),
    }

    if command == "test":
        return cmd_test(rest_args)

    if command in commands:
        setup_logging(parse_level(get_environment(EnvVar.DENT_LOG_LEVEL)))
        return commands[command]()

    logger.error(f"Unknown command: {command}")
    show_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
