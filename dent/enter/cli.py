"""Command line interface for dent ("Docker ENTer").

Usage:
    dent [options] TARGET [COMMAND...]   Enter (create/start) a container
    dent build [BASE...]                 Build user images for base images
    dent ls                              List containers created by dent
    dent rm NAME...                      Remove containers

Also available as `python . enter ...`.
"""

import argparse
import sys

from dotenv import load_dotenv

from dent.config import EnvVar, get_environment
from dent.core import get_logger, parse_level, setup_logging
from dent.docker import DockerError

from .lib import EnterOptions, build_images, enter, list_managed, remove

logger = get_logger("dent.enter")

SUBCOMMANDS = ("enter", "build", "ls", "rm")


def cmd_enter(args: argparse.Namespace) -> int:
    """Handle `dent TARGET [COMMAND...]`."""
    command = list(args.command)
    if command and command[0] == "--":
        command = command[1:]

    options = EnterOptions(
        target=args.target,
        command=command,
        name=args.name,
        as_user=args.user,
        mount=args.mount,
        workdir=args.workdir,
        env=args.env,
        rm=args.rm,
        run_args=args.run_arg,
        tty=args.tty,
        dry_run=args.dry_run,
    )

    try:
        return enter(options)
    except ValueError as e:
        logger.error(f"Invalid target: {e}")
        return 1
    except DockerError as e:
        logger.error(str(e))
        return 1


def cmd_build(args: argparse.Namespace) -> int:
    """Handle `dent build`."""
    try:
        results = build_images(args.bases or None, dry_run=args.dry_run, pull=args.pull)
    except DockerError as e:
        logger.error(str(e))
        return 1

    failed = [base for base, ok in results.items() if not ok]
    logger.info(f"Built {len(results) - len(failed)}/{len(results)} user images")
    if failed:
        logger.error(f"Failed: {', '.join(failed)}")
        return 1
    return 0


def cmd_ls(_args: argparse.Namespace) -> int:
    """Handle `dent ls`."""
    try:
        containers = list_managed()
    except DockerError as e:
        logger.error(str(e))
        return 1

    if not containers:
        print("No dent containers")
        return 0

    width = max(len(c.name) for c in containers)
    image_width = max(len(c.image) for c in containers)
    print(f"{'NAME':<{width}}  {'IMAGE':<{image_width}}  STATUS")
    for c in containers:
        print(f"{c.name:<{width}}  {c.image:<{image_width}}  {c.status}")
    return 0


def cmd_rm(args: argparse.Namespace) -> int:
    """Handle `dent rm`."""
    return remove(args.names, dry_run=args.dry_run)


def _add_dry_run(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print docker commands that change state instead of running them",
    )


def build_parser(prog: str = "dent") -> argparse.ArgumentParser:
    """Create the dent argument parser."""
    parser = argparse.ArgumentParser(
        prog=prog,
        description="Enter a docker container, creating or starting it as needed",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Show every docker command"
    )
    subparsers = parser.add_subparsers(dest="subcommand", help="Command to run")

    # enter (default)
    enter_parser = subparsers.add_parser(
        "enter",
        help="Enter a container (default)",
        description="Options must come before TARGET; the rest is the command.",
    )
    enter_parser.add_argument(
        "--name", "-n", type=str, default=None, help="Container name (default: derived from image)"
    )
    enter_parser.add_argument(
        "--user",
        "-u",
        action="store_true",
        help="Enter as the host user through a derived user image",
    )
    enter_parser.add_argument(
        "--mount",
        "-m",
        action="store_true",
        help="Bind-mount the current directory at DENT_WORKDIR (on creation)",
    )
    enter_parser.add_argument(
        "--workdir", "-w", type=str, default=None, help="Working directory inside the container"
    )
    enter_parser.add_argument(
        "--env",
        "-e",
        action="append",
        default=[],
        metavar="KEY[=VALUE]",
        help="Environment variable (repeatable)",
    )
    enter_parser.add_argument(
        "--rm", action="store_true", help="Remove the container after exiting"
    )
    enter_parser.add_argument(
        "--run-arg",
        action="append",
        default=[],
        metavar="ARG",
        help="Extra `docker run` argument used on creation (repeatable)",
    )
    tty_group = enter_parser.add_mutually_exclusive_group()
    tty_group.add_argument(
        "--tty", "-t", dest="tty", action="store_true", default=None, help="Force a TTY"
    )
    tty_group.add_argument(
        "--no-tty",
        "-T",
        dest="tty",
        action="store_false",
        default=None,
        help="Never allocate a TTY",
    )
    _add_dry_run(enter_parser)
    enter_parser.add_argument("target", help="Container name or image reference")
    enter_parser.add_argument(
        "command", nargs=argparse.REMAINDER, help="Command to run (default: shell)"
    )
    enter_parser.set_defaults(func=cmd_enter)

    # build
    build_cmd = subparsers.add_parser(
        "build", help="Build user images for base images (default: DENT_BASE_IMAGES)"
    )
    build_cmd.add_argument("bases", nargs="*", help="Base image references")
    build_cmd.add_argument(
        "--pull", action="store_true", help="Always pull newer base images"
    )
    _add_dry_run(build_cmd)
    build_cmd.set_defaults(func=cmd_build)

    # ls
    ls_parser = subparsers.add_parser("ls", help="List containers created by dent")
    ls_parser.set_defaults(func=cmd_ls)

    # rm
    rm_parser = subparsers.add_parser("rm", help="Remove containers")
    rm_parser.add_argument("names", nargs="+", help="Container names")
    _add_dry_run(rm_parser)
    rm_parser.set_defaults(func=cmd_rm)

    return parser


def _with_default_subcommand(argv: list[str]) -> list[str]:
    """Insert "enter" unless argv already names a subcommand."""
    for i, arg in enumerate(argv):
        if arg in ("-h", "--help"):
            return argv
        if arg in ("-v", "--verbose"):
            continue
        if arg in SUBCOMMANDS:
            return argv
        return [*argv[:i], "enter", *argv[i:]]
    return argv


def handle_enter_command(argv: list[str], prog: str = "dent") -> int:
    """Handle dent commands."""
    parser = build_parser(prog)

    if not argv:
        parser.print_help()
        return 1

    args = parser.parse_args(_with_default_subcommand(argv))

    if not args.subcommand:
        parser.print_help()
        return 1

    if args.verbose:
        setup_logging(parse_level("DEBUG"))

    return args.func(args)


def main() -> int:
    """Entry point for the `dent` console script."""
    load_dotenv()
    setup_logging(parse_level(get_environment(EnvVar.DENT_LOG_LEVEL)))
    return handle_enter_command(sys.argv[1:])


if __name__ == "__main__":
    sys.exit(main())
