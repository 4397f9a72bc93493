"""Command-line entrypoint."""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Mapping
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import TextIO

from restage.config import CliOverrides, load_effective_config
from restage.filtering import FilterError, compile_glob
from restage.git import GitRepository, RepositoryError
from restage.logging import JsonlAuditLogger
from restage.workflow import EXIT_OK, EXIT_REPOSITORY_ERROR, EXIT_USAGE_ERROR, Workflow


def package_version() -> str:
    """Return the installed distribution version."""
    try:
        return version("restage")
    except PackageNotFoundError:
        return "0+unknown"


def build_arg_parser() -> argparse.ArgumentParser:
    """Build argument parser for one run."""
    parser = argparse.ArgumentParser(
        prog="restage",
        description=(
            "Run a command on the files staged in git, then re-stage the files it changed."
        ),
    )
    parser.add_argument("-f", "--filter", default=None, help="glob selecting staged files")
    parser.add_argument(
        "-s", "--shell", default=None, help="shell used to run the command (default: $SHELL)"
    )
    parser.add_argument("-q", "--quiet", action="store_true", help="only report errors")
    parser.add_argument(
        "--no-hide-unstaged",
        dest="hide_unstaged",
        action="store_const",
        const=False,
        default=None,
        help="leave unstaged changes of partially staged files in place while the command runs",
    )
    parser.add_argument(
        "--allow-empty",
        action="store_const",
        const=True,
        default=None,
        help="do not fail when re-staging leaves nothing staged",
    )
    parser.add_argument(
        "--skip-when-empty",
        action="store_const",
        const=True,
        default=None,
        help="do not run the command when no staged file matches",
    )
    parser.add_argument(
        "--no-audit",
        dest="audit_enabled",
        action="store_const",
        const=False,
        default=None,
        help="do not append this run to the audit log",
    )
    parser.add_argument("--audit-log", default=None, help="audit log path")
    parser.add_argument(
        "--show-log",
        type=int,
        nargs="?",
        const=20,
        default=None,
        metavar="N",
        help="print the N most recent audit log entries and exit (default: 20)",
    )
    parser.add_argument(
        "-V", "--version", action="version", version=f"%(prog)s {package_version()}"
    )
    parser.add_argument(
        "command", nargs=argparse.REMAINDER, help="command to run on staged files"
    )
    return parser


def main(
    argv: list[str] | None = None,
    environ: Mapping[str, str] | None = None,
    err_stream: TextIO | None = None,
) -> int:
    """Entrypoint for the restage process."""
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    err = err_stream or sys.stderr
    command = list(args.command)
    if command and command[0] == "--":
        command = command[1:]
    if args.show_log is not None:
        if command:
            parser.error("--show-log does not take a command")
        return _show_log(args, err, environ)
    if not command:
        parser.error("a command to run is required")

    # A malformed pattern is reported before the repository is touched.
    if args.filter is not None:
        try:
            compile_glob(args.filter)
        except FilterError as error:
            err.write(f"restage: error: {error}\n")
            return EXIT_USAGE_ERROR

    try:
        repository = GitRepository.open()
    except RepositoryError as error:
        _write_repository_error(err, error)
        return EXIT_REPOSITORY_ERROR

    try:
        config = load_effective_config(
            repository.root, repository.git_dir, overrides=_overrides(args), environ=environ
        )
    except ValueError as error:
        err.write(f"restage: error: {error}\n")
        return EXIT_USAGE_ERROR
    if config.run.shell is None:
        parser.error("the following arguments are required: -s/--shell ($SHELL is not set)")

    workflow = Workflow(
        repository=repository,
        config=config,
        command_tokens=command,
        err_stream=err,
        quiet=args.quiet,
    )
    return workflow.run().exit_code


def _show_log(
    args: argparse.Namespace, err: TextIO, environ: Mapping[str, str] | None
) -> int:
    """Print recent audit log entries as JSON lines on stdout."""
    try:
        repository = GitRepository.open()
    except RepositoryError as error:
        _write_repository_error(err, error)
        return EXIT_REPOSITORY_ERROR
    try:
        config = load_effective_config(
            repository.root, repository.git_dir, overrides=_overrides(args), environ=environ
        )
    except ValueError as error:
        err.write(f"restage: error: {error}\n")
        return EXIT_USAGE_ERROR
    for entry in JsonlAuditLogger(config.audit.path).read(limit=args.show_log):
        sys.stdout.write(json.dumps(entry, sort_keys=True))
        sys.stdout.write("\n")
    return EXIT_OK


def _overrides(args: argparse.Namespace) -> CliOverrides:
    return CliOverrides(
        filter=args.filter,
        shell=args.shell,
        skip_when_empty=args.skip_when_empty,
        hide_unstaged=args.hide_unstaged,
        allow_empty=args.allow_empty,
        audit_enabled=args.audit_enabled,
        audit_path=Path(args.audit_log) if args.audit_log is not None else None,
    )


def _write_repository_error(err: TextIO, error: RepositoryError) -> None:
    err.write(f"restage: error: {error.reason}\n")
    if error.hint:
        err.write(f"restage: hint: {error.hint}\n")


if __name__ == "__main__":
    raise SystemExit(main())
