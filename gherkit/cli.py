"""Command-line entry point: build, run and version sub-commands."""

from __future__ import annotations

import argparse
import os
import subprocess
import sys
from typing import Sequence, TextIO

from .builder import BuildError, build
from .colors import yellow
from .options import Options, bind_run_cmd_flags, parse_flags

VERSION = "v0.0.0-dev"

BUILD_OUTPUT_DEFAULT = "godog.test" + (".exe" if sys.platform == "win32" else "")

_DEPRECATION_NOTICE = (
    "Use of gherkit without a sub-command is deprecated. "
    "Please use gherkit build, gherkit run or gherkit version."
)

_ROOT_DESCRIPTION = """Creates and runs test runner for the given feature files.
Command should be run from the directory of tested package
and contain buildable go source."""

_ROOT_EPILOG = """commands:
  build    Compiles a test runner
  run      Compiles and runs a test runner
  version  Show current version"""

_BUILD_DESCRIPTION = """Compiles a test runner. Command should be run from the directory of tested
package and contain buildable go source.

The test runner can be executed with the same flags as when using gherkit run."""

_RUN_DESCRIPTION = """Compiles and runs test runner for the given feature files.
Command should be run from the directory of tested package and contain
buildable go source."""

_RUN_EPILOG = """examples:
  gherkit run
  gherkit run <feature>
  gherkit run <feature> <feature>

  Optional feature(s) to run:
    dir (features/)
    feature (*.feature)
    scenario at specific line (*.feature:10)
  If no feature arguments are supplied, gherkit will use "features/" by default."""


def create_parser() -> argparse.ArgumentParser:
    """Parser of the root command; all of its flags are hidden from help."""
    parser = argparse.ArgumentParser(
        prog="gherkit",
        description=_ROOT_DESCRIPTION,
        epilog=_ROOT_EPILOG,
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument(
        "-o", "--output", default="", help="compiles the test runner to the named file"
    )
    parser.add_argument("--version", action="store_true", help="show current version")
    bind_run_cmd_flags("", parser, Options())
    for action in parser._actions:
        if action.option_strings and not isinstance(action, argparse._HelpAction):
            action.help = argparse.SUPPRESS
    return parser


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gherkit build",
        description=_BUILD_DESCRIPTION,
        epilog=f"examples:\n  gherkit build\n  gherkit build -o {BUILD_OUTPUT_DEFAULT}",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument(
        "-o",
        "--output",
        default=BUILD_OUTPUT_DEFAULT,
        help="compiles the test runner to the named file",
    )
    return parser


def _run_parser(opts: Options) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gherkit run",
        description=_RUN_DESCRIPTION,
        epilog=_RUN_EPILOG,
        formatter_class=argparse.RawTextHelpFormatter,
    )
    bind_run_cmd_flags("", parser, opts)
    return parser


def _version_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gherkit version", description="Show current version")
    parser.add_argument("--version", action="version", version=f"version version {VERSION}")
    return parser


def build_runner(output: str) -> None:
    """Build the test runner executable at ``output``."""
    binary = os.path.abspath(output)
    try:
        build(binary)
    except BuildError as exc:
        raise BuildError(f'could not build binary at: "{output}". reason: {exc}') from exc


def run_runner(binary: str, args: Sequence[str]) -> int:
    """Run ``binary`` with ``args`` on the current terminal.

    Raises CalledProcessError when it exits with a positive status;
    an exit by signal is not treated as a failure.
    """
    command = [binary, *args]
    result = subprocess.run(command, env=dict(os.environ))
    if result.returncode > 0:
        raise subprocess.CalledProcessError(result.returncode, command)
    return result.returncode


def build_and_run(args: Sequence[str]) -> int:
    """Build the runner at the default path, run it with ``args``, then remove it."""
    binary = os.path.abspath(BUILD_OUTPUT_DEFAULT)
    build(binary)
    try:
        return run_runner(binary, args)
    finally:
        try:
            os.remove(binary)
        except OSError:
            pass


def print_version(output: TextIO | None = None) -> None:
    """Write the version line to ``output`` (standard output by default)."""
    out = output if output is not None else sys.stdout
    out.write(f"Gherkit version is: {VERSION}\n")


def _reject_unknown_flags(parser: argparse.ArgumentParser, extras: Sequence[str]) -> None:
    unknown = [arg for arg in extras if arg.startswith("-") and arg != "-"]
    if unknown:
        parser.error("unrecognized arguments: " + " ".join(unknown))


def _build_command(args: Sequence[str]) -> None:
    parser = _build_parser()
    namespace, extras = parser.parse_known_args(list(args))
    _reject_unknown_flags(parser, extras)
    build_runner(namespace.output)


def _run_command(args: Sequence[str]) -> None:
    parse_flags(_run_parser(Options()), args, Options())
    build_and_run(args)


def _version_command(args: Sequence[str]) -> None:
    parser = _version_parser()
    parser.parse_known_args(list(args))
    print_version()


def _root_command(args: Sequence[str]) -> None:
    namespace = parse_flags(create_parser(), args, Options())
    if namespace.version:
        print_version()
        return
    if namespace.output:
        build_runner(namespace.output)
    print(yellow(_DEPRECATION_NOTICE))
    build_and_run(args)


def _describe(exc: BaseException) -> str:
    if isinstance(exc, subprocess.CalledProcessError):
        return f"exit status {exc.returncode}"
    return str(exc)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line; return the process exit status."""
    args = list(sys.argv[1:] if argv is None else argv)
    commands = {"build": _build_command, "run": _run_command, "version": _version_command}
    try:
        if args and args[0] in commands:
            commands[args[0]](args[1:])
        else:
            _root_command(args)
    except (BuildError, subprocess.CalledProcessError, OSError) as exc:
        print(_describe(exc))
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())