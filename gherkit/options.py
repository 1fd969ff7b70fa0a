"""Run options and the command-line flags that set them."""

from __future__ import annotations

import argparse
import random
import time
import weakref
from dataclasses import dataclass, field
from typing import Any, Sequence, TextIO

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

_TRUE_WORDS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_WORDS = frozenset({"0", "f", "F", "FALSE", "false", "False"})

_OPTION_FIELDS = (
    "no_colors",
    "concurrency",
    "tags",
    "format",
    "show_step_definitions",
    "stop_on_failure",
    "strict",
    "randomize",
)

# Option strings that may be given without a value, with the value they then take.
_IMPLICIT_VALUES: "weakref.WeakKeyDictionary[argparse.ArgumentParser, dict[str, str]]" = (
    weakref.WeakKeyDictionary()
)

_TAGS_HELP = """filter scenarios by tags, expression can be:
  "@wip"           run all scenarios with wip tag
  "~@wip"          exclude all scenarios with wip tag
  "@wip && ~@new"  run wip scenarios, but exclude new
  "@wip,@undone"   run wip or undone scenarios"""

_FORMAT_HELP = """will write a report according to the selected formatter

usage:
  -f <formatter>
  will use the formatter and write the report on stdout
  -f <formatter>:<file_path>
  will use the formatter and write the report to the file path

built-in formatters are:
  progress  prints a character per step
  cucumber  produces a Cucumber JSON report
  events    produces JSON event stream, based on spec: 0.1.0
  junit     produces JUnit compatible XML report
  pretty    prints every feature with runtime statuses
 """

_RANDOM_HELP = """randomly shuffle the scenario execution order
  --random
specify SEED to reproduce the shuffling from a previous run
  --random=5738"""


@dataclass
class Options:
    """Options of a suite run; command-line flags map onto these fields.

    ``randomize`` of 0 keeps the order, -1 asks for a random seed to be
    chosen, and any other value is used as the shuffle seed.
    """

    show_step_definitions: bool = False
    randomize: int = 0
    stop_on_failure: bool = False
    strict: bool = False
    no_colors: bool = False
    tags: str = ""
    format: str = ""
    concurrency: int = 0
    paths: list[str] = field(default_factory=list)
    output: TextIO | None = None
    default_context: Any = None


def make_random_seed() -> int:
    """Return a pseudo-random seed between 1 and 99998."""
    return random.Random(time.time_ns()).randrange(99998) + 1


def _parse_bool(value: str) -> bool:
    if value in _TRUE_WORDS:
        return True
    if value in _FALSE_WORDS:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value: {value!r}")


def _parse_int(value: str) -> int:
    try:
        number = int(value, 10)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer value: {value!r}") from None
    if not _INT64_MIN <= number <= _INT64_MAX:
        raise argparse.ArgumentTypeError(f"value out of range: {value!r}")
    return number


def bind_run_cmd_flags(prefix: str, parser: argparse.ArgumentParser, opts: Options) -> None:
    """Add the run flags, named with ``prefix``, to ``parser``.

    The current values of ``opts`` become the defaults; an unset
    concurrency becomes 1 and an unset format becomes "pretty".
    """
    if opts.concurrency == 0:
        opts.concurrency = 1
    if not opts.format:
        opts.format = "pretty"

    implicit = _IMPLICIT_VALUES.setdefault(parser, {})

    def names(long: str, short: str | None) -> list[str]:
        result = [f"--{prefix}{long}"]
        if short:
            result.append(f"-{short}")
        return result

    def add_bool(long: str, short: str | None, dest: str, help_text: str) -> None:
        option_strings = names(long, short)
        parser.add_argument(
            *option_strings,
            dest=dest,
            nargs="?",
            const=True,
            type=_parse_bool,
            default=getattr(opts, dest),
            metavar="BOOL",
            help=help_text,
        )
        implicit.update(dict.fromkeys(option_strings, "true"))

    add_bool("no-colors", None, "no_colors", "disable ansi colors")
    parser.add_argument(
        *names("concurrency", "c"),
        dest="concurrency",
        type=_parse_int,
        default=opts.concurrency,
        help="run the test suite with concurrency",
    )
    parser.add_argument(*names("tags", "t"), dest="tags", default=opts.tags, help=_TAGS_HELP)
    parser.add_argument(
        *names("format", "f"), dest="format", default=opts.format, help=_FORMAT_HELP
    )
    add_bool("definitions", "d", "show_step_definitions", "print all available step definitions")
    add_bool("stop-on-failure", None, "stop_on_failure", "stop processing on first failed scenario")
    add_bool("strict", None, "strict", "fail suite when there are pending or undefined steps")

    random_names = names("random", None)
    parser.add_argument(
        *random_names,
        dest="randomize",
        nargs="?",
        const=-1,
        type=_parse_int,
        default=opts.randomize,
        metavar="SEED",
        help=_RANDOM_HELP,
    )
    implicit.update(dict.fromkeys(random_names, "-1"))


def _expand_implicit(parser: argparse.ArgumentParser, args: Sequence[str]) -> list[str]:
    implicit = _IMPLICIT_VALUES.get(parser, {})
    expanded: list[str] = []
    remaining = iter(args)
    for arg in remaining:
        if arg == "--":
            expanded.append(arg)
            expanded.extend(remaining)
            break
        expanded.append(f"{arg}={implicit[arg]}" if arg in implicit else arg)
    return expanded


def parse_flags(
    parser: argparse.ArgumentParser, args: Sequence[str], opts: Options
) -> argparse.Namespace:
    """Parse ``args`` with ``parser`` and store the run flags into ``opts``.

    Flags that take a value only after "=" (booleans and --random) never
    consume the following argument. Arguments that are not flags become
    ``opts.paths``. Unknown flags end the program with a usage error.
    The full parsed namespace is returned.
    """
    namespace, extras = parser.parse_known_args(_expand_implicit(parser, args))

    if "--" in extras:
        split = extras.index("--")
        before, after = extras[:split], extras[split + 1 :]
    else:
        before, after = extras, []

    unknown = [arg for arg in before if arg.startswith("-") and arg != "-"]
    if unknown:
        parser.error("unrecognized arguments: " + " ".join(unknown))

    for name in _OPTION_FIELDS:
        if hasattr(namespace, name):
            setattr(opts, name, getattr(namespace, name))

    positional = before + after
    if positional:
        opts.paths = positional
    return namespace


command_line = argparse.ArgumentParser(
    prog="gherkit",
    formatter_class=argparse.RawTextHelpFormatter,
)


def bind_command_line_flags(prefix: str, opts: Options) -> None:
    """Bind the run flags, named with ``prefix``, to the shared ``command_line`` parser."""
    bind_run_cmd_flags(prefix, command_line, opts)