"""Older single-dash style run flags, bound straight onto ``Options``."""

from __future__ import annotations

import re
import sys
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Protocol, Sequence

from .colors import green, yellow
from .formatters import available_formatters
from .options import Options, make_random_seed

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

_TRUE_WORDS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_WORDS = frozenset({"0", "f", "F", "FALSE", "false", "False"})

_DECIMAL = re.compile(r"[+-]?[0-9]+")
_LEGACY_OCTAL = re.compile(r"[+-]?0[0-7_]+")


def _spaces(count: int) -> str:
    return " " * max(count, 0)


_DESC_FEATURES_ARGUMENT = (
    "Optional feature(s) to run. Can be:\n"
    + _spaces(4) + "- dir " + yellow("(features/)") + "\n"
    + _spaces(4) + "- feature " + yellow("(*.feature)") + "\n"
    + _spaces(4) + "- scenario at specific line " + yellow("(*.feature:10)") + "\n"
    + "If no feature paths are listed, suite tries " + yellow("features") + " path by default.\n"
)

_DESC_CONCURRENCY_OPTION = (
    "Run the test suite with concurrency level:\n"
    + _spaces(4) + "- " + yellow("= 1") + ": supports all types of formats.\n"
    + _spaces(4) + "- " + yellow(">= 2") + ": only supports " + yellow("progress") + ". Note, that\n"
    + _spaces(4) + "your context needs to support parallel execution."
)

_DESC_TAGS_OPTION = (
    "Filter scenarios by tags. Expression can be:\n"
    + _spaces(4) + "- " + yellow('"@wip"') + ": run all scenarios with wip tag\n"
    + _spaces(4) + "- " + yellow('"~@wip"') + ": exclude all scenarios with wip tag\n"
    + _spaces(4) + "- " + yellow('"@wip && ~@new"') + ": run wip scenarios, but exclude new\n"
    + _spaces(4) + "- " + yellow('"@wip,@undone"') + ": run wip or undone scenarios"
)

_DESC_RANDOM_OPTION = (
    "Randomly shuffle the scenario execution order.\n"
    "Specify SEED to reproduce the shuffling from a previous run.\n"
    + _spaces(4) + "e.g. " + yellow("--random") + " or " + yellow("--random=5738")
)


class _FlagValue(Protocol):
    def set(self, value: str) -> None: ...

    def is_bool_flag(self) -> bool: ...

    def __str__(self) -> str: ...


class _HelpRequested(ValueError):
    """Raised when help is asked for and the flag set does not exit."""


def _parse_bool(text: str) -> bool:
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    raise ValueError(f"parse error: {text!r} is not a boolean")


def _parse_int(text: str) -> int:
    if text.strip() != text or not text:
        raise ValueError(f"parsing {text!r}: invalid syntax")
    try:
        number = int(text, 0)
    except ValueError:
        if not _LEGACY_OCTAL.fullmatch(text):
            raise ValueError(f"parsing {text!r}: invalid syntax") from None
        number = int(text.replace("_", ""), 8)
    if not _INT64_MIN <= number <= _INT64_MAX:
        raise ValueError(f"parsing {text!r}: value out of range")
    return number


@dataclass
class _StringValue:
    target: Any
    attr: str

    def set(self, value: str) -> None:
        setattr(self.target, self.attr, value)

    def is_bool_flag(self) -> bool:
        return False

    def __str__(self) -> str:
        return str(getattr(self.target, self.attr))


@dataclass
class _IntValue:
    target: Any
    attr: str

    def set(self, value: str) -> None:
        setattr(self.target, self.attr, _parse_int(value))

    def is_bool_flag(self) -> bool:
        return False

    def __str__(self) -> str:
        return str(getattr(self.target, self.attr))


@dataclass
class _BoolValue:
    target: Any
    attr: str

    def set(self, value: str) -> None:
        setattr(self.target, self.attr, _parse_bool(value))

    def is_bool_flag(self) -> bool:
        return True

    def __str__(self) -> str:
        return "true" if getattr(self.target, self.attr) else "false"


@dataclass
class RandomSeed:
    """Flag value for ``--random``: "true" picks a seed, "false" turns it off."""

    ref: Options | None

    def set(self, value: str) -> None:
        """Store the seed given by ``value`` into the bound options."""
        if self.ref is None:
            raise ValueError("random seed has no options to store into")
        if value == "true":
            self.ref.randomize = make_random_seed()
            return
        if value == "false":
            self.ref.randomize = 0
            return
        if not _DECIMAL.fullmatch(value):
            self.ref.randomize = 0
            raise ValueError(f"parsing {value!r}: invalid syntax")
        number = int(value, 10)
        if number > _INT64_MAX or number < _INT64_MIN:
            self.ref.randomize = _INT64_MAX if number > 0 else _INT64_MIN
            raise ValueError(f"parsing {value!r}: value out of range")
        self.ref.randomize = number

    def is_bool_flag(self) -> bool:
        """The flag needs no value while no seed is set."""
        return self.ref is None or self.ref.randomize == 0

    def __str__(self) -> str:
        return "0" if self.ref is None else str(self.ref.randomize)


@dataclass
class _Flag:
    name: str
    usage: str
    value: _FlagValue
    default: str


@dataclass
class _FlagSet:
    name: str = ""
    exit_on_error: bool = False
    output: Any = None
    usage: Callable[[], None] | None = None
    args: list[str] = field(default_factory=list)
    _flags: dict[str, _Flag] = field(default_factory=dict)

    def var(self, value: _FlagValue, name: str, usage_text: str) -> None:
        if name in self._flags:
            raise ValueError(f"{self.name} flag redefined: {name}")
        self._flags[name] = _Flag(name, usage_text, value, str(value))

    def lookup(self, name: str) -> _Flag | None:
        return self._flags.get(name)

    def visit_all(self) -> Iterator[_Flag]:
        for name in sorted(self._flags):
            yield self._flags[name]

    def _show_usage(self) -> None:
        if self.usage is not None:
            self.usage()
        else:
            usage(self, self.output)()

    def _fail(self, message: str) -> None:
        out = self.output if self.output is not None else sys.stderr
        out.write(message + "\n")
        self._show_usage()
        if self.exit_on_error:
            raise SystemExit(2)
        raise ValueError(message)

    def _help(self) -> None:
        self._show_usage()
        if self.exit_on_error:
            raise SystemExit(0)
        raise _HelpRequested("flag: help requested")

    def parse(self, arguments: Sequence[str]) -> list[str]:
        pending = deque(arguments)
        while pending:
            arg = pending[0]
            if len(arg) < 2 or not arg.startswith("-"):
                break
            pending.popleft()
            if arg == "--":
                break
            body = arg[2:] if arg.startswith("--") else arg[1:]
            if not body or body[0] in "-=":
                self._fail(f"bad flag syntax: {arg}")
            name, sep, value = body.partition("=")
            has_value = bool(sep)
            flag = self._flags.get(name)
            if flag is None:
                if name in ("help", "h"):
                    self._help()
                self._fail(f"flag provided but not defined: -{name}")
                continue
            if flag.value.is_bool_flag():
                text = value if has_value else "true"
                try:
                    flag.value.set(text)
                except ValueError as exc:
                    self._fail(f"invalid boolean value {text!r} for -{name}: {exc}")
                continue
            if not has_value:
                if not pending:
                    self._fail(f"flag needs an argument: -{name}")
                value = pending.popleft()
            try:
                flag.value.set(value)
            except ValueError as exc:
                self._fail(f"invalid value {value!r} for flag -{name}: {exc}")
        self.args = list(pending)
        return self.args


def flag_set(opt: Options) -> _FlagSet:
    """Build a flag set, exiting on errors, with the run flags bound to ``opt``."""
    parser = _FlagSet("gherkit", exit_on_error=True, output=opt.output)
    bind_flags("", parser, opt)
    parser.usage = usage(parser, opt.output)
    return parser


def bind_flags(prefix: str, parser: _FlagSet, opt: Options) -> None:
    """Bind the run flags, named with ``prefix``, to ``parser``.

    Values already set on ``opt`` become the defaults and are kept.
    """
    format_lines = "".join(
        _spaces(4) + "- " + yellow(name) + ": " + desc + "\n"
        for name, desc in sorted(available_formatters().items())
    )
    desc_format = ("How to format tests output. Built-in formats:\n" + format_lines).strip()

    opt.format = opt.format or "pretty"
    opt.concurrency = opt.concurrency or 1

    def bind(value: _FlagValue, names: Sequence[str], text: str) -> None:
        for name in names:
            parser.var(value, prefix + name, text)

    bind(_StringValue(opt, "format"), ("format", "f"), desc_format)
    bind(_StringValue(opt, "tags"), ("tags", "t"), _DESC_TAGS_OPTION)
    bind(_IntValue(opt, "concurrency"), ("concurrency", "c"), _DESC_CONCURRENCY_OPTION)
    bind(
        _BoolValue(opt, "show_step_definitions"),
        ("definitions", "d"),
        "Print all available step definitions.",
    )
    bind(
        _BoolValue(opt, "stop_on_failure"),
        ("stop-on-failure",),
        "Stop processing on first failed scenario.",
    )
    bind(
        _BoolValue(opt, "strict"),
        ("strict",),
        "Fail suite when there are pending or undefined steps.",
    )
    bind(_BoolValue(opt, "no_colors"), ("no-colors",), "Disable ansi colors.")
    bind(RandomSeed(opt), ("random",), _DESC_RANDOM_OPTION)


def parse_legacy_flags(parser: _FlagSet, args: Sequence[str], opt: Options) -> list[str]:
    """Parse ``args``; the arguments left after the flags become ``opt.paths``."""
    remaining = parser.parse(args)
    if remaining:
        opt.paths = list(remaining)
    return remaining


@dataclass
class _Flagged:
    descr: str
    dflt: str
    short: str = ""
    long: str = ""

    def name(self) -> str:
        if self.short and self.long:
            name = f"-{self.short}, --{self.long}"
        elif self.long:
            name = f"--{self.long}"
        elif self.short:
            name = f"-{self.short}"
        else:
            name = ""
        if self.long == "random":
            # the seed is chosen at run time, so no default is shown
            name += "[=SEED]"
        elif self.dflt not in ("true", "false"):
            name += "=" + self.dflt
        return name


def usage(parser: _FlagSet, output: Any) -> Callable[[], None]:
    """Return a function that writes the usage text of ``parser`` to ``output``."""

    def show() -> None:
        entries: list[_Flagged] = []
        for flag in parser.visit_all():
            entry = next((e for e in entries if e.descr == flag.usage), None)
            if entry is None:
                entry = _Flagged(descr=flag.usage, dflt=flag.default)
                entries.append(entry)
            if len(flag.name) > 2:
                entry.long = flag.name
            else:
                entry.short = flag.name

        longest = max((len(entry.name()) for entry in entries), default=0)

        def option(name: str, desc: str) -> str:
            first, *rest = desc.split("\n")
            lines = [_spaces(2) + green(name) + _spaces(longest + 2 - len(name)) + first]
            lines.extend(_spaces(2) + _spaces(longest + 2) + line for line in rest)
            return "\n".join(lines)

        text = [
            yellow("Usage:"),
            _spaces(2) + "gherkit [options] [<features>]\n",
            "Builds a test package and runs given feature files.",
            "Command should be run from the directory of tested package "
            "and contain buildable go source.\n",
            yellow("Arguments:"),
            option("features", _DESC_FEATURES_ARGUMENT),
            yellow("Options:"),
            *(option(entry.name(), entry.descr) for entry in entries),
            "",
        ]
        out = output if output is not None else sys.stderr
        out.write("\n".join(text) + "\n")

    return show