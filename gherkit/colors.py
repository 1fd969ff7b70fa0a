"""ANSI colour helpers and writers that keep or strip colour sequences."""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Callable, Protocol

ANSI_ESCAPE = "\x1b"

ColorFunc = Callable[[Any], str]


class Color(IntEnum):
    """ANSI foreground colour codes."""

    BLACK = 30
    RED = 31
    GREEN = 32
    YELLOW = 33
    BLUE = 34
    MAGENTA = 35
    CYAN = 36
    WHITE = 37


class OutputMode(IntEnum):
    """How a coloured writer treats escape sequences that are not colours."""

    DISCARD_NON_COLOR_ESC_SEQ = 1
    OUTPUT_NON_COLOR_ESC_SEQ = 2


class _TextSink(Protocol):
    def write(self, data: str) -> Any: ...


def colorize(value: Any, code: int) -> str:
    """Wrap ``value`` in the ANSI sequence for colour ``code``."""
    return f"{ANSI_ESCAPE}[{int(code)}m{value}{ANSI_ESCAPE}[0m"


def bold(fn: ColorFunc) -> ColorFunc:
    """Return a colour function that also makes its text bold."""

    def bolded(value: Any) -> str:
        return fn(value).replace(ANSI_ESCAPE + "[", ANSI_ESCAPE + "[1;", 1)

    return bolded


def green(value: Any) -> str:
    """Colour ``value`` green."""
    return colorize(value, Color.GREEN)


def red(value: Any) -> str:
    """Colour ``value`` red."""
    return colorize(value, Color.RED)


def cyan(value: Any) -> str:
    """Colour ``value`` cyan."""
    return colorize(value, Color.CYAN)


def black(value: Any) -> str:
    """Colour ``value`` black."""
    return colorize(value, Color.BLACK)


def yellow(value: Any) -> str:
    """Colour ``value`` yellow."""
    return colorize(value, Color.YELLOW)


def white(value: Any) -> str:
    """Colour ``value`` white."""
    return colorize(value, Color.WHITE)


def _as_text(data: str | bytes | bytearray) -> str:
    if isinstance(data, (bytes, bytearray)):
        return bytes(data).decode("utf-8", errors="replace")
    return data


def _is_final_char(char: str) -> bool:
    return "a" <= char <= "z" or "A" <= char <= "Z" or char == "@"


class UncoloredWriter:
    """A writer that removes ANSI CSI sequences before passing text on."""

    def __init__(self, out: _TextSink) -> None:
        self._out = out
        self._held: list[str] = []

    def write(self, data: str | bytes | bytearray) -> int:
        """Write ``data`` without escape sequences; return characters taken."""
        text = _as_text(data)
        kept: list[str] = []
        chars = iter(text)
        for first in chars:
            if first != ANSI_ESCAPE:
                kept.append(first)
                continue
            second = next(chars, None)
            if second is None:
                self._held.append(first)
                break
            if second != "[":
                self._held.extend((first, second))
                continue
            params: list[str] = []
            for char in chars:
                if _is_final_char(char):
                    break
                params.append(char)
            else:
                self._held.extend((first, second, *params))
                break
        if kept:
            self._out.write("".join(kept))
        return len(text) - len(self._held)

    def flush(self) -> None:
        """Flush the wrapped writer when it supports flushing."""
        flush = getattr(self._out, "flush", None)
        if callable(flush):
            flush()


class ColoredWriter:
    """A writer that passes coloured text through unchanged."""

    def __init__(
        self,
        out: _TextSink,
        mode: OutputMode = OutputMode.DISCARD_NON_COLOR_ESC_SEQ,
    ) -> None:
        self._out = out
        self.mode = mode

    def write(self, data: str | bytes | bytearray) -> int:
        """Write ``data`` as is; return the number of characters written."""
        text = _as_text(data)
        written = self._out.write(text)
        return len(text) if written is None else written

    def flush(self) -> None:
        """Flush the wrapped writer when it supports flushing."""
        flush = getattr(self._out, "flush", None)
        if callable(flush):
            flush()


def uncolored(writer: _TextSink) -> UncoloredWriter:
    """Wrap ``writer`` so that colours are stripped from what is written."""
    return UncoloredWriter(writer)


def colored(writer: _TextSink) -> ColoredWriter:
    """Wrap ``writer`` so that colours are kept; already wrapped writers are reused."""
    if isinstance(writer, ColoredWriter):
        return writer
    return ColoredWriter(writer, OutputMode.DISCARD_NON_COLOR_ESC_SEQ)