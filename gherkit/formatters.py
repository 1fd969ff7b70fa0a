"""Registry of output formatters and the interface they implement."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, TextIO


class Formatter(ABC):
    """Presents the progress and summary of a feature run."""

    @abstractmethod
    def test_run_started(self) -> None:
        """Called once when the run begins."""

    @abstractmethod
    def feature(self, document: Any, uri: str, content: bytes) -> None:
        """Called for every parsed feature file."""

    @abstractmethod
    def pickle(self, pickle: Any) -> None:
        """Called when a scenario starts."""

    @abstractmethod
    def defined(self, pickle: Any, step: Any, definition: StepDefinition | None) -> None:
        """Called when a step has been matched to a definition."""

    @abstractmethod
    def failed(
        self,
        pickle: Any,
        step: Any,
        definition: StepDefinition | None,
        err: BaseException,
    ) -> None:
        """Called when a step fails."""

    @abstractmethod
    def passed(self, pickle: Any, step: Any, definition: StepDefinition | None) -> None:
        """Called when a step passes."""

    @abstractmethod
    def skipped(self, pickle: Any, step: Any, definition: StepDefinition | None) -> None:
        """Called when a step is skipped."""

    @abstractmethod
    def undefined(self, pickle: Any, step: Any, definition: StepDefinition | None) -> None:
        """Called when a step has no definition."""

    @abstractmethod
    def pending(self, pickle: Any, step: Any, definition: StepDefinition | None) -> None:
        """Called when a step is pending."""

    @abstractmethod
    def summary(self) -> None:
        """Called once when the run is over."""


FormatterFactory = Callable[[str, TextIO], Formatter]


@dataclass
class StepDefinition:
    """A registered step: the pattern it matches and the handler it runs."""

    expr: re.Pattern[str]
    handler: Callable[..., Any]


@dataclass(frozen=True)
class _RegisteredFormatter:
    name: str
    description: str
    factory: FormatterFactory


_registered: list[_RegisteredFormatter] = []


def find_fmt(name: str) -> FormatterFactory | None:
    """Return the factory of the first formatter registered as ``name``, or None."""
    return next((entry.factory for entry in _registered if entry.name == name), None)


def register_format(name: str, description: str, factory: FormatterFactory) -> None:
    """Register a formatter factory under ``name`` with a description."""
    _registered.append(_RegisteredFormatter(name, description, factory))


def available_formatters() -> dict[str, str]:
    """Map each registered formatter name to its description."""
    return {entry.name: entry.description for entry in _registered}