import re

import pytest

from gherkit import formatters
from gherkit.formatters import Formatter, StepDefinition


def _factory(suite_name, out):
    return None


def _other_factory(suite_name, out):
    return None


@pytest.mark.parametrize("name", ["unknown", "undef"])
def test_find_fmt_unknown_names(name):
    assert formatters.find_fmt(name) is None


def test_format_registers_factory():
    assert formatters.find_fmt("Test_Format") is None
    formatters.register_format("Test_Format", "...", _factory)
    assert formatters.find_fmt("Test_Format") is _factory


def test_available_formatters_lists_descriptions():
    formatters.register_format("custom", "custom format description", _factory)
    available = formatters.available_formatters()
    assert available["custom"] == "custom format description"


def test_available_formatters_matches_find_fmt():
    formatters.register_format("listed", "listed description", _factory)
    for name in formatters.available_formatters():
        assert formatters.find_fmt(name) is not None
    assert "listed" in formatters.available_formatters()


def test_find_fmt_returns_first_registration():
    formatters.register_format("twice", "first", _factory)
    formatters.register_format("twice", "second", _other_factory)
    assert formatters.find_fmt("twice") is _factory
    assert formatters.available_formatters()["twice"] == "second"


def test_formatter_requires_all_methods():
    class Partial(Formatter):
        def summary(self):
            pass

    formatters.register_format("partial", "incomplete formatter", lambda suite, out: Partial())
    factory = formatters.find_fmt("partial")
    with pytest.raises(TypeError):
        factory("suite", None)


def test_formatter_subclass_is_usable():
    class Recording(Formatter):
        def __init__(self):
            self.calls = []

        def test_run_started(self):
            self.calls.append("started")

        def feature(self, document, uri, content):
            self.calls.append(uri)

        def pickle(self, pickle):
            pass

        def defined(self, pickle, step, definition):
            pass

        def failed(self, pickle, step, definition, err):
            pass

        def passed(self, pickle, step, definition):
            pass

        def skipped(self, pickle, step, definition):
            pass

        def undefined(self, pickle, step, definition):
            pass

        def pending(self, pickle, step, definition):
            pass

        def summary(self):
            self.calls.append("summary")

    formatters.register_format("recording", "records calls", lambda suite, out: Recording())
    fmt = formatters.find_fmt("recording")("suite", None)
    fmt.test_run_started()
    fmt.feature(None, "a.feature", b"")
    fmt.summary()
    assert fmt.calls == ["started", "a.feature", "summary"]
    assert formatters.available_formatters()["recording"] == "records calls"


def test_step_definition_matches_with_its_expression():
    definition = StepDefinition(expr=re.compile(r"^there are (\d+) godogs$"), handler=int)
    match = definition.expr.match("there are 12 godogs")
    assert match is not None
    assert definition.handler(match.group(1)) == 12