import io

import pytest

from gherkit.colors import uncolored
from gherkit.formatters import available_formatters, register_format
from gherkit.legacy_flags import (
    RandomSeed,
    bind_flags,
    flag_set,
    parse_legacy_flags,
    usage,
)
from gherkit.options import Options


def _custom_factory(suite, out):
    return None


def _preset_options(randomize):
    return Options(
        format="progress",
        tags="test",
        concurrency=2,
        show_step_definitions=True,
        stop_on_failure=True,
        strict=True,
        no_colors=True,
        randomize=randomize,
    )


def test_flags_should_randomize_and_generate_seed():
    opt = Options()
    parser = flag_set(opt)
    parse_legacy_flags(parser, ["--random"], opt)
    assert 1 <= opt.randomize <= 99998


def test_flags_should_randomize_by_given_seed():
    opt = Options()
    parser = flag_set(opt)
    parse_legacy_flags(parser, ["--random=123"], opt)
    assert opt.randomize == 123


@pytest.mark.parametrize(
    "expected, args",
    [
        ("pretty", []),
        ("progress", ["-f", "progress"]),
        ("junit", ["-f=junit"]),
        ("custom", ["--format", "custom"]),
        ("cust", ["--format=cust"]),
    ],
)
def test_flags_should_parse_format(expected, args):
    opt = Options()
    parser = flag_set(opt)
    parse_legacy_flags(parser, args, opt)
    assert opt.format == expected


def test_usage_should_include_format_descriptions():
    buf = io.StringIO()
    register_format("custom", "custom format description", _custom_factory)
    opt = Options()
    parser = flag_set(opt)
    usage(parser, uncolored(buf))()
    out = buf.getvalue()
    formats = available_formatters()
    assert "custom" in formats
    for name, desc in formats.items():
        assert f"{name}: {desc}\n" in out


def test_usage_lists_combined_flag_names():
    buf = io.StringIO()
    opt = Options()
    parser = flag_set(opt)
    usage(parser, uncolored(buf))()
    out = buf.getvalue()
    assert out.startswith("Usage:\n  gherkit [options] [<features>]\n")
    assert "-f, --format=pretty" in out
    assert "-c, --concurrency=1" in out
    assert "--random[=SEED]" in out
    assert "--no-colors " in out
    assert "--no-colors=" not in out


def test_bind_flags_should_respect_flag_defaults():
    opts = Options()
    bind_flags("flagDefaults.", flag_set(Options()), opts)
    assert opts.format == "pretty"
    assert opts.tags == ""
    assert opts.concurrency == 1
    assert opts.show_step_definitions is False
    assert opts.stop_on_failure is False
    assert opts.strict is False
    assert opts.no_colors is False
    assert opts.randomize == 0


def test_bind_flags_should_respect_opt_defaults():
    opts = _preset_options(7)
    bind_flags("optDefaults.", flag_set(Options()), opts)
    assert opts.format == "progress"
    assert opts.tags == "test"
    assert opts.concurrency == 2
    assert opts.show_step_definitions is True
    assert opts.stop_on_failure is True
    assert opts.strict is True
    assert opts.no_colors is True
    assert opts.randomize == 7


def test_bind_flags_should_respect_flag_overrides():
    opts = _preset_options(11)
    parser = flag_set(Options())
    bind_flags("optOverrides.", parser, opts)
    parse_legacy_flags(
        parser,
        [
            "--optOverrides.format=junit",
            "--optOverrides.tags=test2",
            "--optOverrides.concurrency=3",
            "--optOverrides.definitions=false",
            "--optOverrides.stop-on-failure=false",
            "--optOverrides.strict=false",
            "--optOverrides.no-colors=false",
            "--optOverrides.random=2",
        ],
        opts,
    )
    assert opts.format == "junit"
    assert opts.tags == "test2"
    assert opts.concurrency == 3
    assert opts.show_step_definitions is False
    assert opts.stop_on_failure is False
    assert opts.strict is False
    assert opts.no_colors is False
    assert opts.randomize == 2


def test_remaining_arguments_become_paths():
    opt = Options()
    parser = flag_set(opt)
    rest = parse_legacy_flags(parser, ["-d", "features/a.feature", "-t", "@wip"], opt)
    assert opt.show_step_definitions is True
    assert rest == ["features/a.feature", "-t", "@wip"]
    assert opt.paths == ["features/a.feature", "-t", "@wip"]
    assert opt.tags == ""


def test_double_dash_ends_flags():
    opt = Options()
    parser = flag_set(opt)
    rest = parse_legacy_flags(parser, ["--strict", "--", "-x"], opt)
    assert opt.strict is True
    assert rest == ["-x"]


def test_random_with_seed_set_takes_next_argument():
    opt = Options(randomize=5)
    parser = flag_set(opt)
    rest = parse_legacy_flags(parser, ["--random", "42", "path"], opt)
    assert opt.randomize == 42
    assert rest == ["path"]


def test_unknown_flag_exits_with_usage_error():
    buf = io.StringIO()
    opt = Options(output=buf)
    parser = flag_set(opt)
    with pytest.raises(SystemExit) as info:
        parse_legacy_flags(parser, ["--nope"], opt)
    assert info.value.code == 2
    assert "flag provided but not defined: -nope" in buf.getvalue()


def test_invalid_integer_exits_with_usage_error():
    buf = io.StringIO()
    opt = Options(output=buf)
    parser = flag_set(opt)
    with pytest.raises(SystemExit) as info:
        parse_legacy_flags(parser, ["-c", "many"], opt)
    assert info.value.code == 2
    assert "invalid value 'many' for flag -c" in buf.getvalue()


def test_missing_argument_exits():
    buf = io.StringIO()
    opt = Options(output=buf)
    parser = flag_set(opt)
    with pytest.raises(SystemExit) as info:
        parse_legacy_flags(parser, ["--tags"], opt)
    assert info.value.code == 2
    assert "flag needs an argument: -tags" in buf.getvalue()


def test_help_exits_cleanly_after_usage():
    buf = io.StringIO()
    opt = Options(output=buf)
    parser = flag_set(opt)
    with pytest.raises(SystemExit) as info:
        parse_legacy_flags(parser, ["-h"], opt)
    assert info.value.code == 0
    assert "Options:" in buf.getvalue()


def test_random_seed_values():
    opt = Options()
    seed = RandomSeed(opt)
    assert seed.is_bool_flag() is True
    seed.set("77")
    assert opt.randomize == 77
    assert seed.is_bool_flag() is False
    assert str(seed) == "77"
    seed.set("false")
    assert opt.randomize == 0
    seed.set("true")
    assert 1 <= opt.randomize <= 99998


def test_random_seed_rejects_non_numbers():
    opt = Options(randomize=9)
    seed = RandomSeed(opt)
    with pytest.raises(ValueError):
        seed.set("abc")
    assert opt.randomize == 0


def test_random_seed_without_options_prints_zero():
    assert str(RandomSeed(None)) == "0"