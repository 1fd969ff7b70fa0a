import io
import subprocess
import sys
from unittest import mock

import pytest

from gherkit import cli
from gherkit.builder import BuildError
from gherkit.colors import yellow
from gherkit.options import Options, parse_flags


def _failing_run(*args, **kwargs):
    return subprocess.CompletedProcess(args=args[0] if args else [], returncode=1, stdout="boom")


def test_print_version_writes_version_line():
    out = io.StringIO()
    cli.print_version(out)
    assert out.getvalue() == f"Gherkit version is: {cli.VERSION}\n"
    assert cli.VERSION == "v0.0.0-dev"


def test_version_subcommand(capsys):
    assert cli.main(["version"]) == 0
    assert cli.VERSION in capsys.readouterr().out


def test_root_version_flag(capsys):
    assert cli.main(["--version"]) == 0
    out = capsys.readouterr().out
    assert out == f"Gherkit version is: {cli.VERSION}\n"


def test_create_parser_parses_root_flags():
    opts = Options()
    namespace = parse_flags(cli.create_parser(), ["--output", "runner", "--strict", "feat"], opts)
    assert namespace.output == "runner"
    assert namespace.version is False
    assert opts.strict is True
    assert opts.paths == ["feat"]


def test_create_parser_hides_flags_from_help():
    help_text = cli.create_parser().format_help()
    assert "--stop-on-failure" not in help_text
    assert "build" in help_text


def test_run_runner_success():
    code = cli.run_runner(sys.executable, ["-c", "import sys; sys.exit(0)"])
    assert code == 0


def test_run_runner_failure_raises():
    with pytest.raises(subprocess.CalledProcessError) as info:
        cli.run_runner(sys.executable, ["-c", "import sys; sys.exit(3)"])
    assert info.value.returncode == 3


def test_build_runner_wraps_error(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    with mock.patch("subprocess.run", side_effect=_failing_run):
        with pytest.raises(BuildError) as info:
            cli.build_runner("out.bin")
    assert str(info.value).startswith('could not build binary at: "out.bin". reason: ')
    assert list(tmp_path.iterdir()) == []


def test_build_and_run_propagates_build_error(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    with mock.patch("subprocess.run", side_effect=_failing_run):
        with pytest.raises(BuildError) as info:
            cli.build_and_run([])
    assert "failed to tidy modules" in str(info.value)


def test_main_build_failure_returns_one(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    with mock.patch("subprocess.run", side_effect=_failing_run):
        assert cli.main(["build", "-o", "runner"]) == 1
    assert 'could not build binary at: "runner"' in capsys.readouterr().out


def test_main_run_failure_returns_one(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    with mock.patch("subprocess.run", side_effect=_failing_run):
        assert cli.main(["run", "--strict", "features"]) == 1
    assert "failed to tidy modules" in capsys.readouterr().out


def test_main_root_prints_deprecation(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    with mock.patch("subprocess.run", side_effect=_failing_run):
        assert cli.main(["features"]) == 1
    out = capsys.readouterr().out
    assert yellow(cli._DEPRECATION_NOTICE) in out


def test_main_root_with_output_builds_first(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    with mock.patch("subprocess.run", side_effect=_failing_run):
        assert cli.main(["-o", "runner"]) == 1
    out = capsys.readouterr().out
    assert 'could not build binary at: "runner"' in out
    assert cli._DEPRECATION_NOTICE not in out


def test_unknown_flags_are_usage_errors():
    with pytest.raises(SystemExit) as info:
        cli.main(["build", "--bogus"])
    assert info.value.code == 2
    with pytest.raises(SystemExit) as info:
        cli.main(["run", "--bogus"])
    assert info.value.code == 2