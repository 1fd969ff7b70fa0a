# gherkit

Command-line tooling for behaviour-driven test suites written as Gherkin
feature files against a Go package. Run from the directory of the Go package
under test, it scans the package's test files for context initialisers,
generates a runner `main` package, compiles and links it with the Go
toolchain, and runs the resulting executable. It also contains ANSI colour
helpers, a formatter registry and command-line option handling.

A working `go` installation must be on `PATH`: the `go` command and the
compiler and linker found through `go env GOTOOLDIR` are started as
subprocesses.

## Installation

```
pip install gherkit
```

To run the package's own tests:

```
pip install "gherkit[test]"
pytest
```

## Command line

```
gherkit build                 # compile a test runner to godog.test (godog.test.exe on Windows)
gherkit build -o runner.test  # compile to a named file
gherkit run                   # compile the runner, run it, then delete it
gherkit run features/eat.feature:10
gherkit version               # prints "Gherkit version is: v0.0.0-dev"
```

`gherkit run` checks the options below and then hands all of its arguments
unchanged to the runner it built; the runner executable does the filtering,
formatting and reporting.

| Option | Meaning |
| --- | --- |
| `--no-colors[=BOOL]` | disable ANSI colours |
| `-c`, `--concurrency N` | run the suite with the given concurrency (default 1) |
| `-t`, `--tags EXPR` | filter scenarios by tags, e.g. `"@wip && ~@new"` |
| `-f`, `--format NAME[:PATH]` | formatter name, optionally with a file for the report (default `pretty`) |
| `-d`, `--definitions[=BOOL]` | print all available step definitions |
| `--stop-on-failure[=BOOL]` | stop on the first failed scenario |
| `--strict[=BOOL]` | fail when steps are pending or undefined |
| `--random[=SEED]` | shuffle scenario order; without a seed `-1` is passed, asking for one to be picked |

Running `gherkit` with no sub-command still works but is deprecated: it
accepts the same options (plus `--version` and `-o/--output`, which builds
the runner to that file first), prints a notice, then builds and runs as
`gherkit run` does.

On a build failure, or when the runner exits with a positive status, the
message is printed and the command exits with status 1.

## Library use

```python
import sys

from gherkit import colors
from gherkit.formatters import register_format, find_fmt, available_formatters
from gherkit.options import Options, bind_command_line_flags, command_line, parse_flags

print(colors.yellow("warning"))
print(colors.bold(colors.green)("ok"))

out = colors.uncolored(sys.stdout)      # strips ANSI escape sequences
out.write(colors.red("plain text"))

register_format("mine", "My own output", my_formatter_factory)
assert find_fmt("mine") is my_formatter_factory
print(available_formatters())           # {"mine": "My own output"}

opts = Options()
bind_command_line_flags("godog.", opts)
parse_flags(command_line, ["--godog.format=junit", "features"], opts)
assert opts.format == "junit" and opts.paths == ["features"]
```

A formatter factory takes a suite name and an output stream and returns an
implementation of `gherkit.formatters.Formatter`.

`gherkit.legacy_flags` keeps the older flag style: `flag_set(opts)` builds a
flag set bound to an `Options`, `parse_legacy_flags(parser, args, opts)`
parses arguments into it, `bind_flags(prefix, parser, opts)` adds the flags
to an existing set, and `usage(parser, output)` returns a function that
writes the help text.

`gherkit.builder` exposes the build steps on their own: `build(binary)`,
`import_package(directory)`, `build_test_main(pkg)`, `build_temp_file(pkg)`
and `ast_contexts(source, select_name)`, raising `BuildError` on failure.

## What it does not do

- It does not parse or execute feature files itself, and it has no step
  definition runtime in Python; that work is done by the compiled Go runner.
- No formatters are registered out of the box: `available_formatters()` is
  empty until you call `register_format`. Names such as `pretty` or `junit`
  given to `--format` are only passed on to the runner.
- Go source is scanned with a lightweight scanner, not a full Go parser.