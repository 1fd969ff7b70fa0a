"""Builds a Go test runner executable from the package in the current directory."""

from __future__ import annotations

import json
import os
import posixpath
import re
import shutil
import subprocess
import tempfile
import time
import unicodedata
from contextlib import ExitStack
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Sequence

GODOG_IMPORT_PATH = "github.com/cucumber/godog"

_ILLEGAL_IMPORT_CHARS = "!\"#$%&'()*,:;<=>?[\\]^{|}`\ufffd"
_GRAPHIC_CATEGORIES = ("L", "M", "N", "P", "S")

_IDENT = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_PACKAGE_CLAUSE = re.compile(r"^\s*package\s+([A-Za-z_][A-Za-z0-9_]*)", re.MULTILINE)
_IMPORT_BLOCK = re.compile(r"\bimport\s*\(([^)]*)\)", re.DOTALL)
_IMPORT_SINGLE = re.compile(r"\bimport\s+(?:[A-Za-z_.][A-Za-z0-9_]*\s+)?(\"[^\"]*\"|`[^`]*`)")
_IMPORT_SPEC = re.compile(r"(\"[^\"]*\"|`[^`]*`)")
_NAMED_ENTRY = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)\s+(\S.*)$", re.DOTALL)
_TYPE_KEYWORDS = frozenset({"chan", "func", "map", "struct", "interface"})
_STAR_IDENT = re.compile(r"^\*\s*([A-Za-z_][A-Za-z0-9_]*)$")
_STAR_SELECTOR = re.compile(r"^\*\s*([A-Za-z_][A-Za-z0-9_]*)\s*\.\s*([A-Za-z_][A-Za-z0-9_]*)$")


class BuildError(Exception):
    """Raised when the test runner cannot be built."""


@dataclass
class GoPackage:
    """What is known of a Go package directory."""

    dir: str
    name: str
    import_path: str
    root: str = ""
    imports: list[str] = field(default_factory=list)
    test_imports: list[str] = field(default_factory=list)
    xtest_imports: list[str] = field(default_factory=list)
    go_files: list[str] = field(default_factory=list)
    test_go_files: list[str] = field(default_factory=list)
    xtest_go_files: list[str] = field(default_factory=list)


@dataclass
class Contexts:
    """Names of context initialisers found in test files."""

    deprecated_feature_ctxs: list[str] = field(default_factory=list)
    test_suite_ctxs: list[str] = field(default_factory=list)
    scenario_ctxs: list[str] = field(default_factory=list)

    def validate(self) -> None:
        """Raise BuildError when a context function is not exported."""
        failed = [
            f"{ctx} - should be: {ctx[0].upper()}{ctx[1:]}"
            for ctx in (*self.deprecated_feature_ctxs, *self.test_suite_ctxs, *self.scenario_ctxs)
            if ctx and ctx[0].islower()
        ]
        if failed:
            raise BuildError("godog contexts must be exported:\n\t" + "\n\t".join(failed))


# --- Go source scanning -------------------------------------------------------


def _clean_source(source: str, keep_strings: bool) -> str:
    """Blank out comments, and string contents unless ``keep_strings``."""
    out: list[str] = []
    i, n = 0, len(source)
    while i < n:
        ch = source[i]
        if source.startswith("//", i):
            end = source.find("\n", i)
            end = n if end == -1 else end
            out.append(" " * (end - i))
            i = end
        elif source.startswith("/*", i):
            end = source.find("*/", i + 2)
            end = n if end == -1 else end + 2
            out.append("".join(c if c == "\n" else " " for c in source[i:end]))
            i = end
        elif ch in "\"'`":
            j = i + 1
            while j < n and source[j] != ch:
                if ch != "`" and source[j] == "\\":
                    j += 1
                elif ch != "`" and source[j] == "\n":
                    break
                j += 1
            end = min(j + 1, n)
            out.append(source[i:end] if keep_strings else ch + ch)
            i = end
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def _matching(text: str, start: int, open_ch: str, close_ch: str) -> int:
    depth = 0
    for pos in range(start, len(text)):
        if text[pos] == open_ch:
            depth += 1
        elif text[pos] == close_ch:
            depth -= 1
            if depth == 0:
                return pos
    return -1


def _skip_space(text: str, pos: int) -> int:
    while pos < len(text) and text[pos].isspace():
        pos += 1
    return pos


def _split_top_level(text: str) -> list[str]:
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for ch in text:
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
        if ch == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return [part for part in parts if part]


def _param_field_types(params: str) -> list[str]:
    entries = _split_top_level(params)

    def named(entry: str) -> re.Match[str] | None:
        match = _NAMED_ENTRY.match(entry)
        if match and match.group(1) not in _TYPE_KEYWORDS:
            return match
        return None

    if not any(named(entry) for entry in entries):
        return entries
    types: list[str] = []
    for entry in entries:
        match = named(entry)
        if match:
            types.append(match.group(2).strip())
    return types


def _top_level_funcs(text: str) -> Iterable[tuple[str, str]]:
    depth = 0
    pos = 0
    n = len(text)
    while pos < n:
        ch = text[pos]
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
        elif (
            depth == 0
            and text.startswith("func", pos)
            and (pos == 0 or not (text[pos - 1].isalnum() or text[pos - 1] == "_"))
            and (pos + 4 >= n or not (text[pos + 4].isalnum() or text[pos + 4] == "_"))
        ):
            cur = _skip_space(text, pos + 4)
            if cur < n and text[cur] == "(":
                end = _matching(text, cur, "(", ")")
                if end == -1:
                    return
                cur = _skip_space(text, end + 1)
            ident = _IDENT.match(text, cur)
            if ident:
                cur = _skip_space(text, ident.end())
                if cur < n and text[cur] == "[":
                    end = _matching(text, cur, "[", "]")
                    cur = _skip_space(text, end + 1) if end != -1 else n
                if cur < n and text[cur] == "(":
                    end = _matching(text, cur, "(", ")")
                    if end != -1:
                        yield ident.group(0), text[cur + 1 : end]
                        pos = end + 1
                        continue
            pos = cur
            continue
        pos += 1


def ast_contexts(source: str, select_name: str) -> list[str]:
    """Names of functions taking ``*select_name`` or ``*godog.select_name``, once per such parameter."""
    text = _clean_source(source, keep_strings=False)
    contexts: list[str] = []
    for name, params in _top_level_funcs(text):
        for type_text in _param_field_types(params):
            ident = _STAR_IDENT.match(type_text)
            if ident and ident.group(1) == select_name:
                contexts.append(name)
                continue
            selector = _STAR_SELECTOR.match(type_text)
            if selector and selector.group(1) == "godog" and selector.group(2) == select_name:
                contexts.append(name)
    return contexts


def _parse_imports(source: str) -> tuple[str, list[str]]:
    text = _clean_source(source, keep_strings=True)
    package = _PACKAGE_CLAUSE.search(text)
    imports: list[str] = []
    for block in _IMPORT_BLOCK.finditer(text):
        imports.extend(spec[1:-1] for spec in _IMPORT_SPEC.findall(block.group(1)))
    for single in _IMPORT_SINGLE.finditer(text):
        imports.append(single.group(1)[1:-1])
    return (package.group(1) if package else ""), imports


def _unique(items: Iterable[str]) -> list[str]:
    return sorted(set(items))


# --- package discovery --------------------------------------------------------


def _gopaths() -> list[str]:
    env = os.environ.get("GOPATH")
    if env:
        return [p for p in env.split(os.pathsep) if p]
    return [str(Path.home() / "go")]


def _scan_dir(directory: str) -> GoPackage | None:
    path = Path(directory)
    if not path.is_dir():
        return None
    files = sorted(p for p in path.iterdir() if p.suffix == ".go" and p.is_file())
    if not files:
        return None
    pkg = GoPackage(dir=str(path), name="", import_path=".")
    imports: list[str] = []
    test_imports: list[str] = []
    xtest_imports: list[str] = []
    for file in files:
        name, file_imports = _parse_imports(file.read_text(encoding="utf-8", errors="replace"))
        if file.name.endswith("_test.go"):
            if name.endswith("_test"):
                pkg.xtest_go_files.append(str(file))
                xtest_imports.extend(file_imports)
            else:
                pkg.test_go_files.append(str(file))
                test_imports.extend(file_imports)
                pkg.name = pkg.name or name
        else:
            pkg.go_files.append(str(file))
            imports.extend(file_imports)
            pkg.name = pkg.name or name
    if not pkg.name and pkg.xtest_go_files:
        xname, _ = _parse_imports(Path(pkg.xtest_go_files[0]).read_text(encoding="utf-8"))
        pkg.name = xname.removesuffix("_test")
    pkg.imports = _unique(imports)
    pkg.test_imports = _unique(test_imports)
    pkg.xtest_imports = _unique(xtest_imports)

    absolute = os.path.abspath(directory)
    for gopath in _gopaths():
        src = os.path.join(os.path.abspath(gopath), "src")
        if absolute.startswith(src + os.sep):
            pkg.root = os.path.abspath(gopath)
            pkg.import_path = Path(os.path.relpath(absolute, src)).as_posix()
            break
    return pkg


def make_import_valid(char: str) -> str:
    """Return ``char``, or "_" where it may not appear in an import path."""
    graphic = unicodedata.category(char).startswith(_GRAPHIC_CATEGORIES) or unicodedata.category(char) == "Zs"
    if not graphic or char.isspace() or char in _ILLEGAL_IMPORT_CHARS:
        return "_"
    return char


def normalise_local_import_path(directory: str) -> str:
    """Import path Go gives to a package outside any workspace."""
    mapped = "".join(make_import_valid(c) for c in directory.replace(os.sep, "/"))
    return posixpath.normpath("_/" + mapped)


def import_package(directory: str) -> GoPackage | None:
    """Describe the Go package in ``directory``, or None when it holds no Go files."""
    pkg = _scan_dir(directory)
    if pkg is not None and pkg.import_path == ".":
        pkg.import_path = normalise_local_import_path(directory)
    return pkg


def maybe_vendored_godog() -> GoPackage | None:
    """Find a vendored copy of the godog package above the current directory."""
    start = os.path.abspath(".")
    for gopath in _gopaths():
        src = os.path.join(gopath, "src")
        directory = start
        while directory.startswith(src) and directory != src:
            pkg = _scan_dir(os.path.join(directory, "vendor", *GODOG_IMPORT_PATH.split("/")))
            if pkg is not None:
                vendor_root = os.path.join(directory, "vendor")
                pkg.import_path = Path(os.path.relpath(directory, src)).as_posix() + "/vendor/" + GODOG_IMPORT_PATH
                pkg.root = gopath if vendor_root else ""
                return pkg
            parent = os.path.dirname(directory)
            if parent == directory:
                break
            directory = parent
    return None


def parse_import(raw_path: str, root_path: str) -> str:
    """Resolve the import path, asking the module system when outside a workspace."""
    if root_path:
        return raw_path
    try:
        result = subprocess.run(
            ["go", "list", "-m", "-json"], capture_output=True, text=True, check=True
        )
        module, _ = json.JSONDecoder().raw_decode(result.stdout.lstrip())
        mod_path, mod_dir = module["Path"], module["Dir"]
    except (OSError, subprocess.CalledProcessError, ValueError, KeyError, TypeError):
        return raw_path
    prefix = normalise_local_import_path(mod_dir)
    rest = raw_path[len(prefix):] if raw_path.startswith(prefix) else raw_path
    return mod_path + rest.replace(os.sep, "/")


def process_package_test_files(*args: Sequence[str]) -> Contexts:
    """Collect context initialisers from the given lists of test files."""
    ctxs = Contexts()
    for pack in args:
        for test_file in pack:
            source = Path(test_file).read_text(encoding="utf-8")
            ctxs.test_suite_ctxs.extend(ast_contexts(source, "TestSuiteContext"))
            ctxs.scenario_ctxs.extend(ast_contexts(source, "ScenarioContext"))
    ctxs.validate()
    return ctxs


# --- code generation ----------------------------------------------------------


def build_temp_file(pkg: GoPackage | None) -> bytes | None:
    """Source of a file importing godog, or None when the package already does."""
    should_build = True
    name = ""
    if pkg is not None:
        name = pkg.name
        if GODOG_IMPORT_PATH in (*pkg.imports, *pkg.test_imports, *pkg.xtest_imports):
            should_build = False
        if name == "godog" and parse_import(pkg.import_path, pkg.root) == GODOG_IMPORT_PATH:
            should_build = False
    name = name or "main"
    if not should_build:
        return None
    return (
        f"package {name}\n\n"
        f'import "{GODOG_IMPORT_PATH}"\n\n'
        "var _ = godog.Version\n"
    ).encode()


def build_test_main(pkg: GoPackage | None) -> bytes:
    """Source of the runner's main package, registering the package's contexts."""
    ctxs, xctxs = Contexts(), Contexts()
    name, import_path = "main", ""
    if pkg is not None:
        ctxs = process_package_test_files(pkg.test_go_files)
        xctxs = process_package_test_files(pkg.xtest_go_files)
        import_path = parse_import(pkg.import_path, pkg.root)
        name = pkg.name

    has_test = bool(ctxs.test_suite_ctxs or ctxs.scenario_ctxs)
    has_xtest = bool(xctxs.test_suite_ctxs or xctxs.scenario_ctxs)

    def calls(alias: str, names: list[str]) -> str:
        return "".join(f"\n\t\t\t{alias}.{n}(ctx)\n\t\t\t" for n in names)

    imports = [f'\t"{GODOG_IMPORT_PATH}"']
    if has_test:
        imports.append(f'\t_test "{import_path}"')
    if has_xtest:
        imports.append(f'\t_xtest "{import_path}_test"')
        imports.append('\t"testing/internal/testdeps"')
    imports.append('\t"os"')

    init = (
        f'\nfunc init() {{\n\ttestdeps.ImportPath = "{import_path}"\n}}\n' if has_xtest else ""
    )
    text = (
        "package main\n\nimport (\n" + "\n".join(imports) + "\n)\n\n" + init + "\n"
        "func main() {\n"
        "\tstatus := godog.TestSuite{\n"
        f'\t\tName: "{name}",\n'
        "\t\tTestSuiteInitializer: func (ctx *godog.TestSuiteContext) {\n"
        f'\t\t\tos.Setenv("GODOG_TESTED_PACKAGE", "{import_path}")\n\t\t\t'
        + calls("_test", ctxs.test_suite_ctxs)
        + calls("_xtest", xctxs.test_suite_ctxs)
        + "\n\t\t},\n"
        "\t\tScenarioInitializer: func (ctx *godog.ScenarioContext) {\n\t\t\t"
        + calls("_test", ctxs.scenario_ctxs)
        + calls("_xtest", xctxs.scenario_ctxs)
        + "\n\t\t},\n"
        "\t}.Run()\n\n"
        "\tos.Exit(status)\n"
        "}"
    )
    return text.encode()


# --- toolchain ----------------------------------------------------------------


def find_tool_dir() -> str:
    """Directory holding the Go compiler and linker, or "" when unknown."""
    try:
        out = subprocess.run(
            ["go", "env", "GOTOOLDIR"], capture_output=True, text=True, check=True
        ).stdout
    except (OSError, subprocess.CalledProcessError):
        return ""
    return os.path.normpath(out.strip()) if out.strip() else ""


def filter_import_cfg(path: str) -> None:
    """Drop "modinfo" lines from an import configuration file."""
    try:
        original = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise BuildError(f"failed to read {path}: {exc}") from exc
    kept = "".join(line + "\n" for line in original.split("\n") if not line.startswith("modinfo"))
    try:
        Path(path).write_text(kept, encoding="utf-8")
        os.chmod(path, 0o600)
    except OSError as exc:
        raise BuildError(f"failed to write {path}: {exc}") from exc


def _combined(cmd: Sequence[str], cwd: str | None = None) -> tuple[str | None, str]:
    """Run ``cmd``; return (failure reason or None, combined output)."""
    try:
        result = subprocess.run(
            list(cmd), stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True, cwd=cwd
        )
    except OSError as exc:
        return str(exc), ""
    if result.returncode != 0:
        return f"exit status {result.returncode}", result.stdout
    return None, result.stdout


def _remove(path: str) -> None:
    try:
        os.remove(path)
    except OSError:
        pass


def build(binary: str) -> None:
    """Build a runner executable at ``binary`` for the package in the current directory."""
    abs_dir = os.path.abspath(".")
    pkg = import_package(abs_dir)
    src = build_test_main(pkg)
    src_temp = build_temp_file(pkg)

    with ExitStack() as cleanup:
        if src_temp is not None:
            path_temp = os.path.join(abs_dir, "godog_dependency_file_test.go")
            Path(path_temp).write_bytes(src_temp)
            cleanup.callback(_remove, path_temp)

        temp = os.path.join(tempfile.gettempdir(), f"temp-{time.time_ns()}.test")
        if os.environ.get("GO111MODULE") != "off":
            reason, out = _combined(["go", "mod", "tidy"])
            if reason:
                raise BuildError(
                    f"failed to tidy modules in tested package: {abs_dir}, reason: {reason}, output: {out}"
                )
        reason, test_output = _combined(["go", "test", "-c", "-work", "-o", temp])
        if reason:
            raise BuildError(
                f"failed to compile tested package: {abs_dir}, reason: {reason}, output: {test_output}"
            )
        cleanup.callback(_remove, temp)

        workdir = next(
            (
                line.replace("WORK=", "", 1)
                for line in test_output.strip().split("\n")
                if line.startswith("WORK=")
            ),
            "",
        )
        if "[no test files]" in test_output:
            raise BuildError("incorrect project structure: no test files found")
        if not workdir:
            raise BuildError(f"expected WORK dir path to be present in output: {test_output}")
        if not os.path.exists(workdir):
            raise BuildError(f"expected WORK dir: {workdir} to be available")
        if not os.path.isdir(workdir):
            raise BuildError(f"expected WORK dir: {workdir} to be directory")
        testdir = os.path.join(workdir, "b001")
        cleanup.callback(shutil.rmtree, workdir, True)

        testmain = os.path.join(testdir, "_testmain.go")
        Path(testmain).write_bytes(src)

        vendored = maybe_vendored_godog()
        linker_cfg = os.path.join(testdir, "importcfg.link")
        compiler_cfg = linker_cfg
        if vendored is not None:
            data = Path(linker_cfg).read_text(encoding="utf-8")
            data += f"importmap {GODOG_IMPORT_PATH}={vendored.import_path}\n"
            compiler_cfg = os.path.join(testdir, "importcfg")
            Path(compiler_cfg).write_text(data, encoding="utf-8")

        tooldir = find_tool_dir()
        compiler = os.path.join(tooldir, "compile")
        linker = os.path.join(tooldir, "link")

        main_archive = os.path.join(testdir, "main.a")
        filter_import_cfg(compiler_cfg)
        compile_args = [
            "-o", main_archive, "-importcfg", compiler_cfg, "-p", "main", "-complete",
            "-pack", testmain,
        ]
        reason, out = _combined([compiler, *compile_args])
        if reason:
            raise BuildError(f"failed to compile testmain package: {reason} - output: {out}")

        link_args = ["-o", binary, "-importcfg", linker_cfg, "-buildmode=exe", main_archive]
        reason, out = _combined([linker, *link_args])
        if reason:
            command = linker + " '" + "' '".join(link_args) + "'"
            raise BuildError(
                f"failed to link test executable:\n\treason: {out}\n\tcommand: {command}"
            )