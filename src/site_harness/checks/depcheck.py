"""Static dependency-usage analysis for the project's Python sources.

Declared dependencies come from ``pyproject.toml``. Usage comes from
parsing source files and running detectors over every AST node, plus
"special" analyzers that read tool configuration (lint tools and the
build backend) for dependencies that are never imported.
"""

from __future__ import annotations

import ast
import fnmatch
import logging
import os
import sys
import tomllib
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from importlib import metadata
from pathlib import Path
from typing import Any

from packaging.requirements import InvalidRequirement, Requirement
from packaging.utils import canonicalize_name

logger = logging.getLogger(__name__)

Parser = Callable[[Path], ast.AST]
Detector = Callable[[ast.AST], list[str]]
Special = Callable[[Path, dict[str, Any]], list[str]]

_ALWAYS_SKIPPED_DIRS = frozenset({"__pycache__", "node_modules"})


def parse_python(path: Path) -> ast.AST:
    return ast.parse(path.read_text("utf-8"), filename=str(path))


def detect_import_statement(node: ast.AST) -> list[str]:
    """``import a.b, c`` -> ``["a.b", "c"]``."""

    if isinstance(node, ast.Import):
        return [alias.name for alias in node.names]
    return []


def detect_import_from(node: ast.AST) -> list[str]:
    """``from a.b import c`` -> ``["a.b"]``; relative imports are ignored."""

    if isinstance(node, ast.ImportFrom) and node.level == 0 and node.module:
        return [node.module]
    return []


def detect_dynamic_import(node: ast.AST) -> list[str]:
    """``importlib.import_module("x")`` and ``__import__("x")`` with literal names."""

    if not isinstance(node, ast.Call) or not node.args:
        return []
    first = node.args[0]
    if not isinstance(first, ast.Constant) or not isinstance(first.value, str):
        return []
    func = node.func
    if isinstance(func, ast.Name) and func.id in {"__import__", "import_module"}:
        return [first.value]
    if isinstance(func, ast.Attribute) and func.attr == "import_module":
        return [first.value]
    return []


def special_lint_config(project_dir: Path, pyproject: dict[str, Any]) -> list[str]:
    """Lint and type-check tools configured in ``pyproject.toml`` count as used."""

    tool = pyproject.get("tool", {})
    used: list[str] = [name for name in ("ruff", "mypy", "pylint", "black") if name in tool]
    for plugin in tool.get("mypy", {}).get("plugins", []):
        used.append(str(plugin).split(".", 1)[0])
    if (project_dir / ".flake8").is_file():
        used.append("flake8")
    return used


def special_build_config(project_dir: Path, pyproject: dict[str, Any]) -> list[str]:
    """Build-backend requirements count as used."""

    used: list[str] = []
    for requirement in pyproject.get("build-system", {}).get("requires", []):
        name = _requirement_name(requirement)
        if name is not None:
            used.append(name)
    return used


@dataclass(slots=True)
class DepcheckOptions:
    """Analyzer configuration."""

    include_dev: bool = True
    ignore_bin_package: bool = False
    skip_missing: bool = False
    ignore_dirs: tuple[str, ...] = ("sandbox", "dist", "bower_components")
    ignore_matches: tuple[str, ...] = ("grunt-*", "bootstrap*")
    parsers: dict[str, Parser] = field(
        default_factory=lambda: {"*.py": parse_python, "*.pyi": parse_python},
    )
    detectors: tuple[Detector, ...] = (
        detect_import_statement,
        detect_import_from,
        detect_dynamic_import,
    )
    specials: tuple[Special, ...] = (special_lint_config, special_build_config)


@dataclass(slots=True)
class DepcheckReport:
    """Categorized findings."""

    dependencies: list[str] = field(default_factory=list)
    dev_dependencies: list[str] = field(default_factory=list)
    missing: dict[str, list[str]] = field(default_factory=dict)
    using: dict[str, list[str]] = field(default_factory=dict)
    invalid_files: dict[str, str] = field(default_factory=dict)
    invalid_dirs: dict[str, str] = field(default_factory=dict)

    def log(self) -> None:
        logger.info("Unused dependencies: %s", self.dependencies)
        logger.info("Unused dev dependencies: %s", self.dev_dependencies)
        logger.info("Missing dependencies: %s", self.missing)
        logger.info("Dependency usage: %s", self.using)
        logger.info("Unreadable files: %s", self.invalid_files)
        logger.info("Unreadable directories: %s", self.invalid_dirs)


class DependencyAnalyzer:
    """Compare declared dependencies with what the sources actually import."""

    def __init__(
        self,
        options: DepcheckOptions | None = None,
        *,
        distributions: dict[str, list[str]] | None = None,
    ) -> None:
        self.options = options or DepcheckOptions()
        self._distributions = (
            metadata.packages_distributions() if distributions is None else distributions
        )

    def run(self, project_dir: Path) -> DepcheckReport:
        report = DepcheckReport()
        pyproject = _load_pyproject(project_dir)
        dependencies, dev_dependencies = _declared_dependencies(pyproject)
        if not self.options.include_dev:
            dev_dependencies = []
        first_party = _first_party_modules(project_dir)

        usage: dict[str, set[str]] = {}
        for path in self._iter_source_files(project_dir, report):
            parser = self._parser_for(path)
            if parser is None:
                continue
            relative = path.relative_to(project_dir).as_posix()
            try:
                tree = parser(path)
            except (SyntaxError, UnicodeDecodeError, OSError, ValueError) as error:
                report.invalid_files[relative] = str(error)
                continue
            for node in ast.walk(tree):
                for detector in self.options.detectors:
                    for module in detector(node):
                        top_level = module.split(".", 1)[0]
                        if top_level in first_party or top_level in sys.stdlib_module_names:
                            continue
                        for name in self._distribution_names(top_level):
                            usage.setdefault(name, set()).add(relative)

        imported = set(usage)
        for special in self.options.specials:
            for name in special(project_dir, pyproject):
                usage.setdefault(canonicalize_name(name), set()).add("pyproject.toml")

        declared = set(dependencies) | set(dev_dependencies)
        report.using = {name: sorted(files) for name, files in sorted(usage.items())}
        report.dependencies = self._unused(dependencies, usage)
        report.dev_dependencies = self._unused(dev_dependencies, usage)
        if not self.options.skip_missing:
            report.missing = {
                name: files
                for name, files in report.using.items()
                if name in imported and name not in declared and not self._ignored(name)
            }
        return report

    def _unused(self, declared: Iterable[str], usage: dict[str, set[str]]) -> list[str]:
        return sorted(
            name
            for name in declared
            if name not in usage
            and not self._ignored(name)
            and not (self.options.ignore_bin_package and _is_bin_package(name))
        )

    def _ignored(self, name: str) -> bool:
        return any(fnmatch.fnmatchcase(name, pattern) for pattern in self.options.ignore_matches)

    def _parser_for(self, path: Path) -> Parser | None:
        for pattern, parser in self.options.parsers.items():
            if fnmatch.fnmatchcase(path.name, pattern):
                return parser
        return None

    def _distribution_names(self, top_level: str) -> list[str]:
        names = self._distributions.get(top_level)
        if names:
            return sorted({canonicalize_name(name) for name in names})
        return [canonicalize_name(top_level)]

    def _iter_source_files(self, project_dir: Path, report: DepcheckReport) -> Iterable[Path]:
        def on_error(error: OSError) -> None:
            location = Path(error.filename) if error.filename else project_dir
            try:
                key = location.relative_to(project_dir).as_posix()
            except ValueError:
                key = str(location)
            report.invalid_dirs[key] = str(error)

        for root, dirs, files in os.walk(project_dir, onerror=on_error):
            dirs[:] = sorted(
                name
                for name in dirs
                if name not in self.options.ignore_dirs
                and name not in _ALWAYS_SKIPPED_DIRS
                and not name.startswith(".")
            )
            for name in sorted(files):
                yield Path(root) / name


def _load_pyproject(project_dir: Path) -> dict[str, Any]:
    path = project_dir / "pyproject.toml"
    if not path.is_file():
        return {}
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _declared_dependencies(pyproject: dict[str, Any]) -> tuple[list[str], list[str]]:
    project = pyproject.get("project", {})
    dependencies = _requirement_names(project.get("dependencies", []))
    dev: list[str] = []
    for requirements in project.get("optional-dependencies", {}).values():
        dev.extend(_requirement_names(requirements))
    for requirements in pyproject.get("dependency-groups", {}).values():
        dev.extend(_requirement_names(item for item in requirements if isinstance(item, str)))
    production = set(dependencies)
    return sorted(production), sorted(set(dev) - production)


def _requirement_names(requirements: Iterable[str]) -> list[str]:
    names = (_requirement_name(requirement) for requirement in requirements)
    return [name for name in names if name is not None]


def _requirement_name(requirement: str) -> str | None:
    try:
        return canonicalize_name(Requirement(requirement).name)
    except InvalidRequirement:
        logger.warning("Skipping invalid requirement: %r", requirement)
        return None


def _first_party_modules(project_dir: Path) -> set[str]:
    modules: set[str] = set()
    for base in (project_dir, project_dir / "src"):
        if not base.is_dir():
            continue
        for entry in base.iterdir():
            if entry.is_dir() and (entry / "__init__.py").is_file():
                modules.add(entry.name)
            elif entry.suffix == ".py":
                modules.add(entry.stem)
    for tests_dir in ("tests", "test"):
        if (project_dir / tests_dir).is_dir():
            modules.add(tests_dir)
    return modules


def _is_bin_package(name: str) -> bool:
    try:
        distribution = metadata.distribution(name)
    except metadata.PackageNotFoundError:
        return False
    return any(entry.group == "console_scripts" for entry in distribution.entry_points)
