"""Circular import detection for Python and JavaScript/TypeScript sources."""

from __future__ import annotations

import ast
import posixpath
import re
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Set, Tuple

import networkx as nx

from ..config import MetricDefinition
from ..logging import get_logger
from ..models import Occurrence, SourceFile
from .base import EvaluationContext
from .patterns import select_files

_PYTHON_SUFFIXES = (".py",)
_JS_SUFFIXES = (".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs")

_JS_IMPORT = re.compile(
    r"""(?:^|[;\s])(?:import|export)\s+(?:[\w*{}\s,$]+?\s+from\s+)?['"]([^'"\n]+)['"]"""
    r"""|\brequire\(\s*['"]([^'"\n]+)['"]\s*\)"""
    r"""|\bimport\(\s*['"]([^'"\n]+)['"]\s*\)""",
    re.MULTILINE,
)

_LOGGER = get_logger("metrics.imports")


def evaluate_circular_imports(
    definition: MetricDefinition, context: EvaluationContext
) -> List[Occurrence]:
    files = [
        file
        for file in select_files(definition, context.files)
        if file.path.endswith(_PYTHON_SUFFIXES + _JS_SUFFIXES)
    ]
    graph = build_import_graph(files)
    _LOGGER.debug(
        "Import graph for %s: %d modules, %d edges",
        definition.name,
        graph.number_of_nodes(),
        graph.number_of_edges(),
    )

    occurrences: List[Occurrence] = []
    for cycle in find_cycles(graph):
        occurrences.append(
            Occurrence(
                metric_name=definition.name,
                text=" > ".join(cycle),
                owners=context.owners_for_many(cycle),
            )
        )
    return occurrences


def build_import_graph(files: Sequence[SourceFile]) -> nx.DiGraph:
    """Return a digraph with an edge from each file to every project file it imports."""
    known_paths = {file.path for file in files}
    python_modules = _python_module_index(file.path for file in files if file.path.endswith(_PYTHON_SUFFIXES))

    graph = nx.DiGraph()
    for file in files:
        if file.path.endswith(_PYTHON_SUFFIXES):
            targets = set(_python_imports(file, python_modules))
        else:
            targets = set(_js_imports(file, known_paths))
        graph.add_node(file.path)
        graph.add_edges_from((file.path, target) for target in sorted(targets))
    return graph


def find_cycles(graph: nx.DiGraph) -> List[Tuple[str, ...]]:
    """Return the sorted members of every import cycle, in sorted order.

    A cycle is a strongly connected component of two or more modules, or a
    single module importing itself.
    """
    cycles: List[Tuple[str, ...]] = []
    for component in nx.strongly_connected_components(graph):
        members = tuple(sorted(component))
        if len(members) > 1 or graph.has_edge(members[0], members[0]):
            cycles.append(members)
    return sorted(cycles)


def _python_module_index(paths: Iterator[str]) -> Dict[str, str]:
    index: Dict[str, str] = {}
    for path in paths:
        parts = path[: -len(".py")].split("/")
        if parts[-1] == "__init__":
            parts = parts[:-1]
        if not parts:
            continue
        index[".".join(parts)] = path
        if parts[0] == "src" and len(parts) > 1:
            index.setdefault(".".join(parts[1:]), path)
    return index


def _python_package(path: str) -> List[str]:
    parts = path[: -len(".py")].split("/")
    if parts[0] == "src" and len(parts) > 1:
        parts = parts[1:]
    return parts[:-1]


def _python_imports(file: SourceFile, modules: Mapping[str, str]) -> Iterator[str]:
    try:
        tree = ast.parse(file.content, filename=file.path)
    except SyntaxError as exc:
        _LOGGER.warning("Skipping imports of %s: %s", file.path, exc)
        return

    package = _python_package(file.path)
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                target = _resolve_module(alias.name, modules)
                if target:
                    yield target
        elif isinstance(node, ast.ImportFrom):
            if node.level:
                keep = len(package) - (node.level - 1)
                if keep < 0:
                    continue
                base = package[:keep]
                if node.module:
                    base = base + node.module.split(".")
            else:
                base = (node.module or "").split(".")
            base_name = ".".join(part for part in base if part)
            resolved_any = False
            for alias in node.names:
                if alias.name == "*":
                    continue
                candidate = f"{base_name}.{alias.name}" if base_name else alias.name
                target = modules.get(candidate)
                if target:
                    resolved_any = True
                    yield target
            if not resolved_any and base_name:
                target = _resolve_module(base_name, modules)
                if target:
                    yield target


def _resolve_module(name: str, modules: Mapping[str, str]) -> Optional[str]:
    parts = name.split(".")
    while parts:
        target = modules.get(".".join(parts))
        if target:
            return target
        parts.pop()
    return None


def _js_imports(file: SourceFile, known_paths: Set[str]) -> Iterator[str]:
    directory = posixpath.dirname(file.path)
    for match in _JS_IMPORT.finditer(file.content):
        specifier = next(group for group in match.groups() if group)
        if not specifier.startswith("."):
            continue
        target = _resolve_js(posixpath.normpath(posixpath.join(directory, specifier)), known_paths)
        if target:
            yield target


def _resolve_js(base: str, known_paths: Set[str]) -> Optional[str]:
    if base in known_paths:
        return base
    for suffix in _JS_SUFFIXES:
        if base + suffix in known_paths:
            return base + suffix
    for suffix in _JS_SUFFIXES:
        candidate = f"{base}/index{suffix}"
        if candidate in known_paths:
            return candidate
    return None
