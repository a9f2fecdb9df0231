"""Declaration scanner.

Discovers parameter and trigger declarations in Python source without importing
it. The scan runs in two passes over all files: the first collects module-level
parameter declarations (so options can refer to parameters defined in another
module), the second inspects every call expression against the declaration table
in :mod:`cloud_triggers.naming`.

Declarations whose identifying argument is not a literal are skipped. When two
declarations produce the same final name, the later one replaces the earlier one.
"""

from __future__ import annotations

import ast
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from cloud_triggers.naming import Declaration, find_declaration
from cloud_triggers.params import DEFINE_FUNCTIONS, ParamSpec
from cloud_triggers.resolver import OptionResolver, Unresolvable, dotted_name, literal_value
from cloud_triggers.spec import TriggerSpec, build_trigger_spec

logger = logging.getLogger(__name__)

_SKIPPED_DIRS = {"__pycache__", "site-packages", "node_modules", "build", "dist"}


@dataclass
class ScanResult:
    params: dict[str, ParamSpec] = field(default_factory=dict)
    triggers: dict[str, TriggerSpec] = field(default_factory=dict)
    bindings: dict[str, str] = field(default_factory=dict)


def _argument(call: ast.Call, keyword: str, position: int | None = None) -> ast.expr | None:
    for kw in call.keywords:
        if kw.arg == keyword:
            return kw.value
    if position is not None and len(call.args) > position:
        return call.args[position]
    return None


def _assignment(node: ast.stmt) -> tuple[str, ast.expr | None] | None:
    if isinstance(node, ast.Assign) and len(node.targets) == 1:
        target = node.targets[0]
        if isinstance(target, ast.Name):
            return target.id, node.value
    if isinstance(node, ast.AnnAssign) and isinstance(node.target, ast.Name):
        return node.target.id, node.value
    return None


class DeclarationScanner:
    """Accumulates declarations from one or more source files."""

    def __init__(self) -> None:
        self.result = ScanResult()
        self._named_options: dict[str, ast.Call] = {}

    def scan_sources(self, sources: Mapping[str, str]) -> ScanResult:
        """Scan ``{filename: source}``; returns the accumulated result."""

        trees: list[tuple[str, ast.Module]] = []
        for filename, source in sources.items():
            try:
                trees.append((filename, ast.parse(source, filename=filename)))
            except SyntaxError as e:
                logger.warning(
                    "Skipping file that does not parse",
                    extra={"file": filename, "error": str(e)},
                )

        for filename, tree in trees:
            self._collect_module_level(tree, filename)

        resolver = OptionResolver(self.result.bindings, self._named_options)
        for filename, tree in trees:
            # ast.walk is breadth-first; declarations are applied in source order.
            calls = sorted(
                (node for node in ast.walk(tree) if isinstance(node, ast.Call)),
                key=lambda node: (node.lineno, node.col_offset),
            )
            for call in calls:
                self._visit_call(call, resolver, filename)

        return self.result

    def _collect_module_level(self, tree: ast.Module, filename: str) -> None:
        for statement in tree.body:
            assignment = _assignment(statement)
            if assignment is None:
                continue
            variable, value = assignment
            if not isinstance(value, ast.Call):
                continue
            chain = dotted_name(value.func)
            if chain is None:
                continue
            if chain[-1] in DEFINE_FUNCTIONS:
                self._collect_param(variable, chain[-1], value, filename)
            elif chain[-1].endswith("Options"):
                self._named_options[variable] = value

    def _collect_param(self, variable: str, helper: str, call: ast.Call, filename: str) -> None:
        param_type = DEFINE_FUNCTIONS[helper]
        try:
            name = literal_value(_argument(call, "name", 0))
        except Unresolvable:
            logger.debug(
                "Skipping parameter without a literal name",
                extra={"file": filename, "variable": variable},
            )
            return
        if not isinstance(name, str) or not name.strip():
            return

        def optional(keyword: str) -> object:
            node = _argument(call, keyword)
            if node is None:
                return None
            try:
                return literal_value(node)
            except Unresolvable:
                return None

        label = optional("label")
        description = optional("description")
        self.result.params[name] = ParamSpec(
            name=name,
            type=param_type.param_type,
            default=optional("default"),
            label=label if isinstance(label, str) else None,
            description=description if isinstance(description, str) else None,
            format=param_type.param_format,
        )
        self.result.bindings[variable] = name

    def _subject(self, declaration: Declaration, call: ast.Call) -> object | None:
        if declaration.subject_arg is None:
            return declaration.fixed_subject
        try:
            subject = literal_value(_argument(call, declaration.subject_arg, 0))
        except Unresolvable:
            return None
        if not isinstance(subject, str) or not subject.strip():
            return None
        return subject

    def _visit_call(self, call: ast.Call, resolver: OptionResolver, filename: str) -> None:
        chain = dotted_name(call.func)
        if chain is None:
            return
        declaration = find_declaration(chain)
        if declaration is None:
            return

        subject = self._subject(declaration, call)
        if subject is None:
            logger.debug(
                "Skipping declaration without a literal identifying argument",
                extra={"file": filename, "call": ".".join(chain), "line": call.lineno},
            )
            return

        parts = resolver.resolve_parts(_argument(call, "options"))
        spec = build_trigger_spec(declaration, subject, parts)

        triggers = self.result.triggers
        if spec.name in triggers:
            logger.info(
                "Trigger declared more than once; the later declaration wins",
                extra={"trigger": spec.name, "file": filename, "line": call.lineno},
            )
        triggers[spec.name] = spec


def _iter_python_files(paths: Iterable[Path]) -> Iterable[Path]:
    for path in paths:
        if path.is_dir():
            for candidate in sorted(path.rglob("*.py")):
                relative = candidate.relative_to(path).parts[:-1]
                if any(part.startswith(".") or part in _SKIPPED_DIRS for part in relative):
                    continue
                yield candidate
        elif path.suffix == ".py":
            yield path


def scan_source(source: str, filename: str = "<source>") -> ScanResult:
    return DeclarationScanner().scan_sources({filename: source})


def scan_paths(paths: Iterable[Path | str]) -> ScanResult:
    """Scan files and directories (recursively, ``*.py`` only)."""

    sources: dict[str, str] = {}
    for path in _iter_python_files(Path(p) for p in paths):
        sources[str(path)] = path.read_text(encoding="utf-8")
    logger.info("Scanning sources", extra={"files": len(sources)})
    return DeclarationScanner().scan_sources(sources)
