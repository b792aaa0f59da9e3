from __future__ import annotations

import json
import logging
import os
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from plugbuild.bundle.externals import ExternalsPolicy, render_global_path
from plugbuild.bundle.linker import link_module
from plugbuild.bundle.resolve import ModuleResolver
from plugbuild.engines.base import SyntaxEngine
from plugbuild.errors import ResolutionError, TransformError
from plugbuild.syntax import Grammar
from plugbuild.transform.dialect import UnsupportedDialect, parse_dialect
from plugbuild.transform.stage import transform_module

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BundleWarning:
    code: str
    message: str
    module: str | None = None


WarningHandler = Callable[[BundleWarning], None]


@dataclass(frozen=True)
class External:
    specifier: str
    global_path: str


@dataclass
class Module:
    index: int
    path: Path
    label: str
    code: str
    # specifier -> module index (>= 0) or external slot encoded as -(slot + 1)
    dependencies: dict[str, int] = field(default_factory=dict)


@dataclass
class ModuleGraph:
    entry: Path
    modules: list[Module]
    externals: list[External]

    def cycles(self) -> list[list[int]]:
        """Return each dependency cycle once, as a path of module indices."""
        found: list[list[int]] = []
        state: dict[int, str] = {}
        trail: list[int] = []

        def visit(index: int) -> None:
            state[index] = "active"
            trail.append(index)
            for target in self.modules[index].dependencies.values():
                if target < 0:
                    continue
                if state.get(target) == "active":
                    start = trail.index(target)
                    found.append([*trail[start:], target])
                elif target not in state:
                    visit(target)
            trail.pop()
            state[index] = "done"

        for module in self.modules:
            if module.index not in state:
                visit(module.index)
        return found


def module_label(path: Path, root: Path) -> str:
    return Path(os.path.relpath(path, root)).as_posix()


def build_graph(
    entry: Path,
    *,
    engine: SyntaxEngine,
    policy: ExternalsPolicy,
    resolver: ModuleResolver,
    on_warning: WarningHandler,
) -> ModuleGraph:
    """Walk every module reachable from ``entry``, transforming and linking each once."""
    entry = entry.resolve()
    root = entry.parent
    index_of: dict[Path, int] = {entry: 0}
    external_slot: dict[str, int] = {}
    externals: list[External] = []
    modules: list[Module] = []
    queue: deque[Path] = deque([entry])

    while queue:
        path = queue.popleft()
        label = module_label(path, root)
        code, specifiers = _load_module(path, label, engine, on_warning)
        dependencies: dict[str, int] = {}
        for specifier in specifiers:
            global_path = policy.global_for(specifier)
            if global_path is not None:
                try:
                    render_global_path(global_path)
                except ValueError as exc:
                    raise ResolutionError(
                        f"cannot externalize '{specifier}': {exc}", module=label
                    ) from exc
                if specifier not in external_slot:
                    external_slot[specifier] = len(externals)
                    externals.append(External(specifier=specifier, global_path=global_path))
                    logger.debug("external specifier=%s global=%s", specifier, global_path)
                dependencies[specifier] = -(external_slot[specifier] + 1)
                continue
            try:
                target = resolver.resolve(specifier, path)
            except ResolutionError as exc:
                exc.module = label
                raise
            if target not in index_of:
                index_of[target] = len(index_of)
                queue.append(target)
            dependencies[specifier] = index_of[target]
        modules.append(
            Module(
                index=index_of[path],
                path=path,
                label=label,
                code=code,
                dependencies=dependencies,
            )
        )

    modules.sort(key=lambda module: module.index)
    graph = ModuleGraph(entry=entry, modules=modules, externals=externals)
    for cycle in graph.cycles():
        chain = " -> ".join(graph.modules[index].label for index in cycle)
        on_warning(
            BundleWarning(code="CIRCULAR_DEPENDENCY", message=f"Circular dependency: {chain}")
        )
    logger.info(
        "module graph built entry=%s modules=%s externals=%s",
        entry,
        len(modules),
        len(externals),
    )
    return graph


def _load_module(
    path: Path,
    label: str,
    engine: SyntaxEngine,
    on_warning: WarningHandler,
) -> tuple[str, list[str]]:
    try:
        source = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ResolutionError(f"cannot read module: {exc}", module=label) from exc
    if path.suffix == ".json":
        try:
            json.loads(source)
        except ValueError as exc:
            raise TransformError(f"invalid JSON module: {exc}", module=label) from exc
        return f"module.exports={source.strip()};", []

    outcome = transform_module(engine, source, label)
    for message in outcome.warnings:
        on_warning(BundleWarning(code="TRANSFORM", message=message, module=label))
    linked = link_module(outcome.code, label, grammar=_link_grammar(label, outcome.transformed))
    for message in linked.warnings:
        on_warning(BundleWarning(code="DYNAMIC_IMPORT", message=message, module=label))
    return linked.code, linked.specifiers


def _link_grammar(label: str, transformed: bool) -> Grammar:
    if transformed:
        return "javascript"
    dialect = parse_dialect(label)
    if isinstance(dialect, UnsupportedDialect) and "ts" in dialect.extension:
        return "tsx"
    return "javascript"
