from __future__ import annotations

import logging

from plugbuild.bundle.compact import compact
from plugbuild.engines.base import EngineResult
from plugbuild.errors import TransformError
from plugbuild.syntax import Grammar, parse_module, require_valid, walk
from plugbuild.transform.dialect import Dialect
from plugbuild.transform.options import TransformOptions
from plugbuild.transform.typestrip import strip_types

logger = logging.getLogger(__name__)


def grammar_for(dialect: Dialect) -> Grammar:
    if dialect.language == "typed":
        return "tsx" if dialect.tsx else "typescript"
    return "javascript"


class StubEngine:
    """In-process engine: parses each module with tree-sitter and erases types.

    No lowering passes run here, so the output keeps the syntax level it was
    written in. Component syntax is rejected and must be built with the node
    engine.
    """

    name = "stub"

    def transform(self, code: str, options: TransformOptions) -> EngineResult:
        if options.dialect.component_syntax != "none":
            raise TransformError(
                "component syntax requires the node engine",
                module=options.filename,
            )
        parsed = parse_module(code, grammar_for(options.dialect))
        require_valid(parsed, options.filename)
        if any(node.type.startswith("jsx_") for node in walk(parsed.root)):
            raise TransformError(
                "component syntax requires the node engine",
                module=options.filename,
            )
        if options.dialect.language == "typed":
            code = strip_types(parsed, options.filename)
        logger.debug("stub transform module=%s chars=%s", options.filename, len(code))
        return EngineResult(code=code)

    def minify(self, code: str) -> EngineResult:
        return EngineResult(code=compact(code))
