from __future__ import annotations

import logging
from dataclasses import dataclass, field

from plugbuild.engines.base import SyntaxEngine
from plugbuild.errors import BuildError, TransformError
from plugbuild.transform.dialect import Dialect, parse_dialect
from plugbuild.transform.options import build_options

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransformOutcome:
    code: str
    transformed: bool
    warnings: list[str] = field(default_factory=list)


def transform_module(engine: SyntaxEngine, code: str, filename: str) -> TransformOutcome:
    """Downlevel one module; unsupported or non-script files pass through unchanged."""
    dialect = parse_dialect(filename)
    if not isinstance(dialect, Dialect):
        logger.debug("transform skip module=%s dialect=%s", filename, dialect)
        return TransformOutcome(code=code, transformed=False)
    options = build_options(filename, dialect)
    try:
        result = engine.transform(code, options)
    except BuildError:
        raise
    except OSError as exc:
        raise TransformError(f"engine {engine.name} failed: {exc}", module=filename) from exc
    return TransformOutcome(code=result.code, transformed=True, warnings=list(result.warnings))
