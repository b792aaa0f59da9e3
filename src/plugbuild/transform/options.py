from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from plugbuild.transform.dialect import Dialect

TARGETS = "defaults"

LOWERING_PASSES: tuple[str, ...] = (
    "transform-classes",
    "transform-arrow-functions",
    "transform-block-scoping",
    "transform-class-properties",
)

# The compaction pass downstream expects default/rest parameters and optional
# chaining to survive untouched.
EXCLUDED_PASSES: tuple[str, ...] = (
    "transform-parameters",
    "transform-optional-chaining",
)


@dataclass(frozen=True)
class TransformOptions:
    filename: str
    dialect: Dialect
    targets: str = TARGETS
    include: tuple[str, ...] = LOWERING_PASSES
    exclude: tuple[str, ...] = EXCLUDED_PASSES
    external_helpers: bool = True

    def to_swc_config(self) -> dict[str, Any]:
        parser: dict[str, Any] = {"syntax": self.dialect.parser_syntax}
        if self.dialect.language == "typed":
            parser["tsx"] = self.dialect.tsx
        else:
            parser["jsx"] = self.dialect.jsx
        return {
            "jsc": {
                "externalHelpers": self.external_helpers,
                "parser": parser,
            },
            "env": {
                "targets": self.targets,
                "include": list(self.include),
                "exclude": list(self.exclude),
            },
        }


def build_options(filename: str, dialect: Dialect) -> TransformOptions:
    return TransformOptions(filename=filename, dialect=dialect)
