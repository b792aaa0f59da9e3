from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from plugbuild.transform.options import TransformOptions


@dataclass(frozen=True)
class EngineResult:
    code: str
    warnings: list[str] = field(default_factory=list)


class SyntaxEngine(Protocol):
    name: str

    def transform(self, code: str, options: TransformOptions) -> EngineResult:
        ...

    def minify(self, code: str) -> EngineResult:
        ...
