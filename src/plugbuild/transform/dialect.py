from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

ModuleSystem = Literal["classic", "esm"]
LegacyModule = Literal["plain", "legacy"]
Language = Literal["typed", "untyped"]
ComponentSyntax = Literal["none", "typed", "untyped"]

# .[m][c](ts|js)[x]
_EXTENSION_RE = re.compile(r"\.(m?)(c?)([tj]s)(x?)$")


@dataclass(frozen=True)
class Dialect:
    module_system: ModuleSystem
    legacy_module: LegacyModule
    language: Language
    component_syntax: ComponentSyntax

    @property
    def parser_syntax(self) -> str:
        return "typescript" if self.language == "typed" else "ecmascript"

    @property
    def tsx(self) -> bool:
        return self.component_syntax == "typed"

    @property
    def jsx(self) -> bool:
        return self.component_syntax == "untyped"


@dataclass(frozen=True)
class UnsupportedDialect:
    """Module-flavoured extension combined with component syntax (``.mtsx``, ``.cjsx``...)."""

    extension: str


def parse_dialect(filename: str) -> Dialect | UnsupportedDialect | None:
    """Classify ``filename`` by extension.

    Returns ``None`` for files that are not script modules at all.
    """
    match = _EXTENSION_RE.search(filename)
    if match is None:
        return None
    module_marker, legacy_marker, language_marker, component_marker = match.groups()
    if (module_marker or legacy_marker) and component_marker:
        return UnsupportedDialect(extension=match.group(0))
    language: Language = "typed" if language_marker == "ts" else "untyped"
    component: ComponentSyntax = "none"
    if component_marker:
        component = language
    return Dialect(
        module_system="esm" if module_marker else "classic",
        legacy_module="legacy" if legacy_marker else "plain",
        language=language,
        component_syntax=component,
    )
