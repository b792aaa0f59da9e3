from __future__ import annotations

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass, field

RESERVED_NAMESPACE_RE = re.compile(r"^@(?:vendetta|bunny)")

DEFAULT_GLOBALS: Mapping[str, str] = {
    "react": "window.React",
}

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][\w$]*$")


def namespace_global(specifier: str) -> str:
    """``@vendetta/metro/common`` -> ``vendetta.metro.common``."""
    return specifier[1:].replace("/", ".")


def render_global_path(path: str) -> str:
    """Render a dotted global path as a JavaScript member expression."""
    head, *rest = path.split(".")
    if not _IDENTIFIER_RE.match(head):
        raise ValueError(f"invalid global root {head!r} in {path!r}")
    parts = [head]
    for segment in rest:
        if _IDENTIFIER_RE.match(segment):
            parts.append(f".{segment}")
        else:
            parts.append(f"[{json.dumps(segment)}]")
    return "".join(parts)


@dataclass(frozen=True)
class ExternalsPolicy:
    table: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_GLOBALS))

    def global_for(self, specifier: str) -> str | None:
        if RESERVED_NAMESPACE_RE.match(specifier):
            return namespace_global(specifier)
        return self.table.get(specifier)


def default_policy(extra: Mapping[str, str] | None = None) -> ExternalsPolicy:
    """Merge configured globals under the fixed defaults, which always win."""
    table = dict(extra or {})
    table.update(DEFAULT_GLOBALS)
    return ExternalsPolicy(table=table)
