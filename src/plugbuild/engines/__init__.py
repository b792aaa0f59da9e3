from __future__ import annotations

from typing import Literal

EngineName = Literal["stub", "node", "unknown"]


def resolve_engine_name(value: str | None) -> EngineName:
    if value is None:
        return "node"
    normalized = value.strip().lower()
    if normalized in {"", "node", "swc", "nodejs"}:
        return "node"
    if normalized == "stub":
        return "stub"
    return "unknown"
