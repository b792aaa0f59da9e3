from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Literal

from plugbuild.bundle.externals import render_global_path

WarningPolicy = Literal["discard", "log"]

ARTIFACT_NAME = "index.js"
MANIFEST_NAME = "manifest.json"


@dataclass(frozen=True)
class Paths:
    root: Path
    units_dir: Path
    out_dir: Path


@dataclass(frozen=True)
class BuildConfig:
    paths: Paths
    engine: str = "node"
    artifact_name: str = ARTIFACT_NAME
    warnings: WarningPolicy = "discard"
    fail_fast: bool = True
    extra_globals: dict[str, str] = field(default_factory=dict)
    swc_bin: str = "swc"
    esbuild_bin: str = "esbuild"

    def with_overrides(self, **changes: object) -> BuildConfig:
        updates = {key: value for key, value in changes.items() if value is not None}
        return replace(self, **updates)  # type: ignore[arg-type]


def default_paths(root: Path | None = None) -> Paths:
    base = root or Path.cwd()
    units_env = os.getenv("PLUGBUILD_UNITS_DIR", "").strip()
    out_env = os.getenv("PLUGBUILD_OUT_DIR", "").strip()
    units_dir = Path(units_env) if units_env else base / "plugins"
    out_dir = Path(out_env) if out_env else base / "dist"
    return Paths(root=base, units_dir=units_dir, out_dir=out_dir)


def parse_globals(value: str | None) -> dict[str, str]:
    """Parse ``pkg=global.path`` pairs separated by commas."""
    mapping: dict[str, str] = {}
    if not value:
        return mapping
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        name, sep, target = item.partition("=")
        name = name.strip()
        target = target.strip()
        if not sep or not name or not target:
            raise ValueError(f"invalid global mapping: {item!r} (expected pkg=global.path)")
        try:
            render_global_path(target)
        except ValueError as exc:
            raise ValueError(f"invalid global mapping: {item!r} ({exc})") from exc
        mapping[name] = target
    return mapping


def resolve_warning_policy(value: str | None) -> WarningPolicy:
    normalized = (value or "").strip().lower()
    if normalized in {"", "discard", "quiet", "off"}:
        return "discard"
    if normalized in {"log", "warn", "verbose"}:
        return "log"
    raise ValueError(f"invalid warning policy: {value}")


def default_config(root: Path | None = None) -> BuildConfig:
    engine_env = os.getenv("PLUGBUILD_ENGINE", "").strip()
    return BuildConfig(
        paths=default_paths(root),
        engine=engine_env or "node",
        warnings=resolve_warning_policy(os.getenv("PLUGBUILD_WARNINGS")),
        extra_globals=parse_globals(os.getenv("PLUGBUILD_GLOBALS")),
        swc_bin=os.getenv("PLUGBUILD_SWC_BIN", "").strip() or "swc",
        esbuild_bin=os.getenv("PLUGBUILD_ESBUILD_BIN", "").strip() or "esbuild",
    )
