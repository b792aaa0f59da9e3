from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from plugbuild.errors import ResolutionError

logger = logging.getLogger(__name__)

SCRIPT_EXTENSIONS: tuple[str, ...] = (
    ".ts",
    ".tsx",
    ".mts",
    ".cts",
    ".js",
    ".jsx",
    ".mjs",
    ".cjs",
)
MODULE_EXTENSIONS: tuple[str, ...] = (*SCRIPT_EXTENSIONS, ".json")
EXPORT_CONDITIONS: tuple[str, ...] = ("import", "module", "browser", "default", "require")


def split_package(specifier: str) -> tuple[str, str]:
    """Split a bare specifier into package name and subpath (``""`` for the root)."""
    parts = specifier.split("/")
    if specifier.startswith("@"):
        if len(parts) < 2 or not parts[1]:
            raise ResolutionError(f"invalid scoped package specifier {specifier!r}")
        return "/".join(parts[:2]), "/".join(parts[2:])
    return parts[0], "/".join(parts[1:])


class ModuleResolver:
    """Resolve import specifiers to files the way Node resolution does."""

    def resolve(self, specifier: str, importer: Path) -> Path:
        if not specifier:
            raise ResolutionError("empty import specifier", module=str(importer))
        if specifier.startswith(("./", "../")) or specifier in {".", ".."}:
            resolved = self._resolve_path(importer.parent / specifier)
        elif specifier.startswith("/"):
            raise ResolutionError(
                f"absolute import {specifier!r} is not supported", module=str(importer)
            )
        else:
            resolved = self._resolve_package(specifier, importer)
        if resolved is None:
            raise ResolutionError(f"cannot resolve import {specifier!r}", module=str(importer))
        if resolved.suffix not in MODULE_EXTENSIONS:
            raise ResolutionError(
                f"unsupported module type {resolved.suffix or '(none)'} for {specifier!r}",
                module=str(importer),
            )
        resolved = resolved.resolve()
        logger.debug("resolved specifier=%s importer=%s path=%s", specifier, importer, resolved)
        return resolved

    def _resolve_path(self, base: Path) -> Path | None:
        if base.is_file():
            return base
        for ext in MODULE_EXTENSIONS:
            candidate = base.with_name(base.name + ext)
            if candidate.is_file():
                return candidate
        if base.is_dir():
            package_entry = self._package_entry(base)
            if package_entry is not None:
                return package_entry
            for ext in MODULE_EXTENSIONS:
                candidate = base / f"index{ext}"
                if candidate.is_file():
                    return candidate
        return None

    def _resolve_package(self, specifier: str, importer: Path) -> Path | None:
        name, subpath = split_package(specifier)
        for directory in _lookup_dirs(importer):
            package_dir = directory / "node_modules" / name
            if not package_dir.is_dir():
                continue
            if subpath:
                exported = self._exports_target(package_dir, f"./{subpath}")
                if exported is not None:
                    return self._resolve_path(package_dir / exported)
                return self._resolve_path(package_dir / subpath)
            return self._resolve_path(package_dir)
        return None

    def _package_entry(self, package_dir: Path) -> Path | None:
        package_json = _read_package_json(package_dir)
        if package_json is None:
            return None
        exported = _select_export(package_json.get("exports"), ".")
        if exported is not None:
            return self._resolve_path(package_dir / exported)
        for key in ("module", "main"):
            value = package_json.get(key)
            if isinstance(value, str) and value.strip("./"):
                resolved = self._resolve_path(package_dir / value)
                if resolved is not None:
                    return resolved
        return None

    def _exports_target(self, package_dir: Path, subpath: str) -> str | None:
        package_json = _read_package_json(package_dir)
        if package_json is None:
            return None
        return _select_export(package_json.get("exports"), subpath)


def _lookup_dirs(importer: Path) -> list[Path]:
    start = importer.parent.resolve()
    return [start, *start.parents]


def _read_package_json(package_dir: Path) -> dict[str, Any] | None:
    path = package_dir / "package.json"
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ResolutionError(f"unreadable package.json at {path}: {exc}") from exc
    return data if isinstance(data, dict) else None


def _select_export(exports: Any, subpath: str) -> str | None:
    if exports is None:
        return None
    if isinstance(exports, (str, list)) or (
        isinstance(exports, dict) and not any(key.startswith(".") for key in exports)
    ):
        return _select_condition(exports) if subpath == "." else None
    if isinstance(exports, dict):
        return _select_condition(exports.get(subpath))
    return None


def _select_condition(target: Any) -> str | None:
    if isinstance(target, str):
        return target
    if isinstance(target, list):
        for item in target:
            selected = _select_condition(item)
            if selected is not None:
                return selected
        return None
    if isinstance(target, dict):
        for condition in EXPORT_CONDITIONS:
            if condition in target:
                selected = _select_condition(target[condition])
                if selected is not None:
                    return selected
    return None
