from __future__ import annotations

import json
from pathlib import Path

import pytest

from plugbuild.bundle.resolve import ModuleResolver, split_package
from plugbuild.errors import ResolutionError


def _write(path: Path, text: str = "") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


def test_relative_import_tries_extensions(tmp_path: Path) -> None:
    importer = _write(tmp_path / "src" / "index.ts")
    target = _write(tmp_path / "src" / "util.ts")
    _write(tmp_path / "src" / "util.js")
    assert ModuleResolver().resolve("./util", importer) == target.resolve()


def test_relative_import_with_explicit_extension(tmp_path: Path) -> None:
    importer = _write(tmp_path / "src" / "index.js")
    target = _write(tmp_path / "lib" / "helpers.mjs")
    assert ModuleResolver().resolve("../lib/helpers.mjs", importer) == target.resolve()


def test_directory_import_uses_index(tmp_path: Path) -> None:
    importer = _write(tmp_path / "index.js")
    target = _write(tmp_path / "components" / "index.tsx")
    assert ModuleResolver().resolve("./components", importer) == target.resolve()


def test_package_lookup_walks_up_to_node_modules(tmp_path: Path) -> None:
    importer = _write(tmp_path / "src" / "deep" / "index.js")
    package_dir = tmp_path / "node_modules" / "left-pad"
    _write(package_dir / "package.json", json.dumps({"main": "lib/main.js"}))
    target = _write(package_dir / "lib" / "main.js")
    assert ModuleResolver().resolve("left-pad", importer) == target.resolve()


def test_package_exports_prefer_import_condition(tmp_path: Path) -> None:
    importer = _write(tmp_path / "index.js")
    package_dir = tmp_path / "node_modules" / "dual"
    exports = {".": {"require": "./cjs.js", "import": "./esm.js"}}
    _write(package_dir / "package.json", json.dumps({"exports": exports, "main": "cjs.js"}))
    _write(package_dir / "cjs.js")
    target = _write(package_dir / "esm.js")
    assert ModuleResolver().resolve("dual", importer) == target.resolve()


def test_package_module_field_before_main(tmp_path: Path) -> None:
    importer = _write(tmp_path / "index.js")
    package_dir = tmp_path / "node_modules" / "modern"
    _write(package_dir / "package.json", json.dumps({"module": "es/index.js", "main": "x.js"}))
    _write(package_dir / "x.js")
    target = _write(package_dir / "es" / "index.js")
    assert ModuleResolver().resolve("modern", importer) == target.resolve()


def test_package_without_manifest_falls_back_to_index(tmp_path: Path) -> None:
    importer = _write(tmp_path / "index.js")
    target = _write(tmp_path / "node_modules" / "plain" / "index.js")
    assert ModuleResolver().resolve("plain", importer) == target.resolve()


def test_scoped_package_subpath_export(tmp_path: Path) -> None:
    importer = _write(tmp_path / "index.js")
    package_dir = tmp_path / "node_modules" / "@scope" / "kit"
    exports = {".": "./index.js", "./extra": {"default": "./dist/extra.js"}}
    _write(package_dir / "package.json", json.dumps({"exports": exports}))
    target = _write(package_dir / "dist" / "extra.js")
    assert ModuleResolver().resolve("@scope/kit/extra", importer) == target.resolve()


def test_split_package() -> None:
    assert split_package("react") == ("react", "")
    assert split_package("lodash/fp/map") == ("lodash", "fp/map")
    assert split_package("@scope/kit") == ("@scope/kit", "")
    assert split_package("@scope/kit/extra") == ("@scope/kit", "extra")
    with pytest.raises(ResolutionError):
        split_package("@scope")


def test_unresolved_import_raises(tmp_path: Path) -> None:
    importer = _write(tmp_path / "index.js")
    with pytest.raises(ResolutionError, match="cannot resolve import './missing'"):
        ModuleResolver().resolve("./missing", importer)
    with pytest.raises(ResolutionError, match="cannot resolve import 'nowhere'"):
        ModuleResolver().resolve("nowhere", importer)


def test_absolute_import_is_rejected(tmp_path: Path) -> None:
    importer = _write(tmp_path / "index.js")
    with pytest.raises(ResolutionError, match="absolute import"):
        ModuleResolver().resolve("/etc/passwd", importer)


def test_unsupported_module_type(tmp_path: Path) -> None:
    importer = _write(tmp_path / "index.js")
    _write(tmp_path / "style.css", "body {}")
    with pytest.raises(ResolutionError, match="unsupported module type .css"):
        ModuleResolver().resolve("./style.css", importer)
