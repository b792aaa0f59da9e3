from __future__ import annotations

from pathlib import Path

import pytest

from plugbuild.config import BuildConfig, Paths
from plugbuild.engines import resolve_engine_name
from plugbuild.engines.node import NodeEngine
from plugbuild.engines.stub import StubEngine
from plugbuild.errors import TransformError
from plugbuild.orchestrator import select_engine
from plugbuild.transform.dialect import Dialect, parse_dialect
from plugbuild.transform.options import TransformOptions, build_options


def _config(tmp_path: Path, engine: str) -> BuildConfig:
    paths = Paths(root=tmp_path, units_dir=tmp_path / "plugins", out_dir=tmp_path / "dist")
    return BuildConfig(paths=paths, engine=engine)


def test_resolve_engine_name() -> None:
    assert resolve_engine_name(None) == "node"
    assert resolve_engine_name("") == "node"
    assert resolve_engine_name(" Stub ") == "stub"
    assert resolve_engine_name("node") == "node"
    assert resolve_engine_name("swc") == "node"
    assert resolve_engine_name("babel") == "unknown"


def test_select_engine_node(tmp_path: Path) -> None:
    engine = select_engine(_config(tmp_path, "node"))
    assert isinstance(engine, NodeEngine)


def test_select_engine_stub(tmp_path: Path) -> None:
    assert isinstance(select_engine(_config(tmp_path, "stub")), StubEngine)


def test_select_engine_rejects_unknown_names(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="unknown engine: 'nodee'"):
        select_engine(_config(tmp_path, "nodee"))


def _options(filename: str) -> TransformOptions:
    dialect = parse_dialect(filename)
    assert isinstance(dialect, Dialect)
    return build_options(filename, dialect)


def test_stub_engine_passes_code_through() -> None:
    code = "export const a = () => 1;\n"
    result = StubEngine().transform(code, _options("index.js"))
    assert result.code == code
    assert result.warnings == []


def test_stub_engine_rejects_component_syntax() -> None:
    with pytest.raises(TransformError, match="requires the node engine") as excinfo:
        StubEngine().transform("const el = <div />;", _options("App.jsx"))
    assert excinfo.value.module == "App.jsx"


def test_stub_engine_minify_compacts() -> None:
    assert StubEngine().minify("var  a = 1 ; // c\n").code == "var a=1;\n"


def test_default_config_selects_node_engine(tmp_path: Path) -> None:
    paths = Paths(root=tmp_path, units_dir=tmp_path / "plugins", out_dir=tmp_path / "dist")
    assert isinstance(select_engine(BuildConfig(paths=paths)), NodeEngine)


@pytest.mark.parametrize(
    "source",
    ["export const x = ;\nlet = = 3;\n", "function broken( {", "if (a) { else }"],
)
def test_stub_engine_rejects_invalid_programs(source: str) -> None:
    with pytest.raises(TransformError, match="syntax error at line") as excinfo:
        StubEngine().transform(source, _options("index.js"))
    assert excinfo.value.module == "index.js"


def test_stub_engine_rejects_jsx_in_plain_modules() -> None:
    with pytest.raises(TransformError, match="requires the node engine"):
        StubEngine().transform("export const el = <div />;\n", _options("index.js"))


def test_stub_engine_erases_types() -> None:
    source = (
        "interface Props { size: number }\n"
        "type Size = Props['size'];\n"
        "declare const host: string;\n"
        "export abstract class Base<T> implements Props {\n"
        "  private readonly size: number = 1;\n"
        "  declare label: string;\n"
        "  abstract render(): void;\n"
        "  get value(): T | undefined { return undefined; }\n"
        "}\n"
        "let later!: Size;\n"
        "export function area(this: Base<number>, side?: number): number {\n"
        "  return (side as number) * later!;\n"
        "}\n"
    )
    result = StubEngine().transform(source, _options("shapes.ts"))
    assert result.code == (
        "\n"
        "\n"
        "\n"
        "export  class Base  {\n"
        "    size = 1;\n"
        "  ;\n"
        "  ;\n"
        "  get value() { return undefined; }\n"
        "}\n"
        "let later;\n"
        "export function area( side) {\n"
        "  return (side) * later;\n"
        "}\n"
    )


@pytest.mark.parametrize(
    "source, feature",
    [
        ("enum Color { Red }\n", "enums"),
        ("namespace NS { export const a = 1; }\n", "namespaces"),
        ("class A { constructor(private a: number) {} }\n", "parameter properties"),
    ],
)
def test_stub_engine_rejects_constructs_that_need_lowering(source: str, feature: str) -> None:
    with pytest.raises(TransformError, match=f"{feature} require the node engine"):
        StubEngine().transform(source, _options("index.ts"))


def test_stub_engine_drops_type_only_imports() -> None:
    source = (
        'import { a, type B } from "./a";\n'
        'import { C } from "./c";\n'
        'import D, { e } from "./d";\n'
        "const value: C = a(e);\n"
    )
    result = StubEngine().transform(source, _options("index.ts"))
    assert result.code == (
        'import { a } from "./a";\n\nimport { e } from "./d";\nconst value = a(e);\n'
    )
