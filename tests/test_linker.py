from __future__ import annotations

import pytest

from plugbuild.bundle.linker import link_module, member_access, string_value
from plugbuild.errors import TransformError

ESM_MARKER = 'Object.defineProperty(exports,"__esModule",{value:true});\n'


def test_named_and_renamed_imports() -> None:
    linked = link_module('import { a, b as c } from "./dep";\nuse(a, c);\n', "index.js")
    assert linked.is_esm is True
    assert linked.specifiers == ["./dep"]
    assert linked.code == (
        ESM_MARKER + 'var __imp0=require("./dep");\n' + "\nuse(__imp0.a, __imp0.b);\n"
    )


def test_default_namespace_and_side_effect_imports() -> None:
    source = (
        'import "./setup";\n'
        'import React, { useState } from "react";\n'
        'import * as utils from "./utils";\n'
        "export const view = () => [React.version, useState, utils];\n"
    )
    linked = link_module(source, "index.js")
    assert linked.specifiers == ["./setup", "react", "./utils"]
    assert 'require("./setup");\nvar __imp0=require("react");\n' in linked.code
    assert 'var __imp1=require("./utils"),utils=__namespace(__imp1);' in linked.code
    assert "[__default(__imp0).version, __imp0.useState, utils]" in linked.code


def test_imported_bindings_stay_live() -> None:
    source = (
        'import { count, inc } from "./counter";\n'
        "export function run() { inc(); return count; }\n"
    )
    linked = link_module(source, "index.js")
    assert "function run() { (0,__imp0.inc)(); return __imp0.count; }" in linked.code


def test_imports_are_hoisted_above_the_body() -> None:
    source = (
        "const v = helper();\n"
        'import { helper } from "./h";\n'
        "export const value = v;\n"
    )
    linked = link_module(source, "index.js")
    required = linked.code.index('var __imp0=require("./h");')
    assert required < linked.code.index("const v = (0,__imp0.helper)();")


def test_local_declarations_shadow_imports() -> None:
    source = (
        'import { value } from "./dep";\n'
        "function f(value) { return value; }\n"
        "const g = () => { const value = 2; return value; };\n"
        "const h = ({ value }) => value;\n"
        "try { f(); } catch (value) { g(value); }\n"
        "export const read = () => value;\n"
    )
    linked = link_module(source, "index.js")
    assert "function f(value) { return value; }" in linked.code
    assert "const g = () => { const value = 2; return value; };" in linked.code
    assert "const h = ({ value }) => value;" in linked.code
    assert "catch (value) { g(value); }" in linked.code
    assert "const read = () => __imp0.value;" in linked.code


def test_shorthand_property_and_member_names() -> None:
    source = (
        'import { a } from "./dep";\n'
        "export const o = { a, b: obj.a, a2: a };\n"
    )
    linked = link_module(source, "index.js")
    assert "{ a:__imp0.a, b: obj.a, a2: __imp0.a }" in linked.code


def test_default_import_in_call_and_new_positions() -> None:
    source = 'import Foo from "./foo";\nexport const x = new Foo();\nexport const y = Foo(1);\n'
    linked = link_module(source, "index.js")
    assert "const x = new (__default(__imp0))();" in linked.code
    assert "const y = __default(__imp0)(1);" in linked.code


def test_type_only_imports_and_exports_are_removed() -> None:
    source = (
        'import type { Props } from "./types";\n'
        'export type { Props } from "./types";\n'
        "export interface Options { verbose: boolean }\n"
    )
    linked = link_module(source, "index.mtsx", grammar="tsx")
    assert linked.specifiers == []
    assert "require" not in linked.code
    assert "interface" not in linked.code
    assert "export " not in linked.code


def test_declaration_exports_become_getters() -> None:
    source = (
        "export const a = 1, b = 2;\n"
        "export function f() {}\n"
        "export default class Foo {}\n"
    )
    linked = link_module(source, "index.js")
    assert linked.code == (
        ESM_MARKER
        + '__export(exports,{"a":function(){return a},"b":function(){return b},'
        + '"f":function(){return f},"default":function(){return Foo}});\n'
        + "const a = 1, b = 2;\nfunction f() {}\nclass Foo {}\n"
    )


def test_destructured_exports() -> None:
    linked = link_module("export const { a, b: c, ...rest } = source();\n", "index.js")
    assert '"a":function(){return a}' in linked.code
    assert '"c":function(){return c}' in linked.code
    assert '"rest":function(){return rest}' in linked.code
    assert '"b":' not in linked.code


def test_default_expression_export() -> None:
    linked = link_module("export default { name: 'demo' };\n", "index.js")
    assert "var __default_export={ name: 'demo' };" in linked.code
    assert '"default":function(){return __default_export}' in linked.code


def test_anonymous_default_function_export() -> None:
    linked = link_module("export default function () { return 1 }\n", "index.js")
    assert "var __default_export=function () { return 1 };" in linked.code


def test_named_async_default_export() -> None:
    linked = link_module("export default async function load() {}\n", "index.js")
    assert "async function load() {}" in linked.code
    assert '"default":function(){return load}' in linked.code


def test_local_export_list() -> None:
    linked = link_module("const a = 1;\nexport { a as b, a };\n", "index.js")
    assert '"b":function(){return a}' in linked.code
    assert '"a":function(){return a}' in linked.code
    assert "export " not in linked.code


def test_exported_import_reads_through_the_module() -> None:
    linked = link_module('import { a } from "./dep";\nexport { a as b };\n', "index.js")
    assert '"b":function(){return __imp0.a}' in linked.code


def test_re_exports() -> None:
    source = (
        'export { x as y, default as z } from "./dep";\n'
        'export * from "./all";\n'
        'export * as ns from "./ns";\n'
    )
    linked = link_module(source, "index.js")
    assert linked.specifiers == ["./dep", "./all", "./ns"]
    assert 'var __re0=require("./dep");' in linked.code
    assert '"y":function(){return __re0.x}' in linked.code
    assert '"z":function(){return __default(__re0)}' in linked.code
    assert '__exportStar(exports,require("./all"));' in linked.code
    assert 'var __re1=require("./ns");' in linked.code
    assert '"ns":function(){return __namespace(__re1)}' in linked.code


def test_commonjs_module_is_left_alone() -> None:
    source = 'const dep = require("./dep");\nmodule.exports = { dep };\n'
    linked = link_module(source, "lib.cjs")
    assert linked.is_esm is False
    assert linked.specifiers == ["./dep"]
    assert linked.code == source


def test_dynamic_import_routes_through_registry() -> None:
    linked = link_module('const load = () => import("./lazy");\n', "index.js")
    assert linked.specifiers == ["./lazy"]
    assert '__import("./lazy")' in linked.code
    assert linked.warnings == []


def test_dynamic_import_with_expression_warns() -> None:
    linked = link_module("const load = (name) => import(name);\n", "index.js")
    assert linked.specifiers == []
    assert "__import(name)" in linked.code
    assert len(linked.warnings) == 1
    assert "non-literal" in linked.warnings[0]


def test_nested_and_member_imports_are_not_declarations() -> None:
    source = "const meta = import.meta;\nobj.import(1);\nif (x) { run(); }\n"
    linked = link_module(source, "index.js")
    assert linked.code == source
    assert linked.is_esm is False


@pytest.mark.parametrize(
    "source",
    ["import { a from './a';", "export const = 1;", "export const x = ;\nlet = = 3;\n"],
)
def test_syntax_error_is_transform_error(source: str) -> None:
    with pytest.raises(TransformError, match="syntax error") as excinfo:
        link_module(source, "broken.js")
    assert excinfo.value.module == "broken.js"


def test_member_access() -> None:
    assert member_access("__imp0", "value") == "__imp0.value"
    assert member_access("__imp0", "kebab-case") == '__imp0["kebab-case"]'


def test_string_value_decodes_escapes() -> None:
    assert string_value('"./dep"') == "./dep"
    assert string_value("'\\x41\\u0042\\u{43}'") == "ABC"
