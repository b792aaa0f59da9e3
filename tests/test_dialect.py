from __future__ import annotations

import pytest

from plugbuild.transform.dialect import Dialect, UnsupportedDialect, parse_dialect


def test_typed_module_selects_typescript_parser() -> None:
    dialect = parse_dialect("src/index.ts")
    assert dialect == Dialect(
        module_system="classic",
        legacy_module="plain",
        language="typed",
        component_syntax="none",
    )
    assert isinstance(dialect, Dialect)
    assert dialect.parser_syntax == "typescript"
    assert dialect.tsx is False
    assert dialect.jsx is False


def test_component_syntax_follows_language() -> None:
    typed = parse_dialect("App.tsx")
    untyped = parse_dialect("App.jsx")
    assert isinstance(typed, Dialect) and isinstance(untyped, Dialect)
    assert typed.component_syntax == "typed"
    assert typed.tsx is True and typed.jsx is False
    assert untyped.component_syntax == "untyped"
    assert untyped.parser_syntax == "ecmascript"
    assert untyped.jsx is True and untyped.tsx is False


@pytest.mark.parametrize(
    "filename, module_system, legacy_module, language",
    [
        ("a.mjs", "esm", "plain", "untyped"),
        ("a.mts", "esm", "plain", "typed"),
        ("a.cjs", "classic", "legacy", "untyped"),
        ("a.cts", "classic", "legacy", "typed"),
        ("a.js", "classic", "plain", "untyped"),
    ],
)
def test_module_markers(
    filename: str, module_system: str, legacy_module: str, language: str
) -> None:
    dialect = parse_dialect(filename)
    assert isinstance(dialect, Dialect)
    assert dialect.module_system == module_system
    assert dialect.legacy_module == legacy_module
    assert dialect.language == language
    assert dialect.component_syntax == "none"


@pytest.mark.parametrize("extension", [".mtsx", ".mjsx", ".ctsx", ".cjsx"])
def test_marker_with_component_syntax_is_unsupported(extension: str) -> None:
    assert parse_dialect(f"widget{extension}") == UnsupportedDialect(extension=extension)


@pytest.mark.parametrize("filename", ["data.json", "style.css", "README", "index.tsy"])
def test_non_script_files_have_no_dialect(filename: str) -> None:
    assert parse_dialect(filename) is None
