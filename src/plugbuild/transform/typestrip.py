"""Erase TypeScript-only syntax in place, leaving plain JavaScript.

Only constructs that vanish without code generation are handled. Enums,
namespaces, decorators and constructor parameter properties need real
lowering and are reported as errors.
"""

from __future__ import annotations

import logging

from tree_sitter import Node

from plugbuild.errors import TransformError
from plugbuild.syntax import ParsedModule, apply_edits, child_of_type, has_token

logger = logging.getLogger(__name__)

_ERASED_NODES = frozenset(
    {
        "type_annotation",
        "type_parameters",
        "type_arguments",
        "asserts_annotation",
        "type_predicate_annotation",
        "implements_clause",
        "index_signature",
        "method_signature",
        "abstract_method_signature",
        "accessibility_modifier",
        "override_modifier",
    }
)
_ERASED_STATEMENTS = frozenset(
    {
        "interface_declaration",
        "type_alias_declaration",
        "ambient_declaration",
        "function_signature",
    }
)
_UNSUPPORTED = {
    "enum_declaration": "enums",
    "internal_module": "namespaces",
    "module": "namespaces",
    "decorator": "decorators",
}
_PARAMETERS = frozenset({"required_parameter", "optional_parameter"})
_MARKED_MEMBERS = frozenset(
    {"optional_parameter", "public_field_definition", "method_definition", "variable_declarator"}
)


def strip_types(parsed: ParsedModule, module_id: str) -> str:
    return _TypeEraser(parsed, module_id).run()


class _TypeEraser:
    def __init__(self, parsed: ParsedModule, module_id: str) -> None:
        self.parsed = parsed
        self.module_id = module_id
        self.edits: list[tuple[int, int, str]] = []

    def run(self) -> str:
        values = self._value_names()
        stack = [self.parsed.root]
        while stack:
            node = stack.pop()
            follow = self._visit(node, values)
            stack.extend(reversed(follow))
        logger.debug("types erased module=%s edits=%s", self.module_id, len(self.edits))
        return apply_edits(self.parsed.source, self.edits)

    def _fail(self, message: str, node: Node) -> TransformError:
        row, column = node.start_point
        return TransformError(
            f"{message} at line {row + 1} column {column + 1}", module=self.module_id
        )

    def _erase(self, node: Node) -> None:
        self.edits.append((node.start_byte, node.end_byte, ""))

    def _erase_list_item(self, node: Node) -> None:
        following = node.next_sibling
        end = node.end_byte
        if following is not None and following.type == ",":
            end = following.end_byte
        self.edits.append((node.start_byte, end, ""))

    def _visit(self, node: Node, values: set[str]) -> list[Node]:
        kind = node.type
        parent = node.parent
        if kind in _UNSUPPORTED:
            raise self._fail(f"{_UNSUPPORTED[kind]} require the node engine", node)
        if kind in _ERASED_STATEMENTS:
            owner = parent if parent is not None and parent.type == "export_statement" else node
            self._erase(owner)
            return []
        if kind in {"accessibility_modifier", "override_modifier"} and parent is not None:
            if parent.type in _PARAMETERS:
                raise self._fail("parameter properties require the node engine", node)
        if kind in _ERASED_NODES:
            self._erase(node)
            return []
        if kind == "import_statement":
            self._import_statement(node, values)
            return []
        if kind == "export_statement":
            if has_token(node, "type"):
                self._erase(node)
                return []
            clause = child_of_type(node, "export_clause")
            if clause is not None:
                for specifier in clause.named_children:
                    if specifier.type == "export_specifier" and has_token(specifier, "type"):
                        self._erase_list_item(specifier)
        if kind in {"as_expression", "satisfies_expression"}:
            expression = node.named_children[0]
            self.edits.append((expression.end_byte, node.end_byte, ""))
            return [expression]
        if kind == "non_null_expression":
            self._erase(node.children[-1])
            return [node.children[0]]
        if kind in _PARAMETERS:
            if has_token(node, "readonly"):
                raise self._fail("parameter properties require the node engine", node)
            pattern = node.child_by_field_name("pattern")
            if pattern is not None and pattern.type == "this":
                self._erase_list_item(node)
                return []
        if kind == "public_field_definition" and (
            has_token(node, "declare") or has_token(node, "abstract")
        ):
            self._erase(node)
            return []
        if kind in _MARKED_MEMBERS or kind == "public_field_definition":
            for child in node.children:
                if not child.is_named and child.type in {"?", "!", "readonly"}:
                    self._erase(child)
        if kind in {"abstract_class_declaration", "abstract_class"}:
            for child in node.children:
                if not child.is_named and child.type == "abstract":
                    self._erase(child)
        return list(node.children)

    def _import_statement(self, node: Node, values: set[str]) -> None:
        if has_token(node, "type"):
            self._erase(node)
            return
        clause = child_of_type(node, "import_clause")
        if clause is None:
            required = child_of_type(node, "import_require_clause")
            if required is not None:
                self._import_require(node, required)
            return
        source = node.child_by_field_name("source")
        if source is None:
            return
        parts: list[str] = []
        named: list[str] = []
        dropped = False
        for child in clause.named_children:
            if child.type == "identifier":
                if self.parsed.text(child) in values:
                    parts.append(self.parsed.text(child))
                else:
                    dropped = True
            elif child.type == "namespace_import":
                local = child_of_type(child, "identifier")
                if local is not None and self.parsed.text(local) in values:
                    parts.append(self.parsed.text(child))
                else:
                    dropped = True
            elif child.type == "named_imports":
                for specifier in child.named_children:
                    if specifier.type != "import_specifier":
                        continue
                    local = specifier.child_by_field_name("alias")
                    if local is None:
                        local = specifier.child_by_field_name("name")
                    if has_token(specifier, "type") or local is None:
                        dropped = True
                    elif self.parsed.text(local) in values:
                        named.append(self.parsed.text(specifier))
                    else:
                        dropped = True
        if not dropped:
            return
        if named:
            parts.append("{ " + ", ".join(named) + " }")
        if not parts:
            # every binding is type-only, so the import disappears
            self._erase(node)
            return
        replacement = f"import {', '.join(parts)} from {self.parsed.text(source)};"
        self.edits.append((node.start_byte, node.end_byte, replacement))

    def _import_require(self, node: Node, clause: Node) -> None:
        local = child_of_type(clause, "identifier")
        source = child_of_type(clause, "string")
        if local is None or source is None:
            raise self._fail("unsupported import assignment", node)
        replacement = f"var {self.parsed.text(local)}=require({self.parsed.text(source)});"
        self.edits.append((node.start_byte, node.end_byte, replacement))

    def _value_names(self) -> set[str]:
        """Names read as values anywhere outside imports and type positions."""
        names: set[str] = set()
        skipped = _ERASED_NODES | _ERASED_STATEMENTS | {"import_statement"}
        stack = [self.parsed.root]
        while stack:
            node = stack.pop()
            if node.type in skipped:
                continue
            if node.type in {"identifier", "shorthand_property_identifier"}:
                names.add(self.parsed.text(node))
            stack.extend(node.children)
        return names
