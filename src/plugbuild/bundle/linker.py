"""Rewrite one module into a registry function body.

Each bundled module runs as ``function(require, module, exports, __import)``.
Static imports are hoisted to ``require`` calls at the top of the body, and
every reference to an imported binding reads through the required module
object, so imports stay live and are usable before the ``import`` line.
Export declarations become getters on ``exports`` installed before the body
runs, and dynamic ``import()`` becomes ``__import()``, which resolves through
the same registry.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field

from tree_sitter import Node

from plugbuild.errors import TransformError
from plugbuild.syntax import (
    Grammar,
    ParsedModule,
    apply_edits,
    child_of_type,
    has_token,
    node_key,
    parse_module,
    require_valid,
    same_node,
)

logger = logging.getLogger(__name__)

DEFAULT_EXPORT_VAR = "__default_export"
ESM_MARKER = 'Object.defineProperty(exports,"__esModule",{value:true});'

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][\w$]*$")
_ESCAPE_RE = re.compile(r"\\(u\{[0-9a-fA-F]+\}|u[0-9a-fA-F]{4}|x[0-9a-fA-F]{2}|.)", re.S)
_SIMPLE_ESCAPES = {"n": "\n", "r": "\r", "t": "\t", "b": "\b", "f": "\f", "v": "\v", "0": "\0"}

_FUNCTION_SCOPES = frozenset(
    {
        "function",
        "function_expression",
        "function_declaration",
        "generator_function",
        "generator_function_declaration",
        "arrow_function",
        "method_definition",
    }
)
_NAMED_FUNCTION_EXPRESSIONS = frozenset({"function", "function_expression", "generator_function"})
_BLOCK_SCOPES = frozenset({"statement_block", "class_static_block", "switch_body"})
_CLASS_SCOPES = frozenset({"class_declaration", "class"})
_PATTERNS = frozenset(
    {
        "object_pattern",
        "array_pattern",
        "pair_pattern",
        "assignment_pattern",
        "object_assignment_pattern",
        "rest_pattern",
    }
)
_NAMED_DECLARATIONS = frozenset(
    {
        "function_declaration",
        "generator_function_declaration",
        "class_declaration",
        *_NAMED_FUNCTION_EXPRESSIONS,
        "class",
    }
)
_TYPE_DECLARATIONS = frozenset(
    {"interface_declaration", "type_alias_declaration", "ambient_declaration", "function_signature"}
)


@dataclass
class LinkedModule:
    code: str
    specifiers: list[str] = field(default_factory=list)
    is_esm: bool = False
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class _Binding:
    holder: str
    imported: str

    def expression(self) -> str:
        if self.imported == "default":
            return f"__default({self.holder})"
        return member_access(self.holder, self.imported)


def link_module(code: str, module_id: str, *, grammar: Grammar = "javascript") -> LinkedModule:
    parsed = parse_module(code, grammar)
    require_valid(parsed, module_id)
    return _Linker(parsed, module_id).run()


def member_access(target: str, name: str) -> str:
    if _IDENTIFIER_RE.match(name):
        return f"{target}.{name}"
    return f"{target}[{json.dumps(name)}]"


def string_value(literal: str) -> str:
    """Decode a quoted JavaScript string literal."""
    inner = literal[1:-1]
    if "\\" not in inner:
        return inner
    return _ESCAPE_RE.sub(_decode_escape, inner)


def _decode_escape(match: re.Match[str]) -> str:
    body = match.group(1)
    if body.startswith("u{"):
        return chr(int(body[2:-1], 16))
    if body.startswith("u") and len(body) == 5:
        return chr(int(body[1:], 16))
    if body.startswith("x") and len(body) == 3:
        return chr(int(body[1:], 16))
    if body in "\r\n":
        return ""
    return _SIMPLE_ESCAPES.get(body, body)


class _Linker:
    def __init__(self, parsed: ParsedModule, module_id: str) -> None:
        self.parsed = parsed
        self.module_id = module_id
        self.edits: list[tuple[int, int, str]] = []
        self.hoisted: list[str] = []
        self.exports: list[tuple[str, str]] = []
        self.bindings: dict[str, _Binding] = {}
        self.specifiers: list[str] = []
        self.warnings: list[str] = []
        self.is_esm = False
        self._counters: dict[str, int] = {}
        self._handled: set[tuple[int, int, str]] = set()
        self._scopes: dict[tuple[int, int, str], frozenset[str]] = {}

    def run(self) -> LinkedModule:
        statements = self.parsed.root.named_children
        for statement in statements:
            if statement.type == "hash_bang_line":
                self._drop(statement)
            elif statement.type == "import_statement":
                self._import_statement(statement)
        for statement in statements:
            if statement.type == "export_statement":
                self._export_statement(statement)
        self._scan()
        logger.debug(
            "module linked module=%s esm=%s imports=%s exports=%s",
            self.module_id,
            self.is_esm,
            len(self.specifiers),
            len(self.exports),
        )
        return LinkedModule(
            code=self._render(),
            specifiers=self.specifiers,
            is_esm=self.is_esm,
            warnings=self.warnings,
        )

    def _fail(self, message: str, node: Node) -> TransformError:
        row, _ = node.start_point
        return TransformError(f"{message} at line {row + 1}", module=self.module_id)

    def _text(self, node: Node) -> str:
        return self.parsed.text(node)

    def _drop(self, node: Node, replacement: str = "") -> None:
        self.edits.append((node.start_byte, node.end_byte, replacement))
        self._handled.add(node_key(node))

    def _next_name(self, prefix: str) -> str:
        count = self._counters.get(prefix, 0)
        self._counters[prefix] = count + 1
        return f"__{prefix}{count}"

    def _add_specifier(self, specifier: str) -> None:
        if specifier not in self.specifiers:
            self.specifiers.append(specifier)

    def _source(self, statement: Node) -> str:
        source = statement.child_by_field_name("source")
        if source is None:
            raise self._fail("missing module specifier", statement)
        specifier = string_value(self._text(source))
        self._add_specifier(specifier)
        return specifier

    def _name(self, node: Node) -> str:
        text = self._text(node)
        return string_value(text) if node.type == "string" else text

    def _specifier_names(self, specifier: Node) -> tuple[str, str] | None:
        """``(imported, local)`` for ``a as b`` style specifiers; ``None`` when type-only."""
        names: list[str] = []
        for child in specifier.children:
            if not child.is_named and child.type == "type":
                return None
            if child.type in {"as", ",", "comment"}:
                continue
            names.append(self._name(child))
        if not names:
            raise self._fail("empty import or export specifier", specifier)
        return names[0], names[-1]

    # imports

    def _import_statement(self, statement: Node) -> None:
        if has_token(statement, "type"):
            self._drop(statement)
            return
        required = child_of_type(statement, "import_require_clause")
        if required is not None:
            local = child_of_type(required, "identifier")
            source = child_of_type(required, "string")
            if local is None or source is None:
                raise self._fail("unsupported import assignment", statement)
            specifier = string_value(self._text(source))
            self._add_specifier(specifier)
            self._drop(statement, f"var {self._text(local)}=require({json.dumps(specifier)});")
            return
        self.is_esm = True
        specifier = self._source(statement)
        call = f"require({json.dumps(specifier)})"
        self._drop(statement)
        clause = child_of_type(statement, "import_clause")
        if clause is None:
            self.hoisted.append(f"{call};")
            return
        holder = self._next_name("imp")
        declarations = [f"{holder}={call}"]
        for child in clause.named_children:
            if child.type == "identifier":
                self.bindings[self._text(child)] = _Binding(holder, "default")
            elif child.type == "namespace_import":
                local = child_of_type(child, "identifier")
                if local is None:
                    raise self._fail("unsupported namespace import", child)
                declarations.append(f"{self._text(local)}=__namespace({holder})")
            elif child.type == "named_imports":
                for item in child.named_children:
                    if item.type != "import_specifier":
                        continue
                    names = self._specifier_names(item)
                    if names is not None:
                        imported, local_name = names
                        self.bindings[local_name] = _Binding(holder, imported)
        self.hoisted.append("var " + ",".join(declarations) + ";")

    # exports

    def _export_statement(self, statement: Node) -> None:
        self.is_esm = True
        if has_token(statement, "type"):
            self._drop(statement)
            return
        declaration = statement.child_by_field_name("declaration")
        if has_token(statement, "default"):
            self._export_default(statement, declaration)
            return
        if declaration is not None:
            self._export_declaration(statement, declaration)
            return
        clause = child_of_type(statement, "export_clause")
        if statement.child_by_field_name("source") is not None:
            self._re_export(statement, clause)
            return
        if clause is None:
            raise self._fail("unsupported export syntax", statement)
        for item in clause.named_children:
            if item.type != "export_specifier":
                continue
            names = self._specifier_names(item)
            if names is None:
                continue
            local, exported = names
            binding = self.bindings.get(local)
            self.exports.append((exported, binding.expression() if binding else local))
        self._drop(statement)

    def _export_default(self, statement: Node, declaration: Node | None) -> None:
        if declaration is not None and declaration.type in _TYPE_DECLARATIONS:
            self._drop(statement)
            return
        if declaration is not None:
            name = declaration.child_by_field_name("name")
            if name is None:
                raise self._fail("unsupported default export", statement)
            self.edits.append((statement.start_byte, declaration.start_byte, ""))
            self.exports.append(("default", self._text(name)))
            return
        value = statement.child_by_field_name("value")
        if value is None:
            raise self._fail("unsupported default export", statement)
        if value.type in _NAMED_DECLARATIONS and value.child_by_field_name("name") is not None:
            self._export_default(statement, value)
            return
        self.edits.append((statement.start_byte, value.start_byte, f"var {DEFAULT_EXPORT_VAR}="))
        if not self._text(statement).rstrip().endswith(";"):
            self.edits.append((statement.end_byte, statement.end_byte, ";"))
        self.exports.append(("default", DEFAULT_EXPORT_VAR))

    def _export_declaration(self, statement: Node, declaration: Node) -> None:
        kind = declaration.type
        if kind in _TYPE_DECLARATIONS:
            self._drop(statement)
            return
        if kind in {"lexical_declaration", "variable_declaration"}:
            names: list[str] = []
            for declarator in declaration.named_children:
                if declarator.type != "variable_declarator":
                    continue
                target = declarator.child_by_field_name("name")
                if target is not None:
                    names.extend(self._pattern_names(target))
        elif kind in _NAMED_DECLARATIONS or kind == "abstract_class_declaration":
            name = declaration.child_by_field_name("name")
            if name is None:
                raise self._fail("unsupported exported declaration", statement)
            names = [self._text(name)]
        else:
            raise self._fail(f"unsupported exported declaration {kind}", statement)
        self.edits.append((statement.start_byte, declaration.start_byte, ""))
        self.exports.extend((name, name) for name in names)

    def _re_export(self, statement: Node, clause: Node | None) -> None:
        specifier = self._source(statement)
        call = f"require({json.dumps(specifier)})"
        self._drop(statement)
        if clause is not None:
            holder = self._next_name("re")
            self.hoisted.append(f"var {holder}={call};")
            for item in clause.named_children:
                if item.type != "export_specifier":
                    continue
                names = self._specifier_names(item)
                if names is not None:
                    imported, exported = names
                    self.exports.append((exported, _Binding(holder, imported).expression()))
            return
        namespace = child_of_type(statement, "namespace_export")
        if namespace is None:
            self.hoisted.append(f"__exportStar(exports,{call});")
            return
        holder = self._next_name("re")
        self.hoisted.append(f"var {holder}={call};")
        exported = [child for child in namespace.named_children if child.type != "comment"]
        if not exported:
            raise self._fail("unsupported namespace re-export", statement)
        self.exports.append((self._name(exported[-1]), f"__namespace({holder})"))

    # references

    def _scan(self) -> None:
        stack = [self.parsed.root]
        while stack:
            node = stack.pop()
            if node_key(node) in self._handled:
                continue
            kind = node.type
            if kind == "call_expression":
                self._call(node)
            elif kind == "identifier" and self._text(node) in self.bindings:
                self._reference(node)
            elif kind == "shorthand_property_identifier" and self._text(node) in self.bindings:
                name = self._text(node)
                if not self._shadowed(node, name):
                    expression = self.bindings[name].expression()
                    self.edits.append((node.start_byte, node.end_byte, f"{name}:{expression}"))
            stack.extend(reversed(node.children))

    def _call(self, node: Node) -> None:
        function = node.child_by_field_name("function")
        arguments = node.child_by_field_name("arguments")
        if function is None:
            return
        literal = None
        if arguments is not None and arguments.type == "arguments":
            values = [child for child in arguments.named_children if child.type != "comment"]
            if values and values[0].type == "string":
                literal = values[0]
        if function.type == "import":
            self.edits.append((function.start_byte, function.end_byte, "__import"))
            self._handled.add(node_key(function))
            if literal is not None:
                self._add_specifier(string_value(self._text(literal)))
                return
            self.warnings.append(
                f"dynamic import with a non-literal specifier in {self.module_id}"
            )
            return
        if function.type == "identifier" and self._text(function) == "require":
            if literal is not None and not self._shadowed(function, "require"):
                self._add_specifier(string_value(self._text(literal)))

    def _reference(self, node: Node) -> None:
        name = self._text(node)
        if not self._is_reference(node) or self._shadowed(node, name):
            return
        binding = self.bindings[name]
        expression = binding.expression()
        parent = node.parent
        if (
            binding.imported != "default"
            and parent is not None
            and parent.type == "call_expression"
            and same_node(parent.child_by_field_name("function"), node)
        ):
            # call without the module object as ``this``
            expression = f"(0,{expression})"
        elif (
            parent is not None
            and parent.type == "new_expression"
            and same_node(parent.child_by_field_name("constructor"), node)
        ):
            expression = f"({expression})"
        self.edits.append((node.start_byte, node.end_byte, expression))

    def _is_reference(self, node: Node) -> bool:
        current = node
        parent = current.parent
        while parent is not None and parent.type in _PATTERNS:
            if parent.type in {"assignment_pattern", "object_assignment_pattern"} and same_node(
                parent.child_by_field_name("right"), current
            ):
                return True
            if parent.type == "pair_pattern" and not same_node(
                parent.child_by_field_name("value"), current
            ):
                return True
            current = parent
            parent = current.parent
        if parent is None:
            return True
        kind = parent.type
        if kind == "variable_declarator":
            return not same_node(parent.child_by_field_name("name"), current)
        if kind in _NAMED_DECLARATIONS:
            return not same_node(parent.child_by_field_name("name"), current)
        if kind == "arrow_function":
            return not same_node(parent.child_by_field_name("parameter"), current)
        if kind == "catch_clause":
            return not same_node(parent.child_by_field_name("parameter"), current)
        if kind == "formal_parameters":
            return False
        if kind in {"required_parameter", "optional_parameter"}:
            return not same_node(parent.child_by_field_name("pattern"), current)
        if kind == "for_in_statement" and _declares(parent):
            return not same_node(parent.child_by_field_name("left"), current)
        return kind not in {
            "import_specifier",
            "export_specifier",
            "namespace_import",
            "import_clause",
        }

    def _shadowed(self, node: Node, name: str) -> bool:
        scope = node.parent
        while scope is not None and scope.type != "program":
            if name in self._declared(scope):
                return True
            scope = scope.parent
        return False

    def _declared(self, scope: Node) -> frozenset[str]:
        key = node_key(scope)
        cached = self._scopes.get(key)
        if cached is not None:
            return cached
        names: set[str] = set()
        kind = scope.type
        if kind in _FUNCTION_SCOPES:
            parameters = scope.child_by_field_name("parameters")
            if parameters is None:
                parameters = scope.child_by_field_name("parameter")
            if parameters is not None:
                names.update(self._pattern_names(parameters))
            if kind in _NAMED_FUNCTION_EXPRESSIONS:
                own = scope.child_by_field_name("name")
                if own is not None:
                    names.add(self._text(own))
            body = scope.child_by_field_name("body")
            if body is not None and body.type == "statement_block":
                names.update(self._var_names(body))
        elif kind in _BLOCK_SCOPES:
            for child in scope.named_children:
                if child.type in {"switch_case", "switch_default"}:
                    for statement in child.named_children:
                        names.update(self._lexical_names(statement))
                else:
                    names.update(self._lexical_names(child))
        elif kind == "for_statement":
            initializer = scope.child_by_field_name("initializer")
            if initializer is not None:
                names.update(self._lexical_names(initializer))
        elif kind == "for_in_statement":
            left = scope.child_by_field_name("left")
            if left is not None and _declares(scope):
                names.update(self._pattern_names(left))
        elif kind == "catch_clause":
            parameter = scope.child_by_field_name("parameter")
            if parameter is not None:
                names.update(self._pattern_names(parameter))
        elif kind in _CLASS_SCOPES:
            own = scope.child_by_field_name("name")
            if own is not None:
                names.add(self._text(own))
        result = frozenset(names)
        self._scopes[key] = result
        return result

    def _lexical_names(self, statement: Node) -> list[str]:
        kind = statement.type
        if kind in {"lexical_declaration", "variable_declaration"}:
            names: list[str] = []
            for declarator in statement.named_children:
                target = declarator.child_by_field_name("name")
                if declarator.type == "variable_declarator" and target is not None:
                    names.extend(self._pattern_names(target))
            return names
        if kind in {"function_declaration", "generator_function_declaration", "class_declaration"}:
            name = statement.child_by_field_name("name")
            return [self._text(name)] if name is not None else []
        return []

    def _var_names(self, body: Node) -> list[str]:
        """``var`` bindings hoisted to the function owning ``body``."""
        names: list[str] = []
        stack = list(body.named_children)
        while stack:
            node = stack.pop()
            if node.type in _FUNCTION_SCOPES or node.type in _CLASS_SCOPES:
                continue
            if node.type == "variable_declaration":
                names.extend(self._lexical_names(node))
            elif node.type == "for_in_statement" and has_token(node, "var"):
                left = node.child_by_field_name("left")
                if left is not None:
                    names.extend(self._pattern_names(left))
            stack.extend(node.named_children)
        return names

    def _pattern_names(self, pattern: Node) -> list[str]:
        names: list[str] = []
        stack = [pattern]
        while stack:
            node = stack.pop()
            kind = node.type
            if kind in {"identifier", "shorthand_property_identifier_pattern"}:
                names.append(self._text(node))
            elif kind in {"assignment_pattern", "object_assignment_pattern"}:
                left = node.child_by_field_name("left")
                if left is not None:
                    stack.append(left)
            elif kind == "pair_pattern":
                value = node.child_by_field_name("value")
                if value is not None:
                    stack.append(value)
            elif kind in {"required_parameter", "optional_parameter"}:
                inner = node.child_by_field_name("pattern")
                if inner is not None:
                    stack.append(inner)
            elif kind in {"object_pattern", "array_pattern", "rest_pattern", "formal_parameters"}:
                stack.extend(reversed(node.named_children))
        return names

    def _render(self) -> str:
        parts: list[str] = []
        if self.is_esm:
            parts.append(ESM_MARKER + "\n")
        if self.exports:
            getters = ",".join(
                f"{json.dumps(name)}:function(){{return {expression}}}"
                for name, expression in self.exports
            )
            parts.append(f"__export(exports,{{{getters}}});\n")
        if self.hoisted:
            parts.append("\n".join(self.hoisted) + "\n")
        parts.append(apply_edits(self.parsed.source, self.edits))
        return "".join(parts)


def _declares(statement: Node) -> bool:
    return any(has_token(statement, kind) for kind in ("var", "let", "const"))
