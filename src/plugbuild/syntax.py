"""tree-sitter front end shared by the stub engine and the linker."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Literal

import tree_sitter_javascript as tsjs
import tree_sitter_typescript as tsts
from tree_sitter import Language, Node, Parser, Tree

from plugbuild.errors import TransformError

logger = logging.getLogger(__name__)

Grammar = Literal["javascript", "typescript", "tsx"]

_LANGUAGES: dict[str, Language] = {
    "javascript": Language(tsjs.language()),
    "typescript": Language(tsts.language_typescript()),
    "tsx": Language(tsts.language_tsx()),
}
_PARSERS: dict[str, Parser] = {}


def _get_parser(grammar: Grammar) -> Parser:
    parser = _PARSERS.get(grammar)
    if parser is None:
        parser = Parser(_LANGUAGES[grammar])
        _PARSERS[grammar] = parser
    return parser


@dataclass(frozen=True)
class SyntaxIssue:
    line: int  # 1-based
    column: int  # 1-based
    message: str


@dataclass(frozen=True)
class ParsedModule:
    source: bytes
    tree: Tree
    grammar: Grammar

    @property
    def root(self) -> Node:
        return self.tree.root_node

    def text(self, node: Node) -> str:
        return self.source[node.start_byte : node.end_byte].decode("utf-8")


def parse_module(code: str, grammar: Grammar) -> ParsedModule:
    source = code.encode("utf-8")
    tree = _get_parser(grammar).parse(source)
    return ParsedModule(source=source, tree=tree, grammar=grammar)


def walk(node: Node) -> Iterator[Node]:
    """Pre-order traversal without recursion."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def collect_issues(node: Node) -> list[SyntaxIssue]:
    issues: list[SyntaxIssue] = []
    if not node.has_error:
        return issues
    stack = [node]
    while stack:
        current = stack.pop()
        if current.type == "ERROR" or current.is_missing:
            row, column = current.start_point
            if current.is_missing:
                message = f"missing {current.type}"
            else:
                message = "unexpected syntax"
            issues.append(SyntaxIssue(line=row + 1, column=column + 1, message=message))
            continue
        if current.has_error:
            stack.extend(reversed(current.children))
    return issues


def require_valid(parsed: ParsedModule, module_id: str) -> None:
    issues = collect_issues(parsed.root)
    if not issues:
        return
    first = issues[0]
    logger.debug("parse failed module=%s issues=%s", module_id, len(issues))
    raise TransformError(
        f"syntax error: {first.message} at line {first.line} column {first.column}",
        module=module_id,
    )


def same_node(left: Node | None, right: Node | None) -> bool:
    if left is None or right is None:
        return False
    return (left.start_byte, left.end_byte, left.type) == (
        right.start_byte,
        right.end_byte,
        right.type,
    )


def node_key(node: Node) -> tuple[int, int, str]:
    return (node.start_byte, node.end_byte, node.type)


def has_token(node: Node, token: str) -> bool:
    """True when ``node`` has an anonymous child token spelled ``token``."""
    return any(not child.is_named and child.type == token for child in node.children)


def child_of_type(node: Node, node_type: str) -> Node | None:
    for child in node.children:
        if child.type == node_type:
            return child
    return None


def apply_edits(source: bytes, edits: list[tuple[int, int, str]]) -> str:
    """Splice ``(start, end, replacement)`` byte ranges into ``source``."""
    chunks: list[bytes] = []
    cursor = 0
    for start, end, replacement in sorted(edits, key=lambda edit: (edit[0], edit[1])):
        if start < cursor:
            raise ValueError(f"overlapping edit at byte {start}")
        chunks.append(source[cursor:start])
        chunks.append(replacement.encode("utf-8"))
        cursor = end
    chunks.append(source[cursor:])
    return b"".join(chunks).decode("utf-8")
