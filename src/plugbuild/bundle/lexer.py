from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

TokenKind = Literal["name", "number", "string", "template", "regex", "punct"]


class JsSyntaxError(ValueError):
    def __init__(self, message: str, source: str, offset: int) -> None:
        line = source.count("\n", 0, offset) + 1
        column = offset - (source.rfind("\n", 0, offset) + 1) + 1
        super().__init__(f"{message} at line {line} column {column}")
        self.line = line
        self.column = column


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    value: str
    start: int
    end: int
    newline_before: bool = False

    def is_punct(self, value: str) -> bool:
        return self.kind == "punct" and self.value == value

    def is_name(self, value: str) -> bool:
        return self.kind == "name" and self.value == value


_PUNCTUATORS = sorted(
    [
        ">>>=", "...", "===", "!==", "**=", "<<=", ">>=", ">>>", "&&=", "||=", "??=",
        "=>", "==", "!=", "<=", ">=", "&&", "||", "??", "?.", "++", "--", "+=", "-=",
        "*=", "/=", "%=", "&=", "|=", "^=", "**", "<<", ">>",
        "{", "}", "(", ")", "[", "]", ";", ",", "<", ">", "+", "-", "*", "/", "%",
        "&", "|", "^", "!", "~", "?", ":", "=", ".", "@", "#",
    ],
    key=len,
    reverse=True,
)

_NUMBER_RE = re.compile(
    r"0[xX][0-9a-fA-F_]+n?|0[bB][01_]+n?|0[oO][0-7_]+n?"
    r"|(?:\d[\d_]*(?:\.[\d_]*)?|\.\d[\d_]*)(?:[eE][+-]?\d[\d_]*)?n?"
)
_NAME_RE = re.compile(
    r"(?:[A-Za-z_$\u0080-\uffff]|\\u[0-9a-fA-F{])"
    r"(?:[\w$\u0080-\uffff]|\\u[0-9a-fA-F{}]+)*"
)
_WHITESPACE = " \t\v\f\ufeff\u00a0"
_LINE_BREAKS = "\n\r\u2028\u2029"

# Keywords after which a slash starts a regular expression literal.
_REGEX_AFTER_NAMES = frozenset(
    {
        "return", "typeof", "instanceof", "in", "of", "new", "delete", "void",
        "throw", "case", "do", "else", "yield", "await",
    }
)
_CLOSERS = {")": "(", "]": "[", "}": "{"}


def tokenize(source: str) -> list[Token]:
    """Split JavaScript/TypeScript source into tokens, dropping comments and whitespace.

    Brackets must balance and literals must be terminated, otherwise
    ``JsSyntaxError`` is raised. Templates with substitutions are split into
    chunk tokens (``\\`...${``, ``}...${``, ``}...\\```) with the substitution
    tokens in between.
    """
    tokens: list[Token] = []
    stack: list[tuple[str, int]] = []
    pos = 0
    length = len(source)
    newline = False

    if source.startswith("#!"):
        end = _line_end(source, 0)
        pos = end

    while pos < length:
        char = source[pos]
        if char in _WHITESPACE:
            pos += 1
            continue
        if char in _LINE_BREAKS:
            newline = True
            pos += 1
            continue
        if source.startswith("//", pos):
            pos = _line_end(source, pos)
            continue
        if source.startswith("/*", pos):
            end = source.find("*/", pos + 2)
            if end < 0:
                raise JsSyntaxError("unterminated comment", source, pos)
            if any(brk in source[pos:end] for brk in _LINE_BREAKS):
                newline = True
            pos = end + 2
            continue

        start = pos
        if char in "'\"":
            pos = _scan_string(source, pos)
            tokens.append(Token("string", source[start:pos], start, pos, newline))
        elif char == "`":
            pos, opened = _scan_template(source, pos + 1)
            tokens.append(Token("template", source[start:pos], start, pos, newline))
            if opened:
                stack.append(("${", start))
        elif char == "}" and stack and stack[-1][0] == "${":
            stack.pop()
            pos, opened = _scan_template(source, pos + 1)
            tokens.append(Token("template", source[start:pos], start, pos, newline))
            if opened:
                stack.append(("${", start))
        elif char == "/" and _regex_allowed(tokens):
            pos = _scan_regex(source, pos)
            tokens.append(Token("regex", source[start:pos], start, pos, newline))
        elif char.isdigit() or (char == "." and pos + 1 < length and source[pos + 1].isdigit()):
            match = _NUMBER_RE.match(source, pos)
            assert match is not None
            pos = match.end()
            tokens.append(Token("number", source[start:pos], start, pos, newline))
        else:
            match = _NAME_RE.match(source, pos)
            if match is not None:
                pos = match.end()
                tokens.append(Token("name", source[start:pos], start, pos, newline))
            else:
                value = _match_punct(source, pos)
                if value is None:
                    raise JsSyntaxError(f"unexpected character {char!r}", source, pos)
                pos += len(value)
                _track_bracket(value, stack, source, start)
                tokens.append(Token("punct", value, start, pos, newline))
        newline = False

    if stack:
        opener, offset = stack[-1]
        raise JsSyntaxError(f"unclosed {opener!r}", source, offset)
    return tokens


def _line_end(source: str, pos: int) -> int:
    while pos < len(source) and source[pos] not in _LINE_BREAKS:
        pos += 1
    return pos


def _scan_string(source: str, pos: int) -> int:
    quote = source[pos]
    index = pos + 1
    while index < len(source):
        char = source[index]
        if char == "\\":
            index += 3 if source.startswith("\r\n", index + 1) else 2
            continue
        if char == quote:
            return index + 1
        if char in "\n\r":
            break
        index += 1
    raise JsSyntaxError("unterminated string literal", source, pos)


def _scan_template(source: str, pos: int) -> tuple[int, bool]:
    """Scan template text from ``pos``; return (end, True) when a substitution opens."""
    index = pos
    while index < len(source):
        char = source[index]
        if char == "\\":
            index += 2
            continue
        if char == "`":
            return index + 1, False
        if char == "$" and source.startswith("${", index):
            return index + 2, True
        index += 1
    raise JsSyntaxError("unterminated template literal", source, pos - 1)


def _scan_regex(source: str, pos: int) -> int:
    index = pos + 1
    in_class = False
    while index < len(source):
        char = source[index]
        if char in _LINE_BREAKS:
            break
        if char == "\\":
            index += 2
            continue
        if char == "[":
            in_class = True
        elif char == "]":
            in_class = False
        elif char == "/" and not in_class:
            index += 1
            while index < len(source) and (source[index].isalnum() or source[index] in "_$"):
                index += 1
            return index
        index += 1
    raise JsSyntaxError("unterminated regular expression", source, pos)


def _regex_allowed(tokens: list[Token]) -> bool:
    if not tokens:
        return True
    last = tokens[-1]
    if last.kind == "name":
        return last.value in _REGEX_AFTER_NAMES
    if last.kind in {"number", "string", "regex"}:
        return False
    if last.kind == "template":
        return last.value.endswith("${")
    return last.value not in {")", "]", "}", "++", "--"}


def _match_punct(source: str, pos: int) -> str | None:
    for candidate in _PUNCTUATORS:
        if source.startswith(candidate, pos):
            if candidate == "?." and pos + 2 < len(source) and source[pos + 2].isdigit():
                continue
            return candidate
    return None


def _track_bracket(value: str, stack: list[tuple[str, int]], source: str, offset: int) -> None:
    if value in "([{":
        stack.append((value, offset))
        return
    opener = _CLOSERS.get(value)
    if opener is None:
        return
    if not stack or stack[-1][0] != opener:
        raise JsSyntaxError(f"unexpected {value!r}", source, offset)
    stack.pop()
