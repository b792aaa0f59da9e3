from __future__ import annotations

from plugbuild.bundle.lexer import Token, tokenize


def compact(code: str) -> str:
    """Drop comments and redundant whitespace.

    Line breaks between tokens are collapsed to a single newline rather than
    removed so automatic semicolon insertion keeps its meaning.
    """
    tokens = tokenize(code)
    parts: list[str] = []
    previous: Token | None = None
    for token in tokens:
        if previous is not None:
            if token.newline_before:
                parts.append("\n")
            elif _needs_space(previous, token):
                parts.append(" ")
        parts.append(token.value)
        previous = token
    if parts:
        parts.append("\n")
    return "".join(parts)


def _is_word_char(char: str) -> bool:
    return char.isalnum() or char in "_$\\" or ord(char) > 0x7F


def _needs_space(left: Token, right: Token) -> bool:
    last = left.value[-1]
    first = right.value[0]
    if _is_word_char(last) and _is_word_char(first):
        return True
    if left.kind == "number" and first == ".":
        return True
    if last in "+-" and first == last:
        return True
    if last == "/" and first in "/*":
        return True
    if last == "<" and first == "!":
        return True
    return False
