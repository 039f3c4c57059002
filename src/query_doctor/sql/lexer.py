"""Small hand-written SQL tokenizer.

Only lexical structure is recovered: literals, identifiers, keywords,
bound-parameter markers and punctuation.  There is no grammar; callers walk
the flat token list.

Raises ``LexError`` on unterminated strings, quoted identifiers or block
comments so callers can fall back to a cruder normalization.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class LexError(ValueError):
    """Input could not be tokenized (truncated or malformed SQL)."""


class TokenKind(str, Enum):
    WORD = "word"                  # identifier or keyword
    QUOTED_IDENT = "quoted_ident"  # `name` or [name]
    DQ_STRING = "dq_string"        # "..." (identifier or literal, context decides)
    STRING = "string"              # '...'
    NUMBER = "number"
    PARAM = "param"                # ?, :name, $1, %s, %(name)s
    OP = "op"
    PUNCT = "punct"                # ( ) , . ;


@dataclass(frozen=True, slots=True)
class Token:
    kind: TokenKind
    text: str

    @property
    def upper(self) -> str:
        return self.text.upper()

    def is_word(self, *words: str) -> bool:
        return self.kind is TokenKind.WORD and self.text.upper() in words

    def is_punct(self, char: str) -> bool:
        return self.kind is TokenKind.PUNCT and self.text == char


# Reserved words that never act as a table alias and are rendered with a
# space before a following "(".
KEYWORDS: frozenset[str] = frozenset({
    "ALL", "AND", "ANY", "AS", "ASC", "BETWEEN", "BY", "CASE", "CROSS",
    "DELETE", "DESC", "DISTINCT", "ELSE", "END", "EXCEPT", "EXISTS", "FETCH",
    "FIRST", "FOR", "FROM", "FULL", "GROUP", "HAVING", "ILIKE", "IN", "INNER",
    "INSERT", "INTERSECT", "INTO", "IS", "JOIN", "LATERAL", "LEFT", "LIKE",
    "LIMIT", "NATURAL", "NEXT", "NOT", "NULL", "OFFSET", "ON", "ONLY", "OR",
    "ORDER", "OUTER", "RETURNING", "RIGHT", "ROW", "ROWS", "SELECT", "SET",
    "SHARE", "STRAIGHT_JOIN", "THEN", "UNION", "UPDATE", "USING", "VALUES",
    "WHEN", "WHERE", "WINDOW", "WITH",
})

_TWO_CHAR_OPS = ("<>", "!=", "<=", ">=", "||", "::", "->", "=>")
_ONE_CHAR_OPS = "=<>+-*/%|&^~!@"
_PUNCT = "(),.;[]{}"


def _is_ident_start(ch: str) -> bool:
    return ch.isalpha() or ch == "_"


def _is_ident_char(ch: str) -> bool:
    return ch.isalnum() or ch in "_$"


def tokenize(sql: str) -> list[Token]:
    r"""Split *sql* into tokens, dropping whitespace and comments.

    Backslash escapes inside plain '...' strings are tried first (MySQL);
    if that leaves a literal unterminated the text is re-read with
    standard-conforming strings, where ``'C:\'`` is complete.  ``E'...'``
    strings always honour backslash escapes.
    """
    try:
        return _tokenize(sql, backslash_escapes=True)
    except LexError:
        return _tokenize(sql, backslash_escapes=False)


def _tokenize(sql: str, *, backslash_escapes: bool) -> list[Token]:
    tokens: list[Token] = []
    i = 0
    n = len(sql)

    while i < n:
        ch = sql[i]

        if ch.isspace():
            i += 1
            continue

        # -- line comment / block comment
        if sql.startswith("--", i):
            end = sql.find("\n", i)
            i = n if end == -1 else end + 1
            continue
        if sql.startswith("/*", i):
            end = sql.find("*/", i + 2)
            if end == -1:
                raise LexError(f"unterminated block comment at offset {i}")
            i = end + 2
            continue

        # -- quoted text
        if ch == "'":
            end = _scan_quoted(sql, i, "'", backslash=backslash_escapes)
            tokens.append(Token(TokenKind.STRING, sql[i:end]))
            i = end
            continue
        if ch in "EeNnXxBb" and i + 1 < n and sql[i + 1] == "'" and not _prev_is_ident(sql, i):
            end = _scan_quoted(sql, i + 1, "'", backslash=backslash_escapes or ch in "Ee")
            tokens.append(Token(TokenKind.STRING, sql[i:end]))
            i = end
            continue
        if ch == '"':
            end = _scan_quoted(sql, i, '"', backslash=backslash_escapes)
            tokens.append(Token(TokenKind.DQ_STRING, sql[i:end]))
            i = end
            continue
        if ch == "`":
            end = sql.find("`", i + 1)
            if end == -1:
                raise LexError(f"unterminated quoted identifier at offset {i}")
            tokens.append(Token(TokenKind.QUOTED_IDENT, sql[i:end + 1]))
            i = end + 1
            continue

        # -- numbers (also ".5")
        if ch.isdigit() or (ch == "." and i + 1 < n and sql[i + 1].isdigit()
                            and not _prev_is_ident(sql, i)):
            end = _scan_number(sql, i)
            if end < n and _is_ident_char(sql[end]):
                # "2fa_codes": an identifier that starts with digits
                end = _scan_word(sql, end)
                tokens.append(Token(TokenKind.WORD, sql[i:end]))
            else:
                tokens.append(Token(TokenKind.NUMBER, sql[i:end]))
            i = end
            continue

        # -- identifiers / keywords
        if _is_ident_start(ch):
            end = _scan_word(sql, i)
            tokens.append(Token(TokenKind.WORD, sql[i:end]))
            i = end
            continue

        # -- bound parameters
        if ch == "?":
            tokens.append(Token(TokenKind.PARAM, "?"))
            i += 1
            continue
        if ch == ":" and i + 1 < n and _is_ident_start(sql[i + 1]):
            end = _scan_word(sql, i + 1)
            tokens.append(Token(TokenKind.PARAM, sql[i:end]))
            i = end
            continue
        if ch == "$" and i + 1 < n and sql[i + 1].isdigit():
            end = i + 1
            while end < n and sql[end].isdigit():
                end += 1
            tokens.append(Token(TokenKind.PARAM, sql[i:end]))
            i = end
            continue
        if ch == "%":
            end = _scan_pyformat(sql, i)
            if end:
                tokens.append(Token(TokenKind.PARAM, sql[i:end]))
                i = end
                continue

        # -- operators and punctuation
        two = sql[i:i + 2]
        if two in _TWO_CHAR_OPS:
            tokens.append(Token(TokenKind.OP, two))
            i += 2
            continue
        if ch in _ONE_CHAR_OPS:
            tokens.append(Token(TokenKind.OP, ch))
            i += 1
            continue
        if ch in _PUNCT:
            tokens.append(Token(TokenKind.PUNCT, ch))
            i += 1
            continue

        # Anything else (stray ':' or '#') passes through as an operator.
        tokens.append(Token(TokenKind.OP, ch))
        i += 1

    return tokens


def _prev_is_ident(sql: str, i: int) -> bool:
    return i > 0 and _is_ident_char(sql[i - 1])


def _scan_word(sql: str, i: int) -> int:
    n = len(sql)
    while i < n and _is_ident_char(sql[i]):
        i += 1
    return i


def _scan_quoted(sql: str, start: int, quote: str, *, backslash: bool = True) -> int:
    """Return the index just past the closing *quote* opened at *start*.

    Doubled quotes are always honoured, backslash escapes only if *backslash*.
    """
    i = start + 1
    n = len(sql)
    while i < n:
        ch = sql[i]
        if backslash and ch == "\\":
            i += 2
            continue
        if ch == quote:
            if i + 1 < n and sql[i + 1] == quote:
                i += 2
                continue
            return i + 1
        i += 1
    raise LexError(f"unterminated {quote} literal at offset {start}")


def _scan_number(sql: str, i: int) -> int:
    n = len(sql)
    if sql.startswith(("0x", "0X"), i):
        i += 2
        while i < n and sql[i] in "0123456789abcdefABCDEF":
            i += 1
        return i
    while i < n and sql[i].isdigit():
        i += 1
    if i < n and sql[i] == "." and (i + 1 >= n or sql[i + 1].isdigit() or not _is_ident_char(sql[i + 1])):
        i += 1
        while i < n and sql[i].isdigit():
            i += 1
    if i < n and sql[i] in "eE":
        j = i + 1
        if j < n and sql[j] in "+-":
            j += 1
        if j < n and sql[j].isdigit():
            i = j
            while i < n and sql[i].isdigit():
                i += 1
    return i


def _scan_pyformat(sql: str, i: int) -> int:
    """Match ``%s`` or ``%(name)s`` at *i*; return end index or 0."""
    n = len(sql)
    if i + 1 < n and sql[i + 1] == "s" and (i + 2 >= n or not _is_ident_char(sql[i + 2])):
        return i + 2
    if i + 1 < n and sql[i + 1] == "(":
        close = sql.find(")", i + 2)
        if close != -1 and close + 1 < n and sql[close + 1] == "s":
            name = sql[i + 2:close]
            if name and all(_is_ident_char(c) for c in name):
                return close + 2
    return 0
