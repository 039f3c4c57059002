"""SQL normalization: raw statement text to a literal-free pattern key.

Pipeline (each step idempotent):

1. tokenize the raw text; comments end at their own line break
2. numeric literals → ``?``
3. single-quoted strings, and double-quoted strings in value position → ``?``
4. any ``IN (...)`` list made only of values → ``IN (?)``
5. original casing kept for display; keywords are matched case-insensitively

Bound-parameter markers (``?``, ``:name``, ``$1``, ``%s``) are canonicalized
to ``?`` and comments are dropped.  When the text cannot be tokenized the
result degrades to whitespace-only normalization of the original; this module
never raises.
"""

from __future__ import annotations

import logging
import re

from query_doctor.sql.cache import shared_cache
from query_doctor.sql.lexer import KEYWORDS, LexError, Token, TokenKind, tokenize

_logger = logging.getLogger(__name__)

PLACEHOLDER = "?"

_WHITESPACE_RE = re.compile(r"\s+")

_COMPARISON_OPS = frozenset({"=", "<>", "!=", "<", ">", "<=", ">=", "||", "+", "-", "*", "/", "%"})
_VALUE_KEYWORDS = frozenset({"LIKE", "ILIKE", "BETWEEN", "THEN", "ELSE", "WHEN", "LIMIT", "OFFSET"})
_LIST_OPENERS = frozenset({"IN", "VALUES"})

_PLACEHOLDER_TOKEN = Token(TokenKind.PARAM, PLACEHOLDER)


def normalize_whitespace(sql: str) -> str:
    """Collapse every whitespace run to a single space and trim."""
    return _WHITESPACE_RE.sub(" ", sql).strip()


def normalize(sql: str) -> str:
    """Return the canonical pattern for *sql*, memoized in the shared cache."""
    return shared_cache().get_or_compute(sql, normalize_uncached)


def normalize_uncached(sql: str) -> str:
    """Pure normalization pipeline without memoization."""
    if not sql or sql.isspace():
        return ""
    try:
        tokens = tokenize(sql)
    except LexError as exc:
        _logger.debug("Falling back to whitespace normalization: %s", exc)
        return normalize_whitespace(sql)
    if not tokens:
        return ""
    return render(collapse_in_lists(replace_literals(tokens)))


# ── step 2 + 3: literals ────────────────────────────────────────────


def replace_literals(tokens: list[Token]) -> list[Token]:
    """Swap literal tokens (and bound parameters) for the placeholder."""
    out: list[Token] = []
    openers: list[str] = []
    between_pending = False

    for i, tok in enumerate(tokens):
        prev = out[-1] if out else None

        if tok.is_punct("("):
            openers.append(prev.upper if prev is not None else "")
        elif tok.is_punct(")") and openers:
            openers.pop()

        if tok.kind in (TokenKind.NUMBER, TokenKind.STRING, TokenKind.PARAM):
            if _is_sign(prev, out):
                out.pop()
            out.append(_PLACEHOLDER_TOKEN)
            continue

        if tok.kind is TokenKind.DQ_STRING and _dq_in_value_position(
            tokens, i, prev, openers, between_pending
        ):
            out.append(_PLACEHOLDER_TOKEN)
            continue

        if tok.is_word("BETWEEN"):
            between_pending = True
        elif tok.is_word("AND"):
            between_pending = False

        out.append(tok)

    return out


def _is_sign(prev: Token | None, out: list[Token]) -> bool:
    """True when *prev* is a unary +/- glued to the literal that follows."""
    if prev is None or prev.kind is not TokenKind.OP or prev.text not in ("-", "+"):
        return False
    before = out[-2] if len(out) >= 2 else None
    if before is None:
        return True
    if before.kind is TokenKind.OP:
        return True
    if before.kind is TokenKind.PUNCT and before.text in "(,":
        return True
    return before.kind is TokenKind.WORD and before.upper in KEYWORDS


def _dq_in_value_position(
    tokens: list[Token],
    i: int,
    prev: Token | None,
    openers: list[str],
    between_pending: bool,
) -> bool:
    nxt = tokens[i + 1] if i + 1 < len(tokens) else None
    if nxt is not None and nxt.is_punct("."):
        return False
    if prev is None or prev.is_punct("."):
        return False
    if prev.kind is TokenKind.OP and prev.text in _COMPARISON_OPS:
        return True
    if prev.kind is TokenKind.WORD and prev.upper in _VALUE_KEYWORDS:
        return True
    if between_pending and prev.is_word("AND"):
        return True
    if prev.kind is TokenKind.PUNCT and prev.text in "(," and openers:
        return openers[-1] in _LIST_OPENERS
    return False


# ── step 4: IN lists ────────────────────────────────────────────────


def collapse_in_lists(tokens: list[Token]) -> list[Token]:
    """Rewrite ``IN ( ?, ?, ... )`` to ``IN ( ? )``.

    Lists containing anything but placeholders, commas and nested
    parentheses (a subquery, a column) are left untouched.
    """
    out: list[Token] = []
    i = 0
    n = len(tokens)
    while i < n:
        tok = tokens[i]
        out.append(tok)
        if tok.is_word("IN") and i + 1 < n and tokens[i + 1].is_punct("("):
            close = _matching_paren(tokens, i + 1)
            if close is not None and _only_values(tokens[i + 2:close]):
                out.extend((tokens[i + 1], _PLACEHOLDER_TOKEN, tokens[close]))
                i = close + 1
                continue
        i += 1
    return out


def _matching_paren(tokens: list[Token], open_idx: int) -> int | None:
    depth = 0
    for j in range(open_idx, len(tokens)):
        if tokens[j].is_punct("("):
            depth += 1
        elif tokens[j].is_punct(")"):
            depth -= 1
            if depth == 0:
                return j
    return None


def _only_values(inner: list[Token]) -> bool:
    if not inner:
        return False
    saw_value = False
    for tok in inner:
        if tok.kind is TokenKind.PARAM:
            saw_value = True
        elif not (tok.kind is TokenKind.PUNCT and tok.text in "(),"):
            return False
    return saw_value


# ── rendering ───────────────────────────────────────────────────────


def render(tokens: list[Token]) -> str:
    """Join tokens with canonical spacing."""
    parts: list[str] = []
    prev: Token | None = None
    for tok in tokens:
        if prev is not None and _needs_space(prev, tok):
            parts.append(" ")
        parts.append(tok.text)
        prev = tok
    return "".join(parts)


def _needs_space(prev: Token, tok: Token) -> bool:
    if tok.kind is TokenKind.PUNCT and tok.text in ",.);]":
        return False
    if prev.kind is TokenKind.PUNCT and prev.text in "(.[":
        return False
    if tok.is_punct("["):
        return False
    if prev.text == "::" or tok.text == "::":
        return False
    if tok.is_punct("("):
        # f(x) keeps the call tight; keywords (IN, VALUES, ...) get a space
        return not (prev.kind in (TokenKind.WORD, TokenKind.QUOTED_IDENT, TokenKind.DQ_STRING)
                    and prev.upper not in KEYWORDS)
    return True
