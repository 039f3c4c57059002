"""Lexical structure extraction for a single SQL statement.

Recovers just enough to classify a repeated query: statement type, the
tables named in FROM / JOIN with their aliases, the first top-level
``column = ?`` condition of the WHERE clause, and whether a concrete row
bound (``LIMIT``, ``FETCH FIRST``, ``TOP``) is present.

Extraction never raises; unreadable text yields an empty ``SqlStructure``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType
from typing import Mapping, Optional

from query_doctor.sql.lexer import KEYWORDS, LexError, Token, TokenKind, tokenize

_logger = logging.getLogger(__name__)

_JOIN_WORDS = frozenset({"JOIN", "STRAIGHT_JOIN"})
_CLAUSE_END = frozenset({
    "GROUP", "ORDER", "LIMIT", "HAVING", "OFFSET", "FETCH", "FOR", "UNION",
    "EXCEPT", "INTERSECT", "RETURNING", "WINDOW",
})
_FROM_END = _CLAUSE_END | frozenset({
    "WHERE", "JOIN", "INNER", "LEFT", "RIGHT", "FULL", "CROSS", "NATURAL",
    "STRAIGHT_JOIN", "ON", "USING", "SET",
})
_IDENT_KINDS = (TokenKind.WORD, TokenKind.QUOTED_IDENT, TokenKind.DQ_STRING)
_BOUND_KINDS = (TokenKind.PARAM, TokenKind.NUMBER)


@dataclass(frozen=True, slots=True)
class EqualityTarget:
    """``[alias.]column = ?``: the column a repeated lookup is keyed on."""

    column: str
    table: Optional[str] = None
    alias: Optional[str] = None


@dataclass(frozen=True)
class SqlStructure:
    """Lexical facts about one statement; cached per text, so ``aliases`` is read-only."""

    statement_type: str = "OTHER"
    tables: tuple[str, ...] = ()
    aliases: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    where_target: Optional[EqualityTarget] = None
    has_join: bool = False
    has_row_bound: bool = False

    @property
    def main_table(self) -> Optional[str]:
        return self.tables[0] if self.tables else None

    @property
    def target_table(self) -> Optional[str]:
        """Table the WHERE target belongs to, else the main table."""
        if self.where_target is not None and self.where_target.table:
            return self.where_target.table
        return self.main_table


def unquote(text: str) -> str:
    """Strip identifier quoting and lower-case: ``"Users"`` → ``users``."""
    if len(text) >= 2 and text[0] in "`\"[" and text[-1] in "`\"]":
        text = text[1:-1]
    return text.lower()


@lru_cache(maxsize=4096)
def extract_structure(sql: str) -> SqlStructure:
    """Extract lexical structure from *sql* (raw or normalized)."""
    try:
        tokens = tokenize(sql)
    except LexError as exc:
        _logger.debug("Structure extraction skipped: %s", exc)
        return SqlStructure(statement_type=_statement_type_from_text(sql))
    if not tokens:
        return SqlStructure()

    depths = _depths(tokens)
    tables, aliases = _tables_and_aliases(tokens, depths)
    return SqlStructure(
        statement_type=_statement_type(tokens),
        tables=tuple(tables),
        aliases=MappingProxyType(aliases),
        where_target=_where_target(tokens, depths, tables, aliases),
        has_join=any(t.is_word(*_JOIN_WORDS) for t, d in zip(tokens, depths) if d == 0),
        has_row_bound=_has_row_bound(tokens, depths),
    )


def _statement_type_from_text(sql: str) -> str:
    head = sql.lstrip().split(" ", 1)[0].upper() if sql.strip() else ""
    return head if head in ("SELECT", "INSERT", "UPDATE", "DELETE") else "OTHER"


def _statement_type(tokens: list[Token]) -> str:
    first = tokens[0]
    if first.is_word("SELECT", "INSERT", "UPDATE", "DELETE"):
        return first.upper
    if first.is_word("WITH"):
        # CTE: the statement type is decided by the first top-level verb
        depths = _depths(tokens)
        for tok, depth in zip(tokens[1:], depths[1:]):
            if depth == 0 and tok.is_word("SELECT", "INSERT", "UPDATE", "DELETE"):
                return tok.upper
    return "OTHER"


def _depths(tokens: list[Token]) -> list[int]:
    """Parenthesis depth of each token (an opening paren sits at the outer depth)."""
    depths: list[int] = []
    depth = 0
    for tok in tokens:
        if tok.is_punct(")"):
            depth = max(depth - 1, 0)
        depths.append(depth)
        if tok.is_punct("("):
            depth += 1
    return depths


# ── tables ──────────────────────────────────────────────────────────


def _tables_and_aliases(
    tokens: list[Token], depths: list[int]
) -> tuple[list[str], dict[str, str]]:
    tables: list[str] = []
    aliases: dict[str, str] = {}
    n = len(tokens)
    i = 0
    while i < n:
        tok = tokens[i]
        if depths[i] != 0 or not tok.is_word("FROM", "JOIN", "STRAIGHT_JOIN", "UPDATE", "INTO"):
            i += 1
            continue
        i += 1
        # FROM takes a comma list; JOIN, UPDATE and INTO take one reference
        multi = tok.is_word("FROM")
        while i < n:
            i = _read_table_ref(tokens, depths, i, tables, aliases)
            if multi and i < n and tokens[i].is_punct(",") and depths[i] == 0:
                i += 1
                continue
            break
    return tables, aliases


def _read_table_ref(
    tokens: list[Token],
    depths: list[int],
    i: int,
    tables: list[str],
    aliases: dict[str, str],
) -> int:
    n = len(tokens)
    if i >= n:
        return i
    if tokens[i].is_punct("("):
        # derived table: skip to the closing paren, keep its alias unresolved
        depth = depths[i]
        i += 1
        while i < n and not (tokens[i].is_punct(")") and depths[i] == depth):
            i += 1
        return _skip_alias(tokens, i + 1)
    if tokens[i].kind not in _IDENT_KINDS or tokens[i].upper in KEYWORDS:
        return i

    name = unquote(tokens[i].text)
    i += 1
    # schema.table → table
    while i + 1 < n and tokens[i].is_punct(".") and tokens[i + 1].kind in _IDENT_KINDS:
        name = unquote(tokens[i + 1].text)
        i += 2
    tables.append(name)
    aliases.setdefault(name, name)

    if i < n and tokens[i].is_word("AS"):
        i += 1
    if i < n and tokens[i].kind in _IDENT_KINDS and tokens[i].upper not in _FROM_END | KEYWORDS:
        aliases[unquote(tokens[i].text)] = name
        i += 1
    return i


def _skip_alias(tokens: list[Token], i: int) -> int:
    n = len(tokens)
    if i < n and tokens[i].is_word("AS"):
        i += 1
    if i < n and tokens[i].kind in _IDENT_KINDS and tokens[i].upper not in KEYWORDS:
        i += 1
    return i


# ── WHERE target ────────────────────────────────────────────────────


def _where_target(
    tokens: list[Token],
    depths: list[int],
    tables: list[str],
    aliases: dict[str, str],
) -> Optional[EqualityTarget]:
    start = next(
        (i for i, t in enumerate(tokens) if depths[i] == 0 and t.is_word("WHERE")),
        None,
    )
    if start is None:
        return None
    end = start + 1
    while end < len(tokens) and not (depths[end] == 0 and tokens[end].is_word(*_CLAUSE_END)):
        end += 1
    clause = tokens[start + 1:end]
    clause_depths = depths[start + 1:end]

    base = 0
    # WHERE (t0.id = ?): look inside when the whole clause is wrapped
    while clause and clause[0].is_punct("(") and clause[-1].is_punct(")") \
            and _wraps_all(clause_depths, base):
        clause = clause[1:-1]
        clause_depths = clause_depths[1:-1]
        base += 1

    for i, tok in enumerate(clause):
        if clause_depths[i] != base or not (tok.kind is TokenKind.OP and tok.text == "="):
            continue
        target = _column_left_of(clause, clause_depths, i, base)
        if target is None:
            continue
        right = clause[i + 1] if i + 1 < len(clause) else None
        if right is None or right.kind not in _BOUND_KINDS:
            continue
        after = clause[i + 2] if i + 2 < len(clause) else None
        if after is not None and after.kind is TokenKind.OP:
            continue
        return _resolve(target, tables, aliases)
    return None


def _wraps_all(depths: list[int], base: int) -> bool:
    """True when every token but the outer pair sits deeper than *base*."""
    return all(d > base for d in depths[1:-1])


def _column_left_of(
    clause: list[Token], depths: list[int], eq_idx: int, base: int
) -> Optional[tuple[Optional[str], str]]:
    col_idx = eq_idx - 1
    if col_idx < 0 or clause[col_idx].kind not in _IDENT_KINDS or clause[col_idx].upper in KEYWORDS:
        return None
    column = unquote(clause[col_idx].text)
    qualifier: Optional[str] = None
    start = col_idx
    if col_idx >= 2 and clause[col_idx - 1].is_punct(".") and clause[col_idx - 2].kind in _IDENT_KINDS:
        qualifier = unquote(clause[col_idx - 2].text)
        start = col_idx - 2
    before = clause[start - 1] if start >= 1 else None
    # reject the tail of an expression such as "a + b = ?" or "LOWER(x) = ?"
    if before is not None and (before.kind is TokenKind.OP or before.is_punct(".")):
        return None
    if depths[start] != base:
        return None
    return qualifier, column


def _resolve(
    target: tuple[Optional[str], str],
    tables: list[str],
    aliases: dict[str, str],
) -> EqualityTarget:
    qualifier, column = target
    if qualifier is None:
        return EqualityTarget(column=column, table=tables[0] if tables else None)
    return EqualityTarget(column=column, table=aliases.get(qualifier, qualifier), alias=qualifier)


# ── row bound ───────────────────────────────────────────────────────


def _has_row_bound(tokens: list[Token], depths: list[int]) -> bool:
    n = len(tokens)
    for i, tok in enumerate(tokens):
        if depths[i] != 0:
            continue
        nxt = tokens[i + 1] if i + 1 < n else None
        if tok.is_word("LIMIT", "TOP") and nxt is not None and nxt.kind in _BOUND_KINDS:
            return True
        if tok.is_word("FETCH") and nxt is not None and nxt.is_word("FIRST", "NEXT"):
            bound = tokens[i + 2] if i + 2 < n else None
            if bound is not None and bound.kind in _BOUND_KINDS:
                return True
    return False
