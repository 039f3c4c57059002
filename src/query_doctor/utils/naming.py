"""Derive entity and relation names from table and column names."""

from __future__ import annotations

import re
from typing import Optional, Sequence

_TABLE_PREFIX_RE = re.compile(r"^(tbl_|app_)")


def table_to_entity(table: str) -> str:
    """``user_profile`` → ``UserProfile``; ``tbl_``/``app_`` prefixes dropped."""
    stripped = _TABLE_PREFIX_RE.sub("", table)
    return "".join(part[:1].upper() + part[1:] for part in stripped.split("_") if part)


def to_camel_case(name: str) -> str:
    """``blog_post`` → ``blogPost``."""
    pascal = "".join(part[:1].upper() + part[1:] for part in name.split("_") if part)
    return pascal[:1].lower() + pascal[1:]


def column_to_relation(
    column: Optional[str],
    foreign_key_suffixes: Sequence[str] = ("_id",),
) -> str:
    """``author_id`` → ``author``; anything without a key suffix → ``relation``."""
    if not column:
        return "relation"
    for suffix in foreign_key_suffixes:
        if column.endswith(suffix) and column != suffix:
            return to_camel_case(column[: -len(suffix)])
    return "relation"
