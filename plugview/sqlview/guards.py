"""Safety checks applied to SQL before it is run on the read-only endpoints."""

from __future__ import annotations

import re

_BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/")
_SELECT_FIELDS_RE = re.compile(r"^\s*SELECT\s+(.*?)\s+FROM\s+", re.IGNORECASE | re.ASCII)
_DB_NAME_RE = re.compile(r"[a-zA-Z0-9_]+")

EXPORT_ALLOWED_PREFIXES: tuple[str, ...] = (
    "SELECT",
    "WITH",
    "SHOW",
    "DESCRIBE",
    "DESC",
    "EXPLAIN",
)
EXPORT_FORBIDDEN_PREFIXES: tuple[str, ...] = (
    "INSERT",
    "UPDATE",
    "DELETE",
    "DROP",
    "CREATE",
    "ALTER",
    "TRUNCATE",
    "REPLACE",
    "GRANT",
    "REVOKE",
)


class QueryRejected(ValueError):
    """Raised when a statement is not allowed on the endpoint it was sent to."""


def remove_comments(query: str) -> str:
    """Strip ``/* */`` and ``--`` comments and join the remaining lines with spaces.

    Block comments are only removed when they open and close on one line.
    """
    query = _BLOCK_COMMENT_RE.sub("", query)
    lines = (line.split("--", 1)[0].strip() for line in query.split("\n"))
    return " ".join(line for line in lines if line)


def validate_export_query(query: str) -> None:
    """Accept only read statements for export; raise QueryRejected otherwise."""
    clean = remove_comments(query).upper()
    if not clean.startswith(EXPORT_ALLOWED_PREFIXES):
        raise QueryRejected("导出接口只允许查询语句（SELECT/WITH/SHOW/DESCRIBE/EXPLAIN）")
    for prefix in EXPORT_FORBIDDEN_PREFIXES:
        if clean.startswith(prefix):
            raise QueryRejected(f"导出接口不允许执行 {prefix} 操作")


def validate_field_query(query: str) -> None:
    """Accept only a SELECT that names its fields explicitly."""
    query = query.strip()
    if not query.upper().startswith("SELECT"):
        raise QueryRejected("只允许SELECT查询语句")
    match = _SELECT_FIELDS_RE.search(remove_comments(query))
    if match is None:
        raise QueryRejected("无法解析SELECT语句")
    if match.group(1).strip() == "*":
        raise QueryRejected("不允许使用 SELECT *，必须明确指定字段")


def is_valid_db_name(name: str, max_len: int = 64) -> bool:
    """True when ``name`` is 1..max_len letters, digits or underscores."""
    if not name or len(name) > max_len:
        return False
    return _DB_NAME_RE.fullmatch(name) is not None