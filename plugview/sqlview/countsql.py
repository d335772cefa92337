"""Turning DELETE and UPDATE statements into row-counting queries."""

from __future__ import annotations

import re

_DELETE_RE = re.compile(r"DELETE\s+FROM\s+(.+)", re.IGNORECASE | re.ASCII)
_UPDATE_RE = re.compile(
    r"UPDATE\s+(\S+)\s+SET\s+.+?(WHERE\s+.+)?\Z", re.IGNORECASE | re.ASCII
)


def convert_to_count_sql(sql: str, sql_type: str) -> str:
    """Return a ``SELECT COUNT(*)`` query over the rows ``sql`` would touch.

    Raises ValueError when the statement cannot be converted.
    """
    if sql_type == "DELETE":
        match = _DELETE_RE.search(sql)
        if match:
            return "SELECT COUNT(*) FROM " + match.group(1)
    elif sql_type == "UPDATE":
        match = _UPDATE_RE.search(sql)
        if match:
            where = match.group(2) or ""
            return "SELECT COUNT(*) FROM " + match.group(1) + " " + where
    raise ValueError("无法转换为COUNT查询")