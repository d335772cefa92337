"""Collecting schema metadata of one MySQL database, and caching it.

Every ``conn`` argument is a DB-API connection whose driver uses the
``format`` parameter style (``%s`` placeholders), such as PyMySQL.
"""

from __future__ import annotations

import copy
import re
import threading
import time
from contextlib import closing
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Sequence

DEFAULT_TTL = 600.0

_LEADING_INT_RE = re.compile(rb"\s*([+-]?\d+)")


@dataclass
class ColumnMeta:
    """One column of a table."""

    name: str = ""
    ordinal_pos: int = 0
    data_type: str = ""
    column_type: str = ""
    nullable: bool = False
    default_value: str | None = None
    is_primary_key: bool = False
    is_auto_incr: bool = False
    char_max_len: int | None = None
    num_precision: int | None = None
    num_scale: int | None = None
    character_set: str = ""
    collation: str = ""
    column_key: str = ""
    extra: str = ""
    comment: str = ""


@dataclass
class PrimaryKeyMeta:
    """The primary key of a table."""

    name: str
    columns: list[str] = field(default_factory=list)


@dataclass
class ForeignKeyMeta:
    """A foreign key constraint."""

    name: str
    columns: list[str] = field(default_factory=list)
    ref_table: str = ""
    ref_columns: list[str] = field(default_factory=list)
    on_update: str = ""
    on_delete: str = ""


@dataclass
class IndexMeta:
    """An index over one or more columns."""

    name: str
    columns: list[str] = field(default_factory=list)
    index_type: str = ""
    is_unique: bool = False
    is_primary: bool = False
    comment: str = ""


@dataclass
class TableMeta:
    """A base table with its columns, keys and indexes."""

    name: str = ""
    comment: str = ""
    engine: str = ""
    collation: str = ""
    row_count: int = 0
    data_length: int = 0
    index_length: int = 0
    create_time: str = ""
    update_time: str = ""
    columns: list[ColumnMeta] = field(default_factory=list)
    primary_key: PrimaryKeyMeta | None = None
    foreign_keys: list[ForeignKeyMeta] = field(default_factory=list)
    indexes: list[IndexMeta] = field(default_factory=list)


@dataclass
class ViewMeta:
    """A view."""

    name: str = ""
    definition: str = ""
    definer: str = ""
    updatable: bool = False


@dataclass
class TriggerMeta:
    """A trigger."""

    name: str = ""
    table: str = ""
    event: str = ""
    timing: str = ""
    statement: str = ""
    definer: str = ""
    created: str = ""


@dataclass
class ParameterMeta:
    """A parameter of a stored routine."""

    name: str = ""
    mode: str = ""
    data_type: str = ""
    ordinal_pos: int = 0


@dataclass
class RoutineMeta:
    """A stored procedure or function."""

    name: str = ""
    type: str = ""
    definer: str = ""
    data_type: str = ""
    definition: str = ""
    created: str = ""
    modified: str = ""
    comment: str = ""
    parameters: list[ParameterMeta] = field(default_factory=list)


@dataclass
class UDFMeta:
    """A loadable user-defined function."""

    name: str = ""
    return_type: str = ""
    type: str = ""
    library: str = ""


@dataclass
class DatabaseMetadata:
    """Everything collected about one database."""

    db_name: str
    tables: list[TableMeta] = field(default_factory=list)
    views: list[ViewMeta] = field(default_factory=list)
    triggers: list[TriggerMeta] = field(default_factory=list)
    routines: list[RoutineMeta] = field(default_factory=list)
    udfs: list[UDFMeta] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    took: int = 0
    cached_at: str = ""
    from_cache: bool = False


def format_time(value: Any) -> str:
    """Render a timestamp as text without fractional seconds."""
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray)):
        text = bytes(value).decode("utf-8", "replace")
    else:
        text = str(value)
    return text.split(".", 1)[0]


def format_value(value: Any) -> str:
    """Render a column value as text."""
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", "replace")
    return str(value)


def to_int64(value: Any) -> int | None:
    """Read an integer from an int or from raw bytes; None for anything else.

    Bytes that do not start with a number give 0.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, (bytes, bytearray)):
        match = _LEADING_INT_RE.match(bytes(value))
        return int(match.group(1)) if match else 0
    return None


def _query(conn: Any, sql: str, params: Sequence[Any] | None = None) -> list[tuple]:
    with closing(conn.cursor()) as cursor:
        if params is None:
            cursor.execute(sql)
        else:
            cursor.execute(sql, tuple(params))
        return [tuple(row) for row in cursor.fetchall()]


def _rows(conn: Any, sql: str, width: int, params: Sequence[Any] | None = None):
    """Yield rows of the expected width, skipping malformed ones."""
    for row in _query(conn, sql, params):
        if len(row) == width:
            yield row


def _strings(*values: Any) -> bool:
    return all(isinstance(value, str) for value in values)


_TABLES_SQL = """
    SELECT
        TABLE_NAME,
        IFNULL(TABLE_COMMENT, ''),
        IFNULL(ENGINE, ''),
        IFNULL(TABLE_COLLATION, ''),
        IFNULL(TABLE_ROWS, 0),
        IFNULL(DATA_LENGTH, 0),
        IFNULL(INDEX_LENGTH, 0),
        IFNULL(CREATE_TIME, ''),
        IFNULL(UPDATE_TIME, '')
    FROM information_schema.TABLES
    WHERE TABLE_SCHEMA = %s AND TABLE_TYPE = 'BASE TABLE'
    ORDER BY TABLE_NAME
"""


def fetch_tables(conn: Any, db_name: str) -> list[TableMeta]:
    """List the base tables of ``db_name`` with their sizes and times."""
    tables: list[TableMeta] = []
    for name, comment, engine, collation, rows, data, index, created, updated in _rows(
        conn, _TABLES_SQL, 9, (db_name,)
    ):
        try:
            tables.append(
                TableMeta(
                    name=name,
                    comment=comment,
                    engine=engine,
                    collation=collation,
                    row_count=int(rows),
                    data_length=int(data),
                    index_length=int(index),
                    create_time=format_time(created),
                    update_time=format_time(updated),
                )
            )
        except (TypeError, ValueError):
            continue
    return tables


_VIEWS_SQL = """
    SELECT
        TABLE_NAME,
        IFNULL(VIEW_DEFINITION, ''),
        IFNULL(DEFINER, ''),
        CASE WHEN IS_UPDATABLE = 'YES' THEN 1 ELSE 0 END
    FROM information_schema.VIEWS
    WHERE TABLE_SCHEMA = %s
    ORDER BY TABLE_NAME
"""


def fetch_views(conn: Any, db_name: str) -> list[ViewMeta]:
    """List the views of ``db_name``."""
    return [
        ViewMeta(name=name, definition=definition, definer=definer, updatable=updatable == 1)
        for name, definition, definer, updatable in _rows(conn, _VIEWS_SQL, 4, (db_name,))
    ]


_COLUMNS_SQL = """
    SELECT
        TABLE_NAME,
        COLUMN_NAME,
        ORDINAL_POSITION,
        DATA_TYPE,
        COLUMN_TYPE,
        CASE WHEN IS_NULLABLE = 'YES' THEN 1 ELSE 0 END,
        COLUMN_DEFAULT,
        CASE WHEN COLUMN_KEY = 'PRI' THEN 1 ELSE 0 END,
        CASE WHEN EXTRA LIKE '%%auto_increment%%' THEN 1 ELSE 0 END,
        CHARACTER_MAXIMUM_LENGTH,
        NUMERIC_PRECISION,
        NUMERIC_SCALE,
        IFNULL(CHARACTER_SET_NAME, ''),
        IFNULL(COLLATION_NAME, ''),
        IFNULL(COLUMN_KEY, ''),
        IFNULL(EXTRA, ''),
        IFNULL(COLUMN_COMMENT, '')
    FROM information_schema.COLUMNS
    WHERE TABLE_SCHEMA = %s
    ORDER BY TABLE_NAME, ORDINAL_POSITION
"""


def _column_from_row(row: Sequence[Any]) -> ColumnMeta | None:
    (
        name,
        ordinal,
        data_type,
        column_type,
        nullable,
        default,
        is_pk,
        is_auto,
        char_max_len,
        num_precision,
        num_scale,
        charset,
        collation,
        column_key,
        extra,
        comment,
    ) = row
    if not _strings(name, data_type, column_type):
        return None
    try:
        ordinal = int(ordinal)
    except (TypeError, ValueError):
        return None
    return ColumnMeta(
        name=name,
        ordinal_pos=ordinal,
        data_type=data_type,
        column_type=format_value(column_type),
        nullable=nullable == 1,
        default_value=None if default is None else format_value(default),
        is_primary_key=is_pk == 1,
        is_auto_incr=is_auto == 1,
        char_max_len=to_int64(char_max_len),
        num_precision=to_int64(num_precision),
        num_scale=to_int64(num_scale),
        character_set=charset,
        collation=collation,
        column_key=column_key,
        extra=extra,
        comment=comment,
    )


def fetch_all_columns(conn: Any, db_name: str) -> dict[str, list[ColumnMeta]]:
    """Return the columns of every table in ``db_name``, keyed by table name."""
    result: dict[str, list[ColumnMeta]] = {}
    for row in _rows(conn, _COLUMNS_SQL, 17, (db_name,)):
        column = _column_from_row(row[1:])
        if column is not None:
            result.setdefault(row[0], []).append(column)
    return result


_PRIMARY_KEYS_SQL = """
    SELECT
        tc.TABLE_NAME,
        tc.CONSTRAINT_NAME,
        kcu.COLUMN_NAME,
        kcu.ORDINAL_POSITION
    FROM information_schema.TABLE_CONSTRAINTS tc
    JOIN information_schema.KEY_COLUMN_USAGE kcu
        ON tc.CONSTRAINT_NAME = kcu.CONSTRAINT_NAME
        AND tc.TABLE_SCHEMA = kcu.TABLE_SCHEMA
        AND tc.TABLE_NAME = kcu.TABLE_NAME
    WHERE tc.TABLE_SCHEMA = %s AND tc.CONSTRAINT_TYPE = 'PRIMARY KEY'
    ORDER BY tc.TABLE_NAME, kcu.ORDINAL_POSITION
"""

_FOREIGN_KEYS_SQL = """
    SELECT
        tc.TABLE_NAME,
        tc.CONSTRAINT_NAME,
        kcu.COLUMN_NAME,
        kcu.REFERENCED_TABLE_NAME,
        kcu.REFERENCED_COLUMN_NAME,
        rc.UPDATE_RULE,
        rc.DELETE_RULE,
        kcu.ORDINAL_POSITION
    FROM information_schema.TABLE_CONSTRAINTS tc
    JOIN information_schema.KEY_COLUMN_USAGE kcu
        ON tc.CONSTRAINT_NAME = kcu.CONSTRAINT_NAME
        AND tc.TABLE_SCHEMA = kcu.TABLE_SCHEMA
        AND tc.TABLE_NAME = kcu.TABLE_NAME
    JOIN information_schema.REFERENTIAL_CONSTRAINTS rc
        ON tc.CONSTRAINT_NAME = rc.CONSTRAINT_NAME
        AND tc.TABLE_SCHEMA = rc.CONSTRAINT_SCHEMA
    WHERE tc.TABLE_SCHEMA = %s AND tc.CONSTRAINT_TYPE = 'FOREIGN KEY'
    ORDER BY tc.TABLE_NAME, tc.CONSTRAINT_NAME, kcu.ORDINAL_POSITION
"""


def _primary_keys(conn: Any, db_name: str) -> dict[str, PrimaryKeyMeta]:
    keys: dict[str, PrimaryKeyMeta] = {}
    for table, constraint, column, _ordinal in _rows(conn, _PRIMARY_KEYS_SQL, 4, (db_name,)):
        if not _strings(table, constraint, column):
            continue
        keys.setdefault(table, PrimaryKeyMeta(name=constraint)).columns.append(column)
    return keys


def _foreign_keys(conn: Any, db_name: str) -> dict[str, list[ForeignKeyMeta]]:
    grouped: dict[str, dict[str, ForeignKeyMeta]] = {}
    for table, constraint, column, ref_table, ref_column, on_update, on_delete, _ in _rows(
        conn, _FOREIGN_KEYS_SQL, 8, (db_name,)
    ):
        if not _strings(table, constraint, column, ref_table, ref_column, on_update, on_delete):
            continue
        fk = grouped.setdefault(table, {}).setdefault(
            constraint,
            ForeignKeyMeta(
                name=constraint, ref_table=ref_table, on_update=on_update, on_delete=on_delete
            ),
        )
        fk.columns.append(column)
        fk.ref_columns.append(ref_column)
    return {table: list(keys.values()) for table, keys in grouped.items()}


def fetch_all_constraints(
    conn: Any, db_name: str
) -> tuple[dict[str, PrimaryKeyMeta], dict[str, list[ForeignKeyMeta]]]:
    """Return primary keys and foreign keys of every table, keyed by table name."""
    return _primary_keys(conn, db_name), _foreign_keys(conn, db_name)


_INDEXES_SQL = """
    SELECT
        TABLE_NAME,
        INDEX_NAME,
        COLUMN_NAME,
        SEQ_IN_INDEX,
        CASE WHEN NON_UNIQUE = 0 THEN 1 ELSE 0 END,
        INDEX_TYPE,
        IFNULL(INDEX_COMMENT, '')
    FROM information_schema.STATISTICS
    WHERE TABLE_SCHEMA = %s
    ORDER BY TABLE_NAME, INDEX_NAME, SEQ_IN_INDEX
"""


def fetch_all_indexes(conn: Any, db_name: str) -> dict[str, list[IndexMeta]]:
    """Return the indexes of every table, keyed by table name."""
    grouped: dict[str, dict[str, IndexMeta]] = {}
    for table, index, column, _seq, unique, index_type, comment in _rows(
        conn, _INDEXES_SQL, 7, (db_name,)
    ):
        if not _strings(table, index, column, index_type):
            continue
        meta = grouped.setdefault(table, {}).setdefault(
            index,
            IndexMeta(
                name=index,
                index_type=index_type,
                is_unique=unique == 1,
                is_primary=index == "PRIMARY",
                comment=comment,
            ),
        )
        meta.columns.append(column)
    return {table: list(indexes.values()) for table, indexes in grouped.items()}


_TRIGGERS_SQL = """
    SELECT
        TRIGGER_NAME,
        EVENT_OBJECT_TABLE,
        EVENT_MANIPULATION,
        ACTION_TIMING,
        ACTION_STATEMENT,
        IFNULL(DEFINER, ''),
        IFNULL(CREATED, '')
    FROM information_schema.TRIGGERS
    WHERE TRIGGER_SCHEMA = %s
    ORDER BY TRIGGER_NAME
"""


def fetch_triggers(conn: Any, db_name: str) -> list[TriggerMeta]:
    """List the triggers of ``db_name``."""
    return [
        TriggerMeta(
            name=name,
            table=table,
            event=event,
            timing=timing,
            statement=statement,
            definer=definer,
            created=format_time(created),
        )
        for name, table, event, timing, statement, definer, created in _rows(
            conn, _TRIGGERS_SQL, 7, (db_name,)
        )
    ]


_ROUTINES_SQL = """
    SELECT
        ROUTINE_NAME,
        ROUTINE_TYPE,
        IFNULL(DEFINER, ''),
        IFNULL(DTD_IDENTIFIER, ''),
        IFNULL(ROUTINE_DEFINITION, ''),
        IFNULL(CREATED, ''),
        IFNULL(LAST_ALTERED, ''),
        IFNULL(ROUTINE_COMMENT, '')
    FROM information_schema.ROUTINES
    WHERE ROUTINE_SCHEMA = %s
    ORDER BY ROUTINE_TYPE, ROUTINE_NAME
"""

_PARAMETERS_SQL = """
    SELECT
        SPECIFIC_NAME,
        ROUTINE_TYPE,
        IFNULL(PARAMETER_NAME, ''),
        IFNULL(PARAMETER_MODE, ''),
        IFNULL(DTD_IDENTIFIER, ''),
        ORDINAL_POSITION
    FROM information_schema.PARAMETERS
    WHERE SPECIFIC_SCHEMA = %s AND ORDINAL_POSITION > 0
    ORDER BY SPECIFIC_NAME, ORDINAL_POSITION
"""


def fetch_routines(conn: Any, db_name: str) -> list[RoutineMeta]:
    """List stored procedures and functions with their parameters.

    A failure while reading parameters leaves the parameter lists empty.
    """
    routines: dict[str, RoutineMeta] = {}
    order: list[str] = []
    for name, kind, definer, data_type, definition, created, modified, comment in _rows(
        conn, _ROUTINES_SQL, 8, (db_name,)
    ):
        key = f"{kind}:{name}"
        routines[key] = RoutineMeta(
            name=name,
            type=kind,
            definer=definer,
            data_type=data_type,
            definition=definition,
            created=format_time(created),
            modified=format_time(modified),
            comment=comment,
        )
        order.append(key)

    try:
        parameters = list(_rows(conn, _PARAMETERS_SQL, 6, (db_name,)))
    except Exception:  # the driver's own error classes are not known here
        parameters = []
    for routine_name, kind, name, mode, data_type, ordinal in parameters:
        routine = routines.get(f"{kind}:{routine_name}")
        if routine is None:
            continue
        try:
            ordinal = int(ordinal)
        except (TypeError, ValueError):
            continue
        routine.parameters.append(
            ParameterMeta(name=name, mode=mode, data_type=data_type, ordinal_pos=ordinal)
        )

    return [routines[key] for key in order]


_UDFS_SQL = "SELECT name, ret, type, dl FROM mysql.func ORDER BY name"

_UDF_RETURN_TYPES = {0: "STRING", 1: "REAL", 2: "INTEGER"}


def fetch_udfs(conn: Any) -> list[UDFMeta]:
    """List loadable functions; an empty list when access is denied."""
    try:
        rows = list(_rows(conn, _UDFS_SQL, 4))
    except Exception as exc:  # the driver's own error classes are not known here
        if "denied" in str(exc):
            return []
        raise
    udfs: list[UDFMeta] = []
    for name, ret, kind, library in rows:
        try:
            ret = int(ret)
        except (TypeError, ValueError):
            continue
        udfs.append(
            UDFMeta(
                name=name,
                return_type=_UDF_RETURN_TYPES.get(ret, "UNKNOWN"),
                type=kind,
                library=library,
            )
        )
    return udfs


def fetch_database_metadata(conn: Any, db_name: str) -> DatabaseMetadata:
    """Collect the full metadata of ``db_name``.

    Parts that cannot be read are left empty and reported in ``warnings``.
    """
    started = time.perf_counter()
    metadata = DatabaseMetadata(db_name=db_name)
    warnings = metadata.warnings

    def attempt(label: str, action: Any, default: Any) -> Any:
        try:
            return action()
        except Exception as exc:  # the driver's own error classes are not known here
            warnings.append(f"{label}: {exc}")
            return default

    metadata.tables = attempt("获取表列表失败", lambda: fetch_tables(conn, db_name), [])
    metadata.views = attempt("获取视图列表失败", lambda: fetch_views(conn, db_name), [])
    columns = attempt("获取字段信息失败", lambda: fetch_all_columns(conn, db_name), {})

    foreign: dict[str, list[ForeignKeyMeta]] = {}
    primary = attempt("获取约束信息失败", lambda: _primary_keys(conn, db_name), None)
    if primary is None:
        primary = {}
    else:
        foreign = attempt("获取约束信息失败", lambda: _foreign_keys(conn, db_name), {})

    indexes = attempt("获取索引信息失败", lambda: fetch_all_indexes(conn, db_name), {})

    for table in metadata.tables:
        if table.name in columns:
            table.columns = columns[table.name]
        if table.name in primary:
            table.primary_key = primary[table.name]
        if table.name in foreign:
            table.foreign_keys = foreign[table.name]
        if table.name in indexes:
            table.indexes = indexes[table.name]

    metadata.triggers = attempt("获取触发器失败", lambda: fetch_triggers(conn, db_name), [])
    metadata.routines = attempt(
        "获取存储过程/函数失败", lambda: fetch_routines(conn, db_name), []
    )
    metadata.udfs = attempt("获取UDF失败（可能权限不足）", lambda: fetch_udfs(conn), [])

    metadata.took = int((time.perf_counter() - started) * 1000)
    metadata.cached_at = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    metadata.from_cache = False
    return metadata


class MetadataCache:
    """Time-limited cache of per-database and all-database metadata.

    Entries are handed out as shallow copies marked ``from_cache``.
    """

    def __init__(self, ttl: float = DEFAULT_TTL) -> None:
        self.ttl = ttl
        self._lock = threading.RLock()
        self._entries: dict[str, tuple[Any, float]] = {}
        self._all: tuple[Any, float] | None = None

    @staticmethod
    def _cached_copy(data: Any) -> Any:
        result = copy.copy(data)
        result.from_cache = True
        return result

    def get(self, db_name: str) -> DatabaseMetadata | None:
        """Return the cached metadata of ``db_name``, or None if absent or expired."""
        with self._lock:
            entry = self._entries.get(db_name)
            if entry is None:
                return None
            data, stored = entry
            if time.monotonic() - stored > self.ttl:
                return None
            return self._cached_copy(data)

    def put(self, db_name: str, metadata: DatabaseMetadata) -> None:
        """Store the metadata of ``db_name``."""
        with self._lock:
            self._entries[db_name] = (metadata, time.monotonic())

    def get_all(self) -> Any:
        """Return the cached all-database metadata, or None if absent or expired."""
        with self._lock:
            if self._all is None:
                return None
            data, stored = self._all
            if not time.monotonic() - stored < self.ttl:
                return None
            return self._cached_copy(data)

    def put_all(self, metadata: Any) -> None:
        """Store the all-database metadata."""
        with self._lock:
            self._all = (metadata, time.monotonic())