"""Tracking of running queries so that they can be listed and cancelled."""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

log = logging.getLogger(__name__)

RUNNING = "running"
CANCELLED = "cancelled"
COMPLETED = "completed"

SQL_PREVIEW_LENGTH = 200


@dataclass
class QueryInfo:
    """A registered query and its state."""

    query_id: str
    connection_id: int
    start_time: datetime
    sql: str
    db_name: str
    status: str = RUNNING
    cancel_event: threading.Event = field(
        default_factory=threading.Event, repr=False, compare=False
    )


def _shorten(sql_text: str) -> str:
    if len(sql_text) > SQL_PREVIEW_LENGTH:
        return sql_text[:SQL_PREVIEW_LENGTH] + "..."
    return sql_text


class QueryManager:
    """Registry of running queries.

    ``killer`` is called with a server connection id to stop the statement
    running on that connection; it raises when that fails.
    """

    def __init__(self, killer: Callable[[int], None] | None = None) -> None:
        self._killer = killer
        self._lock = threading.RLock()
        self._queries: dict[str, QueryInfo] = {}
        self._counter = 0

    def register_query(
        self, conn_id: int, sql_text: str, db_name: str
    ) -> tuple[str, threading.Event]:
        """Register a query running on ``conn_id``; return its id and cancel event."""
        with self._lock:
            self._counter += 1
            query_id = f"q_{int(time.time() * 1000)}_{self._counter}"
            event = threading.Event()
            self._queries[query_id] = QueryInfo(
                query_id=query_id,
                connection_id=conn_id,
                start_time=datetime.now(),
                sql=_shorten(sql_text),
                db_name=db_name,
                cancel_event=event,
            )
        log.info("注册查询: %s, ConnectionID: %d", query_id, conn_id)
        return query_id, event

    def register_with_id(
        self,
        query_id: str,
        sql_text: str,
        db_name: str,
        cancel_event: threading.Event,
    ) -> None:
        """Register a query under an id chosen by the caller."""
        with self._lock:
            self._queries[query_id] = QueryInfo(
                query_id=query_id,
                connection_id=0,
                start_time=datetime.now(),
                sql=_shorten(sql_text),
                db_name=db_name,
                cancel_event=cancel_event,
            )
        log.info("注册查询(外部ID): %s", query_id)

    def cancel_query(self, query_id: str) -> tuple[bool, str]:
        """Cancel a running query; return whether it was cancelled and a message."""
        with self._lock:
            info = self._queries.get(query_id)
            if info is None:
                return False, "查询不存在或已完成"
            if info.status != RUNNING:
                return False, "查询已经" + info.status
            conn_id = info.connection_id
            info.status = CANCELLED
            info.cancel_event.set()

        if conn_id > 0 and self._killer is not None:
            try:
                self._killer(conn_id)
            except Exception as exc:  # the driver's own error classes are not known here
                log.warning("KILL QUERY %d 失败: %s", conn_id, exc)
                return True, f"已取消，但MySQL终止失败: {exc}"
            log.info("成功终止查询: %s, ConnectionID: %d", query_id, conn_id)
        return True, "查询已终止"

    def unregister_query(self, query_id: str) -> None:
        """Forget a finished query."""
        with self._lock:
            info = self._queries.pop(query_id, None)
            if info is None:
                return
            if info.status == RUNNING:
                info.status = COMPLETED
        log.info("注销查询: %s", query_id)

    def active_queries(self) -> list[QueryInfo]:
        """Return copies of the queries that are still running."""
        with self._lock:
            return [
                dataclasses.replace(info)
                for info in self._queries.values()
                if info.status == RUNNING
            ]