"""Shared Redis connection and server status summaries."""

from __future__ import annotations

import logging
import threading
from typing import Any, Mapping

import redis

from .config import RedisConfig

log = logging.getLogger(__name__)


class RedisUnavailable(RuntimeError):
    """Raised when no Redis client has been set up."""

    def __init__(self, message: str = "Redis 未连接") -> None:
        super().__init__(message)


def parse_redis_info(info: str) -> dict[str, str]:
    """Parse the text returned by INFO into a field map."""
    result: dict[str, str] = {}
    for line in info.split("\r\n"):
        if not line or line.startswith("#"):
            continue
        name, sep, value = line.partition(":")
        if sep:
            result[name] = value
    return result


def parse_keyspace(info: Mapping[str, str]) -> dict[str, str]:
    """Pick the per-database entries out of parsed INFO fields."""
    return {name: value for name, value in info.items() if name.startswith("db")}


def summarize_info(parsed: Mapping[str, str], db_size: int) -> dict[str, Any]:
    """Group INFO fields into the status document the API returns."""

    def field(name: str) -> str:
        return parsed.get(name, "")

    return {
        "connected": True,
        "dbSize": db_size,
        "server": {
            "version": field("redis_version"),
            "mode": field("redis_mode"),
            "os": field("os"),
            "uptimeDays": field("uptime_in_days"),
            "port": field("tcp_port"),
        },
        "memory": {
            "used": field("used_memory_human"),
            "peak": field("used_memory_peak_human"),
            "total": field("total_system_memory_human"),
            "fragRatio": field("mem_fragmentation_ratio"),
        },
        "clients": {
            "connected": field("connected_clients"),
            "blocked": field("blocked_clients"),
            "maxClient": field("maxclients"),
        },
        "stats": {
            "totalConnections": field("total_connections_received"),
            "totalCommands": field("total_commands_processed"),
            "opsPerSec": field("instantaneous_ops_per_sec"),
            "keyspaceHits": field("keyspace_hits"),
            "keyspaceMisses": field("keyspace_misses"),
        },
        "replication": {
            "role": field("role"),
            "connectedSlaves": field("connected_slaves"),
        },
        "keyspace": parse_keyspace(parsed),
    }


def _stringify_info(info: Mapping[str, Any]) -> dict[str, str]:
    """Turn an already parsed INFO mapping back into string fields."""
    result: dict[str, str] = {}
    for name, value in info.items():
        if isinstance(value, Mapping):
            result[name] = ",".join(f"{k}={v}" for k, v in value.items())
        else:
            result[name] = str(value)
    return result


class RedisManager:
    """Holds the shared Redis client."""

    def __init__(self, config: RedisConfig | None = None) -> None:
        self.config = config or RedisConfig()
        self._client: Any = None
        self._lock = threading.RLock()

    def connect(self) -> bool:
        """Create the client and ping the server; True when the ping succeeds.

        The client is kept even when the ping fails.
        """
        cfg = self.config
        with self._lock:
            pool = redis.ConnectionPool(
                host=cfg.host,
                port=cfg.port,
                password=cfg.password or None,
                db=cfg.db,
                socket_connect_timeout=5,
                socket_timeout=3,
                max_connections=10,
                decode_responses=True,
            )
            self._client = redis.Redis(connection_pool=pool)
            try:
                self._client.ping()
            except redis.RedisError as exc:
                log.warning("Redis 连接失败: %s", exc)
                return False
        log.info("Redis 连接成功: %s:%d", cfg.host, cfg.port)
        return True

    def get_client(self) -> Any:
        """Return the client, or raise RedisUnavailable."""
        with self._lock:
            if self._client is None:
                raise RedisUnavailable()
            return self._client

    def close(self) -> None:
        """Close and drop the client."""
        with self._lock:
            if self._client is not None:
                self._client.close()
                self._client = None

    def get_info(self) -> dict[str, Any]:
        """Return the server status summary."""
        with self._lock:
            client = self.get_client()
            raw = client.info()
            try:
                db_size = int(client.dbsize())
            except redis.RedisError:
                db_size = 0
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", "replace")
        parsed = parse_redis_info(raw) if isinstance(raw, str) else _stringify_info(raw)
        return summarize_info(parsed, db_size)