"""Reading the value of a single key and deleting keys."""

from __future__ import annotations

from typing import Any

import redis

from .models import KeyInfo

PREVIEW_LIMIT = 100


class KeyNotFoundError(LookupError):
    """Raised when the requested key does not exist."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Key 不存在: {key}")
        self.key = key


def _text(value: Any) -> Any:
    if isinstance(value, bytes):
        return value.decode("utf-8", "replace")
    return value


def _string_value(client: Any, key: str, info: KeyInfo) -> None:
    value = client.get(key)
    raw = value if isinstance(value, bytes) else (value or "").encode("utf-8")
    info.value = _text(value)
    info.size = len(raw)


def _list_value(client: Any, key: str, info: KeyInfo) -> None:
    length = int(client.llen(key))
    info.size = length
    limit = min(PREVIEW_LIMIT, length)
    info.value = [_text(item) for item in client.lrange(key, 0, limit - 1)]


def _set_value(client: Any, key: str, info: KeyInfo) -> None:
    info.size = int(client.scard(key))
    members: list[Any] = []
    cursor = 0
    while len(members) < PREVIEW_LIMIT:
        cursor, batch = client.sscan(key, cursor=cursor, match="*", count=100)
        members.extend(_text(member) for member in batch)
        if int(cursor) == 0:
            break
    info.value = members[:PREVIEW_LIMIT]


def _hash_value(client: Any, key: str, info: KeyInfo) -> None:
    info.size = int(client.hlen(key))
    result: dict[Any, Any] = {}
    cursor = 0
    while len(result) < PREVIEW_LIMIT:
        cursor, batch = client.hscan(key, cursor=cursor, match="*", count=200)
        for name, value in batch.items():
            if len(result) >= PREVIEW_LIMIT:
                break
            result[_text(name)] = _text(value)
        if int(cursor) == 0:
            break
    info.value = result


def _zset_value(client: Any, key: str, info: KeyInfo) -> None:
    size = int(client.zcard(key))
    info.size = size
    limit = min(PREVIEW_LIMIT, size)
    entries = client.zrange(key, 0, limit - 1, withscores=True)
    info.value = [
        {"member": _text(member), "score": float(score)} for member, score in entries
    ]


_READERS = {
    "string": _string_value,
    "list": _list_value,
    "set": _set_value,
    "hash": _hash_value,
    "zset": _zset_value,
}


def get_key_info(client: Any, key: str) -> KeyInfo:
    """Return the type, TTL, size and a preview of the value of ``key``.

    Collections are previewed with at most 100 entries. A key without an
    expiry is reported with a TTL of 0.
    """
    try:
        key_type = _text(client.type(key))
    except redis.RedisError as exc:
        raise redis.RedisError(f"获取 Key 类型失败: {exc}") from exc
    if key_type == "none":
        raise KeyNotFoundError(key)

    try:
        ttl = int(client.ttl(key))
    except redis.RedisError as exc:
        raise redis.RedisError(f"获取 TTL 失败: {exc}") from exc

    info = KeyInfo(key=key, type=key_type, ttl=max(ttl, 0))
    reader = _READERS.get(key_type)
    if reader is None:
        info.value = f"不支持的类型: {key_type}"
    else:
        reader(client, key, info)
    return info


def delete_key(client: Any, key: str) -> None:
    """Delete ``key``."""
    client.delete(key)