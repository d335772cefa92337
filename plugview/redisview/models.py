"""Data shapes returned by the Redis viewer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Connection:
    """A saved Redis connection."""

    id: str
    name: str
    host: str
    port: int
    password: str = ""
    db: int = 0

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "host": self.host,
            "port": self.port,
        }
        if self.password:
            data["password"] = self.password
        data["db"] = self.db
        return data


@dataclass
class KeyNode:
    """A node of the key tree."""

    name: str
    full_key: str = ""
    is_leaf: bool = False
    children: list[KeyNode] = field(default_factory=list)
    count: int = 0

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name}
        if self.full_key:
            data["fullKey"] = self.full_key
        data["isLeaf"] = self.is_leaf
        if self.children:
            data["children"] = [child.to_dict() for child in self.children]
        data["count"] = self.count
        return data


@dataclass
class KeyInfo:
    """Details of a single key."""

    key: str
    type: str
    ttl: int
    value: Any = None
    size: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "type": self.type,
            "ttl": self.ttl,
            "value": self.value,
            "size": self.size,
        }


@dataclass
class APIResponse:
    """The envelope every API reply is wrapped in."""

    code: int
    message: str
    data: Any = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            result["data"] = self.data
        return result