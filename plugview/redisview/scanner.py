"""Key listing with SCAN and building key trees from the results."""

from __future__ import annotations

from typing import Any, Iterable

import redis

from .config import ScanConfig
from .models import KeyNode

MAX_CHILDREN = 10


def _text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", "replace")
    return value


def _sort_key(node: KeyNode) -> tuple[bool, str]:
    # Branches before leaves, then by name.
    return (node.is_leaf, node.name)


def scan_all_keys(
    client: Any,
    pattern: str = "*",
    max_keys: int = 0,
    scan_config: ScanConfig | None = None,
) -> list[str]:
    """Collect keys matching ``pattern`` with SCAN, at most ``max_keys`` of them."""
    scan_config = scan_config or ScanConfig()
    pattern = pattern or "*"
    if max_keys <= 0:
        max_keys = scan_config.max_count

    keys: list[str] = []
    cursor = 0
    while True:
        cursor, batch = client.scan(cursor=cursor, match=pattern, count=scan_config.default_count)
        keys.extend(_text(key) for key in batch)
        if int(cursor) == 0 or len(keys) >= max_keys:
            break
    return keys[:max_keys]


def get_key_tree(
    client: Any,
    pattern: str = "*",
    separator: str = "",
    prefix: str = "",
    max_keys: int = 0,
    scan_config: ScanConfig | None = None,
) -> KeyNode:
    """Return one level of the key tree below ``prefix``."""
    scan_config = scan_config or ScanConfig()
    keys = scan_all_keys(client, pattern, max_keys, scan_config)
    if prefix:
        try:
            exists = client.exists(prefix)
        except redis.RedisError:
            exists = 0
        if exists:
            keys.append(prefix)
    return build_key_tree_one_level(
        keys, separator or scan_config.default_separator, prefix, MAX_CHILDREN
    )


def search_key_tree(
    client: Any,
    pattern: str,
    separator: str = ":",
    max_keys: int = 0,
    scan_config: ScanConfig | None = None,
) -> KeyNode:
    """Return the full tree of keys matching a glob ``pattern``."""
    keys = scan_all_keys(client, pattern, max_keys, scan_config)
    return build_search_tree(keys, separator, MAX_CHILDREN)


def _insert_key(root: KeyNode, key: str, separator: str) -> None:
    parts = key.split(separator)
    current = root
    for position, part in enumerate(parts):
        child = next((node for node in current.children if node.name == part), None)
        if child is None:
            child = KeyNode(name=part)
            current.children.append(child)
        if position == len(parts) - 1:
            child.is_leaf = True
            child.full_key = key
        child.count += 1
        current = child


def _limit_and_sort(node: KeyNode, max_children: int) -> None:
    if not node.children:
        return
    node.children = sorted(node.children, key=_sort_key)[:max_children]
    for child in node.children:
        _limit_and_sort(child, max_children)
    node.count = len(node.children)


def build_search_tree(
    keys: Iterable[str], separator: str = ":", max_children: int = MAX_CHILDREN
) -> KeyNode:
    """Build a complete tree from ``keys``, keeping ``max_children`` per level."""
    separator = separator or ":"
    root = KeyNode(name="root")
    for key in keys:
        _insert_key(root, key, separator)
    _limit_and_sort(root, max_children)
    return root


def build_key_tree_one_level(
    keys: Iterable[str],
    separator: str = ":",
    prefix: str = "",
    max_children: int = MAX_CHILDREN,
) -> KeyNode:
    """Build the single level of the tree directly below ``prefix``."""
    separator = separator or ":"
    root = KeyNode(name="root")
    children: dict[str, KeyNode] = {}
    branches: set[str] = set()
    lead = prefix + separator

    for key in keys:
        if key == prefix:
            root.full_key = prefix
            continue
        if not prefix:
            remaining = key
        elif key.startswith(lead):
            remaining = key[len(lead):]
        else:
            continue

        first, *rest = remaining.split(separator, 1)
        if not first:
            continue

        node = children.get(first)
        if node is None:
            full_key = f"{lead}{first}" if prefix else first
            children[first] = KeyNode(name=first, full_key=full_key, is_leaf=True, count=1)
        else:
            node.count += 1
        if rest:
            branches.add(first)

    for name in branches:
        children[name].is_leaf = False
        children[name].full_key = ""

    root.children = sorted(children.values(), key=_sort_key)[:max_children]
    root.count = len(root.children)
    if root.full_key and not root.children:
        root.is_leaf = True
    return root