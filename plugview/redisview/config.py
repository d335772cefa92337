"""Application settings: defaults, then a JSON file, then environment variables."""

from __future__ import annotations

import copy
import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping

DEFAULT_PATHS: tuple[str, ...] = ("config.json", "./config/config.json")

_INT_RE = re.compile(r"[+-]?\d+")


@dataclass
class ServerConfig:
    """HTTP server settings."""

    port: str = ":8080"


@dataclass
class RedisConfig:
    """Default Redis connection settings."""

    host: str = "localhost"
    port: int = 6379
    password: str = ""
    db: int = 0


@dataclass
class ScanConfig:
    """Settings for SCAN-based key listing."""

    default_count: int = 1000
    max_count: int = 10000
    default_separator: str = ":"


@dataclass
class AppConfig:
    """All application settings."""

    server: ServerConfig = field(default_factory=ServerConfig)
    redis: RedisConfig = field(default_factory=RedisConfig)
    scan: ScanConfig = field(default_factory=ScanConfig)


# JSON section name -> {lower-case JSON key: (attribute, type)}
_SECTIONS: dict[str, dict[str, tuple[str, type]]] = {
    "server": {"port": ("port", str)},
    "redis": {
        "host": ("host", str),
        "port": ("port", int),
        "password": ("password", str),
        "db": ("db", int),
    },
    "scan": {
        "defaultcount": ("default_count", int),
        "maxcount": ("max_count", int),
        "defaultseparator": ("default_separator", str),
    },
}


def _check_type(value: Any, expected: type) -> Any:
    if expected is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"expected an integer, got {value!r}")
    elif not isinstance(value, expected):
        raise TypeError(f"expected {expected.__name__}, got {value!r}")
    return value


def _apply_json(cfg: AppConfig, data: Any) -> AppConfig:
    """Return a copy of ``cfg`` with the fields present in ``data`` applied."""
    result = copy.deepcopy(cfg)
    if data is None:
        return result
    if not isinstance(data, dict):
        raise TypeError("configuration must be a JSON object")
    for section_key, section_value in data.items():
        fields = _SECTIONS.get(section_key.lower())
        if fields is None or section_value is None:
            continue
        if not isinstance(section_value, dict):
            raise TypeError(f"section {section_key!r} must be an object")
        target = getattr(result, section_key.lower())
        for key, value in section_value.items():
            spec = fields.get(key.lower())
            if spec is None or value is None:
                continue
            attr, expected = spec
            setattr(target, attr, _check_type(value, expected))
    return result


def _env_int(environ: Mapping[str, str], name: str) -> int | None:
    value = environ.get(name, "")
    if value and _INT_RE.fullmatch(value):
        return int(value)
    return None


def _apply_env(cfg: AppConfig, environ: Mapping[str, str]) -> None:
    if value := environ.get("SERVER_PORT", ""):
        cfg.server.port = value
    if value := environ.get("REDIS_HOST", ""):
        cfg.redis.host = value
    if (port := _env_int(environ, "REDIS_PORT")) is not None:
        cfg.redis.port = port
    if value := environ.get("REDIS_PASSWORD", ""):
        cfg.redis.password = value
    if (db := _env_int(environ, "REDIS_DB")) is not None:
        cfg.redis.db = db
    if (count := _env_int(environ, "SCAN_MAX_COUNT")) is not None:
        cfg.scan.max_count = count
    if value := environ.get("SCAN_SEPARATOR", ""):
        cfg.scan.default_separator = value


def load(
    paths: Iterable[str | os.PathLike[str]] | None = None,
    environ: Mapping[str, str] | None = None,
) -> AppConfig:
    """Build the configuration: environment beats file, file beats defaults.

    The first readable file that parses as a valid configuration is used;
    unreadable or invalid files are skipped.
    """
    cfg = AppConfig()
    for path in DEFAULT_PATHS if paths is None else paths:
        try:
            raw = Path(path).read_bytes()
        except OSError:
            continue
        try:
            cfg = _apply_json(cfg, json.loads(raw))
        except (ValueError, TypeError):
            continue
        break
    _apply_env(cfg, os.environ if environ is None else environ)
    return cfg