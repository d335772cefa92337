"""HTTP API of the Redis viewer."""

from __future__ import annotations

import argparse
import logging
import time
from datetime import datetime
from typing import Any

import redis
from flask import Flask, Response, g, jsonify, request

from .config import ScanConfig, load
from .data import KeyNotFoundError, delete_key, get_key_info
from .info import RedisManager, RedisUnavailable
from .models import APIResponse
from .scanner import get_key_tree, search_key_tree

log = logging.getLogger(__name__)

TREE_MAX_KEYS = 10000
TREE_SEPARATOR = ":"


def _success(data: Any) -> tuple[Response, int]:
    return jsonify(APIResponse(code=0, message="success", data=data).to_dict()), 200


def _error(code: int, message: str) -> tuple[Response, int]:
    return jsonify(APIResponse(code=code, message=message).to_dict()), code


def _bad_request(message: str) -> tuple[Response, int]:
    return _error(400, message)


def _server_error(message: str) -> tuple[Response, int]:
    return _error(500, message)


def _format_duration(seconds: float) -> str:
    nanos = seconds * 1e9
    if nanos < 1e3:
        return f"{int(nanos)}ns"
    if nanos < 1e6:
        return f"{nanos / 1e3:g}µs"
    if nanos < 1e9:
        return f"{nanos / 1e6:g}ms"
    return f"{seconds:g}s"


def _install_middleware(app: Flask) -> None:
    @app.before_request
    def _start() -> Any:
        g.started = time.perf_counter()
        if request.method == "OPTIONS":
            return Response(status=204)
        return None

    @app.after_request
    def _finish(response: Response) -> Response:
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, DELETE, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
        latency = time.perf_counter() - g.get("started", time.perf_counter())
        print(
            f"[{datetime.now():%Y-%m-%d %H:%M:%S}] {request.method} {request.path} "
            f"{response.status_code} {_format_duration(latency)} {request.remote_addr}"
        )
        return response


def create_app(manager: Any) -> Flask:
    """Build the Flask application serving the Redis viewer API."""
    app = Flask(__name__)
    app.config.setdefault("SCAN_CONFIG", ScanConfig())
    _install_middleware(app)

    @app.get("/health")
    def health() -> Any:
        return jsonify({"status": "ok"})

    @app.get("/api/info")
    def redis_info() -> Any:
        try:
            info = manager.get_info()
        except (RedisUnavailable, redis.RedisError) as exc:
            return _server_error(str(exc))
        return _success(info)

    @app.get("/api/tree")
    def redis_tree() -> Any:
        key = request.args.get("key", "")
        try:
            client = manager.get_client()
        except RedisUnavailable as exc:
            return _bad_request(str(exc))

        scan_config = app.config["SCAN_CONFIG"]
        try:
            if "*" in key:
                tree = search_key_tree(client, key, TREE_SEPARATOR, TREE_MAX_KEYS, scan_config)
            else:
                pattern = f"{key}:*" if key else "*"
                tree = get_key_tree(
                    client, pattern, TREE_SEPARATOR, key, TREE_MAX_KEYS, scan_config
                )
        except redis.RedisError as exc:
            return _server_error(f"扫描 Key 失败: {exc}")
        return _success(tree.to_dict())

    @app.get("/api/key")
    def redis_key() -> Any:
        key = request.args.get("key", "")
        if not key:
            return _bad_request("key 参数不能为空")
        try:
            client = manager.get_client()
        except RedisUnavailable as exc:
            return _bad_request(str(exc))
        try:
            info = get_key_info(client, key)
        except (KeyNotFoundError, redis.RedisError) as exc:
            return _server_error(str(exc))
        return _success(info.to_dict())

    @app.delete("/api/delete")
    def redis_key_delete() -> Any:
        key = request.args.get("key", "")
        if not key:
            return _bad_request("key 参数不能为空")
        try:
            client = manager.get_client()
        except RedisUnavailable as exc:
            return _bad_request(str(exc))
        try:
            delete_key(client, key)
        except redis.RedisError as exc:
            return _server_error(str(exc))
        return _success({"message": "删除成功"})

    return app


def _split_address(address: str) -> tuple[str, int]:
    host, _, port = address.rpartition(":")
    return host or "0.0.0.0", int(port)


def main(argv: list[str] | None = None) -> int:
    """Load the configuration, connect to Redis and serve the API."""
    parser = argparse.ArgumentParser(description="Browse the keys of a Redis server over HTTP.")
    parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")

    cfg = load()
    manager = RedisManager(cfg.redis)
    manager.connect()
    app = create_app(manager)
    app.config["SCAN_CONFIG"] = cfg.scan

    log.info("Redis Viewer 启动在 %s", cfg.server.port)
    try:
        host, port = _split_address(cfg.server.port)
        app.run(host=host, port=port)
    except (OSError, ValueError) as exc:
        log.critical("启动失败: %s", exc)
        return 1
    finally:
        manager.close()
    return 0