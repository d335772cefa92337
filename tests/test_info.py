from unittest import mock

import pytest
import redis

from plugview.redisview.config import RedisConfig
from plugview.redisview.info import (
    RedisManager,
    RedisUnavailable,
    parse_keyspace,
    parse_redis_info,
    summarize_info,
)

INFO_TEXT = (
    "# Server\r\n"
    "redis_version:7.2.0\r\n"
    "redis_mode:standalone\r\n"
    "\r\n"
    "# Replication\r\n"
    "role:master\r\n"
    "weird\r\n"
    "url:a:b\r\n"
    "# Keyspace\r\n"
    "db0:keys=5,expires=0,avg_ttl=0\r\n"
)


class FakeClient:
    def __init__(self, info=INFO_TEXT, db_size=5, ping_error=False, dbsize_error=False):
        self._info = info
        self._db_size = db_size
        self._ping_error = ping_error
        self._dbsize_error = dbsize_error
        self.closed = False

    def ping(self):
        if self._ping_error:
            raise redis.ConnectionError("refused")
        return True

    def info(self):
        return self._info

    def dbsize(self):
        if self._dbsize_error:
            raise redis.ResponseError("no")
        return self._db_size

    def close(self):
        self.closed = True


def _connected(fake):
    manager = RedisManager(RedisConfig())
    with mock.patch("redis.Redis", return_value=fake):
        ok = manager.connect()
    return manager, ok


def test_parse_redis_info_skips_comments_and_malformed_lines():
    parsed = parse_redis_info(INFO_TEXT)
    assert parsed["redis_version"] == "7.2.0"
    assert parsed["role"] == "master"
    assert parsed["url"] == "a:b"
    assert "weird" not in parsed
    assert not any(name.startswith("#") for name in parsed)


def test_parse_keyspace_keeps_db_prefixed_fields():
    parsed = {"db0": "keys=1", "role": "master", "dbsize_x": "y"}
    assert parse_keyspace(parsed) == {"db0": "keys=1", "dbsize_x": "y"}


def test_summarize_info_fills_missing_with_empty_strings():
    summary = summarize_info({"redis_version": "7.2.0"}, 0)
    assert summary["connected"] is True
    assert summary["server"]["version"] == "7.2.0"
    assert summary["memory"]["used"] == ""
    assert summary["keyspace"] == {}


def test_get_client_before_connect_raises():
    manager = RedisManager(RedisConfig())
    with pytest.raises(RedisUnavailable):
        manager.get_client()
    with pytest.raises(RedisUnavailable):
        manager.get_info()


def test_connect_and_get_info():
    fake = FakeClient()
    manager, ok = _connected(fake)
    assert ok is True
    assert manager.get_client() is fake
    info = manager.get_info()
    assert info["dbSize"] == 5
    assert info["server"]["version"] == "7.2.0"
    assert info["server"]["mode"] == "standalone"
    assert info["replication"]["role"] == "master"
    assert info["keyspace"] == {"db0": "keys=5,expires=0,avg_ttl=0"}


def test_failed_ping_keeps_client():
    fake = FakeClient(ping_error=True)
    manager, ok = _connected(fake)
    assert ok is False
    assert manager.get_client() is fake


def test_dbsize_error_reports_zero():
    manager, _ = _connected(FakeClient(dbsize_error=True))
    assert manager.get_info()["dbSize"] == 0


def test_parsed_info_mapping_is_accepted():
    fake = FakeClient(info={"redis_version": "7.0", "db0": {"keys": 3, "expires": 0}})
    manager, _ = _connected(fake)
    info = manager.get_info()
    assert info["server"]["version"] == "7.0"
    assert info["keyspace"] == {"db0": "keys=3,expires=0"}


def test_close_drops_client():
    fake = FakeClient()
    manager, _ = _connected(fake)
    manager.close()
    assert fake.closed is True
    with pytest.raises(RedisUnavailable):
        manager.get_client()