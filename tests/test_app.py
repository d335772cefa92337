from fnmatch import fnmatchcase

import pytest

from plugview.redisview.app import create_app
from plugview.redisview.info import RedisUnavailable


class FakeRedis:
    def __init__(self, strings):
        self.strings = dict(strings)

    def scan(self, cursor=0, match=None, count=None):
        return 0, [k for k in self.strings if fnmatchcase(k, match or "*")]

    def exists(self, *keys):
        return sum(1 for k in keys if k in self.strings)

    def type(self, key):
        return "string" if key in self.strings else "none"

    def ttl(self, key):
        return -1

    def get(self, key):
        return self.strings[key]

    def delete(self, *keys):
        return sum(1 for k in keys if self.strings.pop(k, None) is not None)


class FakeManager:
    def __init__(self, client=None, info=None):
        self.client = client
        self.info = info or {"connected": True, "dbSize": 3}

    def get_client(self):
        if self.client is None:
            raise RedisUnavailable()
        return self.client

    def get_info(self):
        if self.client is None:
            raise RedisUnavailable()
        return self.info


@pytest.fixture
def redis_client():
    return FakeRedis({"user:1": "alice", "user:2": "bob", "config": "on"})


@pytest.fixture
def http(redis_client):
    return create_app(FakeManager(redis_client)).test_client()


@pytest.fixture
def offline():
    return create_app(FakeManager(None)).test_client()


def test_health(http):
    resp = http.get("/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok"}


def test_options_short_circuits_with_cors(http):
    resp = http.open("/api/info", method="OPTIONS")
    assert resp.status_code == 204
    assert resp.headers["Access-Control-Allow-Origin"] == "*"


def test_cors_headers_on_get(http):
    resp = http.get("/health")
    assert resp.headers["Access-Control-Allow-Headers"] == "Content-Type, Authorization"


def test_info_success(http):
    body = http.get("/api/info").get_json()
    assert body["code"] == 0
    assert body["message"] == "success"
    assert body["data"] == {"connected": True, "dbSize": 3}


def test_info_offline(offline):
    resp = offline.get("/api/info")
    assert resp.status_code == 500
    assert resp.get_json() == {"code": 500, "message": "Redis 未连接"}


def test_key_requires_param(http):
    resp = http.get("/api/key")
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "key 参数不能为空"


def test_key_offline_is_bad_request(offline):
    resp = offline.get("/api/key?key=user:1")
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Redis 未连接"


def test_key_details(http):
    body = http.get("/api/key?key=user:1").get_json()
    assert body["data"]["key"] == "user:1"
    assert body["data"]["type"] == "string"
    assert body["data"]["value"] == "alice"


def test_missing_key_is_server_error(http):
    resp = http.get("/api/key?key=nope")
    assert resp.status_code == 500
    assert "nope" in resp.get_json()["message"]


def test_delete(http, redis_client):
    resp = http.delete("/api/delete?key=config")
    assert resp.get_json()["data"] == {"message": "删除成功"}
    assert "config" not in redis_client.strings


def test_delete_requires_param(http):
    assert http.delete("/api/delete").status_code == 400


def test_tree_top_level(http):
    data = http.get("/api/tree").get_json()["data"]
    names = [child["name"] for child in data["children"]]
    assert names == ["user", "config"]
    assert data["children"][0]["isLeaf"] is False
    assert data["children"][1]["fullKey"] == "config"
    assert data["count"] == len(names)


def test_tree_prefix_expansion(http):
    data = http.get("/api/tree?key=user").get_json()["data"]
    assert [c["fullKey"] for c in data["children"]] == ["user:1", "user:2"]
    assert all(c["isLeaf"] for c in data["children"])


def test_tree_search(http):
    data = http.get("/api/tree?key=user*").get_json()["data"]
    assert [c["name"] for c in data["children"]] == ["user"]
    assert [c["name"] for c in data["children"][0]["children"]] == ["1", "2"]


def test_tree_offline(offline):
    assert offline.get("/api/tree").status_code == 400