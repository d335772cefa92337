import pytest

from plugview.redisview.data import KeyNotFoundError, delete_key, get_key_info


class FakeRedis:
    def __init__(self):
        self.store = {}
        self.ttls = {}
        self.sscan_calls = 0
        self.hscan_calls = 0

    def type(self, key):
        entry = self.store.get(key)
        return "none" if entry is None else entry[0]

    def ttl(self, key):
        return self.ttls.get(key, -1)

    def get(self, key):
        return self.store[key][1]

    def llen(self, key):
        return len(self.store[key][1])

    def lrange(self, key, start, end):
        items = self.store[key][1]
        return items[start:] if end == -1 else items[start:end + 1]

    def scard(self, key):
        return len(self.store[key][1])

    def sscan(self, key, cursor=0, match=None, count=None):
        self.sscan_calls += 1
        members = sorted(self.store[key][1])
        page = members[cursor:cursor + count]
        nxt = cursor + count
        return (nxt if nxt < len(members) else 0), page

    def hlen(self, key):
        return len(self.store[key][1])

    def hscan(self, key, cursor=0, match=None, count=None):
        self.hscan_calls += 1
        items = sorted(self.store[key][1].items())
        page = dict(items[cursor:cursor + count])
        nxt = cursor + count
        return (nxt if nxt < len(items) else 0), page

    def zcard(self, key):
        return len(self.store[key][1])

    def zrange(self, key, start, end, withscores=False):
        ordered = sorted(self.store[key][1].items(), key=lambda kv: kv[1])
        return ordered[start:] if end == -1 else ordered[start:end + 1]

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
        return removed


class BytesRedis(FakeRedis):
    def type(self, key):
        return super().type(key).encode()

    def get(self, key):
        return super().get(key).encode()


@pytest.fixture
def client():
    return FakeRedis()


def test_string_value(client):
    client.store["greeting"] = ("string", "abc")
    info = get_key_info(client, "greeting")
    assert info.key == "greeting"
    assert info.type == "string"
    assert info.value == "abc"
    assert info.size == len("abc")


def test_string_size_counts_bytes(client):
    text = "héllo"
    client.store["k"] = ("string", text)
    info = get_key_info(client, "k")
    assert info.size == len(text.encode("utf-8"))
    assert info.size > len(text)


def test_bytes_responses_are_decoded():
    fake = BytesRedis()
    fake.store["k"] = ("string", "value")
    info = get_key_info(fake, "k")
    assert info.type == "string"
    assert info.value == "value"


def test_list_preview_is_limited(client):
    items = [f"item{n}" for n in range(150)]
    client.store["queue"] = ("list", items)
    info = get_key_info(client, "queue")
    assert info.size == 150
    assert info.value == items[:100]


def test_short_list_returned_whole(client):
    client.store["queue"] = ("list", ["a", "b"])
    assert get_key_info(client, "queue").value == ["a", "b"]


def test_set_preview_pages_and_limits(client):
    members = {f"m{n:03d}" for n in range(250)}
    client.store["s"] = ("set", members)
    info = get_key_info(client, "s")
    assert info.size == 250
    assert len(info.value) == 100
    assert set(info.value) <= members
    assert client.sscan_calls == 1


def test_small_set_whole(client):
    client.store["s"] = ("set", {"x", "y"})
    info = get_key_info(client, "s")
    assert sorted(info.value) == ["x", "y"]
    assert info.size == 2


def test_hash_preview_limited(client):
    fields = {f"f{n:03d}": str(n) for n in range(150)}
    client.store["h"] = ("hash", fields)
    info = get_key_info(client, "h")
    assert info.size == 150
    assert len(info.value) == 100
    assert all(fields[name] == value for name, value in info.value.items())


def test_zset_members_with_scores(client):
    client.store["z"] = ("zset", {"b": 2.0, "a": 1.0})
    info = get_key_info(client, "z")
    assert info.size == 2
    assert info.value == [
        {"member": "a", "score": 1.0},
        {"member": "b", "score": 2.0},
    ]


def test_missing_key_raises(client):
    with pytest.raises(KeyNotFoundError) as excinfo:
        get_key_info(client, "ghost")
    assert "ghost" in str(excinfo.value)


def test_unsupported_type(client):
    client.store["st"] = ("stream", None)
    info = get_key_info(client, "st")
    assert info.value == "不支持的类型: stream"


def test_ttl_positive_and_persistent(client):
    client.store["a"] = ("string", "1")
    client.store["b"] = ("string", "2")
    client.ttls["a"] = 30
    assert get_key_info(client, "a").ttl == 30
    assert get_key_info(client, "b").ttl == 0


def test_delete_key(client):
    client.store["gone"] = ("string", "x")
    delete_key(client, "gone")
    assert "gone" not in client.store
    with pytest.raises(KeyNotFoundError):
        get_key_info(client, "gone")