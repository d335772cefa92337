import json

from plugview.redisview.config import AppConfig, RedisConfig, ScanConfig, load


def _write(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_defaults_without_files_or_env():
    cfg = load(paths=[], environ={})
    assert cfg == AppConfig()
    assert cfg.server.port == ":8080"
    assert cfg.redis.host == "localhost"
    assert cfg.redis.port == 6379
    assert cfg.scan.max_count == 10000
    assert cfg.scan.default_count == 1000
    assert cfg.scan.default_separator == ":"


def test_file_values_merge_with_defaults(tmp_path):
    path = _write(tmp_path / "config.json", {"redis": {"host": "cache.internal", "port": 6380}})
    cfg = load(paths=[path], environ={})
    assert cfg.redis.host == "cache.internal"
    assert cfg.redis.port == 6380
    assert cfg.redis.db == RedisConfig().db
    assert cfg.scan == ScanConfig()


def test_json_keys_match_case_insensitively(tmp_path):
    path = _write(tmp_path / "config.json", {"Scan": {"MaxCount": 50, "defaultSeparator": "/"}})
    cfg = load(paths=[path], environ={})
    assert cfg.scan.max_count == 50
    assert cfg.scan.default_separator == "/"


def test_missing_and_invalid_files_are_skipped(tmp_path):
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    good = _write(tmp_path / "good.json", {"server": {"port": ":9000"}})
    cfg = load(paths=[tmp_path / "missing.json", broken, good], environ={})
    assert cfg.server.port == ":9000"


def test_wrong_types_reject_whole_file(tmp_path):
    bad = _write(tmp_path / "bad.json", {"redis": {"host": "elsewhere", "port": "6380"}})
    cfg = load(paths=[bad], environ={})
    assert cfg.redis == RedisConfig()


def test_first_valid_file_wins(tmp_path):
    first = _write(tmp_path / "a.json", {"redis": {"db": 3}})
    second = _write(tmp_path / "b.json", {"redis": {"db": 5}})
    cfg = load(paths=[first, second], environ={})
    assert cfg.redis.db == 3


def test_environment_overrides_file(tmp_path):
    path = _write(tmp_path / "config.json", {"redis": {"host": "from-file", "port": 7000}})
    password = "password"
    env = {
        "REDIS_HOST": "from-env",
        "REDIS_PORT": "7001",
        "REDIS_PASSWORD": password,
        "REDIS_DB": "2",
        "SERVER_PORT": ":9090",
        "SCAN_MAX_COUNT": "500",
        "SCAN_SEPARATOR": "|",
    }
    cfg = load(paths=[path], environ=env)
    assert cfg.redis.host == "from-env"
    assert cfg.redis.port == 7001
    assert cfg.redis.password == password
    assert cfg.redis.db == 2
    assert cfg.server.port == ":9090"
    assert cfg.scan.max_count == 500
    assert cfg.scan.default_separator == "|"


def test_invalid_or_empty_environment_values_are_ignored():
    env = {"REDIS_PORT": "abc", "REDIS_DB": "1.5", "REDIS_HOST": "", "SCAN_MAX_COUNT": " 7"}
    cfg = load(paths=[], environ=env)
    assert cfg.redis.port == 6379
    assert cfg.redis.db == 0
    assert cfg.redis.host == "localhost"
    assert cfg.scan.max_count == 10000