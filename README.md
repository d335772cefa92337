# plugview

plugview has two parts:

- **`plugview.redisview`** is a small HTTP service for browsing a Redis database. It lists keys as a lazily expanded tree, shows the value of a key and deletes keys.
- **`plugview.sqlview`** is a set of helpers for MySQL. They read schema metadata from `information_schema`, keep a record of running queries so they can be cancelled, and check ad-hoc SQL before it runs.

## Installation

```
pip install .
```

To install the test dependencies as well:

```
pip install ".[test]"
```

## The Redis viewer

Start the service:

```
plugview-redis
```

The command takes no options apart from `--help`. By default it listens on `:8080`, which means all interfaces on port 8080. It connects to Redis at `localhost:6379`, database 0. If the first ping fails, a warning is logged and the service starts anyway.

### Configuration

Settings are looked up in this order, and each step overrides the one before it:

1. built-in defaults
2. a JSON file, `config.json` or `./config/config.json`. The first one that can be read and parsed is used.
3. environment variables

```json
{
  "server": {"port": ":8080"},
  "redis": {"host": "localhost", "port": 6379, "password": "", "db": 0},
  "scan": {"defaultCount": 1000, "maxCount": 10000, "defaultSeparator": ":"}
}
```

Key names in the file are not case-sensitive. A file with a value of the wrong type is skipped.

| Variable         | Setting                                   |
|------------------|-------------------------------------------|
| `SERVER_PORT`    | listen address, e.g. `:8080` or `127.0.0.1:9000` |
| `REDIS_HOST`     | Redis host                                |
| `REDIS_PORT`     | Redis port                                |
| `REDIS_PASSWORD` | Redis password                            |
| `REDIS_DB`       | Redis database number                     |
| `SCAN_MAX_COUNT` | `scan.maxCount`                           |
| `SCAN_SEPARATOR` | `scan.defaultSeparator`                   |

Empty variables are ignored, and so are numeric variables that are not integers.

`scan.defaultCount` is the `COUNT` hint sent with every `SCAN`. `scan.maxCount` is used by `scan_all_keys` when it is given no positive limit. `scan.defaultSeparator` is used by `get_key_tree` when it is given no separator. The `/api/tree` endpoint itself always splits keys on `:` and reads at most 10000 keys.

`plugview.redisview.config.load(paths, environ)` builds an `AppConfig` in the same way. Both arguments are optional: they default to the two file names above and to `os.environ`.

### Endpoints

Most responses have this form:

```json
{"code": 0, "message": "success", "data": ...}
```

When a request fails, `code` holds the HTTP status (400 or 500), `message` describes the error, and there is no `data`.

| Method | Path                | Purpose                                                        |
|--------|---------------------|----------------------------------------------------------------|
| GET    | `/health`           | returns `{"status": "ok"}` on its own, without the envelope    |
| GET    | `/api/info`         | server, memory, client, stats, replication and keyspace fields from `INFO`, plus `dbSize` |
| GET    | `/api/tree?key=…`   | one level of the key tree below `key`, or the top level when `key` is empty |
| GET    | `/api/tree?key=a*`  | when `key` contains `*`: the full tree of matching keys        |
| GET    | `/api/key?key=…`    | type, TTL, size and value of a key                             |
| DELETE | `/api/delete?key=…` | deletes a key                                                  |

How the endpoints behave:

- Each level of a tree holds at most 10 children. Branches come before leaves, and each group is sorted by name.
- A key's value covers at most its first 100 items for lists, sets, hashes and sorted sets.
- A key without an expiry has a TTL of 0.
- A key that does not exist gives a 500 reply with the message `Key 不存在: <key>`.

Every response carries headers that allow cross-origin requests. `OPTIONS` requests get an empty `204` reply. Each request is printed as one line with its time, method, path, status, latency and client address.

### Using it from Python

```python
from plugview.redisview.app import create_app
from plugview.redisview.config import load
from plugview.redisview.info import RedisManager

config = load()
manager = RedisManager(config.redis)
manager.connect()
app = create_app(manager)
app.config["SCAN_CONFIG"] = config.scan
```

- `RedisManager.get_client()` raises `RedisUnavailable` when no client has been set up.
- `RedisManager.get_info()` returns the status summary served by `/api/info`.
- `plugview.redisview.data.get_key_info(client, key)` and `delete_key(client, key)` work on any `redis.Redis` client. `get_key_info` raises `KeyNotFoundError` for a missing key.

The tree builders work on plain lists of keys and do not need a Redis server:

```python
from plugview.redisview.scanner import build_key_tree_one_level, build_search_tree

root = build_key_tree_one_level(["user:1", "user:2", "session:abc"], ":", "", 10)
print(root.to_dict())

full = build_search_tree(["user:1:name", "user:2:name"], ":", 10)
```

## SQL helpers

The `plugview.sqlview` functions that talk to a database take an open DB-API connection as `conn`. Its driver must use `%s` placeholders, as PyMySQL does. No MySQL driver is installed with this package.

### Checking SQL

```python
from plugview.sqlview.guards import QueryRejected, validate_export_query, is_valid_db_name

try:
    validate_export_query("DELETE FROM users")
except QueryRejected as exc:
    print(exc)

is_valid_db_name("shop_01", 64)   # True
```

- `validate_export_query` accepts only statements that start with SELECT, WITH, SHOW, DESCRIBE, DESC or EXPLAIN, once comments are removed.
- `validate_field_query` accepts only a SELECT that names its columns; `SELECT *` is rejected.
- `remove_comments` removes `--` comments and any `/* … */` comment that opens and closes on one line. It then joins the remaining lines with spaces.
- `is_valid_db_name(name, max_len)` allows only letters, digits and underscores, from 1 up to `max_len` characters.

`convert_to_count_sql` turns a DELETE or UPDATE into the `SELECT COUNT(*)` that counts the rows it would touch. It raises `ValueError` when the statement cannot be converted.

```python
from plugview.sqlview.countsql import convert_to_count_sql

convert_to_count_sql("DELETE FROM users WHERE id = 1", "DELETE")
# 'SELECT COUNT(*) FROM users WHERE id = 1'
```

### Schema metadata

`plugview.sqlview.metadata.fetch_database_metadata(conn, db_name)` collects these parts of one database:

- tables, with their columns, primary keys, foreign keys and indexes
- views
- triggers
- stored procedures and functions, with their parameters
- loadable functions from `mysql.func`

Any part that cannot be read is left empty and noted in `warnings`; the rest is still returned. Each part can also be read on its own with `fetch_tables`, `fetch_views`, `fetch_all_columns`, `fetch_all_constraints`, `fetch_all_indexes`, `fetch_triggers`, `fetch_routines` and `fetch_udfs`.

`MetadataCache(ttl)` keeps results for `ttl` seconds, 600 by default. `get`/`put` work per database, and `get_all`/`put_all` hold one all-databases entry. A cached entry is returned as a shallow copy with `from_cache` set.

### Running queries

`plugview.sqlview.queries.QueryManager(killer)` keeps a record of running queries.

- `register_query(conn_id, sql_text, db_name)` returns a new query id and a `threading.Event`.
- `register_with_id(...)` registers a query under an id that the caller chooses.
- `cancel_query(query_id)` sets the event and marks the query cancelled. For a query that was registered with a connection id, it also calls `killer(conn_id)` to stop the query on the server.
- `unregister_query(query_id)` forgets a query.
- `active_queries()` lists the queries that are still running.

## What is not included

- The SQL helpers have no HTTP service or command. They do not run queries, exports or checks against a server themselves; they only validate, rewrite and track.
- There is no function that collects metadata for all databases at once. `MetadataCache.put_all` only stores whatever object the caller passes to it.
- There is no function that describes one table on its own, such as its `CREATE TABLE` statement or a preview of its rows.