# srtlive

Building blocks for a live stream relay server: logging, locking, byte
buffering, posting status over HTTP, keeping track of which role publishes
which stream, relay settings, and a worker that polls and services roles.

Pure Python, no dependencies outside the standard library.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

### `srtlive.log`

`LogLevel` has the levels `FATAL`, `ERROR`, `WARNING`, `INFO`, `DEBUG` and
`TRACE`. A `Logger` writes a message when its level is at or below the
logger's own level. Each line looks like

```
2024-01-01 12:00:00:123 SLS INFO: message
```

and goes to standard output and, once `set_file` has been called, is
appended to that file as well (only the first `set_file` call takes effect).
`set_level("debug")` takes a level name in any case and keeps the current
level if the name is unknown; it returns whether the level changed.

The module functions `log`, `set_log_level` and `set_log_file` act on one
shared `Logger` returned by `get_logger()`, which starts at `INFO`.

### `srtlive.locks`

`RWLock` lets many readers or one writer in. Use `acquire_read` /
`release_read` and `acquire_write` / `release_write`, or the context
managers `read_locked()` and `write_locked()`. Waiting writers take
precedence over new readers. Releasing a lock that is not held raises
`RuntimeError`.

### `srtlive.ring_buffer`

`RingBuffer(size=4096)` is a thread-safe FIFO of bytes on a circular buffer.
`put(data)` appends and returns the length written; when the data does not
fit, the storage grows by at least 4096 bytes. `get(size)` removes and
returns up to `size` bytes. `len(buf)` is the number of buffered bytes,
`capacity` the storage size, `clear()` discards the data and `resize(n)`
replaces the storage. Putting empty data or using a non-positive size
raises `ValueError`.

```python
from srtlive.ring_buffer import RingBuffer

buf = RingBuffer(4096)
buf.put(b"hello")
assert buf.get(5) == b"hello"
```

### `srtlive.http_client`

`parse_url` splits an `http://host[:port]/path` URL into a `ParsedUrl`
(`host`, `port`, `uri`; the port defaults to 80) and raises `ValueError`
for anything else. `build_request_header(method, uri, host, data_len)`
builds the request line and headers for `GET` or `POST`, with a
`Content-Length` header when `data_len` is positive.

```python
from srtlive.http_client import parse_url

url = parse_url("http://localhost:8080/sls/stat")
assert (url.host, url.port, url.uri) == ("localhost", 8080, "/sls/stat")
```

`HttpClient(timeout=5)` sends one request over a non-blocking TCP socket:

- `open(url, method=None, interval=0)` resolves the host, connects, asks
  the stage callback for the request body and starts sending. It raises
  `OSError` or `ValueError` on failure. The method defaults to `POST`.
- `handler()` waits briefly on the socket and calls `send()` / `recv()` as
  it becomes writable or readable.
- `feed_response(data)` parses received bytes into `response`, a
  `ResponseInfo` with `header`, `code`, `content`, `content_length` and
  `text`.
- `check_finished()`, `check_timeout(cur_tm_ms=0)` and
  `check_repeat(cur_tm_ms=0)` tell whether the body has arrived, whether the
  exchange is over, and whether a repeating request (`interval` seconds) is
  due again.
- `close()` and `reopen()` end or restart the exchange.

`set_stage_callback(callback)` installs `callback(client, stage, value)`,
called with the `CallbackStage` values `OPEN`, `CLOSE`, `RESPONSE_END` and
`REQUEST_CONTENT`; for `REQUEST_CONTENT` its return value (text or bytes)
is the request body.

### `srtlive.http_role_list`

`HttpRoleList` is a thread-safe queue of `HttpClient` objects: `push`
(ignores `None`), `pop` (returns `None` when empty), `len()`, and `erase()`,
which closes every queued client and empties the list.

### `srtlive.map_publisher`

`PublisherMap` keeps three thread-safe tables:

- player app to publisher app (`set_live_to_uplive`, `get_uplive`, which
  returns `""` when unknown),
- publisher app to its configuration (`set_conf`, `get_conf`),
- `host/app/stream` to the role publishing it (`set_publisher`,
  `get_publisher`, `remove(role)`).

`set_publisher` raises `PublisherExistsError` if the stream already has a
publisher. `clear()` empties all three.

```python
from srtlive.map_publisher import PublisherMap

publishers = PublisherMap()
publishers.set_live_to_uplive("example.com/live", "example.com/uplive")
assert publishers.get_uplive("example.com/live") == "example.com/uplive"
```

### `srtlive.map_relay`

`RelayMap(manager_factory)` holds relay settings per publisher app and one
relay manager per stream. `add_relay_conf(app_uplive, RelayConf(...))`
turns a `RelayConf` (`type`, `mode`, space-separated `upstreams`,
`reconnect_interval`, `idle_streams_timeout`) into a `RelayInfo` with a
`RelayMode` (`LOOP`, `ALL`, `HASH`; unknown names become `HASH`). It raises
`ValueError` when the conf is missing or the app already has settings.
`add_relay_manager(app_uplive, stream_name)` calls
`manager_factory(info, app_uplive, stream_name)` the first time a stream is
asked for and returns the same manager afterwards; it returns `None` when
the app has no settings or the type is not `pull` or `push`.

```python
from srtlive.map_relay import RelayConf, RelayMap, RelayMode

relays = RelayMap(lambda info, app, stream: object())
info = relays.add_relay_conf(
    "example.com/uplive",
    RelayConf(type="pull", mode="loop", upstreams="127.0.0.1:8080/live"),
)
assert info.mode is RelayMode.LOOP
manager = relays.add_relay_manager("example.com/uplive", "stream1")
assert relays.add_relay_manager("example.com/uplive", "stream1") is manager
```

### `srtlive.group`

`RoleGroup(poller, role_list=None, worker_number=0, worker_connections=100,
stat_post_interval=5)` services roles. The poller provides
`wait(timeout_ms)`, returning `(readable_fds, writable_fds)` or `None`; the
role list provides `pop()`. Each `handler()` call polls once, runs the
handler of every ready role (calling `invalid_srt()` on those that return a
negative value) and then runs `idle_check()`, which:

- releases roles waiting on an HTTP notification once `check_http_client()`
  is false,
- asks queued relay managers to `reconnect(cur_ms)`,
- every `stat_post_interval` seconds collects `get_stat_info()` from all
  roles (read back with `RoleGroup.get_stat_info()`),
- retires roles whose `get_state(cur_ms)` is `RoleState.INVALID` or
  `RoleState.UNINIT`,
- takes one new role from the role list while under `worker_connections`.

`start()` runs the loop on a background thread, `run()` runs it in the
calling thread, `stop()` ends it, and `reload()` makes the group exit once
it holds no roles (`is_exit()` reports it). `clear()` uninitialises every
role held. The roles themselves, with `fd`, `role_name`,
`add_to_poller(poller)`, `handler()`, `uninit()` and the other methods
listed in the class docstring, are supplied by the caller.

## What it does not do

This package is a set of parts, not a running server. It has no SRT
transport, no listener accepting connections, no publisher, player or relay
roles, no poller over real sockets, no configuration file reader and no
command-line program. `RoleGroup` and `RelayMap` work with whatever poller,
roles and relay managers the caller provides.