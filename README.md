# minikv

minikv is a small in-memory key-value server built on `asyncio`. It speaks
the RESP frame protocol, which has simple strings, errors, integers, bulk
strings, nulls and arrays. The server answers the `GET` and `SET` commands.

The package also ships three other pieces:

- a client for the server,
- a TCP echo server,
- a tiny cooperative task executor that shows how tasks, wake-ups and
  polling fit together.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Commands

All commands that take `--host` and `--port` use those options to pick the
address.

### minikv-server

```
minikv-server [--host HOST] [--port PORT]
```

Starts the key-value server. It listens on `127.0.0.1:6379` by default and
prints `Listening...` once it is ready. It prints `Accepted...` for each
client that connects. All clients share one in-memory dictionary.

### minikv-client

```
minikv-client [--host HOST] [--port PORT] [--hello]
```

Talks to a running server.

By default, two tasks send their requests through a queue to one manager
task. The manager owns the single connection. One task sends `SET foo bar`
and the other sends `GET foo`. Each reply is printed, for example:

```
GOT (Get) = Ok(b'bar')
GOT (Set) = Ok(None)
```

With `--hello`, the client does something else. It sets `hello` to `world`,
reads the key back, and prints:

```
got value from server; result=b'world'
```

### minikv-echo

```
minikv-echo [--host HOST] [--port PORT]
```

Starts the echo server on `127.0.0.1:6142` by default. It writes back every
byte it receives, until the peer closes the connection.

### minikv-executor

```
minikv-executor
```

Runs the toy executor. It spawns a single task. The task waits ten
milliseconds on a timer thread and then prints `Hello world`.

## Library use

### Frames (`minikv.connection`)

The frame types are the frozen dataclasses `Simple`, `ErrorFrame`,
`Integer`, `Bulk`, `Null` and `Array`.

`Integer` accepts only unsigned 64-bit values.

Three functions work on frames:

- `check_frame(data, pos=0)` checks that a whole frame starts at `pos`. It
  returns the position just past that frame.
- `parse_frame(data)` decodes the frame at the start of `data`. It returns
  the frame and the number of bytes used.
- `encode_frame(frame)` returns the wire form of a frame. An `Array` may hold
  only non-array frames. Encoding a nested array raises `ValueError`.

These functions raise two errors:

- `IncompleteFrame` when more bytes are needed.
- `ProtocolError` when the bytes are malformed.

### Connections

`Connection(reader, writer)` wraps an asyncio stream pair and keeps a read
buffer. It can be used as an async context manager. On exit, it closes the
stream. It has three methods:

- `await read_frame()` returns the next frame. It returns `None` when the
  peer closes cleanly between frames. It raises `ConnectionResetError` when
  the peer closes in the middle of a frame.
- `await write_frame(frame)` encodes the frame, writes it and drains the
  writer.
- `await close()` closes the stream.

### Client (`minikv.client`)

```python
import asyncio
from minikv.client import connect

async def demo():
    async with await connect("127.0.0.1", 6379) as client:
        await client.set("hello", b"world")
        print(await client.get("hello"))   # b'world'

asyncio.run(demo())
```

`Client` has these methods:

- `get(key)` returns the stored bytes, or `None` if the key is not set.
- `set(key, value)` accepts `bytes` or `str` as the value.
- `close()` closes the connection.

An error frame from the server raises `ProtocolError`.

To share one client between tasks, use `run_manager(queue, client)`. It
serves `GetRequest(key, future)` and `SetRequest(key, value, future)` items
from an `asyncio.Queue`. It stops when it receives `None`.

`hello(host, port)` performs the set-then-get exchange and returns the value
it read back.

### Server (`minikv.server`)

`serve(host, port, db)` runs the server on a dictionary you supply. If you
pass no dictionary, it uses a fresh one.

The parts of the server can also be used on their own:

- `command_from_frame(frame)` turns an array frame into a `Get`, a `Set` or
  an `UnknownCommand`.
- `apply_command(command, db)` runs a command against the dictionary. It
  returns `Simple("OK")`, a `Bulk` holding the value, or `Null()`.
- `process(reader, writer, db)` serves one client connection until that
  client closes it.

### Echo server (`minikv.echo`)

- `handle_echo(reader, writer)` echoes data on one connection.
- `serve(host, port)` accepts echo connections forever.

### Executor (`minikv.executor`)

- `MiniTokio` is a single-threaded run queue for coroutines.
  - `spawn(coroutine)` adds a coroutine and returns its `Task`.
  - `run()` polls woken tasks until every spawned task has finished.
- `Notify` wakes a task from any thread.
  - `notify_one()` wakes the oldest waiter. If no task is waiting, it keeps
    a permit for the next waiter.
  - `await notify.notified()` waits until this task is notified.
- `delay(seconds)` waits using a timer thread.

## Limitations

- Only `GET` and `SET` are served.
  - Any other command raises `NotImplementedError` in the connection handler,
    and that client's connection is dropped.
  - A malformed command raises `ProtocolError`, with the same effect.
  - The server never sends error frames back to the client.
- `SET` accepts the `EX` and `PX` options, but expiry is not enforced. Keys
  are kept until the server stops.
- Data lives only in memory. Nothing is persisted, and there is no
  replication and no authentication.
- Nested arrays cannot be encoded.