"""Client for the key-value server, and a manager task that serialises requests."""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import dataclass
from typing import List, Optional, Union

from .connection import Array, Bulk, Connection, ErrorFrame, Frame, Null, ProtocolError, Simple

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 6379
QUEUE_CAPACITY = 32


class Client:
    """An open connection to the key-value server."""

    def __init__(self, connection: Connection) -> None:
        self._connection = connection

    async def __aenter__(self) -> "Client":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _read_response(self) -> Frame:
        frame = await self._connection.read_frame()
        if frame is None:
            raise ConnectionResetError("connection reset by server")
        if isinstance(frame, ErrorFrame):
            raise ProtocolError(frame.value)
        return frame

    async def get(self, key: str) -> Optional[bytes]:
        """Return the value stored under ``key``, or None if there is none."""
        await self._connection.write_frame(Array([Bulk(b"get"), Bulk(key.encode("utf-8"))]))
        frame = await self._read_response()
        if isinstance(frame, Simple):
            return frame.value.encode("utf-8")
        if isinstance(frame, Bulk):
            return frame.value
        if isinstance(frame, Null):
            return None
        raise ProtocolError(f"unexpected frame: {frame!r}")

    async def set(self, key: str, value: Union[bytes, str]) -> None:
        """Store ``value`` under ``key``."""
        data = value.encode("utf-8") if isinstance(value, str) else bytes(value)
        await self._connection.write_frame(Array([Bulk(b"set"), Bulk(key.encode("utf-8")), Bulk(data)]))
        frame = await self._read_response()
        if frame != Simple("OK"):
            raise ProtocolError(f"unexpected frame: {frame!r}")

    async def close(self) -> None:
        """Close the connection."""
        await self._connection.close()


async def connect(host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> Client:
    """Open a connection to the server at ``host``:``port``."""
    reader, writer = await asyncio.open_connection(host, port)
    return Client(Connection(reader, writer))


@dataclass
class GetRequest:
    """Ask the manager for a key; the answer arrives on ``future``."""

    key: str
    future: "asyncio.Future[Optional[bytes]]"


@dataclass
class SetRequest:
    """Ask the manager to store a value; completion arrives on ``future``."""

    key: str
    value: bytes
    future: "asyncio.Future[None]"


Request = Union[GetRequest, SetRequest]


async def run_manager(queue: "asyncio.Queue[Optional[Request]]", client: Client) -> None:
    """Serve requests from ``queue`` over one client until a None arrives."""
    while (request := await queue.get()) is not None:
        try:
            if isinstance(request, GetRequest):
                result = await client.get(request.key)
            else:
                result = await client.set(request.key, request.value)
        except (ProtocolError, OSError) as exc:
            if not request.future.done():
                request.future.set_exception(exc)
        else:
            if not request.future.done():
                request.future.set_result(result)


async def hello(host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> Optional[bytes]:
    """Set ``hello`` to ``world``, read it back, print and return it."""
    async with await connect(host, port) as client:
        await client.set("hello", b"world")
        result = await client.get("hello")
    print(f"got value from server; result={result!r}")
    return result


async def _describe(future: asyncio.Future) -> str:
    try:
        return f"Ok({await future!r})"
    except (ProtocolError, OSError) as exc:
        return f"Err({exc})"


async def _demo(host: str, port: int) -> None:
    client = await connect(host, port)
    queue: "asyncio.Queue[Optional[Request]]" = asyncio.Queue(maxsize=QUEUE_CAPACITY)
    manager = asyncio.create_task(run_manager(queue, client))
    loop = asyncio.get_running_loop()

    async def get_foo() -> None:
        future = loop.create_future()
        await queue.put(GetRequest("foo", future))
        print(f"GOT (Get) = {await _describe(future)}")

    async def set_foo() -> None:
        future = loop.create_future()
        await queue.put(SetRequest("foo", b"bar", future))
        print(f"GOT (Set) = {await _describe(future)}")

    await asyncio.gather(get_foo(), set_foo())
    await queue.put(None)
    await manager
    await client.close()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Talk to the key-value server.")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--hello", action="store_true", help="run the hello-world exchange instead")
    args = parser.parse_args(argv)
    if args.hello:
        asyncio.run(hello(args.host, args.port))
    else:
        asyncio.run(_demo(args.host, args.port))
    return 0