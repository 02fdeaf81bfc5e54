"""Key-value server that answers GET and SET over the frame protocol."""

from __future__ import annotations

import argparse
import asyncio
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional, Union

from .connection import Array, Bulk, Connection, Frame, Integer, Null, ProtocolError, Simple

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 6379


@dataclass(frozen=True)
class Get:
    """Fetch the value stored under ``key``."""

    key: str


@dataclass(frozen=True)
class Set:
    """Store ``value`` under ``key``, optionally with an expiry in seconds."""

    key: str
    value: bytes
    expire: Optional[float] = None


@dataclass(frozen=True)
class UnknownCommand:
    """A command this server does not handle."""

    name: str


Command = Union[Get, Set, UnknownCommand]
Db = Dict[str, bytes]


class _Arguments:
    """Consumes the entries of a command array one at a time."""

    def __init__(self, frame: Frame) -> None:
        if not isinstance(frame, Array):
            raise ProtocolError(f"protocol error; expected array, got {frame!r}")
        self._items: Deque[Frame] = deque(frame.items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def _next(self) -> Frame:
        if not self._items:
            raise ProtocolError("protocol error; end of stream")
        return self._items.popleft()

    def next_string(self) -> str:
        frame = self._next()
        if isinstance(frame, Simple):
            return frame.value
        if isinstance(frame, Bulk):
            try:
                return frame.value.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise ProtocolError("protocol error; invalid string") from exc
        raise ProtocolError(f"protocol error; expected simple frame or bulk frame, got {frame!r}")

    def next_bytes(self) -> bytes:
        frame = self._next()
        if isinstance(frame, Simple):
            return frame.value.encode("utf-8")
        if isinstance(frame, Bulk):
            return frame.value
        raise ProtocolError(f"protocol error; expected simple frame or bulk frame, got {frame!r}")

    def next_int(self) -> int:
        frame = self._next()
        if isinstance(frame, Integer):
            return frame.value
        if isinstance(frame, Simple):
            text = frame.value.encode("utf-8")
        elif isinstance(frame, Bulk):
            text = frame.value
        else:
            raise ProtocolError(f"protocol error; expected int frame but got {frame!r}")
        if not text.isdigit():
            raise ProtocolError("protocol error; invalid number")
        return int(text)

    def finish(self) -> None:
        if self._items:
            raise ProtocolError("protocol error; expected end of frame, but there was more")


def command_from_frame(frame: Frame) -> Command:
    """Interpret a received frame as a command.

    Raises ProtocolError if the frame is not a well-formed command.
    """
    args = _Arguments(frame)
    name = args.next_string().lower()
    command: Command
    if name == "get":
        command = Get(args.next_string())
    elif name == "set":
        key = args.next_string()
        value = args.next_bytes()
        expire: Optional[float] = None
        if args:
            option = args.next_string().upper()
            if option == "EX":
                expire = float(args.next_int())
            elif option == "PX":
                expire = args.next_int() / 1000
            else:
                raise ProtocolError("currently `SET` only supports the expiration option")
        command = Set(key, value, expire)
    else:
        return UnknownCommand(name)
    args.finish()
    return command


def apply_command(command: Command, db: Db) -> Frame:
    """Run a command against the store and return the response frame."""
    if isinstance(command, Set):
        db[command.key] = command.value
        return Simple("OK")
    if isinstance(command, Get):
        value = db.get(command.key)
        return Null() if value is None else Bulk(value)
    raise NotImplementedError(f"unimplemented {command!r}")


async def process(reader: asyncio.StreamReader, writer: asyncio.StreamWriter, db: Db) -> None:
    """Serve one client connection until it closes."""
    async with Connection(reader, writer) as connection:
        while (frame := await connection.read_frame()) is not None:
            response = apply_command(command_from_frame(frame), db)
            await connection.write_frame(response)


async def serve(host: str = DEFAULT_HOST, port: int = DEFAULT_PORT, db: Optional[Db] = None) -> None:
    """Accept connections forever, sharing one store between them."""
    store: Db = {} if db is None else db

    async def on_connect(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        print("Accepted...")
        await process(reader, writer, store)

    server = await asyncio.start_server(on_connect, host, port)
    print("Listening...")
    async with server:
        await server.serve_forever()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run the key-value server.")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    args = parser.parse_args(argv)
    try:
        asyncio.run(serve(args.host, args.port))
    except KeyboardInterrupt:
        pass
    return 0