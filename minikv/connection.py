"""Frames of the key-value wire protocol and a buffered connection that carries them."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple, Union

READ_CHUNK = 4 * 1024
_MAX_U64 = 2**64 - 1
_INVALID_FORMAT = "protocol error; invalid frame format"


class ProtocolError(Exception):
    """The buffered bytes do not form a valid frame."""


class IncompleteFrame(Exception):
    """Not enough bytes are buffered yet to hold a whole frame."""


@dataclass(frozen=True)
class Simple:
    """A simple string, e.g. ``+OK``."""

    value: str


@dataclass(frozen=True)
class ErrorFrame:
    """An error string sent by the peer."""

    value: str


@dataclass(frozen=True)
class Integer:
    """An unsigned 64-bit integer."""

    value: int

    def __post_init__(self) -> None:
        if not 0 <= self.value <= _MAX_U64:
            raise ValueError(f"integer frame out of range: {self.value}")


@dataclass(frozen=True)
class Bulk:
    """A length-prefixed binary string."""

    value: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", bytes(self.value))


@dataclass(frozen=True)
class Null:
    """The absent value."""


@dataclass(frozen=True)
class Array:
    """A sequence of frames."""

    items: Tuple["Frame", ...] = ()

    def __init__(self, items: Iterable["Frame"] = ()) -> None:
        object.__setattr__(self, "items", tuple(items))


Frame = Union[Simple, ErrorFrame, Integer, Bulk, Null, Array]


class _Cursor:
    """Reads protocol elements from a byte buffer, tracking a position."""

    def __init__(self, data: Union[bytes, bytearray, memoryview], pos: int = 0) -> None:
        self.data = data
        self.pos = pos

    def remaining(self) -> int:
        return len(self.data) - self.pos

    def peek_u8(self) -> int:
        if self.remaining() < 1:
            raise IncompleteFrame()
        return self.data[self.pos]

    def get_u8(self) -> int:
        byte = self.peek_u8()
        self.pos += 1
        return byte

    def skip(self, count: int) -> None:
        if self.remaining() < count:
            raise IncompleteFrame()
        self.pos += count

    def get_line(self) -> bytes:
        end = bytes(self.data[self.pos:]).find(b"\r\n")
        if end < 0:
            raise IncompleteFrame()
        line = bytes(self.data[self.pos:self.pos + end])
        self.pos += end + 2
        return line

    def get_decimal(self) -> int:
        line = self.get_line()
        if not line.isdigit():
            raise ProtocolError(_INVALID_FORMAT)
        value = int(line)
        if value > _MAX_U64:
            raise ProtocolError(_INVALID_FORMAT)
        return value

    def get_text(self) -> str:
        try:
            return self.get_line().decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ProtocolError(_INVALID_FORMAT) from exc


def _invalid_type(byte: int) -> ProtocolError:
    return ProtocolError(f"protocol error; invalid frame type byte `{byte}`")


def _check(cursor: _Cursor) -> None:
    kind = cursor.get_u8()
    if kind in (ord("+"), ord("-")):
        cursor.get_line()
    elif kind == ord(":"):
        cursor.get_decimal()
    elif kind == ord("$"):
        if cursor.peek_u8() == ord("-"):
            cursor.skip(4)
        else:
            cursor.skip(cursor.get_decimal() + 2)
    elif kind == ord("*"):
        for _ in range(cursor.get_decimal()):
            _check(cursor)
    else:
        raise _invalid_type(kind)


def _parse(cursor: _Cursor) -> Frame:
    kind = cursor.get_u8()
    if kind == ord("+"):
        return Simple(cursor.get_text())
    if kind == ord("-"):
        return ErrorFrame(cursor.get_text())
    if kind == ord(":"):
        return Integer(cursor.get_decimal())
    if kind == ord("$"):
        if cursor.peek_u8() == ord("-"):
            if cursor.get_line() != b"-1":
                raise ProtocolError(_INVALID_FORMAT)
            return Null()
        length = cursor.get_decimal()
        if cursor.remaining() < length + 2:
            raise IncompleteFrame()
        payload = bytes(cursor.data[cursor.pos:cursor.pos + length])
        cursor.skip(length + 2)
        return Bulk(payload)
    if kind == ord("*"):
        return Array(_parse(cursor) for _ in range(cursor.get_decimal()))
    raise _invalid_type(kind)


def check_frame(data: Union[bytes, bytearray], pos: int = 0) -> int:
    """Check that a whole frame starts at ``pos`` and return the position just past it.

    Raises IncompleteFrame if more bytes are needed, ProtocolError if the data is invalid.
    """
    cursor = _Cursor(data, pos)
    _check(cursor)
    return cursor.pos


def parse_frame(data: Union[bytes, bytearray]) -> Tuple[Frame, int]:
    """Parse one frame from the start of ``data``; return it with the number of bytes used."""
    cursor = _Cursor(data)
    frame = _parse(cursor)
    return frame, cursor.pos


def _decimal(value: int) -> bytes:
    return b"%d\r\n" % value


def _encode_value(frame: Frame) -> bytes:
    if isinstance(frame, Simple):
        return b"+" + frame.value.encode("utf-8") + b"\r\n"
    if isinstance(frame, ErrorFrame):
        return b"-" + frame.value.encode("utf-8") + b"\r\n"
    if isinstance(frame, Integer):
        return b":" + _decimal(frame.value)
    if isinstance(frame, Null):
        return b"$-1\r\n"
    if isinstance(frame, Bulk):
        return b"$" + _decimal(len(frame.value)) + frame.value + b"\r\n"
    if isinstance(frame, Array):
        raise ValueError("nested arrays cannot be encoded")
    raise TypeError(f"not a frame: {frame!r}")


def encode_frame(frame: Frame) -> bytes:
    """Encode a frame to its wire form. Arrays may hold only non-array frames."""
    if isinstance(frame, Array):
        parts = [b"*", _decimal(len(frame.items))]
        parts.extend(_encode_value(item) for item in frame.items)
        return b"".join(parts)
    return _encode_value(frame)


class Connection:
    """Send and receive frames over an asyncio stream pair."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._reader = reader
        self._writer = writer
        self._buffer = bytearray()

    async def __aenter__(self) -> "Connection":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _take_frame(self) -> Optional[Frame]:
        try:
            length = check_frame(self._buffer)
        except IncompleteFrame:
            return None
        frame, _ = parse_frame(self._buffer[:length])
        del self._buffer[:length]
        return frame

    async def read_frame(self) -> Optional[Frame]:
        """Read the next frame; return None when the peer closes cleanly between frames.

        Raises ConnectionResetError if the peer closes in the middle of a frame.
        """
        while True:
            frame = self._take_frame()
            if frame is not None:
                return frame
            chunk = await self._reader.read(READ_CHUNK)
            if not chunk:
                if not self._buffer:
                    return None
                raise ConnectionResetError("connection reset by peer")
            self._buffer.extend(chunk)

    async def write_frame(self, frame: Frame) -> None:
        """Write one frame and flush it to the peer."""
        self._writer.write(encode_frame(frame))
        await self._writer.drain()

    async def close(self) -> None:
        """Close the underlying stream."""
        self._writer.close()
        await self._writer.wait_closed()