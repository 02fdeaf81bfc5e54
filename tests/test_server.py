import asyncio

import pytest

from minikv.connection import Array, Bulk, Connection, Integer, Null, ProtocolError, Simple
from minikv.server import (
    Get,
    Set,
    UnknownCommand,
    apply_command,
    command_from_frame,
    process,
)


def _cmd(*parts):
    return Array(Bulk(p.encode() if isinstance(p, str) else p) for p in parts)


async def _start(db):
    server = await asyncio.start_server(lambda r, w: process(r, w, db), "127.0.0.1", 0)
    return server, server.sockets[0].getsockname()[1]


def test_get_is_parsed():
    assert command_from_frame(_cmd("get", "foo")) == Get("foo")


def test_command_name_is_case_insensitive():
    assert command_from_frame(_cmd("GET", "foo")) == Get("foo")


def test_set_is_parsed():
    assert command_from_frame(_cmd("set", "foo", b"bar")) == Set("foo", b"bar")


def test_simple_string_arguments_are_accepted():
    frame = Array([Simple("set"), Simple("k"), Simple("v")])
    assert command_from_frame(frame) == Set("k", b"v")


def test_set_with_ex_expiry():
    assert command_from_frame(_cmd("set", "k", "v", "EX", "5")) == Set("k", b"v", expire=5.0)


def test_set_with_px_expiry():
    command = command_from_frame(_cmd("set", "k", "v", "px", "1500"))
    assert command.expire == 1.5


def test_set_with_bad_option_fails():
    with pytest.raises(ProtocolError):
        command_from_frame(_cmd("set", "k", "v", "KEEPTTL"))


def test_unknown_command_keeps_lowercased_name():
    assert command_from_frame(_cmd("PING")) == UnknownCommand("ping")


def test_non_array_frame_fails():
    with pytest.raises(ProtocolError):
        command_from_frame(Simple("get"))


def test_missing_argument_fails():
    with pytest.raises(ProtocolError):
        command_from_frame(_cmd("get"))


def test_trailing_argument_fails():
    with pytest.raises(ProtocolError):
        command_from_frame(_cmd("get", "a", "b"))


def test_integer_command_name_fails():
    with pytest.raises(ProtocolError):
        command_from_frame(Array([Integer(1)]))


def test_apply_set_stores_value():
    db = {}
    assert apply_command(Set("foo", b"bar"), db) == Simple("OK")
    assert db == {"foo": b"bar"}


def test_apply_get_missing_is_null():
    assert apply_command(Get("foo"), {}) == Null()


def test_apply_get_present_is_bulk():
    assert apply_command(Get("foo"), {"foo": b"bar"}) == Bulk(b"bar")


def test_apply_unknown_raises():
    with pytest.raises(NotImplementedError):
        apply_command(UnknownCommand("ping"), {})


@pytest.mark.asyncio
async def test_process_set_then_get():
    db = {}
    server, port = await _start(db)
    try:
        conn = Connection(*await asyncio.open_connection("127.0.0.1", port))
        await conn.write_frame(_cmd("set", "foo", "bar"))
        assert await conn.read_frame() == Simple("OK")
        await conn.write_frame(_cmd("get", "foo"))
        assert await conn.read_frame() == Bulk(b"bar")
        await conn.close()
    finally:
        server.close()
    assert db == {"foo": b"bar"}


@pytest.mark.asyncio
async def test_process_missing_key_wire_bytes():
    server, port = await _start({})
    try:
        reader, writer = await asyncio.open_connection("127.0.0.1", port)
        writer.write(b"*2\r\n$3\r\nget\r\n$7\r\nmissing\r\n")
        await writer.drain()
        assert await reader.readexactly(5) == b"$-1\r\n"
        writer.close()
    finally:
        server.close()


@pytest.mark.asyncio
async def test_process_closes_on_unknown_command():
    server, port = await _start({})
    try:
        conn = Connection(*await asyncio.open_connection("127.0.0.1", port))
        await conn.write_frame(_cmd("ping"))
        assert await conn.read_frame() is None
        await conn.close()
    finally:
        server.close()