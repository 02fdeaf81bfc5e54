import asyncio

import pytest

from minikv.client import GetRequest, SetRequest, connect, hello, run_manager
from minikv.connection import ProtocolError
from minikv.server import process

GET_HELLO = b"*2\r\n$3\r\nget\r\n$5\r\nhello\r\n"


async def _start(handler):
    server = await asyncio.start_server(handler, "127.0.0.1", 0)
    return server, server.sockets[0].getsockname()[1]


async def _start_kv(db):
    return await _start(lambda r, w: process(r, w, db))


@pytest.mark.asyncio
async def test_set_then_get_round_trip():
    db = {}
    server, port = await _start_kv(db)
    try:
        client = await connect("127.0.0.1", port)
        await client.set("foo", b"bar")
        assert await client.get("foo") == b"bar"
        await client.close()
    finally:
        server.close()
    assert db == {"foo": b"bar"}


@pytest.mark.asyncio
async def test_get_missing_is_none():
    server, port = await _start_kv({})
    try:
        async with await connect("127.0.0.1", port) as client:
            assert await client.get("nothing") is None
    finally:
        server.close()


@pytest.mark.asyncio
async def test_set_accepts_text():
    server, port = await _start_kv({})
    try:
        async with await connect("127.0.0.1", port) as client:
            await client.set("k", "v")
            assert await client.get("k") == b"v"
    finally:
        server.close()


@pytest.mark.asyncio
async def test_get_wire_bytes():
    received = asyncio.get_running_loop().create_future()

    async def handler(reader, writer):
        received.set_result(await reader.readexactly(len(GET_HELLO)))
        writer.write(b"$5\r\nworld\r\n")
        await writer.drain()
        writer.close()

    server, port = await _start(handler)
    try:
        client = await connect("127.0.0.1", port)
        assert await client.get("hello") == b"world"
        assert await received == GET_HELLO
        await client.close()
    finally:
        server.close()


@pytest.mark.asyncio
async def test_error_frame_raises():
    async def handler(reader, writer):
        await reader.read(1024)
        writer.write(b"-ERR unknown\r\n")
        await writer.drain()
        writer.close()

    server, port = await _start(handler)
    try:
        client = await connect("127.0.0.1", port)
        with pytest.raises(ProtocolError, match="ERR unknown"):
            await client.get("hello")
        await client.close()
    finally:
        server.close()


@pytest.mark.asyncio
async def test_set_rejects_unexpected_reply():
    async def handler(reader, writer):
        await reader.read(1024)
        writer.write(b":1\r\n")
        await writer.drain()
        writer.close()

    server, port = await _start(handler)
    try:
        client = await connect("127.0.0.1", port)
        with pytest.raises(ProtocolError):
            await client.set("k", b"v")
        await client.close()
    finally:
        server.close()


@pytest.mark.asyncio
async def test_closed_server_raises_connection_error():
    async def handler(reader, writer):
        writer.close()

    server, port = await _start(handler)
    try:
        client = await connect("127.0.0.1", port)
        with pytest.raises(ConnectionError):
            await client.get("hello")
    finally:
        server.close()


@pytest.mark.asyncio
async def test_manager_serves_requests_in_order():
    server, port = await _start_kv({})
    try:
        client = await connect("127.0.0.1", port)
        loop = asyncio.get_running_loop()
        queue = asyncio.Queue()
        set_future = loop.create_future()
        get_future = loop.create_future()
        await queue.put(SetRequest("foo", b"bar", set_future))
        await queue.put(GetRequest("foo", get_future))
        await queue.put(None)
        await run_manager(queue, client)
        assert set_future.result() is None
        assert get_future.result() == b"bar"
        await client.close()
    finally:
        server.close()


@pytest.mark.asyncio
async def test_manager_passes_errors_to_requester():
    async def handler(reader, writer):
        while await reader.read(1024):
            writer.write(b"-ERR nope\r\n")
            await writer.drain()
        writer.close()

    server, port = await _start(handler)
    try:
        client = await connect("127.0.0.1", port)
        loop = asyncio.get_running_loop()
        queue = asyncio.Queue()
        first = loop.create_future()
        second = loop.create_future()
        await queue.put(GetRequest("a", first))
        await queue.put(SetRequest("b", b"c", second))
        await queue.put(None)
        await run_manager(queue, client)
        assert isinstance(first.exception(), ProtocolError)
        assert str(second.exception()) == "ERR nope"
        await client.close()
    finally:
        server.close()


@pytest.mark.asyncio
async def test_hello_returns_world(capsys):
    server, port = await _start_kv({})
    try:
        result = await hello("127.0.0.1", port)
    finally:
        server.close()
    assert result == b"world"
    assert "got value from server; result=b'world'" in capsys.readouterr().out