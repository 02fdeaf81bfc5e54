"""TCP server that sends every byte it receives straight back."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
from typing import List, Optional

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 6142
BUFFER_SIZE = 1024


async def handle_echo(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
    """Echo data back to the peer until it closes or the socket fails."""
    try:
        while data := await reader.read(BUFFER_SIZE):
            writer.write(data)
            await writer.drain()
    except OSError:
        pass
    finally:
        writer.close()
        with contextlib.suppress(OSError):
            await writer.wait_closed()


async def serve(host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> None:
    """Accept echo connections forever."""
    server = await asyncio.start_server(handle_echo, host, port)
    async with server:
        await server.serve_forever()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run the echo server.")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    args = parser.parse_args(argv)
    try:
        asyncio.run(serve(args.host, args.port))
    except KeyboardInterrupt:
        pass
    return 0