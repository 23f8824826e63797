"""
Pytest Configuration and Fixtures

This module provides shared fixtures, frame builders and an in-process
fake Gibson server for all tests.
"""

import asyncio
import struct
import pytest
import pytest_asyncio
from typing import AsyncGenerator, Dict, Iterable, List, Tuple, Union

from gibson.client.core import ClientCore, Transport
from gibson.client.pipeline import PipelineRouter
from gibson.protocol.codec import encode_reply
from gibson.protocol.commands import Encoding, Opcode, ReplyCode
from gibson.protocol.decoder import ValueDecoder
from gibson.protocol.reassembler import StreamReassembler


# ============================================================================
# Frame Builders
# ============================================================================

def text_reply(text: str) -> bytes:
    """A REPL_VAL frame holding PLAIN text."""
    return encode_reply(ReplyCode.REPL_VAL, Encoding.PLAIN, text.encode("utf-8"))


def number_reply(number: int, size: int = 8) -> bytes:
    """A REPL_VAL frame holding a NUMBER of 4 or 8 bytes."""
    fmt = "<q" if size == 8 else "<i"
    return encode_reply(ReplyCode.REPL_VAL, Encoding.NUMBER, struct.pack(fmt, number))


def ok_reply(payload: bytes = b"") -> bytes:
    return encode_reply(ReplyCode.REPL_OK, Encoding.PLAIN, payload)


def error_reply(code: int = ReplyCode.REPL_ERR, payload: bytes = b"") -> bytes:
    return encode_reply(code, Encoding.PLAIN, payload)


def map_entry(key: str, value: Union[str, int], encoding: int = None) -> bytes:
    """Encode one map entry; str values are PLAIN, int values 8 byte NUMBER."""
    if isinstance(value, int):
        data = struct.pack("<q", value)
        encoding = Encoding.NUMBER if encoding is None else encoding
    else:
        data = value.encode("utf-8")
        encoding = Encoding.PLAIN if encoding is None else encoding
    key_bytes = key.encode("utf-8")
    return (
        struct.pack("<I", len(key_bytes)) + key_bytes
        + struct.pack("<BI", encoding, len(data)) + data
    )


def map_payload(items: Iterable[Tuple[str, Union[str, int]]]) -> bytes:
    entries = [map_entry(key, value) for key, value in items]
    return struct.pack("<I", len(entries)) + b"".join(entries)


def map_reply(items: Iterable[Tuple[str, Union[str, int]]]) -> bytes:
    """A REPL_KVAL frame; items keep their given order."""
    return encode_reply(ReplyCode.REPL_KVAL, Encoding.PLAIN, map_payload(items))


# ============================================================================
# Protocol Fixtures
# ============================================================================

@pytest.fixture
def decoder() -> ValueDecoder:
    """Create a ValueDecoder with the standard error table."""
    return ValueDecoder()


@pytest.fixture
def reassembler() -> StreamReassembler:
    """Create an empty StreamReassembler."""
    return StreamReassembler()


@pytest.fixture
def router() -> PipelineRouter:
    """Create an empty PipelineRouter."""
    return PipelineRouter()


# ============================================================================
# Core Fixtures
# ============================================================================

class FakeTransport(Transport):
    """
    In-memory transport that records everything written to it.

    Usage:
        transport = FakeTransport()
        core = ClientCore(transport)
        core.send(Opcode.PING)
        assert transport.written == [b"\\x02\\x00\\x00\\x00\\x13\\x00"]
    """

    def __init__(self, connected: bool = True):
        self.connected = connected
        self.written: List[bytes] = []

    @property
    def is_connected(self) -> bool:
        return self.connected

    def write(self, data: bytes) -> None:
        self.written.append(bytes(data))


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def core(transport: FakeTransport) -> ClientCore:
    """Create a ClientCore bound to a connected FakeTransport."""
    return ClientCore(transport)


class Collector:
    """Resolver that records every (error, value) it is called with."""

    def __init__(self):
        self.calls: List[Tuple[object, object]] = []

    def __call__(self, error, value):
        self.calls.append((error, value))

    def named(self, name: str):
        """A resolver that tags its calls with name, for ordering checks."""
        def resolve(error, value):
            self.calls.append((name, error if error is not None else value))
        return resolve


@pytest.fixture
def collector() -> Collector:
    return Collector()


# ============================================================================
# Fake Gibson Server
# ============================================================================

class FakeGibsonServer:
    """
    Minimal Gibson server speaking the binary protocol.

    Supports SET, GET, DEL, INC, DEC, MGET, COUNT, PING and END, which is
    enough to drive the client end to end. Integers are stored as ints
    and sent back as 8 byte NUMBER values.

    Attributes:
        store: The server's key -> value data
        requests: Every (opcode, payload) received, in order
    """

    def __init__(self):
        self.store: Dict[str, Union[str, int]] = {}
        self.requests: List[Tuple[int, bytes]] = []
        self.hold_replies = False
        self._server = None
        self._writers = []

    async def handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._writers.append(writer)
        try:
            while True:
                header = await reader.readexactly(4)
                (length,) = struct.unpack("<I", header)
                body = await reader.readexactly(length)
                (opcode,) = struct.unpack_from("<H", body)
                payload = body[2:]
                self.requests.append((opcode, payload))

                if opcode == Opcode.END:
                    break
                if self.hold_replies:
                    continue

                writer.write(self.reply(opcode, payload))
                await writer.drain()
        except (asyncio.IncompleteReadError, ConnectionError):
            pass
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except Exception:
                pass

    def reply(self, opcode: int, payload: bytes) -> bytes:
        args = payload.decode("utf-8")

        if opcode == Opcode.PING:
            return ok_reply()

        if opcode == Opcode.SET:
            _ttl, key, value = args.split(" ", 2)
            self.store[key] = value
            return text_reply(value)

        if opcode == Opcode.GET:
            if args not in self.store:
                return error_reply(ReplyCode.REPL_ERR_NOT_FOUND)
            value = self.store[args]
            return number_reply(value) if isinstance(value, int) else text_reply(value)

        if opcode == Opcode.DEL:
            if self.store.pop(args, None) is None:
                return error_reply(ReplyCode.REPL_ERR_NOT_FOUND)
            return ok_reply()

        if opcode in (Opcode.INC, Opcode.DEC):
            current = self.store.get(args, 0)
            try:
                current = int(current)
            except ValueError:
                return error_reply(ReplyCode.REPL_ERR_NAN)
            self.store[args] = current + (1 if opcode == Opcode.INC else -1)
            return number_reply(self.store[args])

        if opcode == Opcode.MGET:
            items = [(key, value) for key, value in self.store.items() if key.startswith(args)]
            if not items:
                return error_reply(ReplyCode.REPL_ERR_NOT_FOUND)
            return map_reply(items)

        if opcode == Opcode.COUNT:
            return number_reply(sum(1 for key in self.store if key.startswith(args)))

        return error_reply(ReplyCode.REPL_ERR)

    async def start_tcp(self) -> int:
        self._server = await asyncio.start_server(self.handle_client, "127.0.0.1", 0)
        return self._server.sockets[0].getsockname()[1]

    async def start_unix(self, path: str) -> None:
        self._server = await asyncio.start_unix_server(self.handle_client, path)

    async def drop_connections(self) -> None:
        """Hang up on every connected client."""
        for writer in self._writers:
            writer.close()

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        await self.drop_connections()
        await self._server.wait_closed()
        self._server = None


@pytest_asyncio.fixture
async def gibson_server() -> AsyncGenerator[FakeGibsonServer, None]:
    """Start a fake Gibson server on a free TCP port."""
    server = FakeGibsonServer()
    server.port = await server.start_tcp()

    yield server

    await server.stop()


@pytest_asyncio.fixture
async def gibson_unix_server(tmp_path) -> AsyncGenerator[FakeGibsonServer, None]:
    """Start a fake Gibson server on a Unix domain socket."""
    server = FakeGibsonServer()
    server.path = str(tmp_path / "gibson.sock")
    await server.start_unix(server.path)

    yield server

    await server.stop()


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests that talk to a fake server over real sockets"
    )

