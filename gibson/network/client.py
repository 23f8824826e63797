"""
Gibson Client Module

High level asyncio client. Every command goes through query(), which
wraps the per-request resolver of ClientCore in an asyncio Future; the
named methods (get, set, mget, ...) are thin wrappers over it.

Usage:
    async with GibsonClient("tcp://127.0.0.1:10128") as client:
        await client.set(0, "foo", "bar")
        value = await client.get("foo")   # 'bar'
"""

import asyncio
import logging
from typing import Any, List, Optional, Union

from ..client.core import ClientCore, Listener
from ..config.settings import Endpoint, parse_address, settings
from ..protocol.commands import Opcode, Value, build_payload, lookup_opcode
from ..protocol.errors import ConnectionClosedError, NotConnectedError
from .transport import StreamTransport

logger = logging.getLogger(__name__)


def _future_resolver(future: asyncio.Future):
    def resolve(error: Optional[BaseException], value: Any) -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(value)
    return resolve


class GibsonClient:
    """
    Asynchronous client for one Gibson server connection.

    Requests may be pipelined: several query() calls can be in flight at
    once on the same connection and complete in the order they were
    issued.

    Attributes:
        endpoint: Parsed server address
        timeout: Default per-request timeout in seconds (0 or None = none)
        connect_timeout: Connection timeout in seconds
    """

    def __init__(
            self,
            address: Union[str, Endpoint] = None,
            timeout: float = None,
            connect_timeout: float = None,
    ):
        if isinstance(address, Endpoint):
            self.endpoint = address
        else:
            self.endpoint = parse_address(address if address is not None else settings.ADDRESS)
        self.timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT
        self.connect_timeout = connect_timeout if connect_timeout is not None else settings.CONNECT_TIMEOUT

        self._transport: Optional[StreamTransport] = None
        self._core: Optional[ClientCore] = None
        self._listeners: List[Listener] = []

    @property
    def is_connected(self) -> bool:
        return self._transport is not None and self._transport.is_connected

    @property
    def pending(self) -> int:
        """Requests sent but not yet answered."""
        return self._core.pending if self._core is not None else 0

    def add_listener(self, listener: Listener) -> None:
        """Register a callback for connection events (CONNECTED, CLOSED, ERROR)."""
        self._listeners.append(listener)
        if self._core is not None:
            self._core.add_listener(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)
        if self._core is not None:
            self._core.remove_listener(listener)

    async def connect(self) -> None:
        """Open the connection. Does nothing if already connected."""
        if self.is_connected:
            return

        transport = StreamTransport(self.endpoint)
        core = ClientCore(transport)
        for listener in self._listeners:
            core.add_listener(listener)

        await transport.open(core, timeout=self.connect_timeout)
        self._transport, self._core = transport, core
        logger.info(f"Connected to Gibson at {self.endpoint}")

    async def close(self) -> None:
        """Close the connection, failing anything still pending."""
        transport, self._transport = self._transport, None
        if transport is not None:
            await transport.close()
            logger.debug(f"Disconnected from {self.endpoint}")

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def query(self, command: Union[Opcode, int, str], *args: Any, timeout: float = None) -> Value:
        """
        Send a command and wait for its reply.

        Args:
            command: Opcode, raw opcode number or command name
            *args: Command arguments, joined with spaces on the wire
            timeout: Seconds to wait for the reply; on expiry the
                     connection is closed since the reply order can no
                     longer be trusted

        Returns:
            The decoded reply Value

        Raises:
            NotConnectedError: If connect() has not been called
            ReplyError: If the server answered with an error
            DecodeError: If the reply could not be decoded
            ConnectionClosedError: If the connection dropped first
            asyncio.TimeoutError: If the timeout expired
        """
        transport, core = self._transport, self._core
        if core is None or not self.is_connected:
            raise NotConnectedError()

        opcode = lookup_opcode(command)
        future = asyncio.get_running_loop().create_future()
        core.send(opcode, build_payload(*args), _future_resolver(future))
        try:
            await transport.drain()
        except (ConnectionError, OSError) as exc:
            # nobody will await the reply; the reader task fails the queue
            future.cancel()
            logger.debug(f"Write to {self.endpoint} failed: {exc!r}")
            raise ConnectionClosedError(cause=exc) from exc

        timeout = timeout if timeout is not None else self.timeout
        if not timeout:
            return await future

        try:
            return await asyncio.wait_for(future, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Request {opcode} timed out after {timeout}s, closing connection")
            await self.close()
            raise

    async def _python(self, command: Opcode, *args: Any) -> Any:
        value = await self.query(command, *args)
        return value.to_python()

    async def set(self, ttl: int, key: str, value: Any) -> Any:
        return await self._python(Opcode.SET, ttl, key, value)

    async def ttl(self, key: str, ttl: int) -> Any:
        return await self._python(Opcode.TTL, key, ttl)

    async def get(self, key: str) -> Any:
        return await self._python(Opcode.GET, key)

    async def delete(self, key: str) -> Any:
        return await self._python(Opcode.DEL, key)

    async def inc(self, key: str) -> Any:
        return await self._python(Opcode.INC, key)

    async def dec(self, key: str) -> Any:
        return await self._python(Opcode.DEC, key)

    async def lock(self, key: str, seconds: int) -> Any:
        return await self._python(Opcode.LOCK, key, seconds)

    async def unlock(self, key: str) -> Any:
        return await self._python(Opcode.UNLOCK, key)

    async def mset(self, prefix: str, value: Any) -> Any:
        return await self._python(Opcode.MSET, prefix, value)

    async def mttl(self, prefix: str, ttl: int) -> Any:
        return await self._python(Opcode.MTTL, prefix, ttl)

    async def mget(self, prefix: str) -> Any:
        return await self._python(Opcode.MGET, prefix)

    async def mdel(self, prefix: str) -> Any:
        return await self._python(Opcode.MDEL, prefix)

    async def minc(self, prefix: str) -> Any:
        return await self._python(Opcode.MINC, prefix)

    async def mdec(self, prefix: str) -> Any:
        return await self._python(Opcode.MDEC, prefix)

    async def mlock(self, prefix: str, seconds: int) -> Any:
        return await self._python(Opcode.MLOCK, prefix, seconds)

    async def munlock(self, prefix: str) -> Any:
        return await self._python(Opcode.MUNLOCK, prefix)

    async def count(self, prefix: str) -> Any:
        return await self._python(Opcode.COUNT, prefix)

    async def stats(self) -> Any:
        return await self._python(Opcode.STATS)

    async def ping(self) -> Any:
        return await self._python(Opcode.PING)

    async def sizeof(self, key: str) -> Any:
        return await self._python(Opcode.SIZEOF, key)

    async def msizeof(self, prefix: str) -> Any:
        return await self._python(Opcode.MSIZEOF, prefix)

    async def encof(self, key: str) -> Any:
        return await self._python(Opcode.ENCOF, key)

    async def keys(self, prefix: str) -> Any:
        return await self._python(Opcode.KEYS, prefix)

    async def end(self) -> None:
        """Ask the server to end the session, then close."""
        try:
            await self.query(Opcode.END)
        except ConnectionClosedError:
            # the server may hang up instead of replying
            pass
        finally:
            await self.close()
