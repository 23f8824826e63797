"""
Async Stream Transport Module

Connects a ClientCore to a Gibson server over asyncio streams.

A single reader task loops on StreamReader.read() and hands every chunk
to the core; writes go straight to the StreamWriter. The task ends when
the server closes the connection, the socket fails, or close() is
called, and in every case the core is told the connection is gone so
pending requests are failed.
"""

import asyncio
import logging
import socket
from asyncio import StreamReader, StreamWriter
from typing import Optional

from ..client.core import ClientCore, Transport
from ..config.settings import Endpoint, settings
from ..protocol.errors import NotConnectedError, ProtocolViolation

logger = logging.getLogger(__name__)


class StreamTransport(Transport):
    """
    TCP or Unix domain socket transport built on asyncio streams.

    Usage:
        transport = StreamTransport(parse_address("tcp://127.0.0.1:10128"))
        core = ClientCore(transport)
        await transport.open(core)

    Attributes:
        endpoint: Server address
        read_size: Maximum bytes requested per read
    """

    def __init__(self, endpoint: Endpoint, read_size: int = None):
        self.endpoint = endpoint
        self.read_size = read_size if read_size is not None else settings.READ_BUFFER_SIZE
        self._reader: Optional[StreamReader] = None
        self._writer: Optional[StreamWriter] = None
        self._read_task: Optional[asyncio.Task] = None
        self._core: Optional[ClientCore] = None

    @property
    def is_connected(self) -> bool:
        return self._writer is not None and not self._writer.is_closing()

    async def open(self, core: ClientCore, timeout: float = None) -> None:
        """
        Open the connection and start feeding received bytes to core.

        Args:
            core: The client core to drive
            timeout: Connection timeout in seconds (default from settings)

        Raises:
            asyncio.TimeoutError: If the connection is not established in time
            OSError: If the connection is refused or the path is missing
        """
        timeout = timeout if timeout is not None else settings.CONNECT_TIMEOUT

        if self.endpoint.is_unix:
            connecting = asyncio.open_unix_connection(self.endpoint.path)
        else:
            connecting = asyncio.open_connection(self.endpoint.host, self.endpoint.port)

        self._reader, self._writer = await asyncio.wait_for(connecting, timeout=timeout or None)

        sock = self._writer.get_extra_info("socket")
        if sock is not None and sock.family in (socket.AF_INET, socket.AF_INET6):
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        self._core = core
        logger.debug(f"Connected to {self.endpoint}")
        core.on_transport_connected()
        self._read_task = asyncio.create_task(self._read_loop())

    def write(self, data: bytes) -> None:
        if not self.is_connected:
            raise NotConnectedError()
        self._writer.write(data)

    async def drain(self) -> None:
        """Wait until the write buffer is flushed enough to continue."""
        if self.is_connected:
            await self._writer.drain()

    async def _read_loop(self) -> None:
        core = self._core
        error: Optional[BaseException] = None

        try:
            while True:
                chunk = await self._reader.read(self.read_size)
                if not chunk:
                    logger.debug(f"Connection closed by server: {self.endpoint}")
                    break
                core.on_bytes(chunk)

        except ProtocolViolation as exc:
            logger.error(f"Protocol violation on {self.endpoint}, closing connection: {exc}")
            error = exc
        except (ConnectionError, OSError) as exc:
            logger.debug(f"Connection error on {self.endpoint}: {exc!r}")
            core.on_transport_error(exc)
            error = exc
        finally:
            if self._writer is not None:
                self._writer.close()
            core.on_transport_closed(error)

    async def close(self) -> None:
        """Close the connection and stop the reader task."""
        task, self._read_task = self._read_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        writer, self._writer = self._writer, None
        if writer is not None:
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError):
                pass
