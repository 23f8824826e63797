"""
Client Core Module

Ties the protocol engine together for one connection:

    send():      enqueue -> encode_request -> Transport.write
    on_bytes():  StreamReassembler.feed -> ValueDecoder.decode
                 -> PipelineRouter.resolve_next

The core is synchronous and does no I/O of its own. A transport feeds it
received bytes and reports lifecycle changes; everything runs on the one
task that drives that transport, so no locking is needed.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, List, Optional, Union

from ..protocol.codec import encode_request
from ..protocol.decoder import ValueDecoder
from ..protocol.errors import (
    ConnectionClosedError,
    DecodeError,
    NotConnectedError,
    ProtocolViolation,
    ReplyError,
)
from ..protocol.reassembler import StreamReassembler
from .pipeline import PendingRequest, PipelineRouter, Resolver

logger = logging.getLogger(__name__)


class Transport(ABC):
    """Byte stream the core writes requests to."""

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """True while bytes can be written."""

    @abstractmethod
    def write(self, data: bytes) -> None:
        """Queue bytes for sending without blocking."""


class ConnectionEvent(Enum):
    """Connection lifecycle events published by ClientCore."""
    CONNECTED = "connected"
    CLOSED = "closed"
    ERROR = "error"


Listener = Callable[[ConnectionEvent, Optional[BaseException]], None]


class ClientCore:
    """
    Protocol engine bound to a single transport.

    Replies are delivered per request through resolvers; connection level
    changes go to listeners registered with add_listener().

    Attributes:
        transport: Where encoded requests are written
        reassembler: Frame reassembly for received bytes
        decoder: Payload decoder
        router: Outstanding request queue
    """

    def __init__(
            self,
            transport: Transport,
            decoder: ValueDecoder = None,
            reassembler: StreamReassembler = None,
    ):
        self.transport = transport
        self.decoder = decoder if decoder is not None else ValueDecoder()
        self.reassembler = reassembler if reassembler is not None else StreamReassembler()
        self.router = PipelineRouter()
        self._listeners: List[Listener] = []

    @property
    def pending(self) -> int:
        """Number of requests still waiting for a reply."""
        return len(self.router)

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _publish(self, event: ConnectionEvent, exc: Optional[BaseException] = None) -> None:
        for listener in list(self._listeners):
            listener(event, exc)

    def send(self, opcode: int, payload: Union[bytes, str] = b"", resolver: Optional[Resolver] = None) -> PendingRequest:
        """
        Issue a request.

        Args:
            opcode: Command opcode
            payload: Serialized arguments
            resolver: Called with (error, value) once the reply arrives

        Returns:
            The PendingRequest now at the back of the queue

        Raises:
            NotConnectedError: If the transport is not connected; nothing
                is enqueued in that case.
        """
        if not self.transport.is_connected:
            raise NotConnectedError()

        frame = encode_request(opcode, payload)
        request = self.router.enqueue(opcode, resolver)
        logger.debug(f"Sending opcode {opcode} ({len(frame)} bytes), {len(self.router)} pending")
        self.transport.write(frame)
        return request

    def on_bytes(self, chunk: bytes) -> int:
        """
        Process bytes received from the transport.

        Decode failures and error replies are delivered to the matching
        request and do not affect the connection.

        Args:
            chunk: Raw received bytes

        Returns:
            Number of frames processed

        Raises:
            ProtocolViolation: If a reply arrives with nothing pending
        """
        processed = 0
        for frame in self.reassembler.feed(chunk):
            try:
                value = self.decoder.decode(frame.code, frame.encoding, frame.length, frame.payload)
            except (DecodeError, ReplyError) as exc:
                error, value = exc, None
            else:
                error = None

            try:
                self.router.resolve_next(error, value)
            except ProtocolViolation as exc:
                logger.error(f"Unexpected reply frame (code={frame.code}, {frame.length} bytes)")
                self._publish(ConnectionEvent.ERROR, exc)
                raise
            processed += 1
        return processed

    def on_transport_connected(self) -> None:
        self._publish(ConnectionEvent.CONNECTED)

    def on_transport_error(self, exc: BaseException) -> None:
        logger.debug(f"Transport error: {exc!r}")
        self._publish(ConnectionEvent.ERROR, exc)

    def on_transport_closed(self, exc: Optional[BaseException] = None) -> None:
        """
        Tear down connection state.

        Every pending request is failed with ConnectionClosedError, the
        reassembly buffer is dropped, and CLOSED is published.

        Args:
            exc: The transport failure that caused the close, if any
        """
        error = ConnectionClosedError(cause=exc)
        if exc is not None:
            error.__cause__ = exc
        self.router.fail_all(error)
        self.reassembler.reset()
        self._publish(ConnectionEvent.CLOSED, exc)
